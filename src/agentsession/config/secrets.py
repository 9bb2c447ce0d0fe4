"""API key lookup with dotenv support.

Keys come from the process environment first, then from a project-local
``.env.secrets`` file. The file is parsed once and cached.
"""

from __future__ import annotations

import os
from functools import lru_cache
from pathlib import Path

from dotenv import dotenv_values

SECRETS_FILE = ".env.secrets"


class MissingSecretError(KeyError):
    """A required secret is not set anywhere."""


@lru_cache(maxsize=8)
def _load_secrets(secrets_path: Path | None = None) -> dict[str, str | None]:
    path = secrets_path or Path(SECRETS_FILE)
    if not path.exists():
        return {}
    return dotenv_values(path)


def fetch_secret(
    key: str,
    default: str | None = None,
    secrets_path: Path | None = None,
) -> str | None:
    """Fetch a secret from the environment or ``.env.secrets``.

    The environment is consulted first so tests can control keys through
    ``monkeypatch.setenv`` / ``monkeypatch.delenv``.

    Example:
        >>> fetch_secret("ANTHROPIC_API_KEY")
        'sk-ant-...'
    """
    value = os.environ.get(key)
    if value is not None:
        return value

    value = _load_secrets(secrets_path).get(key)
    if value is not None:
        return value

    return default


def require_secret(key: str, secrets_path: Path | None = None) -> str:
    """Like :func:`fetch_secret` but raises when the key is absent."""
    value = fetch_secret(key, secrets_path=secrets_path)
    if value is None:
        raise MissingSecretError(f"Secret {key} is not set (checked environment and {SECRETS_FILE})")
    return value


def clear_secret_cache() -> None:
    """Forget cached ``.env.secrets`` contents."""
    _load_secrets.cache_clear()
