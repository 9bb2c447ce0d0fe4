"""Tests for the configuration module."""

from __future__ import annotations

import sys
from collections.abc import Iterator
from pathlib import Path

import pytest

from agentsession.config import (
    Config,
    MissingSecretError,
    StorageType,
    clear_secret_cache,
    fetch_secret,
    get_config,
    load_config,
    require_secret,
    reset_config,
)
from agentsession.config.loader import dict_to_config, env_overrides, load_yaml_file
from agentsession.config.merge import deep_merge, merge_configs
from agentsession.config.paths import (
    get_config_paths,
    get_project_config_path,
    get_system_config_path,
    get_user_config_path,
)

ENV_VARS = (
    "AGENTSESSION_LOG",
    "AGENTSESSION_MODEL",
    "AGENTSESSION_COST_LIMIT",
    "AGENTSESSION_STORAGE_PATH",
)


@pytest.fixture(autouse=True)
def isolated_config(monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> Iterator[None]:
    """Keep host config files and environment out of every test."""
    for name in ENV_VARS:
        monkeypatch.delenv(name, raising=False)
    monkeypatch.setattr(
        "agentsession.config.loader.get_config_paths",
        lambda project_root=None: [tmp_path / "user" / "config.yaml"]
        + ([get_project_config_path(project_root)] if project_root else []),
    )
    reset_config()
    yield
    reset_config()


def write_yaml(path: Path, text: str) -> Path:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(text, encoding="utf-8")
    return path


class TestDeepMerge:
    """Test the deep merge algorithm."""

    def test_nested_merge(self) -> None:
        """Test that nested dicts are recursively merged."""
        base = {"llm": {"model": "gpt-4o", "temperature": 0.5}}
        override = {"llm": {"temperature": 0.0}}
        result = deep_merge(base, override)
        assert result == {"llm": {"model": "gpt-4o", "temperature": 0.0}}

    def test_none_does_not_override(self) -> None:
        """Test that None values in override don't replace base values."""
        assert deep_merge({"a": 1}, {"a": None}) == {"a": 1}

    def test_list_replaced_not_merged(self) -> None:
        """Test that lists are replaced, not concatenated."""
        result = deep_merge({"thresholds": [0.5, 0.75]}, {"thresholds": [0.9]})
        assert result["thresholds"] == [0.9]

    def test_base_not_mutated(self) -> None:
        base = {"session": {"cost_limit": 1.0}}
        deep_merge(base, {"session": {"cost_limit": 2.0}})
        assert base == {"session": {"cost_limit": 1.0}}

    def test_merge_configs_multiple(self) -> None:
        """Test merging multiple configs in order."""
        result = merge_configs({"a": 1, "b": 2}, {}, {"b": 3}, {"c": 4})
        assert result == {"a": 1, "b": 3, "c": 4}


class TestConfigPaths:
    """Test platform-aware path resolution."""

    def test_windows_paths(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setattr(sys, "platform", "win32")
        monkeypatch.setenv("PROGRAMDATA", "C:\\ProgramData")
        monkeypatch.setenv("APPDATA", "C:\\Users\\Test\\AppData\\Roaming")

        assert "ProgramData" in str(get_system_config_path())
        assert "AppData" in str(get_user_config_path())

    def test_windows_without_env(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setattr(sys, "platform", "win32")
        monkeypatch.delenv("PROGRAMDATA", raising=False)
        monkeypatch.delenv("APPDATA", raising=False)

        assert get_system_config_path() is None
        assert get_user_config_path() is None

    def test_unix_system_path(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setattr(sys, "platform", "linux")
        assert get_system_config_path() == Path("/etc/agentsession/config.yaml")

    def test_unix_user_path_xdg(self, monkeypatch: pytest.MonkeyPatch) -> None:
        """Test user config path respects XDG_CONFIG_HOME."""
        monkeypatch.setattr(sys, "platform", "linux")
        monkeypatch.setenv("XDG_CONFIG_HOME", "/home/test/.config-custom")

        assert get_user_config_path() == Path("/home/test/.config-custom/agentsession/config.yaml")

    def test_project_config_path(self) -> None:
        path = get_project_config_path("/home/user/myproject")
        assert path == Path("/home/user/myproject/.agentsession/config.yaml")

    def test_get_config_paths_order(self, monkeypatch: pytest.MonkeyPatch) -> None:
        """Test that config paths run system, user, project."""
        monkeypatch.setattr(sys, "platform", "linux")
        monkeypatch.setenv("XDG_CONFIG_HOME", "/xdg")

        paths = get_config_paths("/proj")

        assert paths == [
            Path("/etc/agentsession/config.yaml"),
            Path("/xdg/agentsession/config.yaml"),
            Path("/proj/.agentsession/config.yaml"),
        ]


class TestLoading:
    """Test YAML loading, cascading and env overrides."""

    def test_defaults(self) -> None:
        config = load_config()

        assert isinstance(config, Config)
        assert config.session.cost_limit is None
        assert config.session.pause_timeout == 300.0
        assert config.session.warning_thresholds == [0.5, 0.75, 0.9]
        assert config.storage.type == StorageType.NONE
        assert config.tools.allowed_commands == ["mkdir", "ls", "pwd", "echo"]

    def test_project_overrides_user(self, tmp_path: Path) -> None:
        write_yaml(
            tmp_path / "user" / "config.yaml",
            "llm:\n  model: gpt-4o\n  max_tokens: 2048\nsession:\n  cost_limit: 1.0\n",
        )
        project = tmp_path / "project"
        write_yaml(
            project / ".agentsession" / "config.yaml",
            "session:\n  cost_limit: 5\n  auto_save: true\n"
            "storage:\n  type: filesystem\n  path: ./store\n"
            "agents:\n  paths: [./agents]\n"
            "custom:\n  flag: true\n",
        )

        config = load_config(project_root=str(project))

        assert config.llm.model == "gpt-4o"
        assert config.llm.max_tokens == 2048
        assert config.session.cost_limit == 5
        assert config.session.auto_save is True
        assert config.storage.type == StorageType.FILESYSTEM
        assert config.storage.path == "./store"
        assert config.agents.paths == ["./agents"]
        assert config.extra == {"custom": {"flag": True}}

    def test_env_overrides_files(self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
        write_yaml(tmp_path / "user" / "config.yaml", "llm:\n  model: gpt-4o\n")
        monkeypatch.setenv("AGENTSESSION_MODEL", "claude-haiku")
        monkeypatch.setenv("AGENTSESSION_COST_LIMIT", "0.5")
        monkeypatch.setenv("AGENTSESSION_STORAGE_PATH", str(tmp_path / "store"))

        config = load_config()

        assert config.llm.model == "claude-haiku"
        assert config.session.cost_limit == 0.5
        assert config.storage.type == StorageType.FILESYSTEM

    def test_non_numeric_env_ignored(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("AGENTSESSION_COST_LIMIT", "lots")
        assert "session" not in env_overrides()

    def test_invalid_yaml_is_skipped(self, tmp_path: Path) -> None:
        path = write_yaml(tmp_path / "bad.yaml", "llm: [unclosed\n")
        assert load_yaml_file(path) == {}
        assert load_yaml_file(tmp_path / "missing.yaml") == {}

    def test_unknown_storage_type_disables_storage(self) -> None:
        config = dict_to_config({"storage": {"type": "s3"}})
        assert config.storage.type == StorageType.NONE

    def test_pause_timeout_can_be_disabled(self) -> None:
        config = dict_to_config({"session": {"pause_timeout": None}})
        assert config.session.pause_timeout is None

    def test_global_config_cached(self, tmp_path: Path) -> None:
        first = get_config()
        assert get_config() is first

        write_yaml(tmp_path / "user" / "config.yaml", "llm:\n  model: changed\n")
        assert get_config().llm.model != "changed"
        assert load_config(reload=True).llm.model == "changed"

        reset_config()
        assert get_config() is not first


class TestSecrets:
    """Test dotenv-backed secret lookup."""

    @pytest.fixture(autouse=True)
    def fresh_cache(self) -> Iterator[None]:
        clear_secret_cache()
        yield
        clear_secret_cache()

    def test_environment_wins(self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
        secrets = write_yaml(tmp_path / ".env.secrets", "MY_KEY=from-file\n")
        monkeypatch.setenv("MY_KEY", "from-env")

        assert fetch_secret("MY_KEY", secrets_path=secrets) == "from-env"

    def test_falls_back_to_file(self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
        secrets = write_yaml(tmp_path / ".env.secrets", "MY_KEY=from-file\n")
        monkeypatch.delenv("MY_KEY", raising=False)

        assert fetch_secret("MY_KEY", secrets_path=secrets) == "from-file"

    def test_default_and_require(self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.delenv("ABSENT_KEY", raising=False)
        missing = tmp_path / "none.env"

        assert fetch_secret("ABSENT_KEY", "fallback", secrets_path=missing) == "fallback"
        with pytest.raises(MissingSecretError):
            require_secret("ABSENT_KEY", secrets_path=missing)
