"""Per-instance publish/subscribe registry for lifecycle notifications."""

from __future__ import annotations

import asyncio
import inspect
from collections.abc import Callable
from typing import Any

from agentsession.logging import get_logger

log = get_logger("events")

Handler = Callable[..., Any]


class EventEmitter:
    """Named-event registry.

    Handlers may be plain callables or coroutine functions. Coroutines are
    scheduled as tasks on the running loop; a handler that raises is logged
    and does not affect the emitter or other handlers.
    """

    def __init__(self) -> None:
        self._handlers: dict[str, list[Handler]] = {}
        self._once: set[tuple[str, int]] = set()
        self._tasks: set[asyncio.Task[Any]] = set()

    def on(self, event: str, handler: Handler) -> Callable[[], None]:
        """Subscribe ``handler`` to ``event``. Returns an unsubscribe function."""
        self._handlers.setdefault(event, []).append(handler)

        def unsubscribe() -> None:
            self.off(event, handler)

        return unsubscribe

    def once(self, event: str, handler: Handler) -> Callable[[], None]:
        """Subscribe for a single delivery."""
        unsubscribe = self.on(event, handler)
        self._once.add((event, id(handler)))
        return unsubscribe

    def off(self, event: str, handler: Handler) -> None:
        handlers = self._handlers.get(event)
        if handlers and handler in handlers:
            handlers.remove(handler)
        self._once.discard((event, id(handler)))

    def listener_count(self, event: str) -> int:
        return len(self._handlers.get(event, []))

    def remove_all_listeners(self, event: str | None = None) -> None:
        if event is None:
            self._handlers.clear()
            self._once.clear()
        else:
            self._handlers.pop(event, None)
            self._once = {key for key in self._once if key[0] != event}

    def emit(self, event: str, *args: Any) -> bool:
        """Deliver ``args`` to every handler. Returns True if any were called."""
        handlers = list(self._handlers.get(event, []))
        for handler in handlers:
            if (event, id(handler)) in self._once:
                self.off(event, handler)
            try:
                result = handler(*args)
            except Exception:
                log.warning("Handler for %r raised", event, exc_info=True)
                continue
            if inspect.isawaitable(result):
                self._schedule(event, result)
        return bool(handlers)

    def _schedule(self, event: str, awaitable: Any) -> None:
        task = asyncio.ensure_future(awaitable)
        self._tasks.add(task)

        def _done(t: asyncio.Task[Any]) -> None:
            self._tasks.discard(t)
            if not t.cancelled() and t.exception() is not None:
                log.warning("Async handler for %r raised: %s", event, t.exception())

        task.add_done_callback(_done)

    async def drain(self) -> None:
        """Wait for scheduled async handlers to finish."""
        while self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)
