"""
Headless stand-ins for the host engine.

``HeadlessVM`` has the members Eureka reads from a real host (an event
table, a call forwarder, a locale and a runtime) so extensions can be
loaded and their prepared descriptors examined without one.
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from dataclasses import dataclass, field
from typing import Any

logger = logging.getLogger(__name__)


@dataclass
class HeadlessTarget:
    """A sprite or the stage."""

    id: str
    name: str
    is_stage: bool = False


class HeadlessRuntime:
    """Runtime that records what extensions register.

    Attributes:
        registered: Every descriptor passed to registration, in order.
        refreshed: Every descriptor passed to refresh, in order.
    """

    def __init__(self) -> None:
        self.stage = HeadlessTarget(id="stage", name="Stage", is_stage=True)
        self.editing_target: HeadlessTarget | None = None
        self.renderer = None
        self.registered: list[dict[str, Any]] = []
        self.refreshed: list[dict[str, Any]] = []

    def get_editing_target(self) -> HeadlessTarget | None:
        return self.editing_target

    def get_target_for_stage(self) -> HeadlessTarget:
        return self.stage

    def make_message_context_for_target(self, target: Any) -> None:
        pass

    def _register_extension_primitives(self, info: dict[str, Any]) -> None:
        logger.debug(f"Registering primitives for {info['id']}")
        self.registered.append(info)

    def _refresh_extension_primitives(self, info: dict[str, Any]) -> None:
        self.refreshed.append(info)

    def extension(self, extension_id: str) -> dict[str, Any] | None:
        """Latest descriptor registered or refreshed for ``extension_id``."""
        for info in reversed(self.refreshed + self.registered):
            if info["id"] == extension_id:
                return info
        return None


@dataclass
class HeadlessVM:
    """VM with an event-emitter style listener table.

    A slot in ``_events`` holds either a single listener or a list of them.
    """

    locale: str = "en"
    runtime: HeadlessRuntime = field(default_factory=HeadlessRuntime)
    _events: dict[str, Any] = field(default_factory=dict)

    def on(self, event: str, listener: Callable[..., Any]) -> "HeadlessVM":
        existing = self._events.get(event)
        if existing is None:
            self._events[event] = listener
        elif isinstance(existing, list):
            existing.append(listener)
        else:
            self._events[event] = [existing, listener]
        return self

    def off(self, event: str, listener: Callable[..., Any]) -> "HeadlessVM":
        existing = self._events.get(event)
        if existing is listener:
            del self._events[event]
        elif isinstance(existing, list) and listener in existing:
            existing.remove(listener)
            if not existing:
                del self._events[event]
        return self

    def emit(self, event: str, *args: Any) -> bool:
        listeners = self._events.get(event)
        if listeners is None:
            return False
        for listener in list(listeners) if isinstance(listeners, list) else [listeners]:
            listener(*args)
        return True

    def forward(self, func: Callable[..., Any], this: Any, *args: Any) -> Any:
        return func(this, *args)

    def get_locale(self) -> str:
        return self.locale

    def set_locale(self, locale: str) -> None:
        self.locale = locale
        self.emit("LOCALE_CHANGED", locale)
