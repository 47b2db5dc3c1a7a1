"""
Extension registry for Eureka.

The registry is the authoritative record of which extensions are loaded.
Entries are keyed by load origin (the URL, or the data URL wrapping inline
code), not by extension id: loading the same origin again replaces its
entry, and two origins may each declare their own id.

Registry Features:
    - Registration: normalize, forward to the host engine, record
    - Refresh: re-derive every descriptor from its live extension
    - Lookup by origin or by declared id
    - Registry event notifications

Example:
    from eureka.extensions.registry import ExtensionRegistry

    registry = ExtensionRegistry(vm.runtime, normalizer)
    loaded = registry.register("https://example.com/ext.py", extension)

    # Extension changed its blocks at runtime
    registry.refresh()
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any

from eureka.errors import ExtensionValidationError
from eureka.extensions.normalizer import MetadataNormalizer
from eureka.extensions.sdk import HostRuntime, LoadedExtensionInfo, ScratchExtension

logger = logging.getLogger(__name__)


@dataclass
class RegistryEvent:
    """An event from the extension registry.

    Attributes:
        event_type: "extension_registered" or "extension_refreshed".
        origin: Origin of the affected extension.
        extension_id: Declared id of the affected extension.
        timestamp: When the event occurred.
    """

    event_type: str
    origin: str
    extension_id: str
    timestamp: datetime = field(default_factory=lambda: datetime.now(timezone.utc))


EventListener = Callable[[RegistryEvent], None]


class ExtensionRegistry:
    """Origin-keyed record of loaded extensions.

    Attributes:
        runtime: Host runtime receiving prepared descriptors.
        normalizer: Prepares raw descriptors.
        declared_ids: Every id registered in this process, in order.
        id_to_origin: Latest origin for each declared id.
    """

    def __init__(self, runtime: HostRuntime, normalizer: MetadataNormalizer | None = None):
        self.runtime = runtime
        self.normalizer = normalizer or MetadataNormalizer(runtime)
        self.declared_ids: list[str] = []
        self.id_to_origin: dict[str, str] = {}
        self._extensions: dict[str, LoadedExtensionInfo] = {}
        self._normalizers: dict[str, MetadataNormalizer] = {}
        self._event_listeners: list[EventListener] = []

    def register(
        self,
        origin: str,
        extension: ScratchExtension,
        normalizer: MetadataNormalizer | None = None,
    ) -> LoadedExtensionInfo:
        """Prepare, forward and record an extension.

        Args:
            origin: Where the extension was loaded from.
            extension: The live extension object.
            normalizer: Per-context normalizer (defaults to the registry's).

        Returns:
            The recorded entry.

        Raises:
            ExtensionValidationError: If the descriptor is invalid. Nothing
                is forwarded or recorded in that case.
        """
        if not isinstance(extension, ScratchExtension):
            raise ExtensionValidationError(f"{type(extension).__name__} has no get_info()")
        normalizer = normalizer or self.normalizer
        info = normalizer.prepare(extension, extension.get_info())
        self.runtime._register_extension_primitives(info)

        self._forget_stale_id(origin, info["id"])
        loaded = LoadedExtensionInfo(extension=extension, info=info, origin=origin)
        self._extensions[origin] = loaded
        self._normalizers[origin] = normalizer
        self.declared_ids.append(info["id"])
        self.id_to_origin[info["id"]] = origin

        self._emit_event(RegistryEvent(
            event_type="extension_registered",
            origin=origin,
            extension_id=info["id"],
        ))
        logger.info(f"Registered extension: {info['id']} ({info['name']})")
        return loaded

    def refresh(self) -> int:
        """Re-derive and re-forward every loaded extension's descriptor.

        Extensions whose metadata can no longer be prepared keep their
        previous descriptor.

        Returns:
            Number of extensions refreshed.
        """
        refreshed = 0
        for origin, loaded in list(self._extensions.items()):
            try:
                normalizer = self._normalizers.get(origin, self.normalizer)
                info = normalizer.prepare(loaded.extension, loaded.extension.get_info())
                self.runtime._refresh_extension_primitives(info)
            except Exception as e:
                logger.error(f"Failed to refresh extension {loaded.id}: {e}")
                continue

            self._forget_stale_id(origin, info["id"])
            self.id_to_origin[info["id"]] = origin
            self._extensions[origin] = LoadedExtensionInfo(
                extension=loaded.extension,
                info=info,
                origin=origin,
                loaded_at=loaded.loaded_at,
            )
            self._emit_event(RegistryEvent(
                event_type="extension_refreshed",
                origin=origin,
                extension_id=info["id"],
            ))
            refreshed += 1

        logger.debug(f"Refreshed {refreshed} extensions")
        return refreshed

    def _forget_stale_id(self, origin: str, new_id: str) -> None:
        previous = self._extensions.get(origin)
        if previous is None or previous.id == new_id:
            return
        if self.id_to_origin.get(previous.id) == origin:
            del self.id_to_origin[previous.id]

    def has(self, origin: str) -> bool:
        return origin in self._extensions

    def get(self, origin: str) -> LoadedExtensionInfo | None:
        """Get a loaded extension by origin."""
        return self._extensions.get(origin)

    def get_by_id(self, extension_id: str) -> LoadedExtensionInfo | None:
        """Get a loaded extension by its declared id."""
        origin = self.id_to_origin.get(extension_id)
        if origin is None:
            return None
        return self._extensions.get(origin)

    def origins(self) -> list[str]:
        return list(self._extensions)

    def get_all(self) -> list[LoadedExtensionInfo]:
        return list(self._extensions.values())

    def list_extensions(self) -> list[dict[str, Any]]:
        """Summaries for display by the dashboard."""
        return [loaded.to_dict() for loaded in self._extensions.values()]

    def add_event_listener(self, listener: EventListener) -> None:
        """Add an event listener.

        Args:
            listener: Callback for registry events.
        """
        self._event_listeners.append(listener)

    def remove_event_listener(self, listener: EventListener) -> None:
        if listener in self._event_listeners:
            self._event_listeners.remove(listener)

    def _emit_event(self, event: RegistryEvent) -> None:
        for listener in self._event_listeners:
            try:
                listener(event)
            except Exception as e:
                logger.error(f"Event listener error: {e}")

    def __len__(self) -> int:
        return len(self._extensions)

    def __contains__(self, origin: object) -> bool:
        return origin in self._extensions

    def __repr__(self) -> str:
        return f"<ExtensionRegistry extensions={len(self._extensions)} declared={len(self.declared_ids)}>"
