"""
Block-editor discovery.

The host's block editor is never exposed, but the GUI registers a listener
on the VM's ``EXTENSION_ADDED`` event whose captured context reaches it.
Host listeners are closures that hand their work to a process-wide call
forwarder (``forward(func, this, *args)``); replacing that forwarder for a
single invocation with one that simply returns ``this`` turns the listener
into a getter for its captured context. The Object Locator then finds the
block-editor owner inside that context.

States:
    UNRESOLVED: No handle yet. Requests share one pending future.
    RESOLVED: Handle cached for the life of the trap (terminal).

If the listener slot does not exist yet, a one-shot interceptor is placed
on it; the first assignment by the host that yields a handle resolves the
pending future and turns the slot back into a plain value.
"""

from __future__ import annotations

import asyncio
import logging
import types
from collections.abc import MutableMapping
from enum import Enum
from typing import TYPE_CHECKING, Any

from eureka.config import Settings, settings as default_settings
from eureka.trap.intercept import SlotInterceptor, swap
from eureka.trap.locator import has_member, locate, member

if TYPE_CHECKING:
    from eureka.extensions.sdk import HostVM

logger = logging.getLogger(__name__)


class TrapState(str, Enum):
    """Lifecycle of a discovery trap."""

    UNRESOLVED = "unresolved"
    RESOLVED = "resolved"


def _return_this(func: Any, this: Any, *args: Any, **kwargs: Any) -> Any:
    return this


class BlockEditorTrap:
    """Locates the host's block-editor instance.

    Attributes:
        vm: The host VM whose event table is inspected.
        forwarder_owner: Object holding the call forwarder (defaults to vm).

    Example:
        trap = BlockEditorTrap(vm)
        blocks = trap.eager()          # None until found
        blocks = await trap.get()      # waits for the host if needed
    """

    def __init__(
        self,
        vm: HostVM,
        settings: Settings | None = None,
        forwarder_owner: Any = None,
    ):
        cfg = settings or default_settings
        self.vm = vm
        self.forwarder_owner = forwarder_owner if forwarder_owner is not None else vm
        self._slot = cfg.events_slot
        self._forwarder_name = cfg.call_forwarder
        self._member = cfg.block_editor_member
        self._cache: Any = None
        self._pending: asyncio.Future[Any] | None = None
        self._interceptor: SlotInterceptor | None = None

    @property
    def state(self) -> TrapState:
        """Current trap state."""
        return TrapState.RESOLVED if self._cache is not None else TrapState.UNRESOLVED

    @property
    def intercepting(self) -> bool:
        """Whether a slot interceptor is currently armed."""
        return self._interceptor is not None and self._interceptor.installed

    def eager(self) -> Any | None:
        """Return the cached handle without waiting."""
        return self._cache

    async def get(self) -> Any:
        """Return the block-editor handle, waiting for the host if needed."""
        if self._cache is not None:
            return self._cache

        found = self.extract()
        if found is not None:
            self._resolve(found)
            return found

        if self._pending is None:
            self._pending = asyncio.get_running_loop().create_future()
            self._arm()

        return await asyncio.shield(self._pending)

    def extract(self) -> Any | None:
        """Try a synchronous extraction from the current listener slot."""
        return self._extract_from(member(self._events(), self._slot))

    def reset(self) -> None:
        """Forget the cached handle and disarm any pending interception."""
        if self._interceptor is not None:
            self._interceptor.detach()
            self._interceptor = None
        if self._pending is not None and not self._pending.done():
            self._pending.cancel()
        self._pending = None
        self._cache = None

    def _events(self) -> Any:
        events = getattr(self.vm, "_events", None)
        if events is None:
            raise TypeError(f"{type(self.vm).__name__} exposes no event table")
        return events

    def _extract_from(self, listeners: Any) -> Any | None:
        if listeners is None:
            return None
        candidates = [listeners] if callable(listeners) else list(listeners)

        for listener in candidates:
            context = self._capture_context(listener)
            if context is None:
                continue
            owner = locate(context, has_member(self._member))
            if owner is not None:
                return member(owner, self._member)
        return None

    def _capture_context(self, listener: Any) -> Any | None:
        bound = getattr(listener, "__self__", None)
        if bound is not None and not isinstance(bound, types.ModuleType):
            return bound

        try:
            with swap(self.forwarder_owner, self._forwarder_name, _return_this):
                try:
                    return listener()
                except Exception as e:
                    logger.debug(f"Listener {listener!r} did not yield a context: {e}")
                    return None
        except AttributeError as e:
            logger.warning(f"Cannot replace {self._forwarder_name} on {type(self.forwarder_owner).__name__}: {e}")
            return None

    def _arm(self) -> None:
        events = self._events()
        if isinstance(events, MutableMapping):
            interceptor = SlotInterceptor(self.vm, self._slot, self._on_slot_set, container="_events")
        else:
            interceptor = SlotInterceptor(events, self._slot, self._on_slot_set)
        self._interceptor = interceptor
        interceptor.install()
        logger.info(f"Block editor not ready, waiting for {self._slot}")

    def _on_slot_set(self, listeners: Any) -> bool:
        found = self._extract_from(listeners)
        if found is None:
            return False
        self._resolve(found)
        self._interceptor = None
        return True

    def _resolve(self, handle: Any) -> None:
        self._cache = handle
        if self._pending is not None and not self._pending.done():
            self._pending.set_result(handle)
        logger.info("Block editor instance located")
