"""
Runtime discovery of host internals.

The host exposes neither its block editor nor its state store. The traps
in this package find them anyway:

- ``locate``: depth-first search of an object graph by predicate
- ``BlockEditorTrap``: captures the block editor from an event listener
- ``StoreTrap``: captures the state store through its composer hook
- ``find_store_in_tree``: best-effort store lookup in the mounted UI
"""

from eureka.trap.blocks import BlockEditorTrap, TrapState
from eureka.trap.intercept import MISSING, Accessor, SlotInterceptor, swap
from eureka.trap.locator import has_member, locate, member
from eureka.trap.store import (
    EventTarget,
    MiddlewareAPI,
    StoreChange,
    StoreTrap,
    TrappedStore,
    apply_middleware,
    compose,
    find_store_in_tree,
    is_store_shaped,
)

__all__ = [
    "MISSING",
    "Accessor",
    "BlockEditorTrap",
    "EventTarget",
    "MiddlewareAPI",
    "SlotInterceptor",
    "StoreChange",
    "StoreTrap",
    "TrapState",
    "TrappedStore",
    "apply_middleware",
    "compose",
    "find_store_in_tree",
    "has_member",
    "is_store_shaped",
    "locate",
    "member",
    "swap",
]
