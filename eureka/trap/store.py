"""
Global state-store discovery.

The host builds its store with a composer it reads from a well-known global
(the devtools enhancer-composition hook). Putting an accessor on that
global lets us hand the host a composer of our own, which splices in one
extra middleware before delegating to whatever composer would otherwise
have been used. That middleware captures ``dispatch``/``get_state`` and
re-publishes every state transition as a ``StoreChange`` event.

Two other paths exist:
    - A third-party tool may already have captured the store; its handle is
      adopted as-is (with a warning) and no interception happens.
    - ``find_store_in_tree`` searches mounted UI nodes for a framework root
      and runs the Object Locator over it. It is synchronous and best
      effort: ``None`` means "not available now", never an error.

Example:
    trap = StoreTrap(window)
    trap.install()
    ...
    store = await trap.get()
    store.add_listener(lambda change: print(change.action))
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable, Iterable, Mapping, Sequence
from dataclasses import dataclass
from typing import Any

from eureka.config import Settings, settings as default_settings
from eureka.trap.intercept import MISSING, Accessor
from eureka.trap.locator import locate, member

logger = logging.getLogger(__name__)

Action = Any
Dispatch = Callable[[Action], Any]
Middleware = Callable[["MiddlewareAPI"], Callable[[Dispatch], Dispatch]]
StoreListener = Callable[["StoreChange"], None]


# ---------------------------------------------------------------------------
# Minimal store plumbing
# ---------------------------------------------------------------------------

def compose(*funcs: Callable[[Any], Any]) -> Callable[[Any], Any]:
    """Compose single-argument functions right to left.

    ``compose(f, g)(x) == f(g(x)); compose()`` is the identity.
    """
    if not funcs:
        return lambda arg: arg

    def composed(arg: Any) -> Any:
        result = arg
        for fn in reversed(funcs):
            result = fn(result)
        return result

    return composed


@dataclass
class MiddlewareAPI:
    """What a middleware gets to see of the store."""

    get_state: Callable[[], Any]
    dispatch: Dispatch


class EnhancedStore:
    """A store whose ``dispatch`` runs through a middleware chain.

    Every other member is read from the wrapped store.
    """

    def __init__(self, store: Any, dispatch: Dispatch):
        self._store = store
        self.dispatch = dispatch

    def __getattr__(self, name: str) -> Any:
        return getattr(self._store, name)


def apply_middleware(*middlewares: Middleware) -> Callable[[Callable[..., Any]], Callable[..., Any]]:
    """Build a store enhancer that routes dispatch through ``middlewares``."""

    def enhancer(create_store: Callable[..., Any]) -> Callable[..., Any]:
        def create(*args: Any, **kwargs: Any) -> EnhancedStore:
            store = create_store(*args, **kwargs)
            dispatch: Dispatch = store.dispatch

            def late_dispatch(action: Action) -> Any:
                return dispatch(action)

            api = MiddlewareAPI(get_state=store.get_state, dispatch=late_dispatch)
            chain = [mw(api) for mw in middlewares]
            dispatch = compose(*chain)(store.dispatch)
            return EnhancedStore(store, dispatch)

        return create

    return enhancer


# ---------------------------------------------------------------------------
# Trapped store handle
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class StoreChange:
    """One state transition.

    Attributes:
        prev: State before the dispatch.
        next: State after the dispatch.
        action: The dispatched action.
    """

    prev: Any
    next: Any
    action: Action


class EventTarget:
    """Synchronous listener list for store changes."""

    def __init__(self) -> None:
        self._listeners: list[StoreListener] = []

    def add_listener(self, listener: StoreListener) -> None:
        if listener not in self._listeners:
            self._listeners.append(listener)

    def remove_listener(self, listener: StoreListener) -> None:
        if listener in self._listeners:
            self._listeners.remove(listener)

    def emit(self, change: StoreChange) -> None:
        for listener in list(self._listeners):
            try:
                listener(change)
            except Exception as e:
                logger.error(f"Store listener error: {e}")

    def __len__(self) -> int:
        return len(self._listeners)


class TrappedStore:
    """Live handle on the host store.

    Attributes:
        target: Where ``StoreChange`` events are published.
        state: Most recent state snapshot.
        attached: Whether the middleware has been wired into a store yet.
    """

    def __init__(self) -> None:
        self.target = EventTarget()
        self.state: Any = {}
        self.attached = False
        self._dispatch: Dispatch | None = None

    def dispatch(self, action: Action) -> Any:
        """Dispatch an action on the host store."""
        if self._dispatch is None:
            logger.warning(f"Store not attached yet, dropping action {action!r}")
            return None
        return self._dispatch(action)

    def add_listener(self, listener: StoreListener) -> None:
        self.target.add_listener(listener)

    def remove_listener(self, listener: StoreListener) -> None:
        self.target.remove_listener(listener)

    def middleware(self, api: MiddlewareAPI) -> Callable[[Dispatch], Dispatch]:
        """Middleware that records state and publishes every transition."""
        self._dispatch = api.dispatch
        self.state = api.get_state()
        self.attached = True

        def wrap(next_dispatch: Dispatch) -> Dispatch:
            def dispatch(action: Action) -> Any:
                result = next_dispatch(action)
                prev = self.state
                self.state = api.get_state()
                self.target.emit(StoreChange(prev=prev, next=self.state, action=action))
                return result

            return dispatch

        return wrap

    def __repr__(self) -> str:
        return f"<TrappedStore attached={self.attached} listeners={len(self.target)}>"


# ---------------------------------------------------------------------------
# Trap
# ---------------------------------------------------------------------------

class StoreTrap:
    """Captures the host's global store through its composer hook.

    Attributes:
        namespace: The host global namespace (module or object).
        store: The trapped handle once resolved (or the adopted third-party
            handle).
    """

    def __init__(self, namespace: Any, settings: Settings | None = None):
        cfg = settings or default_settings
        self.namespace = namespace
        self.store: Any = None
        self._compose_global = cfg.compose_global
        self._captured_global = cfg.captured_store_global
        self._handle = TrappedStore()
        self._newer_compose: Any = None
        self._accessor: Accessor | None = None
        self._ready: asyncio.Future[Any] | None = None
        self._installed = False

    @property
    def installed(self) -> bool:
        return self._installed

    @property
    def resolved(self) -> bool:
        return self.store is not None

    def install(self) -> None:
        """Start intercepting the composer global. Idempotent."""
        if self._installed:
            return
        self._installed = True

        captured = getattr(self.namespace, self._captured_global, None)
        if captured is not None:
            logger.warning("Another tool has already captured the store, adopting it")
            self._resolve(captured)
            return

        self._accessor = Accessor(
            self.namespace,
            self._compose_global,
            fget=lambda: self.compose,
            fset=self._set_newer_compose,
        )
        previous = self._accessor.install()
        if previous is not MISSING:
            self._newer_compose = previous
        logger.debug(f"Intercepting {self._compose_global}")

    def uninstall(self) -> None:
        """Stop intercepting and put the last known composer back."""
        if self._accessor is not None:
            restored = self._newer_compose if self._newer_compose is not None else MISSING
            self._accessor.uninstall(restored)
            self._accessor = None
        self._installed = False

    async def get(self) -> Any:
        """Wait until the host creates its store, then return the handle."""
        if self.store is not None:
            return self.store
        self.install()
        if self.store is not None:
            return self.store
        if self._ready is None:
            self._ready = asyncio.get_running_loop().create_future()
        return await asyncio.shield(self._ready)

    def compose(self, *args: Any) -> Any:
        """Composer handed to the host in place of the devtools hook."""
        self._resolve(self._handle)

        enhancers = list(args)
        enhancers.insert(1, apply_middleware(self._handle.middleware))
        if self._newer_compose is not None:
            return self._newer_compose(*enhancers)
        return compose(*enhancers)

    def _set_newer_compose(self, value: Any) -> None:
        self._newer_compose = value

    def _resolve(self, store: Any) -> None:
        if self.store is not None:
            return
        self.store = store
        if self._ready is not None and not self._ready.done():
            self._ready.set_result(store)
        logger.info("State store trapped")


# ---------------------------------------------------------------------------
# Fallback: search the mounted UI tree
# ---------------------------------------------------------------------------

def is_store_shaped(candidate: Any, markers: Sequence[str] = ("scratchGui", "scratchPaint", "locales")) -> bool:
    """Check whether ``candidate`` is the host's global store.

    The state snapshot must carry the GUI view-model (with its ``vm``) and
    every other marker sub-state.
    """
    get_state = member(candidate, "get_state")
    if not callable(get_state):
        return False
    state = get_state()
    if state is None or not markers:
        return False
    gui = member(state, markers[0])
    if gui is None or member(gui, "vm") is None:
        return False
    return all(member(state, name) is not None for name in markers[1:])


def _fiber_roots(nodes: Iterable[Any], marker: str) -> list[Any]:
    roots = []
    for node in nodes:
        if isinstance(node, Mapping):
            names = list(node.keys())
        else:
            names = list(getattr(node, "__dict__", {}).keys())
        keys = [name for name in names if isinstance(name, str) and marker in name]
        if not keys:
            continue
        root = member(node, keys[-1])
        if root is not None:
            roots.append(root)
    return roots


def find_store_in_tree(
    nodes: Iterable[Any],
    settings: Settings | None = None,
) -> Any | None:
    """Search mounted UI nodes for the host store.

    Args:
        nodes: Every element of the host UI tree.
        settings: Supplies the fiber-root marker and state markers.

    Returns:
        The store, or None if the UI is not mounted yet or its internals
        have changed.
    """
    cfg = settings or default_settings
    markers = tuple(cfg.store_markers)

    for root in _fiber_roots(nodes, cfg.fiber_root_marker):
        store = locate(root, lambda candidate: is_store_shaped(candidate, markers))
        if store is not None:
            return store

    logger.debug("No store found in UI tree")
    return None
