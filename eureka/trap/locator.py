"""
Object location inside opaque host object graphs.

The host never hands out references to its internals, but everything it
holds is reachable from some root we *can* get at (a listener's captured
context, a UI tree node). ``locate`` walks the graph depth-first over each
node's own members and returns the first node satisfying a structural
predicate.

Traversal rules:
    - Mapping values, sequence/set items, instance ``__dict__`` values and
      ``__slots__`` members are followed.
    - Scalars, modules, classes and functions are leaves and never entered.
    - Every node is visited at most once (identity-keyed), so graphs with
      back-edges terminate.
    - A predicate that raises counts as a miss.

Example:
    from eureka.trap.locator import locate, has_member

    blocks_owner = locate(listener_context, has_member("ScratchBlocks"))
"""

from __future__ import annotations

import logging
import types
from collections.abc import Callable, Iterator, Mapping
from typing import Any

logger = logging.getLogger(__name__)

Predicate = Callable[[Any], bool]

# Types that are never traversed nor tested.
LEAF_TYPES: tuple[type, ...] = (
    str,
    bytes,
    bytearray,
    memoryview,
    int,
    float,
    complex,
    bool,
    type(None),
    type,
    range,
    types.ModuleType,
    types.FunctionType,
    types.BuiltinFunctionType,
    types.MethodType,
    types.CodeType,
    types.FrameType,
)


def is_leaf(obj: Any) -> bool:
    """Check whether an object is a leaf for traversal purposes."""
    return isinstance(obj, LEAF_TYPES)


def iter_members(obj: Any) -> Iterator[Any]:
    """Yield the own members of a node, in declaration order.

    Args:
        obj: A non-leaf object.

    Yields:
        Each directly reachable child object.
    """
    if isinstance(obj, Mapping):
        try:
            yield from list(obj.values())
        except Exception as e:
            logger.debug(f"Could not enumerate mapping {type(obj).__name__}: {e}")
        return

    if isinstance(obj, (list, tuple, set, frozenset)):
        yield from list(obj)
        return

    try:
        attrs = object.__getattribute__(obj, "__dict__")
    except (AttributeError, TypeError):
        attrs = None
    if isinstance(attrs, Mapping):
        yield from list(attrs.values())

    for klass in type(obj).__mro__:
        for slot in klass.__dict__.get("__slots__", ()):
            if slot in ("__dict__", "__weakref__"):
                continue
            try:
                yield object.__getattribute__(obj, slot)
            except AttributeError:
                continue


def _matches(predicate: Predicate, candidate: Any) -> bool:
    try:
        return bool(predicate(candidate))
    except Exception as e:
        logger.debug(f"Predicate failed on {type(candidate).__name__}: {e}")
        return False


def locate(root: Any, predicate: Predicate) -> Any | None:
    """Find the first object reachable from ``root`` satisfying ``predicate``.

    The search is a pre-order depth-first traversal, so the root itself is
    tested first and siblings are explored in declaration order.

    Args:
        root: Where to start the search.
        predicate: Structural test applied to each non-leaf node.

    Returns:
        The first matching object, or None if nothing matches.
    """
    if is_leaf(root):
        return None

    # Keep visited objects alive for the duration so id() stays unique.
    visited: dict[int, Any] = {}
    stack: list[Any] = [root]

    while stack:
        node = stack.pop()
        if id(node) in visited:
            continue
        visited[id(node)] = node

        if _matches(predicate, node):
            return node

        children = [child for child in iter_members(node) if not is_leaf(child)]
        stack.extend(reversed(children))

    return None


def member(obj: Any, name: str, default: Any = None) -> Any:
    """Read ``name`` from an object as a mapping key or an attribute."""
    if isinstance(obj, Mapping):
        return obj.get(name, default)
    return getattr(obj, name, default)


def has_own_member(obj: Any, name: str) -> bool:
    """Check for ``name`` as a mapping key or an instance attribute."""
    if isinstance(obj, Mapping):
        return name in obj
    try:
        attrs = object.__getattribute__(obj, "__dict__")
    except (AttributeError, TypeError):
        return hasattr(obj, name)
    return name in attrs or hasattr(obj, name)


def has_member(name: str) -> Predicate:
    """Build a predicate matching objects that expose ``name``.

    Args:
        name: Member name to look for (mapping key or attribute).

    Returns:
        A predicate usable with ``locate``.
    """

    def predicate(candidate: Any) -> bool:
        return has_own_member(candidate, name)

    predicate.__name__ = f"has_member_{name}"
    return predicate
