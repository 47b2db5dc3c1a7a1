"""One-shot interception primitives for host-owned slots.

Three shapes of interception are needed by the traps:

``swap``
    Temporarily replace a named slot (attribute or mapping key) and put the
    original back when the ``with`` block exits, whatever happens inside.

``Accessor``
    Put a property on a single live instance (or module) so that reads and
    writes of one attribute go through our callbacks.

``SlotInterceptor``
    Observe the *next* assignments to a slot that does not exist yet. The
    callback decides whether the interception is done; once it returns
    True the slot is turned back into a plain writable value holding the
    last assigned value and the interceptor detaches itself.

Preconditions:
    - Attribute slots live on instances of heap classes or on modules
      (``__class__`` assignment is used to install a property).
    - Mapping slots are reached through an attribute of their owner; the
      host must look the mapping up through that attribute.

Postconditions:
    - After ``detach()``/``uninstall()``, the owner's class (or mapping
      object) is the one it had before installation.
"""

from __future__ import annotations

import logging
import types
from collections.abc import Callable, Iterator, MutableMapping
from contextlib import contextmanager
from typing import Any

logger = logging.getLogger(__name__)


class _Missing:
    def __repr__(self) -> str:
        return "MISSING"


MISSING: Any = _Missing()

SetCallback = Callable[[Any], bool]


@contextmanager
def swap(owner: Any, name: str, replacement: Any) -> Iterator[Any]:
    """Temporarily replace ``owner.name`` (or ``owner[name]``).

    Args:
        owner: Object or mutable mapping holding the slot.
        name: Attribute name or mapping key.
        replacement: Value to expose while the block runs.

    Yields:
        The original value, or None if the slot did not exist.

    Raises:
        AttributeError: If the owner refuses the assignment (for example a
            method on a class with ``__slots__``). Nothing is changed then.
    """
    if isinstance(owner, MutableMapping):
        original = owner.get(name, MISSING)
        owner[name] = replacement
        try:
            yield None if original is MISSING else original
        finally:
            if original is MISSING:
                owner.pop(name, None)
            else:
                owner[name] = original
        return

    original = getattr(owner, name, MISSING)
    # Inherited slots are restored by deleting the instance override.
    own = name in getattr(owner, "__dict__", {}) or isinstance(
        getattr(type(owner), name, None), types.MemberDescriptorType
    )
    setattr(owner, name, replacement)
    try:
        yield None if original is MISSING else original
    finally:
        if own and original is not MISSING:
            setattr(owner, name, original)
        else:
            try:
                delattr(owner, name)
            except AttributeError:
                pass


class Accessor:
    """A property installed on a single instance.

    The owner's class is swapped for a one-off subclass carrying the
    property, so other instances of the same class are unaffected. Any
    value already stored on the instance under ``name`` is moved out of the
    way and handed back by ``install()``.

    Attributes:
        owner: The instance (or module) receiving the property.
        name: The attribute name.
    """

    def __init__(
        self,
        owner: Any,
        name: str,
        fget: Callable[[], Any],
        fset: Callable[[Any], None] | None = None,
    ):
        self.owner = owner
        self.name = name
        self._fget = fget
        self._fset = fset
        self._original_class: type | None = None

    @property
    def installed(self) -> bool:
        return self._original_class is not None

    def install(self) -> Any:
        """Install the property.

        Returns:
            The value previously stored on the instance, or ``MISSING``.

        Raises:
            TypeError: If the owner's class cannot be swapped.
        """
        if self.installed:
            return MISSING
        owner = self.owner
        original_class = type(owner)
        attrs = getattr(owner, "__dict__", None)
        previous = attrs.pop(self.name, MISSING) if attrs is not None else MISSING
        accessor = self

        def fget(_obj: Any) -> Any:
            return accessor._fget()

        def fset(_obj: Any, value: Any) -> None:
            if accessor._fset is None:
                raise AttributeError(f"{accessor.name} is read-only")
            accessor._fset(value)

        trapped = type(
            original_class.__name__,
            (original_class,),
            {
                self.name: property(fget, fset),
                "__module__": original_class.__module__,
                "__qualname__": original_class.__qualname__,
            },
        )
        try:
            owner.__class__ = trapped
        except TypeError:
            if previous is not MISSING:
                attrs[self.name] = previous
            raise
        self._original_class = original_class
        return previous

    def uninstall(self, value: Any = MISSING) -> None:
        """Remove the property, leaving ``value`` as a plain attribute."""
        if not self.installed:
            return
        self.owner.__class__ = self._original_class
        self._original_class = None
        if value is not MISSING:
            setattr(self.owner, self.name, value)


class SlotInterceptor:
    """Intercept assignments to a single slot until a callback is satisfied.

    Attributes:
        owner: The object whose slot is observed.
        name: The attribute name, or the mapping key when ``container`` is set.
        container: Attribute of ``owner`` holding the mapping, if the slot
            is a mapping key.

    Example:
        def on_set(value):
            return try_extract(value) is not None

        interceptor = SlotInterceptor(vm, "EXTENSION_ADDED", on_set, container="_events")
        interceptor.install()
    """

    def __init__(
        self,
        owner: Any,
        name: str,
        on_set: SetCallback,
        container: str | None = None,
    ):
        self.owner = owner
        self.name = name
        self.container = container
        self._on_set = on_set
        self._installed = False
        self._accessor: Accessor | None = None
        self._original_mapping: MutableMapping[str, Any] | None = None
        self._value: Any = MISSING

    @property
    def installed(self) -> bool:
        """Whether the interceptor is currently armed."""
        return self._installed

    def install(self) -> None:
        """Arm the interceptor. Installing twice is a no-op."""
        if self._installed:
            return
        if self.container is not None:
            original = getattr(self.owner, self.container)
            self._original_mapping = original
            setattr(self.owner, self.container, _TrappedMapping(original, self.name, self._fire))
        else:
            self._accessor = Accessor(self.owner, self.name, self._get, self._fire)
            self._value = self._accessor.install()
        self._installed = True
        logger.debug(f"Intercepting slot {self._describe()}")

    def detach(self) -> None:
        """Restore the slot to a plain value and disarm."""
        if not self._installed:
            return
        self._installed = False
        if self.container is not None:
            trapped = getattr(self.owner, self.container)
            original = self._original_mapping
            if isinstance(trapped, _TrappedMapping) and original is not None:
                original.clear()
                original.update(dict(trapped))
                setattr(self.owner, self.container, original)
            self._original_mapping = None
        elif self._accessor is not None:
            self._accessor.uninstall(self._value)
            self._accessor = None
        logger.debug(f"Released slot {self._describe()}")

    def _get(self) -> Any:
        if self._value is MISSING:
            raise AttributeError(self.name)
        return self._value

    def _fire(self, value: Any) -> None:
        self._value = value
        try:
            done = self._on_set(value)
        except Exception as e:
            logger.warning(f"Slot callback for {self._describe()} failed: {e}")
            done = False
        if done:
            self.detach()

    def _describe(self) -> str:
        if self.container is not None:
            return f"{type(self.owner).__name__}.{self.container}[{self.name!r}]"
        return f"{type(self.owner).__name__}.{self.name}"


class _TrappedMapping(dict):
    """Dict copy that reports assignments to one key."""

    def __init__(self, source: MutableMapping[str, Any], key: str, fire: Callable[[Any], None]):
        super().__init__(source)
        self._key = key
        self._fire = fire

    def __setitem__(self, key: str, value: Any) -> None:
        super().__setitem__(key, value)
        if key == self._key:
            self._fire(value)

    def setdefault(self, key: str, default: Any = None) -> Any:
        if key not in self:
            self[key] = default
        return self[key]

    def update(self, *args: Any, **kwargs: Any) -> None:
        for key, value in dict(*args, **kwargs).items():
            self[key] = value
