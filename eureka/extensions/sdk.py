"""
Extension SDK for Eureka.

This module defines the vocabulary shared by extensions, the loader and the
host engine: the block/argument/target/reporter-scope enumerations, the
narrow host interfaces the loader relies on, and the record kept for every
loaded extension.

Host interfaces use Python's Protocol for structural subtyping. Only the
members Eureka actually reads or writes are declared, so any host version
whose objects carry them can be adapted.

Example - a minimal extension:
    class Greeter:
        def get_info(self):
            return {
                "id": "greeter",
                "name": "Greeter",
                "blocks": [
                    {"opcode": "hello", "blockType": Scratch.BlockType.REPORTER,
                     "text": "hello [NAME]",
                     "arguments": {"NAME": {"type": Scratch.ArgumentType.STRING}}},
                ],
            }

        def hello(self, args, util=None, block_info=None):
            return f"Hello, {args['NAME']}!"

    Scratch.extensions.register(Greeter())
"""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Protocol, runtime_checkable

SEPARATOR = "---"

# Button ``func`` values the host handles itself.
PREDEFINED_CALLBACK_KEYS = (
    "MAKE_A_LIST",
    "MAKE_A_PROCEDURE",
    "MAKE_A_VARIABLE",
    "CREATE_LIST",
    "CREATE_PROCEDURE",
    "CREATE_VARIABLE",
)


class ArgumentType(str, Enum):
    """Block argument types understood by the host."""

    ANGLE = "angle"
    BOOLEAN = "Boolean"
    COLOR = "color"
    NUMBER = "number"
    STRING = "string"
    MATRIX = "matrix"
    NOTE = "note"
    IMAGE = "image"
    COSTUME = "costume"
    SOUND = "sound"


class BlockType(str, Enum):
    """Block shapes understood by the host."""

    BOOLEAN = "Boolean"
    BUTTON = "button"
    LABEL = "label"
    COMMAND = "command"
    CONDITIONAL = "conditional"
    EVENT = "event"
    HAT = "hat"
    LOOP = "loop"
    REPORTER = "reporter"
    XML = "xml"


class TargetType(str, Enum):
    """Kinds of targets an extension's blocks apply to."""

    SPRITE = "sprite"
    STAGE = "stage"


class ReporterScope(str, Enum):
    """Whether a reporter is shared or per-target."""

    GLOBAL = "global"
    TARGET = "target"


# ---------------------------------------------------------------------------
# Host interfaces
# ---------------------------------------------------------------------------

@runtime_checkable
class HostRuntime(Protocol):
    """The host engine's runtime, as seen by the loader."""

    def get_editing_target(self) -> Any | None:
        ...

    def get_target_for_stage(self) -> Any | None:
        ...

    def make_message_context_for_target(self, target: Any) -> None:
        ...

    def _register_extension_primitives(self, info: dict[str, Any]) -> None:
        ...

    def _refresh_extension_primitives(self, info: dict[str, Any]) -> None:
        ...


@runtime_checkable
class HostVM(Protocol):
    """The host VM: runtime, locale and event subscription."""

    runtime: Any
    _events: Any

    def get_locale(self) -> str:
        ...

    def on(self, event: str, listener: Callable[..., Any]) -> Any:
        ...


@runtime_checkable
class HostPlatform(Protocol):
    """Page-level primitives: location, new windows and navigation."""

    location: str | None

    def open_window(self, url: str, target: str, features: str) -> Any:
        ...

    def navigate(self, url: str) -> None:
        ...


@runtime_checkable
class StoreLike(Protocol):
    """The host's global state store."""

    def get_state(self) -> Any:
        ...

    def dispatch(self, action: Any) -> Any:
        ...


@runtime_checkable
class ScratchExtension(Protocol):
    """What ``register`` expects from an extension object."""

    def get_info(self) -> dict[str, Any]:
        ...


# ---------------------------------------------------------------------------
# Member resolution
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class Missing:
    """Result of looking up a function an extension does not (yet) have."""

    name: str

    def __bool__(self) -> bool:
        return False


def resolve_function(extension: Any, name: str) -> Callable[..., Any] | Missing:
    """Look up ``name`` on an extension object at call time.

    Returns:
        The callable, or ``Missing(name)`` when absent or not callable.
    """
    value = getattr(extension, name, None)
    if callable(value):
        return value
    return Missing(name)


# ---------------------------------------------------------------------------
# Loaded extension record
# ---------------------------------------------------------------------------

@dataclass
class LoadedExtensionInfo:
    """A registered extension and its prepared descriptor.

    Attributes:
        extension: The live extension object.
        info: The prepared descriptor forwarded to the host.
        origin: URL or data URL the extension came from.
        loaded_at: When the extension registered.
    """

    extension: Any
    info: dict[str, Any]
    origin: str
    loaded_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    @property
    def id(self) -> str:
        return self.info["id"]

    @property
    def name(self) -> str:
        return self.info.get("name", self.info["id"])

    def to_dict(self) -> dict[str, Any]:
        """Summary used by the dashboard collaborator."""
        blocks = [b for b in self.info.get("blocks", []) if b != SEPARATOR]
        return {
            "id": self.id,
            "name": self.name,
            "origin": self.origin if not self.origin.startswith("data:") else "data:",
            "blocks": len(blocks),
            "menus": sorted(self.info.get("menus", {})),
            "loaded_at": self.loaded_at.isoformat(),
        }
