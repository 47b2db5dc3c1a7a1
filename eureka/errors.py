"""Error taxonomy for Eureka.

Failures that abort a registration or a load are raised as exceptions.
Degraded paths (a block function that does not exist yet, a store that
cannot be found in the UI tree) are logged and reported as ``None``
instead, so that they never surface as errors across host callbacks.
"""

from __future__ import annotations


class EurekaError(Exception):
    """Base class for all Eureka errors."""


class ExtensionValidationError(EurekaError, ValueError):
    """Raised when extension metadata cannot be normalized.

    An invalid extension id aborts the whole registration. A block with
    a missing opcode only aborts that block entry.
    """


class EmptyMenuError(EurekaError):
    """Raised when a dynamic menu producer returns no items.

    Attributes:
        producer: Name of the extension function that produced the menu.
    """

    def __init__(self, producer: str):
        self.producer = producer
        super().__init__(f"Extension menu returned no items: {producer}")


class PermissionDenied(EurekaError, PermissionError):
    """Raised to the calling extension when a capability check fails.

    Attributes:
        capability: The capability that was checked (e.g. "open_window").
        target: The URL or resource the extension asked for, if any.
    """

    def __init__(self, capability: str, target: str | None = None, message: str | None = None):
        self.capability = capability
        self.target = target
        super().__init__(message or _permission_message(capability, target))


class LoadFailure(EurekaError):
    """Raised when an extension fails to load.

    Attributes:
        origin: The URL (or data URL) the extension was loaded from.
        reason: Reason for the failure.
        original: Original exception if any.
    """

    def __init__(
        self,
        origin: str,
        reason: str,
        original: BaseException | None = None,
    ):
        self.origin = origin
        self.reason = reason
        self.original = original
        super().__init__(f"Failed to load extension '{_shorten(origin)}': {reason}")


def _shorten(origin: str, limit: int = 80) -> str:
    if len(origin) <= limit:
        return origin
    return origin[: limit - 3] + "..."


def _permission_message(capability: str, target: str | None) -> str:
    if target:
        return f"Permission to {capability} {target} rejected."
    return f"Permission to {capability} rejected."
