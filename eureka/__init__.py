"""
Eureka - a third-party extension loader for block-based programming hosts.

Eureka attaches to a running host, finds its block editor and state store
without any cooperation from the host, and lets untrusted extensions
register blocks through a permission-gated capability surface.
"""

__version__ = "0.1.0"

from eureka.context import EurekaContext
from eureka.errors import (
    EmptyMenuError,
    EurekaError,
    ExtensionValidationError,
    LoadFailure,
    PermissionDenied,
)
from eureka.extensions import (
    ArgumentType,
    BlockType,
    CapabilitySurface,
    ExtensionLoader,
    ExtensionRegistry,
    MetadataNormalizer,
    ReporterScope,
    TargetType,
    Translator,
)
from eureka.trap import BlockEditorTrap, StoreTrap, locate

__all__ = [
    "__version__",
    "ArgumentType",
    "BlockEditorTrap",
    "BlockType",
    "CapabilitySurface",
    "EmptyMenuError",
    "EurekaContext",
    "EurekaError",
    "ExtensionLoader",
    "ExtensionRegistry",
    "ExtensionValidationError",
    "LoadFailure",
    "MetadataNormalizer",
    "PermissionDenied",
    "ReporterScope",
    "StoreTrap",
    "TargetType",
    "Translator",
    "locate",
]
