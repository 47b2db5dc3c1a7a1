"""
Extension support for Eureka.

This package turns untrusted extension source into blocks registered with
the host engine:

- ``sdk``: block vocabulary and host interfaces
- ``surface``: the permission-gated ``Scratch`` object extensions receive
- ``normalizer``: descriptor preparation
- ``translate``: per-extension translation
- ``registry``: the record of loaded extensions
- ``loader``: fetch, execute, register, tear down
"""

from eureka.extensions.cast import Cast
from eureka.extensions.loader import ExtensionContext, ExtensionLoader, decode_data_url, to_data_url
from eureka.extensions.normalizer import (
    MenuProducer,
    MetadataNormalizer,
    prepare_extension_info,
    sanitize_id,
    validate_extension_id,
)
from eureka.extensions.registry import ExtensionRegistry, RegistryEvent
from eureka.extensions.sdk import (
    SEPARATOR,
    ArgumentType,
    BlockType,
    HostPlatform,
    HostRuntime,
    HostVM,
    LoadedExtensionInfo,
    ReporterScope,
    ScratchExtension,
    StoreLike,
    TargetType,
)
from eureka.extensions.surface import BrowserPlatform, CapabilitySurface, parse_url
from eureka.extensions.translate import Translator, maybe_format_message

__all__ = [
    "SEPARATOR",
    "ArgumentType",
    "BlockType",
    "BrowserPlatform",
    "CapabilitySurface",
    "Cast",
    "ExtensionContext",
    "ExtensionLoader",
    "ExtensionRegistry",
    "HostPlatform",
    "HostRuntime",
    "HostVM",
    "LoadedExtensionInfo",
    "MenuProducer",
    "MetadataNormalizer",
    "RegistryEvent",
    "ReporterScope",
    "ScratchExtension",
    "StoreLike",
    "TargetType",
    "Translator",
    "decode_data_url",
    "maybe_format_message",
    "parse_url",
    "prepare_extension_info",
    "sanitize_id",
    "to_data_url",
    "validate_extension_id",
]
