"""
Extension metadata normalization.

Extensions describe themselves loosely: blocks may omit their type or text,
menus may be a bare list or the name of a producer method, handlers are
named by string. The host engine expects one strict shape, with callables
already wired. ``MetadataNormalizer.prepare`` performs that conversion.

Rules:
    - The extension id must be ASCII letters and digits only; anything else
      aborts the whole registration.
    - Opcodes (and handler names) lose every ``<``, ``"`` and ``&``.
    - A block that cannot be prepared is logged and dropped; the others
      still register.
    - A handler that does not exist yet is only a warning: the wrapper
      looks it up again on every call.
    - The caller's descriptor is never modified; every level that changes
      is copied.
"""

from __future__ import annotations

import json
import logging
import re
from collections.abc import Callable, Mapping
from typing import Any

from eureka.errors import EmptyMenuError, ExtensionValidationError
from eureka.extensions.sdk import (
    PREDEFINED_CALLBACK_KEYS,
    SEPARATOR,
    BlockType,
    HostRuntime,
    Missing,
    resolve_function,
)
from eureka.extensions.translate import Translator, maybe_format_message
from eureka.trap.locator import member

logger = logging.getLogger(__name__)

_EXTENSION_ID = re.compile(r"[A-Za-z0-9]+")
_UNSAFE_ID_CHARS = re.compile(r'[<"&]')

BLOCK_DEFAULTS: dict[str, Any] = {
    "blockType": BlockType.COMMAND,
    "terminal": False,
    "blockAllThreads": False,
}


def sanitize_id(text: Any) -> str:
    """Strip characters that would break the host's XML block definitions."""
    return _UNSAFE_ID_CHARS.sub("", str(text))


def validate_extension_id(extension_id: Any) -> str:
    """Check an extension id.

    Raises:
        ExtensionValidationError: If the id is not ASCII letters/digits.
    """
    if not isinstance(extension_id, str) or not _EXTENSION_ID.fullmatch(extension_id):
        raise ExtensionValidationError(f"Invalid extension id: {extension_id!r}")
    return extension_id


def _describe(entry: Any) -> str:
    try:
        return json.dumps(entry, default=repr, indent=2)
    except (TypeError, ValueError):
        return repr(entry)


class MetadataNormalizer:
    """Turns raw extension descriptors into the host's prepared shape.

    Attributes:
        runtime: Host runtime consulted by menu producers for the editing
            target. Optional; producers then receive ``None`` as target id.
        translate: Translator applied to translatable menu items.

    Example:
        normalizer = MetadataNormalizer(vm.runtime, translate)
        info = normalizer.prepare(extension, extension.get_info())
        vm.runtime._register_extension_primitives(info)
    """

    def __init__(self, runtime: HostRuntime | None = None, translate: Translator | None = None):
        self.runtime = runtime
        self.translate = translate

    def prepare(self, extension: Any, raw: Mapping[str, Any]) -> dict[str, Any]:
        """Prepare a whole extension descriptor.

        Args:
            extension: The live extension object.
            raw: What ``extension.get_info()`` returned.

        Returns:
            A new, fully prepared descriptor.

        Raises:
            ExtensionValidationError: If the descriptor or its id is invalid.
        """
        if not isinstance(raw, Mapping):
            raise ExtensionValidationError(f"Extension info must be a mapping, got {type(raw).__name__}")

        info = dict(raw)
        validate_extension_id(info.get("id"))

        if info.get("name") is None:
            info["name"] = info["id"]
        if info.get("targetTypes") is None:
            info["targetTypes"] = []

        blocks: list[Any] = []
        for entry in info.get("blocks") or []:
            try:
                blocks.append(self.prepare_block(extension, entry))
            except Exception as e:
                logger.error(f"Error processing block: {e}, Block:\n{_describe(entry)}")
        info["blocks"] = blocks

        info["menus"] = self.prepare_menus(extension, info.get("menus") or {})
        return info

    def prepare_block(self, extension: Any, entry: Any) -> Any:
        """Prepare one block entry (or pass a separator through)."""
        if isinstance(entry, str) and entry == SEPARATOR:
            return SEPARATOR
        if not isinstance(entry, Mapping):
            raise ExtensionValidationError(f"Block entry must be a mapping, got {type(entry).__name__}")

        block: dict[str, Any] = {**BLOCK_DEFAULTS, "arguments": {}, **entry}
        if block.get("opcode"):
            block["opcode"] = sanitize_id(block["opcode"])
        block["text"] = block.get("text") or block.get("opcode")

        block_type = block["blockType"]
        if block_type == BlockType.EVENT:
            if block.get("func"):
                logger.warning(f'Ignoring function "{block["func"]}" for event block {block.get("opcode")}')
        elif block_type == BlockType.BUTTON:
            self._prepare_button(extension, block)
        elif block_type in (BlockType.LABEL, BlockType.XML):
            if block.get("opcode"):
                subject = f"label with text: {block['text']}" if block_type == BlockType.LABEL else f"xml: {block.get('xml')}"
                logger.warning(f'Ignoring opcode "{block["opcode"]}" for {subject}')
        else:
            self._prepare_callable(extension, block)

        return block

    def _prepare_button(self, extension: Any, block: dict[str, Any]) -> None:
        func_name = block.get("func")
        if not func_name:
            return
        if block.get("opcode"):
            logger.warning(f'Ignoring opcode "{block["opcode"]}" for button with text: {block["text"]}')
        if func_name in PREDEFINED_CALLBACK_KEYS:
            return

        if isinstance(resolve_function(extension, func_name), Missing):
            # May still be attached to the extension later on.
            logger.warning(f"Could not find extension block function called {func_name}")
        block["callFunc"] = _button_callback(extension, func_name)
        block["func"] = func_name

    def _prepare_callable(self, extension: Any, block: dict[str, Any]) -> None:
        if not block.get("opcode"):
            raise ExtensionValidationError("Missing opcode for block")

        func_name = sanitize_id(block["func"]) if block.get("func") else block["opcode"]
        if isinstance(resolve_function(extension, func_name), Missing):
            logger.warning(f"Could not find extension block function called {func_name}")

        if block.get("isDynamic"):
            def block_info_for(args: Any) -> Any:
                return member(member(args, "mutation"), "blockInfo") if args else None
        else:
            def block_info_for(args: Any) -> Any:
                return block

        block["func"] = _block_function(extension, func_name, block_info_for)

    def prepare_menus(self, extension: Any, menus: Mapping[str, Any]) -> dict[str, Any]:
        """Prepare an extension's menus.

        Shorthand list menus become ``{"items": [...]}``; a string ``items``
        is replaced by a producer bound to the named extension method.
        """
        prepared: dict[str, Any] = {}
        for name, menu_info in menus.items():
            if isinstance(menu_info, Mapping) and "items" in menu_info:
                menu = dict(menu_info)
            else:
                menu = {"items": menu_info}

            if isinstance(menu["items"], str):
                producer_name = menu["items"]
                if isinstance(resolve_function(extension, producer_name), Missing):
                    logger.warning(f"Could not find extension menu function called {producer_name}")
                menu["items"] = MenuProducer(extension, producer_name, self.runtime, self.translate)
            prepared[name] = menu
        return prepared


def prepare_extension_info(
    extension: Any,
    raw: Mapping[str, Any],
    runtime: Any = None,
    translate: Translator | None = None,
) -> dict[str, Any]:
    """Shorthand for ``MetadataNormalizer(runtime, translate).prepare``."""
    return MetadataNormalizer(runtime, translate).prepare(extension, raw)


def _block_function(
    extension: Any,
    func_name: str,
    block_info_for: Callable[[Any], Any],
) -> Callable[..., Any]:
    def call_block(args: Any = None, util: Any = None) -> Any:
        func = resolve_function(extension, func_name)
        if isinstance(func, Missing):
            logger.warning(f"Extension block function {func_name} is not available")
            return None
        return func(args, util, block_info_for(args))

    call_block.__name__ = f"call_{func_name}"
    return call_block


def _button_callback(extension: Any, func_name: str) -> Callable[[], Any]:
    def call_button() -> Any:
        func = resolve_function(extension, func_name)
        if isinstance(func, Missing):
            logger.warning(f"Extension button function {func_name} is not available")
            return None
        try:
            return func()
        except Exception as e:
            logger.error(f"Button callback {func_name} failed: {e}")
            return None

    call_button.__name__ = f"call_{func_name}"
    return call_button


class MenuProducer:
    """Dynamic menu bound to an extension method.

    Calling the producer asks the extension for the items appropriate to
    the target currently being edited.

    Raises:
        EmptyMenuError: If the extension returns no items.
    """

    def __init__(
        self,
        extension: Any,
        function_name: str,
        runtime: Any = None,
        translate: Translator | None = None,
    ):
        self.extension = extension
        self.function_name = function_name
        self.runtime = runtime
        self.translate = translate

    def __call__(self, target_id: Any = None) -> list[Any]:
        if target_id is None:
            target_id = self._editing_target_id()

        func = resolve_function(self.extension, self.function_name)
        if isinstance(func, Missing):
            raise ExtensionValidationError(f"Could not find extension menu function called {self.function_name}")

        raw_items = func(target_id)
        if not raw_items:
            raise EmptyMenuError(self.function_name)
        return [self._format_item(item) for item in raw_items]

    def _format_item(self, item: Any) -> Any:
        item = maybe_format_message(item, self.translate)
        if isinstance(item, str):
            return [item, item]
        if isinstance(item, Mapping):
            return [maybe_format_message(item.get("text"), self.translate), item.get("value")]
        return item

    def _editing_target_id(self) -> Any:
        runtime = self.runtime
        if runtime is None:
            return None
        target = runtime.get_editing_target() or runtime.get_target_for_stage()
        runtime.make_message_context_for_target(target)
        return member(target, "id") if target is not None else None

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, MenuProducer):
            return NotImplemented
        return self.extension is other.extension and self.function_name == other.function_name

    def __hash__(self) -> int:
        return hash((id(self.extension), self.function_name))

    def __repr__(self) -> str:
        return f"<MenuProducer {self.function_name}>"
