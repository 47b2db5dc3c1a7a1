"""
Per-extension translation.

Every load context gets its own ``Translator`` (exposed to the extension as
``Scratch.translate``). It accepts either a plain string, treated as the
default text, or a message mapping ``{"id", "default", "description"}``,
looks the message up in the table for the active locale and substitutes
``{name}`` placeholders from ``args``.

The locale is read from the host when the translator is built and follows
the host's locale-change event afterwards.
"""

from __future__ import annotations

import logging
import re
import weakref
from collections.abc import Callable, Mapping
from typing import Any

logger = logging.getLogger(__name__)

_PLACEHOLDER = re.compile(r"\{\s*([A-Za-z0-9_]+)\s*\}")

Message = str | Mapping[str, Any]


def generate_id(default_message: str) -> str:
    """Message id used when a message does not carry one."""
    return f"_{default_message}"


def format_template(template: str, args: Mapping[str, Any] | None) -> str:
    """Replace ``{name}`` placeholders; unknown names are left untouched."""
    if not args:
        return template

    def substitute(match: re.Match[str]) -> str:
        name = match.group(1)
        if name in args:
            return str(args[name])
        return match.group(0)

    return _PLACEHOLDER.sub(substitute, template)


def is_message(value: Any) -> bool:
    """Whether ``value`` has the shape of a translatable message."""
    return isinstance(value, Mapping) and "default" in value and isinstance(value.get("default"), str)


class LocaleSubscription:
    """Locale listener that holds its translator weakly.

    Once the translator is gone (or ``detach`` is called) the listener
    removes itself from the VM, when the VM can remove listeners.
    """

    def __init__(self, vm: Any, event: str, callback: Callable[[str], None]):
        self.vm = vm
        self.event = event
        self._callback = weakref.WeakMethod(callback)
        self.attached = True

    def __call__(self, locale: str) -> None:
        if not self.attached:
            return
        callback = self._callback()
        if callback is None:
            self.detach()
            return
        callback(locale)

    def detach(self) -> None:
        if not self.attached:
            return
        self.attached = False
        remove = getattr(self.vm, "off", None) or getattr(self.vm, "remove_listener", None)
        if callable(remove):
            remove(self.event, self)


class Translator:
    """Callable translating messages for one load context.

    Attributes:
        translations: Locale -> {message id -> text}.

    Example:
        translate = Translator(vm)
        translate.setup({"de": {"_Hello": "Hallo"}})
        translate("Hello")          # "Hallo" when the host locale is "de"
        translate.language          # "de"
    """

    def __init__(self, vm: Any = None, locale_event: str = "LOCALE_CHANGED"):
        self._locale = self._read_locale(vm)
        self.translations: dict[str, dict[str, str]] = {}
        self._active: dict[str, str] = {}
        self.setup({})

        self._subscription: LocaleSubscription | None = None
        if vm is not None and hasattr(vm, "on"):
            self._subscription = LocaleSubscription(vm, locale_event, self._on_locale_changed)
            vm.on(locale_event, self._subscription)

    @property
    def language(self) -> str:
        """The active locale."""
        return self._locale

    def __call__(self, message: Message, args: Mapping[str, Any] | None = None) -> str:
        if isinstance(message, str):
            message = {"default": message}
        elif not isinstance(message, Mapping):
            raise TypeError("unsupported data type in translate()")

        default = str(message.get("default", ""))
        message_id = message.get("id") or generate_id(default)
        template = self._active.get(message_id, default)
        return format_template(template, args)

    def setup(self, translations: Mapping[str, Mapping[str, str]] | None) -> None:
        """Replace the translation table and rebuild the active locale.

        Passing None keeps the stored table and only re-applies the locale.
        """
        if translations:
            self.translations = {locale.lower(): dict(table) for locale, table in translations.items()}
        self._active = self._table_for(self._locale)

    def _table_for(self, locale: str) -> dict[str, str]:
        locale = locale.lower()
        if locale in self.translations:
            return self.translations[locale]
        base = locale.split("-")[0]
        return self.translations.get(base, {})

    def close(self) -> None:
        """Stop following the host locale."""
        if self._subscription is not None:
            self._subscription.detach()
            self._subscription = None

    def _on_locale_changed(self, locale: str) -> None:
        logger.debug(f"Locale changed to {locale}")
        self._locale = locale
        self.setup(None)

    @staticmethod
    def _read_locale(vm: Any) -> str:
        if vm is None or not hasattr(vm, "get_locale"):
            return "en"
        try:
            return vm.get_locale() or "en"
        except Exception as e:
            logger.warning(f"Could not read host locale: {e}")
            return "en"

    def __repr__(self) -> str:
        return f"<Translator language={self._locale!r} locales={sorted(self.translations)}>"


def maybe_format_message(value: Any, translate: Translator | None = None, args: Mapping[str, Any] | None = None) -> Any:
    """Format ``value`` if it is a translatable message, else return it as-is."""
    if not is_message(value):
        return value
    if translate is None:
        return format_template(value["default"], args)
    return translate(value, args)
