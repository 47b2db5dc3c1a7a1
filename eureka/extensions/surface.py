"""
Capability surface handed to extensions.

Extensions never touch the host directly. Each load context receives one
``CapabilitySurface``, bound in the extension's module as ``Scratch``:

    Scratch.BlockType, Scratch.ArgumentType, Scratch.TargetType,
    Scratch.ReporterScope, Scratch.Cast     engine vocabulary
    Scratch.translate                       per-context translator
    Scratch.extensions.register(ext)        registration entry point
    Scratch.fetch / can_* / open_window / redirect
                                            permission-gated primitives
    Scratch.gui.get_blockly()               block editor (waits if needed)
    Scratch.gui.get_blockly_eagerly()       block editor or None
    Scratch.gui.get_store()                 state store (waits if needed)
    Scratch.redux                           the state-store trap itself

Permission checks combine URL validation with the current ``Settings``
flags. URLs are resolved against the host page location; a URL that cannot
be resolved is denied for fetching and embedding, and the ``javascript:``
scheme is never allowed for new windows or redirects.
"""

from __future__ import annotations

import logging
import webbrowser
from collections.abc import Callable
from dataclasses import dataclass
from typing import Any
from urllib.parse import SplitResult, urljoin, urlsplit

import httpx

from eureka.config import Settings, settings as default_settings
from eureka.errors import EurekaError, PermissionDenied
from eureka.extensions.cast import Cast
from eureka.extensions.sdk import ArgumentType, BlockType, HostPlatform, HostVM, ReporterScope, TargetType
from eureka.extensions.translate import Translator
from eureka.trap.blocks import BlockEditorTrap
from eureka.trap.store import StoreTrap

logger = logging.getLogger(__name__)

_SCRIPT_SCHEME = "javascript"
_URL_NOISE = str.maketrans("", "", "\t\r\n")
# C0 controls and space, skipped before a scheme.
_LEADING_JUNK = "".join(map(chr, range(0x21)))


def parse_url(url: Any, base: str | None = None) -> SplitResult | None:
    """Resolve ``url`` against ``base``; None when it cannot be parsed."""
    if not isinstance(url, str):
        return None
    try:
        resolved = urljoin(base, url.strip()) if base else url.strip()
        parts = urlsplit(resolved)
        parts.port  # noqa: B018 - raises ValueError on a malformed port
    except ValueError:
        return None
    if not parts.scheme:
        return None
    return parts


def is_script_url(url: Any) -> bool:
    """Check the raw text for a ``javascript:`` scheme, parsable or not."""
    if not isinstance(url, str):
        return False
    text = url.translate(_URL_NOISE).lstrip(_LEADING_JUNK)
    return text.lower().startswith(f"{_SCRIPT_SCHEME}:")


@dataclass
class BrowserPlatform:
    """Page primitives backed by the system web browser.

    Attributes:
        location: URL of the host page, used as base for relative URLs.
    """

    location: str | None = None

    def open_window(self, url: str, target: str, features: str) -> bool:
        return webbrowser.open_new_tab(url)

    def navigate(self, url: str) -> None:
        self.location = url
        webbrowser.open(url)


class ExtensionsNamespace:
    """``Scratch.extensions``: the registration entry point and flags."""

    unsandboxed = True
    chibi = True
    eureka = True

    def __init__(self) -> None:
        self._register: Callable[[Any], None] | None = None

    def register(self, extension: Any) -> None:
        if self._register is None:
            raise EurekaError("register is not bound to a loader")
        self._register(extension)

    def bind(self, register: Callable[[Any], None]) -> None:
        """Route ``register`` calls to the loader."""
        self._register = register


class GuiAccessors:
    """``Scratch.gui``: access to the located host internals."""

    def __init__(self, blocks: BlockEditorTrap, store: StoreTrap | None = None):
        self._blocks = blocks
        self._store = store

    async def get_blockly(self) -> Any:
        """Block-editor instance; waits until the host has created it."""
        return await self._blocks.get()

    def get_blockly_eagerly(self) -> Any | None:
        """Block-editor instance if already located, else None."""
        return self._blocks.eager()

    async def get_store(self) -> Any:
        """Trapped state store; waits until the host has created it."""
        if self._store is None:
            raise RuntimeError("No store trap configured")
        return await self._store.get()


class CapabilitySurface:
    """Permission-gated API object bound as ``Scratch`` in an extension.

    Attributes:
        vm: The host VM.
        renderer: The host renderer, if the runtime exposes one.
        translate: Translator for this load context.
        extensions: Registration namespace.
        gui: Block-editor and store accessors.
        redux: The state-store trap, or None when the host has no namespace.

    Example:
        surface = CapabilitySurface(vm, blocks_trap, store_trap)
        surface.extensions.bind(loader_register)
        if await surface.can_fetch("https://example.com/data.json"):
            response = await surface.fetch("https://example.com/data.json")
    """

    ArgumentType = ArgumentType
    BlockType = BlockType
    TargetType = TargetType
    ReporterScope = ReporterScope
    Cast = Cast

    def __init__(
        self,
        vm: HostVM,
        blocks: BlockEditorTrap,
        store: StoreTrap | None = None,
        platform: HostPlatform | None = None,
        settings: Settings | None = None,
        http_client: httpx.AsyncClient | None = None,
    ):
        self.settings = settings or default_settings
        self.vm = vm
        self.renderer = getattr(getattr(vm, "runtime", None), "renderer", None)
        self.platform = platform if platform is not None else BrowserPlatform()
        self.translate = Translator(vm, self.settings.locale_event)
        self.extensions = ExtensionsNamespace()
        self.gui = GuiAccessors(blocks, store)
        self.redux = store
        self._http_client = http_client

    # -- URL checks ---------------------------------------------------------

    def _parse(self, url: Any) -> SplitResult | None:
        return parse_url(url, getattr(self.platform, "location", None))

    async def can_fetch(self, url: str) -> bool:
        return self.settings.allow_fetch and self._parse(url) is not None

    async def can_embed(self, url: str) -> bool:
        return self.settings.allow_embed and self._parse(url) is not None

    async def can_open_window(self, url: str) -> bool:
        if is_script_url(url):
            return False
        parsed = self._parse(url)
        if parsed is not None and parsed.scheme == _SCRIPT_SCHEME:
            return False
        return self.settings.allow_open_window

    async def can_redirect(self, url: str) -> bool:
        if is_script_url(url):
            return False
        parsed = self._parse(url)
        if parsed is not None and parsed.scheme == _SCRIPT_SCHEME:
            return False
        return self.settings.allow_redirect

    # -- device checks -------------------------------------------------------

    async def can_record_audio(self) -> bool:
        return self.settings.allow_record_audio

    async def can_record_video(self) -> bool:
        return self.settings.allow_record_video

    async def can_read_clipboard(self) -> bool:
        return self.settings.allow_read_clipboard

    async def can_notify(self) -> bool:
        return self.settings.allow_notify

    async def can_geolocate(self) -> bool:
        return self.settings.allow_geolocate

    # -- gated primitives ----------------------------------------------------

    async def fetch(self, url: str, method: str = "GET", **kwargs: Any) -> httpx.Response:
        """Perform an HTTP request on behalf of the extension.

        Raises:
            PermissionDenied: If fetching ``url`` is not allowed.
        """
        if not await self.can_fetch(url):
            raise PermissionDenied("fetch", url)
        parsed = self._parse(url)
        if self._http_client is not None:
            return await self._http_client.request(method, parsed.geturl(), **kwargs)
        async with httpx.AsyncClient(timeout=self.settings.fetch_timeout) as client:
            return await client.request(method, parsed.geturl(), **kwargs)

    async def open_window(self, url: str, features: str | None = None) -> Any:
        """Open ``url`` in a new window without giving it a referrer.

        Raises:
            PermissionDenied: If opening ``url`` is not allowed.
        """
        if not await self.can_open_window(url):
            raise PermissionDenied("open_window", url, f"Permission to open tab {url} rejected.")
        base_features = "noreferrer"
        features = f"{base_features},{features}" if features else base_features
        return self.platform.open_window(url, "_blank", features)

    async def redirect(self, url: str) -> None:
        """Navigate the host page to ``url``.

        Raises:
            PermissionDenied: If redirecting to ``url`` is not allowed.
        """
        if not await self.can_redirect(url):
            raise PermissionDenied("redirect", url, f"Permission to redirect to {url} rejected.")
        self.platform.navigate(url)

    def __repr__(self) -> str:
        return f"<CapabilitySurface vm={type(self.vm).__name__} language={self.translate.language!r}>"
