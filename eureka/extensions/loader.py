"""
Extension loading for Eureka.

An extension is a Python source file fetched from an origin (an http(s)
URL or a ``data:`` URL wrapping inline code). Loading it means:

    1. Fetch the source, bypassing caches.
    2. Build a fresh CapabilitySurface for the load context.
    3. Execute the source in a temporary module whose ``Scratch`` global is
       that surface.
    4. Wait for the extension to call ``Scratch.extensions.register(obj)``.
    5. Normalize and forward the descriptor, record it in the registry.
    6. Tear the temporary module down.

Loads are deduplicated by origin: an origin that is already registered is
not loaded again, and concurrent loads of one origin share a single fetch.

Example:
    loader = ExtensionLoader(vm, registry, blocks_trap, store_trap)

    await loader.load("https://example.com/extensions/greeter.py")
    await loader.load_code(source_text)
    await loader.load_file("./my_extension.py")
"""

from __future__ import annotations

import asyncio
import base64
import importlib.abc
import importlib.util
import itertools
import logging
import sys
from pathlib import Path
from typing import Any
from urllib.parse import unquote_to_bytes

import httpx

from eureka.config import Settings, settings as default_settings
from eureka.errors import LoadFailure
from eureka.extensions.normalizer import MetadataNormalizer
from eureka.extensions.registry import ExtensionRegistry
from eureka.extensions.sdk import HostPlatform, HostVM, LoadedExtensionInfo
from eureka.extensions.surface import CapabilitySurface
from eureka.trap.blocks import BlockEditorTrap
from eureka.trap.store import StoreTrap

logger = logging.getLogger(__name__)

DATA_URL_MEDIA_TYPE = "text/x-python"

_NO_CACHE_HEADERS = {"Cache-Control": "no-cache", "Pragma": "no-cache"}


def to_data_url(code: str) -> str:
    """Wrap extension source into a data URL usable as a load origin."""
    encoded = base64.b64encode(code.encode("utf-8")).decode("ascii")
    return f"data:{DATA_URL_MEDIA_TYPE};base64,{encoded}"


def decode_data_url(url: str) -> str:
    """Decode the payload of a ``data:`` URL as UTF-8 text.

    Raises:
        ValueError: If the URL is not a well-formed data URL.
    """
    if not url.startswith("data:") or "," not in url:
        raise ValueError("Malformed data URL")
    header, payload = url[5:].split(",", 1)
    if header.endswith(";base64"):
        raw = base64.b64decode(payload, validate=True)
    else:
        raw = unquote_to_bytes(payload)
    return raw.decode("utf-8")


class ExtensionSourceLoader(importlib.abc.SourceLoader):
    """Serves one fetched extension source to the import machinery."""

    def __init__(self, filename: str, source: str):
        self.filename = filename
        self.source = source

    def get_filename(self, fullname: str) -> str:
        return self.filename

    def get_data(self, path: str) -> bytes:
        return self.source.encode("utf-8")

    def is_package(self, fullname: str) -> bool:
        return False


class ExtensionContext:
    """Temporary execution context for one extension load.

    Attributes:
        origin: Where the source came from.
        surface: The capability surface bound as ``Scratch``.
        module: The temporary module the source runs in.
    """

    _counter = itertools.count(1)

    def __init__(self, origin: str, source: str, surface: CapabilitySurface):
        self.origin = origin
        self.source = source
        self.surface = surface
        number = next(self._counter)
        self.module_name = f"eureka_extension_{number}"
        self.filename = origin if not origin.startswith("data:") else f"eureka-extension-{number}.py"
        self.spec = importlib.util.spec_from_loader(
            self.module_name,
            ExtensionSourceLoader(self.filename, source),
            origin=self.filename,
        )
        self.module = importlib.util.module_from_spec(self.spec)
        self.module.__file__ = self.filename
        self._open = False

    def run(self) -> None:
        """Execute the extension source inside the temporary module."""
        self.module.Scratch = self.surface
        sys.modules[self.module_name] = self.module
        self._open = True
        self.spec.loader.exec_module(self.module)

    def teardown(self) -> None:
        """Remove the temporary module. Idempotent."""
        if not self._open:
            return
        self._open = False
        if sys.modules.get(self.module_name) is self.module:
            del sys.modules[self.module_name]

    @property
    def open(self) -> bool:
        return self._open


class ExtensionLoader:
    """Fetches, executes and registers extensions.

    Attributes:
        vm: The host VM.
        registry: Where registered extensions are recorded.
        blocks: Block-editor trap shared by every surface.
        store: State-store trap shared by every surface.
    """

    def __init__(
        self,
        vm: HostVM,
        registry: ExtensionRegistry,
        blocks: BlockEditorTrap,
        store: StoreTrap | None = None,
        platform: HostPlatform | None = None,
        settings: Settings | None = None,
        http_client: httpx.AsyncClient | None = None,
    ):
        self.vm = vm
        self.registry = registry
        self.blocks = blocks
        self.store = store
        self.platform = platform
        self.settings = settings or default_settings
        self._http_client = http_client
        self._in_flight: dict[str, asyncio.Future[LoadedExtensionInfo]] = {}

    async def load(self, origin: str) -> LoadedExtensionInfo:
        """Load the extension at ``origin`` unless it is already loaded.

        Args:
            origin: http(s) URL or data URL.

        Returns:
            The registry entry for the origin.

        Raises:
            LoadFailure: If fetching or executing the source fails.
            ExtensionValidationError: If the extension's descriptor is invalid.
        """
        existing = self.registry.get(origin)
        if existing is not None:
            logger.debug(f"Extension already loaded from {origin}")
            return existing

        pending = self._in_flight.get(origin)
        if pending is None:
            pending = asyncio.ensure_future(self._load(origin))
            self._in_flight[origin] = pending
            pending.add_done_callback(lambda _: self._in_flight.pop(origin, None))
        return await asyncio.shield(pending)

    async def load_code(self, code: str) -> LoadedExtensionInfo:
        """Load extension source given as text."""
        return await self.load(to_data_url(code))

    async def load_file(self, path: str | Path) -> LoadedExtensionInfo:
        """Load extension source from a local file."""
        try:
            code = Path(path).read_text(encoding="utf-8")
        except OSError as e:
            raise LoadFailure(str(path), f"could not read file: {e}", e) from e
        return await self.load_code(code)

    def refresh(self) -> int:
        """Re-forward every loaded extension's current descriptor."""
        return self.registry.refresh()

    def build_surface(self) -> CapabilitySurface:
        """Build a fresh capability surface for one load context."""
        return CapabilitySurface(
            self.vm,
            self.blocks,
            self.store,
            platform=self.platform,
            settings=self.settings,
            http_client=self._http_client,
        )

    async def fetch_source(self, origin: str) -> str:
        """Fetch extension source text, bypassing caches.

        Raises:
            LoadFailure: If the source cannot be retrieved.
        """
        if origin.startswith("data:"):
            try:
                return decode_data_url(origin)
            except (ValueError, UnicodeDecodeError) as e:
                raise LoadFailure(origin, f"invalid data URL: {e}", e) from e

        if not origin.startswith(("http://", "https://")):
            raise LoadFailure(origin, "unsupported origin scheme")

        try:
            if self._http_client is not None:
                response = await self._http_client.get(origin, headers=_NO_CACHE_HEADERS)
            else:
                async with httpx.AsyncClient(timeout=self.settings.fetch_timeout, follow_redirects=True) as client:
                    response = await client.get(origin, headers=_NO_CACHE_HEADERS)
            response.raise_for_status()
        except httpx.HTTPError as e:
            raise LoadFailure(origin, f"fetch failed: {e}", e) from e
        return response.text

    async def _load(self, origin: str) -> LoadedExtensionInfo:
        source = await self.fetch_source(origin)
        logger.info(f"Loading extension from {origin[:80]}")

        surface = self.build_surface()
        normalizer = MetadataNormalizer(getattr(self.vm, "runtime", None), surface.translate)
        context = ExtensionContext(origin, source, surface)
        registered: asyncio.Future[LoadedExtensionInfo] = asyncio.get_running_loop().create_future()

        def register(extension: Any) -> None:
            try:
                loaded = self.registry.register(origin, extension, normalizer)
            except Exception as e:
                if not registered.done():
                    registered.set_exception(e)
                context.teardown()
                raise
            if not registered.done():
                registered.set_result(loaded)
            context.teardown()

        surface.extensions.bind(register)

        try:
            context.run()
        except Exception as e:
            if not registered.done():
                context.teardown()
                surface.translate.close()
                raise LoadFailure(origin, f"extension raised {type(e).__name__}: {e}", e) from e
            if registered.exception() is None:
                logger.warning(f"Extension from {origin[:80]} raised after registering: {e}")

        try:
            return await registered
        except BaseException:
            surface.translate.close()
            raise
        finally:
            context.teardown()

    def __repr__(self) -> str:
        return f"<ExtensionLoader loaded={len(self.registry)} in_flight={len(self._in_flight)}>"
