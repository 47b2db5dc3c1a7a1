"""Tests for eureka.extensions.surface - Capability Surface."""

from __future__ import annotations

from unittest.mock import MagicMock

import httpx
import pytest

from eureka.config import Settings
from eureka.errors import EurekaError, PermissionDenied
from eureka.extensions.cast import Cast
from eureka.extensions.sdk import ArgumentType, BlockType, HostPlatform
from eureka.extensions.surface import BrowserPlatform, CapabilitySurface, ExtensionsNamespace, is_script_url, parse_url
from eureka.trap.blocks import BlockEditorTrap
from eureka.trap.store import StoreTrap


class FakePlatform:
    def __init__(self, location="https://host.example/editor/"):
        self.location = location
        self.opened = []
        self.navigated = []

    def open_window(self, url, target, features):
        self.opened.append((url, target, features))
        return True

    def navigate(self, url):
        self.navigated.append(url)


def make_surface(vm, settings=None, http_client=None, **flags):
    settings = settings or Settings(_env_file=None, **flags)
    return CapabilitySurface(
        vm,
        BlockEditorTrap(vm, settings),
        platform=FakePlatform(),
        settings=settings,
        http_client=http_client,
    )


class TestParseUrl:
    def test_absolute(self):
        assert parse_url("https://example.com/a").netloc == "example.com"

    def test_relative_resolved_against_base(self):
        assert parse_url("data.json", "https://host.example/editor/").geturl() == "https://host.example/editor/data.json"

    @pytest.mark.parametrize("bad", ["http://[::1", "https://example.com:notaport/", "no scheme", None, 42])
    def test_unparsable(self, bad):
        assert parse_url(bad) is None


class TestVocabulary:
    def test_enums_and_cast(self, vm):
        surface = make_surface(vm)
        assert surface.BlockType is BlockType
        assert surface.ArgumentType.STRING == "string"
        assert surface.Cast is Cast

    def test_platforms_satisfy_protocol(self):
        assert isinstance(BrowserPlatform(), HostPlatform)
        assert isinstance(FakePlatform(), HostPlatform)
        assert not isinstance(object(), HostPlatform)

    def test_flags(self, vm):
        namespace = make_surface(vm).extensions
        assert namespace.unsandboxed and namespace.chibi and namespace.eureka

    def test_register_before_bind(self):
        with pytest.raises(EurekaError, match="not bound"):
            ExtensionsNamespace().register(object())


class TestPermissions:
    @pytest.mark.asyncio
    async def test_fetch_and_embed_allowed_by_default(self, vm):
        surface = make_surface(vm)
        assert await surface.can_fetch("https://example.com/data.json")
        assert await surface.can_embed("https://example.com/page")

    @pytest.mark.asyncio
    async def test_unparsable_url_denied_for_fetch_and_embed(self, vm):
        surface = make_surface(vm)
        assert not await surface.can_fetch("http://[::1")
        assert not await surface.can_embed("http://[::1")

    @pytest.mark.asyncio
    async def test_script_scheme_never_allowed(self, vm):
        surface = make_surface(vm)
        assert not await surface.can_open_window("javascript:alert(1)")
        assert not await surface.can_redirect("JavaScript:alert(1)")
        assert await surface.can_open_window("https://example.com")

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "url",
        ["javascript://[x/%0aalert(1)", " java\tscript:alert(1)", "\x01JAVASCRIPT:alert(1)"],
    )
    async def test_unparsable_script_url_never_allowed(self, vm, url):
        surface = make_surface(vm)
        assert is_script_url(url)
        assert not await surface.can_open_window(url)
        assert not await surface.can_redirect(url)
        with pytest.raises(PermissionDenied):
            await surface.open_window(url)
        with pytest.raises(PermissionDenied):
            await surface.redirect(url)
        assert surface.platform.opened == []
        assert surface.platform.navigated == []

    @pytest.mark.asyncio
    async def test_flags_respected(self, vm):
        surface = make_surface(
            vm,
            allow_fetch=False,
            allow_open_window=False,
            allow_record_audio=False,
            allow_geolocate=False,
        )
        assert not await surface.can_fetch("https://example.com")
        assert not await surface.can_open_window("https://example.com")
        assert not await surface.can_record_audio()
        assert not await surface.can_geolocate()
        assert await surface.can_record_video()
        assert await surface.can_notify()
        assert await surface.can_read_clipboard()


class TestPrimitives:
    @pytest.mark.asyncio
    async def test_open_window_adds_noreferrer(self, vm):
        surface = make_surface(vm)
        await surface.open_window("https://example.com", "width=200")
        assert surface.platform.opened == [("https://example.com", "_blank", "noreferrer,width=200")]

    @pytest.mark.asyncio
    async def test_open_window_denied(self, vm):
        surface = make_surface(vm)
        with pytest.raises(PermissionDenied, match="Permission to open tab javascript:alert\\(1\\) rejected."):
            await surface.open_window("javascript:alert(1)")
        assert surface.platform.opened == []

    @pytest.mark.asyncio
    async def test_redirect(self, vm):
        surface = make_surface(vm)
        await surface.redirect("https://example.com")
        assert surface.platform.navigated == ["https://example.com"]
        with pytest.raises(PermissionDenied):
            await surface.redirect("javascript:void(0)")

    @pytest.mark.asyncio
    async def test_fetch_through_client(self, vm):
        def handler(request):
            return httpx.Response(200, json={"path": request.url.path})

        async with httpx.AsyncClient(transport=httpx.MockTransport(handler)) as client:
            surface = make_surface(vm, http_client=client)
            response = await surface.fetch("data.json")
        assert response.json() == {"path": "/editor/data.json"}

    @pytest.mark.asyncio
    async def test_fetch_denied(self, vm):
        surface = make_surface(vm, allow_fetch=False)
        with pytest.raises(PermissionDenied) as exc_info:
            await surface.fetch("https://example.com")
        assert exc_info.value.capability == "fetch"
        assert isinstance(exc_info.value, PermissionError)


class TestGui:
    @pytest.mark.asyncio
    async def test_blockly_accessors(self, vm, gui, blocks):
        surface = make_surface(vm)
        assert surface.gui.get_blockly_eagerly() is None
        vm.on("EXTENSION_ADDED", gui.handle_extension_added)
        assert await surface.gui.get_blockly() is blocks
        assert surface.gui.get_blockly_eagerly() is blocks

    @pytest.mark.asyncio
    async def test_get_store_requires_trap(self, vm):
        with pytest.raises(RuntimeError):
            await make_surface(vm).gui.get_store()

    @pytest.mark.asyncio
    async def test_get_store_adopts_captured(self, vm, window, settings):
        captured = MagicMock()
        setattr(window, settings.captured_store_global, captured)
        surface = CapabilitySurface(vm, BlockEditorTrap(vm, settings), StoreTrap(window, settings), settings=settings)
        assert await surface.gui.get_store() is captured

    def test_translate_follows_host_locale(self, vm):
        vm.locale = "de"
        assert make_surface(vm).translate.language == "de"

    @pytest.mark.asyncio
    async def test_redux_is_store_trap(self, vm, window, settings):
        trap = StoreTrap(window, settings)
        surface = CapabilitySurface(vm, BlockEditorTrap(vm, settings), trap, settings=settings)
        assert surface.redux is trap
        assert make_surface(vm).redux is None
