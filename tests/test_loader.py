"""Tests for eureka.extensions.loader - Extension Loader."""

from __future__ import annotations

import asyncio
import base64
import sys
import textwrap
import traceback

import httpx
import pytest

from eureka.cli.headless import HeadlessVM
from eureka.errors import ExtensionValidationError, LoadFailure
from eureka.extensions.loader import ExtensionContext, ExtensionLoader, decode_data_url, to_data_url
from eureka.extensions.registry import ExtensionRegistry
from eureka.extensions.surface import CapabilitySurface
from eureka.trap.blocks import BlockEditorTrap

GREETER = textwrap.dedent(
    """
    class Greeter:
        def get_info(self):
            return {
                "id": "greeter",
                "name": Scratch.translate("Greeter"),
                "blocks": [
                    {
                        "opcode": "hello",
                        "blockType": Scratch.BlockType.REPORTER,
                        "text": "hello [NAME]",
                        "arguments": {"NAME": {"type": Scratch.ArgumentType.STRING}},
                    },
                ],
            }

        def hello(self, args, util=None, block_info=None):
            return "Hello, " + args["NAME"] + "!"

    Scratch.extensions.register(Greeter())
    """
)

BROKEN = "raise RuntimeError('extension exploded')\n"

NEVER_REGISTERS_THEN_REGISTERS = textwrap.dedent(
    """
    import asyncio

    class Late:
        def get_info(self):
            return {"id": "late", "blocks": []}

    asyncio.get_running_loop().call_soon(Scratch.extensions.register, Late())
    """
)

INVALID_ID = textwrap.dedent(
    """
    class Bad:
        def get_info(self):
            return {"id": "bad-id", "blocks": []}

    Scratch.extensions.register(Bad())
    """
)


def make_loader(vm=None, handler=None):
    vm = vm or HeadlessVM()
    registry = ExtensionRegistry(vm.runtime)
    client = httpx.AsyncClient(transport=httpx.MockTransport(handler)) if handler else None
    return ExtensionLoader(vm, registry, BlockEditorTrap(vm), http_client=client), vm


class TestDataUrls:
    def test_round_trip(self):
        assert decode_data_url(to_data_url("print('ü')")) == "print('ü')"

    def test_percent_encoded(self):
        assert decode_data_url("data:text/plain,x%20%3D%201") == "x = 1"

    def test_malformed(self):
        with pytest.raises(ValueError):
            decode_data_url("data:no-comma")


class TestExtensionContext:
    def test_runs_through_import_machinery(self, vm):
        surface = CapabilitySurface(vm, BlockEditorTrap(vm))
        source = "VALUE = Scratch\n"
        context = ExtensionContext(to_data_url(source), source, surface)

        context.run()
        assert context.module.VALUE is surface
        assert sys.modules[context.module_name] is context.module
        assert context.module.__file__ == context.filename
        assert context.module.__loader__.get_source(context.module_name) == source

        context.teardown()
        context.teardown()
        assert context.module_name not in sys.modules

    def test_traceback_shows_extension_source(self, vm):
        source = "def boom():\n    raise ValueError('from extension')\n\nboom()\n"
        surface = CapabilitySurface(vm, BlockEditorTrap(vm))
        context = ExtensionContext("https://example.com/boom.py", source, surface)

        with pytest.raises(ValueError) as excinfo:
            context.run()
        context.teardown()

        rendered = "".join(traceback.format_exception(excinfo.value))
        assert "https://example.com/boom.py" in rendered
        assert "raise ValueError('from extension')" in rendered


class TestLoad:
    @pytest.mark.asyncio
    async def test_load_code_registers(self):
        loader, vm = make_loader()
        loaded = await loader.load_code(GREETER)

        assert loaded.id == "greeter"
        assert loaded.name == "Greeter"
        assert vm.runtime.registered[0]["id"] == "greeter"
        block = loaded.info["blocks"][0]
        assert block["func"]({"NAME": "Ada"}, None) == "Hello, Ada!"
        assert loader.registry.declared_ids == ["greeter"]

    @pytest.mark.asyncio
    async def test_context_torn_down(self):
        loader, _ = make_loader()
        before = set(sys.modules)
        await loader.load_code(GREETER)
        assert not [name for name in set(sys.modules) - before if name.startswith("eureka_extension_")]

    @pytest.mark.asyncio
    async def test_each_load_gets_fresh_surface(self):
        loader, _ = make_loader()
        seen = []
        original = loader.build_surface

        def spy():
            surface = original()
            seen.append(surface)
            return surface

        loader.build_surface = spy
        await loader.load_code(GREETER)
        await loader.load_code(GREETER.replace('"greeter"', '"greeter2"'))
        assert len(seen) == 2
        assert seen[0] is not seen[1]
        assert all(isinstance(s, CapabilitySurface) for s in seen)

    @pytest.mark.asyncio
    async def test_fetches_over_http_without_cache(self):
        requests = []

        def handler(request):
            requests.append(request)
            return httpx.Response(200, text=GREETER)

        loader, _ = make_loader(handler=handler)
        loaded = await loader.load("https://ext.example/greeter.py")

        assert loaded.origin == "https://ext.example/greeter.py"
        assert requests[0].headers["cache-control"] == "no-cache"

    @pytest.mark.asyncio
    async def test_concurrent_loads_fetch_once(self):
        requests = []

        async def handler(request):
            requests.append(request)
            await asyncio.sleep(0.01)
            return httpx.Response(200, text=GREETER)

        loader, _ = make_loader(handler=handler)
        origin = "https://ext.example/greeter.py"
        first, second = await asyncio.gather(loader.load(origin), loader.load(origin))

        assert len(requests) == 1
        assert first is second
        assert len(loader.registry) == 1

    @pytest.mark.asyncio
    async def test_loaded_origin_is_noop(self):
        requests = []

        def handler(request):
            requests.append(request)
            return httpx.Response(200, text=GREETER)

        loader, _ = make_loader(handler=handler)
        origin = "https://ext.example/greeter.py"
        first = await loader.load(origin)
        second = await loader.load(origin)

        assert len(requests) == 1
        assert second is first

    @pytest.mark.asyncio
    async def test_waits_for_late_register(self):
        loader, _ = make_loader()
        loaded = await loader.load_code(NEVER_REGISTERS_THEN_REGISTERS)
        assert loaded.id == "late"

    @pytest.mark.asyncio
    async def test_load_file(self, tmp_path):
        path = tmp_path / "greeter.py"
        path.write_text(GREETER, encoding="utf-8")
        loader, _ = make_loader()
        loaded = await loader.load_file(path)
        assert loaded.origin.startswith("data:text/x-python;base64,")
        assert base64.b64decode(loaded.origin.split(",", 1)[1]).decode() == GREETER


class TestLoadFailures:
    @pytest.mark.asyncio
    async def test_error_before_register(self):
        loader, _ = make_loader()
        before = set(sys.modules)

        with pytest.raises(LoadFailure, match="extension exploded") as exc_info:
            await loader.load_code(BROKEN)

        assert isinstance(exc_info.value.original, RuntimeError)
        assert len(loader.registry) == 0
        assert not [name for name in set(sys.modules) - before if name.startswith("eureka_extension_")]

    @pytest.mark.asyncio
    async def test_syntax_error(self):
        loader, _ = make_loader()
        with pytest.raises(LoadFailure, match="SyntaxError"):
            await loader.load_code("def broken(:\n")

    @pytest.mark.asyncio
    async def test_http_error(self):
        loader, _ = make_loader(handler=lambda request: httpx.Response(404))
        with pytest.raises(LoadFailure, match="fetch failed"):
            await loader.load("https://ext.example/missing.py")

    @pytest.mark.asyncio
    async def test_unsupported_scheme(self):
        loader, _ = make_loader()
        with pytest.raises(LoadFailure, match="unsupported"):
            await loader.load("ftp://ext.example/a.py")

    @pytest.mark.asyncio
    async def test_missing_file(self, tmp_path):
        loader, _ = make_loader()
        with pytest.raises(LoadFailure, match="could not read file"):
            await loader.load_file(tmp_path / "absent.py")

    @pytest.mark.asyncio
    async def test_invalid_id_rejects_load(self):
        loader, vm = make_loader()
        with pytest.raises(ExtensionValidationError):
            await loader.load_code(INVALID_ID)
        assert len(loader.registry) == 0
        assert vm.runtime.registered == []

    @pytest.mark.asyncio
    async def test_failed_loads_release_locale_listener(self):
        loader, vm = make_loader()
        with pytest.raises(LoadFailure):
            await loader.load_code(BROKEN)
        with pytest.raises(ExtensionValidationError):
            await loader.load_code(INVALID_ID)
        assert "LOCALE_CHANGED" not in vm._events

        await loader.load_code(GREETER)
        assert "LOCALE_CHANGED" in vm._events

    @pytest.mark.asyncio
    async def test_failed_load_can_be_retried(self):
        loader, _ = make_loader()
        origin = to_data_url(BROKEN)
        with pytest.raises(LoadFailure):
            await loader.load(origin)
        with pytest.raises(LoadFailure):
            await loader.load(origin)
