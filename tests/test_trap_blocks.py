"""Tests for eureka.trap.blocks - Block-Editor Trap."""

from __future__ import annotations

import asyncio
from unittest.mock import patch

import pytest

from eureka.trap.blocks import BlockEditorTrap, TrapState
from eureka.trap.intercept import SlotInterceptor

SLOT = "EXTENSION_ADDED"


def forwarding_listener(vm, gui):
    """Listener that reaches its component through the call forwarder."""

    def listener(*args):
        return vm.forward(type(gui).handle_extension_added, gui, *args)

    return listener


class TestImmediateExtraction:
    @pytest.mark.asyncio
    async def test_bound_listener(self, vm, gui, blocks, settings):
        vm.on(SLOT, gui.handle_extension_added)
        trap = BlockEditorTrap(vm, settings)

        assert await trap.get() is blocks
        assert trap.state == TrapState.RESOLVED
        assert trap.eager() is blocks

    @pytest.mark.asyncio
    async def test_forwarding_listener(self, vm, gui, blocks, settings):
        vm.on(SLOT, forwarding_listener(vm, gui))
        trap = BlockEditorTrap(vm, settings)

        assert await trap.get() is blocks
        # the listener never really ran
        assert gui.added == []

    @pytest.mark.asyncio
    async def test_forwarder_restored(self, vm, gui, settings):
        vm.on(SLOT, forwarding_listener(vm, gui))
        await BlockEditorTrap(vm, settings).get()

        assert vm.forward(lambda this, x: x * 2, None, 21) == 42

    def test_forwarder_not_copied_onto_instance(self, vm, gui, blocks, settings):
        vm.on(SLOT, forwarding_listener(vm, gui))
        assert "forward" not in vars(vm)

        assert BlockEditorTrap(vm, settings).extract() is blocks
        assert "forward" not in vars(vm)
        assert vm.forward.__func__ is type(vm).forward

    def test_forwarder_restored_when_listener_fails(self, vm, settings):
        def listener():
            vm.forward(len, None)
            raise RuntimeError("boom")

        vm.on(SLOT, listener)
        trap = BlockEditorTrap(vm, settings)

        assert trap.extract() is None
        assert vm.forward(lambda this, x: x, None, 3) == 3

    @pytest.mark.asyncio
    async def test_skips_unrelated_listeners(self, vm, gui, blocks, settings):
        vm.on(SLOT, lambda *args: None)
        vm.on(SLOT, gui.handle_extension_added)

        assert await BlockEditorTrap(vm, settings).get() is blocks

    def test_eager_is_none_before_resolution(self, vm, settings):
        trap = BlockEditorTrap(vm, settings)
        assert trap.eager() is None
        assert trap.state == TrapState.UNRESOLVED

    @pytest.mark.asyncio
    async def test_vm_without_event_table(self, settings):
        with pytest.raises(TypeError):
            await BlockEditorTrap(object(), settings).get()


class TestDeferredResolution:
    @pytest.mark.asyncio
    async def test_resolves_only_after_event_registered(self, vm, gui, blocks, settings):
        trap = BlockEditorTrap(vm, settings)
        task = asyncio.create_task(trap.get())
        await asyncio.sleep(0)

        assert not task.done()
        assert trap.intercepting

        vm.on(SLOT, gui.handle_extension_added)
        assert await task is blocks
        assert not trap.intercepting
        assert type(vm._events) is dict
        assert vm._events[SLOT] == gui.handle_extension_added

    @pytest.mark.asyncio
    async def test_second_requester_shares_interception(self, vm, gui, blocks, settings):
        trap = BlockEditorTrap(vm, settings)

        with patch("eureka.trap.blocks.SlotInterceptor", wraps=SlotInterceptor) as spy:
            first = asyncio.create_task(trap.get())
            second = asyncio.create_task(trap.get())
            await asyncio.sleep(0)

            vm.on(SLOT, gui.handle_extension_added)
            assert await first is blocks
            assert await second is blocks

            assert await trap.get() is blocks
            assert spy.call_count == 1

    @pytest.mark.asyncio
    async def test_unrelated_listener_keeps_waiting(self, vm, gui, blocks, settings):
        trap = BlockEditorTrap(vm, settings)
        task = asyncio.create_task(trap.get())
        await asyncio.sleep(0)

        vm.on(SLOT, lambda *args: None)
        await asyncio.sleep(0)
        assert not task.done()
        assert trap.intercepting

        # the host replaces the slot with both listeners
        vm._events[SLOT] = [vm._events[SLOT], gui.handle_extension_added]
        assert await task is blocks

    @pytest.mark.asyncio
    async def test_reset_disarms(self, vm, settings):
        trap = BlockEditorTrap(vm, settings)
        task = asyncio.create_task(trap.get())
        await asyncio.sleep(0)

        trap.reset()
        assert not trap.intercepting
        assert type(vm._events) is dict
        with pytest.raises(asyncio.CancelledError):
            await task

    @pytest.mark.asyncio
    async def test_reset_forgets_cache(self, vm, gui, settings):
        vm.on(SLOT, gui.handle_extension_added)
        trap = BlockEditorTrap(vm, settings)
        await trap.get()

        trap.reset()
        assert trap.eager() is None
