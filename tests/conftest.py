"""Shared fixtures: a headless host and small host-shaped fakes."""

from __future__ import annotations

import types
from typing import Any

import pytest

from eureka.cli.headless import HeadlessVM
from eureka.config import Settings


class FakeBlockEditor:
    """Stands in for the host's block-editor module."""


class Workspace:
    def __init__(self, blocks: Any):
        self.ScratchBlocks = blocks


class GuiComponent:
    """UI component owning the listener the host registers."""

    def __init__(self, blocks: Any):
        self.props = {"title": "blocks", "workspace": Workspace(blocks)}
        self.added: list[Any] = []

    def handle_extension_added(self, *args: Any) -> None:
        self.added.append(args)


class BasicStore:
    def __init__(self, reducer, state):
        self._reducer = reducer
        self._state = state

    def get_state(self):
        return self._state

    def dispatch(self, action):
        self._state = self._reducer(self._state, action)
        return action


def create_store(reducer, state, enhancer=None):
    if enhancer is not None:
        return enhancer(create_store)(reducer, state)
    return BasicStore(reducer, state)


def counter(state, action):
    if action.get("type") == "inc":
        return {**state, "count": state["count"] + 1}
    return state


@pytest.fixture
def settings():
    return Settings(_env_file=None)


@pytest.fixture
def vm():
    return HeadlessVM()


@pytest.fixture
def blocks():
    return FakeBlockEditor()


@pytest.fixture
def gui(blocks):
    return GuiComponent(blocks)


@pytest.fixture
def window():
    return types.ModuleType("window")
