"""
Process-scoped Eureka state.

One ``EurekaContext`` exists per attached host. It owns the block-editor
trap, the state-store trap, the extension registry and the loader, so that
every load context shares the same discovered handles and the same record
of declared ids.

Example:
    ctx = EurekaContext(vm, namespace=window, ui_nodes=document_nodes)
    ctx.attach()                      # before the host creates its store
    await ctx.loader.load("https://example.com/ext.py")
"""

from __future__ import annotations

import logging
from collections.abc import Callable, Iterable
from typing import Any

import httpx

from eureka.config import Settings, settings as default_settings
from eureka.extensions.loader import ExtensionLoader
from eureka.extensions.normalizer import MetadataNormalizer
from eureka.extensions.registry import ExtensionRegistry
from eureka.extensions.sdk import HostPlatform, HostVM
from eureka.trap.blocks import BlockEditorTrap
from eureka.trap.store import StoreTrap, find_store_in_tree

logger = logging.getLogger(__name__)


class EurekaContext:
    """Everything Eureka keeps for one host.

    Attributes:
        vm: The host VM.
        namespace: The host global namespace, if the store trap is wanted.
        settings: Effective configuration.
        blocks: Block-editor trap.
        store: State-store trap (None without a namespace).
        registry: Record of loaded extensions.
        loader: Extension loader.
    """

    def __init__(
        self,
        vm: HostVM,
        namespace: Any = None,
        platform: HostPlatform | None = None,
        settings: Settings | None = None,
        ui_nodes: Iterable[Any] | Callable[[], Iterable[Any]] | None = None,
        http_client: httpx.AsyncClient | None = None,
    ):
        self.vm = vm
        self.namespace = namespace
        self.settings = settings or default_settings
        self._ui_nodes = ui_nodes

        runtime = getattr(vm, "runtime", None)
        self.blocks = BlockEditorTrap(vm, self.settings)
        self.store = StoreTrap(namespace, self.settings) if namespace is not None else None
        self.registry = ExtensionRegistry(runtime, MetadataNormalizer(runtime))
        self.loader = ExtensionLoader(
            vm,
            self.registry,
            self.blocks,
            self.store,
            platform=platform,
            settings=self.settings,
            http_client=http_client,
        )

    def attach(self) -> None:
        """Install the store trap. Must run before the host builds its store."""
        if self.store is not None:
            self.store.install()
        logger.info("Eureka attached")

    def find_store(self) -> Any | None:
        """Return the store: trapped if possible, else searched in the UI tree."""
        if self.store is not None and self.store.resolved:
            return self.store.store
        if self._ui_nodes is None:
            return None
        nodes = self._ui_nodes() if callable(self._ui_nodes) else self._ui_nodes
        return find_store_in_tree(nodes, self.settings)

    def reset(self) -> None:
        """Disarm interceptors and drop cached handles."""
        self.blocks.reset()
        if self.store is not None:
            self.store.uninstall()

    @property
    def declared_ids(self) -> list[str]:
        return self.registry.declared_ids

    @property
    def id_to_origin(self) -> dict[str, str]:
        return self.registry.id_to_origin

    def __repr__(self) -> str:
        return f"<EurekaContext vm={type(self.vm).__name__} extensions={len(self.registry)}>"
