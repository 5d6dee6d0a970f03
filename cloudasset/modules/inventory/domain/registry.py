from __future__ import annotations

from collections import defaultdict
from collections.abc import Callable
from typing import TypeVar

import structlog

from cloudasset.modules.inventory.domain.plugin import AssetCollectorPlugin

logger = structlog.get_logger()

P = TypeVar("P", bound=type[AssetCollectorPlugin])


class PluginRegistry:
    """Maps a provider name to the collector plugin classes registered for it."""

    def __init__(self) -> None:
        self._plugins: dict[str, list[type[AssetCollectorPlugin]]] = defaultdict(list)

    def register(self, provider: str) -> Callable[[P], P]:
        def decorator(plugin_cls: P) -> P:
            if plugin_cls not in self._plugins[provider]:
                self._plugins[provider].append(plugin_cls)
            return plugin_cls

        return decorator

    def get_plugins_for_provider(self, provider: str) -> list[AssetCollectorPlugin]:
        """Fresh plugin instances, in registration order."""
        return [plugin_cls() for plugin_cls in self._plugins.get(provider, [])]

    def providers(self) -> list[str]:
        return sorted(p for p, plugins in self._plugins.items() if plugins)


registry = PluginRegistry()
