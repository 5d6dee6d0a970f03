from __future__ import annotations

from collections.abc import Callable, Mapping
from dataclasses import dataclass, field
from typing import Any

from cloudasset.modules.inventory.adapters.hostdata.host_info import get_net_info
from cloudasset.modules.inventory.domain.plugin import CollectionContext


@dataclass(kw_only=True)
class HostdataContext(CollectionContext):
    """The machine the collector runs on."""

    host_info: Mapping[str, Any] = field(default_factory=dict)
    net_info: Callable[[], tuple[list[str], list[str]]] = get_net_info
