from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Optional

from cloudasset.modules.inventory.adapters.kubernetes.metadata import GKEMetadataClient
from cloudasset.modules.inventory.adapters.kubernetes.watchers import ResourceWatcher
from cloudasset.modules.inventory.domain.plugin import CollectionContext


@dataclass(kw_only=True)
class KubernetesContext(CollectionContext):
    """The cluster the collector is connected to."""

    node_watcher: ResourceWatcher[Any]
    pod_watcher: ResourceWatcher[Any]
    in_cluster: bool = False
    metadata_client: Optional[GKEMetadataClient] = None
