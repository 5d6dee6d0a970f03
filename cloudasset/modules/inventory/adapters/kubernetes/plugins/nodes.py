from __future__ import annotations

from typing import Any, Optional

from cloudasset.modules.inventory.adapters.kubernetes.context import KubernetesContext
from cloudasset.modules.inventory.adapters.kubernetes.metadata import (
    CSP_GCP,
    get_csp_from_provider_id,
    get_instance_id,
)
from cloudasset.modules.inventory.domain.correlation import KIND_CLUSTER, KIND_HOST
from cloudasset.modules.inventory.domain.plugin import AssetCollectorPlugin
from cloudasset.modules.inventory.domain.registry import registry
from cloudasset.shared.assets import publish as asset
from cloudasset.shared.assets.record import make_ean


def node_state(node: Any) -> str:
    """``Ready``, ``NotReady`` or ``Unknown`` from the node's Ready condition."""
    for condition in getattr(node.status, "conditions", None) or []:
        if condition.type == "Ready":
            if condition.status == "True":
                return "Ready"
            if condition.status == "False":
                return "NotReady"
            return "Unknown"
    return "Unknown"


@registry.register("kubernetes")
class NodesPlugin(AssetCollectorPlugin):
    @property
    def asset_type(self) -> str:
        return "k8s.node"

    async def collect(self, context: KubernetesContext) -> int:
        nodes = context.node_watcher.items()
        parents = await self._cluster_parents(context, nodes)

        count = 0
        for node in nodes:
            uid = node.metadata.uid
            if not uid:
                self._skip_item("missing_node_uid", item_id=node.metadata.name)
                continue
            options = [
                asset.with_kind_and_id(KIND_HOST, uid),
                asset.with_type(self.asset_type),
                asset.with_name(node.metadata.name),
                asset.with_metadata({"state": node_state(node)}),
                asset.with_node_data(node.metadata.name, node.metadata.creation_timestamp),
                asset.with_index(self.asset_type, context.index_namespace),
            ]
            instance_id = get_instance_id(node)
            if instance_id:
                options.append(asset.with_cloud_instance_id(instance_id))
            if parents:
                options.append(asset.with_parents(parents))
            asset.publish(context.publisher, *options)
            count += 1
        return count

    async def _cluster_parents(self, context: KubernetesContext, nodes: list[Any]) -> list[str]:
        """In-cluster on GKE, nodes are parented to the cluster from the metadata server."""
        if not context.in_cluster or not nodes or context.metadata_client is None:
            return []
        if get_csp_from_provider_id(nodes[0].spec.provider_id) != CSP_GCP:
            return []
        cluster_uid: Optional[str] = await context.metadata_client.get_cluster_uid()
        if not cluster_uid:
            return []
        return [make_ean(KIND_CLUSTER, cluster_uid)]
