from __future__ import annotations

import structlog

from cloudasset.modules.inventory.adapters.kubernetes.context import KubernetesContext
from cloudasset.modules.inventory.domain.correlation import KIND_CONTAINER_GROUP, KIND_HOST
from cloudasset.modules.inventory.domain.plugin import AssetCollectorPlugin
from cloudasset.modules.inventory.domain.registry import registry
from cloudasset.shared.assets import publish as asset
from cloudasset.shared.assets.record import make_ean

logger = structlog.get_logger()


@registry.register("kubernetes")
class PodsPlugin(AssetCollectorPlugin):
    """
    Pods, parented to the node they are scheduled on. The node is looked up
    in the node watcher's store, which may lag behind the pod watcher.
    """

    @property
    def asset_type(self) -> str:
        return "k8s.pod"

    async def collect(self, context: KubernetesContext) -> int:
        count = 0
        for pod in context.pod_watcher.items():
            uid = pod.metadata.uid
            if not uid:
                self._skip_item("missing_pod_uid", item_id=pod.metadata.name)
                continue

            parents: list[str] = []
            node_name = pod.spec.node_name if pod.spec else None
            node = context.node_watcher.get(node_name) if node_name else None
            if node is not None and node.metadata.uid:
                parents.append(make_ean(KIND_HOST, node.metadata.uid))
            else:
                logger.debug(
                    "pod_node_not_found",
                    pod=pod.metadata.name,
                    namespace=pod.metadata.namespace,
                    node=node_name,
                )

            start_time = pod.status.start_time if pod.status else None
            asset.publish(
                context.publisher,
                asset.with_kind_and_id(KIND_CONTAINER_GROUP, uid),
                asset.with_type(self.asset_type),
                asset.with_name(pod.metadata.name),
                asset.with_parents(parents),
                asset.with_pod_data(pod.metadata.name, uid, pod.metadata.namespace, start_time),
                asset.with_index(self.asset_type, context.index_namespace),
            )
            count += 1
        return count
