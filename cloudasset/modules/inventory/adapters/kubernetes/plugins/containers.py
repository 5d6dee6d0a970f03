from __future__ import annotations

from datetime import datetime
from typing import Any, Optional

from cloudasset.modules.inventory.adapters.kubernetes.context import KubernetesContext
from cloudasset.modules.inventory.domain.correlation import KIND_CONTAINER, KIND_CONTAINER_GROUP
from cloudasset.modules.inventory.domain.plugin import AssetCollectorPlugin
from cloudasset.modules.inventory.domain.registry import registry
from cloudasset.shared.assets import publish as asset
from cloudasset.shared.assets.record import make_ean


def runtime_container_id(container_id: Optional[str]) -> str:
    """``containerd://abc`` -> ``abc``."""
    if not container_id:
        return ""
    return container_id.split("://", 1)[-1]


def container_state(status: Any) -> tuple[str, Optional[datetime]]:
    state = status.state
    if state is None:
        return "", None
    if state.waiting is not None:
        return "Waiting", None
    if state.running is not None:
        return "Running", state.running.started_at
    if state.terminated is not None:
        return "Terminated", state.terminated.started_at
    return "", None


def pod_container_statuses(pod: Any) -> list[Any]:
    status = pod.status
    if status is None:
        return []
    return [
        *(status.init_container_statuses or []),
        *(status.container_statuses or []),
        *(status.ephemeral_container_statuses or []),
    ]


@registry.register("kubernetes")
class ContainersPlugin(AssetCollectorPlugin):
    @property
    def asset_type(self) -> str:
        return "k8s.container"

    async def collect(self, context: KubernetesContext) -> int:
        count = 0
        for pod in context.pod_watcher.items():
            pod_uid = pod.metadata.uid
            if not pod_uid:
                continue
            parents = [make_ean(KIND_CONTAINER_GROUP, pod_uid)]
            for status in pod_container_statuses(pod):
                container_id = runtime_container_id(status.container_id)
                # No id means the container does not exist in the runtime yet
                if not container_id:
                    continue
                state, start_time = container_state(status)
                asset.publish(
                    context.publisher,
                    asset.with_kind_and_id(KIND_CONTAINER, container_id),
                    asset.with_type(self.asset_type),
                    asset.with_name(status.name),
                    asset.with_parents(parents),
                    asset.with_container_data(
                        status.name, container_id, pod.metadata.namespace, state, start_time
                    ),
                    asset.with_index(self.asset_type, context.index_namespace),
                )
                count += 1
        return count
