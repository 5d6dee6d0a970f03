from __future__ import annotations

from typing import Any

import structlog
from google.cloud import compute_v1

from cloudasset.modules.inventory.adapters.gcp.context import (
    COMPUTE_API_BASE,
    GCPContext,
    enum_name,
    instance_summary,
    iter_aggregated,
)
from cloudasset.modules.inventory.domain.correlation import (
    KIND_CLUSTER,
    ComputeInstanceSummary,
    host_children,
    match_node_pool_members,
    network_parents,
    normalize_location,
    resolve_link_id,
)
from cloudasset.modules.inventory.domain.plugin import AssetCollectorPlugin
from cloudasset.modules.inventory.domain.registry import registry
from cloudasset.shared.assets import publish as asset
from cloudasset.shared.assets.record import CloudProvider
from cloudasset.shared.core.async_utils import run_blocking

logger = structlog.get_logger()

# Clusters in every location of the project
ALL_LOCATIONS = "-"


@registry.register("gcp")
class GKEClustersPlugin(AssetCollectorPlugin):
    """
    GKE clusters, parented to their VPC network. Children are the compute
    instances labelled with one of the cluster's node pools.
    """

    @property
    def asset_type(self) -> str:
        return "k8s.cluster"

    async def collect(self, context: GCPContext) -> int:
        parent = f"projects/{context.project}/locations/{ALL_LOCATIONS}"
        response = await run_blocking(context.cluster_client.list_clusters, parent=parent)

        count = 0
        for cluster in response.clusters:
            if not cluster.id:
                self._skip_item("missing_cluster_id", project=context.project)
                continue
            region = normalize_location(cluster.location)
            if not context.wants_region(region):
                continue
            await self._publish_cluster(context, cluster, region)
            count += 1
        return count

    async def _publish_cluster(self, context: GCPContext, cluster: Any, region: str) -> None:
        network = cluster.network_config.network if cluster.network_config else ""
        vpc_link = COMPUTE_API_BASE + network if network else None
        vpc_id = resolve_link_id(context.caches.vpcs, vpc_link)

        children: list[str] = []
        node_pools = [pool.name for pool in cluster.node_pools]
        try:
            instances = await self._candidate_instances(context, region)
            children = host_children(match_node_pool_members(instances, region, node_pools))
        except Exception as e:
            logger.warning(
                "gke_node_pool_lookup_failed",
                cluster=cluster.name,
                project=context.project,
                region=region,
                error=str(e),
            )

        options = [
            asset.with_cloud_provider(CloudProvider.GCP),
            asset.with_region(region),
            asset.with_account_id(context.project),
            asset.with_kind_and_id(KIND_CLUSTER, str(cluster.id)),
            asset.with_type(self.asset_type),
            asset.with_name(cluster.name),
            asset.with_labels(dict(cluster.resource_labels)),
            asset.with_metadata({"state": enum_name(cluster.status)}),
            asset.with_index(self.asset_type, context.index_namespace),
        ]
        parents = network_parents([vpc_id])
        if parents:
            options.append(asset.with_parents(parents))
        if children:
            options.append(asset.with_children(children))
        asset.publish(context.publisher, *options)

    async def _candidate_instances(
        self, context: GCPContext, region: str
    ) -> list[ComputeInstanceSummary]:
        """Cached instances when the compute collector has filled the cache, else a zone-filtered listing."""
        cached = context.caches.instances.values()
        if cached:
            return [i for i in cached if i.region == region]

        request = compute_v1.AggregatedListInstancesRequest(
            project=context.project, filter=f"zone eq .*{region}.*"
        )
        pages = await run_blocking(
            lambda: list(context.instances_client.aggregated_list(request=request))
        )
        return [
            instance_summary(instance, context.project)
            for instance in iter_aggregated(pages, "instances")
            if instance.id
        ]
