"""
GCP Compute Engine instances.

Besides publishing, every instance is written to the compute cache so that
GKE clusters can find their node-pool members without another listing.
"""

from __future__ import annotations

from typing import Any

from google.cloud import compute_v1

from cloudasset.modules.inventory.adapters.gcp.context import (
    GCPContext,
    enum_name,
    instance_summary,
    iter_aggregated,
)
from cloudasset.modules.inventory.domain.correlation import (
    KIND_HOST,
    network_parents,
    resolve_link_id,
)
from cloudasset.modules.inventory.domain.plugin import AssetCollectorPlugin
from cloudasset.modules.inventory.domain.registry import registry
from cloudasset.shared.assets import publish as asset
from cloudasset.shared.assets.record import CloudProvider
from cloudasset.shared.core.async_utils import run_blocking


@registry.register("gcp")
class ComputeInstancesPlugin(AssetCollectorPlugin):
    @property
    def asset_type(self) -> str:
        return "gcp.compute.instance"

    async def collect(self, context: GCPContext) -> int:
        request = compute_v1.AggregatedListInstancesRequest(project=context.project)
        pages = await run_blocking(
            lambda: list(context.instances_client.aggregated_list(request=request))
        )

        count = 0
        for instance in iter_aggregated(pages, "instances"):
            if not instance.id:
                self._skip_item("missing_instance_id", project=context.project)
                continue
            summary = instance_summary(instance, context.project)
            if not context.wants_region(summary.region):
                continue

            context.caches.instances.put(instance.self_link, summary, context.cache_ttl)
            self._publish_instance(context, instance, summary.id, summary.region)
            count += 1
        return count

    def _publish_instance(
        self, context: GCPContext, instance: Any, instance_id: str, region: str
    ) -> None:
        subnet_ids = [
            resolve_link_id(context.caches.subnets, ni.subnetwork)
            for ni in instance.network_interfaces
        ]
        options = [
            asset.with_cloud_provider(CloudProvider.GCP),
            asset.with_region(region),
            asset.with_account_id(context.project),
            asset.with_kind_and_id(KIND_HOST, instance_id),
            asset.with_type(self.asset_type),
            asset.with_name(instance.name),
            asset.with_labels(dict(instance.labels)),
            asset.with_metadata({"state": enum_name(instance.status)}),
            asset.with_index(self.asset_type, context.index_namespace),
        ]
        parents = network_parents(subnet_ids)
        if parents:
            options.append(asset.with_parents(parents))
        asset.publish(context.publisher, *options)
