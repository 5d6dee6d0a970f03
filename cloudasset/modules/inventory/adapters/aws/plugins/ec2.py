from __future__ import annotations

from typing import Any

from cloudasset.modules.inventory.adapters.aws.context import (
    AWSContext,
    name_from_tags,
    tags_to_dict,
)
from cloudasset.modules.inventory.domain.correlation import KIND_HOST, network_parents
from cloudasset.modules.inventory.domain.plugin import AssetCollectorPlugin
from cloudasset.modules.inventory.domain.registry import registry
from cloudasset.shared.assets import publish as asset
from cloudasset.shared.assets.record import CloudProvider


@registry.register("aws")
class EC2InstancesPlugin(AssetCollectorPlugin):
    @property
    def asset_type(self) -> str:
        return "aws.ec2.instance"

    async def collect(self, context: AWSContext) -> int:
        count = 0
        async with context.client("ec2") as ec2:
            paginator = ec2.get_paginator("describe_instances")
            async for page in paginator.paginate():
                for reservation in page.get("Reservations", []):
                    owner_id = reservation.get("OwnerId", "")
                    for instance in reservation.get("Instances", []):
                        if self._publish_instance(context, owner_id, instance):
                            count += 1
        return count

    def _publish_instance(
        self, context: AWSContext, owner_id: str, instance: dict[str, Any]
    ) -> bool:
        instance_id = instance.get("InstanceId")
        if not instance_id:
            self._skip_item("missing_instance_id", region=context.region)
            return False

        tags = tags_to_dict(instance.get("Tags"))
        options = [
            asset.with_cloud_provider(CloudProvider.AWS),
            asset.with_region(context.region),
            asset.with_account_id(owner_id),
            asset.with_kind_and_id(KIND_HOST, instance_id),
            asset.with_type(self.asset_type),
            asset.with_tags(tags),
            asset.with_metadata({"state": instance.get("State", {}).get("Name", "")}),
            asset.with_index(self.asset_type, context.index_namespace),
        ]
        name = name_from_tags(tags)
        if name:
            options.append(asset.with_name(name))
        parents = network_parents([instance.get("SubnetId")])
        if parents:
            options.append(asset.with_parents(parents))

        asset.publish(context.publisher, *options)
        return True
