from __future__ import annotations

from typing import Any

from cloudasset.modules.inventory.adapters.aws.context import (
    AWSContext,
    name_from_tags,
    tags_to_dict,
)
from cloudasset.modules.inventory.domain.correlation import KIND_NETWORK, network_parents
from cloudasset.modules.inventory.domain.plugin import AssetCollectorPlugin
from cloudasset.modules.inventory.domain.registry import registry
from cloudasset.shared.assets import publish as asset
from cloudasset.shared.assets.record import CloudProvider


def _network_options(
    context: AWSContext,
    asset_type: str,
    asset_id: str,
    item: dict[str, Any],
) -> list[asset.AssetOption]:
    tags = tags_to_dict(item.get("Tags"))
    options = [
        asset.with_cloud_provider(CloudProvider.AWS),
        asset.with_region(context.region),
        asset.with_account_id(item.get("OwnerId", "")),
        asset.with_kind_and_id(KIND_NETWORK, asset_id),
        asset.with_type(asset_type),
        asset.with_tags(tags),
        asset.with_index(asset_type, context.index_namespace),
    ]
    name = name_from_tags(tags)
    if name:
        options.append(asset.with_name(name))
    return options


@registry.register("aws")
class VpcsPlugin(AssetCollectorPlugin):
    @property
    def asset_type(self) -> str:
        return "aws.vpc"

    async def collect(self, context: AWSContext) -> int:
        count = 0
        async with context.client("ec2") as ec2:
            paginator = ec2.get_paginator("describe_vpcs")
            async for page in paginator.paginate():
                for vpc in page.get("Vpcs", []):
                    vpc_id = vpc.get("VpcId")
                    if not vpc_id:
                        self._skip_item("missing_vpc_id", region=context.region)
                        continue
                    asset.publish(
                        context.publisher,
                        *_network_options(context, self.asset_type, vpc_id, vpc),
                        asset.with_metadata({"isDefault": bool(vpc.get("IsDefault", False))}),
                    )
                    count += 1
        return count


@registry.register("aws")
class SubnetsPlugin(AssetCollectorPlugin):
    @property
    def asset_type(self) -> str:
        return "aws.subnet"

    async def collect(self, context: AWSContext) -> int:
        count = 0
        async with context.client("ec2") as ec2:
            paginator = ec2.get_paginator("describe_subnets")
            async for page in paginator.paginate():
                for subnet in page.get("Subnets", []):
                    subnet_id = subnet.get("SubnetId")
                    if not subnet_id:
                        self._skip_item("missing_subnet_id", region=context.region)
                        continue
                    options = _network_options(context, self.asset_type, subnet_id, subnet)
                    options.append(asset.with_metadata({"state": subnet.get("State", "")}))
                    parents = network_parents([subnet.get("VpcId")])
                    if parents:
                        options.append(asset.with_parents(parents))
                    asset.publish(context.publisher, *options)
                    count += 1
        return count
