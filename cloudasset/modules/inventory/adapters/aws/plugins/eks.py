from __future__ import annotations

import asyncio
from typing import Any

import structlog

from cloudasset.modules.inventory.adapters.aws.context import AWSContext, account_from_arn
from cloudasset.modules.inventory.domain.correlation import (
    KIND_CLUSTER,
    host_children,
    network_parents,
)
from cloudasset.modules.inventory.domain.plugin import AssetCollectorPlugin
from cloudasset.modules.inventory.domain.registry import registry
from cloudasset.shared.assets import publish as asset
from cloudasset.shared.assets.record import CloudProvider

logger = structlog.get_logger()


@registry.register("aws")
class EKSClustersPlugin(AssetCollectorPlugin):
    """
    EKS clusters, parented to their VPC. Children are the EC2 instances of
    the cluster's managed node groups, found through their auto-scaling groups.
    """

    @property
    def asset_type(self) -> str:
        return "k8s.cluster"

    async def collect(self, context: AWSContext) -> int:
        async with context.client("eks") as eks, context.client("autoscaling") as autoscaling:
            names: list[str] = []
            paginator = eks.get_paginator("list_clusters")
            async for page in paginator.paginate():
                names.extend(page.get("clusters", []))

            results = await asyncio.gather(
                *(self._collect_cluster(context, eks, autoscaling, name) for name in names),
                return_exceptions=True,
            )

        count = 0
        for name, result in zip(names, results):
            if isinstance(result, BaseException):
                if isinstance(result, asyncio.CancelledError):
                    raise result
                self._skip_item(
                    "describe_cluster_failed",
                    item_id=name,
                    region=context.region,
                    error=str(result),
                )
                continue
            count += 1
        return count

    async def _collect_cluster(
        self, context: AWSContext, eks: Any, autoscaling: Any, name: str
    ) -> None:
        response = await eks.describe_cluster(name=name)
        cluster = response.get("cluster", {})
        arn = cluster.get("arn") or name

        children: list[str] = []
        try:
            children = host_children(await self._node_group_instances(eks, autoscaling, name))
        except Exception as e:
            logger.warning(
                "eks_node_group_lookup_failed",
                cluster=name,
                region=context.region,
                error=str(e),
            )

        options = [
            asset.with_cloud_provider(CloudProvider.AWS),
            asset.with_region(context.region),
            asset.with_account_id(account_from_arn(arn)),
            asset.with_kind_and_id(KIND_CLUSTER, arn),
            asset.with_type(self.asset_type),
            asset.with_name(cluster.get("name") or name),
            asset.with_tags(cluster.get("tags")),
            asset.with_metadata({"status": cluster.get("status", "")}),
            asset.with_index(self.asset_type, context.index_namespace),
        ]
        parents = network_parents([cluster.get("resourcesVpcConfig", {}).get("vpcId")])
        if parents:
            options.append(asset.with_parents(parents))
        if children:
            options.append(asset.with_children(children))

        asset.publish(context.publisher, *options)

    async def _node_group_instances(self, eks: Any, autoscaling: Any, cluster_name: str) -> list[str]:
        """Instance ids across every node group of the cluster, in node group order."""
        asg_names: list[str] = []
        paginator = eks.get_paginator("list_nodegroups")
        async for page in paginator.paginate(clusterName=cluster_name):
            for node_group in page.get("nodegroups", []):
                response = await eks.describe_nodegroup(
                    clusterName=cluster_name, nodegroupName=node_group
                )
                resources = response.get("nodegroup", {}).get("resources", {})
                asg_names.extend(
                    g["name"] for g in resources.get("autoScalingGroups", []) if g.get("name")
                )

        if not asg_names:
            return []

        instance_ids: list[str] = []
        paginator = autoscaling.get_paginator("describe_auto_scaling_groups")
        async for page in paginator.paginate(AutoScalingGroupNames=asg_names):
            for group in page.get("AutoScalingGroups", []):
                instance_ids.extend(
                    i["InstanceId"] for i in group.get("Instances", []) if i.get("InstanceId")
                )
        return instance_ids
