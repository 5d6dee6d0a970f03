from typing import Any
from unittest.mock import AsyncMock, MagicMock

import pytest

from cloudasset.modules.inventory.adapters.aws.collector import AWSCollector
from cloudasset.modules.inventory.adapters.aws.context import (
    AWSContext,
    account_from_arn,
    tags_to_dict,
)
from cloudasset.modules.inventory.adapters.aws.plugins.ec2 import EC2InstancesPlugin
from cloudasset.modules.inventory.adapters.aws.plugins.eks import EKSClustersPlugin
from cloudasset.modules.inventory.adapters.aws.plugins.network import SubnetsPlugin, VpcsPlugin
from cloudasset.shared.core.config import AWSSettings
from tests.utils import AsyncContextManagerMock, AsyncIteratorMock, InMemoryPublisher


def _paginators(
    client: MagicMock, pages: dict[str, list[dict[str, Any]]]
) -> dict[str, MagicMock]:
    paginators = {}
    for name, name_pages in pages.items():
        paginator = MagicMock()
        paginator.paginate.side_effect = lambda _pages=name_pages, **kwargs: AsyncIteratorMock(_pages)
        paginators[name] = paginator
    client.get_paginator.side_effect = lambda name: paginators[name]
    return paginators


def _context(publisher: InMemoryPublisher, clients: dict[str, MagicMock]) -> AWSContext:
    session = MagicMock()
    session.client.side_effect = lambda service, **kwargs: AsyncContextManagerMock(clients[service])
    return AWSContext(
        publisher=publisher,
        session=session,
        region="eu-west-1",
        index_namespace="test",
    )


@pytest.mark.asyncio
async def test_ec2_instance_scenario():
    publisher = InMemoryPublisher()
    ec2 = MagicMock()
    _paginators(
        ec2,
        {
            "describe_instances": [
                {
                    "Reservations": [
                        {
                            "OwnerId": "111",
                            "Instances": [
                                {
                                    "InstanceId": "i-1",
                                    "SubnetId": "subnet-1",
                                    "Tags": [{"Key": "team", "Value": "x"}],
                                    "State": {"Name": "running"},
                                },
                                {"InstanceId": "i-2", "State": {"Name": "stopped"}},
                            ],
                        }
                    ]
                },
                {"Reservations": [{"OwnerId": "111", "Instances": [{"State": {}}]}]},
            ]
        },
    )

    count = await EC2InstancesPlugin().collect(_context(publisher, {"ec2": ec2}))

    assert count == 2
    first = publisher.by_id("i-1")
    assert first.ean == "host:i-1"
    assert first.cloud_provider == "aws"
    assert first.region == "eu-west-1"
    assert first.account_id == "111"
    assert first.parents == ("network:subnet-1",)
    assert first.metadata["tags.team"] == "x"
    assert first.metadata["state"] == "running"
    assert first.destination == "assets-aws.ec2.instance-test"

    second = publisher.by_id("i-2")
    assert second.parents is None
    assert second.metadata["state"] == "stopped"


@pytest.mark.asyncio
async def test_vpcs_and_subnets():
    publisher = InMemoryPublisher()
    ec2 = MagicMock()
    _paginators(
        ec2,
        {
            "describe_vpcs": [
                {
                    "Vpcs": [
                        {
                            "VpcId": "vpc-1",
                            "OwnerId": "111",
                            "IsDefault": True,
                            "Tags": [{"Key": "Name", "Value": "main"}],
                        }
                    ]
                }
            ],
            "describe_subnets": [
                {
                    "Subnets": [
                        {"SubnetId": "subnet-1", "VpcId": "vpc-1", "OwnerId": "111", "State": "available"}
                    ]
                }
            ],
        },
    )
    context = _context(publisher, {"ec2": ec2})

    assert await VpcsPlugin().collect(context) == 1
    assert await SubnetsPlugin().collect(context) == 1

    vpc = publisher.by_id("vpc-1")
    assert vpc.type == "aws.vpc"
    assert vpc.ean == "network:vpc-1"
    assert vpc.name == "main"
    assert vpc.metadata["isDefault"] is True

    subnet = publisher.by_id("subnet-1")
    assert subnet.type == "aws.subnet"
    assert subnet.parents == ("network:vpc-1",)
    assert subnet.metadata["state"] == "available"


def _eks_clients(describe_cluster: AsyncMock) -> tuple[MagicMock, MagicMock]:
    eks = MagicMock()
    _paginators(
        eks,
        {
            "list_clusters": [{"clusters": ["c1"]}],
            "list_nodegroups": [{"nodegroups": ["ng-1", "ng-2"]}],
        },
    )
    eks.describe_cluster = describe_cluster

    async def describe_nodegroup(clusterName: str, nodegroupName: str) -> dict[str, Any]:
        return {
            "nodegroup": {
                "resources": {"autoScalingGroups": [{"name": f"asg-{nodegroupName}"}]}
            }
        }

    eks.describe_nodegroup = AsyncMock(side_effect=describe_nodegroup)

    autoscaling = MagicMock()
    autoscaling.paginators = _paginators(
        autoscaling,
        {
            "describe_auto_scaling_groups": [
                {
                    "AutoScalingGroups": [
                        {"Instances": [{"InstanceId": "i-1"}]},
                        {"Instances": [{"InstanceId": "i-2"}, {"InstanceId": "i-3"}]},
                    ]
                }
            ]
        },
    )
    return eks, autoscaling


CLUSTER = {
    "cluster": {
        "name": "c1",
        "arn": "arn:aws:eks:eu-west-1:111:cluster/c1",
        "status": "ACTIVE",
        "resourcesVpcConfig": {"vpcId": "vpc-1"},
        "tags": {"team": "x"},
    }
}


@pytest.mark.asyncio
async def test_eks_cluster_children_accumulate_across_node_groups():
    publisher = InMemoryPublisher()
    eks, autoscaling = _eks_clients(AsyncMock(return_value=CLUSTER))
    context = _context(publisher, {"eks": eks, "autoscaling": autoscaling})

    assert await EKSClustersPlugin().collect(context) == 1

    cluster = publisher.by_id("arn:aws:eks:eu-west-1:111:cluster/c1")
    assert cluster.kind == "cluster"
    assert cluster.type == "k8s.cluster"
    assert cluster.account_id == "111"
    assert cluster.parents == ("network:vpc-1",)
    assert cluster.children == ("host:i-1", "host:i-2", "host:i-3")
    assert cluster.metadata["status"] == "ACTIVE"
    assert cluster.metadata["tags.team"] == "x"
    autoscaling.paginators["describe_auto_scaling_groups"].paginate.assert_called_once_with(
        AutoScalingGroupNames=["asg-ng-1", "asg-ng-2"]
    )


@pytest.mark.asyncio
async def test_eks_node_group_failure_publishes_cluster_without_children():
    publisher = InMemoryPublisher()
    eks, autoscaling = _eks_clients(AsyncMock(return_value=CLUSTER))
    eks.describe_nodegroup = AsyncMock(side_effect=RuntimeError("AccessDenied"))
    context = _context(publisher, {"eks": eks, "autoscaling": autoscaling})

    assert await EKSClustersPlugin().collect(context) == 1

    cluster = publisher.records[0]
    assert cluster.children is None
    assert cluster.parents == ("network:vpc-1",)


@pytest.mark.asyncio
async def test_eks_describe_failure_skips_only_that_cluster():
    publisher = InMemoryPublisher()
    eks, autoscaling = _eks_clients(AsyncMock(side_effect=RuntimeError("throttled")))
    context = _context(publisher, {"eks": eks, "autoscaling": autoscaling})

    assert await EKSClustersPlugin().collect(context) == 0
    assert publisher.records == []


def test_aws_helpers():
    assert tags_to_dict([{"Key": "a", "Value": "1"}, {"Value": "orphan"}]) == {"a": "1"}
    assert tags_to_dict(None) == {}
    assert account_from_arn("arn:aws:eks:eu-west-1:111:cluster/c1") == "111"
    assert account_from_arn("not-an-arn") == ""


def test_context_client_uses_region_and_endpoint():
    session = MagicMock()
    context = AWSContext(
        publisher=InMemoryPublisher(),
        session=session,
        region="us-east-1",
        endpoint_url="http://localhost:4566",
    )
    context.client("ec2")
    session.client.assert_called_once_with(
        "ec2", region_name="us-east-1", endpoint_url="http://localhost:4566"
    )


def test_collector_session_uses_static_keys_when_configured():
    assert AWSCollector._session_kwargs(AWSSettings()) == {}
    assert AWSCollector._session_kwargs(
        AWSSettings(access_key_id="AKIA", secret_access_key="secret", session_token="token")
    ) == {
        "aws_access_key_id": "AKIA",
        "aws_secret_access_key": "secret",
        "aws_session_token": "token",
    }


@pytest.mark.asyncio
async def test_collector_builds_one_context_per_region():
    collector = AWSCollector(
        AWSSettings(regions=["eu-west-1", "us-east-1"], endpoint_url="http://localhost:4566"),
        InMemoryPublisher(),
    )

    regions = await collector.targets()
    contexts = [collector._build_context(region) for region in regions]

    assert [c.region for c in contexts] == ["eu-west-1", "us-east-1"]
    assert contexts[0].endpoint_url == "http://localhost:4566"
    assert contexts[0].log_context == {"region": "eu-west-1"}
    assert {p.asset_type for p in collector.plugins} == {
        "aws.ec2.instance",
        "aws.vpc",
        "aws.subnet",
        "k8s.cluster",
    }
