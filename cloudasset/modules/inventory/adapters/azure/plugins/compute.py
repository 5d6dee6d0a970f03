from __future__ import annotations

from typing import Any

from cloudasset.modules.inventory.adapters.azure.context import (
    AzureContext,
    resource_group_from_id,
)
from cloudasset.modules.inventory.domain.correlation import KIND_HOST
from cloudasset.modules.inventory.domain.plugin import AssetCollectorPlugin
from cloudasset.modules.inventory.domain.registry import registry
from cloudasset.shared.assets import publish as asset
from cloudasset.shared.assets.record import CloudProvider


def power_state(vm: Any) -> str:
    """
    Display status of the power state. The instance view lists the
    provisioning state first and the power state second.
    """
    instance_view = getattr(vm, "instance_view", None)
    statuses = getattr(instance_view, "statuses", None) or []
    if len(statuses) > 1:
        return statuses[1].display_status or ""
    return ""


@registry.register("azure")
class VirtualMachinesPlugin(AssetCollectorPlugin):
    @property
    def asset_type(self) -> str:
        return "azure.vm.instance"

    async def collect(self, context: AzureContext) -> int:
        count = 0
        # status_only populates the instance view without a call per VM
        async for vm in context.compute_client.virtual_machines.list_all(status_only="true"):
            if not context.wants_region(vm.location):
                continue
            resource_group = resource_group_from_id(vm.id)
            if not context.wants_resource_group(resource_group):
                continue
            if not vm.vm_id:
                self._skip_item("missing_vm_id", item_id=vm.id, subscription=context.subscription_id)
                continue

            asset.publish(
                context.publisher,
                asset.with_cloud_provider(CloudProvider.AZURE),
                asset.with_region(vm.location),
                asset.with_account_id(context.subscription_id),
                asset.with_kind_and_id(KIND_HOST, vm.vm_id),
                asset.with_type(self.asset_type),
                asset.with_name(vm.name),
                asset.with_tags(vm.tags),
                asset.with_metadata({"state": power_state(vm), "resource_group": resource_group}),
                asset.with_index(self.asset_type, context.index_namespace),
            )
            count += 1
        return count
