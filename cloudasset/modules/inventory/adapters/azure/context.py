from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Optional

from cloudasset.modules.inventory.domain.plugin import CollectionContext


@dataclass(kw_only=True)
class AzureContext(CollectionContext):
    """One Azure subscription."""

    subscription_id: str
    compute_client: Any
    regions: list[str] = field(default_factory=list)
    resource_group: Optional[str] = None

    def wants_region(self, region: str) -> bool:
        return not self.regions or region in self.regions

    def wants_resource_group(self, resource_group: str) -> bool:
        if not self.resource_group:
            return True
        return resource_group.lower() == self.resource_group.lower()


def resource_group_from_id(resource_id: Optional[str]) -> str:
    """``/subscriptions/<s>/resourceGroups/<rg>/providers/...`` -> ``<rg>``."""
    parts = (resource_id or "").split("/")
    return parts[4] if len(parts) > 4 else ""
