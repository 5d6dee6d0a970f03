from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

from cloudasset.modules.inventory.domain.correlation import (
    ComputeInstanceSummary,
    NetworkSummary,
    get_region_from_zone_url,
)
from cloudasset.modules.inventory.domain.plugin import CollectionContext
from cloudasset.shared.core.cache import LinkCache

# Cluster network references are relative to this base; selfLinks are absolute
COMPUTE_API_BASE = "https://www.googleapis.com/compute/v1/"


@dataclass
class GCPCaches:
    """Cross-reference caches shared by every GCP plugin of one collector."""

    vpcs: LinkCache[NetworkSummary]
    subnets: LinkCache[NetworkSummary]
    instances: LinkCache[ComputeInstanceSummary]


@dataclass(kw_only=True)
class GCPContext(CollectionContext):
    """One GCP project."""

    project: str
    instances_client: Any
    networks_client: Any
    subnetworks_client: Any
    cluster_client: Any
    caches: GCPCaches
    regions: list[str] = field(default_factory=list)

    def wants_region(self, region: str) -> bool:
        return not self.regions or region in self.regions


def enum_name(value: Any) -> str:
    """Proto enums render by name; plain strings pass through."""
    return getattr(value, "name", None) or str(value or "")


def metadata_items(instance: Any) -> tuple[tuple[str, str], ...]:
    metadata = getattr(instance, "metadata", None)
    items = getattr(metadata, "items", None) or []
    return tuple((item.key, item.value) for item in items)


def instance_summary(instance: Any, project: str) -> ComputeInstanceSummary:
    return ComputeInstanceSummary(
        id=str(instance.id),
        region=get_region_from_zone_url(instance.zone),
        account=project,
        raw_metadata=metadata_items(instance),
    )


def iter_aggregated(pages: Any, attribute: str) -> list[Any]:
    """Flatten an aggregated listing (scope -> scoped list) into its items."""
    items: list[Any] = []
    for _scope, scoped_list in pages:
        items.extend(getattr(scoped_list, attribute, None) or [])
    return items
