"""
Cross-resource correlation.

Helpers that turn provider references (links, label blobs, node-pool names)
into parent/child EANs. A reference that cannot be resolved yields no edge;
it is never an error and never produces an empty EAN.
"""

from __future__ import annotations

from collections.abc import Iterable, Sequence
from dataclasses import dataclass, field
from typing import Optional, Protocol

import structlog

from cloudasset.shared.assets.record import make_ean
from cloudasset.shared.core.cache import LinkCache

logger = structlog.get_logger()

KIND_HOST = "host"
KIND_NETWORK = "network"
KIND_CLUSTER = "cluster"
KIND_CONTAINER_GROUP = "container_group"
KIND_CONTAINER = "container"

KUBE_LABELS_KEY = "kube-labels"
GKE_NODEPOOL_LABEL = "cloud.google.com/gke-nodepool"


class HasId(Protocol):
    id: str


@dataclass(frozen=True)
class NetworkSummary:
    """Cached view of a VPC or subnet."""

    id: str
    name: str = ""
    account: str = ""
    region: str = ""


@dataclass(frozen=True)
class ComputeInstanceSummary:
    """Cached view of a compute instance, enough to test node-pool membership."""

    id: str
    region: str = ""
    account: str = ""
    # Instance metadata items, in API order
    raw_metadata: tuple[tuple[str, str], ...] = field(default_factory=tuple)


def resolve_link_id(cache: LinkCache[HasId], link: Optional[str]) -> Optional[str]:
    if not link:
        return None
    summary = cache.get(link)
    if summary is None:
        logger.debug("link_not_resolved", cache=cache.name, link=link)
        return None
    return summary.id or None


def eans(kind: str, ids: Iterable[Optional[str]]) -> list[str]:
    """EANs for every non-empty id, in order."""
    return [make_ean(kind, i) for i in ids if i]


def network_parents(ids: Iterable[Optional[str]]) -> list[str]:
    return eans(KIND_NETWORK, ids)


def host_children(ids: Iterable[Optional[str]]) -> list[str]:
    return eans(KIND_HOST, ids)


def parse_label_blob(value: Optional[str]) -> dict[str, str]:
    """Parse ``k1=v1,k2=v2``; entries without ``=`` are ignored."""
    labels: dict[str, str] = {}
    if not value:
        return labels
    for entry in value.split(","):
        key, sep, val = entry.partition("=")
        if sep:
            labels[key] = val
    return labels


def extract_kube_labels(items: Iterable[tuple[str, str]]) -> dict[str, str]:
    for key, value in items:
        if key == KUBE_LABELS_KEY:
            return parse_label_blob(value)
    return {}


def is_node_pool_member(
    raw_metadata: Iterable[tuple[str, str]], node_pools: Sequence[str]
) -> bool:
    pool = extract_kube_labels(raw_metadata).get(GKE_NODEPOOL_LABEL)
    return pool is not None and pool in node_pools


def match_node_pool_members(
    instances: Iterable[ComputeInstanceSummary],
    region: str,
    node_pools: Sequence[str],
) -> list[str]:
    """Ids of the instances in ``region`` that belong to one of ``node_pools``."""
    return [
        instance.id
        for instance in instances
        if instance.region == region
        and instance.id
        and is_node_pool_member(instance.raw_metadata, node_pools)
    ]


def get_resource_name_from_url(url: Optional[str]) -> str:
    """Last path segment of a GCP resource URL."""
    if not url:
        return ""
    return url.rstrip("/").rsplit("/", 1)[-1]


def get_region_from_zone(zone: str) -> str:
    """``europe-west1-b`` -> ``europe-west1``."""
    if "-" not in zone:
        return zone
    return zone.rsplit("-", 1)[0]


def get_region_from_zone_url(zone_url: Optional[str]) -> str:
    return get_region_from_zone(get_resource_name_from_url(zone_url))


def normalize_location(location: str) -> str:
    """
    Cluster locations are either regions or zones; zones end in a
    single-letter segment (``us-central1-c``).
    """
    head, sep, tail = location.rpartition("-")
    if sep and len(tail) == 1 and tail.isalpha():
        return head
    return location
