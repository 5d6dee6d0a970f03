"""
Asset options and the publish fold.

An ``AssetOption`` is a pure function from a record to a new record. Options
touching different fields commute; for the same field the last one supplied
wins. ``publish`` folds them left to right over a fresh record and hands the
result to the publisher exactly once.
"""

from __future__ import annotations

from collections.abc import Callable, Iterable, Mapping
from datetime import datetime
from typing import Any, Optional

from prometheus_client import Counter

from cloudasset.shared.assets.publisher import Publisher
from cloudasset.shared.assets.record import (
    AssetRecord,
    CloudProvider,
    flatten,
    freeze,
    make_ean,
)

AssetOption = Callable[[AssetRecord], AssetRecord]

ASSETS_PUBLISHED = Counter(
    "cloudasset_assets_published_total",
    "Total number of asset records handed to the publisher",
    ["asset_type"],
)

# Destination streams follow the type-dataset-namespace pattern
INDEX_TYPE = "assets"
INDEX_DEFAULT_NAMESPACE = "default"


def build(*options: AssetOption, base: Optional[AssetRecord] = None) -> AssetRecord:
    record = base if base is not None else AssetRecord()
    for option in options:
        record = option(record)
    return record


def publish(
    publisher: Publisher,
    *options: AssetOption,
    base: Optional[AssetRecord] = None,
) -> AssetRecord:
    """Build a record from ``options`` and publish it. No retries at this layer."""
    record = build(*options, base=base)
    publisher.publish(record)
    ASSETS_PUBLISHED.labels(asset_type=record.type or "unknown").inc()
    return record


def destination_for(asset_type: str, index_namespace: Optional[str] = None) -> str:
    namespace = index_namespace or INDEX_DEFAULT_NAMESPACE
    return f"{INDEX_TYPE}-{asset_type}-{namespace}"


def with_cloud_provider(value: CloudProvider | str) -> AssetOption:
    provider = CloudProvider(value).value

    def option(record: AssetRecord) -> AssetRecord:
        return record.model_copy(update={"cloud_provider": provider})

    return option


def with_region(value: str) -> AssetOption:
    def option(record: AssetRecord) -> AssetRecord:
        return record.model_copy(update={"region": value})

    return option


def with_account_id(value: str) -> AssetOption:
    def option(record: AssetRecord) -> AssetRecord:
        return record.model_copy(update={"account_id": value})

    return option


def with_kind_and_id(kind: str, asset_id: str) -> AssetOption:
    def option(record: AssetRecord) -> AssetRecord:
        return record.model_copy(
            update={"kind": kind, "id": asset_id, "ean": make_ean(kind, asset_id)}
        )

    return option


def with_type(value: str) -> AssetOption:
    def option(record: AssetRecord) -> AssetRecord:
        return record.model_copy(update={"type": value})

    return option


def with_name(value: str) -> AssetOption:
    def option(record: AssetRecord) -> AssetRecord:
        return record.model_copy(update={"name": value})

    return option


def with_parents(value: Iterable[str]) -> AssetOption:
    parents = tuple(value)

    def option(record: AssetRecord) -> AssetRecord:
        return record.model_copy(update={"parents": parents})

    return option


def with_children(value: Iterable[str]) -> AssetOption:
    children = tuple(value)

    def option(record: AssetRecord) -> AssetRecord:
        return record.model_copy(update={"children": children})

    return option


def with_metadata(value: Mapping[str, Any]) -> AssetOption:
    """Merge ``value`` into the record metadata, flattened to dotted keys."""
    flattened = flatten(value)

    def option(record: AssetRecord) -> AssetRecord:
        return record.model_copy(update={"metadata": freeze({**record.metadata, **flattened})})

    return option


def with_tags(tags: Optional[Mapping[str, Any]]) -> AssetOption:
    """Provider tags (AWS, Azure) land under ``metadata.tags.*``."""
    return with_metadata({"tags": dict(tags or {})})


def with_labels(labels: Optional[Mapping[str, Any]]) -> AssetOption:
    """Provider labels (GCP) land under ``metadata.labels.*``."""
    return with_metadata({"labels": dict(labels or {})})


def with_index(asset_type: str, index_namespace: Optional[str] = None) -> AssetOption:
    destination = destination_for(asset_type, index_namespace)

    def option(record: AssetRecord) -> AssetRecord:
        return record.model_copy(update={"destination": destination})

    return option


def _with_fields(values: Mapping[str, Any]) -> AssetOption:
    def option(record: AssetRecord) -> AssetRecord:
        return record.model_copy(update={"fields": freeze({**record.fields, **values})})

    return option


def with_cloud_instance_id(instance_id: str) -> AssetOption:
    return _with_fields({"cloud.instance.id": instance_id})


def with_node_data(name: str, start_time: Optional[datetime]) -> AssetOption:
    return _with_fields(
        {
            "kubernetes.node.name": name,
            "kubernetes.node.start_time": start_time,
        }
    )


def with_pod_data(
    name: str, uid: str, namespace: str, start_time: Optional[datetime]
) -> AssetOption:
    return _with_fields(
        {
            "kubernetes.pod.name": name,
            "kubernetes.pod.uid": uid,
            "kubernetes.pod.start_time": start_time,
            "kubernetes.namespace": namespace,
        }
    )


def with_container_data(
    name: str,
    uid: str,
    namespace: str,
    state: str,
    start_time: Optional[datetime],
) -> AssetOption:
    return _with_fields(
        {
            "kubernetes.container.name": name,
            "kubernetes.container.uid": uid,
            "kubernetes.container.start_time": start_time,
            "kubernetes.container.state": state,
            "kubernetes.namespace": namespace,
        }
    )


def with_host_data(values: Mapping[str, Any]) -> AssetOption:
    """Dotted ``host.*`` fields describing the machine itself."""
    return _with_fields(dict(values))
