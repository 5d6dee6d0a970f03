"""
Normalized asset record.

Every collector, whatever the provider, emits the same record shape. The
record is immutable: options in ``publish.py`` build a new record from the
previous one instead of mutating it.
"""

from __future__ import annotations

from collections.abc import Mapping
from enum import Enum
from types import MappingProxyType
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field, field_serializer, field_validator

EAN_SEPARATOR = ":"


class CloudProvider(str, Enum):
    AWS = "aws"
    GCP = "gcp"
    AZURE = "azure"
    K8S = "k8s"


def freeze(value: Mapping[str, Any]) -> Mapping[str, Any]:
    """Read-only view over a private copy of ``value``."""
    return MappingProxyType(dict(value))


def make_ean(kind: str, asset_id: str) -> str:
    """Entity address name used for every cross-asset reference."""
    return f"{kind}{EAN_SEPARATOR}{asset_id}"


def flatten(value: Mapping[str, Any], prefix: str = "") -> dict[str, Any]:
    """
    Flatten nested mappings into dotted keys.

    Keys are visited in sorted order so the output is stable, and an already
    flat mapping comes back unchanged. Empty nested mappings contribute no key.
    """
    out: dict[str, Any] = {}
    for key in sorted(value, key=str):
        item = value[key]
        full_key = f"{prefix}.{key}" if prefix else str(key)
        if isinstance(item, Mapping):
            out.update(flatten(item, full_key))
        else:
            out[full_key] = item
    return out


class AssetRecord(BaseModel):
    model_config = ConfigDict(frozen=True, use_enum_values=True)

    cloud_provider: Optional[CloudProvider] = None
    region: Optional[str] = None
    account_id: Optional[str] = None
    kind: Optional[str] = None
    id: Optional[str] = None
    ean: Optional[str] = None
    type: Optional[str] = None
    name: Optional[str] = None
    parents: Optional[tuple[str, ...]] = None
    children: Optional[tuple[str, ...]] = None
    # Already flattened, relative to "asset.metadata"
    metadata: Mapping[str, Any] = Field(default_factory=lambda: freeze({}))
    # Extra dotted event fields (kubernetes.*, cloud.instance.id)
    fields: Mapping[str, Any] = Field(default_factory=lambda: freeze({}))
    destination: Optional[str] = None

    @field_validator("metadata", "fields", mode="after")
    @classmethod
    def _read_only(cls, value: Mapping[str, Any]) -> Mapping[str, Any]:
        return freeze(value)

    @field_serializer("metadata", "fields")
    def _as_dict(self, value: Mapping[str, Any]) -> dict[str, Any]:
        return dict(value)

    def to_event(self) -> dict[str, Any]:
        """Render the record as the emitted document; unset attributes are left out."""
        event: dict[str, Any] = {}
        scalar_fields = (
            ("cloud.provider", self.cloud_provider),
            ("cloud.region", self.region),
            ("cloud.account.id", self.account_id),
            ("asset.kind", self.kind),
            ("asset.id", self.id),
            ("asset.ean", self.ean),
            ("asset.type", self.type),
            ("asset.name", self.name),
        )
        for key, value in scalar_fields:
            if value is not None:
                event[key] = value
        if self.parents is not None:
            event["asset.parents"] = list(self.parents)
        if self.children is not None:
            event["asset.children"] = list(self.children)
        for key, value in self.metadata.items():
            event[f"asset.metadata.{key}"] = value
        event.update(self.fields)
        if self.destination is not None:
            event["@metadata"] = {"index": self.destination}
        return event
