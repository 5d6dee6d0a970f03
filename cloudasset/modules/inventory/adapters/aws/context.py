from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Optional

from cloudasset.modules.inventory.domain.plugin import CollectionContext


@dataclass(kw_only=True)
class AWSContext(CollectionContext):
    """One region of one AWS account."""

    session: Any
    region: str
    endpoint_url: Optional[str] = None
    boto_config: Any = None

    def client(self, service_name: str) -> Any:
        """aioboto3 client context manager bound to this region."""
        kwargs: dict[str, Any] = {"region_name": self.region}
        if self.endpoint_url:
            kwargs["endpoint_url"] = self.endpoint_url
        if self.boto_config is not None:
            kwargs["config"] = self.boto_config
        return self.session.client(service_name, **kwargs)


def tags_to_dict(tags: Optional[list[dict[str, Any]]]) -> dict[str, str]:
    """AWS ``[{"Key": k, "Value": v}]`` tag lists as a plain mapping."""
    return {
        tag["Key"]: tag.get("Value", "")
        for tag in tags or []
        if tag.get("Key")
    }


def name_from_tags(tags: dict[str, str]) -> Optional[str]:
    return tags.get("Name") or None


def account_from_arn(arn: Optional[str]) -> str:
    """``arn:aws:eks:eu-west-1:111:cluster/x`` -> ``111``."""
    parts = (arn or "").split(":")
    return parts[4] if len(parts) > 5 else ""
