from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from datetime import timedelta
from typing import Any, Optional

import structlog

from cloudasset.shared.assets.publisher import Publisher

logger = structlog.get_logger()


@dataclass
class CollectionContext:
    """
    Everything a plugin needs for one target during one pass.

    Provider collectors subclass it to add their SDK clients and caches.
    """

    publisher: Publisher
    index_namespace: str = ""
    cache_ttl: timedelta = timedelta(seconds=1200)
    log_context: dict[str, Any] = field(default_factory=dict)

    @property
    def target(self) -> str:
        return ",".join(f"{k}={v}" for k, v in self.log_context.items())


class AssetCollectorPlugin(ABC):
    """
    Abstract base class for asset collection plugins.
    Each plugin lists one asset type for one target and publishes a record
    per resource found.
    """

    @property
    @abstractmethod
    def asset_type(self) -> str:
        """
        The fine-grained asset type (e.g., 'aws.ec2.instance').
        Matched against the collector's asset_types allow-list.
        """
        raise NotImplementedError

    @abstractmethod
    async def collect(self, context: Any) -> int:
        """
        Fetch and publish every asset of this type for the context's target.

        Returns the number of records published. Provider errors propagate so
        that the task group can log them against this type and target.
        """
        raise NotImplementedError

    def _skip_item(self, reason: str, item_id: Optional[str] = None, **kwargs: Any) -> None:
        logger.warning(
            "asset_item_skipped",
            asset_type=self.asset_type,
            reason=reason,
            item_id=item_id,
            **kwargs,
        )
