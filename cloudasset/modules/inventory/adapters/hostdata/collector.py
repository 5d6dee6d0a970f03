from __future__ import annotations

from typing import Any, Optional

import structlog

from cloudasset.core.exceptions import AdapterError
from cloudasset.modules.inventory.adapters.hostdata.context import HostdataContext
from cloudasset.modules.inventory.adapters.hostdata.host_info import (
    collect_host_info,
    get_net_info,
)
from cloudasset.modules.inventory.domain.collector import BaseProviderCollector
from cloudasset.shared.assets.publisher import Publisher
from cloudasset.shared.core.async_utils import run_blocking
from cloudasset.shared.core.config import HostdataSettings

# Import hostdata plugins to trigger registration
import cloudasset.modules.inventory.adapters.hostdata.plugins  # noqa

logger = structlog.get_logger()

LOCAL_TARGET = "localhost"


class HostdataCollector(BaseProviderCollector):
    """Reports the machine the collector runs on, once per period (1 minute by default)."""

    def __init__(self, config: HostdataSettings, publisher: Publisher):
        self.config: HostdataSettings = config
        super().__init__(config, publisher)
        self.host_info: Optional[dict[str, Any]] = None

    @property
    def provider_name(self) -> str:
        return "hostdata"

    async def start(self) -> None:
        self.host_info = await run_blocking(collect_host_info, self.config.machine_id_paths)
        logger.info(
            "hostdata_collector_started",
            hostname=self.host_info.get("host.hostname"),
            host_id=self.host_info.get("host.id"),
        )

    async def targets(self) -> list[str]:
        return [LOCAL_TARGET]

    def _build_context(self, target: str) -> HostdataContext:
        if self.host_info is None:
            raise AdapterError(
                "HostdataCollector.start() must be called before collecting",
                code="collector_not_started",
            )
        return HostdataContext(
            **self._context_kwargs(),
            host_info=self.host_info,
            net_info=get_net_info,
            log_context={"host": self.host_info.get("host.hostname", target)},
        )
