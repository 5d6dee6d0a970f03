from __future__ import annotations

import psutil
import structlog

from cloudasset.modules.inventory.adapters.hostdata.context import HostdataContext
from cloudasset.modules.inventory.domain.correlation import KIND_HOST
from cloudasset.modules.inventory.domain.plugin import AssetCollectorPlugin
from cloudasset.modules.inventory.domain.registry import registry
from cloudasset.shared.assets import publish as asset
from cloudasset.shared.core.async_utils import run_blocking

logger = structlog.get_logger()


@registry.register("hostdata")
class HostPlugin(AssetCollectorPlugin):
    """
    The local machine as a provider-agnostic ``host`` asset.
    Network addresses are refreshed on every pass; a failure to read them
    still publishes the host, without ``host.ip``/``host.mac``.
    """

    @property
    def asset_type(self) -> str:
        return "host"

    async def collect(self, context: HostdataContext) -> int:
        host_data = dict(context.host_info)
        try:
            ips, macs = await run_blocking(context.net_info)
        except (OSError, psutil.Error) as e:
            logger.error("hostdata_net_info_failed", error=str(e))
            ips, macs = [], []
        if ips:
            host_data["host.ip"] = ips
        if macs:
            host_data["host.mac"] = macs

        host_id = host_data.get("host.id")
        if not host_id:
            logger.error("hostdata_missing_host_id", hostname=host_data.get("host.hostname"))
            return 0

        asset.publish(
            context.publisher,
            asset.with_kind_and_id(KIND_HOST, str(host_id)),
            asset.with_type(self.asset_type),
            asset.with_host_data(host_data),
            asset.with_index(self.asset_type, context.index_namespace),
        )
        return 1
