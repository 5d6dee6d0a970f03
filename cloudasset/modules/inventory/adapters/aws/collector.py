from __future__ import annotations

from typing import Any

import aioboto3
import structlog
from botocore.config import Config

from cloudasset.modules.inventory.adapters.aws.context import AWSContext
from cloudasset.modules.inventory.domain.collector import BaseProviderCollector
from cloudasset.shared.assets.publisher import Publisher
from cloudasset.shared.core.config import AWSSettings

# Import AWS plugins to trigger registration
import cloudasset.modules.inventory.adapters.aws.plugins  # noqa

logger = structlog.get_logger()

AWS_CALL_TIMEOUT_SECONDS = 30


class AWSCollector(BaseProviderCollector):
    """
    Collects EC2 instances, VPCs, subnets and EKS clusters, one task per
    enabled type per configured region.
    """

    def __init__(self, config: AWSSettings, publisher: Publisher):
        self.config: AWSSettings = config
        super().__init__(config, publisher)
        self.session = aioboto3.Session(**self._session_kwargs(config))
        self.boto_config = Config(
            connect_timeout=AWS_CALL_TIMEOUT_SECONDS,
            read_timeout=AWS_CALL_TIMEOUT_SECONDS,
        )

    @property
    def provider_name(self) -> str:
        return "aws"

    @staticmethod
    def _session_kwargs(config: AWSSettings) -> dict[str, Any]:
        """Static keys when configured, otherwise the default credential chain."""
        if not config.access_key_id or not config.secret_access_key:
            return {}
        kwargs: dict[str, Any] = {
            "aws_access_key_id": config.access_key_id,
            "aws_secret_access_key": config.secret_access_key.get_secret_value(),
        }
        if config.session_token:
            kwargs["aws_session_token"] = config.session_token.get_secret_value()
        return kwargs

    async def targets(self) -> list[str]:
        return list(self.config.regions)

    def _build_context(self, region: str) -> AWSContext:
        return AWSContext(
            **self._context_kwargs(),
            session=self.session,
            region=region,
            endpoint_url=self.config.endpoint_url,
            boto_config=self.boto_config,
            log_context={"region": region},
        )
