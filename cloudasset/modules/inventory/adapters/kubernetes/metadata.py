from __future__ import annotations

from typing import Any, Optional

import httpx
import structlog

logger = structlog.get_logger()

GCE_METADATA_URL = "http://169.254.169.254/computeMetadata/v1/?recursive=true&alt=json"
GCE_METADATA_HEADERS = {"Metadata-Flavor": "Google"}
GCE_INSTANCE_ID_ANNOTATION = "container.googleapis.com/instance_id"

CSP_AWS = "aws"
CSP_GCP = "gcp"


def get_csp_from_provider_id(provider_id: Optional[str]) -> str:
    """
    ``aws:///<zone>/<instance>`` is AWS, ``gce://<project>/<zone>/<name>``
    is GCP; anything else is unknown.
    """
    provider_id = provider_id or ""
    if provider_id.startswith("aws"):
        return CSP_AWS
    if provider_id.startswith("gce"):
        return CSP_GCP
    return ""


def get_instance_id(node: Any) -> Optional[str]:
    """Cloud instance id backing a node, for AWS and GCP nodes."""
    provider_id = getattr(node.spec, "provider_id", None) or ""
    csp = get_csp_from_provider_id(provider_id)
    if csp == CSP_AWS:
        parts = provider_id.split("/")
        # Fargate provider ids carry an extra segment and no instance
        if len(parts) == 5:
            return parts[4] or None
        return None
    if csp == CSP_GCP:
        annotations = node.metadata.annotations or {}
        return annotations.get(GCE_INSTANCE_ID_ANNOTATION) or None
    return None


class GKEMetadataClient:
    """Reads the GKE cluster uid from the GCE metadata server. Only reachable from inside GKE."""

    def __init__(
        self,
        url: str = GCE_METADATA_URL,
        timeout: float = 10.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.url = url
        self.timeout = timeout
        self._transport = transport
        self._cluster_uid: Optional[str] = None

    async def get_cluster_uid(self) -> Optional[str]:
        if self._cluster_uid:
            return self._cluster_uid
        try:
            async with httpx.AsyncClient(timeout=self.timeout, transport=self._transport) as client:
                response = await client.get(self.url, headers=GCE_METADATA_HEADERS)
                response.raise_for_status()
                payload = response.json()
            uid = payload["instance"]["attributes"]["cluster-uid"]
        except (httpx.HTTPError, ValueError, KeyError, TypeError) as e:
            logger.debug("gke_cluster_uid_unavailable", error=str(e))
            return None
        if not isinstance(uid, str) or not uid:
            return None
        self._cluster_uid = uid
        return uid
