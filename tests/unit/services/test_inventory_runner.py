import asyncio
import socket
from datetime import timedelta
from unittest.mock import AsyncMock, MagicMock, patch

import httpx
import pytest

from cloudasset.core.exceptions import ConfigurationError
from cloudasset.modules.inventory.adapters.aws.collector import AWSCollector
from cloudasset.modules.inventory.adapters.gcp.collector import GCPCollector
from cloudasset.modules.inventory.adapters.hostdata.collector import HostdataCollector
from cloudasset.modules.inventory.adapters.kubernetes.collector import KubernetesCollector
from cloudasset.services.runner import InventoryRunner, create_collector
from cloudasset.services.scheduler import COLLECTION_PASSES
from cloudasset.shared.core.config import Settings
from tests.utils import InMemoryPublisher


def test_create_collector_per_configured_provider():
    settings = Settings(
        aws={"regions": ["eu-west-1"]},
        gcp={"projects": ["p"]},
        kubernetes={"kube_config": "/tmp/kubeconfig"},
        CACHE_MAX_SIZE=16,
    )
    publisher = InMemoryPublisher()

    assert isinstance(create_collector("aws", settings, publisher), AWSCollector)
    gcp = create_collector("gcp", settings, publisher)
    assert isinstance(gcp, GCPCollector)
    assert gcp.caches.instances.max_size == 16
    k8s = create_collector("kubernetes", settings, publisher)
    assert isinstance(k8s, KubernetesCollector)
    assert k8s.initial_delay == timedelta(seconds=10)

    hostdata = create_collector("hostdata", Settings(hostdata={}), publisher)
    assert isinstance(hostdata, HostdataCollector)
    assert hostdata.period == timedelta(minutes=1)

    with pytest.raises(ConfigurationError):
        create_collector("azure", settings, publisher)


def test_runner_without_providers_is_a_configuration_error():
    runner = InventoryRunner(Settings(), InMemoryPublisher())
    with pytest.raises(ConfigurationError, match="No provider configured"):
        runner.build_collectors()


@pytest.mark.asyncio
async def test_runner_starts_passes_and_shuts_down_on_stop():
    collector = MagicMock()
    collector.provider_name = "aws"
    collector.period = timedelta(seconds=60)
    collector.initial_delay = timedelta(0)
    collector.start = AsyncMock()
    collector.shutdown = AsyncMock()

    runner = InventoryRunner(Settings(aws={}), InMemoryPublisher())
    with patch.object(runner, "build_collectors", return_value=[collector]):
        task = asyncio.create_task(runner.run())
        await asyncio.sleep(0.05)
        runner.request_stop()
        await asyncio.wait_for(task, timeout=1)

    collector.start.assert_awaited_once()
    collector.start_pass.assert_called_once()
    collector.shutdown.assert_awaited_once()


@pytest.mark.asyncio
async def test_runner_shuts_down_when_start_fails():
    collector = MagicMock()
    collector.provider_name = "gcp"
    collector.start = AsyncMock(side_effect=ConfigurationError("bad credentials"))
    collector.shutdown = AsyncMock()

    runner = InventoryRunner(Settings(aws={}), InMemoryPublisher())
    with patch.object(runner, "build_collectors", return_value=[collector]):
        with pytest.raises(ConfigurationError):
            await runner.run()

    collector.shutdown.assert_awaited_once()


def _free_port() -> int:
    with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as sock:
        sock.bind(("127.0.0.1", 0))
        return sock.getsockname()[1]


def test_metrics_endpoint_serves_collection_counters():
    port = _free_port()
    runner = InventoryRunner(
        Settings(aws={}, METRICS_PORT=port, METRICS_ADDR="127.0.0.1"), InMemoryPublisher()
    )
    COLLECTION_PASSES.labels(provider="metrics-check").inc()

    runner.start_metrics_server()
    try:
        response = httpx.get(f"http://127.0.0.1:{port}/metrics", timeout=5, trust_env=False)
    finally:
        runner.stop_metrics_server()

    assert response.status_code == 200
    assert 'cloudasset_collection_passes_total{provider="metrics-check"}' in response.text
    assert "cloudasset_collection_task_failures_total" in response.text
    assert "cloudasset_assets_published_total" in response.text


def test_metrics_server_is_disabled_by_default():
    runner = InventoryRunner(Settings(aws={}), InMemoryPublisher())

    with patch("cloudasset.services.runner.start_http_server") as start:
        runner.start_metrics_server()

    start.assert_not_called()


def test_metrics_port_in_use_is_a_configuration_error():
    runner = InventoryRunner(Settings(aws={}, METRICS_PORT=9100), InMemoryPublisher())

    with patch(
        "cloudasset.services.runner.start_http_server", side_effect=OSError("address in use")
    ):
        with pytest.raises(ConfigurationError, match="Unable to serve metrics"):
            runner.start_metrics_server()
