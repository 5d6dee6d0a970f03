import platform
import socket
from datetime import timedelta
from types import SimpleNamespace

import psutil
import pytest

from cloudasset.core.exceptions import AdapterError
from cloudasset.modules.inventory.adapters.hostdata import collector as collector_module
from cloudasset.modules.inventory.adapters.hostdata import host_info
from cloudasset.modules.inventory.adapters.hostdata.collector import HostdataCollector
from cloudasset.modules.inventory.adapters.hostdata.context import HostdataContext
from cloudasset.modules.inventory.adapters.hostdata.plugins.host import HostPlugin
from cloudasset.shared.core.config import HostdataSettings
from tests.utils import InMemoryPublisher

HOST_INFO = {
    "host.id": "4c4c4544-0042",
    "host.hostname": "Node-1",
    "host.name": "node-1",
    "host.os.type": "linux",
}


def _context(publisher: InMemoryPublisher, info=None, net_info=None) -> HostdataContext:
    return HostdataContext(
        publisher=publisher,
        host_info=HOST_INFO if info is None else info,
        net_info=net_info or (lambda: (["10.0.0.5"], ["AA-BB-CC-DD-EE-FF"])),
    )


def test_read_machine_id_uses_first_readable_file(tmp_path):
    empty = tmp_path / "empty"
    empty.write_text("\n")
    machine_id = tmp_path / "machine-id"
    machine_id.write_text("abc123\n")

    paths = [str(tmp_path / "missing"), str(empty), str(machine_id)]
    assert host_info.read_machine_id(paths) == "abc123"
    assert host_info.read_machine_id([str(tmp_path / "missing")]) is None


def test_collect_host_info(tmp_path, monkeypatch):
    machine_id = tmp_path / "machine-id"
    machine_id.write_text("abc123")
    monkeypatch.setattr(host_info.socket, "gethostname", lambda: "Node-1")

    info = host_info.collect_host_info([str(machine_id)])

    assert info["host.id"] == "abc123"
    assert info["host.hostname"] == "Node-1"
    assert info["host.name"] == "node-1"
    assert info["host.os.type"] == platform.system().lower()


def test_collect_host_info_without_machine_id(tmp_path):
    info = host_info.collect_host_info([str(tmp_path / "missing")])
    assert "host.id" not in info
    assert info["host.hostname"]


def test_get_net_info_skips_loopback_and_empty_macs(monkeypatch):
    addrs = {
        "lo": [
            SimpleNamespace(family=socket.AF_INET, address="127.0.0.1"),
            SimpleNamespace(family=socket.AF_INET6, address="::1"),
            SimpleNamespace(family=psutil.AF_LINK, address="00:00:00:00:00:00"),
        ],
        "eth0": [
            SimpleNamespace(family=socket.AF_INET, address="10.0.0.5"),
            SimpleNamespace(family=socket.AF_INET6, address="fe80::1%eth0"),
            SimpleNamespace(family=psutil.AF_LINK, address="aa:bb:cc:dd:ee:ff"),
        ],
    }
    monkeypatch.setattr(host_info.psutil, "net_if_addrs", lambda: addrs)

    ips, macs = host_info.get_net_info()

    assert ips == ["10.0.0.5", "fe80::1"]
    assert macs == ["AA-BB-CC-DD-EE-FF"]


@pytest.mark.asyncio
async def test_host_plugin_publishes_provider_agnostic_host(publisher: InMemoryPublisher):
    count = await HostPlugin().collect(_context(publisher))

    assert count == 1
    (record,) = publisher.records
    assert record.kind == "host"
    assert record.id == "4c4c4544-0042"
    assert record.ean == "host:4c4c4544-0042"
    assert record.type == "host"
    assert record.cloud_provider is None
    assert record.destination == "assets-host-default"
    event = record.to_event()
    assert event["host.hostname"] == "Node-1"
    assert event["host.ip"] == ["10.0.0.5"]
    assert event["host.mac"] == ["AA-BB-CC-DD-EE-FF"]
    assert "cloud.provider" not in event


@pytest.mark.asyncio
async def test_host_plugin_without_host_id_publishes_nothing(publisher: InMemoryPublisher):
    info = {k: v for k, v in HOST_INFO.items() if k != "host.id"}

    count = await HostPlugin().collect(_context(publisher, info=info))

    assert count == 0
    assert publisher.records == []


@pytest.mark.asyncio
async def test_host_plugin_publishes_without_addresses_when_net_info_fails(
    publisher: InMemoryPublisher,
):
    def broken() -> tuple[list[str], list[str]]:
        raise OSError("netlink unavailable")

    count = await HostPlugin().collect(_context(publisher, net_info=broken))

    assert count == 1
    event = publisher.records[0].to_event()
    assert "host.ip" not in event
    assert "host.mac" not in event


def test_hostdata_settings_default_to_one_minute():
    settings = HostdataSettings()
    assert settings.period == timedelta(minutes=1)
    assert settings.is_type_enabled("host")


@pytest.mark.asyncio
async def test_hostdata_collector_pass(publisher: InMemoryPublisher, monkeypatch):
    monkeypatch.setattr(collector_module, "collect_host_info", lambda paths: dict(HOST_INFO))
    monkeypatch.setattr(collector_module, "get_net_info", lambda: (["10.0.0.5"], []))
    collector = HostdataCollector(HostdataSettings(indexNamespace="prod"), publisher)

    with pytest.raises(AdapterError):
        collector._build_context("localhost")

    await collector.start()
    tasks = await collector.collect_all()
    await collector.tasks.join()

    assert len(tasks) == 1
    (record,) = publisher.records
    assert record.ean == "host:4c4c4544-0042"
    assert record.destination == "assets-host-prod"
    assert record.fields["host.ip"] == ["10.0.0.5"]
