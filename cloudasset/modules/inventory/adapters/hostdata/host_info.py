"""
Local host facts.

The static part (name, OS, machine id) is read once when the collector
starts; network addresses are read again on every pass.
"""

from __future__ import annotations

import ipaddress
import platform
import socket
from collections.abc import Iterable
from typing import Any, Optional

import psutil
import structlog

logger = structlog.get_logger()

EMPTY_MAC = "00-00-00-00-00-00"


def read_machine_id(paths: Iterable[str]) -> Optional[str]:
    """First non-empty machine id among ``paths``."""
    for path in paths:
        try:
            with open(path, encoding="utf-8") as fh:
                value = fh.read().strip()
        except OSError:
            continue
        if value:
            return value
    return None


def _os_release() -> dict[str, str]:
    try:
        return platform.freedesktop_os_release()
    except OSError:
        return {}


def collect_host_info(machine_id_paths: Iterable[str]) -> dict[str, Any]:
    hostname = socket.gethostname()
    release = _os_release()
    info: dict[str, Any] = {
        "host.hostname": hostname,
        "host.name": hostname.lower(),
        "host.architecture": platform.machine(),
        "host.os.type": platform.system().lower(),
        "host.os.kernel": platform.release(),
    }
    if release:
        info["host.os.platform"] = release.get("ID", "")
        info["host.os.name"] = release.get("NAME", "")
        info["host.os.version"] = release.get("VERSION_ID", "")
        info["host.os.family"] = (release.get("ID_LIKE") or release.get("ID", "")).split(" ")[0]

    machine_id = read_machine_id(machine_id_paths)
    if machine_id:
        info["host.id"] = machine_id
    else:
        logger.warning("hostdata_machine_id_unavailable", paths=list(machine_id_paths))
    return info


def _format_mac(address: str) -> str:
    return address.replace(":", "-").upper()


def get_net_info() -> tuple[list[str], list[str]]:
    """Non-loopback IP addresses and hardware addresses of every interface."""
    ips: list[str] = []
    macs: list[str] = []
    for addresses in psutil.net_if_addrs().values():
        for addr in addresses:
            if addr.family in (socket.AF_INET, socket.AF_INET6):
                # Drop the IPv6 zone ("fe80::1%eth0")
                ip = addr.address.split("%", 1)[0]
                try:
                    if ipaddress.ip_address(ip).is_loopback:
                        continue
                except ValueError:
                    continue
                if ip not in ips:
                    ips.append(ip)
            elif addr.family == psutil.AF_LINK:
                mac = _format_mac(addr.address or "")
                if mac and mac != EMPTY_MAC and mac not in macs:
                    macs.append(mac)
    return ips, macs
