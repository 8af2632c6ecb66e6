import ipaddress
import socket
from typing import List, Optional

import psutil

from models import HostnameInfo, NetAddr, NetInterface, VirtualMemoryStat


_IP_FAMILIES = (socket.AF_INET, socket.AF_INET6)


def _interface_index(name: str) -> int:
    try:
        return socket.if_nametoindex(name)
    except (OSError, AttributeError):
        return 0


def adapt_address(entry) -> Optional[NetAddr]:
    """Convert a psutil snicaddr into 'ip+net' form, skipping link-layer entries"""
    if entry.family not in _IP_FAMILIES:
        return None
    address = entry.address.split('%', 1)[0]  # drop IPv6 zone
    ip = ipaddress.ip_address(address)
    if entry.netmask:
        prefix = bin(int(ipaddress.ip_address(entry.netmask))).count('1')
    else:
        prefix = ip.max_prefixlen
    return NetAddr(network='ip+net', value=f"{ip}/{prefix}")


class SystemInfoAgent:
    """Agent reading host facts: RAM figures, network interfaces and hostname.

    Each getter raises on failure; callers decide how to report it.
    """

    @staticmethod
    def get_virtual_memory() -> VirtualMemoryStat:
        memory = psutil.virtual_memory()
        return VirtualMemoryStat(
            total=memory.total,
            available=memory.available,
            used=memory.used,
            used_percent=memory.percent,
        )

    @staticmethod
    def get_interfaces() -> List[NetInterface]:
        """List network interfaces ordered by index"""
        addrs = psutil.net_if_addrs()
        stats = psutil.net_if_stats()
        interfaces: List[NetInterface] = []
        for name, entries in addrs.items():
            stat = stats.get(name)
            addresses = [addr for addr in (adapt_address(e) for e in entries) if addr is not None]
            interfaces.append(NetInterface(
                index=_interface_index(name),
                mtu=stat.mtu if stat else 0,
                name=name,
                addresses=addresses,
            ))
        interfaces.sort(key=lambda i: (i.index, i.name))
        return interfaces

    @staticmethod
    def get_hostname() -> HostnameInfo:
        return HostnameInfo(hostname=socket.gethostname())
