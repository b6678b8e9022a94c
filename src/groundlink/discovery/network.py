"""
Local network interface inspection, used to find where to broadcast discovery requests.
"""
import ipaddress
import logging
import socket

import psutil

from groundlink.support.mixins import CommonEqualityMixin, StringerMixin

logger = logging.getLogger(__name__)


class InterfaceAddress(CommonEqualityMixin, StringerMixin):
    """ An IPv4 address assigned to a local interface, with the subnet broadcast address derived from it. """
    def __init__(self, name, address, netmask, broadcast):
        self.name = name
        self.address = address
        self.netmask = netmask
        self.broadcast = broadcast


def broadcast_address(address, netmask):
    """
    Computes the subnet broadcast address by setting all the host bits of the address.
    >>> broadcast_address('192.168.1.17', '255.255.255.0')
    '192.168.1.255'
    >>> broadcast_address('10.1.2.3', '255.0.0.0')
    '10.255.255.255'
    """
    ip = int(ipaddress.IPv4Address(address))
    mask = int(ipaddress.IPv4Address(netmask))
    return str(ipaddress.IPv4Address((~mask & 0xFFFFFFFF) | ip))


def interface_addresses(net_if_addrs=psutil.net_if_addrs):
    """
    Lists the IPv4 addresses of the local interfaces that can broadcast. Loopback addresses and
    addresses without a netmask are skipped.
    :param net_if_addrs: returns a mapping from interface name to its addresses, as psutil.net_if_addrs()
    """
    result = []
    for name, addresses in net_if_addrs().items():
        for a in addresses:
            if a.family != socket.AF_INET or not a.netmask:
                continue
            try:
                if ipaddress.IPv4Address(a.address).is_loopback:
                    continue
                result.append(InterfaceAddress(name, a.address, a.netmask, broadcast_address(a.address, a.netmask)))
            except ValueError as e:
                logger.warning("ignoring address %s on %s: %s" % (a.address, name, e))
    return result


def broadcast_candidates(net_if_addrs=psutil.net_if_addrs):
    """ the interface addresses to broadcast from, one per distinct broadcast address. """
    seen = set()
    candidates = []
    for interface in interface_addresses(net_if_addrs):
        if interface.broadcast not in seen:
            seen.add(interface.broadcast)
            candidates.append(interface)
    return candidates
