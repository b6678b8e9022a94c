import socket
import unittest
from collections import namedtuple

from hamcrest import assert_that, is_, empty, contains_exactly

from groundlink.discovery.network import InterfaceAddress, broadcast_address, interface_addresses, \
    broadcast_candidates

snicaddr = namedtuple('snicaddr', 'family address netmask broadcast ptp')


def addrs(**interfaces):
    return lambda: interfaces


class BroadcastAddressTest(unittest.TestCase):

    def test_class_c(self):
        assert_that(broadcast_address('192.168.1.17', '255.255.255.0'), is_('192.168.1.255'))

    def test_narrow_subnet(self):
        assert_that(broadcast_address('10.0.0.66', '255.255.255.192'), is_('10.0.0.127'))

    def test_host_mask(self):
        assert_that(broadcast_address('10.0.0.66', '255.255.255.255'), is_('10.0.0.66'))


class InterfaceAddressesTest(unittest.TestCase):

    def test_ipv4_non_loopback_only(self):
        net_if_addrs = addrs(
            lo=[snicaddr(socket.AF_INET, '127.0.0.1', '255.0.0.0', None, None)],
            eth0=[snicaddr(socket.AF_INET6, 'fe80::1', 'ffff:ffff:ffff:ffff::', None, None),
                  snicaddr(socket.AF_INET, '192.168.1.17', '255.255.255.0', '192.168.1.255', None)],
            tun0=[snicaddr(socket.AF_INET, '10.8.0.2', None, None, None)])
        assert_that(interface_addresses(net_if_addrs),
                    contains_exactly(InterfaceAddress('eth0', '192.168.1.17', '255.255.255.0', '192.168.1.255')))

    def test_no_interfaces(self):
        assert_that(interface_addresses(addrs()), is_(empty()))

    def test_candidates_are_distinct_by_broadcast(self):
        net_if_addrs = addrs(
            eth0=[snicaddr(socket.AF_INET, '192.168.1.17', '255.255.255.0', None, None)],
            eth1=[snicaddr(socket.AF_INET, '192.168.1.18', '255.255.255.0', None, None)],
            wlan0=[snicaddr(socket.AF_INET, '10.0.0.5', '255.255.0.0', None, None)])
        candidates = broadcast_candidates(net_if_addrs)
        assert_that([c.broadcast for c in candidates], is_(['192.168.1.255', '10.0.255.255']))
        assert_that(candidates[0].address, is_('192.168.1.17'))
