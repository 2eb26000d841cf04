import unittest
from unittest import mock

import netifaces

from blinkscan import interfaces
from blinkscan.errors import EnumerationError


ADDRESSES = {
    'lo': {
        netifaces.AF_INET: [{'addr': '127.0.0.1', 'netmask': '255.0.0.0'}],
        netifaces.AF_LINK: [{'addr': '00:00:00:00:00:00'}],
    },
    'wlan0': {
        netifaces.AF_INET: [{'addr': '10.0.0.23', 'netmask': '255.255.255.0'}],
        netifaces.AF_LINK: [{'addr': 'B8:27:EB:00:00:02'}],
    },
    'eth0': {
        netifaces.AF_INET: [{'addr': '192.168.1.10', 'netmask': '255.255.255.0', 'broadcast': '192.168.1.255'}],
        netifaces.AF_LINK: [{'addr': 'aa:bb:cc:00:00:01'}],
    },
    'tun0': {
        netifaces.AF_INET: [{'addr': '10.8.0.2', 'netmask': '255.255.255.255'}],
    },
    'eth1': {
        netifaces.AF_LINK: [{'addr': 'aa:bb:cc:00:00:03'}],
    },
    'docker0': {
        netifaces.AF_INET: [{'addr': '172.17.0.1'}],
        netifaces.AF_LINK: [{'addr': '02:42:ac:11:00:01'}],
    },
}

GATEWAYS = {
    'default': {netifaces.AF_INET: ('192.168.1.1', 'eth0')},
    netifaces.AF_INET: [('192.168.1.1', 'eth0', True)],
}


@mock.patch('blinkscan.common.get_os', return_value='mac')
@mock.patch('socket.if_nametoindex', side_effect=OSError('no such interface'))
@mock.patch('netifaces.gateways', return_value=GATEWAYS)
@mock.patch('netifaces.ifaddresses', side_effect=lambda name: ADDRESSES[name])
@mock.patch('netifaces.interfaces', return_value=list(ADDRESSES))
class TestListInterfaces(unittest.TestCase):

    def test_filters_unscannable(self, *_):

        names = [iface.name for iface in interfaces.list_interfaces()]

        self.assertEqual(sorted(names), ['eth0', 'wlan0'])

    def test_default_route_first(self, *_):

        names = [iface.name for iface in interfaces.list_interfaces()]

        self.assertEqual(names, ['eth0', 'wlan0'])

    def test_fields(self, *_):

        eth0 = interfaces.list_interfaces()[0]

        self.assertEqual(eth0.local_address, '192.168.1.10')
        self.assertEqual(eth0.subnet_mask, '255.255.255.0')
        self.assertEqual(eth0.hardware_address, 'aa:bb:cc:00:00:01')
        self.assertEqual(eth0.friendly_name, 'eth0')
        # Position in the OS list when the index cannot be queried
        self.assertEqual(eth0.index, 3)

    def test_no_default_route_keeps_os_order(self, *mocks):

        with mock.patch('netifaces.gateways', return_value={'default': {}}):
            names = [iface.name for iface in interfaces.list_interfaces()]

        self.assertEqual(names, ['wlan0', 'eth0'])

    def test_broken_interface_is_skipped(self, *_):

        def ifaddresses(name):
            if name == 'wlan0':
                raise ValueError('You must specify a valid interface name.')
            return ADDRESSES[name]

        with mock.patch('netifaces.ifaddresses', side_effect=ifaddresses):
            names = [iface.name for iface in interfaces.list_interfaces()]

        self.assertEqual(names, ['eth0'])

    def test_enumeration_failure(self, *_):

        with mock.patch('netifaces.interfaces', side_effect=OSError('netlink unavailable')):
            with self.assertRaises(EnumerationError):
                interfaces.list_interfaces()


class TestHelpers(unittest.TestCase):

    @mock.patch('blinkscan.common.get_os', return_value='linux')
    def test_operstate_down(self, _):

        with mock.patch('builtins.open', mock.mock_open(read_data='down\n')):
            self.assertFalse(interfaces._is_operational('eth9'))

        with mock.patch('builtins.open', mock.mock_open(read_data='unknown\n')):
            self.assertTrue(interfaces._is_operational('eth9'))

    @mock.patch('blinkscan.common.get_os', return_value='linux')
    def test_friendly_name_outside_windows(self, _):

        self.assertEqual(interfaces.get_friendly_name('enp3s0'), 'enp3s0')


if __name__ == '__main__':
    unittest.main()
