import unittest

from blinkscan.models import FoundHost, NetworkInterface, Subnet, canonical_mac


class TestCanonicalMac(unittest.TestCase):

    def test_formats(self):

        self.assertEqual(canonical_mac('AA:BB:CC:DD:EE:FF'), 'aa:bb:cc:dd:ee:ff')
        self.assertEqual(canonical_mac('aa-bb-cc-dd-ee-ff'), 'aa:bb:cc:dd:ee:ff')
        self.assertEqual(canonical_mac('0:1:2:3:4:5'), '00:01:02:03:04:05')

    def test_invalid(self):

        with self.assertRaises(ValueError):
            canonical_mac('zz:zz')
        with self.assertRaises(ValueError):
            canonical_mac(None)


class TestRecords(unittest.TestCase):

    def test_interface_projection(self):

        iface = NetworkInterface('eth0', 'Ethernet', 2, '192.168.1.10', '255.255.255.0', 'aa:bb:cc:00:00:01')
        self.assertEqual(iface.to_dict(), {'name': 'eth0', 'friendly_name': 'Ethernet', 'index': 2})

    def test_found_host_defaults(self):

        found_host = FoundHost(host='192.168.1.5', mac='aa:bb:cc:dd:ee:ff')
        self.assertEqual(found_host.to_dict(), {
            'host': '192.168.1.5',
            'mac': 'aa:bb:cc:dd:ee:ff',
            'vendor': '',
            'hostname': '',
        })

    def test_found_host_copy_is_detached(self):

        found_host = FoundHost(host='192.168.1.5', mac='aa:bb:cc:dd:ee:ff')
        snapshot = found_host.copy()
        found_host.hostname = 'late.example'
        self.assertEqual(snapshot.hostname, '')

    def test_subnet_candidates(self):

        subnet = Subnet('10.0.0.0', '10.0.0.7', 29, 6)
        self.assertEqual(
            list(subnet.candidates(exclude=['10.0.0.3'])),
            ['10.0.0.1', '10.0.0.2', '10.0.0.4', '10.0.0.5', '10.0.0.6']
        )


if __name__ == '__main__':
    unittest.main()
