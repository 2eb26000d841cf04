import threading
import time
import unittest
from unittest import mock

import blinkscan
from blinkscan import api
from blinkscan import global_state
from blinkscan.errors import EnumerationError, TransportError
from blinkscan.models import NetworkInterface

from test_scanner import FAST, FakeTransport, StubResolver, answers


ETH0 = NetworkInterface('eth0', 'Ethernet', 2, '192.168.1.10', '255.255.255.0', '02:00:00:00:00:01')
WLAN0 = NetworkInterface('wlan0', 'Wi-Fi', 3, '10.0.0.23', '255.255.255.0', '02:00:00:00:00:02')


@mock.patch('blinkscan.interfaces.list_interfaces', return_value=[ETH0, WLAN0])
class TestApi(unittest.TestCase):

    def tearDown(self):
        with global_state.global_state_lock:
            global_state.active_scan_cancel_event = None
            global_state.last_scan_summary = None

    def test_get_interfaces(self, _):

        self.assertEqual(blinkscan.get_interfaces(), [
            {'name': 'eth0', 'friendly_name': 'Ethernet', 'index': 2},
            {'name': 'wlan0', 'friendly_name': 'Wi-Fi', 'index': 3},
        ])

    def test_scan_returns_string_dicts(self, _):

        fake = FakeTransport(answers(('192.168.1.5', 'aa:bb:cc:dd:ee:ff')))

        host_list = blinkscan.scan(
            {'name': 'eth0', 'friendly_name': 'Ethernet', 'index': 2},
            transport_factory=lambda iface: fake,
            resolver=StubResolver(),
            **FAST
        )

        self.assertEqual(host_list, [{'host': '192.168.1.5', 'mac': 'aa:bb:cc:dd:ee:ff', 'vendor': '', 'hostname': ''}])
        for host in host_list:
            for value in host.values():
                self.assertIsInstance(value, str)

        summary = blinkscan.get_last_summary()
        self.assertEqual(summary.hosts_found, 1)
        self.assertIsNone(global_state.active_scan_cancel_event)

    def test_scan_selects_by_index(self, _):

        opened = []

        def factory(iface):
            opened.append(iface.name)
            return FakeTransport()

        blinkscan.scan({'name': 'renamed', 'friendly_name': 'Wi-Fi', 'index': 3}, transport_factory=factory, resolver=StubResolver(), **FAST)

        self.assertEqual(opened, ['wlan0'])

    def test_scan_unknown_interface(self, _):

        with self.assertRaises(TransportError):
            blinkscan.scan({'name': 'eth7', 'friendly_name': 'eth7', 'index': 42})

    def test_new_scan_supersedes_running_one(self, _):

        first_fake = FakeTransport(answers(('192.168.1.5', 'aa:00:00:00:00:05')))
        second_fake = FakeTransport(answers(('192.168.1.6', 'bb:00:00:00:00:06')))
        results = {}

        def first_scan():
            results['first'] = blinkscan.scan(
                ETH0.to_dict(),
                transport_factory=lambda iface: first_fake,
                resolver=StubResolver(),
                **dict(FAST, quiet_period=30, scan_timeout=60)
            )

        th = threading.Thread(target=first_scan)
        th.start()

        # Wait until the first scan has registered itself
        for _ in range(100):
            with global_state.global_state_lock:
                if global_state.active_scan_cancel_event is not None:
                    break
            time.sleep(0.02)

        start_ts = time.monotonic()
        results['second'] = blinkscan.scan(
            ETH0.to_dict(),
            transport_factory=lambda iface: second_fake,
            resolver=StubResolver(),
            **FAST
        )
        th.join(10)

        self.assertFalse(th.is_alive())
        self.assertLess(time.monotonic() - start_ts, 10)
        self.assertEqual([host['mac'] for host in results['second']], ['bb:00:00:00:00:06'])
        self.assertLessEqual(len(results['first']), 1)

    def test_cancel_active_scan(self, _):

        self.assertFalse(blinkscan.cancel_active_scan())

        cancel_event = threading.Event()
        with global_state.global_state_lock:
            global_state.active_scan_cancel_event = cancel_event

        self.assertTrue(blinkscan.cancel_active_scan())
        self.assertTrue(cancel_event.is_set())


class TestApiEnumerationFailure(unittest.TestCase):

    @mock.patch('blinkscan.interfaces.list_interfaces', side_effect=EnumerationError('boom'))
    def test_get_interfaces_propagates(self, _):

        with self.assertRaises(EnumerationError):
            api.get_interfaces()

    @mock.patch('blinkscan.interfaces.list_interfaces', side_effect=EnumerationError('boom'))
    def test_scan_reports_transport_error(self, _):

        with self.assertRaises(TransportError):
            api.scan(ETH0.to_dict())


if __name__ == '__main__':
    unittest.main()
