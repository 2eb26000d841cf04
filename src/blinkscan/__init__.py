"""
ARP-based discovery of the hosts on a local IPv4 subnet.

Requires root or CAP_NET_RAW to open raw sockets.
"""
from .api import cancel_active_scan, configure_logging, get_interfaces, get_last_summary, scan
from .errors import BlinkscanError, EnumerationError, ScanError, TransportError, UnsupportedSubnet

__all__ = [
    'cancel_active_scan',
    'configure_logging',
    'get_interfaces',
    'get_last_summary',
    'scan',
    'BlinkscanError',
    'EnumerationError',
    'ScanError',
    'TransportError',
    'UnsupportedSubnet',
]
__version__ = '0.1.0'
