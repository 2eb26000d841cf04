"""
Sends ARP who-has probes on one interface and yields the matching replies.

A transport owns one scapy layer-2 socket. Requests go out as broadcast
Ethernet frames; a received frame becomes a ProbeReply only if it is an ARP
is-at from an address this transport has probed. Everything else on the
segment (foreign ARP chatter, our own frames, garbage) is dropped.

"""
import select
import threading
import time
import logging

import scapy.all as sc

from . import common
from .errors import TransportError
from .models import ProbeReply, canonical_mac


logger = logging.getLogger(__name__)


BROADCAST_MAC = 'ff:ff:ff:ff:ff:ff'

ARP_WHO_HAS = 1
ARP_IS_AT = 2

# How long a receive waits before re-checking whether the transport was closed
DEFAULT_POLL_INTERVAL = 0.1


def open_transport(interface, socket_factory=None, poll_interval=DEFAULT_POLL_INTERVAL):
    """
    Opens a layer-2 socket on `interface` (a NetworkInterface) and returns an
    ArpTransport. Raises TransportError if the socket cannot be opened, e.g.
    without root / CAP_NET_RAW or when the interface is down or gone.

    """
    if socket_factory is None:
        socket_factory = sc.conf.L2socket

    try:
        l2_socket = socket_factory(iface=interface.name)
    except PermissionError as e:
        hint = '' if common.is_privileged() else ' (raw sockets require root or CAP_NET_RAW)'
        raise TransportError(f'Permission denied opening {interface.name}{hint}') from e
    except (OSError, ValueError) as e:
        raise TransportError(f'Cannot open {interface.name}: {e}') from e

    logger.info(f'[Transport] Opened {interface.name} ({interface.local_address}, {interface.hardware_address})')

    return ArpTransport(interface, l2_socket, poll_interval=poll_interval)


class ArpTransport(object):

    def __init__(self, interface, l2_socket, poll_interval=DEFAULT_POLL_INTERVAL) -> None:

        self._interface = interface
        self._socket = l2_socket
        self._poll_interval = poll_interval

        self._local_mac = canonical_mac(interface.hardware_address)
        self._local_ip_addr = interface.local_address

        # Target addresses of the requests sent so far. Written by the sender
        # threads and read by the receiving thread.
        self._outstanding = set()
        self._outstanding_lock = threading.Lock()

        self._closed = threading.Event()

        self.frames_seen = 0
        self.frames_dropped = 0

    @property
    def closed(self) -> bool:
        return self._closed.is_set()

    def send(self, request):
        """Broadcasts a who-has for `request.target_address`."""

        if self.closed:
            raise TransportError('Transport is closed')

        with self._outstanding_lock:
            self._outstanding.add(request.target_address)

        try:
            self._socket.send(build_request(self._interface, request.target_address))
        except OSError as e:
            raise TransportError(f'Failed to send probe to {request.target_address}: {e}') from e

    def is_outstanding(self, ip_addr: str) -> bool:
        with self._outstanding_lock:
            return ip_addr in self._outstanding

    def replies(self):
        """
        Lazily yields ProbeReply objects until the transport is closed.
        Malformed and uncorrelated frames are skipped.

        """
        while not self.closed:

            pkt = self._receive_frame()
            if pkt is None:
                continue

            self.frames_seen += 1

            reply = parse_reply(pkt, self.is_outstanding, self._local_mac, self._local_ip_addr)
            if reply is None:
                self.frames_dropped += 1
                continue

            yield reply

    def _receive_frame(self):
        """Returns the next frame, or None if nothing arrived within the poll interval."""

        try:
            (readable, _, _) = select.select([self._socket], [], [], self._poll_interval)
        except (OSError, ValueError) as e:
            # A closed socket has no valid file descriptor anymore
            if self.closed:
                return None
            raise TransportError(f'Receive failed on {self._interface.name}: {e}') from e

        if not readable:
            return None

        try:
            return self._socket.recv()

        except OSError as e:
            if self.closed:
                return None
            raise TransportError(f'Receive failed on {self._interface.name}: {e}') from e

        except Exception as e:
            # Scapy failed to dissect the frame
            logger.debug(f'[Transport] Dropping undecodable frame: {e}')
            self.frames_seen += 1
            self.frames_dropped += 1
            return None

    def close(self):

        if self.closed:
            return
        self._closed.set()

        try:
            self._socket.close()
        except OSError as e:
            logger.debug(f'[Transport] Error closing socket: {e}')

        logger.info(f'[Transport] Closed {self._interface.name}: {self.frames_seen} frames seen, {self.frames_dropped} dropped')

    def __enter__(self):
        return self

    def __exit__(self, *exc_info):
        self.close()


def build_request(interface, target_ip_addr: str):
    """Returns the Ether/ARP who-has frame for `target_ip_addr`."""

    return sc.Ether(src=interface.hardware_address, dst=BROADCAST_MAC) / \
        sc.ARP(
            op=ARP_WHO_HAS,
            hwsrc=interface.hardware_address,
            psrc=interface.local_address,
            hwdst=BROADCAST_MAC,
            pdst=target_ip_addr
        )


def parse_reply(pkt, is_outstanding, local_mac: str, local_ip_addr: str):
    """
    Returns a ProbeReply if `pkt` is an ARP is-at answering one of our
    requests, otherwise None. `is_outstanding` is a callable telling whether
    an IP address has been probed.

    The reply must be addressed to this host: its target protocol address
    must be `local_ip_addr` and its target hardware address `local_mac` (or
    broadcast). This drops replies meant for other hosts as well as
    gratuitous announcements.

    """
    if pkt is None or sc.ARP not in pkt:
        return None

    arp = pkt[sc.ARP]

    try:
        if arp.op != ARP_IS_AT:
            return None

        ip_addr = arp.psrc
        mac_addr = canonical_mac(arp.hwsrc)
        target_mac_addr = canonical_mac(arp.hwdst)
    except (ValueError, AttributeError, TypeError):
        return None

    if not isinstance(ip_addr, str) or ip_addr == '0.0.0.0':
        return None

    if mac_addr == local_mac:
        return None

    if arp.pdst != local_ip_addr:
        return None

    if target_mac_addr not in (local_mac, BROADCAST_MAC):
        return None

    if not is_outstanding(ip_addr):
        return None

    return ProbeReply(
        source_address=ip_addr,
        source_hardware_address=mac_addr,
        received_at=time.time()
    )
