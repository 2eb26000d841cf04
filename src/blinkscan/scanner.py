"""
Discovers the live hosts on an interface's subnet via ARP scanning.

A scan runs as a ScanSession with the following threads:

  - the sender, which walks the candidate addresses and hands each probe to a
    bounded pool of send workers;
  - the pump, which drains the transport's replies into a queue;
  - the collector (the calling thread), the only writer to the MAC -> host
    map. It stops when the sweep has finished and no reply arrived for the
    quiet period, when the deadline passes, or when the cancel event is set,
    whichever comes first;
  - an enrichment pool resolving host names, which only ever writes the
    `hostname` of an entry that already exists.

Every session owns its own state; two sessions never share anything besides
the read-only vendor table.

"""
import concurrent.futures
import logging
import queue
import threading
import time

import netaddr

from . import local_config
from . import transport
from . import vendor
from .errors import TransportError, UnsupportedSubnet
from .models import FoundHost, ProbeRequest, ScanSummary, Subnet
from .resolver import Resolver, DEFAULT_RESOLVE_CONCURRENCY, DEFAULT_RESOLVE_TIMEOUT


logger = logging.getLogger(__name__)


# Probes in flight at once
DEFAULT_SEND_CONCURRENCY = 32

# Extra sweeps over the candidates that have not answered yet
DEFAULT_SEND_RETRIES = 1

# Pause between two sweeps
RETRY_DELAY = 0.5

# Seconds without a reply, after the last probe went out, before the scan is done
DEFAULT_QUIET_PERIOD = 2.0

# Hard limit on the duration of the sweep and collection
DEFAULT_SCAN_TIMEOUT = 30.0

# Minimum seconds between two progress callbacks
DEFAULT_PROGRESS_INTERVAL = 0.1

# How often the collector re-checks the stop conditions
DEFAULT_POLL_INTERVAL = 0.1

# A /16
MAX_HOST_COUNT = 65534

# Seconds to wait for the background threads when tearing a session down
JOIN_TIMEOUT = 5.0

STOP_CONVERGED = 'converged'
STOP_DEADLINE = 'deadline'
STOP_CANCELLED = 'cancelled'
STOP_FAILED = 'failed'


def compute_subnet(local_address: str, subnet_mask: str) -> Subnet:
    """
    Returns the Subnet that `local_address` belongs to under `subnet_mask`.
    Raises UnsupportedSubnet if either is not a valid IPv4 address/netmask.

    """
    try:
        ip_addr = netaddr.IPAddress(local_address)
        netmask = netaddr.IPAddress(subnet_mask)
    except (netaddr.AddrFormatError, ValueError, TypeError) as e:
        raise UnsupportedSubnet(f'Invalid address {local_address!r} / mask {subnet_mask!r}') from e

    if ip_addr.version != 4 or netmask.version != 4:
        raise UnsupportedSubnet(f'Not an IPv4 address: {local_address} / {subnet_mask}')

    if not netmask.is_netmask():
        raise UnsupportedSubnet(f'Non-contiguous netmask: {subnet_mask}')

    prefix_length = netmask.netmask_bits()
    network = netaddr.IPNetwork(f'{ip_addr}/{prefix_length}')

    return Subnet(
        network_address=str(netaddr.IPAddress(network.first, 4)),
        broadcast_address=str(netaddr.IPAddress(network.last, 4)),
        prefix_length=prefix_length,
        host_count=max(0, 2 ** (32 - prefix_length) - 2)
    )


def check_subnet(subnet: Subnet, max_host_count=MAX_HOST_COUNT):
    """Raises UnsupportedSubnet if `subnet` has no usable hosts or is too large to sweep."""

    cidr = f'{subnet.network_address}/{subnet.prefix_length}'

    if subnet.host_count == 0:
        raise UnsupportedSubnet(f'{cidr} has no usable host addresses')

    if subnet.host_count > max_host_count:
        raise UnsupportedSubnet(f'{cidr} has {subnet.host_count} hosts; at most {max_host_count} can be scanned')


def scan(interface, on_progress=None, cancel_event=None, **kwargs):
    """
    Scans the subnet of `interface` (a NetworkInterface) and returns a list of
    FoundHost objects in the order they were first seen.

    `on_progress` is called with an int between 0 and 100; the last call is
    always 100. Setting `cancel_event` (a threading.Event) stops the scan
    early; a cancelled scan returns what it found so far.

    Raises UnsupportedSubnet or TransportError. Other keyword arguments are
    passed to ScanSession.
    """
    session = ScanSession(interface, on_progress=on_progress, cancel_event=cancel_event, **kwargs)
    return session.run()


def _setting(config_key, value, default):
    if value is not None:
        return value
    return local_config.get(config_key, default)


class ScanSession(object):

    def __init__(
        self,
        interface,
        on_progress=None,
        cancel_event=None,
        transport_factory=None,
        resolver=None,
        vendor_lookup=None,
        send_concurrency=None,
        send_retries=None,
        quiet_period=None,
        scan_timeout=None,
        resolve_timeout=None,
        resolve_concurrency=None,
        progress_interval=None,
        poll_interval=None,
        max_host_count=None
    ) -> None:

        self.interface = interface
        self.cancel_event = cancel_event if cancel_event is not None else threading.Event()

        self._on_progress = on_progress
        self._resolver = resolver
        self._vendor_lookup = vendor_lookup or vendor.get_vendor

        self._send_concurrency = max(1, int(_setting('send_concurrency', send_concurrency, DEFAULT_SEND_CONCURRENCY)))
        self._send_retries = max(0, int(_setting('send_retries', send_retries, DEFAULT_SEND_RETRIES)))
        self._quiet_period = float(_setting('quiet_period', quiet_period, DEFAULT_QUIET_PERIOD))
        self._scan_timeout = float(_setting('scan_timeout', scan_timeout, DEFAULT_SCAN_TIMEOUT))
        self._resolve_timeout = float(_setting('resolve_timeout', resolve_timeout, DEFAULT_RESOLVE_TIMEOUT))
        self._resolve_concurrency = max(1, int(_setting('resolve_concurrency', resolve_concurrency, DEFAULT_RESOLVE_CONCURRENCY)))
        self._progress_interval = float(_setting('progress_interval', progress_interval, DEFAULT_PROGRESS_INTERVAL))
        self._poll_interval = float(_setting('poll_interval', poll_interval, DEFAULT_POLL_INTERVAL))
        self._max_host_count = int(_setting('max_host_count', max_host_count, MAX_HOST_COUNT))

        if transport_factory is None:
            transport_factory = self._open_transport
        self._transport_factory = transport_factory

        self.subnet = None
        self.summary = None
        self._candidates = []

        # MAC -> FoundHost, in first-seen order. Only the collector writes to it.
        self._hosts = {}

        # Shared between the send workers and the collector
        self._counter_lock = threading.Lock()
        self._sent_count = 0
        self._answered = set()
        self._reply_count = 0

        # Set by the collector once it no longer wants probes to go out
        self._stopping = threading.Event()

        self._sender_done = threading.Event()
        self._sender_done_ts = 0.0
        self._last_reply_ts = 0.0

        # First exception raised in the sender or the pump
        self._failure = None

        self._enrichment_futures = []

        self._last_progress = -1
        self._last_progress_ts = 0.0

    def _open_transport(self, interface):
        return transport.open_transport(interface, poll_interval=self._poll_interval)

    def run(self):
        """Runs the scan to completion and returns the found hosts. See `scan()`."""

        start_ts = time.monotonic()

        self.subnet = compute_subnet(self.interface.local_address, self.interface.subnet_mask)
        check_subnet(self.subnet, self._max_host_count)

        self._candidates = list(self.subnet.candidates(exclude=[self.interface.local_address]))

        logger.info(f'[Scanner] Scanning {len(self._candidates)} IP addresses in {self.subnet.network_address}/{self.subnet.prefix_length} on {self.interface.name}')

        probe_transport = self._transport_factory(self.interface)

        resolver = self._resolver
        owns_resolver = resolver is None
        if owns_resolver:
            resolver = Resolver(max_workers=self._resolve_concurrency)

        enrichment_pool = concurrent.futures.ThreadPoolExecutor(
            max_workers=self._resolve_concurrency,
            thread_name_prefix='blinkscan-enrich'
        )

        reply_queue = queue.Queue()
        deadline = start_ts + self._scan_timeout

        sender_thread = threading.Thread(target=self._send_all, args=(probe_transport,), name='blinkscan-sender')
        sender_thread.daemon = True
        pump_thread = threading.Thread(target=self._pump_replies, args=(probe_transport, reply_queue), name='blinkscan-pump')
        pump_thread.daemon = True

        stop_reason = STOP_FAILED
        try:
            pump_thread.start()
            sender_thread.start()

            stop_reason = self._collect(reply_queue, enrichment_pool, resolver, deadline)

            # Let pending host name lookups land before the results are copied
            if stop_reason in (STOP_CONVERGED, STOP_DEADLINE):
                concurrent.futures.wait(self._enrichment_futures, timeout=self._resolve_timeout)

        finally:
            self._stopping.set()
            probe_transport.close()

            for th in (sender_thread, pump_thread):
                if th.is_alive():
                    th.join(JOIN_TIMEOUT)
                if th.is_alive():
                    logger.warning(f'[Scanner] Thread {th.name} did not stop within {JOIN_TIMEOUT}s')

            enrichment_pool.shutdown(wait=False, cancel_futures=True)
            if owns_resolver:
                resolver.close()

        if stop_reason == STOP_FAILED:
            raise TransportError(f'Scan on {self.interface.name} failed: {self._failure}') from self._failure

        host_list = [found_host.copy() for found_host in self._hosts.values()]

        self.summary = ScanSummary(
            candidate_count=len(self._candidates),
            probes_sent=self._sent_count,
            replies_received=self._reply_count,
            frames_seen=getattr(probe_transport, 'frames_seen', 0),
            hosts_found=len(host_list),
            duration_ms=int((time.monotonic() - start_ts) * 1000),
            stop_reason=stop_reason
        )

        logger.info(f'[Scanner] Scan on {self.interface.name} {stop_reason}: {len(host_list)} hosts, {self._sent_count} probes, {self._reply_count} replies, {self.summary.duration_ms} ms')

        if self._on_progress is not None:
            self._emit_progress(100)

        return host_list

    def _should_stop(self) -> bool:
        return self._stopping.is_set() or self.cancel_event.is_set()

    # ====================
    # Sender
    # ====================

    def _send_all(self, probe_transport):
        """Sweeps the candidates, then re-probes the silent ones `send_retries` times."""

        slots = threading.BoundedSemaphore(self._send_concurrency)

        def release_slot(_future):
            slots.release()

        try:
            with concurrent.futures.ThreadPoolExecutor(
                max_workers=self._send_concurrency,
                thread_name_prefix='blinkscan-send'
            ) as send_pool:

                for attempt in range(1 + self._send_retries):

                    if attempt == 0:
                        target_list = self._candidates
                    else:
                        # Give the last probes of the previous sweep a chance to be answered
                        if self._stopping.wait(RETRY_DELAY) or self.cancel_event.is_set():
                            return
                        with self._counter_lock:
                            target_list = [ip for ip in self._candidates if ip not in self._answered]
                        if not target_list:
                            break
                        logger.debug(f'[Scanner] Retry sweep {attempt}: {len(target_list)} silent addresses')

                    for ip_addr in target_list:
                        if self._should_stop():
                            return
                        slots.acquire()
                        if self._should_stop():
                            slots.release()
                            return
                        future = send_pool.submit(self._send_one, probe_transport, ip_addr, attempt == 0)
                        future.add_done_callback(release_slot)

        except Exception as e:
            logger.error(f'[Scanner] Sender failed: {e}')
            if self._failure is None:
                self._failure = e

        finally:
            self._sender_done_ts = time.monotonic()
            self._sender_done.set()

    def _send_one(self, probe_transport, ip_addr, first_attempt):

        if self._should_stop():
            return

        try:
            probe_transport.send(ProbeRequest(target_address=ip_addr))
        except TransportError as e:
            # Sends fail once the transport is closed at the end of the scan
            if not self._should_stop() and self._failure is None:
                logger.error(f'[Scanner] {e}')
                self._failure = e
            return

        if first_attempt:
            with self._counter_lock:
                self._sent_count += 1

    # ====================
    # Pump
    # ====================

    def _pump_replies(self, probe_transport, reply_queue):

        try:
            for reply in probe_transport.replies():
                reply_queue.put(reply)
        except Exception as e:
            if not self._should_stop() and self._failure is None:
                logger.error(f'[Scanner] Receiving replies failed: {e}')
                self._failure = e

    # ====================
    # Collector
    # ====================

    def _collect(self, reply_queue, enrichment_pool, resolver, deadline) -> str:
        """Processes replies until one of the stop conditions fires. Returns the stop reason."""

        while True:

            if self.cancel_event.is_set():
                return STOP_CANCELLED

            if self._failure is not None:
                return STOP_FAILED

            now = time.monotonic()
            if now >= deadline:
                return STOP_DEADLINE

            if self._sender_done.is_set():
                quiet_since = max(self._sender_done_ts, self._last_reply_ts)
                if now - quiet_since >= self._quiet_period:
                    return STOP_CONVERGED

            try:
                reply = reply_queue.get(timeout=min(self._poll_interval, max(0.0, deadline - now)))
            except queue.Empty:
                reply = None

            # Nothing is recorded once the scan has been cancelled
            if reply is not None and not self.cancel_event.is_set():
                self._record_reply(reply, enrichment_pool, resolver)

            self._maybe_report_progress()

    def _record_reply(self, reply, enrichment_pool, resolver):

        ip_addr = reply.source_address
        mac_addr = reply.source_hardware_address

        self._last_reply_ts = time.monotonic()
        with self._counter_lock:
            self._answered.add(ip_addr)
            self._reply_count += 1

        found_host = self._hosts.get(mac_addr)

        if found_host is None:
            found_host = FoundHost(host=ip_addr, mac=mac_addr)
            found_host.vendor = self._lookup_vendor(mac_addr)
            self._hosts[mac_addr] = found_host
            logger.debug(f'[Scanner] Found {ip_addr} at {mac_addr} ({found_host.vendor})')

        elif found_host.host != ip_addr:
            # The same MAC answered for another address: the latest one wins
            logger.info(f'[Scanner] {mac_addr} moved from {found_host.host} to {ip_addr}')
            found_host.host = ip_addr
            found_host.hostname = ''

        else:
            return

        try:
            future = enrichment_pool.submit(self._resolve_hostname, resolver, found_host, ip_addr)
        except RuntimeError:
            return
        self._enrichment_futures.append(future)

    def _lookup_vendor(self, mac_addr) -> str:

        try:
            return self._vendor_lookup(mac_addr) or ''
        except Exception as e:
            logger.debug(f'[Scanner] Vendor lookup for {mac_addr} failed: {e}')
            return ''

    def _resolve_hostname(self, resolver, found_host, ip_addr):

        try:
            hostname = resolver.resolve(ip_addr, timeout=self._resolve_timeout)
        except Exception as e:
            logger.debug(f'[Scanner] Name resolution for {ip_addr} failed: {e}')
            return

        # Skip the write if the host has moved to another address meanwhile
        if hostname and found_host.host == ip_addr:
            found_host.hostname = hostname

    # ====================
    # Progress
    # ====================

    def progress_percent(self) -> int:
        """
        (probes sent + addresses answered) / (2 x candidates), as an integer
        percentage. Stays below 100 until the scan returns.

        """
        total = len(self._candidates)
        if total == 0:
            return 0

        with self._counter_lock:
            done = self._sent_count + len(self._answered)

        return max(0, min(99, done * 100 // (2 * total)))

    def _maybe_report_progress(self):

        if self._on_progress is None:
            return

        if time.monotonic() - self._last_progress_ts < self._progress_interval:
            return

        percent = self.progress_percent()
        if percent > self._last_progress:
            self._emit_progress(percent)

    def _emit_progress(self, percent):

        self._last_progress = percent
        self._last_progress_ts = time.monotonic()
        self._on_progress(percent)
