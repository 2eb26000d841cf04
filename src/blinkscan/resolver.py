"""
Best-effort reverse DNS for discovered hosts.

`socket.gethostbyaddr` cannot be interrupted, so lookups run on a small
thread pool and the caller waits on the future for at most `timeout` seconds
once a worker has picked the lookup up. A lookup that outlives its timeout
finishes in the background and its result is discarded.

"""
import concurrent.futures
import ipaddress
import logging
import socket
import threading


logger = logging.getLogger(__name__)


DEFAULT_RESOLVE_TIMEOUT = 2.0

DEFAULT_RESOLVE_CONCURRENCY = 16

# How often a queued lookup checks whether it was cancelled before starting
QUEUE_POLL_INTERVAL = 0.1


class Resolver(object):

    def __init__(self, max_workers=DEFAULT_RESOLVE_CONCURRENCY) -> None:

        self._executor = concurrent.futures.ThreadPoolExecutor(
            max_workers=max_workers,
            thread_name_prefix='blinkscan-resolve'
        )

    def resolve(self, ip_addr: str, timeout: float = DEFAULT_RESOLVE_TIMEOUT) -> str:
        """
        Returns the host name of `ip_addr`, or '' if it has no PTR record, the
        lookup fails or it does not finish within `timeout` seconds.

        """
        started = threading.Event()

        def run_lookup():
            started.set()
            return lookup_hostname(ip_addr)

        try:
            future = self._executor.submit(run_lookup)
        except RuntimeError:
            # The resolver has been shut down
            return ''

        # The timeout covers the lookup itself, not the time spent queued
        # behind other (possibly hung) lookups.
        while not started.wait(QUEUE_POLL_INTERVAL):
            if future.done():
                break

        try:
            return future.result(timeout=timeout)
        except concurrent.futures.TimeoutError:
            logger.debug(f'[Resolver] Reverse lookup for {ip_addr} timed out after {timeout}s')
        except concurrent.futures.CancelledError:
            logger.debug(f'[Resolver] Reverse lookup for {ip_addr} cancelled')
        except Exception as e:
            logger.debug(f'[Resolver] Reverse lookup for {ip_addr} failed: {e}')

        return ''

    def close(self):
        self._executor.shutdown(wait=False, cancel_futures=True)

    def __enter__(self):
        return self

    def __exit__(self, *exc_info):
        self.close()


def lookup_hostname(ip_addr: str) -> str:
    """
    Blocking reverse lookup. Returns '' if the resolver answers with an IP
    literal instead of a name.

    Raises socket.herror, socket.gaierror or OSError on failure.
    """
    (hostname, _, _) = socket.gethostbyaddr(ip_addr)

    hostname = hostname.rstrip('.')
    if not hostname or _is_ip_literal(hostname):
        return ''

    return hostname


def _is_ip_literal(name: str) -> bool:

    try:
        ipaddress.ip_address(name)
    except ValueError:
        return False
    return True
