"""
Entry points for the host application.

The application lists the interfaces, lets the user pick one, and passes the
chosen entry back to `scan`, which blocks until the scan is done:

    import blinkscan

    blinkscan.configure_logging()
    iface_list = blinkscan.get_interfaces()
    for host in blinkscan.scan(iface_list[0], on_progress=print):
        print(host['host'], host['mac'], host['vendor'], host['hostname'])

Only one scan runs through this module at a time: starting a scan cancels the
one in flight, which then returns its partial results.

"""
import logging
import threading

from . import global_state
from . import interfaces
from . import scanner
from .errors import EnumerationError, TransportError


logger = logging.getLogger(__name__)


LOG_FILE = 'blinkscan.log'


def configure_logging(log_file=LOG_FILE, level=logging.DEBUG):
    """Sends blinkscan's log records to `log_file`. Call once from the application."""

    logging.basicConfig(filename=log_file, level=level, format='%(asctime)s - %(levelname)s - %(message)s')
    logging.getLogger("scapy.runtime").setLevel(logging.ERROR)


def get_interfaces():
    """
    Returns the scannable interfaces as a list of
    `{'name', 'friendly_name', 'index'}` dicts, the default one first.
    Raises EnumerationError.

    """
    return [iface.to_dict() for iface in interfaces.list_interfaces()]


def scan(interface, on_progress=None, **kwargs):
    """
    Scans the subnet of `interface`, one of the dicts returned by
    `get_interfaces()`. Returns a list of `{'host', 'mac', 'vendor',
    'hostname'}` dicts; `vendor` and `hostname` are '' when unknown.

    Raises TransportError if the interface is gone or cannot be opened, and
    UnsupportedSubnet if its subnet cannot be scanned. Extra keyword
    arguments are passed to scanner.ScanSession.
    """
    selected = _find_interface(interface)

    cancel_event = threading.Event()
    with global_state.global_state_lock:
        previous_cancel_event = global_state.active_scan_cancel_event
        global_state.active_scan_cancel_event = cancel_event

    if previous_cancel_event is not None:
        logger.info('[api] A scan is already running; cancelling it.')
        previous_cancel_event.set()

    session = scanner.ScanSession(selected, on_progress=on_progress, cancel_event=cancel_event, **kwargs)
    try:
        host_list = session.run()
    finally:
        with global_state.global_state_lock:
            if global_state.active_scan_cancel_event is cancel_event:
                global_state.active_scan_cancel_event = None

    with global_state.global_state_lock:
        global_state.last_scan_summary = session.summary

    return [found_host.to_dict() for found_host in host_list]


def cancel_active_scan() -> bool:
    """Cancels the scan in flight, if any. Returns whether there was one."""

    with global_state.global_state_lock:
        cancel_event = global_state.active_scan_cancel_event

    if cancel_event is None:
        return False

    cancel_event.set()
    return True


def get_last_summary():
    """Returns the ScanSummary of the last completed scan, or None."""

    with global_state.global_state_lock:
        return global_state.last_scan_summary


def _find_interface(interface):
    """Maps a `get_interfaces()` entry back to a fresh NetworkInterface."""

    try:
        iface_list = interfaces.list_interfaces()
    except EnumerationError as e:
        raise TransportError(f'Cannot look up interface {interface!r}: {e}') from e

    index = interface.get('index')
    name = interface.get('name')

    for iface in iface_list:
        if index is not None and iface.index == index:
            return iface

    for iface in iface_list:
        if name and iface.name == name:
            return iface

    raise TransportError(f'Interface {name or index!r} is no longer available')
