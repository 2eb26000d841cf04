"""
Lists the network interfaces that can be ARP-scanned.

An interface qualifies if it is not a loopback, is not administratively down,
and has an IPv4 address, a netmask and a hardware address. The interface
carrying the IPv4 default route is listed first.

"""
import logging
import socket

import netaddr
import netifaces
import scapy.all as sc

from . import common
from .errors import EnumerationError
from .models import NetworkInterface, canonical_mac


logger = logging.getLogger(__name__)


ZERO_MAC = '00:00:00:00:00:00'


def list_interfaces():
    """
    Returns a list of NetworkInterface objects. Raises EnumerationError if the
    OS interface list cannot be read.

    """
    try:
        iface_names = netifaces.interfaces()
    except Exception as e:
        raise EnumerationError(f'Cannot list network interfaces: {e}') from e

    default_iface = get_default_interface_name()

    iface_list = []
    for (position, iface_name) in enumerate(iface_names, start=1):
        try:
            iface = _make_interface(iface_name, position)
        except Exception as e:
            logger.debug(f'[Interfaces] Skipping {iface_name}: {e}')
            continue
        if iface is not None:
            iface_list.append(iface)

    # The default route interface comes first; the rest keep the OS order
    iface_list.sort(key=lambda iface: iface.name != default_iface)

    logger.info(f'[Interfaces] Found {len(iface_list)} scannable interfaces: {[iface.name for iface in iface_list]}')

    return iface_list


def get_default_interface_name():
    """Returns the name of the interface with the IPv4 default route, or None."""

    try:
        default_route = netifaces.gateways().get('default', {}).get(netifaces.AF_INET)
    except Exception as e:
        logger.debug(f'[Interfaces] Cannot read the default route: {e}')
        return None

    if not default_route:
        return None

    return default_route[1]


def _make_interface(iface_name, position):
    """Returns a NetworkInterface, or None if `iface_name` cannot be scanned."""

    addrs = netifaces.ifaddresses(iface_name)

    ipv4_addr = None
    for inet in addrs.get(netifaces.AF_INET, []):
        if inet.get('addr') and inet.get('netmask'):
            ipv4_addr = inet
            break
    if ipv4_addr is None:
        return None

    ip_addr = netaddr.IPAddress(ipv4_addr['addr'])
    if ip_addr.is_loopback():
        return None

    link_list = addrs.get(netifaces.AF_LINK, [])
    if not link_list or not link_list[0].get('addr'):
        return None
    try:
        mac_addr = canonical_mac(link_list[0]['addr'])
    except ValueError:
        return None
    if mac_addr == ZERO_MAC:
        return None

    if not _is_operational(iface_name):
        return None

    friendly_name = get_friendly_name(iface_name)
    if 'bluetooth' in friendly_name.lower():
        return None

    return NetworkInterface(
        name=iface_name,
        friendly_name=friendly_name,
        index=_get_index(iface_name, position),
        local_address=str(ip_addr),
        subnet_mask=str(netaddr.IPAddress(ipv4_addr['netmask'])),
        hardware_address=mac_addr
    )


def _is_operational(iface_name) -> bool:
    """Only Linux exposes the link state cheaply; elsewhere, assume up."""

    if common.get_os() != 'linux':
        return True

    try:
        with open(f'/sys/class/net/{iface_name}/operstate', 'r') as fp:
            state = fp.read().strip()
    except OSError:
        return True

    return state != 'down'


def _get_index(iface_name, position) -> int:

    try:
        return socket.if_nametoindex(iface_name)
    except OSError:
        return position


def get_friendly_name(iface_name) -> str:
    """
    Returns a human-readable name for the interface. On Windows, netifaces
    reports GUIDs, so the description is looked up in scapy's interface
    table; elsewhere the OS name is already readable.

    """
    if common.get_os() != 'windows':
        return iface_name

    for scapy_iface in sc.conf.ifaces.values():
        guid = getattr(scapy_iface, 'guid', None) or ''
        if guid and guid.strip('{}').lower() == iface_name.strip('{}').lower():
            return scapy_iface.description or iface_name

    return iface_name
