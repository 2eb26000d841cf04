"""
Records passed between the blinkscan components.

"""
import dataclasses
from dataclasses import dataclass

import netaddr


@dataclass(frozen=True)
class NetworkInterface:
    """Snapshot of one OS network interface, taken at enumeration time."""

    name: str
    friendly_name: str
    index: int
    local_address: str
    subnet_mask: str
    hardware_address: str

    def to_dict(self) -> dict:
        return {
            'name': self.name,
            'friendly_name': self.friendly_name,
            'index': self.index,
        }


@dataclass(frozen=True)
class Subnet:
    """
    IPv4 range derived from an interface's address and netmask.

    `host_count` excludes the network and broadcast addresses.

    """
    network_address: str
    broadcast_address: str
    prefix_length: int
    host_count: int

    def candidates(self, exclude=()):
        """
        Yields every usable host address (as a string) between the network
        and broadcast addresses, skipping the addresses in `exclude`.

        """
        excluded = {str(netaddr.IPAddress(ip)) for ip in exclude}
        first = int(netaddr.IPAddress(self.network_address)) + 1
        last = int(netaddr.IPAddress(self.broadcast_address)) - 1
        for value in range(first, last + 1):
            ip_addr = str(netaddr.IPAddress(value, 4))
            if ip_addr not in excluded:
                yield ip_addr


@dataclass(frozen=True)
class ProbeRequest:
    target_address: str


@dataclass(frozen=True)
class ProbeReply:
    source_address: str
    source_hardware_address: str
    received_at: float


@dataclass
class FoundHost:
    """
    A host that answered an ARP probe.

    `vendor` and `hostname` are filled in after the MAC is known and stay ''
    when enrichment fails.

    """
    host: str
    mac: str
    vendor: str = ''
    hostname: str = ''

    def copy(self) -> 'FoundHost':
        return dataclasses.replace(self)

    def to_dict(self) -> dict:
        return dataclasses.asdict(self)


@dataclass(frozen=True)
class ScanSummary:
    """Diagnostics about a finished scan."""

    candidate_count: int
    probes_sent: int
    replies_received: int
    frames_seen: int
    hosts_found: int
    duration_ms: int
    stop_reason: str


def canonical_mac(mac_addr) -> str:
    """
    Returns the MAC address in lowercase, colon-delimited form, e.g.
    `aa:bb:cc:dd:ee:ff`. Raises ValueError if `mac_addr` is not a MAC address.

    """
    try:
        eui = netaddr.EUI(mac_addr, dialect=netaddr.mac_unix_expanded)
    except (netaddr.AddrFormatError, TypeError, ValueError) as e:
        raise ValueError(f'Invalid MAC address: {mac_addr!r}') from e
    return str(eui)
