"""
Exceptions raised by blinkscan.

Structural failures (listing interfaces, opening the probe channel, an
unusable subnet) abort the call and are raised as one of the classes below.
Enrichment failures never surface here; a cancelled or timed-out scan is not
an error either.

"""


class BlinkscanError(Exception):
    """Base class for all blinkscan errors."""


class EnumerationError(BlinkscanError):
    """The OS interface list could not be retrieved at all."""


class ScanError(BlinkscanError):
    """A scan could not be carried out."""


class TransportError(ScanError):
    """The ARP probe channel could not be opened or failed mid-scan."""


class UnsupportedSubnet(ScanError):
    """The interface addressing yields no usable hosts or too many of them."""
