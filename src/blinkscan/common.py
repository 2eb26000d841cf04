"""
Common Helper Functions.

This module provides platform helpers used by the inventory and the probe
transport: which operating system we run on, and whether the current process
may open raw link-layer sockets.

Functions:
    get_os(): Detects the current operating system and returns a normalized string.
    is_privileged(): Tells whether raw sockets can be expected to open.

Typical usage:
    from blinkscan.common import get_os
    os_name = get_os()
"""
import os
import sys


def get_os() -> str:
    """
    Detect the current operating system and return a normalized string identifier.

    Returns:
        str: One of 'mac', 'linux', or 'windows' depending on the detected platform.

    Raises:
        RuntimeError: If the operating system is not recognized as macOS, Linux, or Windows.

    Example:
        get_os()
        'linux'
    """
    os_platform = sys.platform

    if os_platform.startswith('darwin'):
        return 'mac'

    if os_platform.startswith('linux'):
        return 'linux'

    if os_platform.startswith('win'):
        return 'windows'

    raise RuntimeError('Unsupported operating system.')


def is_privileged() -> bool:
    """
    Returns True if the process runs as root (POSIX). On Windows, where raw
    access goes through Npcap, always returns True and lets the open fail
    on its own.

    On Linux, CAP_NET_RAW is enough to probe without root, so a False here is
    only used to make error messages more helpful, never to refuse a scan.
    """
    if get_os() == 'windows':
        return True

    return os.geteuid() == 0
