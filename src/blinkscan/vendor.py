"""
Maps a MAC address to the company that owns its vendor prefix (OUI).

The table is the bundled `oui_database.txt`, a copy of Wireshark's `manuf` file.
Most entries are 24-bit prefixes; IEEE MA-M and MA-S blocks carry an explicit
`/28` or `/36` and are matched before the shorter prefix.

"""
import functools
import importlib.resources


# Maps the hex prefix of the MAC address (without separators) to the company name.
_oui_dict = {}

# Prefix lengths (in hex digits) present in the table, longest first.
_oui_length_split_list = []


@functools.lru_cache(maxsize=1)
def parse_oui_database():
    _oui_length_splits = set()
    with importlib.resources.files('blinkscan').joinpath('oui_database.txt').open('r', encoding='utf-8') as fp:
        for line in fp:
            line = line.strip()
            if line == '' or line.startswith('#'):
                continue
            fields = line.split('\t')
            if len(fields) < 2:
                continue
            (prefix, company) = (fields[0], fields[-1])
            # Columns are padded with spaces, e.g. '00:1B:21         ' or '74:F8:DB:E0/28   '
            (oui, _, bits) = prefix.strip().partition('/')
            oui = oui.lower().replace(':', '').replace('-', '').strip()
            if bits:
                oui = oui[:int(bits) // 4]
            else:
                oui = oui[:6]
            _oui_dict[oui] = company.strip()
            _oui_length_splits.add(len(oui))

    _oui_length_split_list.extend(sorted(_oui_length_splits, reverse=True))


@functools.lru_cache(maxsize=1024)
def get_vendor(mac_addr: str) -> str:
    """Given a MAC address, returns the vendor. Returns '' if unknown. """

    if not isinstance(mac_addr, str):
        return ''

    parse_oui_database()

    mac_addr = mac_addr.lower().replace(':', '').replace('-', '').replace('.', '')

    # Check the most specific prefixes first
    for split_length in _oui_length_split_list:
        if len(mac_addr) < split_length:
            continue
        oui = mac_addr[:split_length]
        if oui in _oui_dict:
            return _oui_dict[oui]

    return ''
