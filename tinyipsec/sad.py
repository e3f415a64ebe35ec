"""Security Association Database (SAD): the table of negotiated SAs."""

from __future__ import annotations

import dataclasses
import enum
import ipaddress
import struct
from collections.abc import Iterable, Iterator
from dataclasses import dataclass, field

__all__ = [
    "IpProtocol",
    "Mode",
    "Cipher",
    "Auth",
    "TableFullError",
    "EntryNotFoundError",
    "SadEntry",
    "SadTable",
    "address_matches",
    "get_spi",
]

MAX_ENCKEY_LEN = 24
MAX_AUTHKEY_LEN = 20
DEFAULT_CAPACITY = 10

_IP_HEADER_LEN = 20
_SAD_HEADER = (
    "     dest/dest netaddr                proto mode crypto seq"
    "          win   ltime    mtu      spi"
)

Address = "ipaddress.IPv4Address | str | int"


class IpProtocol(enum.IntEnum):
    """IP protocol numbers used in selectors and SAs."""

    ICMP = 1
    TCP = 6
    UDP = 17
    ESP = 50
    AH = 51


class Mode(enum.IntEnum):
    """IPsec encapsulation mode."""

    TRANSPORT = 1
    TUNNEL = 2


class Cipher(enum.IntEnum):
    """ESP encryption algorithm."""

    DES = 1
    TRIPLE_DES = 2


class Auth(enum.IntEnum):
    """Authentication algorithm."""

    HMAC_MD5 = 1
    HMAC_SHA1 = 2


class TableFullError(Exception):
    """Raised when a table has no free slot left."""


class EntryNotFoundError(LookupError):
    """Raised when an entry to remove is not part of the table."""


def _to_address(value: ipaddress.IPv4Address | str | int) -> ipaddress.IPv4Address:
    return value if isinstance(value, ipaddress.IPv4Address) else ipaddress.IPv4Address(value)


def address_matches(address, network, mask) -> bool:
    """Return True if ``address`` and ``network`` agree on every bit set in ``mask``."""
    m = int(_to_address(mask))
    return (int(_to_address(address)) & m) == (int(_to_address(network)) & m)


def get_spi(packet: bytes) -> int:
    """Return the SPI of the ESP or AH header that follows the IP header, or 0."""
    data = bytes(memoryview(packet))
    if len(data) < _IP_HEADER_LEN:
        raise ValueError("packet is shorter than an IP header")
    protocol = data[9]
    if protocol == IpProtocol.ESP:
        offset = _IP_HEADER_LEN
    elif protocol == IpProtocol.AH:
        offset = _IP_HEADER_LEN + 4
    else:
        return 0
    if len(data) < offset + 4:
        raise ValueError("packet is too short to hold an SPI")
    (spi,) = struct.unpack_from(">I", data, offset)
    return spi


@dataclass
class SadEntry:
    """One Security Association."""

    dest: ipaddress.IPv4Address
    dest_netaddr: ipaddress.IPv4Address
    spi: int
    protocol: IpProtocol
    mode: Mode = Mode.TUNNEL
    enc_alg: Cipher | None = None
    enckey: bytes = b""
    auth_alg: Auth | None = None
    authkey: bytes = b""
    sequence_number: int = 0
    replay_win: int = 0
    lifetime: int = 0
    path_mtu: int = 0
    replay_bitmap: int = field(default=0, repr=False)

    def __post_init__(self) -> None:
        self.dest = _to_address(self.dest)
        self.dest_netaddr = _to_address(self.dest_netaddr)
        self.protocol = IpProtocol(self.protocol)
        self.mode = Mode(self.mode)
        if self.enc_alg is not None:
            self.enc_alg = Cipher(self.enc_alg)
        if self.auth_alg is not None:
            self.auth_alg = Auth(self.auth_alg)
        self.enckey = bytes(self.enckey)
        self.authkey = bytes(self.authkey)
        if len(self.enckey) > MAX_ENCKEY_LEN:
            raise ValueError(f"encryption key longer than {MAX_ENCKEY_LEN} bytes")
        if len(self.authkey) > MAX_AUTHKEY_LEN:
            raise ValueError(f"authentication key longer than {MAX_AUTHKEY_LEN} bytes")
        if not 0 <= self.spi <= 0xFFFFFFFF:
            raise ValueError("SPI must fit in 32 bits")

    def format(self) -> str:
        """Return the entry as one line of a table listing."""
        if self.protocol == IpProtocol.AH:
            crypto = " MD5" if self.auth_alg == Auth.HMAC_MD5 else "SHA1"
        else:
            crypto = " DES" if self.enc_alg == Cipher.DES else "3DES"
        proto = "ESP" if self.protocol == IpProtocol.ESP else " AH"
        mode = "  TUN" if self.mode == Mode.TUNNEL else "TRANS"
        line = (
            f"{str(self.dest):>15}/{str(self.dest_netaddr):>15} {proto:>4} {mode:>5}  "
            f"{crypto:>4}   {self.sequence_number:>10} {self.replay_win:>5} "
            f"{self.lifetime:>10} {self.path_mtu:>4} {self.spi:>8x}"
        )
        return f"     {line}"


class SadTable:
    """An ordered, bounded table of Security Associations."""

    def __init__(self, capacity: int = DEFAULT_CAPACITY,
                 entries: Iterable[SadEntry] = ()) -> None:
        if capacity < 0:
            raise ValueError("capacity must not be negative")
        self.capacity = capacity
        self._entries: list[SadEntry] = []
        for entry in entries:
            self.add(entry)

    def add(self, entry: SadEntry) -> SadEntry:
        """Store a copy of ``entry`` at the end of the table and return the copy."""
        if len(self._entries) >= self.capacity:
            raise TableFullError("no free SAD entry")
        stored = dataclasses.replace(entry)
        self._entries.append(stored)
        return stored

    def remove(self, entry: SadEntry) -> None:
        """Remove the stored ``entry`` (as returned by add or lookup)."""
        for position, candidate in enumerate(self._entries):
            if candidate is entry:
                del self._entries[position]
                return
        raise EntryNotFoundError("entry is not part of this SAD table")

    def lookup(self, dest, protocol, spi: int) -> SadEntry | None:
        """Return the first SA matching destination, protocol and SPI, or None."""
        for entry in self._entries:
            if (address_matches(dest, entry.dest, entry.dest_netaddr)
                    and entry.protocol == protocol
                    and entry.spi == spi):
                return entry
        return None

    def flush(self) -> None:
        """Remove every entry."""
        self._entries.clear()

    def format(self) -> str:
        """Return a printable listing of the whole table."""
        lines = [_SAD_HEADER]
        if not self._entries:
            lines.append("      SAD table is empty")
        lines.extend(entry.format() for entry in self._entries)
        return "\n".join(lines)

    def __iter__(self) -> Iterator[SadEntry]:
        return iter(list(self._entries))

    def __len__(self) -> int:
        return len(self._entries)