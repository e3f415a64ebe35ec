"""Security Policy Database (SPD): selectors deciding how packets are handled."""

from __future__ import annotations

import dataclasses
import enum
import ipaddress
import struct
from collections.abc import Iterable, Iterator
from dataclasses import dataclass

from tinyipsec.sad import (
    DEFAULT_CAPACITY,
    EntryNotFoundError,
    IpProtocol,
    SadEntry,
    TableFullError,
    address_matches,
)

__all__ = ["Policy", "SpdEntry", "SpdTable"]

_IP_HEADER_LEN = 20
_SPD_HEADER = (
    "      src-addr/net-addr               dst-addr/net-addr"
    "                proto prt:src/dest  policy  SA"
)

_PROTOCOL_LABELS = {
    IpProtocol.TCP: " TCP",
    IpProtocol.UDP: " UDP",
    IpProtocol.AH: "  AH",
    IpProtocol.ESP: " ESP",
    IpProtocol.ICMP: "ICMP",
}


class Policy(enum.IntEnum):
    """What to do with a packet that matches a policy."""

    APPLY = 1
    BYPASS = 2
    DISCARD = 3

    @property
    def label(self) -> str:
        return {"APPLY": "  APPLY", "BYPASS": " BYPASS", "DISCARD": "DISCARD"}[self.name]


def _to_address(value) -> ipaddress.IPv4Address:
    return value if isinstance(value, ipaddress.IPv4Address) else ipaddress.IPv4Address(value)


@dataclass
class SpdEntry:
    """One Security Policy; a protocol or port of 0 matches anything."""

    src: ipaddress.IPv4Address
    src_netaddr: ipaddress.IPv4Address
    dest: ipaddress.IPv4Address
    dest_netaddr: ipaddress.IPv4Address
    policy: Policy
    protocol: int = 0
    src_port: int = 0
    dest_port: int = 0
    sa: SadEntry | None = None

    def __post_init__(self) -> None:
        self.src = _to_address(self.src)
        self.src_netaddr = _to_address(self.src_netaddr)
        self.dest = _to_address(self.dest)
        self.dest_netaddr = _to_address(self.dest_netaddr)
        self.policy = Policy(self.policy)
        self.protocol = int(self.protocol)
        if not 0 <= self.protocol <= 0xFF:
            raise ValueError("protocol must fit in 8 bits")
        for port in (self.src_port, self.dest_port):
            if not 0 <= port <= 0xFFFF:
                raise ValueError("ports must fit in 16 bits")

    def format(self) -> str:
        """Return the entry as one line of a table listing."""
        try:
            proto = _PROTOCOL_LABELS[IpProtocol(self.protocol)]
        except ValueError:
            proto = f"{self.protocol:4d}"
        sa = f"0x{self.sa.spi:08x}" if self.sa is not None else "-"
        line = (
            f"{str(self.src):>15}/{str(self.src_netaddr):>15}   "
            f"{str(self.dest):>15}/{str(self.dest_netaddr):>15} "
            f"{proto:>3} {self.src_port:>5} {self.dest_port:>5}    "
            f"{self.policy.label:>7}  {sa}"
        )
        return f"    {line}"

    def _matches(self, src, dest, protocol: int, ports: tuple[int, int] | None) -> bool:
        if not address_matches(src, self.src, self.src_netaddr):
            return False
        if not address_matches(dest, self.dest, self.dest_netaddr):
            return False
        if self.protocol not in (0, protocol):
            return False
        if ports is None:
            return True
        src_port, dest_port = ports
        return self.src_port in (0, src_port) and self.dest_port in (0, dest_port)


class SpdTable:
    """An ordered, bounded table of Security Policies."""

    def __init__(self, capacity: int = DEFAULT_CAPACITY,
                 entries: Iterable[SpdEntry] = ()) -> None:
        if capacity < 0:
            raise ValueError("capacity must not be negative")
        self.capacity = capacity
        self._entries: list[SpdEntry] = []
        for entry in entries:
            self._append(dataclasses.replace(entry))

    def _append(self, entry: SpdEntry) -> SpdEntry:
        if len(self._entries) >= self.capacity:
            raise TableFullError("no free SPD entry")
        self._entries.append(entry)
        return entry

    def add(self, src, src_net, dst, dst_net, protocol, src_port, dst_port,
            policy, sa: SadEntry | None = None) -> SpdEntry:
        """Append a new policy at the end of the table and return it."""
        entry = SpdEntry(src, src_net, dst, dst_net, policy,
                         protocol, src_port, dst_port, sa)
        return self._append(entry)

    def remove(self, entry: SpdEntry) -> None:
        """Remove the stored ``entry`` (as returned by add or lookup)."""
        for position, candidate in enumerate(self._entries):
            if candidate is entry:
                del self._entries[position]
                return
        raise EntryNotFoundError("entry is not part of this SPD table")

    def lookup(self, packet: bytes) -> SpdEntry | None:
        """Return the first policy whose selectors match the IPv4 ``packet``, or None."""
        data = bytes(memoryview(packet))
        if len(data) < _IP_HEADER_LEN:
            raise ValueError("packet is shorter than an IP header")
        protocol = data[9]
        src = ipaddress.IPv4Address(data[12:16])
        dest = ipaddress.IPv4Address(data[16:20])
        ports: tuple[int, int] | None = None
        if protocol in (IpProtocol.TCP, IpProtocol.UDP):
            if len(data) < _IP_HEADER_LEN + 4:
                raise ValueError("packet is too short to hold transport ports")
            ports = struct.unpack_from(">HH", data, _IP_HEADER_LEN)
        for entry in self._entries:
            if entry._matches(src, dest, protocol, ports):
                return entry
        return None

    def flush(self, default: SpdEntry) -> SpdEntry:
        """Remove every policy, then add the selectors of ``default`` without its SA."""
        self._entries.clear()
        return self.add(default.src, default.src_netaddr, default.dest,
                        default.dest_netaddr, default.protocol, default.src_port,
                        default.dest_port, default.policy)

    def format(self) -> str:
        """Return a printable listing of the whole table."""
        lines = [_SPD_HEADER]
        if not self._entries:
            lines.append("      SPD table is empty")
        lines.extend(entry.format() for entry in self._entries)
        return "\n".join(lines)

    def __iter__(self) -> Iterator[SpdEntry]:
        return iter(list(self._entries))

    def __len__(self) -> int:
        return len(self._entries)