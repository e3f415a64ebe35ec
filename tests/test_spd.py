import ipaddress
import struct

import pytest

from tinyipsec.sad import (
    EntryNotFoundError,
    IpProtocol,
    Mode,
    SadEntry,
    TableFullError,
)
from tinyipsec.spd import Policy, SpdEntry, SpdTable

HOST = "255.255.255.255"


def make_packet(src, dst, protocol, sport=0, dport=0):
    header = bytearray(20)
    header[0] = 0x45
    header[9] = protocol
    header[12:16] = ipaddress.IPv4Address(src).packed
    header[16:20] = ipaddress.IPv4Address(dst).packed
    return bytes(header) + struct.pack(">HH", sport, dport) + bytes(16)


def test_lookup_matches_host_policy():
    table = SpdTable()
    entry = table.add("192.168.1.5", HOST, "192.168.1.3", HOST, 0, 0, 0, Policy.APPLY)
    packet = make_packet("192.168.1.5", "192.168.1.3", IpProtocol.ICMP)
    assert table.lookup(packet) is entry


def test_lookup_rejects_other_source():
    table = SpdTable()
    table.add("192.168.1.5", HOST, "192.168.1.3", HOST, 0, 0, 0, Policy.APPLY)
    packet = make_packet("192.168.1.6", "192.168.1.3", IpProtocol.ICMP)
    assert table.lookup(packet) is None


def test_network_mask_matches_subnet():
    table = SpdTable()
    entry = table.add("192.168.1.0", "255.255.255.0", "192.168.1.3", HOST,
                      0, 0, 0, Policy.BYPASS)
    assert table.lookup(make_packet("192.168.1.200", "192.168.1.3", IpProtocol.TCP, 1, 2)) is entry
    assert table.lookup(make_packet("192.168.2.200", "192.168.1.3", IpProtocol.TCP, 1, 2)) is None


def test_protocol_and_port_selectors():
    table = SpdTable()
    entry = table.add("0.0.0.0", "0.0.0.0", "0.0.0.0", "0.0.0.0",
                      IpProtocol.UDP, 0, 500, Policy.BYPASS)
    assert table.lookup(make_packet("10.0.0.1", "10.0.0.2", IpProtocol.UDP, 1234, 500)) is entry
    assert table.lookup(make_packet("10.0.0.1", "10.0.0.2", IpProtocol.UDP, 1234, 501)) is None
    assert table.lookup(make_packet("10.0.0.1", "10.0.0.2", IpProtocol.TCP, 1234, 500)) is None


def test_first_matching_entry_wins():
    table = SpdTable()
    first = table.add("10.0.0.0", "255.0.0.0", "0.0.0.0", "0.0.0.0", 0, 0, 0, Policy.DISCARD)
    table.add("10.0.0.1", HOST, "0.0.0.0", "0.0.0.0", 0, 0, 0, Policy.BYPASS)
    assert table.lookup(make_packet("10.0.0.1", "1.2.3.4", IpProtocol.ICMP)) is first


def test_capacity_is_enforced():
    table = SpdTable(capacity=2)
    table.add("1.1.1.1", HOST, "2.2.2.2", HOST, 0, 0, 0, Policy.APPLY)
    table.add("1.1.1.2", HOST, "2.2.2.2", HOST, 0, 0, 0, Policy.APPLY)
    with pytest.raises(TableFullError):
        table.add("1.1.1.3", HOST, "2.2.2.2", HOST, 0, 0, 0, Policy.APPLY)
    assert len(table) == 2


def test_remove_relinks_and_rejects_unknown():
    table = SpdTable()
    a = table.add("1.1.1.1", HOST, "2.2.2.2", HOST, 0, 0, 0, Policy.APPLY)
    b = table.add("1.1.1.2", HOST, "2.2.2.2", HOST, 0, 0, 0, Policy.BYPASS)
    c = table.add("1.1.1.3", HOST, "2.2.2.2", HOST, 0, 0, 0, Policy.DISCARD)
    table.remove(b)
    assert list(table) == [a, c]
    with pytest.raises(EntryNotFoundError):
        table.remove(b)


def test_removed_slot_can_be_reused():
    table = SpdTable(capacity=1)
    entry = table.add("1.1.1.1", HOST, "2.2.2.2", HOST, 0, 0, 0, Policy.APPLY)
    table.remove(entry)
    again = table.add("1.1.1.9", HOST, "2.2.2.2", HOST, 0, 0, 0, Policy.APPLY)
    assert list(table) == [again]


def test_flush_keeps_only_default_without_sa():
    sa = SadEntry("192.168.1.5", HOST, 0x1000, IpProtocol.AH, Mode.TUNNEL)
    table = SpdTable()
    table.add("1.1.1.1", HOST, "2.2.2.2", HOST, 0, 0, 0, Policy.APPLY, sa)
    default = SpdEntry("0.0.0.0", "0.0.0.0", "0.0.0.0", "0.0.0.0", Policy.BYPASS,
                       IpProtocol.UDP, 500, 500, sa)
    stored = table.flush(default)
    assert list(table) == [stored]
    assert stored.policy == Policy.BYPASS
    assert stored.dest_port == 500
    assert stored.sa is None


def test_constructor_copies_entries():
    original = SpdEntry("1.1.1.1", HOST, "2.2.2.2", HOST, Policy.APPLY)
    table = SpdTable(entries=[original])
    stored = next(iter(table))
    assert stored == original
    assert stored is not original


def test_short_packet_raises():
    table = SpdTable()
    with pytest.raises(ValueError):
        table.lookup(bytes(10))
    with pytest.raises(ValueError):
        table.lookup(make_packet("1.1.1.1", "2.2.2.2", IpProtocol.TCP)[:21])


def test_format_lists_entries():
    table = SpdTable()
    assert "SPD table is empty" in table.format()
    table.add("192.168.1.3", HOST, "192.168.1.0", "255.255.255.0",
              IpProtocol.UDP, 500, 0, Policy.BYPASS)
    listing = table.format()
    assert "SPD table is empty" not in listing
    line = listing.splitlines()[1]
    assert " UDP" in line
    assert "BYPASS" in line
    assert "192.168.1.3/255.255.255.255" in line


def test_invalid_port_rejected():
    with pytest.raises(ValueError):
        SpdEntry("1.1.1.1", HOST, "2.2.2.2", HOST, Policy.APPLY, 0, 70000, 0)