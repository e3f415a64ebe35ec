# tinyipsec

Small, dependency-free building blocks for IPsec policy handling:

- `tinyipsec.sha1`: a pure-Python SHA-1 (`Sha1`, `sha1`) and RFC 2104
  HMAC-SHA1 (`hmac_sha1`).
- `tinyipsec.sad`: the Security Association Database (`SadTable`, `SadEntry`)
  and its enums (`IpProtocol`, `Mode`, `Cipher`, `Auth`). It also has
  `address_matches` for masked address comparison and `get_spi`, which reads
  the SPI out of an ESP or AH packet.
- `tinyipsec.spd`: the Security Policy Database (`SpdTable`, `SpdEntry`,
  `Policy`).
- `tinyipsec.databases`: `DatabaseRegistry` hands out a `DatabaseSet` for each
  network interface. A set holds the inbound and outbound SPD and SAD.

## Install

```
pip install .
```

For the tests:

```
pip install ".[test]"
pytest
```

## Hashing

```python
from tinyipsec.sha1 import Sha1, sha1, hmac_sha1

sha1(b"abc").hex()        # 'a9993e364706816aba3e25717850c26c9cd0d89d'

h = Sha1(b"ab")
h.update(b"c")
h.hexdigest()             # same digest as above
h.copy()                  # independent hash object with the same state

hmac_sha1(b"message", b"placeholder")   # 20-byte MAC
```

A key longer than 64 bytes is first hashed with SHA-1, as RFC 2104 requires.

## Security associations

`SadEntry` accepts addresses as `ipaddress.IPv4Address`, dotted strings or
integers. The SPI must fit in 32 bits. The encryption key may be at most 24
bytes and the authentication key at most 20 bytes. A value out of range raises
`ValueError`.

```python
from tinyipsec.sad import Auth, IpProtocol, SadEntry, SadTable

sa = SadEntry("192.168.1.5", "255.255.255.255", 0x1000, IpProtocol.AH,
              auth_alg=Auth.HMAC_SHA1, authkey=b"placeholder")

sad = SadTable(capacity=10)
stored = sad.add(sa)                  # the table keeps and returns a copy
sad.lookup("192.168.1.5", IpProtocol.AH, 0x1000) is stored   # True
sad.remove(stored)
```

`SadTable.lookup(dest, protocol, spi)` returns the first association whose
destination matches under its network mask and whose protocol and SPI are
equal, or `None` if none does. `remove` takes the stored entry, as returned by
`add` or `lookup`. `flush()` empties the table.

`get_spi(packet)` returns the SPI of an ESP packet (the word after the 20-byte
IP header) or of an AH packet (4 bytes further on). It returns 0 for any other
protocol. It raises `ValueError` if the packet is too short.

## Security policies

An `SpdEntry` selects packets on source and destination address with network
masks, on protocol and, for TCP and UDP, on ports. A protocol or port of 0 is
a wildcard. `Policy` is `APPLY`, `BYPASS` or `DISCARD`. An entry may point at
a `SadEntry` through `sa`.

```python
from tinyipsec.spd import Policy, SpdTable

spd = SpdTable(capacity=10)
entry = spd.add("192.168.1.3", "255.255.255.255",
                "192.168.1.0", "255.255.255.0",
                17, 500, 0, Policy.BYPASS)
```

`SpdTable.lookup(packet)` takes the raw bytes of an IPv4 packet. It returns the
first matching policy, or `None` if no policy matches. It raises `ValueError`
if the packet is too short to hold its header or, for TCP and UDP, its ports.
`flush(default)` empties the table. It then adds a fresh policy with the
selectors and policy of `default`, but without its SA, and returns it.

## Database sets

```python
from tinyipsec.databases import DatabaseRegistry
from tinyipsec.sad import Auth, IpProtocol, SadEntry
from tinyipsec.spd import Policy, SpdEntry

out_sa = SadEntry("192.168.1.5", "255.255.255.255", 0x1000, IpProtocol.AH,
                  auth_alg=Auth.HMAC_SHA1, authkey=b"placeholder")
out_policy = SpdEntry("192.168.1.3", "255.255.255.255",
                      "192.168.1.5", "255.255.255.255", Policy.APPLY, sa=out_sa)

registry = DatabaseRegistry(capacity=1)
dbs = registry.load([], [out_policy, None], [], [out_sa, None])

# A minimal ICMP packet from 192.168.1.3 to 192.168.1.5
packet = bytes(9) + bytes([1]) + bytes(2) + bytes([192, 168, 1, 3, 192, 168, 1, 5])
match = dbs.outbound_spd.lookup(packet)
match.policy          # Policy.APPLY
match.sa.spi          # 0x1000 (the copy stored in dbs.outbound_sad)

registry.release(dbs)
```

`load` reads each configuration list up to its first `None`. A list may also
be `None`, which gives an empty table. Each table has room for 10 entries. An
SPD entry whose `sa` is one of the given SAD entries is linked to the copy
stored in the new set. `load` raises `TableFullError` when `capacity` sets are
already loaded. `release` raises `EntryNotFoundError` for a set that is not
registered.

## Tables and errors

Every table has a fixed capacity and keeps entries in the order they were
added. Iterating a table yields its entries, and `len()` gives their number.
Adding to a full table raises `TableFullError`. Removing an entry that is not
in the table raises `EntryNotFoundError`. `format()` on a table or an entry
returns a printable listing.

## What this package does not do

It keeps policies and associations and hashes with SHA-1, but it does not
process traffic. It has no AH or ESP encapsulation or decapsulation, no DES,
3DES or MD5, no anti-replay checking, no key exchange and no network interface
or command-line program.