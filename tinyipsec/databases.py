"""Per-interface sets of inbound and outbound SPD and SAD tables."""

from __future__ import annotations

import itertools
from collections.abc import Iterable
from dataclasses import dataclass

from tinyipsec.sad import DEFAULT_CAPACITY, EntryNotFoundError, SadEntry, SadTable, TableFullError
from tinyipsec.spd import SpdEntry, SpdTable

__all__ = ["DatabaseSet", "DatabaseRegistry"]

DEFAULT_NETIFS = 1


@dataclass(eq=False)
class DatabaseSet:
    """The four databases used by one network interface."""

    inbound_spd: SpdTable
    outbound_spd: SpdTable
    inbound_sad: SadTable
    outbound_sad: SadTable


def _used_prefix(entries: Iterable | None) -> list:
    """Configured entries up to the first empty slot (None)."""
    if entries is None:
        return []
    return list(itertools.takewhile(lambda entry: entry is not None, entries))


class DatabaseRegistry:
    """Hands out database sets, at most ``capacity`` at a time."""

    table_capacity = DEFAULT_CAPACITY

    def __init__(self, capacity: int = DEFAULT_NETIFS) -> None:
        if capacity < 0:
            raise ValueError("capacity must not be negative")
        self.capacity = capacity
        self._sets: list[DatabaseSet] = []

    def _load_sad(self, entries) -> tuple[SadTable, dict[int, SadEntry]]:
        table = SadTable(self.table_capacity)
        stored_for: dict[int, SadEntry] = {}
        for entry in _used_prefix(entries):
            stored_for[id(entry)] = table.add(entry)
        return table, stored_for

    def _load_spd(self, entries, stored_for: dict[int, SadEntry]) -> SpdTable:
        table = SpdTable(self.table_capacity)
        for entry in _used_prefix(entries):
            sa = entry.sa
            if sa is not None:
                sa = stored_for.get(id(sa), sa)
            table.add(entry.src, entry.src_netaddr, entry.dest, entry.dest_netaddr,
                      entry.protocol, entry.src_port, entry.dest_port, entry.policy, sa)
        return table

    def load(self, inbound_spd: Iterable[SpdEntry | None] | None,
             outbound_spd: Iterable[SpdEntry | None] | None,
             inbound_sad: Iterable[SadEntry | None] | None,
             outbound_sad: Iterable[SadEntry | None] | None) -> DatabaseSet:
        """Build a database set from configuration lists and register it.

        Each list is read up to its first None. SPD entries that refer to an
        SA of the given SAD lists are linked to the stored copy of that SA.
        """
        if len(self._sets) >= self.capacity:
            raise TableFullError("no free database set")
        in_sad, in_map = self._load_sad(inbound_sad)
        out_sad, out_map = self._load_sad(outbound_sad)
        stored_for = {**in_map, **out_map}
        dbs = DatabaseSet(
            inbound_spd=self._load_spd(inbound_spd, stored_for),
            outbound_spd=self._load_spd(outbound_spd, stored_for),
            inbound_sad=in_sad,
            outbound_sad=out_sad,
        )
        self._sets.append(dbs)
        return dbs

    def release(self, dbs: DatabaseSet) -> None:
        """Give a database set back so its slot can be loaded again."""
        for position, candidate in enumerate(self._sets):
            if candidate is dbs:
                del self._sets[position]
                return
        raise EntryNotFoundError("database set is not registered")

    def __len__(self) -> int:
        return len(self._sets)