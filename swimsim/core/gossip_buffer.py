"""
Gossip buffer for SWIM membership update dissemination.

Each member owns one buffer holding at most one item per target together
with a dissemination counter. Items are piggybacked least-disseminated
first and stop being sent once their counter reaches the dissemination
limit; they stay in the buffer as known-but-retired information so later
compaction can still compare against them.
"""

from __future__ import annotations

import heapq
from collections.abc import Iterable, Iterator
from dataclasses import dataclass, field

from ..datastructures.membership_types import BufferedGossip, GossipItem
from ..datastructures.type_aliases import MemberId


@dataclass(slots=True)
class GossipBuffer:
    """
    Pending dissemination items for one member.

    Attributes:
        dissemination_limit: Times an item may be piggybacked before it retires.
        entries: Buffered items keyed by target.
    """

    dissemination_limit: int
    entries: dict[MemberId, BufferedGossip] = field(default_factory=dict)

    def __len__(self) -> int:
        return len(self.entries)

    def __iter__(self) -> Iterator[BufferedGossip]:
        return iter(self.entries.values())

    def __contains__(self, item: GossipItem) -> bool:
        entry = self.entries.get(item.target)
        return entry is not None and entry.item == item

    def items(self) -> list[GossipItem]:
        return [entry.item for entry in self.entries.values()]

    def count_of(self, item: GossipItem) -> int | None:
        """Dissemination count of exactly this item, or None if not buffered."""
        entry = self.entries.get(item.target)
        if entry is None or entry.item != item:
            return None
        return entry.count

    def disseminable(self) -> list[BufferedGossip]:
        return [
            entry
            for entry in self.entries.values()
            if entry.is_disseminable(self.dissemination_limit)
        ]

    def enqueue(self, item: GossipItem) -> None:
        """
        Queue a locally produced item.

        An identical buffered item keeps its counter; anything else for the
        same target is replaced and starts counting from zero.
        """
        if item not in self:
            self.entries[item.target] = BufferedGossip(item=item)

    def select_outgoing(
        self,
        capacity: int,
        extra_items: Iterable[GossipItem] = (),
    ) -> tuple[GossipItem, ...]:
        """
        Choose the gossip to piggyback on the next message.

        Retired items are never sent. When the disseminable items plus
        `extra_items` exceed `capacity`, the least-disseminated items win,
        ties broken by target id. Counters of the chosen buffered items are
        incremented; extra items are not buffered here.
        """
        extras = tuple(extra_items)
        candidates = self.disseminable()
        if len(candidates) + len(extras) > capacity:
            room = max(0, capacity - len(extras))
            candidates = heapq.nsmallest(
                room, candidates, key=lambda entry: (entry.count, entry.item.target)
            )
        else:
            candidates.sort(key=lambda entry: entry.item.target)

        for entry in candidates:
            self.entries[entry.item.target] = entry.mark_sent()

        return tuple(entry.item for entry in candidates) + extras

    def save_updates(
        self,
        compacted: Iterable[GossipItem],
        received: Iterable[GossipItem] = (),
        sent: Iterable[GossipItem] = (),
    ) -> None:
        """
        Reseed the buffer from a compacted update set.

        Counters are carried over for items that were already buffered.
        Items that were just sent outside the buffer (refutation extras)
        enter with a count of 1. Newly received items enter with a count of
        0. Anything else in the compacted set is unknown and dropped.
        Counters of buffered items that were sent were already advanced by
        select_outgoing.
        """
        received_set = set(received)
        sent_set = set(sent)
        reseeded: dict[MemberId, BufferedGossip] = {}
        for item in compacted:
            known = self.count_of(item)
            if known is not None:
                reseeded[item.target] = BufferedGossip(item=item, count=known)
            elif item in sent_set:
                reseeded[item.target] = BufferedGossip(item=item, count=1)
            elif item in received_set:
                reseeded[item.target] = BufferedGossip(item=item, count=0)
        self.entries = reseeded
