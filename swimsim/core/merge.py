"""
Merge and compaction of gossip.

Incoming gossip is merged with what the receiver already buffers and
compacted to a single most authoritative item per target. Items that are
stale relative to the receiver's current views are discarded first. The
compacted set then drives both the View Store update and the buffer reseed.
"""

from __future__ import annotations

from collections.abc import Callable, Iterable
from dataclasses import dataclass

from loguru import logger

from ..datastructures.membership_types import GossipItem, PeerView
from ..datastructures.type_aliases import MemberId

type ViewLookup = Callable[[MemberId], PeerView]


@dataclass(frozen=True, slots=True)
class AppliedUpdates:
    """Outcome of applying a compacted set to one observer's views."""

    changed: tuple[GossipItem, ...]
    unchanged: tuple[GossipItem, ...]

    @property
    def effective_count(self) -> int:
        return len(self.changed)


def compact(
    items: Iterable[GossipItem],
    view_of: ViewLookup,
) -> tuple[GossipItem, ...]:
    """
    Keep one item per target: the highest incarnation, then the highest
    ranked state. Items stale against `view_of(target)` are dropped.

    The result is sorted by target.
    """
    best: dict[MemberId, GossipItem] = {}
    for item in items:
        if item.is_stale_for(view_of(item.target)):
            continue
        current = best.get(item.target)
        if current is None or item.supersedes(current):
            best[item.target] = item
    return tuple(best[target] for target in sorted(best))


def apply_updates(
    observer: MemberId,
    compacted: Iterable[GossipItem],
    view_of: ViewLookup,
    write_view: Callable[[MemberId, PeerView], None],
    suspicion_timeout: int,
) -> AppliedUpdates:
    """
    Overwrite the observer's views with every item that is strictly new
    information. Overwritten views get a fresh suspicion countdown. Items
    about the observer itself are never written.
    """
    changed: list[GossipItem] = []
    unchanged: list[GossipItem] = []
    for item in compacted:
        if item.target == observer:
            unchanged.append(item)
            continue
        if item.is_news_for(view_of(item.target)):
            write_view(
                item.target,
                PeerView(
                    incarnation=item.incarnation,
                    state=item.state,
                    suspicion_countdown=suspicion_timeout,
                ),
            )
            changed.append(item)
            logger.debug(
                "Member {} learned {} is {} at incarnation {}",
                observer,
                item.target,
                item.state.value,
                item.incarnation,
            )
        else:
            unchanged.append(item)
    return AppliedUpdates(changed=tuple(changed), unchanged=tuple(unchanged))
