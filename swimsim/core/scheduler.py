"""
Probe scheduling fairness policy.

A member may start a probe only when it has nothing in flight, when its
round counter is not ahead of any other live member, and only towards a
target it has tried no more often than any other valid target. Together
these approximate round-robin probing across the whole ensemble and keep
"round" meaningful as a global generation boundary.
"""

from __future__ import annotations

from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field

from ..datastructures.membership_types import PendingRequest, PeerView
from ..datastructures.type_aliases import MemberId, RoundNumber


@dataclass(slots=True)
class ProbeScheduler:
    """Pending-request accounting and the fairness predicate built on it."""

    members: tuple[MemberId, ...]
    requests: dict[tuple[MemberId, MemberId], PendingRequest] = field(
        default_factory=dict
    )

    def __post_init__(self) -> None:
        for source in self.members:
            for destination in self.members:
                if source != destination:
                    self.requests.setdefault((source, destination), PendingRequest())

    def request(self, source: MemberId, destination: MemberId) -> PendingRequest:
        return self.requests[(source, destination)]

    def pending_count(self, source: MemberId) -> int:
        return sum(
            1
            for (src, _), request in self.requests.items()
            if src == source and request.pending
        )

    def has_pending(self, source: MemberId) -> bool:
        return self.pending_count(source) > 0

    def open(self, source: MemberId, destination: MemberId) -> None:
        self.request(source, destination).open()

    def release(self, source: MemberId, destination: MemberId) -> None:
        self.request(source, destination).release()

    def round_allows(
        self,
        source: MemberId,
        rounds: Mapping[MemberId, RoundNumber],
        live_members: Iterable[MemberId],
    ) -> bool:
        """The source's round is not ahead of any other live member's."""
        own = rounds[source]
        return all(
            own <= rounds[member] for member in live_members if member != source
        )

    def eligible_targets(
        self,
        source: MemberId,
        views: Mapping[MemberId, PeerView],
    ) -> list[MemberId]:
        """
        Valid targets tied for the fewest prior attempts, in member order.

        `views` is the source's own view table.
        """
        valid = [peer for peer, view in views.items() if view.is_probe_target()]
        if not valid:
            return []
        fewest = min(self.request(source, peer).count for peer in valid)
        return sorted(
            peer for peer in valid if self.request(source, peer).count == fewest
        )

    def can_probe(
        self,
        source: MemberId,
        destination: MemberId,
        views: Mapping[MemberId, PeerView],
        rounds: Mapping[MemberId, RoundNumber],
        live_members: Iterable[MemberId],
    ) -> bool:
        if self.has_pending(source):
            return False
        if not self.round_allows(source, rounds, live_members):
            return False
        return destination in self.eligible_targets(source, views)
