"""
Membership datastructures for the SWIM failure detector.

Everything a member believes about its peers is expressed with the types in
this module:

- MemberState: ranked liveness belief (DEAD > SUSPECT > ALIVE)
- PeerView: one observer's belief about one peer
- GossipItem: a compact, immutable assertion about one member
- BufferedGossip: a gossip item together with its dissemination counter
- PendingRequest: fairness accounting for one (source, destination) pair

Hypothesis strategies for the immutable types live at the bottom so property
tests can share them.
"""

from __future__ import annotations

from dataclasses import dataclass, replace
from enum import Enum

from hypothesis import strategies as st

from .type_aliases import (
    DisseminationCount,
    IncarnationNumber,
    MemberId,
    SuspicionCountdown,
)


class MemberState(Enum):
    """Liveness belief an observer holds about a peer."""

    ALIVE = "alive"
    SUSPECT = "suspect"
    DEAD = "dead"

    @property
    def rank(self) -> int:
        """Precedence at equal incarnation: DEAD > SUSPECT > ALIVE."""
        return _STATE_RANK[self]

    def outranks(self, other: MemberState) -> bool:
        return self.rank > other.rank


_STATE_RANK = {
    MemberState.ALIVE: 0,
    MemberState.SUSPECT: 1,
    MemberState.DEAD: 2,
}


def supersedes(
    incarnation: IncarnationNumber,
    state: MemberState,
    other_incarnation: IncarnationNumber,
    other_state: MemberState,
) -> bool:
    """
    Check whether (incarnation, state) is strictly newer information.

    A higher incarnation always wins; at equal incarnation the higher-ranked
    state wins. Identical information is not newer.
    """
    if incarnation != other_incarnation:
        return incarnation > other_incarnation
    return state.outranks(other_state)


@dataclass(frozen=True, slots=True)
class PeerView:
    """
    One observer's belief about one peer.

    Views are immutable; the View Store swaps whole views. The suspicion
    countdown only matters while the state is SUSPECT.
    """

    incarnation: IncarnationNumber
    state: MemberState
    suspicion_countdown: SuspicionCountdown

    def __post_init__(self) -> None:
        if self.incarnation < 0:
            raise ValueError(
                f"Incarnation must be non-negative, got {self.incarnation}"
            )

    def is_alive(self) -> bool:
        return self.state == MemberState.ALIVE

    def is_suspect(self) -> bool:
        return self.state == MemberState.SUSPECT

    def is_dead(self) -> bool:
        return self.state == MemberState.DEAD

    def is_expired(self) -> bool:
        """Suspected long enough to be declared dead."""
        return self.is_suspect() and self.suspicion_countdown <= 0

    def is_probe_target(self) -> bool:
        """Not dead, and if suspected the countdown has not run out."""
        if self.is_dead():
            return False
        return not self.is_suspect() or self.suspicion_countdown > 0

    def with_countdown(self, countdown: SuspicionCountdown) -> PeerView:
        return replace(self, suspicion_countdown=countdown)

    def as_gossip(self, target: MemberId) -> GossipItem:
        return GossipItem(target=target, incarnation=self.incarnation, state=self.state)


@dataclass(frozen=True, slots=True)
class GossipItem:
    """A piggybacked assertion: member `target` is in `state` at `incarnation`."""

    target: MemberId
    incarnation: IncarnationNumber
    state: MemberState

    def __post_init__(self) -> None:
        if self.incarnation < 0:
            raise ValueError(
                f"Incarnation must be non-negative, got {self.incarnation}"
            )

    def supersedes(self, other: GossipItem) -> bool:
        return supersedes(self.incarnation, self.state, other.incarnation, other.state)

    def is_news_for(self, view: PeerView) -> bool:
        """True when this item carries strictly newer information than `view`."""
        return supersedes(self.incarnation, self.state, view.incarnation, view.state)

    def is_stale_for(self, view: PeerView) -> bool:
        """True when `view` already holds strictly newer information."""
        return supersedes(view.incarnation, view.state, self.incarnation, self.state)


@dataclass(frozen=True, slots=True)
class BufferedGossip:
    """A gossip item held in a member's buffer with its dissemination count."""

    item: GossipItem
    count: DisseminationCount = 0

    def is_disseminable(self, limit: DisseminationCount) -> bool:
        return self.count < limit

    def mark_sent(self) -> BufferedGossip:
        return BufferedGossip(item=self.item, count=self.count + 1)


@dataclass(slots=True)
class PendingRequest:
    """Fairness accounting for probes from one source to one destination."""

    pending: bool = False
    count: int = 0

    def open(self) -> None:
        self.pending = True
        self.count += 1

    def release(self) -> None:
        self.pending = False


# Hypothesis strategies for property-based testing


def member_state_strategy() -> st.SearchStrategy[MemberState]:
    return st.sampled_from(list(MemberState))


def peer_view_strategy(
    max_incarnation: int = 5, suspicion_timeout: int = 3
) -> st.SearchStrategy[PeerView]:
    """Generate valid PeerView instances for testing."""
    return st.builds(
        PeerView,
        incarnation=st.integers(min_value=0, max_value=max_incarnation),
        state=member_state_strategy(),
        suspicion_countdown=st.integers(min_value=0, max_value=suspicion_timeout),
    )


def gossip_item_strategy(
    members: list[MemberId] | None = None, max_incarnation: int = 5
) -> st.SearchStrategy[GossipItem]:
    """Generate valid GossipItem instances, optionally over a fixed member set."""
    targets = (
        st.sampled_from(members)
        if members
        else st.integers(min_value=0, max_value=20)
    )
    return st.builds(
        GossipItem,
        target=targets,
        incarnation=st.integers(min_value=0, max_value=max_incarnation),
        state=member_state_strategy(),
    )
