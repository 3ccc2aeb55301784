"""
View Store: every member's belief about every peer.

The store is a plain table keyed by (observer, peer). It performs no
conflict resolution of its own; callers only write information already
known to be current or newer. The one rule it enforces is the rank
invariant: a write may not move a belief backwards.
"""

from __future__ import annotations

from collections.abc import Iterable, Iterator
from dataclasses import dataclass, field

from ..datastructures.membership_types import MemberState, PeerView
from ..datastructures.type_aliases import MemberId
from .exceptions import ProtocolInvariantError


@dataclass(slots=True)
class ViewStore:
    """Per-observer table of PeerViews."""

    members: tuple[MemberId, ...]
    _views: dict[MemberId, dict[MemberId, PeerView]] = field(default_factory=dict)

    @classmethod
    def seeded(
        cls,
        members: Iterable[MemberId],
        suspicion_timeout: int,
        dead_members: frozenset[MemberId] = frozenset(),
        seed_dead_views: bool = False,
    ) -> ViewStore:
        """
        Build the initial table.

        Every observer sees every peer ALIVE at incarnation 1. With
        `seed_dead_views`, peers in `dead_members` are seen DEAD at
        incarnation 0 instead.
        """
        ordered = tuple(sorted(members))
        store = cls(members=ordered)
        alive = PeerView(
            incarnation=1,
            state=MemberState.ALIVE,
            suspicion_countdown=suspicion_timeout,
        )
        dead = PeerView(
            incarnation=0,
            state=MemberState.DEAD,
            suspicion_countdown=suspicion_timeout,
        )
        for observer in ordered:
            store._views[observer] = {
                peer: dead if seed_dead_views and peer in dead_members else alive
                for peer in ordered
                if peer != observer
            }
        return store

    def _row(self, observer: MemberId) -> dict[MemberId, PeerView]:
        row = self._views.get(observer)
        if row is None:
            raise ProtocolInvariantError(f"Unknown observer {observer}")
        return row

    def get(self, observer: MemberId, peer: MemberId) -> PeerView:
        row = self._row(observer)
        view = row.get(peer)
        if view is None:
            raise ProtocolInvariantError(
                f"Member {observer} holds no view of unknown peer {peer}"
            )
        return view

    def set(self, observer: MemberId, peer: MemberId, view: PeerView) -> None:
        current = self.get(observer, peer)
        if view.incarnation < current.incarnation or (
            view.incarnation == current.incarnation
            and current.state.outranks(view.state)
        ):
            raise ProtocolInvariantError(
                f"Member {observer} view of {peer} would regress from "
                f"{current.state.value}@{current.incarnation} to "
                f"{view.state.value}@{view.incarnation}"
            )
        if current.is_dead() and not view.is_dead():
            raise ProtocolInvariantError(
                f"Member {observer} cannot revive {peer} once it is dead"
            )
        self._row(observer)[peer] = view

    def peers_of(self, observer: MemberId) -> Iterator[tuple[MemberId, PeerView]]:
        """Iterate (peer, view) pairs in member order."""
        row = self._row(observer)
        for peer in self.members:
            if peer != observer:
                yield peer, row[peer]

    def snapshot(self, observer: MemberId) -> dict[MemberId, PeerView]:
        return dict(self._row(observer))

    def believers(self, peer: MemberId, state: MemberState) -> list[MemberId]:
        """Observers that currently hold `state` about `peer`."""
        return [
            observer
            for observer in self.members
            if observer != peer and self._views[observer][peer].state == state
        ]
