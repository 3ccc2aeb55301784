"""Convergence detection: every live member's views match ground truth."""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING

from loguru import logger

from ..datastructures.membership_types import MemberState, PeerView
from ..datastructures.type_aliases import MaybeIncarnation, MemberId

if TYPE_CHECKING:
    from .protocol import SwimProtocol


def matches_ground_truth(view: PeerView, truth: MaybeIncarnation) -> bool:
    """A dead peer must be seen DEAD; a live one ALIVE at its real incarnation."""
    if truth is None:
        return view.state == MemberState.DEAD
    return view.state == MemberState.ALIVE and view.incarnation == truth


@dataclass(slots=True)
class ConvergenceDetector:
    """Checks for convergence and raises the simulation-complete flag."""

    checks: int = 0

    def mismatches(self, protocol: SwimProtocol) -> list[tuple[MemberId, MemberId]]:
        """(observer, peer) pairs whose belief differs from ground truth."""
        wrong: list[tuple[MemberId, MemberId]] = []
        for observer in protocol.live_members():
            for peer, view in protocol.views.peers_of(observer):
                if not matches_ground_truth(view, protocol.incarnations[peer]):
                    wrong.append((observer, peer))
        return wrong

    def is_converged(self, protocol: SwimProtocol) -> bool:
        self.checks += 1
        return not self.mismatches(protocol)

    def check(self, protocol: SwimProtocol) -> bool:
        """Set `protocol.complete` once converged. Returns the flag."""
        if not protocol.complete and self.is_converged(protocol):
            protocol.complete = True
            logger.debug("Convergence detected after {} checks", self.checks)
        return protocol.complete
