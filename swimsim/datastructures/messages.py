"""
Immutable protocol messages exchanged between members.

A probe carries the sender's current view of the destination so the
destination can refute a stale suspicion; an ack carries the responder's
incarnation. Both carry piggybacked gossip.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum

from .membership_types import GossipItem, MemberState
from .type_aliases import (
    IncarnationNumber,
    MemberId,
    RequestId,
    RoundNumber,
)


@dataclass(frozen=True, slots=True)
class ProbeMessage:
    """Direct probe from `source` to `destination`."""

    source: MemberId
    destination: MemberId
    incarnation: IncarnationNumber  # source's view of the destination
    state: MemberState
    gossip: tuple[GossipItem, ...]
    round: RoundNumber


@dataclass(frozen=True, slots=True)
class AckMessage:
    """Reply to a probe, sent by the probed member."""

    source: MemberId
    destination: MemberId
    incarnation: IncarnationNumber  # responder's own incarnation after refutation
    gossip: tuple[GossipItem, ...]


@dataclass(frozen=True, slots=True, order=True)
class RequestHandle:
    """Opaque, uniquely keyed reference to a sent request."""

    request_id: RequestId


class RequestOutcome(Enum):
    """Terminal outcome of a request record."""

    IN_FLIGHT = "in_flight"
    ANSWERED = "answered"
    FAILED = "failed"


@dataclass(frozen=True, slots=True)
class RequestRecord:
    """
    A sent probe and its eventual outcome.

    Records are replaced, never mutated: answering or failing a request
    produces a new record under the same handle. A record that reached a
    terminal outcome is never reused; a new probe always gets a new handle.
    """

    handle: RequestHandle
    request: ProbeMessage
    outcome: RequestOutcome = RequestOutcome.IN_FLIGHT
    response: AckMessage | None = None

    @property
    def is_unanswered(self) -> bool:
        return self.outcome == RequestOutcome.IN_FLIGHT

    def answered(self, response: AckMessage) -> RequestRecord:
        return RequestRecord(
            handle=self.handle,
            request=self.request,
            outcome=RequestOutcome.ANSWERED,
            response=response,
        )

    def failed(self) -> RequestRecord:
        return RequestRecord(
            handle=self.handle,
            request=self.request,
            outcome=RequestOutcome.FAILED,
        )
