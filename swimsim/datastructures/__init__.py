"""
swimsim datastructures.

Immutable value types shared by every protocol component:

- MemberState / PeerView: one observer's belief about one peer
- GossipItem / BufferedGossip: piggybacked assertions and their counters
- PendingRequest: per (source, destination) fairness accounting
- ProbeMessage / AckMessage / RequestRecord: request/response records
"""

from __future__ import annotations

from .membership_types import (
    BufferedGossip,
    GossipItem,
    MemberState,
    PeerView,
    PendingRequest,
    gossip_item_strategy,
    member_state_strategy,
    peer_view_strategy,
    supersedes,
)
from .messages import (
    AckMessage,
    ProbeMessage,
    RequestHandle,
    RequestOutcome,
    RequestRecord,
)
from .type_aliases import (
    IncarnationNumber,
    MaybeIncarnation,
    MemberId,
    RequestId,
    RoundNumber,
)

__all__ = [
    "AckMessage",
    "BufferedGossip",
    "GossipItem",
    "IncarnationNumber",
    "MaybeIncarnation",
    "MemberId",
    "MemberState",
    "PeerView",
    "PendingRequest",
    "ProbeMessage",
    "RequestHandle",
    "RequestId",
    "RequestOutcome",
    "RequestRecord",
    "RoundNumber",
    "gossip_item_strategy",
    "member_state_strategy",
    "peer_view_strategy",
    "supersedes",
]
