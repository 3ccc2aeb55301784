"""
SWIM protocol state machine.

The engine is a set of atomic actions over the ensemble state:

- probe: a member sends a probe with piggybacked gossip
- receive_probe: the probed member refutes suspicion if needed and acks
- receive_ack: the prober merges the ack's gossip and advances its round
- probe_fails: a probe to a truly dead member goes unanswered
- expire: a suspicion whose countdown ran out becomes DEAD

Each action has a matching ``can_*`` precondition. Applying an action whose
precondition does not hold is a protocol invariant violation. Every action
either applies completely or raises before mutating anything.
"""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass

from loguru import logger

from ..datastructures.membership_types import GossipItem, MemberState, PeerView
from ..datastructures.messages import AckMessage, ProbeMessage, RequestHandle
from ..datastructures.type_aliases import (
    MaybeIncarnation,
    MemberId,
    RequestId,
    RoundNumber,
)
from .config import SimulationConfig
from .exceptions import ProtocolInvariantError
from .gossip_buffer import GossipBuffer
from .merge import AppliedUpdates, apply_updates, compact
from .scheduler import ProbeScheduler
from .transport import InMemoryTransport, RequestTransport
from .view_store import ViewStore


@dataclass(frozen=True, slots=True)
class GossipExchange:
    """Gossip traffic observed by one receive action."""

    received: int = 0
    effective: int = 0


NO_EXCHANGE = GossipExchange()


class SwimProtocol:
    """
    Ensemble-wide protocol state and the five actions that mutate it.

    `incarnations` is ground truth: each member's own generation counter,
    or None for a member that is dead for the whole run. Views, buffers,
    pending requests and rounds are only ever changed by the actions below.
    """

    def __init__(
        self,
        config: SimulationConfig,
        dead_members: Iterable[MemberId] = (),
        transport: RequestTransport | None = None,
    ) -> None:
        self.config = config
        self.members: tuple[MemberId, ...] = tuple(range(1, config.member_count + 1))
        self.dead_members = frozenset(dead_members)
        unknown = self.dead_members - set(self.members)
        if unknown:
            raise ProtocolInvariantError(f"Unknown dead members {sorted(unknown)}")

        self.incarnations: dict[MemberId, MaybeIncarnation] = {
            member: None if member in self.dead_members else 1
            for member in self.members
        }
        self.views = ViewStore.seeded(
            self.members,
            config.suspicion_timeout,
            dead_members=self.dead_members,
            seed_dead_views=config.seed_dead_views,
        )
        self.buffers: dict[MemberId, GossipBuffer] = {
            member: GossipBuffer(dissemination_limit=config.dissemination_limit)
            for member in self.members
        }
        self.scheduler = ProbeScheduler(members=self.members)
        self.transport: RequestTransport = (
            transport if transport is not None else InMemoryTransport()
        )
        self.rounds: dict[MemberId, RoundNumber] = {member: 0 for member in self.members}
        self.processed_responses: set[RequestId] = set()
        self.complete = False

    # Ground truth helpers

    def is_alive(self, member: MemberId) -> bool:
        return self.incarnations[member] is not None

    def live_members(self) -> list[MemberId]:
        return [member for member in self.members if self.is_alive(member)]

    def own_incarnation(self, member: MemberId) -> int:
        incarnation = self.incarnations[member]
        if incarnation is None:
            raise ProtocolInvariantError(f"Member {member} is dead")
        return incarnation

    def _check_member(self, member: MemberId) -> None:
        if member not in self.incarnations:
            raise ProtocolInvariantError(f"Unknown member {member}")

    def _view_for_merge(self, observer: MemberId, target: MemberId) -> PeerView:
        if target == observer:
            return PeerView(
                incarnation=self.own_incarnation(observer),
                state=MemberState.ALIVE,
                suspicion_countdown=self.config.suspicion_timeout,
            )
        return self.views.get(observer, target)

    # Preconditions

    def has_expirable(self, member: MemberId) -> bool:
        return any(view.is_expired() for _, view in self.views.peers_of(member))

    def can_probe(self, source: MemberId, destination: MemberId) -> bool:
        if self.complete or source == destination or not self.is_alive(source):
            return False
        if self.has_expirable(source):
            return False
        return self.scheduler.can_probe(
            source,
            destination,
            self.views.snapshot(source),
            self.rounds,
            self.live_members(),
        )

    def can_expire(self, source: MemberId, destination: MemberId) -> bool:
        if self.complete or source == destination or not self.is_alive(source):
            return False
        return self.views.get(source, destination).is_expired()

    def can_receive_probe(self, handle: RequestHandle) -> bool:
        if self.complete:
            return False
        record = self.transport.record(handle)
        return record.is_unanswered and self.is_alive(record.request.destination)

    def can_receive_ack(self, handle: RequestHandle) -> bool:
        if self.complete:
            return False
        record = self.transport.record(handle)
        return (
            record.response is not None
            and handle.request_id not in self.processed_responses
        )

    def can_fail_probe(self, handle: RequestHandle) -> bool:
        if self.complete:
            return False
        record = self.transport.record(handle)
        return record.is_unanswered and not self.is_alive(record.request.destination)

    def _require(self, enabled: bool, action: str) -> None:
        if not enabled:
            raise ProtocolInvariantError(f"{action} is not enabled")

    # Actions

    def probe(self, source: MemberId, destination: MemberId) -> RequestHandle:
        """Send a probe carrying the source's view of the destination."""
        self._require(self.can_probe(source, destination), f"probe {source}->{destination}")
        view = self.views.get(source, destination)
        gossip = self.buffers[source].select_outgoing(self.config.max_piggyback_items)
        handle = self.transport.send_request(
            ProbeMessage(
                source=source,
                destination=destination,
                incarnation=view.incarnation,
                state=view.state,
                gossip=gossip,
                round=self.rounds[source],
            )
        )
        self.scheduler.open(source, destination)
        logger.debug(
            "Member {} probes {} (request {}, {} gossip items)",
            source,
            destination,
            handle.request_id,
            len(gossip),
        )
        return handle

    def receive_probe(self, handle: RequestHandle) -> GossipExchange:
        """Answer a probe, refuting suspicion about ourselves when needed."""
        self._require(self.can_receive_probe(handle), f"receive_probe {handle.request_id}")
        probe = self.transport.record(handle).request
        self._check_gossip(probe.gossip)
        member = probe.destination
        incarnation = self.own_incarnation(member)

        extra: tuple[GossipItem, ...] = ()
        if probe.incarnation > incarnation:
            incarnation = probe.incarnation + 1
        elif probe.state == MemberState.SUSPECT:
            incarnation += 1
            extra = (
                GossipItem(target=member, incarnation=incarnation, state=MemberState.ALIVE),
            )
            logger.debug(
                "Member {} refutes suspicion from {} with incarnation {}",
                member,
                probe.source,
                incarnation,
            )
        self.incarnations[member] = incarnation

        outgoing = self.buffers[member].select_outgoing(
            self.config.max_piggyback_items, extra
        )
        applied = self._merge(member, probe.gossip, extra)
        self.transport.send_reply(
            handle,
            AckMessage(
                source=member,
                destination=probe.source,
                incarnation=incarnation,
                gossip=outgoing,
            ),
        )
        return _exchange(probe.gossip, applied)

    def receive_ack(self, handle: RequestHandle) -> GossipExchange:
        """Merge an ack at the original prober and close the request."""
        if handle.request_id in self.processed_responses:
            raise ProtocolInvariantError(
                f"Response to request {handle.request_id} already processed"
            )
        self._require(self.can_receive_ack(handle), f"receive_ack {handle.request_id}")
        record = self.transport.record(handle)
        ack = record.response
        if ack is None:
            raise ProtocolInvariantError(
                f"Request {handle.request_id} has no response to process"
            )
        self._check_gossip(ack.gossip)
        source, responder = record.request.source, ack.source

        incoming = list(ack.gossip)
        if ack.incarnation > self.views.get(source, responder).incarnation:
            incoming.append(
                GossipItem(
                    target=responder,
                    incarnation=ack.incarnation,
                    state=MemberState.ALIVE,
                )
            )
        applied = self._merge(source, incoming, ())

        self.rounds[source] += 1
        self.scheduler.release(source, responder)
        self.processed_responses.add(handle.request_id)
        return _exchange(ack.gossip, applied)

    def probe_fails(self, handle: RequestHandle) -> None:
        """Handle a probe to a dead member that will never be answered."""
        self._require(self.can_fail_probe(handle), f"probe_fails {handle.request_id}")
        probe = self.transport.record(handle).request
        source, destination = probe.source, probe.destination
        view = self.views.get(source, destination)

        if probe.incarnation == view.incarnation and not view.is_dead():
            if view.is_alive():
                suspected = PeerView(
                    incarnation=view.incarnation,
                    state=MemberState.SUSPECT,
                    suspicion_countdown=self.config.suspicion_timeout,
                )
                logger.debug("Member {} suspects {}", source, destination)
            else:
                suspected = view.with_countdown(view.suspicion_countdown - 1)
            self.views.set(source, destination, suspected)
            self.buffers[source].enqueue(suspected.as_gossip(destination))

        self.rounds[source] += 1
        self.scheduler.release(source, destination)
        self.transport.mark_failed(handle)

    def expire(self, source: MemberId, destination: MemberId) -> None:
        """Declare a suspected member whose countdown ran out dead."""
        self._require(self.can_expire(source, destination), f"expire {source}->{destination}")
        view = self.views.get(source, destination)
        dead = PeerView(
            incarnation=view.incarnation,
            state=MemberState.DEAD,
            suspicion_countdown=view.suspicion_countdown,
        )
        self.views.set(source, destination, dead)
        self.buffers[source].enqueue(dead.as_gossip(destination))
        logger.debug("Member {} declares {} dead", source, destination)

    # Gossip merge

    def _check_gossip(self, gossip: Iterable[GossipItem]) -> None:
        for item in gossip:
            self._check_member(item.target)

    def _merge(
        self,
        member: MemberId,
        incoming: Iterable[GossipItem],
        sent_extra: tuple[GossipItem, ...],
    ) -> AppliedUpdates:
        incoming = tuple(incoming)
        buffer = self.buffers[member]
        compacted = compact(
            [*incoming, *buffer.items(), *sent_extra],
            lambda target: self._view_for_merge(member, target),
        )
        applied = apply_updates(
            member,
            compacted,
            lambda target: self.views.get(member, target),
            lambda target, view: self.views.set(member, target, view),
            self.config.suspicion_timeout,
        )
        buffer.save_updates(compacted, received=incoming, sent=sent_extra)
        return applied


def _exchange(wire: tuple[GossipItem, ...], applied: AppliedUpdates) -> GossipExchange:
    on_wire = set(wire)
    return GossipExchange(
        received=len(wire),
        effective=sum(1 for item in applied.changed if item in on_wire),
    )
