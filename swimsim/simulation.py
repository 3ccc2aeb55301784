"""
Discrete-event driver for the SWIM protocol engine.

At every step the driver enumerates all enabled (member, action)
combinations, picks one uniformly at random from a seeded RNG and applies
it to completion. After every action it feeds the statistics collector and
asks the convergence detector whether the run is over. A run ends when it
converges, when no action is enabled, or when the step bound is hit.
"""

from __future__ import annotations

import random
from dataclasses import dataclass, field
from enum import Enum

from loguru import logger

from .core.config import SimulationConfig
from .core.convergence import ConvergenceDetector
from .core.exceptions import ProtocolInvariantError
from .core.protocol import NO_EXCHANGE, GossipExchange, SwimProtocol
from .core.statistics import RoundStatistics, StatisticsCollector
from .datastructures.messages import RequestHandle
from .datastructures.type_aliases import (
    MaybeIncarnation,
    MemberId,
    RequestId,
    RoundNumber,
    StepNumber,
)


class ActionKind(Enum):
    """The five protocol actions."""

    PROBE = "probe"
    EXPIRE = "expire"
    RECEIVE_PROBE = "receive_probe"
    RECEIVE_ACK = "receive_ack"
    PROBE_FAILS = "probe_fails"


@dataclass(frozen=True, slots=True)
class Action:
    """
    One enabled action.

    Member-driven actions (probe, expire) name the acting member and the
    peer; message-driven ones name the request they consume.
    """

    kind: ActionKind
    member: MemberId
    peer: MemberId | None = None
    request_id: RequestId | None = None

    @property
    def handle(self) -> RequestHandle:
        if self.request_id is None:
            raise ProtocolInvariantError(f"{self.kind.value} carries no request")
        return RequestHandle(request_id=self.request_id)

    def sort_key(self) -> tuple[str, int, int, int]:
        return (
            self.kind.value,
            self.member,
            self.peer if self.peer is not None else 0,
            self.request_id if self.request_id is not None else 0,
        )


@dataclass(frozen=True, slots=True)
class SimulationResult:
    """Outcome of a run."""

    converged: bool
    rounds: RoundNumber
    steps: StepNumber
    dead_members: tuple[MemberId, ...]
    series: tuple[RoundStatistics, ...]
    incarnations: dict[MemberId, MaybeIncarnation] = field(default_factory=dict)
    total_updates: int = 0
    total_effective_updates: int = 0


def choose_dead_members(config: SimulationConfig, rng: random.Random) -> tuple[MemberId, ...]:
    members = list(range(1, config.member_count + 1))
    return tuple(sorted(rng.sample(members, config.dead_member_count)))


class Simulation:
    """Drives one SWIM ensemble from its seeded initial state to the end."""

    def __init__(
        self,
        config: SimulationConfig,
        collector: StatisticsCollector | None = None,
        rng: random.Random | None = None,
        dead_members: tuple[MemberId, ...] | None = None,
    ) -> None:
        self.config = config
        self.rng = rng if rng is not None else random.Random(config.seed)
        if dead_members is None:
            dead_members = choose_dead_members(config, self.rng)
        elif len(dead_members) != config.dead_member_count:
            raise ProtocolInvariantError(
                f"Expected {config.dead_member_count} dead members, got {len(dead_members)}"
            )
        self.dead_members = tuple(sorted(dead_members))
        self.protocol = SwimProtocol(config, dead_members=self.dead_members)
        self.collector = collector if collector is not None else StatisticsCollector()
        self.detector = ConvergenceDetector()
        self.steps: StepNumber = 0

        self.collector.reset()
        self.collector.observe(self.protocol, self.steps)
        self.detector.check(self.protocol)

    @property
    def complete(self) -> bool:
        return self.protocol.complete

    def enabled_actions(self) -> list[Action]:
        """All currently enabled actions in a deterministic order."""
        protocol = self.protocol
        if protocol.complete:
            return []

        actions: list[Action] = []
        for member in protocol.live_members():
            for peer in protocol.members:
                if peer == member:
                    continue
                if protocol.can_expire(member, peer):
                    actions.append(Action(ActionKind.EXPIRE, member, peer=peer))
                if protocol.can_probe(member, peer):
                    actions.append(Action(ActionKind.PROBE, member, peer=peer))

        for record in protocol.transport.in_flight():
            request = record.request
            if protocol.can_receive_probe(record.handle):
                actions.append(
                    Action(
                        ActionKind.RECEIVE_PROBE,
                        request.destination,
                        peer=request.source,
                        request_id=record.handle.request_id,
                    )
                )
            if protocol.can_fail_probe(record.handle):
                actions.append(
                    Action(
                        ActionKind.PROBE_FAILS,
                        request.source,
                        peer=request.destination,
                        request_id=record.handle.request_id,
                    )
                )

        for record in protocol.transport.answered():
            if protocol.can_receive_ack(record.handle):
                actions.append(
                    Action(
                        ActionKind.RECEIVE_ACK,
                        record.request.source,
                        peer=record.request.destination,
                        request_id=record.handle.request_id,
                    )
                )

        actions.sort(key=Action.sort_key)
        return actions

    def apply(self, action: Action) -> None:
        """Apply one enabled action, then update statistics and convergence."""
        protocol = self.protocol
        if protocol.complete:
            raise ProtocolInvariantError(
                f"Cannot apply {action.kind.value}: simulation already complete"
            )

        exchange: GossipExchange = NO_EXCHANGE
        match action.kind:
            case ActionKind.PROBE:
                protocol.probe(action.member, _peer(action))
            case ActionKind.EXPIRE:
                protocol.expire(action.member, _peer(action))
            case ActionKind.RECEIVE_PROBE:
                exchange = protocol.receive_probe(action.handle)
            case ActionKind.RECEIVE_ACK:
                exchange = protocol.receive_ack(action.handle)
            case ActionKind.PROBE_FAILS:
                protocol.probe_fails(action.handle)

        self.steps += 1
        self.collector.record_exchange(exchange)
        self.collector.observe(protocol, self.steps)
        self.detector.check(protocol)

    def step(self) -> Action | None:
        """Apply one randomly chosen enabled action, or return None."""
        actions = self.enabled_actions()
        if not actions:
            return None
        action = self.rng.choice(actions)
        self.apply(action)
        return action

    def current_round(self) -> RoundNumber:
        rounds = [self.protocol.rounds[m] for m in self.protocol.live_members()]
        return max(rounds) if rounds else 0

    def run(self) -> SimulationResult:
        """Step until convergence, exhaustion or the step bound."""
        logger.info(
            "Starting run: {} members, dead {}, suspicion timeout {}, "
            "dissemination limit {}, piggyback {}",
            self.config.member_count,
            list(self.dead_members),
            self.config.suspicion_timeout,
            self.config.dissemination_limit,
            self.config.max_piggyback_items,
        )
        while not self.complete:
            if self.steps >= self.config.max_steps:
                logger.warning(
                    "Step bound {} reached without convergence", self.config.max_steps
                )
                break
            if self.step() is None:
                break

        self.collector.finalize(self.protocol, self.steps)
        result = self.result()
        if result.converged:
            logger.info(
                "Converged at round {} after {} steps", result.rounds, result.steps
            )
        else:
            logger.info(
                "Did not converge: stopped at round {} after {} steps",
                result.rounds,
                result.steps,
            )
        return result

    def result(self) -> SimulationResult:
        return SimulationResult(
            converged=self.complete,
            rounds=self.current_round(),
            steps=self.steps,
            dead_members=self.dead_members,
            series=tuple(self.collector),
            incarnations=dict(self.protocol.incarnations),
            total_updates=self.collector.total_updates,
            total_effective_updates=self.collector.total_effective,
        )


def _peer(action: Action) -> MemberId:
    if action.peer is None:
        raise ProtocolInvariantError(f"{action.kind.value} carries no peer")
    return action.peer


def run_simulation(config: SimulationConfig) -> SimulationResult:
    """Convenience wrapper: build a Simulation and run it."""
    return Simulation(config).run()
