"""
Round-indexed statistics for convergence runs.

The collector accumulates gossip traffic between round boundaries and takes
a belief snapshot at every boundary, i.e. whenever all live members' round
counters become equal. The resulting series is sparse: rounds that never
formed a boundary have no entry.
"""

from __future__ import annotations

from collections.abc import Callable, Iterator
from dataclasses import dataclass, field, fields
from typing import TYPE_CHECKING, Final

from loguru import logger

from ..datastructures.membership_types import MemberState
from ..datastructures.type_aliases import (
    MetricName,
    MetricValue,
    RoundNumber,
    StepNumber,
)

if TYPE_CHECKING:
    from ..simulation import SimulationResult
    from .config import SimulationConfig
    from .protocol import GossipExchange, SwimProtocol


class _NotRecorded:
    """Sentinel for a metric that has no value for the requested round."""

    _instance: _NotRecorded | None = None

    def __new__(cls) -> _NotRecorded:
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def __repr__(self) -> str:
        return "NOT_RECORDED"

    def __bool__(self) -> bool:
        return False


NOT_RECORDED: Final = _NotRecorded()

METRICS: Final[tuple[MetricName, ...]] = (
    "updates",
    "effective_updates",
    "suspect_members",
    "dead_members",
    "suspect_pairs",
    "dead_pairs",
)


@dataclass(frozen=True, slots=True)
class BeliefCounts:
    """Ensemble-wide SUSPECT/DEAD beliefs at one instant."""

    suspect_members: int = 0
    dead_members: int = 0
    suspect_pairs: int = 0
    dead_pairs: int = 0


@dataclass(frozen=True, slots=True)
class RoundStatistics:
    """Metrics recorded at one round boundary."""

    round: RoundNumber
    step: StepNumber
    updates: int
    effective_updates: int
    suspect_members: int
    dead_members: int
    suspect_pairs: int
    dead_pairs: int

    def metric(self, name: MetricName) -> MetricValue:
        if name not in METRICS:
            raise KeyError(name)
        return getattr(self, name)

    def as_dict(self) -> dict[str, int]:
        return {f.name: getattr(self, f.name) for f in fields(self)}


def count_beliefs(protocol: SwimProtocol) -> BeliefCounts:
    """
    Count SUSPECT and DEAD beliefs held by live members.

    A member counts once per state when at least one live observer holds
    that belief about it. An unordered pair counts once per state when at
    least one live side of the pair holds that belief about the other.
    """
    live = protocol.live_members()
    suspected: set[int] = set()
    dead: set[int] = set()
    suspect_pairs: set[frozenset[int]] = set()
    dead_pairs: set[frozenset[int]] = set()
    for observer in live:
        for peer, view in protocol.views.peers_of(observer):
            pair = frozenset((observer, peer))
            if view.state == MemberState.SUSPECT:
                suspected.add(peer)
                suspect_pairs.add(pair)
            elif view.state == MemberState.DEAD:
                dead.add(peer)
                dead_pairs.add(pair)
    return BeliefCounts(
        suspect_members=len(suspected),
        dead_members=len(dead),
        suspect_pairs=len(suspect_pairs),
        dead_pairs=len(dead_pairs),
    )


def live_rounds(protocol: SwimProtocol) -> list[RoundNumber]:
    return [protocol.rounds[member] for member in protocol.live_members()]


@dataclass(slots=True)
class StatisticsCollector:
    """
    Aggregates gossip traffic and belief counts per round boundary.

    Call `reset()` before each run; the driver does this for you.
    """

    series: dict[RoundNumber, RoundStatistics] = field(default_factory=dict)
    pending_updates: int = 0
    pending_effective: int = 0
    total_updates: int = 0
    total_effective: int = 0
    last_boundary: RoundNumber | None = None

    def reset(self) -> None:
        self.series.clear()
        self.pending_updates = 0
        self.pending_effective = 0
        self.total_updates = 0
        self.total_effective = 0
        self.last_boundary = None

    def record_exchange(self, exchange: GossipExchange) -> None:
        self.pending_updates += exchange.received
        self.pending_effective += exchange.effective
        self.total_updates += exchange.received
        self.total_effective += exchange.effective

    def record_round(
        self, round_number: RoundNumber, step: StepNumber, beliefs: BeliefCounts
    ) -> RoundStatistics:
        """Close the current accumulation window under `round_number`."""
        stats = RoundStatistics(
            round=round_number,
            step=step,
            updates=self.pending_updates,
            effective_updates=self.pending_effective,
            suspect_members=beliefs.suspect_members,
            dead_members=beliefs.dead_members,
            suspect_pairs=beliefs.suspect_pairs,
            dead_pairs=beliefs.dead_pairs,
        )
        self.series[round_number] = stats
        self.pending_updates = 0
        self.pending_effective = 0
        self.last_boundary = round_number
        logger.debug(
            "Round {} boundary at step {}: {} updates ({} effective), "
            "{} suspect, {} dead",
            round_number,
            step,
            stats.updates,
            stats.effective_updates,
            stats.suspect_members,
            stats.dead_members,
        )
        return stats

    def observe(self, protocol: SwimProtocol, step: StepNumber) -> RoundStatistics | None:
        """Record a boundary if all live round counters just became equal."""
        rounds = live_rounds(protocol)
        if not rounds or min(rounds) != max(rounds):
            return None
        current = rounds[0]
        if self.last_boundary is not None and current <= self.last_boundary:
            return None
        return self.record_round(current, step, count_beliefs(protocol))

    def finalize(self, protocol: SwimProtocol, step: StepNumber) -> RoundStatistics | None:
        """
        Flush traffic seen since the last boundary at the run's last round.

        When the run ends inside the last recorded round, late traffic and
        the final belief counts are folded into that round's entry. Returns
        None when there was nothing to flush.
        """
        rounds = live_rounds(protocol)
        final_round = max(rounds) if rounds else 0
        beliefs = count_beliefs(protocol)
        if self.last_boundary is None or final_round > self.last_boundary:
            return self.record_round(final_round, step, beliefs)

        recorded = self.series[self.last_boundary]
        if not (self.pending_updates or self.pending_effective) and beliefs == (
            BeliefCounts(
                suspect_members=recorded.suspect_members,
                dead_members=recorded.dead_members,
                suspect_pairs=recorded.suspect_pairs,
                dead_pairs=recorded.dead_pairs,
            )
        ):
            return None

        self.pending_updates += recorded.updates
        self.pending_effective += recorded.effective_updates
        return self.record_round(self.last_boundary, step, beliefs)

    def get(
        self,
        round_number: RoundNumber,
        metric: MetricName,
        live: Callable[[], MetricValue] | None = None,
        current_round: RoundNumber | None = None,
    ) -> MetricValue | _NotRecorded:
        """
        Look up a metric for a round.

        Falls back to `live()` for the current, not yet recorded round and
        to NOT_RECORDED otherwise.
        """
        stats = self.series.get(round_number)
        if stats is not None:
            return stats.metric(metric)
        if live is not None and round_number == current_round:
            return live()
        return NOT_RECORDED

    def rounds(self) -> list[RoundNumber]:
        return sorted(self.series)

    def __iter__(self) -> Iterator[RoundStatistics]:
        for round_number in self.rounds():
            yield self.series[round_number]


def render_report(config: SimulationConfig, result: SimulationResult) -> list[str]:
    """
    Render a run as comma-delimited records.

    ``param,<name>,<value>`` lines, then ``stat,<metric>,<round>,<value>``
    lines, then a terminal ``converged`` or ``did_not_converge`` marker with
    the final round and step count.
    """
    lines = [f"param,{name},{value}" for name, value in config.as_params().items()]
    for metric in METRICS:
        for stats in result.series:
            lines.append(f"stat,{metric},{stats.round},{stats.metric(metric)}")
    marker = "converged" if result.converged else "did_not_converge"
    lines.append(f"{marker},{result.rounds},{result.steps}")
    return lines
