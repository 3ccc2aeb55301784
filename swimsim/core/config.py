"""Validated run configuration for the gossip failure-detection engine."""

from __future__ import annotations

from dataclasses import asdict, dataclass

from .exceptions import ConfigurationError

DEFAULT_MAX_STEPS = 1_000_000


@dataclass(frozen=True, slots=True)
class SimulationConfig:
    """
    Run parameters.

    Attributes:
        member_count: Size of the fixed member set.
        dead_member_count: Members that start the run already dead.
        suspicion_timeout: Failed probes a suspected member survives
            before its observer declares it dead.
        dissemination_limit: Maximum times one gossip item is piggybacked.
        max_piggyback_items: Maximum gossip items attached to one message.
        seed: Seed for dead member selection and action scheduling.
        max_steps: Upper bound on driver steps before giving up.
        seed_dead_views: Start every view of a dead member as DEAD
            instead of ALIVE, i.e. a run that begins already converged.
    """

    member_count: int
    dead_member_count: int
    suspicion_timeout: int
    dissemination_limit: int
    max_piggyback_items: int
    seed: int | None = None
    max_steps: int = DEFAULT_MAX_STEPS
    seed_dead_views: bool = False

    def __post_init__(self) -> None:
        if self.member_count < 2:
            raise ConfigurationError(
                "member_count", f"must be at least 2, got {self.member_count}"
            )
        if not 0 <= self.dead_member_count < self.member_count:
            raise ConfigurationError(
                "dead_member_count",
                f"must be in [0, {self.member_count}), got {self.dead_member_count}",
            )
        for name in ("suspicion_timeout", "dissemination_limit", "max_piggyback_items"):
            value = getattr(self, name)
            if value <= 0:
                raise ConfigurationError(name, f"must be positive, got {value}")
        if self.max_steps <= 0:
            raise ConfigurationError(
                "max_steps", f"must be positive, got {self.max_steps}"
            )

    @property
    def live_member_count(self) -> int:
        return self.member_count - self.dead_member_count

    def as_params(self) -> dict[str, int | bool | None]:
        """Flat parameter mapping used by reports and logs."""
        return asdict(self)
