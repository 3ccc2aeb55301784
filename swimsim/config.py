from pydantic import Field, ValidationError
from pydantic_settings import BaseSettings, SettingsConfigDict

from swimsim.core.config import DEFAULT_MAX_STEPS, SimulationConfig
from swimsim.core.exceptions import ConfigurationError


class SwimSimSettings(BaseSettings):
    """swimsim run settings, read from SWIMSIM_* environment variables or .env."""

    model_config = SettingsConfigDict(
        env_prefix="SWIMSIM_", env_file=".env", extra="ignore"
    )

    member_count: int = Field(5, description="Total number of members in the ensemble.")
    dead_member_count: int = Field(
        1, description="Number of members that start the run already dead."
    )
    suspicion_timeout: int = Field(
        3,
        description="Failed probes a suspected member survives before it expires.",
    )
    dissemination_limit: int = Field(
        2, description="Maximum number of times one gossip item is piggybacked."
    )
    max_piggyback_items: int = Field(
        2, description="Maximum number of gossip items attached to one message."
    )
    seed: int | None = Field(
        None, description="Seed for dead member selection and action scheduling."
    )
    max_steps: int = Field(
        DEFAULT_MAX_STEPS, description="Give up after this many protocol steps."
    )
    seed_dead_views: bool = Field(
        False,
        description="Start every view of a dead member as DEAD (pre-converged run).",
    )
    log_level: str = Field("INFO", description="loguru level for the stderr sink.")
    debug_scopes: list[str] = Field(
        default_factory=list,
        description="Modules (e.g. core.protocol) whose DEBUG records are shown.",
    )

    def to_config(self) -> SimulationConfig:
        """Build the validated run configuration."""
        return SimulationConfig(
            member_count=self.member_count,
            dead_member_count=self.dead_member_count,
            suspicion_timeout=self.suspicion_timeout,
            dissemination_limit=self.dissemination_limit,
            max_piggyback_items=self.max_piggyback_items,
            seed=self.seed,
            max_steps=self.max_steps,
            seed_dead_views=self.seed_dead_views,
        )


def load_settings(**overrides: object) -> SwimSimSettings:
    """Load settings, applying non-None overrides on top of the environment."""
    values = {key: value for key, value in overrides.items() if value is not None}
    try:
        return SwimSimSettings(**values)  # type: ignore[arg-type]
    except ValidationError as e:
        first = e.errors()[0]
        field_name = ".".join(str(part) for part in first.get("loc", ())) or "settings"
        raise ConfigurationError(field_name, first.get("msg", str(e))) from e
