"""Pytest configuration and fixtures for swimsim testing."""

from collections.abc import Iterator

import pytest
from loguru import logger

from swimsim.core.config import SimulationConfig
from swimsim.core.protocol import SwimProtocol


@pytest.fixture(autouse=True)
def quiet_logging() -> Iterator[None]:
    """Keep DEBUG protocol traces out of test output."""
    logger.remove()
    logger.add(lambda _: None, level="WARNING")
    yield
    logger.remove()


@pytest.fixture
def scenario_config() -> SimulationConfig:
    """Five members, one dead, timeout 3, dissemination limit 2, piggyback 2."""
    return SimulationConfig(
        member_count=5,
        dead_member_count=1,
        suspicion_timeout=3,
        dissemination_limit=2,
        max_piggyback_items=2,
        seed=11,
    )


@pytest.fixture
def three_member_config() -> SimulationConfig:
    return SimulationConfig(
        member_count=3,
        dead_member_count=1,
        suspicion_timeout=2,
        dissemination_limit=3,
        max_piggyback_items=2,
        seed=3,
    )


@pytest.fixture
def protocol(three_member_config: SimulationConfig) -> SwimProtocol:
    """Three members; member 3 is dead."""
    return SwimProtocol(three_member_config, dead_members=[3])
