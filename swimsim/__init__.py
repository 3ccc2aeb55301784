"""
swimsim - SWIM-style gossip failure detection engine.

A fixed ensemble of members probes each other, suspects members that stop
answering, declares them dead once suspicion times out, and spreads every
belief change by piggybacking bounded, prioritized gossip on probe traffic.
The package measures how quickly, and with how much gossip, all live members
converge on the truth about members that start the run already dead.

## Quick Start

```python
from swimsim import SimulationConfig, Simulation

config = SimulationConfig(
    member_count=5,
    dead_member_count=1,
    suspicion_timeout=3,
    dissemination_limit=2,
    max_piggyback_items=2,
    seed=7,
)
result = Simulation(config).run()
print(result.converged, result.rounds)
```
"""

from __future__ import annotations

from .core.config import SimulationConfig
from .core.exceptions import (
    ConfigurationError,
    ProtocolInvariantError,
    SwimSimException,
    TransportError,
)
from .core.protocol import GossipExchange, SwimProtocol
from .core.statistics import (
    NOT_RECORDED,
    RoundStatistics,
    StatisticsCollector,
    render_report,
)
from .datastructures import GossipItem, MemberState, PeerView
from .simulation import (
    Action,
    ActionKind,
    Simulation,
    SimulationResult,
    run_simulation,
)

__version__ = "0.1.0"

__all__ = [
    "Action",
    "ActionKind",
    "ConfigurationError",
    "GossipExchange",
    "GossipItem",
    "MemberState",
    "NOT_RECORDED",
    "PeerView",
    "ProtocolInvariantError",
    "RoundStatistics",
    "Simulation",
    "SimulationConfig",
    "SimulationResult",
    "StatisticsCollector",
    "SwimProtocol",
    "SwimSimException",
    "TransportError",
    "render_report",
    "run_simulation",
]
