"""
swimsim core module.

The protocol engine proper: view store, gossip buffer, merge/compaction,
probe scheduler, state machine, transport, statistics and convergence.
"""

from .config import SimulationConfig
from .convergence import ConvergenceDetector
from .exceptions import (
    ConfigurationError,
    ProtocolInvariantError,
    SwimSimException,
    TransportError,
)
from .gossip_buffer import GossipBuffer
from .merge import AppliedUpdates, apply_updates, compact
from .protocol import GossipExchange, SwimProtocol
from .scheduler import ProbeScheduler
from .statistics import (
    NOT_RECORDED,
    BeliefCounts,
    RoundStatistics,
    StatisticsCollector,
    count_beliefs,
    render_report,
)
from .transport import InMemoryTransport, RequestTransport
from .view_store import ViewStore

__all__ = [
    "AppliedUpdates",
    "BeliefCounts",
    "ConfigurationError",
    "ConvergenceDetector",
    "GossipBuffer",
    "GossipExchange",
    "InMemoryTransport",
    "NOT_RECORDED",
    "ProbeScheduler",
    "ProtocolInvariantError",
    "RequestTransport",
    "RoundStatistics",
    "SimulationConfig",
    "StatisticsCollector",
    "SwimProtocol",
    "SwimSimException",
    "TransportError",
    "ViewStore",
    "apply_updates",
    "compact",
    "count_beliefs",
    "render_report",
]
