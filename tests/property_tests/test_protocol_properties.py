"""
Property-based tests for the SWIM protocol engine.

A hypothesis state machine drives random interleavings of enabled actions
on small ensembles and checks after every step that:
- a belief only moves forward (rank rises, or incarnation rises), and DEAD
  is never left
- incarnations recorded in views never decrease
- no dissemination counter exceeds the dissemination limit
- at most one request is pending per source
- live round counters differ by at most one whenever a probe is enabled
- only ground-truth dead members are ever believed DEAD
"""

from hypothesis import HealthCheck, given, settings
from hypothesis import strategies as st
from hypothesis.stateful import RuleBasedStateMachine, initialize, invariant, rule

from swimsim.core.config import SimulationConfig
from swimsim.datastructures.membership_types import MemberState, PeerView
from swimsim.simulation import ActionKind, Simulation


class SwimEnsembleMachine(RuleBasedStateMachine):
    """Random walks through the protocol's enabled actions."""

    def __init__(self) -> None:
        super().__init__()
        self.simulation: Simulation | None = None
        self.previous: dict[tuple[int, int], PeerView] = {}

    @initialize(
        members=st.integers(min_value=2, max_value=5),
        timeout=st.integers(min_value=1, max_value=3),
        limit=st.integers(min_value=1, max_value=3),
        capacity=st.integers(min_value=1, max_value=3),
        seed=st.integers(min_value=0, max_value=10_000),
    )
    def setup(self, members, timeout, limit, capacity, seed):
        config = SimulationConfig(
            member_count=members,
            dead_member_count=1,
            suspicion_timeout=timeout,
            dissemination_limit=limit,
            max_piggyback_items=capacity,
            seed=seed,
        )
        self.simulation = Simulation(config)
        self.previous = self._views()

    def _views(self) -> dict[tuple[int, int], PeerView]:
        protocol = self.simulation.protocol
        return {
            (observer, peer): view
            for observer in protocol.members
            for peer, view in protocol.views.peers_of(observer)
        }

    @rule(choice=st.integers(min_value=0, max_value=1_000))
    def apply_enabled_action(self, choice):
        actions = self.simulation.enabled_actions()
        if not actions:
            return
        self.simulation.apply(actions[choice % len(actions)])

    @invariant()
    def beliefs_only_move_forward(self):
        if self.simulation is None:
            return
        current = self._views()
        for key, before in self.previous.items():
            after = current[key]
            assert after.incarnation >= before.incarnation
            if before.is_dead():
                assert after.is_dead()
            if after.incarnation == before.incarnation:
                assert after.state.rank >= before.state.rank
                if after.is_suspect() and before.is_suspect():
                    assert after.suspicion_countdown <= before.suspicion_countdown
        self.previous = current

    @invariant()
    def counters_within_limit(self):
        if self.simulation is None:
            return
        protocol = self.simulation.protocol
        limit = protocol.config.dissemination_limit
        for buffer in protocol.buffers.values():
            for entry in buffer:
                assert 0 <= entry.count <= limit

    @invariant()
    def one_pending_request_per_source(self):
        if self.simulation is None:
            return
        protocol = self.simulation.protocol
        for member in protocol.members:
            assert protocol.scheduler.pending_count(member) <= 1

    @invariant()
    def rounds_stay_together_when_probing(self):
        if self.simulation is None:
            return
        protocol = self.simulation.protocol
        probes = [
            a for a in self.simulation.enabled_actions() if a.kind == ActionKind.PROBE
        ]
        if not probes:
            return
        rounds = [protocol.rounds[m] for m in protocol.live_members()]
        assert max(rounds) - min(rounds) <= 1
        for action in probes:
            assert protocol.rounds[action.member] == min(rounds)

    @invariant()
    def only_dead_members_believed_dead(self):
        if self.simulation is None:
            return
        protocol = self.simulation.protocol
        for observer in protocol.live_members():
            for peer, view in protocol.views.peers_of(observer):
                if view.state == MemberState.DEAD:
                    assert peer in protocol.dead_members


SwimEnsembleMachine.TestCase.settings = settings(
    max_examples=40,
    stateful_step_count=60,
    deadline=None,
    suppress_health_check=[HealthCheck.too_slow],
)
TestSwimEnsemble = SwimEnsembleMachine.TestCase


@settings(max_examples=25, deadline=None)
@given(
    members=st.integers(min_value=2, max_value=6),
    timeout=st.integers(min_value=1, max_value=4),
    limit=st.integers(min_value=1, max_value=4),
    capacity=st.integers(min_value=1, max_value=4),
    seed=st.integers(min_value=0, max_value=10_000),
)
def test_every_run_converges(members, timeout, limit, capacity, seed):
    """From the seeded state, a fair random schedule always converges."""
    config = SimulationConfig(
        member_count=members,
        dead_member_count=1,
        suspicion_timeout=timeout,
        dissemination_limit=limit,
        max_piggyback_items=capacity,
        seed=seed,
        max_steps=50_000,
    )
    simulation = Simulation(config)
    result = simulation.run()

    assert result.converged
    assert simulation.enabled_actions() == []
    rounds = [stats.round for stats in result.series]
    assert rounds == sorted(set(rounds))
