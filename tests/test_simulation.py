"""
Tests for the discrete-event simulation driver.

Includes the five-member convergence scenario: one member starts dead,
suspicion timeout 3, dissemination limit 2, two gossip items per message.
"""

from dataclasses import replace

import pytest

from swimsim.core.config import SimulationConfig
from swimsim.core.convergence import ConvergenceDetector, matches_ground_truth
from swimsim.core.exceptions import ProtocolInvariantError
from swimsim.core.protocol import SwimProtocol
from swimsim.core.statistics import render_report
from swimsim.datastructures.membership_types import MemberState, PeerView
from swimsim.simulation import Action, ActionKind, Simulation, run_simulation

STEP_BOUND = 100_000


class TestConvergenceScenario:
    def test_run_converges(self, scenario_config: SimulationConfig):
        simulation = Simulation(scenario_config)
        result = simulation.run()

        assert result.converged
        assert len(result.dead_members) == 1
        assert 0 < result.rounds < STEP_BOUND
        assert simulation.enabled_actions() == []

        (dead,) = result.dead_members
        protocol = simulation.protocol
        for observer in protocol.live_members():
            for peer, view in protocol.views.peers_of(observer):
                if peer == dead:
                    assert view.state == MemberState.DEAD
                else:
                    assert view.state == MemberState.ALIVE

    def test_only_the_dead_member_is_ever_declared_dead(
        self, scenario_config: SimulationConfig
    ):
        simulation = Simulation(scenario_config)
        (dead,) = simulation.dead_members

        for _ in range(STEP_BOUND):
            if simulation.step() is None:
                break
            protocol = simulation.protocol
            for observer in protocol.live_members():
                for peer, view in protocol.views.peers_of(observer):
                    if peer != dead:
                        assert view.state != MemberState.DEAD

        assert simulation.complete

    def test_series_has_increasing_rounds(self, scenario_config: SimulationConfig):
        result = run_simulation(scenario_config)
        rounds = [stats.round for stats in result.series]

        assert rounds[0] == 0
        assert rounds == sorted(rounds)
        assert len(set(rounds)) == len(rounds)
        assert rounds[-1] == result.rounds
        assert result.series[-1].dead_members == 1
        assert sum(s.updates for s in result.series) == result.total_updates
        assert result.total_effective_updates <= result.total_updates

    def test_report_ends_with_converged_marker(self, scenario_config: SimulationConfig):
        result = run_simulation(scenario_config)
        lines = render_report(scenario_config, result)

        assert lines[0] == "param,member_count,5"
        assert "param,dissemination_limit,2" in lines
        assert f"stat,dead_members,{result.rounds},1" in lines
        assert lines[-1] == f"converged,{result.rounds},{result.steps}"

    def test_same_seed_same_run(self, scenario_config: SimulationConfig):
        first = run_simulation(scenario_config)
        second = run_simulation(scenario_config)

        assert first.dead_members == second.dead_members
        assert first.steps == second.steps
        assert first.series == second.series


class TestDriver:
    def test_initial_enabled_actions(self, three_member_config: SimulationConfig):
        simulation = Simulation(three_member_config, dead_members=(3,))
        actions = simulation.enabled_actions()

        assert all(a.kind == ActionKind.PROBE for a in actions)
        assert {(a.member, a.peer) for a in actions} == {(1, 2), (1, 3), (2, 1), (2, 3)}

    def test_message_actions_follow_probe(self, three_member_config: SimulationConfig):
        simulation = Simulation(three_member_config, dead_members=(3,))
        simulation.apply(Action(ActionKind.PROBE, 1, peer=3))
        simulation.apply(Action(ActionKind.PROBE, 2, peer=1))

        kinds = {(a.kind, a.member) for a in simulation.enabled_actions()}
        assert (ActionKind.PROBE_FAILS, 1) in kinds
        assert (ActionKind.RECEIVE_PROBE, 1) in kinds
        assert not any(kind == ActionKind.PROBE for kind, _ in kinds)

    def test_disabled_action_rejected(self, three_member_config: SimulationConfig):
        simulation = Simulation(three_member_config, dead_members=(3,))
        with pytest.raises(ProtocolInvariantError):
            simulation.apply(Action(ActionKind.PROBE, 1, peer=1))
        with pytest.raises(ProtocolInvariantError, match="carries no request"):
            simulation.apply(Action(ActionKind.RECEIVE_ACK, 1))

    def test_wrong_number_of_dead_members(self, three_member_config: SimulationConfig):
        with pytest.raises(ProtocolInvariantError, match="Expected 1 dead members"):
            Simulation(three_member_config, dead_members=(2, 3))

    def test_already_converged_start(self, scenario_config: SimulationConfig):
        simulation = Simulation(replace(scenario_config, seed_dead_views=True))
        assert simulation.complete
        assert simulation.enabled_actions() == []

        result = simulation.run()
        assert result.converged
        assert result.steps == 0

        with pytest.raises(ProtocolInvariantError, match="already complete"):
            simulation.apply(Action(ActionKind.PROBE, 1, peer=2))

    def test_no_dead_members_is_converged(self, scenario_config: SimulationConfig):
        result = run_simulation(replace(scenario_config, dead_member_count=0))
        assert result.converged
        assert result.rounds == 0

    def test_step_bound_reports_non_convergence(self, scenario_config: SimulationConfig):
        config = replace(scenario_config, max_steps=3)
        result = run_simulation(config)

        assert not result.converged
        assert result.steps == 3
        assert render_report(config, result)[-1].startswith("did_not_converge,")

    @pytest.mark.parametrize("seed", [0, 1, 2, 3, 4])
    def test_converges_for_several_seeds(self, scenario_config, seed):
        result = run_simulation(replace(scenario_config, seed=seed))
        assert result.converged
        assert all(inc in (None, 1) for inc in result.incarnations.values())


class TestConvergenceDetector:
    def test_matches_ground_truth(self):
        assert matches_ground_truth(PeerView(1, MemberState.ALIVE, 2), 1)
        assert not matches_ground_truth(PeerView(1, MemberState.ALIVE, 2), 2)
        assert not matches_ground_truth(PeerView(1, MemberState.SUSPECT, 2), 1)
        assert matches_ground_truth(PeerView(0, MemberState.DEAD, 2), None)
        assert not matches_ground_truth(PeerView(1, MemberState.ALIVE, 2), None)

    def test_flags_completion_once_dead_member_is_known(self, protocol: SwimProtocol):
        detector = ConvergenceDetector()
        assert detector.mismatches(protocol) == [(1, 3), (2, 3)]
        assert not detector.check(protocol)

        for observer in (1, 2):
            protocol.views.set(observer, 3, PeerView(1, MemberState.DEAD, 2))

        assert detector.mismatches(protocol) == []
        assert detector.check(protocol)
        assert protocol.complete
        assert not protocol.can_probe(1, 2)


class TestTrafficAccounting:
    @pytest.mark.parametrize("members", [2, 3, 4, 6])
    @pytest.mark.parametrize("seed", range(12))
    def test_series_accounts_for_all_gossip(
        self, scenario_config: SimulationConfig, members: int, seed: int
    ):
        config = replace(scenario_config, member_count=members, seed=seed)
        result = run_simulation(config)

        assert result.converged
        assert sum(s.updates for s in result.series) == result.total_updates
        assert (
            sum(s.effective_updates for s in result.series)
            == result.total_effective_updates
        )
        assert result.series[-1].dead_members == 1
        assert result.series[-1].suspect_members == 0
