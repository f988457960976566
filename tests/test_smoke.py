"""Smoke tests for configuration, simulation, reporting and the CLI.

These tests verify the outer layers run end to end without deep validation.
Run these first to catch obvious breakage.
"""

import json

import pytest
import sys
import os

sys.path.insert(0, os.path.join(os.path.dirname(__file__), '..', 'src'))

from pydantic import ValidationError

from lockstake.cli import main
from lockstake.config.loader import config_from_dict, dump_config, load_config
from lockstake.config.schema import Config
from lockstake.engine import INFINITE_RUNWAY, SECONDS_PER_DAY
from lockstake.engine.fixed_point import U32_MAX
from lockstake.reporting.export import export_csv, export_events_csv, export_json, snapshots_frame
from lockstake.reporting.status import (
    format_protocol_status,
    format_user_status,
    protocol_status,
    user_status,
)
from lockstake.simulation.runner import SimulationResult, SimulationRunner
from lockstake.validation import InvariantChecker


def small_config(**simulation_overrides):
    simulation = {'num_users': 4, 'num_steps': 120}
    simulation.update(simulation_overrides)
    return load_config(overrides={'simulation': simulation})


class TestConfigLoading:
    """Configuration loading and validation."""

    def test_load_default_config(self):
        """Config loads without errors."""
        config = load_config()
        assert isinstance(config, Config)
        assert config.protocol.withdrawal_delay_days == 7
        assert config.protocol.yearly_reward_rate_numerator == 80_000_000_000

    def test_hash_is_deterministic(self):
        assert load_config().compute_hash() == load_config().compute_hash()

    def test_hash_changes_with_config(self):
        assert small_config().compute_hash() != load_config().compute_hash()

    def test_overrides_merge_per_section(self):
        """Overriding one key keeps its siblings."""
        config = small_config(random_seed=9)
        assert config.simulation.random_seed == 9
        assert config.simulation.num_users == 4
        assert config.simulation.max_stake == 2_000_000
        assert config.protocol.asset_id == "STAKE"

    def test_dump_and_reload(self, tmp_path):
        path = tmp_path / "config.yaml"
        config = small_config()
        dump_config(config, path)
        assert load_config(path).compute_hash() == config.compute_hash()

    def test_empty_file_rejected(self, tmp_path):
        path = tmp_path / "empty.yaml"
        path.write_text("")
        with pytest.raises(ValueError):
            load_config(path)

    def test_delay_over_limit_rejected(self):
        data = load_config().to_dict()
        data['protocol']['withdrawal_delay_days'] = 32
        with pytest.raises(ValidationError):
            config_from_dict(data)

    def test_rate_that_floors_to_zero_rejected(self):
        data = load_config().to_dict()
        data['protocol']['yearly_reward_rate_numerator'] = 1_000
        with pytest.raises(ValidationError):
            config_from_dict(data)

    def test_stake_bounds_ordered(self):
        data = load_config().to_dict()
        data['simulation']['min_stake'] = 10
        data['simulation']['max_stake'] = 5
        with pytest.raises(ValidationError):
            config_from_dict(data)

    def test_default_inputs_pass_checks(self):
        warnings = InvariantChecker(load_config()).check_config_inputs()
        assert [w for w in warnings if w.severity == "error"] == []

    def test_unaffordable_funding_flagged(self):
        data = load_config().to_dict()
        data['simulation']['admin_starting_balance'] = 1
        warnings = InvariantChecker(config_from_dict(data)).check_config_inputs()
        assert any(w.severity == "error" and w.category == "input" for w in warnings)


class TestSimulation:
    """Randomized operation schedules."""

    def test_runs_without_errors(self):
        config = small_config()
        result = SimulationRunner(config).run()
        assert isinstance(result, SimulationResult)
        assert len(result.snapshots) == config.simulation.num_steps + 1
        assert result.errors == []
        assert sum(result.action_counts.values()) + sum(result.rejections.values()) == 120

    def test_same_seed_same_result(self):
        config = small_config()
        first = SimulationRunner(config).run(random_seed=7)
        second = SimulationRunner(config).run(random_seed=7)
        assert first.final_metrics == second.final_metrics
        assert first.action_counts == second.action_counts

    def test_reused_runner_starts_fresh(self):
        """Each run starts from the configured clock and balances."""
        config = small_config()
        runner = SimulationRunner(config)
        first = runner.run(random_seed=7)
        second = runner.run(random_seed=7)
        assert first.final_metrics == second.final_metrics
        assert first.rejections == second.rejections
        assert second.snapshots[0].t == config.simulation.start_time
        assert len(second.events) == len(first.events)

    def test_stake_conservation_every_step(self):
        result = SimulationRunner(small_config()).run()
        for snapshot in result.snapshots:
            assert snapshot.sum_user_stake == snapshot.total_staked
            assert snapshot.escrow_balance == snapshot.total_staked + snapshot.pending_withdrawal_principal

    def test_treasury_accounts_for_paid_rewards(self):
        """Treasury holds everything provided minus everything paid out."""
        result = SimulationRunner(small_config()).run()
        metrics = result.final_metrics
        assert metrics['treasury_balance'] == metrics['total_reward_provided'] - metrics['rewards_paid']

    def test_rejections_are_known_codes(self):
        result = SimulationRunner(small_config()).run()
        known = {
            'invalid_amount', 'no_stake_found', 'no_withdrawal_request',
            'withdrawal_delay_not_met', 'insufficient_rewards', 'transfer_failed',
        }
        assert set(result.rejections) <= known


class TestReporting:
    """Status reports and exports."""

    def test_protocol_status(self, engine, clock):
        engine.stake("alice", 1_000_000)
        clock.advance(SECONDS_PER_DAY)
        status = protocol_status(engine)
        assert status['total_staked'] == 1_000_000
        assert status['treasury_balance'] == 1_000_000
        assert status['reward_runway_seconds'] == INFINITE_RUNWAY

        text = format_protocol_status(status)
        assert "Current APR: 8.00%" in text
        assert "∞" in text

    def test_saturated_runway_label(self, bare_engine):
        """A funded pool that is consuming can still report an unbounded runway."""
        bare_engine.add_rewards("admin", 2536 * (U32_MAX + 1))
        bare_engine.stake("alice", 10**12)
        status = protocol_status(bare_engine)
        assert status['reward_runway_seconds'] == INFINITE_RUNWAY

        text = format_protocol_status(status)
        assert "Reward Runway: ∞ (no consumption or beyond u32 range)" in text

    def test_user_status(self, engine, clock):
        engine.stake("alice", 10**9)
        clock.advance(SECONDS_PER_DAY)
        engine.request_withdrawal("alice")
        status = user_status(engine, "alice")
        assert status['exists']
        assert status['withdrawal_request_reward_amount'] == 219_110
        assert not status['withdrawal_ready']
        assert "locked" in format_user_status(status)

    def test_unknown_user_status(self, engine):
        status = user_status(engine, "nobody")
        assert not status['exists']
        assert "no position" in format_user_status(status)

    def test_exports(self, tmp_path):
        result = SimulationRunner(small_config(num_steps=40)).run()

        frame = snapshots_frame(result)
        assert len(frame) == 41
        assert frame['t_days'].iloc[0] == 0

        csv_path = tmp_path / "snapshots.csv"
        events_path = tmp_path / "events.csv"
        json_path = tmp_path / "result.json"
        export_csv(result, str(csv_path))
        export_events_csv(result, str(events_path))
        export_json(result, str(json_path))

        assert csv_path.exists()
        assert events_path.read_text().startswith("event,")
        data = json.loads(json_path.read_text())
        assert data['config_hash'] == result.config.compute_hash()
        assert len(data['snapshots']) == 41
        assert data['events'][0]['event'] == "Initialized"


class TestCli:
    """Command-line entry point."""

    def test_scenario(self, capsys):
        assert main(["scenario"]) == 0
        out = capsys.readouterr().out
        assert "Pending Reward: 79,975" in out
        assert "Phase: empty" in out

    def test_simulate(self, capsys):
        assert main(["simulate", "--steps", "30", "--seed", "3"]) == 0
        assert "FINAL METRICS" in capsys.readouterr().out


if __name__ == '__main__':
    pytest.main([__file__, '-v'])
