"""Command-line entry point."""

import argparse
import logging
import sys
from typing import List, Optional

from .config.loader import dump_config, load_config
from .engine.clock import ManualClock
from .engine.errors import StakingError
from .engine.fixed_point import SECONDS_PER_YEAR
from .engine.ledger import StakingEngine
from .engine.transfers import Account, InMemoryTokenLedger
from .logging_utils import configure_logging
from .reporting.export import export_csv, export_events_csv, export_json
from .reporting.status import format_protocol_status, format_user_status, protocol_status, user_status
from .simulation.runner import SimulationRunner

logger = logging.getLogger(__name__)


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="lockstake", description="Staking ledger tools")
    parser.add_argument("--log-level", default=None, help="DEBUG, INFO, WARNING or ERROR")
    sub = parser.add_subparsers(dest="command", required=True)

    simulate = sub.add_parser("simulate", help="Run a randomized operation schedule")
    simulate.add_argument("--config", default=None, help="YAML config (defaults to packaged defaults)")
    simulate.add_argument("--seed", type=int, default=None)
    simulate.add_argument("--steps", type=int, default=None)
    simulate.add_argument("--csv", default=None, help="Write ledger snapshots to this CSV file")
    simulate.add_argument("--events-csv", default=None, help="Write the event log to this CSV file")
    simulate.add_argument("--json", default=None, help="Write the full result to this JSON file")
    simulate.add_argument("--save-config", default=None, help="Write the effective config to this YAML file")

    scenario = sub.add_parser("scenario", help="Stake for a year at a fixed rate and report")
    scenario.add_argument("--stake", type=int, default=1_000_000)
    scenario.add_argument("--rate", type=int, default=80_000_000_000, help="Yearly rate numerator")
    scenario.add_argument("--funding", type=int, default=100_000_000)
    scenario.add_argument("--delay-days", type=int, default=7)

    return parser


def _simulate(args: argparse.Namespace) -> int:
    config = load_config(args.config)
    runner = SimulationRunner(config)
    result = runner.run(random_seed=args.seed, num_steps=args.steps)

    print(format_protocol_status(protocol_status(runner.engine)))
    print()
    print("FINAL METRICS")
    print("-" * 30)
    for key, value in result.final_metrics.items():
        print(f"{key}: {value}")
    print(f"rejections: {result.rejections}")

    if args.csv:
        export_csv(result, args.csv)
    if args.events_csv:
        export_events_csv(result, args.events_csv)
    if args.json:
        export_json(result, args.json)
    if args.save_config:
        dump_config(config, args.save_config)

    for warning in result.errors:
        print(f"ERROR [{warning.category}] {warning.message}: {warning.details}", file=sys.stderr)
    return 1 if result.errors else 0


def _scenario(args: argparse.Namespace) -> int:
    clock = ManualClock()
    ledger = InMemoryTokenLedger()
    ledger.mint(Account.wallet("admin"), args.funding)
    ledger.mint(Account.wallet("staker"), args.stake)

    try:
        engine = StakingEngine.initialize("admin", ledger.asset_id, args.delay_days, args.rate, ledger, clock)
        if args.funding > 0:
            engine.add_rewards("admin", args.funding)
        engine.stake("staker", args.stake)
        clock.advance(SECONDS_PER_YEAR)
        engine.request_withdrawal("staker")
        print(format_user_status(user_status(engine, "staker")))
        print()
        clock.advance(engine.settings.withdrawal_delay_seconds)
        engine.withdraw("staker")
    except StakingError as exc:
        logger.error("scenario failed: %s", exc)
        print(f"scenario failed: {exc}", file=sys.stderr)
        return 1

    print(format_protocol_status(protocol_status(engine)))
    print()
    print(format_user_status(user_status(engine, "staker")))
    return 0


def main(argv: Optional[List[str]] = None) -> int:
    args = _build_parser().parse_args(argv)
    configure_logging(args.log_level)

    if args.command == "simulate":
        return _simulate(args)
    return _scenario(args)


if __name__ == "__main__":
    sys.exit(main())
