"""
Batch entry point: run storefront scenarios against a real Chrome.

Usage::

    # Every built-in scenario, console summary:
    storefront-flows

    # Only login scenarios, JSON lines, slow timings:
    storefront-flows --kind valid_login --kind invalid_login --profile slow --json

    # Replace the built-in tables:
    storefront-flows --data rows.json
"""

from __future__ import annotations

import argparse
import json
import logging
import sys
from collections.abc import Sequence

from .config import FlowConfig
from .driver.launcher import BrowserLauncher, CdpSessionFactory
from .errors import FlowError
from .runner import ScenarioOutcome, ScenarioRunner
from .scenarios import KINDS, build_all, load_data

logger = logging.getLogger("storefront.flows")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="storefront-flows",
        description="Run storefront UI scenarios through the Chrome DevTools Protocol.",
    )
    parser.add_argument(
        "--kind",
        action="append",
        choices=sorted(KINDS),
        help="Scenario kind to run (repeatable; default: all kinds)",
    )
    parser.add_argument("--data", help="JSON file with replacement rows keyed by scenario kind")
    parser.add_argument(
        "--profile",
        choices=("fast", "default", "slow"),
        help="Timing profile (default: STOREFRONT_TIMEOUT_PROFILE or 'default')",
    )
    parser.add_argument("--json", dest="json_output", action="store_true", help="Print one JSON line per outcome")
    parser.add_argument("--list", dest="list_only", action="store_true", help="List scenario ids and exit")
    return parser


def print_text_results(outcomes: Sequence[ScenarioOutcome]) -> None:
    for outcome in outcomes:
        icon = "PASS" if outcome.passed else "FAIL"
        final = outcome.final_step.value if outcome.final_step is not None else "-"
        print(f"{icon} {outcome.scenario_id} ({final}, {outcome.duration_ms}ms)")
        if outcome.error is not None:
            print(f"    {outcome.error.category}: {outcome.error.message}")
        for item in outcome.diagnostics:
            if not item.ok:
                print(f"    soft miss: {item.label} [{item.category}]")

    failed = [o for o in outcomes if not o.passed]
    print("=" * 60)
    print(f"{len(outcomes) - len(failed)} passed, {len(failed)} failed across {len(outcomes)} scenarios")
    for outcome in failed:
        print(f"  - {outcome.scenario_id}")


def print_json_results(outcomes: Sequence[ScenarioOutcome]) -> None:
    for outcome in outcomes:
        print(json.dumps(outcome.to_dict(), ensure_ascii=False, default=str))


def main(argv: Sequence[str] | None = None) -> int:
    args = build_parser().parse_args(argv)
    try:
        config = FlowConfig.from_env(profile=args.profile)
    except FlowError as exc:
        print(f"ERROR: {exc}", file=sys.stderr)
        return 2
    logging.basicConfig(
        level=getattr(logging, config.log_level, logging.INFO),
        format="%(asctime)s %(levelname)s %(name)s %(message)s",
    )

    try:
        data = load_data(args.data) if args.data else None
        scenarios = build_all(args.kind, data)
    except FlowError as exc:
        print(f"ERROR: {exc}", file=sys.stderr)
        return 2

    if args.list_only:
        for scenario in scenarios:
            print(scenario.scenario_id)
        return 0

    launcher = BrowserLauncher(config)
    try:
        result = launcher.ensure_running()
        logger.info(result.message)
        runner = ScenarioRunner(CdpSessionFactory(config), config)
        outcomes = runner.run_all(scenarios)
    except FlowError as exc:
        print(f"ERROR: {exc}", file=sys.stderr)
        return 2
    finally:
        launcher.stop()

    if args.json_output:
        print_json_results(outcomes)
    else:
        print_text_results(outcomes)
    return 0 if all(o.passed for o in outcomes) else 1


if __name__ == "__main__":
    sys.exit(main())
