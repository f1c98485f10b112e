"""
condbind CLI — Read-Only Demo Interface.

Commands:
    condbind scenarios               — List demo scenarios
    condbind compare-ages [AGE ...]  — if-like: compare two people by age
    condbind paged-read [--pages N]  — while-like: read a paged stream
    condbind safe-cast A B           — when-like: dispatch on two safe casts

Global flags:
    --trace     Show every outcome with its state trace
    --verbose   Enable debug logging of state transitions
"""

from __future__ import annotations

import argparse
import logging
import sys
from typing import Optional

from ..domain import BindingConfigurationError, explain_outcome
from .scenarios import (
    SAMPLE_AGES,
    SAMPLE_PAGE_COUNT,
    SCENARIOS,
    ScenarioResult,
)

LOG_FORMAT = "%(levelname)s %(name)s: %(message)s"


# =============================================================================
# OUTPUT FORMATTING
# =============================================================================

def format_call_site_badge(call_site: str) -> str:
    """Format a call site as a visual badge."""
    return f"[{call_site.upper()}-LIKE]"


def format_result(result: ScenarioResult, show_trace: bool = False) -> str:
    """Format scenario output, optionally followed by each outcome."""
    lines = [f"condbind — {result.name}", "=" * 50]
    lines.extend(result.lines)

    if show_trace:
        lines.append("")
        lines.append("OUTCOMES:")
        for index, outcome in enumerate(result.outcomes):
            lines.append(f"#{index}: {explain_outcome(outcome)}")

    return "\n".join(lines)


def _report(result: ScenarioResult, args: argparse.Namespace) -> int:
    print(format_result(result, show_trace=getattr(args, "trace", False)))
    return 0


# =============================================================================
# CLI COMMANDS
# =============================================================================

def cmd_scenarios(args: argparse.Namespace) -> int:
    """List demo scenarios."""
    print("condbind — Demo Scenarios")
    print("=" * 50)
    for scenario in SCENARIOS.values():
        badge = format_call_site_badge(scenario.call_site)
        print(f"{badge:<14} {scenario.name:<14} {scenario.description}")
    return 0


def cmd_compare_ages(args: argparse.Namespace) -> int:
    """Run the if-like age comparison."""
    if len(args.ages) > 2:
        print(f"ERROR: compare-ages takes at most two ages, got {len(args.ages)}")
        return 1
    return _report(SCENARIOS["compare-ages"].runner(args.ages), args)


def cmd_paged_read(args: argparse.Namespace) -> int:
    """Run the while-like paged read."""
    if args.pages < 0:
        print("ERROR: --pages must not be negative")
        return 1
    return _report(SCENARIOS["paged-read"].runner(args.pages), args)


def cmd_safe_cast(args: argparse.Namespace) -> int:
    """Run the when-like safe cast dispatch."""
    return _report(SCENARIOS["safe-cast"].runner(args.values), args)


# =============================================================================
# MAIN ENTRY POINT
# =============================================================================

def create_parser() -> argparse.ArgumentParser:
    """Create the CLI argument parser."""
    parser = argparse.ArgumentParser(
        prog="condbind",
        description="condbind — compound conditional binding demos",
    )
    parser.add_argument(
        "--trace",
        action="store_true",
        help="Show every evaluation outcome with its state trace",
    )
    parser.add_argument(
        "--verbose",
        action="store_true",
        help="Enable debug logging",
    )

    subparsers = parser.add_subparsers(
        title="commands",
        description="Available commands",
        dest="command",
    )

    # Scenarios command
    scenarios_parser = subparsers.add_parser(
        "scenarios",
        help="List demo scenarios",
    )
    scenarios_parser.set_defaults(func=cmd_scenarios)

    # Compare-ages command
    ages_parser = subparsers.add_parser(
        "compare-ages",
        help="if-like: compare two optional people by age",
    )
    ages_parser.add_argument(
        "ages",
        nargs="*",
        type=int,
        default=list(SAMPLE_AGES),
        help="Zero to two ages (missing people short-circuit)",
    )
    ages_parser.set_defaults(func=cmd_compare_ages)

    # Paged-read command
    paged_parser = subparsers.add_parser(
        "paged-read",
        help="while-like: read pages until the stream is exhausted",
    )
    paged_parser.add_argument(
        "--pages",
        type=int,
        default=SAMPLE_PAGE_COUNT,
        help="Number of pages the stream holds",
    )
    paged_parser.set_defaults(func=cmd_paged_read)

    # Safe-cast command
    cast_parser = subparsers.add_parser(
        "safe-cast",
        help="when-like: dispatch on two safe casts to int",
    )
    cast_parser.add_argument(
        "values",
        nargs=2,
        help="Two values to cast",
    )
    cast_parser.set_defaults(func=cmd_safe_cast)

    return parser


def configure_logging(verbose: bool) -> None:
    """Route library debug logs to stderr when --verbose is set."""
    if verbose:
        logging.basicConfig(level=logging.DEBUG, format=LOG_FORMAT, stream=sys.stderr)


def main(argv: Optional[list[str]] = None) -> int:
    """Main entry point for the CLI."""
    parser = create_parser()
    args = parser.parse_args(argv)
    configure_logging(args.verbose)

    if args.command is None:
        parser.print_help()
        return 0

    try:
        return args.func(args)
    except BindingConfigurationError as e:
        print("ERROR: binding plan rejected")
        print(f"Reason: {e}")
        return 1


if __name__ == "__main__":
    sys.exit(main())
