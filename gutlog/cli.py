"""CLI commands for gutlog.

Provides subcommands for trying the understanding pipeline from a shell.

Commands:
    gutlog parse TEXT     - Parse one message and show intent, slots and notes
    gutlog notes STRING   - Canonicalize a notes string
    gutlog bench FILE     - Parse one message per line and report acceptance
"""

from __future__ import annotations

import argparse
import asyncio
import json
import sys
from pathlib import Path

from rich.console import Console
from rich.table import Table

from .config import NLUConfig
from .core.nlu import (
    ParseResult,
    Understander,
    create_understander,
    validate_notes,
)

console = Console()

DECISION_STYLES = {
    "strict": "green",
    "lenient": "cyan",
    "rescued": "yellow",
    "needs_clarification": "magenta",
    "rejected": "red",
}


def _build_understander(args: argparse.Namespace) -> Understander:
    config = NLUConfig.load(Path(args.project_path).resolve())
    if getattr(args, "tz", None):
        config.timezone = args.tz
    return create_understander(config, use_model=not args.no_model)


async def _understand_all(understander: Understander, texts: list[str]) -> list[ParseResult]:
    try:
        return [await understander.understand(text) for text in texts]
    finally:
        await understander.close()


def _print_result(result: ParseResult) -> None:
    style = DECISION_STYLES.get(result.decision or "", "white")
    console.print(
        f"[bold]{result.intent.value}[/bold] "
        f"confidence={result.confidence:.2f} "
        f"[{style}]{result.decision}[/{style}] "
        f"[dim]({result.source})[/dim]"
    )

    if result.slots:
        table = Table(show_header=False, box=None, padding=(0, 2))
        table.add_column("Slot", style="cyan")
        table.add_column("Value")
        for name, value in sorted(result.slots.items()):
            table.add_row(name, str(value))
        console.print(table)

    if result.missing:
        console.print(f"[yellow]Missing:[/yellow] {', '.join(result.missing)}")
    console.print(f"[dim]notes:[/dim] {result.notes}")


def parse_text(args: argparse.Namespace) -> int:
    """Parse a single message.

    Args:
        args: Parsed arguments (text, no_model, json)

    Returns:
        Exit code (0 for success)
    """
    text = " ".join(args.text)
    understander = _build_understander(args)

    [result] = asyncio.run(_understand_all(understander, [text]))

    if args.json:
        console.print_json(json.dumps(result.to_dict()))
    else:
        _print_result(result)
    return 0


def canonicalize(args: argparse.Namespace) -> int:
    """Canonicalize a notes string.

    Args:
        args: Parsed arguments (notes)

    Returns:
        Exit code (0 if every token was valid, 1 if any were dropped)
    """
    validation = validate_notes(args.notes)
    console.print(validation.notes, markup=False)

    for key, value in validation.invalid:
        console.print(f"[red]✗[/red] dropped {key}={value}")
    if validation.unknown_keys:
        console.print(f"[yellow]Unknown keys:[/yellow] {', '.join(validation.unknown_keys)}")

    return 1 if validation.invalid else 0


def run_bench(args: argparse.Namespace) -> int:
    """Parse every line of a file and print acceptance metrics.

    Blank lines and lines starting with "#" are skipped.

    Args:
        args: Parsed arguments (file, no_model)

    Returns:
        Exit code (0 for success, 1 if the file cannot be read)
    """
    path = Path(args.file)
    if not path.is_file():
        console.print(f"[red]Error:[/red] File not found: {path}")
        return 1

    texts = [
        line.strip()
        for line in path.read_text(encoding="utf-8").splitlines()
        if line.strip() and not line.lstrip().startswith("#")
    ]
    if not texts:
        console.print("[dim]No messages to parse.[/dim]")
        return 0

    understander = _build_understander(args)
    results = asyncio.run(_understand_all(understander, texts))

    if args.verbose:
        for text, result in zip(texts, results):
            style = DECISION_STYLES.get(result.decision or "", "white")
            console.print(f"[{style}]{result.decision:>20}[/{style}]  {result.intent.value:<8} {text}")
        console.print()

    report = understander.metrics.report() if understander.metrics else {}
    _print_report(report)
    return 0


def _print_report(report: dict) -> None:
    total = report.get("total", 0)
    table = Table(title=f"Acceptance ({total} messages)")
    table.add_column("Tier", style="cyan")
    table.add_column("Count", justify="right")
    table.add_column("Rate", justify="right")

    for tier, stats in report.get("acceptance", {}).items():
        table.add_row(tier, str(stats["count"]), f"{stats['rate']:.1%}")
    table.add_row("needs_clarification", str(report.get("clarified", 0)), "")
    table.add_row("rejected", str(report.get("rejected", 0)), "")
    console.print(table)

    fallback = report.get("fallback", {})
    rate = fallback.get("rate", 0.0)
    target = fallback.get("target", 0.0)
    rate_style = "green" if rate <= target else "yellow"
    console.print(
        f"Fallback: {fallback.get('calls', 0)} calls "
        f"([{rate_style}]{rate:.1%}[/{rate_style}], target ≤{target:.0%}), "
        f"{fallback.get('cache_hits', 0)} cache hits, "
        f"{fallback.get('failures', 0)} failures"
    )

    intents = Table(title="By intent")
    intents.add_column("Intent", style="cyan")
    intents.add_column("Count", justify="right")
    intents.add_column("Mean confidence", justify="right")
    for row in report.get("by_intent", []):
        intents.add_row(row["intent"], str(row["count"]), f"{row['mean_confidence']:.2f}")
    console.print(intents)

    notes = report.get("notes", {})
    if notes.get("invalid"):
        console.print(f"[yellow]Invalid notes tokens:[/yellow] {notes['invalid']}")


def create_parser() -> argparse.ArgumentParser:
    """Create the CLI argument parser.

    Returns:
        Configured ArgumentParser
    """
    parser = argparse.ArgumentParser(
        prog="gutlog",
        description="gutlog: health-tracking message understanding",
    )
    parser.add_argument(
        "--project",
        "-p",
        dest="project_path",
        default=".",
        help="Directory containing .gutlog/config.yaml (default: current directory)",
    )

    subparsers = parser.add_subparsers(dest="command", help="Commands")

    def add_pipeline_args(p: argparse.ArgumentParser) -> None:
        p.add_argument(
            "--no-model",
            action="store_true",
            help="Rules only; never call the external model",
        )
        p.add_argument(
            "--tz",
            help="IANA timezone for meal-window inference",
        )

    # =========================================================================
    # parse command
    # =========================================================================
    parse_parser = subparsers.add_parser("parse", help="Parse one message")
    parse_parser.add_argument("text", nargs="+", help="Message text")
    parse_parser.add_argument("--json", action="store_true", help="Print the result as JSON")
    add_pipeline_args(parse_parser)
    parse_parser.set_defaults(func=parse_text)

    # =========================================================================
    # notes command
    # =========================================================================
    notes_parser = subparsers.add_parser("notes", help="Canonicalize a notes string")
    notes_parser.add_argument("notes", help='Notes string, e.g. "severity=3; meal=lunch"')
    notes_parser.set_defaults(func=canonicalize)

    # =========================================================================
    # bench command
    # =========================================================================
    bench_parser = subparsers.add_parser("bench", help="Parse a file of messages")
    bench_parser.add_argument("file", help="Text file with one message per line")
    bench_parser.add_argument(
        "--verbose",
        "-v",
        action="store_true",
        help="Show the decision for every message",
    )
    add_pipeline_args(bench_parser)
    bench_parser.set_defaults(func=run_bench)

    return parser


def run_cli(args: list[str] | None = None) -> int:
    """Run the CLI.

    Args:
        args: Command-line arguments (defaults to sys.argv[1:])

    Returns:
        Exit code
    """
    parser = create_parser()
    parsed = parser.parse_args(args)

    if not hasattr(parsed, "func"):
        parser.print_help()
        return 0

    try:
        return parsed.func(parsed)
    except KeyboardInterrupt:
        console.print("\n[dim]Cancelled.[/dim]")
        return 130
    except Exception as e:
        console.print(f"[red]Error:[/red] {e}")
        return 1


def main() -> None:
    """Entry point for the gutlog console script."""
    from .logs import setup_logging

    setup_logging()
    sys.exit(run_cli())


__all__ = [
    "canonicalize",
    "create_parser",
    "main",
    "parse_text",
    "run_bench",
    "run_cli",
]


if __name__ == "__main__":
    main()
