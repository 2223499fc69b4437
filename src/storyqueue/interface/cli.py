"""
Command-line interface for storyqueue.

    storyqueue simulate --weeks 8 --seed 7 --strategy random
    storyqueue lint --content my_content.yaml

Lint exit codes:
    0 - Content is clean
    1 - Warnings only
    2 - Errors found (or content failed to load)
"""

from __future__ import annotations

import argparse
import json
import logging
import sys
from pathlib import Path

from rich.console import Console
from rich.panel import Panel
from rich.table import Table

from ..config import load_config
from ..content.catalog import CatalogError, CatalogIssue, ContentCatalog, Severity
from ..engine import StoryEngine
from ..simulation.player import STRATEGIES, AutoPlayer
from ..simulation.runner import PlaythroughRunner, PlaythroughTranscript
from ..state.event_bus import EventBus

logger = logging.getLogger(__name__)

# Shared console instance
console = Console()


# -----------------------------------------------------------------------------
# Helpers
# -----------------------------------------------------------------------------

def load_catalog(path: Path | None) -> ContentCatalog:
    """The given content file, or the bundled sample."""
    if path is None:
        return ContentCatalog.load_default()
    return ContentCatalog.from_yaml(path)


def render_transcript(transcript: PlaythroughTranscript) -> None:
    """Print a playthrough as a table of weeks plus a summary panel."""
    table = Table(title=f"Playthrough ({transcript.strategy})", show_lines=False)
    table.add_column("Week", justify="right", style="cyan")
    table.add_column("Decisions")
    table.add_column("Lapsed", style="yellow")
    table.add_column("Arcs", style="magenta")

    for record in transcript.weeks:
        decisions = "\n".join(
            f"{d.event_id} → {d.choice_id} [{'green' if d.success else 'red'}]"
            f"{'✓' if d.success else '✗'}[/]"
            for d in record.decisions
        ) or "[dim]quiet week[/dim]"
        lapsed = ", ".join(record.summary.lapsed_events) if record.summary else ""
        arcs = ", ".join(record.summary.arc_progressions) if record.summary else ""
        if record.note:
            decisions += f"\n[red]{record.note}[/red]"
        table.add_row(str(record.week), decisions, lapsed, arcs)

    console.print(table)

    stats = "\n".join(f"{name}: {value:g}" for name, value in transcript.final_stats.items())
    arcs = "\n".join(f"{arc_id}: {status}" for arc_id, status in transcript.arcs.items())
    console.print(Panel(
        f"{stats}\n\n[bold]Arcs[/bold]\n{arcs or 'none'}",
        title="Final state",
        expand=False,
    ))


def format_issues(issues: list[CatalogIssue]) -> Table:
    table = Table(title="Content issues")
    table.add_column("Severity")
    table.add_column("Category", style="cyan")
    table.add_column("Subject")
    table.add_column("Message")
    for issue in issues:
        style = "red" if issue.severity == Severity.ERROR else "yellow"
        table.add_row(f"[{style}]{issue.severity.value}[/{style}]", issue.category, issue.subject, issue.message)
    return table


# -----------------------------------------------------------------------------
# Commands
# -----------------------------------------------------------------------------

def cmd_simulate(args: argparse.Namespace) -> int:
    try:
        catalog = load_catalog(args.content)
    except CatalogError as e:
        console.print(f"[red]Cannot load content:[/red] {e}")
        return 2

    config = load_config(args.config) if args.config else None
    engine = StoryEngine(catalog, config=config, seed=args.seed, bus=EventBus())
    player = AutoPlayer(strategy=args.strategy, seed=args.seed)
    runner = PlaythroughRunner(engine, player, optional_per_week=args.optional, seed=args.seed)

    transcript = runner.run(args.weeks)

    if args.markdown:
        console.print(transcript.to_markdown(), markup=False, highlight=False)
    else:
        render_transcript(transcript)

    if args.output:
        path = transcript.save(args.output)
        console.print(f"[dim]Transcript saved to {path}[/dim]")
    return 0


def cmd_lint(args: argparse.Namespace) -> int:
    try:
        catalog = load_catalog(args.content)
    except CatalogError as e:
        if args.json:
            print(json.dumps({"status": "fail", "error": str(e)}, indent=2))
        else:
            console.print(f"[red]Cannot load content:[/red] {e}")
        return 2

    issues = catalog.validate()
    errors = [i for i in issues if i.severity == Severity.ERROR]
    warnings = [i for i in issues if i.severity == Severity.WARNING]

    if args.json:
        print(json.dumps({
            "status": "fail" if errors else "pass",
            "stats": {"events": len(catalog), "arcs": len(catalog.arcs)},
            "summary": {"errors": len(errors), "warnings": len(warnings)},
            "issues": [i.to_dict() for i in issues],
        }, indent=2))
    elif issues:
        console.print(format_issues(issues))
    else:
        console.print(f"[green]✓[/green] {len(catalog)} events and {len(catalog.arcs)} arcs, no issues")

    # Exit code based on results
    if errors:
        return 2
    if warnings:
        return 1
    return 0


# -----------------------------------------------------------------------------
# Entry Point
# -----------------------------------------------------------------------------

def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="storyqueue",
        description="Weekly event-queue and story-arc engine",
    )
    parser.add_argument(
        "--verbose", "-v",
        action="store_true",
        help="Show engine logging",
    )
    subparsers = parser.add_subparsers(dest="command", required=True)

    simulate = subparsers.add_parser("simulate", help="Run a headless playthrough")
    simulate.add_argument("--weeks", type=int, default=8, help="Weeks to play (default: 8)")
    simulate.add_argument("--seed", type=int, default=None, help="Random seed for a replayable run")
    simulate.add_argument("--content", type=Path, default=None, help="Content YAML (default: bundled sample)")
    simulate.add_argument(
        "--strategy",
        choices=sorted(STRATEGIES),
        default="first",
        help="How the auto-player picks choices",
    )
    simulate.add_argument("--optional", type=int, default=2, help="Optional events resolved per week")
    simulate.add_argument("--config", type=Path, default=None, help="Engine config JSON")
    simulate.add_argument("--markdown", action="store_true", help="Print the markdown transcript")
    simulate.add_argument("--output", type=Path, default=None, help="Directory to save the transcript in")
    simulate.set_defaults(func=cmd_simulate)

    lint = subparsers.add_parser("lint", help="Check content for dangling references")
    lint.add_argument("--content", type=Path, default=None, help="Content YAML (default: bundled sample)")
    lint.add_argument("--json", action="store_true", help="Output results as JSON")
    lint.set_defaults(func=cmd_lint)

    return parser


def main(argv: list[str] | None = None) -> int:
    """Main entry point."""
    args = build_parser().parse_args(argv)

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
    )
    return args.func(args)


if __name__ == "__main__":
    sys.exit(main())
