#!/usr/bin/env python3
"""
Main CLI entry point for swimsim.

Runs a convergence experiment and writes the delimited statistics report:
- `swimsim run`: run one ensemble to convergence and emit its report
- `swimsim show-config`: print the resolved settings
"""

import sys
from pathlib import Path

import click
from loguru import logger
from rich.console import Console
from rich.table import Table

from ..config import SwimSimSettings, load_settings
from ..core.exceptions import ConfigurationError
from ..core.logging import configure_logging
from ..core.statistics import render_report
from ..simulation import Simulation, SimulationResult

console = Console(stderr=True)

EXIT_CONVERGED = 0
EXIT_NOT_CONVERGED = 1
EXIT_CONFIG_ERROR = 2


def setup_logging(verbose: bool, settings: SwimSimSettings) -> None:
    """Setup logging configuration."""
    configure_logging(
        "DEBUG" if verbose else settings.log_level,
        debug_scopes=settings.debug_scopes,
        colorize=sys.stderr.isatty(),
    )


def display_series(result: SimulationResult) -> None:
    table = Table(title="Convergence by round")
    table.add_column("Round", justify="right", style="cyan")
    table.add_column("Step", justify="right")
    table.add_column("Gossip", justify="right")
    table.add_column("Effective", justify="right", style="green")
    table.add_column("Suspect", justify="right", style="yellow")
    table.add_column("Dead", justify="right", style="red")
    table.add_column("Suspect pairs", justify="right")
    table.add_column("Dead pairs", justify="right")

    for stats in result.series:
        table.add_row(
            str(stats.round),
            str(stats.step),
            str(stats.updates),
            str(stats.effective_updates),
            str(stats.suspect_members),
            str(stats.dead_members),
            str(stats.suspect_pairs),
            str(stats.dead_pairs),
        )
    console.print(table)

    if result.converged:
        console.print(
            f"[green]Converged[/green] at round {result.rounds} "
            f"after {result.steps} steps (dead members: {list(result.dead_members)})"
        )
    else:
        console.print(
            f"[red]Did not converge[/red]: stopped at round {result.rounds} "
            f"after {result.steps} steps"
        )


@click.group()
def cli() -> None:
    """
    swimsim - SWIM gossip failure detection experiments.

    Settings come from SWIMSIM_* environment variables or a .env file;
    command line options override them.
    """


@cli.command()
@click.option("--members", "-n", type=int, help="Total member count")
@click.option("--dead", "-k", type=int, help="Members that start dead")
@click.option("--suspicion-timeout", "-t", type=int, help="Failed probes before expiry")
@click.option("--dissemination-limit", "-l", type=int, help="Max sends per gossip item")
@click.option("--max-piggyback", "-p", type=int, help="Max gossip items per message")
@click.option("--seed", "-s", type=int, help="RNG seed")
@click.option("--max-steps", type=int, help="Give up after this many steps")
@click.option(
    "--output",
    "-o",
    type=click.Path(dir_okay=False, path_type=Path),
    help="Write the delimited report to this file instead of stdout",
)
@click.option("--quiet", "-q", is_flag=True, help="Skip the summary table")
@click.option("--verbose", "-v", is_flag=True, help="Enable debug logging")
@click.option(
    "--debug-scope",
    "debug_scopes",
    multiple=True,
    help="Show DEBUG records from this module, e.g. core.protocol (repeatable)",
)
def run(
    members: int | None,
    dead: int | None,
    suspicion_timeout: int | None,
    dissemination_limit: int | None,
    max_piggyback: int | None,
    seed: int | None,
    max_steps: int | None,
    output: Path | None,
    quiet: bool,
    verbose: bool,
    debug_scopes: tuple[str, ...],
) -> None:
    """Run one ensemble until it converges and emit its statistics."""
    try:
        settings = load_settings(
            member_count=members,
            dead_member_count=dead,
            suspicion_timeout=suspicion_timeout,
            dissemination_limit=dissemination_limit,
            max_piggyback_items=max_piggyback,
            seed=seed,
            max_steps=max_steps,
            debug_scopes=list(debug_scopes) or None,
        )
        config = settings.to_config()
    except ConfigurationError as e:
        console.print(f"[red]Invalid configuration: {e}[/red]")
        sys.exit(EXIT_CONFIG_ERROR)

    setup_logging(verbose, settings)
    result = Simulation(config).run()

    report = "\n".join(render_report(config, result)) + "\n"
    if output is not None:
        output.write_text(report)
        logger.info("Report written to {}", output)
    else:
        click.echo(report, nl=False)

    if not quiet:
        display_series(result)

    sys.exit(EXIT_CONVERGED if result.converged else EXIT_NOT_CONVERGED)


@cli.command("show-config")
def show_config() -> None:
    """Print the settings resolved from the environment."""
    try:
        settings = load_settings()
        settings.to_config()
    except ConfigurationError as e:
        console.print(f"[red]Invalid configuration: {e}[/red]")
        sys.exit(EXIT_CONFIG_ERROR)

    table = Table(title="swimsim settings")
    table.add_column("Setting", style="cyan", no_wrap=True)
    table.add_column("Value", style="magenta")
    table.add_column("Description")
    for name, info in SwimSimSettings.model_fields.items():
        table.add_row(name, str(getattr(settings, name)), info.description or "")
    console.print(table)


def main() -> None:
    """Main CLI entry point."""
    try:
        cli()
    except KeyboardInterrupt:
        console.print("\n[yellow]Run cancelled by user[/yellow]")
        sys.exit(1)


if __name__ == "__main__":
    main()
