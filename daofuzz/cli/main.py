"""
daofuzz CLI

Command-line entry point for differential fuzz runs against the in-process
DAO emulator.

Usage:
    daofuzz run [--config FILE] [--runs N] [--seed N] [--mode dao|staking] [--log-level LEVEL]
    daofuzz show-config [--config FILE]
"""

import json
import random
from typing import Optional

import click
from rich.console import Console
from rich.table import Table

from .. import __version__
from ..config import FuzzConfig, load_config
from ..exceptions import ConfigurationError
from ..harness import DifferentialHarness, FuzzReport
from ..logger import configure_logging


def _load(config_path: Optional[str]) -> FuzzConfig:
    try:
        config = load_config(config_path)
        config.validate()
    except ConfigurationError as e:
        raise click.ClickException(str(e))
    return config


def render_report(report: FuzzReport, console: Console) -> None:
    """Print the score table and the verdict."""
    table = Table(title=f"Fuzz results ({report.steps} steps, epoch {report.epochs})")
    table.add_column("Action")
    table.add_column("Success", justify="right", style="green")
    table.add_column("Fail", justify="right", style="yellow")
    for kind, success, fail in report.scoreboard.rows():
        table.add_row(kind, str(success), str(fail))
    table.add_row(
        "Winning campaigns",
        str(report.scoreboard.winning_campaigns),
        str(report.scoreboard.resolved_campaigns - report.scoreboard.winning_campaigns),
    )
    console.print(table)

    if report.passed:
        console.print("[bold green]PASS[/bold green] reference model and protocol agree")
    else:
        console.print(f"[bold red]FAIL[/bold red] {report.failure}")


@click.group()
@click.version_option(version=__version__, prog_name="daofuzz")
def cli():
    """daofuzz Command Line Interface

    Differential fuzzing of staking and campaign governance.
    """
    pass


@cli.command("run")
@click.option("--config", "-c", "config_path", type=click.Path(), help="Path to daofuzz.toml")
@click.option("--runs", "-n", type=int, help="Number of loop iterations")
@click.option("--seed", "-s", type=int, help="Seed of the action generator")
@click.option("--mode", type=click.Choice(["dao", "staking"]), help="Action mix")
@click.option(
    "--log-level",
    type=click.Choice(["DEBUG", "INFO", "WARNING", "ERROR"], case_sensitive=False),
    help="Override the configured log level",
)
@click.pass_context
def run_cmd(
    ctx: click.Context,
    config_path: Optional[str],
    runs: Optional[int],
    seed: Optional[int],
    mode: Optional[str],
    log_level: Optional[str],
):
    """Run a differential fuzz session.

    Examples:

        daofuzz run --runs 20000 --seed 7

        daofuzz run --mode staking --log-level DEBUG
    """
    config = _load(config_path)
    if runs is not None:
        config.run.num_runs = runs
    if seed is not None:
        config.run.seed = seed
    if mode is not None:
        config.run.mode = mode
    if log_level is not None:
        config.logging.level = log_level.upper()
    if config.run.seed is None:
        config.run.seed = random.SystemRandom().randrange(2 ** 32)
    try:
        config.validate()
    except ConfigurationError as e:
        raise click.ClickException(str(e))

    configure_logging(
        log_level=config.logging.level,
        log_file=config.logging.file or None,
        file_output=config.logging.file_output,
    )

    report = DifferentialHarness.from_config(config).run()
    render_report(report, Console())
    ctx.exit(report.exit_code)


@cli.command("show-config")
@click.option("--config", "-c", "config_path", type=click.Path(), help="Path to daofuzz.toml")
def show_config_cmd(config_path: Optional[str]):
    """Print the resolved configuration as JSON."""
    config = _load(config_path)
    click.echo(json.dumps(config.to_dict(), indent=2))


def main():
    cli()


if __name__ == "__main__":
    main()
