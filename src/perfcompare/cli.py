"""Command-line interface for perfcompare.

Subcommands:
    perfcompare run       Build, serve and compare control against experiment
    perfcompare config    Print the fully defaulted configuration as YAML
"""

from __future__ import annotations

import functools
from collections.abc import Callable
from pathlib import Path
from typing import Any

import click

from perfcompare import __version__
from perfcompare.commands import resolve_revision, run_command
from perfcompare.config import (
    OPTION_NAMES,
    PRESETS,
    Preset,
    get_preset,
    load_config_file,
    normalize,
    validate_config,
)
from perfcompare.errors import CommandError, ConfigError, ServerUnreachable
from perfcompare.logging import setup_logging

_OPTIONS: list[Callable[[Callable[..., Any]], Callable[..., Any]]] = [
    click.option(
        "--config",
        "config_file",
        type=click.Path(exists=True, dir_okay=False, path_type=Path),
        default=None,
        help="YAML file of option values (command-line options take precedence).",
    ),
    click.option(
        "--preset",
        "preset_name",
        type=click.Choice(sorted(PRESETS)),
        default="ci",
        show_default=True,
        help="Default set for ports, fidelity, headless mode and server wait budget.",
    ),
    click.option(
        "--use-yarn/--use-npm",
        "use_yarn",
        default=None,
        help="Package manager for installs (default: yarn).",
    ),
    click.option(
        "--control-sha", type=str, default=None, help="Control revision (default: origin/master)."
    ),
    click.option(
        "--experiment-sha", type=str, default=None, help="Experiment revision (default: HEAD)."
    ),
    click.option(
        "--build-control/--no-build-control",
        default=None,
        help="Build the control variant, or reuse its dist directory.",
    ),
    click.option(
        "--build-experiment/--no-build-experiment",
        default=None,
        help="Build the experiment variant, or reuse its dist directory.",
    ),
    click.option("--control-dist", type=str, default=None, help="Control output directory."),
    click.option("--experiment-dist", type=str, default=None, help="Experiment output directory."),
    click.option("--control-build-command", type=str, default=None),
    click.option("--experiment-build-command", type=str, default=None),
    click.option("--control-serve-command", type=str, default=None),
    click.option("--experiment-serve-command", type=str, default=None),
    click.option("--control-url", type=str, default=None),
    click.option("--experiment-url", type=str, default=None),
    click.option(
        "--fidelity", type=str, default=None, help="test, low, medium, high or a sample count."
    ),
    click.option("--markers", type=str, default=None),
    click.option("--runtime-stats/--no-runtime-stats", default=None),
    click.option("--report/--no-report", default=None),
    click.option("--headless/--no-headless", default=None),
    click.option(
        "--regression-threshold",
        type=int,
        default=None,
        help="Percentage delta flagged as a regression.",
    ),
    click.option("-v", "--verbose", is_flag=True, help="Show detailed output."),
    click.option("-q", "--quiet", is_flag=True, help="Only show errors."),
    click.option(
        "--log-file",
        type=click.Path(dir_okay=False, path_type=Path),
        default=None,
        help="Also write a DEBUG log to this file.",
    ),
]


def comparison_options(func: Callable[..., Any]) -> Callable[..., Any]:
    """Attach every configuration option to a command."""
    for option in reversed(_OPTIONS):
        func = option(func)
    return func


def _collect_config(config_file: Path | None, cli_values: dict[str, Any]) -> dict[str, Any]:
    """Merge file values with command-line values; the command line wins."""
    merged: dict[str, Any] = load_config_file(config_file) if config_file else {}
    for name, value in cli_values.items():
        key = name.replace("_", "-")
        if key in OPTION_NAMES and value is not None:
            merged[key] = value
    return merged


def _prepare(
    config_file: Path | None,
    preset_name: str,
    cli_values: dict[str, Any],
    *,
    resolver: Callable[[str], str] | None = None,
) -> tuple[dict[str, Any], Preset]:
    """Load, normalize and validate; exit with status 1 on errors."""
    try:
        preset = get_preset(preset_name)
        config = normalize(
            _collect_config(config_file, cli_values),
            preset=preset,
            resolve_revision=resolver,
        )
    except (ConfigError, FileNotFoundError, CommandError) as exc:
        click.echo(f"Error: {exc}", err=True)
        raise SystemExit(1) from exc

    problems = validate_config(config)
    for problem in problems:
        click.echo(f"{problem.severity.capitalize()}: {problem.message}", err=True)
    if any(p.severity == "error" for p in problems):
        raise SystemExit(1)
    return config, preset


@click.group()
@click.version_option(version=__version__)
def main() -> None:
    """perfcompare: A/B runtime performance comparison of two app builds."""


@main.command()
@comparison_options
def run(
    config_file: Path | None,
    preset_name: str,
    verbose: bool,
    quiet: bool,
    log_file: Path | None,
    **cli_values: Any,
) -> None:
    """Build control and experiment, serve both and run tracerbench compare.

    Unset options fall back to the preset's defaults.

    \b
    Examples:
        # Compare the working tree against origin/master
        perfcompare run

        # Reuse an existing control build and compare at high fidelity
        perfcompare run --no-build-control --fidelity high
    """
    from perfcompare.orchestrator import Orchestrator

    setup_logging(verbose=verbose, quiet=quiet, log_file=log_file)
    config, preset = _prepare(config_file, preset_name, cli_values)

    orchestrator = Orchestrator(config, preset=preset)
    try:
        orchestrator.run()
    except (CommandError, ServerUnreachable, OSError) as exc:
        stage = orchestrator.failed_stage or orchestrator.stage
        click.echo(f"Error during {stage.value}: {exc}", err=True)
        raise SystemExit(1) from exc
    except KeyboardInterrupt:
        click.echo("\nComparison interrupted.", err=True)
        raise SystemExit(130)  # noqa: B904

    click.echo("Comparison complete.")


@main.command("config")
@comparison_options
def show_config(
    config_file: Path | None,
    preset_name: str,
    verbose: bool,
    quiet: bool,
    log_file: Path | None,
    **cli_values: Any,
) -> None:
    """Print the fully defaulted configuration as YAML without running anything."""
    import yaml

    setup_logging(verbose=verbose, quiet=quiet, log_file=log_file)
    quiet_git = functools.partial(run_command, echo=False)
    config, _preset = _prepare(
        config_file,
        preset_name,
        cli_values,
        resolver=functools.partial(resolve_revision, run=quiet_git),
    )
    click.echo(yaml.safe_dump(config, sort_keys=False, default_flow_style=False), nl=False)
