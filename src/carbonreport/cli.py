"""Command-line interface for carbonreport."""

import json
import logging
import sys
from pathlib import Path

import click
import yaml

from carbonreport.orchestration import ReporterOrchestrator
from carbonreport.utils.config_validator import ConfigurationError, validate_config_file

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"

EXAMPLE_CONFIG = {
    "collector": {
        "host": "localhost",
        "port": 2003,
        "timeout_s": 5.0,
    },
    "reporter": {
        "prefix": "app",
        "rate_unit": "seconds",
        "duration_unit": "milliseconds",
        "period_s": 60,
        "exclude_fields": ["p999"],
        "include_runtime_metrics": True,
    },
}


def _configure_logging(log_level: str) -> None:
    # Logs go to stderr so dry-run wire lines on stdout stay clean
    logging.basicConfig(
        level=getattr(logging, log_level),
        format=LOG_FORMAT,
        datefmt="%Y-%m-%d %H:%M:%S",
        stream=sys.stderr,
    )
    logging.getLogger().setLevel(getattr(logging, log_level))


log_level_option = click.option(
    "--log-level", "-l",
    type=click.Choice(["DEBUG", "INFO", "WARNING", "ERROR"]),
    default="INFO",
    help="Logging level",
)

dry_run_option = click.option(
    "--dry-run", is_flag=True,
    help="Print wire lines to stdout instead of sending them",
)


@click.group()
@click.version_option(version="0.1.0", prog_name="carbonreport")
def cli():
    """carbonreport: ship in-process metrics to a Graphite collector."""
    pass


@cli.command()
@click.argument("config_file", type=click.Path(exists=True))
@click.option("--duration", "-d", type=float, default=None, help="Stop after this many seconds")
@dry_run_option
@log_level_option
def run(config_file: str, duration: float, dry_run: bool, log_level: str):
    """Report process metrics on a fixed period until interrupted."""
    _configure_logging(log_level)

    try:
        orchestrator = ReporterOrchestrator.from_config_file(config_file)
        click.echo(f"Reporting every {orchestrator.settings.reporter.period_s}s, Ctrl-C to stop", err=True)
        orchestrator.run(duration_s=duration, dry_run_stream=sys.stdout if dry_run else None)
    except KeyboardInterrupt:
        click.echo("\nStopped.", err=True)
    except ConfigurationError as e:
        click.echo(f"Error: {e}", err=True)
        sys.exit(1)


@cli.command("report-once")
@click.argument("config_file", type=click.Path(exists=True))
@dry_run_option
@log_level_option
def report_once(config_file: str, dry_run: bool, log_level: str):
    """Run a single reporting cycle."""
    _configure_logging(log_level)

    try:
        orchestrator = ReporterOrchestrator.from_config_file(config_file)
        orchestrator.report_once(dry_run_stream=sys.stdout if dry_run else None)
    except ConfigurationError as e:
        click.echo(f"Error: {e}", err=True)
        sys.exit(1)


@cli.command("generate-config")
@click.option(
    "--output", "-o", default="carbonreport.yaml",
    help="Output file path"
)
@click.option(
    "--format", "-f", type=click.Choice(["yaml", "json"]), default="yaml",
    help="Configuration file format"
)
def generate_config(output: str, format: str):
    """Generate an example settings file."""
    output_path = Path(output)
    output_path.parent.mkdir(parents=True, exist_ok=True)

    with open(output_path, "w") as f:
        if format == "yaml":
            yaml.dump(EXAMPLE_CONFIG, f, default_flow_style=False, sort_keys=False)
        else:
            json.dump(EXAMPLE_CONFIG, f, indent=2)

    click.echo(f"Generated example configuration at {output_path}")


@cli.command()
@click.argument("config_file", type=click.Path(exists=True))
def validate(config_file: str):
    """Validate a settings file without reporting anything."""
    click.echo(f"Validating configuration: {config_file}")

    try:
        is_valid, errors, _ = validate_config_file(config_file)
    except (OSError, ValueError, yaml.YAMLError) as e:
        click.echo(click.style(f"Error reading configuration: {e}", fg="red"))
        sys.exit(1)

    if is_valid:
        click.echo(click.style("✓ Configuration is valid", fg="green"))
    else:
        click.echo(click.style(f"✗ Configuration has {len(errors)} errors:", fg="red"))
        for i, error in enumerate(errors[:20], 1):
            click.echo(f"  {i}. {error}")
        if len(errors) > 20:
            click.echo(f"  ... and {len(errors) - 20} more errors")

    sys.exit(0 if is_valid else 1)


if __name__ == "__main__":
    cli()
