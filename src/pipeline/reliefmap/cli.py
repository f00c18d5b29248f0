"""Command-line interface for the relief map pipeline."""

import logging
import sys
from pathlib import Path

import click
import structlog

from reliefmap.config import get_config, reload_config
from reliefmap.pipeline import run_pipeline

# Configure structlog for CLI output
logging.basicConfig(format="%(message)s", level=logging.INFO)

structlog.configure(
    processors=[
        structlog.stdlib.filter_by_level,
        structlog.stdlib.add_log_level,
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.dev.ConsoleRenderer(colors=True),
    ],
    wrapper_class=structlog.stdlib.BoundLogger,
    context_class=dict,
    logger_factory=structlog.stdlib.LoggerFactory(),
)

logger = structlog.get_logger()


@click.group()
@click.option("--config-dir", type=click.Path(exists=True, path_type=Path), help="Configuration directory")
@click.option("--verbose", "-v", is_flag=True, help="Enable verbose output")
@click.pass_context
def cli(ctx: click.Context, config_dir: Path | None, verbose: bool) -> None:
    """Population density over shaded relief."""
    ctx.ensure_object(dict)
    ctx.obj["verbose"] = verbose

    if config_dir:
        reload_config(config_dir)

    if verbose:
        logging.getLogger().setLevel(logging.DEBUG)
        click.echo("Configuration loaded")


@cli.command()
@click.option("--output", "-o", type=click.Path(dir_okay=False, path_type=Path), help="Output PNG file")
@click.option("--show/--no-show", default=True, help="Display the map when a display is available")
def render(output: Path | None, show: bool) -> None:
    """Download the data and render the map."""
    try:
        path = run_pipeline(get_config(), output_path=output, show=show)
        click.echo(f"Map written to: {path}")
    except Exception as e:
        logger.exception("Rendering failed")
        click.echo(f"Error: {e}", err=True)
        sys.exit(1)


@cli.command()
def info() -> None:
    """Show the effective configuration."""
    config = get_config()

    click.echo(f"Country: {config.boundary.iso3} (admin level {config.boundary.admin_level})")
    click.echo(f"Population: WorldPop {config.population.year}, threshold > {config.population.min_density:g}")
    click.echo(f"Elevation: terrain tiles, zoom {config.elevation.zoom}")
    click.echo(
        f"Terrain: exaggeration {config.terrain.exaggeration:g}, "
        f"light azimuth {config.terrain.azimuth_deg:g}°, altitude {config.terrain.altitude_deg:g}°"
    )
    click.echo(f"Working CRS: {config.working_crs or 'auto (UTM)'}")
    click.echo(
        f"Output: {config.render.output_path} "
        f"({config.render.width_in:g}x{config.render.height_in:g} in @ {config.render.dpi} dpi)"
    )


if __name__ == "__main__":
    cli()
