"""Command-line interface for the trail covariate pipeline."""

import json
import logging
import sys
from pathlib import Path

import click
import structlog

from trailcov.assets import AssetStore
from trailcov.config import get_config, reload_config
from trailcov.exceptions import TrailcovError
from trailcov.export.jobs import Exporter, make_destination
from trailcov.pipeline import load_inputs, prepare_layers, run_pipeline
from trailcov.raster.ecotypes import ECOSYSTEM_RULES, UNMATCHED_POLICIES
from trailcov.stac.search import search_scenes, year_window
from trailcov.vector.trails import load_aoi
from trailcov.viz import render_preview

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
    """Trail covariate extraction pipeline."""
    ctx.ensure_object(dict)
    ctx.obj["verbose"] = verbose

    if config_dir:
        reload_config(config_dir)

    if verbose:
        logging.getLogger().setLevel(logging.DEBUG)
        click.echo("Configuration loaded")


def _apply_overrides(year: int | None, aoi: Path | None, unmatched: str | None) -> None:
    config = get_config()
    if year is not None:
        config.processing.year = year
    if aoi is not None:
        config.aoi.path = str(aoi)
    if unmatched is not None:
        config.processing.unmatched_ecotypes = unmatched


@cli.command()
@click.option("--year", type=int, help="Calendar year for the NDVI composite")
@click.option("--aoi", type=click.Path(exists=True, path_type=Path), help="AOI polygon file (GeoJSON, GPKG)")
@click.option("--trails", help="Trail asset id or path")
@click.option("--output-dir", "-o", type=click.Path(path_type=Path), help="Local export directory")
@click.option("--destination", type=click.Choice(["local", "s3"]), help="Export destination")
@click.option("--unmatched", type=click.Choice(UNMATCHED_POLICIES), help="Policy for unknown ecosystem codes")
@click.option("--wait/--no-wait", default=True, help="Wait for the export jobs to finish")
def run(
    year: int | None,
    aoi: Path | None,
    trails: str | None,
    output_dir: Path | None,
    destination: str | None,
    unmatched: str | None,
    wait: bool,
) -> None:
    """Extract covariates for every trail segment and export CSV tables."""
    try:
        _apply_overrides(year, aoi, unmatched)
        config = get_config()

        exporter = Exporter(
            make_destination(destination, output_dir, config=config),
            max_workers=config.export.max_workers,
        )
        result = run_pipeline(config, exporter=exporter, trails_source=trails, wait=wait)

        click.echo(f"\nExtracted covariates for {len(result.continuous)} trail features")
        for job in result.jobs:
            click.echo(f"  {job.description}: {job.state.value} -> {job.location}")

        if result.warnings:
            click.echo("\nWarnings:")
            for message in result.warnings:
                click.echo(f"  - {message}")

        if not wait:
            click.echo("\nExports are running in the background; the process exits once they finish.")
        exporter.shutdown(wait=True)

    except TrailcovError as e:
        click.echo(f"Error: {e}", err=True)
        sys.exit(1)
    except Exception as e:
        logger.exception("Pipeline failed")
        click.echo(f"Error: {e}", err=True)
        sys.exit(1)


@cli.command()
@click.option("--year", type=int, help="Calendar year")
@click.option("--aoi", type=click.Path(exists=True, path_type=Path), help="AOI polygon file")
@click.option("--max-cloud", type=float, help="Maximum cloud cover percentage")
@click.option("--output", "-o", type=click.Path(path_type=Path), help="Output JSON file")
def search(year: int | None, aoi: Path | None, max_cloud: float | None, output: Path | None) -> None:
    """List Sentinel-2 scenes available for the AOI and year."""
    try:
        _apply_overrides(year, aoi, None)
        config = get_config()

        aoi_geom = load_aoi(config.aoi.path, bbox=config.aoi.bbox)
        start, end = year_window(config.processing.year)
        scenes = search_scenes(
            bbox=tuple(aoi_geom.bounds),
            start_date=start,
            end_date=end,
            max_cloud_cover=max_cloud if max_cloud is not None else config.stac.max_cloud_cover,
            max_items=config.stac.max_items,
        )

        days = {scene.datetime.date() for scene in scenes}
        click.echo(f"\nFound {len(scenes)} scenes on {len(days)} distinct days:")
        for scene in scenes:
            click.echo(f"  {scene.scene_id} | {scene.datetime.strftime('%Y-%m-%d')} | {scene.cloud_cover:.1f}% cloud")

        if output:
            output_data = [
                {
                    "scene_id": s.scene_id,
                    "datetime": s.datetime.isoformat(),
                    "cloud_cover": s.cloud_cover,
                    "bbox": list(s.bbox),
                }
                for s in scenes
            ]
            with open(output, "w") as f:
                json.dump(output_data, f, indent=2)
            click.echo(f"\nResults saved to: {output}")

    except Exception as e:
        click.echo(f"Error: {e}", err=True)
        sys.exit(1)


@cli.command()
@click.option("--year", type=int, help="Calendar year for the NDVI composite")
@click.option("--aoi", type=click.Path(exists=True, path_type=Path), help="AOI polygon file")
@click.option("--output-dir", "-o", type=click.Path(path_type=Path), default=Path("previews"), help="PNG directory")
def preview(year: int | None, aoi: Path | None, output_dir: Path) -> None:
    """Render PNG previews of the prepared covariate layers."""
    try:
        _apply_overrides(year, aoi, None)
        config = get_config()
        store = AssetStore(config.assets.root)

        trails, aoi_geom = load_inputs(config, store)
        layers = prepare_layers(trails, aoi_geom, config, store)

        for name, layer in layers.previews().items():
            path = render_preview(layer.rename(name), output_dir / f"{name}.png")
            click.echo(f"  {name}: {path}")

    except Exception as e:
        logger.exception("Preview failed")
        click.echo(f"Error: {e}", err=True)
        sys.exit(1)


@cli.command("reclass-table")
def reclass_table() -> None:
    """Print the ecosystem reclassification rules in evaluation order."""
    for rule in ECOSYSTEM_RULES:
        click.echo(f"  {rule.code:>2}  {rule.label:<13} {rule.describe()}")


if __name__ == "__main__":
    cli()
