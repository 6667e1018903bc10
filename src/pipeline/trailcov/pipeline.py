"""End-to-end trail covariate extraction.

Steps, in order:

1. load trail segments and the AOI, clip trails to the AOI
2. prepare covariate rasters: ecosystem types, median NDVI, elevation
3. rasterize trails and compute trail density
4. reduce the continuous stack (mean) and ecosystem types (mode) per trail
5. submit both tables for CSV export
"""

from dataclasses import dataclass, field

import geopandas as gpd
import structlog
import xarray as xr
from pyproj import CRS
from rasterio.enums import Resampling
from shapely.geometry.base import BaseGeometry

from trailcov.assets import AssetStore
from trailcov.config import Config, get_config
from trailcov.export.jobs import ExportJob, Exporter, make_destination
from trailcov.geo_utils import make_template, working_crs
from trailcov.raster.density import rasterize_trails, trail_density
from trailcov.raster.download import clip_box_wgs84, clip_to_geometry, load_band
from trailcov.raster.ecotypes import reclassify
from trailcov.raster.ndvi import NdviComposite, build_ndvi_composite
from trailcov.raster.terrain import load_dem, prepare_elevation
from trailcov.stac.search import SceneInfo, search_scenes, year_window
from trailcov.vector.trails import clip_to_aoi, load_aoi, load_trails
from trailcov.zonal.stats import reduce_regions, stack_layers

logger = structlog.get_logger()


@dataclass
class CovariateLayers:
    """Prepared covariate rasters."""

    template: xr.DataArray
    ndvi: NdviComposite
    elevation: xr.DataArray
    presence: xr.DataArray
    density: xr.DataArray
    ecotypes: xr.DataArray

    def continuous_stack(self, aoi: BaseGeometry) -> xr.DataArray:
        """NDVI, elevation and trail density stacked and clipped to the AOI."""
        stack = stack_layers({
            "ndvi": self.ndvi.data,
            "elevation": self.elevation,
            "trailDens": self.density,
        })
        return clip_to_geometry(stack, aoi)

    def previews(self) -> dict[str, xr.DataArray]:
        return {
            "ecoTypes": self.ecotypes,
            "ndvi": self.ndvi.data,
            "elevation": self.elevation,
            "trailDens": self.density,
        }


@dataclass
class PipelineResult:
    """Outputs of a pipeline run."""

    continuous: gpd.GeoDataFrame
    categorical: gpd.GeoDataFrame
    jobs: list[ExportJob] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)
    layers: CovariateLayers | None = None


def load_inputs(
    config: Config,
    store: AssetStore,
    trails_source: str | None = None,
    aoi_source: str | None = None,
) -> tuple[gpd.GeoDataFrame, BaseGeometry]:
    """Load trails and the AOI and clip the trails."""
    trails_path = store.resolve(trails_source or config.assets.trails, kind="vector")
    trails = load_trails(trails_path, id_field=config.assets.id_field)
    aoi = load_aoi(aoi_source or config.aoi.path, bbox=config.aoi.bbox)
    return clip_to_aoi(trails, aoi), aoi


def load_ecotypes(
    aoi: BaseGeometry,
    config: Config,
    store: AssetStore,
    crs: CRS,
) -> xr.DataArray:
    """Load the ecosystem-type raster over the AOI and reclassify it."""
    path = store.resolve(config.assets.ecotypes, kind="raster")
    raster = clip_box_wgs84(load_band(path), tuple(aoi.bounds))
    if raster.rio.crs is None or not CRS.from_user_input(raster.rio.crs).is_projected:
        raster = raster.rio.reproject(
            crs,
            resolution=config.processing.categorical_scale_m,
            resampling=Resampling.nearest,
        )
    return reclassify(raster, unmatched=config.processing.unmatched_ecotypes)


def prepare_layers(
    trails: gpd.GeoDataFrame,
    aoi: BaseGeometry,
    config: Config,
    store: AssetStore,
    scenes: list[SceneInfo] | None = None,
) -> CovariateLayers:
    """Build every covariate raster on a common working grid."""
    proc = config.processing

    dem = load_dem(
        aoi,
        dem_source=config.assets.dem_source,
        asset_id=config.assets.dem,
        store=store,
        collection=config.assets.dem_collection,
    )
    crs = working_crs(aoi, dem.crs)
    template = make_template(aoi, crs, proc.trail_resolution_m)
    logger.info("Working grid", crs=crs.to_string(), shape=template.shape, resolution=proc.trail_resolution_m)

    ecotypes = load_ecotypes(aoi, config, store, crs)

    if scenes is None:
        start, end = year_window(proc.year)
        scenes = search_scenes(
            bbox=tuple(aoi.bounds),
            start_date=start,
            end_date=end,
            max_cloud_cover=config.stac.max_cloud_cover,
            max_items=config.stac.max_items,
        )
    ndvi = build_ndvi_composite(scenes, template, tuple(aoi.bounds), config.stac.qa_asset)

    elevation = prepare_elevation(dem, template)

    presence = rasterize_trails(trails, template)
    density = trail_density(presence, proc.density_radius_m, proc.max_density_radius_m)

    return CovariateLayers(
        template=template,
        ndvi=ndvi,
        elevation=elevation,
        presence=presence,
        density=density,
        ecotypes=ecotypes,
    )


def extract_tables(
    layers: CovariateLayers,
    trails: gpd.GeoDataFrame,
    aoi: BaseGeometry,
    config: Config,
) -> tuple[gpd.GeoDataFrame, gpd.GeoDataFrame]:
    """Mean of the continuous stack and mode of ecosystem types per trail."""
    proc = config.processing
    continuous = reduce_regions(
        layers.continuous_stack(aoi),
        trails,
        reducer="mean",
        scale=proc.continuous_scale_m,
        tile_scale=proc.tile_scale,
    )
    categorical = reduce_regions(
        layers.ecotypes,
        trails,
        reducer="mode",
        scale=proc.categorical_scale_m,
    )
    return continuous, categorical


def submit_exports(
    continuous: gpd.GeoDataFrame,
    categorical: gpd.GeoDataFrame,
    exporter: Exporter,
    config: Config,
) -> list[ExportJob]:
    """Submit both result tables for CSV export."""

    def _failed(job: ExportJob, error: BaseException) -> None:
        logger.error("Export job failed", description=job.description, error=str(error))

    return [
        exporter.submit(continuous, config.export.continuous_description, on_failure=_failed),
        exporter.submit(categorical, config.export.categorical_description, on_failure=_failed),
    ]


def run_pipeline(
    config: Config | None = None,
    store: AssetStore | None = None,
    exporter: Exporter | None = None,
    trails_source: str | None = None,
    aoi_source: str | None = None,
    scenes: list[SceneInfo] | None = None,
    wait: bool = False,
) -> PipelineResult:
    """Run the full extraction and submit the exports.

    Args:
        config: Configuration, defaults to the global one.
        store: Asset store for trails, DEM and ecosystem rasters.
        exporter: Export submitter; built from config when omitted and
            shut down once both tables are submitted.
        trails_source: Override for the trail asset id or path.
        aoi_source: Override for the AOI file.
        scenes: Pre-fetched scenes; searched in the catalog when omitted.
        wait: Block until both exports finish, raising the first failure.

    Returns:
        PipelineResult with both tables and the export job handles.
    """
    config = config or get_config()
    store = store or AssetStore(config.assets.root)
    warnings: list[str] = []

    logger.info("Starting pipeline", year=config.processing.year)

    trails, aoi = load_inputs(config, store, trails_source, aoi_source)
    outside = int(trails.geometry.is_empty.sum())
    if outside:
        warnings.append(f"{outside} trail features lie outside the AOI; their statistics are null")

    layers = prepare_layers(trails, aoi, config, store, scenes)
    if layers.ndvi.is_empty:
        warnings.append(
            f"No valid NDVI observations for {config.processing.year} below "
            f"{config.stac.max_cloud_cover}% cloud cover; the ndvi column is empty"
        )

    continuous, categorical = extract_tables(layers, trails, aoi, config)

    owns_exporter = exporter is None
    if owns_exporter:
        exporter = Exporter(make_destination(config=config), max_workers=config.export.max_workers)

    try:
        jobs = submit_exports(continuous, categorical, exporter, config)

        if wait:
            for job in jobs:
                location = job.result()
                logger.info("Export delivered", description=job.description, location=location)
    finally:
        # Queued exports still complete; the pool just stops taking new work
        if owns_exporter:
            exporter.shutdown(wait=False)

    for message in warnings:
        logger.warning(message)

    logger.info("Pipeline finished", features=len(trails), exports=len(jobs), warnings=len(warnings))
    return PipelineResult(
        continuous=continuous,
        categorical=categorical,
        jobs=jobs,
        warnings=warnings,
        layers=layers,
    )
