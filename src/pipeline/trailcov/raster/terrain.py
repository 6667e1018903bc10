"""Terrain elevation from a DEM asset or a STAC DEM collection."""

from dataclasses import dataclass
from typing import Any

import numpy as np
import structlog
import xarray as xr
from rasterio.enums import Resampling
from rioxarray.merge import merge_arrays
from shapely.geometry.base import BaseGeometry

from trailcov.assets import AssetStore
from trailcov.config import get_config
from trailcov.geo_utils import resolution_of
from trailcov.raster.download import align_to, clip_box_wgs84, load_band, load_band_from_url

logger = structlog.get_logger()

ELEVATION_BAND = "elevation"


@dataclass
class DEMData:
    """Container for DEM data."""

    elevation: xr.DataArray
    crs: Any = None
    transform: Any = None
    resolution_m: float = 10.0


def load_dem(
    aoi: BaseGeometry,
    dem_source: str | None = None,
    asset_id: str | None = None,
    store: AssetStore | None = None,
    collection: str | None = None,
) -> DEMData:
    """Load DEM data covering the AOI.

    Args:
        aoi: AOI polygon in WGS84.
        dem_source: ``"local"`` for a raster asset or ``"stac"`` for a
            STAC DEM collection. Defaults to the configured source.
        asset_id: DEM asset identifier for the local source.
        store: Asset store used to resolve the identifier.
        collection: STAC collection for the stac source.

    Returns:
        DEMData clipped to the AOI bounding box.
    """
    config = get_config()
    dem_source = dem_source or config.assets.dem_source
    bbox = tuple(aoi.bounds)

    logger.info("Loading DEM", bbox=bbox, source=dem_source)

    if dem_source == "local":
        store = store or AssetStore()
        path = store.resolve(asset_id or config.assets.dem, kind="raster")
        da = clip_box_wgs84(load_band(path), bbox)
    elif dem_source == "stac":
        da = _load_stac_dem(bbox, collection or config.assets.dem_collection)
    else:
        raise ValueError(f"Unknown DEM source: {dem_source}")

    if da.ndim == 3 and da.shape[0] == 1:
        da = da.squeeze("band", drop=True)

    resolution_m = resolution_of(da)
    logger.info(
        "DEM loaded",
        shape=da.shape,
        crs=str(da.rio.crs),
        resolution=resolution_m,
    )

    return DEMData(
        elevation=da,
        crs=da.rio.crs,
        transform=da.rio.transform(),
        resolution_m=resolution_m,
    )


def _load_stac_dem(bbox: tuple[float, float, float, float], collection: str) -> xr.DataArray:
    """Load and merge DEM tiles from a STAC collection."""
    from trailcov.stac.client import StacClient

    items = StacClient().search_collection(collection, bbox)
    if not items:
        raise ValueError(f"No {collection} DEM tiles found for bbox {bbox}")

    tiles = []
    for item in items:
        asset = item.assets.get("data") or item.assets.get("elevation")
        if asset is None:
            logger.warning("DEM item has no elevation asset", item_id=item.id)
            continue
        tiles.append(load_band_from_url(asset.href, bbox))

    if not tiles:
        raise ValueError(f"No readable DEM tiles in {collection}")

    return tiles[0] if len(tiles) == 1 else merge_arrays(tiles)


def prepare_elevation(dem: DEMData, template: xr.DataArray) -> xr.DataArray:
    """Put the DEM on the template grid and fill no-data with zero.

    Args:
        dem: Loaded DEM.
        template: Reference grid.

    Returns:
        Float32 ``elevation`` layer with no NaN pixels.
    """
    elevation = align_to(dem.elevation, template, Resampling.bilinear)
    missing = int(elevation.isnull().sum())
    if missing:
        logger.info("Filling DEM no-data with 0", pixels=missing)
    elevation = elevation.fillna(0).astype(np.float32)
    return elevation.rename(ELEVATION_BAND)
