"""Raster loading, clipping and grid alignment utilities."""

from pathlib import Path

import numpy as np
import rioxarray as rxr
import structlog
import xarray as xr
from pyproj import Transformer
from rasterio.enums import Resampling
from rioxarray.exceptions import NoDataInBounds
from shapely.geometry import mapping
from shapely.geometry.base import BaseGeometry

from trailcov.geo_utils import reproject_geometry

logger = structlog.get_logger()


def load_band(path: Path | str, masked: bool = True) -> xr.DataArray:
    """Load a raster band as an xarray DataArray.

    Args:
        path: Path or URL of the raster file.
        masked: Convert the file's nodata value to NaN.

    Returns:
        DataArray with the raster data.
    """
    da = rxr.open_rasterio(path, masked=masked)
    # Squeeze single-band rasters
    if da.shape[0] == 1:
        da = da.squeeze("band", drop=True)
    return da


def load_band_from_url(
    url: str,
    bbox: tuple[float, float, float, float] | None = None,
    masked: bool = True,
) -> xr.DataArray:
    """Load a raster band directly from a URL, optionally clipping to bbox.

    Args:
        url: URL to the COG file.
        bbox: Optional bounding box to clip to (in WGS84/EPSG:4326).
        masked: Convert the file's nodata value to NaN.

    Returns:
        DataArray with the raster data.
    """
    da = rxr.open_rasterio(url, masked=masked)

    if bbox:
        da = clip_box_wgs84(da, bbox)

    # Squeeze single-band rasters
    if da.shape[0] == 1:
        da = da.squeeze("band", drop=True)

    return da


def clip_box_wgs84(da: xr.DataArray, bbox: tuple[float, float, float, float]) -> xr.DataArray:
    """Clip a raster to a WGS84 bounding box expressed in its own CRS."""
    min_lon, min_lat, max_lon, max_lat = bbox

    raster_crs = da.rio.crs
    if raster_crs and raster_crs.to_epsg() != 4326:
        transformer = Transformer.from_crs(4326, raster_crs, always_xy=True)
        # Transform all four corners to handle rotated projections
        corners = [
            transformer.transform(min_lon, min_lat),
            transformer.transform(min_lon, max_lat),
            transformer.transform(max_lon, min_lat),
            transformer.transform(max_lon, max_lat),
        ]
        xs = [c[0] for c in corners]
        ys = [c[1] for c in corners]
        min_x, min_y, max_x, max_y = min(xs), min(ys), max(xs), max(ys)
    else:
        min_x, min_y, max_x, max_y = min_lon, min_lat, max_lon, max_lat

    try:
        return da.rio.clip_box(minx=min_x, miny=min_y, maxx=max_x, maxy=max_y)
    except NoDataInBounds as e:
        logger.warning("Raster does not overlap bbox, using full extent", error=str(e))
        return da


def align_to(
    da: xr.DataArray,
    template: xr.DataArray,
    resampling: Resampling = Resampling.bilinear,
) -> xr.DataArray:
    """Resample a raster onto the template grid.

    Pixels of the template not covered by the source become NaN.

    Args:
        da: Source raster with CRS metadata.
        template: Reference grid.
        resampling: Resampling method.

    Returns:
        Float32 DataArray on the template grid.
    """
    source = da.astype(np.float32)
    if source.rio.nodata is None and source.rio.encoded_nodata is None:
        source = source.rio.write_nodata(np.nan)
    aligned = source.rio.reproject_match(template, resampling=resampling)
    nodata = aligned.rio.nodata
    if nodata is not None and not np.isnan(nodata):
        aligned = aligned.where(aligned != nodata)
    # Keep the template's exact coordinates so layers compare cell for cell
    return aligned.assign_coords(x=template.x.values, y=template.y.values)


def clip_to_geometry(
    da: xr.DataArray,
    geometry: BaseGeometry,
    geometry_crs: str = "EPSG:4326",
) -> xr.DataArray:
    """Mask a raster to a polygon, keeping its extent.

    Args:
        da: Raster with CRS metadata.
        geometry: Clip polygon.
        geometry_crs: CRS of the polygon.

    Returns:
        DataArray with pixels outside the polygon set to NaN.
    """
    projected = reproject_geometry(geometry, geometry_crs, da.rio.crs)
    clipped = da.astype(np.float32).rio.clip(
        [mapping(projected)],
        crs=da.rio.crs,
        drop=False,
        all_touched=True,
    )
    if clipped.rio.nodata is not None and not np.isnan(clipped.rio.nodata):
        clipped = clipped.where(clipped != clipped.rio.nodata)
    return clipped
