"""Shared geospatial utility functions."""

import math
from typing import Any

import numpy as np
import rioxarray  # noqa: F401 - registers the .rio accessor
import xarray as xr
from pyproj import CRS, Transformer
from rasterio.transform import from_origin
from shapely.geometry.base import BaseGeometry
from shapely.ops import transform as shapely_transform


def get_utm_crs(lon: float, lat: float) -> CRS:
    """Get the appropriate UTM CRS for a given WGS84 coordinate.

    Args:
        lon: Longitude in degrees (-180 to 180).
        lat: Latitude in degrees (-90 to 90).

    Returns:
        pyproj CRS object for the appropriate UTM zone.
    """
    utm_zone = int((lon + 180) / 6) + 1
    utm_zone = max(1, min(60, utm_zone))
    hemisphere = "north" if lat >= 0 else "south"
    return CRS.from_string(f"+proj=utm +zone={utm_zone} +{hemisphere} +datum=WGS84")


def working_crs(aoi: BaseGeometry, preferred: Any = None) -> CRS:
    """Pick a metric CRS for raster work over the AOI.

    The preferred CRS (usually the DEM's) is used when it is projected;
    otherwise the UTM zone of the AOI centroid.

    Args:
        aoi: AOI polygon in WGS84.
        preferred: Optional CRS to use when projected.

    Returns:
        Projected pyproj CRS.
    """
    if preferred is not None:
        crs = CRS.from_user_input(preferred)
        if crs.is_projected:
            return crs
    centroid = aoi.centroid
    return get_utm_crs(centroid.x, centroid.y)


def reproject_geometry(geom: BaseGeometry, src_crs: Any, dst_crs: Any) -> BaseGeometry:
    """Reproject a shapely geometry between two CRSs."""
    src = CRS.from_user_input(src_crs)
    dst = CRS.from_user_input(dst_crs)
    if src == dst:
        return geom
    transformer = Transformer.from_crs(src, dst, always_xy=True)
    return shapely_transform(transformer.transform, geom)


def make_template(
    aoi: BaseGeometry,
    crs: Any,
    resolution_m: float,
    aoi_crs: Any = "EPSG:4326",
) -> xr.DataArray:
    """Build an empty reference grid covering the AOI.

    The grid origin is snapped to a multiple of the resolution so grids at
    the same resolution line up pixel for pixel.

    Args:
        aoi: AOI polygon.
        crs: Target grid CRS (projected, metres).
        resolution_m: Pixel size in metres.
        aoi_crs: CRS of the AOI geometry.

    Returns:
        2D float32 DataArray of NaN with CRS, transform and x/y coordinates.
    """
    projected = reproject_geometry(aoi, aoi_crs, crs)
    min_x, min_y, max_x, max_y = projected.bounds

    min_x = math.floor(min_x / resolution_m) * resolution_m
    min_y = math.floor(min_y / resolution_m) * resolution_m
    max_x = math.ceil(max_x / resolution_m) * resolution_m
    max_y = math.ceil(max_y / resolution_m) * resolution_m

    width = max(1, int(round((max_x - min_x) / resolution_m)))
    height = max(1, int(round((max_y - min_y) / resolution_m)))

    xs = min_x + resolution_m * (np.arange(width) + 0.5)
    ys = max_y - resolution_m * (np.arange(height) + 0.5)

    template = xr.DataArray(
        np.full((height, width), np.nan, dtype=np.float32),
        dims=["y", "x"],
        coords={"y": ys, "x": xs},
    )
    template = template.rio.write_crs(CRS.from_user_input(crs))
    template = template.rio.write_transform(from_origin(min_x, max_y, resolution_m, resolution_m))
    return template


def resolution_of(da: xr.DataArray) -> float:
    """Mean absolute pixel size of a raster in its CRS units."""
    res_x, res_y = da.rio.resolution()
    return (abs(float(res_x)) + abs(float(res_y))) / 2
