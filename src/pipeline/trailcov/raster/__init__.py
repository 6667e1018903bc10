"""Raster preparation: cloud masking, NDVI, terrain, ecosystem types, trail density."""

from trailcov.raster.cloud_mask import cloud_free, mask_clouds, qa_from_scl
from trailcov.raster.density import circular_kernel, rasterize_trails, trail_density
from trailcov.raster.ecotypes import ECOSYSTEM_RULES, ReclassRule, reclassify
from trailcov.raster.mosaic import TimedImage, daily_mosaics
from trailcov.raster.ndvi import NdviComposite, add_ndvi, calculate_ndvi, median_ndvi
from trailcov.raster.terrain import DEMData, load_dem, prepare_elevation

__all__ = [
    "cloud_free",
    "mask_clouds",
    "qa_from_scl",
    "TimedImage",
    "daily_mosaics",
    "calculate_ndvi",
    "add_ndvi",
    "median_ndvi",
    "NdviComposite",
    # Ecosystem types
    "ECOSYSTEM_RULES",
    "ReclassRule",
    "reclassify",
    # Terrain
    "load_dem",
    "prepare_elevation",
    "DEMData",
    # Trail density
    "rasterize_trails",
    "circular_kernel",
    "trail_density",
]
