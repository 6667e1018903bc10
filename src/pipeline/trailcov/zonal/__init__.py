"""Zonal statistics: raster values summarised per trail feature."""

from trailcov.zonal.stats import reduce_regions, stack_layers

__all__ = ["reduce_regions", "stack_layers"]
