"""Trail density: rasterized trail presence averaged over a circular neighbourhood."""

import geopandas as gpd
import numpy as np
import structlog
import xarray as xr
from rasterio import features as rio_features
from scipy import signal

from trailcov.geo_utils import resolution_of

logger = structlog.get_logger()

PRESENCE_BAND = "trails"
DENSITY_BAND = "trailDens"


def rasterize_trails(trails: gpd.GeoDataFrame, template: xr.DataArray) -> xr.DataArray:
    """Burn trail lines into a binary presence raster.

    Every pixel a line touches is 1, everything else 0.

    Args:
        trails: Trail features (any CRS).
        template: Reference grid.

    Returns:
        uint8 DataArray on the template grid.
    """
    projected = trails.to_crs(template.rio.crs)
    shapes = [(geom, 1) for geom in projected.geometry if geom is not None and not geom.is_empty]

    height, width = template.shape[-2:]
    if shapes:
        burned = rio_features.rasterize(
            shapes,
            out_shape=(height, width),
            transform=template.rio.transform(),
            fill=0,
            all_touched=True,
            dtype=np.uint8,
        )
    else:
        burned = np.zeros((height, width), dtype=np.uint8)

    presence = xr.DataArray(
        burned,
        dims=["y", "x"],
        coords={"y": template.y.values, "x": template.x.values},
        name=PRESENCE_BAND,
    )
    presence = presence.rio.write_crs(template.rio.crs)
    presence = presence.rio.write_transform(template.rio.transform())

    logger.info("Rasterized trails", features=len(shapes), trail_pixels=int(burned.sum()))
    return presence


def circular_kernel(radius_m: float, resolution_m: float) -> np.ndarray:
    """Boolean disc of pixels whose centres lie within the radius."""
    if radius_m <= 0 or resolution_m <= 0:
        raise ValueError("Radius and resolution must be positive")
    r = radius_m / resolution_m
    n = int(np.floor(r))
    yy, xx = np.ogrid[-n:n + 1, -n:n + 1]
    return (xx**2 + yy**2) <= r**2


def trail_density(
    presence: xr.DataArray,
    radius_m: float = 250.0,
    max_radius_m: float | None = None,
) -> xr.DataArray:
    """Mean trail presence within a circular neighbourhood of every pixel.

    Cells beyond the grid count as trail-free, which holds because trails
    are clipped to the AOI the grid covers.

    Args:
        presence: Binary presence raster in a metric CRS.
        radius_m: Neighbourhood radius in metres.
        max_radius_m: Largest radius allowed in one pass. Larger
            neighbourhoods should be computed from a materialised presence
            raster at coarser resolution.

    Returns:
        Float32 ``trailDens`` DataArray with values in [0, 1].
    """
    if max_radius_m is not None and radius_m > max_radius_m:
        raise ValueError(
            f"Density radius {radius_m} m exceeds the {max_radius_m} m limit; "
            "write the presence raster out at a coarser resolution and compute from that"
        )

    resolution_m = resolution_of(presence)
    kernel = circular_kernel(radius_m, resolution_m).astype(np.float64)

    logger.info(
        "Computing trail density",
        radius_m=radius_m,
        resolution_m=resolution_m,
        kernel_pixels=int(kernel.sum()),
    )

    data = presence.values.astype(np.float64)
    summed = signal.fftconvolve(data, kernel, mode="same")
    density = np.clip(summed / kernel.sum(), 0.0, 1.0)
    # FFT round-off leaves tiny non-zero values far from any trail
    density[density < 1e-9] = 0.0

    result = presence.copy(data=density.astype(np.float32)).rename(DENSITY_BAND)
    logger.info("Trail density computed", max=f"{float(density.max()):.3f}")
    return result
