"""Per-feature zonal statistics over raster stacks."""

from concurrent.futures import ThreadPoolExecutor

import geopandas as gpd
import numpy as np
import pandas as pd
import structlog
import xarray as xr
from rasterio import features as rio_features
from rasterio.enums import Resampling

from trailcov.geo_utils import resolution_of

logger = structlog.get_logger()

REDUCERS = ("mean", "mode")

_RESAMPLING = {
    "mean": Resampling.average,
    "mode": Resampling.mode,
}


def stack_layers(layers: dict[str, xr.DataArray]) -> xr.DataArray:
    """Combine single-band layers on one grid into a band-labelled stack.

    Args:
        layers: Band name -> 2D layer, all on the same grid.

    Returns:
        3D float32 DataArray with a ``band`` dimension.
    """
    if not layers:
        raise ValueError("No layers to stack")

    first = next(iter(layers.values()))
    bands = []
    for name, layer in layers.items():
        if layer.shape != first.shape:
            raise ValueError(f"Layer '{name}' shape {layer.shape} does not match {first.shape}")
        band = layer.astype(np.float32).drop_vars("band", errors="ignore")
        band = band.assign_coords(x=first.x.values, y=first.y.values)
        bands.append(band.expand_dims(band=[name]))

    stack = xr.concat(bands, dim="band")
    stack = stack.rio.write_crs(first.rio.crs)
    stack = stack.rio.write_transform(first.rio.transform())
    return stack.rio.write_nodata(np.nan)


def _as_stack(raster: xr.DataArray) -> xr.DataArray:
    if raster.ndim == 2:
        name = raster.name or "value"
        crs, transform = raster.rio.crs, raster.rio.transform()
        raster = raster.expand_dims(band=[name])
        raster = raster.rio.write_crs(crs).rio.write_transform(transform)
    return raster


def _resample(raster: xr.DataArray, scale: float, reducer: str) -> xr.DataArray:
    """Resample a stack to the sampling scale in its own CRS."""
    if abs(resolution_of(raster) - scale) < 1e-6:
        return raster
    source = raster.astype(np.float32).rio.write_nodata(np.nan)
    resampled = source.rio.reproject(
        source.rio.crs,
        resolution=scale,
        resampling=_RESAMPLING[reducer],
    )
    logger.debug("Resampled for sampling", scale=scale, shape=resampled.shape)
    return resampled


def _mode(values: np.ndarray) -> float:
    uniques, counts = np.unique(values, return_counts=True)
    # np.unique sorts, so argmax picks the smallest of tied values
    return float(uniques[np.argmax(counts)])


def _reduce_feature(geom, data: np.ndarray, transform, reducer: str) -> list[float]:
    n_bands = data.shape[0]
    if geom is None or geom.is_empty:
        return [np.nan] * n_bands

    mask = rio_features.geometry_mask(
        [geom],
        out_shape=data.shape[1:],
        transform=transform,
        all_touched=True,
        invert=True,
    )
    if not mask.any():
        return [np.nan] * n_bands

    stats = []
    for band in data[:, mask]:
        valid = band[~np.isnan(band)]
        if valid.size == 0:
            stats.append(np.nan)
        elif reducer == "mean":
            stats.append(float(valid.mean()))
        else:
            stats.append(_mode(valid))
    return stats


def reduce_regions(
    raster: xr.DataArray,
    features: gpd.GeoDataFrame,
    reducer: str = "mean",
    scale: float | None = None,
    tile_scale: int = 1,
) -> gpd.GeoDataFrame:
    """Reduce raster bands over every feature geometry.

    Each feature keeps its row; one column per band is added holding the
    statistic over the pixels the geometry touches. Features without
    valid pixels get nulls.

    Args:
        raster: Single layer or band-labelled stack in a metric CRS.
        features: Feature collection (any CRS).
        reducer: ``"mean"`` or ``"mode"``.
        scale: Sampling resolution in metres; the raster is resampled to it.
        tile_scale: Parallelism hint; features are split into this many
            chunks reduced on a thread pool.

    Returns:
        Copy of ``features`` with the statistic columns appended.
    """
    if reducer not in REDUCERS:
        raise ValueError(f"Unknown reducer '{reducer}', expected one of {REDUCERS}")

    stack = _as_stack(raster)
    if scale is not None:
        stack = _resample(stack, scale, reducer)

    band_names = [str(b) for b in stack["band"].values]
    data = stack.values.astype(np.float64)
    transform = stack.rio.transform()
    geoms = list(features.to_crs(stack.rio.crs).geometry)

    logger.info(
        "Reducing regions",
        reducer=reducer,
        features=len(geoms),
        bands=band_names,
        scale=scale,
        tile_scale=tile_scale,
    )

    def reduce_chunk(chunk: np.ndarray) -> list[list[float]]:
        return [_reduce_feature(geoms[i], data, transform, reducer) for i in chunk]

    chunks = [c for c in np.array_split(np.arange(len(geoms)), max(1, tile_scale)) if len(c)]
    if len(chunks) > 1:
        with ThreadPoolExecutor(max_workers=len(chunks)) as pool:
            rows = [row for part in pool.map(reduce_chunk, chunks) for row in part]
    else:
        rows = [row for chunk in chunks for row in reduce_chunk(chunk)]

    result = features.copy()
    values = np.array(rows, dtype=np.float64).reshape(len(geoms), len(band_names))
    for j, name in enumerate(band_names):
        column = pd.Series(values[:, j], index=result.index)
        result[name] = column.round().astype("Int64") if reducer == "mode" else column

    missing = int(np.isnan(values).all(axis=1).sum())
    if missing:
        logger.warning("Features without valid pixels", count=missing, reducer=reducer)

    return result
