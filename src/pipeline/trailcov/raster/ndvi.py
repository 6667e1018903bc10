"""NDVI calculation and annual median compositing from Sentinel-2."""

import warnings
from dataclasses import dataclass
from itertools import groupby

import numpy as np
import structlog
import xarray as xr
from rasterio.enums import Resampling

from trailcov.raster.cloud_mask import mask_clouds, qa_from_scl
from trailcov.raster.download import align_to, load_band_from_url
from trailcov.raster.mosaic import TimedImage, daily_mosaics, utc_day
from trailcov.stac.search import SceneInfo

logger = structlog.get_logger()

# Sentinel-2 asset name -> band name used throughout the pipeline
BAND_NAMES: dict[str, str] = {
    "B02": "blue",
    "B03": "green",
    "B04": "red",
    "B08": "nir",
    "B11": "swir1",
    "B12": "swir2",
}

NDVI_BAND = "ndvi"


@dataclass
class NdviComposite:
    """Per-pixel median NDVI over a set of daily images."""

    data: xr.DataArray
    scene_count: int
    day_count: int
    valid_fraction: float

    @property
    def is_empty(self) -> bool:
        return self.day_count == 0 or self.valid_fraction == 0


def calculate_ndvi(red: xr.DataArray, nir: xr.DataArray) -> xr.DataArray:
    """Calculate NDVI from red and NIR bands.

    NDVI = (NIR - Red) / (NIR + Red)

    A zero denominator or a no-data input gives no-data (NaN). Results are
    clipped to [-1, 1].

    Args:
        red: Red reflectance (B04).
        nir: Near-infrared reflectance (B08).

    Returns:
        Float32 DataArray named ``ndvi``.
    """
    red_f = red.astype(np.float32)
    nir_f = nir.astype(np.float32)

    denominator = nir_f + red_f
    with np.errstate(divide="ignore", invalid="ignore"):
        ndvi = xr.where(denominator != 0, (nir_f - red_f) / denominator, np.nan)

    ndvi = ndvi.clip(-1, 1).astype(np.float32)
    if red.rio.crs is not None:
        ndvi = ndvi.rio.write_crs(red.rio.crs)
    return ndvi.rename(NDVI_BAND)


def add_ndvi(image: xr.DataArray) -> xr.DataArray:
    """Append an ``ndvi`` band to a band-labelled image.

    Args:
        image: DataArray with a ``band`` dimension holding ``red`` and ``nir``.

    Returns:
        New DataArray with the original bands plus ``ndvi``.
    """
    ndvi = calculate_ndvi(image.sel(band="red"), image.sel(band="nir"))
    ndvi = ndvi.expand_dims(band=[NDVI_BAND])
    return xr.concat([image, ndvi.astype(image.dtype)], dim="band")


def load_scene_image(
    scene: SceneInfo,
    template: xr.DataArray,
    bbox: tuple[float, float, float, float],
    qa_asset: str = "QA60",
) -> TimedImage:
    """Load a scene's bands on the template grid and mask clouds.

    Args:
        scene: Scene with band URLs.
        template: Reference grid.
        bbox: WGS84 bounding box used to window the reads.
        qa_asset: Name of the bit-encoded QA asset. When the scene does not
            carry it the SCL layer is converted instead.

    Returns:
        TimedImage with bands ``blue .. swir2`` and ``ndvi``.
    """
    bands = []
    for asset, name in BAND_NAMES.items():
        url = scene.get_band_url(asset)
        if url is None:
            raise ValueError(f"Scene {scene.scene_id} missing required band {asset}")
        band = align_to(load_band_from_url(url, bbox), template, Resampling.bilinear)
        bands.append(band.expand_dims(band=[name]))
    image = xr.concat(bands, dim="band")

    qa_url = scene.get_band_url(qa_asset)
    if qa_url is not None:
        qa = align_to(load_band_from_url(qa_url, bbox), template, Resampling.nearest)
    else:
        scl_url = scene.get_band_url("SCL")
        if scl_url is None:
            raise ValueError(f"Scene {scene.scene_id} has neither {qa_asset} nor SCL")
        qa = qa_from_scl(align_to(load_band_from_url(scl_url, bbox), template, Resampling.nearest))

    image = add_ndvi(mask_clouds(image, qa))

    logger.debug("Loaded scene", scene_id=scene.scene_id, datetime=scene.datetime.isoformat())
    return TimedImage(
        data=image,
        time=scene.datetime,
        properties={"scene_id": scene.scene_id, **scene.properties},
    )


def ndvi_only(image: TimedImage) -> TimedImage:
    """Drop every band of an image except ``ndvi``."""
    return TimedImage(
        data=image.data.sel(band=[NDVI_BAND]),
        time=image.time,
        properties=image.properties,
    )


def median_ndvi(images: list[TimedImage], template: xr.DataArray) -> NdviComposite:
    """Per-pixel median of the ``ndvi`` band across daily images.

    Pixels without any valid observation stay NaN. With no images at all an
    all-NaN layer on the template grid is returned and a warning logged.

    Args:
        images: Daily mosaics (one per day).
        template: Reference grid for the empty case.

    Returns:
        NdviComposite.
    """
    if not images:
        logger.warning("No images passed the cloud filter; NDVI layer is entirely no-data")
        empty = xr.full_like(template, np.nan, dtype=np.float32).rename(NDVI_BAND)
        return NdviComposite(data=empty, scene_count=0, day_count=0, valid_fraction=0.0)

    stack = xr.concat([img.data.sel(band=NDVI_BAND, drop=True) for img in images], dim="time")
    with warnings.catch_warnings():
        # All-NaN columns are expected where every day was cloudy
        warnings.simplefilter("ignore", category=RuntimeWarning)
        median = stack.median(dim="time", skipna=True)

    median = median.astype(np.float32).rename(NDVI_BAND)
    median = median.rio.write_crs(template.rio.crs)
    median = median.rio.write_transform(template.rio.transform())

    valid_fraction = float(median.notnull().mean())
    scene_count = sum(int(img.properties.get("source_count", 1)) for img in images)

    if valid_fraction == 0:
        logger.warning("NDVI median has no valid pixels", days=len(images))
    else:
        logger.info(
            "NDVI median computed",
            days=len(images),
            scenes=scene_count,
            valid_fraction=f"{valid_fraction:.3f}",
            mean=f"{float(median.mean(skipna=True)):.3f}",
        )

    return NdviComposite(
        data=median,
        scene_count=scene_count,
        day_count=len(images),
        valid_fraction=valid_fraction,
    )


def build_ndvi_composite(
    scenes: list[SceneInfo],
    template: xr.DataArray,
    bbox: tuple[float, float, float, float],
    qa_asset: str = "QA60",
) -> NdviComposite:
    """Load, cloud-mask and daily-mosaic scenes, then take the NDVI median.

    Scenes are processed one UTC day at a time and reduced to their NDVI
    band as soon as they are loaded, so reflectance bands are held for one
    scene at a time.

    Args:
        scenes: Scenes that passed the catalog cloud-cover filter.
        template: Reference grid.
        bbox: WGS84 read window.
        qa_asset: QA asset name.

    Returns:
        NdviComposite.
    """
    logger.info("Building NDVI composite", scenes=len(scenes))
    ordered = sorted(scenes, key=lambda scene: scene.datetime)

    days: list[TimedImage] = []
    for day, group in groupby(ordered, key=lambda scene: utc_day(scene.datetime)):
        same_day = [ndvi_only(load_scene_image(scene, template, bbox, qa_asset)) for scene in group]
        days.extend(daily_mosaics(same_day))
        logger.debug("Day mosaicked", day=day.isoformat(), scenes=len(same_day))

    logger.info("Built daily mosaics", scenes=len(scenes), days=len(days))
    return median_ndvi(days, template)
