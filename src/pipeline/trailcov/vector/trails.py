"""Trail segment and area-of-interest loading."""

from pathlib import Path

import geopandas as gpd
import structlog
from shapely.geometry import box
from shapely.geometry.base import BaseGeometry
from shapely.ops import unary_union

from trailcov.exceptions import EmptyInputError

logger = structlog.get_logger()

FEATURE_ID = "feature_id"


def _read_vector(source: str | Path) -> gpd.GeoDataFrame:
    if str(source).endswith(".parquet"):
        return gpd.read_parquet(source)
    return gpd.read_file(source)


def load_trails(source: str | Path, id_field: str | None = None) -> gpd.GeoDataFrame:
    """Load trail segments from a vector source.

    Args:
        source: Path or URL of the pre-filtered trail dataset.
        id_field: Attribute holding the source feature id. Row order is
            used when not given or missing.

    Returns:
        GeoDataFrame in EPSG:4326 with a string ``feature_id`` column.
    """
    gdf = _read_vector(source)

    if gdf.crs is None:
        logger.warning("Trail dataset has no CRS, assuming EPSG:4326", source=str(source))
        gdf = gdf.set_crs("EPSG:4326")
    elif gdf.crs.to_epsg() != 4326:
        gdf = gdf.to_crs("EPSG:4326")

    if id_field and id_field in gdf.columns:
        gdf[FEATURE_ID] = gdf[id_field].astype(str)
    elif FEATURE_ID not in gdf.columns:
        if id_field:
            logger.warning("Id field not found, using row order", id_field=id_field)
        gdf[FEATURE_ID] = [str(i) for i in range(len(gdf))]

    gdf = gdf.reset_index(drop=True)
    logger.info("Loaded trail segments", source=str(source), count=len(gdf))
    return gdf


def load_aoi(
    source: str | Path | None = None,
    bbox: tuple[float, float, float, float] | None = None,
) -> BaseGeometry:
    """Load the area of interest polygon.

    Args:
        source: Vector file holding one or more AOI polygons (unioned).
        bbox: WGS84 bounding box, used when no source is given.

    Returns:
        AOI polygon in EPSG:4326.
    """
    if source is not None:
        gdf = _read_vector(source)
        if gdf.empty:
            raise EmptyInputError(f"AOI file has no features: {source}")
        if gdf.crs is not None and gdf.crs.to_epsg() != 4326:
            gdf = gdf.to_crs("EPSG:4326")
        aoi = unary_union(list(gdf.geometry))
    elif bbox is not None:
        aoi = box(*bbox)
    else:
        raise ValueError("An AOI file or bounding box is required")

    if aoi.is_empty or aoi.area == 0:
        raise ValueError("AOI geometry is empty or has no area")

    logger.info("Loaded AOI", bounds=tuple(round(v, 5) for v in aoi.bounds))
    return aoi


def clip_to_aoi(trails: gpd.GeoDataFrame, aoi: BaseGeometry) -> gpd.GeoDataFrame:
    """Clip every trail feature to the AOI.

    Each feature is intersected with the AOI. Features falling entirely
    outside keep their row with an empty geometry, so their statistics
    come out null rather than missing.

    Args:
        trails: Trail features in EPSG:4326.
        aoi: AOI polygon in EPSG:4326.

    Returns:
        New GeoDataFrame with clipped geometries.

    Raises:
        EmptyInputError: If no feature intersects the AOI.
    """
    if trails.empty:
        raise EmptyInputError("Trail dataset is empty; nothing to extract")

    clipped = trails.copy()
    clipped[trails.geometry.name] = trails.geometry.intersection(aoi)

    empty = clipped.geometry.is_empty | clipped.geometry.isna()
    if empty.all():
        raise EmptyInputError(
            f"None of the {len(trails)} trail features intersect the area of interest; "
            "check the AOI polygon and the trail dataset"
        )
    if empty.any():
        logger.warning(
            "Trail features outside the AOI",
            outside=int(empty.sum()),
            total=len(clipped),
        )

    logger.info("Clipped trails to AOI", count=len(clipped), inside=int((~empty).sum()))
    return clipped
