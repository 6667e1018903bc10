"""Shared test fixtures for trailcov pipeline tests."""

import geopandas as gpd
import numpy as np
import pytest
import rioxarray  # noqa: F401 - needed for .rio accessor on DataArrays
import xarray as xr
from rasterio.transform import from_origin
from shapely.geometry import LineString, box

# A 10 m grid in UTM 32N, just west of Oslo (lon ~9.0, lat ~60.0)
GRID_CRS = "EPSG:32632"
GRID_X0 = 500_000.0
GRID_Y0 = 6_650_000.0
GRID_RES = 10.0


def make_grid(
    values: np.ndarray,
    res: float = GRID_RES,
    x0: float = GRID_X0,
    y0: float = GRID_Y0,
    crs: str = GRID_CRS,
    name: str | None = None,
) -> xr.DataArray:
    """Create a projected test raster with CRS and transform metadata.

    Args:
        values: 2D numpy array; row 0 is the northernmost row.
        res: Pixel size in metres.
        x0: West edge.
        y0: North edge.
        crs: CRS string.
        name: Optional layer name.

    Returns:
        xr.DataArray with x/y pixel-centre coordinates.
    """
    rows, cols = values.shape
    da = xr.DataArray(
        values,
        dims=["y", "x"],
        coords={
            "y": y0 - res * (np.arange(rows) + 0.5),
            "x": x0 + res * (np.arange(cols) + 0.5),
        },
        name=name,
    )
    da = da.rio.write_crs(crs)
    da = da.rio.write_transform(from_origin(x0, y0, res, res))
    return da


def pixel_centre(row: int, col: int, res: float = GRID_RES) -> tuple[float, float]:
    """Projected coordinate of a pixel centre in the test grid."""
    return GRID_X0 + res * (col + 0.5), GRID_Y0 - res * (row + 0.5)


def vertical_line(col: int, row_start: int, row_end: int) -> LineString:
    """Line through the centres of one column between two rows (inclusive)."""
    return LineString([pixel_centre(row_start, col), pixel_centre(row_end, col)])


@pytest.fixture
def grid_aoi():
    """WGS84 AOI comfortably containing the test grid."""
    return box(8.9, 59.9, 9.1, 60.1)


@pytest.fixture
def index_grid():
    """10x10 grid whose value is row * 10 + col."""
    values = np.arange(100, dtype=np.float32).reshape(10, 10)
    return make_grid(values)


@pytest.fixture
def projected_trails():
    """Two trail segments in the grid CRS: column 1 and column 7."""
    return gpd.GeoDataFrame(
        {
            "feature_id": ["way/1", "way/2"],
            "highway": ["path", "track"],
        },
        geometry=[vertical_line(1, 0, 4), vertical_line(7, 2, 6)],
        crs=GRID_CRS,
    )


@pytest.fixture
def wgs84_trails():
    """Three trail segments in WGS84: inside, crossing and outside a unit AOI."""
    return gpd.GeoDataFrame(
        {"feature_id": ["a", "b", "c"]},
        geometry=[
            LineString([(0.2, 0.2), (0.8, 0.8)]),
            LineString([(0.5, 0.5), (1.5, 0.5)]),
            LineString([(2.0, 2.0), (3.0, 3.0)]),
        ],
        crs="EPSG:4326",
    )
