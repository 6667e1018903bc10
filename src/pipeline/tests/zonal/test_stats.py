"""Unit tests for per-feature zonal statistics."""

import geopandas as gpd
import numpy as np
import pandas as pd
import pytest
from shapely.geometry import LineString, Polygon, box

from conftest import GRID_CRS, make_grid, vertical_line
from trailcov.zonal.stats import reduce_regions, stack_layers


def features(*geoms, crs: str = GRID_CRS) -> gpd.GeoDataFrame:
    return gpd.GeoDataFrame(
        {"feature_id": [f"f{i}" for i in range(len(geoms))]},
        geometry=list(geoms),
        crs=crs,
    )


# ---------------------------------------------------------------------------
# 1. Stacking
# ---------------------------------------------------------------------------

class TestStackLayers:

    def test_band_names_in_order(self, index_grid):
        stack = stack_layers({"ndvi": index_grid, "elevation": index_grid * 2})

        assert list(stack.band.values) == ["ndvi", "elevation"]
        assert stack.shape == (2, 10, 10)
        assert stack.dtype == np.float32
        assert stack.rio.crs == index_grid.rio.crs

    def test_shape_mismatch_rejected(self, index_grid):
        other = make_grid(np.zeros((5, 5), dtype=np.float32))

        with pytest.raises(ValueError, match="does not match"):
            stack_layers({"a": index_grid, "b": other})

    def test_empty_rejected(self):
        with pytest.raises(ValueError):
            stack_layers({})


# ---------------------------------------------------------------------------
# 2. Mean reducer
# ---------------------------------------------------------------------------

class TestMeanReducer:
    """Mean over every pixel the geometry touches."""

    def test_line_mean(self, index_grid):
        stack = stack_layers({"value": index_grid})

        result = reduce_regions(stack, features(vertical_line(0, 0, 4)), "mean")

        # Column 0, rows 0-4 holds 0, 10, 20, 30, 40
        assert result["value"].iloc[0] == pytest.approx(20.0)

    def test_polygon_mean(self, index_grid):
        stack = stack_layers({"value": index_grid})
        poly = box(500_002, 6_649_982, 500_018, 6_649_998)

        result = reduce_regions(stack, features(poly), "mean")

        # Pixels (0, 0), (0, 1), (1, 0), (1, 1) -> 0, 1, 10, 11
        assert result["value"].iloc[0] == pytest.approx(5.5)

    def test_one_column_per_band(self, index_grid):
        stack = stack_layers({"ndvi": index_grid, "elevation": index_grid + 100})

        result = reduce_regions(stack, features(vertical_line(0, 0, 4)), "mean")

        assert result["ndvi"].iloc[0] == pytest.approx(20.0)
        assert result["elevation"].iloc[0] == pytest.approx(120.0)

    def test_single_layer_uses_its_name(self, index_grid):
        layer = index_grid.rename("trailDens")

        result = reduce_regions(layer, features(vertical_line(0, 0, 4)), "mean")

        assert "trailDens" in result.columns

    def test_nan_pixels_ignored(self):
        values = np.array([[1.0, np.nan, 3.0]], dtype=np.float32)
        stack = stack_layers({"value": make_grid(values)})
        line = LineString([(500_005, 6_649_995), (500_025, 6_649_995)])

        result = reduce_regions(stack, features(line), "mean")

        assert result["value"].iloc[0] == pytest.approx(2.0)

    def test_features_reprojected(self, index_grid):
        stack = stack_layers({"value": index_grid})
        wgs84 = features(vertical_line(0, 0, 4)).to_crs("EPSG:4326")

        result = reduce_regions(stack, wgs84, "mean")

        assert result["value"].iloc[0] == pytest.approx(20.0)
        assert result.crs == wgs84.crs


# ---------------------------------------------------------------------------
# 3. Mode reducer
# ---------------------------------------------------------------------------

class TestModeReducer:

    def test_most_frequent(self):
        values = np.array([[4, 4, 4, 2, 2]], dtype=np.float32)
        stack = stack_layers({"ecoTypes": make_grid(values)})
        line = LineString([(500_005, 6_649_995), (500_045, 6_649_995)])

        result = reduce_regions(stack, features(line), "mode")

        assert result["ecoTypes"].iloc[0] == 4

    def test_tie_goes_to_smallest(self):
        values = np.array([[2, 1, 3, 2, 1]], dtype=np.float32)
        stack = stack_layers({"ecoTypes": make_grid(values)})
        line = LineString([(500_005, 6_649_995), (500_045, 6_649_995)])

        result = reduce_regions(stack, features(line), "mode")

        assert result["ecoTypes"].iloc[0] == 1

    def test_integer_column_with_nulls(self):
        values = np.array([[5, np.nan]], dtype=np.float32)
        stack = stack_layers({"ecoTypes": make_grid(values)})
        left = LineString([(500_003, 6_649_995), (500_007, 6_649_995)])
        right = LineString([(500_013, 6_649_995), (500_017, 6_649_995)])

        result = reduce_regions(stack, features(left, right), "mode")

        assert str(result["ecoTypes"].dtype) == "Int64"
        assert result["ecoTypes"].iloc[0] == 5
        assert pd.isna(result["ecoTypes"].iloc[1])

    def test_unknown_reducer(self, index_grid):
        with pytest.raises(ValueError, match="Unknown reducer"):
            reduce_regions(index_grid, features(vertical_line(0, 0, 4)), "median")


# ---------------------------------------------------------------------------
# 4. Missing data and row preservation
# ---------------------------------------------------------------------------

class TestMissingData:
    """Every input feature appears in the output, with nulls where needed."""

    def test_all_nan_feature_kept_with_null(self, index_grid):
        values = index_grid.values.copy()
        values[:, 0] = np.nan
        stack = stack_layers({"value": make_grid(values)})

        result = reduce_regions(stack, features(vertical_line(0, 0, 4), vertical_line(5, 0, 4)), "mean")

        assert len(result) == 2
        assert pd.isna(result["value"].iloc[0])
        assert result["value"].iloc[1] == pytest.approx(25.0)

    def test_feature_outside_grid(self, index_grid):
        stack = stack_layers({"value": index_grid})
        far = LineString([(600_000, 6_600_000), (600_100, 6_600_000)])

        result = reduce_regions(stack, features(far), "mean")

        assert len(result) == 1
        assert pd.isna(result["value"].iloc[0])

    def test_empty_geometry(self, index_grid):
        stack = stack_layers({"value": index_grid})

        result = reduce_regions(stack, features(Polygon(), vertical_line(0, 0, 4)), "mean")

        assert pd.isna(result["value"].iloc[0])
        assert result["value"].iloc[1] == pytest.approx(20.0)

    def test_attributes_and_order_preserved(self, index_grid, projected_trails):
        stack = stack_layers({"value": index_grid})

        result = reduce_regions(stack, projected_trails, "mean")

        assert list(result["feature_id"]) == ["way/1", "way/2"]
        assert list(result["highway"]) == ["path", "track"]
        assert "value" not in projected_trails.columns


# ---------------------------------------------------------------------------
# 5. Scale and tiling
# ---------------------------------------------------------------------------

class TestScaleAndTiling:

    def test_native_scale_unchanged(self, index_grid):
        stack = stack_layers({"value": index_grid})

        result = reduce_regions(stack, features(vertical_line(0, 0, 4)), "mean", scale=10)

        assert result["value"].iloc[0] == pytest.approx(20.0)

    def test_tile_scale_gives_same_result(self, index_grid):
        stack = stack_layers({"value": index_grid})
        lines = features(*[vertical_line(c, 0, 9) for c in range(10)])

        serial = reduce_regions(stack, lines, "mean", tile_scale=1)
        tiled = reduce_regions(stack, lines, "mean", tile_scale=4)

        np.testing.assert_allclose(serial["value"].values, tiled["value"].values)
        assert list(tiled["feature_id"]) == list(lines["feature_id"])

    def test_tile_scale_larger_than_feature_count(self, index_grid):
        stack = stack_layers({"value": index_grid})

        result = reduce_regions(stack, features(vertical_line(0, 0, 4)), "mean", tile_scale=16)

        assert result["value"].iloc[0] == pytest.approx(20.0)
