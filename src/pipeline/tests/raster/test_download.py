"""Tests for raster clipping and grid alignment."""

from unittest.mock import patch

import numpy as np
import pytest
from rasterio.enums import Resampling
from rioxarray.raster_array import RasterArray
from structlog.testing import capture_logs

from conftest import make_grid
from trailcov.raster.download import align_to, clip_box_wgs84


# ---------------------------------------------------------------------------
# 1. Bounding-box clipping
# ---------------------------------------------------------------------------

class TestClipBoxWgs84:

    def test_partial_overlap_is_clipped(self, index_grid):
        # lon 9.0005 is ~28 m east of the grid's west edge
        clipped = clip_box_wgs84(index_grid, (9.0005, 59.9, 9.1, 60.1))

        assert 0 < clipped.sizes["x"] < index_grid.sizes["x"]
        assert clipped.sizes["y"] == index_grid.sizes["y"]

    def test_no_overlap_keeps_full_extent(self, index_grid):
        with capture_logs() as logs:
            result = clip_box_wgs84(index_grid, (9.5, 61.0, 9.6, 61.1))

        assert result.shape == index_grid.shape
        assert any(entry["log_level"] == "warning" for entry in logs)

    def test_read_errors_propagate(self, index_grid):
        with patch.object(RasterArray, "clip_box", side_effect=OSError("read failed")):
            with pytest.raises(OSError, match="read failed"):
                clip_box_wgs84(index_grid, (8.9, 59.9, 9.1, 60.1))


# ---------------------------------------------------------------------------
# 2. Grid alignment
# ---------------------------------------------------------------------------

class TestAlignTo:

    def test_same_grid_keeps_values(self, index_grid):
        aligned = align_to(index_grid, index_grid, resampling=Resampling.nearest)

        np.testing.assert_allclose(aligned.values, index_grid.values)
        np.testing.assert_array_equal(aligned.x.values, index_grid.x.values)

    def test_uncovered_cells_are_nan(self, index_grid):
        # Source covers only the left half of the template
        source = make_grid(np.ones((10, 5), dtype=np.float32))

        aligned = align_to(source, index_grid, resampling=Resampling.nearest)

        assert aligned.shape == index_grid.shape
        assert np.isnan(aligned.values[:, 6:]).all()
        np.testing.assert_allclose(aligned.values[:, :4], 1.0)
