"""Tests for CRS selection and the reference grid."""

import numpy as np
import pytest
from shapely.geometry import Point, box

from conftest import GRID_CRS
from trailcov.geo_utils import (
    get_utm_crs,
    make_template,
    reproject_geometry,
    resolution_of,
    working_crs,
)


class TestWorkingCrs:

    def test_projected_preference_kept(self, grid_aoi):
        crs = working_crs(grid_aoi, "EPSG:3035")

        assert crs.to_epsg() == 3035

    @pytest.mark.parametrize("preferred", [None, "EPSG:4326"])
    def test_falls_back_to_utm_zone(self, grid_aoi, preferred):
        crs = working_crs(grid_aoi, preferred)

        assert crs.is_projected
        assert crs.utm_zone == "32N"

    def test_southern_hemisphere(self):
        assert get_utm_crs(-70.6, -33.4).utm_zone == "19S"


class TestMakeTemplate:

    @pytest.fixture
    def template(self):
        aoi = box(500_003, 6_649_987, 500_047, 6_650_012)
        return make_template(aoi, GRID_CRS, 10, aoi_crs=GRID_CRS)

    def test_bounds_snapped_outward(self, template):
        assert template.rio.bounds() == pytest.approx((500_000, 6_649_980, 500_050, 6_650_020))

    def test_shape_and_resolution(self, template):
        assert template.shape == (4, 5)
        assert resolution_of(template) == pytest.approx(10)

    def test_pixel_centre_coordinates(self, template):
        assert template.x.values[0] == pytest.approx(500_005)
        assert template.y.values[0] == pytest.approx(6_650_015)

    def test_empty_float_grid_with_crs(self, template):
        assert template.dtype == np.float32
        assert np.isnan(template.values).all()
        assert template.rio.crs.to_epsg() == 32632

    def test_wgs84_aoi_projected(self, grid_aoi):
        template = make_template(grid_aoi, GRID_CRS, 100)

        min_x, min_y, max_x, max_y = template.rio.bounds()
        assert min_x % 100 == 0
        assert max_y % 100 == 0
        # ~11 km by ~22 km at 100 m
        assert 100 < template.sizes["x"] < 130
        assert 210 < template.sizes["y"] < 240


class TestReprojectGeometry:

    def test_same_crs_is_identity(self):
        point = Point(9.0, 60.0)

        assert reproject_geometry(point, "EPSG:4326", "EPSG:4326") is point

    def test_to_utm(self):
        projected = reproject_geometry(Point(9.0, 60.0), "EPSG:4326", GRID_CRS)

        assert projected.x == pytest.approx(500_000, abs=1)
