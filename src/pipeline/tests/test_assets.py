"""Tests for asset identifier resolution."""

import pytest

from trailcov.assets import AssetStore
from trailcov.exceptions import AssetNotFoundError


class TestLocalRoot:

    def test_resolves_with_vector_suffix(self, tmp_path):
        target = tmp_path / "users" / "owner" / "Vector" / "trails.gpkg"
        target.parent.mkdir(parents=True)
        target.touch()
        store = AssetStore(tmp_path)

        assert store.resolve("users/owner/Vector/trails") == str(target)

    def test_suffix_order(self, tmp_path):
        (tmp_path / "trails.geojson").touch()
        (tmp_path / "trails.gpkg").touch()
        store = AssetStore(tmp_path)

        assert store.resolve("trails").endswith("trails.gpkg")

    def test_raster_suffix(self, tmp_path):
        (tmp_path / "dem.tif").touch()
        (tmp_path / "dem.gpkg").touch()
        store = AssetStore(tmp_path)

        assert store.resolve("dem", kind="raster").endswith("dem.tif")

    def test_absolute_path_passes_through(self, tmp_path):
        target = tmp_path / "aoi.geojson"
        target.touch()
        store = AssetStore("/nonexistent")

        assert store.resolve(str(target)) == str(target)

    def test_missing_absolute_path(self, tmp_path):
        store = AssetStore(tmp_path)

        with pytest.raises(AssetNotFoundError):
            store.resolve(str(tmp_path / "missing.gpkg"))

    def test_missing_asset(self, tmp_path):
        store = AssetStore(tmp_path)

        with pytest.raises(AssetNotFoundError, match="not found"):
            store.resolve("users/owner/nothing")

    def test_not_found_is_file_not_found(self, tmp_path):
        store = AssetStore(tmp_path)

        with pytest.raises(FileNotFoundError):
            store.resolve("nothing", kind="raster")

    def test_unknown_kind(self, tmp_path):
        with pytest.raises(ValueError, match="Unknown asset kind"):
            AssetStore(tmp_path).resolve("x", kind="table")


class TestRemoteRoot:

    def test_url_passes_through(self, tmp_path):
        store = AssetStore(tmp_path)

        assert store.resolve("https://example.org/dem.tif", kind="raster") == "https://example.org/dem.tif"

    def test_remote_root_appends_first_suffix(self):
        store = AssetStore("s3://bucket/assets/")

        assert store.is_remote
        assert store.resolve("users/owner/dem", kind="raster") == "s3://bucket/assets/users/owner/dem.tif"

    def test_remote_root_keeps_explicit_suffix(self):
        store = AssetStore("https://data.example.org")

        assert store.resolve("trails.parquet") == "https://data.example.org/trails.parquet"
