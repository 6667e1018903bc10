"""Tests for QA-band cloud masking."""

import numpy as np
import xarray as xr

from trailcov.raster.cloud_mask import (
    CIRRUS_MASK,
    OPAQUE_CLOUD_MASK,
    cloud_free,
    mask_clouds,
    qa_from_scl,
)


def qa_array(values) -> xr.DataArray:
    return xr.DataArray(np.array(values, dtype=np.float32), dims=["x"])


class TestBitConstants:

    def test_opaque_cloud_is_bit_10(self):
        assert OPAQUE_CLOUD_MASK == 1024

    def test_cirrus_is_bit_11(self):
        assert CIRRUS_MASK == 2048


class TestCloudFree:
    """cloud_free must reject any pixel with bit 10 or bit 11 set."""

    def test_clear_pixel_passes(self):
        assert bool(cloud_free(qa_array([0]))[0])

    def test_opaque_cloud_rejected(self):
        assert not bool(cloud_free(qa_array([1024]))[0])

    def test_cirrus_rejected(self):
        assert not bool(cloud_free(qa_array([2048]))[0])

    def test_both_bits_rejected(self):
        assert not bool(cloud_free(qa_array([3072]))[0])

    def test_other_bits_ignored(self):
        """Bits other than 10 and 11 do not affect the mask."""
        values = [1, 512, 4096, 1 + 512 + 4096]
        assert cloud_free(qa_array(values)).values.all()

    def test_nodata_qa_rejected(self):
        assert not bool(cloud_free(qa_array([np.nan]))[0])

    def test_passing_pixels_have_both_bits_clear(self):
        """Every QA value that passes has bits 10 and 11 equal to 0."""
        values = np.arange(0, 8192, dtype=np.int64)
        passed = values[cloud_free(qa_array(values)).values]
        assert len(passed) > 0
        assert ((passed & (1 << 10)) == 0).all()
        assert ((passed & (1 << 11)) == 0).all()
        # and nothing with both bits clear was rejected
        expected = values[((values >> 10) & 0b11) == 0]
        np.testing.assert_array_equal(passed, expected)


class TestMaskClouds:

    def test_cloudy_pixels_become_nan(self):
        image = xr.DataArray(np.array([[100, 200], [300, 400]], dtype=np.uint16), dims=["y", "x"])
        qa = xr.DataArray(np.array([[0, 1024], [2048, 0]], dtype=np.float32), dims=["y", "x"])

        masked = mask_clouds(image, qa)

        assert masked.shape == image.shape
        assert masked.values[0, 0] == 100
        assert np.isnan(masked.values[0, 1])
        assert np.isnan(masked.values[1, 0])
        assert masked.values[1, 1] == 400

    def test_multiband_image_masked_per_pixel(self):
        image = xr.DataArray(
            np.ones((3, 1, 2), dtype=np.float32),
            dims=["band", "y", "x"],
            coords={"band": ["red", "nir", "blue"]},
        )
        qa = xr.DataArray(np.array([[0, 1024]], dtype=np.float32), dims=["y", "x"])

        masked = mask_clouds(image, qa)

        assert masked.sizes["band"] == 3
        assert not np.isnan(masked.values[:, 0, 0]).any()
        assert np.isnan(masked.values[:, 0, 1]).all()


class TestQaFromScl:
    """SCL classes map onto the QA60 bit layout."""

    def test_cloud_classes_set_bit_10(self):
        qa = qa_from_scl(qa_array([8, 9]))
        np.testing.assert_array_equal(qa.values, [1024, 1024])

    def test_cirrus_class_sets_bit_11(self):
        qa = qa_from_scl(qa_array([10]))
        np.testing.assert_array_equal(qa.values, [2048])

    def test_clear_classes_are_zero(self):
        qa = qa_from_scl(qa_array([4, 5, 6, 7]))
        np.testing.assert_array_equal(qa.values, [0, 0, 0, 0])

    def test_nodata_stays_nodata(self):
        qa = qa_from_scl(qa_array([np.nan, 4]))
        assert np.isnan(qa.values[0])
        assert qa.values[1] == 0

    def test_round_trip_through_cloud_free(self):
        qa = qa_from_scl(qa_array([4, 8, 9, 10, 5]))
        np.testing.assert_array_equal(cloud_free(qa).values, [True, False, False, False, True])
