"""Sentinel-2 cloud masking from the bit-encoded QA band."""

import numpy as np
import xarray as xr

# QA60 bit positions
OPAQUE_CLOUD_BIT = 10
CIRRUS_BIT = 11

OPAQUE_CLOUD_MASK = 1 << OPAQUE_CLOUD_BIT
CIRRUS_MASK = 1 << CIRRUS_BIT

# Scene classification (L2A SCL) classes mapped onto the QA60 bits
SCL_OPAQUE_CLOUD = (8, 9)  # cloud medium / high probability
SCL_CIRRUS = (10,)  # thin cirrus


def cloud_free(qa: xr.DataArray) -> xr.DataArray:
    """Boolean mask that is True where neither cloud bit is set.

    NaN QA values (no-data) count as not cloud free.
    """
    valid = qa.notnull()
    bits = qa.fillna(0).astype(np.int32)
    clear = ((bits & OPAQUE_CLOUD_MASK) == 0) & ((bits & CIRRUS_MASK) == 0)
    return clear & valid


def mask_clouds(image: xr.DataArray, qa: xr.DataArray) -> xr.DataArray:
    """Set cloudy pixels of an image to no-data (NaN).

    Args:
        image: Reflectance image, single or multi-band, on the same grid as ``qa``.
        qa: Bit-encoded quality band.

    Returns:
        Float image with the same shape; masked pixels are NaN.
    """
    return image.astype(np.float32).where(cloud_free(qa))


def qa_from_scl(scl: xr.DataArray) -> xr.DataArray:
    """Encode a scene classification layer into QA60 bits.

    Args:
        scl: Sentinel-2 L2A SCL band.

    Returns:
        QA-style band with bit 10 for opaque cloud and bit 11 for cirrus;
        NaN where the SCL is no-data.
    """
    qa = xr.zeros_like(scl, dtype=np.float32)
    qa = qa.where(~scl.isin(SCL_OPAQUE_CLOUD), OPAQUE_CLOUD_MASK)
    qa = qa.where(~scl.isin(SCL_CIRRUS), CIRRUS_MASK)
    return qa.where(scl.notnull())
