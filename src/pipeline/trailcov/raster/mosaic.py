"""Daily mosaicking of same-day Sentinel-2 acquisitions.

Adjacent tiles and overlapping orbits produce several scenes for the same
calendar day. Left as separate images they would be counted more than once
by a temporal median, so each day is collapsed into one composite first.
"""

from dataclasses import dataclass, field
from datetime import date, datetime, time, timezone
from itertools import groupby
from typing import Any

import structlog
import xarray as xr

logger = structlog.get_logger()


@dataclass
class TimedImage:
    """A raster with an acquisition time and metadata."""

    data: xr.DataArray
    time: datetime
    properties: dict[str, Any] = field(default_factory=dict)

    @property
    def day(self) -> date:
        """Calendar day of the acquisition in UTC."""
        return utc_day(self.time)


def utc_day(moment: datetime) -> date:
    """Calendar day in UTC; naive datetimes are taken as UTC."""
    if moment.tzinfo is None:
        return moment.date()
    return moment.astimezone(timezone.utc).date()


def mosaic(images: list[xr.DataArray]) -> xr.DataArray:
    """Overlay images in order; later valid pixels replace earlier ones."""
    if not images:
        raise ValueError("Cannot mosaic an empty list of images")
    result = images[0]
    for image in images[1:]:
        result = xr.where(image.notnull(), image, result, keep_attrs=True)
    return result


def daily_mosaics(images: list[TimedImage]) -> list[TimedImage]:
    """Collapse images to one composite per calendar day.

    Images are put in acquisition order and grouped by UTC day. Each group
    is mosaicked (last pixel wins), stamped with the day's midnight and
    given the metadata of the group's first image.

    Args:
        images: Images on a common grid, in any order.

    Returns:
        One image per distinct day, sorted by day.
    """
    ordered = sorted(images, key=lambda img: img.time)

    result = []
    for day, group in groupby(ordered, key=lambda img: img.day):
        same_day = list(group)
        first = same_day[0]
        properties = dict(first.properties)
        properties["source_count"] = len(same_day)
        result.append(
            TimedImage(
                data=mosaic([img.data for img in same_day]),
                time=datetime.combine(day, time.min, tzinfo=timezone.utc),
                properties=properties,
            )
        )

    logger.debug("Built daily mosaics", images=len(images), days=len(result))
    return result
