"""High-level scene search functionality."""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any

import structlog

from trailcov.stac.client import StacClient

logger = structlog.get_logger()


@dataclass
class SceneInfo:
    """Information about a satellite imagery scene."""

    scene_id: str
    datetime: datetime
    cloud_cover: float
    bbox: tuple[float, float, float, float]
    assets: dict[str, dict[str, str]]
    platform: str | None = None
    epsg: int | None = None
    properties: dict[str, Any] = field(default_factory=dict)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "SceneInfo":
        """Create SceneInfo from a STAC item dictionary."""
        dt_str = data.get("datetime", "")
        if dt_str:
            dt = datetime.fromisoformat(dt_str.replace("Z", "+00:00"))
            if dt.tzinfo is None:
                dt = dt.replace(tzinfo=timezone.utc)
        else:
            dt = datetime.now(timezone.utc)

        properties = dict(data.get("properties", {}))
        properties["cloud_cover"] = data.get("cloud_cover", 0)

        return cls(
            scene_id=data["id"],
            datetime=dt,
            cloud_cover=data.get("cloud_cover", 0),
            bbox=tuple(data.get("bbox", [0, 0, 0, 0])),
            assets=data.get("assets", {}),
            platform=properties.get("platform"),
            epsg=properties.get("proj:epsg"),
            properties=properties,
        )

    def get_band_url(self, band: str) -> str | None:
        """Get the URL for a specific band."""
        asset = self.assets.get(band)
        return asset.get("href") if asset else None


def year_window(year: int) -> tuple[str, str]:
    """Half-open date range covering one calendar year."""
    return f"{year}-01-01", f"{year + 1}-01-01"


def search_scenes(
    bbox: tuple[float, float, float, float],
    start_date: str,
    end_date: str,
    max_cloud_cover: float = 30.0,
    max_items: int = 500,
) -> list[SceneInfo]:
    """Search for satellite imagery scenes.

    Args:
        bbox: Bounding box as (min_lon, min_lat, max_lon, max_lat).
        start_date: Start date in ISO format (YYYY-MM-DD).
        end_date: End date in ISO format (YYYY-MM-DD), exclusive.
        max_cloud_cover: Scenes must have cloud cover below this percentage.
        max_items: Maximum number of scenes to return.

    Returns:
        List of SceneInfo objects in acquisition order (oldest first).
    """
    client = StacClient()
    results = client.search(
        bbox=bbox,
        start_date=start_date,
        end_date=end_date,
        max_items=max_items,
        max_cloud_cover=max_cloud_cover,
    )

    scenes = [SceneInfo.from_dict(r) for r in results]
    scenes.sort(key=lambda s: s.datetime)

    logger.info(
        "Scene search complete",
        num_scenes=len(scenes),
        date_range=f"{start_date} to {end_date}",
    )

    return scenes
