"""STAC catalog client for satellite imagery discovery."""

from trailcov.stac.client import StacClient
from trailcov.stac.search import SceneInfo, search_scenes, year_window

__all__ = ["StacClient", "search_scenes", "SceneInfo", "year_window"]
