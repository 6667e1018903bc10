"""STAC catalog client for Microsoft Planetary Computer."""

import planetary_computer
import pystac_client
import structlog

from trailcov.config import get_config

logger = structlog.get_logger()

# Reflectance bands used by the pipeline plus the two quality layers
SCENE_ASSETS = ["B02", "B03", "B04", "B08", "B11", "B12", "QA60", "SCL"]


class StacClient:
    """Client for searching Sentinel-2 imagery and DEM tiles in a STAC catalog."""

    def __init__(self, catalog_url: str | None = None):
        """Initialize the STAC client.

        Args:
            catalog_url: STAC catalog URL. Defaults to Planetary Computer.
        """
        config = get_config()
        self.catalog_url = catalog_url or config.stac.catalog_url
        self.collection = config.stac.collection
        self.max_cloud_cover = config.stac.max_cloud_cover

        self._client: pystac_client.Client | None = None

    @property
    def client(self) -> pystac_client.Client:
        """Get or create the STAC client."""
        if self._client is None:
            self._client = pystac_client.Client.open(
                self.catalog_url,
                modifier=planetary_computer.sign_inplace,
            )
            logger.info("Connected to STAC catalog", url=self.catalog_url)
        return self._client

    def search(
        self,
        bbox: tuple[float, float, float, float],
        start_date: str,
        end_date: str,
        max_items: int = 500,
        max_cloud_cover: float | None = None,
    ) -> list[dict]:
        """Search for Sentinel-2 scenes within a bounding box and date range.

        The end date is exclusive, matching a half-open year window.

        Args:
            bbox: Bounding box as (min_lon, min_lat, max_lon, max_lat).
            start_date: Start date in ISO format (YYYY-MM-DD).
            end_date: End date in ISO format (YYYY-MM-DD), exclusive.
            max_items: Maximum number of items to return.
            max_cloud_cover: Scenes must have cloud cover strictly below this (0-100).

        Returns:
            List of scene metadata dictionaries in acquisition order.
        """
        cloud_cover = max_cloud_cover if max_cloud_cover is not None else self.max_cloud_cover

        logger.info(
            "Searching STAC catalog",
            bbox=bbox,
            date_range=f"{start_date}/{end_date}",
            max_cloud_cover=cloud_cover,
        )

        search = self.client.search(
            collections=[self.collection],
            bbox=bbox,
            datetime=f"{start_date}/{end_date}",
            query={"eo:cloud_cover": {"lt": cloud_cover}},
            max_items=max_items,
            sortby=[{"field": "properties.datetime", "direction": "asc"}],
        )

        scenes = [self._item_to_dict(item) for item in search.items()]
        # STAC datetime ranges are inclusive; drop scenes stamped exactly at the end
        scenes = [s for s in scenes if s["datetime"] and s["datetime"][:10] < end_date]
        logger.info("Search complete", num_results=len(scenes))

        return scenes

    def search_collection(
        self,
        collection: str,
        bbox: tuple[float, float, float, float],
        limit: int = 50,
    ) -> list:
        """Search a non-imagery collection (e.g. a DEM) by bounding box.

        Args:
            collection: STAC collection id.
            bbox: Bounding box in WGS84.
            limit: Maximum number of items.

        Returns:
            List of pystac items.
        """
        search = self.client.search(collections=[collection], bbox=bbox, max_items=limit)
        items = list(search.items())
        logger.info("Collection search complete", collection=collection, num_results=len(items))
        return items

    def _item_to_dict(self, item) -> dict:
        """Convert a STAC item to a metadata dictionary."""
        props = item.properties

        assets = {}
        for band_name in SCENE_ASSETS:
            if band_name in item.assets:
                asset = item.assets[band_name]
                assets[band_name] = {
                    "href": asset.href,
                    "type": asset.media_type,
                }

        return {
            "id": item.id,
            "datetime": props.get("datetime"),
            "cloud_cover": props.get("eo:cloud_cover", 0),
            "bbox": item.bbox,
            "geometry": item.geometry,
            "assets": assets,
            "properties": {
                "platform": props.get("platform"),
                "instrument": props.get("instruments"),
                "gsd": props.get("gsd"),
                "proj:epsg": props.get("proj:epsg"),
                "mgrs_tile": props.get("s2:mgrs_tile"),
            },
        }
