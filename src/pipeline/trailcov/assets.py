"""Asset store resolving dataset identifiers to readable sources."""

from pathlib import Path

import structlog

from trailcov.config import get_config
from trailcov.exceptions import AssetNotFoundError

logger = structlog.get_logger()

VECTOR_SUFFIXES = (".gpkg", ".geojson", ".json", ".parquet", ".shp")
RASTER_SUFFIXES = (".tif", ".tiff", ".vrt")

REMOTE_SCHEMES = ("s3://", "http://", "https://", "gs://", "/vsi")


class AssetStore:
    """Resolve asset identifiers against a root directory or URL prefix.

    Identifiers look like ``users/<owner>/<folder>/<name>``. Absolute paths
    and URLs are returned unchanged; anything else is looked up under the
    configured root with the known suffixes for the asset kind.
    """

    def __init__(self, root: str | Path | None = None):
        config = get_config()
        self.root = str(root if root is not None else config.assets.root)

    @property
    def is_remote(self) -> bool:
        return self.root.startswith(REMOTE_SCHEMES)

    def resolve(self, asset_id: str, kind: str = "vector") -> str:
        """Resolve an asset identifier to a path or URL.

        Args:
            asset_id: Asset identifier, path or URL.
            kind: ``"vector"`` or ``"raster"``.

        Returns:
            Path or URL readable by geopandas / rasterio.

        Raises:
            AssetNotFoundError: If no candidate exists.
        """
        if kind not in ("vector", "raster"):
            raise ValueError(f"Unknown asset kind: {kind}")

        if asset_id.startswith(REMOTE_SCHEMES):
            return asset_id

        direct = Path(asset_id)
        if direct.is_absolute() or direct.suffix:
            if direct.exists():
                return str(direct)
            if not self.is_remote and direct.is_absolute():
                raise AssetNotFoundError(f"Asset file not found: {asset_id}")

        suffixes = VECTOR_SUFFIXES if kind == "vector" else RASTER_SUFFIXES

        if self.is_remote:
            # Remote roots cannot be listed cheaply; the first suffix is the convention.
            name = asset_id if direct.suffix else f"{asset_id}{suffixes[0]}"
            url = f"{self.root.rstrip('/')}/{name.lstrip('/')}"
            logger.debug("Resolved remote asset", asset_id=asset_id, url=url)
            return url

        base = Path(self.root) / asset_id
        candidates = [base] if direct.suffix else [base.with_name(base.name + s) for s in suffixes]
        for candidate in candidates:
            if candidate.exists():
                logger.debug("Resolved asset", asset_id=asset_id, path=str(candidate))
                return str(candidate)

        raise AssetNotFoundError(
            f"Asset '{asset_id}' not found under {self.root} (tried {', '.join(c.name for c in candidates)})"
        )
