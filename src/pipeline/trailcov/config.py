"""Configuration management for the trail covariate pipeline."""

import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import yaml
from dotenv import load_dotenv


@dataclass
class StacConfig:
    """STAC catalog configuration."""

    catalog_url: str = "https://planetarycomputer.microsoft.com/api/stac/v1"
    collection: str = "sentinel-2-l2a"
    max_cloud_cover: float = 30.0
    qa_asset: str = "QA60"  # falls back to SCL when the catalog has no QA60
    max_items: int = 500


@dataclass
class AssetConfig:
    """Asset store and dataset identifiers."""

    root: str = "assets"
    trails: str = "users/zandersamuel/NINA/Vector/Oslo_osm_flitered"
    ecotypes: str = "users/zandersamuel/NINA/Raster/Norway_ecosystem_types_5m"
    dem: str = "users/rangelandee/NINA/Raster/Fenoscandia_DTM_10m"
    dem_source: str = "local"  # "local" (asset) or "stac"
    dem_collection: str = "cop-dem-glo-30"
    id_field: str | None = None


@dataclass
class AoiConfig:
    """Area of interest: a polygon file or a WGS84 bounding box."""

    path: str | None = None
    bbox: tuple[float, float, float, float] | None = None


@dataclass
class ProcessingConfig:
    """Raster processing configuration."""

    year: int = 2019
    trail_resolution_m: float = 10.0
    density_radius_m: float = 250.0
    max_density_radius_m: float = 1000.0
    continuous_scale_m: float = 30.0
    categorical_scale_m: float = 20.0
    tile_scale: int = 4
    unmatched_ecotypes: str = "raise"  # "raise", "nodata", "passthrough"


@dataclass
class MinioConfig:
    """MinIO / S3 storage configuration."""

    endpoint: str = "localhost:9000"
    access_key: str = ""
    secret_key: str = ""
    secure: bool = False
    bucket_exports: str = "trailcov-exports"


@dataclass
class ExportConfig:
    """Table export configuration."""

    destination: str = "local"  # "local" or "s3"
    output_dir: str = "exports"
    prefix: str = ""
    continuous_description: str = "explan_vars_continuous"
    categorical_description: str = "explan_vars_categorical"
    max_workers: int = 2


@dataclass
class Config:
    """Main configuration container."""

    stac: StacConfig = field(default_factory=StacConfig)
    assets: AssetConfig = field(default_factory=AssetConfig)
    aoi: AoiConfig = field(default_factory=AoiConfig)
    processing: ProcessingConfig = field(default_factory=ProcessingConfig)
    minio: MinioConfig = field(default_factory=MinioConfig)
    export: ExportConfig = field(default_factory=ExportConfig)

    @classmethod
    def load(cls, config_dir: Path | None = None) -> "Config":
        """Load configuration from files and environment variables."""
        env_file = Path(__file__).parent.parent / ".env"
        if env_file.exists():
            load_dotenv(env_file)

        config = cls()

        if config_dir and config_dir.exists():
            pipeline_file = config_dir / "pipeline.yaml"
            if pipeline_file.exists():
                config._load_yaml(pipeline_file)

        config._load_from_env()

        return config

    def _load_yaml(self, path: Path) -> None:
        """Load configuration from a YAML file."""
        with open(path) as f:
            data = yaml.safe_load(f)
            if data:
                self._apply_yaml_config(data)

    def _apply_yaml_config(self, data: dict[str, Any]) -> None:
        """Apply YAML configuration data."""
        if "stac" in data:
            stac = data["stac"]
            if "catalog_url" in stac:
                self.stac.catalog_url = stac["catalog_url"]
            if "collection" in stac:
                self.stac.collection = stac["collection"]
            if "max_cloud_cover" in stac:
                self.stac.max_cloud_cover = float(stac["max_cloud_cover"])
            if "qa_asset" in stac:
                self.stac.qa_asset = stac["qa_asset"]
            if "max_items" in stac:
                self.stac.max_items = int(stac["max_items"])

        if "assets" in data:
            assets = data["assets"]
            for key in ("root", "trails", "ecotypes", "dem", "dem_source", "dem_collection", "id_field"):
                if key in assets:
                    setattr(self.assets, key, assets[key])

        if "aoi" in data:
            aoi = data["aoi"]
            if "path" in aoi:
                self.aoi.path = aoi["path"]
            if aoi.get("bbox"):
                self.aoi.bbox = tuple(float(v) for v in aoi["bbox"])

        if "processing" in data:
            proc = data["processing"]
            if "year" in proc:
                self.processing.year = int(proc["year"])
            for key in (
                "trail_resolution_m",
                "density_radius_m",
                "max_density_radius_m",
                "continuous_scale_m",
                "categorical_scale_m",
            ):
                if key in proc:
                    setattr(self.processing, key, float(proc[key]))
            if "tile_scale" in proc:
                self.processing.tile_scale = int(proc["tile_scale"])
            if "unmatched_ecotypes" in proc:
                self.processing.unmatched_ecotypes = proc["unmatched_ecotypes"]

        if "export" in data:
            export = data["export"]
            for key in (
                "destination",
                "output_dir",
                "prefix",
                "continuous_description",
                "categorical_description",
            ):
                if key in export:
                    setattr(self.export, key, export[key])
            if "max_workers" in export:
                self.export.max_workers = int(export["max_workers"])

        if "minio" in data:
            minio = data["minio"]
            if "endpoint" in minio:
                self.minio.endpoint = minio["endpoint"]
            if "secure" in minio:
                self.minio.secure = bool(minio["secure"])
            if "bucket_exports" in minio:
                self.minio.bucket_exports = minio["bucket_exports"]

    def _load_from_env(self) -> None:
        """Override configuration from environment variables."""
        # STAC
        if url := os.getenv("STAC_CATALOG_URL"):
            self.stac.catalog_url = url
        if cloud := os.getenv("STAC_MAX_CLOUD_COVER"):
            self.stac.max_cloud_cover = float(cloud)

        # Assets
        if root := os.getenv("TRAILCOV_ASSET_ROOT"):
            self.assets.root = root
        if dem_source := os.getenv("DEM_SOURCE"):
            self.assets.dem_source = dem_source

        # Processing
        if year := os.getenv("TRAILCOV_YEAR"):
            self.processing.year = int(year)
        if radius := os.getenv("TRAIL_DENSITY_RADIUS_M"):
            self.processing.density_radius_m = float(radius)

        # Export
        if destination := os.getenv("EXPORT_DESTINATION"):
            self.export.destination = destination
        if output_dir := os.getenv("EXPORT_DIR"):
            self.export.output_dir = output_dir

        # MinIO
        if endpoint := os.getenv("MINIO_ENDPOINT"):
            self.minio.endpoint = endpoint
        if access_key := os.getenv("MINIO_ACCESS_KEY"):
            self.minio.access_key = access_key
        if secret_key := os.getenv("MINIO_SECRET_KEY"):
            self.minio.secret_key = secret_key
        if secure := os.getenv("MINIO_SECURE"):
            self.minio.secure = secure.lower() in ("true", "1", "yes")
        if bucket := os.getenv("MINIO_BUCKET_EXPORTS"):
            self.minio.bucket_exports = bucket


# Global config instance
_config: Config | None = None


def get_config() -> Config:
    """Get or create the global configuration instance."""
    global _config
    if _config is None:
        config_dir = Path(__file__).parent.parent / "config"
        _config = Config.load(config_dir)
    return _config


def reload_config(config_dir: Path | None = None) -> Config:
    """Reload configuration (useful for testing)."""
    global _config
    _config = Config.load(config_dir)
    return _config
