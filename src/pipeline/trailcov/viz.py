"""PNG previews of intermediate layers for visual inspection."""

from dataclasses import dataclass, field
from pathlib import Path

import numpy as np
import structlog
import xarray as xr
from matplotlib.colors import LinearSegmentedColormap, Normalize
from PIL import Image

from trailcov.raster.ecotypes import ECOSYSTEM_PALETTE

logger = structlog.get_logger()


@dataclass
class VisParams:
    """Linear min/max stretch and an optional colour palette."""

    min: float = 0.0
    max: float = 1.0
    palette: list[str] = field(default_factory=list)


DEFAULT_VIS: dict[str, VisParams] = {
    "ecoTypes": VisParams(1, 10, ECOSYSTEM_PALETTE),
    "ndvi": VisParams(0, 1, ["white", "yellow", "green"]),
    "elevation": VisParams(0, 400),
    "trailDens": VisParams(0, 0.5, ["white", "blue", "black"]),
}

_DEFAULT_PALETTE = ["black", "white"]


def colourize(values: np.ndarray, vis: VisParams, name: str = "preview") -> np.ndarray:
    """Map values to RGBA using the stretch and palette; NaN is transparent."""
    cmap = LinearSegmentedColormap.from_list(name, vis.palette or _DEFAULT_PALETTE, N=256)
    cmap.set_bad(alpha=0.0)
    norm = Normalize(vmin=vis.min, vmax=vis.max, clip=True)
    return cmap(norm(np.ma.masked_invalid(values)), bytes=True)


def render_preview(layer: xr.DataArray, path: Path, vis: VisParams | None = None) -> Path:
    """Write a colourised PNG of a single-band layer.

    Args:
        layer: 2D layer.
        path: Output PNG path.
        vis: Visualisation parameters; defaults by layer name.

    Returns:
        Path to the PNG.
    """
    vis = vis or DEFAULT_VIS.get(str(layer.name), VisParams())
    values = np.asarray(layer.values, dtype=np.float64)
    if values.ndim != 2:
        raise ValueError(f"Preview needs a 2D layer, got shape {values.shape}")

    path.parent.mkdir(parents=True, exist_ok=True)
    Image.fromarray(colourize(values, vis, name=str(layer.name))).save(path, "PNG", optimize=True)

    logger.info("Preview written", layer=str(layer.name), path=str(path))
    return path
