"""Trail covariate extraction: environmental rasters sampled along trail segments."""

__version__ = "0.1.0"
