"""Exceptions raised by the trail covariate pipeline."""


class TrailcovError(Exception):
    """Base class for pipeline errors."""


class AssetNotFoundError(TrailcovError, FileNotFoundError):
    """An asset identifier could not be resolved to a readable source."""


class EmptyInputError(TrailcovError, ValueError):
    """No trail features remain after clipping to the area of interest."""


class UnclassifiedValueError(TrailcovError, ValueError):
    """The ecosystem raster holds codes that no reclassification rule matches."""

    def __init__(self, values: list[float]):
        self.values = values
        shown = ", ".join(str(v) for v in values[:10])
        more = f" (+{len(values) - 10} more)" if len(values) > 10 else ""
        super().__init__(f"Ecosystem codes not covered by any reclassification rule: {shown}{more}")


class ExportSubmissionError(TrailcovError, RuntimeError):
    """An export job could not be submitted to its destination."""
