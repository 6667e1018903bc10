"""Table export jobs."""

from trailcov.export.jobs import (
    ExportJob,
    Exporter,
    JobState,
    LocalDestination,
    S3Destination,
    drop_geometry,
    make_destination,
)

__all__ = [
    "ExportJob",
    "Exporter",
    "JobState",
    "LocalDestination",
    "S3Destination",
    "drop_geometry",
    "make_destination",
]
