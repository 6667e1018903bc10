"""Asynchronous CSV export of result tables.

Submitting an export validates the destination right away, so credential
and bucket problems surface to the caller, then writes the table on a
worker thread. The returned ExportJob can be ignored or awaited.
"""

import io
import os
from concurrent.futures import Future, ThreadPoolExecutor
from concurrent.futures import wait as futures_wait
from enum import Enum
from pathlib import Path
from typing import Callable

import geopandas as gpd
import pandas as pd
import structlog
from botocore.exceptions import BotoCoreError, ClientError

from trailcov.config import Config, get_config
from trailcov.exceptions import ExportSubmissionError
from trailcov.storage.minio import ObjectStorage

logger = structlog.get_logger()


class JobState(str, Enum):
    """Lifecycle of an export job."""

    SUBMITTED = "submitted"
    RUNNING = "running"
    COMPLETED = "completed"
    FAILED = "failed"


def drop_geometry(frame: pd.DataFrame) -> pd.DataFrame:
    """Return the attribute table without its geometry column."""
    if isinstance(frame, gpd.GeoDataFrame):
        return pd.DataFrame(frame.drop(columns=frame.geometry.name))
    return frame.drop(columns=["geometry"], errors="ignore")


class LocalDestination:
    """Write CSV files into a local directory."""

    def __init__(self, output_dir: str | Path):
        self.output_dir = Path(output_dir)

    def validate(self) -> None:
        try:
            self.output_dir.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            raise ExportSubmissionError(f"Cannot create export directory {self.output_dir}: {e}") from e
        if not os.access(self.output_dir, os.W_OK):
            raise ExportSubmissionError(f"Export directory is not writable: {self.output_dir}")

    def location(self, description: str) -> str:
        return str(self.output_dir / f"{description}.csv")

    def write(self, table: pd.DataFrame, description: str) -> str:
        path = self.location(description)
        table.to_csv(path, index=False)
        return path


class S3Destination:
    """Upload CSV files to MinIO or S3."""

    def __init__(self, storage: ObjectStorage | None = None, prefix: str = ""):
        self.storage = storage or ObjectStorage()
        self.prefix = prefix

    def validate(self) -> None:
        try:
            self.storage.ensure_bucket()
        except (ClientError, BotoCoreError, RuntimeError) as e:
            raise ExportSubmissionError(f"Export bucket '{self.storage.bucket}' is not usable: {e}") from e

    def location(self, description: str) -> str:
        return f"s3://{self.storage.bucket}/{self.storage.export_key(description, self.prefix)}"

    def write(self, table: pd.DataFrame, description: str) -> str:
        buffer = io.BytesIO(table.to_csv(index=False).encode("utf-8"))
        self.storage.upload_fileobj(
            buffer,
            self.storage.export_key(description, self.prefix),
            content_type="text/csv",
        )
        return self.location(description)


def make_destination(
    destination: str | None = None,
    output_dir: str | Path | None = None,
    config: Config | None = None,
) -> LocalDestination | S3Destination:
    """Build the configured export destination.

    Args:
        destination: ``"local"`` or ``"s3"``, overriding the configured one.
        output_dir: Local directory, overriding the configured one.
        config: Configuration, defaults to the global one.
    """
    config = config or get_config()
    destination = destination or config.export.destination
    if destination == "local":
        return LocalDestination(output_dir or config.export.output_dir)
    if destination == "s3":
        storage = ObjectStorage(
            endpoint=config.minio.endpoint,
            access_key=config.minio.access_key,
            secret_key=config.minio.secret_key,
            secure=config.minio.secure,
            bucket=config.minio.bucket_exports,
        )
        return S3Destination(storage, prefix=config.export.prefix)
    raise ValueError(f"Unknown export destination: {destination}")


class ExportJob:
    """Handle for a submitted export."""

    def __init__(self, description: str, location: str, future: Future):
        self.description = description
        self.location = location
        self._future = future

    @property
    def state(self) -> JobState:
        if self._future.done():
            if self._future.cancelled() or self._future.exception() is not None:
                return JobState.FAILED
            return JobState.COMPLETED
        if self._future.running():
            return JobState.RUNNING
        return JobState.SUBMITTED

    def done(self) -> bool:
        return self._future.done()

    def result(self, timeout: float | None = None) -> str:
        """Block until the export finishes and return its location.

        Raises the export's exception if it failed.
        """
        return self._future.result(timeout=timeout)

    def exception(self, timeout: float | None = None) -> BaseException | None:
        return self._future.exception(timeout=timeout)

    def wait(self, timeout: float | None = None) -> JobState:
        """Block until the export finishes or the timeout passes; never raises."""
        futures_wait([self._future], timeout=timeout)
        return self.state

    def __repr__(self) -> str:
        return f"ExportJob(description={self.description!r}, state={self.state.value}, location={self.location!r})"


class Exporter:
    """Submits table exports to a destination on a thread pool."""

    def __init__(
        self,
        destination: LocalDestination | S3Destination | None = None,
        max_workers: int | None = None,
    ):
        config = get_config()
        self.destination = destination or make_destination()
        self._pool = ThreadPoolExecutor(
            max_workers=max_workers or config.export.max_workers,
            thread_name_prefix="trailcov-export",
        )

    def submit(
        self,
        table: pd.DataFrame,
        description: str,
        on_success: Callable[[ExportJob], None] | None = None,
        on_failure: Callable[[ExportJob, BaseException], None] | None = None,
    ) -> ExportJob:
        """Submit a table for CSV export.

        Args:
            table: Result table; any geometry column is dropped.
            description: Export name, used as the file name.
            on_success: Called with the job when the file is written.
            on_failure: Called with the job and the error if writing fails.

        Returns:
            ExportJob handle.

        Raises:
            ExportSubmissionError: If the destination cannot accept exports.
        """
        self.destination.validate()
        flat = drop_geometry(table)

        future = self._pool.submit(self._run, flat, description)
        job = ExportJob(description, self.destination.location(description), future)

        def _notify(_: Future) -> None:
            error = future.exception()
            try:
                if error is None:
                    if on_success:
                        on_success(job)
                elif on_failure:
                    on_failure(job, error)
            except Exception:
                logger.exception("Export callback failed", description=description)

        future.add_done_callback(_notify)
        logger.info("Submitted export", description=description, location=job.location, rows=len(flat))
        return job

    def _run(self, table: pd.DataFrame, description: str) -> str:
        try:
            location = self.destination.write(table, description)
        except Exception as e:
            logger.error("Export failed", description=description, error=str(e))
            raise
        logger.info("Export complete", description=description, location=location, rows=len(table))
        return location

    def shutdown(self, wait: bool = True) -> None:
        self._pool.shutdown(wait=wait)

    def __enter__(self) -> "Exporter":
        return self

    def __exit__(self, *args) -> None:
        self.shutdown(wait=True)
