"""Exception hierarchy for the ingestion pipeline."""

from __future__ import annotations


class IngestError(Exception):
    """Base class for every error raised by card_ingest."""


class ConfigError(IngestError):
    """Invalid or inconsistent configuration."""


class BrowserLaunchError(IngestError):
    """The browser session could not be started. Always fatal."""


class NavigationError(IngestError):
    """A page navigation failed or timed out. Item-scoped."""

    def __init__(self, url: str, reason: str) -> None:
        super().__init__(f"Navigation to {url} failed: {reason}")
        self.url = url
        self.reason = reason


class UploadError(IngestError):
    """An asset upload or record upsert failed."""


class PartitionAborted(IngestError):
    """An item failure stopped a partition because continue-on-error is off."""

    def __init__(self, partition: str, cause: Exception) -> None:
        super().__init__(f"Partition {partition} aborted: {cause}")
        self.partition = partition
        self.cause = cause
