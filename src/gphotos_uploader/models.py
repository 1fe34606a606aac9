"""Data models for the Google Photos uploader."""

from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Any


@dataclass(frozen=True)
class MediaItem:
    """A photo or video stored in the remote library."""

    id: str
    filename: str | None = None
    product_url: str | None = None

    def __post_init__(self) -> None:
        if not self.id:
            raise ValueError("Media item id cannot be empty")


@dataclass(frozen=True)
class Album:
    """Represents a remote album. Titles are not unique."""

    id: str
    title: str
    product_url: str = ""
    media_items_count: int | None = None

    def __post_init__(self) -> None:
        """Validate album data."""
        if not self.id:
            raise ValueError("Album id cannot be empty")


@dataclass(frozen=True)
class AlbumPage:
    """One page of an album listing."""

    albums: list[Album]
    next_page_token: str = ""


@dataclass(frozen=True)
class MediaItemPage:
    """One page of an album's media items."""

    media_items: list[MediaItem]
    next_page_token: str = ""


@dataclass(frozen=True)
class UploadItem:
    """A local file selected for upload, with its target album if any."""

    path: Path
    album_name: str | None = None


class JobStatus(str, Enum):
    """Outcome of a job run by the worker pool."""

    UPLOADED = "uploaded"
    ALREADY_UPLOADED = "already_uploaded"
    COMPLETED = "completed"
    FAILED = "failed"


@dataclass(frozen=True)
class JobResult:
    """Result of a job executed by the worker pool."""

    id: str
    status: JobStatus = JobStatus.COMPLETED
    error: BaseException | None = None
    value: Any = None

    def __post_init__(self) -> None:
        """Validate job result."""
        if self.status is JobStatus.FAILED and self.error is None:
            raise ValueError("Failed job result must have an error")
        if self.status is not JobStatus.FAILED and self.error is not None:
            raise ValueError("Only failed job results may carry an error")

    @property
    def ok(self) -> bool:
        return self.error is None


@dataclass(frozen=True)
class MergeOutcome:
    """Result of merging two albums that share a title.

    The loser is left in place on the remote service; ``loser_url`` is the
    reference a user needs to delete it by hand.
    """

    title: str
    survivor_id: str
    loser_id: str
    loser_url: str
    migrated: int


@dataclass
class DedupeReport:
    """Everything one deduplication run did for one account."""

    account: str
    pages_fetched: int = 0
    albums_scanned: int = 0
    merges: list[MergeOutcome] = field(default_factory=list)

    @property
    def deletion_candidates(self) -> list[str]:
        """Product URLs of albums emptied into a survivor."""
        return [merge.loser_url for merge in self.merges]


@dataclass
class PushSummary:
    """Aggregated counts of an upload run."""

    submitted: int = 0
    succeeded: int = 0
    failed: int = 0
    already_uploaded: int = 0
    failed_targets: list[Path] = field(default_factory=list)

    def record(self, result: JobResult) -> None:
        """Account for one drained job result."""
        if result.ok:
            self.succeeded += 1
            if result.status is JobStatus.ALREADY_UPLOADED:
                self.already_uploaded += 1
        else:
            self.failed += 1


@dataclass
class DedupeSummary:
    """Aggregated outcome of a deduplication run over every account."""

    reports: list[DedupeReport] = field(default_factory=list)
    failed_accounts: dict[str, str] = field(default_factory=dict)

    @property
    def merges(self) -> list[MergeOutcome]:
        return [merge for report in self.reports for merge in report.merges]
