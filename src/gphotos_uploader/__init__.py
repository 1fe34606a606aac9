"""Google Photos Uploader - Sync local folders to Google Photos and merge duplicate albums."""

__version__ = "0.1.0"

from gphotos_uploader.api_client import GooglePhotosClient
from gphotos_uploader.dedupe import AlbumDeduplicator
from gphotos_uploader.models import Album, JobResult, JobStatus, MediaItem, MergeOutcome
from gphotos_uploader.tracker import FileTracker
from gphotos_uploader.upload import AlbumRegistry, UploadJob
from gphotos_uploader.worker import CancelScope, WorkerPool

__all__ = [
    "GooglePhotosClient",
    "AlbumDeduplicator",
    "Album",
    "JobResult",
    "JobStatus",
    "MediaItem",
    "MergeOutcome",
    "FileTracker",
    "AlbumRegistry",
    "UploadJob",
    "CancelScope",
    "WorkerPool",
]
