"""Upload jobs executed by the worker pool."""

import asyncio
import logging
from pathlib import Path
from typing import Protocol

from gphotos_uploader.dedupe import iter_album_pages
from gphotos_uploader.models import Album, AlbumPage, JobResult, JobStatus, MediaItem
from gphotos_uploader.tracker import FileTracker
from gphotos_uploader.worker import CancelScope

logger = logging.getLogger(__name__)


class PhotosService(Protocol):
    """Remote capabilities an upload job relies on."""

    async def upload_file(self, path: Path) -> MediaItem: ...

    async def create_album(self, title: str) -> Album: ...

    async def list_albums(self, page_size: int = 50, page_token: str = "") -> AlbumPage: ...

    async def add_to_album(self, album_id: str, media_item_ids: list[str]) -> None: ...


class AlbumRegistry:
    """Get-or-create access to one account's albums by title.

    Lookups and creations share a lock, so workers racing on the same new
    title create a single album.
    """

    def __init__(self, service: PhotosService) -> None:
        self.service = service
        self._lock = asyncio.Lock()
        self._ids: dict[str, str] | None = None

    async def get_or_create(self, title: str) -> str:
        """Return the id of the album named ``title``, creating it if needed.

        When the remote already holds several albums with that title, the
        first one listed is used.
        """
        async with self._lock:
            if self._ids is None:
                self._ids = await self._load()
            album_id = self._ids.get(title)
            if album_id is None:
                album = await self.service.create_album(title)
                album_id = self._ids[title] = album.id
            return album_id

    async def _load(self) -> dict[str, str]:
        ids: dict[str, str] = {}
        async for albums in iter_album_pages(self.service):
            for album in albums:
                ids.setdefault(album.title, album.id)
        logger.debug(f"Loaded {len(ids)} existing album title(s)")
        return ids


class UploadJob:
    """Uploads one local file and files it into its album.

    The tracker is updated as soon as the upload succeeds, so a failure in
    a later step is reported without the file being uploaded again on the
    next run. Cancellation is honoured before the upload, before the album
    association and before the local delete.
    """

    def __init__(
        self,
        path: Path,
        service: PhotosService,
        file_tracker: FileTracker,
        albums: AlbumRegistry | None = None,
        album_name: str | None = None,
        delete_on_success: bool = False,
        scope: CancelScope | None = None,
    ) -> None:
        """Initialize upload job.

        Args:
            path: Local file to upload
            service: Remote photo service, shared by every job of an account
            file_tracker: Ledger of uploaded files, shared by every job
            albums: Album registry of the account; required with album_name
            album_name: Album to put the uploaded item in, if any
            delete_on_success: Remove the local file once everything succeeded
            scope: Cancellation signal polled between steps
        """
        if album_name and albums is None:
            raise ValueError("An album registry is required to upload into an album")
        self.path = path
        self.service = service
        self.file_tracker = file_tracker
        self.albums = albums
        self.album_name = album_name
        self.delete_on_success = delete_on_success
        self.scope = scope or CancelScope()

    @property
    def id(self) -> str:
        return str(self.path)

    async def execute(self) -> JobResult:
        self.scope.raise_if_cancelled()
        if self.file_tracker.is_tracked(self.path):
            logger.debug(f"Skipping {self.path.name}, already uploaded")
            return JobResult(id=self.id, status=JobStatus.ALREADY_UPLOADED)

        self.scope.raise_if_cancelled()
        item = await self.service.upload_file(self.path)
        self.file_tracker.mark_tracked(self.path)
        logger.info(f"Successfully uploaded {self.path.name}")

        if self.album_name:
            self.scope.raise_if_cancelled()
            album_id = await self.albums.get_or_create(self.album_name)
            await self.service.add_to_album(album_id, [item.id])
            logger.debug(f"Added {self.path.name} to album '{self.album_name}'")

        if self.delete_on_success:
            self.scope.raise_if_cancelled()
            self.path.unlink()
            logger.debug(f"Deleted local file {self.path}")

        return JobResult(id=self.id, status=JobStatus.UPLOADED, value=item)
