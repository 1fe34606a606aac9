"""Merging of remote albums that share a title.

An account's albums are scanned page by page. The first album seen with a
given title becomes that title's survivor; each later album with the same
title is merged with the current survivor, and the album with more items
survives the merge. Items of the losing album are added to the survivor in
chunks. The loser itself is left untouched and reported as a deletion
candidate, since the Photos Library API cannot delete albums.
"""

import logging
from collections.abc import AsyncIterator
from typing import Protocol

from gphotos_uploader.models import (
    Album,
    AlbumPage,
    DedupeReport,
    JobResult,
    MediaItem,
    MediaItemPage,
    MergeOutcome,
)

logger = logging.getLogger(__name__)

# Largest page of albums the service returns
ALBUM_PAGE_SIZE = 50

# Largest number of ids accepted by one batchAddMediaItems call
MAX_ITEMS_PER_BATCH = 50


class DedupeAbortedError(Exception):
    """Raised when a remote error stops an account's scan part way.

    Carries the report of the merges completed before the error, whose
    losing albums still have to be deleted.
    """

    def __init__(self, report: DedupeReport, cause: Exception) -> None:
        super().__init__(
            f"Deduplication of {report.account} aborted after "
            f"{len(report.merges)} merge(s): {cause}"
        )
        self.report = report


class AlbumService(Protocol):
    """Remote capabilities the deduplicator relies on."""

    async def list_albums(self, page_size: int = 50, page_token: str = "") -> AlbumPage: ...

    async def get_album(self, album_id: str) -> Album: ...

    async def search_media_items(self, album_id: str, page_token: str = "") -> MediaItemPage: ...

    async def add_to_album(self, album_id: str, media_item_ids: list[str]) -> None: ...


async def iter_album_pages(
    service: AlbumService, page_size: int = ALBUM_PAGE_SIZE
) -> AsyncIterator[list[Album]]:
    """Yield the account's albums one page at a time.

    Stops after the first page whose next page token is empty. Empty pages
    are yielded like any other.
    """
    token = ""
    while True:
        page = await service.list_albums(page_size, token)
        yield page.albums
        token = page.next_page_token
        if not token:
            return


async def list_album_media_items(service: AlbumService, album_id: str) -> list[MediaItem]:
    """Fetch every media item of an album, following its own page cursor."""
    items: list[MediaItem] = []
    token = ""
    while True:
        page = await service.search_media_items(album_id, token)
        items.extend(page.media_items)
        token = page.next_page_token
        if not token:
            return items


async def add_media_items_in_chunks(
    service: AlbumService,
    album_id: str,
    media_item_ids: list[str],
    chunk_size: int = MAX_ITEMS_PER_BATCH,
) -> int:
    """Add media items to an album with sequential calls of bounded size.

    The first failing call stops the migration and its error propagates;
    chunks already added stay in the album.

    Returns:
        Number of ids sent
    """
    if chunk_size < 1:
        raise ValueError("chunk_size must be positive")
    for start in range(0, len(media_item_ids), chunk_size):
        await service.add_to_album(album_id, media_item_ids[start:start + chunk_size])
    return len(media_item_ids)


def choose_survivor(
    first: tuple[Album, list[MediaItem]], second: tuple[Album, list[MediaItem]]
) -> tuple[tuple[Album, list[MediaItem]], tuple[Album, list[MediaItem]]]:
    """Pick which of two albums keeps the merged items.

    The album holding strictly more items wins. On a tie the album with the
    lower id wins, whatever order the albums were passed in.

    Returns:
        ``(survivor, loser)``
    """
    (first_album, first_items), (second_album, second_items) = first, second
    if len(first_items) != len(second_items):
        winner_is_first = len(first_items) > len(second_items)
    else:
        winner_is_first = first_album.id <= second_album.id
    return (first, second) if winner_is_first else (second, first)


class AlbumDeduplicator:
    """Finds albums sharing a title in one account and merges them."""

    def __init__(
        self,
        service: AlbumService,
        page_size: int = ALBUM_PAGE_SIZE,
        chunk_size: int = MAX_ITEMS_PER_BATCH,
    ) -> None:
        self.service = service
        self.page_size = page_size
        self.chunk_size = chunk_size

    async def merge(self, album_id: str, other_id: str) -> MergeOutcome:
        """Move the items of the smaller album into the larger one.

        Items the survivor already holds are not sent again, so the survivor
        ends up with the union of both albums.

        Args:
            album_id: Current survivor for the title
            other_id: Newly found album with the same title

        Returns:
            The merge outcome, naming the album left to delete
        """
        album = await self.service.get_album(album_id)
        other = await self.service.get_album(other_id)
        items = await list_album_media_items(self.service, album_id)
        other_items = await list_album_media_items(self.service, other_id)

        logger.info(
            f"Merging '{album.title}' ({len(items)} items) "
            f"and '{other.title}' ({len(other_items)} items)"
        )
        (survivor, survivor_items), (loser, loser_items) = choose_survivor(
            (album, items), (other, other_items)
        )

        present = {item.id for item in survivor_items}
        to_add = [item.id for item in loser_items if item.id not in present]
        migrated = await add_media_items_in_chunks(
            self.service, survivor.id, to_add, self.chunk_size
        )

        logger.info(f"Album to delete: {loser.product_url or loser.id}")
        return MergeOutcome(
            title=survivor.title,
            survivor_id=survivor.id,
            loser_id=loser.id,
            loser_url=loser.product_url,
            migrated=migrated,
        )

    async def run(self, account: str) -> DedupeReport:
        """Scan every album of the account and merge duplicates by title.

        Raises:
            DedupeAbortedError: If a remote error stops the scan. The
                merges done so far are kept in its report.
        """
        report = DedupeReport(account=account)
        try:
            await self._scan(report)
        except Exception as e:
            raise DedupeAbortedError(report, e) from e

        logger.info(
            f"Finished {account}: {len(report.merges)} merge(s) over "
            f"{report.albums_scanned} album(s)"
        )
        return report

    async def _scan(self, report: DedupeReport) -> None:
        survivors: dict[str, str] = {}

        async for albums in iter_album_pages(self.service, self.page_size):
            report.pages_fetched += 1
            for album in albums:
                survivor_id = survivors.get(album.title)
                if survivor_id is None:
                    survivors[album.title] = album.id
                else:
                    outcome = await self.merge(survivor_id, album.id)
                    survivors[album.title] = outcome.survivor_id
                    report.merges.append(outcome)
                report.albums_scanned += 1
            logger.info(f"Parsed {report.albums_scanned} albums of {report.account}")


class DedupeJob:
    """Runs an account's deduplication on the worker pool."""

    def __init__(self, account: str, service: AlbumService) -> None:
        self.account = account
        self.deduplicator = AlbumDeduplicator(service)

    @property
    def id(self) -> str:
        return self.account

    async def execute(self) -> JobResult:
        report = await self.deduplicator.run(self.account)
        return JobResult(id=self.id, value=report)
