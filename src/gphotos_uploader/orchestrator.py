"""Glue between configuration, sessions and the worker pool."""

import logging
from collections.abc import Awaitable, Callable
from contextlib import AsyncExitStack

from gphotos_uploader.api_client import GooglePhotosClient
from gphotos_uploader.config import Config
from gphotos_uploader.dedupe import DedupeAbortedError, DedupeJob
from gphotos_uploader.models import DedupeSummary, PushSummary
from gphotos_uploader.tracker import FileTracker
from gphotos_uploader.upload import AlbumRegistry, UploadJob
from gphotos_uploader.utils import scan_folder
from gphotos_uploader.worker import CancelScope, WorkerPool

logger = logging.getLogger(__name__)

# Returns an unopened client for an account; raising aborts the run
SessionFactory = Callable[[str], Awaitable[GooglePhotosClient]]


async def _open_clients(
    stack: AsyncExitStack, accounts: list[str], session_factory: SessionFactory
) -> dict[str, GooglePhotosClient]:
    clients: dict[str, GooglePhotosClient] = {}
    for account in accounts:
        client = await session_factory(account)
        clients[account] = await stack.enter_async_context(client)
    return clients


async def run_push(
    config: Config,
    session_factory: SessionFactory,
    file_tracker: FileTracker,
    pool: WorkerPool,
    scope: CancelScope | None = None,
) -> PushSummary:
    """Upload every configured folder through the worker pool.

    Every account is authenticated before the first job runs. Each target
    is scanned, its jobs submitted, and exactly as many results drained as
    jobs were accepted before moving to the next target.

    Args:
        config: Resolved configuration
        session_factory: Provides an API client per account
        file_tracker: Shared ledger of uploaded files
        pool: Started worker pool
        scope: Cancellation signal handed to every job

    Returns:
        Aggregated counts of the run
    """
    scope = scope or CancelScope()
    summary = PushSummary()

    async with AsyncExitStack() as stack:
        clients = await _open_clients(stack, config.accounts, session_factory)
        registries = {account: AlbumRegistry(c) for account, c in clients.items()}

        for target in config.jobs:
            try:
                items = scan_folder(target)
            except OSError as e:
                logger.error(f"Failed to scan folder {target.source_folder}: {e}")
                summary.failed_targets.append(target.source_folder)
                continue

            logger.info(
                f"{len(items)} files pending to be uploaded in folder '{target.source_folder}'."
            )
            submitted = 0
            for item in items:
                await pool.submit(
                    UploadJob(
                        path=item.path,
                        service=clients[target.account],
                        file_tracker=file_tracker,
                        albums=registries[target.account],
                        album_name=item.album_name,
                        delete_on_success=target.delete_after_upload,
                        scope=scope,
                    )
                )
                submitted += 1

            for _ in range(submitted):
                result = await pool.next_result()
                summary.record(result)
                if result.ok:
                    logger.debug(f"Successfully processed {result.id}")
                else:
                    logger.error(f"Error processing {result.id}: {result.error}")
            summary.submitted += submitted

    logger.info(
        f"{summary.submitted} processed files: {summary.succeeded} successfully, "
        f"{summary.failed} with errors"
    )
    return summary


async def run_dedupe(
    config: Config, session_factory: SessionFactory, pool: WorkerPool
) -> DedupeSummary:
    """Merge duplicate albums of every configured account.

    Each account runs as one job with its own duplicate map, so the pool's
    worker count bounds how many accounts are processed at once.
    An account whose scan fails is recorded in ``failed_accounts``, and the
    merges it completed before the failure are still reported.
    """
    summary = DedupeSummary()

    async with AsyncExitStack() as stack:
        clients = await _open_clients(stack, config.accounts, session_factory)

        submitted = 0
        for account, client in clients.items():
            await pool.submit(DedupeJob(account, client))
            submitted += 1

        for _ in range(submitted):
            result = await pool.next_result()
            if result.ok:
                summary.reports.append(result.value)
            else:
                logger.error(f"Deduplication of {result.id} failed: {result.error}")
                summary.failed_accounts[result.id] = str(result.error)
                if isinstance(result.error, DedupeAbortedError):
                    summary.reports.append(result.error.report)

    logger.info(
        f"{len(summary.merges)} album(s) merged across {len(summary.reports)} account(s), "
        f"{len(summary.failed_accounts)} account(s) with errors"
    )
    return summary
