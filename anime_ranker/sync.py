"""
Push derived scores to AniList in aliased batches.

Each chunk of ``BATCH_SIZE`` items is first tried as one combined mutation.
The outcome of that attempt is explicit (:class:`AllSucceeded` or
:class:`PartialOrFullFailure`); on failure the driver falls back to one
request per affected item.  Rate-limit retries happen inside
:meth:`AniListClient.request`, so they are invisible here apart from latency.

:func:`sync_scores` never raises: every failure ends up in the returned
:class:`SyncResult`.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Callable, List, Optional, Sequence, Union

import httpx
from loguru import logger

from .anilist import AniListClient
from .config import BATCH_SIZE
from .errors import AniListError, AuthenticationError
from .models import CalculatedScore, SyncItem, SyncProgress, SyncResult
from .rate_limiter import RateLimiter

ProgressCallback = Callable[[SyncProgress], None]


@dataclass
class IndexedItem:
    """A sync item plus its absolute position in the whole run."""

    index: int
    item: SyncItem


@dataclass
class AllSucceeded:
    count: int


@dataclass
class PartialOrFullFailure:
    items_to_retry: List[IndexedItem] = field(default_factory=list)
    error: str = ""


BatchOutcome = Union[AllSucceeded, PartialOrFullFailure]


def chunk_items(items: Sequence[SyncItem], batch_size: int = BATCH_SIZE) -> List[List[IndexedItem]]:
    if batch_size < 1:
        raise ValueError("batch_size must be >= 1")
    return [
        [IndexedItem(index=start + offset, item=it) for offset, it in enumerate(items[start:start + batch_size])]
        for start in range(0, len(items), batch_size)
    ]


def to_sync_items(scores: Sequence[CalculatedScore]) -> List[SyncItem]:
    return [SyncItem(media_id=s.media_id, score=s.score, title=s.title) for s in scores]


def _emit(on_progress: Optional[ProgressCallback], progress: SyncProgress) -> None:
    if on_progress is None:
        return
    try:
        on_progress(progress)
    except Exception as e:
        logger.warning("Progress callback failed: {}", e)


async def attempt_batch(client: AniListClient, chunk: Sequence[IndexedItem]) -> BatchOutcome:
    """
    One combined request for ``chunk``.  When AniList answers with partial
    data, only the aliases that came back empty are handed back for retry.
    """
    try:
        await client.update_scores([c.item for c in chunk])
    except AuthenticationError:
        raise
    except AniListError as e:
        retry = list(chunk)
        if e.data:
            retry = [c for i, c in enumerate(chunk) if not e.data.get(f"update{i}")]
        return PartialOrFullFailure(items_to_retry=retry, error=str(e))
    return AllSucceeded(count=len(chunk))


async def sync_scores(
    items: Sequence[SyncItem],
    client: AniListClient,
    on_progress: Optional[ProgressCallback] = None,
    batch_size: int = BATCH_SIZE,
) -> SyncResult:
    """Push ``items`` through ``client`` chunk by chunk, strictly sequentially."""
    total = len(items)
    result = SyncResult()

    if not client.token:
        logger.error("Sync aborted: no access token")
        return SyncResult(succeeded=0, failed=total, errors=["No access token available; please log in again."])

    try:
        chunks = chunk_items(items, batch_size)
        logger.info("Syncing {} scores in {} batches of up to {}", total, len(chunks), batch_size)

        for b, chunk in enumerate(chunks):
            _emit(
                on_progress,
                SyncProgress(
                    current=chunk[0].index + 1,
                    total=total,
                    current_title=", ".join(c.item.title for c in chunk),
                    batch_info=f"Batch {b + 1}/{len(chunks)}",
                ),
            )

            outcome = await attempt_batch(client, chunk)
            if isinstance(outcome, AllSucceeded):
                result.succeeded += outcome.count
                logger.info("Batch {}/{} completed ({} items)", b + 1, len(chunks), outcome.count)
                continue

            result.succeeded += len(chunk) - len(outcome.items_to_retry)
            logger.warning(
                "Batch {} failed, falling back to {} individual updates: {}",
                b + 1, len(outcome.items_to_retry), outcome.error,
            )
            for indexed in outcome.items_to_retry:
                _emit(
                    on_progress,
                    SyncProgress(current=indexed.index + 1, total=total, current_title=indexed.item.title),
                )
                try:
                    await client.update_score(indexed.item.media_id, indexed.item.score)
                    result.succeeded += 1
                except AuthenticationError:
                    raise
                except AniListError as e:
                    result.failed += 1
                    result.errors.append(f"Failed to update {indexed.item.title}: {e}")

    except AuthenticationError as e:
        logger.error("Sync aborted, access token rejected: {}", e)
        result.failed = total - result.succeeded
        result.errors.append(f"Sync aborted: {e}")
    except Exception as e:
        logger.exception("Sync aborted by unexpected error")
        result.failed = total - result.succeeded
        result.errors.append(f"Sync aborted: {e}")

    _emit(on_progress, SyncProgress(current=total, total=total, current_title="Done!"))
    logger.info("Sync finished: {} succeeded, {} failed", result.succeeded, result.failed)
    return result


async def run_sync(
    items: Sequence[SyncItem],
    token: str,
    on_progress: Optional[ProgressCallback] = None,
    limiter: Optional[RateLimiter] = None,
    http: Optional[httpx.AsyncClient] = None,
) -> SyncResult:
    """Build a client for ``token`` and run :func:`sync_scores` with it."""
    async with AniListClient(token, limiter=limiter, http=http) as client:
        return await sync_scores(items, client, on_progress=on_progress)
