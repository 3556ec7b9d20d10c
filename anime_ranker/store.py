from __future__ import annotations

import asyncio
import json
import re
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Dict, List, Optional, Sequence

import httpx
from loguru import logger

from .config import (
    HTTP_CONNECT_TIMEOUT,
    HTTP_READ_TIMEOUT,
    HTTP_USER_AGENT,
    RANKINGS_DIR,
    SAVE_DEBOUNCE_MS,
)
from .models import Folder, Marker, OrderRecord, RankItem

OrderData = List[dict]


# ---------------------------
# Wire format
# ---------------------------

def to_record(item: RankItem) -> OrderRecord:
    if isinstance(item, Marker):
        return OrderRecord(type="marker", id=item.id, min_rating=item.min_rating, label=item.label)
    if isinstance(item, Folder):
        return OrderRecord(type="folder", id=item.id, label=item.label, is_expanded=item.is_expanded)
    return OrderRecord(type="anime", id=item.id, parent_folder_id=item.parent_folder_id)


def serialize_items(items: Sequence[RankItem]) -> OrderData:
    """
    Persisted form of the list: ids plus marker/folder metadata, in order.
    Media payloads and derived scores are never written.
    """
    return [to_record(item).to_wire() for item in items]


# ---------------------------
# Stores
# ---------------------------

class RankingStore(ABC):
    """Keyed by user identity; ``load`` returns ``None`` when nothing is saved."""

    @abstractmethod
    def load(self, user_id: str) -> Optional[OrderData]:
        ...

    @abstractmethod
    def save(self, user_id: str, data: OrderData) -> bool:
        ...

    def clear(self, user_id: str) -> None:
        pass


class MemoryStore(RankingStore):
    def __init__(self) -> None:
        self._data: Dict[str, OrderData] = {}
        self.writes = 0

    def load(self, user_id: str) -> Optional[OrderData]:
        data = self._data.get(str(user_id))
        return json.loads(json.dumps(data)) if data is not None else None

    def save(self, user_id: str, data: OrderData) -> bool:
        self._data[str(user_id)] = json.loads(json.dumps(data))
        self.writes += 1
        return True

    def clear(self, user_id: str) -> None:
        self._data.pop(str(user_id), None)


_SAFE_NAME_RE = re.compile(r"[^A-Za-z0-9_.-]+")


class JsonFileStore(RankingStore):
    """Local cache: one ``<user>.json`` file per user under ``directory``."""

    def __init__(self, directory: Path = RANKINGS_DIR):
        self.directory = Path(directory)

    def _path(self, user_id: str) -> Path:
        return self.directory / f"{_SAFE_NAME_RE.sub('_', str(user_id))}.json"

    def load(self, user_id: str) -> Optional[OrderData]:
        path = self._path(user_id)
        if not path.exists():
            return None
        try:
            with path.open("r", encoding="utf-8") as f:
                return json.load(f)
        except (OSError, ValueError) as e:
            logger.warning("Failed to read saved order from {}: {}", path, e)
            return None

    def save(self, user_id: str, data: OrderData) -> bool:
        path = self._path(user_id)
        try:
            path.parent.mkdir(parents=True, exist_ok=True)
            with path.open("w", encoding="utf-8") as f:
                json.dump(data, f, ensure_ascii=False)
        except OSError as e:
            logger.warning("Failed to write saved order to {}: {}", path, e)
            return False
        return True

    def clear(self, user_id: str) -> None:
        self._path(user_id).unlink(missing_ok=True)


class RemoteRankingStore(RankingStore):
    """
    Server-side row behind ``{base_url}/api/rankings``.  The session cookie /
    bearer token is opaque here.  Failures are logged and reported as
    ``None`` / ``False``, never raised.
    """

    def __init__(self, base_url: str, token: str = "", http: Optional[httpx.Client] = None):
        self.url = base_url.rstrip("/") + "/api/rankings"
        self.token = token
        self._http = http or httpx.Client(
            timeout=httpx.Timeout(HTTP_READ_TIMEOUT, connect=HTTP_CONNECT_TIMEOUT),
            headers={"User-Agent": HTTP_USER_AGENT},
        )

    def _headers(self) -> Dict[str, str]:
        return {"Authorization": f"Bearer {self.token}"} if self.token else {}

    def load(self, user_id: str) -> Optional[OrderData]:
        try:
            r = self._http.get(self.url, headers=self._headers())
            if r.status_code >= 400:
                logger.warning("Rankings fetch: HTTP {} for user {}", r.status_code, user_id)
                return None
            payload = r.json()
        except (httpx.HTTPError, ValueError) as e:
            logger.warning("Failed to fetch rankings from server: {}", e)
            return None
        if not isinstance(payload, dict):
            logger.warning(
                "Rankings fetch: expected a JSON object for user {}, got {}", user_id, type(payload).__name__
            )
            return None
        return payload.get("data")

    def save(self, user_id: str, data: OrderData) -> bool:
        try:
            r = self._http.post(self.url, json={"data": data}, headers=self._headers())
        except httpx.HTTPError as e:
            logger.warning("Failed to save rankings to server: {}", e)
            return False
        if r.status_code >= 400:
            logger.warning("Rankings save: HTTP {} for user {}", r.status_code, user_id)
            return False
        return True


class LayeredStore(RankingStore):
    """Server first, local cache second.  Writes go to both."""

    def __init__(self, primary: RankingStore, cache: RankingStore):
        self.primary = primary
        self.cache = cache

    def load(self, user_id: str) -> Optional[OrderData]:
        data = self.primary.load(user_id)
        if data is not None:
            return data
        return self.cache.load(user_id)

    def save(self, user_id: str, data: OrderData) -> bool:
        cached = self.cache.save(user_id, data)
        return self.primary.save(user_id, data) and cached

    def clear(self, user_id: str) -> None:
        self.cache.clear(user_id)
        self.primary.clear(user_id)


# ---------------------------
# Debounced writes
# ---------------------------

class DebouncedSaver:
    """
    Coalesce rapid successive list changes into one store write after
    ``delay_ms`` of quiet.  Each :meth:`schedule` restarts the timer.
    Outside a running event loop there is nothing to wait on, so
    :meth:`schedule` writes straight through.

    A write still waiting on its timer when the loop shuts down is kept in
    memory (:attr:`pending` stays true) but not written.  Owners must call
    :meth:`flush` (or :meth:`RankingSession.flush`) before the loop exits.
    """

    def __init__(self, store: RankingStore, user_id: str, delay_ms: int = SAVE_DEBOUNCE_MS):
        self.store = store
        self.user_id = user_id
        self.delay = delay_ms / 1000.0
        self._pending: Optional[OrderData] = None
        self._task: Optional[asyncio.Task] = None

    @property
    def pending(self) -> bool:
        return self._pending is not None

    def schedule(self, items: Sequence[RankItem]) -> None:
        self._pending = serialize_items(items)
        self.cancel_timer()
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            self._write()
            return
        self._task = loop.create_task(self._wait_and_write())

    async def _wait_and_write(self) -> None:
        await asyncio.sleep(self.delay)
        self._write()

    def _write(self) -> bool:
        data, self._pending = self._pending, None
        if data is None:
            return True
        ok = self.store.save(self.user_id, data)
        if not ok:
            logger.warning("Saving ranking order for user {} failed", self.user_id)
        return ok

    def cancel_timer(self) -> None:
        if self._task is not None and not self._task.done():
            self._task.cancel()
        self._task = None

    def cancel(self) -> None:
        """Drop the pending write entirely."""
        self.cancel_timer()
        self._pending = None

    def flush(self) -> bool:
        """Write the pending list now (if any)."""
        self.cancel_timer()
        return self._write()


# ---------------------------
# Backups
# ---------------------------

def export_backup(data: OrderData, path: Path) -> Path:
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    with path.open("w", encoding="utf-8") as f:
        json.dump(data, f, ensure_ascii=False, indent=2)
    logger.info("Exported {} ranking items to {}", len(data), path)
    return path


def import_backup(path: Path) -> Optional[OrderData]:
    """Read a backup file; anything but a JSON array is rejected with ``None``."""
    path = Path(path)
    try:
        with path.open("r", encoding="utf-8") as f:
            parsed = json.load(f)
    except (OSError, ValueError) as e:
        logger.warning("Invalid backup file {}: {}", path, e)
        return None
    if not isinstance(parsed, list):
        logger.warning("Invalid backup format in {}: expected a JSON array", path)
        return None
    return parsed
