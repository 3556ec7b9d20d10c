from __future__ import annotations

import json
from typing import Any, Dict, List, Optional, Sequence, Tuple

import httpx
from loguru import logger

from .config import (
    ANILIST_GRAPHQL_URL,
    COMPLETED_LIST_NAME,
    DEFAULT_RETRY_AFTER_SECONDS,
    HTTP_CONNECT_TIMEOUT,
    HTTP_READ_TIMEOUT,
    HTTP_USER_AGENT,
)
from .errors import AniListError, AuthenticationError
from .models import MediaListEntry, SyncItem, Viewer
from .rate_limiter import RateLimiter


VIEWER_QUERY = """
query {
  Viewer {
    id
    name
    mediaListOptions {
      scoreFormat
    }
  }
}
"""

COMPLETED_LIST_QUERY = """
query ($userId: Int!) {
  MediaListCollection(userId: $userId, type: ANIME, status: COMPLETED) {
    lists {
      name
      entries {
        id
        mediaId
        score(format: POINT_100)
        media {
          id
          title {
            romaji
            english
            native
          }
          coverImage {
            large
          }
          episodes
          format
        }
      }
    }
  }
}
"""

# scoreRaw (Int, 0-100) works whatever scale the user displays
SAVE_SCORE_MUTATION = """
mutation ($mediaId: Int!, $scoreRaw: Int!) {
  SaveMediaListEntry(mediaId: $mediaId, scoreRaw: $scoreRaw) {
    id
    score
  }
}
"""


def build_batch_mutation(items: Sequence[SyncItem]) -> Tuple[str, Dict[str, int]]:
    """
    Pack one SaveMediaListEntry per item into a single aliased mutation.

    Aliases are ``update0 .. updateN-1`` and variables ``mediaId{i}`` /
    ``scoreRaw{i}``, so item ``i`` of the input maps to ``data["update{i}"]``.
    """
    var_defs = ", ".join(f"$mediaId{i}: Int!, $scoreRaw{i}: Int!" for i in range(len(items)))
    fields = "\n  ".join(
        f"update{i}: SaveMediaListEntry(mediaId: $mediaId{i}, scoreRaw: $scoreRaw{i}) {{ id score }}"
        for i in range(len(items))
    )
    query = f"mutation BatchUpdate({var_defs}) {{\n  {fields}\n}}"

    variables: Dict[str, int] = {}
    for i, item in enumerate(items):
        variables[f"mediaId{i}"] = item.media_id
        variables[f"scoreRaw{i}"] = int(round(item.score))
    return query, variables


def _parse_retry_after(value: Optional[str]) -> int:
    try:
        return max(0, int(value)) if value is not None else DEFAULT_RETRY_AFTER_SECONDS
    except ValueError:
        return DEFAULT_RETRY_AFTER_SECONDS


def _looks_like_bad_token(errors: Any) -> bool:
    text = json.dumps(errors).lower()
    return "invalid token" in text or "unauthorized" in text


def _error_payload(response: httpx.Response) -> Optional[dict]:
    try:
        payload = response.json()
    except ValueError:
        return None
    return payload if isinstance(payload, dict) else None


class AniListClient:
    """
    Minimal async GraphQL client for AniList.

    Every request passes through the shared :class:`RateLimiter`.  A 429 arms
    the limiter's lockout and the same request is re-issued; any other failure
    surfaces as :class:`AniListError` (or :class:`AuthenticationError` when the
    token is rejected).
    """

    def __init__(
        self,
        token: str,
        limiter: Optional[RateLimiter] = None,
        http: Optional[httpx.AsyncClient] = None,
        url: str = ANILIST_GRAPHQL_URL,
    ):
        self.token = token
        self.limiter = limiter or RateLimiter()
        self.url = url
        self._owns_http = http is None
        self._http = http or httpx.AsyncClient(
            timeout=httpx.Timeout(HTTP_READ_TIMEOUT, connect=HTTP_CONNECT_TIMEOUT),
            headers={"User-Agent": HTTP_USER_AGENT},
        )

    async def __aenter__(self) -> "AniListClient":
        return self

    async def __aexit__(self, *exc) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        if self._owns_http:
            await self._http.aclose()

    def _headers(self) -> Dict[str, str]:
        headers = {"Content-Type": "application/json", "Accept": "application/json"}
        if self.token:
            headers["Authorization"] = f"Bearer {self.token}"
        return headers

    async def request(self, query: str, variables: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
        body = {"query": query, "variables": variables or {}}

        while True:
            await self.limiter.throttle()
            try:
                r = await self._http.post(self.url, json=body, headers=self._headers())
            except httpx.HTTPError as e:
                raise AniListError(f"Network error: {e}") from e

            if r.status_code == 429:
                retry_after = _parse_retry_after(r.headers.get("Retry-After"))
                logger.warning("429 Too Many Requests - waiting {}s (from Retry-After header)", retry_after)
                self.limiter.notify_throttled(retry_after)
                continue

            if r.status_code in (401, 403):
                raise AuthenticationError(f"Access token rejected ({r.status_code})", status_code=r.status_code)

            payload = _error_payload(r)
            if not r.is_success:
                errors = (payload or {}).get("errors")
                if errors and _looks_like_bad_token(errors):
                    raise AuthenticationError(
                        f"Access token rejected: {json.dumps(errors)}", status_code=r.status_code
                    )
                raise AniListError(f"API request failed: {r.status_code}", status_code=r.status_code)

            if payload is None:
                raise AniListError("API returned a non-JSON body", status_code=r.status_code)

            if payload.get("errors"):
                errors = payload["errors"]
                if _looks_like_bad_token(errors):
                    raise AuthenticationError(f"Access token rejected: {json.dumps(errors)}")
                raise AniListError(
                    f"GraphQL errors: {json.dumps(errors)}",
                    status_code=r.status_code,
                    data=payload.get("data"),
                )

            return payload.get("data") or {}

    # ---------------------------
    # Typed operations
    # ---------------------------

    async def get_viewer(self) -> Viewer:
        data = await self.request(VIEWER_QUERY)
        raw = data.get("Viewer") or {}
        options = raw.get("mediaListOptions") or {}
        return Viewer(
            id=raw["id"],
            name=raw["name"],
            score_format=options.get("scoreFormat") or "POINT_100",
        )

    async def get_completed_entries(self, user_id: int) -> List[MediaListEntry]:
        """Entries of the main "Completed" list; custom lists would duplicate them."""
        data = await self.request(COMPLETED_LIST_QUERY, {"userId": user_id})
        lists = (data.get("MediaListCollection") or {}).get("lists") or []
        for lst in lists:
            if lst.get("name") == COMPLETED_LIST_NAME:
                entries = [MediaListEntry.model_validate(e) for e in lst.get("entries") or []]
                logger.info("Fetched {} completed entries for user {}", len(entries), user_id)
                return entries
        logger.warning("No '{}' list found for user {}", COMPLETED_LIST_NAME, user_id)
        return []

    async def update_score(self, media_id: int, score: int) -> None:
        await self.request(SAVE_SCORE_MUTATION, {"mediaId": media_id, "scoreRaw": int(round(score))})

    async def update_scores(self, items: Sequence[SyncItem]) -> Dict[str, Any]:
        query, variables = build_batch_mutation(items)
        return await self.request(query, variables)
