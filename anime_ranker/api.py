"""
FastAPI surface over the ranking core.

- /rankings/{user_id}: saved order in / out (ids + marker/folder metadata only),
  readable and writable only by the AniList viewer behind the bearer token
- /scores: derive scores for a posted list
- /sync: push scores to AniList with the caller's bearer token
"""

from __future__ import annotations

from functools import lru_cache
from typing import List, Optional

from fastapi import Depends, FastAPI, Header, HTTPException
from fastapi.middleware.cors import CORSMiddleware
from loguru import logger
from pydantic import BaseModel, Field

from .anilist import AniListClient
from .config import DEFAULT_MAX_SCORE, DEFAULT_MIN_SCORE, RANKINGS_API_URL, HealthResponse
from .errors import AniListError, AuthenticationError
from .formatting import format_score
from .models import CalculatedScore, RankItem, ScoreFormat, SyncItem, SyncResult, TitleFormat
from .rate_limiter import RateLimiter
from .scoring import calculate_scores
from .store import JsonFileStore, LayeredStore, RankingStore, RemoteRankingStore
from .sync import run_sync


# -----------------------
# Request / response bodies
# -----------------------

class RankingsPayload(BaseModel):
    data: Optional[List[dict]] = None


class ScoresRequest(BaseModel):
    items: List[RankItem]
    title_format: TitleFormat = TitleFormat.ENGLISH
    score_format: ScoreFormat = ScoreFormat.POINT_100
    min_score: int = Field(DEFAULT_MIN_SCORE, ge=0, le=100)
    max_score: int = Field(DEFAULT_MAX_SCORE, ge=0, le=100)


class ScoresResponse(BaseModel):
    scores: List[CalculatedScore]


class SyncRequest(BaseModel):
    items: List[SyncItem]


# -----------------------
# Dependencies
# -----------------------

@lru_cache(maxsize=1)
def get_store() -> RankingStore:
    local = JsonFileStore()
    if RANKINGS_API_URL:
        logger.info("Using server ranking store at {} with local cache", RANKINGS_API_URL)
        return LayeredStore(RemoteRankingStore(RANKINGS_API_URL), local)
    return local


def bearer_token(authorization: Optional[str] = Header(default=None)) -> str:
    if not authorization or not authorization.lower().startswith("bearer "):
        raise HTTPException(status_code=401, detail="Missing bearer token")
    token = authorization[len("bearer "):].strip()
    if not token:
        raise HTTPException(status_code=401, detail="Missing bearer token")
    return token


@lru_cache(maxsize=1)
def get_limiter() -> RateLimiter:
    """One gate for every AniList call made by this process."""
    return RateLimiter()


async def current_user(
    token: str = Depends(bearer_token),
    limiter: RateLimiter = Depends(get_limiter),
) -> str:
    """AniList viewer id behind the bearer token; rankings are scoped to it."""
    try:
        async with AniListClient(token, limiter=limiter) as client:
            viewer = await client.get_viewer()
    except AuthenticationError:
        raise HTTPException(status_code=401, detail="Invalid or expired token")
    except AniListError as e:
        logger.warning("Viewer lookup failed: {}", e)
        raise HTTPException(status_code=502, detail="Could not reach AniList")
    return str(viewer.id)


def _require_owner(user_id: str, user: str) -> None:
    if user_id != user:
        raise HTTPException(status_code=403, detail="Rankings belong to another user")


# -----------------------
# FastAPI app
# -----------------------

app = FastAPI(title="anime-ranker")
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.get("/health", response_model=HealthResponse)
def health() -> HealthResponse:
    return HealthResponse(status="healthy")


@app.get("/rankings/{user_id}")
def get_rankings(
    user_id: str,
    user: str = Depends(current_user),
    store: RankingStore = Depends(get_store),
):
    _require_owner(user_id, user)
    return {"data": store.load(user_id)}


@app.put("/rankings/{user_id}")
def put_rankings(
    user_id: str,
    payload: RankingsPayload,
    user: str = Depends(current_user),
    store: RankingStore = Depends(get_store),
):
    _require_owner(user_id, user)
    if payload.data is None:
        raise HTTPException(status_code=400, detail="Missing ranking data")
    ok = store.save(user_id, payload.data)
    if not ok:
        raise HTTPException(status_code=500, detail="Failed to save ranking data")
    return {"success": True}


@app.post("/scores", response_model=ScoresResponse)
def scores(req: ScoresRequest) -> ScoresResponse:
    calculated = calculate_scores(req.items, req.title_format, req.min_score, req.max_score)
    formatted = [
        s.model_copy(update={"display_score": format_score(s.score, req.score_format)})
        for s in calculated
    ]
    return ScoresResponse(scores=formatted)


@app.post("/sync", response_model=SyncResult)
async def sync(
    req: SyncRequest,
    token: str = Depends(bearer_token),
    limiter: RateLimiter = Depends(get_limiter),
) -> SyncResult:
    logger.info("Sync requested for {} items", len(req.items))
    return await run_sync(req.items, token, limiter=limiter)
