from __future__ import annotations

import os
from pathlib import Path

from pydantic import BaseModel


# ---------------------------
# Paths
# ---------------------------

PROJECT_ROOT = Path(__file__).resolve().parents[1]

DATA_DIR = Path(os.getenv("ANIME_RANKER_DATA_DIR", str(PROJECT_ROOT / "data")))
RANKINGS_DIR = DATA_DIR / "rankings"   # local cache, one JSON file per user
BACKUP_DIR = DATA_DIR / "backups"


# ---------------------------
# AniList endpoints
# ---------------------------

ANILIST_GRAPHQL_URL = os.getenv("ANILIST_GRAPHQL_URL", "https://graphql.anilist.co")

# Optional server-side ranking store (GET/POST {base}/api/rankings)
RANKINGS_API_URL = os.getenv("RANKINGS_API_URL", "")

# Name of the "main" completed list; custom lists duplicate entries
COMPLETED_LIST_NAME = "Completed"


# ---------------------------
# HTTP hardening
# ---------------------------

HTTP_CONNECT_TIMEOUT = 5.0
HTTP_READ_TIMEOUT = 20.0

HTTP_USER_AGENT = "anime-ranker/1.0"


# ---------------------------
# Rate limiting
# ---------------------------

# AniList is degraded to ~30 req/min; stay below it
RATE_LIMIT_MAX_REQUESTS = int(os.getenv("RATE_LIMIT_MAX_REQUESTS", "25"))
RATE_LIMIT_WINDOW_MS = 60_000
RATE_LIMIT_MIN_DELAY_MS = int(os.getenv("RATE_LIMIT_MIN_DELAY_MS", "2500"))
RATE_LIMIT_WINDOW_PADDING_MS = 100

DEFAULT_RETRY_AFTER_SECONDS = 60


# ---------------------------
# Sync
# ---------------------------

BATCH_SIZE = 10


# ---------------------------
# Scoring
# ---------------------------

DEFAULT_MIN_SCORE = 10
DEFAULT_MAX_SCORE = 100


# ---------------------------
# Persistence
# ---------------------------

SAVE_DEBOUNCE_MS = int(os.getenv("SAVE_DEBOUNCE_MS", "2000"))

# Fallbacks used when a persisted marker/folder lacks fields
DEFAULT_MARKER_RATING = 50
DEFAULT_MARKER_LABEL = "Rating Marker"
DEFAULT_FOLDER_LABEL = "New Folder"


# ---------------------------
# Pydantic models shared around the app
# ---------------------------

class HealthResponse(BaseModel):
    """
    Response body for GET /health.
    """

    status: str
