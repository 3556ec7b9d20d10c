from __future__ import annotations

from pathlib import Path
from typing import List, Sequence

import pandas as pd

from .formatting import format_score
from .models import CalculatedScore, Entry, RankItem, ScoreFormat

PREVIEW_COLUMNS: List[str] = [
    "rank",
    "media_id",
    "title",
    "current_score",
    "new_score",
    "delta",
    "display",
]


def score_changes(
    items: Sequence[RankItem],
    scores: Sequence[CalculatedScore],
    fmt: ScoreFormat = ScoreFormat.POINT_100,
) -> pd.DataFrame:
    """
    One row per ranked entry: prior AniList score next to the derived one.
    ``scores`` must come from the same ``items`` (matched on media id).
    """
    current = {i.media_id: i.current_score for i in items if isinstance(i, Entry)}
    rows = []
    for rank, s in enumerate(scores, start=1):
        before = current.get(s.media_id, 0)
        rows.append(
            {
                "rank": rank,
                "media_id": s.media_id,
                "title": s.title,
                "current_score": int(round(before)),
                "new_score": s.score,
                "delta": s.score - int(round(before)),
                "display": format_score(s.score, fmt),
            }
        )
    return pd.DataFrame(rows, columns=PREVIEW_COLUMNS)


def changed_only(df: pd.DataFrame) -> pd.DataFrame:
    return df[df["delta"] != 0].reset_index(drop=True)


def write_preview(df: pd.DataFrame, path: Path) -> Path:
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    df.to_csv(path, index=False, encoding="utf-8")
    return path
