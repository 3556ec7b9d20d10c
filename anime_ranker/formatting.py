from __future__ import annotations

import math
from typing import Dict, List, NamedTuple

from .models import ScoreFormat

FULL_STAR = "★"
EMPTY_STAR = "☆"

SMILEY_LOW = "\U0001F641"   # frowning
SMILEY_MID = "\U0001F610"   # neutral
SMILEY_HIGH = "\U0001F604"  # smiling


class MarkerPreset(NamedTuple):
    value: int
    label: str


MARKER_PRESETS: Dict[ScoreFormat, List[MarkerPreset]] = {
    ScoreFormat.POINT_100: [
        MarkerPreset(90, "90+ (Masterpiece)"),
        MarkerPreset(80, "80+ (Excellent)"),
        MarkerPreset(70, "70+ (Good)"),
        MarkerPreset(60, "60+ (Decent)"),
        MarkerPreset(50, "50+ (Average)"),
    ],
    ScoreFormat.POINT_10: [
        MarkerPreset(90, "9+ (Masterpiece)"),
        MarkerPreset(80, "8+ (Excellent)"),
        MarkerPreset(70, "7+ (Good)"),
        MarkerPreset(60, "6+ (Decent)"),
    ],
    ScoreFormat.POINT_10_DECIMAL: [
        MarkerPreset(90, "9.0+ (Masterpiece)"),
        MarkerPreset(80, "8.0+ (Excellent)"),
        MarkerPreset(70, "7.0+ (Good)"),
        MarkerPreset(60, "6.0+ (Decent)"),
    ],
    ScoreFormat.POINT_5: [
        MarkerPreset(90, "5 Stars"),
        MarkerPreset(70, "4 Stars"),
        MarkerPreset(50, "3 Stars"),
        MarkerPreset(30, "2 Stars"),
    ],
    ScoreFormat.POINT_3: [
        MarkerPreset(67, "Happy"),
        MarkerPreset(34, "Neutral"),
    ],
}

_FORMAT_LABELS: Dict[ScoreFormat, str] = {
    ScoreFormat.POINT_100: "100 Point",
    ScoreFormat.POINT_10: "10 Point",
    ScoreFormat.POINT_10_DECIMAL: "10 Point Decimal",
    ScoreFormat.POINT_5: "5 Star",
    ScoreFormat.POINT_3: "Smiley",
}


def _half_up(x: float) -> int:
    return int(math.floor(x + 0.5))


def format_score(score: int, fmt: ScoreFormat = ScoreFormat.POINT_100) -> str:
    """
    Render a raw 0-100 score in the user's AniList scale.

    POINT_100 -> "85", POINT_10 -> "9", POINT_10_DECIMAL -> "8.5",
    POINT_5 -> "★★★★☆", POINT_3 -> one of three faces.
    """
    fmt = ScoreFormat(fmt)
    if fmt == ScoreFormat.POINT_10:
        return str(_half_up(score / 10))
    if fmt == ScoreFormat.POINT_10_DECIMAL:
        return f"{score / 10:.1f}"
    if fmt == ScoreFormat.POINT_5:
        stars = max(0, min(5, _half_up(score / 20)))
        return FULL_STAR * stars + EMPTY_STAR * (5 - stars)
    if fmt == ScoreFormat.POINT_3:
        if score <= 33:
            return SMILEY_LOW
        if score <= 66:
            return SMILEY_MID
        return SMILEY_HIGH
    return str(score)


def score_format_label(fmt: ScoreFormat) -> str:
    return _FORMAT_LABELS.get(ScoreFormat(fmt), str(fmt))


def marker_presets(fmt: ScoreFormat) -> List[MarkerPreset]:
    return MARKER_PRESETS.get(ScoreFormat(fmt), MARKER_PRESETS[ScoreFormat.POINT_100])
