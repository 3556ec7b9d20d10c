"""
Position -> score derivation for a ranking list.

Without markers every entry is spread linearly between ``max_score`` (first)
and ``min_score`` (last).  Markers cut the list into segments; each segment is
spread linearly between the ceiling inherited from the marker above it and the
floor declared by the marker below it.

Segment bounds come from where markers *sit* in the list, not from sorting
their ``min_rating`` values.  A low-threshold marker placed above a
high-threshold one yields a segment whose floor exceeds its ceiling; such a
segment is scored with the same formula (it ascends) and is left as is.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import List, Sequence

import numpy as np

from .config import DEFAULT_MAX_SCORE, DEFAULT_MIN_SCORE
from .models import CalculatedScore, Entry, Marker, MediaTitle, RankItem, TitleFormat


@dataclass
class Segment:
    """A run of entries between two boundaries; ``start``/``stop`` are list positions."""

    max_score: int
    min_score: int
    start: int
    stop: int
    entries: List[Entry] = field(default_factory=list)


def get_title(title: MediaTitle, fmt: TitleFormat = TitleFormat.ROMAJI) -> str:
    fmt = TitleFormat(fmt)
    if fmt == TitleFormat.ENGLISH:
        return title.english or title.romaji
    if fmt == TitleFormat.NATIVE:
        return title.native or title.romaji
    return title.romaji


def round_half_up(values: np.ndarray) -> np.ndarray:
    # np.round is banker's rounding; 32.5 must become 33
    return np.floor(values + 0.5)


def linear_distribution(count: int, min_score: int, max_score: int) -> List[int]:
    """
    Scores for ``count`` consecutive ranks, first gets ``max_score``,
    last gets ``min_score``.  A single rank gets ``max_score``.
    """
    if count <= 0:
        return []
    if count == 1:
        return [int(max_score)]

    step = (max_score - min_score) / (count - 1)
    raw = max_score - np.arange(count, dtype="float64") * step
    return [int(s) for s in round_half_up(raw)]


def split_segments(
    items: Sequence[RankItem],
    min_score: int = DEFAULT_MIN_SCORE,
    max_score: int = DEFAULT_MAX_SCORE,
) -> List[Segment]:
    """
    Partition ``items`` at marker positions.  Folders are transparent.
    Empty segments are dropped.
    """
    segments: List[Segment] = []
    ceiling = max_score
    current = Segment(max_score=ceiling, min_score=min_score, start=0, stop=0)

    for pos, item in enumerate(items):
        if isinstance(item, Marker):
            current.stop = pos
            current.min_score = item.min_rating
            if current.entries:
                segments.append(current)
            ceiling = item.min_rating - 1
            current = Segment(max_score=ceiling, min_score=min_score, start=pos + 1, stop=pos + 1)
        elif isinstance(item, Entry):
            current.entries.append(item)

    current.stop = len(items)
    current.min_score = min_score
    if current.entries:
        segments.append(current)
    return segments


def score_segments(
    segments: Sequence[Segment],
    title_format: TitleFormat = TitleFormat.ROMAJI,
) -> List[CalculatedScore]:
    results: List[CalculatedScore] = []
    for seg in segments:
        scores = linear_distribution(len(seg.entries), seg.min_score, seg.max_score)
        for entry, score in zip(seg.entries, scores):
            results.append(
                CalculatedScore(
                    media_id=entry.media_id,
                    entry_id=entry.entry_id,
                    score=score,
                    display_score=str(score),
                    title=get_title(entry.media.title, title_format),
                )
            )
    return results


def calculate_scores(
    items: Sequence[RankItem],
    title_format: TitleFormat = TitleFormat.ROMAJI,
    min_score: int = DEFAULT_MIN_SCORE,
    max_score: int = DEFAULT_MAX_SCORE,
) -> List[CalculatedScore]:
    """
    Derive a score for every entry in ``items`` from its position.

    Markers and folders produce no score.  Never raises for a well-typed list;
    an empty list (or one without entries) yields ``[]``.
    """
    return score_segments(split_segments(items, min_score, max_score), title_format)
