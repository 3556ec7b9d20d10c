"""
Ranking list state as an explicit reducer.

:func:`reduce` is a pure ``(state, action) -> state`` transition built on the
list operations in :mod:`anime_ranker.ordered_list`.  Persistence is not part
of the transition: :class:`RankingSession` dispatches actions, rebuilds the
secondary index and the derived scores once per transition, and hands the new
list to a debounced store writer.
"""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from typing import List, Optional, Sequence

from loguru import logger
from pydantic import ValidationError

from . import ordered_list as ol
from .config import (
    DEFAULT_FOLDER_LABEL,
    DEFAULT_MARKER_LABEL,
    DEFAULT_MARKER_RATING,
    DEFAULT_MAX_SCORE,
    DEFAULT_MIN_SCORE,
    SAVE_DEBOUNCE_MS,
)
from .formatting import format_score
from .models import (
    CalculatedScore,
    Folder,
    Marker,
    MediaListEntry,
    OrderRecord,
    RankItem,
    ScoreFormat,
    SyncItem,
    TitleFormat,
    entry_from_source,
)
from .scoring import score_segments
from .store import DebouncedSaver, RankingStore


# ---------------------------
# State & actions
# ---------------------------

@dataclass(frozen=True)
class RankingState:
    items: List[RankItem] = field(default_factory=list)
    title_format: TitleFormat = TitleFormat.ENGLISH
    is_loaded: bool = False


@dataclass(frozen=True)
class SetItems:
    items: List[RankItem]


@dataclass(frozen=True)
class Reorder:
    from_index: int
    to_index: int


@dataclass(frozen=True)
class AddMarker:
    marker: Marker
    at_index: int


@dataclass(frozen=True)
class AddFolder:
    folder: Folder
    at_index: int = 0


@dataclass(frozen=True)
class RemoveItem:
    item_id: str


@dataclass(frozen=True)
class UpdateMarker:
    marker_id: str
    min_rating: int
    label: str


@dataclass(frozen=True)
class RenameFolder:
    folder_id: str
    label: str


@dataclass(frozen=True)
class ToggleFolder:
    folder_id: str


@dataclass(frozen=True)
class MoveBlock:
    """Drag of a folder header: the folder and its entries move together."""

    folder_id: str
    target_index: int


@dataclass(frozen=True)
class MoveToFolder:
    entry_id: str
    folder_id: str


@dataclass(frozen=True)
class RemoveFromFolder:
    entry_id: str


@dataclass(frozen=True)
class ReorderWithinFolder:
    folder_id: str
    from_index: int
    to_index: int


@dataclass(frozen=True)
class SetTitleFormat:
    title_format: TitleFormat


def reduce(state: RankingState, action) -> RankingState:
    """
    Apply one action.  List operation errors (``IndexOutOfRange``,
    ``UnknownItem``, ...) propagate and leave ``state`` untouched.
    """
    items = state.items

    if isinstance(action, SetItems):
        return replace(state, items=ol.heal_orphans(action.items), is_loaded=True)
    if isinstance(action, Reorder):
        return replace(state, items=ol.reorder(items, action.from_index, action.to_index))
    if isinstance(action, AddMarker):
        return replace(state, items=ol.insert_at(items, action.marker, action.at_index))
    if isinstance(action, AddFolder):
        return replace(state, items=ol.insert_at(items, action.folder, action.at_index))
    if isinstance(action, RemoveItem):
        return replace(state, items=ol.remove_by_id(items, action.item_id))
    if isinstance(action, UpdateMarker):
        return replace(state, items=ol.update_marker(items, action.marker_id, action.min_rating, action.label))
    if isinstance(action, RenameFolder):
        return replace(state, items=ol.rename_folder(items, action.folder_id, action.label))
    if isinstance(action, ToggleFolder):
        return replace(state, items=ol.toggle_folder(items, action.folder_id))
    if isinstance(action, MoveBlock):
        block = ol.folder_block_ids(items, action.folder_id)
        return replace(state, items=ol.move_block(items, block, action.target_index))
    if isinstance(action, MoveToFolder):
        return replace(state, items=ol.set_parent(items, action.entry_id, action.folder_id))
    if isinstance(action, RemoveFromFolder):
        return replace(state, items=ol.set_parent(items, action.entry_id, None))
    if isinstance(action, ReorderWithinFolder):
        return replace(
            state,
            items=ol.reorder_within_folder(items, action.folder_id, action.from_index, action.to_index),
        )
    if isinstance(action, SetTitleFormat):
        return replace(state, title_format=TitleFormat(action.title_format))
    raise TypeError(f"Unknown action {type(action).__name__}")


# ---------------------------
# Hydration
# ---------------------------

def seed_items(entries: Sequence[MediaListEntry]) -> List[RankItem]:
    """Default order: prior score, highest first (stable for ties)."""
    ordered = sorted(entries, key=lambda e: e.score, reverse=True)
    return [entry_from_source(e) for e in ordered]


def _media_id_from(item_id: str) -> Optional[int]:
    try:
        return int(item_id.replace("anime-", "", 1))
    except ValueError:
        return None


def hydrate(entries: Sequence[MediaListEntry], saved: Optional[list]) -> List[RankItem]:
    """
    Rebuild the list from a saved order, reconciled against the current
    source entries:

    - no saved order -> :func:`seed_items`;
    - saved entries no longer upstream are dropped;
    - upstream entries missing from the saved order are appended;
    - malformed saved data -> warning and :func:`seed_items`.
    """
    if not saved:
        return seed_items(entries)

    by_media = {e.media_id: e for e in entries}
    items: List[RankItem] = []
    seen_ids = set()
    used_media = set()

    try:
        for raw in saved:
            rec = OrderRecord.model_validate(raw)
            if rec.id in seen_ids:
                continue
            if rec.type == "marker":
                items.append(
                    Marker(
                        id=rec.id,
                        min_rating=DEFAULT_MARKER_RATING if rec.min_rating is None else rec.min_rating,
                        label=rec.label or DEFAULT_MARKER_LABEL,
                    )
                )
            elif rec.type == "folder":
                items.append(
                    Folder(
                        id=rec.id,
                        label=rec.label or DEFAULT_FOLDER_LABEL,
                        is_expanded=True if rec.is_expanded is None else rec.is_expanded,
                    )
                )
            else:
                media_id = _media_id_from(rec.id)
                src = by_media.get(media_id) if media_id is not None else None
                if src is None or media_id in used_media:
                    continue
                items.append(entry_from_source(src, parent_folder_id=rec.parent_folder_id))
                used_media.add(media_id)
            seen_ids.add(rec.id)
    except (ValidationError, TypeError, AttributeError) as e:
        logger.warning("Invalid saved order ({}); falling back to score order", e)
        return seed_items(entries)

    appended = 0
    for src in entries:
        if src.media_id not in used_media:
            items.append(entry_from_source(src))
            used_media.add(src.media_id)
            appended += 1

    logger.info(
        "Hydrated {} items from saved order ({} new entries appended)", len(items), appended
    )
    return ol.heal_orphans(items)


# ---------------------------
# Session
# ---------------------------

class RankingSession:
    """
    One user's ranking list for the lifetime of a session.

    Scores and the :class:`~anime_ranker.ordered_list.ListIndex` are rebuilt
    after each successful transition, never on read.
    """

    def __init__(
        self,
        store: RankingStore,
        user_id: str,
        title_format: TitleFormat = TitleFormat.ENGLISH,
        score_format: ScoreFormat = ScoreFormat.POINT_100,
        min_score: int = DEFAULT_MIN_SCORE,
        max_score: int = DEFAULT_MAX_SCORE,
        debounce_ms: int = SAVE_DEBOUNCE_MS,
    ):
        self.store = store
        self.user_id = str(user_id)
        self.score_format = ScoreFormat(score_format)
        self.min_score = min_score
        self.max_score = max_score
        self.saver = DebouncedSaver(store, self.user_id, delay_ms=debounce_ms)
        self.state = RankingState(title_format=TitleFormat(title_format))
        self._refresh()

    # ---- derived views ----

    @property
    def items(self) -> List[RankItem]:
        return self.state.items

    def _refresh(self) -> None:
        self.index = ol.ListIndex.build(self.state.items, self.min_score, self.max_score)
        self.scores: List[CalculatedScore] = score_segments(self.index.segments, self.state.title_format)

    def display_scores(self) -> List[str]:
        return [format_score(s.score, self.score_format) for s in self.scores]

    def sync_items(self) -> List[SyncItem]:
        return [SyncItem(media_id=s.media_id, score=s.score, title=s.title) for s in self.scores]

    # ---- transitions ----

    def dispatch(self, action) -> RankingState:
        new_state = reduce(self.state, action)
        list_changed = new_state.items is not self.state.items
        self.state = new_state
        self._refresh()
        if list_changed:
            self.saver.schedule(new_state.items)
        return new_state

    def load(self, entries: Sequence[MediaListEntry]) -> RankingState:
        saved = self.store.load(self.user_id)
        return self.dispatch(SetItems(hydrate(entries, saved)))

    def reset(self, entries: Sequence[MediaListEntry]) -> RankingState:
        """Discard the saved order (markers and folders included) and reseed."""
        self.saver.cancel()
        self.store.clear(self.user_id)
        logger.info("Resetting ranking order for user {} from {} entries", self.user_id, len(entries))
        return self.dispatch(SetItems(seed_items(entries)))

    def add_marker_preset(self, min_rating: int, label: str, marker_id: str) -> RankingState:
        """Add a marker where its threshold falls in the current order."""
        at = ol.suggest_marker_index(self.items, min_rating, self.min_score, self.max_score)
        return self.dispatch(AddMarker(Marker(id=marker_id, min_rating=min_rating, label=label), at))

    def flush(self) -> bool:
        """Write any debounced change now; call before shutting the event loop down."""
        return self.saver.flush()
