"""
Whole-list transitions for the ranking list.

Every function takes the current list and returns a new one; the input is
never mutated.  Items are frozen pydantic models, so an "edit" is always a
``model_copy`` placed into a fresh list.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Dict, List, Optional, Sequence

from .config import DEFAULT_MAX_SCORE, DEFAULT_MIN_SCORE
from .errors import IndexOutOfRange, UnknownItem
from .models import Entry, Folder, Marker, RankItem
from .scoring import Segment, linear_distribution, split_segments


# ---------------------------
# Lookup helpers
# ---------------------------

def index_of(items: Sequence[RankItem], item_id: str) -> int:
    for i, item in enumerate(items):
        if item.id == item_id:
            return i
    return -1


def _require(items: Sequence[RankItem], item_id: str, kind: type, kind_name: str) -> int:
    idx = index_of(items, item_id)
    if idx < 0 or not isinstance(items[idx], kind):
        raise UnknownItem(item_id, kind_name)
    return idx


def _check_index(index: int, length: int) -> None:
    if not 0 <= index < length:
        raise IndexOutOfRange(index, length)


def entries(items: Sequence[RankItem]) -> List[Entry]:
    return [i for i in items if isinstance(i, Entry)]


def markers(items: Sequence[RankItem]) -> List[Marker]:
    return [i for i in items if isinstance(i, Marker)]


def folders(items: Sequence[RankItem]) -> List[Folder]:
    return [i for i in items if isinstance(i, Folder)]


# ---------------------------
# Core transitions
# ---------------------------

def reorder(items: Sequence[RankItem], from_index: int, to_index: int) -> List[RankItem]:
    """Move one element.  Both indices must lie in ``[0, len)``."""
    _check_index(from_index, len(items))
    _check_index(to_index, len(items))
    out = list(items)
    moved = out.pop(from_index)
    out.insert(to_index, moved)
    return out


def insert_at(items: Sequence[RankItem], item: RankItem, index: int) -> List[RankItem]:
    """Insert a marker or folder; ``index`` is clamped to ``[0, len]``."""
    if not isinstance(item, (Marker, Folder)):
        raise TypeError(f"Only markers and folders can be inserted, got {type(item).__name__}")
    if index_of(items, item.id) >= 0:
        raise ValueError(f"Duplicate item id {item.id!r}")
    out = list(items)
    out.insert(max(0, min(index, len(out))), item)
    return out


def remove_by_id(items: Sequence[RankItem], item_id: str) -> List[RankItem]:
    """
    Remove one element.  Removing a folder releases its entries
    (their ``parent_folder_id`` is cleared); entries are never deleted with it.
    """
    idx = index_of(items, item_id)
    if idx < 0:
        raise UnknownItem(item_id)

    removed = items[idx]
    out: List[RankItem] = []
    for i, item in enumerate(items):
        if i == idx:
            continue
        if (
            isinstance(removed, Folder)
            and isinstance(item, Entry)
            and item.parent_folder_id == removed.id
        ):
            item = item.model_copy(update={"parent_folder_id": None})
        out.append(item)
    return out


def folder_block_ids(items: Sequence[RankItem], folder_id: str) -> List[str]:
    """The folder id followed by the ids of every entry parented to it, in list order."""
    _require(items, folder_id, Folder, "folder")
    block = [folder_id]
    for item in items:
        if isinstance(item, Entry) and item.parent_folder_id == folder_id:
            block.append(item.id)
    return block


def move_block(items: Sequence[RankItem], block_ids: Sequence[str], target_index: int) -> List[RankItem]:
    """
    Lift ``block_ids`` out as one contiguous unit, ordered as given (for a
    folder: header first, then its members), and drop it at ``target_index``.
    When the block started before the target, the target is shifted down by
    the block length so the block lands next to the drop target.
    """
    if not block_ids:
        raise ValueError("Cannot move an empty block")
    by_id = {item.id: item for item in items}
    missing = [bid for bid in block_ids if bid not in by_id]
    if missing:
        raise UnknownItem(missing[0])

    wanted = list(dict.fromkeys(block_ids))
    block = [by_id[bid] for bid in wanted]
    moving = set(wanted)
    remaining = [item for item in items if item.id not in moving]
    first = min(index_of(items, bid) for bid in wanted)

    adjusted = target_index
    if first < target_index:
        adjusted = target_index - len(block)
    adjusted = max(0, min(adjusted, len(remaining)))

    return remaining[:adjusted] + block + remaining[adjusted:]


def set_parent(items: Sequence[RankItem], entry_id: str, folder_id: Optional[str]) -> List[RankItem]:
    """Reparent one entry; ``folder_id=None`` takes it out of its folder."""
    idx = _require(items, entry_id, Entry, "entry")
    if folder_id is not None:
        _require(items, folder_id, Folder, "folder")
    out = list(items)
    out[idx] = items[idx].model_copy(update={"parent_folder_id": folder_id})
    return out


def heal_orphans(items: Sequence[RankItem]) -> List[RankItem]:
    """Clear parent references that point at folders no longer in the list."""
    folder_ids = {f.id for f in folders(items)}
    out: List[RankItem] = []
    for item in items:
        if isinstance(item, Entry) and item.parent_folder_id and item.parent_folder_id not in folder_ids:
            item = item.model_copy(update={"parent_folder_id": None})
        out.append(item)
    return out


# ---------------------------
# Marker / folder edits
# ---------------------------

def update_marker(items: Sequence[RankItem], marker_id: str, min_rating: int, label: str) -> List[RankItem]:
    idx = _require(items, marker_id, Marker, "marker")
    out = list(items)
    # rebuilt rather than copied so min_rating is validated
    out[idx] = Marker(id=marker_id, min_rating=min_rating, label=label)
    return out


def rename_folder(items: Sequence[RankItem], folder_id: str, label: str) -> List[RankItem]:
    idx = _require(items, folder_id, Folder, "folder")
    out = list(items)
    out[idx] = items[idx].model_copy(update={"label": label})
    return out


def toggle_folder(items: Sequence[RankItem], folder_id: str) -> List[RankItem]:
    idx = _require(items, folder_id, Folder, "folder")
    out = list(items)
    out[idx] = items[idx].model_copy(update={"is_expanded": not items[idx].is_expanded})
    return out


def reorder_within_folder(
    items: Sequence[RankItem], folder_id: str, from_index: int, to_index: int
) -> List[RankItem]:
    """
    Reorder a folder's members (indices are positions inside the folder) and
    place them contiguously right after the folder header.
    """
    _require(items, folder_id, Folder, "folder")
    members = [i for i in items if isinstance(i, Entry) and i.parent_folder_id == folder_id]
    _check_index(from_index, len(members))
    _check_index(to_index, len(members))

    moved = members.pop(from_index)
    members.insert(to_index, moved)

    member_ids = {m.id for m in members}
    remaining = [i for i in items if i.id not in member_ids]
    at = index_of(remaining, folder_id) + 1
    return remaining[:at] + members + remaining[at:]


def suggest_marker_index(
    items: Sequence[RankItem],
    min_rating: int,
    min_score: int = DEFAULT_MIN_SCORE,
    max_score: int = DEFAULT_MAX_SCORE,
) -> int:
    """
    Where a new marker with ``min_rating`` should go: right after the last
    entry that would score at least ``min_rating`` in a marker-free ranking.
    """
    scores = linear_distribution(len(entries(items)), min_score, max_score)
    insert_index = 0
    rank = 0
    for pos, item in enumerate(items):
        if isinstance(item, Entry):
            if scores[rank] >= min_rating:
                insert_index = pos + 1
            rank += 1
    return insert_index


# ---------------------------
# Secondary indexes
# ---------------------------

@dataclass
class ListIndex:
    """
    Derived lookups rebuilt once per list transition so readers don't rescan
    the list on every access.
    """

    positions: Dict[str, int] = field(default_factory=dict)
    folder_members: Dict[str, List[str]] = field(default_factory=dict)
    segments: List[Segment] = field(default_factory=list)
    ranks: Dict[str, int] = field(default_factory=dict)
    visible_items: List[RankItem] = field(default_factory=list)

    @classmethod
    def build(
        cls,
        items: Sequence[RankItem],
        min_score: int = DEFAULT_MIN_SCORE,
        max_score: int = DEFAULT_MAX_SCORE,
    ) -> "ListIndex":
        idx = cls()
        collapsed = set()
        for pos, item in enumerate(items):
            idx.positions[item.id] = pos
            if isinstance(item, Folder):
                idx.folder_members.setdefault(item.id, [])
                if not item.is_expanded:
                    collapsed.add(item.id)

        rank = 0
        for item in items:
            if isinstance(item, Entry):
                rank += 1
                idx.ranks[item.id] = rank
                if item.parent_folder_id in idx.folder_members:
                    idx.folder_members[item.parent_folder_id].append(item.id)
                if item.parent_folder_id in collapsed:
                    continue
            idx.visible_items.append(item)

        idx.segments = split_segments(items, min_score, max_score)
        return idx

    def folder_item_count(self, folder_id: str) -> int:
        return len(self.folder_members.get(folder_id, []))
