from __future__ import annotations

from enum import Enum
from typing import Annotated, List, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, TypeAdapter
from pydantic.alias_generators import to_camel


# ---------------------------
# Formats
# ---------------------------

class ScoreFormat(str, Enum):
    POINT_100 = "POINT_100"
    POINT_10_DECIMAL = "POINT_10_DECIMAL"
    POINT_10 = "POINT_10"
    POINT_5 = "POINT_5"
    POINT_3 = "POINT_3"


class TitleFormat(str, Enum):
    ENGLISH = "english"
    ROMAJI = "romaji"
    NATIVE = "native"


class _CamelModel(BaseModel):
    """Snake-case attributes, camelCase on the wire (AniList + persisted order)."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


# ---------------------------
# Source entries (AniList)
# ---------------------------

class MediaTitle(_CamelModel):
    romaji: str
    english: Optional[str] = None
    native: Optional[str] = None


class CoverImage(_CamelModel):
    large: Optional[str] = None


class Media(_CamelModel):
    id: int
    title: MediaTitle
    cover_image: Optional[CoverImage] = None
    episodes: Optional[int] = None
    format: Optional[str] = None


class MediaListEntry(_CamelModel):
    """One row of the user's completed list, as returned by MediaListCollection."""

    id: int
    media_id: int
    score: float = 0
    media: Media


class Viewer(_CamelModel):
    id: int
    name: str
    score_format: ScoreFormat = ScoreFormat.POINT_100


# ---------------------------
# Ranking list items
# ---------------------------

class Entry(_CamelModel):
    """A rankable anime. Its position in the list is its rank."""

    model_config = ConfigDict(frozen=True)

    type: Literal["anime"] = "anime"
    id: str
    media_id: int
    entry_id: int
    media: Media
    current_score: float = 0
    parent_folder_id: Optional[str] = None


class Marker(_CamelModel):
    """Threshold divider: entries below it score under ``min_rating``."""

    model_config = ConfigDict(frozen=True)

    type: Literal["marker"] = "marker"
    id: str
    min_rating: int = Field(ge=0, le=100)
    label: str


class Folder(_CamelModel):
    model_config = ConfigDict(frozen=True)

    type: Literal["folder"] = "folder"
    id: str
    label: str
    is_expanded: bool = True


RankItem = Annotated[Union[Entry, Marker, Folder], Field(discriminator="type")]

RANK_ITEMS = TypeAdapter(List[RankItem])


def entry_id_for(media_id: int) -> str:
    return f"anime-{media_id}"


def entry_from_source(src: MediaListEntry, parent_folder_id: Optional[str] = None) -> Entry:
    return Entry(
        id=entry_id_for(src.media_id),
        media_id=src.media_id,
        entry_id=src.id,
        media=src.media,
        current_score=src.score,
        parent_folder_id=parent_folder_id,
    )


# ---------------------------
# Persisted order
# ---------------------------

class OrderRecord(_CamelModel):
    """
    What gets written to the ranking store for one list item.
    Only ids and marker/folder metadata; derived scores never go here.
    """

    type: Literal["anime", "marker", "folder"]
    id: str
    min_rating: Optional[int] = None
    label: Optional[str] = None
    is_expanded: Optional[bool] = None
    parent_folder_id: Optional[str] = None

    def to_wire(self) -> dict:
        return self.model_dump(by_alias=True, exclude_none=True)


# ---------------------------
# Derived scores & sync
# ---------------------------

class CalculatedScore(_CamelModel):
    media_id: int
    entry_id: int
    score: int
    display_score: str
    title: str


class SyncItem(_CamelModel):
    media_id: int
    score: int
    title: str


class SyncProgress(_CamelModel):
    current: int
    total: int
    current_title: str
    batch_info: Optional[str] = None


class SyncResult(_CamelModel):
    succeeded: int = 0
    failed: int = 0
    errors: List[str] = Field(default_factory=list)
