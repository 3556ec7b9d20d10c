import pytest
from pydantic import ValidationError

from anime_ranker.config import HealthResponse
from anime_ranker.models import (
    RANK_ITEMS,
    Entry,
    Folder,
    Marker,
    MediaListEntry,
    OrderRecord,
    Viewer,
    ScoreFormat,
    entry_from_source,
)


def test_media_list_entry_parses_anilist_shape():
    src = MediaListEntry.model_validate(
        {
            "id": 1001,
            "mediaId": 5,
            "score": 72.0,
            "media": {
                "id": 5,
                "title": {"romaji": "Mushishi", "english": None, "native": "蟲師"},
                "coverImage": {"large": "https://img/5.jpg"},
                "episodes": 26,
                "format": "TV",
            },
        }
    )
    assert src.media_id == 5
    assert src.media.cover_image.large == "https://img/5.jpg"

    entry = entry_from_source(src, parent_folder_id="f")
    assert entry.id == "anime-5"
    assert entry.entry_id == 1001
    assert entry.current_score == 72.0
    assert entry.parent_folder_id == "f"


def test_list_items_are_frozen():
    m = Marker(id="m", min_rating=50, label="x")
    with pytest.raises(ValidationError):
        m.min_rating = 60


def test_marker_rating_bounds():
    with pytest.raises(ValidationError):
        Marker(id="m", min_rating=101, label="x")
    with pytest.raises(ValidationError):
        Marker(id="m", min_rating=-1, label="x")


def test_rank_items_discriminates_on_type():
    items = RANK_ITEMS.validate_python(
        [
            {"type": "folder", "id": "f", "label": "Fav"},
            {"type": "marker", "id": "m", "minRating": 80, "label": "Great"},
            {"type": "anime", "id": "anime-1", "mediaId": 1, "entryId": 1, "media": {"id": 1, "title": {"romaji": "A"}}},
        ]
    )
    assert [type(i) for i in items] == [Folder, Marker, Entry]
    assert items[0].is_expanded is True

    with pytest.raises(ValidationError):
        RANK_ITEMS.validate_python([{"type": "divider", "id": "x"}])


def test_order_record_wire_form_is_camel_case_without_nulls():
    rec = OrderRecord(type="anime", id="anime-1", parent_folder_id="f")
    assert rec.to_wire() == {"type": "anime", "id": "anime-1", "parentFolderId": "f"}
    assert OrderRecord(type="marker", id="m", min_rating=0, label="x").to_wire()["minRating"] == 0


def test_viewer_score_format_defaults():
    assert Viewer(id=1, name="a").score_format == ScoreFormat.POINT_100
    assert Viewer(id=1, name="a", score_format="POINT_3").score_format == ScoreFormat.POINT_3


def test_health_response():
    health = HealthResponse(status="healthy")
    assert health.status == "healthy"
