import pandas as pd

from anime_ranker.models import Entry, Marker, Media, MediaTitle, ScoreFormat
from anime_ranker.report import PREVIEW_COLUMNS, changed_only, score_changes, write_preview
from anime_ranker.scoring import calculate_scores


def _entry(mid, current):
    return Entry(
        id=f"anime-{mid}",
        media_id=mid,
        entry_id=mid,
        media=Media(id=mid, title=MediaTitle(romaji=f"Show {mid}")),
        current_score=current,
    )


ITEMS = [_entry(1, 100), _entry(2, 60), Marker(id="m", min_rating=50, label="x"), _entry(3, 49)]


def test_score_changes_table():
    df = score_changes(ITEMS, calculate_scores(ITEMS), ScoreFormat.POINT_10)
    assert list(df.columns) == PREVIEW_COLUMNS
    assert df["rank"].tolist() == [1, 2, 3]
    assert df["new_score"].tolist() == [100, 50, 49]
    assert df["delta"].tolist() == [0, -10, 0]
    assert df["display"].tolist() == ["10", "5", "5"]


def test_changed_only():
    df = changed_only(score_changes(ITEMS, calculate_scores(ITEMS)))
    assert df["media_id"].tolist() == [2]
    assert df.index.tolist() == [0]


def test_empty_list_gives_empty_table():
    df = score_changes([], [])
    assert df.empty
    assert list(df.columns) == PREVIEW_COLUMNS


def test_write_preview(tmp_path):
    df = score_changes(ITEMS, calculate_scores(ITEMS))
    out = write_preview(df, tmp_path / "out" / "preview.csv")
    back = pd.read_csv(out)
    assert back["title"].tolist() == ["Show 1", "Show 2", "Show 3"]
    assert back["new_score"].tolist() == [100, 50, 49]
