from anime_ranker.models import Entry, Folder, Marker, Media, MediaTitle, TitleFormat
from anime_ranker.scoring import calculate_scores, get_title, linear_distribution, split_segments


def _entry(mid, parent=None, english=None):
    return Entry(
        id=f"anime-{mid}",
        media_id=mid,
        entry_id=mid * 10,
        media=Media(id=mid, title=MediaTitle(romaji=f"Romaji {mid}", english=english)),
        parent_folder_id=parent,
    )


def _scores(items, **kw):
    return {s.media_id: s.score for s in calculate_scores(items, **kw)}


def test_linear_distribution_rounds_halves_up():
    # step 22.5: 77.5 -> 78, 32.5 -> 33 (not banker's 32)
    assert linear_distribution(5, 10, 100) == [100, 78, 55, 33, 10]


def test_marker_free_list_spans_max_to_min():
    for n in range(2, 31):
        items = [_entry(i) for i in range(1, n + 1)]
        scores = [s.score for s in calculate_scores(items)]
        assert scores[0] == 100
        assert scores[-1] == 10
        assert all(a >= b for a, b in zip(scores, scores[1:]))


def test_single_entry_gets_max_score():
    assert _scores([_entry(1)]) == {1: 100}
    assert _scores([_entry(1)], min_score=20, max_score=90) == {1: 90}


def test_empty_and_entryless_lists():
    assert calculate_scores([]) == []
    assert calculate_scores([Marker(id="m", min_rating=50, label="x"), Folder(id="f", label="F")]) == []


def test_marker_splits_into_segments():
    items = [_entry(1), _entry(2), Marker(id="m", min_rating=50, label="Good"), _entry(3)]
    assert _scores(items) == {1: 100, 2: 50, 3: 49}


def test_trailing_marker_without_entries_is_dropped():
    items = [_entry(1), _entry(2), Marker(id="m", min_rating=50, label="Good")]
    assert _scores(items) == {1: 100, 2: 50}


def test_leading_marker_sets_ceiling_for_first_segment():
    items = [Marker(id="m", min_rating=80, label="x"), _entry(1), _entry(2)]
    assert _scores(items) == {1: 79, 2: 10}


def test_folders_do_not_affect_scores():
    plain = [_entry(1), _entry(2), Marker(id="m", min_rating=60, label="x"), _entry(3), _entry(4)]
    with_folder = [
        Folder(id="f", label="Fav"),
        _entry(1, parent="f"),
        _entry(2),
        Marker(id="m", min_rating=60, label="x"),
        Folder(id="g", label="Other", is_expanded=False),
        _entry(3, parent="g"),
        _entry(4),
    ]
    assert _scores(plain) == _scores(with_folder)


def test_out_of_order_markers_are_positional():
    # floor 60 sits below ceiling 29: the middle segment ascends
    items = [
        _entry(1),
        Marker(id="m1", min_rating=30, label="low"),
        _entry(2),
        _entry(3),
        Marker(id="m2", min_rating=60, label="high"),
        _entry(4),
    ]
    assert _scores(items) == {1: 100, 2: 29, 3: 60, 4: 59}


def test_inserting_marker_keeps_other_segments():
    before = [
        _entry(1), _entry(2),
        Marker(id="m70", min_rating=70, label="x"),
        _entry(3), _entry(4),
        Marker(id="m40", min_rating=40, label="y"),
        _entry(5), _entry(6),
    ]
    after = before[:4] + [Marker(id="m55", min_rating=55, label="z")] + before[4:]

    s_before, s_after = _scores(before), _scores(after)
    for mid in (1, 2, 5, 6):
        assert s_before[mid] == s_after[mid]
    assert s_after[3] == 69
    assert s_after[4] == 54


def test_scoring_is_idempotent():
    items = [_entry(i) for i in range(1, 8)]
    items.insert(3, Marker(id="m", min_rating=65, label="x"))
    assert calculate_scores(items) == calculate_scores(items)


def test_split_segments_ranges():
    items = [_entry(1), Marker(id="m", min_rating=50, label="x"), _entry(2), _entry(3)]
    segs = split_segments(items)
    assert [(s.start, s.stop, s.max_score, s.min_score) for s in segs] == [(0, 1, 100, 50), (2, 4, 49, 10)]


def test_titles_follow_format_with_romaji_fallback():
    e = _entry(1, english="Attack on Titan")
    assert get_title(e.media.title, TitleFormat.ENGLISH) == "Attack on Titan"
    assert get_title(e.media.title, TitleFormat.NATIVE) == "Romaji 1"
    assert get_title(_entry(2).media.title, "english") == "Romaji 2"

    [score] = calculate_scores([e], TitleFormat.ENGLISH)
    assert score.title == "Attack on Titan"
    assert score.display_score == "100"
    assert score.entry_id == 10
