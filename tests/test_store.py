import asyncio
import json

import httpx

from anime_ranker.models import Entry, Folder, Marker, Media, MediaTitle
from anime_ranker.store import (
    DebouncedSaver,
    JsonFileStore,
    LayeredStore,
    MemoryStore,
    RemoteRankingStore,
    export_backup,
    import_backup,
    serialize_items,
)


def _entry(mid, parent=None):
    return Entry(
        id=f"anime-{mid}",
        media_id=mid,
        entry_id=mid,
        media=Media(id=mid, title=MediaTitle(romaji=f"Show {mid}")),
        current_score=80,
        parent_folder_id=parent,
    )


ITEMS = [
    Folder(id="f", label="Favs", is_expanded=False),
    _entry(1, "f"),
    Marker(id="m", min_rating=70, label="Good"),
    _entry(2),
]


def test_serialize_keeps_ids_and_metadata_only():
    data = serialize_items(ITEMS)
    assert data == [
        {"type": "folder", "id": "f", "label": "Favs", "isExpanded": False},
        {"type": "anime", "id": "anime-1", "parentFolderId": "f"},
        {"type": "marker", "id": "m", "minRating": 70, "label": "Good"},
        {"type": "anime", "id": "anime-2"},
    ]
    # media payloads and scores never hit the store
    assert "media" not in json.dumps(data)
    assert "currentScore" not in json.dumps(data)


def test_json_file_store(tmp_path):
    store = JsonFileStore(tmp_path / "rankings")
    assert store.load("u/1") is None

    assert store.save("u/1", serialize_items(ITEMS))
    assert store.load("u/1") == serialize_items(ITEMS)
    # user ids are sanitised into a single file name
    assert [p.name for p in (tmp_path / "rankings").iterdir()] == ["u_1.json"]

    store.clear("u/1")
    assert store.load("u/1") is None


def test_json_file_store_ignores_corrupt_file(tmp_path):
    (tmp_path / "7.json").write_text("{not json", encoding="utf-8")
    assert JsonFileStore(tmp_path).load("7") is None


def test_layered_store_prefers_primary():
    primary, cache = MemoryStore(), MemoryStore()
    store = LayeredStore(primary, cache)

    cache.save("1", [{"type": "anime", "id": "anime-9"}])
    assert store.load("1") == [{"type": "anime", "id": "anime-9"}]

    primary.save("1", [{"type": "anime", "id": "anime-1"}])
    assert store.load("1") == [{"type": "anime", "id": "anime-1"}]

    store.save("1", [])
    assert primary.load("1") == [] and cache.load("1") == []


def test_remote_store_over_http():
    saved = {}

    def handler(request):
        assert request.url.path == "/api/rankings"
        assert request.headers["Authorization"] == "Bearer sess"
        if request.method == "POST":
            saved.update(json.loads(request.content))
            return httpx.Response(200, json={"success": True})
        return httpx.Response(200, json={"data": saved.get("data")})

    http = httpx.Client(transport=httpx.MockTransport(handler))
    store = RemoteRankingStore("https://ranker.test/", token="sess", http=http)

    assert store.load("1") is None
    assert store.save("1", [{"type": "anime", "id": "anime-1"}])
    assert store.load("1") == [{"type": "anime", "id": "anime-1"}]


def test_remote_store_failures_are_soft():
    def down(request):
        raise httpx.ConnectError("down", request=request)

    store = RemoteRankingStore("https://ranker.test", http=httpx.Client(transport=httpx.MockTransport(down)))
    assert store.load("1") is None
    assert store.save("1", []) is False

    def unauthorized(request):
        return httpx.Response(401, json={"error": "Unauthorized"})

    store = RemoteRankingStore("https://ranker.test", http=httpx.Client(transport=httpx.MockTransport(unauthorized)))
    assert store.load("1") is None
    assert store.save("1", []) is False

    def bare_array(request):
        return httpx.Response(200, json=[{"type": "anime", "id": "anime-1"}])

    store = RemoteRankingStore("https://ranker.test", http=httpx.Client(transport=httpx.MockTransport(bare_array)))
    assert store.load("1") is None
    assert LayeredStore(store, MemoryStore()).load("1") is None


def test_debounced_saver_coalesces_bursts():
    store = MemoryStore()
    saver = DebouncedSaver(store, "1", delay_ms=20)

    async def burst():
        saver.schedule(ITEMS[:1])
        saver.schedule(ITEMS[:2])
        saver.schedule(ITEMS)
        assert saver.pending
        assert store.writes == 0
        await asyncio.sleep(0.1)

    asyncio.run(burst())
    assert store.writes == 1
    assert store.load("1") == serialize_items(ITEMS)
    assert not saver.pending


def test_debounced_saver_flush_and_cancel():
    store = MemoryStore()
    saver = DebouncedSaver(store, "1", delay_ms=10_000)

    async def run():
        saver.schedule(ITEMS)
        assert saver.flush()
        saver.schedule(ITEMS[:1])
        saver.cancel()
        await asyncio.sleep(0)

    asyncio.run(run())
    assert store.writes == 1
    assert store.load("1") == serialize_items(ITEMS)


def test_pending_write_survives_loop_shutdown_until_flushed():
    store = MemoryStore()
    saver = DebouncedSaver(store, "1", delay_ms=10_000)

    async def run():
        saver.schedule(ITEMS)

    asyncio.run(run())
    assert store.writes == 0
    assert saver.pending

    assert saver.flush()
    assert store.writes == 1
    assert store.load("1") == serialize_items(ITEMS)
    assert not saver.pending


def test_debounced_saver_writes_through_without_loop():
    store = MemoryStore()
    DebouncedSaver(store, "1").schedule(ITEMS)
    assert store.writes == 1


def test_backup_round_trip_and_rejects_non_arrays(tmp_path):
    data = serialize_items(ITEMS)
    path = export_backup(data, tmp_path / "backups" / "b.json")
    assert import_backup(path) == data

    bad = tmp_path / "bad.json"
    bad.write_text(json.dumps({"data": data}), encoding="utf-8")
    assert import_backup(bad) is None

    garbage = tmp_path / "garbage.json"
    garbage.write_text("nope", encoding="utf-8")
    assert import_backup(garbage) is None
    assert import_backup(tmp_path / "missing.json") is None
