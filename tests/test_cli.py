import json

import pytest

from anime_ranker import cli
from anime_ranker.models import SyncResult
from anime_ranker.store import JsonFileStore


def _write_entries(path):
    entries = [
        {"id": 100 + i, "mediaId": i, "score": s, "media": {"id": i, "title": {"romaji": f"Show {i}"}}}
        for i, s in [(1, 90), (2, 80), (3, 70)]
    ]
    path.write_text(json.dumps({"entries": entries}), encoding="utf-8")
    return path


def test_scores_prints_preview(tmp_path, capsys):
    entries = _write_entries(tmp_path / "entries.json")
    assert cli.main(["scores", "--entries", str(entries), "--format", "POINT_5"]) == 0
    out = capsys.readouterr().out
    assert "Show 1" in out
    assert "★★★★★" in out


def test_scores_uses_saved_order_and_writes_csv(tmp_path):
    entries = _write_entries(tmp_path / "entries.json")
    order = tmp_path / "order.json"
    order.write_text(json.dumps([{"type": "anime", "id": "anime-3"}]), encoding="utf-8")
    csv = tmp_path / "preview.csv"

    code = cli.main(["scores", "--entries", str(entries), "--order", str(order), "--csv", str(csv)])
    assert code == 0
    lines = csv.read_text(encoding="utf-8").splitlines()
    assert lines[0].startswith("rank,media_id,title")
    assert lines[1].startswith("1,3,Show 3,70,100")


def test_sync_without_token(tmp_path, monkeypatch):
    monkeypatch.delenv("ANILIST_TOKEN", raising=False)
    entries = _write_entries(tmp_path / "entries.json")
    assert cli.main(["sync", "--entries", str(entries)]) == 2


def test_sync_reports_result(tmp_path, monkeypatch, capsys):
    entries = _write_entries(tmp_path / "entries.json")
    seen = {}

    async def fake_run_sync(items, token, on_progress=None):
        seen["scores"] = [i.score for i in items]
        seen["token"] = token
        return SyncResult(succeeded=2, failed=1, errors=["Failed to update Show 3: boom"])

    monkeypatch.setattr(cli, "run_sync", fake_run_sync)
    code = cli.main(["sync", "--entries", str(entries), "--token", "tok"])

    assert code == 1
    assert seen == {"scores": [100, 55, 10], "token": "tok"}
    out = capsys.readouterr().out
    assert "Succeeded: 2  Failed: 1" in out
    assert "Show 3: boom" in out


def test_export_then_import(tmp_path):
    store_dir = tmp_path / "rankings"
    data = [{"type": "anime", "id": "anime-1"}, {"type": "marker", "id": "m", "minRating": 50, "label": "x"}]
    JsonFileStore(store_dir).save("u1", data)

    backup = tmp_path / "backup.json"
    assert cli.main(["export", "--user", "u1", "--out", str(backup), "--store-dir", str(store_dir)]) == 0
    assert json.loads(backup.read_text(encoding="utf-8")) == data

    assert cli.main(["import", "--user", "u2", "--file", str(backup), "--store-dir", str(store_dir)]) == 0
    assert JsonFileStore(store_dir).load("u2") == data


def test_export_with_nothing_saved(tmp_path):
    assert cli.main(["export", "--user", "nobody", "--store-dir", str(tmp_path)]) == 1


def test_import_rejects_non_array(tmp_path):
    bad = tmp_path / "bad.json"
    bad.write_text("{}", encoding="utf-8")
    assert cli.main(["import", "--user", "u", "--file", str(bad), "--store-dir", str(tmp_path)]) == 1


def test_missing_entries_file(tmp_path):
    with pytest.raises(FileNotFoundError):
        cli.main(["scores", "--entries", str(tmp_path / "nope.json")])
