# anime_ranker/cli.py
from __future__ import annotations

import argparse
import asyncio
import json
import os
import sys
from pathlib import Path
from typing import List, Optional

from loguru import logger

from .config import BACKUP_DIR, DEFAULT_MAX_SCORE, DEFAULT_MIN_SCORE, RANKINGS_DIR
from .models import MediaListEntry, ScoreFormat, SyncProgress, TitleFormat
from .report import changed_only, score_changes, write_preview
from .scoring import calculate_scores
from .session import hydrate
from .store import JsonFileStore, export_backup, import_backup
from .sync import run_sync, to_sync_items

# ---------- IO helpers ----------

def _read_json(path: Path):
    if not path.exists():
        raise FileNotFoundError(f"File not found: {path}")
    with path.open("r", encoding="utf-8") as f:
        return json.load(f)


def _load_entries(path: Path) -> List[MediaListEntry]:
    raw = _read_json(path)
    # accept a bare entries array or a MediaListCollection-style {"entries": [...]}
    if isinstance(raw, dict):
        raw = raw.get("entries", [])
    return [MediaListEntry.model_validate(e) for e in raw]


def _build(args):
    entries = _load_entries(args.entries)
    saved = _read_json(args.order) if args.order else None
    items = hydrate(entries, saved)
    scores = calculate_scores(items, args.title_format, args.min_score, args.max_score)
    return items, scores


def _print_progress(p: SyncProgress) -> None:
    suffix = f" [{p.batch_info}]" if p.batch_info else ""
    print(f"{p.current}/{p.total}{suffix} {p.current_title}")


# ---------- commands ----------

def cmd_scores(args) -> int:
    items, scores = _build(args)
    df = score_changes(items, scores, args.format)
    if args.changed_only:
        df = changed_only(df)
    if args.csv:
        write_preview(df, args.csv)
        print(f"Preview written to {args.csv}")
    else:
        print(df.to_string(index=False))
    return 0


def cmd_sync(args) -> int:
    token = args.token or os.getenv("ANILIST_TOKEN", "")
    if not token:
        print("No token: pass --token or set ANILIST_TOKEN", file=sys.stderr)
        return 2
    _, scores = _build(args)
    result = asyncio.run(run_sync(to_sync_items(scores), token, on_progress=_print_progress))
    print(f"Succeeded: {result.succeeded}  Failed: {result.failed}")
    for err in result.errors:
        print(f"  - {err}")
    return 0 if result.failed == 0 else 1


def cmd_export(args) -> int:
    data = JsonFileStore(args.store_dir).load(args.user)
    if not data:
        print("No ranking data to export", file=sys.stderr)
        return 1
    out = args.out or BACKUP_DIR / f"anime-ranking-backup-{args.user}.json"
    export_backup(data, out)
    print(f"Exported {len(data)} items to {out}")
    return 0


def cmd_import(args) -> int:
    data = import_backup(args.file)
    if data is None:
        print("Invalid backup file. Please select a valid JSON backup.", file=sys.stderr)
        return 1
    JsonFileStore(args.store_dir).save(args.user, data)
    print(f"Imported {len(data)} items for user {args.user}")
    return 0


# ---------- CLI ----------

def _add_scoring_args(p: argparse.ArgumentParser) -> None:
    p.add_argument("--entries", type=Path, required=True,
                   help="JSON file with the completed-list entries (AniList shape)")
    p.add_argument("--order", type=Path, default=None,
                   help="Saved order JSON (omit to rank by current score)")
    p.add_argument("--title-format", type=TitleFormat, default=TitleFormat.ENGLISH,
                   choices=list(TitleFormat))
    p.add_argument("--min-score", type=int, default=DEFAULT_MIN_SCORE)
    p.add_argument("--max-score", type=int, default=DEFAULT_MAX_SCORE)


def build_parser() -> argparse.ArgumentParser:
    ap = argparse.ArgumentParser(prog="anime-ranker")
    ap.add_argument("-v", "--verbose", action="store_true")
    sub = ap.add_subparsers(dest="command", required=True)

    p = sub.add_parser("scores", help="Preview derived scores")
    _add_scoring_args(p)
    p.add_argument("--format", type=ScoreFormat, default=ScoreFormat.POINT_100,
                   choices=list(ScoreFormat))
    p.add_argument("--csv", type=Path, default=None)
    p.add_argument("--changed-only", action="store_true")
    p.set_defaults(func=cmd_scores)

    p = sub.add_parser("sync", help="Push derived scores to AniList")
    _add_scoring_args(p)
    p.add_argument("--token", default=None, help="AniList access token (or ANILIST_TOKEN)")
    p.set_defaults(func=cmd_sync)

    p = sub.add_parser("export", help="Export a saved order to a backup file")
    p.add_argument("--user", required=True)
    p.add_argument("--out", type=Path, default=None)
    p.add_argument("--store-dir", type=Path, default=RANKINGS_DIR)
    p.set_defaults(func=cmd_export)

    p = sub.add_parser("import", help="Restore a saved order from a backup file")
    p.add_argument("--user", required=True)
    p.add_argument("--file", type=Path, required=True)
    p.add_argument("--store-dir", type=Path, default=RANKINGS_DIR)
    p.set_defaults(func=cmd_import)

    return ap


def main(argv: Optional[List[str]] = None) -> int:
    args = build_parser().parse_args(argv)
    logger.remove()
    logger.add(sys.stderr, level="DEBUG" if args.verbose else "WARNING")
    return args.func(args)


if __name__ == "__main__":
    sys.exit(main())
