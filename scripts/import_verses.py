#!/usr/bin/env python3
"""
Load a Bible translation into the local verse store.

Input is a JSON file holding a list of verses:
    [{"book": "Genesis", "chapter": 1, "verse": 1, "text": "In the beginning..."}, ...]

Book names may be any alias the catalog understands ("Gen", "1 Cor").
Rows outside the catalog's bounds are skipped and counted.

Usage:
    python scripts/import_verses.py kjv.json
    python scripts/import_verses.py web.json --translation WEB --db data/verses.db
"""

import argparse
import asyncio
import json
from pathlib import Path

from versecue.config import load_config
from versecue.db.database import close_db, init_db, insert_verses
from versecue.services.reference_parser import build_reference


def load_rows(entries: list) -> tuple[list[tuple[str, int, int, str]], int]:
    """Validate raw entries. Returns (rows, skipped)."""
    rows = []
    skipped = 0
    for entry in entries:
        try:
            book = str(entry["book"])
            chapter = int(entry["chapter"])
            verse = int(entry["verse"])
            text = str(entry["text"]).strip()
        except (KeyError, TypeError, ValueError):
            skipped += 1
            continue
        ref = build_reference(book, chapter, verse)
        if ref is None or not text:
            skipped += 1
            continue
        rows.append((ref.book, chapter, verse, text))
    return rows, skipped


async def import_file(path: Path, translation: str, db_path: Path) -> tuple[int, int]:
    entries = json.loads(path.read_text(encoding="utf-8"))
    if not isinstance(entries, list):
        raise ValueError(f"{path} must contain a JSON list of verses")
    rows, skipped = load_rows(entries)
    db = await init_db(db_path)
    try:
        inserted = await insert_verses(db, translation, rows)
    finally:
        await close_db()
    return inserted, skipped


def main():
    config = load_config()
    parser = argparse.ArgumentParser(description="Import verse text into the local verse store")
    parser.add_argument("file", type=Path, help="JSON list of {book, chapter, verse, text}")
    parser.add_argument("--translation", default=config.verses.translation,
                        help=f"Translation id (default: {config.verses.translation})")
    parser.add_argument("--db", type=Path, default=config.verses.db_path,
                        help=f"SQLite path (default: {config.verses.db_path})")
    args = parser.parse_args()

    if not args.file.exists():
        print(f"Error: file not found: {args.file}")
        raise SystemExit(1)

    inserted, skipped = asyncio.run(import_file(args.file, args.translation, args.db))
    print(f"Imported {inserted} verses into {args.db} ({args.translation.upper()})")
    if skipped:
        print(f"Skipped {skipped} entries outside the catalog or missing fields")


if __name__ == "__main__":
    main()
