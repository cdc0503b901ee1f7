"""Deterministic scripture citation parser (CPU, no external calls).

Finds explicit citations ("John 3:16", "Romans 8:28-30", "Psalm 23") in a
transcript segment after spoken-form normalisation. Every candidate is checked
against the catalog; one that falls outside a book's bounds is dropped whole
rather than trimmed to something that would validate.
"""

import logging
import re
from dataclasses import dataclass
from typing import Iterator

from versecue.errors import ValidationError
from versecue.models.schemas import ScriptureReference
from versecue.services.catalog import (
    ABBREVIATION_ALIASES, PARSER_ALIASES, alias_pattern, find_book, validate_reference,
)
from versecue.services.normalizer import normalize_text

logger = logging.getLogger("versecue.parser")

# Book alias, optional trailing period, chapter, optional :verse and -verse.
# Alternation is longest-first, so at any start position the longest book
# name wins ("1 john" before "john", "song of solomon" before "song").
_CITATION_RE = re.compile(
    rf"(?<![\w])(?P<book>{alias_pattern(PARSER_ALIASES)})\.?\s*"
    r"(?P<chapter>\d{1,3})"
    r"(?::(?P<verse_start>\d{1,3})(?:-(?P<verse_end>\d{1,3}))?)?"
    r"(?![\d])",
    re.IGNORECASE,
)

# Canonical string form: "1 Corinthians 13:4-7"
_CANONICAL_RE = re.compile(
    r"^\s*(?P<book>.+?)\s+(?P<chapter>\d+)(?::(?P<verse_start>\d+)(?:-(?P<verse_end>\d+))?)?\s*$"
)


@dataclass(frozen=True)
class ReferenceMatch:
    reference: ScriptureReference
    matched_text: str
    position: int = 0


def check_reference(book_name: str, chapter: int,
                    verse_start: int | None = None,
                    verse_end: int | None = None) -> ScriptureReference:
    """Resolve and validate a citation against the catalog.

    Raises ValidationError naming the first bound that fails.
    """
    display = f"{book_name} {chapter}"
    if verse_start is not None:
        display += f":{verse_start}"
        if verse_end is not None:
            display += f"-{verse_end}"

    book = find_book(book_name)
    if book is None:
        raise ValidationError(display, f"unknown book '{book_name}'")
    if not validate_reference(book, chapter):
        raise ValidationError(display, f"{book.name} has {book.chapter_count} chapters")
    if verse_start is not None and not validate_reference(book, chapter, verse_start):
        raise ValidationError(display, f"{book.name} {chapter} has {book.verses_in(chapter)} verses")
    if verse_end is not None:
        if verse_start is None:
            raise ValidationError(display, "range end without a start verse")
        if verse_end < verse_start:
            raise ValidationError(display, "range runs backwards")
        if not validate_reference(book, chapter, verse_end):
            raise ValidationError(display, f"{book.name} {chapter} has {book.verses_in(chapter)} verses")
    return ScriptureReference(
        book=book.name, chapter=chapter,
        verse_start=verse_start, verse_end=verse_end,
    )


def build_reference(book_name: str, chapter: int,
                    verse_start: int | None = None,
                    verse_end: int | None = None) -> ScriptureReference | None:
    """check_reference() that returns None instead of raising."""
    try:
        return check_reference(book_name, chapter, verse_start, verse_end)
    except ValidationError:
        return None


def _int(value: str | None) -> int | None:
    return int(value) if value is not None else None


def parse(text: str) -> Iterator[ReferenceMatch]:
    """Yield explicit citations in order of appearance, one per canonical reference."""
    normalized = normalize_text(text)
    seen: set[str] = set()

    for m in _CITATION_RE.finditer(normalized):
        alias = " ".join(m.group("book").lower().split())
        if alias in ABBREVIATION_ALIASES and m.group("verse_start") is None:
            logger.debug(f"Skipped chapter-only abbreviation '{m.group(0).strip()}'")
            continue
        try:
            ref = check_reference(
                m.group("book"),
                int(m.group("chapter")),
                _int(m.group("verse_start")),
                _int(m.group("verse_end")),
            )
        except ValidationError as e:
            logger.debug(f"Discarded citation '{m.group(0)}': {e.reason}")
            continue
        if ref.reference in seen:
            continue
        seen.add(ref.reference)
        yield ReferenceMatch(reference=ref, matched_text=m.group(0).strip(), position=m.start())


def parse_all(text: str) -> list[ReferenceMatch]:
    return list(parse(text))


def require_reference(reference: str) -> ScriptureReference:
    """Parse a single canonical-style string ("John 3:16-18"). Raises ValidationError."""
    m = _CANONICAL_RE.match(reference)
    if not m:
        raise ValidationError(reference, "expected 'Book Chapter[:Verse[-Verse]]'")
    return check_reference(
        m.group("book"),
        int(m.group("chapter")),
        _int(m.group("verse_start")),
        _int(m.group("verse_end")),
    )


def parse_reference(reference: str) -> ScriptureReference | None:
    try:
        return require_reference(reference)
    except ValidationError:
        return None


def references_equal(a: ScriptureReference, b: ScriptureReference) -> bool:
    return (
        a.book == b.book
        and a.chapter == b.chapter
        and a.verse_start == b.verse_start
        and a.verse_end == b.verse_end
    )
