"""Spoken-form normalisation for sermon transcripts.

Speech-to-text renders citations the way a preacher says them ("First
Corinthians chapter thirteen verses four through seven"). The parser only
understands the written form ("1 Corinthians 13:4-7"), so every segment goes
through normalize_text() first. Case is preserved; only the citation
vocabulary is rewritten.
"""

import re

from versecue.services.catalog import BIBLE_BOOKS, NUMBER_WORDS

_ONES = ("one", "two", "three", "four", "five", "six", "seven", "eight", "nine")
_TENS = ("twenty", "thirty", "forty", "fifty", "sixty", "seventy", "eighty", "ninety")
_UNDER_HUNDRED = (
    "ten", "eleven", "twelve", "thirteen", "fourteen", "fifteen", "sixteen",
    "seventeen", "eighteen", "nineteen",
) + _TENS + _ONES

_COMPOUND_RE = re.compile(
    rf"\b({'|'.join(_TENS)})[\s-]?({'|'.join(_ONES)})\b", re.IGNORECASE,
)
# "one hundred nineteen", "hundred and fifty", "a hundred"
_HUNDRED_RE = re.compile(
    rf"\b(?:({'|'.join(_ONES)}|a)\s+)?hundred(?:\s+(?:and\s+)?(\d{{1,2}}|{'|'.join(_UNDER_HUNDRED)}))?\b",
    re.IGNORECASE,
)
_SINGLE_RE = re.compile(
    rf"\b({'|'.join(sorted(NUMBER_WORDS, key=len, reverse=True))})\b", re.IGNORECASE,
)

# Ordinal prefixes are only rewritten in front of a numbered-book stem, so
# "I think" and "first of all" are left alone.
_PREFIX_DIGITS = {
    "first": "1", "1st": "1", "i": "1",
    "second": "2", "2nd": "2", "ii": "2",
    "third": "3", "3rd": "3", "iii": "3",
}
_NUMBERED_STEMS = sorted(
    {b.name.split(" ", 1)[1].lower() for b in BIBLE_BOOKS if b.name[0].isdigit()}
    | {"cor", "corinthian", "thess", "thessalonian", "tim", "sam", "pet", "kgs", "chron"},
    key=len, reverse=True,
)
_PREFIX_RE = re.compile(
    rf"\b(first|second|third|1st|2nd|3rd|iii|ii|i)\s+(?=(?:{'|'.join(_NUMBERED_STEMS)})\b)",
    re.IGNORECASE,
)

# Speech-to-text misspellings of book names
_STT_FIXES = [
    (re.compile(r"\brevelations\b", re.IGNORECASE), "Revelation"),
    (re.compile(r"\bphil+ip+\s?ians\b", re.IGNORECASE), "Philippians"),
    (re.compile(r"\bsongs? of songs\b", re.IGNORECASE), "Song of Solomon"),
    (re.compile(r"\bpsalter\b", re.IGNORECASE), "Psalms"),
    (re.compile(r"\b(corinthian|ephesian|colossian|thessalonian|galatian)\b", re.IGNORECASE), r"\1s"),
]

_CHAPTER_VERSE_RANGE_RE = re.compile(
    r"\bchapter\s*(\d+)\s*,?\s*verses?\s*(\d+)\s*-\s*(\d+)", re.IGNORECASE,
)
_CHAPTER_VERSE_RE = re.compile(r"\bchapter\s*(\d+)\s*,?\s*verses?\s*(\d+)", re.IGNORECASE)
_CHAPTER_RE = re.compile(r"\bchapter\s*(\d+)", re.IGNORECASE)
_VERSE_RE = re.compile(r"\s*\bverses?\s*(\d+)", re.IGNORECASE)

_THROUGH_RE = re.compile(r"(\d+)\s*(?:through|thru|to|-)\s*(\d+)", re.IGNORECASE)
_VERSES_AND_RE = re.compile(r"\bverses\s*(\d+)\s*(?:and|&)\s*(\d+)", re.IGNORECASE)


def _value(word: str) -> int:
    return NUMBER_WORDS[word.lower()]


def convert_number_words(text: str) -> str:
    """Spell spoken numbers as digits: "twenty eight" -> "28", "one hundred nineteen" -> "119"."""
    text = _COMPOUND_RE.sub(lambda m: str(_value(m.group(1)) + _value(m.group(2))), text)

    def _hundred(m: re.Match) -> str:
        head = m.group(1)
        hundreds = 1 if head is None or head.lower() == "a" else _value(head)
        tail = m.group(2)
        if tail is None:
            remainder = 0
        elif tail.isdigit():
            remainder = int(tail)
        else:
            remainder = _value(tail)
        return str(hundreds * 100 + remainder)

    text = _HUNDRED_RE.sub(_hundred, text)
    return _SINGLE_RE.sub(lambda m: str(_value(m.group(1))), text)


def normalize_book_prefix(text: str) -> str:
    """"First Corinthians" / "1st Cor" / "II Peter" -> "1 Corinthians" / "1 Cor" / "2 Peter"."""
    return _PREFIX_RE.sub(lambda m: _PREFIX_DIGITS[m.group(1).lower()] + " ", text)


def fix_stt_errors(text: str) -> str:
    for pattern, replacement in _STT_FIXES:
        text = pattern.sub(replacement, text)
    return text


def normalize_chapter_verse(text: str) -> str:
    """"chapter 3 verse 16" -> "3:16", "chapter 13" -> "13", "verse 4" -> ":4"."""
    text = _VERSES_AND_RE.sub(r"verses \1-\2", text)
    text = _CHAPTER_VERSE_RANGE_RE.sub(r"\1:\2-\3", text)
    text = _CHAPTER_VERSE_RE.sub(r"\1:\2", text)
    text = _CHAPTER_RE.sub(r"\1", text)
    return _VERSE_RE.sub(r":\1", text)


def normalize_ranges(text: str) -> str:
    """"16 through 18" / "16 to 18" -> "16-18"."""
    return _THROUGH_RE.sub(r"\1-\2", text)


def normalize_whitespace(text: str) -> str:
    text = re.sub(r"\s+", " ", text)
    text = re.sub(r"(\d)\s*:\s*(\d)", r"\1:\2", text)
    return text.strip()


def normalize_text(raw: str) -> str:
    """Full normalisation pipeline applied before parsing."""
    text = fix_stt_errors(raw)
    text = normalize_book_prefix(text)
    text = convert_number_words(text)
    text = normalize_ranges(text)
    text = normalize_chapter_verse(text)
    text = normalize_ranges(text)
    return normalize_whitespace(text)
