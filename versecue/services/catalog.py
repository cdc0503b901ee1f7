"""Reference catalog: the 66-book Protestant canon with aliases and KJV verse counts.

Book lookup is case-insensitive and tolerant of the abbreviations and
spellings that show up in sermon transcripts ("1 Cor", "First Corinthians",
"Revelations"). Chapter and verse bounds come from the per-chapter verse
table, so "John 3:37" is rejected while "John 3:36" passes.
"""

import logging
import re
from dataclasses import dataclass, field

logger = logging.getLogger("versecue.catalog")


@dataclass(frozen=True)
class Book:
    name: str
    testament: str  # "old" or "new"
    aliases: tuple[str, ...]
    verse_counts: tuple[int, ...] = field(repr=False)

    @property
    def chapter_count(self) -> int:
        return len(self.verse_counts)

    def verses_in(self, chapter: int) -> int:
        """Verse count for a chapter, 0 when the chapter does not exist."""
        if 1 <= chapter <= len(self.verse_counts):
            return self.verse_counts[chapter - 1]
        return 0


_ORDINALS = {
    1: ("1", "1st", "first", "i"),
    2: ("2", "2nd", "second", "ii"),
    3: ("3", "3rd", "third", "iii"),
}


def _numbered(n: int, *stems: str) -> tuple[str, ...]:
    """Aliases for a numbered book: every ordinal form times every stem."""
    out = []
    for prefix in _ORDINALS[n]:
        for stem in stems:
            out.append(f"{prefix} {stem}")
            if prefix.isdigit():
                out.append(f"{prefix}{stem}")
    return tuple(out)


def _counts(counts: str) -> tuple[int, ...]:
    return tuple(int(n) for n in counts.split(","))


# (name, testament, aliases, verses per chapter)
_BOOK_TABLE = [
    ("Genesis", "old", ("gen", "ge", "gn"),
     "31,25,24,26,32,22,24,22,29,32,32,20,18,24,21,16,27,33,38,18,34,24,20,67,34,35,46,22,35,43,55,32,20,31,29,43,36,30,23,23,57,38,34,34,28,34,31,22,33,26"),
    ("Exodus", "old", ("exod", "exo", "ex"),
     "22,25,22,31,23,30,25,32,35,29,10,51,22,31,27,36,16,27,25,26,36,31,33,18,40,37,21,43,46,38,18,35,23,35,35,38,29,31,43,38"),
    ("Leviticus", "old", ("lev", "le", "lv"),
     "17,16,17,35,19,30,38,36,24,20,47,8,59,57,33,34,16,30,37,27,24,33,44,23,55,46,34"),
    ("Numbers", "old", ("num", "nu", "nm", "nb"),
     "54,34,51,49,31,27,89,26,23,36,35,16,33,45,41,50,13,32,22,29,35,41,30,25,18,65,23,31,40,16,54,42,56,29,34,13"),
    ("Deuteronomy", "old", ("deut", "de", "dt", "duet", "deuteronomey"),
     "46,37,29,49,33,25,26,20,29,22,32,32,18,29,23,22,20,22,21,20,23,30,25,22,19,19,26,68,29,20,30,52,29,12"),
    ("Joshua", "old", ("josh", "jos", "jsh"),
     "18,24,17,24,15,27,26,35,27,43,23,24,33,15,63,10,18,28,51,9,45,34,16,33"),
    ("Judges", "old", ("judg", "jdg", "jg", "jdgs"),
     "36,23,31,24,31,40,25,35,57,18,40,15,25,20,20,31,13,31,30,48,25"),
    ("Ruth", "old", ("rth", "ru"),
     "22,23,18,22"),
    ("1 Samuel", "old", _numbered(1, "samuel", "sam", "sa"),
     "28,36,21,22,12,21,17,22,27,27,15,25,23,52,35,23,58,30,24,42,15,23,29,22,44,25,12,25,11,31,13"),
    ("2 Samuel", "old", _numbered(2, "samuel", "sam", "sa"),
     "27,32,39,12,25,23,29,18,13,19,27,31,39,33,37,23,29,33,43,26,22,51,39,25"),
    ("1 Kings", "old", _numbered(1, "kings", "kgs", "ki"),
     "53,46,28,34,18,38,51,66,28,29,43,33,34,31,34,34,24,46,21,43,29,53"),
    ("2 Kings", "old", _numbered(2, "kings", "kgs", "ki"),
     "18,25,27,44,27,33,20,29,37,36,21,21,25,29,38,20,41,37,37,21,26,20,37,20,30"),
    ("1 Chronicles", "old", _numbered(1, "chronicles", "chron", "chr", "ch"),
     "54,55,24,43,26,81,40,40,44,14,47,40,14,17,29,43,27,17,19,8,30,19,32,31,31,32,34,21,30"),
    ("2 Chronicles", "old", _numbered(2, "chronicles", "chron", "chr", "ch"),
     "17,18,17,22,14,42,22,18,31,19,23,16,22,15,19,14,19,34,11,37,20,12,21,27,28,23,9,27,36,27,21,33,25,33,27,23"),
    ("Ezra", "old", ("ezr", "ez"),
     "11,70,13,24,17,22,28,36,15,44"),
    ("Nehemiah", "old", ("neh", "ne"),
     "11,20,32,23,19,19,73,18,38,39,36,47,31"),
    ("Esther", "old", ("esth", "est", "es"),
     "22,23,15,17,14,14,10,17,32,3"),
    ("Job", "old", ("jb",),
     "22,13,26,21,27,30,21,22,35,22,20,25,28,22,35,22,16,21,29,29,34,30,17,25,6,14,23,28,25,31,40,22,33,37,16,33,24,41,30,24,34,17"),
    ("Psalms", "old", ("psalm", "psa", "ps", "pss", "psm", "psalter", "palms"),
     "6,12,8,8,12,10,17,9,20,18,7,8,6,7,5,11,15,50,14,9,13,31,6,10,22,12,14,9,11,12,24,11,22,22,28,12,40,22,13,17,13,11,5,26,17,11,9,14,20,23,19,9,6,7,23,13,11,11,17,12,8,12,11,10,13,20,7,35,36,5,24,20,28,23,10,12,20,72,13,19,16,8,18,12,13,17,7,18,52,17,16,15,5,23,11,13,12,9,9,5,8,28,22,35,45,48,43,13,31,7,10,10,9,8,18,19,2,29,176,7,8,9,4,8,5,6,5,6,8,8,3,18,3,3,21,26,9,8,24,13,10,7,12,15,21,10,20,14,9,6"),
    ("Proverbs", "old", ("prov", "pro", "prv", "pr", "proverb"),
     "33,22,35,27,23,35,27,36,18,32,31,28,25,35,33,33,28,24,29,30,31,29,35,34,28,28,27,28,27,33,31"),
    ("Ecclesiastes", "old", ("eccl", "eccles", "ecc", "ec", "qoh"),
     "18,26,22,16,20,12,29,17,18,20,10,14"),
    ("Song of Solomon", "old", ("song", "song of songs", "sos", "so", "canticles", "canticle"),
     "17,17,11,16,16,13,13,14"),
    ("Isaiah", "old", ("isa", "is"),
     "31,22,26,6,30,13,25,22,21,34,16,6,22,32,9,14,14,7,25,6,17,25,18,23,12,21,13,29,24,33,9,20,24,17,10,22,38,22,8,31,29,25,28,28,25,13,15,22,26,11,23,15,12,17,13,12,21,14,21,22,11,12,19,12,25,24"),
    ("Jeremiah", "old", ("jer", "je", "jr"),
     "19,37,25,31,31,30,34,22,26,25,23,17,27,22,21,21,27,23,15,18,14,30,40,10,38,24,22,17,32,24,40,44,26,22,19,32,21,28,18,16,18,22,13,30,5,28,7,47,39,46,64,34"),
    ("Lamentations", "old", ("lam", "la"),
     "22,22,66,22,22"),
    ("Ezekiel", "old", ("ezek", "eze", "ezk"),
     "28,10,27,17,17,14,27,18,11,22,25,28,23,23,8,63,24,32,14,49,32,31,49,27,17,21,36,26,21,26,18,32,33,31,15,38,28,23,29,49,26,20,27,31,25,24,23,35"),
    ("Daniel", "old", ("dan", "da", "dn"),
     "21,49,30,37,31,28,28,27,27,21,45,13"),
    ("Hosea", "old", ("hos", "ho"),
     "11,23,5,19,15,11,16,14,17,15,12,14,16,9"),
    ("Joel", "old", ("joe", "jl"),
     "20,32,21"),
    ("Amos", "old", ("amo", "am"),
     "15,16,15,13,27,14,17,14,15"),
    ("Obadiah", "old", ("obad", "ob"),
     "21"),
    ("Jonah", "old", ("jon", "jnh"),
     "17,10,10,11"),
    ("Micah", "old", ("mic", "mc"),
     "16,13,12,13,15,16,20"),
    ("Nahum", "old", ("nah", "na"),
     "15,13,19"),
    ("Habakkuk", "old", ("hab", "hb", "habakuk"),
     "17,20,19"),
    ("Zephaniah", "old", ("zeph", "zep", "zp"),
     "18,15,20"),
    ("Haggai", "old", ("hag", "hg"),
     "15,23"),
    ("Zechariah", "old", ("zech", "zec", "zc"),
     "21,13,10,14,11,15,14,23,17,12,17,14,9,21"),
    ("Malachi", "old", ("mal", "ml"),
     "14,17,18,6"),
    ("Matthew", "new", ("matt", "mat", "mt", "mathew"),
     "25,23,17,25,48,34,29,34,38,42,30,50,58,36,39,28,27,35,30,34,46,46,39,51,46,75,66,20"),
    ("Mark", "new", ("mrk", "mk", "mr"),
     "45,28,35,41,43,56,37,38,50,52,33,44,37,72,47,20"),
    ("Luke", "new", ("luk", "lk"),
     "80,52,38,44,39,49,50,56,62,42,54,59,35,35,32,31,37,43,48,47,38,71,56,53"),
    ("John", "new", ("joh", "jhn", "jn"),
     "51,25,36,54,47,71,53,59,41,42,57,50,38,31,27,33,26,40,42,31,25"),
    ("Acts", "new", ("act", "ac", "acts of the apostles"),
     "26,47,26,37,42,15,60,40,43,48,30,25,52,28,41,40,34,28,41,38,40,30,35,27,27,32,44,31"),
    ("Romans", "new", ("rom", "ro", "rm"),
     "32,29,31,25,21,23,25,39,33,21,36,21,14,23,33,27"),
    ("1 Corinthians", "new", _numbered(1, "corinthians", "corinthian", "cor", "co"),
     "31,16,23,21,13,20,40,13,27,33,34,31,13,40,58,24"),
    ("2 Corinthians", "new", _numbered(2, "corinthians", "corinthian", "cor", "co"),
     "24,17,18,18,21,18,16,24,15,18,33,21,14"),
    ("Galatians", "new", ("gal", "ga", "galatian"),
     "24,21,29,31,26,18"),
    ("Ephesians", "new", ("eph", "ephes", "ephesian"),
     "23,22,21,32,33,24"),
    ("Philippians", "new", ("phil", "php", "pp", "phillipians", "philipians", "philippian"),
     "30,30,21,23"),
    ("Colossians", "new", ("col", "colossian"),
     "29,23,25,18"),
    ("1 Thessalonians", "new", _numbered(1, "thessalonians", "thess", "th"),
     "10,20,13,18,28"),
    ("2 Thessalonians", "new", _numbered(2, "thessalonians", "thess", "th"),
     "12,17,18"),
    ("1 Timothy", "new", _numbered(1, "timothy", "tim", "ti"),
     "20,15,16,16,25,21"),
    ("2 Timothy", "new", _numbered(2, "timothy", "tim", "ti"),
     "18,26,17,22"),
    ("Titus", "new", ("tit",),
     "16,15,15"),
    ("Philemon", "new", ("philem", "phm", "pm"),
     "25"),
    ("Hebrews", "new", ("heb", "he", "hebrew"),
     "14,18,19,16,14,20,28,13,28,39,40,29,25"),
    ("James", "new", ("jam", "jas", "jm"),
     "27,26,18,17,20"),
    ("1 Peter", "new", _numbered(1, "peter", "pet", "pe"),
     "25,25,22,19,14"),
    ("2 Peter", "new", _numbered(2, "peter", "pet", "pe"),
     "21,22,18"),
    ("1 John", "new", _numbered(1, "john", "jn", "jo"),
     "10,29,24,21,21"),
    ("2 John", "new", _numbered(2, "john", "jn", "jo"),
     "13"),
    ("3 John", "new", _numbered(3, "john", "jn", "jo"),
     "14"),
    ("Jude", "new", ("jud", "jd"),
     "25"),
    ("Revelation", "new", ("rev", "re", "revelations", "apocalypse", "the revelation"),
     "20,29,22,11,14,17,17,13,21,11,19,17,18,20,8,21,18,24,21,15,27,21"),
]

BIBLE_BOOKS: tuple[Book, ...] = tuple(
    Book(name=name, testament=testament, aliases=aliases, verse_counts=_counts(counts))
    for name, testament, aliases, counts in _BOOK_TABLE
)

# Aliases that are ordinary English words, titles or units. They still resolve
# through find_book() but are never matched inside running speech.
SPEECH_WORD_ALIASES = frozenset({
    "is", "so", "am", "he", "be", "la", "ho", "na", "ex", "de", "ac", "act",
    "pro", "re", "ro", "mr", "ne", "es", "da", "ga", "co", "le", "nu", "ru",
    "ob", "pe", "ti", "th", "joe", "song", "jam", "pp", "pm", "ml", "mc", "sa",
    "ki", "ch", "je", "jo", "ge", "ec", "i john", "i peter",
})

# Written abbreviations. The parser accepts them only in a full
# chapter:verse citation ("Rom 8:28"), never chapter-only ("mt 5").
ABBREVIATION_ALIASES = frozenset({
    "rom", "rm", "ps", "col", "jn", "mt", "mk", "lk", "mat", "lam", "mic", "num",
    "jon", "est", "hag", "tit", "pr", "ez", "ezk", "hb", "hg", "jd", "jm",
    "jg", "jr", "dn", "dt", "gn", "lv", "nb", "nm", "jl", "zc", "zp", "jb",
    "qoh", "jsh", "sos",
})

BOOK_BY_NAME: dict[str, Book] = {b.name.lower(): b for b in BIBLE_BOOKS}
BOOK_BY_ALIAS: dict[str, Book] = {}
for _book in BIBLE_BOOKS:
    for _alias in _book.aliases:
        # First book wins ("co" belongs to 1 Corinthians before Colossians)
        _owner = BOOK_BY_ALIAS.setdefault(_alias.lower(), _book)
        if _owner is not _book:
            logger.debug(f"Alias '{_alias}' of {_book.name} already taken by {_owner.name}")

# Spoken number words, shared with the normalizer
NUMBER_WORDS: dict[str, int] = {
    "zero": 0, "one": 1, "two": 2, "three": 3, "four": 4,
    "five": 5, "six": 6, "seven": 7, "eight": 8, "nine": 9,
    "ten": 10, "eleven": 11, "twelve": 12, "thirteen": 13, "fourteen": 14,
    "fifteen": 15, "sixteen": 16, "seventeen": 17, "eighteen": 18, "nineteen": 19,
    "twenty": 20, "thirty": 30, "forty": 40, "fifty": 50,
    "sixty": 60, "seventy": 70, "eighty": 80, "ninety": 90,
}

# Lexical cues that make the contextual classifier worth a call
TRIGGER_KEYWORDS = (
    "paul", "jesus", "moses", "david", "abraham", "peter", "john",
    "prophet", "apostle", "disciples",
    "gospel", "psalm", "proverb", "parable", "scripture", "bible",
    "sermon on the mount", "beatitudes", "lord's prayer",
    "old testament", "new testament",
    "wrote", "said", "taught", "preached", "spoke",
    "remember when", "remember that", "that passage", "that verse",
    "as it is written", "scripture tells us", "the word says",
    "letter to", "wrote to", "epistle",
    "corinth", "rome", "ephesus", "galatia", "philippi", "colossae", "thessalonica",
    "love is patient", "faith hope love", "armor of god", "fruit of the spirit",
    "the lord is my shepherd", "in the beginning", "for god so loved",
)


def find_book(name: str) -> Book | None:
    """Resolve a book name, alias, or unambiguous prefix (3+ chars) to a Book."""
    normalized = re.sub(r"\s+", " ", name.lower().replace(".", " ")).strip()
    if not normalized:
        return None

    book = BOOK_BY_NAME.get(normalized) or BOOK_BY_ALIAS.get(normalized)
    if book:
        return book

    # "1cor" style without the space, or "1 corinthian" style with one
    compact = normalized.replace(" ", "")
    for b in BIBLE_BOOKS:
        if b.name.lower().replace(" ", "") == compact:
            return b

    if len(normalized) >= 3:
        for b in BIBLE_BOOKS:
            if b.name.lower().startswith(normalized):
                return b
    return None


def validate_reference(book: Book, chapter: int, verse: int | None = None) -> bool:
    """True when chapter (and verse, if given) fall within the book's bounds."""
    if chapter < 1 or chapter > book.chapter_count:
        return False
    if verse is not None and (verse < 1 or verse > book.verses_in(chapter)):
        return False
    return True


def _longest_first(names) -> list[str]:
    return sorted(names, key=lambda s: (-len(s), s))


# Every name and alias safe to match in running speech, longest first
PARSER_ALIASES: list[str] = _longest_first(
    set(BOOK_BY_NAME) | {a for a in BOOK_BY_ALIAS if a not in SPEECH_WORD_ALIASES}
)


def alias_pattern(names) -> str:
    """Regex alternation for book names; internal spaces match any whitespace."""
    return "|".join(r"\s+".join(re.escape(part) for part in n.split(" ")) for n in names)


# Book tokens for the pre-filter: parser aliases plus numbered-book stems so
# "first corinthians" and "corinthians" both register.
_STEMS = {b.name.split(" ", 1)[1].lower() for b in BIBLE_BOOKS if b.name[0].isdigit()}
_BOOK_TOKEN_RE = re.compile(
    rf"(?<![\w])(?:{alias_pattern(_longest_first(set(PARSER_ALIASES) | _STEMS))})(?![\w])",
    re.IGNORECASE,
)
_NUMBER_RE = re.compile(
    rf"\d|\b(?:{'|'.join(NUMBER_WORDS)}|hundred)\b",
    re.IGNORECASE,
)
_CITATION_RE = re.compile(r"\d+\s*:\s*\d+")


def mentions_book(text: str) -> bool:
    return _BOOK_TOKEN_RE.search(text) is not None


def might_contain_scripture(text: str) -> bool:
    """Cheap gate for the deterministic stage: a book token near a number, or a bare N:N."""
    if _CITATION_RE.search(text):
        return True
    return mentions_book(text) and _NUMBER_RE.search(text) is not None


def contains_trigger_keywords(text: str) -> bool:
    """Cheap gate for the contextual stage. False positives are fine, false negatives are not."""
    lower = text.lower()
    if any(keyword in lower for keyword in TRIGGER_KEYWORDS):
        return True
    return mentions_book(text)
