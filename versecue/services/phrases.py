"""Verbatim phrase matching for well-known verses (CPU, no external calls).

Catches quotations that carry no citation ("for God so loved the world")
when no contextual classifier is configured. Text is lowercased and stripped
of punctuation before matching, and a phrase must match on word boundaries.
"""

import re
from dataclasses import dataclass

from versecue.models.schemas import ScriptureReference
from versecue.services.reference_parser import check_reference


@dataclass(frozen=True)
class PhraseEntry:
    phrase: str
    reference: ScriptureReference


@dataclass(frozen=True)
class PhraseMatch:
    phrase: str
    reference: ScriptureReference
    position: int = 0


# (phrase, book, chapter, verse_start, verse_end)
_PHRASE_TABLE = [
    # John
    ("for god so loved the world", "John", 3, 16, None),
    ("gave his only begotten son", "John", 3, 16, None),
    ("i am the way the truth and the life", "John", 14, 6, None),
    ("no one comes to the father except through me", "John", 14, 6, None),
    ("you will know the truth and the truth will set you free", "John", 8, 32, None),
    ("the truth shall make you free", "John", 8, 32, None),
    ("i am the good shepherd", "John", 10, 11, None),
    ("i am the bread of life", "John", 6, 35, None),
    ("i am the light of the world", "John", 8, 12, None),
    ("i am the resurrection and the life", "John", 11, 25, None),
    ("in the beginning was the word", "John", 1, 1, None),
    # Psalms
    ("the lord is my shepherd", "Psalms", 23, 1, None),
    ("i shall not want", "Psalms", 23, 1, None),
    ("though i walk through the valley of the shadow of death", "Psalms", 23, 4, None),
    ("thy rod and thy staff they comfort me", "Psalms", 23, 4, None),
    ("be still and know that i am god", "Psalms", 46, 10, None),
    ("create in me a clean heart", "Psalms", 51, 10, None),
    ("this is the day the lord has made", "Psalms", 118, 24, None),
    ("your word is a lamp to my feet", "Psalms", 119, 105, None),
    # Proverbs
    ("trust in the lord with all your heart", "Proverbs", 3, 5, 6),
    ("lean not on your own understanding", "Proverbs", 3, 5, 6),
    ("train up a child in the way he should go", "Proverbs", 22, 6, None),
    ("as iron sharpens iron", "Proverbs", 27, 17, None),
    # Romans
    ("for all have sinned and fall short", "Romans", 3, 23, None),
    ("the wages of sin is death", "Romans", 6, 23, None),
    ("the gift of god is eternal life", "Romans", 6, 23, None),
    ("all things work together for good", "Romans", 8, 28, None),
    ("if god is for us who can be against us", "Romans", 8, 31, None),
    ("nothing can separate us from the love of god", "Romans", 8, 38, 39),
    ("do not conform to the pattern of this world", "Romans", 12, 2, None),
    ("be transformed by the renewing of your mind", "Romans", 12, 2, None),
    # Philippians
    ("i can do all things through christ", "Philippians", 4, 13, None),
    ("who strengthens me", "Philippians", 4, 13, None),
    ("do not be anxious about anything", "Philippians", 4, 6, 7),
    ("the peace of god which surpasses all understanding", "Philippians", 4, 7, None),
    # Jeremiah
    ("for i know the plans i have for you", "Jeremiah", 29, 11, None),
    ("plans to prosper you and not to harm you", "Jeremiah", 29, 11, None),
    # Isaiah
    ("those who wait on the lord shall renew their strength", "Isaiah", 40, 31, None),
    ("mount up with wings like eagles", "Isaiah", 40, 31, None),
    ("fear not for i am with you", "Isaiah", 41, 10, None),
    # Matthew
    ("love your enemies", "Matthew", 5, 44, None),
    ("seek first the kingdom of god", "Matthew", 6, 33, None),
    ("ask and it will be given to you", "Matthew", 7, 7, None),
    ("seek and you will find", "Matthew", 7, 7, None),
    ("knock and the door will be opened", "Matthew", 7, 7, None),
    ("come to me all you who are weary", "Matthew", 11, 28, None),
    ("i will give you rest", "Matthew", 11, 28, None),
    ("go and make disciples of all nations", "Matthew", 28, 19, 20),
    ("i am with you always", "Matthew", 28, 20, None),
    # Epistles
    ("the fruit of the spirit is love joy peace", "Galatians", 5, 22, 23),
    ("by grace you have been saved through faith", "Ephesians", 2, 8, 9),
    ("put on the full armor of god", "Ephesians", 6, 11, None),
    ("faith is the substance of things hoped for", "Hebrews", 11, 1, None),
    ("the evidence of things not seen", "Hebrews", 11, 1, None),
    ("love is patient love is kind", "1 Corinthians", 13, 4, 7),
    ("faith hope and love", "1 Corinthians", 13, 13, None),
    ("the greatest of these is love", "1 Corinthians", 13, 13, None),
    ("if anyone is in christ he is a new creation", "2 Corinthians", 5, 17, None),
    ("the old has gone the new has come", "2 Corinthians", 5, 17, None),
    ("my grace is sufficient for you", "2 Corinthians", 12, 9, None),
    ("cast all your anxiety on him", "1 Peter", 5, 7, None),
    ("because he cares for you", "1 Peter", 5, 7, None),
    ("faith without works is dead", "James", 2, 26, None),
    ("if we confess our sins", "1 John", 1, 9, None),
    ("he is faithful and just to forgive us", "1 John", 1, 9, None),
    ("god is love", "1 John", 4, 8, None),
    # Old Testament narrative and Revelation
    ("in the beginning god created", "Genesis", 1, 1, None),
    ("let there be light", "Genesis", 1, 3, None),
    ("be strong and courageous", "Joshua", 1, 9, None),
    ("behold i stand at the door and knock", "Revelation", 3, 20, None),
    ("i am the alpha and the omega", "Revelation", 22, 13, None),
]

# Entries fail at import if a table row falls outside the catalog
COMMON_PHRASES: tuple[PhraseEntry, ...] = tuple(
    PhraseEntry(phrase=phrase, reference=check_reference(book, chapter, start, end))
    for phrase, book, chapter, start, end in _PHRASE_TABLE
)
PHRASE_BY_TEXT: dict[str, PhraseEntry] = {e.phrase: e for e in COMMON_PHRASES}

_PHRASE_RE = re.compile(
    r"\b(?:"
    + "|".join(re.escape(p) for p in sorted(PHRASE_BY_TEXT, key=len, reverse=True))
    + r")\b"
)
_PUNCT_RE = re.compile(r"[^\w\s]")


def normalize_for_phrases(text: str) -> str:
    return " ".join(_PUNCT_RE.sub("", text.lower()).split())


def find_phrase_matches(text: str) -> list[PhraseMatch]:
    """Known verse wording in order of appearance, one match per reference."""
    normalized = normalize_for_phrases(text)
    if not normalized:
        return []
    matches = []
    seen: set[str] = set()
    for m in _PHRASE_RE.finditer(normalized):
        entry = PHRASE_BY_TEXT[m.group(0)]
        if entry.reference.reference in seen:
            continue
        seen.add(entry.reference.reference)
        matches.append(PhraseMatch(phrase=entry.phrase, reference=entry.reference, position=m.start()))
    return matches
