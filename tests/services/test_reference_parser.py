"""Unit tests for the deterministic reference parser."""

import pytest

from versecue.errors import ValidationError
from versecue.services.catalog import BIBLE_BOOKS
from versecue.services.reference_parser import (
    build_reference, check_reference, parse, parse_all, parse_reference, references_equal,
    require_reference,
)


def _refs(text: str) -> list[str]:
    return [m.reference.reference for m in parse(text)]


class TestExplicitCitations:

    def test_single_verse(self):
        matches = parse_all("In John 3:16 we see God's love")
        assert len(matches) == 1
        ref = matches[0].reference
        assert ref.book == "John"
        assert ref.chapter == 3
        assert ref.verse_start == 16
        assert ref.verse_end is None
        assert ref.reference == "John 3:16"
        assert matches[0].matched_text == "John 3:16"

    def test_verse_range(self):
        ref = parse_all("Romans 8:28-30 is my favourite")[0].reference
        assert (ref.verse_start, ref.verse_end) == (28, 30)
        assert ref.reference == "Romans 8:28-30"

    def test_chapter_only(self):
        ref = parse_all("Let's read Psalm 23 together")[0].reference
        assert ref.book == "Psalms"
        assert ref.verse_start is None
        assert ref.reference == "Psalms 23"

    def test_numbered_book_wins_over_plain_book(self):
        assert _refs("1 John 4:8 says God is love") == ["1 John 4:8"]

    def test_abbreviation_with_period(self):
        assert _refs("Gen. 1:1 opens the story") == ["Genesis 1:1"]

    def test_multiple_in_order(self):
        matches = parse_all("John 3:16 and Romans 5:8 both speak of love")
        assert [m.reference.reference for m in matches] == ["John 3:16", "Romans 5:8"]
        assert matches[0].position < matches[1].position

    def test_duplicates_reported_once(self):
        assert _refs("John 3:16, yes John 3:16") == ["John 3:16"]

    def test_same_start_and_end_collapses(self):
        assert _refs("John 3:16-16") == ["John 3:16"]

    @pytest.mark.parametrize("text, expected", [
        ("Rom 8:28", "Romans 8:28"),
        ("Ps 23:1", "Psalms 23:1"),
        ("Jn 3:16", "John 3:16"),
        ("Mt 5:3", "Matthew 5:3"),
        ("Col 3:12", "Colossians 3:12"),
        ("Lam 3:22-23", "Lamentations 3:22-23"),
        ("Mic. 6:8", "Micah 6:8"),
    ])
    def test_written_abbreviation(self, text, expected):
        assert _refs(f"see {text} this week") == [expected]

    def test_abbreviation_needs_a_verse(self):
        assert _refs("meet in room mt 5 after the service") == []
        assert _refs("Ps 23") == []


class TestSpokenCitations:

    def test_spoken_chapter_and_verse(self):
        assert _refs("turn with me to John chapter three verse sixteen") == ["John 3:16"]

    def test_spoken_numbered_book_and_range(self):
        text = "First Corinthians chapter thirteen verses four through seven"
        assert _refs(text) == ["1 Corinthians 13:4-7"]

    def test_stt_misspelling(self):
        assert _refs("Revelations 21:4 wipes away every tear") == ["Revelation 21:4"]


class TestInvalidCitations:

    @pytest.mark.parametrize("text", [
        "John 22:1",       # John has 21 chapters
        "John 3:37",       # John 3 has 36 verses
        "Jude 2:1",        # single-chapter book
        "Psalms 151",
        "John 3:18-16",    # descending range
    ])
    def test_out_of_bounds_discarded(self, text):
        assert parse_all(text) == []

    def test_range_past_end_is_not_trimmed(self):
        assert parse_all("John 3:16-40") == []

    def test_ambiguous_words_not_matched(self):
        assert parse_all("I am so glad he is here at 3") == []

    def test_no_citation(self):
        assert parse_all("Good morning everyone") == []


class TestCatalogRoundTrip:
    """Canonical strings for each book's first and last verse parse back unchanged."""

    @pytest.mark.parametrize("book", BIBLE_BOOKS, ids=lambda b: b.name)
    def test_first_verse(self, book):
        canonical = f"{book.name} 1:1"
        assert parse_reference(canonical).reference == canonical
        assert _refs(canonical) == [canonical]

    @pytest.mark.parametrize("book", BIBLE_BOOKS, ids=lambda b: b.name)
    def test_last_verse(self, book):
        last = book.chapter_count
        canonical = f"{book.name} {last}:{book.verses_in(last)}"
        assert parse_reference(canonical).reference == canonical
        assert _refs(canonical) == [canonical]


class TestParseReference:

    def test_range(self):
        ref = parse_reference("John 3:16-18")
        assert ref.verse_start == 16
        assert ref.verse_end == 18

    def test_alias_resolves_to_canonical_name(self):
        assert parse_reference("1 Cor 13:4").reference == "1 Corinthians 13:4"

    @pytest.mark.parametrize("value", ["", "John", "Nope 1:1", "John 22:1", "3:16"])
    def test_invalid(self, value):
        assert parse_reference(value) is None


class TestBuildReference:

    def test_end_without_start_rejected(self):
        assert build_reference("John", 3, None, 5) is None

    def test_unknown_book(self):
        assert build_reference("Hezekiah", 1, 1) is None

    def test_valid(self):
        assert build_reference("john", 3, 16, 17).reference == "John 3:16-17"


class TestReferencesEqual:

    def test_equal(self):
        assert references_equal(parse_reference("John 3:16"), parse_reference("Jn 3:16"))

    def test_not_equal(self):
        assert not references_equal(parse_reference("John 3:16"), parse_reference("John 3:16-17"))


class TestCheckReference:

    @pytest.mark.parametrize("args,reason", [
        (("Hezekiah", 1, 1), "unknown book"),
        (("John", 22, 1), "John has 21 chapters"),
        (("John", 3, 37), "John 3 has 36 verses"),
        (("John", 3, 18, 16), "backwards"),
        (("John", 3, 16, 40), "John 3 has 36 verses"),
        (("John", 3, None, 5), "without a start verse"),
    ])
    def test_reason_reported(self, args, reason):
        with pytest.raises(ValidationError) as exc:
            check_reference(*args)
        assert reason in exc.value.reason

    def test_require_reference_shape(self):
        with pytest.raises(ValidationError) as exc:
            require_reference("three sixteen")
        assert exc.value.reference == "three sixteen"

    def test_require_reference_valid(self):
        assert require_reference("Jude 1:25").reference == "Jude 1:25"
