"""Unit tests for the reference catalog."""

import pytest

from versecue.services.catalog import (
    ABBREVIATION_ALIASES, BIBLE_BOOKS, SPEECH_WORD_ALIASES, contains_trigger_keywords,
    find_book, mentions_book, might_contain_scripture, validate_reference,
)


class TestCatalogData:

    def test_sixty_six_books(self):
        assert len(BIBLE_BOOKS) == 66

    def test_testament_split(self):
        assert sum(1 for b in BIBLE_BOOKS if b.testament == "old") == 39
        assert sum(1 for b in BIBLE_BOOKS if b.testament == "new") == 27

    def test_chapter_counts(self):
        assert find_book("Psalms").chapter_count == 150
        assert find_book("Genesis").chapter_count == 50
        assert find_book("Jude").chapter_count == 1
        assert find_book("Revelation").chapter_count == 22

    def test_verse_counts(self):
        assert find_book("Psalms").verses_in(119) == 176
        assert find_book("John").verses_in(3) == 36
        assert find_book("John").verses_in(22) == 0


class TestFindBook:

    @pytest.mark.parametrize("name,expected", [
        ("John", "John"),
        ("john", "John"),
        ("JOHN", "John"),
        ("1 Cor", "1 Corinthians"),
        ("1cor", "1 Corinthians"),
        ("First Corinthians", "1 Corinthians"),
        ("1st Corinthians", "1 Corinthians"),
        ("II Peter", "2 Peter"),
        ("Revelations", "Revelation"),
        ("Psalm", "Psalms"),
        ("Phillipians", "Philippians"),
        ("Song of Songs", "Song of Solomon"),
        ("Rom.", "Romans"),
        ("deut", "Deuteronomy"),
        ("Ecclesia", "Ecclesiastes"),
    ])
    def test_aliases_and_spellings(self, name, expected):
        book = find_book(name)
        assert book is not None
        assert book.name == expected

    @pytest.mark.parametrize("name", ["", "   ", "Hezekiah", "Maccabees", "xy"])
    def test_not_found(self, name):
        assert find_book(name) is None


class TestValidateReference:

    def test_valid_chapter_and_verse(self):
        john = find_book("John")
        assert validate_reference(john, 3, 16) is True
        assert validate_reference(john, 3, 36) is True
        assert validate_reference(john, 3) is True

    def test_chapter_out_of_range(self):
        john = find_book("John")
        assert validate_reference(john, 0) is False
        assert validate_reference(john, 22) is False

    def test_verse_out_of_range(self):
        john = find_book("John")
        assert validate_reference(john, 3, 37) is False
        assert validate_reference(john, 3, 0) is False


class TestPreFilters:

    def test_might_contain_explicit_citation(self):
        assert might_contain_scripture("In John 3:16 we see God's love") is True

    def test_might_contain_spoken_citation(self):
        assert might_contain_scripture("turn with me to Romans chapter eight") is True

    def test_might_contain_bare_colon_reference(self):
        assert might_contain_scripture("look at 3:16 again") is True

    def test_might_not_contain_ordinary_speech(self):
        assert might_contain_scripture("Good morning everyone, welcome back") is False

    def test_book_name_without_number_is_not_enough(self):
        assert might_contain_scripture("Romans were everywhere back then") is False

    def test_written_abbreviation_counts_as_book(self):
        assert mentions_book("open to Col 3 tonight") is True
        assert mentions_book("he is so tired") is False

    def test_alias_tiers_do_not_overlap(self):
        assert not ABBREVIATION_ALIASES & SPEECH_WORD_ALIASES
        assert all(find_book(a) for a in ABBREVIATION_ALIASES)

    def test_trigger_keywords(self):
        assert contains_trigger_keywords("Paul wrote to the church") is True
        assert contains_trigger_keywords("The Lord is my shepherd, I shall not want") is True

    def test_trigger_keyword_from_book_name(self):
        assert contains_trigger_keywords("over in Habakkuk we read") is True

    def test_no_trigger_keywords(self):
        assert contains_trigger_keywords("please silence your phones before we begin") is False
