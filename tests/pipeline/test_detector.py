"""Unit tests for the ScriptureDetector orchestrator."""

import asyncio

import pytest

from versecue.config import DetectionConfig
from versecue.models.schemas import ConfidenceLevel, DetectionType, DetectOptions
from versecue.pipeline.detector import ScriptureDetector, confidence_level
from tests.conftest import FakeClassifier, FakeVerseLookup


@pytest.fixture
def classifier():
    return FakeClassifier()


@pytest.fixture
def detector(detection_config, classifier, clock):
    return ScriptureDetector(detection_config, classifier=classifier, clock=clock)


class TestConfidenceLevel:

    @pytest.mark.parametrize("score,level", [
        (0.95, ConfidenceLevel.HIGH),
        (0.9, ConfidenceLevel.HIGH),
        (0.89, ConfidenceLevel.MEDIUM),
        (0.7, ConfidenceLevel.MEDIUM),
        (0.69, ConfidenceLevel.LOW),
        (0.6, ConfidenceLevel.LOW),
    ])
    def test_tiers(self, score, level):
        assert confidence_level(score, DetectionConfig()) == level


class TestDeterministicPath:

    async def test_explicit_citation(self, detector, classifier):
        results = await detector.detect("In John 3:16 we see God's love")
        assert len(results) == 1
        r = results[0]
        assert r.reference.reference == "John 3:16"
        assert r.detection_type == DetectionType.DETERMINISTIC
        assert r.confidence_score == 0.95
        assert r.confidence_level == ConfidenceLevel.HIGH
        assert r.matched_text == "John 3:16"
        assert r.reasoning is None
        assert classifier.calls == []

    async def test_multiple_in_order(self, detector):
        results = await detector.detect("Compare Romans 5:8 with John 3:16 this morning")
        assert [r.reference.reference for r in results] == ["Romans 5:8", "John 3:16"]

    async def test_invalid_citation_dropped(self, detector):
        assert await detector.detect("Look at John 22:1 please") == []


class TestFastPath:

    async def test_ordinary_speech_skips_everything(self, detector, classifier):
        assert await detector.detect("Good morning everyone, welcome back") == []
        assert classifier.calls == []
        assert detector.metrics["fast_path_skips"] == 1

    async def test_empty_text(self, detector, classifier):
        assert await detector.detect("   ") == []
        assert classifier.calls == []


class TestContextualFallback:

    async def test_called_when_parser_found_nothing(self, detection_config, clock):
        classifier = FakeClassifier([("1 Corinthians 13:4", 0.85, "love is patient")])
        detector = ScriptureDetector(detection_config, classifier=classifier, clock=clock)

        results = await detector.detect("Paul wrote that love is patient and kind",
                                        DetectOptions(context="we were talking about love"))
        assert len(classifier.calls) == 1
        assert classifier.calls[0] == ("Paul wrote that love is patient and kind",
                                       "we were talking about love")
        assert len(results) == 1
        r = results[0]
        assert r.detection_type == DetectionType.CONTEXTUAL
        assert r.confidence_score == 0.85
        assert r.confidence_level == ConfidenceLevel.MEDIUM
        assert r.reasoning == "love is patient"
        assert r.matched_text == "Paul wrote that love is patient and kind"

    async def test_not_called_when_parser_found_something(self, detection_config, clock):
        classifier = FakeClassifier([("Romans 8:28", 0.9, "")])
        detector = ScriptureDetector(detection_config, classifier=classifier, clock=clock)

        results = await detector.detect("Paul wrote Romans 8:28 to encourage us")
        assert classifier.calls == []
        assert [r.detection_type for r in results] == [DetectionType.DETERMINISTIC]

    async def test_not_called_when_parsed_reference_was_suppressed(self, detection_config, clock):
        classifier = FakeClassifier([("Romans 8:28", 0.9, "")])
        detector = ScriptureDetector(detection_config, classifier=classifier, clock=clock)

        await detector.detect("Paul wrote Romans 8:28")
        clock.advance(5)
        assert await detector.detect("Paul wrote Romans 8:28") == []
        assert classifier.calls == []

    async def test_skip_fallback(self, detection_config, clock):
        classifier = FakeClassifier([("1 Corinthians 13:4", 0.85, "")])
        detector = ScriptureDetector(detection_config, classifier=classifier, clock=clock)

        results = await detector.detect("Paul wrote that love is patient",
                                        DetectOptions(skip_fallback=True))
        assert results == []
        assert classifier.calls == []

    async def test_below_threshold_dropped(self, detection_config, clock):
        classifier = FakeClassifier([
            ("1 Corinthians 13:4", 0.59, ""),
            ("1 Corinthians 13:7", 0.6, ""),
        ])
        detector = ScriptureDetector(detection_config, classifier=classifier, clock=clock)

        results = await detector.detect("Paul wrote that love is patient")
        assert [r.reference.reference for r in results] == ["1 Corinthians 13:7"]
        assert results[0].confidence_level == ConfidenceLevel.LOW

    async def test_classifier_exception_yields_nothing(self, detection_config, clock):
        class Broken:
            async def classify(self, transcript, context=None):
                raise RuntimeError("boom")

        detector = ScriptureDetector(detection_config, classifier=Broken(), clock=clock)
        assert await detector.detect("Paul wrote that love is patient") == []

    async def test_no_classifier_configured(self, detection_config, clock):
        detector = ScriptureDetector(detection_config, clock=clock)
        assert await detector.detect("Paul wrote that love is patient") == []


class TestCooldown:

    async def test_repeat_within_window_suppressed(self, detector, clock):
        assert len(await detector.detect("John 3:16")) == 1
        clock.advance(30)
        assert await detector.detect("As I said, John 3:16") == []
        assert detector.metrics["suppressed"] == 1
        clock.advance(31)
        assert len(await detector.detect("John 3:16 again")) == 1

    async def test_suppressed_dropped_but_others_kept(self, detector, clock):
        await detector.detect("John 3:16")
        clock.advance(1)
        results = await detector.detect("John 3:16 and Romans 5:8")
        assert [r.reference.reference for r in results] == ["Romans 5:8"]

    async def test_clear_cooldowns(self, detector, clock):
        await detector.detect("John 3:16")
        detector.clear_cooldowns()
        assert len(await detector.detect("John 3:16")) == 1

    async def test_concurrent_detects_emit_once(self, detector):
        batches = await asyncio.gather(*(detector.detect("John 3:16") for _ in range(5)))
        assert sum(len(b) for b in batches) == 1


class TestEnrichment:

    async def test_verse_text_attached(self, detection_config, clock):
        lookup = FakeVerseLookup({"John 3:16": "For God so loved the world"})
        detector = ScriptureDetector(detection_config, verse_lookup=lookup, clock=clock)

        results = await detector.detect("John 3:16", DetectOptions(fetch_verse_text=True))
        assert results[0].verse_text == "For God so loved the world"
        assert results[0].translation == "KJV"

    async def test_not_fetched_unless_requested(self, detection_config, clock):
        lookup = FakeVerseLookup({"John 3:16": "For God so loved the world"})
        detector = ScriptureDetector(detection_config, verse_lookup=lookup, clock=clock)

        results = await detector.detect("John 3:16")
        assert results[0].verse_text is None
        assert lookup.calls == []

    async def test_failure_still_emits(self, detection_config, clock):
        lookup = FakeVerseLookup(
            {"Romans 5:8": "But God commendeth his love"}, failing={"John 3:16"},
        )
        detector = ScriptureDetector(detection_config, verse_lookup=lookup, clock=clock)

        results = await detector.detect("John 3:16 and Romans 5:8",
                                        DetectOptions(fetch_verse_text=True))
        assert [r.reference.reference for r in results] == ["John 3:16", "Romans 5:8"]
        assert results[0].verse_text is None
        assert results[1].verse_text == "But God commendeth his love"
        assert detector.metrics["enrichment_failures"] == 1

    async def test_unexpected_lookup_error_still_emits(self, detection_config, clock):
        class Exploding:
            async def lookup(self, reference):
                raise ValueError("bad payload")

        detector = ScriptureDetector(detection_config, verse_lookup=Exploding(), clock=clock)
        results = await detector.detect("John 3:16", DetectOptions(fetch_verse_text=True))
        assert len(results) == 1
        assert results[0].verse_text is None


class TestPhraseStage:

    async def test_quote_detected_without_classifier(self, detection_config, clock):
        detector = ScriptureDetector(detection_config, classifier=None, clock=clock)
        results = await detector.detect("For God so loved the world that he gave his only begotten son")

        assert len(results) == 1
        r = results[0]
        assert r.reference.reference == "John 3:16"
        assert r.detection_type == DetectionType.CONTEXTUAL
        assert r.confidence_score == 0.9
        assert r.confidence_level == ConfidenceLevel.HIGH
        assert r.matched_text == "for god so loved the world"
        assert "John 3:16" in r.reasoning

    async def test_phrase_match_skips_classifier(self, detection_config, clock):
        classifier = FakeClassifier([("Psalms 23:4", 0.8, "")])
        detector = ScriptureDetector(detection_config, classifier=classifier, clock=clock)

        results = await detector.detect("David said it, the Lord is my shepherd")
        assert classifier.calls == []
        assert [r.reference.reference for r in results] == ["Psalms 23:1"]

    async def test_suppressed_phrase_still_skips_classifier(self, detection_config, clock):
        classifier = FakeClassifier([("Psalms 23:4", 0.8, "")])
        detector = ScriptureDetector(detection_config, classifier=classifier, clock=clock)

        await detector.detect("The Lord is my shepherd")
        assert await detector.detect("The Lord is my shepherd") == []
        assert classifier.calls == []
        assert detector.metrics["suppressed"] == 1

    async def test_parser_result_wins_over_phrase(self, detector):
        results = await detector.detect("John 3:16 says for God so loved the world")
        assert [r.detection_type for r in results] == [DetectionType.DETERMINISTIC]

    async def test_at_most_two_per_segment(self, detection_config, clock):
        detector = ScriptureDetector(detection_config, classifier=None, clock=clock)
        text = "Be still and know that I am God. Let there be light. God is love."
        results = await detector.detect(text)
        assert [r.reference.reference for r in results] == ["Psalms 46:10", "Genesis 1:3"]

    async def test_skip_fallback_skips_phrases(self, detection_config, clock):
        detector = ScriptureDetector(detection_config, classifier=None, clock=clock)
        assert await detector.detect("Let there be light", DetectOptions(skip_fallback=True)) == []

    async def test_phrase_enriched(self, detection_config, clock):
        lookup = FakeVerseLookup({"Genesis 1:3": "And God said, Let there be light"})
        detector = ScriptureDetector(detection_config, verse_lookup=lookup, clock=clock)
        results = await detector.detect("let there be light", DetectOptions(fetch_verse_text=True))
        assert results[0].verse_text == "And God said, Let there be light"


class TestMetrics:

    async def test_counts(self, detector):
        await detector.detect("John 3:16")
        await detector.detect("nothing to see here")
        m = detector.metrics
        assert m["segments"] == 2
        assert m["deterministic"] == 1
        assert m["cooldown_entries"] == 1
