"""Detection orchestrator: deterministic parse, phrase and contextual fallback, cooldown, enrichment."""

import asyncio
import logging
import time
from typing import Callable, Protocol

from versecue.config import DetectionConfig
from versecue.errors import EnrichmentUnavailable
from versecue.models.schemas import (
    ClassifiedReference, ConfidenceLevel, DetectionResult, DetectionType,
    DetectOptions, ScriptureReference, VerseText,
)
from versecue.pipeline.cooldown import CooldownCache
from versecue.services.catalog import contains_trigger_keywords, might_contain_scripture
from versecue.services.phrases import find_phrase_matches
from versecue.services.reference_parser import parse

logger = logging.getLogger("versecue.detector")


class Classifier(Protocol):
    async def classify(self, transcript: str, context: str | None = None) -> list[ClassifiedReference]: ...


class VerseLookup(Protocol):
    async def lookup(self, reference: str) -> VerseText | None: ...


def confidence_level(score: float, config: DetectionConfig) -> ConfidenceLevel:
    """Map a score onto the high/medium/low tiers."""
    if score >= config.high_confidence:
        return ConfidenceLevel.HIGH
    if score >= config.medium_confidence:
        return ConfidenceLevel.MEDIUM
    return ConfidenceLevel.LOW


class ScriptureDetector:
    """Turns one final transcript segment into an ordered list of detections.

    Stage order:
    1. Cheap pre-filters. Ordinary speech exits here with no work done.
    2. Deterministic parser (always confidence 0.95, level high).
    3. Known verse wording (phrase table, confidence 0.9, tagged contextual),
       only when stage 2 found nothing and the caller did not skip fallback.
    4. Contextual classifier, only when stages 2 and 3 found nothing, the
       trigger keyword filter passed, and the caller did not skip it.

    A match suppressed by cooldown still counts as found for the gating.

    The cooldown cache is the only shared mutable state; detect() is safe to
    run concurrently for independent segments. Enrichment lookups for one
    call run concurrently under a semaphore.

    Error contract:
    - detect() never raises for classifier or enrichment failures. A failed
      lookup yields a detection without verse text.
    """

    def __init__(
        self,
        config: DetectionConfig,
        classifier: Classifier | None = None,
        verse_lookup: VerseLookup | None = None,
        cooldowns: CooldownCache | None = None,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.config = config
        self.classifier = classifier
        self.verse_lookup = verse_lookup
        self.cooldowns = cooldowns or CooldownCache(
            window=config.cooldown_seconds,
            prune_threshold=config.cooldown_prune_threshold,
        )
        self._clock = clock
        self._enrich_semaphore = asyncio.Semaphore(max(1, config.enrichment_concurrency))

        self._metrics = {
            "segments": 0,
            "fast_path_skips": 0,
            "deterministic": 0,
            "contextual": 0,
            "phrase_matches": 0,
            "suppressed": 0,
            "classifier_calls": 0,
            "enrichment_failures": 0,
        }

    @property
    def metrics(self) -> dict:
        return {**self._metrics, "cooldown_entries": len(self.cooldowns)}

    def clear_cooldowns(self):
        """Forget every emitted reference (new session)."""
        self.cooldowns.clear()
        logger.info("Cooldown cache cleared")

    async def detect(self, text: str, options: DetectOptions | None = None) -> list[DetectionResult]:
        options = options or DetectOptions()
        self._metrics["segments"] += 1

        if not text or not text.strip():
            self._metrics["fast_path_skips"] += 1
            return []

        maybe_citation = might_contain_scripture(text)
        maybe_allusion = contains_trigger_keywords(text)
        phrases = find_phrase_matches(text)
        if not maybe_citation and not maybe_allusion and not phrases:
            self._metrics["fast_path_skips"] += 1
            return []

        # (reference, matched_text, score, type, reasoning)
        accepted: list[tuple[ScriptureReference, str, float, DetectionType, str | None]] = []
        parsed_any = False

        if maybe_citation:
            for match in parse(text):
                parsed_any = True
                if not self._acquire(match.reference.reference):
                    continue
                accepted.append((
                    match.reference, match.matched_text,
                    self.config.deterministic_confidence, DetectionType.DETERMINISTIC, None,
                ))

        phrased_any = False
        if not parsed_any and not options.skip_fallback:
            for hit in phrases[:self.config.phrase_match_limit]:
                phrased_any = True
                self._metrics["phrase_matches"] += 1
                if not self._acquire(hit.reference.reference):
                    continue
                accepted.append((
                    hit.reference, hit.phrase, self.config.phrase_confidence,
                    DetectionType.CONTEXTUAL, f"Quotes the wording of {hit.reference.reference}",
                ))

        if (not parsed_any and not phrased_any and maybe_allusion and not options.skip_fallback
                and self.classifier is not None):
            self._metrics["classifier_calls"] += 1
            try:
                classified = await self.classifier.classify(text, options.context)
            except Exception as e:
                logger.error(f"Contextual classifier raised: {e}")
                classified = []
            for item in classified:
                if item.confidence < self.config.contextual_min_confidence:
                    continue
                if not self._acquire(item.reference.reference):
                    continue
                accepted.append((
                    item.reference, text.strip(),
                    item.confidence, DetectionType.CONTEXTUAL, item.reasoning or None,
                ))

        if not accepted:
            return []

        verses: list[VerseText | None] = [None] * len(accepted)
        if options.fetch_verse_text and self.verse_lookup is not None:
            verses = await asyncio.gather(*(self._enrich(ref.reference) for ref, *_ in accepted))

        results = []
        for (ref, matched, score, kind, reasoning), verse in zip(accepted, verses):
            results.append(DetectionResult(
                reference=ref,
                matched_text=matched,
                confidence_score=score,
                confidence_level=confidence_level(score, self.config),
                detection_type=kind,
                reasoning=reasoning if kind == DetectionType.CONTEXTUAL else None,
                verse_text=verse.text if verse else None,
                translation=verse.translation if verse else None,
            ))
            self._metrics["deterministic" if kind == DetectionType.DETERMINISTIC else "contextual"] += 1

        logger.info(
            f"Detected {', '.join(f'{r.reference.reference} ({r.detection_type.value})' for r in results)}"
        )
        return results

    def _acquire(self, reference: str) -> bool:
        if self.cooldowns.try_acquire(reference, self._clock()):
            return True
        self._metrics["suppressed"] += 1
        logger.debug(f"Suppressed {reference} (cooldown)")
        return False

    async def _enrich(self, reference: str) -> VerseText | None:
        async with self._enrich_semaphore:
            try:
                return await self.verse_lookup.lookup(reference)
            except EnrichmentUnavailable as e:
                self._metrics["enrichment_failures"] += 1
                logger.warning(str(e))
            except Exception as e:
                self._metrics["enrichment_failures"] += 1
                logger.warning(f"Verse lookup for {reference} failed: {e}")
            return None
