"""Shared mutable state for API route modules.

Globals are set once during app lifespan startup via the setter functions.
Route modules import from here to avoid circular dependencies.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from versecue.config import AppConfig
    from versecue.pipeline.classifier import ContextualClassifier
    from versecue.pipeline.detector import ScriptureDetector

_detector: ScriptureDetector | None = None
_classifier: ContextualClassifier | None = None
_verse_lookup = None
_config: AppConfig | None = None


def set_detector(detector):
    global _detector
    _detector = detector


def set_classifier(classifier):
    global _classifier
    _classifier = classifier


def set_verse_lookup(lookup):
    global _verse_lookup
    _verse_lookup = lookup


def set_config(config):
    global _config
    _config = config
