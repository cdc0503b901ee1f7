"""Verse-text lookup collaborators used for enrichment.

Two backends share one contract: ``await lookup(reference)`` returns a
VerseText, or None when the passage is simply not available. Transport and
backend failures raise EnrichmentUnavailable; the detector contains them.
"""

import logging
from collections import OrderedDict
from urllib.parse import quote

import httpx

from versecue.config import VerseConfig
from versecue.db.database import get_db
from versecue.errors import EnrichmentUnavailable
from versecue.models.schemas import VerseText
from versecue.services.reference_parser import parse_reference

logger = logging.getLogger("versecue.verses")


class BibleApiClient:
    """bible-api.com style HTTP lookup: GET {api_url}/{reference}?translation=kjv.

    Successful lookups are kept in a bounded LRU so a reference repeated
    across a sermon costs one request.
    """

    def __init__(self, config: VerseConfig, client: httpx.AsyncClient | None = None):
        self.config = config
        self.client = client or httpx.AsyncClient(timeout=httpx.Timeout(config.timeout_seconds))
        self._cache: OrderedDict[str, VerseText] = OrderedDict()

    async def lookup(self, reference: str) -> VerseText | None:
        key = reference.strip()
        cached = self._cache.get(key)
        if cached is not None:
            self._cache.move_to_end(key)
            return cached

        url = f"{self.config.api_url.rstrip('/')}/{quote(key)}"
        try:
            response = await self.client.get(url, params={"translation": self.config.translation.lower()})
        except httpx.HTTPError as e:
            raise EnrichmentUnavailable(key, str(e)) from e

        if response.status_code == 404:
            return None
        try:
            response.raise_for_status()
            data = response.json()
        except (httpx.HTTPStatusError, ValueError) as e:
            raise EnrichmentUnavailable(key, str(e)) from e

        text = data.get("text") if isinstance(data, dict) else None
        if not isinstance(text, str) or not text.strip():
            return None
        verse = VerseText(
            reference=key,
            text=" ".join(text.split()),
            translation=str(data.get("translation_id") or self.config.translation).upper(),
        )
        self._remember(key, verse)
        return verse

    def _remember(self, key: str, verse: VerseText):
        self._cache[key] = verse
        self._cache.move_to_end(key)
        while len(self._cache) > self.config.cache_size:
            self._cache.popitem(last=False)

    async def close(self):
        await self.client.aclose()


class LocalVerseStore:
    """Verse text from the SQLite ``verses`` table. Ranges are joined into one passage."""

    def __init__(self, config: VerseConfig):
        self.config = config

    async def lookup(self, reference: str) -> VerseText | None:
        ref = parse_reference(reference)
        if ref is None:
            return None
        translation = self.config.translation.upper()
        try:
            db = await get_db()
            if ref.verse_start is None:
                rows = await db.execute_fetchall(
                    "SELECT text FROM verses WHERE translation = ? AND book = ? AND chapter = ? "
                    "ORDER BY verse",
                    (translation, ref.book, ref.chapter),
                )
            else:
                end = ref.verse_end or ref.verse_start
                rows = await db.execute_fetchall(
                    "SELECT text FROM verses WHERE translation = ? AND book = ? AND chapter = ? "
                    "AND verse BETWEEN ? AND ? ORDER BY verse",
                    (translation, ref.book, ref.chapter, ref.verse_start, end),
                )
        except Exception as e:
            raise EnrichmentUnavailable(reference, str(e)) from e

        if not rows:
            return None
        return VerseText(
            reference=ref.reference,
            text=" ".join(row["text"].strip() for row in rows),
            translation=translation,
        )

    async def close(self):
        pass


def create_verse_lookup(config: VerseConfig):
    if config.provider == "local":
        return LocalVerseStore(config)
    return BibleApiClient(config)
