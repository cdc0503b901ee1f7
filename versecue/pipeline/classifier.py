"""Contextual scripture classifier: LLM-backed fallback stage (Groq, OpenAI, LM Studio, Ollama)."""

import asyncio
import json
import logging
import time

import httpx

from versecue.config import ClassifierConfig
from versecue.errors import ClassifierUnavailable
from versecue.models.prompts import get_classifier_system_prompt, build_classifier_user_prompt
from versecue.models.schemas import ClassifiedReference
from versecue.services.reference_parser import build_reference, parse_reference

logger = logging.getLogger("versecue.classifier")

# Errors that should NOT be retried (permanent failures)
_PERMANENT_ERRORS = ("model not found", "invalid model", "404", "invalid_api_key")

# Providers speaking the OpenAI chat-completions dialect, and their path suffix
_CHAT_COMPLETIONS_PATH = {
    "groq": "/chat/completions",
    "openai": "/chat/completions",
    "lmstudio": "/v1/chat/completions",
}
_CLOUD_PROVIDERS = {"groq", "openai"}


def _is_retryable(error: Exception) -> bool:
    """Determine if an error is transient and worth retrying."""
    if isinstance(error, (httpx.TimeoutException, httpx.ConnectError,
                          httpx.RemoteProtocolError)):
        return True
    if isinstance(error, httpx.HTTPStatusError):
        if error.response.status_code == 429:
            return True
        return error.response.status_code >= 500
    msg = str(error).lower()
    if any(p in msg for p in _PERMANENT_ERRORS):
        return False
    return isinstance(error, (OSError, ConnectionError))


def _extract_first_json(text: str) -> str:
    """Return the first balanced {...} block in text (best effort if unclosed)."""
    start = text.find("{")
    if start == -1:
        return text
    in_str = False
    escape = False
    depth = 0
    for i in range(start, len(text)):
        ch = text[i]
        if in_str:
            if escape:
                escape = False
            elif ch == "\\":
                escape = True
            elif ch == "\"":
                in_str = False
        else:
            if ch == "\"":
                in_str = True
            elif ch == "{":
                depth += 1
            elif ch == "}":
                depth -= 1
                if depth == 0:
                    return text[start:i + 1]
    return text[start:]


def _clean_response(raw: str) -> str:
    cleaned = raw.strip()
    # Strip chain-of-thought blocks if present
    if "<think>" in cleaned and "</think>" in cleaned:
        cleaned = cleaned.split("</think>", 1)[-1].strip()
    if "```" in cleaned:
        cleaned = cleaned.replace("```json", "").replace("```", "").strip()
    return _extract_first_json(cleaned)


def _as_int(value) -> int | None:
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value
    if isinstance(value, float) and value.is_integer():
        return int(value)
    if isinstance(value, str) and value.strip().isdigit():
        return int(value.strip())
    return None


def _field(item: dict, *names: str):
    for name in names:
        if name in item:
            return item[name]
    return None


def parse_classifier_response(raw: str, min_confidence: float = 0.6) -> list[ClassifiedReference]:
    """Validate the service's JSON against the catalog.

    Raises ClassifierUnavailable when the payload is not the expected shape.
    Individual entries that fail validation or fall below ``min_confidence``
    (inclusive) are dropped.
    """
    try:
        data = json.loads(_clean_response(raw))
    except json.JSONDecodeError as e:
        raise ClassifierUnavailable("response", f"unparsable JSON: {e}") from e
    if not isinstance(data, dict):
        raise ClassifierUnavailable("response", "top-level JSON is not an object")
    items = data.get("references", [])
    if not isinstance(items, list):
        raise ClassifierUnavailable("response", "'references' is not a list")

    results: list[ClassifiedReference] = []
    seen: set[str] = set()
    for item in items:
        if not isinstance(item, dict):
            continue
        confidence = item.get("confidence")
        if isinstance(confidence, bool) or not isinstance(confidence, (int, float)):
            continue
        if not 0.0 <= confidence <= 1.0 or confidence < min_confidence:
            logger.debug(f"Dropped low-confidence reference {item.get('reference')} ({confidence})")
            continue

        ref = None
        book = item.get("book")
        chapter = _as_int(item.get("chapter"))
        if isinstance(book, str) and chapter is not None:
            ref = build_reference(
                book, chapter,
                _as_int(_field(item, "verseStart", "verse_start")),
                _as_int(_field(item, "verseEnd", "verse_end")),
            )
        elif isinstance(item.get("reference"), str):
            # Structured fields missing: recover from the display string
            ref = parse_reference(item["reference"])
        if ref is None:
            logger.debug(f"Dropped invalid reference from classifier: {item}")
            continue
        if ref.reference in seen:
            continue
        seen.add(ref.reference)

        reasoning = item.get("reasoning")
        results.append(ClassifiedReference(
            reference=ref,
            confidence=float(confidence),
            reasoning=reasoning if isinstance(reasoning, str) else "",
        ))
    return results


class ContextualClassifier:
    """Asks an external LLM for explicit and implicit scripture references.

    The service's output is untrusted: every reference is re-validated
    against the catalog and anything under ``min_confidence`` is dropped.

    Error contract:
    - _call_llm raises on transport failures (after retries for transient ones).
    - classify() never raises. Transport, status and parse failures are
      logged and degrade to an empty list.
    """

    MAX_RETRIES_LOCAL = 1
    MAX_RETRIES_CLOUD = 2
    INITIAL_BACKOFF = 0.5
    BACKOFF_FACTOR = 2.0
    MAX_BACKOFF = 4.0

    def __init__(self, config: ClassifierConfig, min_confidence: float = 0.6,
                 client: httpx.AsyncClient | None = None):
        self.config = config
        self.min_confidence = min_confidence
        self.client = client or httpx.AsyncClient(
            timeout=httpx.Timeout(
                connect=5.0,
                read=config.timeout_seconds,
                write=5.0,
                pool=5.0,
            )
        )

        self._metrics = {
            "requests": 0,
            "successes": 0,
            "retries": 0,
            "failures": 0,
            "timeouts": 0,
            "parse_errors": 0,
            "skipped_short": 0,
            "total_latency_ms": 0.0,
            "last_error": None,
            "last_error_time": None,
        }

    @property
    def enabled(self) -> bool:
        return self.config.enabled

    @property
    def metrics(self) -> dict:
        m = dict(self._metrics)
        m["provider"] = self.config.provider
        m["model"] = self.config.model
        m["enabled"] = self.config.enabled
        return m

    async def classify(self, transcript: str, context: str | None = None) -> list[ClassifiedReference]:
        """Return validated references for one transcript segment. Never raises."""
        if not self.config.enabled:
            return []
        if len(transcript.strip()) < self.config.min_transcript_chars:
            self._metrics["skipped_short"] += 1
            return []

        system_prompt = get_classifier_system_prompt()
        user_prompt = build_classifier_user_prompt(transcript, context)
        try:
            raw = await self._call_llm(system_prompt, user_prompt)
        except Exception as e:
            error = e if isinstance(e, ClassifierUnavailable) else ClassifierUnavailable(self.config.provider, str(e))
            logger.warning(str(error))
            return []

        try:
            results = parse_classifier_response(raw, self.min_confidence)
        except ClassifierUnavailable as e:
            self._metrics["parse_errors"] += 1
            logger.warning(f"{e}: {raw[:200]}")
            return []

        if results:
            logger.info(
                f"Classifier found {len(results)} reference(s): "
                f"{', '.join(r.reference.reference for r in results)}"
            )
        return results

    async def _call_llm(self, system_prompt: str, user_prompt: str) -> str:
        """Call the active provider with retry logic. Returns raw text response."""
        provider = self.config.provider
        max_retries = self.MAX_RETRIES_CLOUD if provider in _CLOUD_PROVIDERS else self.MAX_RETRIES_LOCAL
        last_error: Exception | None = None

        for attempt in range(max_retries + 1):
            self._metrics["requests"] += 1
            start = time.monotonic()
            try:
                if provider == "ollama":
                    text = await self._call_ollama(system_prompt, user_prompt)
                elif provider in _CHAT_COMPLETIONS_PATH:
                    text = await self._call_chat_completions(provider, system_prompt, user_prompt)
                else:
                    raise ClassifierUnavailable(provider, "unknown provider")
                self._metrics["successes"] += 1
                self._metrics["total_latency_ms"] += (time.monotonic() - start) * 1000
                return text

            except ClassifierUnavailable:
                self._metrics["failures"] += 1
                raise
            except Exception as e:
                last_error = e
                self._metrics["total_latency_ms"] += (time.monotonic() - start) * 1000
                if isinstance(e, httpx.TimeoutException):
                    self._metrics["timeouts"] += 1

                if not _is_retryable(e):
                    logger.error(f"Permanent {provider} error (no retry): {e}")
                    break

                if attempt < max_retries:
                    delay = min(
                        self.INITIAL_BACKOFF * (self.BACKOFF_FACTOR ** attempt),
                        self.MAX_BACKOFF,
                    )
                    self._metrics["retries"] += 1
                    logger.warning(
                        f"{provider} request failed (attempt {attempt + 1}/{max_retries + 1}), "
                        f"retrying in {delay:.1f}s: {e}"
                    )
                    await asyncio.sleep(delay)

        self._metrics["failures"] += 1
        self._metrics["last_error"] = str(last_error)
        self._metrics["last_error_time"] = time.time()
        raise ClassifierUnavailable(provider, str(last_error))

    def _base_url(self, provider: str) -> str:
        if provider == "groq":
            return self.config.groq_url
        if provider == "openai":
            return self.config.openai_url
        return self.config.lmstudio_url

    async def _call_chat_completions(self, provider: str, system_prompt: str, user_prompt: str) -> str:
        """Groq / OpenAI / LM Studio: POST chat/completions."""
        body = {
            "model": self.config.model,
            "messages": [
                {"role": "system", "content": system_prompt},
                {"role": "user", "content": user_prompt},
            ],
            "temperature": self.config.temperature,
            "max_tokens": self.config.max_tokens,
            "stream": False,
        }
        if provider in _CLOUD_PROVIDERS:
            body["response_format"] = {"type": "json_object"}

        headers = {"Content-Type": "application/json"}
        if self.config.api_key:
            headers["Authorization"] = f"Bearer {self.config.api_key}"

        response = await self.client.post(
            f"{self._base_url(provider).rstrip('/')}{_CHAT_COMPLETIONS_PATH[provider]}",
            json=body, headers=headers,
        )
        try:
            response.raise_for_status()
        except httpx.HTTPStatusError:
            logger.error(f"{provider} error {response.status_code}: {response.text[:200]}")
            raise
        data = response.json()
        try:
            return data["choices"][0]["message"]["content"] or ""
        except (KeyError, IndexError, TypeError) as e:
            raise ClassifierUnavailable(provider, f"unexpected response shape: {e}") from e

    async def _call_ollama(self, system_prompt: str, user_prompt: str) -> str:
        """Ollama: POST /api/generate with prompt + system fields."""
        body = {
            "model": self.config.ollama_model,
            "prompt": user_prompt,
            "system": system_prompt,
            "stream": False,
            "format": "json",
            "options": {
                "temperature": self.config.temperature,
                "num_predict": self.config.max_tokens,
            },
        }
        response = await self.client.post(
            f"{self.config.ollama_url.rstrip('/')}/api/generate", json=body,
        )
        try:
            response.raise_for_status()
        except httpx.HTTPStatusError:
            logger.error(f"Ollama error {response.status_code}: {response.text[:200]}")
            raise
        return response.json().get("response", "{}")

    async def close(self):
        await self.client.aclose()
