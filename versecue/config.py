"""VerseCue configuration: all settings in one place."""

from pydantic import BaseModel
from pathlib import Path
import logging
import os
from dotenv import load_dotenv

# Load .env from the project root (one level up from versecue/)
load_dotenv(Path(__file__).parent.parent / ".env")

logger = logging.getLogger("versecue.config")

CLASSIFIER_PROVIDERS = ("groq", "openai", "lmstudio", "ollama")
CLOUD_PROVIDERS = ("groq", "openai")
VERSE_PROVIDERS = ("api", "local")


class DetectionConfig(BaseModel):
    """Detection orchestrator settings."""
    cooldown_seconds: float = 60.0
    cooldown_prune_threshold: int = 100  # entries before an expiry scan runs
    deterministic_confidence: float = 0.95
    contextual_min_confidence: float = 0.6  # inclusive
    phrase_confidence: float = 0.9  # verbatim wording of a well-known verse
    phrase_match_limit: int = 2  # per segment
    high_confidence: float = 0.9
    medium_confidence: float = 0.7
    enrichment_concurrency: int = 4
    context_segments: int = 3  # preceding final segments passed as context


class ClassifierConfig(BaseModel):
    """Contextual (LLM) classifier settings."""
    enabled: bool = True
    # Active provider: "groq", "openai", "lmstudio", or "ollama"
    provider: str = "groq"

    # Groq (OpenAI-compatible chat completions)
    groq_url: str = "https://api.groq.com/openai/v1"
    groq_model: str = "llama-3.3-70b-versatile"
    groq_api_key: str = ""

    # OpenAI
    openai_url: str = "https://api.openai.com/v1"
    openai_model: str = "gpt-4o-mini"
    openai_api_key: str = ""

    # LM Studio (OpenAI-compatible API)
    lmstudio_url: str = "http://localhost:1234"
    lmstudio_model: str = ""

    # Ollama
    ollama_url: str = "http://localhost:11434"
    ollama_model: str = "qwen3:4b"

    # Shared
    temperature: float = 0.2  # low = conservative
    max_tokens: int = 1024
    timeout_seconds: float = 20.0
    min_transcript_chars: int = 20

    @property
    def model(self) -> str:
        """Return the active model name for the current provider."""
        if self.provider == "groq":
            return self.groq_model
        elif self.provider == "openai":
            return self.openai_model
        elif self.provider == "lmstudio":
            return self.lmstudio_model
        return self.ollama_model

    @property
    def api_key(self) -> str:
        if self.provider == "groq":
            return self.groq_api_key
        if self.provider == "openai":
            return self.openai_api_key
        return ""


class VerseConfig(BaseModel):
    """Verse-text enrichment settings."""
    provider: str = "api"  # or "local" (SQLite verse store)
    api_url: str = "https://bible-api.com"
    translation: str = "KJV"
    db_path: Path = Path("data/verses.db")
    timeout_seconds: float = 5.0
    cache_size: int = 500


class CaptureConfig(BaseModel):
    """Live capture session settings."""
    restart_delay_seconds: float = 0.5  # debounce before restarting an ended recognizer
    restart_backoff_factor: float = 2.0
    max_restart_delay_seconds: float = 8.0
    level_interval_seconds: float = 0.1
    level_reference: float = 128.0  # mean amplitude that maps to level 1.0
    language: str = "en-US"


class AppConfig(BaseModel):
    """Root configuration."""
    host: str = "0.0.0.0"
    port: int = 8003
    data_dir: Path = Path("data")

    detection: DetectionConfig = DetectionConfig()
    classifier: ClassifierConfig = ClassifierConfig()
    verses: VerseConfig = VerseConfig()
    capture: CaptureConfig = CaptureConfig()


def load_config() -> AppConfig:
    """Load config with environment variable overrides."""
    config = AppConfig()

    if cooldown := os.getenv("COOLDOWN_SECONDS"):
        config.detection.cooldown_seconds = float(cooldown)
    if provider := os.getenv("CLASSIFIER_PROVIDER"):
        if provider in CLASSIFIER_PROVIDERS:
            config.classifier.provider = provider
        else:
            logger.warning(f"Unknown CLASSIFIER_PROVIDER '{provider}', keeping {config.classifier.provider}")
    if key := os.getenv("GROQ_API_KEY"):
        config.classifier.groq_api_key = key
    if model := os.getenv("GROQ_MODEL"):
        config.classifier.groq_model = model
    if key := os.getenv("OPENAI_API_KEY"):
        config.classifier.openai_api_key = key
    if model := os.getenv("OPENAI_MODEL"):
        config.classifier.openai_model = model
    if url := os.getenv("LMSTUDIO_URL"):
        config.classifier.lmstudio_url = url
    if model := os.getenv("LMSTUDIO_MODEL"):
        config.classifier.lmstudio_model = model
    if url := os.getenv("OLLAMA_URL"):
        config.classifier.ollama_url = url
    if model := os.getenv("OLLAMA_MODEL"):
        config.classifier.ollama_model = model
    if enabled := os.getenv("CLASSIFIER_ENABLED"):
        config.classifier.enabled = enabled.lower() in ("1", "true", "yes", "on")
    if provider := os.getenv("VERSE_PROVIDER"):
        if provider in VERSE_PROVIDERS:
            config.verses.provider = provider
    if url := os.getenv("BIBLE_API_URL"):
        config.verses.api_url = url
    if translation := os.getenv("BIBLE_TRANSLATION"):
        config.verses.translation = translation.upper()
    if db := os.getenv("VERSE_DB_PATH"):
        config.verses.db_path = Path(db)
    if data := os.getenv("DATA_DIR"):
        config.data_dir = Path(data)
    if delay := os.getenv("RESTART_DELAY_SECONDS"):
        config.capture.restart_delay_seconds = float(delay)

    # Validate critical config
    if config.classifier.provider in CLOUD_PROVIDERS and not config.classifier.api_key:
        logger.warning(
            f"No API key for {config.classifier.provider}, contextual detection disabled"
        )
        config.classifier.enabled = False

    # Ensure data directory exists
    config.data_dir.mkdir(parents=True, exist_ok=True)

    return config
