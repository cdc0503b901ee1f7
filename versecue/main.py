"""VerseCue: live scripture reference detection server."""

import logging
import logging.handlers
import os
import time as _time
from contextlib import asynccontextmanager
from pathlib import Path

from fastapi import FastAPI, WebSocket
from starlette.requests import Request

from versecue.config import load_config
from versecue.db.database import init_db, close_db
from versecue.pipeline.classifier import ContextualClassifier
from versecue.pipeline.detector import ScriptureDetector
from versecue.routes._state import set_detector, set_classifier, set_verse_lookup, set_config
from versecue.routes.api import detect_router, verse_router, system_router
from versecue.routes.websocket import websocket_endpoint
from versecue.services.verse_lookup import create_verse_lookup

# Logging: console plus rotating files
_log_level = getattr(logging, os.getenv("LOG_LEVEL", "INFO").upper(), logging.INFO)
_log_dir = Path(os.getenv("LOG_DIR", "data"))
_log_dir.mkdir(parents=True, exist_ok=True)

# Console handler (human-readable)
_console = logging.StreamHandler()
_console.setFormatter(logging.Formatter(
    "%(asctime)s [%(name)s] %(levelname)s: %(message)s",
    datefmt="%H:%M:%S",
))
_console.setLevel(_log_level)

# Rotating file handler (full detail, 10MB x 5 files)
_file_handler = logging.handlers.RotatingFileHandler(
    _log_dir / "versecue.log",
    maxBytes=10 * 1024 * 1024,
    backupCount=5,
    encoding="utf-8",
)
_file_handler.setFormatter(logging.Formatter(
    "%(asctime)s [%(name)s] %(levelname)s: %(message)s  [%(filename)s:%(lineno)d]",
))
_file_handler.setLevel(logging.DEBUG)

# Error-only file (quick scan for problems)
_error_handler = logging.handlers.RotatingFileHandler(
    _log_dir / "versecue_errors.log",
    maxBytes=5 * 1024 * 1024,
    backupCount=3,
    encoding="utf-8",
)
_error_handler.setFormatter(logging.Formatter(
    "%(asctime)s [%(name)s] %(levelname)s: %(message)s  [%(filename)s:%(lineno)d]",
))
_error_handler.setLevel(logging.ERROR)

logging.basicConfig(level=logging.DEBUG, handlers=[_console, _file_handler, _error_handler])
logger = logging.getLogger("versecue")

detector: ScriptureDetector | None = None


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Startup and shutdown lifecycle."""
    global detector
    config = load_config()

    logger.info("=" * 50)
    logger.info("  VerseCue starting up")
    logger.info(f"  Classifier: {config.classifier.provider}/{config.classifier.model} "
                f"({'enabled' if config.classifier.enabled else 'disabled'})")
    logger.info(f"  Verses: {config.verses.provider} ({config.verses.translation})")
    logger.info(f"  Cooldown: {config.detection.cooldown_seconds:.0f}s")
    logger.info("=" * 50)

    if config.verses.provider == "local":
        await init_db(config.verses.db_path)
        logger.info(f"Verse store ready: {config.verses.db_path}")

    classifier = ContextualClassifier(
        config.classifier, min_confidence=config.detection.contextual_min_confidence,
    )
    verse_lookup = create_verse_lookup(config.verses)
    detector = ScriptureDetector(
        config.detection, classifier=classifier, verse_lookup=verse_lookup,
    )

    set_config(config)
    set_classifier(classifier)
    set_verse_lookup(verse_lookup)
    set_detector(detector)
    logger.info("Detector ready")

    yield

    logger.info(f"Shutting down... metrics={detector.metrics}")
    await classifier.close()
    await verse_lookup.close()
    if config.verses.provider == "local":
        await close_db()
    logger.info("Shutdown complete.")


app = FastAPI(
    title="VerseCue",
    description="Live scripture reference detection for sermons",
    version="0.1.0",
    lifespan=lifespan,
)

app.include_router(detect_router)
app.include_router(verse_router)
app.include_router(system_router)

# Slow request logging middleware
_SLOW_REQUEST_THRESHOLD = float(os.getenv("SLOW_REQUEST_THRESHOLD", "5.0"))
_TIMING_EXCLUDED_PATHS = {"/api/health", "/ws/session"}


@app.middleware("http")
async def request_timing_middleware(request: Request, call_next):
    if request.url.path in _TIMING_EXCLUDED_PATHS:
        return await call_next(request)
    start = _time.monotonic()
    response = await call_next(request)
    duration = _time.monotonic() - start
    if duration > _SLOW_REQUEST_THRESHOLD:
        logger.warning(
            f"Slow request: {request.method} {request.url.path} "
            f"took {duration:.2f}s (threshold: {_SLOW_REQUEST_THRESHOLD}s)"
        )
    response.headers["X-Request-Duration-Ms"] = str(round(duration * 1000))
    return response


@app.websocket("/ws/session")
async def ws_session(websocket: WebSocket):
    await websocket_endpoint(websocket)


def run():
    import uvicorn
    config = load_config()
    uvicorn.run("versecue.main:app", host=config.host, port=config.port)


if __name__ == "__main__":
    run()
