"""Capture session state machine: lifecycle of one live recognition session.

    Idle -> Starting -> Listening <-> Paused -> Stopping -> Idle

The recognizer and the audio input are provided capabilities (see the
Recognizer and AudioInput protocols). This module owns when they are
acquired, restarted and released, and it decides which recognizer output
reaches the detection pipeline.
"""

import asyncio
import logging
from collections import deque
from dataclasses import dataclass, field
from enum import Enum
from typing import Awaitable, Callable, Optional, Protocol

from versecue.config import CaptureConfig
from versecue.errors import (
    InvalidTransitionError, RecognizerError, ResourceAcquisitionError, TransientRecognizerError,
)
from versecue.models.schemas import InputDevice, RecognizerResult, TranscriptSegment

logger = logging.getLogger("versecue.capture")

# Recognizer error codes that are routine and never surfaced
TRANSIENT_ERROR_CODES = frozenset({"no-speech", "aborted"})


class SessionState(str, Enum):
    IDLE = "idle"
    STARTING = "starting"
    LISTENING = "listening"
    PAUSED = "paused"
    STOPPING = "stopping"


ACTIVE_STATES = (SessionState.STARTING, SessionState.LISTENING, SessionState.PAUSED)


class Recognizer(Protocol):
    """Speech recognizer capability. Handlers are plain attributes; None means detached."""
    on_result: Optional[Callable[[list[RecognizerResult]], Awaitable[None]]]
    on_error: Optional[Callable[[str], Awaitable[None]]]
    on_end: Optional[Callable[[], Awaitable[None]]]

    async def start(self) -> None: ...
    async def stop(self) -> None: ...


class AudioInput(Protocol):
    """Audio input capability used for device selection and level metering."""

    async def list_devices(self) -> list[InputDevice]: ...
    async def open(self, device_id: str | None) -> None: ...
    def sample(self) -> float: ...
    async def close(self) -> None: ...


@dataclass
class CaptureSession:
    """Live state of one listening session. Mutated only by CaptureStateMachine."""
    state: SessionState = SessionState.IDLE
    device_id: str | None = None
    level: float = 0.0
    last_error: str | None = None
    error_kind: str | None = None
    generation: int = 0
    recognizer_running: bool = False
    consecutive_ends: int = 0
    restarts: int = 0
    held_segments: int = 0  # final segments received while paused
    transcript: deque = field(default_factory=lambda: deque(maxlen=50))

    def snapshot(self) -> dict:
        return {
            "state": self.state.value,
            "device_id": self.device_id,
            "level": round(self.level, 3),
            "last_error": self.last_error,
            "error_kind": self.error_kind,
            "restarts": self.restarts,
            "held_segments": self.held_segments,
        }


class CaptureStateMachine:
    """Serialized transitions over a CaptureSession.

    Lifecycle:
    - start(device_id): Idle only. Opens audio, attaches recognizer handlers,
      starts the recognizer, starts the level meter.
    - pause()/resume(): toggle Listening/Paused. Resources stay acquired.
      While paused, final results are kept in the session transcript but
      not forwarded.
    - stop(): from any active state. Releases in a fixed order: handlers,
      recognizer, audio, level meter, pending restart.

    Unexpected recognizer end while Listening schedules one restart after a
    debounce delay that backs off on consecutive ends. The restart runs only
    if the session is still Listening in the same generation when it fires.

    Error contract:
    - start() raises ResourceAcquisitionError (session left Idle, last_error set).
    - Illegal transitions raise InvalidTransitionError. pause() while Paused,
      resume() while Listening and stop() while Idle are no-ops.
    - Transient recognizer errors are swallowed. Others go to on_error as
      RecognizerError while the session stays active.
    """

    def __init__(
        self,
        config: CaptureConfig,
        recognizer: Recognizer,
        audio: AudioInput,
        on_segment: Optional[Callable[[TranscriptSegment], Awaitable[None]]] = None,
        on_interim: Optional[Callable[[str], Awaitable[None]]] = None,
        on_level: Optional[Callable[[float], Awaitable[None]]] = None,
        on_error: Optional[Callable[[RecognizerError], Awaitable[None]]] = None,
        on_state: Optional[Callable[[CaptureSession], Awaitable[None]]] = None,
    ):
        self.config = config
        self.recognizer = recognizer
        self.audio = audio
        self.session = CaptureSession()

        self._on_segment = on_segment
        self._on_interim = on_interim
        self._on_level = on_level
        self._on_error = on_error
        self._on_state = on_state

        self._lock = asyncio.Lock()
        self._meter_task: asyncio.Task | None = None
        self._restart_task: asyncio.Task | None = None

    @property
    def state(self) -> SessionState:
        return self.session.state

    @property
    def restart_pending(self) -> bool:
        return self._restart_task is not None and not self._restart_task.done()

    def status(self) -> dict:
        return {**self.session.snapshot(), "restart_pending": self.restart_pending}

    async def list_devices(self) -> list[InputDevice]:
        return await self.audio.list_devices()

    # --- Transitions ---

    async def start(self, device_id: str | None = None):
        async with self._lock:
            if self.session.state != SessionState.IDLE:
                raise InvalidTransitionError("start", self.session.state.value)

            self.session.generation += 1
            self.session.device_id = device_id
            self.session.last_error = None
            self.session.error_kind = None
            self.session.consecutive_ends = 0
            self.session.held_segments = 0
            self.session.level = 0.0
            await self._set_state(SessionState.STARTING)

            audio_open = False
            try:
                await self.audio.open(device_id)
                audio_open = True
                self._attach_handlers()
                # Set before awaiting so an "ended" fired during start is not lost
                self.session.recognizer_running = True
                await self.recognizer.start()
            except Exception as e:
                self._detach_handlers()
                self.session.recognizer_running = False
                if audio_open:
                    await self._close_audio()
                if isinstance(e, ResourceAcquisitionError):
                    error = e
                else:
                    error = ResourceAcquisitionError("recognizer", str(e))
                    error.__cause__ = e
                logger.error(f"Capture start failed ({error.kind}): {error}")
                self.session.last_error = str(error)
                self.session.error_kind = error.kind
                await self._set_state(SessionState.IDLE)
                raise error

            await self._set_state(SessionState.LISTENING)
            self._meter_task = asyncio.create_task(self._meter_loop(self.session.generation))
            logger.info(f"Capture started on device {device_id or 'default'}")
            if not self.session.recognizer_running:
                self._schedule_restart("Recognizer ended during start")

    async def pause(self):
        async with self._lock:
            if self.session.state == SessionState.PAUSED:
                return
            if self.session.state != SessionState.LISTENING:
                raise InvalidTransitionError("pause", self.session.state.value)
            self._cancel_restart()
            await self._set_state(SessionState.PAUSED)
            logger.info("Capture paused")

    async def resume(self):
        async with self._lock:
            if self.session.state == SessionState.LISTENING:
                return
            if self.session.state != SessionState.PAUSED:
                raise InvalidTransitionError("resume", self.session.state.value)
            await self._set_state(SessionState.LISTENING)
            if not self.session.recognizer_running:
                # Ended while paused; bring it back now
                await self._restart_recognizer()
            logger.info("Capture resumed")

    async def stop(self):
        async with self._lock:
            if self.session.state == SessionState.IDLE:
                return
            await self._set_state(SessionState.STOPPING)
            # Any timer or meter from this generation is now stale
            self.session.generation += 1

            # 1. Detach first so a stop-triggered "ended" cannot re-enter restart logic
            self._detach_handlers()
            # 2. Recognizer
            try:
                await self.recognizer.stop()
            except Exception as e:
                logger.warning(f"Recognizer stop failed: {e}")
            self.session.recognizer_running = False
            # 3. Audio resource
            await self._close_audio()
            # 4. Level meter
            if self._meter_task:
                self._meter_task.cancel()
                try:
                    await self._meter_task
                except asyncio.CancelledError:
                    pass
                self._meter_task = None
            # 5. Pending restart
            self._cancel_restart()

            self.session.level = 0.0
            await self._set_state(SessionState.IDLE)
            logger.info(f"Capture stopped after {self.session.restarts} recognizer restart(s)")

    # --- Recognizer events ---

    def _attach_handlers(self):
        self.recognizer.on_result = self._handle_result
        self.recognizer.on_error = self._handle_error
        self.recognizer.on_end = self._handle_end

    def _detach_handlers(self):
        self.recognizer.on_result = None
        self.recognizer.on_error = None
        self.recognizer.on_end = None

    async def _handle_result(self, results: list[RecognizerResult]):
        if self.session.state not in (SessionState.LISTENING, SessionState.PAUSED):
            return
        # Results flowing again means the recognizer is healthy
        self.session.consecutive_ends = 0

        interim_parts = []
        for result in results:
            text = result.text.strip()
            if not text:
                continue
            if not result.is_final:
                interim_parts.append(text)
                continue

            segment = TranscriptSegment(text=text, is_final=True, confidence=result.confidence)
            self.session.transcript.append(segment)
            # Read state per result: a pause may land between awaits
            if self.session.state == SessionState.LISTENING:
                if self._on_segment:
                    await self._on_segment(segment)
            else:
                self.session.held_segments += 1
                logger.debug(f"Holding final segment while paused: '{text[:60]}'")

        if interim_parts and self.session.state == SessionState.LISTENING and self._on_interim:
            await self._on_interim(" ".join(interim_parts))

    async def _handle_error(self, code: str):
        if code in TRANSIENT_ERROR_CODES:
            logger.debug(str(TransientRecognizerError(code)))
            return
        error = RecognizerError(code)
        self.session.last_error = str(error)
        self.session.error_kind = code
        logger.warning(f"Recognizer error (session stays {self.session.state.value}): {code}")
        if self._on_error:
            await self._on_error(error)

    async def _handle_end(self):
        self.session.recognizer_running = False
        if self.session.state != SessionState.LISTENING:
            logger.debug(f"Recognizer ended while {self.session.state.value}, no restart")
            return
        self._schedule_restart("Recognizer ended unexpectedly")

    def _schedule_restart(self, reason: str):
        if self.restart_pending:
            return
        delay = min(
            self.config.restart_delay_seconds
            * (self.config.restart_backoff_factor ** self.session.consecutive_ends),
            self.config.max_restart_delay_seconds,
        )
        self.session.consecutive_ends += 1
        logger.info(f"{reason}, restarting in {delay:.2f}s")
        self._restart_task = asyncio.create_task(
            self._restart_after(delay, self.session.generation)
        )

    async def _restart_after(self, delay: float, generation: int):
        try:
            await asyncio.sleep(delay)
        except asyncio.CancelledError:
            return
        async with self._lock:
            if self._restart_task is asyncio.current_task():
                self._restart_task = None
            if (generation != self.session.generation
                    or self.session.state != SessionState.LISTENING
                    or self.session.recognizer_running):
                logger.debug("Stale recognizer restart skipped")
                return
            await self._restart_recognizer()

    async def _restart_recognizer(self):
        self.session.recognizer_running = True
        try:
            await self.recognizer.start()
        except Exception as e:
            self.session.recognizer_running = False
            error = RecognizerError("restart-failed", f"Recognizer restart failed: {e}")
            self.session.last_error = str(error)
            self.session.error_kind = error.code
            logger.error(str(error))
            if self._on_error:
                await self._on_error(error)
            return
        self.session.restarts += 1

    def _cancel_restart(self):
        if self._restart_task and not self._restart_task.done():
            self._restart_task.cancel()
        self._restart_task = None

    # --- Level metering ---

    async def _meter_loop(self, generation: int):
        """Sample input amplitude until the session leaves Listening/Paused."""
        try:
            while (self.session.generation == generation
                   and self.session.state in (SessionState.LISTENING, SessionState.PAUSED)):
                raw = self.audio.sample()
                level = min(max(raw / self.config.level_reference, 0.0), 1.0)
                self.session.level = level
                if self._on_level:
                    await self._on_level(level)
                await asyncio.sleep(self.config.level_interval_seconds)
        except asyncio.CancelledError:
            pass
        except Exception as e:
            logger.error(f"Level meter error: {e}")

    # --- Helpers ---

    async def _close_audio(self):
        try:
            await self.audio.close()
        except Exception as e:
            logger.warning(f"Audio close failed: {e}")

    async def _set_state(self, state: SessionState):
        self.session.state = state
        if self._on_state:
            try:
                await self._on_state(self.session)
            except Exception as e:
                logger.debug(f"State listener failed: {e}")
