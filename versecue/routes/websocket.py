"""
WebSocket handler for a live sermon session.

The browser runs the speech recognizer and captures the microphone; the
server owns the capture session state machine and the detection pipeline.
The recognizer and the audio input are bridged over the socket.

Protocol:
  Client -> Server:
    Binary frames:  PCM16 mono audio (level metering only)
    Text frames:    JSON control messages
      start {device_id, supported, permission}, pause, resume, stop,
      new_session, devices {devices: [...]}, settings {fetch_verse_text},
      result {results: [{text, is_final, confidence}]},
      recognizer_error {error}, recognizer_end, ping

  Server -> Client:
    Text frames:    JSON
      state, interim, transcript, detections, level, error,
      recognizer_start, recognizer_stop, devices, session_reset, pong
"""

import asyncio
import json
import logging
from typing import Optional

import numpy as np
from fastapi import WebSocket, WebSocketDisconnect

from versecue.config import AppConfig
from versecue.errors import (
    DeviceUnavailableError, InvalidTransitionError, PermissionDeniedError,
    RecognizerError, ResourceAcquisitionError, UnsupportedEnvironmentError,
)
from versecue.models.schemas import (
    DetectOptions, InputDevice, RecognizerResult, TranscriptSegment, WSDetections, WSState,
)
from versecue.pipeline.capture import CaptureSession, CaptureStateMachine
from versecue.pipeline.detector import ScriptureDetector
import versecue.routes._state as _state

logger = logging.getLogger("versecue.ws")

# Only one client at a time; a second connection waits for the first to finish.
_active_ws_lock = asyncio.Lock()

_active_session: Optional['ClientSession'] = None


def get_active_session() -> Optional['ClientSession']:
    return _active_session


class RemoteRecognizer:
    """Recognizer capability backed by the browser's speech recognition.

    start()/stop() are commands sent to the client; results, errors and
    ends arrive as client messages and are delivered to whichever handlers
    are attached at that moment.
    """

    def __init__(self, send, language: str = "en-US"):
        self._send = send
        self.language = language
        self.supported = True
        self.on_result = None
        self.on_error = None
        self.on_end = None

    async def start(self):
        if not self.supported:
            raise UnsupportedEnvironmentError(
                "speech recognizer", "speech recognition is not available in this browser",
            )
        await self._send({"type": "recognizer_start", "lang": self.language})

    async def stop(self):
        await self._send({"type": "recognizer_stop"})

    async def deliver_result(self, results: list[RecognizerResult]):
        handler = self.on_result
        if handler:
            await handler(results)

    async def deliver_error(self, code: str):
        handler = self.on_error
        if handler:
            await handler(code)

    async def deliver_end(self):
        handler = self.on_end
        if handler:
            await handler()


class RemoteAudioInput:
    """Audio input capability fed by PCM16 frames from the client."""

    def __init__(self):
        self.devices: list[InputDevice] = []
        self.permission = "granted"
        self.is_open = False
        self._amplitude = 0.0

    async def list_devices(self) -> list[InputDevice]:
        return list(self.devices)

    async def open(self, device_id: str | None):
        if self.permission == "denied":
            raise PermissionDeniedError("microphone", "access was denied by the user")
        if device_id and self.devices and device_id not in {d.id for d in self.devices}:
            raise DeviceUnavailableError("microphone", f"unknown device '{device_id}'")
        self.is_open = True
        self._amplitude = 0.0

    def feed(self, pcm: bytes):
        """Record the mean amplitude of one frame on a 0-128 byte scale."""
        if not self.is_open or len(pcm) < 2:
            return
        samples = np.frombuffer(pcm[: len(pcm) - len(pcm) % 2], dtype=np.int16)
        self._amplitude = float(np.abs(samples.astype(np.int32)).mean()) / 256.0

    def sample(self) -> float:
        return self._amplitude

    async def close(self):
        self.is_open = False
        self._amplitude = 0.0


class ClientSession:
    """Manages state for one connected WebSocket client.

    Lifecycle: created per WebSocket connection in websocket_endpoint().
    Owns the remote recognizer/audio bridges and the CaptureStateMachine.
    Final segments are forwarded to the shared detector in background tasks
    so the receive loop never waits on the contextual classifier.

    Cleanup: cleanup() stops the capture session and waits briefly for
    in-flight detections.
    """

    def __init__(self, websocket: WebSocket, detector: ScriptureDetector, config: AppConfig):
        self.ws = websocket
        self.detector = detector
        self.config = config
        self.id = id(websocket)
        self.fetch_verse_text = True

        self.recognizer = RemoteRecognizer(self._send, config.capture.language)
        self.audio = RemoteAudioInput()
        self.capture = CaptureStateMachine(
            config.capture,
            self.recognizer,
            self.audio,
            on_segment=self._on_segment,
            on_interim=self._on_interim,
            on_level=self._on_level,
            on_error=self._on_recognizer_error,
            on_state=self._on_state,
        )

        self._inflight: set[asyncio.Task] = set()
        self._cleaned_up = False

    # --- Capture callbacks ---

    async def _on_state(self, session: CaptureSession):
        await self._send(WSState(
            state=session.state.value,
            device_id=session.device_id,
            level=session.level,
            last_error=session.last_error,
        ).model_dump())

    async def _on_interim(self, text: str):
        await self._send({"type": "interim", "text": text})

    async def _on_level(self, level: float):
        await self._send({"type": "level", "level": round(level, 3)})

    async def _on_recognizer_error(self, error: RecognizerError):
        await self._send({"type": "error", "kind": error.code, "message": str(error)})

    async def _on_segment(self, segment: TranscriptSegment):
        await self._send({
            "type": "transcript",
            "segment": segment.model_dump(mode="json"),
        })
        history = list(self.capture.session.transcript)
        if history and history[-1].id == segment.id:
            history = history[:-1]
        n = self.config.detection.context_segments
        context = " ".join(s.text for s in history[-n:]) if n > 0 else None

        task = asyncio.create_task(self._detect(segment, context or None))
        self._inflight.add(task)
        task.add_done_callback(self._inflight.discard)

    async def _detect(self, segment: TranscriptSegment, context: str | None):
        try:
            detections = await self.detector.detect(segment.text, DetectOptions(
                context=context,
                fetch_verse_text=self.fetch_verse_text,
            ))
        except Exception as e:
            logger.error(f"Detection failed for segment {segment.id}: {e}")
            return
        if detections:
            await self._send(WSDetections(
                segment_id=segment.id, detections=detections,
            ).model_dump(mode="json"))

    # --- Client messages ---

    async def handle_message(self, msg: dict):
        t = msg.get("type", "")

        if t == "start":
            self.recognizer.supported = msg.get("supported", True) is not False
            self.audio.permission = msg.get("permission", "granted")
            try:
                await self.capture.start(msg.get("device_id"))
            except ResourceAcquisitionError as e:
                await self._send({"type": "error", "kind": e.kind, "message": str(e)})

        elif t in ("pause", "resume", "stop"):
            await getattr(self.capture, t)()

        elif t == "new_session":
            logger.info(f"Client {self.id}: new_session requested")
            await self.capture.stop()
            self.capture.session.transcript.clear()
            self.detector.clear_cooldowns()
            await self._send({"type": "session_reset"})

        elif t == "devices":
            self.audio.devices = [
                InputDevice(id=str(d.get("id", "")), label=d.get("label", ""))
                for d in msg.get("devices", [])
                if isinstance(d, dict) and d.get("id")
            ]
            await self._send({
                "type": "devices",
                "devices": [d.model_dump() for d in await self.capture.list_devices()],
            })

        elif t == "settings":
            if "fetch_verse_text" in msg:
                self.fetch_verse_text = bool(msg["fetch_verse_text"])

        elif t == "result":
            results = []
            for r in msg.get("results", []):
                if isinstance(r, dict) and isinstance(r.get("text"), str):
                    results.append(RecognizerResult(
                        text=r["text"],
                        is_final=bool(r.get("is_final", False)),
                        confidence=float(r.get("confidence") or 0.0),
                    ))
            if results:
                await self.recognizer.deliver_result(results)

        elif t == "recognizer_error":
            await self.recognizer.deliver_error(str(msg.get("error", "unknown")))

        elif t == "recognizer_end":
            await self.recognizer.deliver_end()

        elif t == "status":
            await self._send({"type": "status", **self.capture.status()})

        elif t == "ping":
            await self._send({"type": "pong"})

    async def _send(self, data: dict):
        try:
            await self.ws.send_text(json.dumps(data, default=str))
        except Exception as e:
            logger.debug(f"WebSocket send failed (client may have disconnected): {e}")

    async def cleanup(self):
        if self._cleaned_up:
            return
        self._cleaned_up = True
        await self.capture.stop()
        if self._inflight:
            try:
                await asyncio.wait_for(
                    asyncio.gather(*self._inflight, return_exceptions=True),
                    timeout=5.0,
                )
            except asyncio.TimeoutError:
                logger.warning(f"Client {self.id}: {len(self._inflight)} detection(s) still running at cleanup")


async def websocket_endpoint(websocket: WebSocket):
    """Main WebSocket handler. Only one client at a time."""
    await websocket.accept()

    async with _active_ws_lock:
        global _active_session
        session = ClientSession(websocket, _state._detector, _state._config)
        _active_session = session

        try:
            logger.info(f"Client connected: {session.id}")
            await session._send({"type": "status", **session.capture.status()})

            while True:
                message = await websocket.receive()
                if message.get("type") == "websocket.disconnect":
                    logger.info(f"Client {session.id}: disconnect received")
                    break

                if "bytes" in message and message["bytes"]:
                    session.audio.feed(message["bytes"])

                elif "text" in message and message["text"]:
                    try:
                        msg = json.loads(message["text"])
                    except json.JSONDecodeError:
                        continue
                    if not isinstance(msg, dict):
                        continue
                    try:
                        await session.handle_message(msg)
                    except InvalidTransitionError as e:
                        await session._send({
                            "type": "error", "kind": "invalid_transition", "message": str(e),
                        })

        except WebSocketDisconnect:
            logger.info(f"Client disconnected: {session.id}")
        except Exception as e:
            logger.error(f"WebSocket error: {e}")
        finally:
            _active_session = None
            await session.cleanup()
