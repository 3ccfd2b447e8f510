from __future__ import annotations

import io
import json
import logging

import numpy as np
import soundfile as sf
import uvicorn
from fastapi import FastAPI, File, Form, HTTPException, UploadFile, WebSocket, WebSocketDisconnect
from pydantic import ValidationError

from tuner import __version__
from tuner.engine import analyze_recording
from tuner.errors import ConfigurationError
from tuner.web.schemas import AnalyzeResponse, InitMessage, ReadingEvent, ResetMessage
from tuner.web.session import RealtimeSession, SessionManager

logger = logging.getLogger(__name__)

app = FastAPI(title="Tuner", version=__version__)
sessions = SessionManager()


@app.get("/api/health")
async def health() -> dict[str, object]:
    return {
        "status": "ok",
        "version": __version__,
        "activeSessions": sessions.active_count,
    }


@app.post("/api/analyze")
async def analyze(
    audio: UploadFile = File(...),
    block_size: int = Form(2048),
) -> dict[str, object]:
    if block_size < 256 or block_size > 16_384:
        raise HTTPException(status_code=422, detail="block_size must be in range [256, 16384]")

    payload = await audio.read()
    if not payload:
        raise HTTPException(status_code=400, detail="Audio file is empty")

    try:
        waveform, sample_rate = _decode_with_soundfile(payload)
    except Exception as exc:  # noqa: BLE001
        raise HTTPException(status_code=400, detail=f"Unable to decode audio: {exc}") from exc

    try:
        results = analyze_recording(waveform, sample_rate, block_size)
    except ConfigurationError as exc:
        raise HTTPException(status_code=422, detail=str(exc)) from exc

    response = AnalyzeResponse(
        sample_rate=sample_rate,
        block_size=block_size,
        readings=[ReadingEvent.model_validate(r.to_event()) for r in results],
    )
    return response.model_dump(by_alias=True)


@app.websocket("/ws/tuner")
async def tuner_ws(websocket: WebSocket) -> None:
    await websocket.accept()
    session = sessions.create()
    await websocket.send_json({"type": "status", "message": "Connected."})

    try:
        while True:
            message = await websocket.receive()
            if message.get("type") == "websocket.disconnect":
                break
            text = message.get("text")
            binary = message.get("bytes")

            if text is not None:
                for event in _handle_text_message(session, text):
                    await websocket.send_json(event)
            elif binary is not None:
                for event in session.process_audio_bytes(binary):
                    await websocket.send_json(event)
    except WebSocketDisconnect:
        pass
    finally:
        sessions.remove(session.session_id)


def _handle_text_message(session: RealtimeSession, text: str) -> list[dict[str, object]]:
    try:
        payload = json.loads(text)
    except json.JSONDecodeError:
        return [{"type": "error", "code": "invalid_json", "message": "Invalid JSON payload"}]

    if not isinstance(payload, dict):
        return [{"type": "error", "code": "invalid_payload", "message": "Expected JSON object"}]

    msg_type = payload.get("type")
    try:
        if msg_type == "init":
            msg = InitMessage.model_validate(payload)
            session.init(sample_rate=msg.sample_rate, block_size=msg.block_size)
            return [{"type": "status", "message": "Session initialized."}]

        if msg_type == "reset":
            ResetMessage.model_validate(payload)
            session.reset()
            return [{"type": "status", "message": "Session reset."}]

    except ValidationError as exc:
        return [{"type": "error", "code": "invalid_message", "message": str(exc)}]
    except ConfigurationError as exc:
        return [{"type": "error", "code": "invalid_config", "message": str(exc)}]

    return [{"type": "error", "code": "unknown_message", "message": f"Unknown type: {msg_type}"}]


def _decode_with_soundfile(payload: bytes) -> tuple[np.ndarray, int]:
    data, sample_rate = sf.read(io.BytesIO(payload), dtype="float32", always_2d=False)
    audio = np.asarray(data, dtype=np.float32)
    if audio.ndim == 2:
        audio = np.mean(audio, axis=1, dtype=np.float32)
    if audio.size == 0:
        raise ValueError("decoded audio is empty")
    return audio, int(sample_rate)


def main() -> None:
    logging.basicConfig(level=logging.INFO, format="%(asctime)s %(levelname)s %(name)s: %(message)s")
    uvicorn.run(
        "tuner.web.server:app",
        host="0.0.0.0",
        port=8000,
        reload=False,
    )


if __name__ == "__main__":
    main()
