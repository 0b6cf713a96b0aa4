"""
HTTP API for practice feedback and conversation turns.

Both POST routes are stateless: everything a conversation needs, including
its recent history, arrives with each request.

- POST /analyze: audio + level -> FeedbackReport
- POST /converse: audio + level + history -> transcription, reply, reply audio
- GET /levels: the CEFR level table
- GET /health, GET /ready: monitoring
"""

import json
from datetime import datetime, timezone
from typing import List, Optional

from fastapi import APIRouter, File, Form, HTTPException, Request, UploadFile
from loguru import logger

from lingua_coach.errors import (
    ANALYZE_FAILED_MESSAGE,
    CONVERSE_FAILED_MESSAGE,
    NO_AUDIO_MESSAGE,
    InvalidRequestError,
    UpstreamFailureError,
)
from lingua_coach.prompts import LEVELS, CEFRLevel
from lingua_coach.services.pipeline import SpeechPipeline

router = APIRouter()

DEFAULT_AUDIO_MIME = "audio/webm"


def get_pipeline(request: Request, failure_message: str) -> SpeechPipeline:
    """
    Resolve the process-wide pipeline built in the application lifespan.

    Called only after the request itself has been validated, so a bad upload
    is still reported as such on a server without provider credentials.
    """
    pipeline = getattr(request.app.state, "pipeline", None)
    if pipeline is None:
        logger.error("Request received but the AI provider is not configured")
        raise UpstreamFailureError(failure_message, detail="provider client not configured")
    return pipeline


def parse_level(level: Optional[str]) -> CEFRLevel:
    if not level:
        raise InvalidRequestError("No level provided")
    try:
        return CEFRLevel(level.strip().upper())
    except ValueError:
        raise InvalidRequestError(f"Invalid level: {level}")


def parse_history(history: Optional[str]) -> List[dict]:
    """Decode the JSON history field, keeping only {role, content} per entry."""
    if not history:
        return []
    try:
        entries = json.loads(history)
    except json.JSONDecodeError as e:
        logger.warning(f"Invalid history JSON: {e}")
        raise InvalidRequestError("Invalid conversation history")

    if not isinstance(entries, list) or not all(isinstance(e, dict) for e in entries):
        raise InvalidRequestError("Invalid conversation history")

    return [
        {"role": entry.get("role"), "content": entry.get("content", "")}
        for entry in entries
    ]


async def read_audio(request: Request, audio: Optional[UploadFile]) -> tuple[bytes, str]:
    """Read the uploaded recording, enforcing presence and size limits."""
    if audio is None:
        raise InvalidRequestError(NO_AUDIO_MESSAGE)

    max_bytes = request.app.state.settings.max_upload_bytes
    data = await audio.read(max_bytes + 1)
    if not data:
        raise InvalidRequestError(NO_AUDIO_MESSAGE)
    if len(data) > max_bytes:
        raise InvalidRequestError("Audio file is too large")

    return data, audio.content_type or DEFAULT_AUDIO_MIME


@router.post("/analyze", tags=["practice"])
async def analyze(
    request: Request,
    audio: Optional[UploadFile] = File(None),
    level: Optional[str] = Form(None),
):
    """Score one practice recording."""
    data, mime_type = await read_audio(request, audio)
    cefr_level = parse_level(level)
    pipeline = get_pipeline(request, ANALYZE_FAILED_MESSAGE)

    logger.info(f"Analyze request: {len(data)} bytes ({mime_type}), level {cefr_level.value}")
    report = await pipeline.analyze(data, mime_type, cefr_level)
    return report.to_dict()


@router.post("/converse", tags=["conversation"])
async def converse(
    request: Request,
    audio: Optional[UploadFile] = File(None),
    level: Optional[str] = Form(None),
    history: Optional[str] = Form(None),
):
    """Reply to one spoken conversation turn."""
    data, mime_type = await read_audio(request, audio)
    cefr_level = parse_level(level)
    turns = parse_history(history)
    pipeline = get_pipeline(request, CONVERSE_FAILED_MESSAGE)

    logger.info(
        f"Converse request: {len(data)} bytes ({mime_type}), level {cefr_level.value}, "
        f"{len(turns)} history turns"
    )
    reply = await pipeline.converse(data, mime_type, cefr_level, turns)
    return reply.to_dict()


@router.get("/levels", tags=["levels"])
async def levels():
    """List the proficiency levels the learner can choose from."""
    return [info.to_dict() for info in LEVELS]


@router.get("/health", tags=["monitoring"])
async def health_check():
    """Health check endpoint."""
    return {
        "status": "healthy",
        "service": "lingua-coach",
        "timestamp": datetime.now(timezone.utc).isoformat(),
    }


@router.get("/ready", tags=["monitoring"])
async def readiness_check(request: Request):
    """
    Readiness check endpoint.

    Returns 200 only if the provider client has been constructed.
    """
    ready = getattr(request.app.state, "pipeline", None) is not None
    if not ready:
        raise HTTPException(
            status_code=503,
            detail={"status": "not_ready", "provider_configured": False},
        )
    return {
        "status": "ready",
        "provider_configured": True,
        "timestamp": datetime.now(timezone.utc).isoformat(),
    }

