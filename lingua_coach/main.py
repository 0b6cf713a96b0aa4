"""
Lingua Coach Backend - Main Application Entry Point

This is the FastAPI application that serves the Lingua Coach speaking
practice system. It provides:
- POST /analyze for scored practice feedback
- POST /converse for spoken conversation turns
- Level listing, health and readiness endpoints
- Provider client lifecycle management (built on startup, closed on shutdown)
"""

import sys
from contextlib import asynccontextmanager
from typing import Optional

import uvicorn
from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from loguru import logger

from lingua_coach import __version__
from lingua_coach.api import router
from lingua_coach.config import Settings, get_settings
from lingua_coach.errors import CoachError
from lingua_coach.services.pipeline import SpeechPipeline, create_openai_client


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Application lifespan manager.

    Handles startup and shutdown events:
    - Startup: Build the provider client and the speech pipeline
    - Shutdown: Close the provider client
    """
    settings: Settings = app.state.settings

    logger.info("=" * 60)
    logger.info("Lingua Coach Backend Starting...")
    logger.info(f"Environment: {settings.environment}")
    logger.info(f"Debug Mode: {settings.debug}")
    logger.info("=" * 60)

    if app.state.pipeline is None:
        if settings.provider_configured:
            client = create_openai_client(settings)
            app.state.pipeline = SpeechPipeline(client, settings)
            logger.info("AI provider client ready")
            logger.info(f"  STT: {settings.transcription_model}")
            logger.info(f"  LLM: {settings.analysis_model} / {settings.conversation_model}")
            logger.info(f"  TTS: {settings.tts_model} ({settings.tts_voice})")
        else:
            logger.warning("⚠ OPENAI_API_KEY is not set - requests will fail until it is configured")

    logger.info(f"Health check: http://{settings.host}:{settings.port}/health")

    yield  # Application runs here

    logger.info("Lingua Coach Backend Shutting Down...")
    pipeline: Optional[SpeechPipeline] = app.state.pipeline
    if pipeline is not None:
        try:
            await pipeline.client.close()
        except Exception as e:
            logger.error(f"Error closing provider client: {e}")
    logger.info("Lingua Coach Backend Stopped")


async def coach_error_handler(request: Request, exc: CoachError) -> JSONResponse:
    """Render application errors as {error} with the error's status code."""
    if exc.status_code >= 500:
        logger.error(f"{request.method} {request.url.path} -> {exc.status_code}: {exc.detail or exc.user_message}")
    else:
        logger.info(f"{request.method} {request.url.path} -> {exc.status_code}: {exc.user_message}")
    return JSONResponse(status_code=exc.status_code, content={"error": exc.user_message})


async def validation_error_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    logger.info(f"{request.method} {request.url.path} -> 400: {exc.errors()}")
    return JSONResponse(status_code=400, content={"error": "Invalid request"})


def create_app(
    settings: Optional[Settings] = None,
    pipeline: Optional[SpeechPipeline] = None,
) -> FastAPI:
    """
    Create and configure the FastAPI application.

    Args:
        settings: Settings to use; defaults to the environment
        pipeline: Prebuilt pipeline; when omitted one is built on startup

    Returns:
        Configured FastAPI application instance
    """
    settings = settings or get_settings()

    app = FastAPI(
        title="Lingua Coach Backend",
        description="Speaking practice for English learners with STT + LLM + TTS",
        version=__version__,
        lifespan=lifespan,
        docs_url="/docs" if settings.debug else None,
        redoc_url="/redoc" if settings.debug else None,
    )
    app.state.settings = settings
    app.state.pipeline = pipeline

    # Configure CORS
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins_list,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.add_exception_handler(CoachError, coach_error_handler)
    app.add_exception_handler(RequestValidationError, validation_error_handler)

    app.include_router(router)

    @app.get("/", tags=["root"])
    async def root():
        """Root endpoint - returns basic API information."""
        return {
            "name": "Lingua Coach Backend",
            "version": __version__,
            "description": "Speaking practice for English learners",
            "models": {
                "stt": settings.transcription_model,
                "llm": settings.conversation_model,
                "tts": settings.tts_model,
            },
            "endpoints": {
                "analyze": "/analyze",
                "converse": "/converse",
                "levels": "/levels",
                "health": "/health",
                "ready": "/ready",
                "docs": "/docs" if settings.debug else "disabled",
            },
        }

    return app


def configure_logging(settings: Settings) -> None:
    """Configure loguru logging based on settings."""
    # Remove default handler
    logger.remove()

    logger.add(
        sys.stderr,
        format=settings.log_format,
        level=settings.log_level,
        colorize=True,
    )

    # Add file handler for production
    if settings.is_production:
        logger.add(
            "logs/lingua-coach-{time:YYYY-MM-DD}.log",
            rotation="1 day",
            retention="7 days",
            level="INFO",
            format=settings.log_format,
        )


def run() -> None:
    """Start the backend with uvicorn."""
    settings = get_settings()
    configure_logging(settings)

    logger.info("")
    logger.info("=" * 60)
    logger.info("  Lingua Coach Backend")
    logger.info("  Speaking Practice for English Learners")
    logger.info("=" * 60)
    logger.info(f"  Server: http://{settings.host}:{settings.port}")
    logger.info(f"  Environment: {settings.environment}")
    logger.info("=" * 60)

    uvicorn.run(
        "lingua_coach.main:create_app",
        factory=True,
        host=settings.host,
        port=settings.port,
        reload=settings.debug,
        log_level=settings.log_level.lower(),
    )


if __name__ == "__main__":
    run()
