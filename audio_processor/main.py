"""
Sequence Audio Processor
FastAPI application: live call ingress over WebSocket plus health routes
"""

import logging
from contextlib import asynccontextmanager

import uvicorn
from fastapi import FastAPI, WebSocket
from fastapi.middleware.cors import CORSMiddleware

from .call_session import session_manager
from .config import settings
from .persistence import ConvexClient
from .storage import RecordingStorage, is_s3_configured
from .websocket_handler import websocket_endpoint

logger = logging.getLogger(__name__)

VERSION = "1.0.0"


# ============ LIFESPAN ============

@asynccontextmanager
async def lifespan(app: FastAPI):
    logging.basicConfig(
        level=settings.log_level.upper(),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    logger.info(f"{settings.app_name} starting up")

    if settings.deepgram_api_key:
        logger.info("Deepgram API key configured")
    else:
        logger.warning("DEEPGRAM_API_KEY not set - transcription disabled")

    if settings.anthropic_api_key:
        logger.info("Anthropic API key configured")
    else:
        logger.warning("ANTHROPIC_API_KEY not set - ammo extraction and detection disabled")

    if not settings.convex_url:
        logger.warning("CONVEX_URL not set - calls will not be persisted")

    app.state.convex = ConvexClient()
    app.state.storage = RecordingStorage()

    logger.info(f"{settings.app_name} ready on {settings.host}:{settings.port}")

    yield

    logger.info(f"{settings.app_name} shutting down")
    await session_manager.end_all()
    await app.state.convex.close()


# ============ APP SETUP ============

app = FastAPI(
    title="Sequence Audio Processor",
    description="Live sales call transcription, ammo extraction and coaching nudges",
    version=VERSION,
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


# ============ WEBSOCKET ROUTES ============

@app.websocket("/ws")
async def call_websocket(websocket: WebSocket):
    """Desktop client audio stream for one call"""
    await websocket_endpoint(websocket, websocket.app.state.convex, websocket.app.state.storage)


# ============ HEALTH CHECK ============

@app.get("/health")
async def health_check():
    """Health check endpoint for load balancers"""
    return {
        "status": "healthy",
        "app": settings.app_name,
        "version": VERSION,
        "activeCalls": len(session_manager),
        "deepgram": bool(settings.deepgram_api_key),
        "anthropic": bool(settings.anthropic_api_key),
        "convex": bool(settings.convex_url),
        "s3": is_s3_configured(),
    }


@app.get("/calls/active")
async def active_calls():
    calls = session_manager.get_active_calls()
    return {"count": len(calls), "calls": calls}


def run():
    uvicorn.run("audio_processor.main:app", host=settings.host, port=settings.port)


if __name__ == "__main__":
    run()
