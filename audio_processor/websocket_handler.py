"""
Sequence WebSocket Handler
Desktop client ingress: call metadata, stereo PCM frames and control commands

Protocol:
  1. first text frame  {callId, teamId, closerId, prospectName?, sampleRate?}
     reply             {"status": "ready", "callId", "convexCallId"}
  2. binary frames     interleaved int16 stereo PCM
  3. text commands     {"type": "end"} | {"type": "stats"} | {"type": "ping"}
Ammo and nudges are pushed as {"type": "ammo"|"nudge", "data": {...}}.
Closing the socket ends the call.
"""

import asyncio
import json
import time
from typing import Optional

from fastapi import WebSocket, WebSocketDisconnect
from pydantic import ValidationError

from .call_handler import CallHandler
from .call_session import CallMetadata, session_manager
from .persistence import ConvexClient
from .storage import RecordingStorage

import logging
logger = logging.getLogger(__name__)


METADATA_TIMEOUT_SECONDS = 30.0


class ClientChannel:
    """Outbound side of one socket. Sends after close are dropped."""

    def __init__(self, websocket: WebSocket):
        self.websocket = websocket
        self.closed = False
        self._send_lock = asyncio.Lock()

    async def send_json(self, data: dict):
        if self.closed:
            return
        async with self._send_lock:
            try:
                await self.websocket.send_json(data)
            except Exception as e:
                logger.warning(f"[WS] Send failed, marking channel closed: {e}")
                self.closed = True

    async def close(self, code: int = 1000):
        if self.closed:
            return
        self.closed = True
        try:
            await self.websocket.close(code=code)
        except RuntimeError:
            pass  # already closed by the client


async def read_metadata(websocket: WebSocket, channel: ClientChannel) -> Optional[CallMetadata]:
    """Wait for the metadata frame. Replies with an error and returns None if it is unusable."""
    message = await asyncio.wait_for(websocket.receive(), timeout=METADATA_TIMEOUT_SECONDS)
    if message.get("type") == "websocket.disconnect":
        return None

    text = message.get("text")
    if text is None:
        await channel.send_json({"error": "First message must be call metadata JSON"})
        return None

    try:
        return CallMetadata.model_validate(json.loads(text))
    except json.JSONDecodeError:
        await channel.send_json({"error": "Invalid metadata JSON"})
    except ValidationError as e:
        missing = ", ".join(str(err["loc"][0]) for err in e.errors() if err.get("loc"))
        await channel.send_json({"error": f"Missing or invalid metadata fields: {missing}"})
    return None


async def handle_command(handler: CallHandler, channel: ClientChannel, text: str) -> bool:
    """Process one text command. Returns True when the connection should close."""
    try:
        data = json.loads(text)
    except json.JSONDecodeError:
        logger.debug(f"[WS] Ignoring non-JSON text on call {handler.call_id}")
        return False
    if not isinstance(data, dict):
        return False

    command = data.get("type")
    if command == "end":
        logger.info(f"[WS] End requested for call {handler.call_id}")
        stats = await handler.end()
        await channel.send_json({"status": "ended", "stats": stats})
        return True
    if command == "stats":
        await channel.send_json({"status": "stats", "stats": handler.get_stats()})
    elif command == "ping":
        await channel.send_json({"type": "pong"})
    return False


async def websocket_endpoint(websocket: WebSocket, convex: ConvexClient, storage: RecordingStorage,
                             handler_factory=CallHandler):
    await websocket.accept()
    channel = ClientChannel(websocket)
    connection_start = time.time()
    handler: Optional[CallHandler] = None

    try:
        metadata = await read_metadata(websocket, channel)
        if metadata is None:
            return

        handler = handler_factory(metadata, convex, storage, on_event=channel.send_json)
        convex_call_id = await handler.start()
        await session_manager.register(handler)
        await channel.send_json({"status": "ready", "callId": metadata.call_id, "convexCallId": convex_call_id})

        while True:
            message = await websocket.receive()
            if message.get("type") == "websocket.disconnect":
                logger.info(f"[WS] Client disconnected from call {handler.call_id}")
                break

            if message.get("bytes") is not None:
                await handler.process_audio(message["bytes"])
            elif message.get("text") is not None:
                if await handle_command(handler, channel, message["text"]):
                    break

    except asyncio.TimeoutError:
        logger.warning("[WS] No call metadata received - closing")
    except WebSocketDisconnect:
        logger.info("[WS] WebSocket disconnected")
    except Exception as e:
        logger.exception(f"[WS] Connection error: {e}")
    finally:
        if handler is not None:
            await handler.end()
            await session_manager.unregister(handler.call_id)
        await channel.close()
        logger.info(f"[WS] Connection closed after {time.time() - connection_start:.1f}s")
