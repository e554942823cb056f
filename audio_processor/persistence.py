"""
Sequence Convex Client
Call records, transcript, ammo and nudges over the Convex HTTP API
"""

from typing import Any, Dict, Optional

import httpx
from pydantic import ValidationError

from .config import settings
from .exceptions import PersistenceError
from .team_config import AmmoConfig

import logging
logger = logging.getLogger(__name__)


class ConvexClient:
    """
    Thin wrapper over `POST /api/mutation` and `POST /api/query`.

    Every method raises PersistenceError on transport failure or a
    Convex-side error. Callers decide whether to await or to run the
    write in the background.
    """

    def __init__(self, url: Optional[str] = None, timeout: Optional[float] = None,
                 client: Optional[httpx.AsyncClient] = None):
        self.url = (url if url is not None else settings.convex_url).rstrip("/")
        self._client = client or httpx.AsyncClient(
            timeout=timeout if timeout is not None else settings.convex_timeout_seconds
        )

    async def _call(self, kind: str, path: str, args: Dict[str, Any]) -> Any:
        if not self.url:
            raise PersistenceError(f"CONVEX_URL not configured ({path})")

        try:
            response = await self._client.post(
                f"{self.url}/api/{kind}",
                json={"path": path, "args": args, "format": "json"},
            )
        except httpx.RequestError as e:
            raise PersistenceError(f"{path}: {type(e).__name__} - {e}") from e

        if response.status_code != 200:
            raise PersistenceError(f"{path}: HTTP {response.status_code} - {response.text[:200]}")

        try:
            body = response.json()
        except ValueError as e:
            raise PersistenceError(f"{path}: invalid JSON response") from e

        if not isinstance(body, dict):
            raise PersistenceError(f"{path}: unexpected response body")
        if body.get("status") != "success":
            raise PersistenceError(f"{path}: {body.get('errorMessage', 'unknown error')}")
        return body.get("value")

    async def mutation(self, path: str, args: Dict[str, Any]) -> Any:
        return await self._call("mutation", path, args)

    async def query(self, path: str, args: Dict[str, Any]) -> Any:
        return await self._call("query", path, args)

    async def close(self):
        await self._client.aclose()

    # Calls

    async def create_call(self, team_id: str, closer_id: str, prospect_name: Optional[str] = None) -> str:
        args = {"teamId": team_id, "closerId": closer_id, "status": "waiting", "speakerCount": 1}
        if prospect_name:
            args["prospectName"] = prospect_name
        call_id = await self.mutation("calls:createCall", args)
        logger.info(f"[Convex] Created call {call_id}")
        return call_id

    async def update_call_status(self, call_id: str, status: str, speaker_count: Optional[int] = None):
        args = {"callId": call_id, "status": status}
        if speaker_count is not None:
            args["speakerCount"] = speaker_count
        await self.mutation("calls:updateCallStatus", args)

    async def add_transcript_segment(self, call_id: str, team_id: str, speaker: str,
                                     text: str, timestamp: int):
        await self.mutation("calls:addTranscriptSegment", {
            "callId": call_id,
            "teamId": team_id,
            "speaker": speaker,
            "text": text,
            "timestamp": timestamp,
        })

    async def add_transcript(self, call_id: str, transcript: str):
        await self.mutation("calls:updateTranscript", {"callId": call_id, "transcript": transcript})

    async def update_talk_time(self, call_id: str, closer_seconds: int, prospect_seconds: int):
        await self.mutation("calls:updateTalkTime", {
            "callId": call_id,
            "closerTalkTime": closer_seconds,
            "prospectTalkTime": prospect_seconds,
        })

    async def add_ammo_item(self, call_id: str, team_id: str, item: Dict[str, Any]):
        await self.mutation("calls:addAmmo", {"callId": call_id, "teamId": team_id, **item})

    async def add_nudge(self, call_id: str, team_id: str, nudge: Dict[str, Any]):
        await self.mutation("calls:addNudge", {"callId": call_id, "teamId": team_id, **nudge})

    async def update_call_detection(self, call_id: str, detection: Dict[str, Any]):
        await self.mutation("calls:updateCallDetection", {"callId": call_id, **detection})

    async def complete_call(self, call_id: str, recording_url: str, transcript: str, duration: int):
        await self.mutation("calls:completeCall", {
            "callId": call_id,
            "recordingUrl": recording_url,
            "transcript": transcript,
            "duration": duration,
            "status": "completed",
        })
        logger.info(f"[Convex] Completed call {call_id} ({duration}s)")

    # Team configuration

    async def get_ammo_config(self, team_id: str) -> Optional[AmmoConfig]:
        value = await self.query("admin:getAmmoConfig", {"teamId": team_id})
        if not value:
            return None
        try:
            return AmmoConfig.model_validate(value)
        except ValidationError as e:
            raise PersistenceError(
                f"admin:getAmmoConfig: malformed config for team {team_id} ({e.error_count()} error(s))"
            ) from e

    async def get_team_custom_prompt(self, team_id: str) -> Optional[str]:
        team = await self.query("teams:getTeamById", {"teamId": team_id})
        if not isinstance(team, dict):
            return None
        return team.get("customAiPrompt") or None
