"""
Tests for the Convex HTTP client
"""

import json

import httpx
import pytest

from audio_processor.exceptions import PersistenceError
from audio_processor.persistence import ConvexClient


def make_client(handler):
    requests = []

    def transport(request: httpx.Request):
        requests.append(request)
        return handler(request)

    http = httpx.AsyncClient(transport=httpx.MockTransport(transport))
    return ConvexClient(url="https://convex.example.cloud/", client=http), requests


def ok(value=None):
    return httpx.Response(200, json={"status": "success", "value": value})


class TestConvexClient:

    @pytest.mark.asyncio
    async def test_create_call_request_shape(self):
        convex, requests = make_client(lambda request: ok("k57abc"))

        call_id = await convex.create_call("team-1", "closer-1", "Dana")

        assert call_id == "k57abc"
        request = requests[0]
        assert str(request.url) == "https://convex.example.cloud/api/mutation"
        assert json.loads(request.content) == {
            "path": "calls:createCall",
            "args": {
                "teamId": "team-1",
                "closerId": "closer-1",
                "status": "waiting",
                "speakerCount": 1,
                "prospectName": "Dana",
            },
            "format": "json",
        }
        await convex.close()

    @pytest.mark.asyncio
    async def test_ammo_item_args_are_flattened(self):
        convex, requests = make_client(lambda request: ok())

        await convex.add_ammo_item("k57abc", "team-1", {"text": "quote", "type": "budget", "score": 80})

        body = json.loads(requests[0].content)
        assert body["path"] == "calls:addAmmo"
        assert body["args"] == {"callId": "k57abc", "teamId": "team-1", "text": "quote", "type": "budget", "score": 80}

    @pytest.mark.asyncio
    async def test_error_status_raises(self):
        convex, _ = make_client(
            lambda request: httpx.Response(200, json={"status": "error", "errorMessage": "Call not found"})
        )

        with pytest.raises(PersistenceError, match="Call not found"):
            await convex.update_call_status("missing", "on_call")

    @pytest.mark.asyncio
    async def test_http_failure_raises(self):
        convex, _ = make_client(lambda request: httpx.Response(503, text="unavailable"))

        with pytest.raises(PersistenceError, match="HTTP 503"):
            await convex.add_transcript("k57abc", "[Closer]: hi\n")

    @pytest.mark.asyncio
    async def test_transport_failure_raises(self):
        def refuse(request):
            raise httpx.ConnectError("connection refused", request=request)

        convex, _ = make_client(refuse)

        with pytest.raises(PersistenceError):
            await convex.complete_call("k57abc", "", "", 0)

    @pytest.mark.asyncio
    async def test_unconfigured_url_raises(self):
        convex = ConvexClient(url="", client=httpx.AsyncClient())

        with pytest.raises(PersistenceError, match="CONVEX_URL"):
            await convex.create_call("team-1", "closer-1")
        await convex.close()

    @pytest.mark.asyncio
    async def test_ammo_config_query(self):
        config = {
            "_id": "cfg1",
            "teamId": "team-1",
            "requiredInfo": [{"id": "budget", "label": "Budget", "keywords": ["budget"]}],
            "scriptFramework": [],
            "commonObjections": [],
            "ammoCategories": [],
            "offerDescription": "Coaching",
            "problemSolved": "Burnout",
        }
        convex, requests = make_client(lambda request: ok(config))

        result = await convex.get_ammo_config("team-1")

        assert str(requests[0].url).endswith("/api/query")
        assert json.loads(requests[0].content)["path"] == "admin:getAmmoConfig"
        assert result.offer_description == "Coaching"
        assert result.required_info[0].label == "Budget"

    @pytest.mark.asyncio
    async def test_missing_ammo_config_is_none(self):
        convex, _ = make_client(lambda request: ok(None))
        assert await convex.get_ammo_config("team-1") is None

    @pytest.mark.asyncio
    async def test_team_custom_prompt(self):
        convex, requests = make_client(lambda request: ok({"_id": "team-1", "customAiPrompt": "We sell solar."}))

        assert await convex.get_team_custom_prompt("team-1") == "We sell solar."
        assert json.loads(requests[0].content)["path"] == "teams:getTeamById"

    @pytest.mark.asyncio
    async def test_malformed_ammo_config_raises_persistence_error(self):
        convex, _ = make_client(lambda request: ok({"teamId": "team-1", "requiredInfo": [{"label": "Budget"}]}))

        with pytest.raises(PersistenceError, match="malformed config"):
            await convex.get_ammo_config("team-1")

    @pytest.mark.asyncio
    async def test_non_object_body_raises(self):
        convex, _ = make_client(lambda request: httpx.Response(200, json=["not", "an", "object"]))

        with pytest.raises(PersistenceError, match="unexpected response body"):
            await convex.update_talk_time("k57abc", 10, 20)

    @pytest.mark.asyncio
    async def test_team_that_is_not_a_document(self):
        convex, _ = make_client(lambda request: ok("team-1"))
        assert await convex.get_team_custom_prompt("team-1") is None
