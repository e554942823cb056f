"""
Tests for Claude ammo extraction parsing and the adapter boundary
"""

import json
from types import SimpleNamespace
from unittest.mock import AsyncMock, MagicMock

import pytest

from audio_processor.ammo_extraction import (
    AnthropicAmmoExtractor,
    DEFAULT_EXTRACTION_PROMPT,
    build_system_prompt,
    parse_candidates,
)
from audio_processor.team_config import AmmoConfig


ITEMS = [
    {
        "text": "losing about $5,000 every single month",
        "type": "financial",
        "score": 92,
        "emotionalIntensity": False,
        "hasSpecifics": True,
        "repetitionKeywords": ["$5,000", "losing"],
        "suggestedUse": "That's $60k a year.",
    },
    {"text": "my wife is fed up with me", "type": "emotional"},
]

TRANSCRIPT = "[Prospect]: Honestly I've been losing about $5,000 every single month and my wife is fed up with me."


def claude_response(text):
    return SimpleNamespace(content=[SimpleNamespace(type="text", text=text)])


class TestParseCandidates:

    def test_plain_json_array(self):
        result = parse_candidates(json.dumps(ITEMS))
        assert result.ok
        assert [c.category for c in result.candidates] == ["financial", "emotional"]
        first = result.candidates[0]
        assert first.score == 92
        assert first.has_specifics is True
        assert first.repetition_keywords == ["$5,000", "losing"]
        assert result.candidates[1].score is None

    def test_markdown_fence_is_stripped(self):
        result = parse_candidates("```json\n" + json.dumps(ITEMS) + "\n```")
        assert result.ok
        assert len(result.candidates) == 2

    def test_invalid_json_is_an_error_result(self):
        result = parse_candidates("Here are the items you asked for!")
        assert not result.ok
        assert result.candidates == []
        assert "invalid JSON" in result.error

    def test_non_array_is_an_error_result(self):
        result = parse_candidates('{"text": "hi", "type": "financial"}')
        assert not result.ok

    def test_malformed_items_are_skipped(self):
        raw = [
            {"text": "", "type": "financial"},
            {"text": "valid quote here", "type": "gossip"},
            "just a string",
            {"text": "kept", "type": "situational", "score": "high", "repetitionKeywords": "nope"},
        ]
        result = parse_candidates(json.dumps(raw))
        assert result.ok
        assert len(result.candidates) == 1
        kept = result.candidates[0]
        assert kept.text == "kept"
        assert kept.score is None
        assert kept.repetition_keywords == []

    def test_stored_category_names_are_accepted(self):
        raw = [
            {"text": "about five grand a month", "type": "budget"},
            {"text": "need this fixed before tax season", "type": "urgency"},
        ]
        result = parse_candidates(json.dumps(raw))
        assert [c.category for c in result.candidates] == ["financial", "situational"]


class TestBuildSystemPrompt:

    def test_default(self):
        assert build_system_prompt() == DEFAULT_EXTRACTION_PROMPT

    def test_custom_prompt_is_appended(self):
        prompt = build_system_prompt(custom_prompt="We sell fitness coaching.")
        assert prompt.startswith(DEFAULT_EXTRACTION_PROMPT)
        assert prompt.endswith("We sell fitness coaching.")

    def test_team_config_layers_on_default(self):
        config = AmmoConfig.model_validate({
            "teamId": "team-1",
            "offerDescription": "Bookkeeping for dentists",
            "problemSolved": "Messy books",
            "ammoCategories": [{"id": "cat_tax", "name": "Tax", "color": "#fff", "keywords": ["irs", "audit"]}],
            "commonObjections": [{"id": "obj_acc", "label": "Has an accountant", "keywords": ["accountant"]}],
        })
        prompt = build_system_prompt(config, custom_prompt="ignored when config exists")
        assert prompt.startswith(DEFAULT_EXTRACTION_PROMPT)
        assert "Bookkeeping for dentists" in prompt
        assert '"cat_tax"' in prompt
        assert "Has an accountant" in prompt
        assert "ignored when config exists" not in prompt


class TestAnthropicAmmoExtractor:

    @pytest.mark.asyncio
    async def test_short_text_skips_the_model(self):
        client = MagicMock()
        client.messages.create = AsyncMock()
        extractor = AnthropicAmmoExtractor(client=client, model="test-model")

        result = await extractor.extract("too short")

        assert result.ok and result.candidates == []
        client.messages.create.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_parses_model_output(self):
        client = MagicMock()
        client.messages.create = AsyncMock(return_value=claude_response("```\n" + json.dumps(ITEMS) + "\n```"))
        extractor = AnthropicAmmoExtractor(client=client, model="test-model")

        result = await extractor.extract(TRANSCRIPT)

        assert result.ok
        assert len(result.candidates) == 2
        kwargs = client.messages.create.await_args.kwargs
        assert kwargs["model"] == "test-model"
        assert kwargs["system"] == DEFAULT_EXTRACTION_PROMPT
        assert TRANSCRIPT in kwargs["messages"][0]["content"]

    @pytest.mark.asyncio
    async def test_request_failure_is_an_error_result(self):
        client = MagicMock()
        client.messages.create = AsyncMock(side_effect=RuntimeError("overloaded"))
        extractor = AnthropicAmmoExtractor(client=client)

        result = await extractor.extract(TRANSCRIPT)

        assert not result.ok
        assert "overloaded" in result.error

    @pytest.mark.asyncio
    async def test_prose_response_is_an_error_result(self):
        client = MagicMock()
        client.messages.create = AsyncMock(return_value=claude_response("I could not find any ammo."))
        extractor = AnthropicAmmoExtractor(client=client)

        result = await extractor.extract(TRANSCRIPT)

        assert not result.ok
        assert result.candidates == []
