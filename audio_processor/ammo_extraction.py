"""
Sequence Ammo Extraction
Claude pulls scored prospect quotes out of a transcript window

The adapter never raises. Network failures and unparseable model output
both come back as an error ExtractionResult with no candidates.
"""

import json
import re
from dataclasses import dataclass, field
from typing import List, Optional

import anthropic

from .config import settings
from .team_config import AmmoConfig

import logging
logger = logging.getLogger(__name__)


VALID_CATEGORIES = ("financial", "emotional", "situational")

# Dashboard still stores the older category names
LEGACY_TYPES = {"financial": "budget", "situational": "urgency"}
CATEGORY_FROM_LEGACY = {legacy: category for category, legacy in LEGACY_TYPES.items()}

MIN_EXTRACTION_TEXT = 50

FENCE_PATTERN = re.compile(r"```(?:json)?\s*([\s\S]*?)```")


DEFAULT_EXTRACTION_PROMPT = """You are reviewing part of a live sales call to find "ammo": things the PROSPECT said that the closer can quote back later when handling objections or asking for the sale.

Lines are labeled [Closer] (the sales rep) and [Prospect] (the buyer). Only ever quote the prospect. Anything the closer said scores 0.

CATEGORIES
- financial: money lost or at stake, costs, revenue, budget ("losing $5,000 every month", "money isn't the issue")
- emotional: frustration, stress, relationships, breaking points ("my wife is fed up with me", "I can't sleep")
- situational: deadlines, past failed attempts, outside pressure ("before January", "tried three other coaches")

SCORING
- 80-100: concrete numbers or dates, strong emotional language, a partner reacting emotionally, specific past failures, clear urgency
- 50-79: real pain but vague, a timeline without a date, a problem with no emotion or numbers
- 0-49: small talk, logistics, generic agreement, questions that reveal nothing, anything said by the closer

OUTPUT
Return 3-5 items scoring 50 or more when the transcript supports it, fewer if it does not, and an empty array if nothing qualifies. Quality beats quantity.

Respond with a JSON array only, no prose and no markdown:
[
  {
    "text": "exact prospect quote",
    "type": "financial|emotional|situational",
    "score": 0-100,
    "emotionalIntensity": true/false,
    "hasSpecifics": true/false,
    "repetitionKeywords": ["keyword"],
    "suggestedUse": "one sentence on how the closer can use it"
  }
]"""


def build_system_prompt(ammo_config: Optional[AmmoConfig] = None, custom_prompt: Optional[str] = None) -> str:
    """Team config is layered on top of the default prompt, never replacing it"""
    if ammo_config is not None:
        categories = "\n".join(
            f"- {cat.name} (id \"{cat.id}\"): listen for {', '.join(cat.keywords)}"
            for cat in ammo_config.ammo_categories
        )
        objections = "\n".join(
            f"- \"{obj.label}\" (keywords: {', '.join(obj.keywords)})"
            for obj in ammo_config.common_objections
        )
        return (
            f"{DEFAULT_EXTRACTION_PROMPT}\n\n"
            "BUSINESS CONTEXT\n"
            f"What this business sells: {ammo_config.offer_description}\n"
            f"Problem it solves: {ammo_config.problem_solved}\n\n"
            "EXTRA CATEGORIES (in addition to the three above)\n"
            f"{categories or '- none'}\n\n"
            "EXTRA OBJECTIONS TO WATCH FOR\n"
            f"{objections or '- none'}\n\n"
            "Add two fields to every item:\n"
            "- \"customCategoryId\": the matching extra category id, or null\n"
            "- \"isOfferRelevant\": true when the quote relates directly to what this business sells"
        )
    if custom_prompt:
        return f"{DEFAULT_EXTRACTION_PROMPT}\n\nADDITIONAL CONTEXT:\n{custom_prompt}"
    return DEFAULT_EXTRACTION_PROMPT


@dataclass
class Candidate:
    """One unscored item as the model returned it"""
    text: str
    category: str
    score: Optional[float] = None
    emotional_intensity: bool = False
    has_specifics: bool = False
    is_offer_relevant: bool = False
    repetition_keywords: List[str] = field(default_factory=list)
    suggested_use: Optional[str] = None
    custom_category_id: Optional[str] = None

    @classmethod
    def from_dict(cls, raw) -> Optional["Candidate"]:
        if not isinstance(raw, dict):
            return None
        text = raw.get("text")
        category = raw.get("type", raw.get("category"))
        if isinstance(category, str):
            category = CATEGORY_FROM_LEGACY.get(category, category)
        if not isinstance(text, str) or not text or category not in VALID_CATEGORIES:
            return None

        score = raw.get("score")
        if isinstance(score, bool) or not isinstance(score, (int, float)):
            score = None

        keywords = raw.get("repetitionKeywords")
        if not isinstance(keywords, list):
            keywords = []

        return cls(
            text=text,
            category=category,
            score=score,
            emotional_intensity=bool(raw.get("emotionalIntensity")),
            has_specifics=bool(raw.get("hasSpecifics")),
            is_offer_relevant=bool(raw.get("isOfferRelevant")),
            repetition_keywords=[k for k in keywords if isinstance(k, str)],
            suggested_use=raw.get("suggestedUse") or None,
            custom_category_id=raw.get("customCategoryId") or None,
        )


@dataclass
class ExtractionResult:
    candidates: List[Candidate] = field(default_factory=list)
    error: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.error is None

    @classmethod
    def failure(cls, error: str) -> "ExtractionResult":
        return cls(candidates=[], error=error)


def strip_code_fence(text: str) -> str:
    payload = text.strip()
    if payload.startswith("```"):
        match = FENCE_PATTERN.search(payload)
        if match:
            payload = match.group(1).strip()
    return payload


def parse_candidates(response_text: str) -> ExtractionResult:
    """Model text -> candidates. Markdown fences are stripped first."""
    payload = strip_code_fence(response_text)

    try:
        raw_items = json.loads(payload)
    except json.JSONDecodeError as e:
        return ExtractionResult.failure(f"invalid JSON: {e.msg}")

    if not isinstance(raw_items, list):
        return ExtractionResult.failure(f"expected a JSON array, got {type(raw_items).__name__}")

    candidates = [c for c in (Candidate.from_dict(raw) for raw in raw_items) if c is not None]
    return ExtractionResult(candidates=candidates)


class AnthropicAmmoExtractor:
    """Claude messages API backend for ammo extraction"""

    def __init__(self, client: Optional[anthropic.AsyncAnthropic] = None, model: Optional[str] = None):
        self.client = client
        if self.client is None and settings.anthropic_api_key:
            self.client = anthropic.AsyncAnthropic(api_key=settings.anthropic_api_key)
        self.model = model or settings.claude_model

    async def extract(self, text: str, ammo_config: Optional[AmmoConfig] = None,
                      custom_prompt: Optional[str] = None) -> ExtractionResult:
        if not text or len(text.strip()) < MIN_EXTRACTION_TEXT:
            return ExtractionResult()

        if self.client is None:
            return ExtractionResult.failure("ANTHROPIC_API_KEY not configured")

        try:
            response = await self.client.messages.create(
                model=self.model,
                max_tokens=settings.claude_max_tokens,
                system=build_system_prompt(ammo_config, custom_prompt),
                messages=[{
                    "role": "user",
                    "content": f"Extract 3-5 heavy hitter ammo items (score 50+) from this transcript segment:\n\n{text}",
                }],
            )
        except Exception as e:
            logger.error(f"[Ammo] Claude request failed: {type(e).__name__} - {e}")
            return ExtractionResult.failure(f"{type(e).__name__}: {e}")

        response_text = ""
        if response.content and getattr(response.content[0], "type", "text") == "text":
            response_text = response.content[0].text

        result = parse_candidates(response_text)
        if not result.ok:
            logger.warning(f"[Ammo] Discarding unparseable response: {result.error}")
        return result
