"""
Sequence Post-Call Detection
One Claude pass over the full transcript for budget, timeline, decision
maker, spouse and objection indicators
"""

import json
from typing import List, Optional

import anthropic
from pydantic import BaseModel, ConfigDict, Field, ValidationError
from pydantic.alias_generators import to_camel

from .ammo_extraction import strip_code_fence
from .config import settings
from .manifesto import get_manifesto_for_call
from .team_config import AmmoConfig, CallManifesto

import logging
logger = logging.getLogger(__name__)


class _DetectionModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, extra="ignore")


class Indicator(_DetectionModel):
    detected: bool = False
    mention_count: int = 0
    quotes: List[str] = Field(default_factory=list)


class TimelineIndicator(Indicator):
    is_urgent: str = "unclear"  # yes | no | unclear


class DecisionMakerIndicator(Indicator):
    is_sole_decision_maker: str = "unclear"  # yes | no | unclear


class DetectedObjection(_DetectionModel):
    type: str
    quotes: List[str] = Field(default_factory=list)


class DetectionResult(_DetectionModel):
    budget_discussion: Indicator = Field(default_factory=Indicator)
    timeline_urgency: TimelineIndicator = Field(default_factory=TimelineIndicator)
    decision_maker_detection: DecisionMakerIndicator = Field(default_factory=DecisionMakerIndicator)
    spouse_partner_mentions: Indicator = Field(default_factory=Indicator)
    objections_detected: List[DetectedObjection] = Field(default_factory=list)

    def found(self) -> List[str]:
        labels = []
        if self.budget_discussion.detected:
            labels.append("budget")
        if self.timeline_urgency.detected:
            labels.append("timeline")
        if self.decision_maker_detection.detected:
            labels.append("decision-maker")
        if self.spouse_partner_mentions.detected:
            labels.append("spouse")
        if self.objections_detected:
            labels.append(f"objections({len(self.objections_detected)})")
        return labels

    def to_convex(self) -> dict:
        return self.model_dump(by_alias=True)


def build_detection_prompt(ammo_config: Optional[AmmoConfig], manifesto: CallManifesto) -> str:
    objection_types = [o.name for o in manifesto.objections]
    if ammo_config is not None:
        for obj in ammo_config.common_objections:
            if obj.label not in objection_types:
                objection_types.append(obj.label)
    numbered = "\n".join(f"{i}. {name}" for i, name in enumerate(objection_types, start=1))

    return f"""You are reviewing a finished sales call so a manager can see how it went.

Labels: [Closer] is the sales rep, [Prospect] is the buyer. Only quote the prospect.

Report on:
1. BUDGET DISCUSSION - price, cost, investment, affordability, dollar amounts, financing
2. TIMELINE / URGENCY - deadlines, timeframes, "soon", "not right now". Is there real urgency? (yes/no/unclear)
3. DECISION MAKER - does the prospect need to consult anyone (partner, boss, board)? Are they the sole decision maker? (yes/no/unclear)
4. SPOUSE / PARTNER - any mention of a wife, husband, spouse or partner, especially needing their approval
5. OBJECTIONS - sorted into these categories:
{numbered}

For each area give whether it came up, how many distinct times, and up to 3 exact prospect quotes. Be conservative: only mark something detected when it clearly came up.

Respond with JSON only, no markdown:
{{
  "budgetDiscussion": {{"detected": bool, "mentionCount": int, "quotes": [str]}},
  "timelineUrgency": {{"detected": bool, "mentionCount": int, "quotes": [str], "isUrgent": "yes|no|unclear"}},
  "decisionMakerDetection": {{"detected": bool, "mentionCount": int, "quotes": [str], "isSoleDecisionMaker": "yes|no|unclear"}},
  "spousePartnerMentions": {{"detected": bool, "mentionCount": int, "quotes": [str]}},
  "objectionsDetected": [{{"type": "category name", "quotes": [str]}}]
}}"""


class AnthropicDetector:
    """Failures of any kind come back as an empty DetectionResult"""

    def __init__(self, client: Optional[anthropic.AsyncAnthropic] = None, model: Optional[str] = None,
                 min_chars: Optional[int] = None):
        self.client = client
        if self.client is None and settings.anthropic_api_key:
            self.client = anthropic.AsyncAnthropic(api_key=settings.anthropic_api_key)
        self.model = model or settings.claude_model
        self.min_chars = min_chars if min_chars is not None else settings.detection_min_transcript_chars

    async def analyze(self, transcript: str, ammo_config: Optional[AmmoConfig] = None,
                      manifesto: Optional[CallManifesto] = None) -> DetectionResult:
        if not transcript or len(transcript.strip()) < self.min_chars:
            logger.info("[Detection] Transcript too short for analysis")
            return DetectionResult()

        if self.client is None:
            logger.warning("[Detection] ANTHROPIC_API_KEY not configured - skipping")
            return DetectionResult()

        if manifesto is None:
            manifesto = get_manifesto_for_call(ammo_config.call_manifesto if ammo_config else None)

        try:
            response = await self.client.messages.create(
                model=self.model,
                max_tokens=settings.claude_max_tokens,
                system=build_detection_prompt(ammo_config, manifesto),
                messages=[{"role": "user", "content": f"Analyze this sales call transcript:\n\n{transcript}"}],
            )
            response_text = response.content[0].text if response.content else ""
            result = DetectionResult.model_validate(json.loads(strip_code_fence(response_text)))
        except (json.JSONDecodeError, ValidationError) as e:
            logger.error(f"[Detection] Unusable response: {e}")
            return DetectionResult()
        except Exception as e:
            logger.error(f"[Detection] Claude request failed: {type(e).__name__} - {e}")
            return DetectionResult()

        found = result.found()
        if found:
            logger.info(f"[Detection] Found {', '.join(found)}")
        else:
            logger.info("[Detection] No key indicators found")
        return result
