"""
Sequence Nudge Engine
Real-time coaching prompts from keyword triggers, required-info gaps and
call-stage timing

Rules are checked in priority order and at most one nudge comes out of each
evaluation:
  1. objection warning  (keyword, once per keyword per call)
  2. dig deeper         (pain keyword, once per keyword per call)
  3. missing info       (after 5 minutes)
  4. script reminder    (after 1 minute, only when the expected stage advances)

A global cooldown applies across all types and a longer one per type.
All mutable state lives in a NudgeState owned by the call.
"""

import math
import time
from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, Iterable, List, Optional, Set, Tuple

from .config import settings
from .manifesto import DEFAULT_MANIFESTO, DEFAULT_STAGE_DURATION_PERCENT, get_manifesto_for_call
from .team_config import AmmoConfig

import logging
logger = logging.getLogger(__name__)


class NudgeType(Enum):
    DIG_DEEPER = "dig_deeper"
    MISSING_INFO = "missing_info"
    SCRIPT_REMINDER = "script_reminder"
    OBJECTION_WARNING = "objection_warning"


@dataclass(frozen=True)
class Nudge:
    type: NudgeType
    message: str
    detail: Optional[str] = None
    triggered_by: Optional[str] = None
    priority: str = "medium"

    def to_convex(self) -> dict:
        data = {"type": self.type.value, "message": self.message}
        if self.detail:
            data["detail"] = self.detail
        if self.triggered_by:
            data["triggeredBy"] = self.triggered_by
        return data

    def to_dict(self) -> dict:
        return {
            "type": self.type.value,
            "message": self.message,
            "detail": self.detail,
            "triggeredBy": self.triggered_by,
            "priority": self.priority,
        }


@dataclass
class NudgeState:
    """Per-call cooldown clocks and fired-once sets"""
    last_nudge_time: Optional[float] = None
    last_nudge_by_type: Dict[NudgeType, float] = field(default_factory=dict)
    triggered_keywords: Set[str] = field(default_factory=set)
    triggered_objections: Set[str] = field(default_factory=set)
    last_script_stage_reminder: Optional[float] = None
    current_script_stage: int = 0
    uncovered_info: Set[str] = field(default_factory=set)


@dataclass(frozen=True)
class KeywordTrigger:
    keywords: Tuple[str, ...]
    message: str
    detail: str
    priority: str = "high"


DEFAULT_OBJECTIONS = [
    KeywordTrigger(
        ("spouse", "wife", "husband", "partner", "significant other", "better half"),
        "Spouse objection incoming",
        "Ask: 'If your [spouse] were here right now and loved it, what would stop you from moving forward today?'",
    ),
    KeywordTrigger(
        ("business partner", "my partner", "check with my", "talk to my", "run it by", "ask my"),
        "Decision maker concern",
        "Ask: 'Are they typically supportive of decisions you make for [business/yourself]?'",
    ),
    KeywordTrigger(
        ("think about it", "let me think", "need to think", "sleep on it", "mull it over"),
        "Hesitation detected",
        "Ask: 'When you say think about it, is it the money, the timing, or something else?'",
    ),
    KeywordTrigger(
        ("too expensive", "can't afford", "out of my budget", "that's a lot", "don't have the money", "too much money"),
        "Budget objection",
        "Pivot to value: 'If money wasn't a factor, would this be a no-brainer?'",
    ),
    KeywordTrigger(
        ("bad timing", "not the right time", "maybe later", "in a few months", "not right now",
         "after the holidays", "next quarter"),
        "Timing objection",
        "Create urgency: 'What changes in [time period] that would make this easier?'",
    ),
    KeywordTrigger(
        ("been burned", "tried before", "didn't work", "scam", "ripped off", "waste of money", "skeptical"),
        "Trust concern detected",
        "Acknowledge and differentiate: 'What specifically didn't work? Let me show you why this is different.'",
    ),
    KeywordTrigger(
        ("sounds great but", "sounds good but", "i like it but", "interesting but", "love it but"),
        "Objection incoming",
        "The real concern is coming next. Listen closely and address it head-on.",
        priority="medium",
    ),
    KeywordTrigger(
        ("need more information", "need to research", "do more research", "look into it more", "compare options"),
        "Research stall",
        "Ask: 'What specific information would help you make a decision today?'",
        priority="medium",
    ),
    KeywordTrigger(
        ("not sure", "don't know if", "uncertain", "on the fence", "torn"),
        "Uncertainty detected",
        "Dig in: 'What part are you unsure about? Let's talk through it.'",
        priority="medium",
    ),
]

DEFAULT_PAIN_TRIGGERS = [
    KeywordTrigger(
        ("losing money", "wasting money", "bleeding cash", "revenue down", "sales dropped", "can't grow"),
        "Financial pain detected",
        "Get specifics: 'How much would you say that's costing you per month?'",
        priority="medium",
    ),
    KeywordTrigger(
        ("stressed", "overwhelmed", "frustrated", "exhausted", "burned out", "can't sleep", "anxious", "worried"),
        "Emotional pain detected",
        "Dig deeper: 'How long have you been dealing with this? How is it affecting you?'",
        priority="medium",
    ),
    KeywordTrigger(
        ("no time", "too busy", "working 60 hours", "working weekends", "never see my family", "missing out"),
        "Time pain detected",
        "Quantify it: 'How many hours a week would you say this is costing you?'",
        priority="medium",
    ),
    KeywordTrigger(
        ("wife is frustrated", "husband doesn't understand", "family is suffering", "marriage strain",
         "kids don't see me"),
        "Relationship impact",
        "Heavy hitter. Get them to elaborate on the personal cost.",
        priority="medium",
    ),
    KeywordTrigger(
        ("tried everything", "nothing works", "stuck", "plateau", "at my limit", "don't know what else"),
        "Stuck point detected",
        "Ask: 'What have you tried before? Why do you think it didn't work?'",
        priority="medium",
    ),
    KeywordTrigger(
        ("need this now", "can't wait", "have to fix this", "deadline", "running out of time", "before"),
        "Urgency signal",
        "Lock it down: 'What happens if this doesn't get fixed by [deadline]?'",
        priority="medium",
    ),
]


@dataclass(frozen=True)
class RequiredItem:
    id: str
    label: str
    keywords: Tuple[str, ...]
    description: Optional[str] = None


DEFAULT_REQUIRED_INFO = [
    RequiredItem("budget", "Budget/Investment capacity", ("budget", "afford", "invest", "spend", "cost")),
    RequiredItem("timeline", "Timeline/Urgency", ("when", "deadline", "soon", "urgent", "immediately")),
    RequiredItem("decision_maker", "Decision maker", ("decide", "spouse", "partner", "boss", "alone")),
    RequiredItem("pain_point", "Core pain point", ("problem", "struggle", "challenge", "issue", "pain")),
    RequiredItem("goal", "Desired outcome", ("want", "goal", "achieve", "result", "outcome")),
]


@dataclass(frozen=True)
class StagePlan:
    name: str
    duration_percent: float
    reminder: str


def required_info_for(ammo_config: Optional[AmmoConfig]) -> List[RequiredItem]:
    """Team list replaces the defaults when it is non-empty"""
    if ammo_config is None or not ammo_config.required_info:
        return DEFAULT_REQUIRED_INFO
    items = []
    for info in ammo_config.required_info:
        keywords = tuple(info.keywords) or tuple(info.label.lower().split())
        items.append(RequiredItem(info.id, info.label, keywords, info.description))
    return items


def stage_plan_for(ammo_config: Optional[AmmoConfig]) -> List[StagePlan]:
    """
    Team script framework split evenly if there is one, otherwise the
    manifesto stages with their weighted durations.
    """
    if ammo_config is not None and ammo_config.script_framework:
        stages = sorted(ammo_config.script_framework, key=lambda s: s.order)
        share = 100.0 / len(stages)
        return [StagePlan(s.name, share, s.description or f"Focus on {s.name}") for s in stages]

    manifesto = get_manifesto_for_call(ammo_config.call_manifesto if ammo_config else None)
    stages = sorted(manifesto.stages, key=lambda s: s.order)
    if manifesto is DEFAULT_MANIFESTO:
        return [
            StagePlan(s.name, DEFAULT_STAGE_DURATION_PERCENT[s.id], s.goal or f"Focus on {s.name}")
            for s in stages
        ]
    share = 100.0 / len(stages)
    return [StagePlan(s.name, share, s.goal or f"Focus on {s.name}") for s in stages]


def expected_stage_index(duration_seconds: float, plan: List[StagePlan], assumed_call_length: float) -> int:
    """Map elapsed time onto cumulative stage percentages. Past the end stays on the last stage."""
    progress = duration_seconds / assumed_call_length * 100
    cumulative = 0.0
    for index, stage in enumerate(plan):
        cumulative += stage.duration_percent
        if progress <= cumulative:
            return index
    return len(plan) - 1


def check_uncovered_info(transcript: str, required: Iterable[RequiredItem]) -> Set[str]:
    """
    Ids of required items the conversation has already covered: at least
    half of the item's significant keywords (longer than 3 chars) appear.
    """
    lower = transcript.lower()
    covered = set()
    for info in required:
        significant = [k.lower() for k in info.keywords if len(k) > 3]
        matches = sum(1 for word in significant if word in lower)
        if matches >= math.ceil(len(significant) / 2):
            covered.add(info.id)
    return covered


class NudgeEngine:
    def __init__(self, cooldown: Optional[float] = None, type_cooldown: Optional[float] = None,
                 script_interval: Optional[float] = None, assumed_call_length: Optional[float] = None,
                 missing_info_after: Optional[float] = None, script_reminder_after: Optional[float] = None):
        self.cooldown = cooldown if cooldown is not None else settings.nudge_cooldown_seconds
        self.type_cooldown = type_cooldown if type_cooldown is not None else settings.nudge_type_cooldown_seconds
        self.script_interval = (
            script_interval if script_interval is not None else settings.script_reminder_interval_seconds
        )
        self.assumed_call_length = assumed_call_length or settings.assumed_call_length_seconds
        self.missing_info_after = (
            missing_info_after if missing_info_after is not None else settings.missing_info_after_seconds
        )
        self.script_reminder_after = (
            script_reminder_after if script_reminder_after is not None else settings.script_reminder_after_seconds
        )

    def can_send(self, state: NudgeState, nudge_type: NudgeType, now: float) -> bool:
        if state.last_nudge_time is not None and now - state.last_nudge_time < self.cooldown:
            return False
        last_of_type = state.last_nudge_by_type.get(nudge_type)
        if last_of_type is not None and now - last_of_type < self.type_cooldown:
            return False
        return True

    def _mark_sent(self, state: NudgeState, nudge_type: NudgeType, now: float):
        state.last_nudge_time = now
        state.last_nudge_by_type[nudge_type] = now

    def evaluate(self, state: NudgeState, transcript: str, duration_seconds: float,
                 ammo_config: Optional[AmmoConfig] = None, now: Optional[float] = None) -> Optional[Nudge]:
        """Highest-priority sendable nudge for the transcript so far, or None"""
        now = now if now is not None else time.time()
        required = required_info_for(ammo_config)
        state.uncovered_info = check_uncovered_info(transcript, required)

        return (
            self._objection_warning(state, transcript, ammo_config, now)
            or self._dig_deeper(state, transcript, ammo_config, now)
            or self._missing_info(state, transcript, duration_seconds, required, now)
            or self._script_reminder(state, duration_seconds, ammo_config, now)
        )

    def _first_new_keyword(self, triggers: List[KeywordTrigger], lower_transcript: str,
                           fired: Set[str]) -> Optional[Tuple[KeywordTrigger, str]]:
        for trigger in triggers:
            for keyword in trigger.keywords:
                key = keyword.lower()
                if key in lower_transcript and key not in fired:
                    return trigger, keyword
        return None

    def _objection_warning(self, state, transcript, ammo_config, now) -> Optional[Nudge]:
        if not self.can_send(state, NudgeType.OBJECTION_WARNING, now):
            return None

        triggers = list(DEFAULT_OBJECTIONS)
        if ammo_config is not None:
            triggers += [
                KeywordTrigger(tuple(obj.keywords), f'"{obj.label}" detected', "Prepare to handle this objection")
                for obj in ammo_config.common_objections
            ]

        match = self._first_new_keyword(triggers, transcript.lower(), state.triggered_objections)
        if match is None:
            return None

        trigger, keyword = match
        state.triggered_objections.add(keyword.lower())
        self._mark_sent(state, NudgeType.OBJECTION_WARNING, now)
        logger.info(f"[Nudge] objection_warning for \"{keyword}\"")
        return Nudge(NudgeType.OBJECTION_WARNING, trigger.message, trigger.detail, keyword, trigger.priority)

    def _dig_deeper(self, state, transcript, ammo_config, now) -> Optional[Nudge]:
        if not self.can_send(state, NudgeType.DIG_DEEPER, now):
            return None

        triggers = list(DEFAULT_PAIN_TRIGGERS)
        if ammo_config is not None:
            triggers += [
                KeywordTrigger(
                    tuple(cat.keywords),
                    f"{cat.name} topic detected",
                    f"Dig deeper on this {cat.name.lower()} topic",
                    priority="medium",
                )
                for cat in ammo_config.ammo_categories
            ]

        match = self._first_new_keyword(triggers, transcript.lower(), state.triggered_keywords)
        if match is None:
            return None

        trigger, keyword = match
        state.triggered_keywords.add(keyword.lower())
        self._mark_sent(state, NudgeType.DIG_DEEPER, now)
        logger.info(f"[Nudge] dig_deeper for \"{keyword}\"")
        return Nudge(NudgeType.DIG_DEEPER, trigger.message, trigger.detail, keyword, "medium")

    def _missing_info(self, state, transcript, duration_seconds, required, now) -> Optional[Nudge]:
        if duration_seconds < self.missing_info_after:
            return None
        if not self.can_send(state, NudgeType.MISSING_INFO, now):
            return None

        lower = transcript.lower()
        for info in required:
            if info.id in state.uncovered_info:
                continue
            if any(k.lower() in lower for k in info.keywords):
                continue

            self._mark_sent(state, NudgeType.MISSING_INFO, now)
            logger.info(f"[Nudge] missing_info for \"{info.label}\"")
            return Nudge(
                NudgeType.MISSING_INFO,
                f"Haven't uncovered: {info.label}",
                info.description or f"Ask about their {info.label.lower()}",
                priority="low",
            )
        return None

    def _script_reminder(self, state, duration_seconds, ammo_config, now) -> Optional[Nudge]:
        if duration_seconds < self.script_reminder_after:
            return None
        if (state.last_script_stage_reminder is not None
                and now - state.last_script_stage_reminder < self.script_interval):
            return None
        if not self.can_send(state, NudgeType.SCRIPT_REMINDER, now):
            return None

        plan = stage_plan_for(ammo_config)
        if not plan:
            return None

        index = expected_stage_index(duration_seconds, plan, self.assumed_call_length)
        if index <= state.current_script_stage:
            return None

        stage = plan[index]
        state.current_script_stage = index
        state.last_script_stage_reminder = now
        self._mark_sent(state, NudgeType.SCRIPT_REMINDER, now)
        logger.info(f"[Nudge] script_reminder for stage \"{stage.name}\"")
        return Nudge(NudgeType.SCRIPT_REMINDER, f"Stage: {stage.name}", stage.reminder, priority="low")
