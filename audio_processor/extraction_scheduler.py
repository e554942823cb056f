"""
Sequence Extraction Scheduler
Time/size gated ammo passes, repetition tracking and heavy hitter scoring
"""

import time
from dataclasses import dataclass
from typing import Awaitable, Callable, Dict, Iterable, List, Optional

from .ammo_extraction import LEGACY_TYPES, AnthropicAmmoExtractor, Candidate
from .call_session import CallSession
from .config import settings
from .exceptions import PersistenceError
from .persistence import ConvexClient
from .team_config import AmmoConfig

import logging
logger = logging.getLogger(__name__)


SUGGESTED_USE_TEMPLATES = {
    "financial": 'Use to justify ROI: "You mentioned {quote}"',
    "emotional": 'Anchor their emotion: "You said {quote}"',
    "situational": 'Create urgency: "You mentioned {quote}"',
}
FALLBACK_SUGGESTED_USE = 'Reference during close: "{quote}"'


@dataclass(frozen=True)
class AmmoItem:
    text: str
    category: str
    score: int
    repetition_count: int
    is_heavy_hitter: bool
    suggested_use: str
    timestamp: int
    custom_category_id: Optional[str] = None

    def to_convex(self) -> dict:
        data = {
            "text": self.text,
            "type": LEGACY_TYPES.get(self.category, self.category),
            "timestamp": self.timestamp,
            "score": self.score,
            "repetitionCount": self.repetition_count,
            "isHeavyHitter": self.is_heavy_hitter,
            "suggestedUse": self.suggested_use,
        }
        if self.custom_category_id:
            data["categoryId"] = self.custom_category_id
        return data

    def to_dict(self) -> dict:
        return {
            "text": self.text,
            "category": self.category,
            "score": self.score,
            "repetitionCount": self.repetition_count,
            "isHeavyHitter": self.is_heavy_hitter,
            "suggestedUse": self.suggested_use,
            "timestamp": self.timestamp,
            "categoryId": self.custom_category_id,
        }


class RepetitionTracker:
    """Keyword -> how many candidates have mentioned it this call"""

    def __init__(self):
        self.counts: Dict[str, int] = {}

    def record(self, keywords: Iterable[str]) -> int:
        """Count each keyword once more. Returns the highest count reached (at least 1)."""
        highest = 1
        for keyword in keywords:
            normalized = keyword.lower().strip()
            if not normalized:
                continue
            self.counts[normalized] = self.counts.get(normalized, 0) + 1
            highest = max(highest, self.counts[normalized])
        return highest


def calculate_score(candidate: Candidate, repetition_count: int) -> int:
    if candidate.score is not None and candidate.score > 0:
        score = candidate.score
        if repetition_count >= 2:
            score = min(score + 10, 100)
        if candidate.is_offer_relevant:
            score = min(score + 5, 100)
        return int(round(score))

    score = 20
    if candidate.has_specifics:
        score += 40
    if candidate.emotional_intensity:
        score += 25
    if repetition_count >= 2:
        score += 15
    if candidate.is_offer_relevant:
        score += 10
    return min(score, 100)


def default_suggested_use(category: str, text: str) -> str:
    quote = text[:50] + "..." if len(text) > 50 else text
    return SUGGESTED_USE_TEMPLATES.get(category, FALLBACK_SUGGESTED_USE).format(quote=quote)


class ExtractionScheduler:
    """
    One per call. A pass runs only when the interval has elapsed AND the
    buffer holds enough text. Taking a window clears the buffer and resets
    the clock up front, so a failed pass is not retried in the same window.
    """

    def __init__(self, extractor: AnthropicAmmoExtractor, convex: ConvexClient,
                 interval: Optional[float] = None, min_chars: Optional[int] = None,
                 max_items: Optional[int] = None, threshold: Optional[int] = None,
                 on_item: Optional[Callable[[AmmoItem], Awaitable[None]]] = None):
        self.extractor = extractor
        self.convex = convex
        self.interval = interval if interval is not None else settings.extraction_interval_seconds
        self.min_chars = min_chars if min_chars is not None else settings.extraction_min_chars
        self.max_items = max_items or settings.max_ammo_per_pass
        self.threshold = threshold if threshold is not None else settings.heavy_hitter_threshold
        self.on_item = on_item
        self.repetitions = RepetitionTracker()

    def is_due(self, session: CallSession, now: Optional[float] = None) -> bool:
        now = now if now is not None else time.time()
        return (
            now - session.last_extraction_time >= self.interval
            and len(session.extraction_buffer) >= self.min_chars
        )

    def take_window(self, session: CallSession, now: Optional[float] = None, force: bool = False) -> Optional[str]:
        """Claim the buffered text for a pass, or None if no pass should run"""
        now = now if now is not None else time.time()
        if force:
            if len(session.extraction_buffer) < self.min_chars:
                return None
        elif not self.is_due(session, now):
            return None

        text = session.extraction_buffer
        session.extraction_buffer = ""
        session.last_extraction_time = now
        return text

    def score_candidates(self, candidates: List[Candidate], timestamp: int) -> List[AmmoItem]:
        items = []
        for candidate in candidates:
            repetition_count = self.repetitions.record(candidate.repetition_keywords)
            score = calculate_score(candidate, repetition_count)
            items.append(AmmoItem(
                text=candidate.text,
                category=candidate.category,
                score=score,
                repetition_count=repetition_count,
                is_heavy_hitter=score >= self.threshold,
                suggested_use=candidate.suggested_use or default_suggested_use(candidate.category, candidate.text),
                timestamp=timestamp,
                custom_category_id=candidate.custom_category_id,
            ))

        kept = [item for item in items if item.score >= self.threshold]
        kept.sort(key=lambda item: item.score, reverse=True)
        return kept[:self.max_items]

    async def run_pass(self, session: CallSession, text: str, ammo_config: Optional[AmmoConfig] = None,
                       custom_prompt: Optional[str] = None) -> List[AmmoItem]:
        """Extract, score and persist one window. Never raises."""
        logger.info(f"[Ammo] Extraction pass for call {session.call_id} ({len(text)} chars)")

        result = await self.extractor.extract(text, ammo_config, custom_prompt)
        if not result.ok:
            logger.warning(f"[Ammo] Pass for call {session.call_id} produced nothing: {result.error}")
            return []

        items = self.score_candidates(result.candidates, session.last_audio_timestamp)
        if items:
            logger.info(
                f"[Ammo] Call {session.call_id}: {len(items)} item(s), "
                f"scores {', '.join(str(i.score) for i in items)}"
            )

        for item in items:
            session.ammo_count += 1
            if session.convex_call_id:
                try:
                    await self.convex.add_ammo_item(session.convex_call_id, session.team_id, item.to_convex())
                except PersistenceError as e:
                    logger.error(f"[Ammo] Failed to save item for call {session.call_id}: {e}")
            if self.on_item:
                try:
                    await self.on_item(item)
                except Exception as e:
                    logger.warning(f"[Ammo] Could not push item to client for call {session.call_id}: {e}")

        return items
