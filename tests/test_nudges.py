"""
Tests for nudge rules, cooldowns and stage timing
"""

import pytest

from audio_processor.nudges import (
    DEFAULT_REQUIRED_INFO,
    NudgeEngine,
    NudgeState,
    NudgeType,
    check_uncovered_info,
    expected_stage_index,
    required_info_for,
    stage_plan_for,
)
from audio_processor.team_config import AmmoConfig


@pytest.fixture
def engine():
    return NudgeEngine(cooldown=20, type_cooldown=90, script_interval=180,
                       assumed_call_length=1800, missing_info_after=300, script_reminder_after=60)


@pytest.fixture
def state():
    return NudgeState()


class TestObjectionWarnings:

    def test_spouse_keyword_fires_first(self, engine, state):
        nudge = engine.evaluate(state, "[Prospect]: my wife and I need to think about it", 30, now=100)

        assert nudge.type is NudgeType.OBJECTION_WARNING
        assert nudge.message == "Spouse objection incoming"
        assert nudge.triggered_by == "wife"
        assert nudge.priority == "high"

    def test_second_keyword_waits_for_cooldowns(self, engine, state):
        transcript = "[Prospect]: my wife and I need to think about it"
        engine.evaluate(state, transcript, 30, now=100)

        assert engine.evaluate(state, transcript, 40, now=110) is None
        assert engine.evaluate(state, transcript, 80, now=150) is None

        nudge = engine.evaluate(state, transcript, 130, now=200)
        assert nudge.message == "Hesitation detected"
        assert nudge.triggered_by == "think about it"

    def test_keyword_fires_once_per_call(self, engine, state):
        engine.evaluate(state, "[Prospect]: my wife", 30, now=100)
        assert engine.evaluate(state, "[Prospect]: my wife\n[Prospect]: wife again", 50, now=1000) is None

    def test_objection_outranks_pain(self, engine, state):
        nudge = engine.evaluate(state, "[Prospect]: I'm stressed and it's too expensive", 30, now=100)
        assert nudge.type is NudgeType.OBJECTION_WARNING
        assert nudge.triggered_by == "too expensive"

    def test_custom_objection(self, engine, state):
        config = AmmoConfig(common_objections=[{"id": "obj_acc", "label": "Has an accountant",
                                                "keywords": ["accountant"]}])

        nudge = engine.evaluate(state, "[Prospect]: our accountant handles that", 30, config, now=100)

        assert nudge.message == '"Has an accountant" detected'
        assert nudge.detail == "Prepare to handle this objection"
        assert nudge.triggered_by == "accountant"


class TestCooldowns:

    def test_type_cooldown_lets_other_types_through(self, engine, state):
        transcript = "[Prospect]: my wife thinks it's too expensive and I'm stressed"

        first = engine.evaluate(state, transcript, 30, now=100)
        assert first.triggered_by == "wife"

        second = engine.evaluate(state, transcript, 60, now=130)
        assert second.type is NudgeType.DIG_DEEPER
        assert second.triggered_by == "stressed"

        assert engine.evaluate(state, transcript, 70, now=140) is None

        third = engine.evaluate(state, transcript, 130, now=200)
        assert third.type is NudgeType.OBJECTION_WARNING
        assert third.triggered_by == "too expensive"

    def test_can_send(self, engine, state):
        assert engine.can_send(state, NudgeType.DIG_DEEPER, 0)
        state.last_nudge_time = 100
        state.last_nudge_by_type[NudgeType.DIG_DEEPER] = 100
        assert not engine.can_send(state, NudgeType.MISSING_INFO, 119)
        assert engine.can_send(state, NudgeType.MISSING_INFO, 120)
        assert not engine.can_send(state, NudgeType.DIG_DEEPER, 189)
        assert engine.can_send(state, NudgeType.DIG_DEEPER, 190)


class TestMissingInfo:

    TRANSCRIPT = "[Prospect]: our budget is tight, we can afford to invest a bit"

    def test_reports_first_uncovered_item(self, state):
        engine = NudgeEngine(script_reminder_after=10_000)

        nudge = engine.evaluate(state, self.TRANSCRIPT, 300, now=1000)

        assert nudge.type is NudgeType.MISSING_INFO
        assert nudge.message == "Haven't uncovered: Timeline/Urgency"
        assert nudge.priority == "low"
        assert "budget" in state.uncovered_info

    def test_not_before_five_minutes(self, state):
        engine = NudgeEngine(script_reminder_after=10_000)
        assert engine.evaluate(state, self.TRANSCRIPT, 299, now=1000) is None

    def test_check_uncovered_info(self):
        covered = check_uncovered_info(self.TRANSCRIPT, DEFAULT_REQUIRED_INFO)
        assert covered == {"budget"}

    def test_custom_item_without_keywords_uses_label(self):
        config = AmmoConfig(required_info=[{"id": "rev", "label": "Current revenue"}])
        required = required_info_for(config)

        assert required[0].keywords == ("current", "revenue")
        assert check_uncovered_info("our current revenue is flat", required) == {"rev"}
        assert check_uncovered_info("not much to say", required) == set()


class TestScriptReminders:

    @pytest.fixture
    def engine(self):
        return NudgeEngine(script_interval=180, assumed_call_length=1800,
                           missing_info_after=10_000, script_reminder_after=60)

    def test_stage_advances_monotonically(self, engine, state):
        assert engine.evaluate(state, "", 30, now=900) is None

        nudge = engine.evaluate(state, "", 200, now=1000)
        assert nudge.type is NudgeType.SCRIPT_REMINDER
        assert nudge.message == "Stage: Discovery"
        assert nudge.detail == "Understand severity, get specifics, create ownership"
        assert state.current_script_stage == 1

        assert engine.evaluate(state, "", 400, now=1200) is None

        nudge = engine.evaluate(state, "", 900, now=1400)
        assert nudge.message == "Stage: Transition / Summary"

        nudge = engine.evaluate(state, "", 2400, now=1600)
        assert nudge.message == "Stage: Close / Objections"
        assert state.current_script_stage == 4

        assert engine.evaluate(state, "", 3000, now=2000) is None

    def test_reminder_interval(self, engine, state):
        engine.evaluate(state, "", 200, now=1000)
        assert engine.evaluate(state, "", 900, now=1100) is None
        assert engine.evaluate(state, "", 900, now=1180).message == "Stage: Transition / Summary"

    def test_expected_stage_index(self):
        plan = stage_plan_for(None)
        assert [s.duration_percent for s in plan] == [10, 35, 10, 25, 20]
        assert expected_stage_index(0, plan, 1800) == 0
        assert expected_stage_index(180, plan, 1800) == 0
        assert expected_stage_index(181, plan, 1800) == 1
        assert expected_stage_index(1800, plan, 1800) == 4
        assert expected_stage_index(5000, plan, 1800) == 4

    def test_team_script_framework_split_evenly(self):
        config = AmmoConfig(script_framework=[
            {"id": "b", "name": "Pitch", "order": 2},
            {"id": "a", "name": "Qualify", "order": 1, "description": "Confirm fit"},
        ])
        plan = stage_plan_for(config)

        assert [s.name for s in plan] == ["Qualify", "Pitch"]
        assert [s.duration_percent for s in plan] == [50, 50]
        assert plan[0].reminder == "Confirm fit"
        assert plan[1].reminder == "Focus on Pitch"
