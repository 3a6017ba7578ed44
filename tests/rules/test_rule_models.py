"""Tests for rule engine models."""

import pytest

from hued.exceptions import RuleDefinitionError
from hued.lighting import LightTarget, MockLightingService
from hued.rules import (
    ConditionKind,
    ConditionSpec,
    EventExecutor,
    EventList,
    LightEvent,
    Registry,
    Rule,
    Scene,
    SceneRef,
)


@pytest.fixture
def events():
    """Create an event registry with two events."""
    return Registry(
        "events",
        {
            "evening": LightEvent.from_config("evening", {"group": "Living", "bri": 120}),
            "off": LightEvent.from_config("off", {"group": "Living", "on": False}),
        },
    )


@pytest.fixture
def scenes():
    """Create a scene registry with one scene."""
    return Registry(
        "scenes",
        {
            "movie": Scene.from_config(
                "movie",
                [{"group": "Living", "bri": 40}, {"light": "Lamp", "on": False}],
            )
        },
    )


class TestConditionSpec:
    """Tests for parsing condition specs."""

    def test_simple_condition(self):
        spec = ConditionSpec.from_config({"from": "22:00"})
        assert spec.kind == ConditionKind.FROM
        assert spec.value == "22:00"
        assert spec.negated is False

    def test_negated_condition(self):
        spec = ConditionSpec.from_config({"^found host": "phone.lan"})
        assert spec.kind == ConditionKind.FOUND_HOST
        assert spec.negated is True
        assert spec.raw_kind == "found host"

    def test_weekday_aliases(self):
        assert ConditionSpec.from_config({"weekday": "mon"}).kind == ConditionKind.WEEKDAY
        assert ConditionSpec.from_config({"weekdays": "mon"}).kind == ConditionKind.WEEKDAY

    def test_unknown_kind(self):
        spec = ConditionSpec.from_config({"sunny": True})
        assert spec.kind == ConditionKind.UNKNOWN
        assert spec.raw_kind == "sunny"

    def test_unknown_form(self):
        """Non-mapping and multi-key entries become UNKNOWN, not errors."""
        assert ConditionSpec.from_config("from 22:00").kind == ConditionKind.UNKNOWN
        spec = ConditionSpec.from_config({"from": "1:00", "until": "2:00"})
        assert spec.kind == ConditionKind.UNKNOWN


class TestLightEvent:
    """Tests for building events."""

    def test_flat_parameters(self):
        event = LightEvent.from_config("evening", {"group": "Living", "bri": 120, "ct": 400})
        assert event.target == LightTarget.group("Living")
        assert event.actions == {"bri": 120, "ct": 400, "on": True}

    def test_nested_actions(self):
        event = LightEvent.from_config("lamp", {"light": 3, "actions": {"on": False}})
        assert event.target == LightTarget.light("3")
        assert event.actions == {"on": False}

    def test_default_target_is_all_lights(self):
        event = LightEvent.from_config("all", {"bri": 254})
        assert event.target == LightTarget.group("0")

    def test_on_defaults_to_true(self):
        event = LightEvent.from_config("dim", {"group": 1, "actions": {"bri": 10}})
        assert event.actions["on"] is True

    def test_not_a_mapping(self):
        with pytest.raises(RuleDefinitionError):
            LightEvent.from_config("bad", ["group", 1])


class TestRuleConstruction:
    """Tests for Rule.from_config."""

    def test_events_target(self, events, scenes):
        rule = Rule.from_config("r", {"events": ["evening", "off"]}, events, scenes)
        assert isinstance(rule.target, EventList)
        assert [e.name for e in rule.target.events] == ["evening", "off"]

    def test_scene_target(self, events, scenes):
        rule = Rule.from_config("r", {"scene": "movie"}, events, scenes)
        assert isinstance(rule.target, SceneRef)
        assert rule.target.scene is scenes.get("movie")

    def test_defaults(self, events, scenes):
        rule = Rule.from_config("r", {"events": ["evening"]}, events, scenes)
        assert rule.trigger is True
        assert rule.priority == 0
        assert rule.conditions == []
        assert rule.validity is False
        assert rule.triggered is False

    def test_explicit_fields(self, events, scenes):
        rule = Rule.from_config(
            "r",
            {
                "events": ["evening"],
                "trigger": False,
                "priority": 3,
                "conditions": [{"from": "18:00"}, {"^weekdays": "sat, sun"}],
            },
            events,
            scenes,
        )
        assert rule.trigger is False
        assert rule.priority == 3
        assert [c.kind for c in rule.conditions] == [ConditionKind.FROM, ConditionKind.WEEKDAY]

    def test_neither_events_nor_scene(self, events, scenes):
        with pytest.raises(RuleDefinitionError):
            Rule.from_config("r", {"priority": 1}, events, scenes)

    def test_both_events_and_scene(self, events, scenes):
        with pytest.raises(RuleDefinitionError):
            Rule.from_config("r", {"events": ["off"], "scene": "movie"}, events, scenes)

    def test_unknown_event_ignored(self, events, scenes):
        rule = Rule.from_config("r", {"events": ["evening", "nope"]}, events, scenes)
        assert [e.name for e in rule.target.events] == ["evening"]

    def test_unknown_scene_kept_unbound(self, events, scenes):
        rule = Rule.from_config("r", {"scene": "nope"}, events, scenes)
        assert isinstance(rule.target, SceneRef)
        assert rule.target.scene is None


class TestRuleState:
    """Tests for the trigger/triggered state machine."""

    def test_trigger_rule_rearms_on_invalid(self, events, scenes):
        rule = Rule.from_config("r", {"events": ["off"]}, events, scenes)
        rule.update_validity(True)
        rule.triggered = True

        rule.update_validity(True)
        assert rule.triggered is True  # valid -> valid keeps it

        rule.update_validity(False)
        assert rule.triggered is False  # valid -> invalid re-arms

    def test_invalid_to_invalid_keeps_flag(self, events, scenes):
        rule = Rule.from_config("r", {"events": ["off"]}, events, scenes)
        rule.triggered = True
        rule.update_validity(False)
        assert rule.triggered is True

    def test_non_trigger_rule_not_rearmed(self, events, scenes):
        rule = Rule.from_config("r", {"events": ["off"], "trigger": False}, events, scenes)
        rule.update_validity(True)
        rule.triggered = True
        rule.update_validity(False)
        assert rule.triggered is True
        assert rule.should_execute() is True

    def test_should_execute(self, events, scenes):
        rule = Rule.from_config("r", {"events": ["off"]}, events, scenes)
        assert rule.should_execute() is True
        rule.triggered = True
        assert rule.should_execute() is False

    def test_execute_marks_triggered(self, events, scenes):
        lighting = MockLightingService()
        rule = Rule.from_config("r", {"events": ["evening", "off"], "trigger": False}, events, scenes)

        rule.execute(EventExecutor(lighting))

        assert rule.triggered is True
        calls = lighting.get_calls("apply_state")
        assert [c[2] for c in calls] == [
            {"bri": 120, "on": True},
            {"on": False},
        ]

    def test_execute_scene_in_order(self, events, scenes):
        lighting = MockLightingService()
        rule = Rule.from_config("r", {"scene": "movie"}, events, scenes)

        rule.execute(EventExecutor(lighting))

        targets = [c[1] for c in lighting.get_calls("apply_state")]
        assert targets == [LightTarget.group("Living"), LightTarget.light("Lamp")]

    def test_execute_missing_scene(self, events, scenes):
        lighting = MockLightingService()
        rule = Rule.from_config("r", {"scene": "nope"}, events, scenes)

        assert rule.execute(EventExecutor(lighting)) == []
        assert rule.triggered is True
        assert lighting.get_calls() == []
