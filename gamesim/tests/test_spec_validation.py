"""
Tests for game definition parsing and validation.

Tests:
- Parsing JSON text and decoded mappings
- Schema errors carry the JSON path of the problem
- Alternate key spellings
- Semantic warnings and errors
"""

import json

import pytest

from ..spec_schema import (
    GameDefinition,
    RuleTrigger,
    ParameterType,
    SchemaError,
    parse,
    validate_definition,
)
from ..spec_schema.effect_dsl import (
    AddEvent,
    CooldownRequirement,
    EffectType,
    ModifyOperation,
    ModifyVar,
    SetStatus,
    UpdateScore,
    effect_to_dict,
)
from ..games.reactor import REACTOR_DEFINITION, create_reactor_definition
from .conftest import make_definition


def action_with(*effects, **extra) -> list:
    return [{"name": "act", "effects": list(effects), **extra}]


class TestParse:
    """Tests for parse()."""

    def test_parses_json_text(self):
        definition = parse(json.dumps(make_definition()))
        assert isinstance(definition, GameDefinition)
        assert definition.name == "Test Game"
        assert definition.variables["power"].value == 50
        assert definition.get_action("boost") is not None

    def test_parses_bytes_and_dicts(self):
        raw = make_definition()
        assert parse(json.dumps(raw).encode()).name == parse(raw).name

    def test_meta_defaults(self):
        definition = parse({"meta": {}})
        assert definition.meta.name == "Untitled"
        assert definition.meta.version == "1.0.0"
        assert definition.actions == ()
        assert definition.init_random is None

    def test_strings_are_trimmed(self):
        definition = parse(make_definition(meta={"name": "  Padded  "}))
        assert definition.name == "Padded"

    def test_modify_var_operation_parsed(self):
        definition = parse(make_definition())
        effect = definition.get_action("boost").effects[0]
        assert isinstance(effect, ModifyVar)
        assert effect.operation == ModifyOperation.ADD

    def test_alternate_key_spellings(self):
        raw = {
            "meta": {"name": "Alt"},
            "variables": {"x": {"value": 1, "min": 0, "max": 10}},
            "randomEvents": [{"name": "e", "probability": 0.5}],
            "initRandom": {"variables": {"x": {"min": 2, "max": 3}}},
            "actions": action_with(
                {"type": "update_score", "player_id": "p1", "value": 5},
                {"type": "add_event", "event_type": "info", "message": "hi"},
            ),
        }
        definition = parse(raw)
        assert "x" in definition.variables
        assert definition.random_events[0].name == "e"
        assert definition.init_random.variables == {"x": (2, 3)}

        score, event = definition.get_action("act").effects
        assert isinstance(score, UpdateScore) and score.player_id == "p1"
        assert isinstance(event, AddEvent) and event.event_type == "info"

    def test_rule_triggers_and_frequency(self):
        definition = parse(make_definition(rules=[
            {"trigger": "tick", "frequency": 2, "effects": []},
            {"trigger": "condition", "condition": "power > 90", "effects": []},
            {"trigger": "tick", "frequency": 0, "effects": []},
        ]))
        assert definition.rules[0].frequency == 2
        assert definition.rules[1].trigger == RuleTrigger.CONDITION
        assert definition.rules[2].frequency is None
        assert len(definition.rules_for(RuleTrigger.TICK)) == 2

    def test_parameters_parsed(self):
        definition = parse(make_definition(actions=[{
            "name": "pick",
            "effects": [],
            "parameters": [
                {"name": "color", "type": "select", "options": ["red", "blue"], "required": True},
                {"name": "amount", "type": "number", "default": 3},
            ],
        }]))
        color, amount = definition.get_action("pick").parameters
        assert color.param_type == ParameterType.SELECT
        assert color.options == ("red", "blue")
        assert color.required is True
        assert amount.required is False
        assert amount.default == 3

    def test_cooldown_requirement_defaults(self):
        definition = parse(make_definition(actions=action_with(
            requirements=[{"type": "cooldown", "target": "act"}],
        )))
        req = definition.get_action("act").requirements[0]
        assert isinstance(req, CooldownRequirement)
        assert req.value == 0

    def test_zero_action_cooldown_is_none(self):
        definition = parse(make_definition(actions=action_with(cooldown=0)))
        assert definition.get_action("act").cooldown is None

    def test_set_status_accepts_ended(self):
        definition = parse(make_definition(actions=action_with({"type": "set_status", "status": "ended"})))
        effect = definition.get_action("act").effects[0]
        assert isinstance(effect, SetStatus)
        assert effect.status == "ended"

    def test_ui_defaults(self):
        definition = parse(make_definition(ui={"panels": [{"id": "a", "widgets": [{"type": "bar"}]}]}))
        panel = definition.ui.panels[0]
        assert panel["visible"] is True
        assert panel["widgets"][0]["config"] == {}
        assert definition.ui.layout_type == "grid"
        assert definition.ui.grid_size == 12

    def test_effect_to_dict_uses_json_names(self):
        definition = parse(make_definition(actions=action_with(
            {"type": "update_score", "playerId": "p1", "value": 5},
        )))
        data = effect_to_dict(definition.get_action("act").effects[0])
        assert data == {"type": "update_score", "playerId": "p1", "value": 5}


class TestSchemaErrors:
    """Schema errors name the offending JSON path."""

    def test_invalid_json(self):
        with pytest.raises(SchemaError) as exc:
            parse("{not json")
        assert "Invalid JSON" in str(exc.value)

    def test_non_object_root(self):
        with pytest.raises(SchemaError):
            parse("[1, 2, 3]")

    def test_missing_meta(self):
        with pytest.raises(SchemaError) as exc:
            parse({"vars": {}})
        assert exc.value.path == "meta"

    def test_set_var_missing_target(self):
        raw = make_definition(actions=action_with({"type": "set_var", "value": 1}))
        with pytest.raises(SchemaError) as exc:
            parse(raw)
        assert exc.value.path == "action[0].effects[0].target"

    def test_modify_var_missing_operation(self):
        raw = make_definition(actions=action_with({"type": "modify_var", "target": "power", "value": 1}))
        with pytest.raises(SchemaError) as exc:
            parse(raw)
        assert exc.value.path == "action[0].effects[0].operation"

    def test_unknown_operation(self):
        raw = make_definition(actions=action_with(
            {"type": "modify_var", "target": "power", "operation": "power", "value": 1},
        ))
        with pytest.raises(SchemaError) as exc:
            parse(raw)
        assert exc.value.path == "action[0].effects[0].operation"

    def test_unknown_effect_type(self):
        raw = make_definition(actions=action_with({"type": "explode"}))
        with pytest.raises(SchemaError) as exc:
            parse(raw)
        assert exc.value.path == "action[0].effects[0].type"

    @pytest.mark.parametrize("effect, field", [
        ({"type": "message"}, "message"),
        ({"type": "update_score", "value": 1}, "playerId"),
        ({"type": "add_log"}, "message"),
        ({"type": "add_event", "message": "x"}, "eventType"),
        ({"type": "set_status"}, "status"),
        ({"type": "set_entity", "value": {}}, "target"),
    ])
    def test_required_effect_fields(self, effect, field):
        with pytest.raises(SchemaError) as exc:
            parse(make_definition(actions=action_with(effect)))
        assert exc.value.path == f"action[0].effects[0].{field}"

    def test_invalid_status(self):
        raw = make_definition(actions=action_with({"type": "set_status", "status": "exploded"}))
        with pytest.raises(SchemaError) as exc:
            parse(raw)
        assert exc.value.path == "action[0].effects[0].status"

    def test_non_numeric_variable_bound(self):
        raw = make_definition(vars={"x": {"value": 1, "min": "zero", "max": 10}})
        with pytest.raises(SchemaError) as exc:
            parse(raw)
        assert exc.value.path == "var.x.min"

    def test_boolean_is_not_a_number(self):
        raw = make_definition(vars={"x": {"value": True, "min": 0, "max": 10}})
        with pytest.raises(SchemaError) as exc:
            parse(raw)
        assert exc.value.path == "var.x.value"

    def test_unknown_requirement_type(self):
        raw = make_definition(actions=action_with(requirements=[{"type": "luck", "target": "x"}]))
        with pytest.raises(SchemaError) as exc:
            parse(raw)
        assert exc.value.path == "action[0].requirements[0].type"

    def test_unknown_parameter_type(self):
        raw = make_definition(actions=action_with(parameters=[{"name": "p", "type": "date"}]))
        with pytest.raises(SchemaError) as exc:
            parse(raw)
        assert exc.value.path == "action[0].parameters[0].type"

    def test_unknown_trigger(self):
        raw = make_definition(rules=[{"trigger": "sometimes", "effects": []}])
        with pytest.raises(SchemaError) as exc:
            parse(raw)
        assert exc.value.path == "rule[0].trigger"

    def test_rule_effect_path(self):
        raw = make_definition(rules=[{"trigger": "tick", "effects": [{"type": "set_var"}]}])
        with pytest.raises(SchemaError) as exc:
            parse(raw)
        assert exc.value.path == "rule[0].effects[0].target"

    def test_fractional_frequency(self):
        raw = make_definition(rules=[{"trigger": "tick", "frequency": 1.5, "effects": []}])
        with pytest.raises(SchemaError) as exc:
            parse(raw)
        assert exc.value.path == "rule[0].frequency"

    def test_random_event_probability_required(self):
        raw = make_definition(random_events=[{"name": "e"}])
        with pytest.raises(SchemaError) as exc:
            parse(raw)
        assert exc.value.path == "random_events[0].probability"

    def test_unknown_widget_type(self):
        raw = make_definition(ui={"panels": [{"widgets": [{"type": "hologram"}]}]})
        with pytest.raises(SchemaError) as exc:
            parse(raw)
        assert exc.value.path == "ui.panels[0].widgets[0].type"

    def test_error_message_includes_path(self):
        raw = make_definition(actions=action_with({"type": "set_var", "value": 1}))
        with pytest.raises(SchemaError) as exc:
            parse(raw)
        assert str(exc.value).startswith("action[0].effects[0].target:")


class TestValidateDefinition:
    """Tests for semantic validation."""

    def test_reactor_definition_is_clean(self):
        result = validate_definition(create_reactor_definition())
        assert result.valid
        assert result.errors == []
        assert result.warnings == []

    def test_reactor_raw_is_not_mutated(self):
        before = json.dumps(REACTOR_DEFINITION, sort_keys=True)
        create_reactor_definition(seed=3)
        assert json.dumps(REACTOR_DEFINITION, sort_keys=True) == before

    def test_min_greater_than_max_is_error(self):
        definition = parse(make_definition(vars={"x": {"value": 5, "min": 10, "max": 0}}))
        result = validate_definition(definition)
        assert not result.valid
        assert any("min" in e for e in result.errors)

    def test_initial_value_out_of_bounds_warns(self):
        definition = parse(make_definition(vars={"x": {"value": 500, "min": 0, "max": 100}}))
        result = validate_definition(definition)
        assert result.valid
        assert any("outside" in w for w in result.warnings)

    def test_duplicate_action_names(self):
        actions = [{"name": "a", "effects": []}, {"name": "a", "effects": []}]
        result = validate_definition(parse(make_definition(actions=actions)))
        assert not result.valid

    def test_unknown_variable_target_warns(self):
        definition = parse(make_definition(actions=action_with({"type": "set_var", "target": "ghost", "value": 1})))
        result = validate_definition(definition)
        assert any("ghost" in w for w in result.warnings)

    def test_event_trigger_warns(self):
        definition = parse(make_definition(rules=[{"trigger": "event", "effects": []}]))
        result = validate_definition(definition)
        assert any("never fires" in w for w in result.warnings)

    def test_probability_out_of_range_warns(self):
        definition = parse(make_definition(random_events=[{"name": "e", "probability": 2}]))
        result = validate_definition(definition)
        assert any("probability" in w for w in result.warnings)

    def test_no_actions_warns(self):
        result = validate_definition(parse({"meta": {"name": "Empty"}}))
        assert result.valid
        assert any("No actions" in w for w in result.warnings)

    def test_effect_type_enum_values(self):
        assert {t.value for t in EffectType} == {
            "set_var", "modify_var", "set_entity", "trigger_event", "message",
            "update_score", "add_log", "add_event", "set_status",
        }
