"""
Definition Parsing and Validation.

parse() turns an untyped document into a fully defaulted GameDefinition.
It fails fast with a SchemaError naming the offending JSON path on:
1. Malformed JSON or a non-object root
2. Missing meta
3. Non-numeric variable values or bounds
4. Unknown effect/requirement/trigger/parameter/widget types
5. Fields a given effect type requires

validate_definition() runs the softer semantic checks (references,
bounds, probabilities) and reports errors and warnings without raising.
"""

from __future__ import annotations
from dataclasses import dataclass
from copy import deepcopy
from typing import Any
import json
import logging
import math

from .game_spec import (
    GameDefinition,
    Meta,
    VariableDefinition,
    ActionDefinition,
    ActionParameter,
    ParameterType,
    Rule,
    RuleTrigger,
    RandomEvent,
    RandomInit,
    UILayout,
)
from .effect_dsl import (
    Effect,
    EffectType,
    ModifyOperation,
    RequirementType,
    Requirement,
    STATUS_VALUES,
    REQUIRED_EFFECT_FIELDS,
    SetVar,
    ModifyVar,
    SetEntity,
    TriggerEvent,
    Message,
    UpdateScore,
    AddLog,
    AddEvent,
    SetStatus,
    VarRangeRequirement,
    EntityStateRequirement,
    PlayerRoleRequirement,
    CooldownRequirement,
)

logger = logging.getLogger(__name__)

WIDGET_TYPES = ("bar", "schematic", "log", "checklist", "terminal", "grid")
LAYOUT_TYPES = ("grid", "vertical", "horizontal")

# JSON spellings accepted for fields that have a camelCase and snake_case form
FIELD_ALIASES: dict[str, tuple[str, ...]] = {
    "playerId": ("playerId", "player_id"),
    "eventType": ("eventType", "event_type"),
}


class SchemaError(Exception):
    """Raised when a game definition cannot be loaded."""

    def __init__(self, path: str, message: str):
        self.path = path
        self.message = message
        super().__init__(f"{path}: {message}" if path else message)


@dataclass
class ValidationResult:
    """Result of semantic validation, with errors and warnings."""
    valid: bool
    errors: list[str]
    warnings: list[str]


def parse(raw: str | bytes | dict[str, Any]) -> GameDefinition:
    """
    Parse and validate a game definition.

    Args:
        raw: JSON text, or an already decoded mapping

    Returns:
        GameDefinition

    Raises:
        SchemaError: naming the JSON path of the first problem found
    """
    if isinstance(raw, (str, bytes, bytearray)):
        try:
            data = json.loads(raw)
        except (json.JSONDecodeError, UnicodeDecodeError) as e:
            raise SchemaError("", f"Invalid JSON: {e}") from e
    else:
        data = raw

    if not isinstance(data, dict):
        raise SchemaError("", "Game definition must be an object")

    definition = _parse_definition(data)
    logger.debug(
        "Parsed game definition '%s': %d variables, %d actions, %d rules, %d random events",
        definition.meta.name,
        len(definition.variables),
        len(definition.actions),
        len(definition.rules),
        len(definition.random_events),
    )
    return definition


def _parse_definition(data: dict[str, Any]) -> GameDefinition:
    if not isinstance(data.get("meta"), dict):
        raise SchemaError("meta", "Game definition must have a meta object")

    init_raw = _pick(data, "init_random", "initRandom")
    return GameDefinition(
        meta=_parse_meta(data["meta"]),
        variables=_parse_variables(_pick(data, "vars", "variables", default={})),
        entities=_parse_entities(data.get("entities", {})),
        actions=_parse_actions(data.get("actions", [])),
        rules=_parse_rules(data.get("rules", [])),
        random_events=_parse_random_events(
            _pick(data, "random_events", "randomEvents", default=[])
        ),
        init_random=_parse_random_init(init_raw) if init_raw is not None else None,
        ui=_parse_ui(data.get("ui", {})),
    )


# =============================================================================
# Primitive validators
# =============================================================================

def _pick(data: dict[str, Any], *keys: str, default: Any = None) -> Any:
    """First present, non-null value among alternative key spellings."""
    for key in keys:
        if data.get(key) is not None:
            return data[key]
    return default


def _string(value: Any, path: str) -> str:
    if not isinstance(value, str) or value.strip() == "":
        raise SchemaError(path, "must be a non-empty string")
    return value.strip()


def _optional_string(value: Any, path: str) -> str | None:
    if value is None:
        return None
    return _string(value, path)


def _number(value: Any, path: str) -> float:
    if isinstance(value, bool) or not isinstance(value, (int, float)) or math.isnan(value):
        raise SchemaError(path, "must be a valid number")
    return value


def _object(value: Any, path: str) -> dict[str, Any]:
    if not isinstance(value, dict):
        raise SchemaError(path, "must be an object")
    return value


def _array(value: Any, path: str) -> list[Any]:
    if not isinstance(value, list):
        raise SchemaError(path, "must be an array")
    return value


def _string_array(value: Any, path: str) -> tuple[str, ...]:
    return tuple(_string(item, f"{path}[{i}]") for i, item in enumerate(_array(value, path)))


def _enum(enum_cls, value: Any, path: str):
    try:
        return enum_cls(value)
    except ValueError:
        allowed = ", ".join(member.value for member in enum_cls)
        raise SchemaError(path, f"must be one of: {allowed}") from None


# =============================================================================
# Sections
# =============================================================================

def _parse_meta(meta: dict[str, Any]) -> Meta:
    seed = meta.get("seed")
    max_players = _pick(meta, "maxPlayers", "max_players")
    return Meta(
        name=_optional_string(meta.get("name"), "meta.name") or "Untitled",
        version=_optional_string(meta.get("version"), "meta.version") or "1.0.0",
        description=_optional_string(meta.get("description"), "meta.description") or "",
        author=_optional_string(meta.get("author"), "meta.author") or "",
        seed=_number(seed, "meta.seed") if seed is not None else None,
        max_players=(
            int(_number(max_players, "meta.maxPlayers")) if max_players is not None else None
        ),
    )


def _parse_variables(variables: Any) -> dict[str, VariableDefinition]:
    _object(variables, "vars")

    result: dict[str, VariableDefinition] = {}
    for key, value in variables.items():
        path = f"var.{key}"
        _object(value, path)
        result[key] = VariableDefinition(
            value=_number(value.get("value"), f"{path}.value"),
            min=_number(value.get("min"), f"{path}.min"),
            max=_number(value.get("max"), f"{path}.max"),
            unit=_optional_string(value.get("unit"), f"{path}.unit"),
            label=_optional_string(value.get("label"), f"{path}.label"),
            description=_optional_string(value.get("description"), f"{path}.description"),
        )
    return result


def _parse_entities(entities: Any) -> dict[str, dict[str, Any]]:
    _object(entities, "entities")

    result: dict[str, dict[str, Any]] = {}
    for key, value in entities.items():
        result[key] = deepcopy(_object(value, f"entity.{key}"))
    return result


def _parse_actions(actions: Any) -> tuple[ActionDefinition, ...]:
    _array(actions, "actions")

    result = []
    for index, action in enumerate(actions):
        path = f"action[{index}]"
        _object(action, path)

        parameters = action.get("parameters")
        requirements = action.get("requirements")
        cooldown = action.get("cooldown")
        result.append(ActionDefinition(
            name=_string(action.get("name"), f"{path}.name"),
            description=_optional_string(action.get("description"), f"{path}.description"),
            parameters=_parse_parameters(parameters, path) if parameters is not None else (),
            effects=_parse_effects(action.get("effects", []), f"{path}.effects"),
            requirements=(
                _parse_requirements(requirements, path) if requirements is not None else ()
            ),
            # A zero cooldown is no cooldown
            cooldown=_number(cooldown, f"{path}.cooldown") or None if cooldown is not None else None,
        ))
    return tuple(result)


def _parse_parameters(parameters: Any, action_path: str) -> tuple[ActionParameter, ...]:
    _array(parameters, f"{action_path}.parameters")

    result = []
    for index, param in enumerate(parameters):
        path = f"{action_path}.parameters[{index}]"
        _object(param, path)
        options = param.get("options")
        result.append(ActionParameter(
            name=_string(param.get("name"), f"{path}.name"),
            param_type=_enum(ParameterType, param.get("type"), f"{path}.type"),
            required=param["required"] if isinstance(param.get("required"), bool) else False,
            options=_string_array(options, f"{path}.options") if options is not None else None,
            default=param.get("default"),
        ))
    return tuple(result)


def _parse_effects(effects: Any, path: str) -> tuple[Effect, ...]:
    _array(effects, path)
    return tuple(_parse_effect(effect, f"{path}[{i}]") for i, effect in enumerate(effects))


def _parse_effect(effect: Any, path: str) -> Effect:
    """Validate one effect against the required-field table and build it."""
    _object(effect, path)
    effect_type = _enum(EffectType, effect.get("type"), f"{path}.type")

    for field_name in REQUIRED_EFFECT_FIELDS[effect_type]:
        if _pick(effect, *FIELD_ALIASES.get(field_name, (field_name,))) is None:
            raise SchemaError(
                f"{path}.{field_name}",
                f"{field_name} is required for {effect_type.value} effects",
            )

    target = _optional_string(effect.get("target"), f"{path}.target")
    message = _optional_string(effect.get("message"), f"{path}.message")
    value = effect.get("value")

    if effect_type == EffectType.SET_VAR:
        return SetVar(target=target, value=value)

    if effect_type == EffectType.MODIFY_VAR:
        operation = _enum(ModifyOperation, effect.get("operation"), f"{path}.operation")
        return ModifyVar(target=target, operation=operation, value=value)

    if effect_type == EffectType.SET_ENTITY:
        return SetEntity(target=target, value=deepcopy(value))

    if effect_type == EffectType.TRIGGER_EVENT:
        return TriggerEvent(target=target, value=value)

    if effect_type == EffectType.MESSAGE:
        return Message(message=message)

    if effect_type == EffectType.UPDATE_SCORE:
        player_id = _string(_pick(effect, *FIELD_ALIASES["playerId"]), f"{path}.playerId")
        return UpdateScore(player_id=player_id, value=value)

    if effect_type == EffectType.ADD_LOG:
        return AddLog(message=message)

    if effect_type == EffectType.ADD_EVENT:
        event_type = _string(_pick(effect, *FIELD_ALIASES["eventType"]), f"{path}.eventType")
        return AddEvent(event_type=event_type, message=message)

    # EffectType.SET_STATUS
    status = effect.get("status")
    if status not in STATUS_VALUES:
        raise SchemaError(f"{path}.status", f"must be one of: {', '.join(STATUS_VALUES)}")
    return SetStatus(status=status)


def _parse_requirements(requirements: Any, action_path: str) -> tuple[Requirement, ...]:
    _array(requirements, f"{action_path}.requirements")

    result = []
    for index, req in enumerate(requirements):
        path = f"{action_path}.requirements[{index}]"
        _object(req, path)
        req_type = _enum(RequirementType, req.get("type"), f"{path}.type")
        target = _string(req.get("target"), f"{path}.target")

        if req_type == RequirementType.COOLDOWN:
            value = req.get("value")
            result.append(CooldownRequirement(
                target=target,
                value=_number(value, f"{path}.value") if value is not None else 0,
                condition=_optional_string(req.get("condition"), f"{path}.condition") or "",
            ))
            continue

        condition = _string(req.get("condition"), f"{path}.condition")
        if req_type == RequirementType.VAR_RANGE:
            result.append(VarRangeRequirement(target=target, condition=condition))
        elif req_type == RequirementType.ENTITY_STATE:
            result.append(EntityStateRequirement(target=target, condition=condition))
        else:
            result.append(PlayerRoleRequirement(target=target, condition=condition))
    return tuple(result)


def _parse_rules(rules: Any) -> tuple[Rule, ...]:
    _array(rules, "rules")

    result = []
    for index, rule in enumerate(rules):
        path = f"rule[{index}]"
        _object(rule, path)

        frequency = rule.get("frequency")
        if frequency is not None:
            frequency = _number(frequency, f"{path}.frequency")
            if frequency != int(frequency):
                raise SchemaError(f"{path}.frequency", "must be a whole number of ticks")
            # Zero or negative frequency means "every tick"
            frequency = int(frequency) if frequency > 0 else None

        result.append(Rule(
            trigger=_enum(RuleTrigger, rule.get("trigger"), f"{path}.trigger"),
            condition=_optional_string(rule.get("condition"), f"{path}.condition"),
            effects=_parse_effects(rule.get("effects", []), f"{path}.effects"),
            frequency=frequency,
        ))
    return tuple(result)


def _parse_random_events(events: Any) -> tuple[RandomEvent, ...]:
    _array(events, "random_events")

    result = []
    for index, event in enumerate(events):
        path = f"random_events[{index}]"
        _object(event, path)

        conditions = event.get("conditions")
        cooldown = event.get("cooldown")
        result.append(RandomEvent(
            name=_string(event.get("name"), f"{path}.name"),
            description=_optional_string(event.get("description"), f"{path}.description") or "",
            probability=_number(event.get("probability"), f"{path}.probability"),
            conditions=(
                _string_array(conditions, f"{path}.conditions") if conditions is not None else ()
            ),
            effects=_parse_effects(event.get("effects", []), f"{path}.effects"),
            cooldown=_number(cooldown, f"{path}.cooldown") or None if cooldown is not None else None,
        ))
    return tuple(result)


def _parse_random_init(init: Any) -> RandomInit:
    _object(init, "init_random")

    variables: dict[str, tuple[float, float]] = {}
    for key, value in _object(_pick(init, "vars", "variables", default={}), "init_random.vars").items():
        path = f"init_random.vars.{key}"
        _object(value, path)
        variables[key] = (
            _number(value.get("min"), f"{path}.min"),
            _number(value.get("max"), f"{path}.max"),
        )

    entities: dict[str, dict[str, Any]] = {}
    for key, value in _object(init.get("entities", {}), "init_random.entities").items():
        entities[key] = deepcopy(_object(value, f"init_random.entities.{key}"))

    return RandomInit(variables=variables, entities=entities)


def _parse_ui(ui: Any) -> UILayout:
    _object(ui, "ui")

    panels = []
    for p_index, panel in enumerate(_array(ui.get("panels", []), "ui.panels")):
        path = f"ui.panels[{p_index}]"
        panel = deepcopy(_object(panel, path))

        widgets = _array(panel.get("widgets", []), f"{path}.widgets")
        for w_index, widget in enumerate(widgets):
            w_path = f"{path}.widgets[{w_index}]"
            _object(widget, w_path)
            if widget.get("type") not in WIDGET_TYPES:
                raise SchemaError(f"{w_path}.type", f"must be one of: {', '.join(WIDGET_TYPES)}")
            widget.setdefault("config", {})
            widget.setdefault("bindings", {})

        panel["widgets"] = widgets
        for flag in ("visible", "resizable", "draggable"):
            if not isinstance(panel.get(flag), bool):
                panel[flag] = True
        panels.append(panel)

    layout = _object(ui.get("layout", {}), "ui.layout")
    layout_type = layout.get("type") or "grid"
    if layout_type not in LAYOUT_TYPES:
        raise SchemaError("ui.layout.type", f"must be one of: {', '.join(LAYOUT_TYPES)}")

    return UILayout(
        panels=tuple(panels),
        layout_type=layout_type,
        grid_size=_number(layout.get("gridSize") or 12, "ui.layout.gridSize"),
        max_panels=_number(layout.get("maxPanels") or 8, "ui.layout.maxPanels"),
    )


# =============================================================================
# Semantic validation
# =============================================================================

def validate_definition(definition: GameDefinition) -> ValidationResult:
    """
    Validate a parsed game definition.

    parse() only guarantees structure; this checks that the pieces fit
    together. Nothing here raises.
    """
    errors: list[str] = []
    warnings: list[str] = []

    for name, var in definition.variables.items():
        if var.min > var.max:
            errors.append(f"Variable '{name}' has min {var.min} greater than max {var.max}")
        elif not var.min <= var.value <= var.max:
            warnings.append(
                f"Variable '{name}' starts at {var.value}, outside [{var.min}, {var.max}]; "
                "it will be clamped on first write"
            )

    action_names: set[str] = set()
    for action in definition.actions:
        if action.name in action_names:
            errors.append(f"Duplicate action name '{action.name}'")
        action_names.add(action.name)

        if not action.effects:
            warnings.append(f"Action '{action.name}' has no effects")

        for param in action.parameters:
            if param.param_type == ParameterType.SELECT and not param.options:
                warnings.append(
                    f"Action '{action.name}' select parameter '{param.name}' has no options"
                )

        for req in action.requirements:
            if (
                req.requirement_type == RequirementType.VAR_RANGE
                and req.target not in definition.variables
            ):
                warnings.append(
                    f"Action '{action.name}' requirement references unknown variable '{req.target}'"
                )

        warnings.extend(
            f"Action '{action.name}': {w}"
            for w in _effect_reference_warnings(action.effects, definition)
        )

    for action in definition.actions:
        for req in action.requirements:
            if req.requirement_type == RequirementType.COOLDOWN and req.target not in action_names:
                warnings.append(
                    f"Action '{action.name}' cooldown references unknown action '{req.target}'"
                )

    for index, rule in enumerate(definition.rules):
        if rule.trigger == RuleTrigger.EVENT:
            warnings.append(f"Rule {index} uses the 'event' trigger, which never fires")
        if rule.trigger == RuleTrigger.CONDITION and not rule.condition:
            warnings.append(f"Rule {index} uses the 'condition' trigger without a condition")
        warnings.extend(
            f"Rule {index}: {w}" for w in _effect_reference_warnings(rule.effects, definition)
        )

    event_names: set[str] = set()
    for event in definition.random_events:
        if event.name in event_names:
            warnings.append(f"Duplicate random event name '{event.name}'")
        event_names.add(event.name)
        if not 0 <= event.probability <= 1:
            warnings.append(
                f"Random event '{event.name}' probability {event.probability} is outside [0, 1]"
            )
        warnings.extend(
            f"Random event '{event.name}': {w}"
            for w in _effect_reference_warnings(event.effects, definition)
        )

    if not definition.actions:
        warnings.append("No actions defined - players cannot interact")

    return ValidationResult(
        valid=len(errors) == 0,
        errors=errors,
        warnings=warnings,
    )


def _effect_reference_warnings(
    effects: tuple[Effect, ...], definition: GameDefinition
) -> list[str]:
    warnings = []
    for effect in effects:
        if isinstance(effect, (SetVar, ModifyVar)) and effect.target not in definition.variables:
            warnings.append(
                f"{effect.effect_type.value} targets unknown variable '{effect.target}'"
            )
    return warnings
