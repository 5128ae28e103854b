"""Game definition schema - parsing, validation and the effect DSL."""

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
    Requirement,
    RequirementType,
)
from .validation import parse, validate_definition, SchemaError, ValidationResult

__all__ = [
    "GameDefinition",
    "Meta",
    "VariableDefinition",
    "ActionDefinition",
    "ActionParameter",
    "ParameterType",
    "Rule",
    "RuleTrigger",
    "RandomEvent",
    "RandomInit",
    "UILayout",
    "Effect",
    "EffectType",
    "ModifyOperation",
    "Requirement",
    "RequirementType",
    "parse",
    "validate_definition",
    "SchemaError",
    "ValidationResult",
]
