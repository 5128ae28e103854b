"""
Reactor Game Definition

A small reactor-control simulation used by the CLI and tests.

The definition covers:
- Variables (power, temperature, pressure, coolant, output)
- Entities (reactor, cooling system)
- Actions (control rods, coolant, inspection, emergency shutdown, scoring)
- Tick rules (heat-up, coolant drain) and condition rules (alarms, meltdown)
- Random events (pump failure, power surge) gated by emergency shutdown
"""

from __future__ import annotations
from copy import deepcopy
from typing import Any

from ...spec_schema import GameDefinition, parse


REACTOR_DEFINITION: dict[str, Any] = {
    "meta": {
        "name": "ReactorSim",
        "version": "1.0.0",
        "description": "Keep the reactor producing power without melting it down",
        "author": "gamesim",
        "maxPlayers": 8,
    },
    "vars": {
        "power": {"value": 50, "min": 0, "max": 100, "unit": "%", "label": "Power"},
        "temperature": {"value": 300, "min": 0, "max": 1000, "unit": "K", "label": "Core temperature"},
        "pressure": {"value": 15, "min": 0, "max": 50, "unit": "MPa"},
        "coolant_level": {"value": 80, "min": 0, "max": 100, "unit": "%"},
        "output": {"value": 0, "min": 0, "max": 10000, "label": "Energy delivered"},
    },
    "entities": {
        "reactor": {
            "control_rods_position": 50,
            "emergency_shutdown": False,
            "status": "online",
        },
        "cooling_system": {
            "pump_1_active": True,
            "pump_2_active": True,
            "efficiency": 0.85,
        },
    },
    "actions": [
        {
            "name": "raise_power",
            "description": "Withdraw control rods to raise power",
            "effects": [
                {"type": "modify_var", "target": "power", "operation": "add", "value": 10},
                {"type": "modify_var", "target": "temperature", "operation": "add", "value": 25},
                {"type": "set_entity", "target": "reactor", "value": {"control_rods_position": 30}},
            ],
            "requirements": [
                {"type": "entity_state", "target": "reactor", "condition": "status == online"},
                {"type": "cooldown", "target": "raise_power", "value": 2000},
            ],
        },
        {
            "name": "lower_power",
            "description": "Insert control rods to lower power",
            "effects": [
                {"type": "modify_var", "target": "power", "operation": "subtract", "value": 10},
                {"type": "set_entity", "target": "reactor", "value": {"control_rods_position": 70}},
            ],
        },
        {
            "name": "pump_coolant",
            "description": "Run the coolant pumps",
            "effects": [
                {"type": "modify_var", "target": "temperature", "operation": "subtract", "value": 40},
                {"type": "modify_var", "target": "coolant_level", "operation": "subtract", "value": 5},
            ],
            "requirements": [
                {"type": "var_range", "target": "coolant_level", "condition": "> 0"},
            ],
            "cooldown": 3000,
        },
        {
            "name": "refill_coolant",
            "description": "Top up the coolant tank",
            "parameters": [
                {"name": "amount", "type": "number", "default": 20},
            ],
            "effects": [
                {"type": "modify_var", "target": "coolant_level", "operation": "add", "value": 20},
                {"type": "add_log", "message": "Coolant tank refilled"},
            ],
        },
        {
            "name": "inspect_reactor",
            "description": "Log an inspection of the reactor",
            "parameters": [
                {"name": "focus", "type": "select", "options": ["core", "pumps", "rods"], "default": "core"},
            ],
            "effects": [
                {"type": "add_event", "eventType": "inspection", "message": "Reactor inspected"},
            ],
            "requirements": [
                {"type": "player_role", "target": "player", "condition": "engineer"},
            ],
        },
        {
            "name": "emergency_shutdown",
            "description": "SCRAM the reactor",
            "effects": [
                {"type": "set_var", "target": "power", "value": 0},
                {
                    "type": "set_entity",
                    "target": "reactor",
                    "value": {"emergency_shutdown": True, "status": "shutdown", "control_rods_position": 100},
                },
                {"type": "add_event", "eventType": "alarm", "message": "Emergency shutdown engaged"},
            ],
        },
        {
            "name": "restart_reactor",
            "description": "Bring the reactor back online after a shutdown",
            "effects": [
                {
                    "type": "set_entity",
                    "target": "reactor",
                    "value": {"emergency_shutdown": False, "status": "online", "control_rods_position": 50},
                },
                {"type": "set_var", "target": "power", "value": 20},
            ],
            "requirements": [
                {"type": "entity_state", "target": "reactor", "condition": "emergency_shutdown == true"},
            ],
        },
    ],
    "rules": [
        {
            "trigger": "tick",
            "condition": "power > 60",
            "effects": [
                {"type": "modify_var", "target": "temperature", "operation": "add", "value": 2},
            ],
        },
        {
            "trigger": "tick",
            "condition": "power > 0",
            "effects": [
                {"type": "modify_var", "target": "output", "operation": "add", "value": "power / 10"},
            ],
        },
        {
            "trigger": "tick",
            "frequency": 10,
            "condition": "temperature > 20",
            "effects": [
                {"type": "modify_var", "target": "temperature", "operation": "subtract", "value": 1},
            ],
        },
        {
            "trigger": "tick",
            "frequency": 60,
            "effects": [
                {"type": "modify_var", "target": "coolant_level", "operation": "subtract", "value": 1},
            ],
        },
        {
            "trigger": "condition",
            "condition": "temperature >= 900",
            "effects": [
                {"type": "add_event", "eventType": "alarm", "message": "Core temperature critical"},
            ],
        },
        {
            "trigger": "condition",
            "condition": "temperature >= 1000",
            "effects": [
                {"type": "add_event", "eventType": "meltdown", "message": "Core meltdown"},
                {"type": "set_status", "status": "ended"},
            ],
        },
    ],
    "random_events": [
        {
            "name": "pump_failure",
            "description": "A coolant pump trips offline",
            "probability": 0.002,
            "conditions": ["cooling_system.pump_2_active == 1"],
            "effects": [
                {"type": "set_entity", "target": "cooling_system", "value": {"pump_2_active": False}},
                {"type": "add_event", "eventType": "fault", "message": "Coolant pump 2 failed"},
            ],
            "cooldown": 30000,
        },
        {
            "name": "power_surge",
            "description": "Grid demand spikes",
            "probability": 0.001,
            "conditions": ["power > 20"],
            "effects": [
                {"type": "modify_var", "target": "power", "operation": "add", "value": 15},
                {"type": "add_log", "message": "Power surge from the grid"},
            ],
        },
    ],
    "init_random": {
        "vars": {
            "temperature": {"min": 280, "max": 320},
        },
    },
    "ui": {
        "panels": [
            {
                "id": "core",
                "title": "Core",
                "widgets": [
                    {"type": "bar", "bindings": {"value": "power"}},
                    {"type": "bar", "bindings": {"value": "temperature"}},
                ],
            },
            {
                "id": "log",
                "title": "Operations log",
                "widgets": [{"type": "log"}],
            },
        ],
        "layout": {"type": "grid", "gridSize": 12, "maxPanels": 8},
    },
}


def create_reactor_definition(seed: int | None = None) -> GameDefinition:
    """
    Create the reactor game definition.

    A seed makes random initialization and random events reproducible.
    """
    raw = deepcopy(REACTOR_DEFINITION)
    if seed is not None:
        raw["meta"]["seed"] = seed
    return parse(raw)
