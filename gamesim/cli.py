"""
gamesim CLI - Command-line interface for the engine.

Usage:
    gamesim validate <definition_file>              Validate a game definition
    gamesim run <definition_file> --ticks N         Run N ticks and print the state
    gamesim reactor --ticks N                       Run the sample reactor game
"""

import argparse
import json
import sys

from .config import configure_logging


def main(argv=None):
    """Main CLI entry point."""
    parser = argparse.ArgumentParser(
        description="gamesim - Declarative Game Simulation Engine",
        prog="gamesim",
    )
    parser.add_argument("--log-level", default=None, help="Logging level (default: GAMESIM_LOG_LEVEL or INFO)")
    subparsers = parser.add_subparsers(dest="command", help="Commands")

    # Validate command
    validate_parser = subparsers.add_parser("validate", help="Validate a game definition")
    validate_parser.add_argument("definition_file", help="Path to definition JSON file")

    # Run command
    run_parser = subparsers.add_parser("run", help="Run a game definition for a number of ticks")
    run_parser.add_argument("definition_file", help="Path to definition JSON file")
    run_parser.add_argument("--ticks", type=int, default=60, help="Number of ticks to run")
    run_parser.add_argument("--seed", type=int, default=None, help="Random seed")
    run_parser.add_argument("--json", action="store_true", help="Print the final state as JSON")

    # Reactor quick start
    reactor_parser = subparsers.add_parser("reactor", help="Run the sample reactor game")
    reactor_parser.add_argument("--ticks", type=int, default=60, help="Number of ticks to run")
    reactor_parser.add_argument("--seed", type=int, default=None, help="Random seed")
    reactor_parser.add_argument("--json", action="store_true", help="Print the final state as JSON")

    args = parser.parse_args(argv)
    configure_logging(args.log_level)

    if args.command == "validate":
        return cmd_validate(args)
    elif args.command == "run":
        return cmd_run(args)
    elif args.command == "reactor":
        return cmd_reactor(args)
    else:
        parser.print_help()
        return 1


def _load(path):
    from .spec_schema import SchemaError, parse

    try:
        with open(path, "r", encoding="utf-8") as f:
            raw = f.read()
    except FileNotFoundError:
        print(f"Error: File not found: {path}")
        return None

    try:
        return parse(raw)
    except SchemaError as e:
        print(f"Invalid definition: {e}")
        return None


def cmd_validate(args):
    """Validate a game definition."""
    from .spec_schema import validate_definition

    print(f"Validating: {args.definition_file}")
    definition = _load(args.definition_file)
    if definition is None:
        return 1

    result = validate_definition(definition)
    print(f"Game: {definition.name} v{definition.meta.version}")
    print(f"Variables: {len(definition.variables)}")
    print(f"Entities: {len(definition.entities)}")
    print(f"Actions: {len(definition.actions)}")
    print(f"Rules: {len(definition.rules)}")
    print(f"Random events: {len(definition.random_events)}")

    if result.warnings:
        print("\nWarnings:")
        for w in result.warnings:
            print(f"  - {w}")

    if result.errors:
        print("\nErrors:")
        for e in result.errors:
            print(f"  - {e}")
        return 1

    print("\nDefinition is valid")
    return 0


def cmd_run(args):
    """Run a game definition headless for a fixed number of ticks."""
    definition = _load(args.definition_file)
    if definition is None:
        return 1
    return _run_ticks(definition, args)


def cmd_reactor(args):
    """Quick start the reactor game."""
    from .games.reactor import create_reactor_definition

    return _run_ticks(create_reactor_definition(), args)


def _run_ticks(definition, args):
    import random

    from .session import Room

    rng = random.Random(args.seed) if args.seed is not None else None
    room = Room(definition, rng=rng, run_in_thread=False)
    errors = []
    room.on_error(errors.append)

    print(f"Running '{definition.name}' for {args.ticks} tick(s)")
    room.store.start_game()
    for _ in range(max(0, args.ticks)):
        room.force_tick()
        if room.store.status.value == "finished":
            print(f"Game finished at tick {room.get_current_tick()}")
            break

    state = room.get_state()
    room.close()

    if args.json:
        print(state.model_dump_json(indent=2))
    else:
        print(f"\nTick: {state.tick}  Status: {state.status.value}")
        print("Variables:")
        for name, value in state.variables.items():
            print(f"  {name}: {value:g}")
        print("Entities:")
        for name, props in state.entities.items():
            print(f"  {name}: {json.dumps(props)}")
        if state.events:
            print("Events:")
            for event in state.events:
                print(f"  [{event.type}] {event.message}")
        if state.logs:
            print("Logs:")
            for line in state.logs:
                print(f"  {line}")

    if errors:
        print("\nTick errors:")
        for e in errors:
            print(f"  - {e}")
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())
