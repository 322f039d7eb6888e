#!/usr/bin/env python3
"""
Command-line interface for YAML machine definitions
"""

import argparse
import logging
import sys
from pathlib import Path

from .exceptions import ConfigurationError, InvalidEventError, InvalidStateError
from .loader import MachineParser


def _describe(definition, args) -> int:
    machine = definition.build()
    print(f"Machine: {machine.name}")
    print(f"Initial state: {machine.get_machine_state()}")
    print("States:")
    for state in machine.states.values():
        events = ", ".join(
            f"{event} -> {action.target}" for event, action in state.actions.items()
        )
        print(f"  {state.name}: {events or '(no events)'}")
    return 0


def _visualize(definition, args) -> int:
    content = definition.build().visualize()
    if args.output:
        args.output.parent.mkdir(parents=True, exist_ok=True)
        args.output.write_text(content + "\n")
        print(f"Diagram written to {args.output}")
    else:
        print(content)
    return 0


def _run(definition, args) -> int:
    def on_transition(event, old_state, new_state):
        print(f"{event or '(init)'}: {old_state} -> {new_state}")

    machine = definition.build(on_transition=on_transition, invalid_event_errors=args.strict)
    try:
        for event in args.events:
            machine.trigger(event)
    except (InvalidEventError, InvalidStateError) as e:
        print(f"Error: {e}")
        print(f"Final state: {machine.get_machine_state()}")
        return 2

    print(f"Final state: {machine.get_machine_state()}")
    return 0


def main(argv=None):
    """Main CLI entry point"""
    parser = argparse.ArgumentParser(
        description="stately - build and drive finite state machines from YAML"
    )
    parser.add_argument(
        "-v", "--verbose",
        action="store_true",
        help="Enable verbose logging"
    )
    subparsers = parser.add_subparsers(dest="command", required=True)

    describe = subparsers.add_parser("describe", help="List states and their events")
    describe.add_argument("machine_file", type=Path, help="Machine definition YAML file")
    describe.set_defaults(handler=_describe)

    visualize = subparsers.add_parser("visualize", help="Render a PlantUML state diagram")
    visualize.add_argument("machine_file", type=Path, help="Machine definition YAML file")
    visualize.add_argument(
        "-o", "--output",
        type=Path,
        help="Output file for the diagram"
    )
    visualize.set_defaults(handler=_visualize)

    run = subparsers.add_parser("run", help="Fire events in order and print transitions")
    run.add_argument("machine_file", type=Path, help="Machine definition YAML file")
    run.add_argument("events", nargs="+", help="Events to fire")
    run.add_argument(
        "--strict",
        action="store_true",
        help="Fail on events the current state does not define"
    )
    run.set_defaults(handler=_run)

    args = parser.parse_args(argv)

    # Configure logging
    log_level = logging.DEBUG if args.verbose else logging.WARNING
    logging.basicConfig(
        level=log_level,
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
    )

    try:
        definition = MachineParser.from_file(args.machine_file)
    except (OSError, ConfigurationError) as e:
        print(f"Error loading machine definition: {e}")
        return 1

    try:
        return args.handler(definition, args)
    except (ConfigurationError, InvalidStateError) as e:
        print(f"Error building machine: {e}")
        return 1


if __name__ == "__main__":
    sys.exit(main())
