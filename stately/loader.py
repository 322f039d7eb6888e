"""
Loader for machine definitions written in YAML.

A definition is either a bare mapping of states::

    OPEN:
      close: CLOSED
    CLOSED:
      open: OPEN

or a document carrying machine options next to the states::

    name: door
    initial_state: CLOSED
    invalid_event_errors: true
    states:
      OPEN: {close: CLOSED}
      CLOSED: {open: OPEN}

YAML can only express shorthand transitions; Python actions and hooks are
merged in by :meth:`MachineDefinition.build`.
"""

import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Callable, Dict, Mapping, Optional, Union

import yaml

from .core import Machine
from .exceptions import ConfigurationError

logger = logging.getLogger(__name__)

# Document keys besides ``states`` that map onto MachineOptions
_OPTION_KEYS = ('name', 'initial_state', 'invalid_event_errors', 'history_size')


@dataclass
class MachineDefinition:
    """A machine description loaded from YAML, not yet built"""
    states: Dict[str, Dict[str, Any]]
    options: Dict[str, Any] = field(default_factory=dict)
    source: Optional[str] = None

    @property
    def name(self) -> str:
        return self.options.get('name', 'stately')

    def merged_states(self, actions: Optional[Mapping[str, Mapping[str, Callable]]] = None):
        """States with Python callables merged over the loaded entries"""
        merged = {name: dict(body) for name, body in self.states.items()}
        for state_name, entries in (actions or {}).items():
            if state_name not in merged:
                raise ConfigurationError(
                    f"Cannot attach actions to unknown state '{state_name}'"
                    + (f" in {self.source}" if self.source else "")
                )
            merged[state_name].update(entries)
        return merged

    def build(self, actions: Optional[Mapping[str, Mapping[str, Callable]]] = None,
              **overrides) -> Machine:
        """
        Build a Machine from this definition.

        Args:
            actions: ``{state: {event_or_hook: callable}}`` merged into the states
            **overrides: Machine options overriding the document's
        """
        options = dict(self.options)
        options.update(overrides)
        return Machine(self.merged_states(actions), options)


class MachineParser:
    """Parser for YAML machine definitions"""

    @staticmethod
    def from_file(filepath: Union[str, Path]) -> MachineDefinition:
        """Load a machine definition from a YAML file"""
        filepath = Path(filepath)

        with open(filepath, 'r') as f:
            try:
                data = yaml.safe_load(f)
            except yaml.YAMLError as e:
                raise ConfigurationError(f"Invalid YAML in {filepath}: {e}") from e

        definition = MachineParser.from_dict(data)
        definition.source = str(filepath)
        logger.debug(f"Loaded machine definition from {filepath}")
        return definition

    @staticmethod
    def from_string(text: str) -> MachineDefinition:
        """Load a machine definition from YAML text"""
        try:
            data = yaml.safe_load(text)
        except yaml.YAMLError as e:
            raise ConfigurationError(f"Invalid YAML: {e}") from e
        return MachineParser.from_dict(data)

    @staticmethod
    def from_dict(data: Any) -> MachineDefinition:
        """Parse a machine definition from a dictionary"""
        if not isinstance(data, dict) or not data:
            raise ConfigurationError(f"Machine definition must be a non-empty mapping, got {data!r}")

        if 'states' in data:
            states = data['states']
            options = {key: data[key] for key in _OPTION_KEYS if key in data}
            unknown = set(data) - set(_OPTION_KEYS) - {'states'}
            if unknown:
                raise ConfigurationError(f"Unknown machine definition keys: {sorted(unknown)}")
        else:
            states = data
            options = {}

        if not isinstance(states, dict) or not states:
            raise ConfigurationError("Machine definition contains no states")

        parsed = {}
        for state_name, body in states.items():
            parsed[str(state_name)] = MachineParser._parse_state(str(state_name), body)

        return MachineDefinition(states=parsed, options=options)

    @staticmethod
    def _parse_state(state_name: str, body: Any) -> Dict[str, str]:
        """Parse one state's shorthand transitions"""
        # A state without events is written as ``FINAL:`` or ``FINAL: {}``
        if body is None:
            return {}
        if not isinstance(body, dict):
            raise ConfigurationError(f"State '{state_name}' must be a mapping of event: TARGET")

        transitions = {}
        for event, target in body.items():
            if not isinstance(target, str):
                raise ConfigurationError(
                    f"Transition '{state_name}.{event}' must name a target state, got {target!r}"
                )
            transitions[str(event)] = target
        return transitions
