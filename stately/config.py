"""
Machine options: the single configuration surface of ``machine()``.
"""

import logging
import os
from dataclasses import dataclass, field, fields, replace
from typing import Any, Callable, Dict, Mapping, Optional

from prometheus_client import CollectorRegistry

from .exceptions import ConfigurationError

logger = logging.getLogger(__name__)


def _env_flag(name: str, default: str = 'false') -> bool:
    return os.getenv(name, default).lower() == 'true'


# camelCase spellings accepted in option mappings
_OPTION_ALIASES = {
    'onTransition': 'on_transition',
    'invalidEventErrors': 'invalid_event_errors',
    'initialState': 'initial_state',
    'historySize': 'history_size',
}


@dataclass
class MachineOptions:
    """
    Options for a state machine.

    Attributes:
        name: Machine name, used in log lines and metric names
        initial_state: Name of a state to start in instead of the first one
        on_transition: Listener registered before any ``bind()`` call
        invalid_event_errors: Raise InvalidEventError for events the current
            state does not own instead of ignoring them
        hooks: Machine-level hooks (``onbefore<event>``, ``onenter<state>``, ...)
        history_size: Number of transitions kept for ``get_history()``
        metrics: Record Prometheus metrics
        metrics_registry: Collector registry for the metrics; a private one
            is created per machine when omitted
    """
    name: str = "stately"
    initial_state: Optional[str] = None
    on_transition: Optional[Callable[..., Any]] = None
    invalid_event_errors: bool = field(
        default_factory=lambda: _env_flag('STATELY_INVALID_EVENT_ERRORS'))
    hooks: Dict[str, Callable[..., Any]] = field(default_factory=dict)
    history_size: int = 20
    metrics: bool = field(default_factory=lambda: _env_flag('STATELY_METRICS', 'true'))
    metrics_registry: Optional[CollectorRegistry] = None

    def __post_init__(self):
        if not self.name or not isinstance(self.name, str):
            raise ConfigurationError(f"Invalid machine name: {self.name!r}")
        if self.on_transition is not None and not callable(self.on_transition):
            raise ConfigurationError("on_transition must be callable")
        if self.initial_state is not None and not isinstance(self.initial_state, str):
            raise ConfigurationError(f"initial_state must be a state name, got {self.initial_state!r}")
        if not isinstance(self.history_size, int) or self.history_size < 0:
            raise ConfigurationError(f"history_size must be a non-negative int, got {self.history_size!r}")
        for hook_name, hook in self.hooks.items():
            if not callable(hook):
                raise ConfigurationError(f"Hook '{hook_name}' is not callable")

    @classmethod
    def from_mapping(cls, data: Mapping[str, Any]) -> "MachineOptions":
        """Build options from a mapping, accepting camelCase keys"""
        known = {f.name for f in fields(cls)}
        kwargs = {}
        for key, value in data.items():
            key = _OPTION_ALIASES.get(key, key)
            if key not in known:
                raise ConfigurationError(f"Unknown machine option: '{key}'")
            kwargs[key] = value
        return cls(**kwargs)

    @classmethod
    def from_value(cls, value: Any = None, **overrides) -> "MachineOptions":
        """
        Normalise the second argument of ``machine()``.

        Accepts None, a transition callback, an initial state name, a mapping
        of options or a MachineOptions instance. Keyword overrides win.
        """
        if value is None:
            options = cls()
        elif isinstance(value, MachineOptions):
            options = value
        elif isinstance(value, str):
            options = cls(initial_state=value)
        elif isinstance(value, Mapping):
            options = cls.from_mapping(value)
        elif callable(value):
            options = cls(on_transition=value)
        else:
            raise ConfigurationError(f"Unsupported machine options: {value!r}")

        if overrides:
            normalised = {_OPTION_ALIASES.get(k, k): v for k, v in overrides.items()}
            known = {f.name for f in fields(cls)}
            unknown = set(normalised) - known
            if unknown:
                raise ConfigurationError(f"Unknown machine options: {sorted(unknown)}")
            options = replace(options, **normalised)

        logger.debug(f"Machine options: {options}")
        return options
