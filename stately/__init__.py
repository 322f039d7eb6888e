"""
stately

A finite state machine engine building callable, introspectable machines
from declarative state descriptions.
"""

__version__ = "1.0.0"

from .exceptions import (
    StatelyError,
    InvalidStateError,
    InvalidEventError,
    ConfigurationError,
)

from .models import (
    State,
    HookKind,
    HookKey,
    Stay,
    GoTo,
    GoToNamed,
    TransitionRecord,
)

from .config import MachineOptions
from .registry import StateRegistry
from .core import Machine, machine
from .loader import MachineParser, MachineDefinition

__all__ = [
    "machine",
    "Machine",
    "MachineOptions",
    "StateRegistry",
    "State",
    "HookKind",
    "HookKey",
    "Stay",
    "GoTo",
    "GoToNamed",
    "TransitionRecord",
    "MachineParser",
    "MachineDefinition",
    "StatelyError",
    "InvalidStateError",
    "InvalidEventError",
    "ConfigurationError",
]
