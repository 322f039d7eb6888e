"""
Read-only state registry handed to actions and hooks.
"""

import logging
from typing import TYPE_CHECKING, Any, Dict, Iterator, Mapping, Optional

from .exceptions import InvalidStateError
from .models import State

if TYPE_CHECKING:
    from .core import Machine

logger = logging.getLogger(__name__)


class StateRegistry(Mapping):
    """
    Mapping of state name to State for one machine.

    Actions and hooks receive the registry as their first argument, so they
    can name sibling states (``states.CLOSED`` or ``states["CLOSED"]``).
    Returning the registry itself from an action means "stay".

    The registry is filled by the machine builder and read-only afterwards.
    """

    def __init__(self):
        self._states: Dict[str, State] = {}
        self._machine: Optional["Machine"] = None
        self._sealed = False

    def _register(self, state: State):
        if self._sealed:
            raise InvalidStateError(f"Registry is sealed, cannot add state '{state.name}'")
        self._states[state.name] = state

    def _seal(self, machine: "Machine"):
        self._machine = machine
        self._sealed = True

    # Mapping interface
    def __getitem__(self, name: str) -> State:
        return self._states[name]

    def __iter__(self) -> Iterator[str]:
        return iter(self._states)

    def __len__(self) -> int:
        return len(self._states)

    def __getattr__(self, name: str) -> State:
        states = self.__dict__.get('_states')
        if states is not None and name in states:
            return states[name]
        raise AttributeError(f"No state named '{name}'")

    # Mapping.__eq__ compares contents; a registry is only equal to itself
    __eq__ = object.__eq__
    __hash__ = object.__hash__

    def __repr__(self):
        return f"StateRegistry({list(self._states)})"

    # Machine access
    def invoke(self, state_name: str, event: str, *args, **kwargs) -> Any:
        """
        Run a state's raw action (an epsilon call).

        No hooks, listeners or metrics are involved and the return value is
        handed back uninterpreted, so an enclosing dispatch treats it as its
        own result.
        """
        try:
            action = self._states[state_name].action(event)
        except KeyError:
            raise InvalidStateError(
                f"State '{state_name}' has no action '{event}'", state=state_name
            ) from None
        logger.debug(f"Epsilon call: {state_name}.{event}")
        return action(self, *args, **kwargs)

    def get_machine_state(self) -> str:
        return self._require_machine().get_machine_state()

    def get_machine_events(self):
        return self._require_machine().get_machine_events()

    def set_machine_state(self, target: Any, event: Optional[str] = None) -> "StateRegistry":
        """
        Transition through the machine's executor, firing enter/leave hooks
        and listeners. Used by actions that move the machine explicitly.
        """
        self._require_machine()._set_state(target, event)
        return self

    def _require_machine(self) -> "Machine":
        if self._machine is None:
            raise InvalidStateError("Registry is not attached to a machine")
        return self._machine
