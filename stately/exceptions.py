"""
Exceptions raised by the state machine engine.
"""

from typing import Any, Optional


class StatelyError(Exception):
    """Base class for all state machine errors"""
    pass


class InvalidStateError(StatelyError):
    """
    Raised when a states description is malformed, when no initial state
    can be determined, or when an action resolves to a target that is not
    a registered state.
    """

    def __init__(self, message: str, state: Any = None):
        super().__init__(message)
        self.state = state


class InvalidEventError(StatelyError):
    """Raised in strict mode when the current state does not own an event"""

    def __init__(self, event: str, state: Optional[str]):
        super().__init__(f"Invalid event '{event}' in state '{state}'")
        self.event = event
        self.state = state


class ConfigurationError(StatelyError, ValueError):
    """Raised for unusable machine options or machine definitions"""
    pass
