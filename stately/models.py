"""
Data models for states, hooks, action results and transition records.
"""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from types import MappingProxyType
from typing import Any, Callable, Mapping, NamedTuple, Optional

from typing_extensions import TypeAlias


ActionFn: TypeAlias = Callable[..., Any]
HookFn: TypeAlias = Callable[[Any, Optional[str], str, str], Any]
Listener: TypeAlias = Callable[[Optional[str], str, str], Any]


class HookKind(Enum):
    """Lifecycle hook kinds"""
    BEFORE_EVENT = "before"  # Before an event's action runs
    AFTER_EVENT = "after"    # After the action, before the commit
    ENTER = "enter"          # After the commit, on the new state
    LEAVE = "leave"          # Before the commit, on the old state


class HookKey(NamedTuple):
    """
    Key of a hook table entry.

    ``subject`` is the lower-cased event name for event hooks. For enter and
    leave hooks it is ``None`` in a state's own table and the lower-cased
    state name in the machine-level table.
    """
    kind: HookKind
    subject: Optional[str] = None


# Checked before the generic ``on<name>`` alias.
HOOK_PREFIXES = (
    ("onbefore", HookKind.BEFORE_EVENT),
    ("onafter", HookKind.AFTER_EVENT),
    ("onenter", HookKind.ENTER),
    ("onleave", HookKind.LEAVE),
)


def classify_state_hook(entry_name: str) -> Optional[HookKey]:
    """
    Classify a state description entry as a hook.

    Returns the hook key for ``onEnter``, ``onLeave``, ``onBefore<X>`` and
    ``onAfter<X>`` (case-insensitive), ``None`` for anything else.
    """
    lowered = entry_name.lower()
    if lowered == "onenter":
        return HookKey(HookKind.ENTER)
    if lowered == "onleave":
        return HookKey(HookKind.LEAVE)
    for prefix, kind in HOOK_PREFIXES[:2]:
        if lowered.startswith(prefix) and len(lowered) > len(prefix):
            return HookKey(kind, lowered[len(prefix):])
    return None


@dataclass(eq=False)
class State:
    """
    A named bundle of event actions and lifecycle hooks.

    States compare by identity. ``actions`` and ``hooks`` are read-only
    views once the state is built.
    """
    name: str
    actions: Mapping[str, ActionFn] = field(default_factory=dict)
    hooks: Mapping[HookKey, HookFn] = field(default_factory=dict)

    def __post_init__(self):
        self.actions = MappingProxyType(dict(self.actions))
        self.hooks = MappingProxyType(dict(self.hooks))

    @property
    def events(self):
        """Event names owned by this state, in description order"""
        return list(self.actions)

    def owns(self, event: str) -> bool:
        return event in self.actions

    def action(self, event: str) -> ActionFn:
        """Raw action for an event. Raises KeyError if not owned."""
        return self.actions[event]

    def hook(self, kind: HookKind, subject: Optional[str] = None) -> Optional[HookFn]:
        if subject is not None:
            subject = subject.lower()
        return self.hooks.get(HookKey(kind, subject))

    def __repr__(self):
        return f"State({self.name!r}, events={self.events})"


# Tagged action results

@dataclass(frozen=True)
class Stay:
    """Remain in the current state"""
    value: Any = None


@dataclass(frozen=True)
class GoTo:
    """Transition into a state object (validated before commit)"""
    state: Any
    value: Any = None


@dataclass(frozen=True)
class GoToNamed:
    """Transition into the state registered under ``name``"""
    name: str
    value: Any = None


@dataclass
class TransitionRecord:
    """A committed transition"""
    event: Optional[str]
    from_state: str
    to_state: str
    timestamp: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    latency_ms: float = 0.0

    def to_dict(self):
        return {
            'timestamp': self.timestamp.isoformat(),
            'from': self.from_state,
            'to': self.to_state,
            'trigger': self.event,
            'latency_ms': self.latency_ms,
        }
