"""
Core state machine: builder, event dispatch and the transition executor,
with Prometheus metrics and a bounded transition history.
"""

import logging
import re
import time
from collections import deque
from typing import Any, Callable, Deque, Dict, List, Mapping, Optional

from prometheus_client import CollectorRegistry, Counter, Histogram, Info
from prometheus_client import Enum as PrometheusEnum

from .config import MachineOptions
from .exceptions import ConfigurationError, InvalidEventError, InvalidStateError
from .models import (
    HOOK_PREFIXES,
    GoTo,
    GoToNamed,
    HookFn,
    HookKey,
    HookKind,
    Listener,
    State,
    Stay,
    TransitionRecord,
    classify_state_hook,
)
from .registry import StateRegistry

logger = logging.getLogger(__name__)

_EVENT_HOOKS = (HookKind.BEFORE_EVENT, HookKind.AFTER_EVENT)


def _shorthand(target: str) -> Callable[..., GoToNamed]:
    """Action for a ``event: "TARGET"`` entry"""
    def action(states, *args, **kwargs):
        return GoToNamed(target)
    action.target = target
    return action


class Machine:
    """
    A finite state machine built from a states description.

    Every event found in the description is exposed as a method
    (``door.close()``). Calling it runs the action the current state
    defines for that event and moves the machine to the state the action
    returns. Events whose names collide with machine attributes are still
    reachable through ``trigger()``.

    Features:
    - Event chains shared between states, resolved on the current state
    - State-level and machine-level lifecycle hooks
    - Multiple notification listeners (``bind`` / ``unbind``)
    - Prometheus metrics and a bounded transition history
    """

    def __init__(self,
                 states: Any,
                 options: Any = None,
                 **overrides):
        """
        Build a state machine.

        Args:
            states: Mapping of state name to ``{event_or_hook: callable | "TARGET"}``,
                or a zero-argument callable returning one
            options: Transition callback, initial state name, option mapping
                or MachineOptions
            **overrides: Individual options, applied on top of ``options``
        """
        self.options = MachineOptions.from_value(options, **overrides)
        self.name = self.options.name
        self.states = StateRegistry()
        self.current_state: Optional[State] = None

        # event name -> owning state names, in registration order
        self._chains: Dict[str, List[str]] = {}
        self._dispatchers: Dict[str, Callable[..., Any]] = {}
        self._hooks: Dict[HookKey, HookFn] = {}
        self._listeners: List[Listener] = []
        self._history: Deque[TransitionRecord] = deque(maxlen=self.options.history_size)

        if self.options.on_transition is not None:
            self._listeners.append(self.options.on_transition)

        self._build(states)
        self._initial_name = self.current_state.name
        self._build_machine_hooks()
        self._init_metrics()
        self._warn_shadowed_events()
        self.states._seal(self)

        initial = self.options.initial_state
        if initial is not None:
            if initial in self.states:
                self._set_state(initial)
            else:
                logger.warning(f"[{self.name}] Ignoring unknown initial state '{initial}'")

        logger.debug(
            f"[{self.name}] Built machine with states {list(self.states)}, "
            f"initial state {self.current_state.name}"
        )

    # Builder

    def _build(self, description: Any):
        """Register every state and wire its events in a single pass"""
        if callable(description) and not isinstance(description, Mapping):
            description = description()

        if not isinstance(description, Mapping):
            raise InvalidStateError(f"Invalid states description: {description!r}")
        if not description:
            raise InvalidStateError("States description contains no states")

        for state_name, body in description.items():
            if not isinstance(state_name, str) or not state_name:
                raise InvalidStateError(f"Invalid state name: {state_name!r}", state=state_name)
            if not isinstance(body, Mapping):
                raise InvalidStateError(
                    f"State '{state_name}' must be a mapping, got {type(body).__name__}",
                    state=state_name
                )

            actions = {}
            hooks = {}
            for entry_name, value in body.items():
                if isinstance(value, str):
                    actions[entry_name] = _shorthand(value)
                elif callable(value):
                    key = classify_state_hook(entry_name)
                    if key is not None:
                        hooks[key] = value
                    else:
                        actions[entry_name] = value
                else:
                    raise InvalidStateError(
                        f"Entry '{state_name}.{entry_name}' must be a callable or a state name",
                        state=state_name
                    )

            state = State(name=state_name, actions=actions, hooks=hooks)
            self.states._register(state)

            for event in state.actions:
                self._chain_event(event, state_name)

            if self.current_state is None:
                self.current_state = state

        if self.current_state is None:
            raise InvalidStateError("Invalid initial state")

    def _chain_event(self, event: str, state_name: str):
        if event not in self._chains:
            self._chains[event] = []
            self._dispatchers[event] = self._make_dispatcher(event)
        self._chains[event].append(state_name)
        logger.debug(f"[{self.name}] Chained event {event} for state {state_name}")

    def _make_dispatcher(self, event: str) -> Callable[..., Any]:
        def dispatcher(*args, **kwargs):
            return self.trigger(event, *args, **kwargs)
        dispatcher.__name__ = event
        dispatcher.__qualname__ = f"{type(self).__name__}.{event}"
        return dispatcher

    def _warn_shadowed_events(self):
        """Runs once every instance attribute exists"""
        for event in self._chains:
            if event in self.__dict__ or hasattr(type(self), event):
                logger.warning(
                    f"[{self.name}] Event '{event}' is shadowed by a machine attribute, "
                    f"use trigger('{event}')"
                )

    def _build_machine_hooks(self):
        """Parse machine-level hook names into the hook table"""
        events = {event.lower() for event in self._chains}
        state_names = {name.lower() for name in self.states}
        explicit: Dict[HookKey, HookFn] = {}
        aliases: Dict[HookKey, HookFn] = {}

        for hook_name, hook in self.options.hooks.items():
            lowered = hook_name.lower()
            for prefix, kind in HOOK_PREFIXES:
                if lowered.startswith(prefix) and len(lowered) > len(prefix):
                    explicit[HookKey(kind, lowered[len(prefix):])] = hook
                    break
            else:
                subject = lowered[2:] if lowered.startswith("on") else ""
                if subject not in events and subject not in state_names:
                    raise ConfigurationError(f"Unknown machine hook: '{hook_name}'")
                if subject in events:
                    aliases[HookKey(HookKind.AFTER_EVENT, subject)] = hook
                if subject in state_names:
                    aliases[HookKey(HookKind.ENTER, subject)] = hook

        aliases.update(explicit)
        self._hooks = aliases

    def _init_metrics(self):
        """Initialize Prometheus metrics"""
        if not self.options.metrics:
            self.metrics_registry = None
            return

        self.metrics_registry = self.options.metrics_registry or CollectorRegistry()
        metric_name = self._metric_name = re.sub(r'\W', '_', self.name.lower())
        if metric_name[0].isdigit():
            metric_name = self._metric_name = f"_{metric_name}"
        registry = self.metrics_registry

        # Current state as enum metric
        self.state_metric = PrometheusEnum(
            f'{metric_name}_state',
            f'Current state of {self.name}',
            states=list(self.states),
            registry=registry
        )
        self.state_metric.state(self.current_state.name)

        # Events per state, by outcome
        self.event_counter = Counter(
            f'{metric_name}_events_total',
            'Events dispatched, per state',
            labelnames=['state', 'event', 'outcome'],
            registry=registry
        )

        # Transition counter
        self.transition_counter = Counter(
            f'{metric_name}_transitions_total',
            'Total state transitions',
            labelnames=['from_state', 'to_state', 'trigger'],
            registry=registry
        )

        # Dispatch latency, action and hooks included
        self.dispatch_latency = Histogram(
            f'{metric_name}_dispatch_latency_seconds',
            'Latency of event dispatch',
            labelnames=['event'],
            buckets=(0.0001, 0.0005, 0.001, 0.005, 0.01, 0.05, 0.1, 0.5, 1),
            registry=registry
        )

        # Last transition
        self.state_info = Info(
            f'{metric_name}_last_transition',
            'Last transition details',
            registry=registry
        )

    # Event dispatch

    def trigger(self, event: str, *args, **kwargs) -> Any:
        """
        Dispatch an event to the current state's action.

        Returns the machine unless the action returned a value alongside
        its target state.
        """
        started = time.perf_counter()
        owner = self._find_owner(event)

        if owner is None:
            return self._reject(event)

        self._count(event, owner.name, 'handled')
        logger.debug(f"[{self.name}] Dispatching {event} in state {owner.name}")

        self._run_hooks(HookKind.BEFORE_EVENT, owner, event, event, owner.name, owner.name)

        result = self._to_result(owner.action(event)(self.states, *args, **kwargs))
        target = self._target_of(result)

        self._run_hooks(HookKind.AFTER_EVENT, owner, event,
                        event, self.current_state.name, self._name_of(target))

        self._set_state(target, event, started)

        if self.metrics_registry is not None:
            self.dispatch_latency.labels(event=event).observe(time.perf_counter() - started)

        return result.value or self

    def _find_owner(self, event: str) -> Optional[State]:
        """Walk the event chain for the state that is current"""
        for state_name in self._chains.get(event, ()):
            state = self.states[state_name]
            if state is self.current_state:
                return state
        return None

    def _reject(self, event: str) -> "Machine":
        state_name = self.current_state.name
        if self.options.invalid_event_errors:
            self._count(event, state_name, 'rejected')
            raise InvalidEventError(event, state_name)

        self._count(event, state_name, 'ignored')
        logger.debug(f"[{self.name}] No action for {event} in state {state_name}")
        return self

    def _to_result(self, value: Any):
        """Translate an action's return value into Stay / GoTo / GoToNamed"""
        if value is None or value is self.states:
            return Stay()
        if isinstance(value, (Stay, GoTo, GoToNamed)):
            return value
        if isinstance(value, str):
            return GoToNamed(value)
        if isinstance(value, (tuple, list)) and value:
            target = value[0]
            result_value = value[1] if len(value) > 1 else None
            if target is None or target is self.states:
                return Stay(result_value)
            if isinstance(target, str):
                return GoToNamed(target, result_value)
            return GoTo(target, result_value)
        return GoTo(value)

    # Transition executor

    def _target_of(self, result) -> Any:
        """Unvalidated target; Stay means the state current after the action"""
        if isinstance(result, Stay):
            return self.current_state
        if isinstance(result, GoToNamed):
            return result.name
        return result.state

    @staticmethod
    def _name_of(target: Any) -> Optional[str]:
        if isinstance(target, str):
            return target
        return getattr(target, 'name', None)

    def _validate(self, candidate: Any) -> State:
        """Return the registered state for a candidate or raise InvalidStateError"""
        if isinstance(candidate, str):
            state = self.states.get(candidate)
            if state is None:
                raise InvalidStateError(
                    f"Transitioned into invalid state: '{candidate}'", state=candidate
                )
            return state

        name = getattr(candidate, 'name', None)
        if not candidate or not isinstance(name, str) or self.states.get(name) is not candidate:
            raise InvalidStateError(
                f"Transitioned into invalid state: {candidate!r}", state=candidate
            )
        return candidate

    def _set_state(self, target: Any, event: Optional[str] = None,
                   started: Optional[float] = None):
        """The only place the current state changes"""
        next_state = self._validate(target)
        if next_state is self.current_state:
            return

        last_state = self.current_state
        self._run_hooks(HookKind.LEAVE, last_state, last_state.name,
                        event, last_state.name, next_state.name)

        self.current_state = next_state
        self._record_transition(last_state, next_state, event, started)
        logger.info(f"[{self.name}] Transitioned: {last_state.name} -> {next_state.name} via {event}")

        self._run_hooks(HookKind.ENTER, next_state, next_state.name,
                        event, last_state.name, next_state.name)

        for listener in list(self._listeners):
            listener(event, last_state.name, next_state.name)

    def _run_hooks(self, kind: HookKind, state: State, subject: str,
                   event: Optional[str], old: str, new: str):
        """Fire the state's own hook, then the machine-level one"""
        state_hook = state.hook(kind, subject if kind in _EVENT_HOOKS else None)
        if state_hook is not None:
            state_hook(self.states, event, old, new)

        machine_hook = self._hooks.get(HookKey(kind, subject.lower()))
        if machine_hook is not None:
            machine_hook(self.states, event, old, new)

    def _record_transition(self, from_state: State, to_state: State,
                           event: Optional[str], started: Optional[float]):
        """Record transition in metrics and history"""
        latency = time.perf_counter() - started if started is not None else 0.0
        record = TransitionRecord(
            event=event,
            from_state=from_state.name,
            to_state=to_state.name,
            latency_ms=latency * 1000
        )
        self._history.append(record)

        if self.metrics_registry is None:
            return

        self.state_metric.state(to_state.name)
        self.transition_counter.labels(
            from_state=from_state.name,
            to_state=to_state.name,
            trigger=event or ''
        ).inc()
        self.state_info.info({
            'state': to_state.name,
            'previous_state': from_state.name,
            'trigger': event or '',
            'timestamp': str(int(record.timestamp.timestamp()))
        })

    def _count(self, event: str, state_name: str, outcome: str):
        if self.metrics_registry is not None:
            self.event_counter.labels(state=state_name, event=event, outcome=outcome).inc()

    # Notification listeners

    def bind(self, callback: Optional[Listener] = None) -> "Machine":
        """Register a listener called with (event, old_state, new_state)"""
        if callback:
            self._listeners.append(callback)
        return self

    def unbind(self, callback: Optional[Listener] = None) -> "Machine":
        """Remove a listener, or every listener when called without one"""
        if callback is None:
            self._listeners.clear()
        else:
            self._listeners = [listener for listener in self._listeners if listener != callback]
        return self

    # Public API for introspection

    def get_machine_state(self) -> str:
        """Get current state name"""
        return self.current_state.name

    def get_machine_events(self) -> List[str]:
        """Get events the current state defines"""
        return self.current_state.events

    def get_event_chain(self, event: str) -> List[str]:
        """Get the states owning an event, in registration order"""
        return list(self._chains.get(event, ()))

    @property
    def events(self) -> List[str]:
        """All events discovered across states"""
        return list(self._chains)

    def get_history(self, limit: int = 10) -> List[Dict[str, Any]]:
        """Get state transition history"""
        if limit <= 0:
            return []
        return [record.to_dict() for record in list(self._history)[-limit:]]

    def get_event_count(self, event: str, state: Optional[str] = None,
                        outcome: str = 'handled') -> int:
        """Read back how often an event was dispatched, per state or in total"""
        if self.metrics_registry is None:
            return 0

        state_names = [state] if state is not None else list(self.states)
        total = 0.0
        for state_name in state_names:
            value = self.metrics_registry.get_sample_value(
                f'{self._metric_name}_events_total',
                {'state': state_name, 'event': event, 'outcome': outcome}
            )
            total += value or 0.0
        return int(total)

    def visualize(self) -> str:
        """Generate state diagram in PlantUML format"""
        lines = ["@startuml", f"title {self.name} State Machine", ""]

        lines.append(f"[*] --> {self._initial_name}")
        for state in self.states.values():
            if state is self.current_state:
                lines.append(f"state {state.name} #yellow : Current State")
            else:
                lines.append(f"state {state.name}")
            for event, action in state.actions.items():
                if getattr(action, 'target', None) is None:
                    lines.append(f"{state.name} : {event}()")

        lines.append("")

        # Only shorthand transitions have a known target
        for state in self.states.values():
            for event, action in state.actions.items():
                target = getattr(action, 'target', None)
                if target is not None:
                    lines.append(f"{state.name} --> {target} : {event}")

        lines.append("@enduml")
        return "\n".join(lines)

    def __getattr__(self, name: str) -> Callable[..., Any]:
        dispatchers = self.__dict__.get('_dispatchers')
        if dispatchers is not None and name in dispatchers:
            return dispatchers[name]
        raise AttributeError(f"'{type(self).__name__}' has no event or attribute '{name}'")

    def __dir__(self):
        return sorted(set(super().__dir__()) | set(self.__dict__.get('_dispatchers', ())))

    def __repr__(self):
        state = self.current_state.name if self.current_state else None
        return f"<Machine {self.name} state={state}>"


def machine(states: Any, options: Any = None, **overrides) -> Machine:
    """Build a state machine, see :class:`Machine`"""
    return Machine(states, options, **overrides)
