"""Phase tracking for backup, restore and recovery runs.

Each flow is a small state machine: a table of allowed transitions plus a
tracker that records history and notifies listeners. Executors advance
the tracker; the CLI renders whatever phase it is told about.
"""

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Callable, Dict, FrozenSet, List, Optional

from .errors import InvalidTransition


class Phase(str, Enum):
    IDLE = "idle"
    # backup
    DETECTING = "detecting"
    BACKING_UP = "backing_up"
    SECRETS = "secrets"
    ROTATING = "rotating"
    UPLOADING = "uploading"
    # restore
    RESOLVING = "resolving"
    CONFIRMING = "confirming"
    RESTORING = "restoring"
    # recovery
    PREFLIGHT = "preflight"
    DOCKER = "docker"
    RCLONE = "rclone"
    REMOTE = "remote"
    BASE_DIR = "base_dir"
    DISCOVER = "discover"
    SCHEDULER = "scheduler"
    # terminal
    DONE = "done"
    CANCELLED = "cancelled"
    FAILED = "failed"


TERMINAL_PHASES = frozenset({Phase.DONE, Phase.CANCELLED, Phase.FAILED})


def _table(edges: Dict[Phase, List[Phase]]) -> Dict[Phase, FrozenSet[Phase]]:
    return {source: frozenset(targets) for source, targets in edges.items()}


BACKUP_TRANSITIONS = _table({
    Phase.IDLE: [Phase.DETECTING],
    Phase.DETECTING: [Phase.BACKING_UP],
    Phase.BACKING_UP: [Phase.SECRETS],
    Phase.SECRETS: [Phase.ROTATING],
    Phase.ROTATING: [Phase.UPLOADING, Phase.DONE],
    Phase.UPLOADING: [Phase.DONE],
})

RESTORE_TRANSITIONS = _table({
    Phase.IDLE: [Phase.RESOLVING],
    Phase.RESOLVING: [Phase.CONFIRMING, Phase.DONE],
    Phase.CONFIRMING: [Phase.RESTORING, Phase.CANCELLED],
    Phase.RESTORING: [Phase.DONE],
})

RECOVERY_TRANSITIONS = _table({
    Phase.IDLE: [Phase.PREFLIGHT],
    Phase.PREFLIGHT: [Phase.DOCKER],
    Phase.DOCKER: [Phase.RCLONE],
    Phase.RCLONE: [Phase.REMOTE],
    Phase.REMOTE: [Phase.BASE_DIR],
    Phase.BASE_DIR: [Phase.DISCOVER],
    Phase.DISCOVER: [Phase.CONFIRMING],
    Phase.CONFIRMING: [Phase.SECRETS, Phase.CANCELLED],
    Phase.SECRETS: [Phase.RESTORING],
    Phase.RESTORING: [Phase.SCHEDULER],
    Phase.SCHEDULER: [Phase.DONE],
})


def next_phase(transitions: Dict[Phase, FrozenSet[Phase]], current: Phase, requested: Phase) -> Phase:
    """Transition function: return ``requested`` if it is allowed from ``current``.

    ``FAILED`` is reachable from any non-terminal phase.

    Raises:
        InvalidTransition: If the move is not allowed.
    """
    if current in TERMINAL_PHASES:
        raise InvalidTransition(current.value, requested.value)
    if requested == Phase.FAILED or requested in transitions.get(current, frozenset()):
        return requested
    raise InvalidTransition(current.value, requested.value)


@dataclass
class PhaseChange:
    phase: Phase
    detail: Optional[str] = None
    at: datetime = field(default_factory=datetime.now)


Listener = Callable[[PhaseChange], None]


class PhaseTracker:
    """Records the phases a single run passes through."""

    def __init__(self, flow: str, transitions: Dict[Phase, FrozenSet[Phase]]):
        self.flow = flow
        self.transitions = transitions
        self.current = Phase.IDLE
        self.history: List[PhaseChange] = []
        self._listeners: List[Listener] = []

    def subscribe(self, listener: Listener) -> None:
        self._listeners.append(listener)

    def advance(self, phase: Phase, detail: Optional[str] = None) -> PhaseChange:
        try:
            self.current = next_phase(self.transitions, self.current, phase)
        except InvalidTransition as e:
            raise InvalidTransition(e.current, e.requested, self.flow)

        change = PhaseChange(phase=phase, detail=detail)
        self.history.append(change)
        for listener in self._listeners:
            listener(change)
        return change

    def fail(self, detail: Optional[str] = None) -> PhaseChange:
        return self.advance(Phase.FAILED, detail)

    @property
    def finished(self) -> bool:
        return self.current in TERMINAL_PHASES

    @property
    def phases(self) -> List[Phase]:
        return [change.phase for change in self.history]


def backup_tracker() -> PhaseTracker:
    return PhaseTracker("backup", BACKUP_TRANSITIONS)


def restore_tracker() -> PhaseTracker:
    return PhaseTracker("restore", RESTORE_TRANSITIONS)


def recovery_tracker() -> PhaseTracker:
    return PhaseTracker("recovery", RECOVERY_TRANSITIONS)
