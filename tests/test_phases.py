import pytest

from homelab_backup.core.errors import InvalidTransition
from homelab_backup.core.phases import (
    BACKUP_TRANSITIONS,
    Phase,
    backup_tracker,
    next_phase,
    recovery_tracker,
    restore_tracker,
)


def test_restore_happy_path_and_listener():
    tracker = restore_tracker()
    seen = []
    tracker.subscribe(lambda change: seen.append((change.phase, change.detail)))

    tracker.advance(Phase.RESOLVING, "radarr")
    tracker.advance(Phase.CONFIRMING)
    tracker.advance(Phase.RESTORING)
    tracker.advance(Phase.DONE)

    assert tracker.finished
    assert seen[0] == (Phase.RESOLVING, "radarr")
    assert tracker.phases == [Phase.RESOLVING, Phase.CONFIRMING, Phase.RESTORING, Phase.DONE]


def test_illegal_transition_is_rejected():
    tracker = backup_tracker()
    tracker.advance(Phase.DETECTING)
    with pytest.raises(InvalidTransition) as excinfo:
        tracker.advance(Phase.UPLOADING)
    assert "backup" in str(excinfo.value)
    assert tracker.current == Phase.DETECTING


def test_recovery_cannot_skip_secrets():
    tracker = recovery_tracker()
    for phase in (Phase.PREFLIGHT, Phase.DOCKER, Phase.RCLONE, Phase.REMOTE,
                  Phase.BASE_DIR, Phase.DISCOVER, Phase.CONFIRMING):
        tracker.advance(phase)
    with pytest.raises(InvalidTransition):
        tracker.advance(Phase.RESTORING)


def test_failed_reachable_from_every_non_terminal_phase():
    for phase in BACKUP_TRANSITIONS:
        assert next_phase(BACKUP_TRANSITIONS, phase, Phase.FAILED) == Phase.FAILED


def test_terminal_phases_are_final():
    for terminal in (Phase.DONE, Phase.CANCELLED, Phase.FAILED):
        with pytest.raises(InvalidTransition):
            next_phase(BACKUP_TRANSITIONS, terminal, Phase.FAILED)
