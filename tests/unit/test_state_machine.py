"""Tests for the pure sync state transitions."""
from datetime import datetime, timedelta

import pytest

from fieldsync.models.tracking import (
    ConflictResolution,
    SyncDirection,
    SyncRecord,
    SyncStatus,
)
from fieldsync.tracking import state_machine as sm
from fieldsync.tracking.hashing import fingerprint

T0 = datetime(2025, 1, 15, 9, 0)


def at(seconds: int) -> datetime:
    return T0 + timedelta(seconds=seconds)


H_A = fingerprint("A")
H_B = fingerprint("B")
H_C = fingerprint("C")


class TestLocalChanged:
    def test_blank_record_goes_pending_push(self):
        state = sm.local_changed(sm.FieldState(), H_A, at(1))
        assert state.sync_status == SyncStatus.PENDING_PUSH
        assert state.local_value_hash == H_A
        assert state.local_updated_at == at(1)
        assert state.google_value_hash is None

    def test_matching_remote_hash_is_synced(self):
        state = sm.FieldState(google_value_hash=H_A, google_updated_at=at(1))
        state = sm.local_changed(state, H_A, at(2))
        assert state.sync_status == SyncStatus.SYNCED
        assert state.last_agreed_at == at(2)
        assert state.last_sync_at is None

    def test_remote_changed_since_last_sync_is_conflict(self):
        state = sm.FieldState(
            google_value_hash=H_B, google_updated_at=at(5), last_sync_at=at(3)
        )
        state = sm.local_changed(state, H_A, at(6))
        assert state.sync_status == SyncStatus.CONFLICT
        assert state.conflict_detected_at == at(6)

    def test_remote_older_than_last_sync_is_pending_push(self):
        state = sm.FieldState(
            google_value_hash=H_B, google_updated_at=at(2), last_sync_at=at(3)
        )
        state = sm.local_changed(state, H_A, at(6))
        assert state.sync_status == SyncStatus.PENDING_PUSH
        assert state.conflict_detected_at is None

    def test_equal_timestamps_are_not_newer(self):
        state = sm.FieldState(
            google_value_hash=H_B, google_updated_at=at(3), last_sync_at=at(3)
        )
        assert sm.local_changed(state, H_A, at(6)).sync_status == SyncStatus.PENDING_PUSH

    def test_never_agreed_with_remote_value_is_conflict(self):
        state = sm.remote_changed(sm.FieldState(), H_B, at(1))
        state = sm.local_changed(state, H_A, at(2))
        assert state.sync_status == SyncStatus.CONFLICT

    def test_does_not_touch_remote_side(self):
        state = sm.FieldState(google_value_hash=H_B, google_updated_at=at(1), last_sync_at=at(2))
        state = sm.local_changed(state, H_A, at(3))
        assert state.google_value_hash == H_B
        assert state.google_updated_at == at(1)


class TestRemoteChanged:
    def test_blank_record_goes_pending_pull(self):
        state = sm.remote_changed(sm.FieldState(), H_A, at(1))
        assert state.sync_status == SyncStatus.PENDING_PULL
        assert state.google_value_hash == H_A
        assert state.google_updated_at == at(1)

    def test_matching_local_hash_is_synced(self):
        state = sm.local_changed(sm.FieldState(), H_A, at(1))
        state = sm.remote_changed(state, H_A, at(2))
        assert state.sync_status == SyncStatus.SYNCED

    def test_local_changed_since_agreement_is_conflict(self):
        state = sm.mark_synced(sm.FieldState(), SyncDirection.PUSH, H_A, at(1))
        state = sm.local_changed(state, H_B, at(2))
        state = sm.remote_changed(state, H_C, at(3))
        assert state.sync_status == SyncStatus.CONFLICT
        assert state.conflict_detected_at == at(3)

    def test_after_sync_remote_edit_is_pending_pull(self):
        state = sm.mark_synced(sm.FieldState(), SyncDirection.PUSH, H_A, at(1))
        state = sm.remote_changed(state, H_B, at(2))
        assert state.sync_status == SyncStatus.PENDING_PULL


class TestMarkSynced:
    def test_sets_everything(self):
        state = sm.FieldState(
            local_value_hash=H_A,
            google_value_hash=H_B,
            sync_status=SyncStatus.CONFLICT,
            conflict_detected_at=at(1),
            conflict_resolution=ConflictResolution.MANUAL,
        )
        state = sm.mark_synced(state, SyncDirection.PULL, H_B, at(5))
        assert state.local_value_hash == state.google_value_hash == H_B
        assert state.last_sync_at == at(5)
        assert state.last_sync_direction == SyncDirection.PULL
        assert state.sync_status == SyncStatus.SYNCED
        assert state.conflict_detected_at is None
        assert state.conflict_resolution is None

    def test_keeps_existing_update_times(self):
        state = sm.FieldState(local_updated_at=at(1), google_updated_at=at(2))
        state = sm.mark_synced(state, SyncDirection.PUSH, H_A, at(5))
        assert state.local_updated_at == at(1)
        assert state.google_updated_at == at(2)


class TestResolveConflict:
    @pytest.mark.parametrize(
        "resolution,direction",
        [
            (ConflictResolution.LOCAL_WINS, SyncDirection.PUSH),
            (ConflictResolution.GOOGLE_WINS, SyncDirection.PULL),
            (ConflictResolution.MANUAL, SyncDirection.PULL),
        ],
    )
    def test_direction_follows_resolution(self, resolution, direction):
        state = sm.FieldState(sync_status=SyncStatus.CONFLICT, conflict_detected_at=at(1))
        state = sm.resolve_conflict(state, resolution, H_C, at(2))
        assert state.last_sync_direction == direction
        assert state.conflict_resolution == resolution

    def test_closes_conflict(self):
        state = sm.FieldState(
            local_value_hash=H_A,
            google_value_hash=H_B,
            sync_status=SyncStatus.CONFLICT,
            conflict_detected_at=at(1),
        )
        state = sm.resolve_conflict(state, ConflictResolution.LOCAL_WINS, H_A, at(2))
        assert state.local_value_hash == state.google_value_hash == H_A
        assert state.sync_status == SyncStatus.SYNCED
        assert state.last_sync_at == at(2)

    def test_keeps_detection_time(self):
        state = sm.FieldState(sync_status=SyncStatus.CONFLICT, conflict_detected_at=at(1))
        state = sm.resolve_conflict(state, ConflictResolution.MANUAL, H_C, at(2))
        assert state.conflict_detected_at == at(1)
        assert state.conflict_resolution == ConflictResolution.MANUAL


class TestProperties:
    def test_hash_fidelity_over_a_sequence(self):
        state = sm.FieldState()
        events = [("local", "A"), ("remote", "B"), ("local", "C"), ("remote", "A"), ("local", "B")]
        last = {}
        for i, (side, value) in enumerate(events):
            fn = sm.local_changed if side == "local" else sm.remote_changed
            state = fn(state, fingerprint(value), at(i))
            last[side] = value
        assert state.local_value_hash == fingerprint(last["local"])
        assert state.google_value_hash == fingerprint(last["remote"])

    @pytest.mark.parametrize("status", list(SyncStatus))
    def test_convergence_from_any_status(self, status):
        state = sm.FieldState(
            sync_status=status,
            google_value_hash=H_A,
            google_updated_at=at(10),
            last_sync_at=at(1),
        )
        assert sm.local_changed(state, H_A, at(11)).sync_status == SyncStatus.SYNCED

    def test_no_false_conflict_after_implicit_agreement(self):
        state = sm.local_changed(sm.FieldState(), H_A, at(1))
        state = sm.remote_changed(state, H_A, at(2))
        state = sm.local_changed(state, H_B, at(3))
        assert state.sync_status == SyncStatus.PENDING_PUSH

    def test_transitions_do_not_mutate_input(self):
        state = sm.FieldState()
        sm.local_changed(state, H_A, at(1))
        assert state == sm.FieldState()


class TestClockSkew:
    """The conflict check compares wall-clock times from two reporters."""

    def test_remote_clock_behind_hides_a_real_conflict(self):
        state = sm.mark_synced(sm.FieldState(), SyncDirection.PUSH, H_A, at(10))
        # Remote edit happened after the sync, but its reporter's clock lags
        state = sm.remote_changed(state, H_B, at(8))
        state = sm.local_changed(state, H_C, at(12))
        assert state.sync_status == SyncStatus.PENDING_PUSH

    def test_same_events_with_accurate_clock_conflict(self):
        state = sm.mark_synced(sm.FieldState(), SyncDirection.PUSH, H_A, at(10))
        state = sm.remote_changed(state, H_B, at(11))
        state = sm.local_changed(state, H_C, at(12))
        assert state.sync_status == SyncStatus.CONFLICT


class TestFieldStateRoundTrip:
    def test_from_none_is_unknown(self):
        assert sm.FieldState.from_record(None).sync_status == SyncStatus.UNKNOWN

    def test_apply_to_record(self):
        record = SyncRecord(tenant_id="t", field_category="hours", field_name="timezone")
        state = sm.local_changed(sm.FieldState.from_record(record), H_A, at(1))
        state.apply_to(record)
        assert record.sync_status == SyncStatus.PENDING_PUSH
        assert record.local_value_hash == H_A
