"""Integration tests for SyncHistoryLogger."""
from unittest.mock import MagicMock, patch

import pytest
from sqlalchemy.exc import OperationalError

from fieldsync.models.history import Initiator, SyncResult
from fieldsync.models.tracking import SyncDirection, SyncStatus
from fieldsync.tracking.errors import HistoryWriteFailure, InvalidField, TransientStoreError
from fieldsync.tracking.hashing import fingerprint
from fieldsync.tracking.history import SyncHistoryLogger

TENANT = "tid-acme"


class TestLogOperation:
    def test_writes_entry_with_fingerprints(self, history):
        entry = history.log_operation(
            TENANT, "business_info", "phone_number",
            SyncDirection.PUSH, SyncResult.SUCCESS,
            local_before="+1 555 0100",
            google_before="+1 555 0199",
            value_after="+1 555 0100",
            initiated_by="user",
        )
        assert entry.id is not None
        assert entry.local_value_before == fingerprint("+1 555 0100")
        assert entry.google_value_before == fingerprint("+1 555 0199")
        assert entry.value_after == fingerprint("+1 555 0100")
        assert entry.initiated_by == Initiator.USER

    def test_raw_values_are_never_stored(self, history):
        entry = history.log_operation(
            TENANT, "business_info", "website", "pull", "success",
            value_after="https://secret.example/?token=abc",
        )
        assert "secret" not in entry.value_after

    def test_snapshots_omitted_are_null(self, history):
        entry = history.log_operation(TENANT, "hours", "timezone", "compare", "skipped")
        assert entry.local_value_before is None
        assert entry.value_after is None
        assert entry.initiated_by == Initiator.SYSTEM

    def test_explicit_none_snapshot_is_recorded(self, history):
        entry = history.log_operation(
            TENANT, "status", "reopening_date", "pull", "success", value_after=None
        )
        assert entry.value_after == "null"

    def test_whole_category_entry(self, history):
        entry = history.log_operation(TENANT, "media", None, "push", "partial")
        assert entry.field_name is None
        assert entry.sync_status == SyncResult.PARTIAL

    def test_invalid_field_is_a_caller_error(self, history):
        with pytest.raises(InvalidField):
            history.log_operation(TENANT, "media", "banner", "push", "success")

    def test_invalid_result_is_a_caller_error(self, history):
        with pytest.raises(ValueError):
            history.log_operation(TENANT, "media", "logo", "push", "maybe")


class TestFailureIsolation:
    def _logger_with_handler(self, engine, clock, handler):
        history = SyncHistoryLogger(engine, clock=clock, on_failure=handler)
        return history

    def test_write_failure_is_reported_not_raised(self, engine, clock):
        handler = MagicMock()
        history = self._logger_with_handler(engine, clock, handler)
        with patch(
            "fieldsync.tracking.history.Session.commit",
            side_effect=OperationalError("INSERT", {}, Exception("disk full")),
        ):
            result = history.log_operation(TENANT, "hours", "timezone", "push", "success")

        assert result is None
        handler.assert_called_once()
        failure = handler.call_args.args[0]
        assert isinstance(failure, HistoryWriteFailure)
        assert isinstance(failure.__cause__, OperationalError)

    def test_failing_handler_is_contained(self, engine, clock):
        history = self._logger_with_handler(engine, clock, MagicMock(side_effect=RuntimeError("pager down")))
        with patch(
            "fieldsync.tracking.history.Session.commit",
            side_effect=OperationalError("INSERT", {}, Exception("disk full")),
        ):
            assert history.log_operation(TENANT, "hours", "timezone", "push", "success") is None

    def test_transition_survives_history_outage(self, tracker, engine, clock):
        history = SyncHistoryLogger(engine, clock=clock, on_failure=MagicMock())
        record = tracker.update_local_value(TENANT, "hours", "timezone", "UTC")
        with patch(
            "fieldsync.tracking.history.Session.commit",
            side_effect=OperationalError("INSERT", {}, Exception("disk full")),
        ):
            history.log_operation(TENANT, "hours", "timezone", "push", "failed")
        record = tracker.get_record(TENANT, "hours", "timezone")
        assert record.sync_status == SyncStatus.PENDING_PUSH


class TestLogFailure:
    def test_records_failed_entry_and_leaves_record(self, tracker, history):
        tracker.update_local_value(TENANT, "business_info", "website", "https://acme.test")
        before = tracker.get_record(TENANT, "business_info", "website").model_dump()

        entry = history.log_failure(
            TENANT, "business_info", "website", "push", TimeoutError("rate limited"),
            initiated_by=Initiator.WEBHOOK,
        )

        assert entry.sync_status == SyncResult.FAILED
        assert entry.error_code == "TimeoutError"
        assert entry.error_message == "rate limited"
        after = tracker.get_record(TENANT, "business_info", "website").model_dump()
        assert after == before

    def test_explicit_error_code(self, history):
        entry = history.log_failure(
            TENANT, "media", "logo", "pull", RuntimeError("quota"), error_code="QUOTA"
        )
        assert entry.error_code == "QUOTA"


class TestGetHistory:
    def _seed(self, history, n=5, category="hours", field="timezone", tenant=TENANT):
        return [
            history.log_operation(tenant, category, field, "push", "success")
            for _ in range(n)
        ]

    def test_newest_first(self, history):
        entries = self._seed(history)
        result = history.get_history(TENANT)
        assert [e.id for e in result] == [e.id for e in reversed(entries)]

    def test_pagination(self, history):
        entries = list(reversed(self._seed(history, n=5)))
        page = history.get_history(TENANT, limit=2, offset=2)
        assert [e.id for e in page] == [entries[2].id, entries[3].id]

    def test_category_filter(self, history):
        self._seed(history, n=2)
        self._seed(history, n=3, category="media", field="logo")
        assert len(history.get_history(TENANT, category="media")) == 3

    def test_unknown_category_rejected(self, history):
        with pytest.raises(InvalidField):
            history.get_history(TENANT, category="payments")

    def test_tenant_scoped(self, history):
        self._seed(history, n=2, tenant="other")
        assert history.get_history(TENANT) == []

    def test_limit_is_clamped(self, history):
        self._seed(history, n=4)
        with patch("fieldsync.tracking.history.get_settings") as mock_settings:
            mock_settings.return_value.history_default_page_size = 50
            mock_settings.return_value.history_max_page_size = 3
            assert len(history.get_history(TENANT, limit=100)) == 3

    def test_read_errors_propagate(self, history):
        with patch(
            "fieldsync.tracking.history.Session.exec",
            side_effect=OperationalError("SELECT", {}, Exception("locked")),
        ):
            with pytest.raises(TransientStoreError):
                history.get_history(TENANT)
