"""Unit tests for the workflow logger runner."""

import logging
from datetime import datetime, timezone
from unittest.mock import MagicMock

import pytest

from workflow_logger.aggregator import MissingIdentifierError, ReportValidationError
from workflow_logger.db import SinkWriteError
from workflow_logger.models import (
    ExecutionContext,
    LoggerSettings,
    LogFailureResult,
    LogSuccessResult,
)
from workflow_logger.runner import log_workflow_execution, parse_reports


FIXED_NOW = datetime(2026, 1, 15, 8, 30, tzinfo=timezone.utc)


def fixed_clock():
    return FIXED_NOW


@pytest.fixture
def settings():
    return LoggerSettings(database="analytics", table="workflow_logs")


@pytest.fixture
def context():
    return ExecutionContext(workflow_name="Order Import", workflow_mode="trigger")


@pytest.fixture
def reports():
    return [
        {
            "execution": {"runIdentifier": "7", "mode": "monthly"},
            "summary": {"totalInput": 10, "newItems": 3, "eventSummary": {"created": 3}},
            "details": {"sentItems": {"items": [{"id": "a"}, {"id": "b"}]}},
        },
        {
            "execution": {"runIdentifier": "7"},
            "summary": {"totalInput": 5, "exactDuplicates": 2, "eventSummary": {"skipped": 2}},
            "details": {"sentItems": {"items": [{"id": "c"}]}},
        },
    ]


class TestParseReports:
    """Tests for parse_reports."""

    def test_parses_dicts(self, reports):
        parsed = parse_reports(reports)

        assert len(parsed) == 2
        assert parsed[0].summary.total_input == 10

    def test_rejects_negative_counts(self):
        with pytest.raises(ReportValidationError) as exc_info:
            parse_reports([{"summary": {"totalInput": -1}}])

        assert "Report 0" in str(exc_info.value)

    def test_rejects_non_object_report(self):
        with pytest.raises(ReportValidationError):
            parse_reports([{"execution": {"runIdentifier": "1"}}, "not a report"])


class TestLogWorkflowExecution:
    """Tests for log_workflow_execution."""

    def test_success_result(self, reports, settings, context):
        sink = MagicMock()

        result = log_workflow_execution(reports, settings, context, sink, clock=fixed_clock)

        assert isinstance(result, LogSuccessResult)
        assert result.success is True
        assert result.timestamp == FIXED_NOW
        assert result.run_identifier == 7
        assert result.batches_aggregated == 2
        assert result.summary.execution_mode == "monthly"
        assert result.summary.items_processed == 15
        assert result.summary.items_duplicates == 2
        sink.write.assert_called_once_with(result.summary)

    def test_sink_failure_returns_failure_result(self, reports, settings, context):
        sink = MagicMock()
        sink.write.side_effect = SinkWriteError("connection refused")

        result = log_workflow_execution(reports, settings, context, sink, clock=fixed_clock)

        assert isinstance(result, LogFailureResult)
        assert result.success is False
        assert result.error == "connection refused"
        assert result.run_identifier == 7

    def test_plain_ioerror_from_sink_is_handled(self, reports, settings, context):
        sink = MagicMock()
        sink.write.side_effect = IOError("disk full")

        result = log_workflow_execution(reports, settings, context, sink)

        assert result.success is False
        assert result.error == "disk full"

    def test_missing_identifier_returns_failure_without_write(self, settings, context):
        sink = MagicMock()

        result = log_workflow_execution([{"summary": {"totalInput": 3}}], settings, context, sink)

        assert result.success is False
        assert result.run_identifier is None
        assert "run identifier" in result.error
        sink.write.assert_not_called()

    def test_empty_reports_returns_failure_without_write(self, settings, context):
        sink = MagicMock()

        result = log_workflow_execution([], settings, context, sink)

        assert result.success is False
        assert result.run_identifier is None
        sink.write.assert_not_called()

    def test_fail_on_error_raises_missing_identifier(self, context):
        settings = LoggerSettings(database="analytics", fail_on_error=True)
        sink = MagicMock()

        with pytest.raises(MissingIdentifierError):
            log_workflow_execution([], settings, context, sink)

        sink.write.assert_not_called()

    def test_fail_on_error_raises_sink_error(self, reports, context):
        settings = LoggerSettings(database="analytics", fail_on_error=True)
        sink = MagicMock()
        sink.write.side_effect = SinkWriteError("connection refused")

        with pytest.raises(SinkWriteError):
            log_workflow_execution(reports, settings, context, sink)

    def test_explicit_mode_setting(self, reports, context):
        settings = LoggerSettings(database="analytics", execution_mode="regular")

        result = log_workflow_execution(reports, settings, context, MagicMock(), clock=fixed_clock)

        assert result.summary.execution_mode == "regular"

    def test_verbose_logging_emits_record(self, reports, context, caplog):
        settings = LoggerSettings(database="analytics", verbose_logging=True)

        with caplog.at_level(logging.INFO, logger="workflow_logger.runner"):
            result = log_workflow_execution(reports, settings, context, MagicMock(), clock=fixed_clock)

        assert "Logging aggregated data" in caplog.text
        assert '"run_identifier":7' in caplog.text
        assert result.success is True

    def test_verbose_logging_does_not_change_result(self, reports, settings, context):
        verbose = settings.model_copy(update={"verbose_logging": True})

        quiet_result = log_workflow_execution(reports, settings, context, MagicMock(), clock=fixed_clock)
        verbose_result = log_workflow_execution(reports, verbose, context, MagicMock(), clock=fixed_clock)

        assert quiet_result == verbose_result

    def test_result_json_shape(self, reports, settings, context):
        result = log_workflow_execution(reports, settings, context, MagicMock(), clock=fixed_clock)

        payload = result.model_dump(mode="json")

        assert payload["success"] is True
        assert payload["timestamp"].startswith("2026-01-15T08:30:00")
        assert payload["summary"]["execution_type"] == "scheduled"
        assert payload["summary"]["full_details"] == '[{"id":"a"},{"id":"b"},{"id":"c"}]'


class TestStrictReportValidation:
    """Counts are never coerced from other JSON types."""

    @pytest.mark.parametrize("summary", [
        {"totalInput": "10"},
        {"newItems": 2.5},
        {"updatedItems": 3.0},
        {"failedItems": True},
        {"exactDuplicates": None, "totalInput": False},
        {"eventSummary": {"created": "3"}},
        {"eventSummary": {"created": True}},
    ])
    def test_non_integer_counts_rejected(self, summary):
        with pytest.raises(ReportValidationError):
            parse_reports([{"execution": {"runIdentifier": "1"}, "summary": summary}])

    @pytest.mark.parametrize("raw_reports", [5, "reports", {"execution": {"runIdentifier": "1"}}])
    def test_non_list_reports_rejected(self, raw_reports):
        with pytest.raises(ReportValidationError):
            parse_reports(raw_reports)

    def test_coerced_count_returns_failure_without_write(self, settings, context):
        sink = MagicMock()
        raw = [{"execution": {"runIdentifier": "1"}, "summary": {"totalInput": "10"}}]

        result = log_workflow_execution(raw, settings, context, sink)

        assert result.success is False
        assert "Report 0 is invalid" in result.error
        sink.write.assert_not_called()
