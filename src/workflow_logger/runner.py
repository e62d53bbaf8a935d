"""
Run the workflow logger for one invocation.

Validates the incoming reports, folds them into a summary, writes a single
row through the sink and assembles the result object returned to the host.
"""

import logging
from datetime import datetime, timezone
from typing import Any, Callable, Dict, List, Optional, Sequence, Union

from pydantic import ValidationError

from .aggregator import (
    ReportValidationError,
    WorkflowLoggerError,
    aggregate,
    build_log_record,
)
from .db import LogSink
from .models import (
    ExecutionContext,
    LoggerSettings,
    LogFailureResult,
    LogSuccessResult,
    Report,
)

logger = logging.getLogger(__name__)

Clock = Callable[[], datetime]


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


def parse_reports(raw_reports: Sequence[Union[Report, Dict[str, Any]]]) -> List[Report]:
    """
    Validate raw report payloads.

    Raises:
        ReportValidationError: If any payload is malformed
    """
    if not isinstance(raw_reports, (list, tuple)):
        raise ReportValidationError(
            f"Reports must be a list, got: {type(raw_reports).__name__}"
        )

    reports = []
    for index, raw in enumerate(raw_reports):
        if isinstance(raw, Report):
            reports.append(raw)
            continue
        try:
            reports.append(Report.model_validate(raw))
        except ValidationError as e:
            raise ReportValidationError(f"Report {index} is invalid: {e}") from e
    return reports


def log_workflow_execution(
    raw_reports: Sequence[Union[Report, Dict[str, Any]]],
    settings: LoggerSettings,
    context: ExecutionContext,
    sink: LogSink,
    clock: Optional[Clock] = None,
) -> Union[LogSuccessResult, LogFailureResult]:
    """
    Aggregate reports and persist them as one log row.

    Args:
        raw_reports: Report payloads, one per upstream batch
        settings: Target table, mode override and error/verbosity flags
        context: Host workflow name and mode
        sink: Writes the single row
        clock: Source of the result timestamp (defaults to UTC now)

    Returns:
        LogSuccessResult on a successful write, LogFailureResult otherwise

    Raises:
        WorkflowLoggerError, OSError: Only when settings.fail_on_error is set
    """
    clock = clock or _utc_now
    run_identifier: Optional[int] = None

    try:
        reports = parse_reports(raw_reports)
        summary = aggregate(reports, settings.execution_mode.value)
        run_identifier = summary.run_identifier

        record = build_log_record(summary, context)

        if settings.verbose_logging:
            logger.info(f"Workflow Logger - Logging aggregated data: {record.model_dump_json()}")

        sink.write(record)

        return LogSuccessResult(
            timestamp=clock(),
            run_identifier=run_identifier,
            batches_aggregated=len(reports),
            summary=record,
        )

    except (WorkflowLoggerError, OSError) as e:
        if settings.fail_on_error:
            raise

        logger.error(f"Workflow Logger - Error: {e}")

        return LogFailureResult(
            error=str(e),
            run_identifier=run_identifier,
        )
