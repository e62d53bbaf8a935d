"""Fold per-batch execution reports into one run summary."""

import json
import re
from typing import Any, Dict, List, Optional, Sequence

from .models import (
    ExecutionContext,
    ExecutionInfo,
    ExecutionModeEnum,
    ExecutionTypeEnum,
    LogRecord,
    Report,
    RunTotals,
    StatusEnum,
    Summary,
)

DEFAULT_MODE = "regular"
UNKNOWN_WORKFLOW = "Unknown"

_INTEGER_PATTERN = re.compile(r"^\s*[+-]?\d+\s*$")


class WorkflowLoggerError(Exception):
    """Base error for input that cannot be logged."""


class ReportValidationError(WorkflowLoggerError):
    """A report does not have the expected shape."""


class MissingIdentifierError(WorkflowLoggerError):
    """The first report carries no usable run identifier."""

    def __init__(self, message: Optional[str] = None):
        super().__init__(
            message
            or "Could not extract run identifier from input data. "
               "Make sure the first report carries execution information."
        )


def parse_run_identifier(value: Any) -> int:
    """
    Parse a run identifier taken from a report.

    Accepts an int or a base-10 integer string. Zero counts as missing.

    Raises:
        MissingIdentifierError: If the value is absent or not an integer
    """
    if isinstance(value, bool):
        raise MissingIdentifierError(f"Run identifier must be an integer, got: {value!r}")
    if isinstance(value, int):
        parsed = value
    elif isinstance(value, str) and _INTEGER_PATTERN.match(value):
        parsed = int(value)
    elif value is None:
        raise MissingIdentifierError()
    else:
        raise MissingIdentifierError(f"Run identifier must be an integer, got: {value!r}")

    if parsed == 0:
        raise MissingIdentifierError()
    return parsed


def resolve_mode(execution_mode: str, first_execution: Optional[ExecutionInfo]) -> str:
    """
    Resolve the execution mode recorded for the run.

    "auto" takes the first report's mode, falling back to "regular".
    Any other setting is used as given.
    """
    setting = ExecutionModeEnum(execution_mode)
    if setting is not ExecutionModeEnum.AUTO:
        return setting.value
    if first_execution is not None and first_execution.mode:
        return first_execution.mode
    return DEFAULT_MODE


def aggregate(
    reports: Sequence[Report],
    execution_mode: str = ExecutionModeEnum.AUTO.value,
) -> Summary:
    """
    Fold reports into a single run summary.

    Counters and event counts are summed, failures are sticky, and sent
    items are concatenated in report order. Identity and auto-detected
    mode come from the first report.

    Args:
        reports: Validated reports, in arrival order
        execution_mode: "auto", "regular" or "monthly"

    Returns:
        Summary: Frozen summary of the run

    Raises:
        MissingIdentifierError: If there are no reports or the first one
            lacks a parseable run identifier
    """
    processed = 0
    new = 0
    duplicates = 0
    updated = 0
    event_summary: Dict[str, int] = {}
    has_failures = False
    all_items: List[Any] = []
    first_execution: Optional[ExecutionInfo] = None
    run_identifier: Optional[int] = None

    for index, report in enumerate(reports):
        summary = report.summary

        if index == 0:
            first_execution = report.execution
            raw_identifier = first_execution.run_identifier if first_execution else None
            run_identifier = parse_run_identifier(raw_identifier)

        if summary is not None:
            processed += summary.total_input or 0
            new += summary.new_items or 0
            duplicates += summary.exact_duplicates or 0
            updated += summary.updated_items or 0

            if (summary.failed_items or 0) > 0:
                has_failures = True

            for event, count in (summary.event_summary or {}).items():
                event_summary[event] = event_summary.get(event, 0) + count

        sent_items = report.details.sent_items if report.details else None
        if sent_items is not None and sent_items.items:
            all_items.extend(sent_items.items)

    if run_identifier is None:
        # no report 0
        raise MissingIdentifierError()

    return Summary(
        run_identifier=run_identifier,
        mode=resolve_mode(execution_mode, first_execution),
        totals=RunTotals(
            processed=processed,
            new=new,
            duplicates=duplicates,
            updated=updated,
        ),
        event_summary=event_summary,
        has_failures=has_failures,
        all_items=all_items,
        batches_aggregated=len(reports),
    )


def build_log_record(summary: Summary, context: ExecutionContext) -> LogRecord:
    """
    Flatten a summary into the row written to the log table.

    Args:
        summary: Aggregated run summary
        context: Host workflow name and mode

    Returns:
        LogRecord: Row with event counts and sent items as JSON text
    """
    if context.workflow_mode == ExecutionTypeEnum.MANUAL.value:
        execution_type = ExecutionTypeEnum.MANUAL
    else:
        execution_type = ExecutionTypeEnum.SCHEDULED

    return LogRecord(
        run_identifier=summary.run_identifier,
        execution_mode=summary.mode,
        execution_type=execution_type,
        workflow_name=context.workflow_name or UNKNOWN_WORKFLOW,
        status=StatusEnum.FAILED if summary.has_failures else StatusEnum.SUCCESS,
        items_processed=summary.totals.processed,
        items_new=summary.totals.new,
        items_duplicates=summary.totals.duplicates,
        items_updated=summary.totals.updated,
        event_summary=json.dumps(summary.event_summary, separators=(",", ":")),
        full_details=json.dumps(summary.all_items, separators=(",", ":")),
    )
