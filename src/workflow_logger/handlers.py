"""
Lambda handler entry point for the workflow logger.

Wraps log_workflow_execution with event parsing, a Postgres sink and
consistent error handling and logging for AWS Lambda execution.
"""

import json
import logging
import traceback
from typing import Dict, Any

from pydantic import ValidationError

from .aggregator import WorkflowLoggerError
from .db import PostgresLogSink
from .models import ExecutionContext, LoggerSettings
from .runner import log_workflow_execution

# Configure logging
logger = logging.getLogger()
logger.setLevel(logging.INFO)


def _handle_error(error: Exception, event: Dict[str, Any]) -> Dict[str, Any]:
    """
    Log an error that stopped the handler before logging could start.

    Args:
        error: The exception that occurred
        event: The Lambda event that triggered the error

    Returns:
        Failure-shaped response dictionary
    """
    error_message = str(error)
    error_trace = traceback.format_exc()

    logger.error(
        f"Error in workflow_logger: {error_message}\n"
        f"Event: {json.dumps(event, default=str)}\n"
        f"Traceback: {error_trace}"
    )

    return {
        "success": False,
        "error": error_message,
        "run_identifier": None
    }


def workflow_logger_handler(event: Dict[str, Any], context: Any) -> Dict[str, Any]:
    """
    Lambda handler that logs one aggregated workflow run.

    Expected event structure:
    {
        "reports": [ {execution, summary, details}, ... ],
        "settings": {
            "database": str (optional, defaults to DB_NAME),
            "table": str (optional),
            "execution_mode": "auto" | "regular" | "monthly" (optional),
            "fail_on_error": bool (optional),
            "verbose_logging": bool (optional)
        },
        "workflow": {"name": str, "mode": str} (optional)
    }

    Returns:
        {
            "success": true,
            "timestamp": str (ISO 8601),
            "run_identifier": int,
            "batches_aggregated": int,
            "summary": {...row values...}
        }
        or
        {
            "success": false,
            "error": str,
            "run_identifier": int | null
        }

    Raises:
        WorkflowLoggerError, OSError: When fail_on_error is set
    """
    try:
        settings = LoggerSettings.from_env(**(event.get("settings") or {}))
        workflow = event.get("workflow") or {}
        execution_context = ExecutionContext(
            workflow_name=workflow.get("name"),
            workflow_mode=workflow.get("mode") or "trigger",
        )
    except (ValidationError, AttributeError, TypeError) as e:
        return _handle_error(e, event)

    reports = event.get("reports")
    if reports is None:
        reports = []
    logger.info(
        f"Starting workflow logger: "
        f"table={settings.database}/{settings.table}, mode={settings.execution_mode.value}"
    )

    try:
        result = log_workflow_execution(
            reports,
            settings,
            execution_context,
            PostgresLogSink(settings),
        )
    except (WorkflowLoggerError, OSError) as e:
        logger.error(f"Failed to log execution: {e}")
        raise

    if result.success:
        logger.info(
            f"Workflow logger completed: run_identifier={result.run_identifier}, "
            f"batches_aggregated={result.batches_aggregated}"
        )

    return result.model_dump(mode="json")
