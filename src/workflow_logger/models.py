"""Core data models for the workflow logger."""

from datetime import datetime
from typing import Optional, List, Dict, Any, Literal, Tuple
from enum import Enum
from pydantic import AliasChoices, BaseModel, ConfigDict, Field, StrictInt, field_validator

from .config import Config


class ExecutionModeEnum(str, Enum):
    """Valid execution mode settings."""
    AUTO = "auto"
    REGULAR = "regular"
    MONTHLY = "monthly"


class ExecutionTypeEnum(str, Enum):
    """How the host workflow was started."""
    MANUAL = "manual"
    SCHEDULED = "scheduled"


class StatusEnum(str, Enum):
    """Valid run status values."""
    SUCCESS = "success"
    FAILED = "failed"


# Column order of the log table. Part of the persisted schema.
LOG_COLUMNS: Tuple[str, ...] = (
    "run_identifier",
    "execution_mode",
    "execution_type",
    "workflow_name",
    "status",
    "items_processed",
    "items_new",
    "items_duplicates",
    "items_updated",
    "event_summary",
    "full_details",
)


# Report Models

class ExecutionInfo(BaseModel):
    """Identity of the run a batch belongs to."""
    mode: Optional[str] = None
    # validated by aggregator.parse_run_identifier
    run_identifier: Any = Field(
        default=None,
        validation_alias=AliasChoices("run_identifier", "runIdentifier", "script_id"),
    )


class ReportSummary(BaseModel):
    """Per-batch counters."""
    total_input: Optional[StrictInt] = Field(
        default=None, ge=0, validation_alias=AliasChoices("total_input", "totalInput")
    )
    new_items: Optional[StrictInt] = Field(
        default=None, ge=0, validation_alias=AliasChoices("new_items", "newItems")
    )
    exact_duplicates: Optional[StrictInt] = Field(
        default=None, ge=0, validation_alias=AliasChoices("exact_duplicates", "exactDuplicates")
    )
    updated_items: Optional[StrictInt] = Field(
        default=None, ge=0, validation_alias=AliasChoices("updated_items", "updatedItems")
    )
    failed_items: Optional[StrictInt] = Field(
        default=None, ge=0, validation_alias=AliasChoices("failed_items", "failedItems")
    )
    event_summary: Optional[Dict[str, StrictInt]] = Field(
        default=None, validation_alias=AliasChoices("event_summary", "eventSummary")
    )

    @field_validator('event_summary')
    @classmethod
    def validate_event_counts(cls, v):
        """Validate that every event count is non-negative."""
        if v is not None:
            for event, count in v.items():
                if count < 0:
                    raise ValueError(f"event count for {event!r} must be non-negative, got: {count}")
        return v


class SentItems(BaseModel):
    """Raw transaction payloads sent by a batch."""
    items: Optional[List[Any]] = None


class ReportDetails(BaseModel):
    """Detail section of a report."""
    sent_items: Optional[SentItems] = Field(
        default=None, validation_alias=AliasChoices("sent_items", "sentItems")
    )


class Report(BaseModel):
    """One upstream batch's execution outcome."""
    execution: Optional[ExecutionInfo] = None
    summary: Optional[ReportSummary] = None
    details: Optional[ReportDetails] = None


# Aggregation Models

class RunTotals(BaseModel):
    """Summed counters across all batches of a run."""
    model_config = ConfigDict(frozen=True)

    processed: int = Field(default=0, ge=0)
    new: int = Field(default=0, ge=0)
    duplicates: int = Field(default=0, ge=0)
    updated: int = Field(default=0, ge=0)


class Summary(BaseModel):
    """Merged result of folding every report of one invocation."""
    model_config = ConfigDict(frozen=True)

    run_identifier: int
    mode: str
    totals: RunTotals
    event_summary: Dict[str, int] = Field(default_factory=dict)
    has_failures: bool = False
    all_items: List[Any] = Field(default_factory=list)
    batches_aggregated: int = Field(default=0, ge=0)


class LogRecord(BaseModel):
    """Flat row handed to the sink."""
    model_config = ConfigDict(frozen=True)

    run_identifier: int
    execution_mode: str
    execution_type: ExecutionTypeEnum
    workflow_name: str
    status: StatusEnum
    items_processed: int = Field(ge=0)
    items_new: int = Field(ge=0)
    items_duplicates: int = Field(ge=0)
    items_updated: int = Field(ge=0)
    event_summary: str
    full_details: str

    def as_row(self) -> Tuple[Any, ...]:
        """Return the column values in LOG_COLUMNS order."""
        row = self.model_dump(mode="json")
        return tuple(row[column] for column in LOG_COLUMNS)


# Invocation Models

_SETTING_ALIASES = {
    "executionMode": "execution_mode",
    "failOnError": "fail_on_error",
    "verboseLogging": "verbose_logging",
}


class LoggerSettings(BaseModel):
    """Per-invocation configuration."""
    database: str = Field(min_length=1)
    table: str = Field(default="workflow_logs", min_length=1)
    execution_mode: ExecutionModeEnum = Field(
        default=ExecutionModeEnum.AUTO,
        validation_alias=AliasChoices("execution_mode", "executionMode"),
    )
    fail_on_error: bool = Field(
        default=False, validation_alias=AliasChoices("fail_on_error", "failOnError")
    )
    verbose_logging: bool = Field(
        default=False, validation_alias=AliasChoices("verbose_logging", "verboseLogging")
    )

    @field_validator('table')
    @classmethod
    def validate_table_name(cls, v):
        """Validate that the table is 'name' or 'schema.name'."""
        parts = v.split('.')
        if len(parts) > 2 or not all(parts):
            raise ValueError(f"table must be 'name' or 'schema.name', got: {v}")
        return v

    @classmethod
    def from_env(cls, **overrides: Any) -> "LoggerSettings":
        """Build settings from Config defaults, applying any overrides."""
        values = {
            "database": Config.DB_NAME,
            "table": Config.WORKFLOW_LOG_TABLE,
            "execution_mode": Config.WORKFLOW_EXECUTION_MODE,
            "fail_on_error": Config.WORKFLOW_LOG_FAIL_ON_ERROR,
            "verbose_logging": Config.WORKFLOW_LOG_VERBOSE,
        }
        values.update({_SETTING_ALIASES.get(k, k): v for k, v in overrides.items()})
        return cls.model_validate(values)


class ExecutionContext(BaseModel):
    """Facts about the host workflow supplied by the caller."""
    workflow_name: Optional[str] = None
    workflow_mode: str = "trigger"


class LogSuccessResult(BaseModel):
    """Result of a logged run."""
    success: Literal[True] = True
    timestamp: datetime
    run_identifier: int
    batches_aggregated: int = Field(ge=0)
    summary: LogRecord


class LogFailureResult(BaseModel):
    """Result of a run that could not be logged."""
    success: Literal[False] = False
    error: str
    run_identifier: Optional[int] = None
