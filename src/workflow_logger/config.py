"""Shared configuration for the workflow logger."""

import os


def _env_flag(name: str, default: str = "false") -> bool:
    return os.getenv(name, default).strip().lower() in ("1", "true", "yes", "on")


class Config:
    """Shared configuration constants for the workflow logger."""
    
    # AWS Region
    AWS_REGION = os.getenv("AWS_REGION", "us-east-1")
    
    # Database name (connection credentials are resolved in db.DatabaseCredentials)
    DB_NAME = os.getenv("DB_NAME", "workflow_logs_db")
    
    # Timeouts for the single insert
    DB_CONNECT_TIMEOUT = int(os.getenv("DB_CONNECT_TIMEOUT", "10"))
    DB_STATEMENT_TIMEOUT_MS = int(os.getenv("DB_STATEMENT_TIMEOUT_MS", "30000"))
    
    # Logger defaults
    WORKFLOW_LOG_TABLE = os.getenv("WORKFLOW_LOG_TABLE", "workflow_logs")
    WORKFLOW_EXECUTION_MODE = os.getenv("WORKFLOW_EXECUTION_MODE", "auto")
    WORKFLOW_LOG_FAIL_ON_ERROR = _env_flag("WORKFLOW_LOG_FAIL_ON_ERROR")
    WORKFLOW_LOG_VERBOSE = _env_flag("WORKFLOW_LOG_VERBOSE")
