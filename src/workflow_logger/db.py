"""Data access layer: write one aggregated log row to PostgreSQL."""

import json
import os
import logging
from typing import Dict, Optional, Protocol

import boto3
import psycopg2
from psycopg2 import sql
from pydantic import BaseModel

from .config import Config
from .models import LOG_COLUMNS, LogRecord, LoggerSettings

logger = logging.getLogger(__name__)


class SinkWriteError(IOError):
    """Writing the log row failed."""


class LogSink(Protocol):
    """Anything that can persist exactly one log row."""

    def write(self, record: LogRecord) -> None:
        ...


class DatabaseCredentials(BaseModel):
    """Connection credentials for the log database."""
    host: str
    port: int
    user: str
    password: str

    @classmethod
    def resolve(
        cls,
        host: str = None,
        port: int = None,
        user: str = None,
        password: str = None,
    ) -> "DatabaseCredentials":
        """Resolve credentials from arguments, Secrets Manager, then env vars."""
        # Try Secrets Manager first (Lambda environment), then env vars, then defaults
        secret_arn = os.getenv('DB_SECRET_ARN')
        if secret_arn and not all([host, port, user, password]):
            secret = cls._get_secret(secret_arn)
            if secret:
                host = host or secret.get('host')
                port = port or int(secret.get('port', '5432'))
                user = user or secret.get('username')
                password = password or secret.get('password')

        return cls(
            host=host or os.getenv('DB_HOST', 'localhost'),
            port=port or int(os.getenv('DB_PORT', '5432')),
            user=user or os.getenv('DB_USER', 'postgres'),
            password=password or os.getenv('DB_PASSWORD', ''),
        )

    @classmethod
    def _get_secret(cls, secret_arn: str) -> Optional[Dict[str, str]]:
        """Retrieve database credentials from Secrets Manager."""
        try:
            client = boto3.client('secretsmanager', region_name=Config.AWS_REGION)
            response = client.get_secret_value(SecretId=secret_arn)
            return json.loads(response['SecretString'])
        except Exception as e:
            logger.warning(f"Failed to retrieve secret from Secrets Manager: {e}")
            return None


def build_insert_query(table: str) -> sql.Composed:
    """Build the parameterised INSERT for a 'name' or 'schema.name' table."""
    return sql.SQL("INSERT INTO {table} ({columns}) VALUES ({values})").format(
        table=sql.Identifier(*table.split('.')),
        columns=sql.SQL(', ').join(sql.Identifier(column) for column in LOG_COLUMNS),
        values=sql.SQL(', ').join(sql.Placeholder() for _ in LOG_COLUMNS),
    )


def insert_log(
    record: LogRecord,
    database: str,
    table: str,
    credentials: DatabaseCredentials,
) -> None:
    """
    Insert one log row over a short-lived connection.

    Args:
        record: The row to insert
        database: Database to connect to
        table: Target table, optionally schema-qualified
        credentials: Connection credentials

    Raises:
        SinkWriteError: If connecting, inserting or committing fails
    """
    try:
        conn = psycopg2.connect(
            host=credentials.host,
            port=credentials.port,
            database=database,
            user=credentials.user,
            password=credentials.password,
            connect_timeout=Config.DB_CONNECT_TIMEOUT,
            options=f'-c statement_timeout={Config.DB_STATEMENT_TIMEOUT_MS}'
        )
    except psycopg2.Error as e:
        logger.error(f"Could not connect to {credentials.host}:{credentials.port}/{database}: {e}")
        raise SinkWriteError(f"Could not connect to database {database}: {e}") from e

    try:
        with conn.cursor() as cur:
            try:
                cur.execute(build_insert_query(table), record.as_row())
                conn.commit()
                logger.info(f"Persisted workflow log: run_identifier={record.run_identifier}")

            except psycopg2.Error as e:
                try:
                    conn.rollback()
                except psycopg2.Error as rollback_error:
                    logger.warning(f"Rollback failed after insert error: {rollback_error}")
                logger.error(f"Error persisting workflow log {record.run_identifier}: {e}")
                raise SinkWriteError(f"Failed to insert into {table}: {e}") from e
    finally:
        conn.close()


class PostgresLogSink:
    """LogSink writing to the table named in the logger settings."""

    def __init__(self, settings: LoggerSettings, credentials: Optional[DatabaseCredentials] = None):
        self.database = settings.database
        self.table = settings.table
        self._credentials = credentials

    @property
    def credentials(self) -> DatabaseCredentials:
        if self._credentials is None:
            try:
                self._credentials = DatabaseCredentials.resolve()
            except (ValueError, TypeError) as e:
                logger.error(f"Could not resolve database credentials: {e}")
                raise SinkWriteError(f"Could not resolve database credentials: {e}") from e
        return self._credentials

    def write(self, record: LogRecord) -> None:
        insert_log(record, self.database, self.table, self.credentials)
