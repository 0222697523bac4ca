"""
Persistence Adapter for Job Scheduler.

SQLite storage (WAL mode) for the durable tier:
- jobs: job definitions, org-scoped
- execution_records: append-only invocation outcomes

Triggers are never stored here; the registry is rebuilt from enabled jobs
at startup.
"""

import json
import sqlite3
from contextlib import contextmanager
from pathlib import Path
from typing import Iterator, Optional

from .entities import (
    ExecutionRecord,
    ExecutionStatus,
    Job,
    JobKind,
    payload_from_dict,
)
from .errors import JobNotFoundError


class PersistenceAdapter:
    """
    SQLite-based persistence for Job and ExecutionRecord.

    - CRUD operations for Job, always filtered by org_id where a caller is involved
    - Append/query operations for ExecutionRecord
    - Does NOT contain business logic
    - Does NOT validate beyond schema constraints
    """

    def __init__(self, db_path: str | Path):
        """
        Initialize persistence adapter.

        Args:
            db_path: Path to SQLite database file
        """
        self.db_path = str(db_path)
        self._init_db()

    def _get_connection(self) -> sqlite3.Connection:
        """Get a database connection with WAL mode enabled."""
        conn = sqlite3.connect(self.db_path)
        conn.row_factory = sqlite3.Row
        conn.execute("PRAGMA journal_mode=WAL")
        conn.execute("PRAGMA foreign_keys=ON")
        return conn

    @contextmanager
    def _connection(self) -> Iterator[sqlite3.Connection]:
        """Context manager for database connections."""
        conn = self._get_connection()
        try:
            yield conn
        finally:
            conn.close()

    @contextmanager
    def _transaction(self) -> Iterator[sqlite3.Connection]:
        """Context manager for database transactions."""
        conn = self._get_connection()
        try:
            yield conn
            conn.commit()
        except Exception:
            conn.rollback()
            raise
        finally:
            conn.close()

    def _init_db(self) -> None:
        """Initialize database schema."""
        with self._transaction() as conn:
            conn.execute("""
                CREATE TABLE IF NOT EXISTS jobs (
                    job_id TEXT PRIMARY KEY,
                    owner_id TEXT NOT NULL,
                    org_id TEXT NOT NULL,
                    name TEXT NOT NULL,
                    kind TEXT NOT NULL,
                    schedule TEXT NOT NULL,
                    payload TEXT NOT NULL,
                    enabled INTEGER NOT NULL DEFAULT 1,
                    retry_limit INTEGER NOT NULL DEFAULT 0,
                    webhook_url TEXT,
                    depends_on TEXT NOT NULL DEFAULT '[]',
                    created_at TEXT NOT NULL,
                    updated_at TEXT NOT NULL
                )
            """)

            conn.execute("""
                CREATE INDEX IF NOT EXISTS idx_jobs_org
                ON jobs (org_id, created_at)
            """)

            conn.execute("""
                CREATE INDEX IF NOT EXISTS idx_jobs_enabled
                ON jobs (enabled)
            """)

            # Append-only; seq gives a total order for "latest record" lookups
            conn.execute("""
                CREATE TABLE IF NOT EXISTS execution_records (
                    seq INTEGER PRIMARY KEY AUTOINCREMENT,
                    record_id TEXT NOT NULL UNIQUE,
                    job_id TEXT NOT NULL,
                    org_id TEXT NOT NULL,
                    executed_at TEXT NOT NULL,
                    status TEXT NOT NULL,
                    attempts INTEGER NOT NULL,
                    retry_count INTEGER NOT NULL,
                    output TEXT,
                    error TEXT
                )
            """)

            conn.execute("""
                CREATE INDEX IF NOT EXISTS idx_execution_records_job
                ON execution_records (job_id, seq)
            """)

    # =========================================================================
    # Job Operations
    # =========================================================================

    def create_job(self, job: Job) -> Job:
        """Insert a new job."""
        with self._transaction() as conn:
            conn.execute(
                """
                INSERT INTO jobs
                (job_id, owner_id, org_id, name, kind, schedule, payload, enabled,
                 retry_limit, webhook_url, depends_on, created_at, updated_at)
                VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
                """,
                (
                    job.job_id,
                    job.owner_id,
                    job.org_id,
                    job.name,
                    job.kind.value,
                    job.schedule,
                    json.dumps(job.payload.to_dict()),
                    1 if job.enabled else 0,
                    job.retry_limit,
                    job.webhook_url,
                    json.dumps(job.depends_on),
                    job.created_at,
                    job.updated_at,
                ),
            )
        return job

    def find_one(self, job_id: str, org_id: str) -> Optional[Job]:
        """Get a job by ID within an organization."""
        with self._connection() as conn:
            row = conn.execute(
                "SELECT * FROM jobs WHERE job_id = ? AND org_id = ?",
                (job_id, org_id),
            ).fetchone()

        if row is None:
            return None

        return self._row_to_job(row)

    def find_jobs(
        self,
        org_id: Optional[str] = None,
        enabled: Optional[bool] = None,
        limit: Optional[int] = None,
    ) -> list[Job]:
        """
        List jobs matching a filter, oldest first.

        Args:
            org_id: Restrict to one organization (None = all, admin/startup only)
            enabled: Restrict by enabled flag
            limit: Maximum number of jobs
        """
        clauses = []
        values: list = []

        if org_id is not None:
            clauses.append("org_id = ?")
            values.append(org_id)
        if enabled is not None:
            clauses.append("enabled = ?")
            values.append(1 if enabled else 0)

        query = "SELECT * FROM jobs"
        if clauses:
            query += " WHERE " + " AND ".join(clauses)
        query += " ORDER BY created_at ASC"
        if limit is not None:
            query += " LIMIT ?"
            values.append(int(limit))

        with self._connection() as conn:
            rows = conn.execute(query, values).fetchall()

        return [self._row_to_job(row) for row in rows]

    def find_dependents(self, job_id: str, org_id: str) -> list[Job]:
        """List jobs in an organization whose depends_on contains job_id."""
        return [
            job for job in self.find_jobs(org_id=org_id)
            if job_id in job.depends_on
        ]

    def _row_to_job(self, row: sqlite3.Row) -> Job:
        """Convert a database row to a Job entity."""
        kind = JobKind(row["kind"])
        return Job(
            job_id=row["job_id"],
            owner_id=row["owner_id"],
            org_id=row["org_id"],
            name=row["name"],
            kind=kind,
            schedule=row["schedule"],
            payload=payload_from_dict(kind, json.loads(row["payload"])),
            enabled=bool(row["enabled"]),
            retry_limit=row["retry_limit"],
            webhook_url=row["webhook_url"],
            depends_on=json.loads(row["depends_on"]),
            created_at=row["created_at"],
            updated_at=row["updated_at"],
        )

    def update_job(self, job: Job) -> Job:
        """
        Replace a persisted job with the given state.

        Raises:
            JobNotFoundError: If the job does not exist in job.org_id
        """
        with self._transaction() as conn:
            cursor = conn.execute(
                """
                UPDATE jobs
                SET name = ?, kind = ?, schedule = ?, payload = ?, enabled = ?,
                    retry_limit = ?, webhook_url = ?, depends_on = ?, updated_at = ?
                WHERE job_id = ? AND org_id = ?
                """,
                (
                    job.name,
                    job.kind.value,
                    job.schedule,
                    json.dumps(job.payload.to_dict()),
                    1 if job.enabled else 0,
                    job.retry_limit,
                    job.webhook_url,
                    json.dumps(job.depends_on),
                    job.updated_at,
                    job.job_id,
                    job.org_id,
                ),
            )

            if cursor.rowcount == 0:
                raise JobNotFoundError(job.job_id)

        return job

    def delete_job(self, job_id: str, org_id: str) -> bool:
        """Delete a job. Returns False if nothing matched."""
        with self._transaction() as conn:
            cursor = conn.execute(
                "DELETE FROM jobs WHERE job_id = ? AND org_id = ?",
                (job_id, org_id),
            )
            return cursor.rowcount > 0

    def count_jobs(self, enabled: Optional[bool] = None) -> int:
        """Count jobs across all organizations."""
        with self._connection() as conn:
            if enabled is None:
                row = conn.execute("SELECT COUNT(*) AS cnt FROM jobs").fetchone()
            else:
                row = conn.execute(
                    "SELECT COUNT(*) AS cnt FROM jobs WHERE enabled = ?",
                    (1 if enabled else 0,),
                ).fetchone()
        return row["cnt"]

    def count_jobs_by_org(self) -> dict[str, int]:
        """Count jobs per organization."""
        with self._connection() as conn:
            rows = conn.execute(
                "SELECT org_id, COUNT(*) AS cnt FROM jobs GROUP BY org_id ORDER BY org_id"
            ).fetchall()
        return {row["org_id"]: row["cnt"] for row in rows}

    # =========================================================================
    # ExecutionRecord Operations
    # =========================================================================

    def append_execution_record(self, record: ExecutionRecord) -> ExecutionRecord:
        """Append an execution record. Records are never updated."""
        with self._transaction() as conn:
            conn.execute(
                """
                INSERT INTO execution_records
                (record_id, job_id, org_id, executed_at, status, attempts,
                 retry_count, output, error)
                VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?)
                """,
                (
                    record.record_id,
                    record.job_id,
                    record.org_id,
                    record.executed_at,
                    record.status.value,
                    record.attempts,
                    record.retry_count,
                    json.dumps(record.output) if record.output is not None else None,
                    json.dumps(record.error) if record.error is not None else None,
                ),
            )
        return record

    def find_latest_execution_record(self, job_id: str) -> Optional[ExecutionRecord]:
        """Get the most recently appended record for a job."""
        with self._connection() as conn:
            row = conn.execute(
                """
                SELECT * FROM execution_records
                WHERE job_id = ?
                ORDER BY seq DESC
                LIMIT 1
                """,
                (job_id,),
            ).fetchone()

        if row is None:
            return None

        return self._row_to_record(row)

    def list_execution_records(self, job_id: str, limit: int = 50) -> list[ExecutionRecord]:
        """List records for a job, newest first."""
        with self._connection() as conn:
            rows = conn.execute(
                """
                SELECT * FROM execution_records
                WHERE job_id = ?
                ORDER BY seq DESC
                LIMIT ?
                """,
                (job_id, int(limit)),
            ).fetchall()

        return [self._row_to_record(row) for row in rows]

    def count_jobs_executed_since(self, since_iso: str) -> int:
        """Count distinct jobs with at least one record at or after since_iso."""
        with self._connection() as conn:
            row = conn.execute(
                """
                SELECT COUNT(DISTINCT job_id) AS cnt FROM execution_records
                WHERE executed_at >= ?
                """,
                (since_iso,),
            ).fetchone()
        return row["cnt"]

    def _row_to_record(self, row: sqlite3.Row) -> ExecutionRecord:
        """Convert a database row to an ExecutionRecord."""
        return ExecutionRecord(
            record_id=row["record_id"],
            job_id=row["job_id"],
            org_id=row["org_id"],
            executed_at=row["executed_at"],
            status=ExecutionStatus(row["status"]),
            attempts=row["attempts"],
            retry_count=row["retry_count"],
            output=json.loads(row["output"]) if row["output"] is not None else None,
            error=json.loads(row["error"]) if row["error"] is not None else None,
        )
