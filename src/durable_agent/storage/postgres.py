"""PostgreSQL-backed storage with automatic table migration."""

from __future__ import annotations

import json
import threading
import uuid
from datetime import UTC, datetime
from typing import Any

from durable_agent.errors import RunFinalizedError, RunNotFoundError
from durable_agent.storage.models import Message, RunRecord, RunStatus, StepRecord


class PostgresStorage:
    """Persist runs and step checkpoints in PostgreSQL."""

    def __init__(self, database_url: str) -> None:
        if not database_url:
            raise ValueError("DURABLE_AGENT_DATABASE_URL is required")
        self.database_url = database_url
        self._lock = threading.Lock()
        self._psycopg, self._dict_row, self._json_wrapper = self._load_psycopg()

    def migrate(self) -> None:
        with self._lock, self._connect() as conn:
            conn.execute("""
                CREATE TABLE IF NOT EXISTS agent_runs (
                    run_id TEXT PRIMARY KEY,
                    agent_id TEXT NOT NULL,
                    task TEXT NOT NULL,
                    status TEXT NOT NULL,
                    turn INTEGER NOT NULL DEFAULT 0,
                    messages_json JSONB NOT NULL DEFAULT '[]'::jsonb,
                    result TEXT,
                    turns INTEGER,
                    error TEXT,
                    created_at TIMESTAMPTZ NOT NULL,
                    updated_at TIMESTAMPTZ NOT NULL
                )
                """)
            conn.execute("""
                CREATE INDEX IF NOT EXISTS idx_agent_runs_status
                ON agent_runs(status)
                """)
            conn.execute("""
                CREATE TABLE IF NOT EXISTS step_records (
                    run_id TEXT NOT NULL REFERENCES agent_runs(run_id) ON DELETE CASCADE,
                    step_key TEXT NOT NULL,
                    attempts INTEGER NOT NULL DEFAULT 0,
                    outcome TEXT NOT NULL,
                    result_json JSONB,
                    error TEXT,
                    created_at TIMESTAMPTZ NOT NULL,
                    updated_at TIMESTAMPTZ NOT NULL,
                    PRIMARY KEY (run_id, step_key)
                )
                """)
            conn.commit()

    def create_run(self, *, task: str, agent_id: str, run_id: str | None = None) -> RunRecord:
        new_id = run_id or str(uuid.uuid4())
        now = datetime.now(tz=UTC)
        messages = [Message(role="user", content=task).model_dump(mode="json")]
        with self._lock, self._connect() as conn:
            conn.execute(
                """
                INSERT INTO agent_runs (
                    run_id,
                    agent_id,
                    task,
                    status,
                    turn,
                    messages_json,
                    created_at,
                    updated_at
                )
                VALUES (%s, %s, %s, %s, %s, %s, %s, %s)
                """,
                (
                    new_id,
                    agent_id,
                    task,
                    RunStatus.QUEUED.value,
                    0,
                    self._json_wrapper(messages),
                    now,
                    now,
                ),
            )
            conn.commit()
        created = self.get_run(new_id)
        if created is None:
            raise RuntimeError("Failed to load created run")
        return created

    def get_run(self, run_id: str) -> RunRecord | None:
        with self._lock, self._connect() as conn:
            row = conn.execute(
                "SELECT * FROM agent_runs WHERE run_id = %s",
                (run_id,),
            ).fetchone()
        if row is None:
            return None
        return self._row_to_run(row)

    def list_runs(self, *, statuses: set[RunStatus] | None = None) -> list[RunRecord]:
        with self._lock, self._connect() as conn:
            if statuses:
                rows = conn.execute(
                    """
                    SELECT *
                    FROM agent_runs
                    WHERE status = ANY(%s)
                    ORDER BY created_at
                    """,
                    ([status.value for status in statuses],),
                ).fetchall()
            else:
                rows = conn.execute("SELECT * FROM agent_runs ORDER BY created_at").fetchall()
        return [self._row_to_run(row) for row in rows]

    def update_run(
        self,
        run_id: str,
        *,
        status: RunStatus | None = None,
        turn: int | None = None,
        messages: list[Message] | None = None,
        result: str | None = None,
        turns: int | None = None,
        error: str | None = None,
    ) -> RunRecord:
        assignments: list[str] = ["updated_at = %s"]
        values: list[Any] = [datetime.now(tz=UTC)]
        if status is not None:
            assignments.append("status = %s")
            values.append(status.value)
        if turn is not None:
            assignments.append("turn = %s")
            values.append(turn)
        if messages is not None:
            assignments.append("messages_json = %s")
            values.append(self._json_wrapper([item.model_dump(mode="json") for item in messages]))
        if result is not None:
            assignments.append("result = %s")
            values.append(result)
        if turns is not None:
            assignments.append("turns = %s")
            values.append(turns)
        if error is not None:
            assignments.append("error = %s")
            values.append(error)

        terminal = [item.value for item in RunStatus if item.is_terminal]
        with self._lock, self._connect() as conn:
            row = conn.execute(
                "SELECT status FROM agent_runs WHERE run_id = %s FOR UPDATE",
                (run_id,),
            ).fetchone()
            if row is None:
                raise RunNotFoundError(run_id)
            if row["status"] in terminal:
                raise RunFinalizedError(run_id, row["status"])
            conn.execute(
                f"UPDATE agent_runs SET {', '.join(assignments)} WHERE run_id = %s",
                (*values, run_id),
            )
            conn.commit()
        refreshed = self.get_run(run_id)
        if refreshed is None:
            raise RunNotFoundError(run_id)
        return refreshed

    def get_step(self, run_id: str, key: str) -> StepRecord | None:
        with self._lock, self._connect() as conn:
            row = conn.execute(
                "SELECT * FROM step_records WHERE run_id = %s AND step_key = %s",
                (run_id, key),
            ).fetchone()
        if row is None:
            return None
        return self._row_to_step(row)

    def record_attempt(self, run_id: str, key: str) -> StepRecord:
        now = datetime.now(tz=UTC)
        with self._lock, self._connect() as conn:
            row = conn.execute(
                """
                INSERT INTO step_records (
                    run_id,
                    step_key,
                    attempts,
                    outcome,
                    created_at,
                    updated_at
                )
                VALUES (%s, %s, 1, 'pending', %s, %s)
                ON CONFLICT (run_id, step_key) DO UPDATE
                SET attempts = step_records.attempts + 1,
                    outcome = 'pending',
                    error = NULL,
                    updated_at = EXCLUDED.updated_at
                RETURNING *
                """,
                (run_id, key, now, now),
            ).fetchone()
            conn.commit()
        if row is None:
            raise RuntimeError(f"Failed to record attempt for step {key}")
        return self._row_to_step(row)

    def record_success(self, run_id: str, key: str, result: Any) -> StepRecord:
        return self._finish_step(
            run_id,
            key,
            outcome="succeeded",
            result=self._json_wrapper(result),
            error=None,
        )

    def record_failure(self, run_id: str, key: str, error: str) -> StepRecord:
        return self._finish_step(run_id, key, outcome="failed", result=None, error=error)

    def list_steps(self, run_id: str) -> list[StepRecord]:
        with self._lock, self._connect() as conn:
            rows = conn.execute(
                """
                SELECT *
                FROM step_records
                WHERE run_id = %s
                ORDER BY created_at
                """,
                (run_id,),
            ).fetchall()
        return [self._row_to_step(row) for row in rows]

    def _finish_step(
        self,
        run_id: str,
        key: str,
        *,
        outcome: str,
        result: Any,
        error: str | None,
    ) -> StepRecord:
        now = datetime.now(tz=UTC)
        with self._lock, self._connect() as conn:
            # A succeeded checkpoint is never overwritten.
            row = conn.execute(
                """
                INSERT INTO step_records (
                    run_id,
                    step_key,
                    attempts,
                    outcome,
                    result_json,
                    error,
                    created_at,
                    updated_at
                )
                VALUES (%s, %s, 0, %s, %s, %s, %s, %s)
                ON CONFLICT (run_id, step_key) DO UPDATE
                SET outcome = EXCLUDED.outcome,
                    result_json = EXCLUDED.result_json,
                    error = EXCLUDED.error,
                    updated_at = EXCLUDED.updated_at
                WHERE step_records.outcome <> 'succeeded'
                RETURNING *
                """,
                (run_id, key, outcome, result, error, now, now),
            ).fetchone()
            conn.commit()
        if row is None:
            existing = self.get_step(run_id, key)
            if existing is None:
                raise RuntimeError(f"Failed to record outcome for step {key}")
            return existing
        return self._row_to_step(row)

    def _connect(self) -> Any:
        return self._psycopg.connect(self.database_url, row_factory=self._dict_row)

    @staticmethod
    def _load_psycopg() -> tuple[Any, Any, Any]:
        try:
            import psycopg
            from psycopg.rows import dict_row
            from psycopg.types.json import Jsonb
        except ImportError as exc:  # pragma: no cover
            raise RuntimeError(
                "PostgreSQL storage requires psycopg. "
                'Install with: python -m pip install "psycopg[binary]>=3.2,<4.0"'
            ) from exc
        return psycopg, dict_row, Jsonb

    @staticmethod
    def _parse_json(raw: Any) -> Any:
        if isinstance(raw, str):
            return json.loads(raw)
        return raw

    @staticmethod
    def _parse_datetime(raw: Any) -> datetime:
        if isinstance(raw, datetime):
            return raw
        if isinstance(raw, str):
            return datetime.fromisoformat(raw)
        raise TypeError(f"Unsupported datetime value: {type(raw)!r}")

    @classmethod
    def _row_to_run(cls, row: Any) -> RunRecord:
        raw_messages = cls._parse_json(row.get("messages_json")) or []
        return RunRecord(
            run_id=str(row["run_id"]),
            agent_id=str(row["agent_id"]),
            task=row["task"],
            status=RunStatus(row["status"]),
            turn=int(row["turn"]),
            messages=[Message.model_validate(item) for item in raw_messages],
            result=row.get("result"),
            turns=row.get("turns"),
            error=row.get("error"),
            created_at=cls._parse_datetime(row["created_at"]),
            updated_at=cls._parse_datetime(row["updated_at"]),
        )

    @classmethod
    def _row_to_step(cls, row: Any) -> StepRecord:
        return StepRecord(
            run_id=str(row["run_id"]),
            key=str(row["step_key"]),
            attempts=int(row["attempts"]),
            outcome=row["outcome"],
            result=row.get("result_json"),
            error=row.get("error"),
            created_at=cls._parse_datetime(row["created_at"]),
            updated_at=cls._parse_datetime(row["updated_at"]),
        )
