"""
Elicit Question Persistence

Question stores record what was asked in a session and how it was
answered, so a session can be reloaded after restart. The engine only
talks to the QuestionStore protocol.
"""

import asyncio
import logging
import os
import uuid
from datetime import datetime, timezone
from typing import Any, Callable, Optional, Protocol

import psycopg2
from psycopg2.extras import RealDictCursor

from elicit.errors import PersistenceError
from elicit.models import Question

logger = logging.getLogger(__name__)

QUESTIONS_TABLE = "elicitation_questions"

SCHEMA_SQL = f"""
CREATE TABLE IF NOT EXISTS {QUESTIONS_TABLE} (
    id TEXT PRIMARY KEY,
    session_id TEXT NOT NULL,
    phase TEXT NOT NULL,
    question TEXT NOT NULL,
    category TEXT NOT NULL,
    priority TEXT NOT NULL,
    template_id TEXT,
    follow_up_to TEXT,
    answer TEXT,
    confidence_impact DOUBLE PRECISION,
    asked_at TIMESTAMPTZ NOT NULL DEFAULT NOW(),
    answered_at TIMESTAMPTZ
);
CREATE INDEX IF NOT EXISTS idx_{QUESTIONS_TABLE}_session
    ON {QUESTIONS_TABLE} (session_id, asked_at);
"""


class QuestionStore(Protocol):
    """Persistence collaborator used by QuestionEngine."""

    async def save_question(self, session_id: str, question: Question) -> str:
        ...

    async def save_answer(self, question_id: str, answer_text: str, confidence: float) -> None:
        ...

    async def get_questions(self, session_id: str) -> list[dict[str, Any]]:
        ...

    async def close(self) -> None:
        ...


def question_row(session_id: str, question: Question) -> dict[str, Any]:
    """Flatten a Question into a store row."""
    return {
        "id": question.id or str(uuid.uuid4()),
        "session_id": session_id,
        "phase": question.phase,
        "question": question.question,
        "category": question.category,
        "priority": question.priority,
        "template_id": question.template_id,
        "follow_up_to": question.follow_up_to,
        "answer": None,
        "confidence_impact": None,
        "asked_at": datetime.now(timezone.utc),
        "answered_at": None,
    }


# =============================================================================
# In-memory store
# =============================================================================

class InMemoryQuestionStore:
    """Dict-backed store for tests and single-process use."""

    def __init__(self):
        self.rows: dict[str, dict[str, Any]] = {}
        self.closed = False

    async def save_question(self, session_id: str, question: Question) -> str:
        row = question_row(session_id, question)
        self.rows[row["id"]] = row
        return row["id"]

    async def save_answer(self, question_id: str, answer_text: str, confidence: float) -> None:
        row = self.rows.get(question_id)
        if row is None:
            raise PersistenceError("save_answer", f"question {question_id} not stored")
        row["answer"] = answer_text
        row["confidence_impact"] = confidence
        row["answered_at"] = datetime.now(timezone.utc)

    async def get_questions(self, session_id: str) -> list[dict[str, Any]]:
        rows = [dict(r) for r in self.rows.values() if r["session_id"] == session_id]
        return sorted(rows, key=lambda r: r["asked_at"])

    async def close(self) -> None:
        self.closed = True


# =============================================================================
# Postgres store
# =============================================================================

def get_db_connection():
    """Create a new database connection."""
    database_url = os.getenv("DATABASE_URL")
    if not database_url:
        raise ValueError("DATABASE_URL environment variable not set")

    return psycopg2.connect(database_url, cursor_factory=RealDictCursor)


def safe_close_connection(conn):
    """
    Safely close a database connection with rollback.

    Always rolls back before closing to prevent stuck transactions
    caused by uncommitted errors. Commit must be called explicitly.
    """
    if conn:
        try:
            conn.rollback()  # Safe to call even after commit
        except psycopg2.Error:
            pass  # Connection already broken
        finally:
            try:
                conn.close()
            except psycopg2.Error:
                pass


class PostgresQuestionStore:
    """
    Question store on a Postgres table, one connection per call.

    psycopg2 is blocking, so every call runs in a worker thread.
    """

    def __init__(self, connect: Callable[[], Any] = get_db_connection, ensure_schema: bool = True):
        self._connect = connect
        self._schema_ready = not ensure_schema

    @classmethod
    def from_env(cls) -> "PostgresQuestionStore":
        """
        Build a store from DATABASE_URL.

        Raises:
            PersistenceError: DATABASE_URL is not set
        """
        if not os.getenv("DATABASE_URL"):
            raise PersistenceError("connect", "DATABASE_URL environment variable not set")
        return cls()

    def _run(self, operation: str, fn: Callable[[Any], Any]) -> Any:
        conn = None
        try:
            conn = self._connect()
            cur = conn.cursor()
            if not self._schema_ready:
                cur.execute(SCHEMA_SQL)
                self._schema_ready = True
            result = fn(cur)
            conn.commit()
            return result
        except (psycopg2.Error, ValueError) as e:
            logger.error(f"Question store {operation} failed: {e}")
            raise PersistenceError(operation, str(e)) from e
        finally:
            safe_close_connection(conn)

    async def save_question(self, session_id: str, question: Question) -> str:
        row = question_row(session_id, question)

        def insert(cur):
            cur.execute(
                f"""
                INSERT INTO {QUESTIONS_TABLE}
                    (id, session_id, phase, question, category, priority,
                     template_id, follow_up_to, asked_at)
                VALUES (%s, %s, %s, %s, %s, %s, %s, %s, %s)
                RETURNING id
                """,
                (
                    row["id"], row["session_id"], row["phase"], row["question"],
                    row["category"], row["priority"], row["template_id"],
                    row["follow_up_to"], row["asked_at"],
                ),
            )
            return str(cur.fetchone()["id"])

        return await asyncio.to_thread(self._run, "save_question", insert)

    async def save_answer(self, question_id: str, answer_text: str, confidence: float) -> None:
        def update(cur):
            cur.execute(
                f"""
                UPDATE {QUESTIONS_TABLE}
                SET answer = %s, confidence_impact = %s, answered_at = NOW()
                WHERE id = %s
                """,
                (answer_text, confidence, question_id),
            )
            if cur.rowcount == 0:
                raise ValueError(f"question {question_id} not stored")

        await asyncio.to_thread(self._run, "save_answer", update)

    async def get_questions(self, session_id: str) -> list[dict[str, Any]]:
        def select(cur):
            cur.execute(
                f"""
                SELECT id, session_id, phase, question, category, priority,
                       template_id, follow_up_to, answer, confidence_impact,
                       asked_at, answered_at
                FROM {QUESTIONS_TABLE}
                WHERE session_id = %s
                ORDER BY asked_at
                """,
                (session_id,),
            )
            return [dict(row) for row in cur.fetchall()]

        return await asyncio.to_thread(self._run, "get_questions", select)

    async def close(self) -> None:
        # Connections are per call; nothing held open
        return None


def build_store(persist: bool, store: Optional[QuestionStore] = None) -> Optional[QuestionStore]:
    """Return the injected store, a Postgres store when persisting, or None."""
    if store is not None:
        return store
    if not persist:
        return None
    return PostgresQuestionStore.from_env()
