from __future__ import annotations

import logging
import sqlite3
import time
from pathlib import Path

from .results import TrialResult
from .session import SaveOutcome, SessionInfo

logger = logging.getLogger(__name__)

SCHEMA_VERSION = 1


def open_db(path: Path) -> sqlite3.Connection:
    conn = sqlite3.connect(path)
    try:
        conn.execute("PRAGMA foreign_keys=ON;")
        conn.execute("PRAGMA journal_mode=WAL;")
        conn.execute("PRAGMA synchronous=NORMAL;")
        _migrate(conn)
    except sqlite3.Error:
        conn.close()
        raise
    return conn


def _utc_now_iso() -> str:
    return time.strftime("%Y-%m-%dT%H:%M:%SZ", time.gmtime(time.time()))


def _migrate(conn: sqlite3.Connection) -> None:
    row = conn.execute("PRAGMA user_version;").fetchone()
    ver = int(row[0]) if row else 0
    if ver >= SCHEMA_VERSION:
        return

    with conn:
        conn.execute(
            """
            CREATE TABLE IF NOT EXISTS session (
                id INTEGER PRIMARY KEY,
                participant_id TEXT NOT NULL,
                grp TEXT,
                rng_seed INTEGER NOT NULL,
                app_version TEXT NOT NULL,
                started_at_utc TEXT NOT NULL,
                completed_at_utc TEXT NOT NULL
            );
            """
        )
        conn.execute(
            """
            CREATE TABLE IF NOT EXISTS trial_result (
                id INTEGER PRIMARY KEY,
                session_id INTEGER NOT NULL REFERENCES session(id) ON DELETE CASCADE,
                seq INTEGER NOT NULL,
                block_id INTEGER NOT NULL,
                trial_index INTEGER NOT NULL,
                stimulus_id TEXT NOT NULL,
                category TEXT NOT NULL,
                is_correct INTEGER NOT NULL,
                mistakes INTEGER NOT NULL,
                rt_ms REAL NOT NULL,
                timestamp_ms INTEGER NOT NULL
            );
            """
        )
        conn.execute(
            "CREATE INDEX IF NOT EXISTS idx_trial_result_session_seq ON trial_result(session_id, seq);"
        )
        conn.execute(f"PRAGMA user_version={SCHEMA_VERSION};")


def record_iat_session(*, db_path: Path, session: SessionInfo, results: tuple[TrialResult, ...]) -> int:
    """
    Store one finished test:
      session -> trial_result (in trial order)
    """
    conn = open_db(db_path)
    try:
        return _insert_session(conn=conn, session=session, results=results)
    finally:
        conn.close()


def _insert_session(*, conn: sqlite3.Connection, session: SessionInfo, results: tuple[TrialResult, ...]) -> int:
    with conn:
        cur = conn.execute(
            """
            INSERT INTO session(
                participant_id, grp, rng_seed, app_version,
                started_at_utc, completed_at_utc
            )
            VALUES (?, ?, ?, ?, ?, ?)
            """,
            (
                str(session.participant_id),
                session.group,
                int(session.seed),
                str(session.app_version),
                str(session.started_at_utc),
                _utc_now_iso(),
            ),
        )
        session_id = int(cur.lastrowid)

        conn.executemany(
            """
            INSERT INTO trial_result(
                session_id, seq, block_id, trial_index, stimulus_id, category,
                is_correct, mistakes, rt_ms, timestamp_ms
            )
            VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
            """,
            [
                (
                    session_id,
                    seq,
                    int(r.block_id),
                    int(r.trial_index),
                    str(r.stimulus_id),
                    str(r.category),
                    1 if r.is_correct else 0,
                    int(r.mistakes),
                    float(r.reaction_time_ms),
                    int(r.timestamp_ms),
                )
                for seq, r in enumerate(results)
            ],
        )

    return session_id


def load_session_results(*, db_path: Path, session_id: int) -> tuple[TrialResult, ...]:
    conn = open_db(db_path)
    try:
        rows = conn.execute(
            """
            SELECT block_id, trial_index, stimulus_id, category, is_correct,
                   mistakes, rt_ms, timestamp_ms
            FROM trial_result
            WHERE session_id = ?
            ORDER BY seq
            """,
            (int(session_id),),
        ).fetchall()
    finally:
        conn.close()

    return tuple(
        TrialResult(
            block_id=int(row[0]),
            trial_index=int(row[1]),
            stimulus_id=str(row[2]),
            category=str(row[3]),
            is_correct=bool(row[4]),
            mistakes=int(row[5]),
            reaction_time_ms=float(row[6]),
            timestamp_ms=int(row[7]),
        )
        for row in rows
    )


class SqliteResultSaver:
    """ResultSaver writing to a local SQLite file."""

    def __init__(self, db_path: Path) -> None:
        self._db_path = Path(db_path)
        self.last_session_id: int | None = None

    @property
    def db_path(self) -> Path:
        return self._db_path

    def save(self, session: SessionInfo, results: tuple[TrialResult, ...]) -> SaveOutcome:
        try:
            self._db_path.parent.mkdir(parents=True, exist_ok=True)
            self.last_session_id = record_iat_session(db_path=self._db_path, session=session, results=results)
        except (OSError, sqlite3.Error) as exc:
            logger.warning("could not write results to %s: %s", self._db_path, exc)
            return SaveOutcome.failed(str(exc))
        logger.info("stored session %d in %s", self.last_session_id, self._db_path)
        return SaveOutcome.ok()
