from __future__ import annotations

import base64
import json
import logging
import queue
import sqlite3
import threading
import time
import zlib
from collections.abc import Callable

from mazechase.persist.base import Persistence

logger = logging.getLogger(__name__)

PRAGMAS = (
    "PRAGMA journal_mode=WAL",
    "PRAGMA synchronous=NORMAL",
    "PRAGMA busy_timeout=5000",
)
COMPRESSED_PREFIX = "zlib:"


class SqlitePersistence(Persistence):
    def __init__(
        self,
        db_path: str,
        replay_compress: bool = False,
        replay_max_ticks: int = 0,
        replay_max_matches: int = 0,
    ) -> None:
        self.db_path = db_path
        self._local = threading.local()
        self._replay_compress = replay_compress
        self._replay_max_ticks = replay_max_ticks
        self._replay_max_matches = replay_max_matches
        self._init_db()
        # Writes are fire-and-forget; flush() waits for the queue to drain.
        self._writes: queue.Queue[Callable[[sqlite3.Connection], None] | None] = queue.Queue()
        self._closed = False
        self._writer = threading.Thread(
            target=self._drain_writes, name="mazechase-writer", daemon=True
        )
        self._writer.start()

    def _drain_writes(self) -> None:
        conn = self._connect()
        for task in iter(self._writes.get, None):
            try:
                task(conn)
                conn.commit()
            except Exception:
                conn.rollback()
                logger.exception("Dropped replay/score write")
            finally:
                self._writes.task_done()
        self._writes.task_done()
        conn.close()

    def _submit(self, task: Callable[[sqlite3.Connection], None]) -> None:
        if self._closed:
            raise RuntimeError("SqlitePersistence is closed")
        self._writes.put(task)

    def flush(self) -> None:
        self._writes.join()

    def _init_db(self) -> None:
        conn = self._get_conn()
        conn.execute("""
                CREATE TABLE IF NOT EXISTS scores (
                    match_id TEXT PRIMARY KEY,
                    score INTEGER NOT NULL,
                    outcome TEXT NOT NULL,
                    ticks INTEGER NOT NULL,
                    difficulty TEXT NOT NULL,
                    recorded_at INTEGER NOT NULL
                )
                """)
        conn.execute("""
                CREATE TABLE IF NOT EXISTS replay_ticks (
                    id INTEGER PRIMARY KEY AUTOINCREMENT,
                    match_id TEXT NOT NULL,
                    tick INTEGER NOT NULL,
                    snapshot TEXT NOT NULL,
                    created_at INTEGER NOT NULL,
                    UNIQUE(match_id, tick)
                )
                """)
        conn.execute("""
                CREATE TABLE IF NOT EXISTS replay_matches (
                    match_id TEXT PRIMARY KEY,
                    difficulty TEXT NOT NULL,
                    started_at INTEGER NOT NULL,
                    ended_at INTEGER,
                    outcome TEXT,
                    total_ticks INTEGER DEFAULT 0,
                    final_score INTEGER DEFAULT 0
                )
                """)
        conn.execute("CREATE INDEX IF NOT EXISTS idx_scores_score ON scores(score DESC)")
        conn.execute(
            "CREATE INDEX IF NOT EXISTS idx_replay_match_tick ON replay_ticks(match_id, tick)"
        )
        conn.commit()

    def _connect(self) -> sqlite3.Connection:
        conn = sqlite3.connect(self.db_path)
        for pragma in PRAGMAS:
            conn.execute(pragma)
        return conn

    def _get_conn(self) -> sqlite3.Connection:
        """Reader connection for the calling thread."""
        if not hasattr(self._local, "conn"):
            self._local.conn = self._connect()
        return self._local.conn

    def close(self) -> None:
        if self._closed:
            return
        self._closed = True
        self._writes.put(None)
        self._writer.join(timeout=2)
        if hasattr(self._local, "conn"):
            self._local.conn.close()
            del self._local.conn

    def record_match_result(
        self, match_id: str, score: int, outcome: str, ticks: int, difficulty: str
    ) -> None:
        recorded_at = int(time.time())

        def _task(conn: sqlite3.Connection) -> None:
            conn.execute(
                "INSERT OR REPLACE INTO scores(match_id, score, outcome, ticks, difficulty, "
                "recorded_at) VALUES (?, ?, ?, ?, ?, ?)",
                (match_id, score, outcome, ticks, difficulty, recorded_at),
            )

        self._submit(_task)

    def best_score(self) -> int:
        conn = self._get_conn()
        row = conn.execute("SELECT MAX(score) FROM scores").fetchone()
        return int(row[0]) if row and row[0] is not None else 0

    def leaderboard(self, limit: int = 10) -> list[dict]:
        conn = self._get_conn()
        rows = conn.execute(
            "SELECT match_id, score, outcome, ticks, difficulty, recorded_at FROM scores "
            "ORDER BY score DESC, ticks ASC LIMIT ?",
            (limit,),
        ).fetchall()
        return [
            {
                "match_id": r[0],
                "score": r[1],
                "outcome": r[2],
                "ticks": r[3],
                "difficulty": r[4],
                "recorded_at": r[5],
            }
            for r in rows
        ]

    def record_replay_tick(self, match_id: str, tick: int, snapshot: dict) -> None:
        payload = self._encode_snapshot(snapshot)
        created_at = int(time.time())

        def _task(conn: sqlite3.Connection) -> None:
            conn.execute(
                "INSERT OR IGNORE INTO replay_ticks(match_id, tick, snapshot, created_at) "
                "VALUES (?, ?, ?, ?)",
                (match_id, tick, payload, created_at),
            )
            if self._replay_max_ticks > 0:
                cutoff = tick - self._replay_max_ticks
                if cutoff >= 0:
                    conn.execute(
                        "DELETE FROM replay_ticks WHERE match_id = ? AND tick <= ?",
                        (match_id, cutoff),
                    )

        self._submit(_task)

    def register_match(self, match_id: str, difficulty: str) -> None:
        started_at = int(time.time())

        def _task(conn: sqlite3.Connection) -> None:
            conn.execute(
                "INSERT OR IGNORE INTO replay_matches(match_id, difficulty, started_at) "
                "VALUES (?, ?, ?)",
                (match_id, difficulty, started_at),
            )
            self._enforce_replay_match_limit(conn)

        self._submit(_task)

    def finalize_match(self, match_id: str, total_ticks: int, stats: dict) -> None:
        ended_at = int(time.time())
        outcome = stats.get("outcome")
        final_score = int(stats.get("score", 0))

        def _task(conn: sqlite3.Connection) -> None:
            conn.execute(
                "UPDATE replay_matches SET ended_at = ?, outcome = ?, total_ticks = ?, "
                "final_score = ? WHERE match_id = ?",
                (ended_at, outcome, total_ticks, final_score, match_id),
            )
            self._enforce_replay_match_limit(conn)

        self._submit(_task)

    def list_matches(self, limit: int = 50) -> list[dict]:
        conn = self._get_conn()
        rows = conn.execute(
            "SELECT match_id, difficulty, started_at, ended_at, outcome, total_ticks, "
            "final_score FROM replay_matches ORDER BY started_at DESC, rowid DESC LIMIT ?",
            (limit,),
        ).fetchall()
        return [
            {
                "match_id": row[0],
                "difficulty": row[1],
                "started_at": row[2],
                "ended_at": row[3],
                "outcome": row[4],
                "total_ticks": row[5],
                "final_score": row[6],
            }
            for row in rows
        ]

    def get_replay_ticks(self, match_id: str, start_tick: int = 0, limit: int = 100) -> list[dict]:
        conn = self._get_conn()
        rows = conn.execute(
            "SELECT tick, snapshot FROM replay_ticks WHERE match_id = ? AND tick >= ? "
            "ORDER BY tick ASC LIMIT ?",
            (match_id, start_tick, limit),
        ).fetchall()
        result: list[dict] = []
        for tick, snapshot in rows:
            result.append({"tick": tick, "snapshot": self._decode_snapshot(snapshot)})
        return result

    def _encode_snapshot(self, snapshot: dict) -> str:
        payload = json.dumps(snapshot, separators=(",", ":"))
        if self._replay_compress:
            packed = base64.b64encode(zlib.compress(payload.encode("utf-8")))
            return COMPRESSED_PREFIX + packed.decode("ascii")
        return payload

    def _decode_snapshot(self, payload: str) -> dict:
        if payload.startswith(COMPRESSED_PREFIX):
            packed = base64.b64decode(payload[len(COMPRESSED_PREFIX) :])
            payload = zlib.decompress(packed).decode("utf-8")
        return json.loads(payload)

    def _enforce_replay_match_limit(self, conn: sqlite3.Connection) -> None:
        """Drop the oldest finished matches beyond ``replay_max_matches``.

        Unfinished matches always survive and count against the limit.
        """
        if self._replay_max_matches <= 0:
            return
        (unfinished,) = conn.execute(
            "SELECT COUNT(*) FROM replay_matches WHERE ended_at IS NULL"
        ).fetchone()
        expired = conn.execute(
            "SELECT match_id FROM replay_matches WHERE ended_at IS NOT NULL "
            "ORDER BY started_at DESC, rowid DESC LIMIT -1 OFFSET ?",
            (max(0, self._replay_max_matches - unfinished),),
        ).fetchall()
        for (match_id,) in expired:
            conn.execute("DELETE FROM replay_ticks WHERE match_id = ?", (match_id,))
            conn.execute("DELETE FROM replay_matches WHERE match_id = ?", (match_id,))
