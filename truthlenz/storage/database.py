from __future__ import annotations

import json
import logging
import sqlite3
import threading
import time
import uuid

from truthlenz.models.types import CacheEntry, CorrectionRecord

logger = logging.getLogger(__name__)

_CORRECTION_COLUMNS = (
    "original_content, original_verdict, correct_verdict, "
    "user_correction, content_type, media_base64"
)


class Database:
    def __init__(self, db_path: str = "truthlenz.db") -> None:
        self._db_path = db_path
        self._lock = threading.Lock()
        self._conn = sqlite3.connect(db_path, check_same_thread=False)
        self._conn.row_factory = sqlite3.Row
        self._create_tables()

    def _create_tables(self) -> None:
        with self._lock:
            cursor = self._conn.cursor()
            cursor.execute(
                """
                CREATE TABLE IF NOT EXISTS verification_cache (
                    content_hash TEXT PRIMARY KEY,
                    content_type TEXT,
                    original_input TEXT,
                    api_response TEXT,
                    hit_count INTEGER DEFAULT 0,
                    created_at TEXT,
                    last_hit_at TEXT
                )
                """
            )
            cursor.execute(
                """
                CREATE TABLE IF NOT EXISTS verification_feedback (
                    id TEXT PRIMARY KEY,
                    content_hash TEXT,
                    original_content TEXT,
                    content_type TEXT,
                    original_verdict TEXT,
                    original_score INTEGER,
                    is_correct INTEGER,
                    user_correction TEXT,
                    correct_verdict TEXT,
                    media_base64 TEXT,
                    created_at REAL
                )
                """
            )
            cursor.execute(
                "CREATE INDEX IF NOT EXISTS idx_feedback_hash "
                "ON verification_feedback (content_hash)"
            )
            cursor.execute(
                "CREATE INDEX IF NOT EXISTS idx_feedback_type "
                "ON verification_feedback (content_type, created_at)"
            )
            self._conn.commit()

    # -- verification cache ------------------------------------------------

    def get_cached(self, content_hash: str) -> CacheEntry | None:
        with self._lock:
            cursor = self._conn.execute(
                "SELECT content_hash, content_type, original_input, api_response, hit_count "
                "FROM verification_cache WHERE content_hash = ?",
                (content_hash,),
            )
            row = cursor.fetchone()
        if row is None:
            return None
        return CacheEntry(
            fingerprint=row["content_hash"],
            kind=row["content_type"],
            stored_input=row["original_input"],
            result=json.loads(row["api_response"]),
            hit_count=row["hit_count"] or 0,
        )

    def store_cached(
        self, content_hash: str, content_type: str, original_input: str, result: dict
    ) -> None:
        with self._lock:
            self._conn.execute(
                "INSERT INTO verification_cache "
                "(content_hash, content_type, original_input, api_response, hit_count, created_at) "
                "VALUES (?, ?, ?, ?, 0, ?) "
                "ON CONFLICT(content_hash) DO UPDATE SET "
                "content_type = excluded.content_type, "
                "original_input = excluded.original_input, "
                "api_response = excluded.api_response",
                (
                    content_hash,
                    content_type,
                    original_input,
                    json.dumps(result),
                    time.strftime("%Y-%m-%dT%H:%M:%SZ"),
                ),
            )
            self._conn.commit()

    def increment_cache_hit(self, content_hash: str) -> bool:
        with self._lock:
            cursor = self._conn.execute(
                "UPDATE verification_cache "
                "SET hit_count = hit_count + 1, last_hit_at = ? "
                "WHERE content_hash = ?",
                (time.strftime("%Y-%m-%dT%H:%M:%SZ"), content_hash),
            )
            self._conn.commit()
            return cursor.rowcount > 0

    # -- user corrections ----------------------------------------------------

    def save_correction(
        self,
        content_hash: str,
        record: CorrectionRecord,
        is_correct: bool = False,
        original_score: int = 50,
    ) -> str:
        correction_id = str(uuid.uuid4())
        with self._lock:
            self._conn.execute(
                "INSERT INTO verification_feedback "
                "(id, content_hash, original_content, content_type, original_verdict, "
                "original_score, is_correct, user_correction, correct_verdict, "
                "media_base64, created_at) "
                "VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)",
                (
                    correction_id,
                    content_hash,
                    record.original_content[:5000],
                    record.content_kind,
                    record.original_verdict,
                    original_score,
                    1 if is_correct else 0,
                    record.user_explanation or None,
                    record.correct_verdict or None,
                    record.media_payload,
                    time.time(),
                ),
            )
            self._conn.commit()
        return correction_id

    def find_corrections(self, content_hash: str, limit: int = 3) -> list[CorrectionRecord]:
        with self._lock:
            cursor = self._conn.execute(
                f"SELECT {_CORRECTION_COLUMNS} FROM verification_feedback "
                "WHERE content_hash = ? AND is_correct = 0 "
                "AND user_correction IS NOT NULL AND user_correction != '' "
                "ORDER BY created_at DESC, rowid DESC LIMIT ?",
                (content_hash, limit),
            )
            rows = cursor.fetchall()
        return [self._row_to_correction(row) for row in rows]

    def recent_corrections(self, content_type: str, limit: int = 10) -> list[CorrectionRecord]:
        with self._lock:
            cursor = self._conn.execute(
                f"SELECT {_CORRECTION_COLUMNS} FROM verification_feedback "
                "WHERE content_type = ? AND is_correct = 0 "
                "AND user_correction IS NOT NULL AND user_correction != '' "
                "ORDER BY created_at DESC, rowid DESC LIMIT ?",
                (content_type, limit),
            )
            rows = cursor.fetchall()
        return [self._row_to_correction(row) for row in rows]

    @staticmethod
    def _row_to_correction(row: sqlite3.Row) -> CorrectionRecord:
        return CorrectionRecord(
            original_content=row["original_content"] or "",
            original_verdict=row["original_verdict"] or "inconclusive",
            correct_verdict=row["correct_verdict"] or "",
            user_explanation=row["user_correction"] or "",
            content_kind=row["content_type"] or "text",
            media_payload=row["media_base64"],
        )

    def close(self) -> None:
        with self._lock:
            try:
                self._conn.commit()
                self._conn.close()
                logger.info("Database connection closed")
            except Exception as exc:
                logger.error("Error closing database: %s", exc)
