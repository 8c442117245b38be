# runehelp/database.py

import logging
import os
import sqlite3
import threading
import time
from datetime import datetime, timezone
from pathlib import Path
from typing import Dict, Optional, Tuple

from runehelp.exceptions import PersistenceError
from runehelp.metrics import BossValue, MetricSet, SkillValue, StoredSnapshot

logger = logging.getLogger(__name__)

# UTC with millisecond precision, e.g. 2026-10-19T06:40:12.345Z
TIMESTAMP_SQL = "(strftime('%Y-%m-%dT%H:%M:%fZ', 'now'))"


class Database:
    """Snapshot store: players, snapshots and their skill/boss records."""

    def __init__(self, db_path: str = 'data/runehelp.db'):
        self.db_path = self._resolve_db_path(db_path)
        self.conn = None
        # One connection shared by request worker threads; every statement
        # sequence runs under this lock.
        self._lock = threading.RLock()
        self.init_database()

    @staticmethod
    def _resolve_db_path(db_path: str) -> str:
        """Return an absolute database path anchored to project root when relative."""
        path = Path(db_path)
        if path.is_absolute():
            return str(path)

        project_root = Path(__file__).resolve().parents[1]
        return str(project_root / path)

    def init_database(self):
        """Create tables if they don't exist."""
        try:
            db_dir = os.path.dirname(self.db_path)
            if db_dir:
                try:
                    os.makedirs(db_dir, exist_ok=True)
                except OSError as e:
                    raise PersistenceError(f"Failed to create database directory '{db_dir}': {e}")

            self.conn = sqlite3.connect(self.db_path, timeout=30.0, check_same_thread=False)
            self.conn.row_factory = sqlite3.Row
            self.conn.execute("PRAGMA busy_timeout = 30000")
            self.conn.execute("PRAGMA foreign_keys = ON")
            self._set_wal_mode_best_effort()

            cursor = self.conn.cursor()

            cursor.execute(f"""
                CREATE TABLE IF NOT EXISTS players (
                    player_id   INTEGER PRIMARY KEY AUTOINCREMENT,
                    username    TEXT UNIQUE NOT NULL,
                    created_at  TEXT NOT NULL DEFAULT {TIMESTAMP_SQL}
                )
            """)

            cursor.execute(f"""
                CREATE TABLE IF NOT EXISTS snapshots (
                    snapshot_id INTEGER PRIMARY KEY AUTOINCREMENT,
                    player_id   INTEGER NOT NULL,
                    created_at  TEXT NOT NULL DEFAULT {TIMESTAMP_SQL},
                    FOREIGN KEY (player_id) REFERENCES players(player_id) ON DELETE CASCADE
                )
            """)

            cursor.execute("""
                CREATE TABLE IF NOT EXISTS skill_records (
                    record_id   INTEGER PRIMARY KEY AUTOINCREMENT,
                    snapshot_id INTEGER NOT NULL,
                    skill_name  TEXT NOT NULL,
                    level       INTEGER NOT NULL CHECK (level >= 0),
                    xp          INTEGER NOT NULL CHECK (xp >= 0),
                    UNIQUE (snapshot_id, skill_name),
                    FOREIGN KEY (snapshot_id) REFERENCES snapshots(snapshot_id) ON DELETE CASCADE
                )
            """)

            cursor.execute("""
                CREATE TABLE IF NOT EXISTS boss_records (
                    record_id   INTEGER PRIMARY KEY AUTOINCREMENT,
                    snapshot_id INTEGER NOT NULL,
                    boss_name   TEXT NOT NULL,
                    kills       INTEGER NOT NULL CHECK (kills >= 0),
                    rank        INTEGER NOT NULL,
                    UNIQUE (snapshot_id, boss_name),
                    FOREIGN KEY (snapshot_id) REFERENCES snapshots(snapshot_id) ON DELETE CASCADE
                )
            """)

            self._commit_with_retry(context="init schema commit")
            self._migrate_schema()
        except sqlite3.Error as e:
            raise PersistenceError(f"Failed to initialize database at '{self.db_path}': {e}")

    def _migrate_schema(self) -> None:
        """
        Apply additive, idempotent schema migrations for older local databases.
        """
        try:
            cursor = self.conn.cursor()
            cursor.execute(
                "CREATE INDEX IF NOT EXISTS idx_snapshots_player_created "
                "ON snapshots (player_id, created_at)"
            )
            cursor.execute(
                "CREATE INDEX IF NOT EXISTS idx_skill_records_snapshot ON skill_records (snapshot_id)"
            )
            cursor.execute(
                "CREATE INDEX IF NOT EXISTS idx_boss_records_snapshot ON boss_records (snapshot_id)"
            )
            self._commit_with_retry(context="migrate schema commit")
        except sqlite3.Error as e:
            self.conn.rollback()
            raise PersistenceError(f"Failed to migrate database schema: {e}")

    def _commit_with_retry(self, retries: int = 8, delay_seconds: float = 0.25, context: str = "commit") -> None:
        """
        Retry commit on transient SQLITE_BUSY/locked errors.
        """
        last_error = None
        for attempt in range(retries):
            try:
                self.conn.commit()
                return
            except sqlite3.OperationalError as e:
                last_error = e
                if "locked" not in str(e).lower() and "busy" not in str(e).lower():
                    raise
                if attempt == retries - 1:
                    break
                time.sleep(delay_seconds)
        raise PersistenceError(
            f"Failed to {context}: database remained locked after {retries} attempts ({last_error})"
        )

    def _set_wal_mode_best_effort(self, retries: int = 5, delay_seconds: float = 0.2) -> None:
        """Try to enable WAL without failing startup if the DB is temporarily locked."""
        for attempt in range(retries):
            try:
                self.conn.execute("PRAGMA journal_mode = WAL")
                return
            except sqlite3.OperationalError as e:
                msg = str(e).lower()
                if "locked" not in msg and "busy" not in msg:
                    raise
                if attempt == retries - 1:
                    logger.warning("Could not enable WAL mode (database locked); continuing. (%s)", e)
                    return
                time.sleep(delay_seconds)

    @staticmethod
    def _parse_timestamp(value: str) -> datetime:
        parsed = datetime.fromisoformat(value.replace("Z", "+00:00"))
        if parsed.tzinfo is None:
            return parsed.replace(tzinfo=timezone.utc)
        return parsed

    # --- Players ---

    def upsert_player(self, username: str) -> int:
        """Add a player or return the existing player_id."""
        with self._lock:
            try:
                cursor = self.conn.cursor()
                cursor.execute("INSERT OR IGNORE INTO players (username) VALUES (?)", (username,))
                cursor.execute("SELECT player_id FROM players WHERE username = ?", (username,))
                row = cursor.fetchone()
                self._commit_with_retry(context=f"upsert player '{username}'")
                return row["player_id"]
            except (sqlite3.Error, PersistenceError) as e:
                self.conn.rollback()
                raise PersistenceError(f"Failed to upsert player '{username}': {e}")

    def get_player(self, username: str) -> Optional[Dict]:
        """Get player by username."""
        with self._lock:
            try:
                cursor = self.conn.cursor()
                cursor.execute(
                    "SELECT player_id, username, created_at FROM players WHERE username = ?",
                    (username,),
                )
                row = cursor.fetchone()
                return dict(row) if row else None
            except sqlite3.Error as e:
                raise PersistenceError(f"Failed to get player '{username}': {e}")

    # --- Snapshots ---

    def add_snapshot(self, player_id: int, commit: bool = True) -> Tuple[int, datetime]:
        """Insert an empty snapshot row and return (snapshot_id, created_at)."""
        with self._lock:
            try:
                cursor = self.conn.cursor()
                cursor.execute("INSERT INTO snapshots (player_id) VALUES (?)", (player_id,))
                snapshot_id = cursor.lastrowid
                cursor.execute(
                    "SELECT created_at FROM snapshots WHERE snapshot_id = ?", (snapshot_id,)
                )
                created_at = self._parse_timestamp(cursor.fetchone()["created_at"])
                if commit:
                    self._commit_with_retry(context=f"add snapshot for player {player_id}")
                return snapshot_id, created_at
            except (sqlite3.Error, PersistenceError) as e:
                self.conn.rollback()
                raise PersistenceError(f"Failed to add snapshot for player {player_id}: {e}")

    def add_skill_record(self, snapshot_id: int, skill_name: str, value: SkillValue, commit: bool = True) -> int:
        with self._lock:
            try:
                cursor = self.conn.cursor()
                cursor.execute(
                    "INSERT INTO skill_records (snapshot_id, skill_name, level, xp) VALUES (?, ?, ?, ?)",
                    (snapshot_id, skill_name, value.level, value.xp),
                )
                if commit:
                    self._commit_with_retry(context=f"add skill record '{skill_name}'")
                return cursor.lastrowid
            except (sqlite3.Error, PersistenceError) as e:
                self.conn.rollback()
                raise PersistenceError(
                    f"Failed to add skill record '{skill_name}' for snapshot {snapshot_id}: {e}"
                )

    def add_boss_record(self, snapshot_id: int, boss_name: str, value: BossValue, commit: bool = True) -> int:
        with self._lock:
            try:
                cursor = self.conn.cursor()
                cursor.execute(
                    "INSERT INTO boss_records (snapshot_id, boss_name, kills, rank) VALUES (?, ?, ?, ?)",
                    (snapshot_id, boss_name, value.kills, value.rank),
                )
                if commit:
                    self._commit_with_retry(context=f"add boss record '{boss_name}'")
                return cursor.lastrowid
            except (sqlite3.Error, PersistenceError) as e:
                self.conn.rollback()
                raise PersistenceError(
                    f"Failed to add boss record '{boss_name}' for snapshot {snapshot_id}: {e}"
                )

    def save_snapshot(self, player_id: int, metrics: MetricSet) -> StoredSnapshot:
        """
        Persist a snapshot and all of its records as one transaction.

        Any failing record insert rolls back the snapshot row too, so a
        partially written snapshot is never visible to later lookups.

        Args:
            player_id: Owner of the snapshot
            metrics: Values to record, one row per skill and per boss

        Returns:
            The stored snapshot with its store-assigned id and timestamp

        Raises:
            PersistenceError: If any statement or the commit fails
        """
        with self._lock:
            snapshot_id, created_at = self.add_snapshot(player_id, commit=False)
            for name, skill in metrics.skills.items():
                self.add_skill_record(snapshot_id, name, skill, commit=False)
            for name, boss in metrics.bosses.items():
                self.add_boss_record(snapshot_id, name, boss, commit=False)
            try:
                self._commit_with_retry(context=f"save snapshot {snapshot_id}")
            except (sqlite3.Error, PersistenceError) as e:
                self.conn.rollback()
                raise PersistenceError(f"Failed to save snapshot for player {player_id}: {e}")

        logger.debug(
            "Saved snapshot %s for player %s (%s skills, %s bosses)",
            snapshot_id, player_id, len(metrics.skills), len(metrics.bosses),
        )
        return StoredSnapshot(
            snapshot_id=snapshot_id,
            player_id=player_id,
            created_at=created_at,
            metrics=metrics,
        )

    def get_latest_snapshot(self, player_id: int) -> Optional[StoredSnapshot]:
        """Get the most recent snapshot for a player, records included."""
        with self._lock:
            try:
                cursor = self.conn.cursor()
                cursor.execute("""
                    SELECT snapshot_id, player_id, created_at
                    FROM snapshots
                    WHERE player_id = ?
                    ORDER BY created_at DESC, snapshot_id DESC
                    LIMIT 1
                """, (player_id,))
                row = cursor.fetchone()
            except sqlite3.Error as e:
                raise PersistenceError(f"Failed to get latest snapshot for player {player_id}: {e}")

            if not row:
                return None

            snapshot_id = row["snapshot_id"]
            metrics = MetricSet(
                skills=self.get_skill_records(snapshot_id),
                bosses=self.get_boss_records(snapshot_id),
            )
            return StoredSnapshot(
                snapshot_id=snapshot_id,
                player_id=row["player_id"],
                created_at=self._parse_timestamp(row["created_at"]),
                metrics=metrics,
            )

    def get_skill_records(self, snapshot_id: int) -> Dict[str, SkillValue]:
        with self._lock:
            try:
                cursor = self.conn.cursor()
                cursor.execute(
                    "SELECT skill_name, level, xp FROM skill_records WHERE snapshot_id = ?",
                    (snapshot_id,),
                )
                return {
                    row["skill_name"]: SkillValue(level=row["level"], xp=row["xp"])
                    for row in cursor.fetchall()
                }
            except sqlite3.Error as e:
                raise PersistenceError(f"Failed to get skill records for snapshot {snapshot_id}: {e}")

    def get_boss_records(self, snapshot_id: int) -> Dict[str, BossValue]:
        with self._lock:
            try:
                cursor = self.conn.cursor()
                cursor.execute(
                    "SELECT boss_name, kills, rank FROM boss_records WHERE snapshot_id = ?",
                    (snapshot_id,),
                )
                return {
                    row["boss_name"]: BossValue(kills=row["kills"], rank=row["rank"])
                    for row in cursor.fetchall()
                }
            except sqlite3.Error as e:
                raise PersistenceError(f"Failed to get boss records for snapshot {snapshot_id}: {e}")

    def snapshot_count(self, username: str) -> int:
        """Get the number of snapshots for a player."""
        with self._lock:
            try:
                cursor = self.conn.cursor()
                cursor.execute("""
                    SELECT COUNT(*) AS count
                    FROM snapshots s
                    JOIN players p ON s.player_id = p.player_id
                    WHERE p.username = ?
                """, (username,))
                return cursor.fetchone()["count"]
            except sqlite3.Error as e:
                raise PersistenceError(f"Failed to get snapshot count for '{username}': {e}")

    def close(self):
        """Close database connection."""
        with self._lock:
            if self.conn:
                self.conn.close()
                self.conn = None
