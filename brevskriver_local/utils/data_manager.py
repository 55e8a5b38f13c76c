"""
Local Data Manager for Brevskriver Local
Handles SQLite database operations for drafts, the sender profile and letter history
"""

import sqlite3
import json
from typing import Dict, Any, List, Optional
import logging
from pathlib import Path

from ..errors import PersistenceFailure


class LocalDataManager:
    """
    Manages local data storage using a SQLite database.
    Provides the key/value slots used by the draft and profile stores and the
    ordered letter history table.
    """

    # Class-level tracking to prevent multiple initializations
    _initialized_databases = set()
    _history_columns = [
        'history_id',
        'input_language',
        'tone',
        'scenario',
        'subject',
        'recipient',
        'body',
        'output',
        'created_at',
    ]

    def __init__(self, data_dir: str = "./brevskriver_data"):
        """
        Initialize data manager with specified data directory.

        Args:
            data_dir: Directory path for storing local data
        """
        self.data_dir = Path(data_dir).expanduser()
        self.db_path = self.data_dir / "brevskriver.db"
        self.config_dir = self.data_dir / "config"
        self.exports_dir = self.data_dir / "exports"
        self.logs_dir = self.data_dir / "logs"

        self.logger = logging.getLogger("brevskriver.data_manager")
        self.available = True

        self._create_directories()
        self._init_database_optimized()

    def _create_directories(self) -> None:
        """Create necessary directories for data storage."""
        for directory in [self.data_dir, self.config_dir, self.exports_dir, self.logs_dir]:
            directory.mkdir(parents=True, exist_ok=True)

    def _init_database_optimized(self) -> None:
        """
        Initialize the database once per process.
        Skips the schema pass when this database path was already set up.
        """
        db_path_str = str(self.db_path)

        if db_path_str in LocalDataManager._initialized_databases and self.db_path.exists():
            self.logger.debug("Database already initialized in this process, skipping initialization")
            return

        self.logger.info("Performing database initialization")
        try:
            self._init_database()
        except PersistenceFailure as e:
            # Stores treat every later failure as "fall back to defaults"
            self.available = False
            self.logger.warning(f"Running without local storage: {str(e)}")
            return
        LocalDataManager._initialized_databases.add(db_path_str)

    def _init_database(self) -> None:
        """Initialize SQLite database with required tables."""
        try:
            with sqlite3.connect(self.db_path) as conn:
                cursor = conn.cursor()

                cursor.execute("""
                    CREATE TABLE IF NOT EXISTS app_state (
                        state_key TEXT PRIMARY KEY,
                        value_json TEXT NOT NULL,
                        updated_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP
                    )
                """)

                cursor.execute("""
                    CREATE TABLE IF NOT EXISTS letter_history (
                        seq INTEGER PRIMARY KEY AUTOINCREMENT,
                        history_id TEXT NOT NULL UNIQUE,
                        input_language TEXT,
                        tone TEXT,
                        scenario TEXT,
                        subject TEXT,
                        recipient TEXT,
                        body TEXT,
                        output TEXT,
                        created_at TEXT
                    )
                """)

                cursor.execute("""
                    CREATE INDEX IF NOT EXISTS idx_letter_history_created
                    ON letter_history(created_at)
                """)

                conn.commit()
                self.logger.debug("Database schema ready")

        except sqlite3.Error as e:
            self.logger.error(f"Failed to initialize database: {str(e)}")
            raise PersistenceFailure(f"Failed to initialize database: {e}") from e

    # ------------------------------------------------------------------
    # Key/value state (draft, profile)
    # ------------------------------------------------------------------

    def get_state(self, state_key: str) -> Optional[Any]:
        """
        Get a stored state value.

        Args:
            state_key: State slot identifier

        Returns:
            Decoded JSON value or None if the slot is empty

        Raises:
            PersistenceFailure: If the database cannot be read or the value is malformed
        """
        try:
            with sqlite3.connect(self.db_path) as conn:
                cursor = conn.cursor()
                cursor.execute(
                    "SELECT value_json FROM app_state WHERE state_key = ?", (state_key,))
                row = cursor.fetchone()

            if not row:
                return None
            return json.loads(row[0])

        except (sqlite3.Error, json.JSONDecodeError, TypeError) as e:
            self.logger.error(f"Failed to read state {state_key}: {str(e)}")
            raise PersistenceFailure(f"Failed to read state {state_key}: {e}") from e

    def set_state(self, state_key: str, value: Any) -> None:
        """
        Save a state value, replacing any previous one.

        Args:
            state_key: State slot identifier
            value: JSON-serialisable value
        """
        try:
            value_json = json.dumps(value, ensure_ascii=False)
            with sqlite3.connect(self.db_path) as conn:
                cursor = conn.cursor()
                cursor.execute("""
                    INSERT INTO app_state (state_key, value_json, updated_at)
                    VALUES (?, ?, CURRENT_TIMESTAMP)
                    ON CONFLICT(state_key) DO UPDATE SET
                        value_json = excluded.value_json,
                        updated_at = CURRENT_TIMESTAMP
                """, (state_key, value_json))
                conn.commit()
                self.logger.debug(f"Saved state: {state_key}")

        except (sqlite3.Error, TypeError, ValueError) as e:
            self.logger.error(f"Failed to save state {state_key}: {str(e)}")
            raise PersistenceFailure(f"Failed to save state {state_key}: {e}") from e

    def delete_state(self, state_key: str) -> None:
        """Remove a state slot."""
        try:
            with sqlite3.connect(self.db_path) as conn:
                conn.execute("DELETE FROM app_state WHERE state_key = ?", (state_key,))
                conn.commit()
                self.logger.debug(f"Removed state: {state_key}")

        except sqlite3.Error as e:
            self.logger.error(f"Failed to remove state {state_key}: {str(e)}")
            raise PersistenceFailure(f"Failed to remove state {state_key}: {e}") from e

    # ------------------------------------------------------------------
    # Letter history
    # ------------------------------------------------------------------

    def insert_history_item(self, item: Dict[str, Any], limit: Optional[int] = None) -> int:
        """
        Insert a history row and evict the oldest rows beyond the limit.

        Args:
            item: Row values keyed by history column name
            limit: Maximum number of rows to keep (None keeps everything)

        Returns:
            Number of evicted rows
        """
        values = tuple(item.get(column) for column in self._history_columns)
        placeholders = ", ".join("?" for _ in self._history_columns)

        try:
            with sqlite3.connect(self.db_path) as conn:
                cursor = conn.cursor()
                cursor.execute(
                    f"INSERT INTO letter_history ({', '.join(self._history_columns)}) VALUES ({placeholders})",
                    values,
                )

                evicted = 0
                if limit is not None:
                    cursor.execute("""
                        DELETE FROM letter_history
                        WHERE seq NOT IN (
                            SELECT seq FROM letter_history ORDER BY seq DESC LIMIT ?
                        )
                    """, (max(int(limit), 0),))
                    evicted = cursor.rowcount

                conn.commit()
                self.logger.debug(f"Saved history item: {item.get('history_id')} (evicted {evicted})")
                return evicted

        except sqlite3.Error as e:
            self.logger.error(f"Failed to save history item: {str(e)}")
            raise PersistenceFailure(f"Failed to save history item: {e}") from e

    def list_history_rows(self) -> List[Dict[str, Any]]:
        """
        List history rows, most recent first.

        Returns:
            List of row dictionaries
        """
        try:
            with sqlite3.connect(self.db_path) as conn:
                conn.row_factory = sqlite3.Row
                cursor = conn.cursor()
                cursor.execute("SELECT * FROM letter_history ORDER BY seq DESC")
                return [dict(row) for row in cursor.fetchall()]

        except sqlite3.Error as e:
            self.logger.error(f"Failed to list history: {str(e)}")
            raise PersistenceFailure(f"Failed to list history: {e}") from e

    def get_history_row(self, history_id: str) -> Optional[Dict[str, Any]]:
        try:
            with sqlite3.connect(self.db_path) as conn:
                conn.row_factory = sqlite3.Row
                cursor = conn.cursor()
                cursor.execute(
                    "SELECT * FROM letter_history WHERE history_id = ?", (history_id,))
                row = cursor.fetchone()
                return dict(row) if row else None

        except sqlite3.Error as e:
            self.logger.error(f"Failed to get history item {history_id}: {str(e)}")
            raise PersistenceFailure(f"Failed to get history item {history_id}: {e}") from e

    def delete_history_row(self, history_id: str) -> bool:
        """
        Delete one history row.

        Returns:
            True if a row was deleted
        """
        try:
            with sqlite3.connect(self.db_path) as conn:
                cursor = conn.cursor()
                cursor.execute("DELETE FROM letter_history WHERE history_id = ?", (history_id,))
                conn.commit()
                return cursor.rowcount > 0

        except sqlite3.Error as e:
            self.logger.error(f"Failed to delete history item {history_id}: {str(e)}")
            raise PersistenceFailure(f"Failed to delete history item {history_id}: {e}") from e

    def clear_history_rows(self) -> int:
        """Delete every history row and return how many were removed."""
        try:
            with sqlite3.connect(self.db_path) as conn:
                cursor = conn.cursor()
                cursor.execute("DELETE FROM letter_history")
                conn.commit()
                self.logger.info(f"Cleared {cursor.rowcount} history items")
                return cursor.rowcount

        except sqlite3.Error as e:
            self.logger.error(f"Failed to clear history: {str(e)}")
            raise PersistenceFailure(f"Failed to clear history: {e}") from e
