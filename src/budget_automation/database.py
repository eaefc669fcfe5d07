"""
Database connector for the budget automation engine
"""

import os
import logging
from dataclasses import replace
from datetime import datetime
from typing import Any, Dict, List, Mapping, Optional

import psycopg2
import psycopg2.extras

from .exceptions import EntryNotPending, LogPersistFailed
from .models import AutomationLogEntry, PENDING_ACTIONS
from .repository import LogStore, SettingsStore
from .utils.metrics import to_number

_LOG_COLUMNS = (
    'campaign_id', 'campaign_name', 'action', 'rule_triggered',
    'old_budget', 'new_budget', 'budget_utilization', 'today_acos',
    'acos_target', 'acos_threshold', 'reason', 'approved', 'approved_at', 'created_at',
)


class DatabaseConnector(SettingsStore, LogStore):
    """PostgreSQL-backed settings and automation log store"""

    def __init__(self, connection_string: str = None):
        """
        Initialize database connector

        Args:
            connection_string: PostgreSQL connection string (optional, will use env vars if not provided)
        """
        if connection_string:
            self.connection_string = connection_string
        elif os.getenv('DATABASE_URL'):
            self.connection_string = os.getenv('DATABASE_URL')
        else:
            # Build connection string from individual environment variables
            db_host = os.getenv('DB_HOST', 'localhost')
            db_port = os.getenv('DB_PORT', '5432')
            db_name = os.getenv('DB_NAME', 'amazon_ads')
            db_user = os.getenv('DB_USER', 'postgres')
            db_password = os.getenv('DB_PASSWORD')

            if not db_password:
                raise ValueError("DB_PASSWORD environment variable is required")

            self.connection_string = f"postgresql://{db_user}:{db_password}@{db_host}:{db_port}/{db_name}"

        self.logger = logging.getLogger(__name__)

    def get_connection(self):
        """Get database connection"""
        return psycopg2.connect(self.connection_string)

    # ------------------------------------------------------------------ #
    # Settings
    # ------------------------------------------------------------------ #

    def load_latest_settings(self) -> Optional[Mapping[str, Any]]:
        """
        Get the most recently updated settings row

        Returns:
            Raw settings row, or None if there is none or it cannot be read
        """
        query = """
        SELECT *
        FROM ad_settings
        ORDER BY updated_at DESC
        LIMIT 1
        """

        try:
            with self.get_connection() as conn:
                with conn.cursor(cursor_factory=psycopg2.extras.RealDictCursor) as cursor:
                    cursor.execute(query)
                    row = cursor.fetchone()
                    return dict(row) if row else None
        except psycopg2.Error as e:
            self.logger.error(f"Error loading automation settings: {e}")
            return None

    # ------------------------------------------------------------------ #
    # Automation log
    # ------------------------------------------------------------------ #

    def append_log_entries(self, entries: List[AutomationLogEntry]) -> List[AutomationLogEntry]:
        """
        Insert automation log entries in a single transaction

        Args:
            entries: Entries to insert

        Returns:
            Entries with their database ids
        """
        if not entries:
            return []

        query = f"""
        INSERT INTO automation_log ({', '.join(_LOG_COLUMNS)})
        VALUES ({', '.join(f'%({column})s' for column in _LOG_COLUMNS)})
        RETURNING id
        """

        stored = []
        try:
            with self.get_connection() as conn:
                with conn.cursor() as cursor:
                    for entry in entries:
                        cursor.execute(query, {column: getattr(entry, column) for column in _LOG_COLUMNS})
                        entry_id = cursor.fetchone()[0]
                        stored.append(self._with_id(entry, entry_id))
                    conn.commit()
        except psycopg2.Error as e:
            self.logger.error(f"Error inserting automation log entries: {e}")
            raise LogPersistFailed(str(e)) from e

        self.logger.info(f"Inserted {len(stored)} automation log entries")
        return stored

    def get_log_entry(self, entry_id: str) -> Optional[AutomationLogEntry]:
        query = f"""
        SELECT id, {', '.join(_LOG_COLUMNS)}
        FROM automation_log
        WHERE id = %s
        """

        try:
            with self.get_connection() as conn:
                with conn.cursor(cursor_factory=psycopg2.extras.RealDictCursor) as cursor:
                    cursor.execute(query, (entry_id,))
                    row = cursor.fetchone()
                    return self._row_to_entry(row) if row else None
        except psycopg2.Error as e:
            self.logger.error(f"Error fetching automation log entry {entry_id}: {e}")
            return None

    def update_log_entry(self, entry_id: str, action: str, approved: bool,
                         approved_at: datetime) -> bool:
        query = """
        UPDATE automation_log
        SET action = %s, approved = %s, approved_at = %s
        WHERE id = %s AND action IN %s
        """

        try:
            with self.get_connection() as conn:
                with conn.cursor() as cursor:
                    cursor.execute(query, (action, approved, approved_at, entry_id, PENDING_ACTIONS))
                    updated = cursor.rowcount > 0
                    conn.commit()
        except psycopg2.Error as e:
            self.logger.error(f"Error updating automation log entry {entry_id}: {e}")
            return False

        if not updated:
            # Resolved by another request since it was read
            raise EntryNotPending("Action is not pending approval")
        return True

    def list_log_entries(self, action: Optional[str] = None,
                         limit: int = 100) -> List[AutomationLogEntry]:
        query = f"""
        SELECT id, {', '.join(_LOG_COLUMNS)}
        FROM automation_log
        {'WHERE action = %s' if action else ''}
        ORDER BY created_at DESC
        LIMIT %s
        """
        params = (action, limit) if action else (limit,)

        try:
            with self.get_connection() as conn:
                with conn.cursor(cursor_factory=psycopg2.extras.RealDictCursor) as cursor:
                    cursor.execute(query, params)
                    return [self._row_to_entry(row) for row in cursor.fetchall()]
        except psycopg2.Error as e:
            self.logger.error(f"Error listing automation log entries: {e}")
            return []

    @staticmethod
    def _with_id(entry: AutomationLogEntry, entry_id: Any) -> AutomationLogEntry:
        return replace(entry, id=str(entry_id))

    @staticmethod
    def _row_to_entry(row: Dict[str, Any]) -> AutomationLogEntry:
        # numeric columns come back as Decimal or None
        return AutomationLogEntry(
            id=str(row['id']),
            campaign_id=str(row['campaign_id']),
            campaign_name=row['campaign_name'] or '',
            action=row['action'],
            rule_triggered=row['rule_triggered'],
            old_budget=to_number(row['old_budget'], 0.0),
            new_budget=to_number(row['new_budget'], 0.0),
            budget_utilization=to_number(row['budget_utilization'], 0.0),
            today_acos=to_number(row['today_acos'], 0.0),
            acos_target=to_number(row['acos_target'], 0.0),
            acos_threshold=to_number(row['acos_threshold'], 0.0),
            reason=row['reason'] or '',
            approved=bool(row['approved']),
            approved_at=row['approved_at'],
            created_at=row['created_at'],
        )
