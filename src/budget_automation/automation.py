"""
Budget automation service

Ties the settings store, campaign source, budget writer and log store to the
rule engine. Exposes the scheduled run and the approval step.
"""

import csv
import json
import logging
import threading
from datetime import datetime
from typing import Callable, Dict, List, Optional

from .config import AutomationSettings, normalize_settings
from .exceptions import (
    BudgetAutomationError, BudgetUpdateFailed, EntryNotFound, EntryNotPending, LogPersistFailed,
)
from .models import (
    AutomationLogEntry, RunResult, RunSummary, ApprovalResult,
    MODE_OFF, ACTION_PENDING_INCREASE, ACTION_INCREASE, ACTION_DECREASE, ACTION_REJECTED,
    PENDING_ACTIONS,
)
from .repository import BudgetWriter, CampaignSource, LogStore, SettingsStore
from .rule_engine import BudgetRuleEngine, utc_now
from .telemetry import TelemetryClient

RUN_SKIPPED_REASON = 'automation_mode_off'

EXPORT_COLUMNS = [
    'id', 'created_at', 'campaign_id', 'campaign_name', 'action', 'rule_triggered',
    'old_budget', 'new_budget', 'budget_utilization', 'today_acos',
    'acos_target', 'acos_threshold', 'reason', 'approved', 'approved_at',
]


class BudgetAutomationService:
    """Runs budget automation and resolves pending approvals"""

    def __init__(self, settings_store: SettingsStore, campaign_source: CampaignSource,
                 budget_writer: BudgetWriter, log_store: LogStore,
                 telemetry: Optional[TelemetryClient] = None, max_workers: int = 1,
                 clock: Callable[[], datetime] = utc_now):
        self.settings_store = settings_store
        self.campaign_source = campaign_source
        self.budget_writer = budget_writer
        self.log_store = log_store
        self.telemetry = telemetry or TelemetryClient({'telemetry_exporter': 'log'})
        self.max_workers = max_workers
        self.clock = clock
        self.logger = logging.getLogger(__name__)

        # One lock per log entry so an approve and a reject cannot interleave
        self._entry_locks: Dict[str, threading.Lock] = {}
        self._entry_locks_guard = threading.Lock()

    def load_settings(self) -> AutomationSettings:
        """Load and normalize the latest settings; store errors fall back to defaults"""
        try:
            raw = self.settings_store.load_latest_settings()
        except Exception as e:
            self.logger.error(f"Error loading automation settings, using defaults: {e}")
            raw = None
        return normalize_settings(raw)

    def run_evaluation(self, dry_run: bool = False) -> RunResult:
        """
        Evaluate all enabled campaigns once

        Args:
            dry_run: Evaluate without writing budgets or persisting the log

        Returns:
            RunResult with counters and the log entries produced
        """
        settings = self.load_settings()

        if settings.automation_mode == MODE_OFF:
            self.logger.info("Automation mode is off, run skipped")
            result = RunResult(
                ran=False,
                mode=settings.automation_mode,
                settings=settings.public_summary(),
                reason=RUN_SKIPPED_REASON,
            )
            self.telemetry.record_run(result)
            return result

        try:
            campaigns = [c for c in self.campaign_source.list_enabled_campaigns() if c.is_enabled]
        except Exception as e:
            self.logger.error(f"Error listing campaigns: {e}")
            campaigns = []

        engine = BudgetRuleEngine(
            budget_writer=None if dry_run else self.budget_writer,
            max_workers=self.max_workers,
            clock=self.clock,
        )
        decisions = engine.evaluate(settings, campaigns)

        summary = RunSummary()
        for decision in decisions:
            summary.record(decision)

        created_at = self.clock()
        entries = [
            AutomationLogEntry.from_decision(
                decision, settings.target_acos, settings.acos_threshold, created_at
            )
            for decision in decisions
        ]

        result = RunResult(
            ran=True,
            mode=settings.automation_mode,
            settings=settings.public_summary(),
            campaign_count=len(campaigns),
            summary=summary,
            log_entries=entries,
        )

        if entries and not dry_run:
            try:
                result.log_entries = self.log_store.append_log_entries(entries)
                result.log_inserted = len(result.log_entries)
            except LogPersistFailed as e:
                self.logger.error(f"Automation log was not saved: {e.message}")
                result.log_error = e.message

        self.logger.info(
            f"Run complete ({settings.automation_mode}): evaluated={summary.evaluated} "
            f"increased={summary.increased} decreased={summary.decreased} "
            f"pending={summary.pending_increase + summary.pending_decrease} "
            f"update_errors={summary.update_errors}"
        )
        self.telemetry.record_run(result)
        return result

    def resolve_approval(self, entry_id: str, approved: bool) -> ApprovalResult:
        """
        Approve or reject a pending log entry

        Approving writes the entry's new budget first; the entry only changes
        once that write succeeded. Resolutions of the same entry run one at a
        time, and the log store only updates entries that are still pending.
        """
        try:
            with self._entry_lock(entry_id):
                message = self._resolve(entry_id, approved)
        except BudgetAutomationError as e:
            self.logger.warning(f"Could not resolve log entry {entry_id}: {e.message}")
            self.telemetry.record_approval(approved, e.error_code)
            return ApprovalResult(success=False, message=e.message, error=e.error_code)

        self.telemetry.record_approval(approved, 'success')
        return ApprovalResult(success=True, message=message)

    def _entry_lock(self, entry_id: str) -> threading.Lock:
        with self._entry_locks_guard:
            return self._entry_locks.setdefault(entry_id, threading.Lock())

    def _resolve(self, entry_id: str, approved: bool) -> str:
        entry = self.log_store.get_log_entry(entry_id)
        if entry is None:
            raise EntryNotFound("Pending action not found")

        if entry.action not in PENDING_ACTIONS:
            raise EntryNotPending("Action is not pending approval")

        resolved_at = self.clock()

        if not approved:
            if not self.log_store.update_log_entry(entry_id, ACTION_REJECTED, False, resolved_at):
                raise LogPersistFailed(f"Reject failed: log entry {entry_id} was not saved")
            self.logger.info(f"Rejected {entry.action} for campaign {entry.campaign_id}")
            return "Action rejected"

        try:
            updated = self.budget_writer.update_budget(entry.campaign_id, entry.new_budget)
        except Exception as e:
            self.logger.error(f"Error updating budget for campaign {entry.campaign_id}: {e}")
            updated = None
        if updated is None:
            raise BudgetUpdateFailed("Budget update failed")

        resolved_action = ACTION_INCREASE if entry.action == ACTION_PENDING_INCREASE else ACTION_DECREASE
        if not self.log_store.update_log_entry(entry_id, resolved_action, True, resolved_at):
            raise LogPersistFailed(f"Update failed: log entry {entry_id} was not saved")

        self.logger.info(
            f"Approved {entry.action} for campaign {entry.campaign_id}: "
            f"${entry.old_budget:.2f} -> ${entry.new_budget:.2f}"
        )
        return "Budget updated"

    def list_pending(self, limit: int = 100) -> List[AutomationLogEntry]:
        """Pending entries, newest first"""
        pending = []
        for action in PENDING_ACTIONS:
            pending.extend(self.log_store.list_log_entries(action=action, limit=limit))
        pending.sort(key=lambda entry: entry.created_at, reverse=True)
        return pending[:limit]

    def export_log(self, entries: List[AutomationLogEntry], output_path: str,
                   format: str = 'json') -> None:
        """
        Export log entries to file

        Args:
            entries: Entries to export
            output_path: Output file path
            format: Output format ('json', 'csv')
        """
        if format == 'json':
            data = {
                'exported_at': self.clock().isoformat(),
                'total_entries': len(entries),
                'entries': [entry.to_dict() for entry in entries],
            }
            with open(output_path, 'w') as f:
                json.dump(data, f, indent=2)
        elif format == 'csv':
            with open(output_path, 'w', newline='') as f:
                writer = csv.DictWriter(f, fieldnames=EXPORT_COLUMNS)
                writer.writeheader()
                for entry in entries:
                    row = entry.to_dict()
                    writer.writerow({column: row[column] for column in EXPORT_COLUMNS})
        else:
            raise ValueError(f"Unsupported format: {format}")

        self.logger.info(f"Exported {len(entries)} log entries to {output_path}")
