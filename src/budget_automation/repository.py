"""
Collaborator interfaces used by the automation service, plus in-memory
implementations for local runs and tests
"""

import copy
import logging
import threading
import uuid
from abc import ABC, abstractmethod
from dataclasses import replace
from datetime import datetime
from typing import Any, Dict, Iterable, List, Mapping, Optional

from .exceptions import EntryNotPending, LogPersistFailed
from .models import AutomationLogEntry, CampaignSnapshot, PENDING_ACTIONS


class CampaignSource(ABC):
    """Provides the campaigns to evaluate"""

    @abstractmethod
    def list_enabled_campaigns(self) -> List[CampaignSnapshot]:
        pass


class BudgetWriter(ABC):
    """Applies a new daily budget to a campaign"""

    @abstractmethod
    def update_budget(self, campaign_id: str, new_budget: float) -> Optional[CampaignSnapshot]:
        """
        Set the daily budget of a campaign

        Returns:
            The updated campaign, or None when the update did not go through
        """
        pass


class SettingsStore(ABC):
    """Provides the raw, un-normalized automation settings"""

    @abstractmethod
    def load_latest_settings(self) -> Optional[Mapping[str, Any]]:
        pass


class LogStore(ABC):
    """Append-only store for automation log entries"""

    @abstractmethod
    def append_log_entries(self, entries: List[AutomationLogEntry]) -> List[AutomationLogEntry]:
        """
        Persist entries and return them with their assigned ids

        Raises:
            LogPersistFailed: if the entries could not be saved
        """
        pass

    @abstractmethod
    def get_log_entry(self, entry_id: str) -> Optional[AutomationLogEntry]:
        pass

    @abstractmethod
    def update_log_entry(self, entry_id: str, action: str, approved: bool,
                         approved_at: datetime) -> bool:
        """
        Record an approval decision on a pending entry

        Returns False if it could not be saved.

        Raises:
            EntryNotPending: if the entry is missing or no longer pending
        """
        pass

    @abstractmethod
    def list_log_entries(self, action: Optional[str] = None,
                         limit: int = 100) -> List[AutomationLogEntry]:
        """Newest entries first, optionally filtered by action"""
        pass


class InMemoryCampaignStore(CampaignSource, BudgetWriter):
    """Campaign source and budget writer backed by a dict"""

    def __init__(self, campaigns: Iterable[CampaignSnapshot] = ()):
        self._campaigns: Dict[str, CampaignSnapshot] = {c.id: copy.copy(c) for c in campaigns}
        self._lock = threading.Lock()
        self.budget_updates: List[Dict[str, Any]] = []
        self.logger = logging.getLogger(__name__)

    def list_enabled_campaigns(self) -> List[CampaignSnapshot]:
        with self._lock:
            campaigns = sorted(self._campaigns.values(), key=lambda c: c.id)
            return [copy.copy(c) for c in campaigns if c.is_enabled]

    def get_campaign(self, campaign_id: str) -> Optional[CampaignSnapshot]:
        with self._lock:
            campaign = self._campaigns.get(campaign_id)
            return copy.copy(campaign) if campaign else None

    def update_budget(self, campaign_id: str, new_budget: float) -> Optional[CampaignSnapshot]:
        with self._lock:
            self.budget_updates.append({'campaign_id': campaign_id, 'new_budget': new_budget})
            campaign = self._campaigns.get(campaign_id)
            if campaign is None:
                self.logger.warning(f"Budget update for unknown campaign {campaign_id}")
                return None

            # Derived metrics are recomputed from the new budget on next read
            updated = replace(campaign, budget=new_budget, budget_utilization=None)
            self._campaigns[campaign_id] = updated
            return copy.copy(updated)


class InMemorySettingsStore(SettingsStore):
    """Settings store holding a single raw settings row"""

    def __init__(self, raw: Optional[Mapping[str, Any]] = None):
        self.raw = dict(raw) if raw is not None else None

    def load_latest_settings(self) -> Optional[Mapping[str, Any]]:
        return dict(self.raw) if self.raw is not None else None


class InMemoryLogStore(LogStore):
    """Log store keeping entries in insertion order"""

    def __init__(self):
        self._entries: Dict[str, AutomationLogEntry] = {}
        self._lock = threading.Lock()

    def append_log_entries(self, entries: List[AutomationLogEntry]) -> List[AutomationLogEntry]:
        stored = [replace(entry, id=entry.id or uuid.uuid4().hex) for entry in entries]
        with self._lock:
            for saved in stored:
                if saved.id in self._entries:
                    raise LogPersistFailed(f"Duplicate log entry id {saved.id}")
            for saved in stored:
                self._entries[saved.id] = replace(saved)
        return stored

    def get_log_entry(self, entry_id: str) -> Optional[AutomationLogEntry]:
        with self._lock:
            entry = self._entries.get(entry_id)
            return replace(entry) if entry else None

    def update_log_entry(self, entry_id: str, action: str, approved: bool,
                         approved_at: datetime) -> bool:
        with self._lock:
            entry = self._entries.get(entry_id)
            if entry is None or entry.action not in PENDING_ACTIONS:
                raise EntryNotPending("Action is not pending approval")
            self._entries[entry_id] = replace(
                entry, action=action, approved=approved, approved_at=approved_at
            )
            return True

    def list_log_entries(self, action: Optional[str] = None,
                         limit: int = 100) -> List[AutomationLogEntry]:
        with self._lock:
            entries = list(self._entries.values())
        entries.reverse()
        entries.sort(key=lambda e: e.created_at, reverse=True)
        if action is not None:
            entries = [e for e in entries if e.action == action]
        return [replace(e) for e in entries[:limit]]
