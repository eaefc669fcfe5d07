"""
Amazon Ads Budget Automation
============================

Adjusts Sponsored Products campaign daily budgets from today's spend and
sales: scale up budget-constrained campaigns with a good ACoS, scale down
campaigns above the ACoS threshold, optionally behind a human approval step.
"""

from .config import (
    AutomationSettings, AmazonCredentials, RuntimeConfig,
    DEFAULT_AUTOMATION_SETTINGS, normalize_settings, normalize_credentials,
)
from .models import (
    CampaignSnapshot, Decision, AutomationLogEntry, RunSummary, RunResult, ApprovalResult,
)
from .rules import ScaleUpRule, ScaleDownRule, CampaignMetrics, RuleResult
from .rule_engine import BudgetRuleEngine
from .repository import (
    CampaignSource, BudgetWriter, SettingsStore, LogStore,
    InMemoryCampaignStore, InMemorySettingsStore, InMemoryLogStore,
)
from .automation import BudgetAutomationService
from .exceptions import (
    BudgetAutomationError, ConfigInvalid, EntryNotFound, EntryNotPending,
    BudgetUpdateFailed, LogPersistFailed,
)

__version__ = "1.0.0"
__all__ = [
    # Settings
    "AutomationSettings",
    "AmazonCredentials",
    "RuntimeConfig",
    "DEFAULT_AUTOMATION_SETTINGS",
    "normalize_settings",
    "normalize_credentials",
    # Data model
    "CampaignSnapshot",
    "Decision",
    "AutomationLogEntry",
    "RunSummary",
    "RunResult",
    "ApprovalResult",
    # Rules
    "ScaleUpRule",
    "ScaleDownRule",
    "CampaignMetrics",
    "RuleResult",
    "BudgetRuleEngine",
    # Collaborators
    "CampaignSource",
    "BudgetWriter",
    "SettingsStore",
    "LogStore",
    "InMemoryCampaignStore",
    "InMemorySettingsStore",
    "InMemoryLogStore",
    # Service
    "BudgetAutomationService",
    # Errors
    "BudgetAutomationError",
    "ConfigInvalid",
    "EntryNotFound",
    "EntryNotPending",
    "BudgetUpdateFailed",
    "LogPersistFailed",
]
