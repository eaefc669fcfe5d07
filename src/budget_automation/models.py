"""
Data model for campaign snapshots, decisions and the automation log
"""

from dataclasses import dataclass, field, asdict
from datetime import datetime
from typing import Any, Dict, List, Optional

# Automation modes
MODE_OFF = 'off'
MODE_APPROVAL = 'approval'
MODE_AUTO = 'auto'
AUTOMATION_MODES = (MODE_OFF, MODE_APPROVAL, MODE_AUTO)

# What happens in approval mode when a scale-down lands on the budget floor
FLOOR_POLICY_PENDING = 'pending'
FLOOR_POLICY_SKIP = 'skip'
APPROVAL_FLOOR_POLICIES = (FLOOR_POLICY_PENDING, FLOOR_POLICY_SKIP)

# Log entry actions
ACTION_INCREASE = 'increase'
ACTION_DECREASE = 'decrease'
ACTION_SKIPPED_FLOOR = 'skipped_floor'
ACTION_NO_ACTION = 'no_action'
ACTION_PENDING_INCREASE = 'pending_increase'
ACTION_PENDING_DECREASE = 'pending_decrease'
ACTION_REJECTED = 'rejected'
PENDING_ACTIONS = (ACTION_PENDING_INCREASE, ACTION_PENDING_DECREASE)

RULE_SCALE_UP = 'scale_up'
RULE_SCALE_DOWN = 'scale_down'

STATUS_ENABLED = 'ENABLED'


@dataclass
class CampaignSnapshot:
    """Current state of one campaign as reported by the campaign source"""
    id: str
    name: str
    status: str  # 'ENABLED', 'PAUSED', 'ARCHIVED'
    budget: float
    spend: float
    sales: float
    impressions: int = 0
    clicks: int = 0
    # Precomputed by the source when available; None means "compute it"
    budget_utilization: Optional[float] = None
    today_acos: Optional[float] = None

    @property
    def is_enabled(self) -> bool:
        return self.status == STATUS_ENABLED


@dataclass
class Decision:
    """Outcome of evaluating the budget rules for one campaign"""
    campaign_id: str
    campaign_name: str
    action: str
    rule_triggered: Optional[str]  # 'scale_up', 'scale_down' or None
    old_budget: float
    new_budget: float
    budget_utilization: float
    today_acos: float
    reason: str
    approved: bool
    approved_at: Optional[datetime] = None
    update_failed: bool = False


@dataclass
class AutomationLogEntry:
    """Persisted audit record of one decision"""
    campaign_id: str
    campaign_name: str
    action: str
    rule_triggered: Optional[str]
    old_budget: float
    new_budget: float
    budget_utilization: float
    today_acos: float
    acos_target: float
    acos_threshold: float
    reason: str
    approved: bool
    approved_at: Optional[datetime]
    created_at: datetime
    id: Optional[str] = None

    @classmethod
    def from_decision(cls, decision: Decision, acos_target: float,
                      acos_threshold: float, created_at: datetime) -> 'AutomationLogEntry':
        return cls(
            campaign_id=decision.campaign_id,
            campaign_name=decision.campaign_name,
            action=decision.action,
            rule_triggered=decision.rule_triggered,
            old_budget=decision.old_budget,
            new_budget=decision.new_budget,
            budget_utilization=decision.budget_utilization,
            today_acos=decision.today_acos,
            acos_target=acos_target,
            acos_threshold=acos_threshold,
            reason=decision.reason,
            approved=decision.approved,
            approved_at=decision.approved_at,
            created_at=created_at,
        )

    @property
    def is_pending(self) -> bool:
        return self.action in PENDING_ACTIONS

    def to_dict(self) -> Dict[str, Any]:
        data = asdict(self)
        data['approved_at'] = self.approved_at.isoformat() if self.approved_at else None
        data['created_at'] = self.created_at.isoformat()
        return data


@dataclass
class RunSummary:
    """Run-level counters"""
    evaluated: int = 0
    increased: int = 0
    decreased: int = 0
    skipped_floor: int = 0
    no_action: int = 0
    pending_increase: int = 0
    pending_decrease: int = 0
    update_errors: int = 0

    def record(self, decision: Decision) -> None:
        self.evaluated += 1
        if decision.action == ACTION_INCREASE:
            self.increased += 1
        elif decision.action == ACTION_DECREASE:
            self.decreased += 1
        elif decision.action == ACTION_SKIPPED_FLOOR:
            self.skipped_floor += 1
        elif decision.action == ACTION_NO_ACTION:
            self.no_action += 1
        elif decision.action == ACTION_PENDING_INCREASE:
            self.pending_increase += 1
        elif decision.action == ACTION_PENDING_DECREASE:
            self.pending_decrease += 1

        if decision.update_failed:
            self.update_errors += 1

    def to_dict(self) -> Dict[str, int]:
        return asdict(self)


@dataclass
class RunResult:
    """Result of one scheduled evaluation run"""
    ran: bool
    mode: str
    settings: Dict[str, Any]
    reason: Optional[str] = None
    campaign_count: int = 0
    summary: RunSummary = field(default_factory=RunSummary)
    log_entries: List[AutomationLogEntry] = field(default_factory=list)
    log_inserted: int = 0
    log_error: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            'ran': self.ran,
            'mode': self.mode,
            'reason': self.reason,
            'settings': dict(self.settings),
            'campaign_count': self.campaign_count,
            'summary': self.summary.to_dict(),
            'log_inserted': self.log_inserted,
            'log_error': self.log_error,
            'log_entries': [entry.to_dict() for entry in self.log_entries],
        }


@dataclass
class ApprovalResult:
    """Result of approving or rejecting a pending log entry"""
    success: bool
    message: str
    error: Optional[str] = None  # error_code of the failure, None on success
