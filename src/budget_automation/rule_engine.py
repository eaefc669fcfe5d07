"""
Budget rule engine: turns campaign snapshots into budget decisions
"""

import logging
from concurrent.futures import ThreadPoolExecutor
from datetime import datetime, timezone
from typing import Callable, List, Optional

from .config import AutomationSettings
from .models import (
    CampaignSnapshot, Decision,
    MODE_OFF, MODE_APPROVAL, FLOOR_POLICY_SKIP,
    ACTION_INCREASE, ACTION_DECREASE, ACTION_SKIPPED_FLOOR, ACTION_NO_ACTION,
    ACTION_PENDING_INCREASE, ACTION_PENDING_DECREASE,
)
from .repository import BudgetWriter
from .rules import CampaignMetrics, RuleResult, ScaleUpRule, ScaleDownRule

UPDATE_FAILED_SUFFIX = " Budget update failed."


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


class BudgetRuleEngine:
    """Evaluates the scale-up/scale-down budget rules for enabled campaigns"""

    def __init__(self, budget_writer: Optional[BudgetWriter] = None, max_workers: int = 1,
                 clock: Callable[[], datetime] = utc_now):
        """
        Initialize the rule engine

        Args:
            budget_writer: Applies budgets in 'auto' mode; None evaluates without writing
            max_workers: Campaigns evaluated in parallel (1 = sequential)
            clock: Source of approval timestamps
        """
        self.budget_writer = budget_writer
        self.max_workers = max(1, max_workers)
        self.clock = clock
        self.logger = logging.getLogger(__name__)

    def evaluate(self, settings: AutomationSettings,
                 campaigns: List[CampaignSnapshot]) -> List[Decision]:
        """
        Evaluate every enabled campaign

        Args:
            settings: Normalized settings snapshot for the whole run
            campaigns: Campaigns to evaluate; non-enabled ones are ignored

        Returns:
            One decision per enabled campaign, in input order
        """
        if settings.automation_mode == MODE_OFF:
            self.logger.info("Automation mode is off, skipping evaluation")
            return []

        enabled = [campaign for campaign in campaigns if campaign.is_enabled]
        self.logger.info(f"Evaluating {len(enabled)} enabled campaigns in {settings.automation_mode} mode")

        if self.max_workers == 1 or len(enabled) < 2:
            return [self.evaluate_campaign(settings, campaign) for campaign in enabled]

        with ThreadPoolExecutor(max_workers=self.max_workers) as executor:
            return list(executor.map(lambda c: self.evaluate_campaign(settings, c), enabled))

    def evaluate_campaign(self, settings: AutomationSettings, campaign: CampaignSnapshot) -> Decision:
        """Decide the budget action for a single campaign"""
        metrics = CampaignMetrics.from_snapshot(campaign)
        approval_mode = settings.automation_mode == MODE_APPROVAL

        scale_up = ScaleUpRule(settings).evaluate(metrics)
        if scale_up:
            if approval_mode:
                return self._pending(campaign, metrics, scale_up, ACTION_PENDING_INCREASE)
            return self._apply(campaign, metrics, scale_up, ACTION_INCREASE)

        scale_down = ScaleDownRule(settings).evaluate(metrics)
        if scale_down:
            if scale_down.at_floor:
                floor_reason = f"{scale_down.reason} Budget held at floor {settings.budget_floor:.2f}."
                if not approval_mode:
                    return self._apply(campaign, metrics, scale_down, ACTION_SKIPPED_FLOOR,
                                       reason=floor_reason)
                if settings.approval_floor_policy == FLOOR_POLICY_SKIP:
                    return self._resolved(campaign, metrics, scale_down, ACTION_SKIPPED_FLOOR,
                                          reason=floor_reason)

            if approval_mode:
                return self._pending(campaign, metrics, scale_down, ACTION_PENDING_DECREASE)
            return self._apply(campaign, metrics, scale_down, ACTION_DECREASE)

        reason = (
            f"No rules triggered. Util {metrics.budget_utilization:.2f}%, "
            f"ACoS {metrics.today_acos:.2f}%."
        )
        return self._decision(campaign, metrics, ACTION_NO_ACTION, None, metrics.old_budget,
                              reason, approved=True, approved_at=self.clock())

    def _decision(self, campaign: CampaignSnapshot, metrics: CampaignMetrics, action: str,
                  rule_triggered: Optional[str], new_budget: float, reason: str,
                  approved: bool, approved_at: Optional[datetime],
                  update_failed: bool = False) -> Decision:
        return Decision(
            campaign_id=campaign.id,
            campaign_name=campaign.name,
            action=action,
            rule_triggered=rule_triggered,
            old_budget=metrics.old_budget,
            new_budget=new_budget,
            budget_utilization=metrics.budget_utilization,
            today_acos=metrics.today_acos,
            reason=reason,
            approved=approved,
            approved_at=approved_at,
            update_failed=update_failed,
        )

    def _pending(self, campaign: CampaignSnapshot, metrics: CampaignMetrics,
                 result: RuleResult, action: str) -> Decision:
        self.logger.info(f"Campaign {campaign.id}: {action} to ${result.new_budget:.2f} awaits approval")
        return self._decision(campaign, metrics, action, result.rule_name, result.new_budget,
                              result.reason, approved=False, approved_at=None)

    def _resolved(self, campaign: CampaignSnapshot, metrics: CampaignMetrics,
                  result: RuleResult, action: str, reason: str) -> Decision:
        return self._decision(campaign, metrics, action, result.rule_name, result.new_budget,
                              reason, approved=True, approved_at=self.clock())

    def _apply(self, campaign: CampaignSnapshot, metrics: CampaignMetrics, result: RuleResult,
               action: str, reason: Optional[str] = None) -> Decision:
        """Write the new budget and record the decision whatever the outcome"""
        reason = reason or result.reason
        update_failed = False

        if self.budget_writer is None:
            self.logger.info(f"Campaign {campaign.id}: {action} to ${result.new_budget:.2f} (not written)")
        elif not self._write_budget(campaign.id, result.new_budget):
            update_failed = True
            reason += UPDATE_FAILED_SUFFIX
        else:
            self.logger.info(
                f"Campaign {campaign.id}: budget ${metrics.old_budget:.2f} -> ${result.new_budget:.2f} ({action})"
            )

        return self._decision(campaign, metrics, action, result.rule_name, result.new_budget,
                              reason, approved=True, approved_at=self.clock(),
                              update_failed=update_failed)

    def _write_budget(self, campaign_id: str, new_budget: float) -> bool:
        try:
            updated = self.budget_writer.update_budget(campaign_id, new_budget)
        except Exception as e:
            self.logger.error(f"Error updating budget for campaign {campaign_id}: {e}")
            return False

        if updated is None:
            self.logger.error(f"Budget update for campaign {campaign_id} was not confirmed")
            return False
        return True
