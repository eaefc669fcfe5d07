"""
Budget rule implementations for the budget automation engine
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Optional
import logging

from .config import AutomationSettings
from .models import CampaignSnapshot, RULE_SCALE_UP, RULE_SCALE_DOWN
from .utils.metrics import round2, calculate_budget_utilization, calculate_acos

# Utilization (%) above which a well-performing campaign is budget-constrained
UTILIZATION_SCALE_UP_THRESHOLD = 80
# A single scale-up never more than doubles the budget
MAX_SCALE_UP_MULTIPLIER = 2


@dataclass(frozen=True)
class CampaignMetrics:
    """Rounded metrics the budget rules are evaluated against"""
    old_budget: float
    budget_utilization: float
    today_acos: float

    @classmethod
    def from_snapshot(cls, campaign: CampaignSnapshot) -> 'CampaignMetrics':
        utilization = campaign.budget_utilization
        if utilization is None:
            utilization = calculate_budget_utilization(campaign.spend, campaign.budget)

        acos = campaign.today_acos
        if acos is None:
            acos = calculate_acos(campaign.spend, campaign.sales)

        return cls(
            old_budget=round2(campaign.budget),
            budget_utilization=round2(utilization),
            today_acos=round2(acos),
        )


@dataclass(frozen=True)
class RuleResult:
    """Result of a triggered budget rule"""
    rule_name: str  # 'scale_up', 'scale_down'
    new_budget: float
    reason: str
    at_floor: bool = False


class BaseRule(ABC):
    """Base class for all budget rules"""

    name = 'base'

    def __init__(self, settings: AutomationSettings):
        self.settings = settings
        self.logger = logging.getLogger(self.__class__.__name__)

    @abstractmethod
    def evaluate(self, metrics: CampaignMetrics) -> Optional[RuleResult]:
        """
        Evaluate rule against a campaign's metrics

        Args:
            metrics: Rounded campaign metrics

        Returns:
            RuleResult if rule is triggered, None otherwise
        """
        pass


class ScaleUpRule(BaseRule):
    """Raise the budget of campaigns that run out of budget at a good ACoS"""

    name = RULE_SCALE_UP

    def evaluate(self, metrics: CampaignMetrics) -> Optional[RuleResult]:
        target_acos = self.settings.target_acos
        if not (metrics.budget_utilization > UTILIZATION_SCALE_UP_THRESHOLD
                and metrics.today_acos < target_acos):
            return None

        old_budget = metrics.old_budget
        new_budget = round2(min(
            old_budget * (1 + self.settings.scale_up_pct / 100),
            old_budget * MAX_SCALE_UP_MULTIPLIER,
        ))
        reason = (
            f"Budget util {metrics.budget_utilization:.2f}% > {UTILIZATION_SCALE_UP_THRESHOLD}% "
            f"and ACoS {metrics.today_acos:.2f}% < target {target_acos:.2f}%."
        )
        return RuleResult(rule_name=self.name, new_budget=new_budget, reason=reason)


class ScaleDownRule(BaseRule):
    """Lower the budget of campaigns whose ACoS is above the threshold"""

    name = RULE_SCALE_DOWN

    def evaluate(self, metrics: CampaignMetrics) -> Optional[RuleResult]:
        threshold = self.settings.acos_threshold
        if not metrics.today_acos > threshold:
            return None

        floor = self.settings.budget_floor
        new_budget = round2(max(
            metrics.old_budget * (1 - self.settings.scale_down_pct / 100),
            floor,
        ))
        reason = f"ACoS {metrics.today_acos:.2f}% > threshold {threshold:.2f}%."
        return RuleResult(
            rule_name=self.name,
            new_budget=new_budget,
            reason=reason,
            at_floor=new_budget <= floor,
        )
