"""Shared fixtures for the budget automation tests"""

from datetime import datetime, timezone

import pytest

from budget_automation.models import AutomationLogEntry, CampaignSnapshot
from budget_automation.repository import (
    InMemoryCampaignStore, InMemoryLogStore, InMemorySettingsStore,
)
from budget_automation.automation import BudgetAutomationService
from budget_automation.telemetry import TelemetryClient

FIXED_NOW = datetime(2026, 10, 18, 6, 0, tzinfo=timezone.utc)


def make_campaign(campaign_id='cmp-1', budget=45.0, spend=41.8, sales=176.42,
                  status='ENABLED', name=None, **kwargs) -> CampaignSnapshot:
    return CampaignSnapshot(
        id=campaign_id,
        name=name or f'Campaign {campaign_id}',
        status=status,
        budget=budget,
        spend=spend,
        sales=sales,
        **kwargs
    )


@pytest.fixture
def clock():
    return lambda: FIXED_NOW


@pytest.fixture
def campaigns():
    return [
        make_campaign('cmp-up', budget=45, spend=41.8, sales=176.42),
        make_campaign('cmp-down', budget=22, spend=21.1, sales=30.58),
        make_campaign('cmp-floor', budget=5.5, spend=6, sales=2),
        make_campaign('cmp-idle', budget=50, spend=10, sales=100),
        make_campaign('cmp-paused', budget=30, spend=29, sales=300, status='PAUSED'),
    ]


@pytest.fixture
def campaign_store(campaigns):
    return InMemoryCampaignStore(campaigns)


@pytest.fixture
def log_store():
    return InMemoryLogStore()


@pytest.fixture
def make_service(campaign_store, log_store, clock):
    def factory(settings=None, **kwargs):
        options = {
            'settings_store': InMemorySettingsStore(settings),
            'campaign_source': campaign_store,
            'budget_writer': campaign_store,
            'log_store': log_store,
            'telemetry': TelemetryClient({'telemetry_exporter': 'noop'}),
            'clock': clock,
        }
        options.update(kwargs)
        return BudgetAutomationService(**options)
    return factory


def make_entry(campaign_id='cmp-1', action='pending_increase', created_at=FIXED_NOW, **kwargs):
    fields = dict(
        campaign_id=campaign_id,
        campaign_name=f'Campaign {campaign_id}',
        action=action,
        rule_triggered='scale_up',
        old_budget=45.0,
        new_budget=54.0,
        budget_utilization=92.89,
        today_acos=23.69,
        acos_target=30.0,
        acos_threshold=40.0,
        reason="Budget util 92.89% > 80% and ACoS 23.69% < target 30.00%.",
        approved=False,
        approved_at=None,
        created_at=created_at,
    )
    fields.update(kwargs)
    return AutomationLogEntry(**fields)
