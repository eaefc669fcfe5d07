"""
Demo mode: sample campaigns and in-memory stores for trying the job without
Amazon API credentials or a database
"""

from typing import Any, Dict, List, Mapping, Optional

from .automation import BudgetAutomationService
from .config import RuntimeConfig
from .models import CampaignSnapshot, MODE_APPROVAL
from .repository import InMemoryCampaignStore, InMemoryLogStore, InMemorySettingsStore
from .telemetry import TelemetryClient

DEMO_SETTINGS: Dict[str, Any] = {'automation_mode': MODE_APPROVAL}

# name, status, budget, spend, sales, impressions, clicks
_CAMPAIGN_SEED = [
    ("Office Humor - Broad Match", "ENABLED", 45, 41.8, 176.42, 48320, 1988),
    ("Work Gifts - Exact", "ENABLED", 35, 31.6, 132.91, 39870, 1652),
    ("Corporate Jokes - Broad", "PAUSED", 28, 14.2, 31.55, 27210, 973),
    ("Manager Memes - Exact", "ENABLED", 40, 39.3, 86.46, 33654, 1261),
    ("Team Building - Phrase", "PAUSED", 30, 22.4, 98.14, 22418, 756),
    ("Office Humor - Exact Match", "ENABLED", 50, 46.9, 188.66, 50771, 2190),
    ("Work Gifts - Phrase", "ARCHIVED", 18, 5.2, 10.03, 12833, 366),
    ("HR Humor - Auto", "ENABLED", 22, 21.1, 30.58, 16432, 592),
    ("Startup Satire - Broad", "ENABLED", 42, 36.5, 128.72, 31891, 1245),
    ("Burnout Journal - Exact", "ENABLED", 26, 24.6, 73.42, 24018, 904),
    ("Coworker Farewell - Phrase", "ENABLED", 34, 18.4, 62.19, 18742, 618),
    ("Meeting Notes Sarcasm - Exact", "PAUSED", 23, 11.1, 18.84, 14988, 447),
]


def demo_campaigns() -> List[CampaignSnapshot]:
    """Fresh copies of the sample campaigns"""
    return [
        CampaignSnapshot(
            id=f'cmp-{index + 1}',
            name=name,
            status=status,
            budget=float(budget),
            spend=spend,
            sales=sales,
            impressions=impressions,
            clicks=clicks,
        )
        for index, (name, status, budget, spend, sales, impressions, clicks)
        in enumerate(_CAMPAIGN_SEED)
    ]


def build_demo_service(config: RuntimeConfig,
                       settings: Optional[Mapping[str, Any]] = None) -> BudgetAutomationService:
    """Service over the sample campaigns; nothing leaves the process"""
    store = InMemoryCampaignStore(demo_campaigns())
    return BudgetAutomationService(
        settings_store=InMemorySettingsStore(DEMO_SETTINGS if settings is None else settings),
        campaign_source=store,
        budget_writer=store,
        log_store=InMemoryLogStore(),
        telemetry=TelemetryClient({'telemetry_exporter': 'log'}),
        max_workers=config.max_workers,
    )
