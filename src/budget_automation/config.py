"""
Configuration module for the budget automation engine

Two kinds of configuration live here:

* ``AutomationSettings`` -- the business settings edited from the dashboard
  and stored in the ``ad_settings`` table. They are normalized field by field
  so that a bad or missing value never stops a run.
* ``RuntimeConfig`` -- process options for the scheduled job (worker count,
  API endpoint, telemetry) loaded from a JSON file.
"""

import os
import json
import logging
from dataclasses import dataclass, asdict, fields
from typing import Any, Dict, List, Mapping, Optional, Union

from .exceptions import ConfigInvalid
from .models import (
    AUTOMATION_MODES, APPROVAL_FLOOR_POLICIES, MODE_AUTO, MODE_OFF, FLOOR_POLICY_PENDING,
)
from .utils.metrics import to_number

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class AutomationSettings:
    """Immutable snapshot of the budget automation settings"""

    target_acos: float = 30.0  # ACoS % below which scaling up is allowed
    acos_threshold: float = 40.0  # ACoS % above which scaling down triggers
    scale_up_pct: float = 20.0
    scale_down_pct: float = 15.0
    budget_floor: float = 5.0  # Minimum daily budget ($)
    automation_mode: str = MODE_OFF  # 'off', 'approval', 'auto'
    daily_budget_cap: float = 100.0  # Advisory only, not enforced by the engine
    approval_floor_policy: str = FLOOR_POLICY_PENDING  # 'pending', 'skip'

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)

    def public_summary(self) -> Dict[str, Any]:
        """Settings echoed back in run results"""
        return {
            'target_acos': self.target_acos,
            'acos_threshold': self.acos_threshold,
            'scale_up_pct': self.scale_up_pct,
            'scale_down_pct': self.scale_down_pct,
            'budget_floor': self.budget_floor,
            'automation_mode': self.automation_mode,
        }


DEFAULT_AUTOMATION_SETTINGS = AutomationSettings()

_NUMERIC_FIELDS = (
    'target_acos',
    'acos_threshold',
    'scale_up_pct',
    'scale_down_pct',
    'budget_floor',
    'daily_budget_cap',
)


def _normalize_choice(value: Any, choices) -> Optional[str]:
    if not isinstance(value, str):
        return None
    candidate = value.strip().lower()
    return candidate if candidate in choices else None


def normalize_settings(raw: Union[Mapping[str, Any], AutomationSettings, None]) -> AutomationSettings:
    """
    Build a fully populated AutomationSettings from a possibly partial row.

    Never raises: every field falls back to its default independently. When
    ``automation_mode`` is missing or unknown, the legacy boolean
    ``automation_enabled`` decides between 'auto' and 'off'.
    """
    if raw is None:
        return DEFAULT_AUTOMATION_SETTINGS
    if isinstance(raw, AutomationSettings):
        raw = raw.to_dict()
    if not isinstance(raw, Mapping):
        logger.warning(f"Ignoring settings of unexpected type {type(raw).__name__}")
        return DEFAULT_AUTOMATION_SETTINGS

    values = {
        name: to_number(raw.get(name), getattr(DEFAULT_AUTOMATION_SETTINGS, name))
        for name in _NUMERIC_FIELDS
    }

    mode = _normalize_choice(raw.get('automation_mode'), AUTOMATION_MODES)
    if mode is None:
        mode = MODE_AUTO if bool(raw.get('automation_enabled')) else MODE_OFF

    floor_policy = _normalize_choice(raw.get('approval_floor_policy'), APPROVAL_FLOOR_POLICIES)

    return AutomationSettings(
        automation_mode=mode,
        approval_floor_policy=floor_policy or DEFAULT_AUTOMATION_SETTINGS.approval_floor_policy,
        **values
    )


@dataclass(frozen=True)
class AmazonCredentials:
    """Amazon Advertising API credentials stored next to the settings"""

    client_id: str = ''
    client_secret: str = ''
    refresh_token: str = ''
    profile_id: str = ''

    def is_complete(self) -> bool:
        return all([self.client_id, self.client_secret, self.refresh_token, self.profile_id])


_CREDENTIAL_SOURCES = {
    'client_id': ('amazon_client_id', 'AMAZON_CLIENT_ID'),
    'client_secret': ('amazon_client_secret', 'AMAZON_CLIENT_SECRET'),
    'refresh_token': ('amazon_refresh_token', 'AMAZON_REFRESH_TOKEN'),
    'profile_id': ('amazon_profile_id', 'AMAZON_PROFILE_ID'),
}


def normalize_credentials(raw: Optional[Mapping[str, Any]] = None) -> AmazonCredentials:
    """Read credentials from a settings row, falling back to environment variables"""
    raw = raw or {}
    values = {}
    for name, (column, env_var) in _CREDENTIAL_SOURCES.items():
        stored = raw.get(column)
        stored = str(stored).strip() if stored is not None else ''
        values[name] = stored or os.getenv(env_var, '').strip()
    return AmazonCredentials(**values)


@dataclass
class RuntimeConfig:
    """Process-level configuration for the scheduled job"""

    # Evaluation
    max_workers: int = 1  # >1 evaluates campaigns on a thread pool

    # Amazon Advertising API
    amazon_api_base_url: str = 'https://advertising-api.amazon.com'
    request_timeout: int = 30  # Seconds per HTTP request
    campaign_page_size: int = 50
    max_campaign_batches: int = 200
    batch_pause_seconds: float = 0.2

    # Telemetry
    enable_telemetry: bool = True
    telemetry_exporter: str = 'prometheus'  # prometheus|log|noop

    @classmethod
    def from_file(cls, config_path: str) -> 'RuntimeConfig':
        """Load configuration from JSON file"""
        try:
            with open(config_path, 'r') as f:
                config_data = json.load(f)
        except FileNotFoundError:
            logger.info(f"Config file {config_path} not found, using defaults")
            return cls()
        except (OSError, ValueError) as e:
            logger.error(f"Error loading config {config_path}: {e}, using defaults")
            return cls()

        known = {f.name for f in fields(cls)}
        unknown = sorted(set(config_data) - known)
        if unknown:
            logger.warning(f"Ignoring unknown config keys: {', '.join(unknown)}")
        return cls(**{k: v for k, v in config_data.items() if k in known})

    def to_file(self, config_path: str) -> None:
        """Save configuration to JSON file"""
        directory = os.path.dirname(config_path)
        if directory:
            os.makedirs(directory, exist_ok=True)
        with open(config_path, 'w') as f:
            json.dump(asdict(self), f, indent=2)

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)

    def validate(self) -> bool:
        """Validate configuration values"""
        type_errors = self._type_errors()
        if type_errors:
            raise ConfigInvalid(f"Configuration validation failed: {'; '.join(type_errors)}")

        errors = []

        if self.max_workers < 1:
            errors.append("Max workers must be at least 1")

        if not self.amazon_api_base_url.startswith('https://'):
            errors.append("Amazon API base URL must use https")

        if self.request_timeout <= 0:
            errors.append("Request timeout must be positive")

        if self.campaign_page_size < 1:
            errors.append("Campaign page size must be at least 1")

        if self.max_campaign_batches < 1:
            errors.append("Max campaign batches must be at least 1")

        if self.batch_pause_seconds < 0:
            errors.append("Batch pause must be non-negative")

        if self.telemetry_exporter not in ('prometheus', 'log', 'noop'):
            errors.append(f"Unknown telemetry exporter: {self.telemetry_exporter}")

        if errors:
            raise ConfigInvalid(f"Configuration validation failed: {'; '.join(errors)}")

        return True

    def _type_errors(self) -> List[str]:
        errors = []
        for f in fields(self):
            value = getattr(self, f.name)
            expected = type(f.default)
            if expected is bool:
                valid = isinstance(value, bool)
            elif expected is float:
                valid = isinstance(value, (int, float)) and not isinstance(value, bool)
            else:
                valid = isinstance(value, expected) and not isinstance(value, bool)
            if not valid:
                errors.append(f"{f.name} must be {expected.__name__}, got {type(value).__name__}")
        return errors
