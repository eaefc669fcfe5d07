"""
Amazon Advertising API client
Lists Sponsored Products campaigns and updates their daily budgets
"""

import logging
import threading
import time
from datetime import datetime, timedelta
from typing import Any, Dict, List, Mapping, Optional

import requests

from .config import AmazonCredentials, RuntimeConfig
from .models import CampaignSnapshot, STATUS_ENABLED
from .repository import BudgetWriter, CampaignSource
from .utils.metrics import to_finite_float

TOKEN_URL = 'https://api.amazon.com/auth/o2/token'
SP_CAMPAIGN_MEDIA_TYPE = 'application/vnd.spCampaign.v3+json'


def _first_number(raw: Mapping[str, Any], *keys: str) -> Optional[float]:
    """Value of the first key holding a finite number; zero counts as present"""
    for key in keys:
        value = to_finite_float(raw.get(key))
        if value is not None:
            return value
    return None


def map_campaign(raw: Mapping[str, Any], index: int = 0) -> CampaignSnapshot:
    """Map an API campaign record to a CampaignSnapshot"""
    budget_field = raw.get('budget')
    if isinstance(budget_field, Mapping):
        budget = _first_number(budget_field, 'budget')
    else:
        budget = _first_number(raw, 'dailyBudget', 'budget')

    campaign_id = raw.get('campaignId', raw.get('id'))
    if campaign_id is None:
        campaign_id = f'live-cmp-{index}'

    return CampaignSnapshot(
        id=str(campaign_id),
        name=str(raw.get('name') or f'Live Campaign {index + 1}'),
        status=str(raw.get('state') or raw.get('status') or STATUS_ENABLED).upper(),
        budget=budget if budget is not None else 0.0,
        spend=_first_number(raw, 'spend', 'cost') or 0.0,
        sales=_first_number(raw, 'sales', 'revenue') or 0.0,
        impressions=int(_first_number(raw, 'impressions') or 0),
        clicks=int(_first_number(raw, 'clicks') or 0),
        budget_utilization=_first_number(raw, 'budget_utilization'),
        today_acos=_first_number(raw, 'today_acos'),
    )


class AmazonAdsClient(CampaignSource, BudgetWriter):
    """
    Amazon Advertising API client for Sponsored Products campaigns
    Handles authentication, campaign listing and budget updates
    """

    def __init__(self, credentials: AmazonCredentials, config: Optional[RuntimeConfig] = None,
                 session: Optional[requests.Session] = None):
        """
        Initialize the client

        Args:
            credentials: Amazon API credentials
            config: Runtime configuration (endpoint, timeouts, paging)
            session: HTTP session to use (a new one by default)
        """
        if not credentials.is_complete():
            raise ValueError(
                "Missing required Amazon API credentials. Set them in the settings or via "
                "AMAZON_CLIENT_ID, AMAZON_CLIENT_SECRET, AMAZON_REFRESH_TOKEN, AMAZON_PROFILE_ID"
            )

        self.credentials = credentials
        self.config = config or RuntimeConfig()
        self.session = session or requests.Session()
        self.logger = logging.getLogger(__name__)

        # Access token (will be obtained on first request)
        self.access_token: Optional[str] = None
        self.token_expiry: Optional[datetime] = None
        self._token_lock = threading.Lock()

        # Campaigns seen by the last listing, used to answer budget updates
        self._known_campaigns: Dict[str, CampaignSnapshot] = {}

    def _get_access_token(self) -> str:
        """
        Get or refresh access token

        Returns:
            Access token string
        """
        with self._token_lock:
            if self.access_token and self.token_expiry and datetime.now() < self.token_expiry:
                return self.access_token

            self.logger.info("Requesting new Amazon API access token")
            payload = {
                'grant_type': 'refresh_token',
                'refresh_token': self.credentials.refresh_token,
                'client_id': self.credentials.client_id,
                'client_secret': self.credentials.client_secret,
            }

            response = self.session.post(TOKEN_URL, data=payload, timeout=self.config.request_timeout)
            response.raise_for_status()

            token_data = response.json()
            self.access_token = token_data['access_token']

            expires_in = int(token_data.get('expires_in', 3600))
            self.token_expiry = datetime.now() + timedelta(seconds=expires_in - 60)  # 1 min buffer
            return self.access_token

    def _make_request(self, method: str, endpoint: str, data: Optional[Any] = None,
                      media_type: str = 'application/json') -> Dict[str, Any]:
        """
        Make authenticated request to Amazon Advertising API

        Args:
            method: HTTP method (POST, PUT)
            endpoint: API endpoint
            data: Request body data
            media_type: Content-Type/Accept header value

        Returns:
            Response JSON
        """
        headers = {
            'Authorization': f'Bearer {self._get_access_token()}',
            'Amazon-Advertising-API-ClientId': self.credentials.client_id,
            'Amazon-Advertising-API-Scope': self.credentials.profile_id,
            'Content-Type': media_type,
            'Accept': media_type,
        }
        url = f"{self.config.amazon_api_base_url}{endpoint}"

        response = self.session.request(method, url, headers=headers, json=data,
                                        timeout=self.config.request_timeout)
        try:
            response.raise_for_status()
        except requests.exceptions.HTTPError as e:
            self.logger.error(f"HTTP error in API request {method} {endpoint}: {e}")
            self.logger.error(f"Response: {response.text}")
            raise
        return response.json()

    def list_campaigns_page(self, next_token: Optional[str] = None,
                            states: Optional[List[str]] = None) -> Dict[str, Any]:
        """
        Fetch one page of campaigns

        Returns:
            Dict with 'campaigns' (CampaignSnapshot list) and 'next_token'
        """
        body: Dict[str, Any] = {
            'stateFilter': {'include': states or [STATUS_ENABLED]},
            'maxResults': self.config.campaign_page_size,
        }
        if next_token:
            body['nextToken'] = next_token

        payload = self._make_request('POST', '/sp/campaigns/list', data=body,
                                     media_type=SP_CAMPAIGN_MEDIA_TYPE)
        raw_campaigns = payload.get('campaigns') or []
        return {
            'campaigns': [map_campaign(raw, index) for index, raw in enumerate(raw_campaigns)],
            'next_token': payload.get('nextToken'),
        }

    def list_enabled_campaigns(self) -> List[CampaignSnapshot]:
        """
        Fetch all enabled campaigns page by page

        Stops at the last page, on a page with no new campaigns, or after
        ``max_campaign_batches`` pages. Errors end the listing early with the
        campaigns collected so far.
        """
        campaigns: List[CampaignSnapshot] = []
        seen_ids = set()
        next_token = None

        for batch_index in range(self.config.max_campaign_batches):
            try:
                page = self.list_campaigns_page(next_token)
            except (requests.exceptions.RequestException, KeyError, ValueError) as e:
                self.logger.error(f"Error listing campaigns (batch {batch_index}): {e}")
                break

            new_campaigns = [c for c in page['campaigns'] if c.id not in seen_ids]
            seen_ids.update(c.id for c in new_campaigns)
            campaigns.extend(new_campaigns)

            next_token = page['next_token']
            if not new_campaigns or not next_token:
                break
            time.sleep(self.config.batch_pause_seconds)

        enabled = [c for c in campaigns if c.is_enabled]
        self._known_campaigns = {c.id: c for c in enabled}
        self.logger.info(f"Fetched {len(enabled)} enabled campaigns")
        return enabled

    def update_budget(self, campaign_id: str, new_budget: float) -> Optional[CampaignSnapshot]:
        """
        Update a campaign's daily budget

        Returns:
            Updated campaign, or None if Amazon did not accept the update
        """
        body = {
            'campaigns': [{
                'campaignId': campaign_id,
                'budget': {'budget': new_budget, 'budgetType': 'DAILY'},
            }]
        }
        self.logger.info(f"Updating campaign {campaign_id} daily budget to ${new_budget:.2f}")

        try:
            response = self._make_request('PUT', '/sp/campaigns', data=body,
                                          media_type=SP_CAMPAIGN_MEDIA_TYPE)
        except (requests.exceptions.RequestException, KeyError, ValueError) as e:
            self.logger.error(f"Error updating budget for campaign {campaign_id}: {e}")
            return None

        results = response.get('campaigns') or {}
        errors = results.get('error') or []
        if errors or not results.get('success'):
            self.logger.error(f"Budget update rejected for campaign {campaign_id}: {errors}")
            return None

        known = self._known_campaigns.get(campaign_id)
        if known is not None:
            updated = CampaignSnapshot(
                id=known.id, name=known.name, status=known.status, budget=new_budget,
                spend=known.spend, sales=known.sales,
                impressions=known.impressions, clicks=known.clicks,
                today_acos=known.today_acos,
            )
        else:
            updated = CampaignSnapshot(
                id=campaign_id, name='', status=STATUS_ENABLED, budget=new_budget, spend=0.0, sales=0.0
            )
        self._known_campaigns[campaign_id] = updated
        return updated
