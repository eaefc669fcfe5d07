from unittest.mock import MagicMock

import pytest
import requests

from budget_automation.amazon_ads import AmazonAdsClient, SP_CAMPAIGN_MEDIA_TYPE, TOKEN_URL, map_campaign
from budget_automation.config import AmazonCredentials, RuntimeConfig

CREDENTIALS = AmazonCredentials(
    client_id='amzn1.application-oa2-client.test',
    client_secret='secret',
    refresh_token='Atzr|refresh',
    profile_id='1234567890',
)


def json_response(payload, status_error=None):
    response = MagicMock()
    response.json.return_value = payload
    response.text = str(payload)
    if status_error is not None:
        response.raise_for_status.side_effect = status_error
    return response


def campaign_page(ids, next_token=None, state='enabled'):
    return json_response({
        'campaigns': [
            {'campaignId': cid, 'name': f'Campaign {cid}', 'state': state,
             'budget': {'budget': 25.0, 'budgetType': 'DAILY'}}
            for cid in ids
        ],
        'nextToken': next_token,
    })


@pytest.fixture
def session():
    session = MagicMock()
    session.post.return_value = json_response({'access_token': 'Atza|token', 'expires_in': 3600})
    return session


@pytest.fixture
def client(session):
    config = RuntimeConfig(batch_pause_seconds=0)
    return AmazonAdsClient(CREDENTIALS, config, session=session)


class TestMapCampaign:

    def test_v3_budget_object(self):
        campaign = map_campaign({
            'campaignId': 98765, 'name': 'Shoes', 'state': 'enabled',
            'budget': {'budget': 45, 'budgetType': 'DAILY'},
            'cost': '41.8', 'revenue': 176.42, 'impressions': 1200, 'clicks': 31,
        })

        assert campaign.id == '98765'
        assert campaign.status == 'ENABLED'
        assert campaign.budget == 45.0
        assert campaign.spend == 41.8
        assert campaign.sales == 176.42
        assert campaign.impressions == 1200
        assert campaign.clicks == 31
        assert campaign.budget_utilization is None
        assert campaign.today_acos is None

    def test_flat_daily_budget(self):
        campaign = map_campaign({'id': 'c-1', 'dailyBudget': '12.50', 'spend': 3, 'sales': 0})

        assert campaign.budget == 12.5
        assert campaign.spend == 3.0
        assert campaign.sales == 0.0

    def test_missing_fields_get_placeholders(self):
        campaign = map_campaign({}, index=3)

        assert campaign.id == 'live-cmp-3'
        assert campaign.name == 'Live Campaign 4'
        assert campaign.status == 'ENABLED'
        assert campaign.budget == 0.0

    def test_precomputed_zero_metrics_are_kept(self):
        campaign = map_campaign({'campaignId': '1', 'dailyBudget': 10, 'today_acos': 0,
                                 'budget_utilization': '0'})

        assert campaign.today_acos == 0.0
        assert campaign.budget_utilization == 0.0

    def test_bad_numbers_fall_back(self):
        campaign = map_campaign({'campaignId': '1', 'dailyBudget': 'n/a', 'spend': None,
                                 'cost': 'NaN', 'today_acos': ''})

        assert campaign.budget == 0.0
        assert campaign.spend == 0.0
        assert campaign.today_acos is None


def test_incomplete_credentials_rejected(session):
    with pytest.raises(ValueError):
        AmazonAdsClient(AmazonCredentials(client_id='x'), session=session)


def test_lists_all_pages(client, session):
    session.request.side_effect = [
        campaign_page(['1', '2'], next_token='page-2'),
        campaign_page(['2', '3']),
    ]

    campaigns = client.list_enabled_campaigns()

    assert [c.id for c in campaigns] == ['1', '2', '3']
    assert session.request.call_count == 2
    second_body = session.request.call_args_list[1].kwargs['json']
    assert second_body['nextToken'] == 'page-2'
    assert second_body['stateFilter'] == {'include': ['ENABLED']}


def test_request_headers_and_token_reuse(client, session):
    session.request.side_effect = [campaign_page(['1']), campaign_page(['1'])]

    client.list_enabled_campaigns()
    client.list_enabled_campaigns()

    session.post.assert_called_once()
    assert session.post.call_args.args[0] == TOKEN_URL
    method, url = session.request.call_args.args
    headers = session.request.call_args.kwargs['headers']
    assert method == 'POST'
    assert url == 'https://advertising-api.amazon.com/sp/campaigns/list'
    assert headers['Authorization'] == 'Bearer Atza|token'
    assert headers['Amazon-Advertising-API-Scope'] == '1234567890'
    assert headers['Accept'] == SP_CAMPAIGN_MEDIA_TYPE


def test_listing_stops_when_page_repeats(client, session):
    session.request.side_effect = [
        campaign_page(['1'], next_token='a'),
        campaign_page(['1'], next_token='b'),
    ]

    assert [c.id for c in client.list_enabled_campaigns()] == ['1']
    assert session.request.call_count == 2


def test_listing_error_keeps_collected_campaigns(client, session):
    session.request.side_effect = [
        campaign_page(['1'], next_token='a'),
        requests.exceptions.ConnectionError('reset by peer'),
    ]

    assert [c.id for c in client.list_enabled_campaigns()] == ['1']


def test_listing_drops_paused_campaigns(client, session):
    session.request.side_effect = [campaign_page(['1'], state='paused')]

    assert client.list_enabled_campaigns() == []


def test_update_budget(client, session):
    session.request.side_effect = [
        campaign_page(['1']),
        json_response({'campaigns': {'success': [{'campaignId': '1', 'index': 0}], 'error': []}}),
    ]
    client.list_enabled_campaigns()

    updated = client.update_budget('1', 30.0)

    assert updated.id == '1'
    assert updated.budget == 30.0
    assert updated.name == 'Campaign 1'
    method, url = session.request.call_args.args
    assert method == 'PUT'
    assert url.endswith('/sp/campaigns')
    assert session.request.call_args.kwargs['json'] == {
        'campaigns': [{'campaignId': '1', 'budget': {'budget': 30.0, 'budgetType': 'DAILY'}}]
    }


def test_update_budget_rejected_by_api(client, session):
    session.request.return_value = json_response({
        'campaigns': {'success': [], 'error': [{'index': 0, 'errors': [{'errorType': 'budgetTooLow'}]}]}
    })

    assert client.update_budget('1', 0.5) is None


def test_update_budget_http_error(client, session):
    session.request.return_value = json_response(
        {'code': 'UNAUTHORIZED'}, status_error=requests.exceptions.HTTPError('401 Client Error')
    )

    assert client.update_budget('1', 30.0) is None
