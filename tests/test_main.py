import json

import pytest

from budget_automation import main as cli
from tests.test_automation import FailingAppendLogStore


@pytest.fixture
def config_path(tmp_path):
    return str(tmp_path / 'budget_automation.json')


@pytest.fixture
def service(make_service, monkeypatch):
    service = make_service({'automation_mode': 'approval'})
    monkeypatch.setattr(cli, 'build_service', lambda config: service)
    return service


def run_cli(config_path, *args):
    return cli.main(['--config', config_path, *args])


def test_run_prints_result(service, config_path, capsys):
    assert run_cli(config_path, 'run') == 0

    output = json.loads(capsys.readouterr().out)
    assert output['ran'] is True
    assert output['mode'] == 'approval'
    assert output['summary']['pending_increase'] == 1
    assert output['log_inserted'] == 4


def test_run_exports_entries(service, config_path, tmp_path, capsys):
    output = tmp_path / 'reports' / 'run.csv'

    assert run_cli(config_path, 'run', '--output', str(output), '--format', 'csv') == 0
    assert output.exists()
    assert output.read_text().startswith('id,created_at,campaign_id')


def test_dry_run_saves_nothing(service, config_path, log_store, capsys):
    assert run_cli(config_path, 'run', '--dry-run') == 0
    assert log_store.list_log_entries() == []


def test_approve_and_reject(service, config_path, capsys):
    result = service.run_evaluation()
    up = next(e for e in result.log_entries if e.campaign_id == 'cmp-up')
    down = next(e for e in result.log_entries if e.campaign_id == 'cmp-down')

    assert run_cli(config_path, 'approve', up.id) == 0
    assert json.loads(capsys.readouterr().out)['message'] == "Budget updated"

    assert run_cli(config_path, 'reject', down.id) == 0
    assert json.loads(capsys.readouterr().out)['message'] == "Action rejected"

    assert run_cli(config_path, 'approve', up.id) == 1
    assert json.loads(capsys.readouterr().out)['error'] == 'not_pending'


def test_pending(service, config_path, capsys):
    service.run_evaluation()

    assert run_cli(config_path, 'pending', '--limit', '2') == 0
    assert len(json.loads(capsys.readouterr().out)) == 2


def test_export(service, config_path, tmp_path):
    service.run_evaluation()
    output = tmp_path / 'log.json'

    assert run_cli(config_path, 'export', str(output)) == 0
    assert json.loads(output.read_text())['total_entries'] == 4


def test_invalid_config_exits_2(service, config_path):
    with open(config_path, 'w') as f:
        json.dump({'max_workers': 0}, f)

    assert run_cli(config_path, 'run') == 2


def test_missing_credentials_exit_2(config_path, monkeypatch):
    def fail(config):
        raise ValueError("DB_PASSWORD environment variable is required")

    monkeypatch.setattr(cli, 'build_service', fail)

    assert run_cli(config_path, 'run') == 2


def test_log_persist_failure_exits_1(make_service, config_path, monkeypatch, capsys):
    service = make_service({'automation_mode': 'auto'}, log_store=FailingAppendLogStore())
    monkeypatch.setattr(cli, 'build_service', lambda config: service)

    assert run_cli(config_path, 'run') == 1
    assert json.loads(capsys.readouterr().out)['log_error']


def test_mistyped_config_exits_2(service, config_path):
    with open(config_path, 'w') as f:
        json.dump({'max_workers': '4'}, f)

    assert run_cli(config_path, 'run') == 2


def test_demo_run_uses_sample_campaigns(config_path, monkeypatch, capsys):
    def fail(config):
        raise AssertionError("demo mode must not build the production service")

    monkeypatch.setattr(cli, 'build_service', fail)

    assert run_cli(config_path, '--demo', 'run') == 0

    output = json.loads(capsys.readouterr().out)
    assert output['mode'] == 'approval'
    assert output['campaign_count'] == 8
    entries = {entry['campaign_id']: entry for entry in output['log_entries']}
    assert entries['cmp-1']['action'] == 'pending_increase'
    assert entries['cmp-1']['new_budget'] == 54.0
    assert entries['cmp-8']['action'] == 'pending_decrease'
    assert entries['cmp-8']['new_budget'] == 18.7
    assert 'cmp-3' not in entries
