import json

import pytest

from sweepcord.config import CleanupConfig, load_config, load_token
from sweepcord.errors import ConfigError


def test_defaults():
    cfg = CleanupConfig.from_dict({})

    assert cfg.delay == 1000
    assert cfg.scan_delay == 500
    assert cfg.message_limit.enabled and cfg.message_limit.count == 100
    assert cfg.content_filter.max_length == 4000
    assert cfg.date_range.enabled is False


@pytest.mark.parametrize('count, pages', [(1, 1), (100, 1), (101, 2), (250, 3)])
def test_page_ceiling_follows_message_limit(count, pages):
    cfg = CleanupConfig.from_dict({'message_limit': {'enabled': True, 'count': count}})

    assert cfg.max_pages == pages


def test_page_ceiling_without_limit():
    assert CleanupConfig.from_dict({'message_limit': {'enabled': False}}).max_pages == 50


@pytest.mark.parametrize('data', [
    {'delay': -1},
    {'scan_delay': -1},
    {'message_limit': {'enabled': True, 'count': 0}},
    {'content_filter': {'enabled': True, 'min_length': 10, 'max_length': 5}},
    {'date_range': {'enabled': True, 'start_date': '2024-05-01', 'end_date': '2024-04-01'}},
    {'date_range': {'enabled': True, 'start_date': 'yesterday'}},
])
def test_invalid_settings_rejected(data):
    with pytest.raises(ConfigError):
        CleanupConfig.from_dict(data)


def test_load_config_file(tmp_path):
    path = tmp_path / 'config.json'
    path.write_text(json.dumps({
        'delay': 1500,
        'content_filter': {'enabled': True, 'keywords': ['lol']},
    }))

    cfg = load_config(str(path))

    assert cfg.delay == 1500
    assert cfg.content_filter.keywords == ['lol']
    assert cfg.scan_delay == 500


def test_load_config_errors(tmp_path):
    with pytest.raises(ConfigError):
        load_config(str(tmp_path / 'missing.json'))

    bad = tmp_path / 'bad.json'
    bad.write_text(json.dumps({'content_filter': {'colour': 'red'}}))
    with pytest.raises(ConfigError):
        load_config(str(bad))


@pytest.mark.parametrize('body', [[1, 2], 'delay', 42, None])
def test_load_config_requires_an_object(tmp_path, body):
    path = tmp_path / 'config.json'
    path.write_text(json.dumps(body))

    with pytest.raises(ConfigError, match='JSON object'):
        load_config(str(path))


def test_token_priority(monkeypatch, tmp_path):
    monkeypatch.chdir(tmp_path)
    (tmp_path / '.env').write_text('OTHER=1\nDISCORD_TOKEN="from-file"\n')
    monkeypatch.setenv('DISCORD_TOKEN', 'from-env')

    assert load_token('from-arg') == 'from-arg'
    assert load_token() == 'from-env'

    monkeypatch.delenv('DISCORD_TOKEN')
    assert load_token() == 'from-file'


def test_missing_token(monkeypatch, tmp_path):
    monkeypatch.chdir(tmp_path)
    monkeypatch.delenv('DISCORD_TOKEN', raising=False)

    with pytest.raises(ConfigError):
        load_token()
