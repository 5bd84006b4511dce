import json

from steam_mobile.settings import MOBILE_USER_AGENT, Settings, load_settings


def test_defaults_without_file():
    settings = load_settings(None)

    assert settings.timeout_seconds == 20.0
    assert settings.user_agent == MOBILE_USER_AGENT
    assert settings.retry.max_attempts == 5
    assert settings.session_guard is True


def test_load_partial_file(tmp_path):
    path = tmp_path / 'settings.json'
    path.write_text(json.dumps({
        'http': {'timeout_seconds': 5},
        'retry': {'max_attempts': 2, 'max_delay': 4},
        'steam': {'session_guard': False},
    }), encoding='utf-8')

    settings = load_settings(str(path))

    assert settings.timeout_seconds == 5.0
    assert settings.retry.max_attempts == 2
    assert settings.retry.max_delay == 4.0
    assert settings.retry.initial_delay == 1.0
    assert settings.session_guard is False
    assert settings.rsa_catchup_seconds == 0.35


def test_from_empty_dict_equals_defaults():
    assert Settings.from_dict({}) == Settings()


def test_null_sections_use_defaults(tmp_path):
    path = tmp_path / 'settings.json'
    path.write_text(json.dumps({'http': None, 'retry': None, 'steam': None}), encoding='utf-8')

    assert load_settings(str(path)) == Settings()
