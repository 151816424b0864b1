"""Tests for device configuration loading."""
import json

import pytest

from doorbird_lan_api import ConfigError
from doorbird_lan_api.config import ConfigContext, DeviceConfig, LiteralPasswordConfig


def load(data, environ=None) -> DeviceConfig:
    ctx = ConfigContext(os_environ={} if environ is None else environ)
    return ctx.loads(json.dumps(data))


def test_defaults():
    cfg = load({'host': '192.168.1.50', 'username': 'ghabcd0001', 'password': 'secret'})

    assert cfg.scheme == 'http'
    assert cfg.notify_port == 6524
    assert cfg.suppress_bursts is False
    assert cfg.get_password() == 'secret'
    assert cfg.client_kwargs()['host'] == '192.168.1.50'


def test_env_template():
    cfg = load(
        {'username': '${env:DOORBIRD_USER}', 'password': '${env:DOORBIRD_PASSWORD}', 'suppress_bursts': '${env:SUPPRESS}'},
        environ={'DOORBIRD_USER': 'ghabcd0001', 'DOORBIRD_PASSWORD': 'fromenv', 'SUPPRESS': 'true'},
    )

    assert cfg.username == 'ghabcd0001'
    assert cfg.get_password() == 'fromenv'
    assert cfg.suppress_bursts is True


def test_undefined_template_variable():
    with pytest.raises(ConfigError):
        load({'password': '${env:MISSING}'})


def test_keyring_password(monkeypatch):
    lookups = []

    def get_password(service, key):
        lookups.append((service, key))
        return 'fromkeyring'

    monkeypatch.setattr('keyring.get_password', get_password)
    cfg = load({
        'username': 'ghabcd0001',
        'password_cfg': {'cfg_class': 'KeyringPasswordConfig', 'data': {'service': 'doorbird', 'key': 'ghabcd0001'}},
    })

    assert cfg.get_password() == 'fromkeyring'
    assert lookups == [('doorbird', 'ghabcd0001')]


def test_keyring_falls_back_to_default(monkeypatch):
    monkeypatch.setattr('keyring.get_password', lambda service, key: None)
    cfg = load({
        'password_cfg': {
            'cfg_class': 'KeyringPasswordConfig',
            'data': {
                'service': 'doorbird',
                'key': 'ghabcd0001',
                'default_password_cfg': {'cfg_class': 'LiteralPasswordConfig', 'data': {'password': 'fallback'}},
            },
        },
    })

    assert cfg.get_password() == 'fallback'


def test_keyring_missing_password(monkeypatch):
    monkeypatch.setattr('keyring.get_password', lambda service, key: None)
    cfg = load({'password_cfg': {'cfg_class': 'KeyringPasswordConfig', 'data': {'service': 'doorbird', 'key': 'x'}}})

    with pytest.raises(ConfigError):
        cfg.get_password()


def test_unknown_password_class():
    with pytest.raises(ConfigError):
        load({'password_cfg': {'cfg_class': 'NoSuchPasswordConfig', 'data': {}}})


def test_bad_values():
    with pytest.raises(ConfigError):
        load({'scheme': 'ftp'})
    with pytest.raises(ConfigError):
        load({'notify_port': 'not-a-port'})
    with pytest.raises(ConfigError):
        load({'http_timeout': 'slow'})


def test_override():
    cfg = load({'host': '192.168.1.50', 'username': 'ghabcd0001', 'password': 'secret'})
    cfg.override(host='10.0.0.2', password='cli', notify_port=35344)

    assert cfg.host == '10.0.0.2'
    assert cfg.username == 'ghabcd0001'
    assert cfg.get_password() == 'cli'
    assert cfg.notify_port == 35344


def test_missing_values():
    cfg = DeviceConfig()

    assert not cfg.has_password
    with pytest.raises(ConfigError):
        cfg.get_password()
    with pytest.raises(ConfigError):
        cfg.require_host()
    with pytest.raises(ConfigError):
        cfg.require_username()


def test_load_file(tmp_path):
    config_file = tmp_path / 'config.json'
    config_file.write_text(json.dumps({'host': '${config_dir}', 'username': 'ghabcd0001'}))

    cfg = ConfigContext(os_environ={}).load_file(str(config_file))

    assert cfg.host == str(tmp_path)


def test_load_missing_file(tmp_path):
    with pytest.raises(ConfigError):
        ConfigContext(os_environ={}).load_file(str(tmp_path / 'missing.json'))


def test_keyring_set_password(monkeypatch):
    stored = {}
    monkeypatch.setattr('keyring.get_password', lambda service, key: stored.get((service, key)))
    monkeypatch.setattr('keyring.set_password', lambda service, key, value: stored.__setitem__((service, key), value))
    cfg = load({'password_cfg': {'cfg_class': 'KeyringPasswordConfig', 'data': {'service': 'doorbird', 'key': 'ghabcd0001'}}})

    cfg._password_cfg.set_password('stored')

    assert stored == {('doorbird', 'ghabcd0001'): 'stored'}
    assert cfg.get_password() == 'stored'


def test_literal_password_config():
    assert LiteralPasswordConfig('direct').get_password() == 'direct'


def test_override_password_without_config_file():
    cfg = DeviceConfig()
    cfg.override(password='cli')

    assert cfg.has_password
    assert cfg.get_password() == 'cli'


def test_context_clone_is_independent():
    ctx = ConfigContext(globals={'site': 'home'}, os_environ={'USER': 'me'})
    clone = ctx.clone()
    clone['site'] = 'office'

    assert isinstance(clone, ConfigContext)
    assert clone['env:USER'] == 'me'
    assert ctx['site'] == 'home'
