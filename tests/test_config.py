import sys

import pytest

from tls_interop.catalogue import Client, Server
from tls_interop.config import DEFAULT_TIMEOUT, InteropConfig, host_concurrency
from tls_interop.interop import ConfigError, InteropTest


def test_defaults_enable_everything():
    config = InteropConfig(data={})

    assert config.enabled_tests == list(InteropTest)
    assert list(config.servers) == list(Server)
    assert list(config.clients) == list(Client)
    assert (config.port_start, config.port_end) == (9001, 9100)
    assert config.server_command(Server.SSL) == [sys.executable, '-m', 'tls_interop.ssl_shim', 'server']


def test_yaml_file_is_loaded(tmp_path):
    path = tmp_path / "config.yaml"
    path.write_text(
        "enabled_tests: [greeting, handshake, greeting]\n"
        "servers:\n"
        "  ssl: {enabled: false}\n"
        "clients:\n"
        "  tlslite: {command: '{python} my_client.py'}\n"
    )
    config = InteropConfig(str(path))

    assert config.enabled_tests == [InteropTest.GREETING, InteropTest.HANDSHAKE]
    assert list(config.servers) == [Server.TLSLITE]
    assert config.client_command(Client.TLSLITE) == [sys.executable, 'my_client.py']


def test_missing_file():
    with pytest.raises(FileNotFoundError):
        InteropConfig('/nonexistent/config.yaml')


@pytest.mark.parametrize("data", [
    {'enabled_tests': ['greeting', 'zero_rtt']},
    {'servers': {'boringssl': {'enabled': True}}},
    {'ports': {'start': 9100, 'end': 9001}},
    {'test_execution': {'concurrency': 0}},
])
def test_invalid_config_is_rejected(data):
    with pytest.raises(ConfigError):
        config = InteropConfig(data=data)
        config.get_test_execution_settings()


def test_port_range_too_small_for_catalogue():
    config = InteropConfig(data={'ports': {'start': 9001, 'end': 9004}})
    with pytest.raises(ConfigError):
        config.scenarios()


def test_select_narrows_catalogue():
    config = InteropConfig(data={})
    config.select(tests=['greeting'], servers=['tlslite'], clients=None)
    scenarios = config.scenarios()

    assert len(scenarios) == len(Client)
    assert {s.server for s in scenarios} == {Server.TLSLITE}


def test_execution_settings():
    settings = InteropConfig(data={}).get_test_execution_settings()
    assert settings['timeout'] == DEFAULT_TIMEOUT == 420
    assert settings['concurrency'] == host_concurrency() >= 1

    settings = InteropConfig(data={'test_execution': {'concurrency': 3}}).get_test_execution_settings()
    assert settings['concurrency'] == 3


def test_child_environment(tmp_path):
    config = InteropConfig(data={'certificates': {'dir': str(tmp_path)}, 'large_data_download_gb': 2})
    env = config.get_child_environment()
    assert env['TLS_INTEROP_CERT_DIR'] == str(tmp_path.resolve())
    assert env['TLS_INTEROP_LARGE_DATA_GB'] == '2'
