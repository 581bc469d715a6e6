import pytest

import run_interop_tests
from tls_interop.catalogue import Client
from tls_interop.config import InteropConfig
from tls_interop.interop import InteropTest, InternalFrameworkError
from tls_interop.scenario_registry import ScenarioRegistry


def test_list_variants_shows_launch_commands(capsys):
    config = InteropConfig(data={
        'servers': {'ssl': {'enabled': False}, 'tlslite': {'command': 'my-server --fast'}},
        'clients': {'tlslite': {'enabled': False}},
    })
    run_interop_tests.list_variants(config)
    out = capsys.readouterr().out

    assert "my-server --fast" in out
    assert "tls_interop.ssl_shim client" in out
    assert "tls_interop.tlslite_shim" not in out
    assert str(Client.SSL) in out.split("Clients:")[1]


def test_every_test_case_has_handlers():
    run_interop_tests.check_handlers(list(InteropTest))


def test_missing_handler_aborts_startup(monkeypatch):
    partial = ScenarioRegistry()
    partial.register(InteropTest.HANDSHAKE, role='server')(lambda backend, session: None)
    partial.register(InteropTest.HANDSHAKE, role='client')(lambda backend, session: None)
    monkeypatch.setattr(run_interop_tests, 'registry', partial)

    run_interop_tests.check_handlers([InteropTest.HANDSHAKE])
    with pytest.raises(InternalFrameworkError, match="greeting"):
        run_interop_tests.check_handlers([InteropTest.HANDSHAKE, InteropTest.GREETING])


def test_list_tests_exits_cleanly(capsys):
    assert run_interop_tests.main(['--list-tests']) == 0
    assert InteropTest.SESSION_RESUMPTION.value in capsys.readouterr().out
