import socket

import pytest

from tls_interop.interop import DownloadPlan
from tls_interop.shim import SessionState

from tests.plain_backend import PlainSession


@pytest.fixture
def small_plan(monkeypatch):
    """Shrink the configured download to three tiny gigabytes"""
    plan = DownloadPlan(gigabytes=3, chunk_size=10, gigabyte_size=40)
    monkeypatch.setattr(DownloadPlan, 'configured', classmethod(lambda cls: plan))
    return plan


@pytest.fixture
def session_pair():
    """Two connected PlainSessions already past the handshake"""
    a, b = socket.socketpair()
    server, client = PlainSession(a), PlainSession(b)
    for session in (server, client):
        session.advance(SessionState.APPLICATION_EXCHANGE)
    yield server, client
    a.close()
    b.close()
