"""
Server side of the scenario application protocols

Every handler runs after the handshake and before the shutdown sequence; it
receives the backend (for backend-specific extensions) and the Session.
"""

import logging

from .interop import (InteropTest, DownloadPlan, ScenarioError, CLIENT_GREETING,
                      SERVER_GREETING, chunk_tag)
from .scenario_registry import registry


logger = logging.getLogger(__name__)


def stream_download(session, plan: DownloadPlan, key_update: bool = False):
    """
    Write plan.gigabytes worth of chunks, tagging byte 0 with the gigabyte index

    Args:
        session: Established Session
        plan: Volume and chunking of the download
        key_update: Request a key update before each gigabyte
    """
    data_buffer = bytearray(plan.chunk_size)
    for i in range(plan.gigabytes):
        if key_update:
            session.key_update()
        if i % 10 == 0:
            if key_update:
                logger.info("GB sent: %d, key updates: %d", i, session.key_updates_sent)
            else:
                logger.info("GB sent: %d", i)
        data_buffer[0] = chunk_tag(i)
        for _ in range(plan.chunks_per_gigabyte):
            session.send_all(data_buffer)


@registry.register(InteropTest.HANDSHAKE, role='server')
def serve_handshake(backend, session):
    """No application data exchange"""


@registry.register(InteropTest.GREETING, InteropTest.MTLS_REQUEST_RESPONSE, role='server')
def serve_greeting(backend, session):
    """Read the client greeting and answer with the server greeting"""
    session.expect(CLIENT_GREETING, "client greeting")
    session.send_all(SERVER_GREETING)


@registry.register(InteropTest.LARGE_DATA_DOWNLOAD, role='server')
def serve_large_data_download(backend, session):
    """After the client greeting, stream the configured volume in tagged chunks"""
    session.expect(CLIENT_GREETING, "client greeting")
    stream_download(session, DownloadPlan.configured())


@registry.register(InteropTest.LARGE_DATA_DOWNLOAD_WITH_FREQUENT_KEY_UPDATES, role='server')
def serve_large_data_download_with_key_updates(backend, session):
    """Large download with a key update per gigabyte, delegated to the backend"""
    backend.handle_large_data_download_with_frequent_key_updates(session)


@registry.register(InteropTest.SESSION_RESUMPTION, role='server')
def serve_session_resumption(backend, session):
    """Greeting exchange on a connection that must have been resumed"""
    serve_greeting(backend, session)
    if backend.validate_resumption(session):
        logger.info("session used session resumption")
    else:
        logger.error("session resumption was not used")
        raise ScenarioError("session resumption not used")
