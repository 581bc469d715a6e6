"""
Client side of the scenario application protocols
"""

import logging

from .interop import (InteropTest, DownloadPlan, ScenarioError, CLIENT_GREETING,
                      SERVER_GREETING)
from .scenario_registry import registry


logger = logging.getLogger(__name__)


def receive_download(session, plan: DownloadPlan):
    """Read every chunk of the download and check its tag byte"""
    progress_interval = 10 * plan.chunks_per_gigabyte
    for index in range(plan.gigabytes * plan.chunks_per_gigabyte):
        chunk = session.read_exact(plan.chunk_size)
        tag = plan.tag_for_chunk(index)
        if chunk[0] != tag:
            raise ScenarioError(f"Chunk {index} tagged {chunk[0]}, expected {tag}")
        if index % progress_interval == 0:
            logger.info("GB received: %d", index // plan.chunks_per_gigabyte)


@registry.register(InteropTest.HANDSHAKE, role='client')
def connect_handshake(backend, session):
    """No application data exchange"""


@registry.register(InteropTest.GREETING, InteropTest.MTLS_REQUEST_RESPONSE,
                   InteropTest.SESSION_RESUMPTION, role='client')
def connect_greeting(backend, session):
    """Send the client greeting and check the server greeting"""
    session.send_all(CLIENT_GREETING)
    session.expect(SERVER_GREETING, "server greeting")


@registry.register(InteropTest.LARGE_DATA_DOWNLOAD, role='client')
def connect_large_data_download(backend, session):
    """Send the client greeting, then validate the tagged download"""
    session.send_all(CLIENT_GREETING)
    receive_download(session, DownloadPlan.configured())


@registry.register(InteropTest.LARGE_DATA_DOWNLOAD_WITH_FREQUENT_KEY_UPDATES, role='client')
def connect_large_data_download_with_key_updates(backend, session):
    """
    Validate the tagged download, then the number of key updates the peer
    applied, when the backend can count them
    """
    plan = DownloadPlan.configured()
    connect_large_data_download(backend, session)

    received = session.key_updates_received
    if received is None:
        logger.info("%s does not report received key updates", backend.name)
    elif received != plan.gigabytes:
        raise ScenarioError(f"Received {received} key updates, expected {plan.gigabytes}")
    else:
        logger.info("received %d key updates", received)
