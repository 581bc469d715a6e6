"""
CPython ssl (OpenSSL) backend

The ssl module exposes no key update call, so this backend declines the
frequent key update scenario.
"""

import logging
import socket
import ssl
import sys
from typing import Optional

from .certs import PemType, pem_file_path
from .endpoint import main
from .interop import InteropTest
from .shim import Capability, ClientTLS, ServerTLS, Session


logger = logging.getLogger(__name__)

SERVER_NAME = 'localhost'


class SslSession(Session):
    """Session over an ssl.SSLSocket"""

    def __init__(self, stream: ssl.SSLSocket):
        super().__init__()
        self.stream = stream
        self._plain: Optional[socket.socket] = None

    def recv(self, size: int) -> bytes:
        if self._plain is not None:
            return self._plain.recv(size)
        return self.stream.recv(size)

    def send_all(self, data: bytes):
        self.stream.sendall(data)

    def _shutdown_write(self):
        # exchange close_notify, then half close the TCP stream
        self._plain = self.stream.unwrap()
        self._plain.shutdown(socket.SHUT_WR)

    def _close(self):
        (self._plain or self.stream).close()

    @property
    def resumed(self) -> bool:
        return self.stream.session_reused

    def __repr__(self):
        return f"<SslSession {self.state.value}>"


class SslConnector:
    """Client context plus the session kept for resumption"""

    def __init__(self, context: ssl.SSLContext):
        self.context = context
        self.session: Optional[ssl.SSLSession] = None


class SslServer(ServerTLS):
    name = "ssl"
    capabilities = frozenset({Capability.SESSION_RESUMPTION})

    def get_server_config(self, test: InteropTest) -> Optional[ssl.SSLContext]:
        logger.info("getting the server config for %s", test)
        context = ssl.SSLContext(ssl.PROTOCOL_TLS_SERVER)
        context.minimum_version = ssl.TLSVersion.TLSv1_3
        context.load_cert_chain(pem_file_path(PemType.SERVER_CHAIN),
                                pem_file_path(PemType.SERVER_KEY))
        if test is InteropTest.MTLS_REQUEST_RESPONSE:
            context.load_verify_locations(pem_file_path(PemType.CA_CERT))
            context.verify_mode = ssl.CERT_REQUIRED
        return context

    def acceptor(self, config: ssl.SSLContext) -> ssl.SSLContext:
        return config

    def accept(self, acceptor: ssl.SSLContext, transport: socket.socket) -> SslSession:
        return SslSession(acceptor.wrap_socket(transport, server_side=True))

    def validate_resumption(self, session: SslSession) -> bool:
        return session.resumed


class SslClient(ClientTLS):
    name = "ssl"
    capabilities = frozenset({Capability.SESSION_RESUMPTION})

    def get_client_config(self, test: InteropTest) -> Optional[ssl.SSLContext]:
        context = ssl.SSLContext(ssl.PROTOCOL_TLS_CLIENT)
        context.minimum_version = ssl.TLSVersion.TLSv1_3
        context.load_verify_locations(pem_file_path(PemType.CA_CERT))
        if test is InteropTest.MTLS_REQUEST_RESPONSE:
            context.load_cert_chain(pem_file_path(PemType.CLIENT_CHAIN),
                                    pem_file_path(PemType.CLIENT_KEY))
        return context

    def connector(self, config: ssl.SSLContext) -> SslConnector:
        return SslConnector(config)

    def connect(self, connector: SslConnector, transport: socket.socket) -> SslSession:
        if connector.session is not None:
            logger.info("offering the stored session")
        stream = connector.context.wrap_socket(transport, server_hostname=SERVER_NAME,
                                               session=connector.session)
        return SslSession(stream)

    def remember_session(self, connector: SslConnector, session: SslSession):
        # TLS 1.3 tickets arrive after the handshake, so read the session late
        connector.session = session.stream.session
        if connector.session is not None:
            logger.debug("stored session, has ticket: %s", connector.session.has_ticket)


if __name__ == '__main__':
    sys.exit(main(SslServer(), SslClient()))
