"""
Capability contract shared by every TLS backend

ServerTLS and ClientTLS abstract over TLS libraries with similar API shapes:
a per-test configuration, a shareable acceptor/connector built from it, and
a Session wrapping an established connection. The application protocol of
each scenario is written once against Session (see server_scenarios and
client_scenarios); backends only supply the library specific parts.

Transports are duck-typed sockets, so tests can run both halves over a
socketpair without any network.
"""

import logging
from enum import Enum
from typing import Any, Callable, Dict, FrozenSet, Optional

from .interop import CLIENT_GREETING, DownloadPlan, InteropTest, ScenarioError
from .server_scenarios import stream_download
from . import client_scenarios  # noqa: F401  registers client handlers
from .scenario_registry import registry


logger = logging.getLogger(__name__)


class Capability(Enum):
    """Optional backend extensions some scenarios depend on"""
    KEY_UPDATE = "key_update"
    SESSION_RESUMPTION = "session_resumption"


# Only the sending side needs KEY_UPDATE; every TLS 1.3 stack must accept
# a peer's KeyUpdate
SERVER_REQUIRED_CAPABILITIES = {
    InteropTest.LARGE_DATA_DOWNLOAD_WITH_FREQUENT_KEY_UPDATES: frozenset({Capability.KEY_UPDATE}),
    InteropTest.SESSION_RESUMPTION: frozenset({Capability.SESSION_RESUMPTION}),
}

CLIENT_REQUIRED_CAPABILITIES = {
    InteropTest.SESSION_RESUMPTION: frozenset({Capability.SESSION_RESUMPTION}),
}


class SessionState(Enum):
    HANDSHAKING = "handshaking"
    APPLICATION_EXCHANGE = "application_exchange"
    HALF_CLOSING = "half_closing"
    AWAITING_PEER_CLOSE = "awaiting_peer_close"
    CLOSED = "closed"


_NEXT_STATE = {
    SessionState.HANDSHAKING: SessionState.APPLICATION_EXCHANGE,
    SessionState.APPLICATION_EXCHANGE: SessionState.HALF_CLOSING,
    SessionState.HALF_CLOSING: SessionState.AWAITING_PEER_CLOSE,
    SessionState.AWAITING_PEER_CLOSE: SessionState.CLOSED,
}


class Session:
    """
    Ordered, reliable byte stream over one established TLS connection

    Subclasses implement recv, send_all, _shutdown_write and _close, plus
    _request_key_update, the key update counters and resumed when the backend
    supports them.
    """

    def __init__(self):
        self.state = SessionState.HANDSHAKING

    def advance(self, state: SessionState):
        """Move to the next lifecycle state; states cannot be skipped"""
        if _NEXT_STATE.get(self.state) is not state:
            raise RuntimeError(f"Illegal session transition {self.state.value} -> {state.value}")
        self.state = state

    def recv(self, size: int) -> bytes:
        """Return up to size bytes, b'' once the peer has closed"""
        raise NotImplementedError

    def send_all(self, data: bytes):
        raise NotImplementedError

    def _shutdown_write(self):
        raise NotImplementedError

    def _close(self):
        raise NotImplementedError

    def _request_key_update(self):
        raise NotImplementedError(f"{type(self).__name__} cannot update keys")

    @property
    def key_updates_sent(self) -> int:
        """Key updates the TLS library applied to our sending keys"""
        return 0

    @property
    def key_updates_received(self) -> Optional[int]:
        """Key updates applied to our receiving keys, None if the library does not tell"""
        return None

    @property
    def resumed(self) -> bool:
        """True if the handshake of this session resumed an earlier one"""
        return False

    def read_exact(self, size: int) -> bytes:
        """
        Read exactly size bytes

        Raises:
            ScenarioError: If the stream ends first
        """
        buffer = bytearray()
        while len(buffer) < size:
            data = self.recv(size - len(buffer))
            if not data:
                raise ScenarioError(f"Short read: expected {size} bytes, got {len(buffer)}")
            buffer += data
        return bytes(buffer)

    def expect(self, expected: bytes, what: str = "message"):
        """Read len(expected) bytes and require an exact match"""
        received = self.read_exact(len(expected))
        if received != expected:
            raise ScenarioError(f"Unexpected {what}: {received!r} != {expected!r}")

    def key_update(self):
        self._request_key_update()

    def shutdown_write(self):
        self.advance(SessionState.HALF_CLOSING)
        self._shutdown_write()

    def wait_for_peer_close(self, tolerate_reset: bool = False):
        """
        Block until the peer's end of stream

        Args:
            tolerate_reset: Accept a connection reset instead of a clean EOF
        """
        self.advance(SessionState.AWAITING_PEER_CLOSE)
        try:
            data = self.recv(1)
        except ConnectionResetError:
            if not tolerate_reset:
                raise
            logger.info("connection reset while waiting for the peer to close")
            return
        if data:
            raise ScenarioError(f"Expected end of stream, received {data!r}")

    def close(self):
        self.advance(SessionState.CLOSED)
        self._close()


def _missing_capabilities(required: Dict[InteropTest, FrozenSet[Capability]], test: InteropTest,
                          capabilities: FrozenSet[Capability]):
    return required.get(test, frozenset()) - capabilities


class ServerTLS:
    """Accepting side of the contract"""
    name = "server"
    capabilities: FrozenSet[Capability] = frozenset()

    def get_server_config(self, test: InteropTest) -> Optional[Any]:
        """Backend configuration for test, or None if the backend cannot run it"""
        raise NotImplementedError

    def acceptor(self, config: Any) -> Any:
        raise NotImplementedError

    def accept(self, acceptor: Any, transport: Any) -> Session:
        """Perform the TLS handshake over transport"""
        raise NotImplementedError

    def resolve_config(self, test: InteropTest) -> Optional[Any]:
        missing = _missing_capabilities(SERVER_REQUIRED_CAPABILITIES, test, self.capabilities)
        if missing:
            logger.info("%s does not support %s (missing %s)", self.name, test,
                        ", ".join(sorted(c.value for c in missing)))
            return None
        return self.get_server_config(test)

    def establish(self, acceptor: Any, transport: Any) -> Session:
        session = self.accept(acceptor, transport)
        session.advance(SessionState.APPLICATION_EXCHANGE)
        return session

    def handle_server_connection(self, test: InteropTest, session: Session):
        """Run the server half of a scenario, then the shutdown sequence"""
        logger.info("Executing the %s scenario", test)
        registry.dispatch(test, 'server', self, session)

        logger.info("closing the server side of connection")
        session.shutdown_write()
        logger.info("waiting for the client to close")
        session.wait_for_peer_close()
        session.close()

    def handle_large_data_download_with_frequent_key_updates(self, session: Session):
        """
        Stream the large download with a key update before every gigabyte

        Only reachable for backends declaring Capability.KEY_UPDATE. The
        count is read back from the session, so a library that silently
        skips the update fails the scenario.
        """
        session.expect(CLIENT_GREETING, "client greeting")
        plan = DownloadPlan.configured()
        stream_download(session, plan, key_update=True)
        if session.key_updates_sent != plan.gigabytes:
            raise ScenarioError(
                f"Sent {session.key_updates_sent} key updates, expected {plan.gigabytes}"
            )

    def validate_resumption(self, session: Session) -> bool:
        """True if session resumed an earlier one"""
        return False

    def serve(self, test: InteropTest, config: Any, accept_transport: Callable[[], Any]):
        """
        Serve every connection a scenario needs

        Args:
            test: Scenario to run
            config: Result of resolve_config
            accept_transport: Returns the next accepted transport
        """
        acceptor = self.acceptor(config)

        if test is InteropTest.SESSION_RESUMPTION:
            session = self.establish(acceptor, accept_transport())
            if self.validate_resumption(session):
                raise ScenarioError("first connection reported a resumed handshake")
            logger.info("first connection used a full handshake")
            self.handle_server_connection(InteropTest.GREETING, session)

        session = self.establish(acceptor, accept_transport())
        self.handle_server_connection(test, session)


class ClientTLS:
    """Connecting side of the contract"""
    name = "client"
    capabilities: FrozenSet[Capability] = frozenset()

    def get_client_config(self, test: InteropTest) -> Optional[Any]:
        """Backend configuration for test, or None if the backend cannot run it"""
        raise NotImplementedError

    def connector(self, config: Any) -> Any:
        raise NotImplementedError

    def connect(self, connector: Any, transport: Any) -> Session:
        """Perform the TLS handshake over transport"""
        raise NotImplementedError

    def remember_session(self, connector: Any, session: Session):
        """Keep whatever the connector needs to resume session later"""

    def resolve_config(self, test: InteropTest) -> Optional[Any]:
        missing = _missing_capabilities(CLIENT_REQUIRED_CAPABILITIES, test, self.capabilities)
        if missing:
            logger.info("%s does not support %s (missing %s)", self.name, test,
                        ", ".join(sorted(c.value for c in missing)))
            return None
        return self.get_client_config(test)

    def establish(self, connector: Any, transport: Any) -> Session:
        session = self.connect(connector, transport)
        session.advance(SessionState.APPLICATION_EXCHANGE)
        return session

    def handle_client_connection(self, test: InteropTest, session: Session,
                                 connector: Any = None):
        """Run the client half of a scenario, then the shutdown sequence"""
        logger.info("executing the %s scenario", test)
        registry.dispatch(test, 'client', self, session)
        if connector is not None:
            self.remember_session(connector, session)

        logger.info("shutting down the client side of the connection")
        session.shutdown_write()

        # The server may send FIN immediately followed by RST; if the RST is
        # read first this is a reset rather than a clean EOF.
        logger.info("waiting for the server to shut down")
        session.wait_for_peer_close(tolerate_reset=True)
        session.close()

    def run(self, test: InteropTest, config: Any, open_transport: Callable[[], Any]):
        """
        Open every connection a scenario needs

        Args:
            test: Scenario to run
            config: Result of resolve_config
            open_transport: Returns a fresh connected transport
        """
        connector = self.connector(config)

        if test is InteropTest.SESSION_RESUMPTION:
            session = self.establish(connector, open_transport())
            self.handle_client_connection(InteropTest.GREETING, session, connector)

        session = self.establish(connector, open_transport())
        self.handle_client_connection(test, session)


