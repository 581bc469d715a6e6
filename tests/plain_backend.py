"""
Plaintext backend satisfying the capability contract over socketpairs, so
scenario logic runs without TLS or networking.
"""

import queue
import socket
import threading

from tls_interop.shim import Capability, ClientTLS, ServerTLS, Session


ALL_CAPABILITIES = frozenset(Capability)


class PlainSession(Session):
    def __init__(self, sock, resumed=False):
        super().__init__()
        self.sock = sock
        self._resumed = resumed
        self._key_updates = 0

    def recv(self, size):
        return self.sock.recv(size)

    def send_all(self, data):
        self.sock.sendall(data)

    def _shutdown_write(self):
        self.sock.shutdown(socket.SHUT_WR)

    def _close(self):
        self.sock.close()

    def _request_key_update(self):
        self._key_updates += 1

    @property
    def key_updates_sent(self):
        return self._key_updates

    @property
    def resumed(self):
        return self._resumed


class PlainServer(ServerTLS):
    """
    Args:
        capabilities: Declared capabilities
        resumed: Resumption flag reported by each accepted connection, in order
        session_class: Session type wrapping accepted transports
    """
    name = "plain"

    def __init__(self, capabilities=ALL_CAPABILITIES, resumed=(False, True), session_class=PlainSession):
        self.capabilities = capabilities
        self.session_class = session_class
        self.resumed = list(resumed)
        self.sessions = []

    def get_server_config(self, test):
        return {'test': test}

    def acceptor(self, config):
        return config

    def accept(self, acceptor, transport):
        index = len(self.sessions)
        session = self.session_class(transport, resumed=index < len(self.resumed) and self.resumed[index])
        self.sessions.append(session)
        return session

    def validate_resumption(self, session):
        return session.resumed


class PlainClient(ClientTLS):
    name = "plain"

    def __init__(self, capabilities=ALL_CAPABILITIES, session_class=PlainSession):
        self.capabilities = capabilities
        self.session_class = session_class
        self.sessions = []
        self.remembered = 0

    def get_client_config(self, test):
        return {'test': test}

    def connector(self, config):
        return config

    def connect(self, connector, transport):
        session = self.session_class(transport)
        self.sessions.append(session)
        return session

    def remember_session(self, connector, session):
        self.remembered += 1


def run_pair(server, client, test, timeout=10):
    """
    Run both halves of a scenario over socketpairs

    Returns:
        Dict mapping 'server'/'client' to the exception that side raised
    """
    accepted = queue.Queue()
    server_ends = []
    client_ends = []
    errors = {}

    def open_transport():
        server_end, client_end = socket.socketpair()
        server_ends.append(server_end)
        client_ends.append(client_end)
        accepted.put(server_end)
        return client_end

    def serve():
        try:
            server.serve(test, server.resolve_config(test), lambda: accepted.get(timeout=timeout))
        except Exception as e:
            errors['server'] = e
            for sock in server_ends:
                sock.close()

    thread = threading.Thread(target=serve, daemon=True)
    thread.start()
    try:
        client.run(test, client.resolve_config(test), open_transport)
    except Exception as e:
        errors['client'] = e
        for sock in client_ends:
            sock.close()
    thread.join(timeout)
    assert not thread.is_alive(), "server half did not finish"
    return errors


