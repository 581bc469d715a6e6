"""
Process entry points shared by every shim

A shim process receives [test_case, port], runs its half of the scenario
and reports through its exit code: 0 success, UNIMPLEMENTED_RETURN_VAL when
the backend cannot run the test case, 1 on failure.
"""

import logging
import socket
import sys
from typing import List, Optional, Tuple, Type

from .interop import ScenarioError, UNIMPLEMENTED_RETURN_VAL, parse_shim_arguments
from .shim import ClientTLS, ServerTLS


logger = logging.getLogger(__name__)

LISTEN_HOST = '0.0.0.0'
CONNECT_HOST = 'localhost'

FAILURE_RETURN_VAL = 1


def configure_logging(level=logging.INFO):
    """Shim logs go to stdout, which the runner captures into a log file"""
    logging.basicConfig(
        stream=sys.stdout,
        level=level,
        format='%(asctime)s %(levelname)s %(name)s: %(message)s'
    )


def run_server(backend: ServerTLS, argv: Optional[List[str]] = None,
               errors: Tuple[Type[BaseException], ...] = ()) -> int:
    """
    Listen on the given port and serve one scenario

    Args:
        backend: ServerTLS implementation
        argv: [test_case, port], defaults to sys.argv[1:]
        errors: Backend exception types counted as scenario failures, in
            addition to ScenarioError and OSError

    Returns:
        Process exit code
    """
    test, port = parse_shim_arguments('server', argv)
    failures = (ScenarioError, OSError) + tuple(errors)

    try:
        config = backend.resolve_config(test)
    except failures as e:
        logger.error("failed to build the %s server config: %r", backend.name, e)
        return FAILURE_RETURN_VAL
    if config is None:
        return UNIMPLEMENTED_RETURN_VAL

    try:
        with socket.create_server((LISTEN_HOST, port)) as listener:
            def accept_transport():
                stream, peer_addr = listener.accept()
                logger.info("Connection from %s", peer_addr)
                return stream

            backend.serve(test, config, accept_transport)
    except failures as e:
        logger.error("test scenario failed: %r", e)
        return FAILURE_RETURN_VAL

    logger.info("%s scenario finished", test)
    return 0


def run_client(backend: ClientTLS, argv: Optional[List[str]] = None,
               errors: Tuple[Type[BaseException], ...] = ()) -> int:
    """
    Connect to the given port and run the client half of one scenario

    Args:
        backend: ClientTLS implementation
        argv: [test_case, port], defaults to sys.argv[1:]
        errors: Backend exception types counted as scenario failures

    Returns:
        Process exit code
    """
    test, port = parse_shim_arguments('client', argv)
    failures = (ScenarioError, OSError) + tuple(errors)

    try:
        config = backend.resolve_config(test)
    except failures as e:
        logger.error("failed to build the %s client config: %r", backend.name, e)
        return FAILURE_RETURN_VAL
    if config is None:
        return UNIMPLEMENTED_RETURN_VAL

    def open_transport():
        stream = socket.create_connection((CONNECT_HOST, port))
        stream.setsockopt(socket.IPPROTO_TCP, socket.TCP_NODELAY, 1)
        return stream

    try:
        backend.run(test, config, open_transport)
    except failures as e:
        logger.error("test scenario failed: %r", e)
        return FAILURE_RETURN_VAL

    logger.info("%s scenario finished", test)
    return 0


def main(server_backend: ServerTLS, client_backend: ClientTLS,
         errors: Tuple[Type[BaseException], ...] = (),
         argv: Optional[List[str]] = None) -> int:
    """Dispatch `<role> <test_case> <port>` to the server or client entry point"""
    argv = sys.argv[1:] if argv is None else argv
    if not argv or argv[0] not in ('server', 'client'):
        print("usage: <server|client> <test_case> <port>", file=sys.stderr)
        return 2

    configure_logging()
    if argv[0] == 'server':
        return run_server(server_backend, argv[1:], errors)
    return run_client(client_backend, argv[1:], errors)
