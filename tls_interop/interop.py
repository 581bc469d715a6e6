"""
Shared definitions for the TLS interoperability harness

Test case identifiers, wire-level constants and the exit code contract that
every client/server shim honours.
"""

import argparse
import os
from dataclasses import dataclass
from enum import Enum
from typing import List, Optional, Tuple


# Exit code a shim returns when it does not implement the requested scenario
UNIMPLEMENTED_RETURN_VAL = 127

CLIENT_GREETING = b"i am the client. nice to meet you server."
SERVER_GREETING = b"i am the server. a pleasure to make your acquaintance."

ONE_MB = 1_000_000
ONE_GB = 1_000_000_000

LARGE_DATA_DOWNLOAD_GB = 256


class InteropError(Exception):
    """Base class for harness errors"""


class ScenarioError(InteropError):
    """The peer violated the application protocol of a scenario"""


class InternalFrameworkError(InteropError):
    """A test case reached scenario logic that has no handler for it"""


class ConfigError(InteropError):
    """Invalid harness configuration, detected at startup"""


class InteropTest(Enum):
    """Closed set of interoperability scenarios, in reporting order"""
    HANDSHAKE = "handshake"
    GREETING = "greeting"
    MTLS_REQUEST_RESPONSE = "mtls_request_response"
    LARGE_DATA_DOWNLOAD = "large_data_download"
    LARGE_DATA_DOWNLOAD_WITH_FREQUENT_KEY_UPDATES = "large_data_download_with_frequent_key_updates"
    SESSION_RESUMPTION = "session_resumption"

    def __str__(self):
        return self.value

    @property
    def order(self) -> int:
        return list(InteropTest).index(self)

    @classmethod
    def from_name(cls, name: str) -> 'InteropTest':
        """
        Look up a test case by its wire name

        Raises:
            ConfigError: If the name is not a known test case
        """
        try:
            return cls(name)
        except ValueError:
            known = ", ".join(t.value for t in cls)
            raise ConfigError(f"Unknown test case '{name}' (known: {known})") from None

    @classmethod
    def parse_list(cls, names: List[str]) -> List['InteropTest']:
        """Validate a list of wire names, keeping order and dropping duplicates"""
        tests = []
        for name in names:
            test = cls.from_name(name)
            if test not in tests:
                tests.append(test)
        return tests


def large_data_download_gb() -> int:
    """Total download volume in gigabytes, overridable for local runs"""
    value = os.environ.get('TLS_INTEROP_LARGE_DATA_GB')
    if value is None:
        return LARGE_DATA_DOWNLOAD_GB
    return int(value)


def chunk_tag(gigabyte: int) -> int:
    """Value of byte 0 of every chunk sent during the given gigabyte"""
    return gigabyte % 256


@dataclass(frozen=True)
class DownloadPlan:
    """Shape of the large data download: volume and chunking"""
    gigabytes: int
    chunk_size: int = ONE_MB
    gigabyte_size: int = ONE_GB

    @property
    def chunks_per_gigabyte(self) -> int:
        return self.gigabyte_size // self.chunk_size

    def tag_for_chunk(self, index: int) -> int:
        """Expected tag of the chunk with the given global index"""
        return chunk_tag(index // self.chunks_per_gigabyte)

    @classmethod
    def configured(cls) -> 'DownloadPlan':
        return cls(gigabytes=large_data_download_gb())


def parse_shim_arguments(role: str, argv: Optional[List[str]] = None) -> Tuple[InteropTest, int]:
    """
    Parse the positional arguments every shim receives: test case and port

    Args:
        role: 'server' or 'client', used in the usage message
        argv: Argument list without the program name (defaults to sys.argv[1:])

    Returns:
        Tuple of (test case, port)
    """
    parser = argparse.ArgumentParser(description=f"TLS interop {role} shim")
    parser.add_argument('test', choices=[t.value for t in InteropTest],
                        help='Scenario to execute')
    parser.add_argument('port', type=int, help='TCP port to listen on / connect to')
    args = parser.parse_args(argv)
    return InteropTest(args.test), args.port
