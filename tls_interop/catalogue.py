"""
Scenario catalogue: the cross product of test cases, servers and clients
"""

from dataclasses import dataclass
from enum import Enum
from typing import List, Sequence, Tuple

from .interop import ConfigError, InteropTest


PORT_RANGE_START = 9_001
PORT_RANGE_END = 9_100


class _Variant(Enum):
    def __str__(self):
        return self.value

    @property
    def order(self) -> int:
        return list(type(self)).index(self)

    @classmethod
    def from_name(cls, name: str):
        try:
            return cls(name)
        except ValueError:
            known = ", ".join(v.value for v in cls)
            raise ConfigError(f"Unknown {cls.__name__.lower()} variant '{name}' (known: {known})") from None


class Server(_Variant):
    """Server binaries the harness knows how to launch"""
    SSL = "ssl"
    TLSLITE = "tlslite"


class Client(_Variant):
    """Client binaries the harness knows how to launch"""
    SSL = "ssl"
    TLSLITE = "tlslite"


@dataclass(frozen=True)
class ScenarioSpec:
    """One (test case, server, client) combination bound to a port"""
    test_case: InteropTest
    server: Server
    client: Client
    port: int

    def sort_key(self) -> Tuple[int, int, int]:
        return (self.test_case.order, self.server.order, self.client.order)

    def log_name(self, role: str) -> str:
        """Deterministic log file name for one side of this scenario"""
        return f"{self.test_case}_{self.server}_{self.client}_{role}.log"

    def __str__(self):
        return f"{self.test_case}/{self.server}-server/{self.client}-client"


def build_catalogue(tests: Sequence[InteropTest],
                    servers: Sequence[Server],
                    clients: Sequence[Client],
                    port_start: int = PORT_RANGE_START,
                    port_end: int = PORT_RANGE_END) -> List[ScenarioSpec]:
    """
    Enumerate every scenario, assigning port_start + n to the nth one

    Args:
        tests: Enabled test cases
        servers: Enabled server variants
        clients: Enabled client variants
        port_start: First port of the range
        port_end: End of the range (exclusive)

    Returns:
        List of ScenarioSpec objects in test, server, client order

    Raises:
        ConfigError: If the port range cannot hold one port per scenario
    """
    size = len(tests) * len(servers) * len(clients)
    available = port_end - port_start
    if size > available:
        raise ConfigError(
            f"{size} scenarios do not fit in port range {port_start}-{port_end} "
            f"({available} ports)"
        )

    scenarios = []
    for test in tests:
        for server in servers:
            for client in clients:
                scenarios.append(ScenarioSpec(
                    test_case=test,
                    server=server,
                    client=client,
                    port=port_start + len(scenarios)
                ))
    return scenarios
