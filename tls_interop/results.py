"""
Scenario result data structures
"""

from dataclasses import dataclass, field
from enum import Enum
from datetime import datetime
from typing import Optional, List, Dict

from .catalogue import ScenarioSpec
from .interop import UNIMPLEMENTED_RETURN_VAL


class Outcome(Enum):
    """Outcome of one scenario"""
    SUCCESS = "success"
    FAILURE = "failure"
    UNIMPLEMENTED = "unimplemented"


def classify(client_status: Optional[int], server_status: Optional[int]) -> Outcome:
    """
    Reduce the exit codes of a client/server pair to an Outcome

    The unimplemented sentinel on either side wins over everything else; a
    missing status (process never reaped) counts as a failure.
    """
    if UNIMPLEMENTED_RETURN_VAL in (client_status, server_status):
        return Outcome.UNIMPLEMENTED
    if client_status == 0 and server_status == 0:
        return Outcome.SUCCESS
    return Outcome.FAILURE


@dataclass
class ScenarioResult:
    """Result of a single scenario"""
    scenario: ScenarioSpec
    outcome: Outcome = Outcome.FAILURE
    duration: float = 0.0
    timestamp: datetime = field(default_factory=datetime.now)
    client_status: Optional[int] = None
    server_status: Optional[int] = None
    client_pid: Optional[int] = None
    server_pid: Optional[int] = None
    timed_out: bool = False
    error_message: Optional[str] = None

    def to_dict(self) -> Dict:
        """Convert to dictionary for JSON serialization"""
        return {
            'test_case': str(self.scenario.test_case),
            'server': str(self.scenario.server),
            'client': str(self.scenario.client),
            'port': self.scenario.port,
            'outcome': self.outcome.value,
            'duration': round(self.duration, 3),
            'timestamp': self.timestamp.isoformat(),
            'client_status': self.client_status,
            'server_status': self.server_status,
            'timed_out': self.timed_out,
            'error_message': self.error_message
        }

    def __repr__(self):
        return f"ScenarioResult({self.scenario}: {self.outcome.value})"


@dataclass
class InteropSuiteResult:
    """Aggregated results for a whole run"""
    total: int
    success: int
    failure: int
    unimplemented: int
    total_duration: float
    results: List[ScenarioResult]
    timestamp: datetime = field(default_factory=datetime.now)

    @staticmethod
    def from_results(results: List[ScenarioResult], total_duration: float = 0.0) -> 'InteropSuiteResult':
        """
        Create InteropSuiteResult from a list of ScenarioResult objects

        Args:
            results: Scenario results, in any order
            total_duration: Wall-clock duration of the run

        Returns:
            InteropSuiteResult with results sorted by (test case, server, client)
        """
        ordered = sorted(results, key=lambda r: r.scenario.sort_key())
        return InteropSuiteResult(
            total=len(ordered),
            success=sum(1 for r in ordered if r.outcome == Outcome.SUCCESS),
            failure=sum(1 for r in ordered if r.outcome == Outcome.FAILURE),
            unimplemented=sum(1 for r in ordered if r.outcome == Outcome.UNIMPLEMENTED),
            total_duration=total_duration,
            results=ordered
        )

    def to_dict(self) -> Dict:
        """Convert to dictionary for JSON serialization"""
        return {
            'timestamp': self.timestamp.isoformat(),
            'summary': {
                'total': self.total,
                'success': self.success,
                'failure': self.failure,
                'unimplemented': self.unimplemented
            },
            'total_duration': round(self.total_duration, 3),
            'results': [r.to_dict() for r in self.results]
        }

    def is_success(self) -> bool:
        """Unimplemented scenarios do not fail a run"""
        return self.failure == 0

    def __repr__(self):
        return f"InteropSuiteResult({self.success}/{self.total} succeeded)"
