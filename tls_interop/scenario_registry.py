"""
Registry of scenario handlers, keyed by test case and role
"""

from typing import Callable, List, Dict, Optional
from dataclasses import dataclass

from .interop import InteropTest, InternalFrameworkError


ROLES = ('server', 'client')


@dataclass
class ScenarioHandler:
    """Application protocol of one side of a test case"""
    test_case: InteropTest
    role: str  # 'server' or 'client'
    func: Callable
    description: str

    def __repr__(self):
        return f"ScenarioHandler({self.test_case}, role={self.role})"


class ScenarioRegistry:
    """Registry for scenario handlers with decorator-based registration"""

    def __init__(self):
        self.handlers: Dict[str, ScenarioHandler] = {}

    def register(self, *test_cases: InteropTest, role: str):
        """
        Decorator to register a handler for one or more test cases

        Args:
            test_cases: Test cases the handler implements
            role: 'server' or 'client'

        Usage:
            @registry.register(InteropTest.GREETING, role='server')
            def serve_greeting(backend, session):
                ...
        """
        if role not in ROLES:
            raise ValueError(f"Unknown role '{role}'")

        def decorator(func: Callable):
            for test_case in test_cases:
                self.handlers[f"{test_case.value}_{role}"] = ScenarioHandler(
                    test_case=test_case,
                    role=role,
                    func=func,
                    description=(func.__doc__ or "").strip()
                )
            return func
        return decorator

    def get_handler(self, test_case: InteropTest, role: str) -> Optional[ScenarioHandler]:
        return self.handlers.get(f"{test_case.value}_{role}")

    def dispatch(self, test_case: InteropTest, role: str, backend, session):
        """
        Run the registered handler

        Raises:
            InternalFrameworkError: If no handler exists; this is a harness bug,
                not a peer failure
        """
        handler = self.get_handler(test_case, role)
        if handler is None:
            raise InternalFrameworkError(f"internal error, unrecognized {role} test {test_case!r}")
        return handler.func(backend, session)

    def list_test_cases(self, role: Optional[str] = None) -> List[InteropTest]:
        """
        List test cases with a registered handler

        Args:
            role: Filter by role, or None for handlers of either role

        Returns:
            Test cases in declaration order
        """
        covered = {h.test_case for h in self.handlers.values() if role is None or h.role == role}
        return [t for t in InteropTest if t in covered]

    def __len__(self):
        return len(self.handlers)

    def __repr__(self):
        return f"ScenarioRegistry({len(self.handlers)} handlers registered)"


# Global registry instance
registry = ScenarioRegistry()
