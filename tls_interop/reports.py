"""
Result table and report generation for the TLS interoperability harness
"""

import bisect
import json
from jinja2 import Template
from colorama import Fore, Style
from pathlib import Path
from typing import List, Optional

from .results import InteropSuiteResult, Outcome, ScenarioResult


TEMPLATE_PATH = Path(__file__).parent / 'templates' / 'report_template.html'

OUTCOME_MARKERS = {
    Outcome.SUCCESS: "✓",
    Outcome.FAILURE: "✗",
    Outcome.UNIMPLEMENTED: "○",
}

OUTCOME_COLORS = {
    Outcome.SUCCESS: Fore.GREEN,
    Outcome.FAILURE: Fore.RED,
    Outcome.UNIMPLEMENTED: Fore.YELLOW,
}


def outcome_marker(outcome: Outcome, color: bool = False) -> str:
    """Human readable marker for an outcome, distinct for every outcome"""
    marker = f"{OUTCOME_MARKERS[outcome]} {outcome.value}"
    if color:
        return f"{OUTCOME_COLORS[outcome]}{marker}{Style.RESET_ALL}"
    return marker


class ResultTable:
    """
    Append-only view of completed scenarios, kept sorted by
    (test case, server, client)
    """

    def __init__(self):
        self._keys = []
        self.results: List[ScenarioResult] = []

    def add(self, result: ScenarioResult):
        key = result.scenario.sort_key()
        index = bisect.bisect_right(self._keys, key)
        self._keys.insert(index, key)
        self.results.insert(index, result)

    def render(self, color: bool = False) -> List[str]:
        """One line per completed scenario: test case, server, client, outcome"""
        lines = []
        for result in self.results:
            scenario = result.scenario
            lines.append(
                f"{str(scenario.test_case):45}, {str(scenario.server):10}, "
                f"{str(scenario.client):10}, {outcome_marker(result.outcome, color)}"
            )
        return lines

    def show(self, color: bool = True):
        print("\n".join(self.render(color)))
        print()

    def __len__(self):
        return len(self.results)


class ReportGenerator:
    """Generate run reports in various formats"""

    def __init__(self, template_path: Optional[str] = None):
        """
        Initialize report generator

        Args:
            template_path: Path to HTML template file
        """
        self.template_path = Path(template_path) if template_path else TEMPLATE_PATH

    def generate_html(self, suite_result: InteropSuiteResult, output_path: str):
        """
        Generate HTML report

        Args:
            suite_result: InteropSuiteResult object
            output_path: Path to output HTML file
        """
        if not self.template_path.exists():
            print(f"Warning: Template not found at {self.template_path}, skipping HTML report")
            return

        with open(self.template_path) as f:
            template = Template(f.read())

        html = template.render(
            timestamp=suite_result.timestamp.strftime('%Y-%m-%d %H:%M:%S'),
            total_duration=suite_result.total_duration,
            total=suite_result.total,
            success=suite_result.success,
            failure=suite_result.failure,
            unimplemented=suite_result.unimplemented,
            results=suite_result.results,
            markers=OUTCOME_MARKERS
        )

        with open(output_path, 'w') as f:
            f.write(html)

        print(f"\nHTML report generated: {output_path}")

    def generate_json(self, suite_result: InteropSuiteResult, output_path: str):
        """
        Generate JSON report

        Args:
            suite_result: InteropSuiteResult object
            output_path: Path to output JSON file
        """
        with open(output_path, 'w') as f:
            json.dump(suite_result.to_dict(), f, indent=2)

        print(f"JSON report generated: {output_path}")

    def print_console_summary(self, suite_result: InteropSuiteResult):
        """
        Print summary to console

        Args:
            suite_result: InteropSuiteResult object
        """
        print("\n" + "=" * 70)
        print("Interop Run Summary")
        print("=" * 70)
        print(f"Total Scenarios: {suite_result.total}")
        print(f"✓ Success:       {suite_result.success}")
        print(f"✗ Failure:       {suite_result.failure}")
        print(f"○ Unimplemented: {suite_result.unimplemented}")
        print(f"Duration:        {suite_result.total_duration:.2f}s")
        print("=" * 70)

        if suite_result.failure > 0:
            print("\nFailed Scenarios:")
            for result in suite_result.results:
                if result.outcome == Outcome.FAILURE:
                    reason = result.error_message or (
                        f"client exit {result.client_status}, server exit {result.server_status}"
                    )
                    print(f"  ✗ {result.scenario}: {reason}")

        print()
