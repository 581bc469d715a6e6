import json
import random

import pytest

from tls_interop.catalogue import Client, Server, build_catalogue
from tls_interop.interop import InteropTest, UNIMPLEMENTED_RETURN_VAL
from tls_interop.reports import OUTCOME_MARKERS, ReportGenerator, ResultTable, outcome_marker
from tls_interop.results import InteropSuiteResult, Outcome, ScenarioResult, classify


@pytest.mark.parametrize("client_status, server_status, outcome", [
    (0, 0, Outcome.SUCCESS),
    (UNIMPLEMENTED_RETURN_VAL, 0, Outcome.UNIMPLEMENTED),
    (0, UNIMPLEMENTED_RETURN_VAL, Outcome.UNIMPLEMENTED),
    (1, UNIMPLEMENTED_RETURN_VAL, Outcome.UNIMPLEMENTED),
    (UNIMPLEMENTED_RETURN_VAL, UNIMPLEMENTED_RETURN_VAL, Outcome.UNIMPLEMENTED),
    (1, 0, Outcome.FAILURE),
    (0, 1, Outcome.FAILURE),
    (-9, 0, Outcome.FAILURE),
    (0, None, Outcome.FAILURE),
])
def test_classify(client_status, server_status, outcome):
    assert classify(client_status, server_status) is outcome


def make_results(outcomes=(Outcome.SUCCESS, Outcome.FAILURE, Outcome.UNIMPLEMENTED)):
    scenarios = build_catalogue(list(InteropTest), list(Server), list(Client))
    return [ScenarioResult(scenario=s, outcome=outcomes[i % len(outcomes)])
            for i, s in enumerate(scenarios)]


def test_table_is_sorted_whatever_the_completion_order():
    results = make_results()
    shuffled = results[:]
    random.Random(7).shuffle(shuffled)

    table = ResultTable()
    for result in shuffled:
        table.add(result)

    assert table.results == results
    assert len(table.render()) == len(results)


def test_table_lines():
    result = make_results()[1]
    table = ResultTable()
    table.add(result)

    line, = table.render()
    assert line.startswith("handshake")
    assert line.endswith("✗ failure")
    assert [part.strip() for part in line.split(",")] == ["handshake", "ssl", "tlslite", "✗ failure"]


def test_markers_are_distinct():
    assert len(set(OUTCOME_MARKERS.values())) == len(Outcome)
    assert outcome_marker(Outcome.SUCCESS) == "✓ success"
    assert "✓ success" in outcome_marker(Outcome.SUCCESS, color=True)


def test_suite_counts_and_success():
    suite = InteropSuiteResult.from_results(list(reversed(make_results())), total_duration=1.5)

    assert suite.total == suite.success + suite.failure + suite.unimplemented
    assert suite.results == make_results_sorted(suite.results)
    assert not suite.is_success()

    only_unimplemented = InteropSuiteResult.from_results(make_results((Outcome.UNIMPLEMENTED, Outcome.SUCCESS)))
    assert only_unimplemented.is_success()


def make_results_sorted(results):
    return sorted(results, key=lambda r: r.scenario.sort_key())


def test_json_and_html_reports(tmp_path):
    suite = InteropSuiteResult.from_results(make_results())
    generator = ReportGenerator()

    generator.generate_json(suite, str(tmp_path / "report.json"))
    report = json.loads((tmp_path / "report.json").read_text())
    assert report['summary']['total'] == suite.total
    assert report['results'][0]['test_case'] == 'handshake'

    generator.generate_html(suite, str(tmp_path / "report.html"))
    html = (tmp_path / "report.html").read_text()
    assert "large_data_download_with_frequent_key_updates" in html
    assert "○ unimplemented" in html
