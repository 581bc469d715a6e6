"""
Concurrency scheduler and result aggregation

Scenarios run as asyncio tasks gated by a counting semaphore; every finished
scenario is pushed onto a single completion queue that the aggregator drains
in arrival order.
"""

import asyncio
import logging
import time
from typing import Callable, Iterable, List, Optional, Set

from .catalogue import ScenarioSpec
from .reports import ResultTable
from .results import InteropSuiteResult, Outcome, ScenarioResult


logger = logging.getLogger(__name__)


class InteropScheduler:
    """Run scenarios with at most `concurrency` executing at any instant"""

    def __init__(self, executor, concurrency: int):
        """
        Initialize scheduler

        Args:
            executor: Object with an async execute(ScenarioSpec) -> ScenarioResult
            concurrency: Maximum number of scenarios running at once
        """
        if concurrency < 1:
            raise ValueError(f"concurrency must be positive, got {concurrency}")
        self.executor = executor
        self.concurrency = concurrency
        self.permits = asyncio.Semaphore(concurrency)
        self.completions: asyncio.Queue = asyncio.Queue()
        self._tasks: Set[asyncio.Task] = set()

    async def submit(self, scenario: ScenarioSpec):
        """
        Wait for a permit, then start the scenario in the background

        Returns as soon as the scenario has been started.
        """
        await self.permits.acquire()
        task = asyncio.ensure_future(self._run(scenario))
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)

    async def _run(self, scenario: ScenarioSpec):
        try:
            result = await self.executor.execute(scenario)
        except Exception as e:
            logger.exception("Executor raised for %s", scenario)
            result = ScenarioResult(scenario=scenario, outcome=Outcome.FAILURE,
                                    error_message=f"harness error: {e}")
        finally:
            self.permits.release()
        await self.completions.put(result)

    async def run(self, scenarios: Iterable[ScenarioSpec],
                  on_result: Optional[Callable[[ScenarioResult, ResultTable], None]] = None) -> ResultTable:
        """
        Run every scenario exactly once and aggregate the completions

        Args:
            scenarios: Scenario catalogue
            on_result: Called after each completion with the result and the
                updated table

        Returns:
            ResultTable holding one result per scenario
        """
        scenarios = list(scenarios)
        logger.debug("Running %d scenarios with concurrency %d", len(scenarios), self.concurrency)
        submitter = asyncio.ensure_future(self._submit_all(scenarios))

        table = ResultTable()
        try:
            for _ in scenarios:
                result = await self.completions.get()
                logger.info("%s finished with %s", result.scenario, result.outcome.value)
                table.add(result)
                if on_result:
                    on_result(result, table)
            await submitter
        finally:
            if not submitter.done():
                submitter.cancel()
            for task in list(self._tasks):
                task.cancel()
        return table

    async def _submit_all(self, scenarios: List[ScenarioSpec]):
        for scenario in scenarios:
            await self.submit(scenario)


async def run_catalogue(executor, scenarios: List[ScenarioSpec], concurrency: int,
                        show_progress: bool = True) -> InteropSuiteResult:
    """Run a catalogue, re-printing the sorted result table after each completion"""
    scheduler = InteropScheduler(executor, concurrency)
    start_time = time.monotonic()

    def progress(result: ScenarioResult, table: ResultTable):
        if show_progress:
            table.show()

    table = await scheduler.run(scenarios, on_result=progress)
    return InteropSuiteResult.from_results(table.results, time.monotonic() - start_time)
