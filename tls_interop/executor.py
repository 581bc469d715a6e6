"""
Process pair executor

Runs one scenario as a server process plus a client process, captures their
stdout into log files and reduces the pair's exit codes to an Outcome.
"""

import asyncio
import contextlib
import logging
import time
from pathlib import Path
from typing import Dict, List, Optional, Tuple

from .catalogue import Client, ScenarioSpec, Server
from .config import DEFAULT_GRACE_PERIOD, DEFAULT_TIMEOUT
from .results import Outcome, ScenarioResult, classify


logger = logging.getLogger(__name__)

COPY_CHUNK_SIZE = 64 * 1024


async def copy_to_log(stream: asyncio.StreamReader, sink) -> int:
    """
    Copy a process output stream into a log file until EOF

    File writes run in the default thread pool so a slow disk never stalls
    the event loop that drives every other scenario.
    """
    loop = asyncio.get_running_loop()
    copied = 0
    while True:
        chunk = await stream.read(COPY_CHUNK_SIZE)
        if not chunk:
            break
        await loop.run_in_executor(None, sink.write, chunk)
        copied += len(chunk)
    await loop.run_in_executor(None, sink.flush)
    return copied


class RunningJob:
    """
    Live state of one scenario: two processes and their two log files

    Used as an async context manager; on exit any process still running is
    killed and reaped and both log files are closed, whatever the exit path.
    """

    def __init__(self, scenario: ScenarioSpec, log_dir: Path):
        self.scenario = scenario
        self.server_log_path = log_dir / scenario.log_name('server')
        self.client_log_path = log_dir / scenario.log_name('client')
        self.server: Optional[asyncio.subprocess.Process] = None
        self.client: Optional[asyncio.subprocess.Process] = None
        self._files = contextlib.ExitStack()

    async def __aenter__(self):
        self.server_log = self._files.enter_context(open(self.server_log_path, 'wb'))
        self.client_log = self._files.enter_context(open(self.client_log_path, 'wb'))
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        try:
            await self.terminate()
        finally:
            self._files.close()
        return False

    async def start_server(self, cmd: List[str], env: Optional[Dict[str, str]] = None):
        logger.debug("Starting server for %s: %s", self.scenario, ' '.join(cmd))
        self.server = await asyncio.create_subprocess_exec(
            *cmd,
            stdout=asyncio.subprocess.PIPE,
            env=env
        )

    async def start_client(self, cmd: List[str], env: Optional[Dict[str, str]] = None):
        logger.debug("Starting client for %s: %s", self.scenario, ' '.join(cmd))
        self.client = await asyncio.create_subprocess_exec(
            *cmd,
            stdout=asyncio.subprocess.PIPE,
            stderr=asyncio.subprocess.DEVNULL,
            env=env
        )

    async def wait(self) -> Tuple[int, int]:
        """Wait for both exits and both log copies; returns (client, server) status"""
        client_status, server_status, _, _ = await asyncio.gather(
            self.client.wait(),
            self.server.wait(),
            copy_to_log(self.client.stdout, self.client_log),
            copy_to_log(self.server.stdout, self.server_log),
        )
        return client_status, server_status

    async def terminate(self):
        """Kill (no graceful signal) and reap every process still running"""
        for name, process in (('client', self.client), ('server', self.server)):
            if process is None or process.returncode is not None:
                continue
            logger.warning("Killing %s process %d of %s", name, process.pid, self.scenario)
            with contextlib.suppress(ProcessLookupError):
                process.kill()
            await process.wait()


class ProcessPairExecutor:
    """Execute scenarios as client/server process pairs"""

    def __init__(self,
                 server_commands: Dict[Server, List[str]],
                 client_commands: Dict[Client, List[str]],
                 log_dir: str = 'interop_logs',
                 timeout: float = DEFAULT_TIMEOUT,
                 grace_period: float = DEFAULT_GRACE_PERIOD,
                 env: Optional[Dict[str, str]] = None):
        """
        Initialize executor

        Args:
            server_commands: Command prefix per server variant
            client_commands: Command prefix per client variant
            log_dir: Directory receiving one log file per process per scenario
            timeout: Seconds allowed for both processes to exit and their
                output to be copied
            grace_period: Seconds between starting the server and the client
            env: Environment for the child processes
        """
        self.server_commands = server_commands
        self.client_commands = client_commands
        self.log_dir = Path(log_dir)
        self.timeout = timeout
        self.grace_period = grace_period
        self.env = env

    async def execute(self, scenario: ScenarioSpec) -> ScenarioResult:
        """
        Run one scenario to completion

        Never raises for launch failures or timeouts; both are reported as
        Outcome.FAILURE.
        """
        result = ScenarioResult(scenario=scenario)
        args = [str(scenario.test_case), str(scenario.port)]
        start_time = time.monotonic()
        self.log_dir.mkdir(parents=True, exist_ok=True)

        try:
            async with RunningJob(scenario, self.log_dir) as job:
                await job.start_server(self.server_commands[scenario.server] + args, self.env)
                result.server_pid = job.server.pid

                # the server is probably listening by now, not guaranteed
                await asyncio.sleep(self.grace_period)

                await job.start_client(self.client_commands[scenario.client] + args, self.env)
                result.client_pid = job.client.pid

                try:
                    client_status, server_status = await asyncio.wait_for(job.wait(), self.timeout)
                except asyncio.TimeoutError:
                    logger.error("%s timed out after %ss", scenario, self.timeout)
                    result.timed_out = True
                    result.error_message = f"timed out after {self.timeout}s"
                    await job.terminate()
                else:
                    result.client_status = client_status
                    result.server_status = server_status
                    result.outcome = classify(client_status, server_status)
        except OSError as e:
            logger.error("Failed to launch %s: %s", scenario, e)
            result.outcome = Outcome.FAILURE
            result.error_message = f"launch failed: {e}"

        result.duration = time.monotonic() - start_time
        logger.debug("%s finished in %.1f seconds", scenario, result.duration)
        return result
