"""
Configuration loader for the TLS interoperability harness
"""

import os
import sys
import yaml
from pathlib import Path
from typing import Dict, Any, List, Optional

from .catalogue import Client, ScenarioSpec, Server, build_catalogue, PORT_RANGE_START, PORT_RANGE_END
from .interop import ConfigError, InteropTest


DEFAULT_TIMEOUT = 7 * 60
DEFAULT_GRACE_PERIOD = 1.0
DEFAULT_LOG_DIR = 'interop_logs'


def default_command(backend: str, role: str) -> List[str]:
    """Command prefix launching one of the bundled shims with this interpreter"""
    return [sys.executable, '-m', f'tls_interop.{backend}_shim', role]


def host_concurrency() -> int:
    """
    Number of scenarios allowed to run at once

    Each scenario can saturate two cores (client and server), so half the host
    parallelism is used.
    """
    return max(1, (os.cpu_count() or 1) // 2)


class InteropConfig:
    """Load and manage harness configuration from a YAML file"""

    def __init__(self, config_path: Optional[str] = 'config.yaml', data: Optional[Dict[str, Any]] = None):
        """
        Initialize configuration loader

        Args:
            config_path: Path to YAML configuration file
            data: Already parsed configuration, used instead of config_path
        """
        if data is None:
            self.config_path = Path(config_path)
            if not self.config_path.exists():
                raise FileNotFoundError(f"Configuration file not found: {config_path}")

            with open(self.config_path) as f:
                data = yaml.safe_load(f) or {}
        else:
            self.config_path = None

        self.config = data

        # Validate everything up front so a bad entry never reaches a scenario
        self.enabled_tests = InteropTest.parse_list(
            self.config.get('enabled_tests', [t.value for t in InteropTest])
        )
        self.servers = self._load_variants('servers', Server)
        self.clients = self._load_variants('clients', Client)
        self.port_start, self.port_end = self._load_ports()

    def _load_variants(self, section: str, variant_type) -> Dict[Any, List[str]]:
        """
        Resolve the enabled variants of one role and their command prefixes

        Variants missing from the section are enabled with the bundled shim.
        """
        role = 'server' if variant_type is Server else 'client'
        entries = self.config.get(section) or {}
        for name in entries:
            variant_type.from_name(name)

        variants = {}
        for variant in variant_type:
            entry = entries.get(variant.value) or {}
            if not entry.get('enabled', True):
                continue
            command = entry.get('command')
            if command is None:
                command = default_command(variant.value, role)
            elif isinstance(command, str):
                command = command.split()
            variants[variant] = [sys.executable if part == '{python}' else str(part) for part in command]
        return variants

    def _load_ports(self):
        ports = self.config.get('ports') or {}
        start = int(ports.get('start', PORT_RANGE_START))
        end = int(ports.get('end', PORT_RANGE_END))
        if end <= start:
            raise ConfigError(f"Invalid port range {start}-{end}")
        return start, end

    def select(self, tests: Optional[List[str]] = None,
               servers: Optional[List[str]] = None,
               clients: Optional[List[str]] = None):
        """
        Narrow the configured tests and variants to the given names

        Args:
            tests: Test case wire names, or None to keep the configured list
            servers: Server variant names, or None to keep the configured list
            clients: Client variant names, or None to keep the configured list
        """
        if tests:
            self.enabled_tests = [t for t in InteropTest.parse_list(tests) if t in self.enabled_tests]
        if servers:
            wanted = [Server.from_name(s) for s in servers]
            self.servers = {s: cmd for s, cmd in self.servers.items() if s in wanted}
        if clients:
            wanted = [Client.from_name(c) for c in clients]
            self.clients = {c: cmd for c, cmd in self.clients.items() if c in wanted}

    def scenarios(self) -> List[ScenarioSpec]:
        """Build the scenario catalogue, enforcing the port range invariant"""
        return build_catalogue(self.enabled_tests, list(self.servers), list(self.clients),
                               self.port_start, self.port_end)

    def server_command(self, server: Server) -> List[str]:
        return self.servers[server]

    def client_command(self, client: Client) -> List[str]:
        return self.clients[client]

    def get_test_execution_settings(self) -> Dict[str, Any]:
        """Get test execution settings with defaults applied"""
        settings = dict(self.config.get('test_execution') or {})
        settings.setdefault('timeout', DEFAULT_TIMEOUT)
        settings.setdefault('server_grace_period', DEFAULT_GRACE_PERIOD)
        settings.setdefault('log_dir', DEFAULT_LOG_DIR)

        concurrency = settings.get('concurrency', 'auto')
        if concurrency == 'auto':
            settings['concurrency'] = host_concurrency()
        else:
            concurrency = int(concurrency)
            if concurrency < 1:
                raise ConfigError(f"concurrency must be positive, got {concurrency}")
            settings['concurrency'] = concurrency
        return settings

    def get_child_environment(self) -> Dict[str, str]:
        """Environment for shim processes"""
        env = os.environ.copy()
        certs = self.config.get('certificates') or {}
        if 'dir' in certs:
            env['TLS_INTEROP_CERT_DIR'] = str(Path(certs['dir']).resolve())
        if 'large_data_download_gb' in self.config:
            env['TLS_INTEROP_LARGE_DATA_GB'] = str(self.config['large_data_download_gb'])
        return env

    def get_reporting_settings(self) -> Dict[str, Any]:
        """Get reporting settings"""
        return self.config.get('reporting') or {}
