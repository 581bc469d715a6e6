"""
TLS 1.3 Interoperability Harness

This package runs a catalogue of TLS scenarios across every pairing of
client and server implementations and reports which pairings interoperate.
"""

__version__ = "1.0.0"
__all__ = ['interop', 'catalogue', 'config', 'results', 'executor', 'scheduler', 'reports',
           'shim', 'scenario_registry', 'server_scenarios', 'client_scenarios', 'endpoint',
           'ssl_shim', 'tlslite_shim']
