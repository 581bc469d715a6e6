"""
Certificate and key file lookup for the shims

The PEM files themselves are generated outside the harness; this module only
knows where they live.
"""

import os
from enum import Enum
from pathlib import Path


DEFAULT_CERT_DIR = Path(__file__).resolve().parent.parent / 'certificates'


class PemType(Enum):
    CA_CERT = "ca-cert.pem"
    SERVER_KEY = "server-key.pem"
    SERVER_CHAIN = "server-chain.pem"
    CLIENT_KEY = "client-key.pem"
    CLIENT_CHAIN = "client-chain.pem"


def cert_dir() -> Path:
    return Path(os.environ.get('TLS_INTEROP_CERT_DIR', DEFAULT_CERT_DIR))


def pem_file_path(pem_type: PemType) -> str:
    return str(cert_dir() / pem_type.value)


def read_pem(pem_type: PemType) -> str:
    with open(pem_file_path(pem_type)) as f:
        return f.read()
