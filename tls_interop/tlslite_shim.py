"""
tlslite-ng backend

tlslite-ng exposes TLS 1.3 KeyUpdate and session tickets, so this backend
supports every scenario. It does no certificate path validation of its own;
peer chains are checked against the CA with cryptography after the
handshake and rejected with a bad_certificate alert.

tlslite's bundled AEAD ciphers are pure Python (the M2Crypto AES-GCM still
computes GHASH in Python), far too slow for gigabyte downloads. The record
layer used here seals and opens records with the cryptography AEAD
primitives instead and counts the key updates applied in each direction.
"""

import logging
import socket
import sys
from dataclasses import dataclass
from typing import Optional

from cryptography import x509
from cryptography.exceptions import InvalidSignature, InvalidTag
from cryptography.hazmat.primitives.ciphers.aead import AESGCM, ChaCha20Poly1305
from tlslite.api import TLSConnection, HandshakeSettings, X509CertChain, parsePEMKey
from tlslite.constants import AlertDescription, AlertLevel, KeyUpdateMessageType
from tlslite.errors import TLSError
from tlslite.messages import Alert
from tlslite.recordlayer import RecordLayer
from tlslite.session import Session as TlsliteTicketSession
from tlslite.utils.cipherfactory import createAESGCM, createCHACHA20
from tlslite.utils.cryptomath import getRandomBytes

from .certs import PemType, read_pem
from .endpoint import main
from .interop import InteropTest
from .shim import Capability, ClientTLS, ServerTLS, Session


logger = logging.getLogger(__name__)

TLS_1_3 = (3, 4)


class CertificateRejected(TLSError):
    """Peer certificate chain missing or not issued by the trusted CA"""


def load_key_and_cert(key_type: PemType, chain_type: PemType):
    """Parse a PEM private key and certificate chain for tlslite"""
    private_key = parsePEMKey(read_pem(key_type), private=True, implementations=["python"])
    cert_chain = X509CertChain()
    cert_chain.parsePemList(read_pem(chain_type))
    return private_key, cert_chain


def load_ca_cert() -> x509.Certificate:
    return x509.load_pem_x509_certificate(read_pem(PemType.CA_CERT).encode())


def verify_chain(cert_chain: Optional[X509CertChain], ca_cert: x509.Certificate):
    """
    Check that a peer chain leads to the trusted CA

    Raises:
        CertificateRejected: If the chain is empty or any link does not verify
    """
    if cert_chain is None or cert_chain.getNumCerts() == 0:
        raise CertificateRejected("peer presented no certificate")

    certs = [x509.load_der_x509_certificate(bytes(cert.bytes)) for cert in cert_chain.x509List]
    try:
        for cert, issuer in zip(certs, certs[1:]):
            cert.verify_directly_issued_by(issuer)
        if certs[-1] != ca_cert:
            certs[-1].verify_directly_issued_by(ca_cert)
    except (ValueError, TypeError, InvalidSignature) as e:
        raise CertificateRejected(f"untrusted peer certificate: {e}") from e


class NativeAEAD:
    """
    AEAD record protection context backed by cryptography

    Offers the interface tlslite's record layer expects from its own AES-GCM
    and ChaCha20-Poly1305 objects.
    """
    isBlockCipher = False
    isAEAD = True
    nonceLength = 12
    tagLength = 16
    implementation = "cryptography"

    def __init__(self, aead_type, key, name: str):
        self.key = key
        self.name = name
        self._aead = aead_type(bytes(key))

    def seal(self, nonce, plaintext, data) -> bytearray:
        """Return the ciphertext followed by the tag"""
        return bytearray(self._aead.encrypt(bytes(nonce), bytes(plaintext), bytes(data)))

    def open(self, nonce, ciphertext, data) -> Optional[bytearray]:
        """Return the plaintext, or None if the tag does not verify"""
        try:
            return bytearray(self._aead.decrypt(bytes(nonce), bytes(ciphertext), bytes(data)))
        except InvalidTag:
            return None


def create_aes_gcm(key, implList=None) -> NativeAEAD:
    return NativeAEAD(AESGCM, key, f"aes{len(key) * 8}gcm")


def create_chacha20(key, implList=None) -> NativeAEAD:
    return NativeAEAD(ChaCha20Poly1305, key, "chacha20-poly1305")


NATIVE_AEADS = {
    createAESGCM: create_aes_gcm,
    createCHACHA20: create_chacha20,
}


class AcceleratedRecordLayer(RecordLayer):
    """
    Record layer sealing TLS 1.3 records with cryptography

    write_key_updates and read_key_updates count the traffic key updates
    applied to our sending and receiving keys.
    """

    def __init__(self, sock):
        super().__init__(sock)
        self.write_key_updates = 0
        self.read_key_updates = 0

    @staticmethod
    def _getCipherSettings(cipherSuite):
        key_length, iv_length, create = RecordLayer._getCipherSettings(cipherSuite)
        return key_length, iv_length, NATIVE_AEADS.get(create, create)

    def calcTLS1_3KeyUpdate_reciever(self, cipherSuite, cl_app_secret, sr_app_secret):
        # called after we sent a KeyUpdate: our write keys change
        secrets = super().calcTLS1_3KeyUpdate_reciever(cipherSuite, cl_app_secret, sr_app_secret)
        self.write_key_updates += 1
        return secrets

    def calcTLS1_3KeyUpdate_sender(self, cipherSuite, cl_app_secret, sr_app_secret):
        # called after the peer's KeyUpdate: our read keys change
        secrets = super().calcTLS1_3KeyUpdate_sender(cipherSuite, cl_app_secret, sr_app_secret)
        self.read_key_updates += 1
        return secrets


class InteropTLSConnection(TLSConnection):
    """TLSConnection running over AcceleratedRecordLayer"""

    def __init__(self, sock):
        super().__init__(sock)
        self._recordLayer = AcceleratedRecordLayer(self.sock)

    @property
    def record_layer(self) -> AcceleratedRecordLayer:
        return self._recordLayer


def handshake_settings() -> HandshakeSettings:
    settings = HandshakeSettings()
    settings.minVersion = TLS_1_3
    settings.maxVersion = TLS_1_3
    # only the ciphers AcceleratedRecordLayer replaces
    settings.cipherNames = ["chacha20-poly1305", "aes256gcm", "aes128gcm"]
    return settings


def reject_peer(connection: TLSConnection, error: CertificateRejected):
    """Send a fatal bad_certificate alert; always raises"""
    logger.error("%s", error)
    for _ in connection._sendError(AlertDescription.bad_certificate, str(error)):
        pass
    raise error


class TlsliteSession(Session):
    """Session over a tlslite TLSConnection"""

    def __init__(self, connection: InteropTLSConnection):
        super().__init__()
        self.connection = connection

    def recv(self, size: int) -> bytes:
        return bytes(self.connection.read(max=size, min=1))

    def send_all(self, data: bytes):
        self.connection.write(data)

    def _shutdown_write(self):
        alert = Alert().create(AlertDescription.close_notify, AlertLevel.warning)
        for _ in self.connection._sendMsg(alert):
            pass
        self.connection.sock.shutdown(socket.SHUT_WR)

    def _close(self):
        self.connection.sock.close()

    def _request_key_update(self):
        for _ in self.connection.send_keyupdate_request(KeyUpdateMessageType.update_not_requested):
            pass

    @property
    def key_updates_sent(self) -> int:
        return self.connection.record_layer.write_key_updates

    @property
    def key_updates_received(self) -> int:
        return self.connection.record_layer.read_key_updates

    @property
    def resumed(self) -> bool:
        return self.connection.resumed

    def __repr__(self):
        return f"<TlsliteSession {self.state.value}>"


@dataclass
class TlsliteServerConfig:
    settings: HandshakeSettings
    private_key: object
    cert_chain: X509CertChain
    ca_cert: Optional[x509.Certificate] = None

    @property
    def require_client_cert(self) -> bool:
        return self.ca_cert is not None


@dataclass
class TlsliteClientConfig:
    settings: HandshakeSettings
    ca_cert: x509.Certificate
    private_key: object = None
    cert_chain: Optional[X509CertChain] = None


class TlsliteConnector:
    """Client configuration plus the ticket-bearing session kept for resumption"""

    def __init__(self, config: TlsliteClientConfig):
        self.config = config
        self.session: Optional[TlsliteTicketSession] = None


class TlsliteServer(ServerTLS):
    name = "tlslite"
    capabilities = frozenset({Capability.KEY_UPDATE, Capability.SESSION_RESUMPTION})

    def get_server_config(self, test: InteropTest) -> Optional[TlsliteServerConfig]:
        logger.info("getting the server config for %s", test)
        private_key, cert_chain = load_key_and_cert(PemType.SERVER_KEY, PemType.SERVER_CHAIN)
        settings = handshake_settings()
        config = TlsliteServerConfig(settings=settings, private_key=private_key, cert_chain=cert_chain)

        if test is InteropTest.MTLS_REQUEST_RESPONSE:
            config.ca_cert = load_ca_cert()
        elif test is InteropTest.SESSION_RESUMPTION:
            settings.ticketKeys = [getRandomBytes(32)]
        return config

    def acceptor(self, config: TlsliteServerConfig) -> TlsliteServerConfig:
        config.settings = config.settings.validate()
        return config

    def accept(self, acceptor: TlsliteServerConfig, transport: socket.socket) -> TlsliteSession:
        connection = InteropTLSConnection(transport)
        connection.handshakeServer(
            certChain=acceptor.cert_chain,
            privateKey=acceptor.private_key,
            reqCert=acceptor.require_client_cert,
            settings=acceptor.settings
        )
        if acceptor.require_client_cert:
            try:
                verify_chain(connection.session.clientCertChain, acceptor.ca_cert)
            except CertificateRejected as e:
                reject_peer(connection, e)
        return TlsliteSession(connection)

    def validate_resumption(self, session: TlsliteSession) -> bool:
        # tlslite flags every TLS 1.3 server handshake as not resumed; only
        # a full handshake carries a server signature
        return session.resumed or session.connection.serverSigAlg is None


class TlsliteClient(ClientTLS):
    name = "tlslite"
    capabilities = frozenset({Capability.KEY_UPDATE, Capability.SESSION_RESUMPTION})

    def get_client_config(self, test: InteropTest) -> Optional[TlsliteClientConfig]:
        settings = handshake_settings()
        # tlslite picks the client Certificate compression from its own
        # ClientHello, not from the CertificateRequest; servers that never
        # asked for compression reject the CompressedCertificate
        settings.certificate_compression_send = []
        config = TlsliteClientConfig(settings=settings, ca_cert=load_ca_cert())
        if test is InteropTest.MTLS_REQUEST_RESPONSE:
            config.private_key, config.cert_chain = load_key_and_cert(
                PemType.CLIENT_KEY, PemType.CLIENT_CHAIN)
        return config

    def connector(self, config: TlsliteClientConfig) -> TlsliteConnector:
        config.settings = config.settings.validate()
        return TlsliteConnector(config)

    def connect(self, connector: TlsliteConnector, transport: socket.socket) -> TlsliteSession:
        config = connector.config
        connection = InteropTLSConnection(transport)
        if connector.session is not None:
            logger.info("setting the session ticket")
        connection.handshakeClientCert(
            certChain=config.cert_chain,
            privateKey=config.private_key,
            session=connector.session,
            settings=config.settings
        )
        # resumed handshakes carry no certificates
        if not connection.resumed:
            try:
                verify_chain(connection.session.serverCertChain, config.ca_cert)
            except CertificateRejected as e:
                reject_peer(connection, e)
        return TlsliteSession(connection)

    def remember_session(self, connector: TlsliteConnector, session: TlsliteSession):
        connector.session = session.connection.session
        logger.debug("received %d session tickets", len(session.connection.tickets))


if __name__ == '__main__':
    sys.exit(main(TlsliteServer(), TlsliteClient(), errors=(TLSError,)))
