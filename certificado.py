"""Leitura do certificado PKCS#12 da EFI e montagem da sessão mTLS."""

import os
import ssl
import tempfile
from dataclasses import dataclass, field
from typing import Any, List, Optional

import certifi
import requests
from cryptography import x509
from cryptography.hazmat.primitives import serialization
from cryptography.hazmat.primitives.serialization import pkcs12
from requests.adapters import HTTPAdapter
from urllib3.poolmanager import PoolManager

from erros import CertificateDecodeError, CertificateNotFoundError
from logger import get_logger

log = get_logger(__name__)


@dataclass
class ClientCertificate:
    private_key: Any
    certificate: x509.Certificate
    additional_certificates: List[x509.Certificate] = field(default_factory=list)

    @property
    def subject(self) -> str:
        return self.certificate.subject.rfc4514_string()

    @property
    def issuer(self) -> str:
        return self.certificate.issuer.rfc4514_string()

    def certificate_chain_pem(self) -> bytes:
        chain = [self.certificate, *self.additional_certificates]
        return b"".join(c.public_bytes(serialization.Encoding.PEM) for c in chain)

    def private_key_pem(self) -> bytes:
        return self.private_key.private_bytes(
            encoding=serialization.Encoding.PEM,
            format=serialization.PrivateFormat.PKCS8,
            encryption_algorithm=serialization.NoEncryption(),
        )


def decode_pkcs12(data: bytes, password: str = "") -> ClientCertificate:
    # Os .p12 da EFI vêm sem senha; alguns exportadores gravam senha vazia em vez de nenhuma.
    senhas: List[Optional[bytes]] = [password.encode("utf-8")] if password else [None, b""]

    ultimo_erro: Optional[Exception] = None
    for senha in senhas:
        try:
            private_key, certificate, additional = pkcs12.load_key_and_certificates(data, senha)
            break
        except (ValueError, TypeError) as exc:
            ultimo_erro = exc
    else:
        raise CertificateDecodeError(
            f"erro ao decodificar certificado P12: {ultimo_erro}"
        ) from ultimo_erro

    if private_key is None or certificate is None:
        raise CertificateDecodeError("certificado P12 sem chave privada ou sem certificado")

    return ClientCertificate(
        private_key=private_key,
        certificate=certificate,
        additional_certificates=list(additional or []),
    )


def load_pkcs12(path: str, password: str = "") -> ClientCertificate:
    """Lê e decodifica o .p12. Não valida validade nem cadeia; isso fica para o handshake."""
    if not os.path.isfile(path):
        log.warning("certificado_nao_encontrado", path=path)
        raise CertificateNotFoundError(f"certificado não encontrado: {path}")

    with open(path, "rb") as arquivo:
        data = arquivo.read()

    client_certificate = decode_pkcs12(data, password)
    log.info(
        "certificado_carregado",
        path=path,
        subject=client_certificate.subject,
        issuer=client_certificate.issuer,
    )
    return client_certificate


def _write_private(path: str, content: bytes) -> None:
    fd = os.open(path, os.O_WRONLY | os.O_CREAT | os.O_TRUNC, 0o600)
    with os.fdopen(fd, "wb") as arquivo:
        arquivo.write(content)


def build_ssl_context(client_certificate: ClientCertificate) -> ssl.SSLContext:
    """Contexto TLS >= 1.2 com a CA do certifi, apresentando o certificado do cliente."""
    context = ssl.create_default_context(cafile=certifi.where())
    context.minimum_version = ssl.TLSVersion.TLSv1_2

    # load_cert_chain só aceita caminhos; os PEMs vivem apenas durante a carga
    with tempfile.TemporaryDirectory(prefix="efi-mtls-") as tmp:
        cert_path = os.path.join(tmp, "cert.pem")
        key_path = os.path.join(tmp, "key.pem")
        _write_private(cert_path, client_certificate.certificate_chain_pem())
        _write_private(key_path, client_certificate.private_key_pem())
        context.load_cert_chain(certfile=cert_path, keyfile=key_path)

    return context


class MtlsHttpAdapter(HTTPAdapter):
    """Adapter que usa um SSLContext pronto (com o certificado do cliente)."""

    def __init__(self, ssl_context: ssl.SSLContext, **kwargs):
        self._ssl_context = ssl_context
        super().__init__(**kwargs)

    def init_poolmanager(self, connections, maxsize, block=False, **pool_kwargs):
        self.poolmanager = PoolManager(
            num_pools=connections,
            maxsize=maxsize,
            block=block,
            ssl_context=self._ssl_context,
            **pool_kwargs,
        )


def build_mtls_session(client_certificate: ClientCertificate) -> requests.Session:
    session = requests.Session()
    session.mount("https://", MtlsHttpAdapter(build_ssl_context(client_certificate)))
    return session
