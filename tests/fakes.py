"""Dublês da sessão HTTP e gerador de certificados .p12 para os testes."""

import json
from datetime import datetime, timedelta, timezone
from typing import Any, List, Optional

import requests
from cryptography import x509
from cryptography.hazmat.primitives import hashes, serialization
from cryptography.hazmat.primitives.asymmetric import ec
from cryptography.hazmat.primitives.serialization import pkcs12
from cryptography.x509.oid import NameOID

TOKEN = "tok-123"


class FakeResponse:
    def __init__(self, status_code: int = 200, body: Any = None, text: Optional[str] = None):
        self.status_code = status_code
        if text is None:
            text = json.dumps(body) if body is not None else ""
        self.text = text

    def json(self) -> Any:
        return json.loads(self.text)


def token_response(token: str = TOKEN) -> FakeResponse:
    return FakeResponse(200, {"access_token": token, "token_type": "Bearer", "expires_in": 3600})


class FakeSession:
    """Grava as chamadas e devolve respostas pré-definidas, sem rede."""

    def __init__(self, token: Any = None, responses: Optional[List[Any]] = None):
        self.token = token if token is not None else token_response()
        self.responses = list(responses or [])
        self.posts: List[dict] = []
        self.requests: List[dict] = []
        self.closed = False

    def post(self, url: str, **kwargs) -> FakeResponse:
        self.posts.append({"url": url, **kwargs})
        if isinstance(self.token, Exception):
            raise self.token
        return self.token

    def request(self, method: str, url: str, **kwargs) -> FakeResponse:
        self.requests.append({"method": method, "url": url, **kwargs})
        resposta = self.responses.pop(0) if self.responses else FakeResponse(200, {})
        if isinstance(resposta, Exception):
            raise resposta
        return resposta

    def close(self) -> None:
        self.closed = True


def connection_error() -> requests.exceptions.ConnectionError:
    return requests.exceptions.ConnectionError("connection refused")


def make_p12(password: Optional[bytes] = None, common_name: str = "efi-teste") -> bytes:
    key = ec.generate_private_key(ec.SECP256R1())
    name = x509.Name([x509.NameAttribute(NameOID.COMMON_NAME, common_name)])
    now = datetime.now(timezone.utc)
    cert = (
        x509.CertificateBuilder()
        .subject_name(name)
        .issuer_name(name)
        .public_key(key.public_key())
        .serial_number(x509.random_serial_number())
        .not_valid_before(now - timedelta(days=1))
        .not_valid_after(now + timedelta(days=30))
        .sign(key, hashes.SHA256())
    )
    if password:
        encryption = serialization.BestAvailableEncryption(password)
    else:
        encryption = serialization.NoEncryption()
    return pkcs12.serialize_key_and_certificates(common_name.encode(), key, cert, None, encryption)
