import io

import pytest

from api import create_app
from api_efi import EfiService
from credenciais import CredentialStore
from logger import configure_logging
from modelos import Credentials, Environment
from settings import Settings
from tests.fakes import FakeSession, make_p12

configure_logging(level="DEBUG")


@pytest.fixture
def settings(tmp_path):
    return Settings(
        config_dir=str(tmp_path / "config"),
        certs_dir=str(tmp_path / "certs"),
        http_timeout=5,
    )


@pytest.fixture
def store(settings):
    return CredentialStore(settings.config_dir, settings.certs_dir)


@pytest.fixture
def p12_bytes():
    return make_p12()


@pytest.fixture
def p12_path(tmp_path, p12_bytes):
    path = tmp_path / "certificado.p12"
    path.write_bytes(p12_bytes)
    return str(path)


@pytest.fixture
def credentials(p12_path):
    return Credentials(
        client_id="Client_Id_abc",
        client_secret="Client_Secret_xyz",
        sandbox=True,
        environment=Environment.SANDBOX,
        certificate_path=p12_path,
    )


@pytest.fixture
def fake_session():
    return FakeSession()


@pytest.fixture
def service(credentials, fake_session):
    return EfiService(credentials, fake_session, timeout=5)


class ServiceFactorySpy:
    """Monta EfiService reais sobre FakeSession e guarda o que foi criado."""

    def __init__(self):
        self.responses = []
        self.created = []

    def __call__(self, credentials):
        session = FakeSession(responses=list(self.responses))
        service = EfiService(credentials, session, timeout=5)
        self.created.append(service)
        return service

    @property
    def last_session(self):
        return self.created[-1]._session


@pytest.fixture
def service_factory():
    return ServiceFactorySpy()


@pytest.fixture
def app(settings, store, service_factory):
    app = create_app(settings=settings, store=store, service_factory=service_factory)
    app.config["TESTING"] = True
    return app


@pytest.fixture
def client(app):
    return app.test_client()


@pytest.fixture
def saved_credentials(store, p12_bytes):
    """Credenciais e certificado do sandbox já gravados no disco."""
    store.save(Environment.SANDBOX, "Client_Id_abc", "Client_Secret_xyz")
    store.save(Environment.PRODUCTION, "Client_Id_prod", "Client_Secret_prod")
    store.save_certificate(Environment.SANDBOX, "certificado.p12", io.BytesIO(p12_bytes))
    return store
