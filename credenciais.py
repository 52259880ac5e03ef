"""Credenciais da EFI por ambiente.

Servidor: arquivos em config/credentials_<env>.json e certs/certificado_<env>.p12.
CLI: variáveis de ambiente EFI_CLIENT_ID, EFI_CLIENT_SECRET,
EFI_CERTIFICATE_PATH e EFI_SANDBOX.
"""

import json
import os
import shutil
from typing import Any, BinaryIO, Dict, Mapping

from erros import ConfigurationError, CredentialsNotFoundError, ValidationError
from logger import get_logger
from modelos import Credentials, Environment
from settings import env_bool

log = get_logger(__name__)

REQUIRED_ENV_VARS = ("EFI_CLIENT_ID", "EFI_CLIENT_SECRET", "EFI_CERTIFICATE_PATH")


def validate_client_credentials(client_id: Any, client_secret: Any) -> None:
    for valor in (client_id, client_secret):
        if not isinstance(valor, str) or not valor.strip():
            raise ValidationError("Client ID e Client Secret são obrigatórios")


class CredentialStore:
    def __init__(self, config_dir: str = "config", certs_dir: str = "certs"):
        self.config_dir = config_dir
        self.certs_dir = certs_dir

    def credentials_path(self, env: Environment) -> str:
        return os.path.join(self.config_dir, f"credentials_{env.value}.json")

    def certificate_path(self, env: Environment) -> str:
        return os.path.join(self.certs_dir, f"certificado_{env.value}.p12")

    def load(self, env: Environment, certificate_password: str = "") -> Credentials:
        path = self.credentials_path(env)
        log.debug("carregando_credenciais", env=env.value, path=path)

        if not os.path.isfile(path):
            raise CredentialsNotFoundError(f"Arquivo de credenciais {env.value} não encontrado")

        try:
            with open(path, "r", encoding="utf-8") as arquivo:
                dados = json.load(arquivo)
        except ValueError as exc:
            raise ConfigurationError(f"erro ao decodificar credenciais do arquivo: {exc}") from exc

        if not isinstance(dados, dict):
            raise ConfigurationError("erro ao decodificar credenciais do arquivo: esperado um objeto JSON")

        validate_client_credentials(dados.get("client_id"), dados.get("client_secret"))

        sandbox = dados.get("sandbox", env is Environment.SANDBOX)
        if not isinstance(sandbox, bool):
            raise ConfigurationError("erro ao decodificar credenciais do arquivo: sandbox deve ser booleano")

        return Credentials(
            client_id=dados["client_id"],
            client_secret=dados["client_secret"],
            sandbox=sandbox,
            environment=env,
            certificate_path=self.certificate_path(env),
            certificate_password=certificate_password,
        )

    def save(self, env: Environment, client_id: str, client_secret: str) -> str:
        """Grava as credenciais do ambiente. O flag sandbox sempre segue o ambiente."""
        validate_client_credentials(client_id, client_secret)

        credentials = Credentials(
            client_id=client_id.strip(),
            client_secret=client_secret.strip(),
            sandbox=env is Environment.SANDBOX,
            environment=env,
        )

        os.makedirs(self.config_dir, exist_ok=True)
        path = self.credentials_path(env)
        with open(path, "w", encoding="utf-8") as arquivo:
            json.dump(credentials.to_file_dict(), arquivo, indent=2)

        log.info("credenciais_salvas", env=env.value, path=path)
        return path

    def certificate_status(self, env: Environment) -> Dict[str, Any]:
        path = self.certificate_path(env)
        if not os.path.isfile(path):
            return {"exists": False, "path": "", "env": env.value}
        return {"exists": True, "path": path, "env": env.value}

    def save_certificate(self, env: Environment, filename: str, stream: BinaryIO) -> str:
        if not filename or not filename.lower().endswith(".p12"):
            raise ValidationError("Apenas arquivos .p12 são aceitos")

        os.makedirs(self.certs_dir, exist_ok=True)
        path = self.certificate_path(env)
        with open(path, "wb") as destino:
            shutil.copyfileobj(stream, destino)

        log.info("certificado_salvo", env=env.value, path=path)
        return path


def credentials_from_env(environ: Mapping[str, str]) -> Credentials:
    """Credenciais do modo CLI, lidas das variáveis EFI_*."""
    for nome in REQUIRED_ENV_VARS:
        if not environ.get(nome, "").strip():
            raise ConfigurationError(f"variável de ambiente {nome} é obrigatória")

    sandbox = env_bool(environ.get("EFI_SANDBOX"), default=False)
    return Credentials(
        client_id=environ["EFI_CLIENT_ID"].strip(),
        client_secret=environ["EFI_CLIENT_SECRET"].strip(),
        sandbox=sandbox,
        environment=Environment.SANDBOX if sandbox else Environment.PRODUCTION,
        certificate_path=environ["EFI_CERTIFICATE_PATH"].strip(),
        certificate_password=environ.get("EFI_CERTIFICATE_PASSWORD", ""),
    )
