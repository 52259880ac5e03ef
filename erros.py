"""Exceções do gerenciador de webhooks EFI.

Cada classe carrega o status HTTP usado pelo servidor ao convertê-la em
resposta JSON.
"""

from typing import Optional


class EfiError(Exception):
    """Erro base de toda a aplicação."""

    http_status = 500


# ---------------------------
# Entrada inválida
# ---------------------------
class ValidationError(EfiError):
    http_status = 400


class InvalidEnvironmentError(ValidationError):
    def __init__(self, env: str):
        super().__init__("Ambiente inválido. Use 'sandbox' ou 'production'")
        self.env = env


class UnsupportedActionError(EfiError):
    http_status = 400


# ---------------------------
# Configuração local (arquivos, variáveis de ambiente)
# ---------------------------
class ConfigurationError(EfiError):
    http_status = 500


class NotFoundError(ConfigurationError):
    http_status = 404


class CredentialsNotFoundError(NotFoundError):
    pass


class CertificateNotFoundError(NotFoundError):
    pass


class CertificateDecodeError(ConfigurationError):
    http_status = 422


# ---------------------------
# Comunicação com a EFI
# ---------------------------
class AuthError(EfiError):
    """Falha ao obter o access token. `body` guarda a resposta crua."""

    http_status = 502

    def __init__(self, message: str, body: str = ""):
        super().__init__(message)
        self.body = body


class NetworkError(EfiError):
    http_status = 502


class UpstreamError(EfiError):
    http_status = 502

    def __init__(self, message: str, status_code: Optional[int] = None, body: str = ""):
        super().__init__(message)
        self.status_code = status_code
        self.body = body
