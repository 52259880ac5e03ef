from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, Optional

from erros import InvalidEnvironmentError, ValidationError


class Environment(str, Enum):
    SANDBOX = "sandbox"
    PRODUCTION = "production"


class WebhookType(str, Enum):
    CHARGE = "charge"
    RECURRENCE = "recurrence"


class WebhookAction(str, Enum):
    CONFIG = "config"
    DELETE = "delete"
    LIST = "list"


def parse_environment(value: Optional[str]) -> Environment:
    """Valor vazio cai no sandbox; qualquer coisa fora do enum é rejeitada."""
    if not value:
        return Environment.SANDBOX
    try:
        return Environment(value)
    except ValueError:
        raise InvalidEnvironmentError(value) from None


def parse_webhook_type(value: Optional[str]) -> WebhookType:
    try:
        return WebhookType(value)
    except ValueError:
        raise ValidationError(
            f"tipo de webhook inválido: {value}. Tipos válidos: charge, recurrence"
        ) from None


@dataclass
class Credentials:
    client_id: str
    client_secret: str
    sandbox: bool
    environment: Environment
    certificate_path: str = ""
    certificate_password: str = ""

    def to_file_dict(self) -> Dict[str, Any]:
        """Formato gravado em config/credentials_<env>.json."""
        return {
            "client_id": self.client_id,
            "client_secret": self.client_secret,
            "sandbox": self.sandbox,
            "env": self.environment.value,
        }

    def __repr__(self) -> str:
        # nunca expor o secret em logs
        return (
            f"Credentials(client_id={self.client_id!r}, sandbox={self.sandbox}, "
            f"environment={self.environment.value!r}, certificate_path={self.certificate_path!r})"
        )


@dataclass
class WebhookCommand:
    type: WebhookType
    action: WebhookAction
    url: Optional[str] = None
    params: Dict[str, str] = field(default_factory=dict)
    body: Dict[str, Any] = field(default_factory=dict)


@dataclass
class WebhookResponse:
    status_code: int
    message: str
    data: Dict[str, Any] = field(default_factory=dict)
    raw_body: str = ""

    @property
    def ok(self) -> bool:
        return 200 <= self.status_code < 300


@dataclass
class WebhookListing:
    type: WebhookType
    exists: bool
    webhook_url: Optional[str] = None
    created_at: Optional[str] = None
    data: Dict[str, Any] = field(default_factory=dict)

    @property
    def message(self) -> str:
        if self.exists:
            return f"Webhook {self.type.value} encontrado"
        return f"Nenhum webhook {self.type.value} configurado"

    def to_dict(self) -> Dict[str, Any]:
        resultado: Dict[str, Any] = {
            "type": self.type.value,
            "exists": self.exists,
            "message": self.message,
        }
        if self.exists:
            resultado["webhookUrl"] = self.webhook_url
            resultado["criacao"] = self.created_at
        return resultado
