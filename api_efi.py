"""Cliente da API Pix da EFI para webhooks de cobrança e recorrência.

Fluxo de uma instância: credenciais -> certificado .p12 -> sessão mTLS ->
access token (OAuth2 client_credentials) -> chamadas em /v2/webhookcobr e
/v2/webhookrec. O token é obtido uma única vez, no construtor; para trocar de
credenciais ou renovar o token crie outra instância.
"""

from typing import Any, Dict, Optional, Tuple

import requests

from certificado import build_mtls_session, load_pkcs12
from erros import AuthError, NetworkError, UnsupportedActionError, UpstreamError, ValidationError
from logger import get_logger
from modelos import (
    Credentials,
    WebhookAction,
    WebhookCommand,
    WebhookListing,
    WebhookResponse,
    WebhookType,
)
from settings import Settings, get_settings

log = get_logger(__name__)

PRODUCTION_BASE_URL = "https://pix.api.efipay.com.br"
SANDBOX_BASE_URL = "https://pix-h.api.efipay.com.br"
DEFAULT_TIMEOUT = 30.0

# (tipo, ação) -> (endpoint em /v2, método HTTP)
ROTAS: Dict[Tuple[WebhookType, WebhookAction], Tuple[str, str]] = {
    (WebhookType.CHARGE, WebhookAction.CONFIG): ("webhookcobr", "PUT"),
    (WebhookType.CHARGE, WebhookAction.DELETE): ("webhookcobr", "DELETE"),
    (WebhookType.CHARGE, WebhookAction.LIST): ("webhookcobr", "GET"),
    (WebhookType.RECURRENCE, WebhookAction.CONFIG): ("webhookrec", "PUT"),
    (WebhookType.RECURRENCE, WebhookAction.DELETE): ("webhookrec", "DELETE"),
    (WebhookType.RECURRENCE, WebhookAction.LIST): ("webhookrec", "GET"),
}


def base_url_for(sandbox: bool) -> str:
    return SANDBOX_BASE_URL if sandbox else PRODUCTION_BASE_URL


def resolve_route(webhook_type: Any, action: Any) -> Tuple[str, str]:
    try:
        return ROTAS[(WebhookType(webhook_type), WebhookAction(action))]
    except (KeyError, ValueError):
        tipo = getattr(webhook_type, "value", webhook_type)
        acao = getattr(action, "value", action)
        raise UnsupportedActionError(
            f"ação não suportada para webhook {tipo}: {acao}"
        ) from None


def build_request_body(command: WebhookCommand) -> Optional[Dict[str, Any]]:
    if command.action is not WebhookAction.CONFIG:
        return None
    if not command.url:
        raise ValidationError("URL do webhook é obrigatória")
    return {"webhookUrl": command.url}


def parse_response(resp: requests.Response) -> Dict[str, Any]:
    """Corpo JSON da EFI; respostas fora do padrão viram um payload sintético."""
    try:
        dados = resp.json()
    except ValueError:
        dados = None

    if not isinstance(dados, dict):
        log.warning("efi_resposta_nao_json", status_code=resp.status_code)
        return {"raw_response": resp.text, "status_code": resp.status_code}
    return dados


def _detalhe(response: WebhookResponse) -> str:
    detalhe = str(response.data.get("mensagem") or response.raw_body).strip()
    if len(detalhe) > 200:
        detalhe = detalhe[:200] + "..."
    return detalhe


class EfiService:
    def __init__(
        self,
        credentials: Credentials,
        session: requests.Session,
        timeout: float = DEFAULT_TIMEOUT,
    ):
        self.credentials = credentials
        self.base_url = base_url_for(credentials.sandbox)
        self.timeout = timeout
        self._session = session

        log.info(
            "efi_service_iniciando",
            env=credentials.environment.value,
            sandbox=credentials.sandbox,
            base_url=self.base_url,
        )
        self.access_token = self._obter_access_token()
        log.info("efi_service_inicializado", env=credentials.environment.value)

    @classmethod
    def from_credentials(cls, credentials: Credentials, settings: Optional[Settings] = None) -> "EfiService":
        """Carrega o certificado, monta a sessão mTLS e já obtém o token."""
        settings = settings or get_settings()
        client_certificate = load_pkcs12(credentials.certificate_path, credentials.certificate_password)
        session = build_mtls_session(client_certificate)
        try:
            return cls(credentials, session, timeout=settings.http_timeout)
        except Exception:
            session.close()
            raise

    def close(self) -> None:
        self._session.close()

    def __enter__(self) -> "EfiService":
        return self

    def __exit__(self, *exc_info) -> None:
        self.close()

    # ---------------------------
    # OAuth2
    # ---------------------------
    def _obter_access_token(self) -> str:
        url = f"{self.base_url}/oauth/token"
        log.info("efi_oauth_request", url=url, client_id=self.credentials.client_id)

        try:
            resp = self._session.post(
                url,
                data={"grant_type": "client_credentials"},
                auth=(self.credentials.client_id, self.credentials.client_secret),
                headers={"Content-Type": "application/x-www-form-urlencoded"},
                timeout=self.timeout,
            )
        except requests.exceptions.RequestException as exc:
            raise NetworkError(f"erro ao executar requisição OAuth: {exc}") from exc

        log.info("efi_oauth_response", status_code=resp.status_code)

        if resp.status_code != 200:
            raise AuthError(f"erro ao obter access token: {resp.text}", body=resp.text)

        try:
            payload = resp.json()
        except ValueError as exc:
            raise AuthError(f"erro ao decodificar resposta OAuth: {exc}", body=resp.text) from exc

        token = payload.get("access_token") if isinstance(payload, dict) else None
        if not token:
            raise AuthError("resposta OAuth sem access_token", body=resp.text)

        log.info("efi_token_obtido")
        return token

    # ---------------------------
    # Webhooks
    # ---------------------------
    def execute(self, command: WebhookCommand) -> WebhookResponse:
        """Executa um comando e devolve a resposta, seja qual for o status HTTP."""
        endpoint, method = resolve_route(command.type, command.action)
        body = build_request_body(command)
        url = f"{self.base_url}/v2/{endpoint}"

        headers = {
            "Content-Type": "application/json",
            "Authorization": f"Bearer {self.access_token}",
            "x-skip-mtls-checking": "true",
        }
        kwargs: Dict[str, Any] = {"headers": headers, "timeout": self.timeout}
        if command.params:
            kwargs["params"] = command.params
        if body is not None:
            kwargs["json"] = body

        log.info("efi_api_request", method=method, url=url)
        try:
            resp = self._session.request(method, url, **kwargs)
        except requests.exceptions.RequestException as exc:
            raise NetworkError(f"erro ao executar requisição: {exc}") from exc

        log.info("efi_api_response", method=method, url=url, status_code=resp.status_code)

        ok = 200 <= resp.status_code < 300
        return WebhookResponse(
            status_code=resp.status_code,
            message="Comando executado com sucesso" if ok else f"EFI respondeu HTTP {resp.status_code}",
            data=parse_response(resp),
            raw_body=resp.text,
        )

    def _raise_for_status(self, response: WebhookResponse, operacao: str, webhook_type: WebhookType) -> None:
        if response.ok:
            return
        raise UpstreamError(
            f"erro ao {operacao} webhook {webhook_type.value}: HTTP {response.status_code} {_detalhe(response)}".strip(),
            status_code=response.status_code,
            body=response.raw_body,
        )

    def config_webhook(self, webhook_type: WebhookType, webhook_url: str) -> WebhookResponse:
        if not webhook_url:
            raise ValidationError("URL do webhook é obrigatória")
        response = self.execute(
            WebhookCommand(type=webhook_type, action=WebhookAction.CONFIG, url=webhook_url)
        )
        self._raise_for_status(response, "configurar", webhook_type)
        return response

    def delete_webhook(self, webhook_type: WebhookType) -> WebhookResponse:
        response = self.execute(WebhookCommand(type=webhook_type, action=WebhookAction.DELETE))
        self._raise_for_status(response, "remover", webhook_type)
        return response

    def list_webhook(self, webhook_type: WebhookType) -> WebhookListing:
        """404 da EFI significa apenas que não há webhook configurado."""
        response = self.execute(WebhookCommand(type=webhook_type, action=WebhookAction.LIST))
        if response.status_code == 404:
            return WebhookListing(type=webhook_type, exists=False, data=response.data)

        self._raise_for_status(response, "listar", webhook_type)

        webhook_url = response.data.get("webhookUrl")
        return WebhookListing(
            type=webhook_type,
            exists=bool(webhook_url),
            webhook_url=webhook_url,
            created_at=response.data.get("criacao"),
            data=response.data,
        )
