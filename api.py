from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Callable, Dict, Optional, Tuple

from flask import Blueprint, Flask, current_app, jsonify, request
from werkzeug.exceptions import HTTPException

from api_efi import EfiService
from credenciais import CredentialStore
from erros import EfiError, ValidationError
from logger import configure_logging, get_logger
from modelos import Credentials, Environment, parse_environment, parse_webhook_type
from settings import Settings, get_settings

log = get_logger(__name__)

ServiceFactory = Callable[[Credentials], EfiService]


# ---------------------------
# Serviço EFI atual
# ---------------------------
class ServiceHolder:
    """Referência trocável para o serviço EFI corrente.

    O par (ambiente, serviço) é substituído de uma vez só, nunca alterado
    no lugar: quem leu o par antigo continua com um serviço íntegro.
    """

    def __init__(self):
        self._atual: Optional[Tuple[Environment, EfiService]] = None

    def current(self) -> Optional[Tuple[Environment, EfiService]]:
        return self._atual

    def swap(self, env: Environment, service: EfiService) -> None:
        self._atual = (env, service)


@dataclass
class EfiContext:
    settings: Settings
    store: CredentialStore
    holder: ServiceHolder
    service_factory: ServiceFactory


def _ctx() -> EfiContext:
    return current_app.extensions["efi"]


def _recarregar_servico(env: Environment) -> EfiService:
    """Credenciais -> certificado -> token, e publica o novo serviço."""
    ctx = _ctx()
    log.info("recarregando_servico", env=env.value)
    credentials = ctx.store.load(env, ctx.settings.certificate_password)
    service = ctx.service_factory(credentials)
    ctx.holder.swap(env, service)
    log.info("servico_recarregado", env=env.value)
    return service


def _tentar_recarregar(env: Environment) -> Dict[str, Any]:
    # Certificado e credenciais chegam em requisições separadas;
    # a primeira das duas ainda não consegue montar o serviço.
    try:
        _recarregar_servico(env)
    except EfiError as exc:
        log.warning("recarga_pendente", env=env.value, error=str(exc))
        return {"serviceReloaded": False, "reloadError": str(exc)}
    return {"serviceReloaded": True}


# ---------------------------
# Helpers
# ---------------------------
def _sucesso(data: Any, status: int = 200):
    return jsonify({"success": True, "data": data}), status


def _erro(message: str, status: int):
    return jsonify({"success": False, "error": message}), status


def _json_body() -> Dict[str, Any]:
    dados = request.get_json(silent=True)
    if not isinstance(dados, dict):
        raise ValidationError("Erro ao decodificar requisição")
    return dados


# ---------------------------
# Rotas
# ---------------------------
bp = Blueprint("efi", __name__)


@bp.route("/health")
def health():
    return jsonify(status="healthy", time=datetime.now(timezone.utc).isoformat())


@bp.route("/api/webhook/config", methods=["POST"])
def config_webhook_endpoint():
    dados = _json_body()
    env = parse_environment(dados.get("env"))
    webhook_type = parse_webhook_type(dados.get("type"))
    url = dados.get("url")
    if not isinstance(url, str) or not url.strip():
        raise ValidationError("URL do webhook é obrigatória")
    url = url.strip()

    service = _recarregar_servico(env)
    service.config_webhook(webhook_type, url)

    return _sucesso(
        {
            "message": f"Webhook {webhook_type.value} configurado com sucesso",
            "type": webhook_type.value,
            "url": url,
            "env": env.value,
        }
    )


@bp.route("/api/webhook/list", methods=["GET"])
def list_webhook_endpoint():
    env = parse_environment(request.args.get("env"))
    tipo = request.args.get("type")
    if not tipo:
        raise ValidationError("Tipo de webhook é obrigatório")
    webhook_type = parse_webhook_type(tipo)

    service = _recarregar_servico(env)
    listing = service.list_webhook(webhook_type)
    return _sucesso(listing.to_dict())


@bp.route("/api/webhook/delete", methods=["DELETE"])
def delete_webhook_endpoint():
    dados = _json_body()
    env = parse_environment(dados.get("env"))
    webhook_type = parse_webhook_type(dados.get("type"))

    service = _recarregar_servico(env)
    service.delete_webhook(webhook_type)

    return _sucesso(
        {
            "message": f"Webhook {webhook_type.value} removido com sucesso",
            "type": webhook_type.value,
            "env": env.value,
        }
    )


@bp.route("/api/test-connection", methods=["GET"])
def test_connection_endpoint():
    atual = _ctx().holder.current()
    if atual is None:
        return _erro("Serviço EFI não está disponível - configure as credenciais", 503)

    env, service = atual
    return _sucesso(
        {
            "status": "connected",
            "message": "Conexão com EFI Pay estabelecida",
            "env": env.value,
            "baseUrl": service.base_url,
        }
    )


@bp.route("/api/status", methods=["GET"])
def status_endpoint():
    atual = _ctx().holder.current()
    return _sucesso(
        {
            "status": "online",
            "services": {
                "backend": "online",
                "efi": "online" if atual is not None else "offline",
            },
            "env": atual[0].value if atual is not None else None,
        }
    )


@bp.route("/api/upload-certificate", methods=["POST"])
def upload_certificate_endpoint():
    env = parse_environment(request.args.get("env"))
    arquivo = request.files.get("certificate")
    if arquivo is None:
        raise ValidationError("Arquivo não encontrado")

    path = _ctx().store.save_certificate(env, arquivo.filename or "", arquivo.stream)

    resultado = {
        "message": f"Certificado {env.value} enviado com sucesso",
        "path": path,
        "env": env.value,
    }
    resultado.update(_tentar_recarregar(env))
    return _sucesso(resultado)


@bp.route("/api/save-credentials", methods=["POST"])
def save_credentials_endpoint():
    dados = _json_body()
    env = parse_environment(dados.get("env"))

    path = _ctx().store.save(env, dados.get("clientId"), dados.get("clientSecret"))

    resultado = {
        "message": f"Credenciais {env.value} salvas com sucesso",
        "path": path,
        "env": env.value,
    }
    resultado.update(_tentar_recarregar(env))
    return _sucesso(resultado)


@bp.route("/api/load-credentials", methods=["GET"])
def load_credentials_endpoint():
    env = parse_environment(request.args.get("env"))
    credentials = _ctx().store.load(env)
    return _sucesso(
        {
            "client_id": credentials.client_id,
            "client_secret": credentials.client_secret,
            "sandbox": credentials.sandbox,
            "env": env.value,
        }
    )


@bp.route("/api/certificate-status", methods=["GET"])
def certificate_status_endpoint():
    env = parse_environment(request.args.get("env"))
    return _sucesso(_ctx().store.certificate_status(env))


@bp.route("/api/reload-service", methods=["POST"])
def reload_service_endpoint():
    env = parse_environment(request.args.get("env"))
    _recarregar_servico(env)
    return _sucesso(
        {
            "message": f"Serviço EFI recarregado com sucesso para ambiente: {env.value}",
            "env": env.value,
        }
    )


# ---------------------------
# Erros e CORS
# ---------------------------
def _handle_efi_error(exc: EfiError):
    if exc.http_status >= 500:
        log.error("erro_requisicao", path=request.path, error=str(exc), error_type=type(exc).__name__)
    else:
        log.info("requisicao_rejeitada", path=request.path, error=str(exc))
    return _erro(str(exc), exc.http_status)


def _handle_http_error(exc: HTTPException):
    if exc.code == 404:
        return _erro("Endpoint não encontrado", 404)
    if exc.code == 405:
        return _erro("Método não permitido", 405)
    if exc.code == 413:
        return _erro("Arquivo muito grande", 413)
    return _erro(exc.description or exc.name, exc.code or 500)


def _add_cors_headers(response):
    response.headers["Access-Control-Allow-Origin"] = "*"
    response.headers["Access-Control-Allow-Methods"] = "GET, POST, PUT, DELETE, OPTIONS"
    response.headers["Access-Control-Allow-Headers"] = "Content-Type, Authorization"
    return response


# ---------------------------
# App
# ---------------------------
def create_app(
    settings: Optional[Settings] = None,
    store: Optional[CredentialStore] = None,
    service_factory: Optional[ServiceFactory] = None,
) -> Flask:
    settings = settings or get_settings()
    configure_logging()

    if service_factory is None:
        def service_factory(credentials: Credentials) -> EfiService:
            return EfiService.from_credentials(credentials, settings)

    app = Flask(__name__)
    app.config["MAX_CONTENT_LENGTH"] = settings.max_upload_bytes
    app.extensions["efi"] = EfiContext(
        settings=settings,
        store=store or CredentialStore(settings.config_dir, settings.certs_dir),
        holder=ServiceHolder(),
        service_factory=service_factory,
    )

    app.register_blueprint(bp)
    app.register_error_handler(EfiError, _handle_efi_error)
    app.register_error_handler(HTTPException, _handle_http_error)
    app.after_request(_add_cors_headers)
    return app


def preload_service(app: Flask, env: Environment = Environment.SANDBOX) -> bool:
    """Tenta subir o serviço na inicialização; sem credenciais o servidor sobe assim mesmo."""
    with app.app_context():
        try:
            _recarregar_servico(env)
        except EfiError as exc:
            log.warning("servico_efi_indisponivel", env=env.value, error=str(exc))
            return False
    return True


def run_server(host: Optional[str] = None, port: Optional[int] = None, settings: Optional[Settings] = None) -> None:
    settings = settings or get_settings()
    app = create_app(settings)
    preload_service(app)

    host = host or settings.server_host
    port = port or settings.server_port
    log.info("servidor_iniciado", host=host, port=port)
    app.run(host=host, port=port, debug=False, threaded=True)


# ---------------------------
# Execução local
# ---------------------------
if __name__ == "__main__":
    run_server()
