"""PIX CLI - gerenciador de webhooks EFI Pay.

Uso:
    efi-webhooks                                  # menu interativo
    efi-webhooks config charge --url https://meusite.com/webhook
    efi-webhooks list recurrence
    efi-webhooks delete charge --yes
    efi-webhooks server --port 8081               # API HTTP local
    efi-webhooks --env production list charge     # credenciais de config/ e certs/

Sem --env as credenciais vêm das variáveis de ambiente:
    EFI_CLIENT_ID, EFI_CLIENT_SECRET, EFI_CERTIFICATE_PATH (obrigatórias)
    EFI_SANDBOX (true/false, padrão false), EFI_CERTIFICATE_PASSWORD
"""

import json
import os
from typing import Optional

import click

from api import run_server
from api_efi import EfiService
from credenciais import CredentialStore, credentials_from_env
from erros import EfiError
from logger import configure_logging
from modelos import Credentials, Environment, WebhookType
from settings import get_settings

TIPOS = click.Choice([t.value for t in WebhookType])
AMBIENTES = click.Choice([e.value for e in Environment])
CONFIRMACOES = ("s", "sim", "y", "yes")

OPCOES = (
    ("1", "Configurar webhook de cobrança"),
    ("2", "Configurar webhook de recorrência"),
    ("3", "Listar webhooks de cobrança"),
    ("4", "Listar webhooks de recorrência"),
    ("5", "Remover webhook de cobrança"),
    ("6", "Remover webhook de recorrência"),
    ("7", "Sair"),
)


# ---------------------------
# Serviço
# ---------------------------
def load_cli_credentials(env: Optional[str]) -> Credentials:
    settings = get_settings()
    if env:
        store = CredentialStore(settings.config_dir, settings.certs_dir)
        return store.load(Environment(env), settings.certificate_password)
    return credentials_from_env(os.environ)


def build_service(env: Optional[str]) -> EfiService:
    return EfiService.from_credentials(load_cli_credentials(env), get_settings())


def _servico(ctx: click.Context) -> EfiService:
    try:
        return build_service(ctx.obj.get("env"))
    except EfiError as exc:
        raise click.ClickException(f"Erro ao inicializar serviço EFI: {exc}") from exc


# ---------------------------
# Operações
# ---------------------------
def configurar_webhook(service: EfiService, webhook_type: WebhookType, url: str) -> None:
    click.echo(f"⏳ Configurando webhook {webhook_type.value} com URL: {url}")
    response = service.config_webhook(webhook_type, url)
    click.echo(f"✅ Webhook {webhook_type.value} configurado com sucesso!")
    click.echo(f"📋 Resposta: {json.dumps(response.data, ensure_ascii=False)}")


def listar_webhook(service: EfiService, webhook_type: WebhookType) -> None:
    listing = service.list_webhook(webhook_type)
    if not listing.exists:
        click.echo(f"📋 {listing.message}")
        return
    click.echo(f"📋 Webhook {webhook_type.value} configurado:")
    click.echo(f"📊 URL: {listing.webhook_url}")
    click.echo(f"📊 Criação: {listing.created_at}")


def remover_webhook(service: EfiService, webhook_type: WebhookType) -> None:
    response = service.delete_webhook(webhook_type)
    click.echo(f"✅ Webhook {webhook_type.value} removido com sucesso!")
    if response.data:
        click.echo(f"📋 Resposta: {json.dumps(response.data, ensure_ascii=False)}")


# ---------------------------
# Menu interativo
# ---------------------------
def _ler(texto: str) -> str:
    return click.prompt(texto, default="", show_default=False).strip()


def _menu_configurar(service: EfiService, webhook_type: WebhookType) -> None:
    click.echo(f"\n🔧 Configurando webhook de {webhook_type.value}")
    url = _ler("Digite a URL do webhook")
    if not url:
        click.echo("❌ URL não pode estar vazia!")
        return
    configurar_webhook(service, webhook_type, url)


def _menu_listar(service: EfiService, webhook_type: WebhookType) -> None:
    click.echo(f"\n📋 Listando webhooks de {webhook_type.value}")
    listar_webhook(service, webhook_type)


def _menu_remover(service: EfiService, webhook_type: WebhookType) -> None:
    click.echo(f"\n🗑️ Removendo webhook de {webhook_type.value}")
    resposta = _ler(f"Tem certeza que deseja remover o webhook de {webhook_type.value}? (s/N)")
    if resposta.lower() not in CONFIRMACOES:
        click.echo("❌ Operação cancelada!")
        return
    remover_webhook(service, webhook_type)


ACOES_MENU = {
    "1": (_menu_configurar, WebhookType.CHARGE),
    "2": (_menu_configurar, WebhookType.RECURRENCE),
    "3": (_menu_listar, WebhookType.CHARGE),
    "4": (_menu_listar, WebhookType.RECURRENCE),
    "5": (_menu_remover, WebhookType.CHARGE),
    "6": (_menu_remover, WebhookType.RECURRENCE),
}


def menu(service: EfiService) -> None:
    while True:
        click.echo("\n🚀 PIX CLI - Gerenciador de Webhooks EFI Pay")
        click.echo("=" * 50)
        for chave, texto in OPCOES:
            click.echo(f"{chave}. {texto}")
        click.echo("=" * 50)

        escolha = _ler("Escolha uma opção (1-7)")
        if escolha == "7":
            click.echo("👋 Até logo!")
            return

        acao = ACOES_MENU.get(escolha)
        if acao is None:
            click.echo("❌ Opção inválida! Escolha de 1 a 7.")
            continue

        funcao, webhook_type = acao
        try:
            funcao(service, webhook_type)
        except EfiError as exc:
            click.echo(f"❌ Erro: {exc}")


# ---------------------------
# Comandos
# ---------------------------
@click.group(invoke_without_command=True)
@click.option("--env", type=AMBIENTES, default=None, help="Usa as credenciais salvas em config/ e certs/ para o ambiente.")
@click.option("--log-level", default=None, help="Nível de log (DEBUG, INFO, WARNING...).")
@click.pass_context
def cli(ctx: click.Context, env: Optional[str], log_level: Optional[str]) -> None:
    """PIX CLI - Gerenciador de Webhooks EFI Pay."""
    configure_logging(level=log_level, json_output=False)
    ctx.ensure_object(dict)
    ctx.obj["env"] = env

    if ctx.invoked_subcommand is not None:
        return

    with _servico(ctx) as service:
        menu(service)


@cli.command("config")
@click.argument("tipo", type=TIPOS)
@click.option("--url", required=True, help="URL do webhook.")
@click.pass_context
def config_command(ctx: click.Context, tipo: str, url: str) -> None:
    """Configura um webhook."""
    with _servico(ctx) as service:
        try:
            configurar_webhook(service, WebhookType(tipo), url)
        except EfiError as exc:
            raise click.ClickException(str(exc)) from exc


@cli.command("list")
@click.argument("tipo", type=TIPOS)
@click.pass_context
def list_command(ctx: click.Context, tipo: str) -> None:
    """Lista o webhook configurado."""
    with _servico(ctx) as service:
        try:
            listar_webhook(service, WebhookType(tipo))
        except EfiError as exc:
            raise click.ClickException(str(exc)) from exc


@cli.command("delete")
@click.argument("tipo", type=TIPOS)
@click.option("--yes", is_flag=True, help="Não pede confirmação.")
@click.pass_context
def delete_command(ctx: click.Context, tipo: str, yes: bool) -> None:
    """Remove um webhook."""
    if not yes:
        click.confirm(f"Tem certeza que deseja remover o webhook de {tipo}?", abort=True)
    with _servico(ctx) as service:
        try:
            remover_webhook(service, WebhookType(tipo))
        except EfiError as exc:
            raise click.ClickException(str(exc)) from exc


@cli.command("server")
@click.option("--host", default=None, help="Endereço de escuta (padrão EFI_SERVER_HOST).")
@click.option("--port", type=int, default=None, help="Porta (padrão EFI_SERVER_PORT).")
def server_command(host: Optional[str], port: Optional[int]) -> None:
    """Sobe a API HTTP local usada pelo frontend."""
    run_server(host=host, port=port)


def main() -> None:
    cli(prog_name="efi-webhooks")


if __name__ == "__main__":
    main()
