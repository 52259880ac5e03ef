import os
from dataclasses import dataclass
from functools import lru_cache
from typing import Mapping, Optional

from dotenv import load_dotenv

load_dotenv()


def env_bool(value: Optional[str], default: bool = False) -> bool:
    if value is None or not value.strip():
        return default
    return value.strip().lower() in ("1", "true", "yes", "sim", "s")


@dataclass(frozen=True)
class Settings:
    config_dir: str = "config"
    certs_dir: str = "certs"
    http_timeout: float = 30.0
    server_host: str = "0.0.0.0"
    server_port: int = 8081
    max_upload_bytes: int = 32 << 20
    log_level: str = "INFO"
    log_json: bool = True
    certificate_password: str = ""


def settings_from_env(environ: Mapping[str, str]) -> Settings:
    return Settings(
        config_dir=environ.get("EFI_CONFIG_DIR", "config"),
        certs_dir=environ.get("EFI_CERTS_DIR", "certs"),
        http_timeout=float(environ.get("EFI_HTTP_TIMEOUT", "30")),
        server_host=environ.get("EFI_SERVER_HOST", "0.0.0.0"),
        server_port=int(environ.get("EFI_SERVER_PORT", "8081")),
        max_upload_bytes=int(environ.get("EFI_MAX_UPLOAD_BYTES", str(32 << 20))),
        log_level=environ.get("LOG_LEVEL", "INFO"),
        log_json=env_bool(environ.get("LOG_JSON"), default=True),
        certificate_password=environ.get("EFI_CERTIFICATE_PASSWORD", ""),
    )


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Configuração do processo, lida uma única vez do ambiente (.env incluso)."""
    return settings_from_env(os.environ)
