"""Logging estruturado com structlog, sempre em stderr.

Os pontos de entrada (cli.main, api.create_app) chamam configure_logging();
os módulos só pegam o logger com get_logger().
"""

import logging
import sys
from typing import Any, Optional

import structlog

from settings import get_settings

_CONFIGURED = False


def _stderr_logger(*args: Any) -> structlog.PrintLogger:
    # sys.stderr resolvido a cada log: o stream pode ser trocado em tempo de execução
    return structlog.PrintLogger(file=sys.stderr)


def configure_logging(level: Optional[str] = None, json_output: Optional[bool] = None) -> None:
    global _CONFIGURED
    if _CONFIGURED:
        return

    settings = get_settings()
    level_name = (level or settings.log_level).upper()
    numeric_level = getattr(logging, level_name, logging.INFO)
    if json_output is None:
        json_output = settings.log_json

    renderer: Any
    if json_output:
        renderer = structlog.processors.JSONRenderer()
    else:
        renderer = structlog.dev.ConsoleRenderer(colors=False)

    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.processors.add_log_level,
            structlog.processors.TimeStamper(fmt="iso", utc=True),
            renderer,
        ],
        logger_factory=_stderr_logger,
        wrapper_class=structlog.make_filtering_bound_logger(numeric_level),
        cache_logger_on_first_use=False,
    )

    _CONFIGURED = True


def get_logger(name: Optional[str] = None) -> Any:
    # proxy preguiçoso: vale a configuração ativa no primeiro uso
    return structlog.get_logger(name)
