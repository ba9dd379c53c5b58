"""Infra de logging JSON usando structlog, com trace_id contextual."""
from __future__ import annotations
import logging
import structlog
import sys
from uuid import uuid4
from contextvars import ContextVar

trace_id_ctx: ContextVar[str] = ContextVar("trace_id", default="-")

_level: int = logging.INFO

def set_trace_id(value: str | None = None) -> str:
    """Define trace_id no contexto atual e retorna o valor definido."""
    tid = value or uuid4().hex
    trace_id_ctx.set(tid)
    return tid

def set_log_level(name: str) -> int:
    """Ajusta o nível mínimo (nome do ``logging``: DEBUG, INFO, ...) e reconfigura o structlog.

    Nome desconhecido cai em INFO. Loggers já criados passam a usar o novo nível.
    """
    global _level
    level = logging.getLevelName(name.upper())
    _level = level if isinstance(level, int) else logging.INFO
    _configure()
    return _level

def _configure() -> None:
    structlog.configure(
        processors=[
            structlog.processors.add_log_level,
            lambda _, __, ev: {**ev, "trace_id": trace_id_ctx.get()},
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.processors.format_exc_info,
            structlog.processors.JSONRenderer(),
        ],
        wrapper_class=structlog.make_filtering_bound_logger(_level),
        logger_factory=structlog.PrintLoggerFactory(file=sys.stdout),
    )

def get_logger() -> structlog.stdlib.BoundLogger:
    """Cria logger JSON com trace_id injetado automaticamente."""
    _configure()
    return structlog.get_logger()
