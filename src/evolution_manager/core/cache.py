"""Cache read-through de consultas à Evolution API.

Chaves são tuplas ``(recurso, operação, params_json)``; o JSON dos parâmetros é
serializado com ``sort_keys`` para que a mesma consulta gere sempre a mesma
chave. O cache só é populado por leituras; mutações invalidam por prefixo.
"""
from __future__ import annotations
import json
import threading
import time
from dataclasses import dataclass
from typing import Any, Callable, TypeVar
from .logging import get_logger

log = get_logger()

T = TypeVar("T")
CacheKey = tuple[str, ...]


def query_key(resource: str, operation: str, params: dict[str, Any] | None = None) -> CacheKey:
    """Monta a chave determinística de uma consulta."""
    return (resource, operation, json.dumps(params or {}, sort_keys=True, default=str))


@dataclass
class CacheEntry:
    value: Any
    fetched_at: float

    def is_stale(self, stale_ms: int | None) -> bool:
        if stale_ms is None:
            return False
        return (time.monotonic() - self.fetched_at) * 1000 >= stale_ms


class QueryCache:
    """Armazena respostas de leitura por chave e invalida por prefixo."""

    def __init__(self):
        self._entries: dict[CacheKey, CacheEntry] = {}
        # protege só o dict; não serializa chamadas de rede
        self._lock = threading.Lock()

    def fetch(self, key: CacheKey, loader: Callable[[], T], stale_ms: int | None = None, force: bool = False) -> T:
        """Devolve o valor em cache ou chama ``loader`` e guarda o resultado.

        Falhas do loader propagam e nada é gravado.
        """
        if not force:
            with self._lock:
                entry = self._entries.get(key)
            if entry is not None and not entry.is_stale(stale_ms):
                return entry.value
        value = loader()
        with self._lock:
            self._entries[key] = CacheEntry(value=value, fetched_at=time.monotonic())
        log.debug("cache_filled", resource=key[0], operation=key[1] if len(key) > 1 else None)
        return value

    def peek(self, key: CacheKey) -> Any | None:
        with self._lock:
            entry = self._entries.get(key)
        return entry.value if entry else None

    def invalidate(self, prefix: CacheKey) -> int:
        """Remove todas as entradas cuja chave começa com ``prefix``."""
        n = len(prefix)
        with self._lock:
            doomed = [k for k in self._entries if k[:n] == prefix]
            for k in doomed:
                del self._entries[k]
        log.info("cache_invalidated", prefix=list(prefix), removed=len(doomed))
        return len(doomed)

    def keys(self) -> list[CacheKey]:
        with self._lock:
            return list(self._entries)
