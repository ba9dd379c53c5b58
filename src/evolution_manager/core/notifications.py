"""Central de notificações (toasts) para a camada de apresentação.

Registra cada aviso no log e guarda os mais recentes num buffer que a API
administrativa entrega em ``GET /notifications``.
"""
from __future__ import annotations
import threading
import time
from collections import deque
from .logging import get_logger

log = get_logger()


class NotificationCenter:
    def __init__(self, maxlen: int = 50):
        self._items: deque[dict] = deque(maxlen=maxlen)
        self._lock = threading.Lock()

    def _push(self, level: str, message: str) -> None:
        item = {"level": level, "message": message, "ts": int(time.time() * 1000)}
        with self._lock:
            self._items.append(item)
        log.info("notification", level=level, message=message)

    def success(self, message: str) -> None:
        self._push("success", message)

    def error(self, message: str) -> None:
        self._push("error", message)

    def recent(self) -> list[dict]:
        with self._lock:
            return list(self._items)

    def drain(self) -> list[dict]:
        """Entrega e limpa as notificações pendentes."""
        with self._lock:
            items = list(self._items)
            self._items.clear()
        return items
