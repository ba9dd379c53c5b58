"""Releitura periódica da listagem de instâncias (baixa prioridade).

Roda em thread daemon separada: não segura lock de mutação nenhum e só toca a
chave de instâncias do cache. Falhas são apenas logadas; a próxima volta tenta
de novo.
"""
from __future__ import annotations
import threading
from kink import di
from ..core.errors import RemoteError
from ..core.logging import get_logger
from ..core.settings import Settings
from ..domain.services.instance_service import InstanceService

log = get_logger()


def refresh_once(service: InstanceService | None = None) -> int | None:
    """Força releitura das instâncias e retorna quantas vieram (None em falha)."""
    service = service or di[InstanceService]
    try:
        items = service.list(force=True)
    except RemoteError as exc:
        log.warning("instances_refresh_failed", status=exc.status_code, error=exc.message)
        return None
    log.debug("instances_refreshed", count=len(items))
    return len(items)


class InstanceRefresher:
    """Agenda ``refresh_once`` em intervalo fixo e ao recuperar o foco da janela."""
    def __init__(self, service: InstanceService | None = None, interval_s: float | None = None):
        self.service = service or di[InstanceService]
        self.interval_s = interval_s if interval_s is not None else di[Settings].instances_refresh_interval_s
        self._stop = threading.Event()
        self._wake = threading.Event()
        self._thread: threading.Thread | None = None

    def start(self) -> None:
        if self._thread and self._thread.is_alive():
            return
        self._stop.clear()
        self._thread = threading.Thread(target=self._run, name="instance-refresher", daemon=True)
        self._thread.start()
        log.info("instances_refresher_started", interval_s=self.interval_s)

    def stop(self, timeout: float | None = None) -> None:
        self._stop.set()
        self._wake.set()
        if self._thread:
            self._thread.join(timeout)
        log.info("instances_refresher_stopped")

    def on_focus(self) -> None:
        """Janela voltou ao foco: antecipa a próxima releitura."""
        self._wake.set()

    def _run(self) -> None:
        while not self._stop.is_set():
            try:
                refresh_once(self.service)
            except Exception:
                # falha fora do contrato remoto (ex.: payload inesperado) não pode matar a thread
                log.exception("instances_refresh_crashed")
            self._wake.wait(self.interval_s)
            self._wake.clear()
