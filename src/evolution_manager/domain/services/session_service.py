"""Máquina de estados das sessões de integração (n8n, typebot, ...).

Regras de oferta, dado o status atual:

- ``opened``: sempre, exceto se já estiver aberta;
- ``paused``: exceto se já pausada ou fechada (sessão fechada não pausa);
- ``closed``: sempre, exceto se já fechada;
- ``delete``: sempre (remove a sessão, não é status gravado).

Nada é atualizado localmente antes da confirmação remota.
"""
from __future__ import annotations
from kink import di
from ...connectors.evolution.api_client import EvolutionApiClient
from ...core.cache import QueryCache, query_key
from ...core.errors import InvalidTransition, RemoteError, UnreadableResponse
from ...core.logging import get_logger
from ...core.token import resolve_token
from ...ports.interfaces import (
    AckDTO, IntegrationSession, NotificationSink, SessionAction, SessionScope, TokenProvider,
)

log = get_logger()

SESSIONS = "sessions"

MSG_STATUS = "Status da sessão alterado com sucesso!"
ERR_STATUS = "Erro ao alterar status da sessão"

ACTION_ORDER = (SessionAction.OPENED, SessionAction.PAUSED, SessionAction.CLOSED, SessionAction.DELETE)


def legal_transitions(current: str) -> frozenset[SessionAction]:
    """Conjunto de alvos permitidos a partir de ``current``."""
    current = getattr(current, "value", current)
    allowed = {SessionAction.DELETE}
    if current != "opened":
        allowed.add(SessionAction.OPENED)
    if current not in ("paused", "closed"):
        allowed.add(SessionAction.PAUSED)
    if current != "closed":
        allowed.add(SessionAction.CLOSED)
    return frozenset(allowed)


def available_actions(session: IntegrationSession) -> list[SessionAction]:
    """Ações na ordem de exibição do menu."""
    allowed = legal_transitions(session.status)
    return [a for a in ACTION_ORDER if a in allowed]


class SessionService:
    def __init__(self, api: EvolutionApiClient | None = None, cache: QueryCache | None = None,
                 notifier: NotificationSink | None = None, tokens: TokenProvider | None = None):
        self.api = api or di[EvolutionApiClient]
        self.cache = cache or di[QueryCache]
        self.notifier = notifier or di["notifier"]
        self.tokens = tokens or di["token_provider"]

    def _key(self, scope: SessionScope, tok: str | None):
        return query_key(SESSIONS, scope.integration.value,
                         {"botId": scope.bot_id, "instanceName": scope.instance_name, "token": tok})

    def list(self, scope: SessionScope, force: bool = False) -> list[IntegrationSession]:
        tok = resolve_token(self.tokens, scope.token)
        return self.cache.fetch(
            self._key(scope, tok),
            lambda: self.api.fetch_sessions(scope.integration, scope.bot_id, scope.instance_name, tok),
            force=force,
        )

    def transition(self, scope: SessionScope, session: IntegrationSession, target: SessionAction | str) -> AckDTO:
        """Aplica a transição na API e relê a lista de sessões do escopo."""
        try:
            action = SessionAction(target)
        except ValueError:
            raise InvalidTransition(session.status, str(target)) from None
        if action not in legal_transitions(session.status):
            raise InvalidTransition(session.status, action.value)
        tok = resolve_token(self.tokens, scope.token)
        try:
            ack = self.api.change_session_status(scope.integration, scope.instance_name, session.remote_jid, action, tok)
        except RemoteError as exc:
            if isinstance(exc, UnreadableResponse):
                self.cache.invalidate(self._key(scope, tok))
            self.notifier.error(exc.message_or(ERR_STATUS))
            log.warning("session_status_failed", remote_jid=session.remote_jid, target=action.value, status=exc.status_code)
            raise
        self.notifier.success(MSG_STATUS)
        log.info("session_status_changed", integration=scope.integration.value, remote_jid=session.remote_jid,
                 previous=session.status, target=action.value)
        self.cache.invalidate(self._key(scope, tok))
        try:
            self.list(scope)
        except RemoteError as exc:
            # a transição já foi aplicada; a próxima leitura tenta de novo
            log.warning("session_refresh_failed", remote_jid=session.remote_jid, status=exc.status_code)
        return ack
