"""Envio de texto balanceado por alias de grupo.

A instância que atendeu vem na resposta apenas como informação: não mexe no
cache de grupos nem fixa afinidade para os próximos envios.
"""
from __future__ import annotations
from kink import di
from ...connectors.evolution.api_client import EvolutionApiClient
from ...core.errors import RemoteError
from ...core.logging import get_logger
from ...core.token import resolve_token
from ...core.validation import ensure, validate_send
from ...ports.interfaces import BalancedSendRequest, BalancedSendResult, NotificationSink, TokenProvider

log = get_logger()

ERR_SEND = "Erro ao enviar mensagem com balanceamento"


class DispatchService:
    def __init__(self, api: EvolutionApiClient | None = None, notifier: NotificationSink | None = None,
                 tokens: TokenProvider | None = None):
        self.api = api or di[EvolutionApiClient]
        self.notifier = notifier or di["notifier"]
        self.tokens = tokens or di["token_provider"]

    def send(self, group_alias: str, number: str, text: str, delay_ms: int | None = None,
             mentions_everyone: bool = False, mentioned: list[str] | None = None,
             token: str | None = None) -> BalancedSendResult:
        req = ensure(validate_send(BalancedSendRequest(
            alias=group_alias,
            number=number,
            text=text,
            delay=delay_ms,
            mentions_everyone=mentions_everyone,
            mentioned=list(mentioned or []),
        )))
        try:
            res = self.api.send_text_with_group_balancing(req, resolve_token(self.tokens, token))
        except RemoteError as exc:
            self.notifier.error(exc.message_or(ERR_SEND))
            log.warning("balanced_send_failed", alias=req.alias, status=exc.status_code)
            raise
        self.notifier.success(f"Mensagem enviada com sucesso via {res.instance_used}!")
        log.info("balanced_send", alias=req.alias, instance_used=res.instance_used, message_id=res.message_id)
        return res
