"""Serviço de grupos de instâncias: leitura via cache e mutações confirmadas pela API.

Toda mutação bem-sucedida invalida o espaço de chaves ``instance-groups`` e
dispara notificação de sucesso; nunca aplicamos patch local no cache, a
próxima leitura traz o estado calculado pelo servidor. Um 2xx com corpo
ilegível também invalida, já que a mudança pode ter sido aplicada.
"""
from __future__ import annotations
from typing import Callable, TypeVar
from kink import di
from ...connectors.evolution.api_client import EvolutionApiClient
from ...core.cache import QueryCache, query_key
from ...core.errors import RemoteError, InvariantViolation, DuplicateMember, UnreadableResponse
from ...core.logging import get_logger
from ...core.token import resolve_token
from ...core.validation import ensure, validate_group_create, validate_group_patch, validate_instance_name
from ...ports.interfaces import (
    AckDTO, CreateInstanceGroup, InstanceGroup, NotificationSink, TokenProvider, UpdateInstanceGroup,
)

log = get_logger()

T = TypeVar("T")

GROUPS = "instance-groups"

MSG_CREATED = "Grupo de instâncias criado com sucesso!"
MSG_UPDATED = "Grupo de instâncias atualizado com sucesso!"
MSG_DELETED = "Grupo de instâncias deletado com sucesso!"
MSG_ADDED = "Instância adicionada ao grupo com sucesso!"
MSG_REMOVED = "Instância removida do grupo com sucesso!"
ERR_CREATE = "Erro ao criar grupo de instâncias"
ERR_UPDATE = "Erro ao atualizar grupo de instâncias"
ERR_DELETE = "Erro ao deletar grupo de instâncias"
ERR_ADD = "Erro ao adicionar instância ao grupo"
ERR_REMOVE = "Erro ao remover instância do grupo"


def matches(group: InstanceGroup, search: str) -> bool:
    """Busca simples por nome, alias ou descrição (sem diferenciar maiúsculas)."""
    term = search.lower()
    return any(term in (v or "").lower() for v in (group.name, group.alias, group.description))


class GroupService:
    def __init__(
        self,
        api: EvolutionApiClient | None = None,
        cache: QueryCache | None = None,
        notifier: NotificationSink | None = None,
        tokens: TokenProvider | None = None,
    ):
        self.api = api or di[EvolutionApiClient]
        self.cache = cache or di[QueryCache]
        self.notifier = notifier or di["notifier"]
        self.tokens = tokens or di["token_provider"]

    # --- Leituras ---
    def list(self, search: str | None = None, token: str | None = None) -> list[InstanceGroup]:
        """Lista grupos na ordem devolvida pela API; ``search`` filtra localmente."""
        tok = resolve_token(self.tokens, token)
        groups = self.cache.fetch(query_key(GROUPS, "fetchInstanceGroups", {"token": tok}),
                                  lambda: self.api.list_groups(tok))
        if search and search.strip():
            return [g for g in groups if matches(g, search.strip())]
        return list(groups)

    def get(self, group_id: str, token: str | None = None) -> InstanceGroup:
        """Lê um grupo; ``GroupNotFound`` quando a API responde 404."""
        tok = resolve_token(self.tokens, token)
        return self.cache.fetch(query_key(GROUPS, "fetchInstanceGroup", {"groupId": group_id, "token": tok}),
                                lambda: self.api.get_group(group_id, tok))

    # --- Mutações ---
    def _mutate(self, event: str, call: Callable[[], T], ok_msg: str, err_msg: str, **fields) -> T:
        try:
            result = call()
        except RemoteError as exc:
            if isinstance(exc, UnreadableResponse):
                # o servidor aceitou (2xx); o cache já não reflete o estado remoto
                self.cache.invalidate((GROUPS,))
            self.notifier.error(exc.message_or(err_msg))
            log.warning(f"{event}_failed", status=exc.status_code, **fields)
            raise
        self.cache.invalidate((GROUPS,))
        self.notifier.success(ok_msg)
        log.info(event, **fields)
        return result

    def create(self, spec: CreateInstanceGroup, token: str | None = None) -> InstanceGroup:
        data = ensure(validate_group_create(spec))
        tok = resolve_token(self.tokens, token)
        return self._mutate("group_created", lambda: self.api.create_group(data, tok), MSG_CREATED, ERR_CREATE,
                            alias=data.alias, instances=len(data.instances))

    def update(self, group_id: str, patch: UpdateInstanceGroup, token: str | None = None) -> InstanceGroup:
        data = ensure(validate_group_patch(patch))
        tok = resolve_token(self.tokens, token)
        return self._mutate("group_updated", lambda: self.api.update_group(group_id, data, tok), MSG_UPDATED, ERR_UPDATE,
                            group_id=group_id)

    def delete(self, group_id: str, token: str | None = None) -> AckDTO:
        tok = resolve_token(self.tokens, token)
        return self._mutate("group_deleted", lambda: self.api.delete_group(group_id, tok), MSG_DELETED, ERR_DELETE,
                            group_id=group_id)

    def add_instance(self, group_id: str, instance_name: str, token: str | None = None) -> AckDTO:
        """Adiciona instância ao grupo; duplicata é barrada sem chamada remota."""
        name = ensure(validate_instance_name(instance_name))
        group = self.get(group_id, token)
        if name in group.instances:
            log.info("group_add_duplicate", group_id=group_id, instance=name)
            raise DuplicateMember(group_id, name)
        tok = resolve_token(self.tokens, token)
        return self._mutate("group_instance_added", lambda: self.api.add_group_instance(group_id, name, tok),
                            MSG_ADDED, ERR_ADD, group_id=group_id, instance=name)

    def remove_instance(self, group_id: str, instance_name: str, token: str | None = None) -> AckDTO:
        """Remove instância do grupo; o último membro nunca sai (grupo vazio é inválido)."""
        name = ensure(validate_instance_name(instance_name))
        group = self.get(group_id, token)
        if len(group.instances) <= 1:
            log.info("group_remove_last_blocked", group_id=group_id, instance=name)
            raise InvariantViolation("Não é possível remover a última instância")
        tok = resolve_token(self.tokens, token)
        return self._mutate("group_instance_removed", lambda: self.api.remove_group_instance(group_id, name, tok),
                            MSG_REMOVED, ERR_REMOVE, group_id=group_id, instance=name)
