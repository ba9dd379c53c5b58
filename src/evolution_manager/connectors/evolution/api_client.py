"""Cliente HTTP da Evolution API: grupos de instâncias, envio balanceado e sessões.

Uma operação por (recurso, verbo). Não há retry nem backoff: a falha remota
vira ``RemoteError`` com status e mensagem como vieram. Um 2xx cujo corpo não
cabe no DTO vira ``UnreadableResponse``.
"""
from __future__ import annotations
from typing import Any, Type, TypeVar
import httpx
from pydantic import BaseModel, ValidationError as SchemaError
from kink import di
from ...core.settings import Settings
from ...core.errors import RemoteError, GroupNotFound, UnreadableResponse
from ...core.logging import get_logger
from ...ports.interfaces import (
    InstanceGroup, CreateInstanceGroup, UpdateInstanceGroup, GroupMemberDTO, AckDTO,
    BalancedSendRequest, BalancedSendResult, InstanceDTO, IntegrationKind,
    IntegrationSession, ChangeStatusDTO, SessionAction,
)

log = get_logger()

M = TypeVar("M", bound=BaseModel)


def _remote_message(body: Any) -> str | None:
    """Extrai a mensagem de erro: ``message`` ou ``response.message`` (listas são unidas)."""
    if not isinstance(body, dict):
        return None
    msg = body.get("message")
    if msg is None and isinstance(body.get("response"), dict):
        msg = body["response"].get("message")
    if isinstance(msg, list):
        msg = ", ".join(str(m) for m in msg)
    return msg or None


class EvolutionApiClient:
    """Cliente da Evolution API."""
    def __init__(self, settings: Settings | None = None, transport: httpx.BaseTransport | None = None):
        self.s = settings or di[Settings]
        self._transport = transport

    def _client(self) -> httpx.Client:
        return httpx.Client(base_url=self.s.api_url, timeout=self.s.http_timeout_s, transport=self._transport)

    def _request(self, method: str, path: str, token: str | None = None, json: Any = None,
                 model: Type[M] | None = None, many: bool = False) -> Any:
        headers = {"apikey": token} if token else {}
        try:
            with self._client() as cli:
                r = cli.request(method, path, json=json, headers=headers)
        except httpx.HTTPError as exc:
            log.warning("remote_transport_error", method=method, path=path, error=str(exc))
            raise RemoteError(None) from exc
        body = None
        if "application/json" in r.headers.get("content-type", ""):
            try:
                body = r.json()
            except ValueError:
                log.warning("remote_body_not_json", method=method, path=path, status=r.status_code)
                if r.status_code // 100 == 2:
                    raise UnreadableResponse(None, status_code=r.status_code) from None
        if r.status_code // 100 != 2:
            message = _remote_message(body)
            log.warning("remote_error", method=method, path=path, status=r.status_code, message=message)
            raise RemoteError(message, status_code=r.status_code, payload=body)
        log.info("remote_ok", method=method, path=path, status=r.status_code)
        if model is None:
            return body
        try:
            if many:
                if body is None:
                    return []
                if not isinstance(body, list):
                    raise TypeError(f"esperava lista, veio {type(body).__name__}")
                return [model.model_validate(item) for item in body]
            return model.model_validate(body)
        except (SchemaError, TypeError) as exc:
            # 2xx: a operação pode ter sido aplicada mesmo sem corpo legível
            log.warning("remote_body_unreadable", method=method, path=path, status=r.status_code, error=str(exc))
            raise UnreadableResponse(None, status_code=r.status_code, payload=body) from exc

    # --- Grupos de instâncias ---
    def list_groups(self, token: str | None = None) -> list[InstanceGroup]:
        return self._request("GET", "/instance-group", token, model=InstanceGroup, many=True)

    def get_group(self, group_id: str, token: str | None = None) -> InstanceGroup:
        try:
            return self._request("GET", f"/instance-group/{group_id}", token, model=InstanceGroup)
        except RemoteError as exc:
            if exc.status_code == 404:
                raise GroupNotFound(exc.remote_message or "Grupo não encontrado", 404, exc.payload) from exc
            raise

    def create_group(self, data: CreateInstanceGroup, token: str | None = None) -> InstanceGroup:
        return self._request("POST", "/instance-group", token, json=data.to_wire(), model=InstanceGroup)

    def update_group(self, group_id: str, data: UpdateInstanceGroup, token: str | None = None) -> InstanceGroup:
        return self._request("PUT", f"/instance-group/{group_id}", token, json=data.to_wire(), model=InstanceGroup)

    def delete_group(self, group_id: str, token: str | None = None) -> AckDTO:
        return self._request("DELETE", f"/instance-group/{group_id}", token, model=AckDTO)

    def add_group_instance(self, group_id: str, instance_name: str, token: str | None = None) -> AckDTO:
        payload = GroupMemberDTO(instance_name=instance_name).to_wire()
        return self._request("POST", f"/instance-group/{group_id}/instances", token, json=payload, model=AckDTO)

    def remove_group_instance(self, group_id: str, instance_name: str, token: str | None = None) -> AckDTO:
        # DELETE com corpo: o alvo vai no body
        payload = GroupMemberDTO(instance_name=instance_name).to_wire()
        return self._request("DELETE", f"/instance-group/{group_id}/instances", token, json=payload, model=AckDTO)

    # --- Mensagens ---
    def send_text_with_group_balancing(self, req: BalancedSendRequest, token: str | None = None) -> BalancedSendResult:
        return self._request("POST", "/message/sendTextWithGroupBalancing", token, json=req.to_wire(),
                             model=BalancedSendResult)

    # --- Instâncias ---
    def fetch_instances(self, token: str | None = None) -> list[InstanceDTO]:
        return self._request("GET", "/instance/fetchInstances", token, model=InstanceDTO, many=True)

    # --- Sessões de integração ---
    def fetch_sessions(self, kind: IntegrationKind, bot_id: str, instance_name: str, token: str | None = None) -> list[IntegrationSession]:
        return self._request("GET", f"/{kind.value}/fetchSessions/{bot_id}/{instance_name}", token,
                             model=IntegrationSession, many=True)

    def change_session_status(self, kind: IntegrationKind, instance_name: str, remote_jid: str,
                              status: SessionAction, token: str | None = None) -> AckDTO:
        payload = ChangeStatusDTO(remote_jid=remote_jid, status=status).to_wire()
        return self._request("POST", f"/{kind.value}/changeStatus/{instance_name}", token, json=payload, model=AckDTO)
