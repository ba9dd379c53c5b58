"""Portas hexagonais (interfaces) e DTOs trocados com a Evolution API."""
from __future__ import annotations
from datetime import datetime
from enum import Enum
from typing import Protocol
from pydantic import BaseModel, ConfigDict, Field, model_validator


class WireModel(BaseModel):
    """Base dos DTOs: aceita camelCase do fio e ignora campos extras."""
    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    def to_wire(self) -> dict:
        return self.model_dump(mode="json", by_alias=True, exclude_none=True)


class InstanceGroup(WireModel):
    """Grupo de instâncias usado como alvo único de envio balanceado."""
    id: str
    name: str
    alias: str
    description: str | None = None
    enabled: bool = True
    instances: list[str] = Field(default_factory=list)
    created_at: datetime | None = Field(default=None, alias="createdAt")
    updated_at: datetime | None = Field(default=None, alias="updatedAt")


class CreateInstanceGroup(WireModel):
    name: str
    alias: str
    description: str | None = None
    enabled: bool = True
    instances: list[str] = Field(default_factory=list)


class UpdateInstanceGroup(WireModel):
    """Patch parcial: só os campos informados vão para a API."""
    name: str | None = None
    alias: str | None = None
    description: str | None = None
    enabled: bool | None = None
    instances: list[str] | None = None


class GroupMemberDTO(WireModel):
    instance_name: str = Field(alias="instanceName")


class AckDTO(WireModel):
    """Confirmação simples devolvida pela API (delete/add/remove/status)."""
    message: str = ""

    @model_validator(mode="before")
    @classmethod
    def _any_body(cls, data):
        # qualquer corpo confirma; só a mensagem textual é aproveitada
        if not isinstance(data, dict):
            return {}
        msg = data.get("message")
        return {"message": msg} if isinstance(msg, str) else {}


class BalancedSendRequest(WireModel):
    """Envio de texto endereçado ao alias do grupo; a API escolhe a instância."""
    alias: str
    number: str
    text: str
    delay: int | None = None
    mentions_everyone: bool = Field(default=False, alias="mentionsEveryOne")
    mentioned: list[str] = Field(default_factory=list)


class BalancedSendResult(WireModel):
    message: str = ""
    instance_used: str = Field(alias="instanceUsed")
    message_id: str | None = Field(default=None, alias="messageId")


class InstanceDTO(WireModel):
    """Instância da listagem /instance/fetchInstances (apenas leitura)."""
    name: str
    connection_status: str | None = Field(default=None, alias="connectionStatus")
    owner_jid: str | None = Field(default=None, alias="ownerJid")
    profile_name: str | None = Field(default=None, alias="profileName")
    token: str | None = None


class SessionStatus(str, Enum):
    OPENED = "opened"
    PAUSED = "paused"
    CLOSED = "closed"


class SessionAction(str, Enum):
    """Alvos possíveis de transição; DELETE remove a sessão em vez de gravar status."""
    OPENED = "opened"
    PAUSED = "paused"
    CLOSED = "closed"
    DELETE = "delete"


class IntegrationKind(str, Enum):
    N8N = "n8n"
    TYPEBOT = "typebot"
    OPENAI = "openai"
    DIFY = "dify"
    EVOLUTION_BOT = "evolutionBot"
    FLOWISE = "flowise"
    EVOAI = "evoai"


class IntegrationSession(WireModel):
    """Sessão de automação de uma conversa, identificada por (remoteJid, sessionId)."""
    id: str | None = None
    remote_jid: str = Field(alias="remoteJid")
    session_id: str | None = Field(default=None, alias="sessionId")
    push_name: str | None = Field(default=None, alias="pushName")
    status: str
    bot_id: str | None = Field(default=None, alias="botId")


class SessionScope(WireModel):
    """Escopo de sessões: um bot de uma integração numa instância."""
    integration: IntegrationKind = IntegrationKind.N8N
    bot_id: str
    instance_name: str
    token: str | None = None


class ChangeStatusDTO(WireModel):
    remote_jid: str = Field(alias="remoteJid")
    status: SessionAction


class NotificationSink(Protocol):
    def success(self, message: str) -> None: ...
    def error(self, message: str) -> None: ...


class TokenProvider(Protocol):
    def get_token(self) -> str | None: ...
