"""Taxonomia de erros do manager.

Erros de cliente (validação, invariante, duplicidade, transição) são lançados
antes de qualquer chamada de rede. ``RemoteError`` só existe depois que a API
respondeu com falha (ou o transporte falhou) e carrega a mensagem remota como
veio.
"""
from __future__ import annotations
from typing import Any


class ManagerError(Exception):
    """Base de todos os erros do manager."""
    kind = "manager_error"

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message

    def to_dict(self) -> dict[str, Any]:
        return {"error": self.kind, "message": self.message}


class ValidationError(ManagerError):
    """Formato inválido detectado localmente (nenhuma chamada feita)."""
    kind = "validation_error"

    def __init__(self, field: str, reason: str):
        super().__init__(f"{field}: {reason}")
        self.field = field
        self.reason = reason

    def to_dict(self) -> dict[str, Any]:
        return {"error": self.kind, "message": self.reason, "field": self.field}


class InvariantViolation(ManagerError):
    """A mutação quebraria uma invariante do modelo (ex.: grupo sem membros)."""
    kind = "invariant_violation"


class DuplicateMember(ManagerError):
    """Instância já pertence ao grupo."""
    kind = "duplicate_member"

    def __init__(self, group_id: str, instance_name: str):
        super().__init__("Esta instância já está no grupo")
        self.group_id = group_id
        self.instance_name = instance_name


class InvalidTransition(ManagerError):
    """Transição de status de sessão fora da tabela. Indica defeito no chamador."""
    kind = "invalid_transition"

    def __init__(self, current: str, target: str):
        super().__init__(f"transição inválida: {current} -> {target}")
        self.current = current
        self.target = target


class RemoteError(ManagerError):
    """Falha reportada pela API remota (ou pelo transporte)."""
    kind = "remote_error"

    def __init__(self, message: str | None, status_code: int | None = None, payload: Any = None):
        super().__init__(message or "Erro na comunicação com a Evolution API")
        self.remote_message = message
        self.status_code = status_code
        self.payload = payload

    def message_or(self, fallback: str) -> str:
        """Mensagem remota quando existir; senão o fallback genérico da operação."""
        return self.remote_message or fallback


class GroupNotFound(RemoteError):
    kind = "not_found"


class UnreadableResponse(RemoteError):
    """A API respondeu 2xx mas o corpo não tem o formato esperado.

    A operação pode ter sido aplicada no servidor.
    """
