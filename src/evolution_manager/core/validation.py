"""Validadores explícitos de formato dos grupos e envios.

Cada validador devolve ``Ok`` com o valor normalizado ou ``Invalid`` com o
campo e o motivo. ``ensure`` converte ``Invalid`` em ``ValidationError``.
"""
from __future__ import annotations
import re
from dataclasses import dataclass
from typing import Generic, TypeVar, Union
from .errors import ValidationError
from ..ports.interfaces import CreateInstanceGroup, UpdateInstanceGroup, BalancedSendRequest

T = TypeVar("T")

NAME_MAX = 100
ALIAS_MAX = 50
DESCRIPTION_MAX = 500
DIGITS = re.compile(r"\d+")
CONTROL_CHARS = re.compile(r"[\x00-\x08\x0B\x0C\x0E-\x1F\x7F]")


@dataclass(frozen=True)
class Ok(Generic[T]):
    value: T


@dataclass(frozen=True)
class Invalid:
    field: str
    reason: str


Result = Union[Ok[T], Invalid]


def ensure(result: Result[T]) -> T:
    """Desembrulha ``Ok`` ou lança ``ValidationError``."""
    if isinstance(result, Invalid):
        raise ValidationError(result.field, result.reason)
    return result.value


def clean_name(value: str | None) -> str:
    """Remove caracteres de controle e espaços das pontas."""
    return CONTROL_CHARS.sub("", value or "").strip()


def _check_text(field: str, value: str | None, max_len: int, label: str) -> Invalid | None:
    if value is None or not value.strip():
        return Invalid(field, f"{label} é obrigatório")
    if len(value) > max_len:
        return Invalid(field, f"{label} deve ter no máximo {max_len} caracteres")
    return None


def _check_description(value: str | None) -> Invalid | None:
    if value is not None and len(value) > DESCRIPTION_MAX:
        return Invalid("description", f"Descrição deve ter no máximo {DESCRIPTION_MAX} caracteres")
    return None


def _check_instances(value: list[str]) -> Result[list[str]]:
    names = [clean_name(n) for n in value]
    if not names:
        return Invalid("instances", "Pelo menos uma instância é obrigatória")
    if any(not n for n in names):
        return Invalid("instances", "Nome da instância é obrigatório")
    if len(set(names)) != len(names):
        return Invalid("instances", "Instâncias duplicadas no grupo")
    return Ok(names)


def validate_group_create(spec: CreateInstanceGroup) -> Result[CreateInstanceGroup]:
    """Valida um grupo novo: nome/alias nos limites e ao menos uma instância."""
    for problem in (
        _check_text("name", spec.name, NAME_MAX, "Nome"),
        _check_text("alias", spec.alias, ALIAS_MAX, "Alias"),
        _check_description(spec.description),
    ):
        if problem:
            return problem
    instances = _check_instances(spec.instances)
    if isinstance(instances, Invalid):
        return instances
    # descrição vazia não vai para a API
    return Ok(spec.model_copy(update={"instances": instances.value, "description": spec.description or None}))


def validate_group_patch(patch: UpdateInstanceGroup) -> Result[UpdateInstanceGroup]:
    """Valida apenas os campos presentes no patch."""
    checks = []
    if patch.name is not None:
        checks.append(_check_text("name", patch.name, NAME_MAX, "Nome"))
    if patch.alias is not None:
        checks.append(_check_text("alias", patch.alias, ALIAS_MAX, "Alias"))
    checks.append(_check_description(patch.description))
    for problem in checks:
        if problem:
            return problem
    if patch.instances is not None:
        instances = _check_instances(patch.instances)
        if isinstance(instances, Invalid):
            return instances
        return Ok(patch.model_copy(update={"instances": instances.value}))
    return Ok(patch)


def validate_instance_name(name: str | None) -> Result[str]:
    cleaned = clean_name(name)
    if not cleaned:
        return Invalid("instanceName", "Nome da instância é obrigatório")
    return Ok(cleaned)


def validate_send(req: BalancedSendRequest) -> Result[BalancedSendRequest]:
    """Pré-checagem do envio balanceado: número só com dígitos, texto e delay."""
    if not req.alias or not req.alias.strip():
        return Invalid("alias", "Alias é obrigatório")
    if not req.number:
        return Invalid("number", "Número é obrigatório")
    if not DIGITS.fullmatch(req.number):
        return Invalid("number", "Número deve conter apenas dígitos")
    if not req.text:
        return Invalid("text", "Mensagem é obrigatória")
    if req.delay is not None and req.delay < 0:
        return Invalid("delay", "Delay deve ser positivo")
    return Ok(req)
