"""Provedor de credencial (apikey) para as chamadas remotas."""
from __future__ import annotations
from kink import di
from .settings import Settings


class SettingsTokenProvider:
    """Lê a apikey global das configurações. Ausência não é erro."""
    def __init__(self, settings: Settings | None = None):
        self.s = settings or di[Settings]

    def get_token(self) -> str | None:
        return self.s.api_key or None


def resolve_token(provider, token: str | None) -> str | None:
    """Token informado na chamada tem precedência sobre o do provedor."""
    return token or provider.get_token()
