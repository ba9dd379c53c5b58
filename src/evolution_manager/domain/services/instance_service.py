"""Listagem de instâncias com janela de frescor curta (5 s por padrão)."""
from __future__ import annotations
from kink import di
from ...connectors.evolution.api_client import EvolutionApiClient
from ...core.cache import QueryCache, query_key
from ...core.settings import Settings
from ...core.token import resolve_token
from ...ports.interfaces import InstanceDTO, TokenProvider

INSTANCES_KEY = query_key("instance", "fetchInstances")


class InstanceService:
    def __init__(self, api: EvolutionApiClient | None = None, cache: QueryCache | None = None,
                 tokens: TokenProvider | None = None, settings: Settings | None = None):
        self.api = api or di[EvolutionApiClient]
        self.cache = cache or di[QueryCache]
        self.tokens = tokens or di["token_provider"]
        self.s = settings or di[Settings]

    def list(self, force: bool = False) -> list[InstanceDTO]:
        tok = resolve_token(self.tokens, None)
        return self.cache.fetch(INSTANCES_KEY, lambda: self.api.fetch_instances(tok),
                                stale_ms=self.s.instances_stale_ms, force=force)
