"""Bootstrap do container de DI (kink) para o manager de instâncias."""
from __future__ import annotations
import httpx
from kink import di
from .settings import Settings
from .logging import get_logger, set_log_level
from .cache import QueryCache
from .notifications import NotificationCenter
from .token import SettingsTokenProvider
from ..connectors.evolution.api_client import EvolutionApiClient
from ..domain.services.group_service import GroupService
from ..domain.services.dispatch_service import DispatchService
from ..domain.services.session_service import SessionService
from ..domain.services.instance_service import InstanceService

def bootstrap_di(settings: Settings | None = None, transport: httpx.BaseTransport | None = None) -> None:
    settings = settings or Settings()
    di[Settings] = settings
    set_log_level(settings.log_level)
    di["logger"] = get_logger()
    di["notifier"] = NotificationCenter(maxlen=settings.notification_buffer)
    di["token_provider"] = SettingsTokenProvider(settings)
    di[QueryCache] = QueryCache()
    di[EvolutionApiClient] = EvolutionApiClient(settings, transport=transport)
    # Serviços de domínio
    di[GroupService] = GroupService()
    di[DispatchService] = DispatchService()
    di[SessionService] = SessionService()
    di[InstanceService] = InstanceService()
