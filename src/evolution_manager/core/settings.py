"""Configurações Pydantic Settings para o manager."""
from pydantic_settings import BaseSettings, SettingsConfigDict
from pydantic import Field

class Settings(BaseSettings):
    """Configurações da aplicação. Carrega de env e .env.

    A apikey global é opcional: chamadas sem credencial seguem para a API e
    quem decide é a política remota.
    """
    model_config = SettingsConfigDict(env_file=".env", env_prefix="EM_", case_sensitive=False)

    # Flask (API administrativa)
    flask_debug: bool = Field(default=False)
    host: str = Field(default="0.0.0.0")
    port: int = Field(default=8000)

    # Evolution API
    api_url: str = Field(default="http://localhost:8080", description="URL base da Evolution API")
    api_key: str | None = Field(default=None, description="apikey global enviada no header")
    http_timeout_s: float = Field(default=10)

    # Listagem de instâncias
    instances_stale_ms: int = Field(default=5_000)
    instances_refresh_interval_s: float = Field(default=15)
    instances_refresh_enabled: bool = Field(default=True)

    # Outros
    notification_buffer: int = Field(default=50)
    log_level: str = Field(default="INFO")
