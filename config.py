# --- FILE: config.py ---
import os
import logging
import threading
from typing import Dict, Any, Optional, List, Literal

from dotenv import load_dotenv, find_dotenv
from pydantic import (
    Field,
    ValidationError,
    field_validator,
    model_validator,
)
from pydantic_settings import BaseSettings, SettingsConfigDict

log = logging.getLogger(__name__)

# --- Constants ---
DEFAULT_LUIS_HOST = "westus.api.cognitive.microsoft.com"
DEFAULT_MEDIA_LIBRARY_PATH = os.path.join(
    os.path.dirname(os.path.abspath(__file__)), "resources", "video_library.json"
)
DEFAULT_WELCOME_IMAGE_URL = "https://i.pinimg.com/originals/34/f0/9f/34f09f59e193f07cda58088545859a88.gif"

SERVICE_CONFIG_REQUIREMENTS: Dict[str, List[str]] = {
    "luis": ["LUIS_APP_ID", "LUIS_API_KEY"],
    "redis": ["REDIS_HOST"],
}


class AppSettings(BaseSettings):
    app_env: Literal["development", "production"] = Field("development", alias="APP_ENV")
    port: int = Field(3978, alias="PORT", gt=0, lt=65536)
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"] = Field("INFO", alias="LOG_LEVEL")
    log_format: Literal["human", "json"] = Field("human", alias="LOG_FORMAT")

    # API Endpoints
    bot_api_messages_endpoint: str = Field("/api/messages", alias="BOT_API_MESSAGES_ENDPOINT")
    bot_api_healthcheck_endpoint: str = Field("/api/healthz", alias="BOT_API_HEALTHCHECK_ENDPOINT")

    MicrosoftAppId: Optional[str] = Field(None, alias="MICROSOFT_APP_ID")
    MicrosoftAppPassword: Optional[str] = Field(None, alias="MICROSOFT_APP_PASSWORD")

    # Language understanding (LUIS v2 prediction endpoint)
    luis_app_id: Optional[str] = Field(None, alias="LUIS_APP_ID")
    luis_api_key: Optional[str] = Field(None, alias="LUIS_API_KEY")
    luis_api_host_name: str = Field(DEFAULT_LUIS_HOST, alias="LUIS_API_HOST_NAME")
    luis_timeout_seconds: float = Field(10.0, alias="LUIS_TIMEOUT_SECONDS", gt=0)
    luis_staging: bool = Field(False, alias="LUIS_STAGING")
    luis_log_queries: bool = Field(True, alias="LUIS_LOG_QUERIES")
    luis_spell_check_key: Optional[str] = Field(None, alias="LUIS_SPELL_CHECK_KEY")

    # Replies
    media_library_path: str = Field(DEFAULT_MEDIA_LIBRARY_PATH, alias="MEDIA_LIBRARY_PATH")
    welcome_image_url: str = Field(DEFAULT_WELCOME_IMAGE_URL, alias="WELCOME_IMAGE_URL")
    reply_on_unrecognized: bool = Field(False, alias="REPLY_ON_UNRECOGNIZED")

    # Welcome state storage
    memory_type: Literal["memory", "redis"] = Field("memory", alias="MEMORY_TYPE")
    redis_url: Optional[str] = Field(None, alias="REDIS_URL")
    redis_host: Optional[str] = Field("localhost", alias="REDIS_HOST")
    redis_port: Optional[int] = Field(6379, alias="REDIS_PORT")
    redis_password: Optional[str] = Field(None, alias="REDIS_PASSWORD")
    redis_db: int = Field(0, alias="REDIS_DB")
    redis_ssl_enabled: bool = Field(False, alias="REDIS_SSL_ENABLED")
    redis_prefix: str = Field("moodytunes:", alias="REDIS_PREFIX")

    @field_validator('luis_app_id', 'luis_api_key', 'luis_spell_check_key', 'redis_url', mode='before')
    @classmethod
    def _blank_to_none(cls, v: Optional[Any]) -> Optional[Any]:
        if v is not None and isinstance(v, str) and not v.strip():
            return None
        return v

    @field_validator('luis_api_host_name', mode='before')
    @classmethod
    def _strip_host(cls, v: Any) -> Any:
        if isinstance(v, str):
            return v.strip().rstrip('/')
        return v

    @model_validator(mode='after')
    def _check_luis_config_complete(self) -> 'AppSettings':
        luis_fields_map = {'luis_app_id': self.luis_app_id, 'luis_api_key': self.luis_api_key}
        set_fields = {field for field, value in luis_fields_map.items() if value}
        if 0 < len(set_fields) < len(luis_fields_map):
            missing_fields = []
            for field_name, value in luis_fields_map.items():
                if not value:
                    pydantic_field = type(self).model_fields.get(field_name)
                    env_var_name = pydantic_field.alias if pydantic_field and pydantic_field.alias else field_name.upper()
                    missing_fields.append(f"{field_name} (env var: {env_var_name})")
            error_message = f"LUIS configuration incomplete: if any LUIS setting is provided, all are required. Missing values for: {', '.join(missing_fields)}."
            log.error(error_message)
            raise ValueError(error_message)
        return self

    @model_validator(mode='after')
    def check_redis_config_if_needed(self) -> 'AppSettings':
        if self.memory_type == "redis":
            if self.redis_url:
                log.info(f"Using REDIS_URL for Redis connection: {self.redis_url}")
            elif not self.redis_host:
                raise ValueError("REDIS_HOST must be set if REDIS_URL is not provided and memory_type is 'redis'.")
        return self

    model_config = SettingsConfigDict(
        env_file=find_dotenv(),
        env_file_encoding='utf-8',
        extra='ignore',
        case_sensitive=False,
        populate_by_name=True,
    )

    def is_service_configured(self, service_name: str) -> bool:
        required_vars = SERVICE_CONFIG_REQUIREMENTS.get(service_name.lower())
        if required_vars is None:
            log.debug(f"Service '{service_name}' has no configuration requirements. Assuming configured.")
            return True
        if service_name.lower() == "redis" and self.redis_url:
            return True
        missing_vars = [var for var in required_vars if not getattr(self, var.lower(), None)]
        if missing_vars:
            log.debug(f"Service '{service_name}' NOT configured. Missing: {missing_vars}")
            return False
        return True


class Config:
    """
    Wraps AppSettings and exposes the values the bot reads at runtime.
    """

    def __init__(self, env_file: Optional[str] = None):
        # An explicit env_file (e.g. a test .env) overrides whatever
        # AppSettings would pick up through find_dotenv().
        if env_file and os.path.exists(env_file):
            if load_dotenv(env_file, override=True):
                log.info(f"Config explicitly loaded .env file: {env_file}")

        try:
            self.settings = AppSettings()
            log.info("AppSettings initialized within Config object.")
        except ValidationError as e:
            log.error(f"AppSettings validation failed within Config: {e}")
            raise

        self._log_config_summary()

    def _log_config_summary(self):
        """Log a summary of the loaded configuration."""
        log.info("=== Configuration Summary ===")
        log.info(f"Environment: {self.settings.app_env}")
        log.info(f"Port: {self.settings.port}")
        log.info(f"Log Level: {self.settings.log_level}")
        log.info(f"Log Format: {self.settings.log_format}")
        log.info(f"Memory Type: {self.settings.memory_type}")
        log.info(f"Media Library: {self.settings.media_library_path}")
        if self.settings.is_service_configured("luis"):
            log.info(f"LUIS: app {self.settings.luis_app_id} on {self.settings.luis_api_host_name}")
        else:
            log.warning("LUIS is not configured. Message activities will fail to classify.")
        log.info("=============================")

    @property
    def LUIS_APP_ID(self) -> Optional[str]:
        return self.settings.luis_app_id

    @property
    def LUIS_API_KEY(self) -> Optional[str]:
        return self.settings.luis_api_key

    @property
    def LUIS_ENDPOINT(self) -> str:
        host = self.settings.luis_api_host_name
        if host.startswith("http://") or host.startswith("https://"):
            return host
        return f"https://{host}"

    @property
    def LUIS_TIMEOUT_SECONDS(self) -> float:
        return self.settings.luis_timeout_seconds

    @property
    def MEDIA_LIBRARY_PATH(self) -> str:
        return self.settings.media_library_path

    @property
    def WELCOME_IMAGE_URL(self) -> str:
        return self.settings.welcome_image_url

    @property
    def REPLY_ON_UNRECOGNIZED(self) -> bool:
        return self.settings.reply_on_unrecognized

    @property
    def MICROSOFT_APP_ID(self) -> Optional[str]:
        return self.settings.MicrosoftAppId

    @property
    def MICROSOFT_APP_PASSWORD(self) -> Optional[str]:
        return self.settings.MicrosoftAppPassword

    def is_service_configured(self, service_name: str) -> bool:
        return self.settings.is_service_configured(service_name)


# Global configuration instance
_config_instance: Optional[Config] = None
_config_lock = threading.Lock()


def get_config(env_file: Optional[str] = None, force_reload: bool = False) -> Config:
    """
    Get the global configuration instance (singleton pattern).

    Args:
        env_file: Optional path to a .env file to load (only used on first initialization)
        force_reload: Force reloading the configuration (useful for testing)

    Returns:
        The global Config instance
    """
    global _config_instance

    with _config_lock:
        if _config_instance is None or force_reload:
            try:
                _config_instance = Config(env_file=env_file)
                log.info("Global configuration instance initialized")
            except Exception as e:
                log.error(f"Failed to initialize global configuration: {e}")
                raise

        return _config_instance
