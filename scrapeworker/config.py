"""Конфигурация воркера из переменных окружения."""
from functools import cached_property

from pydantic import AliasChoices, Field, SecretStr
from pydantic_settings import BaseSettings, SettingsConfigDict

DEFAULT_USER_AGENT = (
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 "
    "(KHTML, like Gecko) Chrome/124.0.0.0 Safari/537.36"
)


def _split_comma(value: str) -> list[str]:
    """Парсит строку 'a,b,c' → ['a', 'b', 'c']."""
    if not value or not value.strip():
        return []
    return [item.strip() for item in value.split(",") if item.strip()]


class Settings(BaseSettings):
    """Настройки воркера — парсятся из env или .env файла."""

    model_config = SettingsConfigDict(env_file=".env", extra="ignore", populate_by_name=True)

    # Supabase: очередь (pgmq) + Storage для результатов
    supabase_url: str
    supabase_service_key: SecretStr
    queue_name: str = "scrape_jobs"
    results_bucket: str = "scrape-results"

    # Управляющий API (приём статусов)
    api_base_url: str = Field(validation_alias=AliasChoices("API_BASE_URL", "NODE_API_URL"))
    api_key: SecretStr
    reporter_timeout: float = 30.0
    callback_timeout: float = 10.0

    # Пул воркеров
    worker_pool_size: int = 10
    job_channel_size: int = 10   # Ёмкость канала consumer → workers

    # Очередь
    queue_max_batch: int = 10
    queue_wait_seconds: int = 20
    queue_visibility_timeout: int = 300
    queue_error_backoff: float = 5.0

    # Логирование
    log_level: str = "INFO"
    log_format: str = "text"  # "text" | "json"

    # Прокси
    proxy_list: str = ""
    use_proxy_rotation: bool = False

    # Скрапинг
    default_timeout: int = 30
    default_user_agent: str = DEFAULT_USER_AGENT
    default_output_format: str = "json"
    default_stealth_mode: bool = False
    default_viewport_width: int = 1920
    default_viewport_height: int = 1080
    default_min_delay: int = 1
    default_max_delay: int = 3

    # CAPTCHA
    default_captcha_solver: str = ""  # "2captcha" | "anticaptcha" | "manual"
    default_captcha_api_key: SecretStr = SecretStr("")
    captcha_poll_interval: float = 10.0
    captcha_max_attempts: int = 30

    # Health-сервер
    health_port: int = Field(
        default=8080,
        validation_alias=AliasChoices("HEALTH_PORT", "PORT"),
    )

    # Хранение результатов
    result_retention_days: int = 30

    @cached_property
    def proxies(self) -> list[str]:
        """Парсит PROXY_LIST='a,b,c' → ['a', 'b', 'c']."""
        return _split_comma(self.proxy_list)


def load_settings() -> Settings:
    """Создать Settings из переменных окружения (.env файла).

    Фабричная функция: обходит ограничение pyright, который не знает,
    что pydantic-settings заполняет обязательные поля из окружения.
    """
    return Settings.model_validate({})
