"""Pydantic-модель задачи скрапинга из очереди."""
import json
from datetime import datetime
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator


class FieldSpec(BaseModel):
    """Правило извлечения одного поля: селектор + тип + трансформация."""

    model_config = ConfigDict(frozen=True)

    selector: str
    type: str = "text"  # text | html | attr | list
    attr: str | None = None
    transform: str | None = None  # lowercase | uppercase | trim


class ScrapingOptions(BaseModel):
    """Опции задачи. Имена полей совпадают с JSON из управляющего API."""

    model_config = ConfigDict(frozen=True, extra="ignore")

    user_agent: str = ""
    timeout: int = 0  # секунды, 0 → default_timeout
    enable_js: bool = False
    wait_for_element: str = ""
    headers: dict[str, str] = {}
    proxy_url: str = ""
    max_retries: int = Field(default=0, ge=0)
    retry_delay: int = Field(default=0, ge=0)  # секунды
    respect_robots: bool = False

    # Формат вывода
    output_format: str = ""  # json | html | md | xml | csv
    template: str = ""

    # Anti-bot и CAPTCHA
    stealth_mode: bool = False
    captcha_solver: str = ""  # 2captcha | anticaptcha | manual
    captcha_api_key: str = ""
    random_delay: bool = False
    min_delay: int = 0
    max_delay: int = 0
    human_behavior: bool = False
    viewport_width: int = 0
    viewport_height: int = 0
    disable_images: bool = False
    disable_css: bool = False
    disable_js: bool = False
    webgl_fingerprint: bool = False
    canvas_fingerprint: bool = False


class ScrapeTask(BaseModel):
    """Задача из очереди. Неизменяема после получения."""

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    task_id: str = Field(min_length=1)
    url: str = Field(min_length=1)
    # alias: "schema" затеняет атрибут BaseModel
    extraction_schema: dict[str, FieldSpec | None] = Field(default_factory=dict, alias="schema")
    options: ScrapingOptions = Field(default_factory=ScrapingOptions)
    callback_url: str | None = None
    created_at: datetime | None = None

    @field_validator("extraction_schema", mode="before")
    @classmethod
    def _lenient_schema(cls, value: Any) -> Any:
        """Битое описание поля → None для этого поля, задача остаётся валидной."""
        if value is None:
            return {}
        if not isinstance(value, dict):
            return value
        schema: dict[str, FieldSpec | None] = {}
        for name, spec in value.items():
            if isinstance(spec, FieldSpec):
                schema[name] = spec
                continue
            try:
                schema[name] = FieldSpec.model_validate(spec)
            except ValidationError:
                schema[name] = None
        return schema

    @field_validator("options", mode="before")
    @classmethod
    def _default_options(cls, value: Any) -> Any:
        return ScrapingOptions() if value is None else value

    @classmethod
    def from_message(cls, body: str | bytes | dict[str, Any]) -> "ScrapeTask":
        """Распарсить тело сообщения очереди (JSON-строка или уже dict).

        Бросает pydantic.ValidationError / ValueError на битых данных.
        """
        if isinstance(body, (str, bytes)):
            body = json.loads(body)
        if not isinstance(body, dict):
            raise ValueError(f"task message must be a JSON object, got {type(body).__name__}")
        return cls.model_validate(body)

    def to_message(self) -> dict[str, Any]:
        """Сериализовать обратно в формат сообщения очереди."""
        return self.model_dump(mode="json", by_alias=True, exclude_none=True)
