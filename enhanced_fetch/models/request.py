from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Callable, Dict, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

from enhanced_fetch.config.settings import Settings
from enhanced_fetch.execution.cancellation import CancellationToken


class HttpMethod(str, Enum):
    GET = "GET"
    HEAD = "HEAD"
    POST = "POST"
    PUT = "PUT"
    PATCH = "PATCH"
    DELETE = "DELETE"
    OPTIONS = "OPTIONS"


class ResponseType(str, Enum):
    """Формат декодирования успешного ответа"""
    AUTO = "auto"   # По заголовку Content-Type
    JSON = "json"
    TEXT = "text"
    BLOB = "blob"


@dataclass(frozen=True)
class FormData:
    """
    Multipart-контейнер (поля формы + файлы).
    Никогда не сериализуется в JSON: уходит в httpx как data/files.
    """
    fields: Dict[str, Any] = field(default_factory=dict)
    files: Dict[str, Any] = field(default_factory=dict)


def default_validate_status(status: int) -> bool:
    return 200 <= status < 300


class RequestConfig(BaseModel):
    """
    Параметры одного логического запроса.
    Все задержки и таймауты - в миллисекундах.
    """
    method: HttpMethod = HttpMethod.GET
    headers: Dict[str, str] = Field(default_factory=dict)
    body: Any = Field(
        None,
        description="Только None означает \"без тела\": пустая строка уходит как есть, 0 и False - как JSON",
    )
    query: Dict[str, Any] = Field(default_factory=dict, description="None-значения не попадают в URL")

    retries: int = Field(3, ge=0)
    retry_delay: float = Field(1000.0, ge=0)
    timeout: Optional[float] = Field(8000.0, ge=0, description="None или 0 -> таймаут отключен")

    response_type: ResponseType = ResponseType.AUTO
    validate_status: Callable[[int], bool] = default_validate_status
    debug: bool = False

    # Внешний токен имеет приоритет над timeout
    cancel_token: Optional[CancellationToken] = None

    model_config = ConfigDict(frozen=True, arbitrary_types_allowed=True)

    @field_validator("method", mode="before")
    @classmethod
    def normalize_method(cls, v: Any) -> Any:
        if isinstance(v, str):
            return v.strip().upper()
        return v

    @field_validator("response_type", mode="before")
    @classmethod
    def normalize_response_type(cls, v: Any) -> Any:
        if isinstance(v, str):
            return v.strip().lower()
        return v

    @classmethod
    def from_settings(cls, settings: Settings, **overrides: Any) -> "RequestConfig":
        """Собирает конфиг: дефолты из Settings, поверх - явные опции вызова."""
        options: Dict[str, Any] = {
            "retries": settings.RETRIES,
            "retry_delay": settings.RETRY_DELAY_MS,
            "timeout": settings.TIMEOUT_MS,
            "debug": settings.DEBUG,
        }
        options.update(overrides)
        return cls(**options)
