from enum import Enum
from typing import Any, Optional

from pydantic import BaseModel, Field


class ErrorType(str, Enum):
    """Типы ошибок для принятия решений о ретраях"""
    TRANSPORT_ERROR = "transport_error"   # DNS, Connection Refused, кривой URL
    NETWORK_ERROR = "network_error"       # Сброс соединения, обрыв чтения
    CANCELLED = "cancelled"               # Отмена через CancellationToken
    TIMEOUT_ERROR = "timeout_error"       # Попытка не уложилась в timeout
    HTTP_STATUS = "http_status"           # Статус не прошел validate_status
    DECODE_ERROR = "decode_error"         # Тело успешного ответа не декодируется
    UNKNOWN = "unknown"


class ErrorDetail(BaseModel):
    """Структурированная ошибка (для логов и вывода в CLI)"""
    code: ErrorType
    message: str
    retryable: bool = False
    status: Optional[int] = None
    url: Optional[str] = None
    method: Optional[str] = None
    attempt: Optional[int] = None
    data: Any = Field(None, description="Тело ответа с ошибкой (JSON, текст или None)")
