import logging
from typing import Any, Union

import httpx

from enhanced_fetch.models.request import ResponseType
from enhanced_fetch.models.response import Blob

logger = logging.getLogger(__name__)


class ResponseClassifier:
    """
    Декодирование тела ответа.
    Успешный ответ -> формат по Content-Type (auto) или по явному response_type.
    Ответ с ошибкой -> best-effort извлечение диагностики, без исключений наружу.
    """

    @staticmethod
    def parse_success(response: httpx.Response, response_type: Union[ResponseType, str] = ResponseType.AUTO) -> Any:
        """
        Приоритет (первое совпадение): json -> text -> octet-stream/blob -> сырые байты.
        Ошибки декодирования (JSONDecodeError) пробрасываются: Executor решит, что с ними делать.
        """
        response_type = ResponseType(response_type)
        if response_type == ResponseType.AUTO:
            kind = response.headers.get("Content-Type", "").lower()
        else:
            kind = response_type.value

        if "json" in kind:
            # Пустое тело (HEAD, 204) -> None вместо JSONDecodeError
            if not response.content:
                return None
            return response.json()

        if "text" in kind:
            return response.text

        if "octet-stream" in kind or response_type == ResponseType.BLOB:
            return Blob(
                content=response.content,
                content_type=response.headers.get("Content-Type", "application/octet-stream"),
            )

        return response.content

    @staticmethod
    def parse_failure(response: httpx.Response) -> Any:
        """
        Полезная нагрузка ответа с ошибкой: JSON -> текст -> None.
        Каждая стадия best-effort, исключения глушатся.
        """
        try:
            if not response.content:
                return None
        except Exception:
            return None

        # 1. JSON
        try:
            return response.json()
        except Exception:
            pass

        # 2. Текст (строго по заявленной кодировке, битые байты -> следующая стадия)
        try:
            encoding = response.charset_encoding or "utf-8"
            return response.content.decode(encoding)
        except Exception:
            pass

        # 3. Placeholder
        logger.debug(f"Failed to decode error payload ({len(response.content)} bytes)")
        return None
