import io
import json
from dataclasses import dataclass, field, replace
from typing import Any, Dict, Mapping, Optional, Union

import httpx
from pydantic import BaseModel

from enhanced_fetch.core.exceptions import InvalidRequestError
from enhanced_fetch.models.request import FormData, HttpMethod, RequestConfig

# Тело, которое уходит в транспорт без изменений.
# Все остальное (dict, list, числа, pydantic-модели) сериализуется в JSON.
BINARY_BODY_TYPES = (bytes, bytearray, memoryview, str, io.IOBase, FormData)

# Методы, у которых тело запроса отбрасывается
BODYLESS_METHODS = (HttpMethod.GET, HttpMethod.HEAD)


@dataclass(frozen=True)
class PreparedRequest:
    """Финальный запрос: то, что реально уходит в транспорт."""
    method: HttpMethod
    url: httpx.URL
    headers: httpx.Headers = field(default_factory=httpx.Headers)
    content: Optional[Union[bytes, str, Any]] = None
    data: Optional[Dict[str, Any]] = None
    files: Optional[Dict[str, Any]] = None


class RequestBuilder:
    """
    Сборка запроса из URL и RequestConfig.
    Отвечает за query string (через httpx.URL, без склейки строк)
    и политику тела запроса (JSON / pass-through / drop).
    """

    @classmethod
    def build(
        cls,
        url: str,
        config: RequestConfig,
        default_headers: Optional[Mapping[str, str]] = None,
    ) -> PreparedRequest:
        method = config.method
        final_url = cls.build_url(url, config.query, method=method.value)

        # httpx.Headers: регистронезависимое слияние, заголовки вызова важнее дефолтных
        headers = httpx.Headers(default_headers or {})
        headers.update(config.headers)

        content, data, files = None, None, None
        body = config.body

        if body is not None and method not in BODYLESS_METHODS:
            if isinstance(body, FormData):
                data, files = dict(body.fields), dict(body.files) or None
            elif isinstance(body, io.IOBase):
                # Файл читается один раз: каждая попытка отправляет те же байты
                content = body.read()
            elif cls.is_binary_body(body):
                content = body
            else:
                content = cls._serialize_json(body, url=str(final_url), method=method.value)
                if "content-type" not in headers:
                    headers["Content-Type"] = "application/json"

        return PreparedRequest(
            method=method,
            url=final_url,
            headers=headers,
            content=content,
            data=data,
            files=files,
        )

    @classmethod
    def build_url(cls, url: str, query: Optional[Mapping[str, Any]] = None, method: str = "GET") -> httpx.URL:
        """
        Добавляет query-параметры к базовому URL.
        None-значения пропускаются, существующие параметры базового URL сохраняются.
        """
        try:
            final_url = httpx.URL(url)
        except (httpx.InvalidURL, TypeError) as e:
            raise InvalidRequestError(f"Invalid URL: {e}", url=str(url), method=method, attempt=0) from e

        if not final_url.is_absolute_url:
            raise InvalidRequestError(f"URL must be absolute: {url!r}", url=str(url), method=method, attempt=0)

        for key, value in (query or {}).items():
            if value is None:
                continue
            final_url = final_url.copy_add_param(key, value)

        return final_url

    @staticmethod
    async def buffer_stream(request: PreparedRequest) -> PreparedRequest:
        """
        Асинхронный поток байт можно прочитать только один раз.
        Буферизуем его до первой попытки, чтобы ретраи отправляли то же тело.
        """
        content = request.content
        if content is None or not hasattr(content, "__aiter__"):
            return request
        chunks = [chunk async for chunk in content]
        return replace(request, content=b"".join(
            chunk.encode("utf-8") if isinstance(chunk, str) else bytes(chunk) for chunk in chunks
        ))

    @staticmethod
    def is_binary_body(body: Any) -> bool:
        if isinstance(body, BINARY_BODY_TYPES):
            return True
        # Асинхронный поток байт; буферизуется в buffer_stream
        return hasattr(body, "__aiter__")

    @staticmethod
    def _serialize_json(body: Any, url: str, method: str) -> str:
        if isinstance(body, BaseModel):
            body = body.model_dump(mode="json")
        try:
            return json.dumps(body, ensure_ascii=False)
        except (TypeError, ValueError) as e:
            raise InvalidRequestError(
                f"Body is not JSON serializable: {e}", url=url, method=method, attempt=0
            ) from e
