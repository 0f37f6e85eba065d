import logging
from contextlib import asynccontextmanager
from typing import AsyncGenerator, Awaitable, Callable, Optional
from urllib.parse import urlparse, urlunparse

import httpx

from enhanced_fetch.config.settings import Settings, get_settings
from enhanced_fetch.services.request_builder import PreparedRequest

logger = logging.getLogger(__name__)

# Транспорт - любая корутина (PreparedRequest) -> httpx.Response с уже прочитанным телом
Transport = Callable[[PreparedRequest], Awaitable[httpx.Response]]


def mask_url(url: str) -> str:
    """Безопасная маскировка пароля в URL."""
    if not url:
        return ""
    try:
        parsed = urlparse(url)
        if parsed.password:
            # Реконструируем netloc безопасным способом
            safe_netloc = f"{parsed.username}:***@{parsed.hostname}"
            if parsed.port:
                safe_netloc += f":{parsed.port}"
            parsed = parsed._replace(netloc=safe_netloc)
        return urlunparse(parsed)
    except Exception:
        return "Invalid-URL"


class HttpTransport:
    """
    Транспорт по умолчанию на базе httpx.AsyncClient.
    Если клиент не внедрен, на каждый вызов создается свой клиент (без общего пула).
    Таймаут httpx отключен: время попытки целиком контролирует Executor.
    """

    def __init__(self, settings: Optional[Settings] = None, client: Optional[httpx.AsyncClient] = None):
        self.settings = settings or get_settings()
        self._client = client

    @asynccontextmanager
    async def client(self) -> AsyncGenerator[httpx.AsyncClient, None]:
        if self._client is not None:
            # Внешний клиент: жизненным циклом управляет вызывающий код
            yield self._client
            return

        try:
            async with httpx.AsyncClient(
                timeout=httpx.Timeout(None),
                follow_redirects=self.settings.FOLLOW_REDIRECTS,
                verify=self.settings.VERIFY_SSL,
            ) as client:
                yield client
        except Exception as e:
            logger.debug(f"HTTP request failed. Error class: {e.__class__.__name__}")
            raise

    async def __call__(self, request: PreparedRequest) -> httpx.Response:
        async with self.client() as client:
            return await client.request(
                request.method.value,
                request.url,
                headers=request.headers,
                content=request.content,
                data=request.data,
                files=request.files,
            )
