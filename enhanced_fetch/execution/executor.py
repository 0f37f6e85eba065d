import asyncio
import json
import logging
from typing import Any, Awaitable, Callable, Optional

import httpx
from tenacity import (
    AsyncRetrying,
    stop_after_attempt,
    wait_exponential,
    retry_if_exception,
    before_sleep_log
)

from enhanced_fetch.config.headers import get_headers, redact_headers
from enhanced_fetch.config.settings import Settings, get_settings
from enhanced_fetch.core.exceptions import (
    FetchError,
    TransportError,
    NetworkError,
    CancellationError,
    RequestTimeoutError,
    StatusRejection,
    ResponseDecodeError
)
from enhanced_fetch.execution.cancellation import RequestCancelled
from enhanced_fetch.execution.http_client import HttpTransport, Transport, mask_url
from enhanced_fetch.models.request import RequestConfig
from enhanced_fetch.parsing.response import ResponseClassifier
from enhanced_fetch.services.request_builder import PreparedRequest, RequestBuilder

logger = logging.getLogger(__name__)

# Ошибки установки соединения и сборки запроса. Ретраить бесполезно: адрес не оживет.
_ADDRESSING_ERRORS = (
    httpx.ConnectError,
    httpx.ProxyError,
    httpx.UnsupportedProtocol,
    httpx.LocalProtocolError,
    httpx.InvalidURL,
)


def _classify_error(e: Exception, *, url: str, method: str, attempt: int) -> FetchError:
    """
    Классификатор ошибок. Определяет стратегию Retry vs Fail Fast.
    Контекст запроса закладывается в ошибку сразу при создании.
    """
    context = {"url": url, "method": method, "attempt": attempt}

    # 0. Уже классифицировано (StatusRejection из попытки)
    if isinstance(e, FetchError):
        return e

    # 1. Отмена через токен -> Fatal
    if isinstance(e, RequestCancelled):
        return CancellationError(e.reason, **context)

    # 2. Таймаут попытки (наш wait_for или таймаут самого транспорта) -> Fatal
    if isinstance(e, (asyncio.TimeoutError, httpx.TimeoutException)):
        return RequestTimeoutError(f"Request timed out: {e}" if str(e) else "Request timed out", **context)

    # 3. Ошибки подключения / адресации -> Fatal
    if isinstance(e, _ADDRESSING_ERRORS):
        return TransportError(f"Connection Failed: {e}", **context)

    # 4. Прочие сетевые ошибки (ReadError, RemoteProtocolError, etc) -> Retry
    if isinstance(e, httpx.TransportError):
        return NetworkError(f"Network Glitch: {e}", **context)

    # 5. Тело успешного ответа не декодируется -> Retry
    if isinstance(e, (json.JSONDecodeError, UnicodeDecodeError)):
        return ResponseDecodeError(f"Failed to decode response body: {e}", **context)

    return FetchError(f"Unknown: {e.__class__.__name__}: {e}", **context)


def is_fatal(error: BaseException) -> bool:
    """Ошибки вне иерархии FetchError (например, CancelledError задачи) тоже не ретраятся."""
    if not isinstance(error, FetchError):
        return True
    return error.fatal


class RequestExecutor:
    """
    Выполняет один логический запрос с политикой Resilience:
    до retries + 1 попыток, пауза retry_delay * 2^(N-1) после неудачной попытки N,
    немедленная остановка на фатальных ошибках.
    Состояния между вызовами нет: параллельные execute() не мешают друг другу.
    """

    def __init__(
        self,
        transport: Optional[Transport] = None,
        settings: Optional[Settings] = None,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ):
        self.settings = settings or get_settings()
        self.transport = transport or HttpTransport(self.settings)
        self._sleep = sleep

    async def execute(self, url: str, config: Optional[RequestConfig] = None) -> Any:
        """
        Выполняет запрос и возвращает декодированное тело.
        Наружу уходит только терминальная ошибка (FetchError с url/method/attempt).
        """
        config = config or RequestConfig.from_settings(self.settings)
        request = RequestBuilder.build(url, config, default_headers=get_headers(self.settings))
        request = await RequestBuilder.buffer_stream(request)
        max_attempts = config.retries + 1

        retrier = AsyncRetrying(
            retry=retry_if_exception(lambda e: not is_fatal(e)),
            stop=stop_after_attempt(max_attempts),
            wait=wait_exponential(multiplier=config.retry_delay / 1000, exp_base=2),
            sleep=self._sleep,
            before_sleep=before_sleep_log(logger, logging.WARNING) if config.debug else None,
            reraise=True
        )

        async for attempt in retrier:
            with attempt:
                return await self._attempt(request, config, attempt.retry_state.attempt_number, max_attempts)

    async def _attempt(self, request: PreparedRequest, config: RequestConfig, number: int, max_attempts: int) -> Any:
        url = str(request.url)
        method = request.method.value

        if config.debug:
            logger.debug(f"[Fetch] Attempt {number}/{max_attempts} {self._describe(request, config)}")

        try:
            return await self._guarded(request, config, number)
        except Exception as e:
            # asyncio.CancelledError (BaseException) сюда не попадает и уходит вызывающему коду
            error = _classify_error(e, url=url, method=method, attempt=number)
            if config.debug:
                logger.error(f"[Fetch Error] Attempt {number}: {error!r}")
            if error is e:
                raise
            raise error from e

    async def _guarded(self, request: PreparedRequest, config: RequestConfig, number: int) -> Any:
        """
        Один слот отмены на попытку: внешний токен важнее таймаута.
        Таймаут покрывает попытку целиком, включая чтение и декодирование тела.
        """
        token = config.cancel_token
        if token is not None:
            token.raise_if_cancelled()
            return await token.race(self._round_trip(request, config, number))

        if config.timeout:
            return await asyncio.wait_for(self._round_trip(request, config, number), config.timeout / 1000)

        return await self._round_trip(request, config, number)

    async def _round_trip(self, request: PreparedRequest, config: RequestConfig, number: int) -> Any:
        response = await self.transport(request)

        if not config.validate_status(response.status_code):
            raise StatusRejection(
                response.status_code,
                ResponseClassifier.parse_failure(response),
                url=str(request.url),
                method=request.method.value,
                attempt=number,
            )

        return ResponseClassifier.parse_success(response, config.response_type)

    @staticmethod
    def _describe(request: PreparedRequest, config: RequestConfig) -> dict:
        return {
            "url": mask_url(str(request.url)),
            "method": request.method.value,
            "headers": redact_headers(dict(request.headers.items())),
            "timeout": config.timeout,
            "cancellable": config.cancel_token is not None,
        }
