from typing import Any, Optional

from enhanced_fetch.models.common import ErrorDetail, ErrorType


class FetchError(Exception):
    """
    Базовый класс ошибок запроса.
    Контекст (url, method, attempt) передается при создании и дальше не меняется.
    Сама по себе ошибка считается временной: Executor выполнит Retry.
    """
    kind = ErrorType.UNKNOWN

    def __init__(
        self,
        message: str,
        *,
        url: Optional[str] = None,
        method: Optional[str] = None,
        attempt: Optional[int] = None,
        status: Optional[int] = None,
        data: Any = None,
    ):
        super().__init__(message)
        self._message = message
        self._url = url
        self._method = method
        self._attempt = attempt
        self._status = status
        self._data = data

    @property
    def message(self) -> str:
        return self._message

    @property
    def url(self) -> Optional[str]:
        return self._url

    @property
    def method(self) -> Optional[str]:
        return self._method

    @property
    def attempt(self) -> Optional[int]:
        return self._attempt

    @property
    def status(self) -> Optional[int]:
        return self._status

    @property
    def data(self) -> Any:
        return self._data

    @property
    def fatal(self) -> bool:
        """True -> ретраи прекращаются независимо от оставшегося бюджета."""
        return False

    def to_detail(self) -> ErrorDetail:
        return ErrorDetail(
            code=self.kind,
            message=self.message,
            retryable=not self.fatal,
            status=self.status,
            url=self.url,
            method=self.method,
            attempt=self.attempt,
            data=self.data,
        )

    def __repr__(self) -> str:
        return (
            f"{self.__class__.__name__}({self.message!r}, method={self.method!r}, "
            f"url={self.url!r}, attempt={self.attempt!r}, status={self.status!r})"
        )


class TransportError(FetchError):
    """
    Транспорт мертв: адрес не резолвится, соединение не устанавливается,
    прокси недоступен. Executor падает (Fail Fast).
    """
    kind = ErrorType.TRANSPORT_ERROR

    @property
    def fatal(self) -> bool:
        return True


class InvalidRequestError(TransportError):
    """Запрос невозможно собрать (кривой URL, тело не сериализуется в JSON)."""
    pass


class NetworkError(FetchError):
    """
    Временные сетевые сбои (обрыв чтения, RemoteProtocolError).
    Executor выполнит Retry.
    """
    kind = ErrorType.NETWORK_ERROR


class CancellationError(FetchError):
    """Запрос отменен снаружи (CancellationToken). Никогда не ретраится."""
    kind = ErrorType.CANCELLED

    @property
    def fatal(self) -> bool:
        return True


class RequestTimeoutError(CancellationError):
    """Попытка целиком (отправка + чтение тела) не уложилась в timeout."""
    kind = ErrorType.TIMEOUT_ERROR


class StatusRejection(FetchError):
    """
    Ответ получен, но статус не прошел validate_status.
    4xx -> ошибка клиента (Fail Fast), 5xx и прочее -> Retry.
    """
    kind = ErrorType.HTTP_STATUS

    def __init__(self, status: int, data: Any = None, **context: Any):
        super().__init__(f"Request failed with status {status}", status=status, data=data, **context)

    @property
    def fatal(self) -> bool:
        return 400 <= self.status < 500


class ResponseDecodeError(FetchError):
    """Статус успешный, но тело не декодируется в запрошенный формат."""
    kind = ErrorType.DECODE_ERROR
