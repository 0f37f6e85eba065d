import asyncio
from typing import Awaitable, Optional, TypeVar

T = TypeVar("T")


class RequestCancelled(Exception):
    """Сигнал отмены от CancellationToken (внутренний, Executor превращает его в CancellationError)."""

    def __init__(self, reason: Optional[str] = None):
        self.reason = reason or "Request cancelled"
        super().__init__(self.reason)


class CancellationToken:
    """
    Внешний хэндл отмены запроса.
    Один токен можно передать в несколько запросов: cancel() прерывает их все.
    Отмена кооперативная: запрос в полете снимается, новые попытки не стартуют.
    """

    def __init__(self):
        self._event = asyncio.Event()
        self._reason: Optional[str] = None

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()

    @property
    def reason(self) -> Optional[str]:
        return self._reason

    def cancel(self, reason: Optional[str] = None) -> None:
        if self._event.is_set():
            return
        self._reason = reason
        self._event.set()

    def raise_if_cancelled(self) -> None:
        if self.cancelled:
            raise RequestCancelled(self._reason)

    async def wait(self) -> None:
        await self._event.wait()

    async def race(self, awaitable: Awaitable[T]) -> T:
        """
        Выполняет awaitable, пока токен не отменен.
        Если cancel() случился раньше - задача снимается и поднимается RequestCancelled.
        """
        task = asyncio.ensure_future(awaitable)
        waiter = asyncio.ensure_future(self._event.wait())
        try:
            await asyncio.wait({task, waiter}, return_when=asyncio.FIRST_COMPLETED)
        finally:
            waiter.cancel()
            if not task.done():
                task.cancel()
                # Дожидаемся фактического снятия задачи, ее исключения нам не интересны
                await asyncio.gather(task, return_exceptions=True)

        if task.cancelled():
            raise RequestCancelled(self._reason)
        return task.result()
