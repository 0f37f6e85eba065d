from types import SimpleNamespace
from typing import Callable, List

import httpx
import pytest
import pytest_asyncio

from enhanced_fetch.config.settings import Settings
from enhanced_fetch.execution.executor import RequestExecutor
from enhanced_fetch.execution.http_client import HttpTransport


class RecordingSleep:
    """Вместо asyncio.sleep: запоминает паузы backoff и не ждет."""

    def __init__(self):
        self.delays: List[float] = []

    async def __call__(self, seconds: float) -> None:
        self.delays.append(seconds)


class Recorder:
    """Оборачивает handler MockTransport и считает попытки."""

    def __init__(self, handler: Callable):
        self.handler = handler
        self.requests: List[httpx.Request] = []

    def __call__(self, request: httpx.Request):
        self.requests.append(request)
        return self.handler(request)

    @property
    def call_count(self) -> int:
        return len(self.requests)


@pytest.fixture
def settings() -> Settings:
    return Settings(RETRIES=3, RETRY_DELAY_MS=1000, TIMEOUT_MS=8000, DEBUG=False, USER_AGENT="test-agent/1.0")


@pytest.fixture
def sleep() -> RecordingSleep:
    return RecordingSleep()


@pytest_asyncio.fixture
async def make_executor(settings, sleep):
    """make_executor(handler) -> (executor, recorder); клиенты закрываются после теста"""
    clients: List[httpx.AsyncClient] = []

    def _make(handler: Callable):
        recorder = Recorder(handler)
        client = httpx.AsyncClient(transport=httpx.MockTransport(recorder))
        clients.append(client)
        executor = RequestExecutor(HttpTransport(settings, client=client), settings=settings, sleep=sleep)
        return executor, recorder

    yield _make

    for client in clients:
        await client.aclose()


def respond(status: int, **kwargs):
    """Шаг handler-а: свежий httpx.Response на каждую попытку."""

    def step(request: httpx.Request) -> httpx.Response:
        return httpx.Response(status, **kwargs)

    return step


def fail(exc_type, message: str = "boom"):
    """Шаг handler-а: транспортная ошибка httpx."""

    def step(request: httpx.Request) -> httpx.Response:
        raise exc_type(message, request=request)

    return step


def sequence(*steps):
    """Handler, который по очереди выполняет шаги; последний повторяется бесконечно."""
    queue = list(steps)

    def handler(request: httpx.Request):
        step = queue.pop(0) if len(queue) > 1 else queue[0]
        return step(request)

    return handler


@pytest.fixture
def steps():
    """Доступ к respond/fail/sequence из тестов без импорта conftest."""
    return SimpleNamespace(respond=respond, fail=fail, sequence=sequence)
