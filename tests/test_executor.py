import asyncio
import io
import logging

import httpx
import pytest

from enhanced_fetch.core.exceptions import (
    CancellationError,
    FetchError,
    InvalidRequestError,
    NetworkError,
    RequestTimeoutError,
    ResponseDecodeError,
    StatusRejection,
    TransportError,
)
from enhanced_fetch.execution.cancellation import CancellationToken
from enhanced_fetch.models.request import RequestConfig

URL = "https://api.example.com/items"


def _config(**kwargs) -> RequestConfig:
    kwargs.setdefault("timeout", 0)
    return RequestConfig(**kwargs)


class TestRetryBudget:
    """Количество попыток и расписание backoff."""

    @pytest.mark.asyncio
    @pytest.mark.parametrize("retries", [0, 1, 3])
    async def test_retryable_error_attempted_retries_plus_one(self, make_executor, steps, sleep, retries):
        executor, recorder = make_executor(steps.sequence(steps.respond(503)))

        with pytest.raises(StatusRejection) as exc_info:
            await executor.execute(URL, _config(retries=retries))

        assert recorder.call_count == retries + 1
        assert exc_info.value.attempt == retries + 1
        assert len(sleep.delays) == retries

    @pytest.mark.asyncio
    async def test_backoff_doubles_after_each_failure(self, make_executor, steps, sleep):
        executor, _ = make_executor(steps.sequence(steps.fail(httpx.ReadError)))

        with pytest.raises(NetworkError):
            await executor.execute(URL, _config(retries=3, retry_delay=100))

        # retry_delay * 2^(N-1), в секундах
        assert sleep.delays == pytest.approx([0.1, 0.2, 0.4])

    @pytest.mark.asyncio
    async def test_default_delay_is_one_second_base(self, make_executor, steps, sleep):
        executor, _ = make_executor(steps.sequence(steps.respond(500)))

        with pytest.raises(StatusRejection):
            await executor.execute(URL, _config(retries=2))

        assert sleep.delays == pytest.approx([1.0, 2.0])

    @pytest.mark.asyncio
    async def test_server_error_retried_until_success(self, make_executor, steps, sleep):
        executor, recorder = make_executor(steps.sequence(
            steps.respond(500),
            steps.respond(502),
            steps.respond(200, json={"ok": True}),
        ))

        result = await executor.execute(URL, _config(retries=3))

        assert result == {"ok": True}
        assert recorder.call_count == 3
        assert len(sleep.delays) == 2

    @pytest.mark.asyncio
    async def test_network_glitch_retried(self, make_executor, steps):
        executor, recorder = make_executor(steps.sequence(
            steps.fail(httpx.ReadError, "Connection reset"),
            steps.fail(httpx.RemoteProtocolError, "Server disconnected"),
            steps.respond(200, text="done"),
        ))

        result = await executor.execute(URL, _config(retries=3))

        assert result == "done"
        assert recorder.call_count == 3

    @pytest.mark.asyncio
    async def test_undecodable_success_body_is_retried(self, make_executor, steps):
        executor, recorder = make_executor(steps.sequence(
            steps.respond(200, content=b"{broken", headers={"Content-Type": "application/json"}),
        ))

        with pytest.raises(ResponseDecodeError):
            await executor.execute(URL, _config(retries=1))

        assert recorder.call_count == 2


class TestFatalErrors:
    """Ошибки, которые останавливают ретраи сразу."""

    @pytest.mark.asyncio
    async def test_not_found_fails_on_first_attempt(self, make_executor, steps, sleep):
        executor, recorder = make_executor(steps.sequence(steps.respond(404, json={"detail": "nope"})))

        with pytest.raises(StatusRejection) as exc_info:
            await executor.execute(URL, _config(retries=3))

        error = exc_info.value
        assert recorder.call_count == 1
        assert sleep.delays == []
        assert error.status == 404
        assert error.data == {"detail": "nope"}
        assert error.attempt == 1
        assert error.message == "Request failed with status 404"

    @pytest.mark.asyncio
    async def test_connect_error_is_fatal(self, make_executor, steps):
        executor, recorder = make_executor(steps.sequence(steps.fail(httpx.ConnectError, "Name or service not known")))

        with pytest.raises(TransportError) as exc_info:
            await executor.execute(URL, _config(retries=3))

        assert recorder.call_count == 1
        assert exc_info.value.fatal
        assert isinstance(exc_info.value.__cause__, httpx.ConnectError)

    @pytest.mark.asyncio
    async def test_invalid_url_fails_before_any_attempt(self, make_executor, steps):
        executor, recorder = make_executor(steps.sequence(steps.respond(200)))

        with pytest.raises(InvalidRequestError) as exc_info:
            await executor.execute("/relative/path", _config(retries=3))

        assert recorder.call_count == 0
        assert exc_info.value.attempt == 0

    @pytest.mark.asyncio
    async def test_timeout_stops_retries(self, make_executor, sleep):
        async def slow(request):
            await asyncio.sleep(1)
            return httpx.Response(200)

        executor, recorder = make_executor(slow)

        with pytest.raises(RequestTimeoutError) as exc_info:
            await executor.execute(URL, RequestConfig(retries=3, timeout=20))

        assert isinstance(exc_info.value, CancellationError)
        assert recorder.call_count == 1
        assert sleep.delays == []
        assert exc_info.value.attempt == 1

    @pytest.mark.asyncio
    async def test_cancel_token_interrupts_in_flight_request(self, make_executor):
        token = CancellationToken()

        async def slow(request):
            await asyncio.sleep(5)
            return httpx.Response(200)

        executor, recorder = make_executor(slow)
        asyncio.get_running_loop().call_later(0.02, token.cancel, "user abort")

        with pytest.raises(CancellationError) as exc_info:
            await executor.execute(URL, RequestConfig(retries=3, cancel_token=token))

        assert not isinstance(exc_info.value, RequestTimeoutError)
        assert exc_info.value.message == "user abort"
        assert recorder.call_count == 1

    @pytest.mark.asyncio
    async def test_already_cancelled_token_makes_no_attempt(self, make_executor, steps):
        token = CancellationToken()
        token.cancel()
        executor, recorder = make_executor(steps.sequence(steps.respond(200)))

        with pytest.raises(CancellationError) as exc_info:
            await executor.execute(URL, RequestConfig(retries=3, cancel_token=token))

        assert recorder.call_count == 0
        assert exc_info.value.attempt == 1

    @pytest.mark.asyncio
    async def test_token_takes_priority_over_timeout(self, make_executor):
        token = CancellationToken()

        async def slowish(request):
            await asyncio.sleep(0.05)
            return httpx.Response(200, json={"late": True})

        executor, _ = make_executor(slowish)

        # timeout=1мс проигнорирован, т.к. слот отмены занят токеном
        result = await executor.execute(URL, RequestConfig(timeout=1, cancel_token=token))

        assert result == {"late": True}

    @pytest.mark.asyncio
    async def test_caller_task_cancellation_propagates(self, make_executor):
        async def slow(request):
            await asyncio.sleep(5)
            return httpx.Response(200)

        executor, recorder = make_executor(slow)
        task = asyncio.create_task(executor.execute(URL, _config(retries=3)))
        await asyncio.sleep(0.02)
        task.cancel()

        with pytest.raises(asyncio.CancelledError):
            await task

        assert recorder.call_count == 1


class TestErrorContext:

    @pytest.mark.asyncio
    async def test_error_carries_final_url_and_normalized_method(self, make_executor, steps):
        executor, _ = make_executor(steps.sequence(steps.respond(422, text="bad payload")))

        with pytest.raises(StatusRejection) as exc_info:
            await executor.execute(URL, _config(method="post", body={"a": 1}, query={"q": "a&b", "skip": None}))

        error = exc_info.value
        assert error.method == "POST"
        assert error.url.startswith(URL + "?")
        assert "q=a%26b" in error.url
        assert "skip" not in error.url
        assert error.data == "bad payload"

        detail = error.to_detail()
        assert detail.status == 422
        assert detail.retryable is False
        assert detail.attempt == 1

    @pytest.mark.asyncio
    async def test_custom_status_validator(self, make_executor, steps):
        executor, _ = make_executor(steps.sequence(steps.respond(404, json={"found": False})))

        result = await executor.execute(URL, _config(validate_status=lambda status: status < 500))

        assert result == {"found": False}

    @pytest.mark.asyncio
    async def test_validator_rejecting_success_status(self, make_executor, steps):
        executor, recorder = make_executor(steps.sequence(steps.respond(204)))

        with pytest.raises(StatusRejection) as exc_info:
            await executor.execute(URL, _config(retries=1, validate_status=lambda status: status == 200))

        # 204 вне [400, 500) -> ретраится
        assert recorder.call_count == 2
        assert exc_info.value.data is None

    @pytest.mark.asyncio
    async def test_unknown_error_is_wrapped_and_retried(self, make_executor):
        calls = []

        def handler(request):
            calls.append(request)
            raise RuntimeError("transport exploded")

        executor, _ = make_executor(handler)

        with pytest.raises(FetchError) as exc_info:
            await executor.execute(URL, _config(retries=2))

        assert type(exc_info.value) is FetchError
        assert len(calls) == 3
        assert "transport exploded" in exc_info.value.message


class TestRequestOnTheWire:

    @pytest.mark.asyncio
    async def test_post_sends_json_body(self, make_executor, steps):
        executor, recorder = make_executor(steps.sequence(steps.respond(201, json={"id": 7})))

        result = await executor.execute(URL, _config(method="post", body={"name": "Ann"}))

        sent = recorder.requests[0]
        assert result == {"id": 7}
        assert sent.method == "POST"
        assert sent.headers["content-type"] == "application/json"
        assert sent.content == b'{"name": "Ann"}'
        assert sent.headers["user-agent"] == "test-agent/1.0"

    @pytest.mark.asyncio
    async def test_get_drops_body(self, make_executor, steps):
        executor, recorder = make_executor(steps.sequence(steps.respond(200, text="ok")))

        await executor.execute(URL, _config(method="GET", body={"name": "Ann"}))

        sent = recorder.requests[0]
        assert sent.content == b""
        assert "content-type" not in sent.headers

    @pytest.mark.asyncio
    async def test_retried_post_resends_file_body(self, make_executor, steps):
        executor, recorder = make_executor(steps.sequence(steps.respond(503), steps.respond(200, text="ok")))

        result = await executor.execute(URL, _config(method="POST", body=io.BytesIO(b"payload"), retries=1))

        assert result == "ok"
        assert [request.read() for request in recorder.requests] == [b"payload", b"payload"]

    @pytest.mark.asyncio
    async def test_retried_post_resends_stream_body(self, make_executor, steps):
        async def upload():
            yield b"pay"
            yield b"load"

        executor, recorder = make_executor(steps.sequence(steps.respond(503), steps.respond(200, text="ok")))

        result = await executor.execute(URL, _config(method="POST", body=upload(), retries=1))

        assert result == "ok"
        assert [request.read() for request in recorder.requests] == [b"payload", b"payload"]


class TestConcurrency:

    @pytest.mark.asyncio
    async def test_parallel_calls_do_not_share_state(self, make_executor):
        def handler(request):
            if request.url.path == "/missing":
                return httpx.Response(404)
            if request.url.path == "/flaky":
                return httpx.Response(500)
            return httpx.Response(200, json={"path": request.url.path})

        executor, recorder = make_executor(handler)

        results = await asyncio.gather(
            executor.execute("https://api.example.com/missing", _config(retries=3)),
            executor.execute("https://api.example.com/flaky", _config(retries=2)),
            executor.execute("https://api.example.com/ok", _config(retries=3)),
            return_exceptions=True,
        )

        missing, flaky, ok = results
        assert isinstance(missing, StatusRejection) and missing.attempt == 1
        assert isinstance(flaky, StatusRejection) and flaky.attempt == 3
        assert ok == {"path": "/ok"}
        assert recorder.call_count == 1 + 3 + 1


class TestDebugLogging:

    @pytest.mark.asyncio
    async def test_debug_logs_attempts_and_failures(self, make_executor, steps, caplog):
        caplog.set_level(logging.DEBUG, logger="enhanced_fetch")
        executor, _ = make_executor(steps.sequence(steps.respond(500), steps.respond(200, json=[])))

        await executor.execute(URL, _config(retries=1, debug=True, headers={"Authorization": "Bearer secret"}))

        assert "[Fetch] Attempt 1/2" in caplog.text
        assert "[Fetch] Attempt 2/2" in caplog.text
        assert "[Fetch Error] Attempt 1" in caplog.text
        assert "Retrying" in caplog.text
        assert "secret" not in caplog.text

    @pytest.mark.asyncio
    async def test_no_logs_without_debug(self, make_executor, steps, caplog):
        caplog.set_level(logging.DEBUG, logger="enhanced_fetch.execution.executor")
        executor, _ = make_executor(steps.sequence(steps.respond(500), steps.respond(200, json=[])))

        await executor.execute(URL, _config(retries=1))

        assert "[Fetch]" not in caplog.text
