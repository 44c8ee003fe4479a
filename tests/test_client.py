import asyncio
import json

import httpx
import pytest
import respx
from httpx import Response
from trello_mcp.core.client import (
    MissingCredentialsError,
    RateLimitInfo,
    RetryConfig,
    TrelloClient,
    TrelloCredentials,
    TrelloRequest,
    parse_retry_after,
)
from trello_mcp.core.errors import ErrorCode, TrelloError

BASE = "https://api.trello.com/1"
BOARD_ID = "5f1b2c3d4e5f6a7b8c9d0e1f"

RATE_HEADERS = {
    "x-rate-limit-api-key-limit": "300",
    "x-rate-limit-api-key-remaining": "299",
    "x-rate-limit-api-key-reset": "1700000000",
}


class RecordingRecorder:
    def __init__(self):
        self.records = []

    def record_attempt(self, record):
        self.records.append(record)


class ExplodingRecorder:
    def record_attempt(self, record):
        raise RuntimeError("sink down")


@pytest.fixture
def sleeps():
    return []


@pytest.fixture
def recorder():
    return RecordingRecorder()


@pytest.fixture
def client(sleeps, recorder):
    async def fake_sleep(seconds):
        sleeps.append(seconds)

    return TrelloClient(
        TrelloCredentials(api_key="mock-key", token="mock-token"),
        sleep=fake_sleep,
        recorder=recorder,
    )


@pytest.mark.asyncio
@respx.mock
async def test_get_success_returns_data_and_rate_limit(client):
    route = respx.get(f"{BASE}/members/me/boards").mock(
        return_value=Response(200, json=[{"id": BOARD_ID}], headers=RATE_HEADERS)
    )

    response = await client.get("/members/me/boards")

    assert route.call_count == 1
    assert response.data == [{"id": BOARD_ID}]
    assert response.rate_limit == RateLimitInfo(
        limit=300, remaining=299, reset_time=1700000000
    )
    assert response.rate_limit_dict() == {
        "limit": 300,
        "remaining": 299,
        "reset_time": 1700000000,
    }


@pytest.mark.asyncio
@respx.mock
async def test_missing_rate_limit_header_gives_none(client):
    respx.get(f"{BASE}/boards/{BOARD_ID}").mock(
        return_value=Response(200, json={"id": BOARD_ID})
    )

    response = await client.get(f"/boards/{BOARD_ID}")

    assert response.rate_limit is None
    assert response.rate_limit_dict() is None


@pytest.mark.asyncio
@respx.mock
async def test_credentials_sent_as_query_params(client):
    route = respx.get(f"{BASE}/boards/{BOARD_ID}/lists").mock(
        return_value=Response(200, json=[])
    )

    await client.get(f"/boards/{BOARD_ID}/lists", params={"filter": "open"})

    request = route.calls[0].request
    assert request.url.params["key"] == "mock-key"
    assert request.url.params["token"] == "mock-token"
    assert request.url.params["filter"] == "open"
    assert request.headers["Content-Type"] == "application/json"
    assert request.headers["User-Agent"].startswith("trello-mcp/")
    assert "Authorization" not in request.headers


@pytest.mark.asyncio
@respx.mock
async def test_none_params_are_omitted(client):
    route = respx.get(f"{BASE}/search").mock(return_value=Response(200, json={}))

    await client.get("/search", params={"query": "q", "idBoards": None})

    params = route.calls[0].request.url.params
    assert params["query"] == "q"
    assert "idBoards" not in params


def test_reserved_params_rejected():
    with pytest.raises(ValueError, match="Reserved"):
        TrelloRequest(path="/boards", params={"token": "evil"})


def test_request_method_and_path_validated():
    assert TrelloRequest(path="/boards", method="get").method == "GET"
    with pytest.raises(ValueError):
        TrelloRequest(path="/boards", method="PATCH")
    with pytest.raises(ValueError):
        TrelloRequest(path="boards")


def test_credentials_required_and_masked():
    with pytest.raises(MissingCredentialsError):
        TrelloCredentials(api_key="", token="t")
    with pytest.raises(MissingCredentialsError):
        TrelloCredentials(api_key="k", token="  ")
    creds = TrelloCredentials(api_key="secret-key", token="secret-token")
    assert "secret" not in repr(creds)


@pytest.mark.parametrize(
    "status,code",
    [
        (401, ErrorCode.INVALID_CREDENTIALS),
        (403, ErrorCode.INSUFFICIENT_PERMISSIONS),
        (404, ErrorCode.NOT_FOUND),
        (400, ErrorCode.API_ERROR),
        (422, ErrorCode.API_ERROR),
    ],
)
@pytest.mark.asyncio
@respx.mock
async def test_client_errors_fail_on_first_attempt(client, sleeps, status, code):
    route = respx.get(f"{BASE}/cards/{BOARD_ID}").mock(
        return_value=Response(status, json={"message": "nope"})
    )

    with pytest.raises(TrelloError) as exc:
        await client.get(f"/cards/{BOARD_ID}")

    assert route.call_count == 1
    assert sleeps == []
    assert exc.value.code == code
    assert exc.value.status == status
    assert "nope" in exc.value.detail


@pytest.mark.asyncio
@respx.mock
async def test_api_error_message_carries_status(client):
    respx.get(f"{BASE}/boards").mock(return_value=Response(422, text="bad input"))

    with pytest.raises(TrelloError) as exc:
        await client.get("/boards")

    assert exc.value.message == "HTTP 422 error"
    assert exc.value.detail.startswith("422 - ")
    assert exc.value.detail.endswith(": bad input")


@pytest.mark.asyncio
@respx.mock
async def test_server_errors_exhaust_attempts_with_backoff(client, sleeps, recorder):
    route = respx.get(f"{BASE}/boards").mock(
        return_value=Response(503, json={"message": "Service Unavailable"})
    )

    with pytest.raises(TrelloError) as exc:
        await client.get("/boards")

    assert route.call_count == 3
    assert sleeps == [1.0, 2.0]
    assert exc.value.code == ErrorCode.SERVER_ERROR
    assert exc.value.status == 503
    assert [r.attempt for r in recorder.records] == [1, 2, 3]
    assert {r.outcome for r in recorder.records} == {"SERVER_ERROR"}


@pytest.mark.asyncio
@respx.mock
async def test_server_error_then_success(client, sleeps):
    route = respx.get(f"{BASE}/boards").mock(
        side_effect=[
            Response(500),
            Response(200, json={"ok": True}),
        ]
    )

    response = await client.get("/boards")

    assert response.data == {"ok": True}
    assert route.call_count == 2
    assert sleeps == [1.0]


@pytest.mark.asyncio
@respx.mock
async def test_timeouts_are_retried(client, sleeps):
    route = respx.get(f"{BASE}/boards").mock(
        side_effect=[
            httpx.ConnectTimeout("slow"),
            httpx.ReadTimeout("slower"),
            Response(200, json=[]),
        ]
    )

    response = await client.get("/boards")

    assert response.data == []
    assert route.call_count == 3
    assert sleeps == [1.0, 2.0]


@pytest.mark.asyncio
@respx.mock
async def test_network_error_after_retries(client, sleeps):
    route = respx.get(f"{BASE}/boards").mock(
        side_effect=httpx.ConnectError("connection refused")
    )

    with pytest.raises(TrelloError) as exc:
        await client.get("/boards")

    assert route.call_count == 3
    assert exc.value.code == ErrorCode.NETWORK_ERROR
    assert exc.value.status is None
    assert isinstance(exc.value.__cause__, httpx.ConnectError)


@pytest.mark.asyncio
async def test_attempt_timeout_enforced(sleeps):
    class HangingHttp:
        async def request(self, method, url, **kwargs):
            await asyncio.sleep(5)

    async def fake_sleep(seconds):
        sleeps.append(seconds)

    client = TrelloClient(
        TrelloCredentials(api_key="k", token="t"),
        timeout_seconds=0.05,
        retry=RetryConfig(max_attempts=1),
        http=HangingHttp(),
        sleep=fake_sleep,
        recorder=RecordingRecorder(),
    )

    with pytest.raises(TrelloError) as exc:
        await client.get("/boards")

    assert exc.value.code == ErrorCode.TIMEOUT_ERROR
    assert sleeps == []


@pytest.mark.asyncio
@respx.mock
async def test_rate_limit_waits_retry_after_then_succeeds(client, sleeps):
    route = respx.get(f"{BASE}/boards").mock(
        side_effect=[
            Response(429, headers={"Retry-After": "2"}),
            Response(200, json=[], headers=RATE_HEADERS),
        ]
    )

    response = await client.get("/boards")

    assert route.call_count == 2
    assert sleeps == [2.0]
    assert response.rate_limit.remaining == 299


@pytest.mark.asyncio
@respx.mock
async def test_rate_limit_without_header_uses_default_wait(client, sleeps):
    respx.get(f"{BASE}/boards").mock(
        side_effect=[Response(429), Response(200, json=[])]
    )

    await client.get("/boards")

    assert sleeps == [60.0]


@pytest.mark.asyncio
@respx.mock
async def test_rate_limits_do_not_consume_attempts(client, sleeps):
    route = respx.get(f"{BASE}/boards").mock(
        side_effect=[Response(429, headers={"Retry-After": "1"}) for _ in range(5)]
        + [Response(500), Response(500), Response(200, json={"ok": 1})]
    )

    response = await client.get("/boards")

    assert response.data == {"ok": 1}
    assert route.call_count == 8
    assert sleeps == [1.0] * 5 + [1.0, 2.0]


@pytest.mark.asyncio
@respx.mock
async def test_rate_limit_wait_ceiling_raises(sleeps, recorder):
    async def fake_sleep(seconds):
        sleeps.append(seconds)

    client = TrelloClient(
        TrelloCredentials(api_key="k", token="t"),
        retry=RetryConfig(max_rate_limit_wait_seconds=5),
        sleep=fake_sleep,
        recorder=recorder,
    )
    route = respx.get(f"{BASE}/boards").mock(
        return_value=Response(429, headers={"Retry-After": "3"})
    )

    with pytest.raises(TrelloError) as exc:
        await client.get("/boards")

    assert exc.value.code == ErrorCode.RATE_LIMIT_EXCEEDED
    assert exc.value.status == 429
    assert route.call_count == 2
    assert sleeps == [3.0]


@pytest.mark.asyncio
@respx.mock
async def test_non_json_success_is_terminal(client, sleeps):
    route = respx.get(f"{BASE}/boards").mock(
        return_value=Response(200, text="<html>Not JSON</html>")
    )

    with pytest.raises(TrelloError) as exc:
        await client.get("/boards")

    assert route.call_count == 1
    assert exc.value.code == ErrorCode.UNKNOWN_ERROR
    assert "Expected JSON" in exc.value.detail
    # credentials must not leak into the error
    assert "mock-token" not in exc.value.detail


@pytest.mark.asyncio
@respx.mock
async def test_empty_body_returns_none(client):
    respx.delete(f"{BASE}/cards/{BOARD_ID}").mock(return_value=Response(200))

    response = await client.delete_card(BOARD_ID)

    assert response.data is None


@pytest.mark.asyncio
@respx.mock
async def test_post_sends_json_body(client):
    route = respx.post(f"{BASE}/cards").mock(
        return_value=Response(200, json={"id": BOARD_ID, "name": "Task"})
    )

    await client.create_card({"name": "Task", "idList": BOARD_ID})

    assert json.loads(route.calls[0].request.content) == {
        "name": "Task",
        "idList": BOARD_ID,
    }


@pytest.mark.asyncio
@respx.mock
async def test_recorder_failure_does_not_break_call(caplog):
    respx.get(f"{BASE}/boards").mock(return_value=Response(200, json=[]))
    client = TrelloClient(
        TrelloCredentials(api_key="k", token="t"), recorder=ExplodingRecorder()
    )

    response = await client.get("/boards")

    assert response.data == []
    assert any(r.getMessage() == "trello.recorder_failed" for r in caplog.records)


@pytest.mark.asyncio
@respx.mock
async def test_recorder_sees_operation_and_rate_limit(client, recorder):
    respx.get(f"{BASE}/boards/{BOARD_ID}").mock(
        return_value=Response(200, json={"id": BOARD_ID}, headers=RATE_HEADERS)
    )

    await client.get_board(BOARD_ID)

    (record,) = recorder.records
    assert record.operation == f"Get board {BOARD_ID}"
    assert record.method == "GET"
    assert record.endpoint == f"/boards/{BOARD_ID}"
    assert record.status == 200
    assert record.outcome == "success"
    assert record.rate_limit.limit == 300
    assert record.duration_ms >= 0


@pytest.mark.asyncio
@respx.mock
async def test_with_credentials_overrides_per_call(client):
    route = respx.get(f"{BASE}/boards").mock(return_value=Response(200, json=[]))

    other = client.with_credentials(token="other-token")
    await other.get("/boards")

    params = route.calls[0].request.url.params
    assert params["key"] == "mock-key"
    assert params["token"] == "other-token"
    assert client.with_credentials() is client
    assert other.retry is client.retry


@pytest.mark.asyncio
@respx.mock
async def test_search_encodes_query_once(client):
    route = respx.get(f"{BASE}/search").mock(return_value=Response(200, json={}))

    await client.search("bug fix & more", model_types=["cards"], cards_limit=5)

    request = route.calls[0].request
    assert request.url.params["query"] == "bug fix & more"
    assert request.url.params["modelTypes"] == "cards"
    assert request.url.params["cards_limit"] == "5"
    assert "%25" not in str(request.url)


def test_backoff_delay_is_capped():
    retry = RetryConfig(base_delay_seconds=1, max_delay_seconds=10)
    assert [retry.backoff_delay(n) for n in range(1, 6)] == [1, 2, 4, 8, 10]


def test_backoff_delay_large_attempt_stays_capped():
    retry = RetryConfig(base_delay_seconds=1, max_delay_seconds=10)
    assert retry.backoff_delay(1025) == 10.0
    assert retry.backoff_delay(2000) == 10.0


@pytest.mark.asyncio
@respx.mock
async def test_many_attempts_end_in_server_error(sleeps):
    async def fake_sleep(seconds):
        sleeps.append(seconds)

    client = TrelloClient(
        TrelloCredentials(api_key="k", token="t"),
        retry=RetryConfig(max_attempts=1100),
        sleep=fake_sleep,
        recorder=RecordingRecorder(),
    )
    route = respx.get(f"{BASE}/boards").mock(return_value=Response(500))

    with pytest.raises(TrelloError) as exc:
        await client.get("/boards")

    assert exc.value.code == ErrorCode.SERVER_ERROR
    assert route.call_count == 1100
    assert len(sleeps) == 1099
    assert sleeps[-1] == 10.0


def test_retry_config_validation():
    with pytest.raises(ValueError):
        RetryConfig(max_attempts=0)
    with pytest.raises(ValueError):
        RetryConfig(base_delay_seconds=-1)
    with pytest.raises(ValueError):
        RetryConfig(max_rate_limit_wait_seconds=-1)


def test_parse_retry_after_edge_cases():
    assert parse_retry_after({"retry-after": "5"}, 60) == 5
    assert parse_retry_after({"retry-after": "1.5"}, 60) == 1.5
    assert parse_retry_after({"retry-after": "-3"}, 60) == 0
    assert parse_retry_after({"retry-after": "soon"}, 60) == 60
    assert parse_retry_after({"retry-after": "inf"}, 60) == 60
    assert parse_retry_after({}, 60) == 60


def test_rate_limit_info_from_headers():
    assert RateLimitInfo.from_headers({}) is None
    info = RateLimitInfo.from_headers(
        {"x-rate-limit-api-key-limit": "abc", "x-rate-limit-api-key-remaining": "x"}
    )
    assert info == RateLimitInfo(limit=300, remaining=0, reset_time=0)


def test_timeout_must_be_positive():
    with pytest.raises(ValueError):
        TrelloClient(TrelloCredentials(api_key="k", token="t"), timeout_seconds=0)
