import asyncio
import logging
import math
import time
from dataclasses import dataclass
from typing import (
    Any,
    Awaitable,
    Callable,
    Dict,
    List,
    Mapping,
    Optional,
    Union,
)

import anyio
import httpx

from .errors import TrelloError, is_retryable, normalize_error
from .observability import AttemptRecord, AttemptRecorder, LogAttemptRecorder

DEFAULT_BASE_URL = "https://api.trello.com/1"
DEFAULT_TIMEOUT_SECONDS = 15.0
USER_AGENT = "trello-mcp/0.1.0 (python-httpx)"

RATE_LIMIT_LIMIT_HEADER = "x-rate-limit-api-key-limit"
RATE_LIMIT_REMAINING_HEADER = "x-rate-limit-api-key-remaining"
RATE_LIMIT_RESET_HEADER = "x-rate-limit-api-key-reset"
RETRY_AFTER_HEADER = "retry-after"

# Trello's documented per-key limit, used when the header value is garbage
DEFAULT_RATE_LIMIT = 300

AUTH_PARAMS = frozenset({"key", "token"})
ALLOWED_METHODS = frozenset({"GET", "POST", "PUT", "DELETE"})

Sleep = Callable[[float], Awaitable[Any]]


class MissingCredentialsError(ValueError):
    """Raised when the API key or token is missing."""


@dataclass(frozen=True)
class TrelloCredentials:
    api_key: str
    token: str

    def __post_init__(self) -> None:
        if not (self.api_key or "").strip():
            raise MissingCredentialsError("API key is required")
        if not (self.token or "").strip():
            raise MissingCredentialsError("Token is required")

    def __repr__(self) -> str:
        return "TrelloCredentials(api_key='***', token='***')"

    @classmethod
    def resolve(
        cls,
        api_key: Optional[str] = None,
        token: Optional[str] = None,
        *,
        defaults: Optional["TrelloCredentials"] = None,
    ) -> "TrelloCredentials":
        """Explicit values win; missing ones fall back to `defaults`."""
        if not api_key and defaults is not None:
            api_key = defaults.api_key
        if not token and defaults is not None:
            token = defaults.token
        return cls(api_key=api_key or "", token=token or "")


@dataclass(frozen=True)
class RetryConfig:
    max_attempts: int = 3
    base_delay_seconds: float = 1.0  # 1, 2, 4... capped by max_delay_seconds
    max_delay_seconds: float = 10.0
    default_retry_after_seconds: float = 60.0
    # None waits out 429s indefinitely
    max_rate_limit_wait_seconds: Optional[float] = None

    def __post_init__(self) -> None:
        if self.max_attempts < 1:
            raise ValueError("max_attempts must be >= 1")
        if self.base_delay_seconds < 0 or self.max_delay_seconds < 0:
            raise ValueError("retry delays must be >= 0")
        if (
            self.max_rate_limit_wait_seconds is not None
            and self.max_rate_limit_wait_seconds < 0
        ):
            raise ValueError("max_rate_limit_wait_seconds must be >= 0")

    def backoff_delay(self, attempt: int) -> float:
        """Delay after the `attempt`-th (1-based) retryable failure."""
        # Exponent clamped so float conversion cannot overflow.
        exponent = min(max(attempt - 1, 0), 63)
        delay = self.base_delay_seconds * (2.0**exponent)
        return min(delay, self.max_delay_seconds)


def _parse_int(raw: Optional[str], default: int) -> int:
    if raw is None:
        return default
    try:
        return int(raw.strip())
    except ValueError:
        return default


@dataclass(frozen=True)
class RateLimitInfo:
    limit: int
    remaining: int
    reset_time: int  # epoch seconds

    @classmethod
    def from_headers(cls, headers: Mapping[str, str]) -> Optional["RateLimitInfo"]:
        limit = headers.get(RATE_LIMIT_LIMIT_HEADER)
        if not limit:
            return None
        return cls(
            limit=_parse_int(limit, DEFAULT_RATE_LIMIT),
            remaining=_parse_int(headers.get(RATE_LIMIT_REMAINING_HEADER), 0),
            reset_time=_parse_int(headers.get(RATE_LIMIT_RESET_HEADER), 0),
        )

    def to_dict(self) -> Dict[str, int]:
        return {
            "limit": self.limit,
            "remaining": self.remaining,
            "reset_time": self.reset_time,
        }


def parse_retry_after(headers: Mapping[str, str], default: float) -> float:
    raw = headers.get(RETRY_AFTER_HEADER)
    if raw is None:
        return default
    try:
        seconds = float(raw.strip())
    except ValueError:
        return default
    if not math.isfinite(seconds):
        return default
    return max(0.0, seconds)


@dataclass(frozen=True)
class TrelloRequest:
    """Immutable description of one logical API call."""

    path: str
    method: str = "GET"
    json: Optional[Any] = None
    params: Optional[Mapping[str, Optional[str]]] = None
    headers: Optional[Mapping[str, str]] = None

    def __post_init__(self) -> None:
        method = self.method.upper()
        if method not in ALLOWED_METHODS:
            raise ValueError(f"Unsupported HTTP method: {self.method}")
        object.__setattr__(self, "method", method)
        if not self.path.startswith("/"):
            raise ValueError("path must start with '/'")
        reserved = AUTH_PARAMS.intersection(self.params or {})
        if reserved:
            raise ValueError(
                f"Reserved query parameter(s): {', '.join(sorted(reserved))}"
            )


@dataclass(frozen=True)
class ApiResponse:
    data: Any
    rate_limit: Optional[RateLimitInfo] = None

    def rate_limit_dict(self) -> Optional[Dict[str, int]]:
        return self.rate_limit.to_dict() if self.rate_limit else None


# --- Attempt outcomes ------------------------------------------------------ #


@dataclass(frozen=True)
class _Success:
    data: Any
    rate_limit: Optional[RateLimitInfo]


@dataclass(frozen=True)
class _RateLimited:
    retry_after: float
    error: TrelloError


@dataclass(frozen=True)
class _Retryable:
    error: TrelloError


@dataclass(frozen=True)
class _Terminal:
    error: TrelloError


_Outcome = Union[_Success, _RateLimited, _Retryable, _Terminal]


class TrelloClient:
    """
    Resilient client for the Trello REST API.
    - Injects key/token query auth on every attempt
    - Bounds each attempt with a timeout, retries transient failures with
      exponential back-off and waits out 429s using retry-after
    - Raises TrelloError (and nothing else) when a call fails
    """

    def __init__(
        self,
        credentials: TrelloCredentials,
        *,
        base_url: str = DEFAULT_BASE_URL,
        timeout_seconds: float = DEFAULT_TIMEOUT_SECONDS,
        retry: Optional[RetryConfig] = None,
        recorder: Optional[AttemptRecorder] = None,
        logger: Optional[logging.Logger] = None,
        http: Optional[httpx.AsyncClient] = None,
        sleep: Optional[Sleep] = None,
        request_id: Optional[str] = None,
    ):
        if timeout_seconds <= 0:
            raise ValueError("timeout_seconds must be > 0")

        self.credentials = credentials
        self.base_url = base_url.rstrip("/")
        self.timeout_seconds = timeout_seconds
        self.retry = retry if retry is not None else RetryConfig()
        self.recorder = recorder or LogAttemptRecorder()
        self.log = logger or logging.getLogger("trello_mcp.client")
        self.request_id = request_id
        # No pooling: without an injected client each attempt opens its own.
        self.http = http
        self._sleep = sleep or asyncio.sleep

    def with_credentials(
        self, api_key: Optional[str] = None, token: Optional[str] = None
    ) -> "TrelloClient":
        """Return a client sharing this configuration with overridden credentials."""
        if not api_key and not token:
            return self
        return TrelloClient(
            TrelloCredentials.resolve(api_key, token, defaults=self.credentials),
            base_url=self.base_url,
            timeout_seconds=self.timeout_seconds,
            retry=self.retry,
            recorder=self.recorder,
            logger=self.log,
            http=self.http,
            sleep=self._sleep,
            request_id=self.request_id,
        )

    # --- Request execution ------------------------------------------------- #

    def build_url(self, path: str) -> str:
        return f"{self.base_url}{path}"

    def build_params(
        self, params: Optional[Mapping[str, Optional[str]]] = None
    ) -> Dict[str, str]:
        query = {
            "key": self.credentials.api_key,
            "token": self.credentials.token,
        }
        for name, value in (params or {}).items():
            if value is None or name in AUTH_PARAMS:
                continue
            query[name] = value
        return query

    async def execute(self, request: TrelloRequest, operation: str) -> ApiResponse:
        """
        Run one logical call.
        - 2xx: returns ApiResponse(data, rate_limit) immediately
        - 429: sleeps retry-after and tries again; not counted against max_attempts
        - network/timeout/5xx: retried up to max_attempts with back-off
        - anything else: raises TrelloError on first occurrence
        """
        attempt = 0
        failures = 0
        rate_limit_waited = 0.0

        while True:
            attempt += 1
            outcome = await self._attempt(request, operation, attempt)

            if isinstance(outcome, _Success):
                self.log.info(
                    "trello.success",
                    extra={"tool": operation, "attempt": attempt},
                )
                return ApiResponse(data=outcome.data, rate_limit=outcome.rate_limit)

            if isinstance(outcome, _RateLimited):
                ceiling = self.retry.max_rate_limit_wait_seconds
                if (
                    ceiling is not None
                    and rate_limit_waited + outcome.retry_after > ceiling
                ):
                    self._log_failure(operation, attempt, outcome.error)
                    raise outcome.error
                self.log.warning(
                    "trello.rate_limited",
                    extra={
                        "tool": operation,
                        "attempt": attempt,
                        "retry_after_s": outcome.retry_after,
                    },
                )
                await self._sleep(outcome.retry_after)
                rate_limit_waited += outcome.retry_after
                continue

            failures += 1
            if isinstance(outcome, _Retryable) and failures < self.retry.max_attempts:
                delay = self.retry.backoff_delay(failures)
                self.log.debug(
                    "trello.retry",
                    extra={
                        "tool": operation,
                        "attempt": attempt,
                        "max_attempts": self.retry.max_attempts,
                        "delay_s": delay,
                        "code": outcome.error.code.value,
                    },
                )
                await self._sleep(delay)
                continue

            self._log_failure(operation, attempt, outcome.error)
            raise outcome.error

    async def _attempt(
        self, request: TrelloRequest, operation: str, attempt: int
    ) -> _Outcome:
        start = time.perf_counter()
        try:
            with anyio.fail_after(self.timeout_seconds):
                resp = await self._send(request)
        except Exception as exc:
            error = normalize_error(exc)
            error.__cause__ = exc
            self._record(request, operation, attempt, start, None, error.code.value)
            if is_retryable(exc):
                return _Retryable(error)
            return _Terminal(error)

        rate_limit = RateLimitInfo.from_headers(resp.headers)
        status = resp.status_code

        if status == 429:
            self._record(
                request, operation, attempt, start, status, "rate_limited", rate_limit
            )
            return _RateLimited(
                retry_after=parse_retry_after(
                    resp.headers, self.retry.default_retry_after_seconds
                ),
                error=normalize_error(status, detail=self._error_detail(resp)),
            )

        if not resp.is_success:
            error = normalize_error(status, detail=self._error_detail(resp))
            self._record(
                request, operation, attempt, start, status, error.code.value, rate_limit
            )
            if is_retryable(status):
                return _Retryable(error)
            return _Terminal(error)

        try:
            data = self._parse_json(resp)
        except ValueError as exc:
            error = normalize_error(exc, detail=str(exc))
            error.__cause__ = exc
            self._record(
                request, operation, attempt, start, status, error.code.value, rate_limit
            )
            return _Terminal(error)

        self._record(request, operation, attempt, start, status, "success", rate_limit)
        return _Success(data=data, rate_limit=rate_limit)

    async def _send(self, request: TrelloRequest) -> httpx.Response:
        headers = {
            "Content-Type": "application/json",
            "User-Agent": USER_AGENT,
            **(request.headers or {}),
        }
        kwargs: Dict[str, Any] = {
            "params": self.build_params(request.params),
            "headers": headers,
        }
        if request.json is not None:
            kwargs["json"] = request.json

        url = self.build_url(request.path)
        if self.http is not None:
            return await self.http.request(request.method, url, **kwargs)
        async with httpx.AsyncClient(timeout=self.timeout_seconds) as http:
            return await http.request(request.method, url, **kwargs)

    @staticmethod
    def _parse_json(resp: httpx.Response) -> Any:
        # DELETE and some PUTs answer with an empty body
        if not resp.content:
            return None
        try:
            return resp.json()
        except ValueError as exc:
            snippet = (resp.text or "")[:500]
            raise ValueError(
                f"Expected JSON from {resp.request.method} "
                f"{resp.request.url.copy_with(query=None)}, got non-JSON body "
                f"snippet: {snippet!r}"
            ) from exc

    @staticmethod
    def _error_detail(resp: httpx.Response) -> str:
        detail = f"{resp.status_code} - {resp.reason_phrase}"
        message: Optional[str] = None
        try:
            parsed = resp.json()
            if isinstance(parsed, dict):
                message = parsed.get("message") or parsed.get("error")
        except ValueError:
            message = (resp.text or "").strip()[:500] or None
        if message:
            detail = f"{detail}: {message}"
        return detail

    def _record(
        self,
        request: TrelloRequest,
        operation: str,
        attempt: int,
        start: float,
        status: Optional[int],
        outcome: str,
        rate_limit: Optional[RateLimitInfo] = None,
    ) -> None:
        record = AttemptRecord(
            operation=operation,
            attempt=attempt,
            method=request.method,
            endpoint=request.path,
            duration_ms=int((time.perf_counter() - start) * 1000),
            status=status,
            outcome=outcome,
            rate_limit=rate_limit,
            request_id=self.request_id,
        )
        try:
            self.recorder.record_attempt(record)
        except Exception:
            self.log.exception("trello.recorder_failed", extra={"tool": operation})

    def _log_failure(self, operation: str, attempt: int, error: TrelloError) -> None:
        self.log.error(
            "trello.failed",
            extra={
                "tool": operation,
                "attempt": attempt,
                "status": error.status,
                "code": error.code.value,
            },
        )

    # --- Verbs ------------------------------------------------------------- #

    async def request(
        self,
        method: str,
        path: str,
        *,
        params: Optional[Mapping[str, Optional[str]]] = None,
        json: Optional[Any] = None,
        operation: Optional[str] = None,
    ) -> ApiResponse:
        req = TrelloRequest(path=path, method=method, json=json, params=params)
        return await self.execute(req, operation or f"{req.method} {path}")

    async def get(
        self,
        path: str,
        *,
        params: Optional[Mapping[str, Optional[str]]] = None,
        operation: Optional[str] = None,
    ) -> ApiResponse:
        return await self.request("GET", path, params=params, operation=operation)

    async def post(
        self,
        path: str,
        *,
        json: Optional[Any] = None,
        params: Optional[Mapping[str, Optional[str]]] = None,
        operation: Optional[str] = None,
    ) -> ApiResponse:
        return await self.request(
            "POST", path, json=json, params=params, operation=operation
        )

    async def put(
        self,
        path: str,
        *,
        json: Optional[Any] = None,
        params: Optional[Mapping[str, Optional[str]]] = None,
        operation: Optional[str] = None,
    ) -> ApiResponse:
        return await self.request(
            "PUT", path, json=json, params=params, operation=operation
        )

    async def delete(
        self, path: str, *, operation: Optional[str] = None
    ) -> ApiResponse:
        return await self.request("DELETE", path, operation=operation)

    # --- Boards ------------------------------------------------------------ #

    async def get_my_boards(self, filter: str = "open") -> ApiResponse:
        return await self.get(
            "/members/me/boards",
            params={"filter": filter or "open"},
            operation="Get user boards",
        )

    async def get_board(
        self, board_id: str, include_details: bool = False
    ) -> ApiResponse:
        params: Dict[str, Optional[str]] = {}
        if include_details:
            params.update(
                lists="open", cards="open", card_members="true", card_labels="true"
            )
        return await self.get(
            f"/boards/{board_id}", params=params, operation=f"Get board {board_id}"
        )

    async def get_board_lists(self, board_id: str, filter: str = "open") -> ApiResponse:
        return await self.get(
            f"/boards/{board_id}/lists",
            params={"filter": filter or "open"},
            operation=f"Get board {board_id} lists",
        )

    async def get_board_cards(
        self,
        board_id: str,
        *,
        attachments: Optional[str] = None,
        members: Optional[str] = None,
        filter: Optional[str] = None,
    ) -> ApiResponse:
        return await self.get(
            f"/boards/{board_id}/cards",
            params={"attachments": attachments, "members": members, "filter": filter},
            operation=f"Get cards in board {board_id}",
        )

    async def get_board_members(self, board_id: str) -> ApiResponse:
        return await self.get(
            f"/boards/{board_id}/members", operation=f"Get board {board_id} members"
        )

    async def get_board_labels(self, board_id: str) -> ApiResponse:
        return await self.get(
            f"/boards/{board_id}/labels", operation=f"Get board {board_id} labels"
        )

    # --- Cards ------------------------------------------------------------- #

    async def create_card(self, data: Dict[str, Any]) -> ApiResponse:
        return await self.post(
            "/cards", json=data, operation=f"Create card \"{data.get('name')}\""
        )

    async def update_card(self, card_id: str, updates: Dict[str, Any]) -> ApiResponse:
        return await self.put(
            f"/cards/{card_id}", json=updates, operation=f"Update card {card_id}"
        )

    async def move_card(
        self, card_id: str, id_list: str, pos: Optional[Union[float, str]] = None
    ) -> ApiResponse:
        body: Dict[str, Any] = {"idList": id_list}
        if pos is not None:
            body["pos"] = pos
        return await self.put(
            f"/cards/{card_id}", json=body, operation=f"Move card {card_id}"
        )

    async def get_card(
        self, card_id: str, include_details: bool = False
    ) -> ApiResponse:
        params: Dict[str, Optional[str]] = {}
        if include_details:
            params.update(
                members="true", labels="true", checklists="all", badges="true"
            )
        return await self.get(
            f"/cards/{card_id}", params=params, operation=f"Get card {card_id}"
        )

    async def delete_card(self, card_id: str) -> ApiResponse:
        return await self.delete(
            f"/cards/{card_id}", operation=f"Delete card {card_id}"
        )

    async def get_card_actions(
        self, card_id: str, *, filter: Optional[str] = None, limit: Optional[int] = None
    ) -> ApiResponse:
        return await self.get(
            f"/cards/{card_id}/actions",
            params={
                "filter": filter,
                "limit": str(limit) if limit else None,
            },
            operation=f"Get actions for card {card_id}",
        )

    async def get_card_attachments(
        self, card_id: str, *, fields: Optional[List[str]] = None
    ) -> ApiResponse:
        return await self.get(
            f"/cards/{card_id}/attachments",
            params={"fields": ",".join(fields) if fields else None},
            operation=f"Get attachments for card {card_id}",
        )

    async def get_card_checklists(
        self,
        card_id: str,
        *,
        check_items: Optional[str] = None,
        fields: Optional[List[str]] = None,
    ) -> ApiResponse:
        return await self.get(
            f"/cards/{card_id}/checklists",
            params={
                "checkItems": check_items,
                "fields": ",".join(fields) if fields else None,
            },
            operation=f"Get checklists for card {card_id}",
        )

    async def add_comment_to_card(self, card_id: str, text: str) -> ApiResponse:
        return await self.post(
            f"/cards/{card_id}/actions/comments",
            json={"text": text},
            operation=f"Add comment to card {card_id}",
        )

    # --- Lists ------------------------------------------------------------- #

    async def get_list_cards(
        self,
        list_id: str,
        *,
        filter: Optional[str] = None,
        fields: Optional[List[str]] = None,
    ) -> ApiResponse:
        return await self.get(
            f"/lists/{list_id}/cards",
            params={"filter": filter, "fields": ",".join(fields) if fields else None},
            operation=f"Get cards in list {list_id}",
        )

    async def create_list(
        self, name: str, id_board: str, pos: Optional[Union[float, str]] = None
    ) -> ApiResponse:
        body: Dict[str, Any] = {"name": name, "idBoard": id_board}
        if pos is not None:
            body["pos"] = pos
        return await self.post("/lists", json=body, operation=f'Create list "{name}"')

    # --- Members ----------------------------------------------------------- #

    async def get_member(
        self,
        member_id: str,
        *,
        fields: Optional[List[str]] = None,
        boards: Optional[str] = None,
        organizations: Optional[str] = None,
    ) -> ApiResponse:
        return await self.get(
            f"/members/{member_id}",
            params={
                "fields": ",".join(fields) if fields else None,
                "boards": boards,
                "organizations": organizations,
            },
            operation=f"Get member {member_id}",
        )

    async def get_current_user(self) -> ApiResponse:
        return await self.get(
            "/members/me",
            params={"boards": "open", "organizations": "all"},
            operation="Get current user",
        )

    # --- Search ------------------------------------------------------------ #

    async def search(
        self,
        query: str,
        *,
        model_types: Optional[List[str]] = None,
        board_ids: Optional[List[str]] = None,
        boards_limit: Optional[int] = None,
        cards_limit: Optional[int] = None,
        members_limit: Optional[int] = None,
    ) -> ApiResponse:
        # httpx encodes the query exactly once
        params: Dict[str, Optional[str]] = {
            "query": query,
            "modelTypes": ",".join(model_types) if model_types else None,
            "idBoards": ",".join(board_ids) if board_ids else None,
            "boards_limit": str(boards_limit) if boards_limit else None,
            "cards_limit": str(cards_limit) if cards_limit else None,
            "members_limit": str(members_limit) if members_limit else None,
        }
        return await self.get(
            "/search", params=params, operation=f'Search for "{query}"'
        )

    # --- Labels ------------------------------------------------------------ #

    async def create_label(
        self, board_id: str, name: str, color: Optional[str]
    ) -> ApiResponse:
        return await self.post(
            "/labels",
            params={"name": name, "color": color or "null", "idBoard": board_id},
            operation=f'Create label "{name}" on board {board_id}',
        )

    async def update_label(
        self, label_id: str, *, name: Optional[str] = None, color: Optional[str] = None
    ) -> ApiResponse:
        return await self.put(
            f"/labels/{label_id}",
            params={"name": name, "color": color},
            operation=f"Update label {label_id}",
        )

    async def add_label_to_card(self, card_id: str, label_id: str) -> ApiResponse:
        return await self.post(
            f"/cards/{card_id}/idLabels",
            params={"value": label_id},
            operation=f"Add label {label_id} to card {card_id}",
        )

    async def remove_label_from_card(self, card_id: str, label_id: str) -> ApiResponse:
        return await self.delete(
            f"/cards/{card_id}/idLabels/{label_id}",
            operation=f"Remove label {label_id} from card {card_id}",
        )


__all__ = [
    "ApiResponse",
    "DEFAULT_BASE_URL",
    "MissingCredentialsError",
    "RateLimitInfo",
    "RetryConfig",
    "TrelloClient",
    "TrelloCredentials",
    "TrelloRequest",
    "USER_AGENT",
    "parse_retry_after",
]
