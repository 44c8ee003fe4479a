import time

from trello_mcp.core.client import TrelloClient
from trello_mcp.core.errors import ErrorCode, TrelloError

_UNREACHABLE = (ErrorCode.NETWORK_ERROR, ErrorCode.TIMEOUT_ERROR)


async def trello_health_check(client: TrelloClient) -> dict:
    """
    Connectivity and latency check against the Trello API.
    Any HTTP answer (even 401 or 404) means the API is reachable; only network
    failures and timeouts report it as unavailable.
    """
    start = time.perf_counter()
    try:
        response = await client.get(
            "/members/me",
            params={"fields": "id,username"},
            operation="Health check",
        )
    except TrelloError as exc:
        latency_ms = (time.perf_counter() - start) * 1000
        available = exc.code not in _UNREACHABLE
        summary = "Trello API reachable" if available else "Trello API unreachable"
        return {
            "summary": summary,
            "status": "available" if available else "unavailable",
            "latency_ms": round(latency_ms, 2),
            "http_status": exc.status,
            "error": exc.to_dict(),
            "base_url": client.base_url,
            "rate_limit": None,
        }

    latency_ms = (time.perf_counter() - start) * 1000
    user = response.data if isinstance(response.data, dict) else {}
    return {
        "summary": "Trello API reachable",
        "status": "available",
        "latency_ms": round(latency_ms, 2),
        "http_status": 200,
        "username": user.get("username"),
        "base_url": client.base_url,
        "rate_limit": response.rate_limit_dict(),
    }
