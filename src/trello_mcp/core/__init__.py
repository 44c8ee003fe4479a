"""Core domain surface for trello-mcp (transport-agnostic)."""

from .client import (
    ApiResponse,
    MissingCredentialsError,
    RateLimitInfo,
    RetryConfig,
    TrelloClient,
    TrelloCredentials,
    TrelloRequest,
    parse_retry_after,
)
from .config import (
    ClientSettings,
    create_client_from_env,
    load_env_config,
    resolve_credentials,
)
from .context import (
    RequestContext,
    apply_request_context,
    client_from_context,
    ensure_request_id,
    get_context,
    reset_context,
    seed_from_env,
)
from .errors import ErrorCode, TrelloError, is_retryable, normalize_error
from .observability import AttemptRecord, AttemptRecorder, LogAttemptRecorder
from .registry import (
    discover_tool_modules,
    iter_tool_functions,
    register_discovered_tools,
)

__all__ = [
    # Client
    "TrelloClient",
    "TrelloCredentials",
    "TrelloRequest",
    "ApiResponse",
    "RateLimitInfo",
    "RetryConfig",
    "parse_retry_after",
    # Errors
    "ErrorCode",
    "TrelloError",
    "MissingCredentialsError",
    "is_retryable",
    "normalize_error",
    # Observability
    "AttemptRecord",
    "AttemptRecorder",
    "LogAttemptRecorder",
    # Config helpers
    "ClientSettings",
    "create_client_from_env",
    "load_env_config",
    "resolve_credentials",
    # Registry helpers
    "discover_tool_modules",
    "iter_tool_functions",
    "register_discovered_tools",
    # Context
    "RequestContext",
    "seed_from_env",
    "get_context",
    "apply_request_context",
    "reset_context",
    "ensure_request_id",
    "client_from_context",
]
