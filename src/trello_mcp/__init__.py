"""trello_mcp package exports."""

from .core import (
    ApiResponse,
    ErrorCode,
    RateLimitInfo,
    RetryConfig,
    TrelloClient,
    TrelloCredentials,
    TrelloError,
    TrelloRequest,
    create_client_from_env,
    discover_tool_modules,
    register_discovered_tools,
)

__version__ = "0.1.0"

__all__ = [
    # Client
    "TrelloClient",
    "TrelloCredentials",
    "TrelloRequest",
    "ApiResponse",
    "RateLimitInfo",
    "RetryConfig",
    "create_client_from_env",
    # Errors
    "ErrorCode",
    "TrelloError",
    # Server utilities
    "discover_tool_modules",
    "register_discovered_tools",
]
