"""Request context and DI contract using ContextVars."""

from __future__ import annotations

import uuid
from contextvars import ContextVar, Token
from dataclasses import dataclass
from typing import Any, Iterable, Optional

from .client import MissingCredentialsError, TrelloClient, TrelloCredentials
from .config import API_KEY_ENV, TOKEN_ENV, load_env_config

# Context variables
_api_key_var: ContextVar[str | None] = ContextVar("api_key", default=None)
_token_var: ContextVar[str | None] = ContextVar("token", default=None)
_request_id_var: ContextVar[str | None] = ContextVar("request_id", default=None)


@dataclass(frozen=True)
class RequestContext:
    api_key: str
    token: str
    request_id: str

    def __repr__(self) -> str:
        return f"RequestContext(request_id={self.request_id!r})"

    @property
    def credentials(self) -> TrelloCredentials:
        return TrelloCredentials(api_key=self.api_key, token=self.token)


def ensure_request_id(candidate: Optional[str] = None) -> str:
    return candidate or uuid.uuid4().hex


def seed_from_env(*, use_dotenv: bool = False) -> RequestContext:
    api_key, token = load_env_config(use_dotenv=use_dotenv)
    if not api_key:
        raise MissingCredentialsError(f"{API_KEY_ENV} not set")
    if not token:
        raise MissingCredentialsError(f"{TOKEN_ENV} not set")
    return RequestContext(
        api_key=api_key, token=token, request_id=ensure_request_id(None)
    )


def apply_request_context(
    api_key: str,
    token: str,
    request_id: Optional[str] = None,
) -> Iterable[Token]:
    """Set ContextVars for the duration of a session; returns tokens for reset()."""
    tokens = []
    tokens.append(_api_key_var.set(api_key))
    tokens.append(_token_var.set(token))
    tokens.append(_request_id_var.set(ensure_request_id(request_id)))
    return tokens


def reset_context(tokens: Iterable[Token]) -> None:
    for token in tokens:
        token.var.reset(token)


def get_context(*, require_credentials: bool = True) -> RequestContext:
    api_key = _api_key_var.get()
    token = _token_var.get()
    request_id = ensure_request_id(_request_id_var.get())

    if require_credentials and not api_key:
        raise MissingCredentialsError("API key is required and missing.")
    if require_credentials and not token:
        raise MissingCredentialsError("Token is required and missing.")

    return RequestContext(
        api_key=api_key or "",
        token=token or "",
        request_id=request_id,
    )


def client_from_context(**client_kwargs: Any) -> TrelloClient:
    ctx = get_context(require_credentials=True)
    client_kwargs.setdefault("request_id", ctx.request_id)
    return TrelloClient(ctx.credentials, **client_kwargs)


__all__ = [
    "RequestContext",
    "seed_from_env",
    "get_context",
    "apply_request_context",
    "reset_context",
    "ensure_request_id",
    "client_from_context",
]
