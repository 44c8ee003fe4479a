from __future__ import annotations

import os
from dataclasses import dataclass
from typing import Optional, Tuple

from dotenv import load_dotenv

from .client import (
    DEFAULT_TIMEOUT_SECONDS,
    MissingCredentialsError,
    RetryConfig,
    TrelloClient,
    TrelloCredentials,
)

API_KEY_ENV = "TRELLO_API_KEY"
TOKEN_ENV = "TRELLO_TOKEN"


def load_env_config(*, use_dotenv: bool = True) -> Tuple[str, str]:
    """Load the Trello API key and token from environment (optional .env)."""
    if use_dotenv:
        load_dotenv()
    api_key = os.getenv(API_KEY_ENV, "").strip()
    token = os.getenv(TOKEN_ENV, "").strip()
    return api_key, token


def resolve_credentials(
    api_key: Optional[str] = None,
    token: Optional[str] = None,
    *,
    use_dotenv: bool = True,
) -> TrelloCredentials:
    """Explicit values take precedence over TRELLO_API_KEY / TRELLO_TOKEN."""
    env_key, env_token = load_env_config(use_dotenv=use_dotenv)
    try:
        return TrelloCredentials(
            api_key=api_key or env_key, token=token or env_token
        )
    except MissingCredentialsError as exc:
        raise MissingCredentialsError(
            f"{exc}: pass it explicitly or set {API_KEY_ENV} and {TOKEN_ENV}."
        ) from exc


def _read_float_env(name: str, default: Optional[float]) -> Optional[float]:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        return float(raw)
    except ValueError as exc:
        raise ValueError(f"{name} must be a number, got {raw!r}") from exc


def _read_int_env(name: str, default: int) -> int:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        return int(raw.replace("_", ""))
    except ValueError as exc:
        raise ValueError(f"{name} must be an integer, got {raw!r}") from exc


@dataclass(frozen=True)
class ClientSettings:
    """Process-wide client tuning, read once at startup."""

    timeout_seconds: float = DEFAULT_TIMEOUT_SECONDS
    max_attempts: int = 3
    base_delay_seconds: float = 1.0
    max_delay_seconds: float = 10.0
    max_rate_limit_wait_seconds: Optional[float] = None
    log_level: str = "INFO"

    @classmethod
    def from_env(cls) -> "ClientSettings":
        timeout_seconds = _read_float_env(
            "TRELLO_TIMEOUT_SECONDS", cls.timeout_seconds
        )
        if timeout_seconds is None or timeout_seconds <= 0:
            raise ValueError("TRELLO_TIMEOUT_SECONDS must be greater than zero")

        max_attempts = _read_int_env("TRELLO_MAX_ATTEMPTS", cls.max_attempts)
        if max_attempts < 1:
            raise ValueError("TRELLO_MAX_ATTEMPTS must be at least 1")

        return cls(
            timeout_seconds=timeout_seconds,
            max_attempts=max_attempts,
            base_delay_seconds=_read_float_env(
                "TRELLO_BASE_DELAY_SECONDS", cls.base_delay_seconds
            ),
            max_delay_seconds=_read_float_env(
                "TRELLO_MAX_DELAY_SECONDS", cls.max_delay_seconds
            ),
            max_rate_limit_wait_seconds=_read_float_env(
                "TRELLO_MAX_RATE_LIMIT_WAIT_SECONDS", None
            ),
            log_level=os.getenv("LOG_LEVEL", cls.log_level).strip() or cls.log_level,
        )

    def retry_config(self) -> RetryConfig:
        return RetryConfig(
            max_attempts=self.max_attempts,
            base_delay_seconds=self.base_delay_seconds,
            max_delay_seconds=self.max_delay_seconds,
            max_rate_limit_wait_seconds=self.max_rate_limit_wait_seconds,
        )


def create_client_from_env(
    settings: Optional[ClientSettings] = None, **kwargs
) -> TrelloClient:
    """Create a TrelloClient from environment variables."""
    settings = settings or ClientSettings.from_env()
    credentials = resolve_credentials()
    kwargs.setdefault("timeout_seconds", settings.timeout_seconds)
    kwargs.setdefault("retry", settings.retry_config())
    return TrelloClient(credentials, **kwargs)


__all__ = [
    "API_KEY_ENV",
    "TOKEN_ENV",
    "ClientSettings",
    "create_client_from_env",
    "load_env_config",
    "resolve_credentials",
]
