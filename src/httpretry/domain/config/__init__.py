"""Configuration models with Pydantic validation."""

from httpretry.domain.config.app import AppConfig
from httpretry.domain.config.http import HTTPConfig
from httpretry.domain.config.retry import (
    DEFAULT_RETRY_MAX,
    DEFAULT_RETRY_WAIT_MAX,
    DEFAULT_RETRY_WAIT_MIN,
    RetryConfig,
)

__all__ = [
    "AppConfig",
    "HTTPConfig",
    "RetryConfig",
    "DEFAULT_RETRY_MAX",
    "DEFAULT_RETRY_WAIT_MAX",
    "DEFAULT_RETRY_WAIT_MIN",
]
