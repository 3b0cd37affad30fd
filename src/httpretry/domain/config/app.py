"""Main application configuration model."""

from pydantic import BaseModel, ConfigDict, Field

from httpretry.domain.config.http import HTTPConfig
from httpretry.domain.config.retry import RetryConfig


class AppConfig(BaseModel):
    """Main application configuration.

    Root model loaded by ConfigManager. Validation happens at load time to fail
    fast on configuration errors.

    Attributes:
        retry: Retry loop configuration
        http: Transport configuration
    """

    retry: RetryConfig = Field(default_factory=RetryConfig)
    http: HTTPConfig = Field(default_factory=HTTPConfig)

    model_config = ConfigDict(
        validate_assignment=True,
        extra="forbid",
        json_schema_extra={
            "example": {
                "retry": {
                    "retry_wait_min": 1.0,
                    "retry_wait_max": 30.0,
                    "retry_max": 4,
                },
                "http": {
                    "timeout": 30.0,
                    "user_agent": None,
                },
            }
        },
    )
