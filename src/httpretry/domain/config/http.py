"""HTTP transport configuration model."""

from typing import Optional

from pydantic import BaseModel, Field


class HTTPConfig(BaseModel):
    """Configuration for the underlying transport.

    Attributes:
        timeout: Per-attempt timeout in seconds (None disables it)
        user_agent: User-Agent header sent with every request (None keeps the requests default)
    """

    timeout: Optional[float] = Field(30.0, gt=0.0)
    user_agent: Optional[str] = None
