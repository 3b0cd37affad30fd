"""AttemptOutcome and RetryDecision models - per-attempt loop state"""

from dataclasses import dataclass
from typing import NamedTuple, Optional

import requests


class RetryDecision(NamedTuple):
    """Result of a retry policy evaluation"""

    retry: bool  # Whether another attempt should be made
    error: Optional[BaseException] = None  # Raised instead of the transport error on stop


@dataclass(frozen=True)
class AttemptOutcome:
    """Represents the result of a single attempt: a response or a transport error"""

    attempt: int  # Zero-based attempt index
    response: Optional[requests.Response] = None
    error: Optional[requests.RequestException] = None

    def __post_init__(self):
        """Validate that exactly one of response/error is set"""
        if (self.response is None) == (self.error is None):
            raise ValueError("AttemptOutcome requires exactly one of response or error")

    @property
    def status_code(self) -> Optional[int]:
        """Response status code, None for transport errors"""
        return self.response.status_code if self.response is not None else None

    @property
    def failed(self) -> bool:
        """Check if the attempt ended with a transport error"""
        return self.error is not None
