# errors.py
from __future__ import annotations

from dataclasses import dataclass, field
from typing import List, Optional


class TurnstyleError(Exception):
    """Base class for every error raised by turnstyle."""


@dataclass
class ConfigError(TurnstyleError):
    """Raised when the gate inputs fail validation."""
    message: str
    problems: List[str] = field(default_factory=list)

    def __str__(self) -> str:
        if not self.problems:
            return self.message
        return "\n".join([self.message, *(f"  {p}" for p in self.problems)])


class APIError(TurnstyleError):
    """Raised when a request to the platform API fails."""

    def __init__(self, message: str, status: Optional[int] = None):
        super().__init__(message)
        self.status = status


class RateLimitedError(APIError):
    """Request quota still exhausted after the single retry."""


class AbuseDetectedError(APIError):
    """Secondary (abuse) rate limit hit. Never retried."""


@dataclass
class AbortedWaiting(TurnstyleError):
    """The abort-after threshold was reached before previous runs finished."""
    elapsed: int

    def __str__(self) -> str:
        return f"Aborted after waiting {self.elapsed} seconds"
