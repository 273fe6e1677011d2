"""
Usage metering models.
"""

from dataclasses import dataclass, field
from datetime import datetime, timezone

from pydantic import BaseModel


@dataclass(frozen=True)
class UsageRecord:
    """Token usage of one chat request."""

    model: str
    tokens_in: int
    tokens_out: int
    timestamp: datetime = field(default_factory=lambda: datetime.now(timezone.utc))


class UsageSummary(BaseModel):
    """Response body for GET /usage."""

    today_tokens: int = 0
    today_requests: int = 0
    total_tokens: int = 0
    total_requests: int = 0
