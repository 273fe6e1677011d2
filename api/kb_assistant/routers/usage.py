"""
Usage router: GET /usage token totals for the admin dashboard.
"""

from fastapi import APIRouter, Depends, Request

from kb_assistant.models.usage import UsageSummary
from kb_assistant.services.usage_store import UsageStore

router = APIRouter(tags=["usage"])


def get_usage_store(request: Request) -> UsageStore:
    return request.app.state.usage_store


@router.get("/usage", response_model=UsageSummary)
async def usage_summary(store: UsageStore = Depends(get_usage_store)) -> UsageSummary:
    """Token and request totals, lifetime and for the current UTC day."""
    return await store.summary()
