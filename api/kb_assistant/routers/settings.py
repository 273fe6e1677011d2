"""
Settings router: read and update the guardrail settings.
"""

import logging

from fastapi import APIRouter, Depends, Request
from fastapi.responses import JSONResponse

from kb_assistant.core.errors import PersistenceError
from kb_assistant.models.settings import GuardrailSettings, ResolvedGuardrails
from kb_assistant.services.settings_store import SettingsStore

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/settings", tags=["settings"])


def get_settings_store(request: Request) -> SettingsStore:
    return request.app.state.settings_store


@router.get("", response_model=ResolvedGuardrails, response_model_by_alias=True)
async def read_settings(store: SettingsStore = Depends(get_settings_store)):
    """Current guardrails, with defaults filled in for anything not stored."""
    return await store.get_guardrail_settings()


@router.post("")
async def save_settings(
    settings: GuardrailSettings,
    store: SettingsStore = Depends(get_settings_store),
):
    try:
        await store.save_guardrail_settings(settings)
    except PersistenceError as exc:
        logger.error("Error saving settings: %s", exc)
        return JSONResponse(status_code=500, content={"error": "Failed to save settings"})
    return {"success": True}
