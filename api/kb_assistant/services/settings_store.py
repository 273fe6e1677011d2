"""
Guardrail settings persistence.

Settings live as one JSON row (key "guardrails") in chatbot_settings. Reads
never fail the chat pipeline: a missing, unreadable or malformed row yields
the built-in defaults.
"""

import asyncio
import logging
from datetime import datetime, timezone

from pydantic import ValidationError
from sqlalchemy.exc import SQLAlchemyError

from kb_assistant.core.errors import PersistenceError
from kb_assistant.db import ChatbotSetting, Database
from kb_assistant.models.settings import (
    GuardrailSettings,
    ResolvedGuardrails,
    merge_with_defaults,
)

logger = logging.getLogger(__name__)

GUARDRAILS_KEY = "guardrails"


class SettingsStore:
    def __init__(self, database: Database) -> None:
        self._db = database

    def _load(self) -> GuardrailSettings | None:
        try:
            with self._db.SessionLocal() as session:
                row = session.get(ChatbotSetting, GUARDRAILS_KEY)
                if row is None:
                    return None
                return GuardrailSettings.model_validate(row.value)
        except (SQLAlchemyError, ValidationError, ValueError) as exc:
            # A row that is not valid JSON surfaces as a bare JSONDecodeError.
            raise PersistenceError(f"Failed to read guardrail settings: {exc}") from exc

    def _save(self, settings: GuardrailSettings) -> None:
        value = settings.model_dump(mode="json", by_alias=True, exclude_none=True)
        try:
            with self._db.SessionLocal() as session:
                row = session.get(ChatbotSetting, GUARDRAILS_KEY)
                now = datetime.now(timezone.utc).replace(tzinfo=None)
                if row is None:
                    session.add(ChatbotSetting(key=GUARDRAILS_KEY, value=value, updated_at=now))
                else:
                    row.value = value
                    row.updated_at = now
                session.commit()
        except SQLAlchemyError as exc:
            raise PersistenceError(f"Failed to save guardrail settings: {exc}") from exc

    async def get_guardrail_settings(self) -> ResolvedGuardrails:
        """Stored settings merged with defaults; defaults alone if the read fails."""
        try:
            stored = await asyncio.to_thread(self._load)
        except PersistenceError as exc:
            logger.warning("%s. Falling back to default guardrails.", exc)
            stored = None
        return merge_with_defaults(stored)

    async def save_guardrail_settings(self, settings: GuardrailSettings) -> None:
        """
        Upsert the guardrail settings row.

        Raises:
            PersistenceError: if the write fails.
        """
        await asyncio.to_thread(self._save, settings)
        logger.info("Guardrail settings saved (version %d)", settings.version)
