"""
Usage log persistence and aggregation.

Each chat request appends one row to usage_logs. Rows are independent
inserts, so concurrent requests need no coordination.
"""

import asyncio
import logging
from datetime import datetime, timezone
from typing import Protocol

from sqlalchemy import func, select
from sqlalchemy.exc import SQLAlchemyError

from kb_assistant.core.errors import PersistenceError
from kb_assistant.db import Database, UsageLog
from kb_assistant.models.usage import UsageRecord, UsageSummary

logger = logging.getLogger(__name__)


class UsageSink(Protocol):
    async def record(self, record: UsageRecord) -> None: ...


def _naive_utc(moment: datetime) -> datetime:
    if moment.tzinfo is not None:
        moment = moment.astimezone(timezone.utc).replace(tzinfo=None)
    return moment


class UsageStore:
    def __init__(self, database: Database) -> None:
        self._db = database

    def _insert(self, record: UsageRecord) -> None:
        try:
            with self._db.SessionLocal() as session:
                session.add(
                    UsageLog(
                        model=record.model,
                        tokens_in=record.tokens_in,
                        tokens_out=record.tokens_out,
                        created_at=_naive_utc(record.timestamp),
                    )
                )
                session.commit()
        except SQLAlchemyError as exc:
            raise PersistenceError(f"Failed to record usage: {exc}") from exc

    def _aggregate(self, now: datetime) -> UsageSummary:
        start_of_day = _naive_utc(now).replace(hour=0, minute=0, second=0, microsecond=0)
        tokens = func.coalesce(func.sum(UsageLog.tokens_in + UsageLog.tokens_out), 0)
        try:
            with self._db.SessionLocal() as session:
                total_tokens, total_requests = session.execute(
                    select(tokens, func.count(UsageLog.id))
                ).one()
                today_tokens, today_requests = session.execute(
                    select(tokens, func.count(UsageLog.id)).where(
                        UsageLog.created_at >= start_of_day
                    )
                ).one()
        except SQLAlchemyError as exc:
            raise PersistenceError(f"Failed to read usage: {exc}") from exc

        return UsageSummary(
            today_tokens=today_tokens,
            today_requests=today_requests,
            total_tokens=total_tokens,
            total_requests=total_requests,
        )

    async def record(self, record: UsageRecord) -> None:
        """
        Append a usage row.

        Raises:
            PersistenceError: if the insert fails.
        """
        await asyncio.to_thread(self._insert, record)
        logger.info(
            "Usage recorded: model=%s, tokens_in=%d, tokens_out=%d",
            record.model,
            record.tokens_in,
            record.tokens_out,
        )

    async def summary(self, now: datetime | None = None) -> UsageSummary:
        """Lifetime totals plus totals since the start of the current UTC day."""
        return await asyncio.to_thread(self._aggregate, now or datetime.now(timezone.utc))
