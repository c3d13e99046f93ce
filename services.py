from __future__ import annotations

import logging
from datetime import date, datetime, timedelta, timezone
from typing import Callable, Optional

from sqlalchemy import delete, select
from sqlalchemy.orm import Session, sessionmaker

from config import get_settings
from database import SessionLocal, session_scope
from insight_cache import CacheKey, InsightCache
from insights import (
    active_dismissals,
    build_insight_metrics,
    build_insights,
    build_recommendations,
    cycle_id_for,
    metrics_signature,
)
from models import InsightCacheEntry, InsightDismissal
from schemas import (
    BudgetRecord,
    InsightMetrics,
    InsightPayload,
    InsightRecord,
    InsightResponse,
)

logger = logging.getLogger(__name__)


class UserIdRequired(ValueError):
    def __init__(self, what: str = "user id") -> None:
        super().__init__(f"A {what} is required for insight caching and dismissals")


def _require_id(value: Optional[str], what: str = "user id") -> str:
    clean = str(value).strip() if value is not None else ""
    if not clean:
        raise UserIdRequired(what)
    return clean


def utcnow() -> datetime:
    return datetime.now(timezone.utc).replace(tzinfo=None)


class SQLInsightStore:
    """Backing store for :class:`insight_cache.InsightCache`.

    Opens a short-lived session per call so the store can outlive requests.
    """

    def __init__(self, session_factory: sessionmaker = SessionLocal) -> None:
        self.session_factory = session_factory

    def load(self, key: CacheKey) -> Optional[InsightRecord]:
        user_id, cycle_id = key
        with session_scope(self.session_factory) as session:
            row = session.scalar(
                select(InsightCacheEntry).where(
                    InsightCacheEntry.user_id == user_id,
                    InsightCacheEntry.cycle_id == cycle_id,
                )
            )
            if row is None:
                return None
            try:
                payload = InsightPayload.model_validate_json(row.payload)
            except ValueError as exc:
                logger.warning(
                    f"insight_cache_corrupt: user={user_id} cycle={cycle_id} error={exc}"
                )
                return None
            return InsightRecord(
                signature=row.signature,
                generated_at=row.generated_at,
                payload=payload,
            )

    def save(self, key: CacheKey, record: InsightRecord) -> None:
        user_id, cycle_id = key
        payload = record.payload.model_dump_json(by_alias=True)
        with session_scope(self.session_factory) as session:
            row = session.scalar(
                select(InsightCacheEntry).where(
                    InsightCacheEntry.user_id == user_id,
                    InsightCacheEntry.cycle_id == cycle_id,
                )
            )
            if row is None:
                row = InsightCacheEntry(user_id=user_id, cycle_id=cycle_id)
                session.add(row)
            row.signature = record.signature
            row.generated_at = record.generated_at
            row.payload = payload

    def prune(self, keep: int) -> int:
        with session_scope(self.session_factory) as session:
            stale_ids = session.scalars(
                select(InsightCacheEntry.id)
                .order_by(InsightCacheEntry.generated_at.desc(), InsightCacheEntry.id.desc())
                .offset(keep)
            ).all()
            if not stale_ids:
                return 0
            session.execute(
                delete(InsightCacheEntry).where(InsightCacheEntry.id.in_(stale_ids))
            )
            return len(stale_ids)


class DismissalService:
    def __init__(self, session: Session, user_id: Optional[str]) -> None:
        self.session = session
        self.user_id = _require_id(user_id)

    def list_ids(self, cycle_id: str) -> list[str]:
        stmt = (
            select(InsightDismissal.item_id)
            .where(
                InsightDismissal.user_id == self.user_id,
                InsightDismissal.cycle_id == cycle_id,
            )
            .order_by(InsightDismissal.item_id)
        )
        return list(self.session.scalars(stmt).all())

    def dismiss(self, cycle_id: str, item_id: str) -> None:
        clean_id = item_id.strip()
        if not clean_id:
            raise ValueError("Item id cannot be empty")
        existing = self.session.scalar(
            select(InsightDismissal).where(
                InsightDismissal.user_id == self.user_id,
                InsightDismissal.cycle_id == cycle_id,
                InsightDismissal.item_id == clean_id,
            )
        )
        if existing:
            return
        self.session.add(
            InsightDismissal(user_id=self.user_id, cycle_id=cycle_id, item_id=clean_id)
        )
        self.session.commit()

    def restore(self, cycle_id: str, item_id: str) -> None:
        self.session.execute(
            delete(InsightDismissal).where(
                InsightDismissal.user_id == self.user_id,
                InsightDismissal.cycle_id == cycle_id,
                InsightDismissal.item_id == item_id.strip(),
            )
        )
        self.session.commit()


class InsightsService:
    def __init__(
        self,
        session: Session,
        user_id: Optional[str],
        cache: InsightCache,
        *,
        ttl_secs: Optional[int] = None,
        clock: Callable[[], datetime] = utcnow,
    ) -> None:
        self.session = session
        self.user_id = _require_id(user_id)
        self.cache = cache
        self.ttl = timedelta(
            seconds=ttl_secs if ttl_secs is not None else get_settings().insight_ttl_secs
        )
        self.clock = clock
        self.dismissals = DismissalService(session, self.user_id)

    def _is_fresh(self, record: InsightRecord, signature: str, now: datetime) -> bool:
        return record.signature == signature and now - record.generated_at < self.ttl

    def get_ai_insights(
        self,
        *,
        budget: Optional[BudgetRecord] = None,
        metrics: Optional[InsightMetrics] = None,
        force_refresh: bool = False,
        reference_date: Optional[date] = None,
    ) -> InsightResponse:
        if budget is not None:
            _require_id(budget.id, "budget id")
        if metrics is None:
            if budget is None:
                raise ValueError("Either a budget or precomputed metrics are required")
            metrics = build_insight_metrics(budget, reference_date)

        now = self.clock()
        cycle_id = cycle_id_for(now)
        key = (self.user_id, cycle_id)
        signature = metrics_signature(metrics)

        record = self.cache.get(key)
        cached = (
            record is not None
            and not force_refresh
            and self._is_fresh(record, signature, now)
        )
        if cached:
            logger.info(f"insight_cache_hit: user={self.user_id} cycle={cycle_id}")
        else:
            reason = "missing"
            if record is not None:
                reason = "forced" if force_refresh else "stale"
            logger.info(
                f"insight_regenerate: user={self.user_id} cycle={cycle_id} reason={reason}"
            )
            record = InsightRecord(
                signature=signature,
                generated_at=now,
                payload=build_insights(metrics),
            )
            self.cache.set(key, record)

        return InsightResponse(
            insights=record.payload,
            dismissed_ids=active_dismissals(
                record.payload, self.dismissals.list_ids(cycle_id)
            ),
            generated_at=record.generated_at,
            cached=cached,
            cycle_id=cycle_id,
            recommendations=build_recommendations(metrics, record.payload),
        )
