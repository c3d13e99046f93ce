import logging
from typing import Optional

from fastapi import Depends, FastAPI, HTTPException
from sqlalchemy.orm import Session

from cadence import resolve_cycle_window
from config import get_settings
from database import SessionLocal
from insight_cache import InsightCache
from pacing import compute_pacing
from reporting import summarize_report
from schemas import (
    CycleWindowRequest,
    DismissalIn,
    InsightRequest,
    PacingRequest,
    ReportRequest,
)
from services import DismissalService, InsightsService, SQLInsightStore

logger = logging.getLogger(__name__)

app = FastAPI(title="Pocket Budget")

insight_cache = InsightCache(store=SQLInsightStore(SessionLocal))


def get_db():
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


def get_insight_cache() -> InsightCache:
    return insight_cache


def as_json(model) -> dict:
    return model.model_dump(mode="json", by_alias=True)


@app.post("/api/cycle-window")
def api_cycle_window(body: CycleWindowRequest):
    return as_json(resolve_cycle_window(body.cadence, body.reference_date))


@app.post("/api/pacing")
def api_pacing(body: PacingRequest):
    return as_json(compute_pacing(body.budget, body.reference_date))


@app.post("/api/reports")
def api_reports(body: ReportRequest):
    return as_json(summarize_report(body.budgets, body.period, body.reference_date))


@app.post("/api/insights")
def api_insights(
    body: InsightRequest,
    db: Session = Depends(get_db),
    cache: InsightCache = Depends(get_insight_cache),
):
    try:
        service = InsightsService(db, body.user_id, cache)
        response = service.get_ai_insights(
            budget=body.budget,
            force_refresh=body.force_refresh,
            reference_date=body.reference_date,
        )
    except ValueError as exc:
        logger.warning(f"request_rejected: error={exc}")
        raise HTTPException(status_code=400, detail=str(exc)) from exc
    return as_json(response)


@app.post("/api/insights/dismiss")
def api_dismiss_insight(body: DismissalIn, db: Session = Depends(get_db)):
    try:
        service = DismissalService(db, body.user_id)
        if body.dismissed:
            service.dismiss(body.cycle_id, body.item_id)
        else:
            service.restore(body.cycle_id, body.item_id)
    except ValueError as exc:
        logger.warning(f"request_rejected: error={exc}")
        raise HTTPException(status_code=400, detail=str(exc)) from exc
    return {"cycleId": body.cycle_id, "dismissedIds": service.list_ids(body.cycle_id)}


@app.get("/api/insights/dismissed")
def api_dismissed_insights(
    cycle_id: str, user_id: Optional[str] = None, db: Session = Depends(get_db)
):
    try:
        service = DismissalService(db, user_id)
    except ValueError as exc:
        logger.warning(f"request_rejected: error={exc}")
        raise HTTPException(status_code=400, detail=str(exc)) from exc
    return {"cycleId": cycle_id, "dismissedIds": service.list_ids(cycle_id)}


def main():
    import uvicorn

    logging.basicConfig(level=get_settings().log_level)
    uvicorn.run("main:app", host="0.0.0.0", port=8000, reload=False)


if __name__ == "__main__":
    main()
