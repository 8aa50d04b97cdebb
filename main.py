import logging
from typing import Callable, Optional

from fastapi import Depends, FastAPI, HTTPException, Request
from fastapi.responses import JSONResponse
from sqlalchemy.orm import Session

from config import get_settings
from database import SessionLocal, create_schema, session_scope
from ledger import HledgerClient, LedgerError
from periods import DateBound, resolve_bound
from reports import NotFound
from scheduler import SchedulerManager
from schemas import CategoryIn, SettingsIn, TierIn
from services import DashboardService, SettingsService
from snapshot import CacheEmpty, RebuildInProgress
from tiers import ReportSettings

logger = logging.getLogger(__name__)

app = FastAPI(title="Ledger Dashboard")

_settings = get_settings()
dashboard_service = DashboardService(
    HledgerClient(
        _settings.journal_file,
        executable=_settings.hledger_executable,
        timeout=_settings.hledger_timeout_secs,
    )
)
scheduler_manager = SchedulerManager(dashboard_service)


def get_db():
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


@app.on_event("startup")
def startup_event():
    create_schema()
    with session_scope() as session:
        dashboard_service.cache.apply_settings(SettingsService(session).load())
    scheduler_manager.start()


@app.on_event("shutdown")
def shutdown_event():
    scheduler_manager.stop()


def bound_from_request(request: Request) -> Optional[DateBound]:
    start = request.query_params.get("startDate")
    end = request.query_params.get("endDate")
    try:
        return resolve_bound(start, end)
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc


def needs_refresh_response() -> JSONResponse:
    return JSONResponse(
        status_code=202,
        content={"message": "cache empty; refresh required", "needs_refresh": True},
    )


def serve(compute: Callable[[], object], label: str):
    try:
        return compute()
    except CacheEmpty:
        return needs_refresh_response()
    except NotFound as exc:
        raise HTTPException(status_code=404, detail=str(exc.args[0])) from exc
    except LedgerError as exc:
        logger.error(f"report_failed: report={label} error={exc}")
        raise HTTPException(status_code=502, detail=f"Failed to get {label}") from exc


def _report_route(path: str, name: str, label: str) -> None:
    def endpoint(request: Request):
        bound = bound_from_request(request)
        return serve(lambda: dashboard_service.report(name, bound), label)

    endpoint.__name__ = f"api_{name}"
    app.get(path)(endpoint)


_report_route("/api/accounts", "accounts", "accounts")
_report_route("/api/transactions", "transactions", "transactions")
_report_route("/api/summary", "summary", "summary")
_report_route("/api/budget", "budget", "budget comparison")
_report_route("/api/budget-history", "budget_history", "budget history")
_report_route("/api/monthly-metrics", "monthly_metrics", "monthly metrics")
_report_route("/api/category-spending", "category_spending", "category spending")
_report_route("/api/income-breakdown", "income_breakdown", "income breakdown")
_report_route("/api/income-history", "income_history", "income history")
_report_route("/api/net-worth", "net_worth_over_time", "net worth")
_report_route("/api/category-trends", "category_trends", "category trends")
_report_route("/api/year-over-year", "year_over_year", "year-over-year comparison")


@app.get("/api/detail/{kind}")
def api_detail(kind: str, request: Request):
    if kind not in ("category", "tier", "account", "income"):
        raise HTTPException(status_code=404, detail="Unknown detail view")
    name = request.query_params.get("name") or request.query_params.get(kind)
    if not name:
        raise HTTPException(status_code=400, detail=f"{kind} parameter required")
    bound = bound_from_request(request)
    return serve(lambda: dashboard_service.detail(kind, name, bound), f"{kind} detail")


@app.get("/api/cache/status")
def api_cache_status():
    return dashboard_service.cache_status().to_dict()


@app.post("/api/cache/refresh")
def api_cache_refresh():
    try:
        snapshot = dashboard_service.rebuild_cache()
    except RebuildInProgress:
        return JSONResponse(
            status_code=202,
            content={"message": "refresh already in progress", "in_progress": True},
        )
    except LedgerError as exc:
        raise HTTPException(status_code=502, detail=str(exc)) from exc
    return {"message": "cache rebuilt", "last_refresh": snapshot.last_refresh}


@app.get("/api/settings")
def api_get_settings():
    return dashboard_service.settings.to_dict()


def _apply(write: Callable[[], ReportSettings]) -> dict[str, object]:
    settings = dashboard_service.write_settings(write)
    return {"message": "settings updated successfully", "settings": settings.to_dict()}


@app.put("/api/settings")
def api_update_settings(payload: SettingsIn, db: Session = Depends(get_db)):
    return _apply(lambda: SettingsService(db).save(payload))


@app.post("/api/settings/tiers")
def api_create_tier(payload: TierIn, db: Session = Depends(get_db)):
    try:
        return _apply(lambda: SettingsService(db).create_tier(payload))
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc


@app.delete("/api/settings/tiers/{tier_name}")
def api_delete_tier(tier_name: str, db: Session = Depends(get_db)):
    try:
        return _apply(lambda: SettingsService(db).delete_tier(tier_name))
    except ValueError as exc:
        raise HTTPException(status_code=404, detail=str(exc)) from exc


@app.post("/api/settings/tiers/{tier_name}/categories")
def api_add_tier_category(
    tier_name: str, payload: CategoryIn, db: Session = Depends(get_db)
):
    try:
        return _apply(
            lambda: SettingsService(db).add_category(tier_name, payload.category)
        )
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc


@app.delete("/api/settings/tiers/{tier_name}/categories/{category}")
def api_remove_tier_category(
    tier_name: str, category: str, db: Session = Depends(get_db)
):
    try:
        return _apply(lambda: SettingsService(db).remove_category(tier_name, category))
    except ValueError as exc:
        raise HTTPException(status_code=404, detail=str(exc)) from exc


def main():
    import uvicorn

    uvicorn.run("main:app", host="0.0.0.0", port=8000, reload=False)


if __name__ == "__main__":
    main()
