"""
Budget Office Dashboard — FastAPI backend.

Serves the REST API behind the budget screens: quote entry, approval, the
consolidated budget report, its CSV export, and client lookup by CNPJ.

All budget state lives in a single SQLite database (output/budgets.db).
Reports are recomputed from the stored budgets on every request.

Endpoints
---------
  GET    /api/health                      → liveness probe
  GET    /api/stats                       → counts by approval state
  GET    /api/budgets                     → list budgets (supports ?search=)
  GET    /api/budgets/next-number         → number the next budget will receive
  GET    /api/budgets/{id}                → one budget
  POST   /api/budgets                     → create (total_value computed once here)
  PATCH  /api/budgets/{id}                → partial update (total_value NOT recomputed)
  DELETE /api/budgets/{id}                → delete
  GET    /api/budgets/{id}/audit          → audit trail for one budget
  GET    /api/reports/budgets             → summary + by-client + by-vendor views
  GET    /api/reports/budgets/export      → CSV download (?mode=client|vendor)
  GET    /api/clients/lookup-by-cnpj      → client registry lookup
  GET    /api/clients/lookup/cache        → lookup cache statistics
  DELETE /api/clients/lookup/cache        → clear the lookup cache (all, or ?cnpj=)
"""
import logging
from datetime import date
from typing import Optional

from fastapi import FastAPI, HTTPException, Query, Request, Response
from pydantic import ValidationError

from budgeting.aggregation import consolidate_by_client, consolidate_by_vendor, filter_budgets, summarize
from budgeting.client_lookup import (
    ClientLookupError,
    ClientLookupService,
    format_cnpj,
    is_valid_cnpj,
)
from budgeting.database import Database
from budgeting.export import export_filename, render_report_csv
from budgeting.validation import draft_errors
from config import Config
from dashboard.models import BudgetCreate, BudgetPatch
from dashboard.services.presentation import (
    budget_view,
    client_group_view,
    summary_view,
    vendor_group_view,
)
from models.report import ReportFilter

logger = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
# Config and lazily-opened collaborators (first request, so startup does not
# fail on an unwritable output dir)
# ---------------------------------------------------------------------------
config = Config()

_db: Optional[Database] = None
_lookup: Optional[ClientLookupService] = None


def get_db() -> Database:
    global _db
    if _db is None:
        _db = Database(config.db_path)
    return _db


def get_lookup() -> ClientLookupService:
    global _lookup
    if _lookup is None:
        _lookup = ClientLookupService.from_config(config)
    return _lookup


def _actor(request: Request) -> str:
    return request.headers.get("X-Operator") or "anonymous"


app = FastAPI(title="Budget Office Dashboard", docs_url=None, redoc_url=None)


# ── Health ───────────────────────────────────────────────────────────────────

@app.get("/api/health")
def health():
    return {
        "status":     "ok",
        "db_path":    str(config.db_path),
        "db_exists":  config.db_path.exists(),
        "client_lookup_configured": get_lookup().configured,
    }


@app.get("/api/stats")
def stats():
    return get_db().get_stats()


# ── Budgets ──────────────────────────────────────────────────────────────────

@app.get("/api/budgets")
def list_budgets(
    search: Optional[str] = Query(default=None),
    limit: int = Query(default=500, le=2000),
    offset: int = Query(default=0, ge=0),
):
    budgets = get_db().list_budgets(search=search or None, limit=limit, offset=offset)
    return [budget_view(b) for b in budgets]


@app.get("/api/budgets/next-number")
def next_budget_number():
    return {"next_number": get_db().next_budget_number()}


@app.get("/api/budgets/{budget_id}")
def get_budget(budget_id: str):
    budget = get_db().get_budget(budget_id)
    if budget is None:
        raise HTTPException(status_code=404, detail=f"Budget not found: {budget_id}")
    return budget_view(budget)


@app.post("/api/budgets", status_code=201)
def create_budget(body: BudgetCreate, request: Request):
    """
    Create a budget.

    At least one line must be marked for inclusion in the total; the total
    itself is computed server-side and any client-sent value is ignored.
    """
    errors = draft_errors(body)
    if errors:
        raise HTTPException(400, errors[0])

    budget = get_db().create_budget(body, actor=_actor(request))
    return budget_view(budget)


@app.patch("/api/budgets/{budget_id}")
def update_budget(budget_id: str, body: BudgetPatch, request: Request):
    """
    Partially update a budget (typically approved / rejected / notes).

    The stored total_value is a creation-time snapshot and is left as is,
    even when lines or the design fee change.
    """
    db = get_db()
    current = db.get_budget(budget_id)
    if current is None:
        raise HTTPException(404, f"Budget not found: {budget_id}")

    # null only clears notes; for every other field it means "leave unchanged"
    changes = {
        name: getattr(body, name)
        for name in body.model_fields_set
        if getattr(body, name) is not None or name == "notes"
    }
    approved = changes.get("approved", current.approved)
    rejected = changes.get("rejected", current.rejected)
    if approved and rejected:
        raise HTTPException(400, "A budget cannot be both approved and rejected")

    budget = db.update_budget(budget_id, changes, actor=_actor(request))
    if budget is None:
        raise HTTPException(404, f"Budget not found: {budget_id}")
    return budget_view(budget)


@app.delete("/api/budgets/{budget_id}", status_code=204)
def delete_budget(budget_id: str, request: Request):
    if not get_db().delete_budget(budget_id, actor=_actor(request)):
        raise HTTPException(404, f"Budget not found: {budget_id}")
    return Response(status_code=204)


@app.get("/api/budgets/{budget_id}/audit")
def budget_audit(budget_id: str):
    return get_db().get_audit_log(budget_id)


# ── Reports ──────────────────────────────────────────────────────────────────

def _report_filter(
    period: Optional[str],
    start_date: Optional[date],
    end_date: Optional[date],
    status: str,
    client: Optional[str],
    vendor: Optional[str],
) -> ReportFilter:
    try:
        return ReportFilter(
            period=period or config.report_default_period,
            start_date=start_date,
            end_date=end_date,
            status=status,
            client=client,
            vendor=vendor,
        )
    except ValidationError as exc:
        raise HTTPException(400, f"Invalid report filter: {exc.errors()[0]['msg']}")


@app.get("/api/reports/budgets")
def budget_report(
    period: Optional[str] = Query(default=None),
    start_date: Optional[date] = Query(default=None),
    end_date: Optional[date] = Query(default=None),
    status: str = Query(default="all"),
    client: Optional[str] = Query(default=None),
    vendor: Optional[str] = Query(default=None),
):
    """Both consolidated views over the filtered budgets."""
    report_filter = _report_filter(period, start_date, end_date, status, client, vendor)
    budgets = filter_budgets(get_db().list_budgets(), report_filter)
    return {
        "filter":    report_filter.model_dump(mode="json"),
        "summary":   summary_view(summarize(budgets)),
        "by_client": [client_group_view(g) for g in consolidate_by_client(budgets)],
        "by_vendor": [vendor_group_view(g) for g in consolidate_by_vendor(budgets)],
    }


@app.get("/api/reports/budgets/export")
def export_budget_report(
    mode: str = Query(default="client"),
    period: Optional[str] = Query(default=None),
    start_date: Optional[date] = Query(default=None),
    end_date: Optional[date] = Query(default=None),
    status: str = Query(default="all"),
    client: Optional[str] = Query(default=None),
    vendor: Optional[str] = Query(default=None),
):
    """Download the active report view as CSV."""
    if mode not in ("client", "vendor"):
        raise HTTPException(400, "mode must be 'client' or 'vendor'")

    report_filter = _report_filter(period, start_date, end_date, status, client, vendor)
    budgets = filter_budgets(get_db().list_budgets(), report_filter)
    groups = consolidate_by_client(budgets) if mode == "client" else consolidate_by_vendor(budgets)
    content = render_report_csv(mode, groups, config.export_template_path)

    filename = export_filename(mode)
    logger.info("Report exported: %s (%d budgets)", filename, len(budgets))
    return Response(
        content=content,
        media_type="text/csv; charset=utf-8",
        headers={"Content-Disposition": f'attachment; filename="{filename}"'},
    )


# ── Client lookup ────────────────────────────────────────────────────────────

@app.get("/api/clients/lookup-by-cnpj")
def lookup_client(cnpj: str = Query(...)):
    if not is_valid_cnpj(cnpj):
        raise HTTPException(400, "CNPJ must have 14 digits")

    try:
        record = get_lookup().find_by_cnpj(cnpj)
    except ClientLookupError as exc:
        raise HTTPException(503, str(exc))

    if record is None:
        raise HTTPException(404, f"Client not found for CNPJ {format_cnpj(cnpj)}")
    return record.model_dump()


@app.get("/api/clients/lookup/cache")
def lookup_cache_stats():
    return get_lookup().cache.stats()


@app.delete("/api/clients/lookup/cache")
def clear_lookup_cache(cnpj: Optional[str] = Query(default=None)):
    cache = get_lookup().cache
    if cnpj:
        cache.invalidate(cnpj)
    else:
        cache.clear()
        logger.info("Client lookup cache cleared")
    return {"cleared": cnpj or "all"}
