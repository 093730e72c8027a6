"""Mini README: FastAPI service exposing the grant ledger to the presentation layer.

Structure:
    * create_application - application factory wiring routes to a LedgerStore.
    * BudgetFilePreviewRequest, BudgetFileImportRequest, GrantFileImportRequest -
      request bodies for the spreadsheet import steps.

The desktop or web front end owns forms, charts and file pickers; it calls
these endpoints with plain JSON documents in the ledger's camelCase layout
and receives the stored records back. Handlers are ``async`` and call the
store synchronously, so ledger operations run one at a time on the event
loop and never interleave their read-modify-write cycles.
"""

from __future__ import annotations

from datetime import date
from typing import Any, Dict, List, Optional

from fastapi import Body, FastAPI, Query, Request
from fastapi.responses import JSONResponse
from pydantic import BaseModel, Field

from ..configuration import get_settings
from ..exceptions import GrantLedgerError, NotFoundError, PersistenceError, ValidationError
from ..finance import (
    LedgerStore,
    budget_timeline,
    category_breakdown,
    check_budget_balance,
    expenses_by_category,
    filter_by_category,
    grant_totals,
    portfolio_summary,
)
from ..ingestion import (
    TARGET_CATEGORIES,
    available_columns,
    distinct_category_values,
    import_budget_file,
    import_grants_from_excel,
    preview_category_rows,
    read_rows,
)
from ..logging_utils import get_logger

LOGGER = get_logger(__name__)


class BudgetFileImportRequest(BaseModel):
    """Flat budget import of a spreadsheet already chosen by the user."""

    file_path: str = Field(..., description="Path resolved by the front end's file picker.")
    column_mapping: Dict[str, Optional[str]] = Field(
        ..., description="Columns feeding description, amount and category."
    )
    category_mapping: Dict[str, str] = Field(
        default_factory=dict, description="Raw category value to target category label."
    )


class BudgetFilePreviewRequest(BaseModel):
    """First step of a flat budget import: inspect a spreadsheet before mapping it."""

    file_path: str = Field(..., description="Path resolved by the front end's file picker.")
    column_mapping: Optional[Dict[str, Optional[str]]] = Field(
        None, description="Columns chosen so far; preview rows need at least the amount column."
    )
    category_mapping: Dict[str, str] = Field(
        default_factory=dict, description="Raw category value to target category label."
    )


class GrantFileImportRequest(BaseModel):
    """Structured grant import of a workbook already chosen by the user."""

    file_path: str = Field(..., description="Path resolved by the front end's file picker.")


def _error_status(error: GrantLedgerError) -> int:
    if isinstance(error, NotFoundError):
        return 404
    if isinstance(error, ValidationError):
        return 422
    if isinstance(error, PersistenceError):
        return 500
    return 400


def create_application(store: Optional[LedgerStore] = None) -> FastAPI:
    """Create the FastAPI application bound to ``store`` (or the configured ledger)."""

    app = FastAPI(title="Grant Ledger", version="0.1.0")
    ledger = store or LedgerStore.from_settings()
    settings = get_settings()

    @app.exception_handler(GrantLedgerError)
    async def ledger_error(request: Request, error: GrantLedgerError) -> JSONResponse:
        status_code = _error_status(error)
        log = LOGGER.error if status_code >= 500 else LOGGER.info
        log("%s %s failed with %s: %s", request.method, request.url.path, type(error).__name__, error)
        return JSONResponse(status_code=status_code, content={"detail": str(error)})

    @app.get("/health")
    async def health() -> Dict[str, Any]:
        """Liveness probe reporting the ledger location."""

        return {"ok": True, "ledger": str(ledger.path), "environment": settings.environment}

    @app.get("/grants")
    async def list_grants() -> List[Dict[str, Any]]:
        return [grant.as_dict(include_expenses=True) for grant in ledger.get_all()]

    @app.post("/grants", status_code=201)
    async def create_grant(data: Dict[str, Any] = Body(...)) -> Dict[str, Any]:
        return ledger.create_grant(data).as_dict()

    @app.get("/grants/{grant_id}")
    async def get_grant(grant_id: str) -> Dict[str, Any]:
        grant = ledger.get_grant(grant_id)
        payload = grant.as_dict(include_expenses=True)
        balance = check_budget_balance(grant, ledger.budget_tolerance)
        payload["budgetBalance"] = {
            "allocated": balance.allocated,
            "difference": balance.difference,
            "balanced": balance.balanced,
        }
        return payload

    @app.patch("/grants/{grant_id}")
    async def update_grant(grant_id: str, partial: Dict[str, Any] = Body(...)) -> Dict[str, Any]:
        return ledger.update_grant(grant_id, partial).as_dict()

    @app.delete("/grants/{grant_id}")
    async def delete_grant(grant_id: str) -> Dict[str, Any]:
        return ledger.delete_grant(grant_id).as_dict()

    @app.get("/grants/{grant_id}/breakdown")
    async def grant_breakdown(grant_id: str) -> Dict[str, Any]:
        """Budgeted, spent and remaining amounts for the grant detail view."""

        grant = ledger.get_grant(grant_id)
        return {
            "totals": grant_totals(grant),
            "categories": [entry.as_dict() for entry in category_breakdown(grant)],
        }

    @app.get("/grants/{grant_id}/timeline")
    async def grant_timeline(grant_id: str, today: Optional[date] = None) -> List[Dict[str, Any]]:
        return budget_timeline(ledger.get_grant(grant_id), today=today)

    @app.get("/grants/{grant_id}/budget")
    async def get_budget(grant_id: str) -> List[Dict[str, Any]]:
        return [category.as_dict() for category in ledger.get_budget(grant_id)]

    @app.post("/grants/{grant_id}/budget/import")
    async def import_budget(grant_id: str, categories: List[Dict[str, Any]] = Body(...)) -> List[Dict[str, Any]]:
        """Replace the budget with new categories; ids are always reassigned."""

        return [category.as_dict() for category in ledger.import_budget(grant_id, categories)]

    @app.put("/grants/{grant_id}/budget")
    async def update_budget(grant_id: str, categories: List[Dict[str, Any]] = Body(...)) -> List[Dict[str, Any]]:
        """Replace the budget with an edited set, keeping the supplied ids."""

        return [category.as_dict() for category in ledger.update_budget(grant_id, categories)]

    @app.patch("/grants/{grant_id}/budget/{category_id}")
    async def update_category(grant_id: str, category_id: str, partial: Dict[str, Any] = Body(...)) -> Dict[str, Any]:
        """Edit one category; derived amounts are recomputed from the new parameters."""

        return ledger.update_category(grant_id, category_id, partial).as_dict()

    @app.post("/grants/{grant_id}/budget/preview-file")
    async def preview_budget_file(grant_id: str, request: BudgetFilePreviewRequest) -> Dict[str, Any]:
        """Columns, raw category values and preview rows for the mapping steps."""

        ledger.get_budget(grant_id)
        rows = read_rows(request.file_path)
        columns = request.column_mapping or {}
        preview: List[Dict[str, Any]] = []
        if columns.get("amount"):
            preview = preview_category_rows(rows, columns, request.category_mapping)
        return {
            "columns": available_columns(rows),
            "targetCategories": list(TARGET_CATEGORIES),
            "categoryValues": distinct_category_values(rows, columns.get("category")),
            "rowCount": len(rows),
            "preview": preview,
        }

    @app.post("/grants/{grant_id}/budget/import-file")
    async def import_budget_from_file(grant_id: str, request: BudgetFileImportRequest) -> List[Dict[str, Any]]:
        categories = import_budget_file(
            ledger,
            grant_id,
            request.file_path,
            request.column_mapping,
            request.category_mapping,
        )
        return [category.as_dict() for category in categories]

    @app.get("/expenses")
    async def expenses_in_range(
        start: date,
        end: date,
        grant_id: Optional[List[str]] = Query(None),
        category: Optional[str] = None,
    ) -> List[Dict[str, Any]]:
        """Expenses between two dates, optionally for selected grants and a category."""

        expenses = filter_by_category(ledger.get_by_date_range(start, end, grant_id), category)
        return [expense.as_dict(include_grant=True) for expense in expenses]

    @app.post("/expenses", status_code=201)
    async def create_expense(data: Dict[str, Any] = Body(...)) -> Dict[str, Any]:
        return ledger.create_expense(data).as_dict()

    @app.patch("/expenses/{expense_id}")
    async def update_expense(expense_id: str, partial: Dict[str, Any] = Body(...)) -> Dict[str, Any]:
        return ledger.update_expense(expense_id, partial).as_dict()

    @app.delete("/expenses/{expense_id}")
    async def delete_expense(expense_id: str) -> Dict[str, Any]:
        return ledger.delete_expense(expense_id).as_dict()

    @app.post("/files/import-grants")
    async def import_grants(request: GrantFileImportRequest) -> Dict[str, Any]:
        """Create grants from a workbook; partial successes report exact counts."""

        result = import_grants_from_excel(ledger, request.file_path)
        return result.as_dict()

    @app.get("/reports/summary")
    async def summary() -> Dict[str, Any]:
        grants = ledger.get_all()
        payload: Dict[str, Any] = dict(portfolio_summary(grants))
        payload["expenses_by_category"] = expenses_by_category(
            expense for grant in grants for expense in grant.expenses
        )
        return payload

    return app
