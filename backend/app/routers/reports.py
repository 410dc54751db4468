"""
Reports router: salary and invoice exports over approved time, plus project
follow-up.

``?format=csv`` streams a spreadsheet-friendly file using the company's
delimiter; the default is JSON.
"""

import io
import uuid
import logging
from datetime import date
from typing import Literal, Optional

from fastapi import APIRouter, Depends, Query
from fastapi.responses import StreamingResponse

from app.dependencies import get_tenant, require_supervisor
from app.models.user import User
from app.services import reports as svc
from app.services.audit import log_action
from app.services.tenant import TenantScope

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/reports", tags=["Reports"])


def _csv_response(content: str, filename: str) -> StreamingResponse:
    return StreamingResponse(
        io.BytesIO(content.encode("utf-8")),
        media_type="text/csv; charset=utf-8",
        headers={"Content-Disposition": f'attachment; filename="{filename}"'},
    )


@router.get("/salary")
def salary_report(
    from_: date = Query(..., alias="from"),
    to: date = Query(...),
    user_id: Optional[uuid.UUID] = Query(None),
    format: Literal["json", "csv"] = Query("json"),
    user: User = Depends(require_supervisor),
    scope: TenantScope = Depends(get_tenant),
):
    report = svc.salary_report(scope, from_, to, user_id)
    if format != "csv":
        return report

    settings = scope.settings()
    content = svc.salary_csv(report, settings.csv_delimiter)
    log_action(
        scope.db, scope.company_id, user.user_id, "EXPORT", "SalaryReport",
        new_value={"from": from_, "to": to, "user_id": user_id, "rows": len(report["rows"])},
        commit=True,
    )
    logger.info("Salary export %s..%s for company %s (%d rows)", from_, to, scope.company_id, len(report["rows"]))
    return _csv_response(content, f"salary_{from_}_{to}.csv")


@router.get("/invoice")
def invoice_report(
    from_: date = Query(..., alias="from"),
    to: date = Query(...),
    customer_id: Optional[uuid.UUID] = Query(None),
    project_id: Optional[uuid.UUID] = Query(None),
    format: Literal["json", "csv"] = Query("json"),
    user: User = Depends(require_supervisor),
    scope: TenantScope = Depends(get_tenant),
):
    report = svc.invoice_report(scope, from_, to, customer_id, project_id)
    if format != "csv":
        return report

    settings = scope.settings()
    content = svc.invoice_csv(report, settings.csv_delimiter, settings.vat_rate)
    log_action(
        scope.db, scope.company_id, user.user_id, "EXPORT", "InvoiceReport",
        new_value={
            "from": from_, "to": to,
            "customer_id": customer_id, "project_id": project_id,
            "rows": len(report["rows"]),
        },
        commit=True,
    )
    logger.info("Invoice export %s..%s for company %s (%d rows)", from_, to, scope.company_id, len(report["rows"]))
    return _csv_response(content, f"invoice_{from_}_{to}.csv")


@router.get("/project/{project_id}")
def project_report(
    project_id: uuid.UUID,
    from_: Optional[date] = Query(None, alias="from"),
    to: Optional[date] = Query(None),
    _user: User = Depends(require_supervisor),
    scope: TenantScope = Depends(get_tenant),
):
    return svc.project_report(scope, project_id, from_, to)
