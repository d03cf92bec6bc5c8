"""Dashboard KPI and partner comparison endpoints."""

from __future__ import annotations

from datetime import date

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from app.api.dependencies import get_today
from app.core.auth import OrganizationContext, get_current_org_context
from app.db.dependencies import get_db_session
from app.services.reporting_service import ReportingService

router = APIRouter(prefix="/dashboard", tags=["dashboard"])


def _service(db: Session) -> ReportingService:
    return ReportingService(db)


@router.get("/kpi")
def dashboard_kpi(
    as_of_date: str | None = Query(default=None, alias="asOfDate"),
    today: date = Depends(get_today),
    context: OrganizationContext = Depends(get_current_org_context),
    db: Session = Depends(get_db_session),
) -> dict[str, object]:
    service = _service(db)
    return service.dashboard_kpi(tenant_id=context.organization_id, today=today, as_of=as_of_date)


@router.get("/revenue-by-partner")
def dashboard_revenue_by_partner(
    as_of_date: str | None = Query(default=None, alias="asOfDate"),
    today: date = Depends(get_today),
    context: OrganizationContext = Depends(get_current_org_context),
    db: Session = Depends(get_db_session),
) -> list[dict[str, object]]:
    service = _service(db)
    return service.dashboard_revenue_by_partner(tenant_id=context.organization_id, today=today, as_of=as_of_date)


@router.get("/billable-by-partner")
def dashboard_billable_by_partner(
    as_of_date: str | None = Query(default=None, alias="asOfDate"),
    today: date = Depends(get_today),
    context: OrganizationContext = Depends(get_current_org_context),
    db: Session = Depends(get_db_session),
) -> list[dict[str, object]]:
    service = _service(db)
    return service.dashboard_billable_by_partner(tenant_id=context.organization_id, today=today, as_of=as_of_date)


@router.get("/staff-performance")
def dashboard_staff_performance(
    filters: str | None = Query(default=None, description="JSON array of {type, value, operator} objects."),
    as_of_date: str | None = Query(default=None, alias="asOfDate"),
    today: date = Depends(get_today),
    context: OrganizationContext = Depends(get_current_org_context),
    db: Session = Depends(get_db_session),
) -> dict[str, object]:
    service = _service(db)
    return service.dashboard_staff_performance(
        tenant_id=context.organization_id,
        today=today,
        filters=filters,
        as_of=as_of_date,
    )
