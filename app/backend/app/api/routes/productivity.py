"""Productivity report endpoints (billable and capacity-reducing hours)."""

from __future__ import annotations

from datetime import date

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from app.api.dependencies import get_today
from app.core.auth import OrganizationContext, get_current_org_context
from app.db.dependencies import get_db_session
from app.services.reporting_service import ReportingService

router = APIRouter(prefix="/productivity", tags=["productivity"])


def _service(db: Session) -> ReportingService:
    return ReportingService(db)


@router.get("/monthly")
def productivity_monthly(
    staff: str | None = None,
    as_of_date: str | None = Query(default=None, alias="asOfDate"),
    today: date = Depends(get_today),
    context: OrganizationContext = Depends(get_current_org_context),
    db: Session = Depends(get_db_session),
) -> list[dict[str, object]]:
    service = _service(db)
    return service.productivity_monthly(
        tenant_id=context.organization_id,
        today=today,
        staff=staff,
        as_of=as_of_date,
    )


@router.get("/capacity-reducing/monthly")
def capacity_reducing_monthly(
    staff: str | None = None,
    as_of_date: str | None = Query(default=None, alias="asOfDate"),
    today: date = Depends(get_today),
    context: OrganizationContext = Depends(get_current_org_context),
    db: Session = Depends(get_db_session),
) -> list[dict[str, object]]:
    service = _service(db)
    return service.capacity_reducing_monthly(
        tenant_id=context.organization_id,
        today=today,
        staff=staff,
        as_of=as_of_date,
    )


@router.get("/standard-hours/monthly")
def standard_hours_monthly(
    staff: str | None = None,
    today: date = Depends(get_today),
    context: OrganizationContext = Depends(get_current_org_context),
    db: Session = Depends(get_db_session),
) -> list[dict[str, object]]:
    service = _service(db)
    return service.productivity_standard_hours_monthly(tenant_id=context.organization_id, today=today, staff=staff)


@router.get("/staff")
def productivity_staff(
    today: date = Depends(get_today),
    context: OrganizationContext = Depends(get_current_org_context),
    db: Session = Depends(get_db_session),
) -> list[str]:
    service = _service(db)
    return service.productivity_staff(tenant_id=context.organization_id, today=today)


@router.get("/client-groups")
def productivity_client_groups(
    staff: str | None = None,
    month: str | None = None,
    filters: str | None = Query(default=None, description="JSON array of {type, value, operator} objects."),
    as_of_date: str | None = Query(default=None, alias="asOfDate"),
    today: date = Depends(get_today),
    context: OrganizationContext = Depends(get_current_org_context),
    db: Session = Depends(get_db_session),
) -> list[dict[str, object]]:
    service = _service(db)
    return service.productivity_client_groups(
        tenant_id=context.organization_id,
        today=today,
        staff=staff,
        month=month,
        filters=filters,
        as_of=as_of_date,
    )


@router.get("/kpi")
def productivity_kpi(
    staff: str | None = None,
    as_of_date: str | None = Query(default=None, alias="asOfDate"),
    today: date = Depends(get_today),
    context: OrganizationContext = Depends(get_current_org_context),
    db: Session = Depends(get_db_session),
) -> dict[str, float]:
    service = _service(db)
    return service.productivity_kpi(
        tenant_id=context.organization_id,
        today=today,
        staff=staff,
        as_of=as_of_date,
    )
