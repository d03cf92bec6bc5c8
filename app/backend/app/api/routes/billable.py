"""Billable report endpoints (timesheet uploads)."""

from __future__ import annotations

from datetime import date

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from app.api.dependencies import get_today
from app.core.auth import OrganizationContext, get_current_org_context
from app.db.dependencies import get_db_session
from app.services.reporting_service import ReportingService

router = APIRouter(prefix="/billable", tags=["billable"])


def _service(db: Session) -> ReportingService:
    return ReportingService(db)


@router.get("/monthly")
def billable_monthly(
    staff: str | None = None,
    today: date = Depends(get_today),
    context: OrganizationContext = Depends(get_current_org_context),
    db: Session = Depends(get_db_session),
) -> list[dict[str, object]]:
    service = _service(db)
    return service.billable_monthly(tenant_id=context.organization_id, today=today, staff=staff)


@router.get("/client-groups")
def billable_client_groups(
    staff: str | None = None,
    month: str | None = None,
    filters: str | None = Query(default=None, description="JSON array of {type, value, operator} objects."),
    today: date = Depends(get_today),
    context: OrganizationContext = Depends(get_current_org_context),
    db: Session = Depends(get_db_session),
) -> list[dict[str, object]]:
    service = _service(db)
    return service.billable_client_groups(
        tenant_id=context.organization_id,
        today=today,
        staff=staff,
        month=month,
        filters=filters,
    )


@router.get("/staff")
def billable_staff(
    today: date = Depends(get_today),
    context: OrganizationContext = Depends(get_current_org_context),
    db: Session = Depends(get_db_session),
) -> list[str]:
    service = _service(db)
    return service.billable_staff(tenant_id=context.organization_id, today=today)


@router.get("/partners")
def billable_partners(
    context: OrganizationContext = Depends(get_current_org_context),
    db: Session = Depends(get_db_session),
) -> list[str]:
    service = _service(db)
    return service.billable_partners(tenant_id=context.organization_id)


@router.get("/client-managers")
def billable_client_managers(
    context: OrganizationContext = Depends(get_current_org_context),
    db: Session = Depends(get_db_session),
) -> list[str]:
    service = _service(db)
    return service.billable_client_managers(tenant_id=context.organization_id)


@router.get("/filter-options")
def billable_filter_options(
    context: OrganizationContext = Depends(get_current_org_context),
    db: Session = Depends(get_db_session),
) -> dict[str, list[str]]:
    service = _service(db)
    return service.billable_filter_options(tenant_id=context.organization_id)
