"""Recoverability report endpoints (write-on versus invoiced amounts)."""

from __future__ import annotations

from datetime import date

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from app.api.dependencies import get_today
from app.core.auth import OrganizationContext, get_current_org_context
from app.db.dependencies import get_db_session
from app.services.reporting_service import ReportingService

router = APIRouter(prefix="/recoverability", tags=["recoverability"])


def _service(db: Session) -> ReportingService:
    return ReportingService(db)


@router.get("/monthly")
def recoverability_monthly(
    partner: str | None = None,
    client_manager: str | None = Query(default=None, alias="clientManager"),
    today: date = Depends(get_today),
    context: OrganizationContext = Depends(get_current_org_context),
    db: Session = Depends(get_db_session),
) -> list[dict[str, object]]:
    service = _service(db)
    return service.recoverability_monthly(
        tenant_id=context.organization_id,
        today=today,
        partner=partner,
        client_manager=client_manager,
    )


@router.get("/client-groups")
def recoverability_client_groups(
    month: str | None = None,
    filters: str | None = Query(default=None, description="JSON array of {type, value} objects."),
    today: date = Depends(get_today),
    context: OrganizationContext = Depends(get_current_org_context),
    db: Session = Depends(get_db_session),
) -> list[dict[str, object]]:
    service = _service(db)
    return service.recoverability_client_groups(
        tenant_id=context.organization_id,
        today=today,
        month=month,
        filters=filters,
    )


@router.get("/kpi")
def recoverability_kpi(
    filters: str | None = Query(default=None, description="JSON array of {type, value} objects."),
    as_of_date: str | None = Query(default=None, alias="asOfDate"),
    today: date = Depends(get_today),
    context: OrganizationContext = Depends(get_current_org_context),
    db: Session = Depends(get_db_session),
) -> dict[str, object]:
    service = _service(db)
    return service.recoverability_kpi(
        tenant_id=context.organization_id,
        today=today,
        filters=filters,
        as_of=as_of_date,
    )


@router.get("/filter-options")
def recoverability_filter_options(
    context: OrganizationContext = Depends(get_current_org_context),
    db: Session = Depends(get_db_session),
) -> dict[str, list[str]]:
    service = _service(db)
    return service.recoverability_filter_options(tenant_id=context.organization_id)
