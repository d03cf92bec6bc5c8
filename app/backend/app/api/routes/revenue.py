"""Revenue report endpoints (invoice uploads)."""

from __future__ import annotations

from datetime import date

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from app.api.dependencies import get_today
from app.core.auth import OrganizationContext, get_current_org_context
from app.db.dependencies import get_db_session
from app.services.reporting_service import ReportingService

router = APIRouter(prefix="/revenue", tags=["revenue"])


def _service(db: Session) -> ReportingService:
    return ReportingService(db)


@router.get("/monthly")
def revenue_monthly(
    today: date = Depends(get_today),
    context: OrganizationContext = Depends(get_current_org_context),
    db: Session = Depends(get_db_session),
) -> list[dict[str, object]]:
    service = _service(db)
    return service.revenue_monthly(tenant_id=context.organization_id, today=today)


@router.get("/client-groups")
def revenue_client_groups(
    today: date = Depends(get_today),
    context: OrganizationContext = Depends(get_current_org_context),
    db: Session = Depends(get_db_session),
) -> list[dict[str, object]]:
    service = _service(db)
    return service.revenue_client_groups(tenant_id=context.organization_id, today=today)
