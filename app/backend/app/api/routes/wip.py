"""Work-in-progress endpoints with aging breakdowns."""

from __future__ import annotations

from datetime import date

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from app.api.dependencies import get_today
from app.core.auth import OrganizationContext, get_current_org_context
from app.db.dependencies import get_db_session
from app.services.reporting_service import ReportingService

router = APIRouter(prefix="/wip", tags=["wip"])


def _service(db: Session) -> ReportingService:
    return ReportingService(db)


@router.get("/aging-summary")
def wip_aging_summary(
    partner: str | None = None,
    client_manager: str | None = Query(default=None, alias="clientManager"),
    today: date = Depends(get_today),
    context: OrganizationContext = Depends(get_current_org_context),
    db: Session = Depends(get_db_session),
) -> dict[str, object]:
    """Aging buckets with each bucket's share of the total.

    ``percentages`` holds percent-of-total values rounded to 2 dp (``40.0``
    for forty percent), not fractions.
    """

    service = _service(db)
    return service.wip_aging_summary(
        tenant_id=context.organization_id,
        today=today,
        partner=partner,
        client_manager=client_manager,
    )


@router.get("/client-groups")
def wip_client_groups(
    partner: str | None = None,
    client_manager: str | None = Query(default=None, alias="clientManager"),
    today: date = Depends(get_today),
    context: OrganizationContext = Depends(get_current_org_context),
    db: Session = Depends(get_db_session),
) -> list[dict[str, object]]:
    service = _service(db)
    return service.wip_client_groups(
        tenant_id=context.organization_id,
        today=today,
        partner=partner,
        client_manager=client_manager,
    )


@router.get("/by-client-manager")
def wip_by_client_manager(
    partner: str | None = None,
    client_manager: str | None = Query(default=None, alias="clientManager"),
    context: OrganizationContext = Depends(get_current_org_context),
    db: Session = Depends(get_db_session),
) -> list[dict[str, object]]:
    service = _service(db)
    return service.wip_by_client_manager(
        tenant_id=context.organization_id,
        partner=partner,
        client_manager=client_manager,
    )


@router.get("/by-partner")
def wip_by_partner(
    partner: str | None = None,
    client_manager: str | None = Query(default=None, alias="clientManager"),
    context: OrganizationContext = Depends(get_current_org_context),
    db: Session = Depends(get_db_session),
) -> list[dict[str, object]]:
    service = _service(db)
    return service.wip_by_partner(
        tenant_id=context.organization_id,
        partner=partner,
        client_manager=client_manager,
    )
