"""Export endpoint for report datasets."""

from __future__ import annotations

from datetime import date

from fastapi import APIRouter, Depends, Query
from fastapi.responses import Response
from sqlalchemy.orm import Session

from app.api.dependencies import get_today
from app.core.auth import OrganizationContext, require_org_roles
from app.db.dependencies import get_db_session
from app.models.entities import MemberRole
from app.services.reporting_service import ReportingService

router = APIRouter(prefix="/exports", tags=["exports"])


def _service(db: Session) -> ReportingService:
    return ReportingService(db)


@router.get("/{report_key}")
def export_report(
    report_key: str,
    format: str = Query(default="xlsx"),
    today: date = Depends(get_today),
    context: OrganizationContext = Depends(require_org_roles(MemberRole.ADMIN, MemberRole.MEMBER)),
    db: Session = Depends(get_db_session),
) -> Response:
    service = _service(db)
    exported = service.export_report(
        tenant_id=context.organization_id,
        today=today,
        report_key=report_key,
        format_name=format,
    )
    return Response(
        content=exported.content,
        media_type=exported.media_type,
        headers={"Content-Disposition": f'attachment; filename="{exported.filename}"'},
    )
