from __future__ import annotations

import uuid
from datetime import date, datetime

import pytest
from fastapi.testclient import TestClient
from sqlalchemy.orm import Session

import app.core.auth as auth_module
from app.core.auth import OrganizationContext, RequestUserContext, ensure_user_principal, has_role
from app.core.config import Settings
from app.models.entities import InvoiceUpload, MemberRole, Organization, OrganizationMember


def _headers(subject: str, email: str, display_name: str) -> dict[str, str]:
    return {
        "X-User-Id": subject,
        "X-User-Email": email,
        "X-User-Name": display_name,
    }


def _create_organization(db: Session, *, name: str, slug: str) -> Organization:
    organization = Organization(name=name, slug=slug, created_at=datetime.utcnow())
    db.add(organization)
    db.commit()
    db.refresh(organization)
    return organization


def _add_membership(
    db: Session,
    *,
    organization: Organization,
    subject: str,
    email: str,
    display_name: str,
    role: MemberRole = MemberRole.MEMBER,
) -> None:
    user = ensure_user_principal(db, subject=subject, email=email, display_name=display_name)
    db.add(
        OrganizationMember(
            organization_id=organization.id,
            user_id=user.id,
            role=role,
            created_at=datetime.utcnow(),
        )
    )
    db.commit()


def _context(role: MemberRole) -> OrganizationContext:
    return OrganizationContext(
        user=RequestUserContext(
            user_id=uuid.uuid4(),
            subject="subject-1",
            email="user@test.local",
            display_name="User",
        ),
        organization_id=uuid.uuid4(),
        organization_name="Harbour Accounting",
        role=role,
    )


def _revenue_total(client: TestClient, **kwargs) -> float:
    response = client.get("/api/v1/revenue/monthly", **kwargs)
    assert response.status_code == 200
    return sum(row["Current Year"] for row in response.json())


def test_has_role_matches_expected_roles() -> None:
    context = _context(MemberRole.MEMBER)

    assert has_role(context, {MemberRole.MEMBER}) is True
    assert has_role(context, {MemberRole.ADMIN, MemberRole.VIEWER}) is False


def test_reports_scoped_to_requested_or_first_membership(
    client: TestClient,
    db_session: Session,
    organization: Organization,
    headers: dict[str, str],
) -> None:
    other = _create_organization(db_session, name="Second Practice", slug="second")
    _add_membership(
        db_session,
        organization=other,
        subject="user-analyst",
        email="analyst@test.local",
        display_name="Analyst",
    )
    db_session.add(InvoiceUpload(organization_id=organization.id, date=date(2024, 9, 1), amount=10))
    db_session.add(InvoiceUpload(organization_id=other.id, date=date(2024, 9, 1), amount=99))
    db_session.commit()

    assert _revenue_total(client, headers=headers) == 10.0
    assert _revenue_total(client, headers=headers, params={"organizationId": str(other.id)}) == 99.0
    assert _revenue_total(client, headers={**headers, "X-Organization-Id": str(other.id)}) == 99.0


def test_non_member_organization_is_forbidden(
    client: TestClient,
    db_session: Session,
    organization: Organization,
    headers: dict[str, str],
) -> None:
    stranger = _create_organization(db_session, name="Someone Else", slug="someone-else")

    response = client.get(
        "/api/v1/revenue/monthly",
        headers=headers,
        params={"organizationId": str(stranger.id)},
    )

    assert response.status_code == 403


def test_user_without_organization_gets_404(client: TestClient, organization: Organization) -> None:
    response = client.get("/api/v1/revenue/monthly", headers=_headers("user-new", "new@test.local", "New"))

    assert response.status_code == 404
    assert response.json()["detail"] == "No organization found for current user."


def test_missing_identity_is_rejected_without_dev_principal(
    client: TestClient,
    organization: Organization,
    monkeypatch: pytest.MonkeyPatch,
) -> None:
    monkeypatch.setattr(auth_module, "get_settings", lambda: Settings(auth_allow_dev_principal=False))

    response = client.get("/api/v1/revenue/monthly")

    assert response.status_code == 401


def test_dev_principal_is_used_when_headers_are_missing(
    client: TestClient,
    db_session: Session,
    organization: Organization,
) -> None:
    settings = auth_module.get_settings()
    _add_membership(
        db_session,
        organization=organization,
        subject=settings.auth_dev_subject,
        email=settings.auth_dev_email,
        display_name=settings.auth_dev_display_name,
    )

    response = client.get("/api/v1/revenue/monthly")

    assert response.status_code == 200


def test_viewer_can_read_reports_but_not_export(
    client: TestClient,
    db_session: Session,
    organization: Organization,
) -> None:
    _add_membership(
        db_session,
        organization=organization,
        subject="user-viewer",
        email="viewer@test.local",
        display_name="Viewer",
        role=MemberRole.VIEWER,
    )
    viewer_headers = _headers("user-viewer", "viewer@test.local", "Viewer")

    export = client.get("/api/v1/exports/revenue-monthly", headers=viewer_headers, params={"format": "csv"})
    report = client.get("/api/v1/revenue/monthly", headers=viewer_headers)

    assert export.status_code == 403
    assert report.status_code == 200
