"""Authentication context extraction and organization scoping."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from uuid import UUID

from fastapi import Depends, Header, HTTPException, Query, status
from sqlalchemy import select
from sqlalchemy.orm import Session

from app.core.config import get_settings
from app.db.dependencies import get_db_session
from app.models.entities import MemberRole, Organization, OrganizationMember, User


@dataclass(frozen=True)
class RequestUserContext:
    """Authenticated request actor resolved from headers and DB state."""

    user_id: UUID
    subject: str
    email: str
    display_name: str


@dataclass(frozen=True)
class OrganizationContext:
    """Active tenant for the request and the caller's role in it."""

    user: RequestUserContext
    organization_id: UUID
    organization_name: str
    role: MemberRole


def _require_identity_headers(
    x_user_id: str | None,
    x_user_email: str | None,
    x_user_name: str | None,
) -> tuple[str, str, str]:
    if not x_user_id or not x_user_email:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail=(
                "Missing identity headers. Expected X-User-Id and X-User-Email or enable development principal fallback."
            ),
        )

    display_name = x_user_name or x_user_email
    return x_user_id.strip(), x_user_email.strip().lower(), display_name.strip()


def _resolve_identity(
    x_user_id: str | None,
    x_user_email: str | None,
    x_user_name: str | None,
) -> tuple[str, str, str]:
    settings = get_settings()
    if x_user_id and x_user_email:
        return _require_identity_headers(x_user_id, x_user_email, x_user_name)

    if settings.auth_allow_dev_principal:
        return (
            settings.auth_dev_subject.strip(),
            settings.auth_dev_email.strip().lower(),
            settings.auth_dev_display_name.strip(),
        )

    return _require_identity_headers(x_user_id, x_user_email, x_user_name)


def _upsert_user(db: Session, *, subject: str, email: str, display_name: str) -> User:
    user = db.scalar(select(User).where(User.subject == subject))
    now = datetime.utcnow()

    if user is None:
        user = User(
            subject=subject,
            email=email,
            display_name=display_name,
            last_login_at=now,
            created_at=now,
            updated_at=now,
        )
        db.add(user)
        db.flush()
        return user

    changed = False
    if user.email != email:
        user.email = email
        changed = True
    if user.display_name != display_name:
        user.display_name = display_name
        changed = True

    user.last_login_at = now
    if changed:
        user.updated_at = now
    db.flush()
    return user


def ensure_user_principal(
    db: Session,
    *,
    subject: str,
    email: str,
    display_name: str,
) -> User:
    """Ensure user exists and return persisted row.

    Utility exported for tests and seed helpers.
    """

    normalized_subject = subject.strip()
    normalized_email = email.strip().lower()
    normalized_display_name = display_name.strip() or normalized_email

    user = _upsert_user(
        db,
        subject=normalized_subject,
        email=normalized_email,
        display_name=normalized_display_name,
    )
    db.commit()
    db.refresh(user)
    return user


def get_current_user_context(
    x_user_id: str | None = Header(default=None, alias="X-User-Id"),
    x_user_email: str | None = Header(default=None, alias="X-User-Email"),
    x_user_name: str | None = Header(default=None, alias="X-User-Name"),
    db: Session = Depends(get_db_session),
) -> RequestUserContext:
    """Resolve current request user from trusted proxy headers."""

    subject, email, display_name = _resolve_identity(x_user_id, x_user_email, x_user_name)
    user = _upsert_user(db, subject=subject, email=email, display_name=display_name)
    db.commit()

    return RequestUserContext(
        user_id=user.id,
        subject=user.subject,
        email=user.email,
        display_name=user.display_name,
    )


def _load_memberships(db: Session, *, user_id: UUID) -> list[tuple[OrganizationMember, Organization]]:
    return list(
        db.execute(
            select(OrganizationMember, Organization)
            .join(Organization, Organization.id == OrganizationMember.organization_id)
            .where(OrganizationMember.user_id == user_id)
            .order_by(OrganizationMember.created_at.asc(), Organization.name.asc())
        ).tuples()
    )


def get_current_org_context(
    organization_id: UUID | None = Query(default=None, alias="organizationId"),
    x_organization_id: UUID | None = Header(default=None, alias="X-Organization-Id"),
    user: RequestUserContext = Depends(get_current_user_context),
    db: Session = Depends(get_db_session),
) -> OrganizationContext:
    """Resolve the tenant every report for this request is scoped to.

    An explicitly requested organization must be one the user belongs to;
    otherwise the user's first membership is used.
    """

    memberships = _load_memberships(db, user_id=user.user_id)
    if not memberships:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="No organization found for current user.",
        )

    requested = organization_id or x_organization_id
    if requested is None:
        member, organization = memberships[0]
    else:
        match = next((pair for pair in memberships if pair[1].id == requested), None)
        if match is None:
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail="Not a member of the requested organization.",
            )
        member, organization = match

    return OrganizationContext(
        user=user,
        organization_id=organization.id,
        organization_name=organization.name,
        role=member.role,
    )


def has_role(context: OrganizationContext, allowed_roles: set[MemberRole]) -> bool:
    """Check whether the caller holds one of the allowed roles in the active tenant."""

    return context.role in allowed_roles


def require_org_roles(*roles: MemberRole):
    """Dependency factory requiring one of the provided roles in the active tenant."""

    allowed = set(roles)

    def dependency(context: OrganizationContext = Depends(get_current_org_context)) -> OrganizationContext:
        if not has_role(context, allowed):
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail="Insufficient role permissions for this operation.",
            )
        return context

    return dependency
