from __future__ import annotations

from collections.abc import Generator
from datetime import date, datetime

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from app.api.dependencies import get_today
from app.core.auth import ensure_user_principal
from app.db.base import Base
from app.db.dependencies import get_db_session
import app.models.entities  # noqa: F401
from app.main import create_app
from app.models.entities import (
    InvoiceUpload,
    MemberRole,
    Organization,
    OrganizationMember,
    RecoverabilityTimesheetUpload,
    StaffSetting,
    TimesheetUpload,
    User,
    WipTimesheetUpload,
)

TEST_TABLES = [
    Organization.__table__,
    User.__table__,
    OrganizationMember.__table__,
    InvoiceUpload.__table__,
    TimesheetUpload.__table__,
    WipTimesheetUpload.__table__,
    RecoverabilityTimesheetUpload.__table__,
    StaffSetting.__table__,
]

# Falls in financial year 2024-25.
REFERENCE_TODAY = date(2025, 3, 15)


@pytest.fixture()
def db_session() -> Generator[Session, None, None]:
    engine = create_engine(
        "sqlite+pysqlite:///:memory:",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
        future=True,
    )
    Base.metadata.create_all(bind=engine, tables=TEST_TABLES)
    TestingSessionLocal = sessionmaker(bind=engine, autoflush=False, autocommit=False, future=True)

    session = TestingSessionLocal()
    try:
        yield session
    finally:
        session.close()
        Base.metadata.drop_all(bind=engine, tables=TEST_TABLES)


@pytest.fixture()
def today() -> date:
    return REFERENCE_TODAY


@pytest.fixture()
def client(db_session: Session, today: date) -> Generator[TestClient, None, None]:
    app = create_app()

    def override_db() -> Generator[Session, None, None]:
        yield db_session

    app.dependency_overrides[get_db_session] = override_db
    app.dependency_overrides[get_today] = lambda: today
    with TestClient(app) as test_client:
        yield test_client
    app.dependency_overrides.clear()


def auth_headers(
    *,
    subject: str = "user-analyst",
    email: str = "analyst@test.local",
    display_name: str = "Analyst",
) -> dict[str, str]:
    return {
        "X-User-Id": subject,
        "X-User-Email": email,
        "X-User-Name": display_name,
    }


def add_membership(
    db: Session,
    *,
    organization: Organization,
    subject: str,
    email: str,
    display_name: str,
    role: MemberRole = MemberRole.MEMBER,
) -> User:
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
    return user


def create_organization(db: Session, *, name: str, slug: str) -> Organization:
    organization = Organization(name=name, slug=slug, created_at=datetime.utcnow())
    db.add(organization)
    db.commit()
    db.refresh(organization)
    return organization


@pytest.fixture()
def organization(db_session: Session) -> Organization:
    organization = create_organization(db_session, name="Harbour Accounting", slug="harbour")
    add_membership(
        db_session,
        organization=organization,
        subject="user-analyst",
        email="analyst@test.local",
        display_name="Analyst",
    )
    return organization


@pytest.fixture()
def headers() -> dict[str, str]:
    return auth_headers()
