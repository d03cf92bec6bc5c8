"""ORM model package."""

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

__all__ = [
    "InvoiceUpload",
    "MemberRole",
    "Organization",
    "OrganizationMember",
    "RecoverabilityTimesheetUpload",
    "StaffSetting",
    "TimesheetUpload",
    "User",
    "WipTimesheetUpload",
]
