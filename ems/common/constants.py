"""Enums and constants for the Employee Management System — matching PostgreSQL ENUM types."""

from __future__ import annotations

import enum


# ── Auth / Roles ────────────────────────────────────────────────────

class UserRole(str, enum.Enum):
    employee = "employee"
    manager = "manager"
    admin = "admin"


# ── Leave ───────────────────────────────────────────────────────────

class LeaveType(str, enum.Enum):
    sick = "Sick"
    vacation = "Vacation"
    personal = "Personal"
    unpaid = "Unpaid"

    @property
    def is_capped(self) -> bool:
        """Capped categories are tracked against total / used / remaining."""
        return self is not LeaveType.unpaid


class LeaveStatus(str, enum.Enum):
    pending = "Pending"
    approved = "Approved"
    rejected = "Rejected"
    cancelled = "Cancelled"


# Allowed status transitions; anything not listed is invalid.
LEAVE_TRANSITIONS: dict[LeaveStatus, frozenset[LeaveStatus]] = {
    LeaveStatus.pending: frozenset(
        {LeaveStatus.approved, LeaveStatus.rejected, LeaveStatus.cancelled}
    ),
    LeaveStatus.approved: frozenset({LeaveStatus.cancelled}),
    LeaveStatus.rejected: frozenset(),
    LeaveStatus.cancelled: frozenset(),
}


# ── Validation limits ───────────────────────────────────────────────

REASON_MIN_LENGTH = 10
REASON_MAX_LENGTH = 500

BALANCE_TOTAL_MIN = 0
BALANCE_TOTAL_MAX = 365
BALANCE_YEAR_MIN = 2020
BALANCE_YEAR_MAX = 2100


# ── Misc ────────────────────────────────────────────────────────────

DEFAULT_PAGE_SIZE = 50
MAX_PAGE_SIZE = 100
