"""Leave Pydantic v2 schemas — request / response validation.

Naming conventions:
  - *Create / *Request / *Update  → request bodies (write)
  - *Out                          → response bodies (read)
"""

from __future__ import annotations

import uuid
from datetime import date, datetime
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, model_validator

from ems.common.constants import (
    BALANCE_TOTAL_MAX,
    BALANCE_TOTAL_MIN,
    BALANCE_YEAR_MAX,
    BALANCE_YEAR_MIN,
    REASON_MAX_LENGTH,
    REASON_MIN_LENGTH,
    LeaveStatus,
    LeaveType,
)


# ═════════════════════════════════════════════════════════════════════
# Leave Request — Create
# ═════════════════════════════════════════════════════════════════════


class LeaveRequestCreate(BaseModel):
    """Payload for submitting a leave request."""

    employee_id: Optional[uuid.UUID] = Field(
        None,
        description="Employee the leave is for; defaults to the caller.",
    )
    leave_type: LeaveType
    start_date: date = Field(..., description="Leave start date (inclusive)")
    end_date: date = Field(..., description="Leave end date (inclusive)")
    reason: str = Field(
        ...,
        min_length=REASON_MIN_LENGTH,
        max_length=REASON_MAX_LENGTH,
        description="Reason for leave",
    )

    @model_validator(mode="after")
    def validate_dates(self) -> "LeaveRequestCreate":
        if self.start_date > self.end_date:
            raise ValueError("end_date must be on or after start_date.")
        return self


# ═════════════════════════════════════════════════════════════════════
# Leave Request — Response
# ═════════════════════════════════════════════════════════════════════


class LeaveRequestOut(BaseModel):
    """Full leave request response."""

    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    employee_id: uuid.UUID
    leave_type: LeaveType
    start_date: date
    end_date: date
    days_count: int
    reason: str
    status: LeaveStatus
    approved_by: Optional[uuid.UUID] = None
    approved_at: Optional[datetime] = None
    rejection_reason: Optional[str] = None
    cancelled_at: Optional[datetime] = None
    created_at: datetime
    updated_at: datetime

    # Enriched by service
    employee_name: Optional[str] = None
    employee_code: Optional[str] = None
    department: Optional[str] = None


# ═════════════════════════════════════════════════════════════════════
# Leave Reject
# ═════════════════════════════════════════════════════════════════════


class LeaveRejectRequest(BaseModel):
    """Payload for rejecting a leave request."""

    rejection_reason: str = Field(
        ..., min_length=REASON_MIN_LENGTH, max_length=REASON_MAX_LENGTH,
    )


# ═════════════════════════════════════════════════════════════════════
# Leave Balance
# ═════════════════════════════════════════════════════════════════════


class CategoryBalanceOut(BaseModel):
    """total / used / remaining for one capped leave category."""

    total: int
    used: int
    remaining: int


class LeaveBalanceOut(BaseModel):
    """Yearly balance of one employee across all categories."""

    id: uuid.UUID
    employee_id: uuid.UUID
    year: int
    sick: CategoryBalanceOut
    vacation: CategoryBalanceOut
    personal: CategoryBalanceOut
    unpaid_used: int
    created_at: datetime
    updated_at: datetime


class BalanceTotalsUpdate(BaseModel):
    """HR admin payload for setting yearly allowances."""

    year: int = Field(..., ge=BALANCE_YEAR_MIN, le=BALANCE_YEAR_MAX)
    sick_leave_total: Optional[int] = Field(
        None, ge=BALANCE_TOTAL_MIN, le=BALANCE_TOTAL_MAX,
    )
    vacation_leave_total: Optional[int] = Field(
        None, ge=BALANCE_TOTAL_MIN, le=BALANCE_TOTAL_MAX,
    )
    personal_leave_total: Optional[int] = Field(
        None, ge=BALANCE_TOTAL_MIN, le=BALANCE_TOTAL_MAX,
    )

    def totals(self) -> dict[LeaveType, int]:
        """Only the categories that were supplied."""
        supplied = {
            LeaveType.sick: self.sick_leave_total,
            LeaveType.vacation: self.vacation_leave_total,
            LeaveType.personal: self.personal_leave_total,
        }
        return {lt: v for lt, v in supplied.items() if v is not None}
