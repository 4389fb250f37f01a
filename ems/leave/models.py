"""Leave ORM models: LeaveBalance, LeaveRequest."""

from __future__ import annotations

import uuid
from datetime import date, datetime
from typing import TYPE_CHECKING, Optional

import sqlalchemy as sa
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import InstrumentedAttribute, Mapped, mapped_column, relationship

from ems.common.constants import LeaveStatus, LeaveType
from ems.database import Base

if TYPE_CHECKING:
    from ems.core_hr.models import Employee


def _enum_values(enum_cls) -> list[str]:
    return [member.value for member in enum_cls]


class LeaveBalance(Base):
    """One row per employee per calendar year.

    Capped categories carry ``total`` / ``used`` / ``remaining`` with
    ``remaining = total - used``; Unpaid only tracks usage.
    """

    __tablename__ = "leave_balances"
    __table_args__ = (
        sa.UniqueConstraint("employee_id", "year", name="uq_leave_balance_emp_year"),
        sa.CheckConstraint(
            "sick_leave_used >= 0 AND vacation_leave_used >= 0 "
            "AND personal_leave_used >= 0 AND unpaid_leave_used >= 0",
            name="ck_leave_balance_used_non_negative",
        ),
    )

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        primary_key=True,
        default=uuid.uuid4,
    )
    employee_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), sa.ForeignKey("employees.id"), nullable=False
    )
    year: Mapped[int] = mapped_column(sa.Integer, nullable=False)

    sick_leave_total: Mapped[int] = mapped_column(sa.Integer, nullable=False)
    sick_leave_used: Mapped[int] = mapped_column(
        sa.Integer, nullable=False, default=0, server_default=sa.text("0")
    )
    sick_leave_remaining: Mapped[int] = mapped_column(sa.Integer, nullable=False)

    vacation_leave_total: Mapped[int] = mapped_column(sa.Integer, nullable=False)
    vacation_leave_used: Mapped[int] = mapped_column(
        sa.Integer, nullable=False, default=0, server_default=sa.text("0")
    )
    vacation_leave_remaining: Mapped[int] = mapped_column(sa.Integer, nullable=False)

    personal_leave_total: Mapped[int] = mapped_column(sa.Integer, nullable=False)
    personal_leave_used: Mapped[int] = mapped_column(
        sa.Integer, nullable=False, default=0, server_default=sa.text("0")
    )
    personal_leave_remaining: Mapped[int] = mapped_column(sa.Integer, nullable=False)

    unpaid_leave_used: Mapped[int] = mapped_column(
        sa.Integer, nullable=False, default=0, server_default=sa.text("0")
    )

    created_at: Mapped[datetime] = mapped_column(
        sa.DateTime(timezone=True), server_default=sa.func.now()
    )
    updated_at: Mapped[datetime] = mapped_column(
        sa.DateTime(timezone=True), server_default=sa.func.now()
    )

    # Relationships
    employee: Mapped["Employee"] = relationship(
        back_populates="leave_balances"
    )

    @classmethod
    def category_columns(
        cls, leave_type: LeaveType,
    ) -> tuple[InstrumentedAttribute, InstrumentedAttribute, InstrumentedAttribute]:
        """Return the (total, used, remaining) columns of a capped category."""
        prefix = {
            LeaveType.sick: "sick_leave",
            LeaveType.vacation: "vacation_leave",
            LeaveType.personal: "personal_leave",
        }.get(leave_type)
        if prefix is None:
            raise ValueError(f"{leave_type.value} leave has no capped balance.")
        return (
            getattr(cls, f"{prefix}_total"),
            getattr(cls, f"{prefix}_used"),
            getattr(cls, f"{prefix}_remaining"),
        )

    def remaining_for(self, leave_type: LeaveType) -> int:
        _, _, remaining = self.category_columns(leave_type)
        return getattr(self, remaining.key)

    def __repr__(self) -> str:
        return f"<LeaveBalance {self.employee_id} {self.year}>"


class LeaveRequest(Base):
    __tablename__ = "leave_requests"
    __table_args__ = (
        sa.CheckConstraint("end_date >= start_date", name="ck_leave_request_dates"),
        sa.CheckConstraint("days_count > 0", name="ck_leave_request_days"),
        sa.Index("idx_leave_req_emp_dates", "employee_id", "start_date", "end_date"),
        sa.Index("idx_leave_req_status", "status"),
    )

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        primary_key=True,
        default=uuid.uuid4,
    )
    employee_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), sa.ForeignKey("employees.id"), nullable=False
    )
    leave_type: Mapped[LeaveType] = mapped_column(
        sa.Enum(
            LeaveType,
            name="leave_type",
            create_type=False,
            values_callable=_enum_values,
        ),
        nullable=False,
    )
    start_date: Mapped[date] = mapped_column(sa.Date, nullable=False)
    end_date: Mapped[date] = mapped_column(sa.Date, nullable=False)
    days_count: Mapped[int] = mapped_column(sa.Integer, nullable=False)
    reason: Mapped[str] = mapped_column(sa.Text, nullable=False)
    status: Mapped[LeaveStatus] = mapped_column(
        sa.Enum(
            LeaveStatus,
            name="leave_status",
            create_type=False,
            values_callable=_enum_values,
        ),
        nullable=False,
        default=LeaveStatus.pending,
        server_default=LeaveStatus.pending.value,
    )
    approved_by: Mapped[Optional[uuid.UUID]] = mapped_column(
        UUID(as_uuid=True), sa.ForeignKey("employees.id")
    )
    approved_at: Mapped[Optional[datetime]] = mapped_column(
        sa.DateTime(timezone=True)
    )
    rejection_reason: Mapped[Optional[str]] = mapped_column(sa.Text)
    cancelled_at: Mapped[Optional[datetime]] = mapped_column(
        sa.DateTime(timezone=True)
    )
    created_at: Mapped[datetime] = mapped_column(
        sa.DateTime(timezone=True), server_default=sa.func.now()
    )
    updated_at: Mapped[datetime] = mapped_column(
        sa.DateTime(timezone=True), server_default=sa.func.now()
    )

    # Relationships
    employee: Mapped["Employee"] = relationship(
        back_populates="leave_requests", foreign_keys=[employee_id]
    )
    approver: Mapped[Optional["Employee"]] = relationship(
        foreign_keys=[approved_by]
    )

    def __repr__(self) -> str:
        return f"<LeaveRequest {self.leave_type.value} {self.status.value}>"
