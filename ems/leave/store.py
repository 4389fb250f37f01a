"""Row store for the leave ledger — reads and conditional writes.

Every change to a balance or to a request status is one ``UPDATE`` whose
``WHERE`` clause carries the precondition. The arithmetic runs inside the
database, so concurrent approvals never read-modify-write the same row in
Python; callers look at the returned flag and decide what the miss means.
"""

from __future__ import annotations

import logging
import uuid
from datetime import date, datetime, timezone
from typing import Any, Optional

from sqlalchemy import Select, func, select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from ems.common.constants import LeaveStatus, LeaveType
from ems.common.exceptions import ConflictException, NotFoundException
from ems.config import settings
from ems.core_hr.models import Employee
from ems.leave.models import LeaveBalance, LeaveRequest

logger = logging.getLogger(__name__)


# ─────────────────────────────────────────────────────────────────────
# Employees
# ─────────────────────────────────────────────────────────────────────


async def fetch_employee(
    db: AsyncSession,
    employee_id: uuid.UUID,
) -> Employee:
    """Load an active employee or raise NotFoundException."""
    result = await db.execute(
        select(Employee)
        .where(Employee.id == employee_id, Employee.is_active.is_(True))
        .options(selectinload(Employee.department))
    )
    employee = result.scalars().first()
    if employee is None:
        raise NotFoundException("Employee", str(employee_id))
    return employee


# ─────────────────────────────────────────────────────────────────────
# Balances
# ─────────────────────────────────────────────────────────────────────


def default_balance_values() -> dict[str, int]:
    """Column values of a fresh, zero-usage balance row."""
    sick = settings.DEFAULT_SICK_LEAVE_DAYS
    vacation = settings.DEFAULT_VACATION_LEAVE_DAYS
    personal = settings.DEFAULT_PERSONAL_LEAVE_DAYS
    return {
        "sick_leave_total": sick,
        "sick_leave_used": 0,
        "sick_leave_remaining": sick,
        "vacation_leave_total": vacation,
        "vacation_leave_used": 0,
        "vacation_leave_remaining": vacation,
        "personal_leave_total": personal,
        "personal_leave_used": 0,
        "personal_leave_remaining": personal,
        "unpaid_leave_used": 0,
    }


async def fetch_balance(
    db: AsyncSession,
    employee_id: uuid.UUID,
    year: int,
) -> Optional[LeaveBalance]:
    result = await db.execute(
        select(LeaveBalance)
        .where(
            LeaveBalance.employee_id == employee_id,
            LeaveBalance.year == year,
        )
        .execution_options(populate_existing=True)
    )
    return result.scalars().first()


async def get_or_create_balance(
    db: AsyncSession,
    employee_id: uuid.UUID,
    year: int,
) -> LeaveBalance:
    """Return the (employee, year) balance, inserting the defaults if absent.

    Two requests creating the same row at once hit the unique constraint;
    the loser gets a ConflictException and may retry.
    """
    balance = await fetch_balance(db, employee_id, year)
    if balance is not None:
        return balance

    balance = LeaveBalance(
        employee_id=employee_id,
        year=year,
        **default_balance_values(),
    )
    db.add(balance)
    try:
        await db.flush()
    except IntegrityError as exc:
        raise ConflictException(
            f"Leave balance for employee '{employee_id}' in {year} "
            "was created concurrently. Please retry."
        ) from exc
    await db.refresh(balance)
    logger.info("Created default leave balance employee=%s year=%s", employee_id, year)
    return balance


async def debit_balance(
    db: AsyncSession,
    balance_id: uuid.UUID,
    leave_type: LeaveType,
    days: int,
) -> bool:
    """Consume *days* of *leave_type*.

    Capped categories only move while ``remaining >= days``; returns False
    when that guard fails. Unpaid usage always succeeds.
    """
    now = datetime.now(timezone.utc)
    stmt = update(LeaveBalance).where(LeaveBalance.id == balance_id)
    if leave_type.is_capped:
        _, used, remaining = LeaveBalance.category_columns(leave_type)
        stmt = stmt.where(remaining >= days).values({
            used: used + days,
            remaining: remaining - days,
            LeaveBalance.updated_at: now,
        })
    else:
        stmt = stmt.values({
            LeaveBalance.unpaid_leave_used: LeaveBalance.unpaid_leave_used + days,
            LeaveBalance.updated_at: now,
        })
    result = await db.execute(stmt.execution_options(synchronize_session=False))
    return result.rowcount == 1


async def restore_balance(
    db: AsyncSession,
    balance_id: uuid.UUID,
    leave_type: LeaveType,
    days: int,
) -> bool:
    """Inverse of :func:`debit_balance`; refuses to drive ``used`` below zero."""
    now = datetime.now(timezone.utc)
    stmt = update(LeaveBalance).where(LeaveBalance.id == balance_id)
    if leave_type.is_capped:
        _, used, remaining = LeaveBalance.category_columns(leave_type)
        stmt = stmt.where(used >= days).values({
            used: used - days,
            remaining: remaining + days,
            LeaveBalance.updated_at: now,
        })
    else:
        unpaid = LeaveBalance.unpaid_leave_used
        stmt = stmt.where(unpaid >= days).values({
            unpaid: unpaid - days,
            LeaveBalance.updated_at: now,
        })
    result = await db.execute(stmt.execution_options(synchronize_session=False))
    return result.rowcount == 1


async def set_balance_totals(
    db: AsyncSession,
    balance_id: uuid.UUID,
    totals: dict[LeaveType, int],
) -> bool:
    """Replace category totals and recompute ``remaining = total - used``.

    Returns False if any new total is below what is already used.
    """
    stmt = update(LeaveBalance).where(LeaveBalance.id == balance_id)
    values: dict[Any, Any] = {LeaveBalance.updated_at: datetime.now(timezone.utc)}
    for leave_type, new_total in totals.items():
        total, used, remaining = LeaveBalance.category_columns(leave_type)
        stmt = stmt.where(used <= new_total)
        values[total] = new_total
        values[remaining] = new_total - used
    result = await db.execute(
        stmt.values(values).execution_options(synchronize_session=False)
    )
    return result.rowcount == 1


# ─────────────────────────────────────────────────────────────────────
# Leave requests
# ─────────────────────────────────────────────────────────────────────


def employee_loader_options() -> tuple:
    """Eager-load the requester and their department for enrichment."""
    return (selectinload(LeaveRequest.employee).selectinload(Employee.department),)


async def fetch_leave_request(
    db: AsyncSession,
    request_id: uuid.UUID,
    *,
    with_employee: bool = False,
) -> LeaveRequest:
    """Load a leave request or raise NotFoundException.

    Always overwrites the identity-map copy, since status changes are
    written with Core UPDATEs that bypass the session.
    """
    query = (
        select(LeaveRequest)
        .where(LeaveRequest.id == request_id)
        .execution_options(populate_existing=True)
    )
    if with_employee:
        query = query.options(*employee_loader_options())
    result = await db.execute(query)
    leave_req = result.scalars().first()
    if leave_req is None:
        raise NotFoundException("LeaveRequest", str(request_id))
    return leave_req


async def insert_leave_request(
    db: AsyncSession,
    leave_req: LeaveRequest,
) -> LeaveRequest:
    db.add(leave_req)
    await db.flush()
    await db.refresh(leave_req)
    return leave_req


async def transition_status(
    db: AsyncSession,
    request_id: uuid.UUID,
    expected: LeaveStatus,
    **values: Any,
) -> bool:
    """Compare-and-set: apply *values* only while the row is still *expected*."""
    values.setdefault("updated_at", datetime.now(timezone.utc))
    result = await db.execute(
        update(LeaveRequest)
        .where(LeaveRequest.id == request_id, LeaveRequest.status == expected)
        .values(**values)
        .execution_options(synchronize_session=False)
    )
    return result.rowcount == 1


async def has_overlapping_request(
    db: AsyncSession,
    employee_id: uuid.UUID,
    start_date: date,
    end_date: date,
) -> bool:
    """True if a pending or approved request of the employee shares any date."""
    result = await db.execute(
        select(func.count()).select_from(LeaveRequest).where(
            LeaveRequest.employee_id == employee_id,
            LeaveRequest.status.in_([LeaveStatus.pending, LeaveStatus.approved]),
            LeaveRequest.start_date <= end_date,
            LeaveRequest.end_date >= start_date,
        )
    )
    return result.scalar_one() > 0


def leave_requests_query(
    *,
    employee_id: Optional[uuid.UUID] = None,
    status: Optional[LeaveStatus] = None,
) -> Select:
    """Newest-first leave requests, optionally narrowed by owner and status."""
    query = (
        select(LeaveRequest)
        .order_by(LeaveRequest.created_at.desc(), LeaveRequest.id)
    )
    if employee_id is not None:
        query = query.where(LeaveRequest.employee_id == employee_id)
    if status is not None:
        query = query.where(LeaveRequest.status == status)
    return query


async def list_pending_leaves(db: AsyncSession) -> list[LeaveRequest]:
    """Pending requests, oldest first, with employee + department loaded."""
    result = await db.execute(
        select(LeaveRequest)
        .where(LeaveRequest.status == LeaveStatus.pending)
        .options(*employee_loader_options())
        .order_by(LeaveRequest.created_at.asc(), LeaveRequest.start_date.asc())
    )
    return list(result.scalars().all())
