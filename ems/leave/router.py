"""Leave router — submit, approve/reject/cancel, approval queue, balances.

All endpoints require authentication. Approver and admin endpoints enforce
role checks here; the service repeats them against the same Caller.
"""


import uuid
from datetime import datetime, timezone
from typing import Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from ems.auth.dependencies import get_current_caller, require_role
from ems.auth.schemas import Caller
from ems.common.constants import BALANCE_YEAR_MAX, BALANCE_YEAR_MIN, LeaveStatus, UserRole
from ems.common.pagination import PaginatedResponse, PaginationParams
from ems.database import get_db
from ems.leave.schemas import (
    BalanceTotalsUpdate,
    LeaveBalanceOut,
    LeaveRejectRequest,
    LeaveRequestCreate,
    LeaveRequestOut,
)
from ems.leave.service import LeaveService

router = APIRouter(prefix="", tags=["leave"])


# ── POST /requests ──────────────────────────────────────────────────

@router.post("/requests", response_model=LeaveRequestOut, status_code=201)
async def submit_request(
    body: LeaveRequestCreate,
    caller: Caller = Depends(get_current_caller),
    db: AsyncSession = Depends(get_db),
):
    """Submit a leave request. Validates dates, balance and overlap; debits nothing."""
    return await LeaveService.submit_request(db, caller, body)


# ── GET /requests ───────────────────────────────────────────────────

@router.get("/requests", response_model=PaginatedResponse[LeaveRequestOut])
async def list_requests(
    status: Optional[LeaveStatus] = Query(None),
    pagination: PaginationParams = Depends(),
    caller: Caller = Depends(get_current_caller),
    db: AsyncSession = Depends(get_db),
):
    """List leave requests. Employees see their own; approvers see everyone's."""
    return await LeaveService.list_requests(db, caller, pagination, status=status)


# ── GET /requests/pending ───────────────────────────────────────────

@router.get("/requests/pending", response_model=list[LeaveRequestOut])
async def list_pending_requests(
    caller: Caller = Depends(require_role(UserRole.manager)),
    db: AsyncSession = Depends(get_db),
):
    """Approval queue, oldest first."""
    return await LeaveService.list_pending_requests(db, caller)


# ── GET /requests/{id} ──────────────────────────────────────────────

@router.get("/requests/{request_id}", response_model=LeaveRequestOut)
async def get_request(
    request_id: uuid.UUID,
    caller: Caller = Depends(get_current_caller),
    db: AsyncSession = Depends(get_db),
):
    return await LeaveService.get_request(db, caller, request_id)


# ── PUT /requests/{id}/approve ──────────────────────────────────────

@router.put("/requests/{request_id}/approve", response_model=LeaveRequestOut)
async def approve_request(
    request_id: uuid.UUID,
    caller: Caller = Depends(require_role(UserRole.manager)),
    db: AsyncSession = Depends(get_db),
):
    """Approve a pending leave request. Deducts from balance."""
    return await LeaveService.approve_request(db, caller, request_id)


# ── PUT /requests/{id}/reject ───────────────────────────────────────

@router.put("/requests/{request_id}/reject", response_model=LeaveRequestOut)
async def reject_request(
    request_id: uuid.UUID,
    body: LeaveRejectRequest,
    caller: Caller = Depends(require_role(UserRole.manager)),
    db: AsyncSession = Depends(get_db),
):
    """Reject a pending leave request."""
    return await LeaveService.reject_request(
        db, caller, request_id, body.rejection_reason,
    )


# ── PUT /requests/{id}/cancel ───────────────────────────────────────

@router.put("/requests/{request_id}/cancel", response_model=LeaveRequestOut)
async def cancel_request(
    request_id: uuid.UUID,
    caller: Caller = Depends(get_current_caller),
    db: AsyncSession = Depends(get_db),
):
    """Cancel a pending or approved request. Restores balance if it was approved."""
    return await LeaveService.cancel_request(db, caller, request_id)


# ── GET /balances/{employee_id} ─────────────────────────────────────

@router.get("/balances/{employee_id}", response_model=LeaveBalanceOut)
async def get_balance(
    employee_id: uuid.UUID,
    year: Optional[int] = Query(
        None,
        ge=BALANCE_YEAR_MIN,
        le=BALANCE_YEAR_MAX,
        description="Leave year; defaults to current year",
    ),
    caller: Caller = Depends(get_current_caller),
    db: AsyncSession = Depends(get_db),
):
    """Get an employee's leave balance for a given year."""
    target_year = year or datetime.now(timezone.utc).year
    return await LeaveService.get_balance(db, caller, employee_id, target_year)


# ── PUT /balances/{employee_id} ─────────────────────────────────────

@router.put("/balances/{employee_id}", response_model=LeaveBalanceOut)
async def update_balance_totals(
    employee_id: uuid.UUID,
    body: BalanceTotalsUpdate,
    caller: Caller = Depends(require_role(UserRole.admin)),
    db: AsyncSession = Depends(get_db),
):
    """Set yearly allowances. Remaining days follow the new totals."""
    return await LeaveService.update_balance_totals(db, caller, employee_id, body)
