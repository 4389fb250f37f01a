"""Leave service layer — the leave ledger.

Business logic:
  - Inclusive day counting over a date range
  - Submission with past-date, balance and overlap checks (no debit yet)
  - Approval debits the yearly balance, re-validated against ``remaining``
  - Rejection never touches the balance
  - Cancellation of an approved request restores exactly what was debited
  - Lazy, get-or-create yearly balances with configured defaults

Every operation takes an explicit ``Caller``; role checks are repeated here
even when the HTTP layer already enforced them.
"""

from __future__ import annotations

import logging
import uuid
from datetime import date, datetime, timezone
from typing import Optional

from sqlalchemy import inspect as sa_inspect
from sqlalchemy.ext.asyncio import AsyncSession

from ems.auth.schemas import Caller
from ems.common.constants import (
    LEAVE_TRANSITIONS,
    REASON_MAX_LENGTH,
    REASON_MIN_LENGTH,
    LeaveStatus,
)
from ems.common.exceptions import (
    ConflictException,
    ForbiddenException,
    InsufficientBalanceException,
    InvalidStateException,
    ValidationException,
)
from ems.common.pagination import PaginatedResponse, PaginationParams, paginate
from ems.core_hr.models import Employee
from ems.leave import store
from ems.leave.models import LeaveBalance, LeaveRequest
from ems.leave.schemas import (
    BalanceTotalsUpdate,
    CategoryBalanceOut,
    LeaveBalanceOut,
    LeaveRequestCreate,
    LeaveRequestOut,
)

logger = logging.getLogger(__name__)


# ═════════════════════════════════════════════════════════════════════
# LeaveService
# ═════════════════════════════════════════════════════════════════════


class LeaveService:
    """Async leave ledger operations: submit, approve, reject, cancel, balances."""

    # ─────────────────────────────────────────────────────────────────
    # Helpers
    # ─────────────────────────────────────────────────────────────────

    @staticmethod
    def count_leave_days(start_date: date, end_date: date) -> int:
        """Inclusive number of calendar days between *start_date* and *end_date*."""
        if end_date < start_date:
            raise ValidationException(
                {"end_date": ["end_date must be on or after start_date."]}
            )
        return (end_date - start_date).days + 1

    @staticmethod
    def _validate_reason(field: str, value: Optional[str]) -> str:
        length = len(value or "")
        if length < REASON_MIN_LENGTH or length > REASON_MAX_LENGTH:
            raise ValidationException(
                {field: [
                    f"Must be between {REASON_MIN_LENGTH} and "
                    f"{REASON_MAX_LENGTH} characters."
                ]}
            )
        return value

    @staticmethod
    def _ensure_transition(
        leave_req: LeaveRequest,
        target: LeaveStatus,
        action: str,
    ) -> None:
        if target not in LEAVE_TRANSITIONS[leave_req.status]:
            raise InvalidStateException(
                "LeaveRequest", leave_req.status.value, action,
            )

    @staticmethod
    def _ensure_approver(caller: Caller, action: str) -> None:
        if not caller.is_approver:
            raise ForbiddenException(
                f"Only admins and managers can {action} leave requests."
            )

    @staticmethod
    def _ensure_can_view(caller: Caller, employee_id: uuid.UUID) -> None:
        if caller.employee_id != employee_id and not caller.is_approver:
            raise ForbiddenException(
                "You can only view your own leave records."
            )

    @staticmethod
    def _build_request_response(
        req: LeaveRequest,
        *,
        employee: Optional[Employee] = None,
    ) -> LeaveRequestOut:
        """Build LeaveRequestOut from ORM, enriching with employee data when loaded."""
        out = LeaveRequestOut.model_validate(req)
        if employee is None and "employee" not in sa_inspect(req).unloaded:
            employee = req.employee
        if employee is not None:
            out.employee_name = employee.full_name
            out.employee_code = employee.employee_code
            if "department" not in sa_inspect(employee).unloaded and employee.department:
                out.department = employee.department.name
        return out

    @staticmethod
    def _build_balance_response(bal: LeaveBalance) -> LeaveBalanceOut:
        return LeaveBalanceOut(
            id=bal.id,
            employee_id=bal.employee_id,
            year=bal.year,
            sick=CategoryBalanceOut(
                total=bal.sick_leave_total,
                used=bal.sick_leave_used,
                remaining=bal.sick_leave_remaining,
            ),
            vacation=CategoryBalanceOut(
                total=bal.vacation_leave_total,
                used=bal.vacation_leave_used,
                remaining=bal.vacation_leave_remaining,
            ),
            personal=CategoryBalanceOut(
                total=bal.personal_leave_total,
                used=bal.personal_leave_used,
                remaining=bal.personal_leave_remaining,
            ),
            unpaid_used=bal.unpaid_leave_used,
            created_at=bal.created_at,
            updated_at=bal.updated_at,
        )

    # ─────────────────────────────────────────────────────────────────
    # Submit
    # ─────────────────────────────────────────────────────────────────

    @staticmethod
    async def submit_request(
        db: AsyncSession,
        caller: Caller,
        data: LeaveRequestCreate,
        *,
        today: Optional[date] = None,
    ) -> LeaveRequestOut:
        """Create a Pending leave request.

        Checks, in order: caller may act for the employee, no past start
        date, employee exists, enough remaining balance for capped
        categories, no overlapping pending/approved request. The balance is
        only read here; it is debited on approval.
        """
        employee_id = data.employee_id or caller.employee_id
        if employee_id != caller.employee_id and not caller.is_approver:
            raise ForbiddenException(
                "You can only submit leave requests for yourself."
            )

        today = today or datetime.now(timezone.utc).date()
        if data.start_date < today:
            raise ValidationException(
                {"start_date": ["Cannot request leave for past dates."]}
            )

        employee = await store.fetch_employee(db, employee_id)
        days = LeaveService.count_leave_days(data.start_date, data.end_date)

        # ── Balance (capped categories only) ────────────────────────
        if data.leave_type.is_capped:
            balance = await store.get_or_create_balance(
                db, employee_id, data.start_date.year,
            )
            available = balance.remaining_for(data.leave_type)
            if days > available:
                logger.warning(
                    "Leave submission rejected: employee=%s type=%s requested=%s available=%s",
                    employee_id, data.leave_type.value, days, available,
                )
                raise InsufficientBalanceException(
                    data.leave_type.value, available, days,
                )

        # ── Overlap ─────────────────────────────────────────────────
        if await store.has_overlapping_request(
            db, employee_id, data.start_date, data.end_date,
        ):
            raise ValidationException(
                {"dates": [
                    "You already have a pending or approved leave request "
                    "overlapping with these dates."
                ]}
            )

        leave_req = await store.insert_leave_request(
            db,
            LeaveRequest(
                employee_id=employee_id,
                leave_type=data.leave_type,
                start_date=data.start_date,
                end_date=data.end_date,
                days_count=days,
                reason=data.reason,
                status=LeaveStatus.pending,
            ),
        )
        logger.info(
            "Leave request %s submitted: employee=%s type=%s days=%s",
            leave_req.id, employee_id, data.leave_type.value, days,
        )
        return LeaveService._build_request_response(leave_req, employee=employee)

    # ─────────────────────────────────────────────────────────────────
    # Approve
    # ─────────────────────────────────────────────────────────────────

    @staticmethod
    async def approve_request(
        db: AsyncSession,
        caller: Caller,
        request_id: uuid.UUID,
    ) -> LeaveRequestOut:
        """Approve a Pending request and debit the balance of its start year.

        Sufficiency is re-checked by the debit itself, so approving several
        requests admitted against the same remaining days can never push
        ``remaining`` below zero.
        """
        LeaveService._ensure_approver(caller, "approve")

        leave_req = await store.fetch_leave_request(db, request_id)
        LeaveService._ensure_transition(leave_req, LeaveStatus.approved, "approve")

        leave_type = leave_req.leave_type
        days = leave_req.days_count
        balance = await store.get_or_create_balance(
            db, leave_req.employee_id, leave_req.start_date.year,
        )

        if not await store.debit_balance(db, balance.id, leave_type, days):
            await db.refresh(balance)
            available = balance.remaining_for(leave_type)
            logger.warning(
                "Approval of %s refused: type=%s requested=%s available=%s",
                request_id, leave_type.value, days, available,
            )
            raise InsufficientBalanceException(leave_type.value, available, days)

        now = datetime.now(timezone.utc)
        won = await store.transition_status(
            db,
            request_id,
            LeaveStatus.pending,
            status=LeaveStatus.approved,
            approved_by=caller.employee_id,
            approved_at=now,
            updated_at=now,
        )
        if not won:
            await store.restore_balance(db, balance.id, leave_type, days)
            logger.warning("Approval of %s lost a concurrent transition", request_id)
            raise ConflictException(
                f"Leave request '{request_id}' was modified concurrently. Please retry."
            )

        logger.info(
            "Leave request %s approved by %s: type=%s days=%s",
            request_id, caller.employee_id, leave_type.value, days,
        )
        leave_req = await store.fetch_leave_request(db, request_id, with_employee=True)
        return LeaveService._build_request_response(leave_req)

    # ─────────────────────────────────────────────────────────────────
    # Reject
    # ─────────────────────────────────────────────────────────────────

    @staticmethod
    async def reject_request(
        db: AsyncSession,
        caller: Caller,
        request_id: uuid.UUID,
        rejection_reason: str,
    ) -> LeaveRequestOut:
        """Reject a Pending request. Nothing was debited, so nothing is restored."""
        LeaveService._ensure_approver(caller, "reject")
        rejection_reason = LeaveService._validate_reason(
            "rejection_reason", rejection_reason,
        )

        leave_req = await store.fetch_leave_request(db, request_id)
        LeaveService._ensure_transition(leave_req, LeaveStatus.rejected, "reject")

        now = datetime.now(timezone.utc)
        won = await store.transition_status(
            db,
            request_id,
            LeaveStatus.pending,
            status=LeaveStatus.rejected,
            approved_by=caller.employee_id,
            approved_at=now,
            rejection_reason=rejection_reason,
            updated_at=now,
        )
        if not won:
            logger.warning("Rejection of %s lost a concurrent transition", request_id)
            raise ConflictException(
                f"Leave request '{request_id}' was modified concurrently. Please retry."
            )

        logger.info("Leave request %s rejected by %s", request_id, caller.employee_id)
        leave_req = await store.fetch_leave_request(db, request_id, with_employee=True)
        return LeaveService._build_request_response(leave_req)

    # ─────────────────────────────────────────────────────────────────
    # Cancel
    # ─────────────────────────────────────────────────────────────────

    @staticmethod
    async def cancel_request(
        db: AsyncSession,
        caller: Caller,
        request_id: uuid.UUID,
    ) -> LeaveRequestOut:
        """Cancel a Pending or Approved request. Restores balance if was approved."""
        leave_req = await store.fetch_leave_request(db, request_id)

        # Verify ownership
        if leave_req.employee_id != caller.employee_id and not caller.is_admin:
            raise ForbiddenException("You can only cancel your own leave requests.")

        LeaveService._ensure_transition(leave_req, LeaveStatus.cancelled, "cancel")

        previous = leave_req.status
        leave_type = leave_req.leave_type
        days = leave_req.days_count
        balance: Optional[LeaveBalance] = None

        if previous == LeaveStatus.approved:
            balance = await store.fetch_balance(
                db, leave_req.employee_id, leave_req.start_date.year,
            )
            if balance is None or not await store.restore_balance(
                db, balance.id, leave_type, days,
            ):
                logger.error(
                    "Balance out of step with approved leave %s (type=%s days=%s)",
                    request_id, leave_type.value, days,
                )
                raise ConflictException(
                    f"Leave balance does not reflect approved request '{request_id}'."
                )

        now = datetime.now(timezone.utc)
        won = await store.transition_status(
            db,
            request_id,
            previous,
            status=LeaveStatus.cancelled,
            cancelled_at=now,
            updated_at=now,
        )
        if not won:
            if balance is not None:
                await store.debit_balance(db, balance.id, leave_type, days)
            logger.warning("Cancellation of %s lost a concurrent transition", request_id)
            raise ConflictException(
                f"Leave request '{request_id}' was modified concurrently. Please retry."
            )

        logger.info(
            "Leave request %s cancelled by %s (was %s)",
            request_id, caller.employee_id, previous.value,
        )
        leave_req = await store.fetch_leave_request(db, request_id, with_employee=True)
        return LeaveService._build_request_response(leave_req)

    # ─────────────────────────────────────────────────────────────────
    # Reads
    # ─────────────────────────────────────────────────────────────────

    @staticmethod
    async def get_request(
        db: AsyncSession,
        caller: Caller,
        request_id: uuid.UUID,
    ) -> LeaveRequestOut:
        leave_req = await store.fetch_leave_request(db, request_id, with_employee=True)
        LeaveService._ensure_can_view(caller, leave_req.employee_id)
        return LeaveService._build_request_response(leave_req)

    @staticmethod
    async def list_requests(
        db: AsyncSession,
        caller: Caller,
        params: PaginationParams,
        *,
        status: Optional[LeaveStatus] = None,
    ) -> PaginatedResponse:
        """Admins and managers see every request; employees only their own."""
        owner = None if caller.is_approver else caller.employee_id
        return await paginate(
            db,
            store.leave_requests_query(employee_id=owner, status=status),
            params,
            model=LeaveRequest,
            options=store.employee_loader_options(),
            transform=LeaveService._build_request_response,
        )

    @staticmethod
    async def list_pending_requests(
        db: AsyncSession,
        caller: Caller,
    ) -> list[LeaveRequestOut]:
        """Approval queue, oldest first, enriched with employee details."""
        LeaveService._ensure_approver(caller, "review")
        pending = await store.list_pending_leaves(db)
        return [LeaveService._build_request_response(req) for req in pending]

    # ─────────────────────────────────────────────────────────────────
    # Balance
    # ─────────────────────────────────────────────────────────────────

    @staticmethod
    async def get_balance(
        db: AsyncSession,
        caller: Caller,
        employee_id: uuid.UUID,
        year: int,
    ) -> LeaveBalanceOut:
        """Return the employee's balance for *year*, creating the default row if absent."""
        LeaveService._ensure_can_view(caller, employee_id)
        await store.fetch_employee(db, employee_id)
        balance = await store.get_or_create_balance(db, employee_id, year)
        return LeaveService._build_balance_response(balance)

    @staticmethod
    async def update_balance_totals(
        db: AsyncSession,
        caller: Caller,
        employee_id: uuid.UUID,
        data: BalanceTotalsUpdate,
    ) -> LeaveBalanceOut:
        """HR policy change: set yearly totals, keeping ``remaining = total - used``."""
        if not caller.is_admin:
            raise ForbiddenException("Only admins can change leave allowances.")

        totals = data.totals()
        if not totals:
            raise ValidationException(
                {"totals": ["At least one leave total must be provided."]}
            )

        await store.fetch_employee(db, employee_id)
        balance = await store.get_or_create_balance(db, employee_id, data.year)

        if not await store.set_balance_totals(db, balance.id, totals):
            await db.refresh(balance)
            errors: dict[str, list[str]] = {}
            for leave_type, new_total in totals.items():
                _, used_col, _ = LeaveBalance.category_columns(leave_type)
                used = getattr(balance, used_col.key)
                if new_total < used:
                    errors[f"{leave_type.name}_leave_total"] = [
                        f"Cannot be less than the {used} day(s) already used."
                    ]
            raise ValidationException(errors or {"totals": ["Totals could not be applied."]})

        await db.refresh(balance)
        logger.info(
            "Leave totals for employee=%s year=%s set by %s: %s",
            employee_id, data.year, caller.employee_id,
            {lt.value: v for lt, v in totals.items()},
        )
        return LeaveService._build_balance_response(balance)
