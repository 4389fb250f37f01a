"""Tests for common utilities — pagination, exception bodies, caller roles."""

from __future__ import annotations

import uuid

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from ems.auth.schemas import Caller
from ems.common.constants import LEAVE_TRANSITIONS, LeaveStatus, LeaveType, UserRole
from ems.common.exceptions import (
    InsufficientBalanceException,
    InvalidStateException,
    NotFoundException,
)
from ems.common.pagination import PaginationParams, paginate
from ems.core_hr.models import Department, Employee
from ems.leave.models import LeaveBalance
from tests.conftest import _make_department, _make_employee


# ── Helpers ─────────────────────────────────────────────────────────


async def _seed_department(db: AsyncSession, **kwargs) -> Department:
    dept = Department(**_make_department(**kwargs))
    db.add(dept)
    await db.flush()
    return dept


async def _seed_employee(db: AsyncSession, dept_id, **kwargs) -> Employee:
    emp = Employee(**_make_employee(department_id=dept_id, **kwargs))
    db.add(emp)
    await db.flush()
    return emp


# ═════════════════════════════════════════════════════════════════════
# PAGINATION TESTS
# ═════════════════════════════════════════════════════════════════════


class TestPagination:
    """Tests for pagination helper."""

    async def test_paginate_with_sort(self, db: AsyncSession):
        """paginate() with sort parameter applies ORDER BY."""
        dept = await _seed_department(db)
        for i in range(5):
            await _seed_employee(
                db, dept.id, first_name=f"P{i}", email=f"p{i}@example.com",
            )

        params = PaginationParams(page=1, page_size=3, sort="-first_name")
        result = await paginate(db, select(Employee), params, model=Employee)
        assert [e.first_name for e in result.data] == ["P4", "P3", "P2"]
        assert result.meta.total == 5
        assert result.meta.has_next is True

    async def test_paginate_page_2(self, db: AsyncSession):
        """paginate() page 2 returns remaining items."""
        dept = await _seed_department(db)
        for i in range(5):
            await _seed_employee(
                db, dept.id, first_name=f"Q{i}", email=f"q{i}@example.com",
            )

        params = PaginationParams(page=2, page_size=3, sort=None)
        result = await paginate(db, select(Employee), params, model=Employee)
        assert len(result.data) == 2  # 5 total, page 2 at size 3 = 2
        assert result.meta.has_prev is True
        assert result.meta.has_next is False

    async def test_paginate_unknown_sort_ignored(self, db: AsyncSession):
        dept = await _seed_department(db)
        await _seed_employee(db, dept.id)

        params = PaginationParams(page=1, page_size=10, sort="no_such_column")
        result = await paginate(db, select(Employee), params, model=Employee)
        assert result.meta.total == 1

    async def test_paginate_transform(self, db: AsyncSession):
        dept = await _seed_department(db)
        await _seed_employee(db, dept.id, first_name="Ada", last_name="Lovelace")

        params = PaginationParams(page=1, page_size=10, sort=None)
        result = await paginate(
            db, select(Employee), params, transform=lambda e: e.full_name,
        )
        assert result.data == ["Ada Lovelace"]

    async def test_paginate_empty_result(self, db: AsyncSession):
        """paginate() with no matching rows returns empty data."""
        query = select(Employee).where(Employee.first_name == "ZZZ_NONEXISTENT")
        params = PaginationParams(page=1, page_size=10, sort=None)
        result = await paginate(db, query, params, model=Employee)
        assert len(result.data) == 0
        assert result.meta.total == 0
        assert result.meta.total_pages == 0


# ═════════════════════════════════════════════════════════════════════
# EXCEPTIONS / CONSTANTS
# ═════════════════════════════════════════════════════════════════════


class TestExceptions:

    def test_not_found_detail(self):
        exc = NotFoundException("LeaveRequest", "abc")
        assert exc.status_code == 404
        assert "abc" in exc.detail

    def test_invalid_state_carries_status(self):
        exc = InvalidStateException("LeaveRequest", "Rejected", "approve")
        assert exc.status_code == 409
        assert exc.current == "Rejected"
        assert exc.detail == "Cannot approve a LeaveRequest in status 'Rejected'."

    def test_insufficient_balance_fields(self):
        exc = InsufficientBalanceException("Vacation", 12, 13)
        assert exc.status_code == 422
        assert exc.error_type == "insufficient-balance"
        assert exc.errors["available"] == ["12"]


class TestConstants:

    def test_terminal_states_have_no_transitions(self):
        assert LEAVE_TRANSITIONS[LeaveStatus.rejected] == frozenset()
        assert LEAVE_TRANSITIONS[LeaveStatus.cancelled] == frozenset()
        assert LEAVE_TRANSITIONS[LeaveStatus.approved] == {LeaveStatus.cancelled}

    def test_only_unpaid_is_uncapped(self):
        assert [lt for lt in LeaveType if not lt.is_capped] == [LeaveType.unpaid]

    def test_category_columns(self):
        total, used, remaining = LeaveBalance.category_columns(LeaveType.sick)
        assert (total.key, used.key, remaining.key) == (
            "sick_leave_total", "sick_leave_used", "sick_leave_remaining",
        )


class TestCaller:

    def test_role_hierarchy(self):
        admin = Caller(employee_id=uuid.uuid4(), role=UserRole.admin)
        manager = Caller(employee_id=uuid.uuid4(), role=UserRole.manager)
        employee = Caller(employee_id=uuid.uuid4())

        assert admin.is_approver and admin.is_admin
        assert manager.is_approver and not manager.is_admin
        assert not employee.is_approver
        assert employee.has_role(UserRole.employee)
