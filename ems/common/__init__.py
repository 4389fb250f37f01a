"""Common module — shared utilities for the Employee Management System."""

from ems.common.constants import (
    DEFAULT_PAGE_SIZE,
    LEAVE_TRANSITIONS,
    MAX_PAGE_SIZE,
    LeaveStatus,
    LeaveType,
    UserRole,
)
from ems.common.exceptions import (
    AppException,
    ConflictException,
    ForbiddenException,
    InsufficientBalanceException,
    InvalidStateException,
    NotFoundException,
    ValidationException,
    register_exception_handlers,
)
from ems.common.pagination import (
    PaginatedResponse,
    PaginationMeta,
    PaginationParams,
    paginate,
)

__all__ = [
    # Constants / Enums
    "LeaveStatus",
    "LeaveType",
    "UserRole",
    "LEAVE_TRANSITIONS",
    "DEFAULT_PAGE_SIZE",
    "MAX_PAGE_SIZE",
    # Exceptions
    "AppException",
    "ConflictException",
    "ForbiddenException",
    "InsufficientBalanceException",
    "InvalidStateException",
    "NotFoundException",
    "ValidationException",
    "register_exception_handlers",
    # Pagination
    "PaginatedResponse",
    "PaginationMeta",
    "PaginationParams",
    "paginate",
]
