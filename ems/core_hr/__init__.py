"""Core HR module — Employee and Department models."""

from ems.core_hr.models import Department, Employee

__all__ = ["Employee", "Department"]
