"""Core HR module — Employee and Department models, succession and transfers."""

from hrflow.core_hr.models import Department, Employee

__all__ = ["Employee", "Department"]
