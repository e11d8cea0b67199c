"""Audit change tracking, soft delete and tenant isolation for SQLAlchemy."""

__version__ = "0.1.0"
