"""Audit logging package."""

from treasury.audit.logger import AuditLogger

__all__ = ["AuditLogger"]
