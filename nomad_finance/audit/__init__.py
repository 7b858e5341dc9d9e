"""Audit logging package."""

from nomad_finance.audit.logger import AuditLogger

__all__ = ["AuditLogger"]
