"""Audit logging package."""

from moneywise_ai.audit.logger import AuditLogger, setup_logging

__all__ = ["AuditLogger", "setup_logging"]
