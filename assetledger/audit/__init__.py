"""Audit logging package."""

from assetledger.audit.logger import AuditLogger

__all__ = ["AuditLogger"]
