"""Audit logging and quality reporting."""

from .audit_logger import ClassificationAuditLogger, generate_intake_quality_report

__all__ = [
    'ClassificationAuditLogger',
    'generate_intake_quality_report'
]
