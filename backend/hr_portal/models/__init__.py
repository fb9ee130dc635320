from hr_portal.models.audit import AuditLog

__all__ = ["AuditLog"]
