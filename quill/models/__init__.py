from quill.models.user import User
from quill.models.audit_log import AuditLog

__all__ = [
    "User",
    "AuditLog",
]
