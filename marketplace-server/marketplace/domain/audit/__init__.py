from .models import AuditRecord
from .service import AuditService

__all__ = ["AuditRecord", "AuditService"]
