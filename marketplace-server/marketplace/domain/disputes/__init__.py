from .models import DisputeMessageRecord, DisputeSnapshot
from .service import DisputeService

__all__ = ["DisputeMessageRecord", "DisputeService", "DisputeSnapshot"]
