from .models import CaptureResult, IntentResult, WebhookResult
from .service import PaymentGateway

__all__ = ["CaptureResult", "IntentResult", "PaymentGateway", "WebhookResult"]
