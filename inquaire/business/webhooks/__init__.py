from inquaire.business.webhooks.models import WebhookEvent
from inquaire.business.webhooks.schemas import WebhookEventRead, WebhookResult

__all__ = [
    "WebhookEvent",
    "WebhookEventRead",
    "WebhookResult",
]
