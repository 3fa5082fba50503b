from __future__ import annotations

from inquaire.business.webhooks.models import WebhookEvent
from inquaire.platform.security.repository import BaseRepository


class WebhookEventRepository(BaseRepository[WebhookEvent]):
    model = WebhookEvent
    resource = "WebhookEvent"
