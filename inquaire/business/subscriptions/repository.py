from __future__ import annotations

import uuid

from sqlalchemy import select
from sqlalchemy.orm import Session

from inquaire.business.subscriptions.models import Subscription
from inquaire.platform.security.repository import BaseRepository


class SubscriptionRepository(BaseRepository[Subscription]):
    model = Subscription
    resource = "Subscription"

    def get_by_business(self, session: Session, business_id: uuid.UUID) -> Subscription | None:
        return session.scalar(select(Subscription).where(Subscription.business_id == business_id))
