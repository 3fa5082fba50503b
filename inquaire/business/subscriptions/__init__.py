from inquaire.business.subscriptions.models import Subscription
from inquaire.business.subscriptions.schemas import SubscriptionCreate, SubscriptionRead, SubscriptionUpdate

__all__ = [
    "Subscription",
    "SubscriptionCreate",
    "SubscriptionUpdate",
    "SubscriptionRead",
]
