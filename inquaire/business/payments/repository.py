from __future__ import annotations

from inquaire.business.payments.models import Payment
from inquaire.platform.security.repository import BaseRepository


class PaymentRepository(BaseRepository[Payment]):
    model = Payment
    resource = "Payment"
