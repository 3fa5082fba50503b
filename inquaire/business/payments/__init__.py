from inquaire.business.payments.models import Payment
from inquaire.business.payments.schemas import PaymentCreate, PaymentRead, PaymentUpdate

__all__ = [
    "Payment",
    "PaymentCreate",
    "PaymentUpdate",
    "PaymentRead",
]
