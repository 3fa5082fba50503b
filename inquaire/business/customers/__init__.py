from inquaire.business.customers.models import Customer
from inquaire.business.customers.schemas import CustomerCreate, CustomerDetail, CustomerRead, CustomerUpdate

__all__ = [
    "Customer",
    "CustomerCreate",
    "CustomerUpdate",
    "CustomerRead",
    "CustomerDetail",
]
