from inquaire.business.businesses.models import Business
from inquaire.business.businesses.schemas import BusinessCreate, BusinessDashboard, BusinessRead, BusinessUpdate

__all__ = [
    "Business",
    "BusinessCreate",
    "BusinessUpdate",
    "BusinessRead",
    "BusinessDashboard",
]
