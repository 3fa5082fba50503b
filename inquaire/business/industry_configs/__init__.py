from inquaire.business.industry_configs.models import IndustryConfig
from inquaire.business.industry_configs.schemas import IndustryConfigCreate, IndustryConfigRead, IndustryConfigUpdate

__all__ = [
    "IndustryConfig",
    "IndustryConfigCreate",
    "IndustryConfigUpdate",
    "IndustryConfigRead",
]
