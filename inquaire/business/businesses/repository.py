from __future__ import annotations

from inquaire.business.businesses.models import Business
from inquaire.platform.security.repository import BaseRepository


class BusinessRepository(BaseRepository[Business]):
    model = Business
    resource = "Business"
