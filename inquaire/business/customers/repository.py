from __future__ import annotations

import uuid

from sqlalchemy.orm import Session

from inquaire.business.customers.models import Customer
from inquaire.platform.security.repository import BaseRepository


class CustomerRepository(BaseRepository[Customer]):
    model = Customer
    resource = "Customer"

    def find_by_platform_user(
        self,
        session: Session,
        business_id: uuid.UUID,
        platform: str,
        platform_user_id: str,
        *,
        include_deleted: bool = False,
    ) -> Customer | None:
        stmt = self.query(include_deleted=include_deleted).where(
            Customer.business_id == business_id,
            Customer.platform == platform,
            Customer.platform_user_id == platform_user_id,
        )
        return session.scalar(stmt)
