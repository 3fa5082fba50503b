from __future__ import annotations

import uuid
from collections.abc import Generator
from dataclasses import dataclass
from datetime import timedelta

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from inquaire import events, jobs
from inquaire.business.businesses.models import Business
from inquaire.business.channels.models import Channel
from inquaire.business.customers.models import Customer
from inquaire.business.inquiries.models import Inquiry
from inquaire.core.cache import reset_caches
from inquaire.core.config import get_settings
from inquaire.core.database import Base, get_db, utcnow
from inquaire.core.security import create_access_token, hash_secret
from inquaire.main import app
from inquaire.middleware.rate_limit import reset_rate_limiter
from inquaire.platform.identity.models import User
from inquaire.platform.organizations.models import Organization, OrganizationMember, OrganizationSubscription

STRONG_PASSWORD = "Str0ng!Pass"


@pytest.fixture()
def db_session() -> Generator[Session, None, None]:
    engine = create_engine(
        "sqlite+pysqlite:///:memory:",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    SessionLocal = sessionmaker(bind=engine, autocommit=False, autoflush=False)
    Base.metadata.create_all(bind=engine)
    session = SessionLocal()
    try:
        yield session
    finally:
        session.close()
        Base.metadata.drop_all(bind=engine)


@pytest.fixture(autouse=True)
def clear_stubs(monkeypatch: pytest.MonkeyPatch) -> Generator[None, None, None]:
    monkeypatch.setenv("RATE_LIMIT_DISABLED", "true")
    monkeypatch.setenv("PASSWORD_HASH_ROUNDS", "4")
    monkeypatch.setenv("ENCRYPTION_KEY", "test-encryption-key-0123456789abcdef")
    monkeypatch.setenv("ENCRYPTION_KDF_ITERATIONS", "1000")
    monkeypatch.setenv("OPENAI_API_KEY", "")
    get_settings.cache_clear()
    events.published_events.clear()
    jobs.queued_jobs.clear()
    reset_rate_limiter()
    reset_caches()
    yield
    events.published_events.clear()
    jobs.queued_jobs.clear()
    reset_rate_limiter()
    reset_caches()
    get_settings.cache_clear()


@pytest.fixture()
def client(db_session: Session) -> Generator[TestClient, None, None]:
    def override_get_db() -> Generator[Session, None, None]:
        yield db_session

    app.dependency_overrides[get_db] = override_get_db
    with TestClient(app) as test_client:
        yield test_client
    app.dependency_overrides.clear()


def create_user(session: Session, email: str, *, role: str = "USER", password: str = STRONG_PASSWORD) -> User:
    user = User(email=email, password_hash=hash_secret(password), name=email.split("@")[0], role=role)
    session.add(user)
    session.commit()
    session.refresh(user)
    return user


def auth_headers(user: User) -> dict[str, str]:
    token, _ = create_access_token(user.id, user.email, user.role)
    return {"Authorization": f"Bearer {token}"}


def add_member(session: Session, organization_id: uuid.UUID, user: User, role: str = "MEMBER") -> OrganizationMember:
    member = OrganizationMember(organization_id=organization_id, user_id=user.id, role=role, permissions=[])
    session.add(member)
    session.commit()
    session.refresh(member)
    return member


@dataclass
class Tenant:
    owner: User
    organization: Organization
    business: Business
    channel: Channel
    customer: Customer

    @property
    def headers(self) -> dict[str, str]:
        return auth_headers(self.owner)


def create_tenant(
    session: Session,
    email: str = "owner@example.com",
    *,
    platform: str = "KAKAO",
    max_businesses: int = 3,
) -> Tenant:
    owner = create_user(session, email)
    now = utcnow()
    organization = Organization(name="Acme Clinic", slug=f"acme-{uuid.uuid4().hex[:8]}", settings={})
    session.add(organization)
    session.flush()
    session.add(OrganizationMember(organization_id=organization.id, user_id=owner.id, role="OWNER", permissions=[]))
    session.add(
        OrganizationSubscription(
            organization_id=organization.id,
            monthly_limit=100,
            current_usage=0,
            max_businesses=max_businesses,
            max_members=3,
            trial_ends_at=now + timedelta(days=14),
            billing_cycle_start=now,
            billing_cycle_end=now + timedelta(days=30),
        )
    )
    business = Business(organization_id=organization.id, name="Acme Dental", industry_type="HOSPITAL", settings={})
    session.add(business)
    session.flush()
    channel = Channel(
        business_id=business.id,
        platform=platform,
        platform_channel_id=f"{platform.lower()}-channel",
        name=f"{platform.title()} channel",
        settings={},
    )
    customer = Customer(
        business_id=business.id,
        platform=platform,
        platform_user_id="user-0001",
        name="Kim",
        tags=[],
        extra_metadata={},
    )
    session.add_all([channel, customer])
    session.commit()
    for row in (organization, business, channel, customer, owner):
        session.refresh(row)
    return Tenant(owner=owner, organization=organization, business=business, channel=channel, customer=customer)


@pytest.fixture()
def tenant(db_session: Session) -> Tenant:
    return create_tenant(db_session)


@pytest.fixture()
def admin_headers(db_session: Session) -> dict[str, str]:
    return auth_headers(create_user(db_session, "admin@example.com", role="ADMIN"))


def create_inquiry(session: Session, tenant: Tenant, message_text: str = "Can I book for tomorrow?", **fields: object) -> Inquiry:
    inquiry = Inquiry(
        business_id=tenant.business.id,
        channel_id=tenant.channel.id,
        customer_id=tenant.customer.id,
        message_text=message_text,
        **fields,
    )
    session.add(inquiry)
    session.commit()
    session.refresh(inquiry)
    return inquiry
