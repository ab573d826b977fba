import itertools
import os
from types import SimpleNamespace

# Settings are read at import time
os.environ.setdefault("SECRET_KEY", "test-secret-key-not-for-production")
os.environ["DATABASE_URL"] = "sqlite://"
os.environ.pop("SENDGRID_API_KEY", None)
os.environ.pop("MAIL_FROM", None)

import pytest  # noqa: E402
from sqlmodel import Session, SQLModel  # noqa: E402

from core.database import build_engine, create_db_and_tables  # noqa: E402
from models.models import MembershipRole, User  # noqa: E402
from schemas.membership_schema import MembershipCreate  # noqa: E402
from schemas.organization_schema import OrganizationCreate  # noqa: E402
from services.access_service import get_active_membership  # noqa: E402
from services.membership_service import MembershipService  # noqa: E402
from services.organization_service import OrganizationService  # noqa: E402


@pytest.fixture
def engine():
    engine = build_engine("sqlite://")
    create_db_and_tables(engine)
    yield engine
    SQLModel.metadata.drop_all(engine)
    engine.dispose()


@pytest.fixture
def session(engine):
    with Session(engine) as session:
        yield session


@pytest.fixture
def make_user(session):
    counter = itertools.count(1)

    def _make(full_name=None, email=None, phone=None, password_hash="not-a-real-hash"):
        n = next(counter)
        user = User(
            full_name=full_name or f"User {n}",
            email=email or f"user{n}@example.com",
            phone=phone or f"+22177000{n:04d}",
            password_hash=password_hash,
        )
        session.add(user)
        session.commit()
        session.refresh(user)
        return user

    return _make


@pytest.fixture
def org(session, make_user):
    """An organization with its owner (ADMIN) already set up."""
    admin = make_user(full_name="Owner Admin")
    organization = OrganizationService.create(session, admin.id, OrganizationCreate(name="Savings Circle"))
    admin_membership = get_active_membership(session, admin.id, organization.id)
    return SimpleNamespace(id=organization.id, organization=organization, admin=admin, admin_membership=admin_membership)


@pytest.fixture
def add_member(session, make_user, org):
    """Create a user and add them to `org` with the given role."""

    def _add(role=MembershipRole.MEMBER, user=None):
        user = user or make_user()
        membership = MembershipService.create(
            session, org.id, org.admin.id, MembershipCreate(phone=user.phone, role=role)
        )
        return SimpleNamespace(user=user, membership=membership)

    return _add


@pytest.fixture
def enable_partial_payments(session, org):
    from schemas.organization_schema import OrganizationSettingsUpdate

    OrganizationService.update_settings(
        session, org.id, org.admin.id, OrganizationSettingsUpdate(allow_partial_payments=True)
    )
