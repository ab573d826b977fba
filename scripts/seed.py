# scripts/seed.py

import os
import sys
import argparse

from dotenv import load_dotenv
from sqlmodel import Session, select

# Ensure root path for relative imports
sys.path.append(os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

# ✅ Load environment variables
load_dotenv()

from core.database import create_db_and_tables, engine  # noqa: E402
from core.security import hash_password  # noqa: E402
from models.models import (  # noqa: E402
    ContributionPlan,
    Frequency,
    MembershipRole,
    Organization,
    OrganizationType,
    User,
)
from schemas.contribution_plan_schema import ContributionPlanCreate  # noqa: E402
from schemas.debt_schema import DebtCreate  # noqa: E402
from schemas.membership_schema import MembershipCreate  # noqa: E402
from schemas.organization_schema import OrganizationCreate, OrganizationSettingsUpdate  # noqa: E402
from services.contribution_plan_service import ContributionPlanService  # noqa: E402
from services.debt_service import DebtService  # noqa: E402
from services.membership_service import MembershipService  # noqa: E402
from services.organization_service import OrganizationService  # noqa: E402


def get_or_create_user(session: Session, full_name: str, email: str, phone: str, password: str) -> User:
    user = session.exec(select(User).where(User.email == email)).first()
    if user:
        return user
    user = User(full_name=full_name, email=email, phone=phone, password_hash=hash_password(password))
    session.add(user)
    session.commit()
    session.refresh(user)
    print(f"✅ Added user {email}")
    return user


def get_or_create_org(session: Session, owner: User, name: str, org_type: OrganizationType) -> Organization:
    org = session.exec(select(Organization).where(Organization.name == name)).first()
    if org:
        return org
    org = OrganizationService.create(session, owner.id, OrganizationCreate(name=name, type=org_type))
    print(f"✅ Created {name}")
    return org


def seed_dev_data():
    """Seed development database with a demo savings circle, members and ledger data."""
    print("🌱 Seeding development data...")

    with Session(engine) as session:
        # -----------------------------
        # 👑 Admin + 🏢 Organization
        # -----------------------------
        admin = get_or_create_user(session, "Admin User", "admin@demo.com", "+221700000001", "admin12345")
        org = get_or_create_org(session, admin, "Demo Tontine", OrganizationType.TONTINE)
        OrganizationService.update_settings(
            session, org.id, admin.id, OrganizationSettingsUpdate(allow_partial_payments=True)
        )

        # -----------------------------
        # 👥 Members
        # -----------------------------
        members = [
            ("Treasurer", "treasurer@demo.com", "+221700000002", MembershipRole.FINANCIAL_MANAGER),
            ("Member One", "member1@demo.com", "+221700000003", MembershipRole.MEMBER),
            ("Member Two", "member2@demo.com", "+221700000004", MembershipRole.MEMBER),
        ]
        created = []
        for full_name, email, phone, role in members:
            user = get_or_create_user(session, full_name, email, phone, "member12345")
            existing = [m for m in user.memberships if m.organization_id == org.id]
            if existing:
                created.append(existing[0])
                continue
            created.append(
                MembershipService.create(session, org.id, admin.id, MembershipCreate(phone=phone, role=role))
            )
        print("✅ Added sample members")

        # -----------------------------
        # 📋 Plan + contributions
        # -----------------------------
        plan = session.exec(
            select(ContributionPlan).where(
                ContributionPlan.organization_id == org.id, ContributionPlan.name == "Monthly dues"
            )
        ).first()
        if not plan:
            plan = ContributionPlanService.create(
                session,
                org.id,
                admin.id,
                ContributionPlanCreate(name="Monthly dues", amount=5000, frequency=Frequency.MONTHLY),
            )
            result = ContributionPlanService.generate_contributions_for_plan(session, org.id, plan.id, admin.id)
            print(f"✅ Generated {result['generated']} contributions for {result['period']}")

            # -----------------------------
            # 🧾 A sample debt
            # -----------------------------
            DebtService.create(
                session,
                org.id,
                admin.id,
                DebtCreate(membership_id=created[-1].id, title="Emergency loan", amount=20000),
            )
            print("✅ Added sample debt")

    print("🌱 Development data seeding complete.")


def seed_staging_data():
    """Seed staging database with minimal safe data."""
    print("🌱 Seeding staging data...")

    with Session(engine) as session:
        admin = get_or_create_user(
            session, "Staging Admin", "staging-admin@circlefund.app", "+221700009999", "staging12345"
        )
        get_or_create_org(session, admin, "Staging Association", OrganizationType.ASSOCIATION)

    print("🌱 Staging data seeding complete.")


if __name__ == "__main__":
    parser = argparse.ArgumentParser(description="Seed the CircleFund database.")
    parser.add_argument(
        "--env",
        choices=["dev", "staging"],
        default="dev",
        help="Select environment to seed (dev or staging)",
    )
    args = parser.parse_args()

    create_db_and_tables()
    if args.env == "dev":
        seed_dev_data()
    elif args.env == "staging":
        seed_staging_data()
