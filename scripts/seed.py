"""
Seed a local database with one account per role.

Usage:

# create the schema first
alembic upgrade head

# then
python scripts/seed.py

Accounts (password in brackets):
- admin@bluecollar.app (admin123)
- provider@bluecollar.app (provider123), approved, with two services
- client@bluecollar.app (client123)
"""
import asyncio
import logging
import os
import sys
from datetime import datetime, timezone

from sqlalchemy import select as sa_select

sys.path.insert(0, os.path.abspath(os.path.join(os.path.dirname(__file__), "..")))

from bluecollar.db.session import async_session, engine
from bluecollar.logging_setup import setup_logging
from bluecollar.models.models import ClientProfile, ProviderProfile, Role, Service, User, VerificationStatus
from bluecollar.services.auth import hash_password

logger = logging.getLogger("seed")


async def get_or_create_user(db, email: str, password: str, name: str, role: str, phone: str):
    user = (await db.execute(sa_select(User).where(User.email == email))).scalars().first()
    if user:
        logger.info("user %s already exists", email)
        return user, False
    user = User(email=email, hashed_password=hash_password(password), name=name, role=role, phone=phone, verified=True)
    db.add(user)
    await db.flush()
    logger.info("created %s %s", role.lower(), email)
    return user, True


async def seed():
    async with async_session() as db:
        admin, _ = await get_or_create_user(db, "admin@bluecollar.app", "admin123", "Admin User", Role.ADMIN, "+911234567890")

        provider_user, created = await get_or_create_user(
            db, "provider@bluecollar.app", "provider123", "John Electrician", Role.PROVIDER, "+911234567891"
        )
        if created:
            provider = ProviderProfile(
                user_id=provider_user.id,
                name="John Electrician",
                skills=["electrician", "plumber"],
                rate=400,
                address="12 Residency Road",
                latitude=12.9716,
                longitude=77.5946,
                city="Bengaluru",
                state="Karnataka",
                zip_code="560025",
                verified=True,
                verification_status=VerificationStatus.APPROVED,
                verified_at=datetime.now(timezone.utc),
                verified_by=admin.id,
            )
            db.add(provider)
            await db.flush()
            db.add_all(
                [
                    Service(
                        provider_id=provider.id,
                        title="Electrical Wiring Installation",
                        description="Professional electrical wiring for residential and commercial properties",
                        price=1500,
                        category="ELECTRICAL",
                        duration="3 hours",
                    ),
                    Service(
                        provider_id=provider.id,
                        title="Plumbing Repair Services",
                        description="Expert plumbing repairs and maintenance",
                        price=1200,
                        category="PLUMBING",
                        duration="2 hours",
                    ),
                ]
            )

        client_user, created = await get_or_create_user(
            db, "client@bluecollar.app", "client123", "Jane Client", Role.CLIENT, "+911234567892"
        )
        if created:
            db.add(ClientProfile(user_id=client_user.id, name="Jane Client", age=29))

        await db.commit()
    await engine.dispose()
    logger.info("seed complete")


if __name__ == "__main__":
    setup_logging()
    asyncio.run(seed())
