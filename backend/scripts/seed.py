# scripts/seed.py
import asyncio
import random
from decimal import Decimal

from ridesharex.db.base import Base
from ridesharex.db.session import AsyncSessionLocal, engine
from ridesharex.db import models  # noqa: F401  registers tables on Base
from ridesharex.db.crud_users import create_user, get_user_by_email
from ridesharex.db.crud_listings import create_listing
from ridesharex.db.models import utcnow

VEHICLES = [
    ("Toyota", "Corolla", "sedan", "automatic"),
    ("Volkswagen", "Polo", "hatchback", "manual"),
    ("Ford", "Ranger", "bakkie", "manual"),
    ("Toyota", "Fortuner", "suv", "automatic"),
    ("Suzuki", "Swift", "hatchback", "manual"),
]
CITIES = ["Cape Town", "Johannesburg", "Durban", "Pretoria"]


async def seed():
    # create tables (if migrations not run)
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    async with AsyncSessionLocal() as db:
        admin = await get_user_by_email(db, "admin@example.com")
        if not admin:
            admin = await create_user(
                db,
                name="Admin",
                email="admin@example.com",
                password="password123",
                phone="+27110000000",
                role="admin",
                approval_status="approved",
            )

        hosts = []
        for i in range(3):
            email = f"host{i}@example.com"
            h = await get_user_by_email(db, email)
            if not h:
                h = await create_user(
                    db,
                    name=f"Host {i}",
                    email=email,
                    password="password123",
                    phone=f"+2782000000{i}",
                    role="host",
                    approval_status="approved",
                )
            hosts.append(h)

        for i in range(12):
            make, model, vehicle_type, transmission = random.choice(VEHICLES)
            listing = await create_listing(
                db,
                host_id=random.choice(hosts).id,
                title=f"{make} {model} #{i}",
                description="Well maintained, full tank on pickup.",
                make=make,
                model=model,
                year=random.randint(2015, 2024),
                vehicle_type=vehicle_type,
                transmission=transmission,
                price_per_day=Decimal(350 + i * 25),
                location=random.choice(CITIES),
                images=["/static/uploads/sample.jpg"],
            )
            # seeded inventory is pre-approved so the search page has data
            listing.status = "approved"
            listing.approval_status = "approved"
            listing.approved_at = utcnow()
            listing.approved_by_admin_id = admin.id
            await db.commit()
        print("Seed complete")


if __name__ == "__main__":
    asyncio.run(seed())
