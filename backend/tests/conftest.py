"""
Shared fixtures: a throwaway SQLite database per test, an HTTP client bound
to the app, and small factories for users, listings and bookings.
"""
import os

os.environ["ENVIRONMENT"] = "test"
os.environ["OUTBOX_DISPATCHER_ENABLED"] = "false"

from datetime import date, timedelta
from decimal import Decimal
from typing import Any, Dict, List

import pytest
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from ridesharex.core.security import create_access_token, token_claims
from ridesharex.db import crud_listings, crud_users
from ridesharex.db.base import Base
from ridesharex.db.models import Booking
from ridesharex.db.session import get_db
from ridesharex.main import app


class RecordingPublisher:
    """Stands in for the websocket manager; remembers what was pushed."""

    def __init__(self):
        self.sent: List[tuple] = []
        self.fail = False

    async def send_to_user(self, user_id: int, message: Dict[str, Any]) -> int:
        if self.fail:
            raise RuntimeError("socket gone")
        self.sent.append((user_id, message))
        return 1


@pytest.fixture
async def engine(tmp_path):
    engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'test.db'}")
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_factory(engine):
    return async_sessionmaker(bind=engine, class_=AsyncSession, expire_on_commit=False)


@pytest.fixture
async def db(session_factory):
    async with session_factory() as session:
        yield session


@pytest.fixture
def publisher():
    return RecordingPublisher()


@pytest.fixture
async def client(session_factory, publisher, tmp_path, monkeypatch):
    async def override_get_db():
        async with session_factory() as session:
            yield session

    from ridesharex.core.config import get_settings

    monkeypatch.setattr(get_settings(), "STATIC_UPLOAD_DIR", str(tmp_path / "uploads"))

    app.dependency_overrides[get_db] = override_get_db
    old_factory = app.state.session_factory
    old_publisher = app.state.connection_manager
    app.state.session_factory = session_factory
    app.state.connection_manager = publisher

    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
        yield ac

    app.dependency_overrides.clear()
    app.state.session_factory = old_factory
    app.state.connection_manager = old_publisher


def auth_headers(user) -> Dict[str, str]:
    token = create_access_token(token_claims(user))
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture
def auth():
    return auth_headers


@pytest.fixture
def make_user(db):
    counter = {"n": 0}

    async def _make(role="renter", approval_status="approved", **kwargs):
        counter["n"] += 1
        return await crud_users.create_user(
            db,
            name=kwargs.get("name", f"{role.title()} {counter['n']}"),
            email=kwargs.get("email", f"{role}{counter['n']}@example.com"),
            password=kwargs.get("password", "password123"),
            phone=kwargs.get("phone"),
            role=role,
            approval_status=approval_status,
        )

    return _make


@pytest.fixture
async def admin(make_user):
    return await make_user("admin")


@pytest.fixture
async def host(make_user):
    return await make_user("host")


@pytest.fixture
async def renter(make_user):
    return await make_user("renter")


@pytest.fixture
def make_listing(db):
    async def _make(host, status="approved", price_per_day="500.00", **kwargs):
        listing = await crud_listings.create_listing(
            db,
            host_id=host.id,
            submit=status != "draft",
            title=kwargs.get("title", "Toyota Corolla"),
            make=kwargs.get("make", "Toyota"),
            model=kwargs.get("model", "Corolla"),
            year=kwargs.get("year", 2020),
            price_per_day=Decimal(price_per_day),
            location=kwargs.get("location", "Cape Town"),
        )
        if status in ("approved", "rejected", "inactive"):
            listing.status = status
            listing.approval_status = "rejected" if status == "rejected" else "approved"
            await db.commit()
        return listing

    return _make


@pytest.fixture
def make_booking(db):
    async def _make(listing, renter, start_in=10, days=3, status="pending", total_amount="1725.00"):
        start = date.today() + timedelta(days=start_in)
        booking = Booking(
            renter_id=renter.id,
            listing_id=listing.id,
            start_date=start,
            end_date=start + timedelta(days=days),
            total_days=days,
            price_per_day=Decimal("500.00"),
            subtotal=Decimal("1500.00"),
            service_fee=Decimal("150.00"),
            insurance_fee=Decimal("75.00"),
            total_amount=Decimal(total_amount),
            status=status,
            payment_status="pending",
        )
        db.add(booking)
        await db.commit()
        await db.refresh(booking)
        return booking

    return _make
