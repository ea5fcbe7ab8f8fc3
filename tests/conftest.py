import asyncio
import os
from datetime import datetime, timedelta, timezone
from uuid import uuid4

os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite://")
os.environ.setdefault("SECRET_KEY", "test-secret")
os.environ.setdefault("PAYMENT_SIMULATION", "true")

import pytest
from fastapi.testclient import TestClient
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import NullPool

import bluecollar.main as main_module
import bluecollar.metrics as metrics_module
import bluecollar.modules.auth.router as auth_router_module
import bluecollar.services.auth as auth_service_module
import bluecollar.services.payment_gateway as gateway_module
from bluecollar.db.base import Base
from bluecollar.db.session import get_session
from bluecollar.main import app
from bluecollar.models.models import Role, User
from bluecollar.services.auth import hash_password

PASSWORD = "secret123"


class FakeRedis:
    """In-memory stand-in for the few redis.asyncio calls the app makes."""

    def __init__(self):
        self.store = {}
        self.lists = {}

    async def get(self, key):
        return self.store.get(key)

    async def set(self, key, value, ex=None, nx=False):
        if nx and key in self.store:
            return None
        self.store[key] = str(value)
        return True

    async def incr(self, key):
        self.store[key] = str(int(self.store.get(key, 0)) + 1)
        return int(self.store[key])

    async def expire(self, key, seconds):
        return key in self.store

    async def delete(self, *keys):
        removed = 0
        for key in keys:
            removed += int(self.store.pop(key, None) is not None)
        return removed

    async def exists(self, key):
        return int(key in self.store)

    async def ping(self):
        return True

    async def llen(self, key):
        return len(self.lists.get(key, []))


@pytest.fixture()
def fake_redis(monkeypatch):
    fake = FakeRedis()
    for module in (main_module, metrics_module, auth_router_module, auth_service_module, gateway_module):
        monkeypatch.setattr(module, "redis_client", fake)
    return fake


@pytest.fixture()
def session_factory(tmp_path):
    engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'test.db'}", poolclass=NullPool)

    async def _create():
        async with engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)

    asyncio.run(_create())
    yield async_sessionmaker(bind=engine, class_=AsyncSession, expire_on_commit=False)
    asyncio.run(engine.dispose())


@pytest.fixture()
def client(session_factory, fake_redis):
    async def _get_session():
        async with session_factory() as session:
            yield session

    app.dependency_overrides[get_session] = _get_session
    with TestClient(app) as c:
        yield c
    app.dependency_overrides.clear()


def auth(token: str) -> dict:
    return {"Authorization": f"Bearer {token}"}


def login(client, email: str, password: str = PASSWORD) -> str:
    response = client.post("/auth/login", data={"username": email, "password": password})
    assert response.status_code == 200, response.text
    return response.json()["access_token"]


def register(client, role: str = Role.CLIENT, **extra) -> dict:
    email = extra.pop("email", None) or f"{role.lower()}_{uuid4().hex[:8]}@example.com"
    body = {"email": email, "password": PASSWORD, "name": extra.pop("name", f"Test {role.title()}"), "role": role}
    body.update(extra)
    response = client.post("/auth/register", json=body)
    assert response.status_code == 201, response.text
    data = response.json()
    data["headers"] = auth(login(client, email))
    return data


def future(days: int = 3) -> str:
    return (datetime.now(timezone.utc) + timedelta(days=days)).isoformat()


@pytest.fixture()
def admin(client, session_factory):
    email = f"admin_{uuid4().hex[:8]}@example.com"

    async def _insert():
        async with session_factory() as db:
            user = User(email=email, name="Admin", hashed_password=hash_password(PASSWORD), role=Role.ADMIN)
            db.add(user)
            await db.commit()
            return user.id

    user_id = asyncio.run(_insert())
    return {"id": user_id, "email": email, "headers": auth(login(client, email))}


@pytest.fixture()
def provider(client, admin):
    """An approved provider in Bengaluru with one active service priced at 500."""
    data = register(
        client,
        Role.PROVIDER,
        name="Ravi Electricals",
        skills=["electrician", "wiring"],
        rate=350,
        latitude=12.9716,
        longitude=77.5946,
        city="Bengaluru",
    )
    response = client.patch(f"/admin/providers/{data['profile_id']}/verify", json={"approved": True}, headers=admin["headers"])
    assert response.status_code == 200, response.text
    service = client.post(
        "/services",
        json={"title": "Fan installation", "description": "Ceiling fan fitting", "price": 500, "category": "electrical", "duration": "1 hour"},
        headers=data["headers"],
    )
    assert service.status_code == 201, service.text
    data["service"] = service.json()
    return data


@pytest.fixture()
def client_user(client):
    return register(client, Role.CLIENT, name="Asha Client", age=31)


def book(client, client_user, service_id: int, **extra) -> dict:
    body = {
        "service_id": service_id,
        "date": future(),
        "notes": "Please call before arriving",
        "client_address": "MG Road",
        "client_latitude": 12.9352,
        "client_longitude": 77.6245,
    }
    body.update(extra)
    response = client.post("/bookings", json=body, headers=client_user["headers"])
    assert response.status_code == 201, response.text
    return response.json()
