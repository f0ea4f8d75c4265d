"""
Pytest configuration.

Points the application at a throwaway SQLite file before anything from `app`
is imported, and provides factories for users, reference data and contractors.
"""
import os
import tempfile

_db_dir = tempfile.mkdtemp(prefix="crm-tests-")

# Set environment variables for tests
os.environ.setdefault("DATABASE_URL", f"sqlite+aiosqlite:///{os.path.join(_db_dir, 'test.db')}")
os.environ.setdefault("SECRET_KEY", "test-secret-key")
os.environ.setdefault("RATE_LIMIT_ENABLED", "0")

import pytest  # noqa: E402
from httpx import ASGITransport, AsyncClient  # noqa: E402

from app.core.database.base import Base  # noqa: E402
from app.core.database.engine import AsyncSessionLocal, engine, import_models  # noqa: E402
from app.features.agreements.models import Agreement  # noqa: E402
from app.features.cities.models import City  # noqa: E402
from app.features.contractors.models import Contractor  # noqa: E402
from app.features.permissions.models import Permission  # noqa: E402
from app.features.service_points.models import ServicePoint  # noqa: E402
from app.features.users.auth import create_access_token, get_password_hash  # noqa: E402
from app.features.users.models import User  # noqa: E402
from app.main import app  # noqa: E402

TEST_PASSWORD = "secret-password"


@pytest.fixture(scope="session")
def password_hash():
    """Hash the shared test password once; bcrypt is deliberately slow."""
    return get_password_hash(TEST_PASSWORD)


@pytest.fixture
async def db_tables():
    """Create a fresh schema for every test."""
    import_models()
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)
        await conn.run_sync(Base.metadata.create_all)
    yield
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)


@pytest.fixture
async def session(db_tables):
    """Database session for arranging and inspecting rows."""
    async with AsyncSessionLocal() as db:
        yield db


@pytest.fixture
async def client(db_tables):
    """HTTP client bound to the application."""
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as http:
        yield http


def auth(user: User) -> dict:
    """Authorization header for `user`."""
    return {"Authorization": f"Bearer {create_access_token(user.id)}"}


@pytest.fixture
def make_user(session, password_hash):
    """Factory creating a user with the given permission tags."""
    async def _make(login: str, permissions=(), name: str | None = None) -> User:
        user = User(
            login=login,
            name=name or login.title(),
            password_hash=password_hash,
            permissions=[Permission(p).value for p in permissions],
        )
        session.add(user)
        await session.commit()
        return user

    return _make


@pytest.fixture
async def admin(make_user):
    """Administrator."""
    return await make_user("admin", [Permission.ADMIN])


@pytest.fixture
def make_city(session):
    async def _make(name: str) -> City:
        city = City(name=name)
        session.add(city)
        await session.commit()
        return city

    return _make


@pytest.fixture
def make_agreement(session):
    async def _make(name: str) -> Agreement:
        agreement = Agreement(name=name)
        session.add(agreement)
        await session.commit()
        return agreement

    return _make


@pytest.fixture
def make_contractor(session):
    """Factory creating a contractor owned by the given manager/creator."""
    async def _make(
        name: str = "Acme",
        manager: User | None = None,
        creator: User | None = None,
        **fields,
    ) -> Contractor:
        contractor = Contractor(
            name=name,
            inn=fields.pop("inn", "7700000000"),
            manager_id=manager.id if manager else None,
            created_by_id=creator.id if creator else None,
            **fields,
        )
        session.add(contractor)
        await session.commit()
        return contractor

    return _make


@pytest.fixture
def make_service_point(session):
    async def _make(contractor: Contractor, name: str = "Main hall", **fields) -> ServicePoint:
        service_point = ServicePoint(contractor_id=contractor.id, name=name, **fields)
        session.add(service_point)
        await session.commit()
        return service_point

    return _make
