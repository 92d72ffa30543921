from pathlib import Path
from typing import Awaitable, Callable, Optional, Tuple

import httpx
import pytest
import pytest_asyncio

from smartcity import identity
from smartcity.auth import create_access_token
from smartcity.config import Settings
from smartcity.main import create_app
from smartcity.models import Role, User


@pytest.fixture
def settings(tmp_path: Path) -> Settings:
    """Per-test settings backed by a throwaway SQLite file."""
    return Settings(
        environment="test",
        log_level="WARNING",
        database_url=f"sqlite+aiosqlite:///{tmp_path / 'test.db'}",
        jwt_secret="test-secret-key-for-pytest-only-12345",
        jwt_algorithm="HS256",
        jwt_access_minutes=60,
        upload_dir=tmp_path / "uploads",
        max_upload_bytes=1024 * 1024,
        allowed_hosts=("*",),
        cors_origins=("*",),
        report_points=10,
        resolution_points=15,
        sentry_dsn=None,
    )


@pytest_asyncio.fixture
async def app(settings):
    application = create_app(settings)
    # ASGITransport does not run startup events; create the schema directly
    await application.state.db.init_db()
    yield application
    await application.state.db.dispose()


@pytest_asyncio.fixture
async def client(app):
    transport = httpx.ASGITransport(app=app)
    async with httpx.AsyncClient(transport=transport, base_url="http://test") as c:
        yield c


@pytest_asyncio.fixture
async def session(app):
    async with app.state.db.session_factory() as s:
        yield s


@pytest.fixture
def make_user(app, settings) -> Callable[..., Awaitable[Tuple[User, str]]]:
    """Return a factory that creates a user directly in the DB and returns (user, token)."""
    counter = {"n": 0}

    async def _create(
        username: str,
        role: Role = Role.CITIZEN,
        city: str = "ahmedabad",
        admin: Optional[User] = None,
        password: str = "testpass123",
    ):
        counter["n"] += 1
        async with app.state.db.session_factory() as s:
            user = await identity.create_user(
                s,
                username=username,
                email=f"{username}@smartcity.in",
                password=password,
                state="gujarat",
                district=city,
                city=city,
                phone_no=f"98{counter['n']:08d}",
                role=role.value,
                admin_id=admin.id if admin else None,
            )
        token = create_access_token(settings, subject=user.id, role=user.role)
        return user, token

    return _create

