import os

# Settings are read once at import time, so the environment must be ready first
os.environ.setdefault("SECRET_KEY", "test-secret-key")
os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite:///:memory:")
os.environ.setdefault("RUN_MIGRATIONS", "false")

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from choreograph.db.database import get_async_session
from choreograph.db.models import Base
from choreograph.main import app
from choreograph.models.column import Column
from choreograph.models.project import Project, project_members
from choreograph.models.user import User

API = "/api/v1"


@pytest_asyncio.fixture
async def engine():
    """Свежая in-memory SQLite база на каждый тест"""
    engine = create_async_engine(
        "sqlite+aiosqlite://",
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_factory(engine):
    return async_sessionmaker(engine, autoflush=False, expire_on_commit=False)


@pytest_asyncio.fixture
async def db(session_factory):
    async with session_factory() as session:
        yield session


@pytest_asyncio.fixture
async def client(session_factory):
    """HTTP клиент приложения, работающий с тестовой базой"""

    async def override_session():
        async with session_factory() as session:
            try:
                yield session
                await session.commit()
            except Exception:
                await session.rollback()
                raise

    app.dependency_overrides[get_async_session] = override_session
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
        yield ac
    app.dependency_overrides.clear()


@pytest.fixture
def signup(client):
    """Регистрирует пользователя и возвращает (заголовки авторизации, данные пользователя)"""

    async def _signup(email, name="Test User", password="secret123"):
        response = await client.post(
            f"{API}/auth/signup",
            json={"name": name, "email": email, "password": password},
        )
        assert response.status_code == 201, response.text
        body = response.json()
        return {"Authorization": f"Bearer {body['accessToken']}"}, body["user"]

    return _signup


@pytest.fixture
def create_project(client):
    async def _create_project(headers, name="Test Project"):
        response = await client.post(f"{API}/projects", json={"name": name}, headers=headers)
        assert response.status_code == 201, response.text
        return response.json()

    return _create_project


@pytest_asyncio.fixture
async def project(session_factory):
    """Проект с владельцем, созданный напрямую в базе в отдельной сессии"""
    async with session_factory() as session:
        owner = User(email="owner@example.com", name="Owner", hashed_password="x")
        session.add(owner)
        await session.flush()

        project = Project(name="Board", owner_id=owner.id)
        session.add(project)
        await session.flush()
        await session.execute(project_members.insert().values(user_id=owner.id, project_id=project.id))
        await session.commit()
    return project


@pytest.fixture
def add_columns(db):
    """Добавляет колонки с заданными order без проверок сервисного слоя"""

    async def _add_columns(project_id, orders):
        columns = [
            Column(name=f"Column {index}", order=order, project_id=project_id)
            for index, order in enumerate(orders)
        ]
        db.add_all(columns)
        await db.commit()
        return columns

    return _add_columns
