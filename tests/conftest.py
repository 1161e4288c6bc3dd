import uuid

import httpx
import pytest
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from auth import create_access_token, get_password_hash
from database import get_db, init_db
from document_store import DocumentStore, COLLECTION_USERS
from main import app
from models import AuthAccount, UserRole

DEFAULT_PASSWORD = "secret123"


@pytest.fixture
async def engine():
    """Fresh in-memory database per test; one shared connection so every session sees the same data."""
    test_engine = create_async_engine(
        "sqlite+aiosqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    await init_db(test_engine)
    yield test_engine
    await test_engine.dispose()


@pytest.fixture
def session_maker(engine):
    return async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)


@pytest.fixture
async def db(session_maker):
    async with session_maker() as session:
        yield session


@pytest.fixture
async def client(session_maker):
    """HTTP client bound to the app, with get_db pointed at the test database."""

    async def override_get_db():
        async with session_maker() as session:
            yield session

    app.dependency_overrides[get_db] = override_get_db
    transport = httpx.ASGITransport(app=app)
    async with httpx.AsyncClient(transport=transport, base_url="http://test") as test_client:
        yield test_client
    app.dependency_overrides.clear()


@pytest.fixture
def seed(session_maker):
    """Write documents through a short-lived session: seed(collection, doc_id, data)."""

    async def _seed(collection, doc_id, data):
        async with session_maker() as session:
            await DocumentStore(session).set(collection, doc_id, data)

    return _seed


@pytest.fixture
def read_doc(session_maker):
    """Read a document back through a short-lived session."""

    async def _read(collection, doc_id):
        async with session_maker() as session:
            return await DocumentStore(session).get(collection, doc_id)

    return _read


@pytest.fixture
def create_account(session_maker):
    """
    Create a sign-in account. When `role` is given a matching profile
    document is written to `users/{uid}`.
    """

    async def _create(email, role=None, password=DEFAULT_PASSWORD, is_active=True, full_name="Test User"):
        async with session_maker() as session:
            account = AuthAccount(
                uid=uuid.uuid4().hex,
                email=email.lower(),
                hashed_password=get_password_hash(password),
                is_active=is_active,
            )
            session.add(account)
            await session.commit()
            await session.refresh(account)

            if role:
                await DocumentStore(session).set(COLLECTION_USERS, account.uid, {
                    "email": account.email,
                    "fullName": full_name,
                    "role": role,
                    "isActive": True,
                })
            return account

    return _create


def _bearer(account):
    return {"Authorization": f"Bearer {create_access_token(account)}"}


@pytest.fixture
def headers_for():
    """Bearer headers for an account: headers_for(account)"""
    return _bearer


@pytest.fixture
async def super_admin(create_account):
    return await create_account("root@smartstock.rw", role=UserRole.SUPER_ADMIN.value, full_name="Root Admin")


@pytest.fixture
def admin_headers(super_admin):
    return _bearer(super_admin)
