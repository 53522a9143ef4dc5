"""
Test infrastructure for the blog platform API.

Strategy
--------
- SQLite in-memory via aiosqlite eliminates the need for a running Postgres
  instance in CI, keeping the suite fast and self-contained.
- StaticPool forces all async tasks to share the same in-memory database
  connection, which is required because SQLite in-memory databases are
  connection-scoped; a new connection would see an empty database.
- ``get_db``, ``get_settings`` and ``get_image_host`` are overridden so
  every test-time request uses the test session factory, cheap bcrypt
  rounds, and an image host that never leaves the process.
- All tables are created fresh before each test and dropped after, giving
  each test a clean isolated state without needing transactions or truncation.
- The Redis cache is disabled by setting cache._redis = None; the CacheManager
  already handles a None _redis gracefully (no-op reads and writes).
"""
import pytest_asyncio
from httpx import AsyncClient, ASGITransport
from sqlalchemy import update
from sqlalchemy.ext.asyncio import create_async_engine, async_sessionmaker, AsyncSession
from sqlalchemy.pool import StaticPool

from blog_platform.cache import cache
from blog_platform.config import Settings, get_settings
from blog_platform.database import Base, get_db
from blog_platform.dependencies import get_image_host
from blog_platform.images import ImageHost
from blog_platform.main import app
from blog_platform.middleware import install_query_counter
from blog_platform.models import ROLE_ADMIN, User
from blog_platform.security import hash_password

# ---------------------------------------------------------------------------
# Test database engine — SQLite in-memory with aiosqlite
# ---------------------------------------------------------------------------

TEST_DATABASE_URL = "sqlite+aiosqlite:///:memory:"

engine_test = create_async_engine(
    TEST_DATABASE_URL,
    connect_args={"check_same_thread": False},
    poolclass=StaticPool,
)

install_query_counter(engine_test)

async_session_test = async_sessionmaker(
    engine_test,
    class_=AsyncSession,
    expire_on_commit=False,
)

TEST_SETTINGS = Settings(
    DATABASE_URL=TEST_DATABASE_URL,
    APP_ENV="test",
    DEBUG=False,
    JWT_SECRET="test-secret",
    BCRYPT_ROUNDS=4,
    CLOUDINARY_CLOUD_NAME="",
    CLOUDINARY_API_KEY="",
    CLOUDINARY_API_SECRET="",
)

CONTENT = "This is a blog post body that is comfortably longer than fifty characters."
PASSWORD = "secret123"


class FakeImageHost(ImageHost):
    """Image host that "uploads" by handing back a deterministic URL."""

    def __init__(self) -> None:
        super().__init__("test-cloud", "key", "secret")
        self.uploads: list[dict] = []

    async def upload(self, image: str, **options) -> str:
        self.uploads.append({"image": image, **options})
        return f"https://images.example.com/{options.get('folder', 'misc')}/{len(self.uploads)}.jpg"


fake_images = FakeImageHost()


# ---------------------------------------------------------------------------
# Dependency overrides
# ---------------------------------------------------------------------------

async def override_get_db():
    async with async_session_test() as session:
        try:
            yield session
            await session.commit()
        except Exception:
            await session.rollback()
            raise


app.dependency_overrides[get_db] = override_get_db
app.dependency_overrides[get_settings] = lambda: TEST_SETTINGS
app.dependency_overrides[get_image_host] = lambda: fake_images


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------

@pytest_asyncio.fixture(autouse=True)
async def setup_db():
    """Create all tables before each test, drop after to guarantee isolation."""
    fake_images.uploads.clear()
    async with engine_test.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield
    async with engine_test.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)


@pytest_asyncio.fixture
async def db_session() -> AsyncSession:
    """
    Yield a live AsyncSession for tests that call services directly.
    """
    async with async_session_test() as session:
        yield session


@pytest_asyncio.fixture
async def async_client() -> AsyncClient:
    """
    Yield an httpx.AsyncClient wired to the FastAPI app via ASGITransport.
    """
    cache._redis = None
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as client:
        yield client


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

async def register(client: AsyncClient, name: str, email: str | None = None, password: str = PASSWORD) -> tuple[dict, dict]:
    """Register through the API and return (user, auth headers)."""
    email = email or f"{name.lower()}@example.com"
    resp = await client.post("/api/auth/register", json={
        "name": name,
        "email": email,
        "password": password,
    })
    assert resp.status_code == 201, resp.text
    data = resp.json()["data"]
    return data["user"], {"Authorization": f"Bearer {data['token']}"}


async def promote_to_admin(user_id: int) -> None:
    async with async_session_test() as session:
        await session.execute(update(User).where(User.id == user_id).values(role=ROLE_ADMIN))
        await session.commit()


async def register_admin(client: AsyncClient, name: str = "Admin") -> tuple[dict, dict]:
    user, headers = await register(client, name)
    await promote_to_admin(user["id"])
    return user, headers


async def create_blog(client: AsyncClient, headers: dict, **fields) -> dict:
    payload = {"title": "A blog post", "content": CONTENT, "category": "technology"}
    payload.update(fields)
    resp = await client.post("/api/blogs", json=payload, headers=headers)
    assert resp.status_code == 201, resp.text
    return resp.json()["data"]["blog"]


async def make_user(db: AsyncSession, name: str = "svcuser", *, role: str = "reader") -> User:
    """Insert a user directly, for service-level tests."""
    user = User(
        name=name,
        email=f"{name}@example.com",
        password_hash=hash_password(PASSWORD, TEST_SETTINGS),
        role=role,
    )
    db.add(user)
    await db.flush()
    return user
