"""Shared test infrastructure for the Estate Platform test suite.

Provides:
- settings: Settings pointing at a per-test SQLite file and storage directory
- services: the wired application services, started and closed around each test
- get_identity: factory loading Identity rows (confirmation and reset codes)
- make_user: factory signing up, confirming and signing in an identity
- user_session / other_user_session / admin_session / guest_session
- make_property_data: factory for PropertyCreate payloads
- png_upload: factory for small in-memory image uploads
- bearer: factory for Authorization headers
- client: httpx AsyncClient bound to the app with the test services injected
"""

import pytest
from httpx import ASGITransport, AsyncClient
from sqlalchemy import select

from estate_platform.app.config import Settings
from estate_platform.app.container import Services, get_services
from estate_platform.domain.enums import ADMIN_GROUP, PropertyStatus
from estate_platform.domain.models import Identity
from estate_platform.domain.schemas import PropertyCreate
from estate_platform.services.storage_service import ImageUpload

PASSWORD = "Secr3t!pass"

# Smallest valid PNG header; content is never decoded
PNG_BYTES = b"\x89PNG\r\n\x1a\n" + b"\x00" * 16


# ---------------------------------------------------------------------------
# Settings & services
# ---------------------------------------------------------------------------


@pytest.fixture
def settings(tmp_path) -> Settings:
    return Settings(
        _env_file=None,
        database_url=f"sqlite+aiosqlite:///{tmp_path / 'test.db'}",
        jwt_secret_key="test-secret",
        bcrypt_rounds=4,
        storage_root=str(tmp_path / "storage"),
        admin_email="",
        admin_password="",
        debug=True,
    )


@pytest.fixture
async def services(settings):
    services = Services.build(settings)
    await services.start()
    yield services
    await services.close()


@pytest.fixture
def manager(services):
    return services.sessions


@pytest.fixture
def storage(services):
    return services.storage


# ---------------------------------------------------------------------------
# Identities
# ---------------------------------------------------------------------------


async def read_identity(services: Services, email: str) -> Identity:
    async with services.session_factory() as db:
        result = await db.execute(select(Identity).where(Identity.email == email))
        return result.scalar_one()


@pytest.fixture
def get_identity(services):
    """Factory: load the Identity row for an email (codes are only sent to the log)."""

    async def _get(email: str) -> Identity:
        return await read_identity(services, email)

    return _get


@pytest.fixture
def make_user(services):
    """Factory: a confirmed, signed-in identity. Returns its AuthSession."""

    async def _make(
        email: str = "user@example.com",
        password: str = PASSWORD,
        name: str = "Test User",
        admin: bool = False,
    ):
        await services.auth.sign_up(email, password, name)
        identity = await read_identity(services, email)
        await services.auth.confirm_sign_up(email, identity.confirmation_code)
        if admin:
            await services.auth.add_user_to_group(email, ADMIN_GROUP)
        return await services.auth.sign_in(email, password)

    return _make


@pytest.fixture
async def user_session(make_user):
    return await make_user("user@example.com")


@pytest.fixture
async def other_user_session(make_user):
    return await make_user("other@example.com", name="Other User")


@pytest.fixture
async def admin_session(make_user):
    return await make_user("admin@example.com", name="Admin User", admin=True)


@pytest.fixture
async def guest_session(services):
    return await services.auth.fetch_session()


@pytest.fixture
def bearer():
    """Factory: Authorization header for a signed-in session."""

    def _headers(session) -> dict:
        return {"Authorization": f"Bearer {session.tokens.access_token}"}

    return _headers


@pytest.fixture
def password() -> str:
    return PASSWORD


# ---------------------------------------------------------------------------
# Factories
# ---------------------------------------------------------------------------


@pytest.fixture
def make_property_data():
    def _make(**overrides) -> PropertyCreate:
        defaults = {
            "status": PropertyStatus.FOR_SALE,
            "address_line1": "12 High Street",
            "city": "Bristol",
            "postcode": "BS1 4DJ",
            "price": 250000,
            "bedrooms": 2,
            "bathrooms": 1,
            "description": "A bright two-bedroom flat.",
        }
        defaults.update(overrides)
        return PropertyCreate(**defaults)

    return _make


@pytest.fixture
def png_upload():
    def _make(marker: bytes = b"") -> ImageUpload:
        return ImageUpload(data=PNG_BYTES + marker, content_type="image/png", filename="photo.png")

    return _make


# ---------------------------------------------------------------------------
# HTTP client
# ---------------------------------------------------------------------------


@pytest.fixture
async def client(services):
    from estate_platform.app.main import app

    app.dependency_overrides[get_services] = lambda: services
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as c:
        yield c
    app.dependency_overrides.clear()
