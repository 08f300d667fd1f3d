import pytest_asyncio

from regtools.client import RegistryClient
from regtools.connection import RegistryConnection

# --- Constants for Mock Fixtures ---
MOCK_URL = "https://registry.test"
MOCK_USERNAME = "test_conftest_user"
MOCK_PASSWORD = "test_conftest_password"


@pytest_asyncio.fixture
async def client():
    """Provides a RegistryClient without credentials.  The trailing slash is deliberate."""
    async with RegistryClient(RegistryConnection(url=f"{MOCK_URL}/")) as api:
        yield api


@pytest_asyncio.fixture
async def auth_client():
    """Provides a RegistryClient which sends HTTP Basic credentials."""
    connection = RegistryConnection(
        url=MOCK_URL,
        username=MOCK_USERNAME,
        password=MOCK_PASSWORD,
    )
    async with RegistryClient(connection) as api:
        yield api
