import httpx
import pytest
import pytest_asyncio
from fakeredis import aioredis
from sqlalchemy.ext.asyncio import async_sessionmaker, create_async_engine

from equipment_service import directory
from equipment_service.breaker import CircuitBreaker
from equipment_service.catalog import CatalogService
from equipment_service.clients import CatalogClient
from equipment_service.db import Base
from equipment_service.favorites import RedisFavoritesStore
from equipment_service.main import app
from equipment_service.routes import get_catalog, get_favorites, get_storage
from equipment_service.storage import MemoryStorage, SqlStorage

CATALOG_URL = "http://catalog.test/api"

CATALOG_RECORDS = [
    {
        "id": 101,
        "name": "Confocal Microscope LSM-900",
        "description": "Laser scanning microscope",
        "classification": "Microscopes optical",
        "location": "Building B, room 12",
        "inventoryNumber": "INV-0042",
        "serialNumber": "SN-7781",
        "vendorCode": "X-1",
    },
    {
        "id": 102,
        "name": "Benchtop Centrifuge",
        "classification": None,
        "serialNumber": "C-555",
    },
]

CATALOG_FILTERS = [
    {"name": "classification", "label": "Classification", "options": ["Microscopes", "Centrifuges"]},
    {"name": "location", "label": "Location", "options": ["Building A", "Building B"]},
]


def make_equipment(**fields):
    fields.setdefault("name", "Test Equipment")
    fields.setdefault("description", "Used in tests")
    fields.setdefault("category", "analyzers")
    fields.setdefault("location", "Lab 1")
    return directory.build_equipment(**fields)


def catalog_transport(records=None, filters=None, status_code=200):
    """MockTransport answering like the external catalog; records every request."""
    seen = []

    def handler(request: httpx.Request):
        seen.append(request)
        if status_code != 200:
            return httpx.Response(status_code, json={"error": "boom"})
        if request.url.path.endswith("/equipments/filters"):
            return httpx.Response(200, json={"filters": CATALOG_FILTERS if filters is None else filters})
        return httpx.Response(200, json={"results": CATALOG_RECORDS if records is None else records})

    transport = httpx.MockTransport(handler)
    transport.seen = seen
    return transport


@pytest.fixture
def redis():
    return aioredis.FakeRedis(decode_responses=True)


@pytest.fixture
def make_catalog(redis):
    def _make(transport, name="test-catalog", failure_threshold=5):
        breaker = CircuitBreaker(name, failure_threshold=failure_threshold, reset_timeout_seconds=10, redis=redis)
        return CatalogService(CatalogClient(base_url=CATALOG_URL, login="tester", breaker=breaker, transport=transport))

    return _make


@pytest_asyncio.fixture
async def engine(tmp_path):
    eng = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'test.db'}")
    async with eng.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield eng
    await eng.dispose()


@pytest_asyncio.fixture
async def session_factory(engine):
    factory = async_sessionmaker(bind=engine, expire_on_commit=False)
    async with factory() as session:
        await directory.ensure_user(SqlStorage(session), 1, "testuser")
    return factory


@pytest_asyncio.fixture
async def sql_storage(session_factory):
    async with session_factory() as session:
        yield SqlStorage(session)


@pytest_asyncio.fixture
async def memory_storage():
    storage = MemoryStorage()
    await directory.ensure_user(storage, 1, "testuser")
    return storage


@pytest.fixture
def catalog_stub():
    return catalog_transport()


@pytest_asyncio.fixture
async def client(session_factory, redis, make_catalog, catalog_stub):
    async def override_storage():
        async with session_factory() as session:
            yield SqlStorage(session)

    app.dependency_overrides[get_storage] = override_storage
    app.dependency_overrides[get_favorites] = lambda: RedisFavoritesStore(redis)
    app.dependency_overrides[get_catalog] = lambda: make_catalog(catalog_stub)

    transport = httpx.ASGITransport(app=app)
    async with httpx.AsyncClient(transport=transport, base_url="http://testserver") as c:
        yield c

    app.dependency_overrides.clear()


@pytest_asyncio.fixture
async def five_items(session_factory):
    """Equipment ids 1..5, all bookable and available."""
    async with session_factory() as session:
        storage = SqlStorage(session)
        async with storage.transaction():
            for i in range(1, 6):
                await storage.add_equipment(make_equipment(name=f"Analyzer {i}", location=f"Lab {100 + i}"))
