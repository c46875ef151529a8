"""
Pytest configuration and fixtures
"""

import json
import pytest
import pytest_asyncio
import pandas as pd
from sqlalchemy.ext.asyncio import AsyncSession, create_async_engine, async_sessionmaker
from sqlalchemy.pool import NullPool
from typing import AsyncGenerator, Dict, List
from migration.assets.object_storage import ObjectStorage
from migration.checkpoint import CheckpointStore, InMemoryCheckpointBackend
from models.base import Base
import models.property  # noqa: F401


COLUMNS = [
    "ID", "Title", "Street Address", "City, State Zipcode, Country", "City", "State",
    "Zip Code", "Country", "Description", "Square Footage", "Unit Type", "Beds", "Baths",
    "Laundry", "Pet Policy", "Parking", "Furnish Level", "Other Ammenities", "Landlord",
    "Landlord Email", "Landlord Phone Number", "Listing Link", "Monthly Rent",
    "Cover Photo", "Media Gallery", "Featured",
]


def make_row(**overrides) -> Dict[str, str]:
    """A fully valid export row; keyword arguments replace columns by name"""
    row = {
        "ID": "wix-001",
        "Title": "Sunny Loft near Downtown",
        "Street Address": json.dumps({
            "formatted": "123 Main St, Chesterfield, MO 63017-4246, USA",
            "streetAddress": {"formattedAddressLine": "123 Main St", "number": "123", "name": "Main St"},
            "city": "Chesterfield",
            "subdivisions": [{"code": "MO", "name": "Missouri"}],
            "postalCode": "63017-4246",
            "country": "US",
            "location": {"latitude": 38.663, "longitude": -90.577},
        }),
        "City, State Zipcode, Country": "",
        "City": "",
        "State": "",
        "Zip Code": "",
        "Country": "",
        "Description": "Bright two bedroom loft with city views.",
        "Square Footage": "888 SF",
        "Unit Type": '["Apartment"]',
        "Beds": "2",
        "Baths": "1.5",
        "Laundry": '["In Unit"]',
        "Pet Policy": '["Cats OK"]',
        "Parking": "Garage",
        "Furnish Level": '["Furnished"]',
        "Other Ammenities": "Gym, Pool, ",
        "Landlord": "Jordan Smith",
        "Landlord Email": "jordan@example.com",
        "Landlord Phone Number": "555-0100",
        "Listing Link": "https://listings.example.com/loft",
        "Monthly Rent": "1850",
        "Cover Photo": "wix:image://v1/abc123_cover~mv2.jpg/cover.jpg#originWidth=800&originHeight=600",
        "Media Gallery": json.dumps([
            {"src": "wix:image://v1/gal001~mv2.png/one.png#originWidth=640"},
            {"src": "wix:image://v1/gal002~mv2.webp/two.webp#originWidth=640"},
        ]),
        "Featured": "false",
    }
    row.update(overrides)
    return row


def write_csv(path, rows: List[Dict[str, str]]) -> str:
    pd.DataFrame(rows, columns=COLUMNS).to_csv(path, index=False)
    return str(path)


class InMemoryObjectStorage(ObjectStorage):
    """Object storage double that keeps uploads in a dict"""

    def __init__(self):
        self.objects = {}

    async def upload(self, key: str, data: bytes, content_type: str) -> str:
        self.objects[key] = (data, content_type)
        return key

    async def get_public_url(self, path: str) -> str:
        return f"https://cdn.test/{path}"


@pytest.fixture
def sample_row():
    return make_row()


@pytest.fixture
def sample_csv(tmp_path):
    """Three valid listings with distinct IDs"""
    rows = [
        make_row(),
        make_row(ID="wix-002", Title="Garden Flat"),
        make_row(ID="wix-003", Title="Corner Studio", **{"Media Gallery": ""}),
    ]
    return write_csv(tmp_path / "listings.csv", rows)


@pytest.fixture
def scenario_csv(tmp_path):
    """Row 1 valid, row 2 missing its city, row 3 repeats row 1's ID"""
    rows = [
        make_row(ID="wix-100"),
        make_row(ID="wix-200", State="MO", **{"Street Address": "9 Elm St", "Zip Code": "63011"}),
        make_row(ID="wix-100", Title="Copy of Sunny Loft"),
    ]
    return write_csv(tmp_path / "scenario.csv", rows)


@pytest.fixture
def object_storage():
    return InMemoryObjectStorage()


@pytest.fixture
def checkpoint():
    return CheckpointStore(InMemoryCheckpointBackend())


@pytest_asyncio.fixture(scope="function")
async def test_engine(tmp_path):
    """Create test database engine"""
    engine = create_async_engine(
        f"sqlite+aiosqlite:///{tmp_path / 'test.db'}",
        echo=False,
        poolclass=NullPool,
    )

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield engine

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)

    await engine.dispose()


@pytest_asyncio.fixture(scope="function")
async def db_session(test_engine) -> AsyncGenerator[AsyncSession, None]:
    """Create database session for tests"""
    session_maker = async_sessionmaker(
        test_engine,
        class_=AsyncSession,
        expire_on_commit=False,
        autoflush=False,
    )

    async with session_maker() as session:
        yield session
        await session.rollback()


@pytest.fixture
def row_factory():
    return make_row


@pytest.fixture
def csv_factory(tmp_path):
    """Write rows to a fresh CSV under tmp_path and return its path"""
    counter = {"n": 0}

    def _write(rows: List[Dict[str, str]]) -> str:
        counter["n"] += 1
        return write_csv(tmp_path / f"export_{counter['n']}.csv", rows)

    return _write
