"""Pytest configuration and fixtures."""

import io
import os
from unittest.mock import MagicMock

import numpy as np
import pytest
from PIL import Image
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from ccpp_api.db.seed import create_schema, seed_equipment
from ccpp_api.db.session import make_engine
from ccpp_api.ledger import HashChainLedger, SqlLedgerRepository
from ccpp_api.settings import get_settings
from ccpp_api.storage.backend import LocalBackend
from ccpp_api.storage.images import ImageStore
from ccpp_api.utils.event_log import MemoryEventLogger

# Use test database URL from environment or default to SQLite in-memory
TEST_DATABASE_URL = os.getenv("TEST_DATABASE_URL", "sqlite:///:memory:")

# Nine well separated grey levels; adjacent blocks never tie
BLOCK_LEVELS = np.arange(40, 220, 22)


@pytest.fixture(scope="function")
def engine():
    """Fresh schema per test."""
    if TEST_DATABASE_URL.startswith("sqlite"):
        # Same pragmas as the application engine (foreign keys enforced)
        engine = make_engine(TEST_DATABASE_URL, poolclass=StaticPool)
    else:
        engine = create_engine(TEST_DATABASE_URL)

    create_schema(engine)
    yield engine
    from ccpp_api.db.base import Base

    Base.metadata.drop_all(engine)
    engine.dispose()


@pytest.fixture
def session_factory(engine):
    return sessionmaker(autocommit=False, autoflush=False, bind=engine)


@pytest.fixture
def file_session_factory(tmp_path):
    """File-backed SQLite so concurrent threads get their own connections."""
    engine = make_engine(f"sqlite:///{tmp_path / 'ledger.db'}")
    create_schema(engine)
    yield sessionmaker(autocommit=False, autoflush=False, bind=engine)
    engine.dispose()


@pytest.fixture
def plant_equipment(session_factory):
    """Plant units (TG1, TG2, B1, B2, B3, C0) that log entries may reference."""
    db = session_factory()
    try:
        seed_equipment(db)
    finally:
        db.close()


@pytest.fixture
def event_logger():
    return MemoryEventLogger()


@pytest.fixture
def ledger(session_factory, event_logger):
    return HashChainLedger(SqlLedgerRepository(session_factory), event_logger=event_logger)


@pytest.fixture
def minio_client():
    """MinIO client double; uploaded objects are kept in ``objects``."""
    client = MagicMock()
    client.objects = {}

    def put_object(bucket, key, data, length, content_type=None):
        client.objects[key] = data.read()

    def get_object(bucket, key):
        response = MagicMock()
        response.read.return_value = client.objects[key]
        return response

    def remove_object(bucket, key):
        client.objects.pop(key, None)

    client.put_object.side_effect = put_object
    client.get_object.side_effect = get_object
    client.remove_object.side_effect = remove_object
    return client


@pytest.fixture
def image_store(minio_client):
    return ImageStore(client=minio_client, bucket="test-documents")


@pytest.fixture
def backend(session_factory, image_store, event_logger):
    return LocalBackend(
        session_factory,
        settings=get_settings(),
        image_store=image_store,
        event_logger=event_logger,
    )


@pytest.fixture
def client(backend):
    """API client served by the test backend."""
    from fastapi.testclient import TestClient

    from ccpp_api.deps import get_local_backend
    from ccpp_api.main import app

    app.dependency_overrides[get_local_backend] = lambda: backend
    try:
        yield TestClient(app)
    finally:
        app.dependency_overrides.clear()


def block_image(seed: int = 0, scale: int = 20) -> Image.Image:
    """9x8 grid of grey blocks in a seeded order."""
    rs = np.random.RandomState(seed)
    grid = np.stack([rs.permutation(BLOCK_LEVELS) for _ in range(8)])
    pixels = np.kron(grid, np.ones((scale, scale))).astype(np.uint8)
    return Image.fromarray(pixels).convert("RGB")


def inverted(image: Image.Image) -> Image.Image:
    pixels = 255 - np.asarray(image, dtype=np.uint8)
    return Image.fromarray(pixels.astype(np.uint8))


def image_bytes(image: Image.Image, fmt: str = "PNG", **kwargs) -> bytes:
    buffer = io.BytesIO()
    image.save(buffer, format=fmt, **kwargs)
    return buffer.getvalue()
