"""
Configuración compartida para todos los tests.
Define variables de entorno ficticias y sustituye get_db / get_storage
para no conectar nunca con MySQL ni con S3.
"""

import os

os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite://")
os.environ.setdefault("AWS_ACCESS_KEY_ID", "test-key")
os.environ.setdefault("AWS_SECRET_ACCESS_KEY", "test-secret")
os.environ.setdefault("AWS_REGION", "us-east-1")
os.environ.setdefault("AWS_BUCKET_NAME", "fotos-test")

from unittest.mock import AsyncMock, MagicMock  # noqa: E402

import pytest  # noqa: E402
from fastapi.testclient import TestClient  # noqa: E402

from app.database import get_db  # noqa: E402
from app.main import app  # noqa: E402
from app.storage import PhotoStorage, get_storage  # noqa: E402


def _make_result(rows=None, rowcount=1):
    """Resultado de db.execute() con scalars().all() y rowcount."""
    result = MagicMock()
    result.scalars.return_value.all.return_value = rows or []
    result.rowcount = rowcount
    return result


@pytest.fixture
def anyio_backend():
    return "asyncio"


@pytest.fixture
def make_result():
    """Fábrica de resultados simulados de db.execute()."""
    return _make_result


@pytest.fixture
def mock_db():
    db = AsyncMock()
    db.execute.return_value = _make_result()
    db.get.return_value = None
    return db


@pytest.fixture
def mock_storage():
    storage = MagicMock(spec=PhotoStorage)
    storage.upload = AsyncMock()
    storage.delete = AsyncMock()
    storage.url_for.side_effect = lambda key: f"/fotos/{key}"
    return storage


@pytest.fixture
def client(mock_db, mock_storage):
    """Cliente HTTP de test con la base de datos y S3 simulados."""
    app.dependency_overrides[get_db] = lambda: mock_db
    app.dependency_overrides[get_storage] = lambda: mock_storage
    with TestClient(app) as c:
        yield c
    app.dependency_overrides.clear()
