from __future__ import annotations

import os
from pathlib import Path
import tempfile

import pytest

# coursesearch.main creates its tables at import time; keep that out of the working directory.
os.environ.setdefault("DATABASE_URL", f"sqlite:///{Path(tempfile.gettempdir()) / 'coursesearch-test.db'}")

from fastapi.testclient import TestClient

from coursesearch import db as dbmod
from coursesearch.core import config as configmod
from coursesearch.services import catalog_service as servicemod


def _clear_caches() -> None:
    configmod.get_settings.cache_clear()
    dbmod.get_engine.cache_clear()
    dbmod.get_sessionmaker.cache_clear()
    servicemod.get_catalog_service.cache_clear()


@pytest.fixture(autouse=True)
def _isolated_settings(monkeypatch, tmp_path: Path) -> None:
    monkeypatch.setenv("DATABASE_URL", f"sqlite:///{tmp_path / 'coursesearch.db'}")
    monkeypatch.setenv("CATALOG_DATA_DIR", str(tmp_path / "institutions"))
    monkeypatch.delenv("CATALOG_BASE_URL", raising=False)
    (tmp_path / "institutions").mkdir()
    _clear_caches()
    dbmod.init_db()
    yield
    _clear_caches()


@pytest.fixture()
def data_dir(tmp_path: Path) -> Path:
    return tmp_path / "institutions"


@pytest.fixture()
def client() -> TestClient:
    from coursesearch.main import app

    return TestClient(app)
