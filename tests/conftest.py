# tests/conftest.py

"""
Shared fixtures for the Catalog Service tests.
Tests run against an in-memory SQLite database that is rebuilt for every
test, and the hosted image store is replaced with a recording fake.
"""
import logging
import os

# Must be set before catalog_service.db creates its engine
os.environ["DATABASE_URL"] = "sqlite://"

import pytest
from fastapi.testclient import TestClient
from sqlalchemy.orm import Session

from catalog_service.assets import UploadResult, get_asset_store
from catalog_service.db import Base, SessionLocal, engine
from catalog_service.errors import AssetStoreError
from catalog_service.main import app
from catalog_service.models import Category

# Suppress noisy logs from SQLAlchemy/FastAPI during tests for cleaner output
logging.getLogger("sqlalchemy.engine").setLevel(logging.WARNING)
logging.getLogger("uvicorn.access").setLevel(logging.WARNING)
logging.getLogger("uvicorn.error").setLevel(logging.WARNING)
logging.getLogger("fastapi").setLevel(logging.WARNING)
logging.getLogger("catalog_service.main").setLevel(logging.WARNING)

PNG_DATA_URI = "data:image/png;base64,iVBORw0KGgo="


class FakeAssetStore:
    """Records every upload/destroy instead of talking to blob storage."""

    def __init__(self):
        self.uploads = []
        self.destroyed = []
        self.fail_upload = False
        self.fail_destroy = False

    def upload(self, image: str, folder: str) -> UploadResult:
        if self.fail_upload:
            raise AssetStoreError("upload refused")
        self.uploads.append((image, folder))
        public_id = f"{folder}/fake-{len(self.uploads)}.png"
        return UploadResult(
            public_id=public_id, url=f"https://assets.example.test/{public_id}"
        )

    def destroy(self, public_id: str) -> None:
        if self.fail_destroy:
            raise AssetStoreError("destroy refused")
        self.destroyed.append(public_id)


# --- Pytest Fixtures ---
@pytest.fixture(autouse=True)
def fresh_database():
    """Drops and recreates every table so each test starts from a clean slate."""
    Base.metadata.drop_all(bind=engine)
    Base.metadata.create_all(bind=engine)
    yield


@pytest.fixture
def asset_store():
    store = FakeAssetStore()
    app.dependency_overrides[get_asset_store] = lambda: store
    try:
        yield store
    finally:
        app.dependency_overrides.pop(get_asset_store, None)


@pytest.fixture
def client(asset_store):
    """
    Provides a TestClient for making HTTP requests to the FastAPI application.
    The TestClient automatically manages the app's lifespan events (startup/shutdown).
    """
    with TestClient(app) as test_client:
        yield test_client


@pytest.fixture
def db_session():
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


@pytest.fixture
def categories(db_session: Session):
    """Two categories products can reference: {"fruit": id, "vegetable": id}."""
    fruit = Category(name="Fruit")
    vegetable = Category(name="Vegetable")
    db_session.add_all([fruit, vegetable])
    db_session.commit()
    return {"fruit": fruit.category_id, "vegetable": vegetable.category_id}


@pytest.fixture
def product_payload(categories):
    def build(**overrides):
        payload = {
            "name": "Alphonso Mango",
            "rate": 120.0,
            "stocks": 40,
            "category": categories["fruit"],
            "kilogramOption": [
                {"kilogram": 1, "price": 120},
                {"kilogram": 5, "price": 550},
            ],
            "image": PNG_DATA_URI,
        }
        payload.update(overrides)
        return payload

    return build
