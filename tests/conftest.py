from datetime import datetime, timedelta, timezone

import mongomock
import pytest
from bson import ObjectId
from fastapi.testclient import TestClient

import main
from database import get_db
from security import create_token, hash_password
from storage import ImageStorage, get_storage

BASE_TIME = datetime(2024, 1, 1, tzinfo=timezone.utc)


@pytest.fixture
def db():
    return mongomock.MongoClient().get_database("luxury_bags_test")


@pytest.fixture
def storage(tmp_path):
    return ImageStorage(root=str(tmp_path / "uploads"))


@pytest.fixture
def client(db, storage):
    main.app.dependency_overrides[get_db] = lambda: db
    main.app.dependency_overrides[get_storage] = lambda: storage
    yield TestClient(main.app)
    main.app.dependency_overrides.clear()


@pytest.fixture
def make_product(db):
    counter = {"n": 0}

    def _make(**overrides):
        counter["n"] += 1
        doc = {
            "name": f"Bag {counter['n']}",
            "description": "Hand-stitched calfskin",
            "price": 1000,
            "brand": "Maison",
            "category": "Handbag",
            "material": "Leather",
            "color": "Black",
            "stock": 10,
            "images": [{"url": f"/uploads/bag{counter['n']}.jpg", "public_id": f"bag{counter['n']}.jpg"}],
            "rating": 0,
            "num_reviews": 0,
            "is_featured": False,
            "created_at": BASE_TIME + timedelta(minutes=counter["n"]),
            "updated_at": BASE_TIME + timedelta(minutes=counter["n"]),
        }
        doc.update(overrides)
        doc["_id"] = db["product"].insert_one(doc).inserted_id
        return doc

    return _make


@pytest.fixture
def make_user(db):
    def _make(name="Asha", email=None, role="user", password="secret123"):
        doc = {
            "name": name,
            "email": email or f"{name.lower()}-{ObjectId()}@example.com",
            "password": hash_password(password),
            "role": role,
            "addresses": [],
            "created_at": BASE_TIME,
            "updated_at": BASE_TIME,
        }
        doc["_id"] = db["user"].insert_one(doc).inserted_id
        return doc

    return _make


@pytest.fixture
def user(make_user):
    return make_user("Asha", email="asha@example.com")


@pytest.fixture
def admin_user(make_user):
    return make_user("Root", email="root@example.com", role="admin")


@pytest.fixture
def user_headers(user):
    return {"Authorization": f"Bearer {create_token(user['_id'])}"}


@pytest.fixture
def admin_headers(admin_user):
    return {"Authorization": f"Bearer {create_token(admin_user['_id'])}"}


@pytest.fixture
def address():
    return {"street": "12 MG Road", "city": "Bengaluru", "state": "KA", "zipCode": "560001", "country": "India"}
