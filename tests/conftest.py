from datetime import datetime, timezone

import mongomock
import pytest
from fastapi.testclient import TestClient

import auth
import config
from database import get_db
from main import app


@pytest.fixture
def db():
    return mongomock.MongoClient()["localchefbazaar_test"]


@pytest.fixture
def client(db, monkeypatch):
    monkeypatch.setattr(config, "FB_SERVICE_KEY", None)
    monkeypatch.setattr(auth, "_verifier", None)
    app.dependency_overrides[get_db] = lambda: db
    with TestClient(app) as c:
        yield c
    app.dependency_overrides.clear()


@pytest.fixture
def bearer(monkeypatch):
    monkeypatch.setattr(config, "FB_SERVICE_KEY", None)
    monkeypatch.setattr(auth, "_verifier", None)

    def make(email):
        return {"Authorization": f"Bearer {auth.create_jwt({'email': email})}"}
    return make


@pytest.fixture
def add_user(db):
    def add(email, role="user", status="active", name=None, chef_id=None):
        doc = {
            "name": name or email.split("@")[0],
            "email": email,
            "role": role,
            "status": status,
            "createdAt": datetime.now(timezone.utc),
        }
        if chef_id:
            doc["chefId"] = chef_id
        doc["_id"] = db["users"].insert_one(doc).inserted_id
        return doc
    return add
