import os
os.environ["TESTING"] = "1"
os.environ.setdefault("SECRET_KEY", "test-secret")
os.environ["DATABASE_URL"] = "sqlite:///./test.db"
import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker

import sys
from pathlib import Path

import uuid

sys.path.append(str(Path(__file__).resolve().parents[2]))

from modelshare.main import app
from modelshare.database import Base, get_db
from modelshare import auth, models, notify, schemas
from modelshare.services import assets as asset_service

SQLALCHEMY_DATABASE_URL = os.environ["DATABASE_URL"]
engine = create_engine(
    SQLALCHEMY_DATABASE_URL,
    connect_args={"check_same_thread": False, "timeout": 30},
)
TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)

Base.metadata.drop_all(bind=engine)
Base.metadata.create_all(bind=engine)

def override_get_db():
    db = TestingSessionLocal()
    try:
        yield db
    finally:
        db.close()

app.dependency_overrides[get_db] = override_get_db


@pytest.fixture(autouse=True)
def clear_outbox():
    notify.DM_OUTBOX.clear()
    yield
    notify.DM_OUTBOX.clear()


@pytest.fixture
def client():
    with TestClient(app) as c:
        yield c


@pytest.fixture
def db():
    session = TestingSessionLocal()
    try:
        yield session
    finally:
        session.rollback()
        session.close()


def create_user(*roles: str, username: str | None = None) -> str:
    """
    purpose: insert a committed user with the given roles for service and API tests
    outputs: the new user's id
    """

    user_id = uuid.uuid4().hex[:20]
    db = TestingSessionLocal()
    user = models.User(
        id=user_id,
        username=username or f"user-{user_id[:6]}",
        display_name=username or f"User {user_id[:6]}",
        roles=list(roles),
    )
    db.add(user)
    db.commit()
    db.close()
    return user_id


def auth_headers(user_id: str) -> dict:
    token = auth.create_access_token({"sub": user_id})
    return {"Authorization": f"Bearer {token}"}


def asset_payload(**overrides) -> dict:
    payload = {
        "name": "Neon Saber",
        "description": "A glowing saber",
        "license": "cc-by-4.0",
        "file_format": "saber_saber",
        "tags": ["lights"],
        "file_hash": uuid.uuid4().hex,
        "file_size": 2048,
        "icon_names": ["icon-1.png"],
    }
    payload.update(overrides)
    return payload


def create_asset(db, uploader_id: str, status: str = "private", **overrides) -> models.Asset:
    """
    purpose: create a committed asset and walk it to the requested status through moderation
    outputs: the asset, attached to the given session
    """

    uploader = db.get(models.User, uploader_id)
    asset = asset_service.create_asset(
        db,
        schemas.AssetCreate(**asset_payload(**overrides)),
        uploader=uploader,
    )
    if status != "private":
        asset_service.set_status(
            db,
            asset,
            status,
            "Fixture setup",
            None,
            notify_uploader=False,
        )
    db.commit()
    return asset


def alerts_for(db, user_id: str) -> list[models.Alert]:
    db.expire_all()
    return (
        db.query(models.Alert)
        .filter(models.Alert.user_id == user_id)
        .order_by(models.Alert.id.asc())
        .all()
    )
