from __future__ import annotations

import os
import sys
from pathlib import Path

import pytest
from fastapi.testclient import TestClient

os.environ.setdefault("SECRET_KEY", "test-secret-key-not-for-production")
sys.path.insert(0, str(Path(__file__).resolve().parents[1]))

import service_connect.db.session as db_session
from service_connect.core.rate_limit import auth_limiter
from service_connect.main import app
from service_connect.models import Listing, User


@pytest.fixture()
def client(tmp_path):
    auth_limiter.reset()
    database_path = tmp_path / "test.db"
    db_session.configure_engine(f"sqlite:///{database_path}")
    db_session.init_db()

    with TestClient(app) as test_client:
        yield test_client


@pytest.fixture()
def db(tmp_path):
    database_path = tmp_path / "service.db"
    db_session.configure_engine(f"sqlite:///{database_path}")
    db_session.init_db()
    session_factory = db_session.SessionLocal
    assert session_factory is not None

    session = session_factory()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture()
def make_user(db):
    counter = {"value": 0}

    def _make_user(first_name: str, last_name: str = "Test", *, account_type: str = "individual", is_active: bool = True) -> User:
        counter["value"] += 1
        user = User(
            first_name=first_name,
            last_name=last_name,
            phone=f"+33 6 00 00 00 {counter['value']:02d}",
            password_hash="not-a-real-hash",
            account_type=account_type,
            is_active=is_active,
        )
        db.add(user)
        db.commit()
        db.refresh(user)
        return user

    return _make_user


@pytest.fixture()
def make_listing(db):
    def _make_listing(owner: User, title: str = "Garden maintenance", *, is_active: bool = True) -> Listing:
        listing = Listing(
            owner_id=owner.id,
            title=title,
            description="Lawn mowing and hedge trimming",
            category="Gardening",
            is_active=is_active,
        )
        db.add(listing)
        db.commit()
        db.refresh(listing)
        return listing

    return _make_listing
