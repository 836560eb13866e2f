"""
Pytest configuration and fixtures.
Provides an in-memory database, a TestClient wired to it, and fake mail/storage collaborators.
"""
import base64
import io
import os

# Settings are read at import time
os.environ.setdefault("DATABASE_URL", "sqlite://")
os.environ.setdefault("AUTO_CREATE_DB", "false")
os.environ.setdefault("RATE_LIMIT", "100000/minute")
os.environ.setdefault("ACCOUNT_PASSWORD", "secret-pass")
os.environ.setdefault("PUBLIC_BASE_URL", "http://test")
os.environ.setdefault("COMPANY_EMAIL", "atelier@example.com")

from datetime import date

import pytest
from PIL import Image
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from app.main import app
from app.db import Base, get_db
from app.auth.security import create_access_token
from app.models.models import Client, Material, Service
from app.services.account import ensure_single_user
from app.services.mailer import Mailer, get_mailer
from app.storage.local_provider import get_storage
from app.storage.provider import StorageProvider


class FakeMailer(Mailer):
    def __init__(self, fail: bool = False):
        self.sent = []
        self.fail = fail

    def send(self, to, subject, body, attachments=None):
        if self.fail:
            raise ConnectionRefusedError("smtp down")
        self.sent.append({"to": to, "subject": subject, "body": body, "attachments": list(attachments or [])})


class MemoryStorage(StorageProvider):
    def __init__(self):
        self.files = {}

    def get_download_url(self, key):
        return f"http://test/public/quotes/{key}"

    def copy_in(self, src, key):
        self.files[key] = src.read() if hasattr(src, "read") else src

    def read(self, key):
        return self.files.get(key)


@pytest.fixture(scope="function")
def db_session():
    """
    Create a test database session.
    Uses in-memory SQLite for fast tests.
    """
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(bind=engine)
    TestingSession = sessionmaker(bind=engine, autoflush=False, autocommit=False, future=True)
    session = TestingSession()
    try:
        yield session
    finally:
        session.close()
        Base.metadata.drop_all(bind=engine)
        engine.dispose()


@pytest.fixture
def mailer():
    return FakeMailer()


@pytest.fixture
def storage():
    return MemoryStorage()


@pytest.fixture
def user(db_session):
    return ensure_single_user(db_session)


@pytest.fixture
def auth_headers(user):
    return {"Authorization": f"Bearer {create_access_token(user.id)}"}


@pytest.fixture
def client(db_session, mailer, storage):
    """
    Create a test HTTP client.
    """
    def _get_db():
        yield db_session

    app.dependency_overrides[get_db] = _get_db
    app.dependency_overrides[get_mailer] = lambda: mailer
    app.dependency_overrides[get_storage] = lambda: storage
    try:
        yield TestClient(app)
    finally:
        app.dependency_overrides.clear()


@pytest.fixture
def catalog(db_session, user):
    """One client with an email, one service, one catalog material."""
    customer = Client(
        user_id=user.id,
        name="Marie Dupont",
        address="12 rue des Lilas, Lyon",
        phone="0600000000",
        email="marie@example.com",
        segment="Standard",
    )
    service = Service(user_id=user.id, name="Remplacement chauffe-eau", base_price=100)
    material = Material(user_id=user.id, name="Kit raccords", price=40)
    db_session.add_all([customer, service, material])
    db_session.commit()
    return {"client": customer, "service": service, "material": material}


@pytest.fixture
def today():
    return date(2026, 3, 10)


@pytest.fixture
def signature_data_url():
    """A small PNG stroke as the signature pad would post it."""
    im = Image.new("RGBA", (120, 40), (0, 0, 0, 0))
    for x in range(10, 110):
        im.putpixel((x, 20), (0, 0, 0, 255))
    buf = io.BytesIO()
    im.save(buf, format="PNG")
    return "data:image/png;base64," + base64.b64encode(buf.getvalue()).decode()
