from lending.endpoints import app
from lending.database import Base, get_db

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from fastapi.testclient import TestClient


SQLALCHEMY_DATABASE_URL = "sqlite:///./test.db"
engine = create_engine(
    SQLALCHEMY_DATABASE_URL, connect_args={"check_same_thread": False}
)
TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)


def override_get_db():
    """
    Override function for the database dependency.

    This replaces the normal get_db() with one that uses the test database.
    FastAPI's dependency injection will call this instead during tests,
    including inside the current_user dependency.
    """
    try:
        db = TestingSessionLocal()
        yield db
    finally:
        db.close()


app.dependency_overrides[get_db] = override_get_db


@pytest.fixture(autouse=True)
def setup_database():
    """
    Create all tables before each test and drop them afterwards,
    so every test starts from an empty database.
    """
    Base.metadata.create_all(bind=engine)
    yield
    Base.metadata.drop_all(bind=engine)


@pytest.fixture
def client():
    return TestClient(app)


@pytest.fixture
def session_factory():
    """The test sessionmaker, for tests that need several independent sessions."""
    return TestingSessionLocal


@pytest.fixture
def db_session():
    """A session on the test database for checking rows directly."""
    db = TestingSessionLocal()
    try:
        yield db
    finally:
        db.close()


def identity(user_id, name=None, image=None):
    """Headers the identity proxy sends for a signed-in user."""
    headers = {"X-User-Id": user_id}
    if name is not None:
        headers["X-User-Name"] = name
    if image is not None:
        headers["X-User-Image"] = image
    return headers


@pytest.fixture
def alice():
    return identity("user-alice", "Alice", "https://avatars.example.com/alice.png")


@pytest.fixture
def bob():
    return identity("user-bob", "Bob")


@pytest.fixture
def carol():
    return identity("user-carol", "Carol")


@pytest.fixture
def make_book(client):
    """
    Factory creating a book through the API and returning its JSON.

    Usage:
        book = make_book(alice, title="Dune")
    """

    def _make_book(headers, **overrides):
        book_data = {
            "title": "The Pragmatic Programmer",
            "author": "Andrew Hunt",
            "coverImage": "https://covers.example.com/pragmatic.jpg",
        }
        book_data.update(overrides)
        response = client.post("/books", json=book_data, headers=headers)
        assert response.status_code == 201, response.text
        return response.json()

    return _make_book
