import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

import approvals, crud, main, seed
from blob_store import InMemoryBlobStore
from database import Base, get_db

ADMIN_PASSWORD = "admin-pass"
USER_PASSWORD = "user-pass"


@pytest.fixture()
def engine():
    engine = create_engine(
        "sqlite+pysqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(engine)
    yield engine
    engine.dispose()


@pytest.fixture()
def db_session(engine):
    SessionLocal = sessionmaker(bind=engine, autoflush=False, autocommit=False)
    session = SessionLocal()
    seed.seed_database(session, ADMIN_PASSWORD, USER_PASSWORD)
    try:
        yield session
    finally:
        session.close()


@pytest.fixture()
def now():
    return crud.utcnow()


@pytest.fixture()
def blob_store():
    return InMemoryBlobStore()


@pytest.fixture()
def dispatcher(blob_store):
    return approvals.default_dispatcher(
        blob_store,
        default_location_id="main-archive",
        intake_location_id="main-archive",
    )


@pytest.fixture()
def client(db_session, dispatcher):
    def _get_db():
        yield db_session

    main.app.dependency_overrides[get_db] = _get_db
    main.app.dependency_overrides[main.get_dispatcher] = lambda: dispatcher
    try:
        yield TestClient(main.app)
    finally:
        main.app.dependency_overrides.clear()


def _token(client, username, password):
    response = client.post("/token", data={"username": username, "password": password})
    assert response.status_code == 200, response.text
    return response.json()["access_token"]


@pytest.fixture()
def admin_headers(client):
    return {"Authorization": f"Bearer {_token(client, 'admin', ADMIN_PASSWORD)}"}


@pytest.fixture()
def user_headers(client):
    return {"Authorization": f"Bearer {_token(client, 'user', USER_PASSWORD)}"}
