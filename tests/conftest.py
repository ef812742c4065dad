import os

os.environ.setdefault("DATABASE_URL", "sqlite://")
os.environ["RETENTION_SWEEP_ENABLED"] = "false"
os.environ["BLOB_BACKEND"] = "local"

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from app.main import app
from app.core.database import Base, get_db
from tests.mock_data import ADMIN_ID, OTHER_STUDENT_ID, STUDENT_ID, auth_headers
from app.models.file import File
from app.models.folder import Folder
from app.services.path_resolver import breadcrumb_cache
from app.utils.file_handling import LocalBlobStore, get_blob_store


# SQLite in-memory database shared by every connection of a test
SQLALCHEMY_DATABASE_URL = "sqlite:///:memory:"

engine = create_engine(
    SQLALCHEMY_DATABASE_URL,
    connect_args={"check_same_thread": False},
    poolclass=StaticPool,
)
TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)


@pytest.fixture(autouse=True)
def clear_breadcrumb_cache():
    breadcrumb_cache.clear()
    yield
    breadcrumb_cache.clear()


@pytest.fixture(scope="function")
def db_session():
    """Fresh database for every test"""
    Base.metadata.create_all(bind=engine)
    session = TestingSessionLocal()
    try:
        yield session
    finally:
        session.close()
        Base.metadata.drop_all(bind=engine)


@pytest.fixture
def blob_store(tmp_path):
    return LocalBlobStore(str(tmp_path / "blobs"))


@pytest.fixture(scope="function")
def client(db_session, blob_store):
    """Test client with the database session and blob store overridden"""
    def override_get_db():
        try:
            yield db_session
        finally:
            pass

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_blob_store] = lambda: blob_store

    with TestClient(app) as test_client:
        yield test_client

    app.dependency_overrides.clear()


@pytest.fixture
def student_headers():
    return auth_headers(STUDENT_ID)


@pytest.fixture
def other_student_headers():
    return auth_headers(OTHER_STUDENT_ID)


@pytest.fixture
def admin_headers():
    return auth_headers(ADMIN_ID, is_admin=True)


@pytest.fixture
def make_folder(db_session):
    """Factory fixture inserting a live folder directly"""
    def _make_folder(name, parent=None, owner_id=STUDENT_ID):
        folder = Folder(
            name=name,
            owner_id=owner_id,
            parent_id=parent.id if parent is not None else None,
        )
        db_session.add(folder)
        db_session.commit()
        db_session.refresh(folder)
        return folder

    return _make_folder


@pytest.fixture
def make_file(db_session, blob_store):
    """Factory fixture storing bytes in the blob store and inserting a live file"""
    def _make_file(name, folder=None, owner_id=STUDENT_ID, data=b"content"):
        content_ref = blob_store.put(data, name, owner_id)
        file = File(
            name=name,
            owner_id=owner_id,
            uploader_id=owner_id,
            folder_id=folder.id if folder is not None else None,
            content_type=os.path.splitext(name)[1].lstrip(".") or "bin",
            content_ref=content_ref,
        )
        db_session.add(file)
        db_session.commit()
        db_session.refresh(file)
        return file

    return _make_file
