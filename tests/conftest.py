import os

os.environ.setdefault("STORAGE_BACKEND", "memory")
os.environ.setdefault("BLOB_BACKEND", "memory")
os.environ.setdefault("EMAIL_BACKEND", "console")
os.environ.setdefault("STRIPE_WEBHOOK_SECRET", "whsec_test_secret")
os.environ.setdefault("CLEANUP_SECRET", "cleanup-test-secret")
os.environ.setdefault("LOG_LEVEL", "WARNING")

import pytest
from sqlalchemy.orm import Session, sessionmaker

import seshprep.api.v1.projects as project_routes
import seshprep.schemas as schemas
from seshprep import models
from seshprep.blobstore import MemoryBlobStore
from seshprep.context import RequestContext
from seshprep.database import Base, engine
from seshprep.mailer import ConsoleMailer
from seshprep.services.accounts import register_account

TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)


@pytest.fixture(autouse=True)
def db_session() -> Session:
    Base.metadata.drop_all(bind=engine)
    Base.metadata.create_all(bind=engine)
    session = TestingSessionLocal()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def mailer() -> ConsoleMailer:
    return ConsoleMailer()


@pytest.fixture
def blobs() -> MemoryBlobStore:
    return MemoryBlobStore()


@pytest.fixture
def make_user(db_session: Session):
    def _make_user(email: str, password: str = "secret123", display_name: str = None) -> models.User:
        user = register_account(db_session, email=email, password=password, display_name=display_name)
        db_session.commit()
        return user

    return _make_user


@pytest.fixture
def make_project(db_session: Session):
    def _make_project(producer: models.User, title: str = "Midnight Drive", **overrides) -> models.Project:
        fields = dict(title=title, artist="The Tapes", bpm=120, sample_rate=48000, song_key="A minor")
        fields.update(overrides)
        return project_routes.create_project(schemas.ProjectCreate(**fields), db_session, ctx(producer))

    return _make_project


def ctx(user: models.User) -> RequestContext:
    return RequestContext.for_user(user)
