"""Test configuration and fixtures."""

from typing import Generator

import pytest
from sqlalchemy.orm import Session, sessionmaker

from resource_ownership.config import OwnershipConfig
from resource_ownership.db.base import create_ownership_engine, init_database
from resource_ownership.events import RecordingEventSink
from resource_ownership.hooks import OwnershipHooks
from resource_ownership.manager import OwnershipManager

from sample_models import ApiClient, Document, Project, Team, User
from support import make_config


@pytest.fixture
def engine():
    """Fresh in-memory database for each test."""
    engine = create_ownership_engine("sqlite:///:memory:")
    init_database(engine)
    yield engine
    engine.dispose()


@pytest.fixture
def db_session(engine) -> Generator[Session, None, None]:
    session = sessionmaker(bind=engine)()
    yield session
    session.close()


@pytest.fixture
def alice(db_session) -> User:
    user = User(name="alice")
    db_session.add(user)
    db_session.commit()
    return user


@pytest.fixture
def bob(db_session) -> User:
    user = User(name="bob")
    db_session.add(user)
    db_session.commit()
    return user


@pytest.fixture
def carol(db_session) -> User:
    user = User(name="carol")
    db_session.add(user)
    db_session.commit()
    return user


@pytest.fixture
def admin(db_session) -> User:
    user = User(name="root", is_admin=True)
    db_session.add(user)
    db_session.commit()
    return user


@pytest.fixture
def long_key_client(db_session) -> ApiClient:
    """Owner whose key is longer than a reference id may be."""
    client = ApiClient(id="x" * 80)
    db_session.add(client)
    db_session.commit()
    return client


@pytest.fixture
def team(db_session) -> Team:
    team = Team(name="platform")
    db_session.add(team)
    db_session.commit()
    return team


@pytest.fixture
def project(db_session) -> Project:
    project = Project(name="Apollo")
    db_session.add(project)
    db_session.commit()
    return project


@pytest.fixture
def document(db_session, alice) -> Document:
    """Document owned inline by alice."""
    document = Document(title="Design notes", owner_type="User", owner_id=str(alice.id))
    db_session.add(document)
    db_session.commit()
    return document


@pytest.fixture
def sink() -> RecordingEventSink:
    return RecordingEventSink()


@pytest.fixture
def single_config() -> OwnershipConfig:
    return make_config("single")


@pytest.fixture
def multiple_config() -> OwnershipConfig:
    return make_config("multiple")


@pytest.fixture
def single_manager(single_config, db_session, sink) -> OwnershipManager:
    return OwnershipManager(single_config, db_session, sink=sink)


@pytest.fixture
def multi_manager(multiple_config, db_session, sink) -> OwnershipManager:
    return OwnershipManager(multiple_config, db_session, sink=sink)


@pytest.fixture
def single_hooks(single_config) -> Generator[OwnershipHooks, None, None]:
    hooks = OwnershipHooks(single_config).install()
    yield hooks
    hooks.remove()


@pytest.fixture
def multiple_hooks(multiple_config) -> Generator[OwnershipHooks, None, None]:
    hooks = OwnershipHooks(multiple_config).install()
    yield hooks
    hooks.remove()
