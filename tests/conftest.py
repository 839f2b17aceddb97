import pytest
from sqlalchemy.pool import StaticPool
from sqlmodel import Session, SQLModel, create_engine, select

from fastapi_getitems import GetItemsManager, MemorySource, SessionSource, reset_default
from tests.models import LIBRARY_OPTIONS, Book, book_mapper, seed_library


@pytest.fixture
def engine():
    eng = create_engine(
        "sqlite://", connect_args={"check_same_thread": False}, poolclass=StaticPool
    )
    SQLModel.metadata.create_all(eng)
    yield eng
    eng.dispose()


@pytest.fixture
def session(engine):
    """Session over a freshly seeded library."""
    with Session(engine) as session:
        seed_library(session)
        yield session


@pytest.fixture
def file_engine(tmp_path):
    """Seeded file database, for sources opening several sessions at once."""
    eng = create_engine(
        f"sqlite:///{tmp_path / 'library.db'}", connect_args={"check_same_thread": False}
    )
    SQLModel.metadata.create_all(eng)
    with Session(eng) as session:
        seed_library(session)
    yield eng
    eng.dispose()


@pytest.fixture(params=["sql", "memory"])
def book_source(request, session):
    """The seeded books, queried through SQL or evaluated in memory."""
    if request.param == "sql":
        return SessionSource(session, Book)
    return MemorySource(session.exec(select(Book)).all(), Book)


@pytest.fixture
def manager():
    return GetItemsManager(mapper=book_mapper, id_field="id", options=LIBRARY_OPTIONS)


@pytest.fixture(autouse=True)
def restore_default_options():
    yield
    reset_default()
