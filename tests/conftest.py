import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool
from fastapi.testclient import TestClient

from src.db.core import Base, get_db, AccountDB, AccountType, CategoryDB, CategoryType
from src.main import app


@pytest.fixture
def engine():
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(bind=engine)
    yield engine
    engine.dispose()


@pytest.fixture
def session_factory(engine):
    return sessionmaker(autocommit=False, autoflush=False, bind=engine)


@pytest.fixture
def db(session_factory):
    session = session_factory()
    yield session
    session.close()


@pytest.fixture
def client(session_factory):
    def override_get_db():
        database = session_factory()
        try:
            yield database
        finally:
            database.close()

    app.dependency_overrides[get_db] = override_get_db
    yield TestClient(app)
    app.dependency_overrides.clear()


@pytest.fixture
def account(db):
    db_account = AccountDB(account_name="DBS Debit Card", account_type=AccountType.DEBIT_CARD)
    db.add(db_account)
    db.commit()
    db.refresh(db_account)
    return db_account


@pytest.fixture
def other_account(db):
    db_account = AccountDB(account_name="UOB Credit Card", account_type=AccountType.CREDIT_CARD)
    db.add(db_account)
    db.commit()
    db.refresh(db_account)
    return db_account


@pytest.fixture
def food(db):
    category = CategoryDB(name="Food", category_type=CategoryType.EXPENSE)
    db.add(category)
    db.commit()
    db.refresh(category)
    return category
