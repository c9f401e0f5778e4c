import os

# Must be set before db/settings are imported: in-memory SQLite, no log file.
os.environ.setdefault("TEST_SQLITE", "1")
os.environ.setdefault("LOG_FILE", "")
os.environ.setdefault("DATABASE_URL", "sqlite://")

import pytest  # noqa: E402
from fastapi.testclient import TestClient  # noqa: E402
from sqlalchemy.orm import Session as _Session  # noqa: E402

import db as dbmod  # noqa: E402
import dragonhub.models  # noqa: E402,F401  (registers every table)
from db import engine  # noqa: E402
from dragonhub.core.settings import settings  # noqa: E402
from dragonhub.models.school import School, SchoolMembership  # noqa: E402
from dragonhub.models.user import Base, User  # noqa: E402
from dragonhub.services.auth import SESSION_COOKIE, create_session  # noqa: E402

Base.metadata.create_all(bind=engine)


@pytest.fixture
def db_session():
    """Session bound to one connection whose outer transaction is rolled back at teardown.

    ``create_savepoint`` lets code under test call commit()/rollback() freely:
    those act on a SAVEPOINT and never end the outer transaction.
    """
    connection = engine.connect()
    transaction = connection.begin()
    session = _Session(bind=connection, join_transaction_mode="create_savepoint")
    # expose to db.get_db so request handlers share this session
    dbmod._TEST_SESSION = session
    try:
        yield session
    finally:
        dbmod._TEST_SESSION = None
        session.close()
        if transaction.is_active:
            transaction.rollback()
        connection.close()


@pytest.fixture
def client(db_session):
    # Import the app lazily so the environment above is in place first
    from main import app

    return TestClient(app, follow_redirects=False)


@pytest.fixture
def make_user(db_session):
    counter = {"n": 0}

    def _make(first="Pat", last="Parent", is_admin=False, email=None):
        counter["n"] += 1
        user = User(
            FirstName=first,
            LastName=last,
            Email=email or f"user{counter['n']}@example.com",
            HashedPassword="x",
            IsActive=True,
            IsAdmin=is_admin,
        )
        db_session.add(user)
        db_session.commit()
        return user

    return _make


@pytest.fixture
def school(db_session):
    s = School(Name="Dragon Elementary", JoinCode="DRAGON", Mascot="Dragons", IsActive=True)
    db_session.add(s)
    db_session.commit()
    return s


@pytest.fixture
def other_school(db_session):
    s = School(Name="Tiger Elementary", JoinCode="TIGER", Mascot="Tigers", IsActive=True)
    db_session.add(s)
    db_session.commit()
    return s


@pytest.fixture
def enroll(db_session):
    """Give a user an approved membership in a school for the current school year."""

    def _enroll(user, school, role="member"):
        m = SchoolMembership(
            SchoolID=school.SchoolID,
            UserID=user.UserID,
            Role=role,
            SchoolYear=settings.CURRENT_SCHOOL_YEAR,
            Status="approved",
        )
        db_session.add(m)
        db_session.commit()
        return m

    return _enroll


@pytest.fixture
def login(db_session, client):
    """Point the test client's session cookie at the given user."""

    def _login(user):
        sess = create_session(db_session, user_id=int(user.UserID))
        client.cookies.set(SESSION_COOKIE, str(sess.SessionID))
        return client

    return _login
