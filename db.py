import os

from sqlalchemy import create_engine, event
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from dragonhub.core.settings import settings


def build_database_url() -> str:
    """Return the SQLAlchemy URL from DATABASE_URL or the MSSQL settings parts."""
    if settings.DATABASE_URL:
        return settings.DATABASE_URL
    server = settings.DB_SERVER
    # If DB_SERVER already contains a port (":" or ",") or an instance name ("\\"),
    # use it as-is; otherwise append :port
    if any(sep in (server or "") for sep in (":", ",", "\\")):
        hostpart = server
    else:
        hostpart = f"{server}:{settings.DB_PORT}"
    return (
        f"mssql+pyodbc://{settings.DB_USER}:{settings.DB_PASSWORD}@{hostpart}/{settings.DB_NAME}"
        f"?driver={settings.DB_DRIVER.replace(' ', '+')}"
    )


# Tests opt into an in-memory SQLite DB with TEST_SQLITE=1.
if os.getenv("TEST_SQLITE") == "1":
    # Use StaticPool so the same in-memory DB is reused across connections.
    engine = create_engine(
        "sqlite:///:memory:",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )

    # pysqlite defers BEGIN on its own, which breaks SAVEPOINT; emit BEGIN ourselves.
    @event.listens_for(engine, "connect")
    def _sqlite_connect(dbapi_connection, connection_record):
        dbapi_connection.isolation_level = None

    @event.listens_for(engine, "begin")
    def _sqlite_begin(conn):
        conn.exec_driver_sql("BEGIN")

else:
    url = build_database_url()
    if url.startswith("mssql"):
        engine = create_engine(
            url,
            connect_args={
                "TrustServerCertificate": "yes",
                "Encrypt": "yes",
            },
        )
    else:
        engine = create_engine(url)

SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)

# Tests install a transactional session here so in-process request handlers
# (TestClient) share it.
_TEST_SESSION = None


def get_db():
    if _TEST_SESSION is not None:
        yield _TEST_SESSION
        return

    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()
