from sqlalchemy import create_engine, event
from sqlalchemy.orm import declarative_base, sessionmaker
from sqlalchemy.pool import StaticPool
import os

# Get DB connection string from environment variables.
# Defaults to a local SQLite file so the backend runs without a database server.
DATABASE_URL = os.getenv("DATABASE_URL", "sqlite:///./bookstore.db")


def engine_options(url: str) -> dict:
    """SQLite needs cross-thread access, and in-memory SQLite a single shared connection."""
    if not url.startswith("sqlite"):
        return {}
    options = {"connect_args": {"check_same_thread": False}}
    if url in ("sqlite://", "sqlite:///:memory:"):
        options["poolclass"] = StaticPool
    return options


# Create the SQLAlchemy engine.
engine = create_engine(DATABASE_URL, **engine_options(DATABASE_URL))

if DATABASE_URL.startswith("sqlite"):
    # SQLite only enforces foreign keys (and their ON DELETE rules) when asked, per connection.
    @event.listens_for(engine, "connect")
    def _enable_foreign_keys(dbapi_connection, connection_record):
        cursor = dbapi_connection.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()

# Create a configured "Session" class for database interactions.
SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)

# Base class for declarative ORM models.
Base = declarative_base()

def get_db():
    """FastAPI dependency to get a DB session for a single request."""
    db = SessionLocal()
    try:
        yield db
    finally:
        # Ensure the session is always closed after the request is finished.
        db.close()
