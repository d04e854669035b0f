"""Database setup via SQLAlchemy. SQLite by default, any SQLAlchemy URL via DATABASE_URL."""
import os
from dotenv import load_dotenv
from sqlalchemy import create_engine, event
from sqlalchemy.orm import sessionmaker, DeclarativeBase

load_dotenv()

# Store DB in data/ directory (gitignored)
_DB_DIR = os.path.join(os.path.dirname(os.path.dirname(__file__)), "data")


def _default_url() -> str:
    os.makedirs(_DB_DIR, exist_ok=True)
    return f"sqlite:///{os.path.join(_DB_DIR, 'lumiere.db')}"


DATABASE_URL = os.getenv("DATABASE_URL") or _default_url()

_connect_args = {"check_same_thread": False} if DATABASE_URL.startswith("sqlite") else {}
engine = create_engine(DATABASE_URL, connect_args=_connect_args)
SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)


if DATABASE_URL.startswith("sqlite"):
    @event.listens_for(engine, "connect")
    def _enable_sqlite_foreign_keys(dbapi_connection, connection_record):
        cursor = dbapi_connection.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()


class Base(DeclarativeBase):
    pass

def get_db():
    """FastAPI dependency for DB session."""
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()

def init_db():
    """Create all tables."""
    import backend.models_db  # noqa: F401  registers the mapped classes
    Base.metadata.create_all(bind=engine)
