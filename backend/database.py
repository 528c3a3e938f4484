# backend/database.py
import logging
from contextlib import contextmanager

from sqlalchemy import create_engine, event
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import declarative_base, sessionmaker, Session
from sqlalchemy.pool import StaticPool
from dotenv import load_dotenv

from config import settings
from services.errors import PersistenceError

load_dotenv()

logger = logging.getLogger(__name__)

# 1. Adres bazy z konfiguracji (.env / zmienne środowiskowe), domyślnie SQLite
SQLALCHEMY_DATABASE_URL = settings.DATABASE_URL

# 2. Poprawka dla hostingu (zamienia postgres:// na postgresql://, bo SQLAlchemy tego wymaga)
if SQLALCHEMY_DATABASE_URL and SQLALCHEMY_DATABASE_URL.startswith("postgres://"):
    SQLALCHEMY_DATABASE_URL = SQLALCHEMY_DATABASE_URL.replace("postgres://", "postgresql://", 1)

IS_SQLITE = SQLALCHEMY_DATABASE_URL.startswith("sqlite")

# 3. Konfiguracja zależna od bazy
engine_kwargs = {}
if IS_SQLITE:
    engine_kwargs["connect_args"] = {"check_same_thread": False} # Tylko dla SQLite
    # In-memory database must live on a single shared connection
    if SQLALCHEMY_DATABASE_URL in ("sqlite://", "sqlite:///:memory:"):
        engine_kwargs["poolclass"] = StaticPool

engine = create_engine(SQLALCHEMY_DATABASE_URL, **engine_kwargs)

if IS_SQLITE:
    # pysqlite: enforce foreign keys and let SQLAlchemy emit BEGIN itself,
    # otherwise SAVEPOINTs (order number retries) do not work.
    @event.listens_for(engine, "connect")
    def _sqlite_on_connect(dbapi_connection, connection_record):
        dbapi_connection.isolation_level = None
        cursor = dbapi_connection.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()

    @event.listens_for(engine, "begin")
    def _sqlite_on_begin(conn):
        conn.exec_driver_sql("BEGIN")

SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)

Base = declarative_base()

def get_db():
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()

@contextmanager
def transaction(db: Session):
    """
    Unit of work: everything executed on `db` inside the block is committed
    together, or rolled back together when any exception escapes.
    SQLAlchemy errors are wrapped into PersistenceError.
    """
    try:
        yield db
        db.commit()
    except SQLAlchemyError as exc:
        db.rollback()
        logger.exception("Transaction rolled back: %s", exc)
        raise PersistenceError() from exc
    except Exception:
        db.rollback()
        raise

def init_db():
    # Import models so they are registered on Base.metadata
    import models.users  # noqa: F401
    import models.category  # noqa: F401
    import models.product  # noqa: F401
    import models.cart  # noqa: F401
    import models.order  # noqa: F401
    import models.stock  # noqa: F401
    import models.log  # noqa: F401

    Base.metadata.create_all(bind=engine)
