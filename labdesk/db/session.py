# labdesk/db/session.py
import logging
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool
from labdesk.config import settings

logger = logging.getLogger(__name__)


def _engine_options(url: str) -> dict:
    if not url.startswith("sqlite"):
        return {"pool_pre_ping": True}
    options = {"connect_args": {"check_same_thread": False}}
    # An in-memory database only lives as long as its connection, so every
    # session has to share the same one.
    if url in ("sqlite://", "sqlite:///:memory:"):
        options["poolclass"] = StaticPool
    return options


# This is a singleton database (shared) engine. SQLAlchemy internally maintains a single Engine per process.
engine = create_engine(settings.SQLALCHEMY_DATABASE_URL, **_engine_options(settings.SQLALCHEMY_DATABASE_URL))
# A factory (shared) that produces DB sessions bound to the same engine.
SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)


def get_db():
    """
    Dependency function that provides a database session.
    Each FastAPI request gets its own DB session, used and closed in get_db().
    """
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


def init_db():
    """
    Creates missing tables and seeds the first admin account from settings.
    """
    from labdesk.db.models import Base, Admin
    from labdesk.auth import crud

    Base.metadata.create_all(bind=engine)
    if not (settings.DEFAULT_ADMIN_USERNAME and settings.DEFAULT_ADMIN_PASSWORD):
        return
    db = SessionLocal()
    try:
        if db.query(Admin).count() == 0:
            crud.create_admin(db, settings.DEFAULT_ADMIN_USERNAME, settings.DEFAULT_ADMIN_PASSWORD, name="Administrator")
            logger.info("Seeded default admin %s", settings.DEFAULT_ADMIN_USERNAME)
    finally:
        db.close()
