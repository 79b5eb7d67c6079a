import logging

from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker, declarative_base
from linkguard.config import settings

logger = logging.getLogger(__name__)


def make_engine(database_url: str):
    """SQLite needs cross-thread access for the FastAPI threadpool"""
    if database_url.startswith("sqlite"):
        return create_engine(database_url, connect_args={"check_same_thread": False})
    return create_engine(database_url, pool_pre_ping=True, pool_size=10, max_overflow=20)


engine = make_engine(settings.DATABASE_URL)

SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)
Base = declarative_base()

def get_db():
    """Dependency for FastAPI routes"""
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()

def init_db(bind=None):
    """Initialize database tables"""
    # Import models here so they register with 'Base'
    import linkguard.models  # noqa: F401

    logger.info("🔄 Creating scan history tables...")
    Base.metadata.create_all(bind=bind or engine)
    logger.info("✅ Tables created successfully!")
