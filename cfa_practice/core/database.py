import logging
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool
from cfa_practice.core.config import settings

logger = logging.getLogger(__name__)

def _engine_options(url: str) -> dict:
    if url.startswith("sqlite"):
        opts = {"connect_args": {"check_same_thread": False}}
        if url in ("sqlite://", "sqlite:///:memory:"):
            opts["poolclass"] = StaticPool
        return opts
    return {"pool_size": settings.DATABASE_POOL_SIZE, "max_overflow": settings.DATABASE_MAX_OVERFLOW, "pool_pre_ping": True}

engine = create_engine(settings.DATABASE_URL, echo=settings.DATABASE_ECHO, future=True, **_engine_options(settings.DATABASE_URL))
SessionLocal = sessionmaker(bind=engine, autocommit=False, autoflush=False, future=True)

def get_db():
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()

def init_db():
    """Create tables if they don't exist."""
    from cfa_practice.models.orm import Base
    Base.metadata.create_all(bind=engine)
    logger.info("Database schema ready")
