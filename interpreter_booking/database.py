import logging
import os
import time

from sqlalchemy import create_engine, event
from sqlalchemy.engine import Engine
from sqlalchemy.orm import declarative_base, sessionmaker

from .config import DATABASE_URL

logger = logging.getLogger(__name__)

POOL_SIZE = int(os.getenv("DB_POOL_SIZE", "10"))
MAX_OVERFLOW = int(os.getenv("DB_MAX_OVERFLOW", "20"))
POOL_TIMEOUT = int(os.getenv("DB_POOL_TIMEOUT", "30"))
POOL_RECYCLE = int(os.getenv("DB_POOL_RECYCLE", "300"))
ENABLE_QUERY_LOGGING = os.getenv("DB_LOG_SLOW_QUERIES", "true").lower() == "true"
SLOW_QUERY_THRESHOLD = float(os.getenv("DB_SLOW_QUERY_THRESHOLD", "1.0"))


def _time_queries(engine: Engine) -> None:
    """Log statements slower than SLOW_QUERY_THRESHOLD seconds"""

    @event.listens_for(engine, "before_cursor_execute")
    def start_timer(conn, _cursor, _statement, _parameters, _context, _executemany):
        conn.info.setdefault("booking_query_started", []).append(time.perf_counter())

    @event.listens_for(engine, "after_cursor_execute")
    def stop_timer(conn, _cursor, statement, _parameters, _context, _executemany):
        elapsed = time.perf_counter() - conn.info["booking_query_started"].pop()
        if elapsed > SLOW_QUERY_THRESHOLD:
            logger.warning(f"🐌 Slow booking query ({elapsed:.2f}s): {statement[:200]}...")


def build_engine(url: str) -> Engine:
    """Create an engine; pool settings only apply to server databases"""
    if url.startswith("sqlite"):
        # Sessions may be used from the request threadpool
        engine = create_engine(url, connect_args={"check_same_thread": False})
    else:
        engine = create_engine(
            url,
            pool_pre_ping=True,
            pool_recycle=POOL_RECYCLE,
            pool_size=POOL_SIZE,
            max_overflow=MAX_OVERFLOW,
            pool_timeout=POOL_TIMEOUT,
        )
    if ENABLE_QUERY_LOGGING:
        _time_queries(engine)
    return engine


try:
    engine = build_engine(DATABASE_URL)
    logger.info(f"✅ Booking database ready ({engine.dialect.name})")
except Exception as e:
    logger.error(f"❌ Could not connect the booking database: {e}")
    raise

SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)
Base = declarative_base()


def get_db():
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()
