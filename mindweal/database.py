import logging
import time
from typing import Optional

from fastapi import Request
from sqlalchemy import create_engine, event
from sqlalchemy.engine import Engine
from sqlalchemy.orm import declarative_base, sessionmaker
from sqlalchemy.pool import StaticPool

from . import config

logger = logging.getLogger(__name__)

Base = declarative_base()


class Database:
    """
    Persistence handle: owns the engine and session factory.

    Constructed once at process start (see ``main.lifespan``), passed to
    whatever needs sessions, and disposed at shutdown.
    """

    def __init__(
        self,
        url: Optional[str] = None,
        log_slow_queries: bool = config.DB_LOG_SLOW_QUERIES,
        slow_query_threshold: float = config.DB_SLOW_QUERY_THRESHOLD,
    ):
        self.url = url or config.DATABASE_URL
        self.log_slow_queries = log_slow_queries
        self.slow_query_threshold = slow_query_threshold
        self.engine: Optional[Engine] = None
        self.session_factory: Optional[sessionmaker] = None

    @property
    def is_open(self) -> bool:
        return self.engine is not None

    def open(self) -> "Database":
        if self.engine is not None:
            return self

        try:
            self.engine = create_engine(self.url, **self._engine_options())
            logger.info("✅ Database engine created successfully")
        except Exception as e:
            logger.error(f"❌ Failed to create database engine: {e}")
            raise

        if self.log_slow_queries:
            self._install_slow_query_logging(self.engine)

        self.session_factory = sessionmaker(autocommit=False, autoflush=False, bind=self.engine)
        return self

    def create_all(self) -> None:
        # Import models so they're registered with Base
        from . import models  # noqa: F401

        Base.metadata.create_all(bind=self.engine, checkfirst=True)

    def session(self):
        if self.session_factory is None:
            raise RuntimeError("Database is not open")
        return self.session_factory()

    def close(self) -> None:
        if self.engine is not None:
            self.engine.dispose()
            logger.info("Database engine disposed")
        self.engine = None
        self.session_factory = None

    def _engine_options(self) -> dict:
        if self.url.startswith("sqlite"):
            options = {"connect_args": {"check_same_thread": False}, "echo": False}
            if self.url in ("sqlite://", "sqlite:///:memory:"):
                options["poolclass"] = StaticPool
            return options

        logger.info(
            f"📊 Connection pool: size={config.DB_POOL_SIZE}, max_overflow={config.DB_MAX_OVERFLOW}, "
            f"timeout={config.DB_POOL_TIMEOUT}s"
        )
        return {
            "pool_pre_ping": True,  # Test connections before using
            "pool_recycle": config.DB_POOL_RECYCLE,
            "pool_size": config.DB_POOL_SIZE,
            "max_overflow": config.DB_MAX_OVERFLOW,
            "pool_timeout": config.DB_POOL_TIMEOUT,
            "echo": False,  # Don't log all SQL (use slow query logging instead)
        }

    def _install_slow_query_logging(self, engine: Engine) -> None:
        threshold = self.slow_query_threshold

        @event.listens_for(engine, "before_cursor_execute")
        def before_cursor_execute(conn, _cursor, statement, _parameters, context, _executemany):
            conn.info.setdefault("query_start_time", []).append(time.time())

        @event.listens_for(engine, "after_cursor_execute")
        def after_cursor_execute(conn, _cursor, statement, _parameters, context, _executemany):
            total = time.time() - conn.info["query_start_time"].pop(-1)
            if total > threshold:
                logger.warning(f"🐌 Slow query ({total:.2f}s): {statement[:200]}...")

        logger.info(f"📊 Slow query logging enabled (threshold: {threshold}s)")


def get_db(request: Request):
    db = request.app.state.database.session()
    try:
        yield db
    finally:
        db.close()
