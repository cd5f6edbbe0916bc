"""Database engine and session factory used across the application."""

from collections.abc import Iterator
from contextlib import contextmanager

from loguru import logger
from sqlalchemy import StaticPool, text
from sqlmodel import Session, SQLModel, create_engine

from src.library.runtime.config.config_data import DatabaseConfig
from src.library.runtime.context import get_config


class DbSessionService:
    def __init__(self, db_config: DatabaseConfig | None = None):
        """Initialize the shared database engine and session factory."""

        logger.info("Setting up database engine and session factory")
        main_config = get_config()
        db_config = db_config or main_config.database
        self._config = db_config

        engine_kwargs = {
            "echo": False,
            "echo_pool": False,
            "connect_args": self._get_connect_args(db_config),
        }

        if db_config.is_sqlite:
            if ":memory:" in db_config.url or db_config.url.rstrip("/") == "sqlite:":
                # One shared connection so every session sees the same database
                engine_kwargs["poolclass"] = StaticPool
        else:
            engine_kwargs.update(
                {
                    "pool_size": db_config.pool_size,
                    "max_overflow": db_config.max_overflow,
                    "pool_timeout": db_config.pool_timeout,
                    "pool_recycle": db_config.pool_recycle,
                    "pool_pre_ping": True,  # Validate connections before use
                }
            )

        logger.info("Initializing database engine for {}", self.backend)
        self._engine = create_engine(db_config.url, **engine_kwargs)

        if main_config.app.environment == "production":
            if db_config.is_sqlite:
                logger.warning(
                    "SQLite is not recommended for production use. "
                    "Consider PostgreSQL for better performance and reliability."
                )
            logger.info(
                "Database engine initialized",
                extra={
                    "pool_size": db_config.pool_size,
                    "max_overflow": db_config.max_overflow,
                    "pool_timeout": db_config.pool_timeout,
                    "pool_recycle": db_config.pool_recycle,
                },
            )

    def _get_connect_args(self, db_config: DatabaseConfig) -> dict:
        """Get database-specific connection arguments."""
        connect_args = {}

        if "postgresql" in db_config.url:
            connect_args.update(
                {
                    "application_name": f"{get_config().app.name}",
                    "connect_timeout": 30,
                }
            )
        elif db_config.is_sqlite:
            connect_args.update(
                {
                    "check_same_thread": False,  # Sessions run in the threadpool
                    "timeout": 20,  # Lock timeout
                }
            )

        return connect_args

    @property
    def backend(self) -> str:
        return "sqlite" if self._config.is_sqlite else "postgresql"

    def create_all(self) -> None:
        """Create all database tables."""
        from src.library.entities.book import BookTable  # noqa: F401

        SQLModel.metadata.create_all(self._engine)
        logger.info("Database initialized with tables.")

    def get_session(self) -> Session:
        """Return a new SQLModel session bound to the shared engine."""
        return Session(
            self._engine,
            expire_on_commit=False,  # Prevent lazy loading issues
            autoflush=True,
        )

    @contextmanager
    def session_scope(self) -> Iterator[Session]:
        """Transactional scope: commit on success, roll back on error."""
        db = self.get_session()
        try:
            yield db
            db.commit()
        except Exception as e:
            db.rollback()
            logger.debug(
                "Database transaction rolled back",
                extra={
                    "error_type": type(e).__name__,
                    "error_message": str(e),
                },
            )
            raise
        finally:
            db.close()

    def health_check(self) -> bool:
        """Perform a health check on the database connection."""
        try:
            with self._engine.connect() as connection:
                connection.execute(text("SELECT 1"))
                return True
        except Exception as e:
            logger.error(
                "Database health check failed",
                extra={
                    "error_type": type(e).__name__,
                    "error_message": str(e),
                },
            )
            return False

    def dispose(self) -> None:
        self._engine.dispose()
