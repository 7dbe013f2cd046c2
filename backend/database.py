import logging
from collections.abc import Iterator

from fastapi import Request
from sqlalchemy import create_engine
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session, declarative_base, sessionmaker
from sqlalchemy.pool import StaticPool


logger = logging.getLogger(__name__)

Base = declarative_base()


class Database:
    """Owns the engine and session factory for one application instance.

    Opened once at process start and disposed at shutdown; request handlers
    receive sessions through :func:`get_db` instead of touching the engine.
    """

    def __init__(self, url: str, **engine_options) -> None:
        self.url = url
        self._engine: Engine | None = None
        self._session_factory: sessionmaker | None = None
        self._engine_options = engine_options

    @property
    def engine(self) -> Engine:
        if self._engine is None:
            raise RuntimeError('Database is not open.')
        return self._engine

    def open(self) -> None:
        if self._engine is not None:
            return

        options = dict(self._engine_options)
        if self.url.startswith('sqlite'):
            options.setdefault('connect_args', {'check_same_thread': False})
            if ':memory:' in self.url:
                options.setdefault('poolclass', StaticPool)
        else:
            options.setdefault('pool_pre_ping', True)

        self._engine = create_engine(self.url, **options)
        self._session_factory = sessionmaker(
            autocommit=False,
            autoflush=False,
            expire_on_commit=False,
            bind=self._engine,
        )
        logger.info('Database engine created for %s', self._engine.url.render_as_string(hide_password=True))

    def create_schema(self) -> None:
        # Importing the models registers their tables on Base.metadata.
        from backend.models import appointment, availability, user  # noqa: F401

        Base.metadata.create_all(bind=self.engine)

    def session(self) -> Session:
        if self._session_factory is None:
            raise RuntimeError('Database is not open.')
        return self._session_factory()

    def close(self) -> None:
        if self._engine is None:
            return
        self._engine.dispose()
        self._engine = None
        self._session_factory = None
        logger.info('Database engine disposed')


def get_db(request: Request) -> Iterator[Session]:
    db = request.app.state.database.session()
    try:
        yield db
    finally:
        db.close()
