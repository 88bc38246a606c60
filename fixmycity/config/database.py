import threading
from typing import Iterator, Optional

from fastapi import Request
from sqlalchemy import create_engine, event
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session, declarative_base, sessionmaker
from sqlalchemy.pool import StaticPool

Base = declarative_base()


class Database:
    """Process-wide database handle.

    The engine is created lazily on first use and reused for the life of the
    process. ``pool_pre_ping`` replaces connections that were dropped by the
    server, so a lost connection is re-established on the next checkout.
    """

    def __init__(self, url: str, echo: bool = False):
        self.url = url
        self.echo = echo
        self._engine: Optional[Engine] = None
        self._sessionmaker: Optional[sessionmaker] = None
        self._lock = threading.Lock()

    @property
    def is_sqlite_memory(self) -> bool:
        return ":memory:" in self.url or self.url in ("sqlite://", "sqlite:///")

    def _engine_options(self) -> dict:
        options = {"echo": self.echo, "pool_pre_ping": True}
        if self.url.startswith("sqlite"):
            options["connect_args"] = {"check_same_thread": False, "timeout": 30}
            # In-memory databases only live as long as their single connection
            if self.is_sqlite_memory:
                options["poolclass"] = StaticPool
        return options

    @staticmethod
    def _begin_immediate(engine: Engine):
        """Take the SQLite write lock when a transaction starts.

        With pysqlite's deferred BEGIN, two writers that both read first can
        each hold a shared lock and fail to upgrade. Beginning immediately
        makes the second writer wait on the busy timeout instead.
        """

        @event.listens_for(engine, "connect")
        def _disable_driver_begin(dbapi_connection, connection_record):
            dbapi_connection.isolation_level = None

        @event.listens_for(engine, "begin")
        def _begin(connection):
            connection.exec_driver_sql("BEGIN IMMEDIATE")

    @property
    def engine(self) -> Engine:
        if self._engine is None:
            with self._lock:
                if self._engine is None:
                    engine = create_engine(self.url, **self._engine_options())
                    if self.url.startswith("sqlite") and not self.is_sqlite_memory:
                        self._begin_immediate(engine)
                    self._engine = engine
                    self._sessionmaker = sessionmaker(bind=engine, autoflush=False, expire_on_commit=False)
        return self._engine

    def session(self) -> Session:
        self.engine
        return self._sessionmaker()

    def create_all(self):
        # Models must be imported so their tables are registered on Base.metadata
        from fixmycity.models import complaint, department, user  # noqa: F401

        Base.metadata.create_all(bind=self.engine)

    def dispose(self):
        with self._lock:
            if self._engine is not None:
                self._engine.dispose()
            self._engine = None
            self._sessionmaker = None


def get_db(request: Request) -> Iterator[Session]:
    db = request.app.state.database.session()
    try:
        yield db
    finally:
        db.close()
