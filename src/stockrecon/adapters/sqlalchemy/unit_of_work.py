"""SQLAlchemy-backed units of work for inventory reconciliation.

One engine is managed per process. Every unit of work opens its own session
from it, so concurrent write chunks each get an independent transaction.
"""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import TYPE_CHECKING, Final, Literal

from sqlalchemy import create_engine
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, sessionmaker

from stockrecon.adapters.sqlalchemy.mappings import start_mappers
from stockrecon.adapters.sqlalchemy.migrations import upgrade_head
from stockrecon.adapters.sqlalchemy.repositories import (
    SqlAlchemyCanonicalItemRepository,
    SqlAlchemyChangeEventRepository,
    SqlAlchemyConflictGroupRepository,
    SqlAlchemySourceRecordRepository,
)
from stockrecon.config import DatabaseConfig, get_database_config
from stockrecon.domain.ports.unit_of_work import InventoryRepositories, RepositoryCollection
from stockrecon.domain.reconciliation.errors import StoreWriteError

if TYPE_CHECKING:
    from types import TracebackType

    from sqlalchemy.engine import Engine

log = logging.getLogger(__name__)

# seconds a SQLite writer waits on a locked database before failing
SQLITE_BUSY_TIMEOUT: Final[int] = 30


class StartupError(RuntimeError):
    """Raised when the SQLAlchemy adapter is used outside its lifecycle."""


@dataclass(slots=True)
class _AdapterState:
    engine: Engine | None = None
    sessions: sessionmaker[Session] | None = None

    def bind(self, engine: Engine | None) -> None:
        self.engine = engine
        self.sessions = (
            sessionmaker(bind=engine, expire_on_commit=False) if engine is not None else None
        )

    def require_sessions(self) -> sessionmaker[Session]:
        if self.sessions is None:
            raise StartupError(
                "SQLAlchemy adapter not started; call "
                "stockrecon.adapters.sqlalchemy.unit_of_work.startup() first."
            )
        return self.sessions


_STATE = _AdapterState()


def create_store_engine(config: DatabaseConfig) -> Engine:
    """Create an engine suited to ``config``; SQLite files tolerate threaded writers."""

    if config.is_sqlite:
        return create_engine(
            config.uri,
            echo=config.echo,
            connect_args={"check_same_thread": False, "timeout": SQLITE_BUSY_TIMEOUT},
        )
    return create_engine(config.uri, echo=config.echo, pool_pre_ping=True)


def startup(
    *,
    engine: Engine | None = None,
    database_uri: str | None = None,
    force: bool = False,
) -> None:
    """Bind the adapter to an engine after migrating its schema to head."""

    if _STATE.engine is not None and not force:
        raise StartupError("SQLAlchemy adapter already started; pass force=True to rebind.")

    if engine is None:
        config = get_database_config()
        if database_uri is not None:
            config = DatabaseConfig(uri=database_uri, echo=config.echo)
        engine = create_store_engine(config)
    start_mappers()
    upgrade_head(engine=engine)
    if _STATE.engine is not None and _STATE.engine is not engine:
        _STATE.engine.dispose()
    _STATE.bind(engine)
    log.info("SQLAlchemy adapter started on %s", engine.url.render_as_string())


def configured_engine() -> Engine | None:
    return _STATE.engine


def is_started() -> bool:
    return _STATE.engine is not None


def shutdown() -> None:
    """Dispose the managed engine and forget it."""

    if _STATE.engine is not None:
        _STATE.engine.dispose()
        log.info("SQLAlchemy adapter stopped")
    _STATE.bind(None)


class BaseSqlAlchemyUnitOfWork[TRepositories: RepositoryCollection](ABC):
    """Session-per-unit-of-work boundary.

    Leaving the block without ``commit()`` discards pending writes. Driver
    errors on commit or rollback surface as ``StoreWriteError``.
    """

    def __init__(self, session_factory: sessionmaker[Session] | None = None) -> None:
        self.session_factory = session_factory or _STATE.require_sessions()
        self._session: Session | None = None
        self._repositories: TRepositories | None = None

    @abstractmethod
    def _build_repositories(self, session: Session) -> TRepositories: ...

    def __enter__(self) -> BaseSqlAlchemyUnitOfWork[TRepositories]:
        if self._session is not None:
            raise StartupError("Unit of work is already open")
        self._session = self.session_factory()
        self._repositories = self._build_repositories(self._session)
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc_value: BaseException | None,
        traceback: TracebackType | None,
    ) -> Literal[False]:
        try:
            self.rollback()
        finally:
            self.session.close()
            self._session = None
            self._repositories = None
        return False

    @property
    def session(self) -> Session:
        if self._session is None:
            raise StartupError("Unit of work is not open")
        return self._session

    @property
    def repositories(self) -> TRepositories:
        if self._repositories is None:
            raise StartupError("Unit of work is not open")
        return self._repositories

    def commit(self) -> None:
        try:
            self.session.commit()
        except SQLAlchemyError as exc:
            self.session.rollback()
            raise StoreWriteError(f"Commit failed: {exc}") from exc

    def rollback(self) -> None:
        try:
            self.session.rollback()
        except SQLAlchemyError as exc:
            raise StoreWriteError(f"Rollback failed: {exc}") from exc


class SqlAlchemyInventoryUnitOfWork(BaseSqlAlchemyUnitOfWork[InventoryRepositories]):
    """Unit of work over the four inventory tables."""

    def _build_repositories(self, session: Session) -> InventoryRepositories:
        return InventoryRepositories(
            source_records=SqlAlchemySourceRecordRepository(session),
            canonical_items=SqlAlchemyCanonicalItemRepository(session),
            conflict_groups=SqlAlchemyConflictGroupRepository(session),
            change_events=SqlAlchemyChangeEventRepository(session),
        )


if TYPE_CHECKING:
    from stockrecon.domain.ports.unit_of_work import InventoryUnitOfWork

    _uow_check: InventoryUnitOfWork = SqlAlchemyInventoryUnitOfWork()
