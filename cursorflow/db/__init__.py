"""Package for interacting with the cursorflow database."""

import sqlalchemy as sa
from sqlalchemy import create_engine, event
from sqlalchemy.orm import declarative_base, sessionmaker
from sqlalchemy.schema import MetaData

NAMING_CONVENTION = {
    "ix": "ix_%(column_0_label)s",
    "uq": "uq_%(table_name)s_%(column_0_name)s",
    "ck": "ck_%(table_name)s_%(constraint_name)s",
    "fk": "fk_%(table_name)s_%(column_0_name)s_%(referred_table_name)s",
    "pk": "pk_%(table_name)s",
}


class BaseModel:
    """The base model for database tables."""

    __abstract__ = True

    def __repr__(self) -> str:
        """Return a string representation of the model object."""
        params = ", ".join(
            f"{k}={v!r}"
            for k, v in {
                c.name: getattr(self, c.name)
                for c in self.__table__.columns
            }.items()
            if v is not None
        )
        return f"{self.__class__.__name__}({params})"


def get_base():
    """Create and return the base model.

    Returns:
        The base model object.
    """
    metadata = MetaData(naming_convention=NAMING_CONVENTION)
    Base = declarative_base(
        cls=BaseModel,
        metadata=metadata,
    )
    return Base


Base = get_base()


def get_engine(db_url: str, echo: bool = False) -> sa.Engine:
    """Create and return a database engine.

    Args:
        db_url: SQLAlchemy database URL (e.g. sqlite:///path/to/db).
        echo: Whether to echo SQL statements.
    """
    connect_args = {}
    if db_url.startswith("sqlite"):
        # position saves may complete on a worker thread
        connect_args["check_same_thread"] = False
    engine = create_engine(db_url, connect_args=connect_args, echo=echo)
    if db_url.startswith("sqlite"):
        event.listen(engine, "connect", _enable_sqlite_foreign_keys)
    return engine


def _enable_sqlite_foreign_keys(dbapi_connection, connection_record) -> None:
    cursor = dbapi_connection.cursor()
    cursor.execute("PRAGMA foreign_keys=ON")
    cursor.close()


def get_session_maker(engine: sa.Engine) -> sessionmaker:
    """Create a session maker bound to the given engine."""
    return sessionmaker(bind=engine, expire_on_commit=False)


def create_db(db_url: str | None = None, echo: bool | None = None) -> tuple:
    """Create the cursorflow tables, returning (engine, Session).

    Args:
        db_url: SQLAlchemy database URL. Defaults to config.DB_URL.
        echo: Whether to echo SQL statements. Defaults to config.DB_ECHO.

    Returns:
        tuple of (engine, Session class).
    """
    from cursorflow.config import config

    db_url = db_url or config.DB_URL
    echo = config.DB_ECHO if echo is None else echo
    engine = get_engine(db_url, echo=echo)

    # Import models to ensure they are registered with Base
    from cursorflow.db import models  # noqa: F401

    Base.metadata.create_all(engine)
    Session = get_session_maker(engine)
    return engine, Session


def create_db_for_path(db_path: str, echo: bool | None = None) -> tuple:
    """Create the cursorflow tables in a SQLite file.

    Args:
        db_path: Path to the SQLite database file.
        echo: Whether to echo SQL statements.

    Returns:
        tuple of (engine, Session class).
    """
    return create_db(f"sqlite:///{db_path}", echo=echo)
