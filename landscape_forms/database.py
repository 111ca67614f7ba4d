from sqlalchemy import event
from sqlmodel import Session, SQLModel, create_engine

from landscape_forms.config import DATABASE_URL, SQL_ECHO


def enable_sqlite_foreign_keys(engine):
    """SQLite ignores ON DELETE CASCADE and FK checks unless asked per connection."""
    if engine.dialect.name != "sqlite":
        return

    @event.listens_for(engine, "connect")
    def _set_sqlite_pragma(dbapi_connection, connection_record):
        cursor = dbapi_connection.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()


def create_db_engine(url=DATABASE_URL, **kwargs):
    if url.startswith("sqlite"):
        kwargs.setdefault("connect_args", {"check_same_thread": False})
    else:
        kwargs.setdefault("pool_pre_ping", True)
        kwargs.setdefault("pool_size", 10)
        kwargs.setdefault("pool_recycle", 30 * 60)
    engine = create_engine(url, echo=SQL_ECHO, **kwargs)
    enable_sqlite_foreign_keys(engine)
    return engine


engine = create_db_engine()


def create_db_and_tables(bind=None):
    # Import the table models so they register on SQLModel.metadata
    from landscape_forms.models import chemical, form, user  # noqa: F401

    SQLModel.metadata.create_all(bind or engine)


def get_session():
    with Session(engine) as session:
        yield session
