"""SQLAlchemy engine and session factory construction."""
from sqlalchemy import create_engine, event
from sqlalchemy.orm import declarative_base, sessionmaker

Base = declarative_base()


def _use_immediate_transactions(engine) -> None:
    """Take SQLite's write lock at BEGIN so concurrent writers wait instead of deadlocking."""

    @event.listens_for(engine, "connect")
    def do_connect(dbapi_connection, connection_record):
        # Let SQLAlchemy emit BEGIN itself.
        dbapi_connection.isolation_level = None

    @event.listens_for(engine, "begin")
    def do_begin(conn):
        conn.exec_driver_sql("BEGIN IMMEDIATE")


def create_session_factory(database_url: str) -> sessionmaker:
    """Build an engine for ``database_url``, create tables, return a session factory."""
    is_sqlite = database_url.startswith("sqlite")
    connect_args = {"check_same_thread": False, "timeout": 30} if is_sqlite else {}
    engine = create_engine(database_url, connect_args=connect_args)
    if is_sqlite:
        _use_immediate_transactions(engine)

    # Import models so they register on Base before create_all.
    from interview_coach.database import models  # noqa: F401

    Base.metadata.create_all(bind=engine)
    return sessionmaker(autocommit=False, autoflush=False, bind=engine, expire_on_commit=False)
