from sqlalchemy import event
from sqlalchemy.ext.asyncio import create_async_engine, async_sessionmaker
from sqlalchemy.orm import declarative_base


def get_engine(database_url: str, echo: bool = False):
    engine = create_async_engine(database_url, echo=echo, future=True)
    if engine.dialect.name == "sqlite":
        serialize_sqlite_writers(engine)
    return engine


def serialize_sqlite_writers(engine):
    """
    Start every SQLite transaction with BEGIN IMMEDIATE.

    pysqlite only opens a transaction on the first write, so a read-then-write
    done by two connections can interleave. With the reserved lock taken up
    front, the second transaction waits until the first one commits and then
    reads its rows.
    """

    @event.listens_for(engine.sync_engine, "connect")
    def _disable_driver_transactions(dbapi_connection, connection_record):
        dbapi_connection.isolation_level = None

    @event.listens_for(engine.sync_engine, "begin")
    def _begin_immediate(conn):
        conn.exec_driver_sql("BEGIN IMMEDIATE")


Base = declarative_base()


def get_session(engine):
    return async_sessionmaker(
        bind=engine,
        expire_on_commit=False
    )
