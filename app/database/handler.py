from contextlib import asynccontextmanager
from typing import Any

from app.config import USE_ASYNC_ENGINE
from sqlalchemy import create_engine, event
from sqlalchemy.ext.asyncio import AsyncSession, create_async_engine
from sqlalchemy.orm import Session, declarative_base, sessionmaker

# Execution option asking for the write lock when a transaction begins
WRITE_LOCK_OPTIONS = {"write_lock": True}


class AbstractHandler(object):
    """
    Holds the common behaviour of a database query handler.
    """

    def __init__(self, session_local) -> None:
        self.session_local = session_local

    def add(self, session: Session | AsyncSession, instance: Any):
        session.add(instance)

    def add_all(self, session: Session | AsyncSession, instances: list):
        session.add_all(instances)


class AsyncHandler(AbstractHandler):
    """
    Database handler for asyncronous querying.
    """

    async def execute(self, session: AsyncSession, statement: Any):
        result = await session.execute(statement)
        return result

    async def refresh(self, session: AsyncSession, instance: Any):
        await session.refresh(instance)

    async def flush(self, session: AsyncSession):
        await session.flush()

    async def commit(self, session: AsyncSession):
        await session.commit()

    async def rollback(self, session: AsyncSession):
        await session.rollback()

    @asynccontextmanager
    async def transaction(self, session: AsyncSession):
        """
        Runs the enclosed statements as a single unit of work:
        commits on exit, rolls back and re-raises on any error.
        """
        try:
            await session.connection(execution_options=WRITE_LOCK_OPTIONS)
            yield session
            await session.commit()
        except Exception:
            await session.rollback()
            raise

    def func_with_session(self, func):
        session_local = self.session_local

        async def wrapper(*args, **kwargs):
            async with session_local() as session:
                return await func(session, *args, **kwargs)

        return wrapper

    def method_with_session(self, method):
        session_local = self.session_local

        async def wrapper(self, *args, **kwargs):
            async with session_local() as session:
                return await method(self, session, *args, **kwargs)

        return wrapper


class SyncHandler(AbstractHandler):
    """
    Database handler for syncronous querying.
    """

    async def execute(self, session: Session, statement: Any):
        result = session.execute(statement)
        return result

    async def refresh(self, session: Session, instance: Any):
        session.refresh(instance)

    async def flush(self, session: Session):
        session.flush()

    async def commit(self, session: Session):
        session.commit()

    async def rollback(self, session: Session):
        session.rollback()

    @asynccontextmanager
    async def transaction(self, session: Session):
        """
        Runs the enclosed statements as a single unit of work:
        commits on exit, rolls back and re-raises on any error.
        """
        try:
            session.connection(execution_options=WRITE_LOCK_OPTIONS)
            yield session
            session.commit()
        except Exception:
            session.rollback()
            raise

    def func_with_session(self, func):
        session_local = self.session_local

        async def wrapper(*args, **kwargs):
            with session_local() as session:
                return await func(session, *args, **kwargs)

        return wrapper

    def method_with_session(self, method):
        session_local = self.session_local

        async def wrapper(self, *args, **kwargs):
            with session_local() as session:
                return await method(self, session, *args, **kwargs)

        return wrapper


class Database(object):
    """
    Abstraction layer for initializing
    database parameters such as SessionLocal
    and the db handler.
    """

    engine_options = {
        "pool_recycle": 3600
    }

    @staticmethod
    def build_url(db_user, db_pass, db_host, db_name):
        url_suffix = "://{0}:{1}@{2}/{3}".format(db_user, db_pass, db_host, db_name)
        return ("mysql+asyncmy" if USE_ASYNC_ENGINE else "mysql") + url_suffix

    @staticmethod
    def init_db(db_user, db_pass, db_host, db_name, db_url=None):
        Base = declarative_base()

        db_url = db_url or Database.build_url(db_user, db_pass, db_host, db_name)
        engine_options = dict(Database.engine_options)
        is_sqlite = db_url.startswith("sqlite")
        if is_sqlite:
            engine_options["connect_args"] = {"check_same_thread": False, "timeout": 30}

        if USE_ASYNC_ENGINE:
            engine = create_async_engine(db_url, **engine_options)
            session_class = AsyncSession
        else:
            engine = create_engine(db_url, **engine_options)
            session_class = Session

        if is_sqlite:
            Database.use_explicit_transactions(engine.sync_engine if USE_ASYNC_ENGINE else engine)

        SessionLocal = sessionmaker(
            autocommit=False, autoflush=False, bind=engine, class_=session_class, expire_on_commit=False
        )

        handler_class = AsyncHandler if USE_ASYNC_ENGINE else SyncHandler
        db_handler = handler_class(SessionLocal)

        return Base, engine, SessionLocal, db_handler

    @staticmethod
    def use_explicit_transactions(engine):
        """
        SQLite has no row locks. Transactions opened through
        ``transaction()`` take the write lock up front so concurrent
        writers queue instead of failing on lock promotion; WAL keeps
        plain readers from blocking them.
        """

        @event.listens_for(engine, "connect")
        def _disable_driver_transactions(dbapi_connection, connection_record):
            dbapi_connection.isolation_level = None
            cursor = dbapi_connection.cursor()
            cursor.execute("PRAGMA journal_mode=WAL")
            cursor.execute("PRAGMA foreign_keys=ON")
            cursor.close()

        @event.listens_for(engine, "begin")
        def _begin(connection):
            if connection.get_execution_options().get("write_lock"):
                connection.exec_driver_sql("BEGIN IMMEDIATE")
            else:
                connection.exec_driver_sql("BEGIN")
