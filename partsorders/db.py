import os
from contextlib import contextmanager
from typing import Iterator

from sqlalchemy import create_engine, event, make_url, text
from sqlalchemy.orm import sessionmaker, Session
from sqlalchemy.pool import StaticPool

DB_USER = os.getenv("DB_USER", "app")
DB_PASS = os.getenv("DB_PASS", "app")
DB_NAME = os.getenv("DB_NAME", "appdb")
DB_HOST = os.getenv("DB_HOST", "localhost")
DB_PORT = os.getenv("DB_PORT", "5432")
DB_SCHEMA = os.getenv("DB_SCHEMA", "partsorders")

# Use psycopg3; set search_path so unqualified tables use our schema.
# DATABASE_URL overrides everything (tests point it at SQLite).
options = f"-csearch_path={DB_SCHEMA},public"
DATABASE_URL = os.getenv("DATABASE_URL") or (
    f"postgresql+psycopg://{DB_USER}:{DB_PASS}@{DB_HOST}:{DB_PORT}/{DB_NAME}"
    f"?options={options}"
)


def is_memory_sqlite(url: str) -> bool:
    u = make_url(url)
    if u.get_backend_name() != "sqlite":
        return False
    return u.database in (None, "", ":memory:") or u.query.get("mode") == "memory"


def make_engine(url: str):
    if make_url(url).get_backend_name() == "sqlite":
        kwargs = {"connect_args": {"check_same_thread": False}, "future": True}
        if is_memory_sqlite(url):
            # one shared connection so an in-memory database survives across sessions;
            # file databases keep the default pool, one connection per checkout
            kwargs["poolclass"] = StaticPool
        eng = create_engine(url, **kwargs)

        @event.listens_for(eng, "connect")
        def _enable_foreign_keys(dbapi_conn, _record):
            cur = dbapi_conn.cursor()
            cur.execute("PRAGMA foreign_keys=ON")
            cur.close()

        return eng
    return create_engine(url, pool_pre_ping=True, future=True)


engine = make_engine(DATABASE_URL)
SessionLocal = sessionmaker(bind=engine, autoflush=False, autocommit=False, future=True)


def is_postgres(session: Session) -> bool:
    return session.get_bind().dialect.name == "postgresql"


def init_db():
    """
    Ensure the schema exists, then create tables (idempotent).
    Called once at application startup.
    """
    if engine.dialect.name == "postgresql":
        with engine.begin() as conn:
            conn.execute(text(f'CREATE SCHEMA IF NOT EXISTS "{DB_SCHEMA}"'))
    # Import here to avoid circulars
    from .models import Base  # noqa
    Base.metadata.create_all(bind=engine)


@contextmanager
def transaction(session: Session) -> Iterator[Session]:
    """
    Unit of work over an existing session: commits on success, rolls back on error.

    Nested uses join the outermost unit of work; only the outermost one commits
    or rolls back, so an exception raised anywhere inside discards every write
    buffered since it began.
    """
    depth = session.info.get("tx_depth", 0)
    session.info["tx_depth"] = depth + 1
    try:
        yield session
        if depth == 0:
            session.commit()
    except Exception:
        if depth == 0:
            session.rollback()
        raise
    finally:
        session.info["tx_depth"] = depth


def get_session() -> Iterator[Session]:
    """
    FastAPI dependency: yields a DB session, commits on success, rolls back on error.
    """
    s: Session = SessionLocal()
    try:
        yield s
        s.commit()
    except Exception:
        s.rollback()
        raise
    finally:
        s.close()
