from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool


DEFAULT_SQLITE_URL = "sqlite:///./record_snapshots.sqlite3"


def make_engine(db_url: str = DEFAULT_SQLITE_URL):
    if db_url.startswith("sqlite:"):
        kwargs = {"connect_args": {"check_same_thread": False}}
        if ":memory:" in db_url or db_url in ("sqlite://", "sqlite:///"):
            # One shared connection, otherwise each checkout sees an empty db
            kwargs["poolclass"] = StaticPool
        return create_engine(db_url, **kwargs)
    return create_engine(db_url)


def make_session_factory(engine):
    return sessionmaker(bind=engine, autoflush=False, expire_on_commit=False)
