from sqlalchemy import create_engine
from sqlalchemy.orm import declarative_base, sessionmaker
from sqlalchemy.pool import StaticPool
from reelforge.config import Settings

Base = declarative_base()


def build_engine(settings: Settings):
    """Create the engine for the configured database URL"""
    database_url = settings.DATABASE_URL

    if database_url.startswith("sqlite"):
        # SQLite-specific settings
        kwargs = {"connect_args": {"check_same_thread": False}}
        if ":memory:" in database_url or database_url == "sqlite://":
            # One shared connection, otherwise every session sees an empty database
            kwargs["poolclass"] = StaticPool
    else:
        # PostgreSQL/Supabase settings
        kwargs = {
            "connect_args": {"connect_timeout": 10},
            "pool_pre_ping": True,  # Verify connections before using
            "pool_size": 5,
            "max_overflow": 10,
        }

    return create_engine(database_url, echo=settings.DB_ECHO, **kwargs)


def build_session_factory(engine) -> sessionmaker:
    return sessionmaker(autocommit=False, autoflush=False, expire_on_commit=False, bind=engine)


def init_db(engine):
    # Import models so they're registered with Base
    from reelforge import models  # noqa: F401

    Base.metadata.create_all(bind=engine)
