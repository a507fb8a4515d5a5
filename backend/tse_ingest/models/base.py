from sqlalchemy import BigInteger, Integer, JSON
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.engine.url import make_url
from sqlalchemy.ext.asyncio import create_async_engine, async_sessionmaker, AsyncSession
from sqlalchemy.orm import declarative_base
from sqlalchemy.pool import StaticPool
import os

# In-memory SQLite when unset: the test suite runs against it
DATABASE_URL = os.getenv("DATABASE_URL") or "sqlite+aiosqlite:///:memory:"


def _engine_options(database_url: str) -> dict:
    options: dict = {"echo": False, "future": True, "pool_pre_ping": True}
    if make_url(database_url).get_backend_name() == "sqlite":
        # One shared connection, or every session would see its own empty :memory: db
        options["poolclass"] = StaticPool
    else:
        # A single import worker plus API reads; batches hold one connection each
        options.update(
            pool_size=int(os.getenv("DB_POOL_SIZE", "10")),
            max_overflow=int(os.getenv("DB_MAX_OVERFLOW", "20")),
            pool_timeout=int(os.getenv("DB_POOL_TIMEOUT", "60")),
        )
    return options


engine = create_async_engine(DATABASE_URL, **_engine_options(DATABASE_URL))
SessionLocal = async_sessionmaker(engine, expire_on_commit=False, class_=AsyncSession)
Base = declarative_base()

# SQLite only autoincrements INTEGER PRIMARY KEY
BigIntPK = BigInteger().with_variant(Integer, "sqlite")
# Batch-row snapshots and validation summaries
JSONType = JSON().with_variant(JSONB, "postgresql")
