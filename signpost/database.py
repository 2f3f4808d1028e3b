"""
Database connection
"""
import asyncio
from pathlib import Path
from typing import Any, Dict, Iterable, Type
from alembic import command
from alembic.config import Config
from sqlalchemy.dialects import postgresql, sqlite
from sqlalchemy.ext.asyncio import create_async_engine, AsyncSession, async_sessionmaker
from sqlalchemy.orm import DeclarativeBase
from signpost.config import get_settings

settings = get_settings()


def async_database_url(url: str) -> str:
    """Point plain DSNs at the async drivers"""
    if url.startswith("postgresql://"):
        return url.replace("postgresql://", "postgresql+asyncpg://", 1)
    if url.startswith("sqlite://"):
        return url.replace("sqlite://", "sqlite+aiosqlite://", 1)
    return url


database_url = async_database_url(settings.database_url)

# SQLite pools do not accept sizing arguments
_engine_kwargs: Dict[str, Any] = {}
if not database_url.startswith("sqlite"):
    _engine_kwargs = {"pool_size": 10, "max_overflow": 20}

engine = create_async_engine(
    database_url,
    echo=False,
    pool_pre_ping=True,
    **_engine_kwargs,
)

AsyncSessionLocal = async_sessionmaker(
    bind=engine,
    class_=AsyncSession,
    expire_on_commit=False,
    autoflush=False,
)


class Base(DeclarativeBase):
    """Declarative base"""
    pass


def insert_ignore(
    session: AsyncSession,
    model: Type[Base],
    values: Dict[str, Any],
    conflict_columns: Iterable[str],
):
    """
    Build ``INSERT ... ON CONFLICT (...) DO NOTHING`` for the session's dialect.

    The conflict is resolved by the database itself, so two concurrent callers
    can never both create the row.
    """
    dialect = session.get_bind().dialect.name
    if dialect == "postgresql":
        stmt = postgresql.insert(model)
    elif dialect == "sqlite":
        stmt = sqlite.insert(model)
    else:
        raise NotImplementedError(f"insert_ignore is not supported on {dialect}")
    return stmt.values(**values).on_conflict_do_nothing(index_elements=list(conflict_columns))


def run_migrations() -> None:
    """Run Alembic migrations up to head"""
    config_path = Path(__file__).resolve().parents[1] / "alembic.ini"
    alembic_cfg = Config(str(config_path))
    # keep the JSON handlers installed by the app
    alembic_cfg.attributes["configure_logger"] = False
    command.upgrade(alembic_cfg, "head")


async def init_db():
    """Create tables and apply migrations"""
    from signpost.models import waitlist_entry, rate_limit  # noqa: F401

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    if settings.run_migrations_on_startup:
        await asyncio.to_thread(run_migrations)
