from sqlalchemy.dialects import postgresql, sqlite
from sqlalchemy.ext.asyncio import create_async_engine, async_sessionmaker, AsyncSession
from sqlalchemy.orm import DeclarativeBase

from conduit.config import settings
from conduit.middleware import install_query_counter

# Module-level engine variable allows tests to override with a test engine.
engine = create_async_engine(
    settings.DATABASE_URL,
    echo=settings.DEBUG,
    pool_pre_ping=True,
)

install_query_counter(engine)

async_session = async_sessionmaker(
    engine,
    class_=AsyncSession,
    expire_on_commit=False,
)


class Base(DeclarativeBase):
    pass


async def get_db():
    """
    Yield one session per request.

    The whole request is a single transaction: committed when the
    handler returns, rolled back when any exception (domain errors
    included) escapes it.
    """
    async with async_session() as session:
        try:
            yield session
            await session.commit()
        except Exception:
            await session.rollback()
            raise


def insert_ignoring_conflicts(db: AsyncSession, model, index_elements: list[str], **values):
    """
    Build an ``INSERT ... ON CONFLICT DO NOTHING`` for *model*.

    Used wherever a uniqueness constraint is the only guard against
    concurrent duplicates (tags, favorites, article authors): the
    losing writer silently becomes a no-op instead of failing the
    request.
    """
    dialect = db.get_bind().dialect.name
    if dialect == "postgresql":
        stmt = postgresql.insert(model)
    elif dialect == "sqlite":
        stmt = sqlite.insert(model)
    else:  # pragma: no cover
        raise NotImplementedError(f"unsupported dialect for upsert: {dialect}")
    return stmt.values(**values).on_conflict_do_nothing(index_elements=index_elements)
