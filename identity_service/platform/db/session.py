from sqlalchemy.ext.asyncio import AsyncEngine, async_sessionmaker, create_async_engine

from identity_service.platform.config import settings


def build_engine(url: str = settings.DATABASE_URL) -> AsyncEngine:
    options = {"echo": False, "future": True, "pool_pre_ping": True}
    if not url.startswith("sqlite"):
        options.update(
            pool_recycle=1800,
            pool_size=settings.DB_POOL_SIZE,
            max_overflow=settings.DB_MAX_OVERFLOW,  # (burst capacity)
            pool_timeout=30,
        )
    return create_async_engine(url, **options)


engine = build_engine()
SessionLocal = async_sessionmaker(engine, expire_on_commit=False, autoflush=False)


async def get_db():
    async with SessionLocal() as session:
        yield session


async def init_models(bind: AsyncEngine = engine) -> None:
    """Create all tables that do not exist yet."""
    # Registers every mapped class on Base.metadata
    import identity_service.features.auth.models  # noqa: F401
    import identity_service.features.payments.models  # noqa: F401
    from identity_service.platform.db.base import Base

    async with bind.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
