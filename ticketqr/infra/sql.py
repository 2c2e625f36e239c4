from sqlalchemy.engine import URL, make_url
from sqlalchemy.ext.asyncio import AsyncEngine, create_async_engine

# plain URLs as operators write them -> the async driver for that database
ASYNC_DRIVERS = {
    "sqlite": "sqlite+aiosqlite",
    "postgres": "postgresql+asyncpg",
    "postgresql": "postgresql+asyncpg",
}


def async_database_url(database_url: str) -> URL:
    url = make_url(database_url)
    driver = ASYNC_DRIVERS.get(url.drivername)
    return url.set(drivername=driver) if driver else url


def make_async_engine(
        database_url: str, *, pool_size: int = 5
) -> AsyncEngine:
    url = async_database_url(database_url)
    if url.get_backend_name() == "sqlite":
        # wait on a locked file instead of failing the write
        return create_async_engine(url, connect_args={"timeout": 5})
    return create_async_engine(
        url, pool_pre_ping=True, pool_size=pool_size, max_overflow=pool_size,
    )
