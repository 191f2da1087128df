"""데이터베이스 엔진 및 세션 설정 모듈.

Database engine and session configuration module.
Builds the async (and optional sync) SQLAlchemy engines and session
factories from settings, and defines the declarative base class.
Engines are created on first use so importing the package never connects.
"""

from collections.abc import AsyncGenerator, Generator

from sqlalchemy import create_engine
from sqlalchemy.engine import Engine
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.orm import DeclarativeBase, Session, sessionmaker

from generic_repository.config import settings

_async_engine: AsyncEngine | None = None
_async_session: async_sessionmaker[AsyncSession] | None = None
_sync_engine: Engine | None = None
_sync_session: sessionmaker[Session] | None = None


class Base(DeclarativeBase):
    """SQLAlchemy 선언적 베이스 클래스.

    Declarative base class offered for models managed through the repositories.
    Any mapped class works; this one simply shares the package metadata.
    """

    pass


def _engine_kwargs(url: str) -> dict:
    """URL 방언에 맞는 엔진 인자 — SQLite는 풀 설정을 받지 않음."""
    if url.startswith("sqlite"):
        return {"echo": settings.DEBUG}

    kwargs: dict = {
        "echo": settings.DEBUG,
        "pool_pre_ping": True,
        "pool_size": settings.DB_POOL_SIZE,
        "max_overflow": settings.DB_MAX_OVERFLOW,
    }
    if "+asyncpg" in url:
        # 트랜잭션 모드 풀러에서 prepared statement 비활성화
        # Disable prepared statement caches for transaction-mode pooling
        kwargs["connect_args"] = {"statement_cache_size": 0}
    return kwargs


def get_engine() -> AsyncEngine:
    """비동기 엔진을 반환합니다. 첫 호출 시 생성됩니다."""
    global _async_engine
    if _async_engine is None:
        _async_engine = create_async_engine(settings.DATABASE_URL, **_engine_kwargs(settings.DATABASE_URL))
    return _async_engine


def get_session_factory() -> async_sessionmaker[AsyncSession]:
    """비동기 세션 팩토리.

    expire_on_commit=False: 커밋 후에도 객체 속성 접근 가능
    (Allows attribute access after commit without refresh)
    """
    global _async_session
    if _async_session is None:
        _async_session = async_sessionmaker(get_engine(), class_=AsyncSession, expire_on_commit=False)
    return _async_session


def get_sync_engine() -> Engine:
    """동기 엔진을 반환합니다. SYNC_DATABASE_URL이 필요합니다."""
    global _sync_engine
    if _sync_engine is None:
        url = settings.SYNC_DATABASE_URL
        if not url:
            raise RuntimeError("SYNC_DATABASE_URL is required for synchronous sessions")
        _sync_engine = create_engine(url, **_engine_kwargs(url))
    return _sync_engine


def get_sync_session_factory() -> sessionmaker[Session]:
    global _sync_session
    if _sync_session is None:
        _sync_session = sessionmaker(get_sync_engine(), expire_on_commit=False)
    return _sync_session


async def reset_engines() -> None:
    """캐시된 엔진과 팩토리를 폐기합니다 — 테스트와 설정 변경 후 사용."""
    global _async_engine, _async_session, _sync_engine, _sync_session
    if _async_engine is not None:
        await _async_engine.dispose()
    if _sync_engine is not None:
        _sync_engine.dispose()
    _async_engine = _async_session = _sync_engine = _sync_session = None


async def get_db() -> AsyncGenerator[AsyncSession, None]:
    """비동기 데이터베이스 세션을 생성하고 사용 종료 시 닫습니다.

    Dependency-style generator that yields an async database session.
    The session is automatically closed afterwards, ensuring no connection leaks.

    Yields:
        AsyncSession: SQLAlchemy 비동기 세션 인스턴스 (Async session instance)
    """
    async with get_session_factory()() as session:
        try:
            yield session
        finally:
            await session.close()


def get_sync_db() -> Generator[Session, None, None]:
    with get_sync_session_factory()() as session:
        yield session
