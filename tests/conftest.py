"""테스트 인프라 — 인메모리 SQLite 엔진, 세션, 작업 단위 픽스처.

Test infrastructure — in-memory SQLite engines (aiosqlite for async,
pysqlite for sync), sessions, repositories and seeded data.
Every test gets a fresh database; StaticPool keeps the single
in-memory connection alive for the whole test.
"""

import os

# Axiom 전송 비활성화 — settings 로드 전에 설정 (Must run before settings load)
os.environ["AXIOM_API_TOKEN"] = ""
os.environ["AXIOM_DATASET"] = ""
os.environ["COMMIT_ON_SAVE"] = "true"

from collections.abc import AsyncGenerator, Generator  # noqa: E402

import pytest  # noqa: E402
import pytest_asyncio  # noqa: E402
from sqlalchemy import create_engine  # noqa: E402
from sqlalchemy.engine import Engine  # noqa: E402
from sqlalchemy.ext.asyncio import (  # noqa: E402
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.orm import Session, sessionmaker  # noqa: E402
from sqlalchemy.pool import StaticPool  # noqa: E402

from generic_repository.database import Base  # noqa: E402
from generic_repository.middleware.axiom_logging import AxiomSaveLogger  # noqa: E402
from generic_repository.unit_of_work import SyncUnitOfWork, UnitOfWork  # noqa: E402
from tests.models import Author, build_seed  # noqa: E402


# ---------------------------------------------------------------------------
# Async: 엔진, 세션, 작업 단위
# ---------------------------------------------------------------------------
@pytest_asyncio.fixture
async def engine() -> AsyncGenerator[AsyncEngine, None]:
    """테스트용 async 엔진. 스키마를 생성합니다."""
    eng = create_async_engine(
        "sqlite+aiosqlite://",
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )
    async with eng.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield eng
    await eng.dispose()


@pytest_asyncio.fixture
async def session_factory(engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    return async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)


@pytest_asyncio.fixture
async def db(session_factory: async_sessionmaker[AsyncSession]) -> AsyncGenerator[AsyncSession, None]:
    """각 테스트에 격리된 DB 세션을 제공합니다."""
    async with session_factory() as session:
        yield session


@pytest.fixture
def save_logger() -> AxiomSaveLogger:
    """Axiom 없이 로컬 로거만 사용하는 저장 로거."""
    return AxiomSaveLogger()


@pytest_asyncio.fixture
async def uow(db: AsyncSession, save_logger: AxiomSaveLogger) -> UnitOfWork:
    return UnitOfWork(db, commit=True, save_logger=save_logger)


@pytest_asyncio.fixture
async def seeded(db: AsyncSession) -> list[Author]:
    """저자 3명과 도서 5권을 저장한 뒤 세션을 비웁니다.

    Seed three authors and five books, commit, then expunge everything so
    each test starts from an empty identity map. Returns detached authors.
    """
    authors = build_seed()
    db.add_all(authors)
    await db.commit()
    db.expunge_all()
    return authors


# ---------------------------------------------------------------------------
# Sync: 엔진, 세션, 작업 단위
# ---------------------------------------------------------------------------
@pytest.fixture
def sync_engine() -> Generator[Engine, None, None]:
    eng = create_engine(
        "sqlite://",
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )
    Base.metadata.create_all(eng)
    yield eng
    eng.dispose()


@pytest.fixture
def sync_session_factory(sync_engine: Engine) -> sessionmaker[Session]:
    return sessionmaker(sync_engine, expire_on_commit=False)


@pytest.fixture
def sync_db(sync_session_factory: sessionmaker[Session]) -> Generator[Session, None, None]:
    with sync_session_factory() as session:
        yield session


@pytest.fixture
def sync_uow(sync_db: Session, save_logger: AxiomSaveLogger) -> SyncUnitOfWork:
    return SyncUnitOfWork(sync_db, commit=True, save_logger=save_logger)


@pytest.fixture
def sync_seeded(sync_db: Session) -> list[Author]:
    authors = build_seed()
    sync_db.add_all(authors)
    sync_db.commit()
    sync_db.expunge_all()
    return authors
