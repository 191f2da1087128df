"""작업 단위 — 모델별 레포지토리 캐시와 단일 저장 경계.

Unit of Work — one session, a cache of one repository per model type,
and one save boundary covering every repository it handed out.

The repository cache is a plain dict with no locking: a unit of work is
meant for one logical thread of control. Two concurrent first calls for
the same model may each build a repository; the later one wins the slot.

Usage:
    async with UnitOfWork.from_session_factory(get_session_factory()) as uow:
        authors = uow.get_repository(Author)
        books = uow.get_repository(Book)
        await authors.add(author, save=False)
        await books.add_many(new_books, save=False)
        changes = await uow.save_changes()
"""

import logging
from collections.abc import AsyncGenerator
from typing import Any, Generic, TypeVar

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker
from sqlalchemy.orm import Session, sessionmaker

from generic_repository.config import settings
from generic_repository.database import get_session_factory
from generic_repository.middleware.axiom_logging import AxiomSaveLogger
from generic_repository.repositories.base import BaseRepository, SaveHook, save_session
from generic_repository.repositories.change_tracking import track_changes
from generic_repository.repositories.sync_repository import (
    SyncRepository,
    SyncSaveHook,
    save_sync_session,
)

logger = logging.getLogger(__name__)

SessionT = TypeVar("SessionT", AsyncSession, Session)


class _RepositoryCache(Generic[SessionT]):
    """모델 타입 → 레포지토리 인스턴스 캐시 (공통 부분)."""

    repository_class: type

    def __init__(
        self,
        session: SessionT,
        *,
        commit: bool | None = None,
        save_logger: AxiomSaveLogger | None = None,
        owns_session: bool = False,
    ) -> None:
        self.session: SessionT = session
        self.commit: bool = settings.COMMIT_ON_SAVE if commit is None else commit
        self.save_logger: AxiomSaveLogger = save_logger or AxiomSaveLogger.from_settings()
        self._owns_session: bool = owns_session
        self._repositories: dict[type, Any] = {}

    def get_repository(self, model: type) -> Any:
        """모델의 레포지토리를 반환합니다. 없으면 생성하여 캐시합니다.

        Return the cached repository for a model, creating it on first request.
        Repeated calls with the same model return the same instance.
        """
        repository = self._repositories.get(model)
        if repository is None:
            repository = self.repository_class(
                self.session,
                model,
                commit=self.commit,
                save_logger=self.save_logger,
            )
            self._repositories[model] = repository
            logger.debug("Created %s for %s", self.repository_class.__name__, model.__name__)
        return repository

    def _model_names(self) -> list[str]:
        return [model.__name__ for model in self._repositories]

    def __contains__(self, model: type) -> bool:
        return model in self._repositories


class UnitOfWork(_RepositoryCache[AsyncSession]):
    """비동기 작업 단위.

    Async unit of work over one AsyncSession.

    Attributes:
        session: 공유 비동기 세션 (Shared async session)
        repository_class: 생성할 레포지토리 타입, 하위 클래스에서 교체 가능
                          (Repository type to build; override in subclasses)
    """

    repository_class: type[BaseRepository] = BaseRepository

    def __init__(
        self,
        session: AsyncSession,
        *,
        commit: bool | None = None,
        save_logger: AxiomSaveLogger | None = None,
        owns_session: bool = False,
    ) -> None:
        super().__init__(session, commit=commit, save_logger=save_logger, owns_session=owns_session)
        track_changes(session.sync_session)

    @classmethod
    def from_session_factory(
        cls,
        factory: async_sessionmaker[AsyncSession],
        **kwargs: Any,
    ) -> "UnitOfWork":
        """새 세션을 열어 소유하는 작업 단위를 만듭니다. close() 시 세션도 닫힙니다."""
        return cls(factory(), owns_session=True, **kwargs)

    def get_repository(self, model: type) -> BaseRepository:
        return super().get_repository(model)

    async def save_changes(
        self,
        before: SaveHook | None = None,
        after: SaveHook | None = None,
    ) -> int:
        """공유 세션의 모든 변경 사항을 저장합니다.

        Persist every change staged through any repository of this unit of
        work: before hook, flush, count, commit (unless flush-only), after hook.

        Returns:
            int: 저장된 변경 건수 (Number of persisted changes)
        """
        return await save_session(
            self.session,
            commit=self.commit,
            save_logger=self.save_logger,
            models=self._model_names(),
            before=before,
            after=after,
        )

    async def rollback(self) -> None:
        await self.session.rollback()

    async def close(self) -> None:
        """레포지토리 캐시를 비우고, 소유한 세션이면 닫습니다."""
        self._repositories.clear()
        if self._owns_session:
            await self.session.close()

    async def __aenter__(self) -> "UnitOfWork":
        return self

    async def __aexit__(self, exc_type: Any, exc: Any, tb: Any) -> None:
        await self.close()


class SyncUnitOfWork(_RepositoryCache[Session]):
    """동기 작업 단위 — UnitOfWork와 같은 계약."""

    repository_class: type[SyncRepository] = SyncRepository

    def __init__(
        self,
        session: Session,
        *,
        commit: bool | None = None,
        save_logger: AxiomSaveLogger | None = None,
        owns_session: bool = False,
    ) -> None:
        super().__init__(session, commit=commit, save_logger=save_logger, owns_session=owns_session)
        track_changes(session)

    @classmethod
    def from_session_factory(cls, factory: sessionmaker[Session], **kwargs: Any) -> "SyncUnitOfWork":
        return cls(factory(), owns_session=True, **kwargs)

    def get_repository(self, model: type) -> SyncRepository:
        return super().get_repository(model)

    def save_changes(
        self,
        before: SyncSaveHook | None = None,
        after: SyncSaveHook | None = None,
    ) -> int:
        return save_sync_session(
            self.session,
            commit=self.commit,
            save_logger=self.save_logger,
            models=self._model_names(),
            before=before,
            after=after,
        )

    def rollback(self) -> None:
        self.session.rollback()

    def close(self) -> None:
        self._repositories.clear()
        if self._owns_session:
            self.session.close()

    def __enter__(self) -> "SyncUnitOfWork":
        return self

    def __exit__(self, exc_type: Any, exc: Any, tb: Any) -> None:
        self.close()


async def get_unit_of_work() -> AsyncGenerator[UnitOfWork, None]:
    """작업 단위를 생성하고 사용 종료 시 닫습니다.

    Dependency-style generator yielding a UnitOfWork over a fresh session
    from the configured factory. Closed automatically afterwards.

    Yields:
        UnitOfWork: 세션을 소유한 작업 단위 (Unit of work owning its session)
    """
    async with UnitOfWork.from_session_factory(get_session_factory()) as uow:
        yield uow
