"""작업 단위 테스트.

UnitOfWork tests — repository caching, a shared save boundary across
repositories, session ownership and the dependency-style generator.
"""

from unittest.mock import AsyncMock, patch

import pytest
from sqlalchemy import inspect

from generic_repository import unit_of_work
from generic_repository.middleware.axiom_logging import AxiomSaveLogger
from generic_repository.repositories.base import BaseRepository
from generic_repository.unit_of_work import UnitOfWork, get_unit_of_work
from tests.models import Author, Book


class TestRepositoryCache:
    """레포지토리 캐시 테스트."""

    async def test_same_instance_per_model(self, uow: UnitOfWork):
        """같은 모델은 항상 같은 레포지토리 인스턴스."""
        first = uow.get_repository(Author)
        assert uow.get_repository(Author) is first
        assert uow.get_repository(Book) is not first
        assert Author in uow
        assert Book in uow

    async def test_repositories_share_session(self, uow: UnitOfWork):
        authors = uow.get_repository(Author)
        books = uow.get_repository(Book)
        assert authors.session is uow.session
        assert books.session is uow.session
        assert authors.model is Author
        assert authors.save_logger is uow.save_logger

    async def test_close_clears_cache(self, uow: UnitOfWork):
        """close 후에는 새 인스턴스가 생성됨."""
        first = uow.get_repository(Author)
        await uow.close()
        assert Author not in uow
        assert uow.get_repository(Author) is not first

    async def test_custom_repository_class(self, db, save_logger):
        """repository_class 교체로 모델 전용 레포지토리 사용."""

        class LibraryRepository(BaseRepository):
            async def titles(self) -> list[str]:
                return [b.title for b in await self.find_all()]

        class LibraryUnitOfWork(UnitOfWork):
            repository_class = LibraryRepository

        uow = LibraryUnitOfWork(db, save_logger=save_logger)
        repo = uow.get_repository(Book)
        assert isinstance(repo, LibraryRepository)
        assert await repo.titles() == []


class TestSaveChanges:
    """공유 저장 경계 테스트."""

    async def test_save_across_repositories(self, uow: UnitOfWork):
        """여러 레포지토리의 변경을 한 번에 저장."""
        authors = uow.get_repository(Author)
        books = uow.get_repository(Book)
        await authors.add(Author(name="Woolf"), save=False)
        await books.add_many([Book(title="Orlando", pages=333), Book(title="Waves", pages=297)], save=False)

        assert await uow.save_changes() == 3
        assert await authors.count() == 1
        assert await books.count() == 2

    async def test_hooks(self, uow: UnitOfWork):
        calls: list[str] = []
        await uow.get_repository(Author).add(Author(name="Hook"), save=False)
        await uow.save_changes(before=lambda: calls.append("before"), after=lambda: calls.append("after"))
        assert calls == ["before", "after"]

    async def test_rollback_discards_staged(self, uow: UnitOfWork):
        author = Author(name="Discarded")
        await uow.get_repository(Author).add(author, save=False)
        await uow.rollback()
        assert inspect(author).transient
        assert await uow.save_changes() == 0

    async def test_save_event_lists_models(self, db):
        """저장 이벤트에는 캐시된 모든 모델 이름이 포함됨."""
        events: list[dict] = []

        class RecordingLogger(AxiomSaveLogger):
            def emit(self, save_event):
                events.append(save_event.as_dict())

        uow = UnitOfWork(db, save_logger=RecordingLogger())
        uow.get_repository(Book)
        uow.get_repository(Author)
        await uow.save_changes()
        assert events[0]["models"] == ["Author", "Book"]
        assert events[0]["changes"] == 0


class TestSessionOwnership:
    """세션 소유권 테스트."""

    async def test_from_session_factory_saves(self, session_factory, save_logger):
        async with UnitOfWork.from_session_factory(session_factory, save_logger=save_logger) as uow:
            await uow.get_repository(Author).add(Author(name="Owned"))

        async with session_factory() as session:
            repo = BaseRepository(session, Author, save_logger=save_logger)
            assert await repo.exists(Author.name == "Owned") is True

    async def test_owned_session_closed(self, session_factory, save_logger):
        uow = UnitOfWork.from_session_factory(session_factory, save_logger=save_logger)
        with patch.object(uow.session, "close", new=AsyncMock()) as close:
            await uow.close()
        close.assert_awaited_once()

    async def test_borrowed_session_not_closed(self, db, save_logger):
        """외부에서 받은 세션은 닫지 않음."""
        uow = UnitOfWork(db, save_logger=save_logger)
        with patch.object(db, "close", new=AsyncMock()) as close:
            await uow.close()
        close.assert_not_awaited()

    async def test_commit_defaults_to_settings(self, db, save_logger, monkeypatch):
        monkeypatch.setattr(unit_of_work.settings, "COMMIT_ON_SAVE", False)
        uow = UnitOfWork(db, save_logger=save_logger)
        assert uow.commit is False
        assert uow.get_repository(Author).commit is False


class TestGetUnitOfWork:
    """의존성 제너레이터 테스트."""

    async def test_yields_and_closes(self, session_factory):
        with patch(
            "generic_repository.unit_of_work.get_session_factory",
            return_value=session_factory,
        ):
            gen = get_unit_of_work()
            uow = await gen.__anext__()
            assert isinstance(uow, UnitOfWork)
            await uow.get_repository(Author).add(Author(name="Injected"))
            assert uow.get_repository(Author) is uow.get_repository(Author)

            with patch.object(uow.session, "close", wraps=uow.session.close) as close:
                with pytest.raises(StopAsyncIteration):
                    await gen.__anext__()
            close.assert_awaited_once()
            assert Author not in uow
