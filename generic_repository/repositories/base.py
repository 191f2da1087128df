"""기본 제네릭 레포지토리 — 모든 모델에 공통인 조회/변경 연산.

Base generic repository — query and mutation operations shared by every model.
Filters, eager loads, sorting and tracking are composed by QueryComposer;
execution is delegated to the SQLAlchemy AsyncSession.

Usage:
    repo = BaseRepository(session, Book)
    page = await repo.find_paged(
        QueryOptions(predicates=[Book.pages > 100], order_by=Book.title),
        page_number=2,
        page_size=20,
    )

    class BookRepository(BaseRepository[Book]):
        async def find_long_books(self) -> list[Book]:
            return await self.find_all(QueryOptions(predicates=[Book.pages > 500]))
"""

import inspect as pyinspect
import logging
from typing import Any, Callable, Generic, Iterable, Sequence

from sqlalchemy import Select, func, inspect, select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import Session

from generic_repository.config import settings
from generic_repository.middleware.axiom_logging import AxiomSaveLogger
from generic_repository.repositories.change_tracking import pop_change_count, track_changes
from generic_repository.repositories.query import (
    ModelType,
    QueryComposer,
    QueryOptions,
    is_tracking,
)
from generic_repository.utils.exceptions import require, require_items
from generic_repository.utils.pagination import UNBOUNDED_PAGE_SIZE, PagedResult, paginate

logger = logging.getLogger(__name__)

# 저장 전후 훅 — 동기 함수 또는 코루틴 함수 (Sync callable or coroutine function)
SaveHook = Callable[[], Any]


async def run_hook(hook: SaveHook | None) -> None:
    """훅을 실행합니다. 반환값이 awaitable이면 기다립니다."""
    if hook is None:
        return
    result = hook()
    if pyinspect.isawaitable(result):
        await result


def attached_objects(session: Session) -> dict[int, Any]:
    """쿼리 실행 전 세션이 이미 보유한 객체 (pending 포함).

    Snapshot of objects already in the session, pending ones included,
    keyed by id(). Holding the objects keeps the ids stable.
    """
    return {id(obj): obj for obj in session}


def detach_untracked(session: Session, known: dict[int, Any]) -> None:
    """추적하지 않는 조회로 새로 로드된 객체를 모두 세션에서 분리합니다.

    Expunge every object an untracked query brought into the session:
    the returned rows and anything eager-loaded with them. Objects the
    session already held before the query stay attached.
    """
    for obj in list(session):
        if id(obj) not in known and obj in session:
            session.expunge(obj)


class BaseRepository(Generic[ModelType]):
    """제네릭 레포지토리.

    Generic repository providing common database operations for one model.
    Holds no query state between calls; the only state is the session,
    the model class and the save policy.

    Attributes:
        session: 비동기 데이터베이스 세션 (Async database session)
        model: SQLAlchemy 모델 클래스 (The SQLAlchemy model class)
        composer: 모델용 쿼리 조합기 (Query composer bound to the model)
    """

    def __init__(
        self,
        session: AsyncSession,
        model: type[ModelType],
        *,
        commit: bool | None = None,
        save_logger: AxiomSaveLogger | None = None,
    ) -> None:
        """레포지토리를 초기화합니다.

        Args:
            session: 비동기 데이터베이스 세션 (Async database session)
            model: 이 레포지토리가 관리할 모델 클래스 (Model class this repository manages)
            commit: save_changes 시 커밋 여부, None이면 설정값
                    (Commit on save; None falls back to settings.COMMIT_ON_SAVE)
            save_logger: 저장 이벤트 로거 (Save-event logger)
        """
        self.session: AsyncSession = session
        self.model: type[ModelType] = model
        self.composer: QueryComposer[ModelType] = QueryComposer(model)
        self.commit: bool = settings.COMMIT_ON_SAVE if commit is None else commit
        self.save_logger: AxiomSaveLogger = save_logger or AxiomSaveLogger.from_settings()
        track_changes(session.sync_session)

    # ------------------------------------------------------------------
    # 조회 — Reads
    # ------------------------------------------------------------------

    async def _materialize(self, stmt: Select) -> list[ModelType]:
        known = attached_objects(self.session.sync_session)
        result = await self.session.execute(stmt)
        entities: list[ModelType] = list(result.scalars().unique().all())
        if not is_tracking(stmt):
            detach_untracked(self.session.sync_session, known)
        return entities

    async def find(self, predicate: Any, *, tracking: bool = False) -> ModelType | None:
        """조건에 일치하는 첫 번째 레코드를 조회합니다.

        Retrieve the first record matching a predicate.

        Args:
            predicate: 불리언 조건식 (Boolean expression, e.g. Book.isbn == "...")
            tracking: 결과를 세션에 유지할지 여부 (Keep the result attached)

        Returns:
            ModelType | None: 조회된 레코드 또는 None (Found record or None)
        """
        require(predicate, "predicate")
        stmt = self.composer.compose(QueryOptions(predicates=[predicate], tracking=tracking)).limit(1)
        entities = await self._materialize(stmt)
        return entities[0] if entities else None

    async def find_all(self, options: QueryOptions | None = None) -> list[ModelType]:
        """조건에 맞는 모든 레코드를 조회합니다.

        Retrieve all records matching the options' predicates, sorted and
        eager-loaded as requested.
        """
        stmt = self.composer.compose(options)
        logger.debug("find_all %s: %s", self.model.__name__, stmt)
        return await self._materialize(stmt)

    async def find_paged(
        self,
        options: QueryOptions | None = None,
        *,
        page_number: int = 1,
        page_size: int = UNBOUNDED_PAGE_SIZE,
    ) -> PagedResult[ModelType]:
        """페이지네이션이 적용된 레코드 목록을 조회합니다.

        Retrieve one page of records. Counts first (filters only), then
        fetches the page with OFFSET (page_number - 1) * page_size and
        LIMIT page_size.

        Args:
            options: 조회 옵션 (Read options)
            page_number: 현재 페이지 번호, 1부터 시작 (Current page number, 1-based)
            page_size: 페이지당 레코드 수, 기본 무제한 (Records per page; unbounded by default)

        Returns:
            PagedResult[ModelType]: 페이지 항목과 메타데이터 (Page items and metadata)
        """
        options = options or QueryOptions()
        stmt = self.composer.compose(options)
        known = attached_objects(self.session.sync_session)
        page = await paginate(
            self.session,
            stmt,
            page_number=page_number,
            page_size=page_size,
            count_query=self.composer.filtered(options.predicates),
            unique=True,
        )
        if not options.tracking:
            detach_untracked(self.session.sync_session, known)
        return page

    async def exists(self, predicate: Any) -> bool:
        """주어진 조건에 일치하는 레코드가 존재하는지 확인합니다."""
        require(predicate, "predicate")
        stmt = select(self.composer.filtered([predicate]).exists())
        return bool(await self.session.scalar(stmt))

    async def count(self, predicate: Any | None = None) -> int:
        """조건에 맞는 레코드 수. 조건이 없으면 전체 개수."""
        stmt = select(func.count()).select_from(self.model)
        if predicate is not None:
            stmt = stmt.where(predicate)
        return (await self.session.scalar(stmt)) or 0

    async def long_count(self, predicate: Any | None = None) -> int:
        """count와 같은 의미 — Python int는 범위 제한이 없음.

        Same semantics as count(); kept as a separate entry point for
        callers that expect a wide-integer count.
        """
        return await self.count(predicate)

    async def count_by(self, group_key: Any, predicate: Any | None = None) -> int:
        """그룹 키로 묶었을 때 그룹 수를 반환합니다.

        Group matching records by a key expression and return the number of
        distinct groups. A NULL key forms its own group.

        Args:
            group_key: 그룹 키 식 (Group key expression, e.g. Book.author_id)
            predicate: 선택 조건식 (Optional filter applied before grouping)
        """
        require(group_key, "group_key")
        grouped = select(group_key).select_from(self.model)
        if predicate is not None:
            grouped = grouped.where(predicate)
        grouped = grouped.group_by(group_key)
        stmt = select(func.count()).select_from(grouped.subquery())
        return (await self.session.scalar(stmt)) or 0

    # ------------------------------------------------------------------
    # 변경 — Mutations
    # ------------------------------------------------------------------

    async def _maybe_save(self, save: bool) -> None:
        if save:
            await self.save_changes()

    async def add(self, entity: ModelType, *, save: bool = True) -> ModelType:
        """새 레코드를 추가합니다. save=True이면 즉시 저장합니다."""
        require(entity, "entity")
        self.session.add(entity)
        logger.debug("Staged insert of %s", self.model.__name__)
        await self._maybe_save(save)
        return entity

    async def add_many(self, entities: Iterable[ModelType], *, save: bool = True) -> None:
        """여러 레코드를 한 번에 추가합니다."""
        items = require_items(entities, "entities")
        self.session.add_all(items)
        logger.debug("Staged insert of %d %s", len(items), self.model.__name__)
        await self._maybe_save(save)

    async def update(self, entity: ModelType, *, save: bool = True) -> ModelType:
        """레코드를 수정 상태로 표시합니다.

        Attach the entity with Session.merge so its changes are flushed on
        save. Returns the session-bound instance, which is the argument
        itself when it was already attached.
        """
        require(entity, "entity")
        merged: ModelType = await self.session.merge(entity)
        logger.debug("Staged update of %s", self.model.__name__)
        await self._maybe_save(save)
        return merged

    async def update_many(self, entities: Iterable[ModelType], *, save: bool = True) -> list[ModelType]:
        """여러 레코드를 수정 상태로 표시합니다."""
        items = require_items(entities, "entities")
        merged: list[ModelType] = [await self.session.merge(entity) for entity in items]
        logger.debug("Staged update of %d %s", len(merged), self.model.__name__)
        await self._maybe_save(save)
        return merged

    async def _delete(self, entity: ModelType) -> None:
        state = inspect(entity)
        # 아직 저장되지 않은 추가는 취소만 — A pending insert is simply withdrawn
        if state.pending:
            self.session.expunge(entity)
            return
        # 분리된 객체와 키만 가진 새 객체는 먼저 병합
        # Detached objects and transient stubs carrying a key are merged first
        if state.detached or state.transient:
            entity = await self.session.merge(entity)
        await self.session.delete(entity)

    async def remove(self, entity: ModelType, *, save: bool = True) -> ModelType:
        """레코드를 삭제합니다.

        Stage a delete. A pending entity (added but not yet saved) is just
        withdrawn from the session. A detached entity, or a new instance
        that only carries the primary key, is merged first so the delete
        targets the stored row.
        """
        require(entity, "entity")
        await self._delete(entity)
        logger.debug("Staged delete of %s", self.model.__name__)
        await self._maybe_save(save)
        return entity

    async def remove_by(self, key_predicate: Any, *, save: bool = True) -> ModelType | None:
        """조건에 일치하는 첫 레코드를 삭제합니다.

        Look up the first match and delete it. Returns None, without any
        mutation or save, when nothing matches.
        """
        require(key_predicate, "key_predicate")
        entity = await self.find(key_predicate, tracking=True)
        if entity is None:
            logger.debug("remove_by found no %s to delete", self.model.__name__)
            return None
        await self.session.delete(entity)
        await self._maybe_save(save)
        return entity

    async def remove_many(self, entities: Iterable[ModelType], *, save: bool = True) -> None:
        """여러 레코드를 삭제합니다."""
        items = require_items(entities, "entities")
        for entity in items:
            await self._delete(entity)
        logger.debug("Staged delete of %d %s", len(items), self.model.__name__)
        await self._maybe_save(save)

    # ------------------------------------------------------------------
    # 저장 — Save boundary
    # ------------------------------------------------------------------

    async def save_changes(
        self,
        before: SaveHook | None = None,
        after: SaveHook | None = None,
    ) -> int:
        """세션의 변경 사항을 저장하고 저장된 변경 건수를 반환합니다.

        Run `before`, flush, count the changes flushed since the last save,
        commit (unless configured to flush only), then run `after`.
        A failing hook or flush aborts the remaining steps and propagates.

        Args:
            before: 저장 전 훅 (Hook run before persisting)
            after: 저장 후 훅 (Hook run after persisting)

        Returns:
            int: 저장된 변경 건수 (Number of persisted changes)
        """
        return await save_session(
            self.session,
            commit=self.commit,
            save_logger=self.save_logger,
            models=[self.model.__name__],
            before=before,
            after=after,
        )


async def save_session(
    session: AsyncSession,
    *,
    commit: bool,
    save_logger: AxiomSaveLogger,
    models: Sequence[str],
    before: SaveHook | None = None,
    after: SaveHook | None = None,
) -> int:
    """레포지토리와 작업 단위가 공유하는 저장 절차."""
    await run_hook(before)
    async with save_logger.track("save_changes", models) as save_event:
        await session.flush()
        changes = pop_change_count(session.sync_session)
        if commit:
            await session.commit()
        save_event.changes = changes
    await run_hook(after)
    return changes
