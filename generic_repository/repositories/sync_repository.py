"""동기 제네릭 레포지토리 — BaseRepository의 동기 세션 버전.

Synchronous generic repository for scripts, migrations and other code
running on a plain SQLAlchemy Session. Same surface and semantics as
BaseRepository, without await.
"""

import logging
from typing import Any, Callable, Generic, Iterable, Sequence

from sqlalchemy import Select, func, inspect, select
from sqlalchemy.orm import Session

from generic_repository.config import settings
from generic_repository.middleware.axiom_logging import AxiomSaveLogger
from generic_repository.repositories.base import attached_objects, detach_untracked
from generic_repository.repositories.change_tracking import pop_change_count, track_changes
from generic_repository.repositories.query import (
    ModelType,
    QueryComposer,
    QueryOptions,
    is_tracking,
)
from generic_repository.utils.exceptions import require, require_items
from generic_repository.utils.pagination import UNBOUNDED_PAGE_SIZE, PagedResult, paginate_sync

logger = logging.getLogger(__name__)

SyncSaveHook = Callable[[], Any]


class SyncRepository(Generic[ModelType]):
    """동기 세션용 제네릭 레포지토리.

    Generic repository bound to a synchronous Session.

    Attributes:
        session: 동기 데이터베이스 세션 (Sync database session)
        model: SQLAlchemy 모델 클래스 (The SQLAlchemy model class)
        composer: 모델용 쿼리 조합기 (Query composer bound to the model)
    """

    def __init__(
        self,
        session: Session,
        model: type[ModelType],
        *,
        commit: bool | None = None,
        save_logger: AxiomSaveLogger | None = None,
    ) -> None:
        self.session: Session = session
        self.model: type[ModelType] = model
        self.composer: QueryComposer[ModelType] = QueryComposer(model)
        self.commit: bool = settings.COMMIT_ON_SAVE if commit is None else commit
        self.save_logger: AxiomSaveLogger = save_logger or AxiomSaveLogger.from_settings()
        track_changes(session)

    def _materialize(self, stmt: Select) -> list[ModelType]:
        known = attached_objects(self.session)
        entities: list[ModelType] = list(self.session.execute(stmt).scalars().unique().all())
        if not is_tracking(stmt):
            detach_untracked(self.session, known)
        return entities

    def find(self, predicate: Any, *, tracking: bool = False) -> ModelType | None:
        require(predicate, "predicate")
        stmt = self.composer.compose(QueryOptions(predicates=[predicate], tracking=tracking)).limit(1)
        entities = self._materialize(stmt)
        return entities[0] if entities else None

    def find_all(self, options: QueryOptions | None = None) -> list[ModelType]:
        stmt = self.composer.compose(options)
        logger.debug("find_all %s: %s", self.model.__name__, stmt)
        return self._materialize(stmt)

    def find_paged(
        self,
        options: QueryOptions | None = None,
        *,
        page_number: int = 1,
        page_size: int = UNBOUNDED_PAGE_SIZE,
    ) -> PagedResult[ModelType]:
        """페이지 조회 — BaseRepository.find_paged와 같은 계약."""
        options = options or QueryOptions()
        stmt = self.composer.compose(options)
        known = attached_objects(self.session)
        page = paginate_sync(
            self.session,
            stmt,
            page_number=page_number,
            page_size=page_size,
            count_query=self.composer.filtered(options.predicates),
            unique=True,
        )
        if not options.tracking:
            detach_untracked(self.session, known)
        return page

    def exists(self, predicate: Any) -> bool:
        require(predicate, "predicate")
        return bool(self.session.scalar(select(self.composer.filtered([predicate]).exists())))

    def count(self, predicate: Any | None = None) -> int:
        stmt = select(func.count()).select_from(self.model)
        if predicate is not None:
            stmt = stmt.where(predicate)
        return self.session.scalar(stmt) or 0

    def long_count(self, predicate: Any | None = None) -> int:
        return self.count(predicate)

    def count_by(self, group_key: Any, predicate: Any | None = None) -> int:
        """그룹 키 기준 그룹 수 — NULL 키도 하나의 그룹."""
        require(group_key, "group_key")
        grouped = select(group_key).select_from(self.model)
        if predicate is not None:
            grouped = grouped.where(predicate)
        stmt = select(func.count()).select_from(grouped.group_by(group_key).subquery())
        return self.session.scalar(stmt) or 0

    # ------------------------------------------------------------------
    # 변경 — Mutations
    # ------------------------------------------------------------------

    def _maybe_save(self, save: bool) -> None:
        if save:
            self.save_changes()

    def add(self, entity: ModelType, *, save: bool = True) -> ModelType:
        """새 레코드를 추가합니다. save=True이면 즉시 저장합니다."""
        require(entity, "entity")
        self.session.add(entity)
        logger.debug("Staged insert of %s", self.model.__name__)
        self._maybe_save(save)
        return entity

    def add_many(self, entities: Iterable[ModelType], *, save: bool = True) -> None:
        """여러 레코드를 한 번에 추가합니다."""
        items = require_items(entities, "entities")
        self.session.add_all(items)
        logger.debug("Staged insert of %d %s", len(items), self.model.__name__)
        self._maybe_save(save)

    def update(self, entity: ModelType, *, save: bool = True) -> ModelType:
        """레코드를 수정 상태로 표시합니다.

        Attach the entity with Session.merge and return the session-bound
        instance, which is the argument itself when it was already attached.
        """
        require(entity, "entity")
        merged: ModelType = self.session.merge(entity)
        logger.debug("Staged update of %s", self.model.__name__)
        self._maybe_save(save)
        return merged

    def update_many(self, entities: Iterable[ModelType], *, save: bool = True) -> list[ModelType]:
        """여러 레코드를 수정 상태로 표시합니다."""
        items = require_items(entities, "entities")
        merged: list[ModelType] = [self.session.merge(entity) for entity in items]
        logger.debug("Staged update of %d %s", len(merged), self.model.__name__)
        self._maybe_save(save)
        return merged

    def _delete(self, entity: ModelType) -> None:
        state = inspect(entity)
        # 아직 저장되지 않은 추가는 취소만 — A pending insert is simply withdrawn
        if state.pending:
            self.session.expunge(entity)
            return
        # 분리된 객체와 키만 가진 새 객체는 먼저 병합
        # Detached objects and transient stubs carrying a key are merged first
        if state.detached or state.transient:
            entity = self.session.merge(entity)
        self.session.delete(entity)

    def remove(self, entity: ModelType, *, save: bool = True) -> ModelType:
        """레코드를 삭제합니다. BaseRepository.remove와 같은 규칙."""
        require(entity, "entity")
        self._delete(entity)
        logger.debug("Staged delete of %s", self.model.__name__)
        self._maybe_save(save)
        return entity

    def remove_by(self, key_predicate: Any, *, save: bool = True) -> ModelType | None:
        """조건에 일치하는 첫 레코드 삭제 — 없으면 None, 변경 없음."""
        require(key_predicate, "key_predicate")
        entity = self.find(key_predicate, tracking=True)
        if entity is None:
            logger.debug("remove_by found no %s to delete", self.model.__name__)
            return None
        self.session.delete(entity)
        self._maybe_save(save)
        return entity

    def remove_many(self, entities: Iterable[ModelType], *, save: bool = True) -> None:
        """여러 레코드를 삭제합니다."""
        items = require_items(entities, "entities")
        for entity in items:
            self._delete(entity)
        logger.debug("Staged delete of %d %s", len(items), self.model.__name__)
        self._maybe_save(save)

    # ------------------------------------------------------------------
    # 저장 — Save boundary
    # ------------------------------------------------------------------

    def save_changes(
        self,
        before: SyncSaveHook | None = None,
        after: SyncSaveHook | None = None,
    ) -> int:
        """세션의 변경 사항을 저장하고 저장된 변경 건수를 반환합니다."""
        return save_sync_session(
            self.session,
            commit=self.commit,
            save_logger=self.save_logger,
            models=[self.model.__name__],
            before=before,
            after=after,
        )


def save_sync_session(
    session: Session,
    *,
    commit: bool,
    save_logger: AxiomSaveLogger,
    models: Sequence[str],
    before: SyncSaveHook | None = None,
    after: SyncSaveHook | None = None,
) -> int:
    """동기 저장 절차: before 훅 → flush → 집계 → commit → after 훅."""
    if before is not None:
        before()
    with save_logger.track_sync("save_changes", models) as save_event:
        session.flush()
        changes = pop_change_count(session)
        if commit:
            session.commit()
        save_event.changes = changes
    if after is not None:
        after()
    return changes
