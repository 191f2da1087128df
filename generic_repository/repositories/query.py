"""쿼리 조합기 — 필터, 즉시 로딩, 정렬, 추적 모드를 Select 문에 적용.

Query composer — applies filters, eager loads, sorting and tracking mode
to a SQLAlchemy Select, in that order. The result is a lazy statement:
nothing touches the database until a repository executes it.

Usage:
    options = QueryOptions(
        predicates=[Book.author_id == author.id, Book.pages > 100],
        order_by=Book.title,
        includes=[selectinload(Book.author)],
    )
    stmt = QueryComposer(Book).compose(options)
"""

from typing import Any, Callable, Generic, Iterable, TypeVar, Union

from pydantic import BaseModel, ConfigDict, Field
from sqlalchemy import Select, select
from sqlalchemy.sql.base import ExecutableOption

# 제네릭 타입 변수 — 매핑된 SQLAlchemy 모델을 나타냄
# Generic type variable representing a mapped SQLAlchemy model
ModelType = TypeVar("ModelType")

# 즉시 로딩 지시자 — 로더 옵션 또는 Select -> Select 변환 함수
# Eager-load directive: a loader option or a Select -> Select transformation
Include = Union[ExecutableOption, Callable[[Select], Select]]

# 추적 모드를 담는 실행 옵션 키 — Execution option key carrying the tracking mode
TRACKING_OPTION: str = "generic_repository_tracking"


class QueryOptions(BaseModel):
    """조회 옵션 — 필터, 정렬, 즉시 로딩, 추적 여부.

    Options for a read operation.

    Attributes:
        predicates: AND로 결합될 불리언 식 목록, None 원소는 무시
                    (Boolean expressions combined with AND; None entries are skipped)
        order_by: 1차 정렬 식 (Primary sort expression)
        then_by: 2차 정렬 식, order_by가 있을 때만 적용
                 (Secondary sort, applied only when order_by is set)
        includes: 즉시 로딩 지시자 목록, 왼쪽부터 적용 (Eager loads, applied left to right)
        tracking: 결과를 세션에 유지할지 여부 (Keep results attached to the session)
    """

    model_config = ConfigDict(arbitrary_types_allowed=True, frozen=True)

    predicates: list[Any] = Field(default_factory=list)
    order_by: Any = None
    then_by: Any = None
    includes: list[Any] = Field(default_factory=list)
    tracking: bool = False


def apply_filters(stmt: Select, predicates: Iterable[Any] | None) -> Select:
    """모든 조건식을 AND로 적용합니다. None 원소는 건너뜁니다."""
    if predicates is None:
        return stmt
    clauses = [predicate for predicate in predicates if predicate is not None]
    return stmt.where(*clauses) if clauses else stmt


def apply_includes(stmt: Select, includes: Iterable[Any] | None) -> Select:
    """즉시 로딩 지시자를 순서대로 적용합니다.

    Loader options go through Select.options(); callables receive the
    statement and return a new one.
    """
    for include in includes or ():
        if isinstance(include, ExecutableOption):
            stmt = stmt.options(include)
        elif include is not None:
            stmt = include(stmt)
    return stmt


def apply_sorting(stmt: Select, order_by: Any = None, then_by: Any = None) -> Select:
    """1차 정렬 후 2차 정렬. order_by 없이 주어진 then_by는 무시됩니다."""
    if order_by is None:
        return stmt
    if then_by is None:
        return stmt.order_by(order_by)
    return stmt.order_by(order_by, then_by)


def apply_tracking(stmt: Select, tracking: bool) -> Select:
    return stmt.execution_options(**{TRACKING_OPTION: tracking})


def is_tracking(stmt: Select) -> bool:
    """Select 문에 기록된 추적 모드를 반환합니다. 기본값은 False."""
    return bool(stmt.get_execution_options().get(TRACKING_OPTION, False))


class QueryComposer(Generic[ModelType]):
    """모델 하나에 대한 Select 문을 조합합니다.

    Builds Select statements for one mapped model. Holds no state
    besides the model, so one composer can serve any number of queries.
    """

    def __init__(self, model: type[ModelType]) -> None:
        self.model: type[ModelType] = model

    def filtered(self, predicates: Iterable[Any] | None = None) -> Select:
        """필터만 적용된 Select — 개수 쿼리의 기준으로 사용.

        Select with filters only; used as the base of count queries.
        """
        return apply_filters(select(self.model), predicates)

    def compose(self, options: QueryOptions | None = None) -> Select:
        """필터 → 즉시 로딩 → 정렬 → 추적 모드 순서로 Select를 조합합니다.

        Compose the full statement: filters, then includes, then sorting,
        then tracking mode.

        Args:
            options: 조회 옵션, None이면 기본값 (Read options; defaults when None)

        Returns:
            Select: 실행되지 않은 Select 문 (Unexecuted Select statement)
        """
        options = options or QueryOptions()
        stmt = self.filtered(options.predicates)
        stmt = apply_includes(stmt, options.includes)
        stmt = apply_sorting(stmt, options.order_by, options.then_by)
        return apply_tracking(stmt, options.tracking)
