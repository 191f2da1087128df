"""페이지네이션 유틸리티 모듈.

Pagination utility module for SQLAlchemy queries.
Provides the page metadata calculator, the PagedResult response model,
and paginate helpers for async sessions, sync sessions and in-memory sequences.
"""

import sys
from typing import Any, Generic, Iterable, Sequence, TypeVar

from pydantic import BaseModel, ConfigDict
from sqlalchemy import Select, func, select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import Session

from generic_repository.utils.exceptions import InvalidArgumentError

T = TypeVar("T")

# 무제한 페이지 크기 — 한 페이지에 모든 항목을 담음 (One page holds every item)
UNBOUNDED_PAGE_SIZE: int = sys.maxsize


class PageInfo(BaseModel):
    """페이지 메타데이터 모델.

    Paging metadata computed from total item count, page size and page number.

    Attributes:
        total_items: 전체 항목 수 (Total count across all pages)
        total_pages: 전체 페이지 수 (ceil(total_items / page_size))
        page_size: 페이지당 항목 수 (Items per page)
        page_number: 현재 페이지 번호, 1부터 시작 (Current page, 1-indexed)
        has_previous_page: 이전 페이지 존재 여부 (page_number > 1)
        has_next_page: 다음 페이지 존재 여부 (page_number < total_pages)
        is_first_page: 첫 페이지 여부 (page_number == 1)
        is_last_page: 마지막 페이지 여부 (page_number >= total_pages)
        first_item_on_page: 페이지 첫 항목 번호, 1부터 (1-based index of first item)
        last_item_on_page: 페이지 마지막 항목 번호 (1-based index of last item)
    """

    total_items: int
    total_pages: int
    page_size: int
    page_number: int
    has_previous_page: bool
    has_next_page: bool
    is_first_page: bool
    is_last_page: bool
    first_item_on_page: int
    last_item_on_page: int


class PagedResult(PageInfo, Generic[T]):
    """페이지네이션 결과 모델.

    Pagination result model: the items of one page plus its metadata.
    """

    model_config = ConfigDict(arbitrary_types_allowed=True)

    items: list[T]  # 현재 페이지 항목 목록 (Items for the current page)


def calculate_page_info(
    total_items: int,
    page_size: int = UNBOUNDED_PAGE_SIZE,
    page_number: int = 1,
) -> PageInfo:
    """전체 개수와 페이지 인자로 페이지 메타데이터를 계산합니다.

    Compute paging metadata. A page number past the last page is allowed:
    it reports has_next_page=False and is_last_page=True, and its
    last_item_on_page falls below first_item_on_page since the page is empty.

    Args:
        total_items: 전체 항목 수, 0 이상 (Total item count, >= 0)
        page_size: 페이지당 항목 수, 1 이상 (Items per page, >= 1; default unbounded)
        page_number: 요청 페이지 번호, 1 이상 (Requested page, >= 1)

    Returns:
        PageInfo: 계산된 메타데이터 (Computed metadata)

    Raises:
        InvalidArgumentError: 인자가 허용 범위를 벗어난 경우 (Argument out of range)
    """
    if page_size <= 0:
        raise InvalidArgumentError(
            "page_size must be greater than 0", details={"page_size": page_size}
        )
    if page_number < 1:
        raise InvalidArgumentError(
            "page_number must be at least 1", details={"page_number": page_number}
        )
    if total_items < 0:
        raise InvalidArgumentError(
            "total_items must not be negative", details={"total_items": total_items}
        )

    # 정수 올림 나눗셈 — Integer ceiling division, exact for any size
    total_pages: int = -(-total_items // page_size)

    return PageInfo(
        total_items=total_items,
        total_pages=total_pages,
        page_size=page_size,
        page_number=page_number,
        has_previous_page=page_number > 1,
        has_next_page=page_number < total_pages,
        is_first_page=page_number == 1,
        is_last_page=page_number >= total_pages,
        first_item_on_page=(page_number - 1) * page_size + 1,
        last_item_on_page=min(page_number * page_size, total_items),
    )


def build_paged_result(items: Sequence[T], page_info: PageInfo) -> PagedResult[T]:
    """항목 목록과 메타데이터를 PagedResult로 묶습니다.

    Combine a page of items with its metadata.
    """
    return PagedResult(items=list(items), **page_info.model_dump())


def _offset(page_info: PageInfo) -> int | None:
    """OFFSET 값 — 무제한 페이지의 첫 페이지는 None, 이후 페이지는 -1 (빈 페이지).

    Return the OFFSET for a page, None when no slicing is needed,
    or -1 when the page is known to be empty without querying.
    """
    if page_info.page_size == UNBOUNDED_PAGE_SIZE:
        return None if page_info.page_number == 1 else -1
    return (page_info.page_number - 1) * page_info.page_size


async def paginate(
    db: AsyncSession,
    query: Select[Any],
    page_number: int = 1,
    page_size: int = UNBOUNDED_PAGE_SIZE,
    count_query: Select[Any] | None = None,
    unique: bool = False,
) -> PagedResult[Any]:
    """SQLAlchemy 쿼리에 대한 페이지네이션을 수행합니다.

    Execute a paginated SQLAlchemy query, returning items and metadata.
    Runs two queries: one for the total count (via subquery) and one for
    the actual page of results with OFFSET/LIMIT. Paging arguments are
    validated before either query runs.

    Args:
        db: 비동기 DB 세션 (Async database session)
        query: SQLAlchemy Select 쿼리 (Base query to paginate)
        page_number: 요청 페이지 번호, 1부터 시작 (Page number, 1-indexed, default: 1)
        page_size: 페이지당 항목 수 (Items per page, default: unbounded)
        count_query: 개수 쿼리 기준, 기본은 query (Query to count; defaults to query)
        unique: 엔티티 중복 제거 여부, 컬렉션 joinedload 시 필요
                (De-duplicate entities; required for joined collection loads)

    Returns:
        PagedResult: 페이지 항목과 메타데이터 (Page items and metadata)
    """
    # 쿼리 실행 전 인자 검증 — Validate paging arguments before any query runs
    calculate_page_info(0, page_size, page_number)

    # 전체 개수 조회 — 서브쿼리로 감싸서 COUNT 실행 (Count total via subquery)
    base = count_query if count_query is not None else query
    total: int = (await db.execute(select(func.count()).select_from(base.subquery()))).scalar() or 0
    page_info = calculate_page_info(total, page_size, page_number)

    # 페이지 항목 조회 — OFFSET/LIMIT 적용 (Fetch page items with offset/limit)
    offset = _offset(page_info)
    if offset == -1:
        return build_paged_result([], page_info)
    if offset is not None:
        query = query.offset(offset).limit(page_size)
    scalars = (await db.execute(query)).scalars()
    items: Sequence[Any] = scalars.unique().all() if unique else scalars.all()

    return build_paged_result(items, page_info)


def paginate_sync(
    db: Session,
    query: Select[Any],
    page_number: int = 1,
    page_size: int = UNBOUNDED_PAGE_SIZE,
    count_query: Select[Any] | None = None,
    unique: bool = False,
) -> PagedResult[Any]:
    """동기 세션용 paginate.

    Synchronous counterpart of paginate() with the same contract.
    """
    calculate_page_info(0, page_size, page_number)

    base = count_query if count_query is not None else query
    total: int = db.execute(select(func.count()).select_from(base.subquery())).scalar() or 0
    page_info = calculate_page_info(total, page_size, page_number)

    offset = _offset(page_info)
    if offset == -1:
        return build_paged_result([], page_info)
    if offset is not None:
        query = query.offset(offset).limit(page_size)
    scalars = db.execute(query).scalars()
    items: Sequence[Any] = scalars.unique().all() if unique else scalars.all()

    return build_paged_result(items, page_info)


def to_paged_result(
    source: Iterable[T],
    page_number: int = 1,
    page_size: int = UNBOUNDED_PAGE_SIZE,
) -> PagedResult[T]:
    """메모리 내 시퀀스를 페이지네이션합니다.

    Paginate an in-memory iterable with the same metadata rules as paginate().
    """
    materialized: list[T] = list(source)
    page_info = calculate_page_info(len(materialized), page_size, page_number)

    start: int = (page_number - 1) * page_size
    return build_paged_result(materialized[start:start + page_size], page_info)
