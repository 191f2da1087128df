"""SQLAlchemy 제네릭 레포지토리와 작업 단위.

Generic repository and unit of work for SQLAlchemy 2.0.
"""

from generic_repository.repositories import BaseRepository, QueryComposer, QueryOptions, SyncRepository
from generic_repository.unit_of_work import SyncUnitOfWork, UnitOfWork, get_unit_of_work
from generic_repository.utils.exceptions import InvalidArgumentError, RepositoryError
from generic_repository.utils.pagination import (
    UNBOUNDED_PAGE_SIZE,
    PagedResult,
    PageInfo,
    calculate_page_info,
    to_paged_result,
)

__all__ = [
    "BaseRepository",
    "InvalidArgumentError",
    "PageInfo",
    "PagedResult",
    "QueryComposer",
    "QueryOptions",
    "RepositoryError",
    "SyncRepository",
    "SyncUnitOfWork",
    "UNBOUNDED_PAGE_SIZE",
    "UnitOfWork",
    "calculate_page_info",
    "get_unit_of_work",
    "to_paged_result",
]
