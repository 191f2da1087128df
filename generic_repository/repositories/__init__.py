"""레포지토리 패키지 — 데이터베이스 쿼리 계층.

Repository package — Database query layer.
BaseRepository (async) and SyncRepository share one QueryComposer and
one change counter. Subclass either to add model-specific queries.
"""

from generic_repository.repositories.base import BaseRepository
from generic_repository.repositories.query import QueryComposer, QueryOptions
from generic_repository.repositories.sync_repository import SyncRepository

__all__ = ["BaseRepository", "QueryComposer", "QueryOptions", "SyncRepository"]
