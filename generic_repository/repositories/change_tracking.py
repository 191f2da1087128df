"""세션 변경 건수 집계 — save_changes의 반환값 계산용.

Session change counting, used to compute the return value of save_changes.
SQLAlchemy's commit does not report how many entities it wrote, so an
after_flush listener adds up inserted, modified and deleted objects for
every flush (explicit or autoflush) since the last save. A commit or
rollback on the session discards the count, so rows the caller committed
directly are never reported by a later save.
"""

import logging
from typing import Any

from sqlalchemy import event
from sqlalchemy.orm import Session

logger = logging.getLogger(__name__)

# session.info 키 — Keys stored in Session.info
_COUNT_KEY: str = "generic_repository.change_count"
_INSTALLED_KEY: str = "generic_repository.change_tracking"


def _count_flushed(session: Session, flush_context: Any) -> None:
    # after_flush 시점에도 new/dirty/deleted는 flush 이전 상태를 유지
    # new/dirty/deleted still hold the pre-flush state inside after_flush
    modified = sum(1 for obj in session.dirty if session.is_modified(obj))
    flushed = len(session.new) + modified + len(session.deleted)
    session.info[_COUNT_KEY] = session.info.get(_COUNT_KEY, 0) + flushed


def _reset(session: Session, *args: Any) -> None:
    session.info[_COUNT_KEY] = 0


def track_changes(session: Session) -> Session:
    """세션에 변경 집계 리스너를 설치합니다. 여러 번 호출해도 한 번만 설치됩니다.

    Install the change-count listeners on a (sync) Session. Idempotent.
    For an AsyncSession pass session.sync_session.
    """
    if not session.info.get(_INSTALLED_KEY):
        event.listen(session, "after_flush", _count_flushed)
        event.listen(session, "after_commit", _reset)
        event.listen(session, "after_rollback", _reset)
        session.info[_INSTALLED_KEY] = True
        session.info[_COUNT_KEY] = 0
        logger.debug("Change tracking installed on session %s", id(session))
    return session


def pop_change_count(session: Session) -> int:
    """마지막 저장 이후 flush된 변경 건수를 반환하고 0으로 초기화합니다."""
    count: int = session.info.get(_COUNT_KEY, 0)
    session.info[_COUNT_KEY] = 0
    return count
