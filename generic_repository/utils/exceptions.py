"""레포지토리 예외 클래스 모듈.

Repository exception classes module.
Only caller mistakes are raised from this layer. Provider failures
(sqlalchemy.exc.SQLAlchemyError) propagate unchanged, and a lookup with
no match is reported as None rather than an exception.

Usage:
    from generic_repository.utils.exceptions import InvalidArgumentError
    raise InvalidArgumentError("entity must not be None", details={"argument": "entity"})
"""

from typing import Any


class RepositoryError(Exception):
    """레포지토리 계층 기본 예외.

    Base exception for all errors raised by the repository layer.

    Args:
        message: 오류 메시지 (Error message)
        details: 추가 진단 정보 (Additional diagnostic details)
    """

    def __init__(self, message: str, details: dict[str, Any] | None = None) -> None:
        self.message = message
        self.details = details or {}
        super().__init__(self.message)


class InvalidArgumentError(RepositoryError, ValueError):
    """필수 인자 누락 또는 잘못된 페이지 인자 예외.

    Raised when a required argument (entity, predicate, collection,
    group key) is None, or when paging arguments are out of range
    (page_size <= 0, page_number < 1, total_items < 0).
    Always raised before any database call is attempted.
    """

    pass


def require(value: Any, name: str) -> Any:
    """값이 None이면 InvalidArgumentError를 발생시킵니다.

    Return value unchanged, or raise InvalidArgumentError if it is None.

    Args:
        value: 검사할 값 (Value to check)
        name: 인자 이름, 오류 메시지에 사용 (Argument name for the error message)
    """
    if value is None:
        raise InvalidArgumentError(f"{name} must not be None", details={"argument": name})
    return value


def require_items(values: Any, name: str) -> list[Any]:
    """컬렉션과 각 원소가 None이 아닌지 확인하고 리스트로 반환합니다.

    Validate a collection argument and each of its elements, returning a list.
    """
    items = list(require(values, name))
    for index, item in enumerate(items):
        if item is None:
            raise InvalidArgumentError(
                f"{name}[{index}] must not be None",
                details={"argument": name, "index": index},
            )
    return items
