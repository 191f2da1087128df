"""Axiom 저장 이벤트 로깅.

Axiom save-event logging.
Wraps every save_changes call and sends a structured event to Axiom.
Logs: operation, model names, change count, duration, error reason.
Also mirrors each event to the standard library logger.
"""

import logging
import time
from contextlib import asynccontextmanager, contextmanager
from typing import Any, AsyncIterator, Iterable, Iterator

from axiom_py import Client as AxiomClient

from generic_repository.config import settings

logger = logging.getLogger(__name__)


class SaveEvent:
    """저장 한 번에 대한 로그 이벤트 빌더.

    Mutable holder filled in while a save runs. The caller sets
    `changes` once the flush has been counted.
    """

    def __init__(self, operation: str, models: Iterable[str]) -> None:
        self.operation: str = operation
        self.models: list[str] = sorted(set(models))
        self.changes: int | None = None
        self.error: str | None = None
        self.duration_ms: float = 0.0

    def as_dict(self) -> dict[str, Any]:
        event: dict[str, Any] = {
            "operation": self.operation,
            "models": self.models,
            "duration_ms": self.duration_ms,
        }
        if self.changes is not None:
            event["changes"] = self.changes
        if self.error:
            event["error"] = self.error
        return event


class AxiomSaveLogger:
    """save_changes 호출을 Axiom에 로깅하는 래퍼.

    Logs every save to the package logger and, when configured, to an
    Axiom dataset. Without a client it only writes to the package logger.
    """

    def __init__(self, client: AxiomClient | None = None, dataset: str = "") -> None:
        self._client: AxiomClient | None = client
        self._dataset: str = dataset

    @classmethod
    def from_settings(cls) -> "AxiomSaveLogger":
        """설정값으로 생성 — Axiom 미설정시 로컬 로거만 사용."""
        if settings.AXIOM_API_TOKEN and settings.AXIOM_DATASET:
            return cls(AxiomClient(token=settings.AXIOM_API_TOKEN), settings.AXIOM_DATASET)
        return cls()

    @property
    def enabled(self) -> bool:
        return self._client is not None

    @asynccontextmanager
    async def track(self, operation: str, models: Iterable[str]) -> AsyncIterator[SaveEvent]:
        """비동기 저장 구간을 측정하고 종료 시 이벤트를 전송합니다."""
        with self.track_sync(operation, models) as save_event:
            yield save_event

    @contextmanager
    def track_sync(self, operation: str, models: Iterable[str]) -> Iterator[SaveEvent]:
        """저장 구간을 측정하고 종료 시 이벤트를 전송합니다. 예외는 그대로 전파됩니다.

        Time the enclosed save and emit one event when it finishes.
        Exceptions are recorded on the event and re-raised.
        """
        save_event = SaveEvent(operation, models)
        start_time = time.perf_counter()
        try:
            yield save_event
        except Exception as exc:
            save_event.error = f"{type(exc).__name__}: {str(exc)[:300]}"
            raise
        finally:
            save_event.duration_ms = round((time.perf_counter() - start_time) * 1000, 2)
            self.emit(save_event)

    def emit(self, save_event: SaveEvent) -> None:
        payload = save_event.as_dict()
        if save_event.error:
            logger.error("%s failed for %s: %s", save_event.operation, save_event.models, save_event.error)
        else:
            logger.info(
                "%s persisted %s change(s) for %s in %sms",
                save_event.operation,
                save_event.changes,
                save_event.models,
                save_event.duration_ms,
            )

        if not self._client:
            return

        # Axiom 전송 실패가 저장 결과에 영향주지 않도록 — Never break a save on log failure
        try:
            self._client.ingest_events(self._dataset, [payload])
        except Exception as exc:
            logger.warning("Failed to send save event to Axiom: %s", exc)


def configure_logging(level: str | int | None = None) -> logging.Logger:
    """패키지 로거 레벨을 설정합니다. 기본값은 settings.LOG_LEVEL."""
    package_logger = logging.getLogger("generic_repository")
    package_logger.setLevel(level if level is not None else settings.LOG_LEVEL.upper())
    return package_logger
