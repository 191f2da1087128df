"""Axiom 저장 이벤트 로깅 테스트.

Save-event logging tests — payload shape, error capture, and ingestion
failures that must never break a save.
"""

import logging
from unittest.mock import ANY, MagicMock, patch

import pytest

from generic_repository.middleware import axiom_logging
from generic_repository.middleware.axiom_logging import AxiomSaveLogger, SaveEvent, configure_logging
from generic_repository.repositories.base import BaseRepository
from tests.models import Author


class TestSaveEvent:
    """이벤트 페이로드 테스트."""

    def test_models_sorted_and_unique(self):
        event = SaveEvent("save_changes", ["Book", "Author", "Book"])
        assert event.models == ["Author", "Book"]

    def test_optional_fields_omitted(self):
        payload = SaveEvent("save_changes", ["Author"]).as_dict()
        assert "changes" not in payload
        assert "error" not in payload


class TestAxiomSaveLogger:
    """Axiom 전송 테스트."""

    def test_ingest_on_success(self):
        client = MagicMock()
        save_logger = AxiomSaveLogger(client, "saves")
        with save_logger.track_sync("save_changes", ["Author"]) as save_event:
            save_event.changes = 3

        client.ingest_events.assert_called_once_with(
            "saves",
            [{"operation": "save_changes", "models": ["Author"], "duration_ms": ANY, "changes": 3}],
        )

    def test_error_recorded_and_reraised(self):
        """예외는 이벤트에 기록되고 그대로 전파."""
        client = MagicMock()
        save_logger = AxiomSaveLogger(client, "saves")
        with pytest.raises(ValueError, match="boom"):
            with save_logger.track_sync("save_changes", ["Author"]):
                raise ValueError("boom")

        payload = client.ingest_events.call_args.args[1][0]
        assert payload["error"] == "ValueError: boom"

    def test_ingest_failure_is_logged(self, caplog):
        """Axiom 전송 실패는 경고만 남김."""
        client = MagicMock()
        client.ingest_events.side_effect = RuntimeError("axiom down")
        save_logger = AxiomSaveLogger(client, "saves")

        with caplog.at_level(logging.WARNING, logger="generic_repository.middleware.axiom_logging"):
            with save_logger.track_sync("save_changes", ["Author"]) as save_event:
                save_event.changes = 0

        assert "Failed to send save event to Axiom" in caplog.text

    def test_disabled_without_client(self, caplog):
        save_logger = AxiomSaveLogger()
        assert save_logger.enabled is False
        with caplog.at_level(logging.INFO, logger="generic_repository.middleware.axiom_logging"):
            with save_logger.track_sync("save_changes", ["Author"]) as save_event:
                save_event.changes = 2
        assert "persisted 2 change(s)" in caplog.text

    async def test_repository_save_is_logged(self, db):
        client = MagicMock()
        repo = BaseRepository(db, Author, save_logger=AxiomSaveLogger(client, "saves"))
        await repo.add(Author(name="Logged"))

        payload = client.ingest_events.call_args.args[1][0]
        assert payload["models"] == ["Author"]
        assert payload["changes"] == 1


class TestFromSettings:
    """설정 기반 생성 테스트."""

    def test_enabled_with_token_and_dataset(self, monkeypatch):
        monkeypatch.setattr(axiom_logging.settings, "AXIOM_API_TOKEN", "xaat-test")
        monkeypatch.setattr(axiom_logging.settings, "AXIOM_DATASET", "saves")
        with patch("generic_repository.middleware.axiom_logging.AxiomClient") as client_cls:
            save_logger = AxiomSaveLogger.from_settings()
        client_cls.assert_called_once_with(token="xaat-test")
        assert save_logger.enabled is True

    def test_disabled_without_dataset(self, monkeypatch):
        monkeypatch.setattr(axiom_logging.settings, "AXIOM_API_TOKEN", "xaat-test")
        monkeypatch.setattr(axiom_logging.settings, "AXIOM_DATASET", "")
        assert AxiomSaveLogger.from_settings().enabled is False


class TestConfigureLogging:
    def test_sets_package_level(self):
        package_logger = logging.getLogger("generic_repository")
        previous = package_logger.level
        try:
            assert configure_logging("DEBUG").level == logging.DEBUG
        finally:
            package_logger.setLevel(previous)
