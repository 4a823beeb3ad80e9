"""Tests for run logging and metrics."""

import logging

import pytest

from docgraph.utils.logging_utils import PipelineLogger, setup_logger


class TestSetupLogger:
    def test_repeated_setup_replaces_handlers(self, tmp_path):
        log_file = tmp_path / "logs" / "run.log"
        setup_logger("docgraph.test_setup", str(log_file), level="DEBUG")
        logger = setup_logger("docgraph.test_setup", str(log_file), level="debug")

        assert logger.level == logging.DEBUG
        assert len(logger.handlers) == 2

        logger.debug("graph built")
        for handler in logger.handlers:
            handler.flush()
        assert "[DEBUG] docgraph.test_setup: graph built" in log_file.read_text(encoding="utf-8")

    def test_no_handlers_without_console_or_file(self):
        logger = setup_logger("docgraph.test_quiet", console=False)
        assert logger.handlers == []

    def test_unknown_level(self):
        with pytest.raises(ValueError):
            setup_logger("docgraph.test_level", level="chatty", console=False)


class TestPipelineLogger:
    def test_summary_rates(self):
        run_logger = PipelineLogger("docgraph.test_metrics", log_dir=None, console=False)
        run_logger.update_metric("docs_processed", 3)
        run_logger.update_metric("docs_failed")
        run_logger.update_metric("references_detected", 4)
        run_logger.update_metric("references_resolved", 3)
        run_logger.update_metric("unknown_metric")
        run_logger.error("save failed", exc=OSError("disk full"))

        summary = run_logger.get_summary()

        assert summary["success_rate"] == 0.75
        assert summary["resolution_rate"] == 0.75
        assert "unknown_metric" not in summary
        assert summary["errors"][0]["exception"] == "disk full"

    def test_log_file_in_log_dir(self, tmp_path):
        run_logger = PipelineLogger("docgraph.test_file", log_dir=str(tmp_path), console=False)

        assert len(list(tmp_path.glob("docgraph.test_file_*.log"))) == 1
        assert run_logger.get_summary()["success_rate"] == 0
