"""Logging utilities for graph building runs."""

import logging
import sys
from pathlib import Path
from datetime import datetime
from typing import List, Optional

from .file_utils import ensure_dir


LOG_FORMAT = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"
DATE_FORMAT = "%Y-%m-%d %H:%M:%S"


def setup_logger(
    name: str = "docgraph",
    log_file: Optional[str] = None,
    level: str = "INFO",
    console: bool = True,
) -> logging.Logger:
    """
    Configure the named logger for a graph building run.

    Library modules log through ``logging.getLogger(__name__)``, so setting up
    the ``docgraph`` logger once covers every module below it. Calling this
    again replaces the handlers of an earlier call, closing any open log file.

    Raises:
        ValueError: Unknown level name
    """
    numeric_level = logging.getLevelName(level.upper())
    if not isinstance(numeric_level, int):
        raise ValueError(f"Unknown log level: {level}")

    logger = logging.getLogger(name)
    logger.setLevel(numeric_level)
    for handler in list(logger.handlers):
        logger.removeHandler(handler)
        handler.close()

    handlers: List[logging.Handler] = []
    if console:
        handlers.append(logging.StreamHandler(sys.stdout))
    if log_file:
        ensure_dir(Path(log_file).parent)
        handlers.append(logging.FileHandler(log_file, encoding="utf-8"))

    formatter = logging.Formatter(LOG_FORMAT, datefmt=DATE_FORMAT)
    for handler in handlers:
        handler.setFormatter(formatter)
        logger.addHandler(handler)
    return logger


class PipelineLogger:
    """Logger for graph pipeline runs with metrics tracking."""

    def __init__(
        self,
        name: str = "docgraph",
        log_dir: Optional[str] = "./logs",
        level: str = "INFO",
        console: bool = True,
    ):
        log_file = None
        if log_dir:
            self.log_dir = Path(log_dir)
            self.log_dir.mkdir(parents=True, exist_ok=True)
            timestamp = datetime.now().strftime("%Y%m%d_%H%M%S")
            log_file = str(self.log_dir / f"{name}_{timestamp}.log")
        else:
            self.log_dir = None

        self.logger = setup_logger(name, log_file, level=level, console=console)

        self.metrics = {
            "docs_processed": 0,
            "docs_failed": 0,
            "nodes_created": 0,
            "edges_created": 0,
            "references_detected": 0,
            "references_resolved": 0,
            "errors": []
        }

    def info(self, msg: str) -> None:
        self.logger.info(msg)

    def warning(self, msg: str) -> None:
        self.logger.warning(msg)

    def error(self, msg: str, exc: Optional[Exception] = None) -> None:
        self.logger.error(msg)
        self.metrics["errors"].append({
            "message": msg,
            "exception": str(exc) if exc else None,
            "timestamp": datetime.now().isoformat()
        })

    def debug(self, msg: str) -> None:
        self.logger.debug(msg)

    def update_metric(self, key: str, value: int = 1, increment: bool = True) -> None:
        """Update a metric value."""
        if key in self.metrics:
            if increment:
                self.metrics[key] += value
            else:
                self.metrics[key] = value

    def get_summary(self) -> dict:
        """Get metrics summary."""
        attempted = self.metrics["docs_processed"] + self.metrics["docs_failed"]
        resolved_rate = (
            self.metrics["references_resolved"] / self.metrics["references_detected"]
            if self.metrics["references_detected"] > 0
            else 0
        )
        return {
            **self.metrics,
            "success_rate": (
                self.metrics["docs_processed"] / attempted if attempted > 0 else 0
            ),
            "resolution_rate": resolved_rate,
        }

    def log_summary(self) -> None:
        """Log final metrics summary."""
        summary = self.get_summary()
        self.info("=" * 60)
        self.info("Graph Pipeline Summary")
        self.info("=" * 60)
        self.info(f"Documents processed: {summary['docs_processed']}")
        self.info(f"Documents failed: {summary['docs_failed']}")
        self.info(f"Success rate: {summary['success_rate']:.2%}")
        self.info(f"Nodes created: {summary['nodes_created']}")
        self.info(f"Edges created: {summary['edges_created']}")
        self.info(f"References detected: {summary['references_detected']}")
        self.info(f"References resolved: {summary['references_resolved']}")
        self.info(f"Resolution rate: {summary['resolution_rate']:.2%}")
        self.info(f"Total errors: {len(summary['errors'])}")
        self.info("=" * 60)
