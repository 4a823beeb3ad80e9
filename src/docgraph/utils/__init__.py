"""Utility modules for the document graph library."""

from .config import Config
from .logging_utils import setup_logger, PipelineLogger
from .file_utils import ensure_dir, safe_json_dump, safe_json_load
from .errors import (
    DocGraphError,
    GraphValidationError,
    GraphStructureError,
    GraphStateError,
    ReferenceAnalysisError,
)

__all__ = [
    "Config",
    "setup_logger",
    "PipelineLogger",
    "ensure_dir",
    "safe_json_dump",
    "safe_json_load",
    "DocGraphError",
    "GraphValidationError",
    "GraphStructureError",
    "GraphStateError",
    "ReferenceAnalysisError",
]
