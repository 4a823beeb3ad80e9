"""Configuration management module."""

import logging
import yaml
from pathlib import Path
from typing import Any, Dict, Optional
from dataclasses import dataclass

logger = logging.getLogger(__name__)


@dataclass
class BuilderConfig:
    """Graph builder configuration."""
    heading_height_threshold: float = 14.0
    line_height: float = 14.0
    line_start_tolerance: float = 2.0
    max_heading_length: int = 100
    max_section_paragraphs: int = 5
    follows_weight: float = 0.8
    hierarchy_weight: float = 0.9


@dataclass
class MatcherConfig:
    """Reference matcher and detection configuration."""
    analysis_context_window: int = 100
    max_text_length: int = 100000
    max_references_per_text: int = 100


@dataclass
class ResolverConfig:
    """Reference resolution configuration."""
    fuzzy_threshold: float = 0.6
    spatial_distance_scale: float = 1000.0
    spatial_min_confidence: float = 0.5
    fallback_confidence: float = 0.3
    fallback_candidates: int = 3
    min_link_confidence: float = 0.5


@dataclass
class ValidationConfig:
    """Quality validation thresholds."""
    min_precision: float = 0.6
    min_recall: float = 0.7
    min_average_confidence: float = 0.5
    min_connectivity: float = 0.3
    max_edge_density: float = 2.0
    min_overall_score: float = 0.7


class Config:
    """Main configuration class."""

    def __init__(self, config_path: Optional[str] = "configs/config.yaml"):
        self.config_path = Path(config_path) if config_path else None
        self._raw_config: Dict[str, Any] = {}
        self._load_config()

    @classmethod
    def from_dict(cls, raw: Dict[str, Any]) -> "Config":
        """Build a configuration from an in-memory mapping."""
        config = cls(config_path=None)
        config._raw_config = dict(raw)
        return config

    def _load_config(self) -> None:
        """Load configuration from YAML file."""
        if self.config_path is None:
            self._raw_config = {}
        elif self.config_path.exists():
            with open(self.config_path, 'r', encoding='utf-8') as f:
                self._raw_config = yaml.safe_load(f) or {}
        else:
            logger.warning(f"Config file {self.config_path} not found, using defaults")
            self._raw_config = {}

    def reload(self) -> None:
        """Reload configuration from file."""
        self._load_config()

    @property
    def builder(self) -> BuilderConfig:
        """Get graph builder configuration."""
        cfg = self._raw_config.get("builder", {})
        return BuilderConfig(
            heading_height_threshold=cfg.get("heading_height_threshold", 14.0),
            line_height=cfg.get("line_height", 14.0),
            line_start_tolerance=cfg.get("line_start_tolerance", 2.0),
            max_heading_length=cfg.get("max_heading_length", 100),
            max_section_paragraphs=cfg.get("max_section_paragraphs", 5),
            follows_weight=cfg.get("follows_weight", 0.8),
            hierarchy_weight=cfg.get("hierarchy_weight", 0.9),
        )

    @property
    def matcher(self) -> MatcherConfig:
        """Get reference matcher configuration."""
        cfg = self._raw_config.get("matcher", {})
        return MatcherConfig(
            analysis_context_window=cfg.get("analysis_context_window", 100),
            max_text_length=cfg.get("max_text_length", 100000),
            max_references_per_text=cfg.get("max_references_per_text", 100),
        )

    @property
    def resolver(self) -> ResolverConfig:
        """Get reference resolution configuration."""
        cfg = self._raw_config.get("resolver", {})
        return ResolverConfig(
            fuzzy_threshold=cfg.get("fuzzy_threshold", 0.6),
            spatial_distance_scale=cfg.get("spatial_distance_scale", 1000.0),
            spatial_min_confidence=cfg.get("spatial_min_confidence", 0.5),
            fallback_confidence=cfg.get("fallback_confidence", 0.3),
            fallback_candidates=cfg.get("fallback_candidates", 3),
            min_link_confidence=cfg.get("min_link_confidence", 0.5),
        )

    @property
    def validation(self) -> ValidationConfig:
        """Get quality validation configuration."""
        cfg = self._raw_config.get("validation", {})
        return ValidationConfig(
            min_precision=cfg.get("min_precision", 0.6),
            min_recall=cfg.get("min_recall", 0.7),
            min_average_confidence=cfg.get("min_average_confidence", 0.5),
            min_connectivity=cfg.get("min_connectivity", 0.3),
            max_edge_density=cfg.get("max_edge_density", 2.0),
            min_overall_score=cfg.get("min_overall_score", 0.7),
        )

    @property
    def embeddings(self) -> Dict[str, Any]:
        """Get optional embedding configuration."""
        defaults = {
            "enabled": False,
            "model": "sentence-transformers/all-MiniLM-L6-v2",
        }
        return {**defaults, **self._raw_config.get("embeddings", {})}

    @property
    def paths(self) -> Dict[str, str]:
        """Get path configuration."""
        defaults = {
            "parsed_input": "./data/parsed",
            "graph_output": "./data/graphs",
            "report_output": "./data/reports",
            "log_dir": "./logs"
        }
        return {**defaults, **self._raw_config.get("paths", {})}

    @property
    def logging(self) -> Dict[str, Any]:
        """Get logging configuration."""
        defaults = {
            "level": "INFO",
            "console": True,
        }
        return {**defaults, **self._raw_config.get("logging", {})}

    def get(self, key: str, default: Any = None) -> Any:
        """Get raw configuration value."""
        return self._raw_config.get(key, default)

    def __getitem__(self, key: str) -> Any:
        """Dictionary-style access to configuration."""
        return self._raw_config[key]
