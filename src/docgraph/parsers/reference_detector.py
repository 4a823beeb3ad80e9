"""
Reference Detection Service

Node-level wrapper around the ReferenceMatcher: picks the text to scan out of
a graph node, bounds its size, groups the detected references by type and
summarises the result.
"""

import logging
import time
from collections import Counter
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, Iterable, List, Optional, Union

from ..graph.models import GraphNode, NodeType
from ..utils.config import MatcherConfig
from ..utils.errors import ReferenceAnalysisError
from .reference_matcher import ReferenceMatcher
from .reference_patterns import DetectedReference, ReferenceType

logger = logging.getLogger(__name__)

TEXT_NODE_TYPES = frozenset({
    NodeType.PARAGRAPH,
    NodeType.SECTION,
    NodeType.CODE,
    NodeType.LIST,
    NodeType.METADATA,
})

# Which reference types can point at a given node type.
TARGET_REFERENCE_TYPES = {
    NodeType.SECTION: {ReferenceType.SECTION, ReferenceType.CROSS_REFERENCE},
    NodeType.IMAGE: {ReferenceType.FIGURE},
    NodeType.TABLE: {ReferenceType.TABLE},
    NodeType.PARAGRAPH: {ReferenceType.PAGE, ReferenceType.CROSS_REFERENCE},
}


@dataclass
class ReferenceAnalysis:
    """Detected references for one node (or one free-standing text)."""
    references: List[DetectedReference]
    references_by_type: Dict[str, List[DetectedReference]]
    stats: Dict[str, Any]
    metadata: Dict[str, Any]
    source_node: Optional[GraphNode] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "source_node_id": self.source_node.id if self.source_node else None,
            "references": [r.to_dict() for r in self.references],
            "stats": self.stats,
            "metadata": self.metadata,
        }


def is_text_node(node: GraphNode) -> bool:
    return node.type in TEXT_NODE_TYPES


class ReferenceDetector:
    """Detects references inside graph nodes and raw text."""

    def __init__(
        self,
        config: Optional[MatcherConfig] = None,
        matcher: Optional[ReferenceMatcher] = None,
    ):
        self.config = config or MatcherConfig()
        self.matcher = matcher or ReferenceMatcher()

    def analyze_node(self, node: GraphNode) -> ReferenceAnalysis:
        """
        Analyze one text-bearing node.

        Raises:
            ReferenceAnalysisError: the node type carries no analyzable text
        """
        if not is_text_node(node):
            raise ReferenceAnalysisError(node.id, node.type.value)

        logger.debug(
            f"Analyzing node {node.id} ({node.type.value}, {len(node.content)} chars)"
        )
        analysis = self._analyze(self._extract_text(node), node.id)
        analysis.source_node = node
        return analysis

    def analyze_nodes(self, nodes: Iterable[GraphNode]) -> List[ReferenceAnalysis]:
        """Analyze every text node; non-text nodes and failures are skipped."""
        analyses = []
        for node in nodes:
            if not is_text_node(node):
                continue
            try:
                analyses.append(self.analyze_node(node))
            except Exception as e:
                logger.warning(f"Failed to analyze node {node.id}: {e}")
        return analyses

    def analyze_text(self, text: str, source_id: str = "unknown") -> ReferenceAnalysis:
        """Analyze free-standing text that is not attached to a node."""
        logger.debug(f"Analyzing text from {source_id} ({len(text)} chars)")
        return self._analyze(text, source_id)

    # ------------------------------------------------------------------

    def _extract_text(self, node: GraphNode) -> str:
        text = node.content
        if node.type == NodeType.METADATA:
            props = node.properties
            if isinstance(props.get("value"), str):
                text = props["value"]
            elif isinstance(props.get("raw_text"), str):
                text = props["raw_text"]
        return text or ""

    def _analyze(self, text: str, source_id: str) -> ReferenceAnalysis:
        start_time = time.perf_counter()

        truncated = False
        limit = self.config.max_text_length
        if limit and len(text) > limit:
            logger.warning(
                f"Text from {source_id} is {len(text)} chars; analyzing the first {limit}"
            )
            text = text[:limit]
            truncated = True

        result = self.matcher.find_references(text, self.config.analysis_context_window)
        references = result.references
        check = self.matcher.validate_results(result, self.config.max_references_per_text)
        for issue in check["issues"]:
            logger.warning(f"{source_id}: {issue}")
        by_type = self.group_by_type(references)

        processing_time = (time.perf_counter() - start_time) * 1000
        analysis = ReferenceAnalysis(
            references=references,
            references_by_type=by_type,
            stats=self._compute_stats(references, by_type),
            metadata={
                "processed_at": datetime.now(timezone.utc).isoformat(),
                "text_length": len(text),
                "processing_time": processing_time,
                "truncated": truncated,
                "match_issues": check["issues"],
            },
        )
        logger.debug(
            f"Analysis of {source_id}: {len(references)} references, "
            f"{analysis.stats['unique_targets']} unique targets in {processing_time:.1f}ms"
        )
        return analysis

    @staticmethod
    def group_by_type(references: Iterable[DetectedReference]) -> Dict[str, List[DetectedReference]]:
        groups: Dict[str, List[DetectedReference]] = {t.value: [] for t in ReferenceType}
        for ref in references:
            groups[ref.type.value].append(ref)
        return groups

    @staticmethod
    def _compute_stats(
        references: List[DetectedReference],
        by_type: Dict[str, List[DetectedReference]],
    ) -> Dict[str, Any]:
        confidences = [r.confidence for r in references]
        return {
            "total_references": len(references),
            "unique_targets": len({r.target for r in references}),
            "confidence": {
                "average": sum(confidences) / len(confidences) if confidences else 0.0,
                "min": min(confidences) if confidences else 0.0,
                "max": max(confidences) if confidences else 0.0,
            },
            "types": {t: len(refs) for t, refs in by_type.items()},
        }

    # ------------------------------------------------------------------
    # Reporting helpers
    # ------------------------------------------------------------------

    @staticmethod
    def filter_references_by_target_type(
        references: Iterable[DetectedReference],
        target_type: Union[NodeType, str],
    ) -> List[DetectedReference]:
        """References that could plausibly point at a node of ``target_type``."""
        if not isinstance(target_type, NodeType):
            target_type = NodeType(target_type)
        allowed = TARGET_REFERENCE_TYPES.get(target_type)
        if allowed is None:
            return list(references)
        return [r for r in references if r.type in allowed]

    @staticmethod
    def validate_analysis(analysis: ReferenceAnalysis) -> Dict[str, Any]:
        issues: List[str] = []
        warnings: List[str] = []
        text_length = analysis.metadata["text_length"]
        stats = analysis.stats

        if text_length == 0:
            issues.append("Cannot analyze empty text")
        if stats["total_references"] > text_length / 10:
            warnings.append("High reference density - possible false positives")
        if stats["total_references"] and stats["confidence"]["average"] < 0.4:
            warnings.append("Low average confidence in reference detection")
        if stats["total_references"] and stats["confidence"]["min"] < 0.2:
            warnings.append("Some references have very low confidence")
        if analysis.metadata["processing_time"] > 5000:
            warnings.append("Reference analysis took unusually long")
        if stats["total_references"] == 0 and text_length > 100:
            warnings.append("No references detected in substantial text")
        if analysis.metadata.get("truncated"):
            warnings.append("Text was truncated before analysis")

        return {"is_valid": not issues, "issues": issues, "warnings": warnings}

    @staticmethod
    def get_summary_stats(analyses: List[ReferenceAnalysis]) -> Dict[str, Any]:
        total_references = sum(a.stats["total_references"] for a in analyses)
        type_counts: Counter = Counter()
        for analysis in analyses:
            type_counts.update(analysis.stats["types"])
        most_common = [t for t, c in type_counts.most_common(1) if c > 0]

        count = len(analyses)
        return {
            "total_nodes_analyzed": count,
            "total_references_found": total_references,
            "average_references_per_node": total_references / count if count else 0.0,
            "most_common_reference_type": most_common[0] if most_common else None,
            "average_confidence": (
                sum(a.stats["confidence"]["average"] for a in analyses) / count
                if count else 0.0
            ),
            "total_processing_time": sum(a.metadata["processing_time"] for a in analyses),
        }
