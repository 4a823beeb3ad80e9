"""
Reference Validation Service

Scores how well references were detected and resolved in a built graph, and
turns threshold breaches into categorised issues and recommendations.

Without ground truth, detection quality is estimated heuristically: text
that looks like a timestamp, version number or currency amount is counted
as a likely false positive. Resolution and graph quality come from the
``references`` edges the linker added.
"""

import logging
import re
import time
from dataclasses import asdict, dataclass, field
from typing import Any, Dict, List, Optional, Sequence

from ..graph.knowledge_graph import KnowledgeGraph
from ..graph.models import EdgeType, GraphEdge, NodeType
from ..linkers.reference_resolver import ReferenceResolution
from ..parsers.reference_detector import ReferenceAnalysis
from ..parsers.reference_patterns import ReferenceType
from ..utils.config import ValidationConfig

logger = logging.getLogger(__name__)

SUSPICIOUS_PATTERNS = (
    re.compile(r"\b\d{1,2}:\d{2}"),        # times like 10:30
    re.compile(r"\b\d+\.\d+\.\d+"),        # versions, IP fragments
    re.compile(r"\$\d+"),                  # currency
)
SUSPICIOUS_WEIGHT = 0.1
POTENTIAL_REFERENCE = re.compile(r"\b(?:see|refer|figure|table|section|page)\b", re.IGNORECASE)
EDGE_CONTEXT = re.compile(r"Reference:\s*(.+?)\s*\(")

ESTIMATED_RECALL = 0.8
PRECISION_FLOOR = 0.7
DENSITY_PENALTY_THRESHOLD = 1.5
LARGE_DETECTION_COUNT = 1000


@dataclass
class ValidationIssue:
    severity: str      # error | warning | info
    category: str      # detection | resolution | graph | performance
    description: str
    suggestion: Optional[str] = None
    affected_elements: List[str] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


@dataclass
class DetectionMetrics:
    precision: float
    recall: float
    f1_score: float
    total_detected: int
    false_positives: int
    false_negatives: int
    # high > 0.8, medium 0.5-0.8, low < 0.5
    confidence_distribution: Dict[str, int] = field(
        default_factory=lambda: {"high": 0, "medium": 0, "low": 0}
    )


@dataclass
class ResolutionMetrics:
    resolution_rate: float
    average_confidence: float
    total_resolved: int
    success_by_type: Dict[str, int]
    failures_by_reason: Dict[str, int] = field(default_factory=dict)
    accuracy: Optional[float] = None


@dataclass
class GraphQualityMetrics:
    total_reference_edges: int
    average_edge_weight: float
    edge_density: float
    isolated_components: int
    connectivity_score: float
    cycles_detected: int = 0


@dataclass
class ReferenceValidationResult:
    overall_score: float
    detection: DetectionMetrics
    resolution: ResolutionMetrics
    graph_quality: GraphQualityMetrics
    issues: List[ValidationIssue] = field(default_factory=list)
    recommendations: List[str] = field(default_factory=list)
    processing_time: float = 0.0  # milliseconds

    @property
    def warnings(self) -> List[ValidationIssue]:
        return [i for i in self.issues if i.severity == "warning"]

    def to_dict(self) -> Dict[str, Any]:
        return {
            "overall_score": self.overall_score,
            "metrics": {
                "detection": asdict(self.detection),
                "resolution": asdict(self.resolution),
                "graph_quality": asdict(self.graph_quality),
            },
            "issues": [i.to_dict() for i in self.issues],
            "warnings": [w.to_dict() for w in self.warnings],
            "recommendations": list(self.recommendations),
            "processing_time": self.processing_time,
        }


def _f1(precision: float, recall: float) -> float:
    if precision + recall == 0:
        return 0.0
    return 2 * precision * recall / (precision + recall)


def _pct(value: float) -> str:
    return f"{value * 100:.1f}%"


def classify_edge_reference(edge: GraphEdge) -> ReferenceType:
    """Reference type of a references edge, from its metadata or its context string."""
    recorded = edge.metadata.get("reference_type")
    if recorded:
        try:
            return ReferenceType(recorded)
        except ValueError:
            pass

    match = EDGE_CONTEXT.search(edge.context or "")
    text = match.group(1).lower() if match else ""
    if "section" in text:
        return ReferenceType.SECTION
    if "figure" in text or "fig." in text:
        return ReferenceType.FIGURE
    if "table" in text:
        return ReferenceType.TABLE
    if "page" in text:
        return ReferenceType.PAGE
    if "[" in text:
        return ReferenceType.CITATION
    return ReferenceType.CROSS_REFERENCE


class ReferenceValidationService:
    """Quality scoring for reference detection and resolution."""

    def __init__(self, config: Optional[ValidationConfig] = None):
        self.config = config or ValidationConfig()

    # ------------------------------------------------------------------
    # Graph validation
    # ------------------------------------------------------------------

    def validate_graph(self, graph: KnowledgeGraph) -> ReferenceValidationResult:
        """
        Score the references of a built and linked graph.

        Overall = 0.4 * detection F1 + 0.3 * average resolution confidence
        + 0.2 * connectivity + 0.1 * density factor (0.8 when the reference
        edge density exceeds 1.5, else 1.0), clamped to [0, 1].
        """
        logger.info(
            f"Validating references of graph {graph.id} "
            f"({graph.node_count} nodes, {graph.edge_count} edges)"
        )
        start_time = time.perf_counter()

        reference_edges = graph.get_edges_by_type(EdgeType.REFERENCES)
        detection = self.analyze_detection_quality(graph)
        resolution = self.analyze_resolution_quality(reference_edges)
        graph_quality = self.analyze_graph_quality(graph, reference_edges)

        issues = self._identify_issues(detection, resolution, graph_quality)
        result = ReferenceValidationResult(
            overall_score=self.calculate_overall_score(detection, resolution, graph_quality),
            detection=detection,
            resolution=resolution,
            graph_quality=graph_quality,
            issues=issues,
            recommendations=self._recommendations(issues, detection, resolution),
        )
        result.processing_time = (time.perf_counter() - start_time) * 1000

        logger.info(
            f"Reference validation of {graph.id}: score {result.overall_score:.3f}, "
            f"{len(issues)} issues"
        )
        if result.overall_score < self.config.min_overall_score:
            logger.warning(
                f"Graph {graph.id} reference quality {result.overall_score:.3f} is below "
                f"{self.config.min_overall_score}"
            )
        return result

    @staticmethod
    def _text_nodes(graph: KnowledgeGraph):
        return graph.get_nodes_by_type(NodeType.PARAGRAPH) + graph.get_nodes_by_type(NodeType.SECTION)

    def analyze_detection_quality(self, graph: KnowledgeGraph) -> DetectionMetrics:
        total_detected = 0
        estimated_false_positives = 0.0
        distribution = {"high": 0, "medium": 0, "low": 0}

        for node in self._text_nodes(graph):
            content = node.content.lower()
            for pattern in SUSPICIOUS_PATTERNS:
                estimated_false_positives += len(pattern.findall(content)) * SUSPICIOUS_WEIGHT

            potential = len(POTENTIAL_REFERENCE.findall(content))
            total_detected += potential
            distribution["high"] += int(potential * 0.6)
            distribution["medium"] += int(potential * 0.3)
            distribution["low"] += int(potential * 0.1)

        precision = max(PRECISION_FLOOR, 1 - estimated_false_positives / max(1, total_detected))
        recall = ESTIMATED_RECALL
        return DetectionMetrics(
            precision=precision,
            recall=recall,
            f1_score=_f1(precision, recall),
            total_detected=total_detected,
            false_positives=round(estimated_false_positives),
            false_negatives=round(total_detected * (1 - recall)),
            confidence_distribution=distribution,
        )

    @staticmethod
    def analyze_resolution_quality(reference_edges: Sequence[GraphEdge]) -> ResolutionMetrics:
        total = len(reference_edges)
        success_by_type = {t.value: 0 for t in ReferenceType}
        for edge in reference_edges:
            success_by_type[classify_edge_reference(edge).value] += 1

        return ResolutionMetrics(
            # every references edge is a resolved reference
            resolution_rate=1.0 if total else 0.0,
            average_confidence=sum(e.weight for e in reference_edges) / total if total else 0.0,
            total_resolved=total,
            success_by_type=success_by_type,
        )

    def analyze_graph_quality(
        self,
        graph: KnowledgeGraph,
        reference_edges: Sequence[GraphEdge],
    ) -> GraphQualityMetrics:
        total = len(reference_edges)
        text_nodes = len(self._text_nodes(graph))

        connected = set()
        for edge in reference_edges:
            connected.add(edge.source)
            connected.add(edge.target)

        return GraphQualityMetrics(
            total_reference_edges=total,
            average_edge_weight=sum(e.weight for e in reference_edges) / total if total else 0.0,
            edge_density=total / text_nodes if text_nodes else 0.0,
            isolated_components=max(0, text_nodes - len(connected)),
            connectivity_score=min(1.0, len(connected) / text_nodes) if text_nodes else 0.0,
        )

    @staticmethod
    def calculate_overall_score(
        detection: DetectionMetrics,
        resolution: ResolutionMetrics,
        graph_quality: GraphQualityMetrics,
    ) -> float:
        density_factor = 0.8 if graph_quality.edge_density > DENSITY_PENALTY_THRESHOLD else 1.0
        score = (
            0.4 * detection.f1_score
            + 0.3 * resolution.average_confidence
            + 0.2 * graph_quality.connectivity_score
            + 0.1 * density_factor
        )
        return max(0.0, min(1.0, score))

    def _identify_issues(
        self,
        detection: DetectionMetrics,
        resolution: ResolutionMetrics,
        graph_quality: GraphQualityMetrics,
    ) -> List[ValidationIssue]:
        cfg = self.config
        issues = []

        if detection.precision < cfg.min_precision:
            issues.append(ValidationIssue(
                "warning", "detection",
                f"Low detection precision: {_pct(detection.precision)}",
                "Review reference patterns to reduce false positives",
            ))
        if detection.recall < cfg.min_recall:
            issues.append(ValidationIssue(
                "warning", "detection",
                f"Low detection recall: {_pct(detection.recall)}",
                "Add more reference patterns or improve existing ones",
            ))
        if resolution.average_confidence < cfg.min_average_confidence:
            issues.append(ValidationIssue(
                "warning", "resolution",
                f"Low average resolution confidence: {_pct(resolution.average_confidence)}",
                "Improve resolution strategies or target matching",
            ))
        if graph_quality.connectivity_score < cfg.min_connectivity:
            issues.append(ValidationIssue(
                "info", "graph",
                f"Low reference connectivity: {_pct(graph_quality.connectivity_score)} "
                f"of nodes have references",
                "Consider if this is expected for the document type",
            ))
        if graph_quality.edge_density > cfg.max_edge_density:
            issues.append(ValidationIssue(
                "warning", "graph",
                f"High reference edge density: {graph_quality.edge_density:.1f} edges per node",
                "Check for over-detection of references",
            ))
        return issues

    @staticmethod
    def _recommendations(
        issues: List[ValidationIssue],
        detection: DetectionMetrics,
        resolution: ResolutionMetrics,
    ) -> List[str]:
        recommendations = []
        if detection.f1_score < 0.7:
            recommendations.append(
                "Improve reference pattern matching by adding more specific regex patterns"
            )
            recommendations.append("Implement context-aware detection to reduce false positives")
        if resolution.average_confidence < 0.6:
            recommendations.append(
                "Enhance resolution strategies with better target matching algorithms"
            )
            recommendations.append("Add semantic similarity matching for ambiguous references")
        if any(i.category == "graph" and i.severity == "warning" for i in issues):
            recommendations.append(
                "Review graph connectivity - ensure references create meaningful connections"
            )
            recommendations.append(
                "Consider edge weight thresholds to filter low-quality references"
            )
        if detection.total_detected > LARGE_DETECTION_COUNT:
            recommendations.append("Consider optimizing reference detection for large documents")
        return recommendations

    # ------------------------------------------------------------------
    # Analysis / resolution batches
    # ------------------------------------------------------------------

    def validate_analysis(self, analysis: ReferenceAnalysis) -> Dict[str, Any]:
        """Score one detection analysis: overall, analysis and detection scores plus issues."""
        stats = analysis.stats
        text_length = analysis.metadata.get("text_length", 0)
        processing_time = analysis.metadata.get("processing_time", 0.0)
        total = stats["total_references"]

        issues = []
        if total == 0 and text_length > 200:
            issues.append(ValidationIssue(
                "info", "detection",
                "No references detected in substantial text",
                "Verify if this text should contain references",
            ))
        if total and stats["confidence"]["min"] < 0.2:
            issues.append(ValidationIssue(
                "warning", "detection",
                "Some references have very low confidence",
                "Review low-confidence detections manually",
            ))
        if processing_time > 1000:
            issues.append(ValidationIssue(
                "warning", "performance",
                "Reference analysis took unusually long",
                "Optimize pattern matching or reduce text size",
            ))

        # analysis score
        analysis_score = 0.5
        density = total / max(1, text_length / 100)
        if 0 < density < 0.5:
            analysis_score += 0.2
        if stats["confidence"]["average"] > 0.6:
            analysis_score += 0.2
        if processing_time > 500:
            analysis_score -= 0.1
        analysis_score = max(0.0, min(1.0, analysis_score))

        # detection score
        detection_score = stats["confidence"]["average"]
        types_present = sum(1 for count in stats["types"].values() if count > 0)
        detection_score += types_present / len(ReferenceType) * 0.1
        if analysis.references:
            low = sum(1 for r in analysis.references if r.confidence < 0.4)
            if low / len(analysis.references) > 0.3:
                detection_score -= 0.1
        detection_score = max(0.0, min(1.0, detection_score))

        recommendations = []
        if total == 0:
            recommendations.append(
                "Consider if reference detection patterns need expansion for this content type"
            )
        if stats["confidence"]["average"] < 0.5:
            recommendations.append(
                "Review reference pattern priorities and confidence calculations"
            )
        if any(i.category == "performance" for i in issues):
            recommendations.append(
                "Optimize text preprocessing or pattern matching for better performance"
            )

        return {
            "overall_score": (analysis_score + detection_score) / 2,
            "analysis_score": analysis_score,
            "detection_score": detection_score,
            "issues": [i.to_dict() for i in issues],
            "warnings": [i.to_dict() for i in issues if i.severity == "warning"],
            "recommendations": recommendations,
        }

    @staticmethod
    def validate_resolutions(resolutions: Sequence[ReferenceResolution]) -> Dict[str, Any]:
        """Resolution rate, mean confidence and per-reference issues for a batch."""
        issues = []
        for resolution in resolutions:
            text = resolution.reference.text
            if resolution.target_node is None:
                issues.append(ValidationIssue(
                    "warning", "resolution",
                    f'Reference "{text}" could not be resolved',
                    "Check reference patterns or target availability",
                ))
            elif resolution.confidence < 0.3:
                issues.append(ValidationIssue(
                    "warning", "resolution",
                    f'Low confidence resolution for "{text}" ({resolution.confidence:.2f})',
                    "Review resolution strategy or improve target matching",
                    affected_elements=[resolution.target_node.id],
                ))

        total = len(resolutions)
        resolved = sum(1 for r in resolutions if r.target_node is not None)
        return {
            "resolution_score": resolved / total if total else 0.0,
            "accuracy_score": sum(r.confidence for r in resolutions) / total if total else 0.0,
            "issues": [i.to_dict() for i in issues],
        }
