"""
Reference Accuracy Tester

Runs the real matcher and resolver over labelled test cases and scores the
output against the expected references and resolutions: precision, recall
and F1 for detection, accuracy for resolution, and suite-level pass rates
with per-type recommendations.
"""

import logging
import re
import time
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple, Union

import yaml
from tqdm import tqdm

from ..graph.knowledge_graph import KnowledgeGraph
from ..graph.models import GraphNode, NodeType, Position
from ..linkers.reference_resolver import ReferenceResolutionService, ResolutionContext
from ..parsers.reference_detector import ReferenceDetector
from ..parsers.reference_matcher import ReferenceMatcher
from ..parsers.reference_patterns import DetectedReference, ReferenceType
from ..utils.file_utils import safe_json_load

logger = logging.getLogger(__name__)

FIRST_NUMBER = re.compile(r"(\d+(?:\.\d+)*)")

MOCK_SOURCE_ID = "test-source"

# Per-case thresholds behind the issue messages.
MIN_PRECISION = 0.7
MIN_RECALL = 0.7
MIN_RESOLUTION_ACCURACY = 0.6
MIN_RESOLUTION_CONFIDENCE = 0.4
MIN_TYPE_ACCURACY = 0.7

STATUS_CORRECT = "correct"
STATUS_INCORRECT_TYPE = "incorrect_type"
STATUS_INCORRECT_TARGET = "incorrect_target"
STATUS_FALSE_POSITIVE = "false_positive"


# ---------------------------------------------------------------------------
# Test case definitions
# ---------------------------------------------------------------------------

@dataclass
class ExpectedReference:
    text: str
    type: ReferenceType
    target: str
    confidence_range: Optional[Tuple[float, float]] = None
    # False marks a phrase that must NOT be reported as a reference
    should_detect: bool = True

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "ExpectedReference":
        confidence_range = data.get("confidence_range")
        return cls(
            text=data["text"],
            type=ReferenceType(data["type"]),
            target=str(data.get("target", "")),
            confidence_range=tuple(confidence_range) if confidence_range else None,
            should_detect=data.get("should_detect", True),
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "text": self.text,
            "type": self.type.value,
            "target": self.target,
            "confidence_range": list(self.confidence_range) if self.confidence_range else None,
            "should_detect": self.should_detect,
        }


@dataclass
class ExpectedResolution:
    reference_text: str
    should_resolve: bool
    expected_target_id: Optional[str] = None
    min_confidence: Optional[float] = None

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "ExpectedResolution":
        return cls(
            reference_text=data["reference_text"],
            should_resolve=data.get("should_resolve", True),
            expected_target_id=data.get("expected_target_id"),
            min_confidence=data.get("min_confidence"),
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "reference_text": self.reference_text,
            "should_resolve": self.should_resolve,
            "expected_target_id": self.expected_target_id,
            "min_confidence": self.min_confidence,
        }


@dataclass
class AccuracyTestCase:
    id: str
    name: str
    text: str
    expected_references: List[ExpectedReference]
    expected_resolutions: Optional[List[ExpectedResolution]] = None
    metadata: Dict[str, Any] = field(default_factory=dict)  # source, difficulty, tags
    graph: Optional[KnowledgeGraph] = None

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "AccuracyTestCase":
        resolutions = data.get("expected_resolutions")
        graph_data = data.get("graph")
        return cls(
            id=data["id"],
            name=data.get("name", data["id"]),
            text=data["text"],
            expected_references=[
                ExpectedReference.from_dict(r) for r in data.get("expected_references", [])
            ],
            expected_resolutions=(
                [ExpectedResolution.from_dict(r) for r in resolutions]
                if resolutions is not None else None
            ),
            metadata=dict(data.get("metadata") or {}),
            graph=KnowledgeGraph.from_dict(graph_data) if graph_data else None,
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "text": self.text,
            "expected_references": [r.to_dict() for r in self.expected_references],
            "expected_resolutions": (
                [r.to_dict() for r in self.expected_resolutions]
                if self.expected_resolutions is not None else None
            ),
            "metadata": dict(self.metadata),
        }


@dataclass
class AccuracyTestSuite:
    id: str
    name: str
    test_cases: List[AccuracyTestCase]
    min_overall_score: float = 0.7
    include_resolution_tests: bool = False
    mock_graph: Optional[KnowledgeGraph] = None

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "AccuracyTestSuite":
        config = data.get("config") or {}
        graph_data = config.get("mock_graph")
        return cls(
            id=data["id"],
            name=data.get("name", data["id"]),
            test_cases=[AccuracyTestCase.from_dict(c) for c in data.get("test_cases", [])],
            min_overall_score=config.get("min_overall_score", 0.7),
            include_resolution_tests=config.get("include_resolution_tests", False),
            mock_graph=KnowledgeGraph.from_dict(graph_data) if graph_data else None,
        )


# ---------------------------------------------------------------------------
# Results
# ---------------------------------------------------------------------------

@dataclass
class DetectionOutcome:
    detected: DetectedReference
    status: str
    expected_match: Optional[ExpectedReference] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "detected": self.detected.to_dict(),
            "status": self.status,
            "expected_match": self.expected_match.to_dict() if self.expected_match else None,
        }


@dataclass
class DetectionAccuracyResult:
    true_positives: int
    false_positives: int
    false_negatives: int
    precision: float
    recall: float
    f1_score: float
    detected_references: List[DetectionOutcome] = field(default_factory=list)
    missed_references: List[ExpectedReference] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "true_positives": self.true_positives,
            "false_positives": self.false_positives,
            "false_negatives": self.false_negatives,
            "precision": self.precision,
            "recall": self.recall,
            "f1_score": self.f1_score,
            "detected_references": [d.to_dict() for d in self.detected_references],
            "missed_references": [m.to_dict() for m in self.missed_references],
        }


@dataclass
class ResolutionDetail:
    reference_text: str
    expected_target_id: Optional[str]
    actual_target_id: Optional[str]
    confidence: float
    correct: bool

    def to_dict(self) -> Dict[str, Any]:
        return {
            "reference_text": self.reference_text,
            "expected_target_id": self.expected_target_id,
            "actual_target_id": self.actual_target_id,
            "confidence": self.confidence,
            "correct": self.correct,
        }


@dataclass
class ResolutionAccuracyResult:
    resolved_correctly: int
    resolved_incorrectly: int
    failed_to_resolve: int
    accuracy: float
    average_confidence: float
    resolution_details: List[ResolutionDetail] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "resolved_correctly": self.resolved_correctly,
            "resolved_incorrectly": self.resolved_incorrectly,
            "failed_to_resolve": self.failed_to_resolve,
            "accuracy": self.accuracy,
            "average_confidence": self.average_confidence,
            "resolution_details": [d.to_dict() for d in self.resolution_details],
        }


@dataclass
class AccuracyTestResult:
    test_case: AccuracyTestCase
    detection: DetectionAccuracyResult
    resolution: Optional[ResolutionAccuracyResult]
    overall_score: float
    execution_time: float  # milliseconds
    issues: List[str] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "test_case_id": self.test_case.id,
            "test_case_name": self.test_case.name,
            "detection": self.detection.to_dict(),
            "resolution": self.resolution.to_dict() if self.resolution else None,
            "overall_score": self.overall_score,
            "execution_time": self.execution_time,
            "issues": list(self.issues),
        }


@dataclass
class AccuracyTestReport:
    suite: AccuracyTestSuite
    results: List[AccuracyTestResult]
    summary: Dict[str, Any]
    all_issues: List[str] = field(default_factory=list)
    recommendations: List[str] = field(default_factory=list)

    @property
    def passed(self) -> bool:
        return self.summary.get("average_score", 0.0) >= self.suite.min_overall_score

    def to_dict(self) -> Dict[str, Any]:
        return {
            "suite_id": self.suite.id,
            "suite_name": self.suite.name,
            "min_overall_score": self.suite.min_overall_score,
            "summary": dict(self.summary),
            "results": [r.to_dict() for r in self.results],
            "all_issues": list(self.all_issues),
            "recommendations": list(self.recommendations),
        }


# ---------------------------------------------------------------------------
# Matching helpers
# ---------------------------------------------------------------------------

def targets_match(first: str, second: str) -> bool:
    """Exact, case/space-insensitive, or same leading number ("3.2" vs "Section 3.2")."""
    if first == second:
        return True
    if first.lower().strip() == second.lower().strip():
        return True
    first_number = FIRST_NUMBER.search(first)
    second_number = FIRST_NUMBER.search(second)
    return bool(first_number and second_number and first_number.group(1) == second_number.group(1))


def find_expected_match(
    detected: DetectedReference,
    expected_references: List[ExpectedReference],
) -> Optional[ExpectedReference]:
    """Expected entry for a detection: exact text, then substring either way, then target."""
    for expected in expected_references:
        if expected.text == detected.text:
            return expected
    for expected in expected_references:
        if expected.text in detected.text or detected.text in expected.text:
            return expected
    for expected in expected_references:
        if targets_match(detected.target, expected.target):
            return expected
    return None


def _ratio(numerator: float, denominator: float) -> float:
    return numerator / denominator if denominator > 0 else 0.0


def _f1(precision: float, recall: float) -> float:
    return _ratio(2 * precision * recall, precision + recall)


def _pct(value: float) -> str:
    return f"{value * 100:.1f}%"


def build_mock_source_node(text: str) -> GraphNode:
    """Paragraph standing in for the node the test text came from."""
    return GraphNode(
        id=MOCK_SOURCE_ID,
        type=NodeType.PARAGRAPH,
        label="Test Source",
        content=text,
        position=Position(page=1, start=0, end=max(1, len(text))),
    )


# ---------------------------------------------------------------------------
# Tester
# ---------------------------------------------------------------------------

class ReferenceAccuracyTester:
    """Scores reference detection and resolution against labelled cases."""

    def __init__(
        self,
        matcher: Optional[ReferenceMatcher] = None,
        detector: Optional[ReferenceDetector] = None,
        resolver: Optional[ReferenceResolutionService] = None,
    ):
        self.matcher = matcher or ReferenceMatcher()
        self.detector = detector or ReferenceDetector(matcher=self.matcher)
        self.resolver = resolver or ReferenceResolutionService()

    def run_test_case(
        self,
        test_case: AccuracyTestCase,
        graph: Optional[KnowledgeGraph] = None,
    ) -> AccuracyTestResult:
        """
        Run one case.

        Resolution is tested when the case lists expected resolutions. The
        graph searched is ``graph``, else the case's own graph, else a graph
        holding only the mock source node.
        """
        start_time = time.perf_counter()
        logger.info(f"Running accuracy test: {test_case.name}")

        detection = self.test_detection_accuracy(test_case)

        resolution = None
        if test_case.expected_resolutions is not None:
            resolution = self.test_resolution_accuracy(test_case, graph or test_case.graph)

        resolution_score = resolution.accuracy if resolution is not None else 1.0
        overall_score = (detection.f1_score + resolution_score) / 2

        result = AccuracyTestResult(
            test_case=test_case,
            detection=detection,
            resolution=resolution,
            overall_score=overall_score,
            execution_time=(time.perf_counter() - start_time) * 1000,
            issues=self._identify_issues(detection, resolution),
        )
        logger.info(
            f"Test completed: {test_case.name} (score {overall_score:.3f}, "
            f"F1 {detection.f1_score:.3f}, {len(result.issues)} issues)"
        )
        return result

    def run_test_suite(
        self,
        suite: AccuracyTestSuite,
        show_progress: bool = False,
    ) -> AccuracyTestReport:
        """Run every case of ``suite``; a case that raises scores 0."""
        logger.info(f"Running accuracy test suite: {suite.name} ({len(suite.test_cases)} cases)")

        results: List[AccuracyTestResult] = []
        for test_case in tqdm(suite.test_cases, desc="Accuracy tests", disable=not show_progress):
            try:
                graph = suite.mock_graph if suite.include_resolution_tests else None
                results.append(self.run_test_case(test_case, graph))
            except Exception as e:
                logger.error(f"Failed to run test case {test_case.id}: {e}")
                results.append(self._failed_result(test_case, e))

        summary = self._summarize(results, suite)
        report = AccuracyTestReport(
            suite=suite,
            results=results,
            summary=summary,
            all_issues=[issue for r in results for issue in r.issues],
            recommendations=self._recommendations(results, suite),
        )
        logger.info(
            f"Test suite completed: {suite.name} (average {summary['average_score']:.3f}, "
            f"pass rate {_pct(summary['pass_rate'])}, {summary['total_execution_time']:.1f}ms)"
        )
        return report

    # ------------------------------------------------------------------
    # Detection
    # ------------------------------------------------------------------

    def test_detection_accuracy(self, test_case: AccuracyTestCase) -> DetectionAccuracyResult:
        detected_refs = self.matcher.find_references(test_case.text).references
        outcomes: List[DetectionOutcome] = []
        true_positives = 0
        false_positives = 0

        for detected in detected_refs:
            expected = find_expected_match(detected, test_case.expected_references)
            if expected is None or not expected.should_detect:
                outcomes.append(DetectionOutcome(detected, STATUS_FALSE_POSITIVE, expected))
                false_positives += 1
                continue

            type_correct = detected.type == expected.type
            target_correct = targets_match(detected.target, expected.target)
            in_range = expected.confidence_range is None or (
                expected.confidence_range[0] <= detected.confidence <= expected.confidence_range[1]
            )
            if type_correct and target_correct and in_range:
                outcomes.append(DetectionOutcome(detected, STATUS_CORRECT, expected))
                true_positives += 1
            else:
                status = STATUS_INCORRECT_TARGET if type_correct else STATUS_INCORRECT_TYPE
                outcomes.append(DetectionOutcome(detected, status, expected))
                false_positives += 1

        missed = [
            expected for expected in test_case.expected_references
            if expected.should_detect
            and not any(find_expected_match(d, [expected]) for d in detected_refs)
        ]

        precision = _ratio(true_positives, true_positives + false_positives)
        recall = _ratio(true_positives, true_positives + len(missed))
        return DetectionAccuracyResult(
            true_positives=true_positives,
            false_positives=false_positives,
            false_negatives=len(missed),
            precision=precision,
            recall=recall,
            f1_score=_f1(precision, recall),
            detected_references=outcomes,
            missed_references=missed,
        )

    # ------------------------------------------------------------------
    # Resolution
    # ------------------------------------------------------------------

    def test_resolution_accuracy(
        self,
        test_case: AccuracyTestCase,
        graph: Optional[KnowledgeGraph] = None,
    ) -> ResolutionAccuracyResult:
        if test_case.expected_resolutions is None:
            raise ValueError("Test case does not include expected resolutions")

        source_node = build_mock_source_node(test_case.text)
        if graph is None:
            graph = KnowledgeGraph(document_id=f"accuracy-{test_case.id}")
            graph.add_node(source_node)

        analysis = self.detector.analyze_text(test_case.text, MOCK_SOURCE_ID)
        context = ResolutionContext(graph=graph, source_node=source_node)
        resolutions = self.resolver.resolve_references(analysis.references, context)

        correct_count = 0
        incorrect_count = 0
        failed_count = 0
        details: List[ResolutionDetail] = []

        for expected in test_case.expected_resolutions:
            resolution = next(
                (
                    r for r in resolutions
                    if expected.reference_text in r.reference.text
                    or r.reference.text in expected.reference_text
                ),
                None,
            )
            if resolution is None:
                details.append(ResolutionDetail(
                    expected.reference_text, expected.expected_target_id, None, 0.0, False
                ))
                if expected.should_resolve:
                    failed_count += 1
                continue

            actual_id = resolution.target_node.id if resolution.target_node else None
            correct = (
                expected.should_resolve == (actual_id is not None)
                and (not expected.should_resolve or actual_id == expected.expected_target_id)
                and (not expected.min_confidence or resolution.confidence >= expected.min_confidence)
            )
            details.append(ResolutionDetail(
                expected.reference_text,
                expected.expected_target_id,
                actual_id,
                resolution.confidence,
                correct,
            ))
            if correct:
                correct_count += 1
            else:
                incorrect_count += 1

        return ResolutionAccuracyResult(
            resolved_correctly=correct_count,
            resolved_incorrectly=incorrect_count,
            failed_to_resolve=failed_count,
            accuracy=_ratio(correct_count, len(test_case.expected_resolutions)),
            average_confidence=_ratio(sum(r.confidence for r in resolutions), len(resolutions)),
            resolution_details=details,
        )

    # ------------------------------------------------------------------
    # Reporting
    # ------------------------------------------------------------------

    @staticmethod
    def _identify_issues(
        detection: DetectionAccuracyResult,
        resolution: Optional[ResolutionAccuracyResult],
    ) -> List[str]:
        issues = []
        if detection.precision < MIN_PRECISION:
            issues.append(f"Low detection precision: {_pct(detection.precision)}")
        if detection.recall < MIN_RECALL:
            issues.append(f"Low detection recall: {_pct(detection.recall)}")
        if detection.false_positives > detection.true_positives:
            issues.append("More false positives than true positives")
        if resolution is not None:
            if resolution.accuracy < MIN_RESOLUTION_ACCURACY:
                issues.append(f"Low resolution accuracy: {_pct(resolution.accuracy)}")
            if resolution.average_confidence < MIN_RESOLUTION_CONFIDENCE:
                issues.append(
                    f"Low average resolution confidence: {_pct(resolution.average_confidence)}"
                )
        return issues

    @staticmethod
    def _failed_result(test_case: AccuracyTestCase, error: Exception) -> AccuracyTestResult:
        expected = [e for e in test_case.expected_references if e.should_detect]
        return AccuracyTestResult(
            test_case=test_case,
            detection=DetectionAccuracyResult(
                true_positives=0,
                false_positives=0,
                false_negatives=len(expected),
                precision=0.0,
                recall=0.0,
                f1_score=0.0,
                missed_references=expected,
            ),
            resolution=None,
            overall_score=0.0,
            execution_time=0.0,
            issues=[f"Test execution failed: {error}"],
        )

    @staticmethod
    def _summarize(results: List[AccuracyTestResult], suite: AccuracyTestSuite) -> Dict[str, Any]:
        total = len(results)
        passed = sum(1 for r in results if r.overall_score >= suite.min_overall_score)
        summary = {
            "average_score": _ratio(sum(r.overall_score for r in results), total),
            "passed_tests": passed,
            "total_tests": total,
            "pass_rate": _ratio(passed, total),
            "average_detection_f1": _ratio(sum(r.detection.f1_score for r in results), total),
            "total_execution_time": sum(r.execution_time for r in results),
        }
        if suite.include_resolution_tests:
            resolved = [r.resolution for r in results if r.resolution is not None]
            if resolved:
                summary["average_resolution_accuracy"] = _ratio(
                    sum(r.accuracy for r in resolved), len(resolved)
                )
        return summary

    @staticmethod
    def _recommendations(results: List[AccuracyTestResult], suite: AccuracyTestSuite) -> List[str]:
        recommendations = []
        total = len(results)

        low_precision = sum(1 for r in results if r.detection.precision < MIN_PRECISION)
        if low_precision > total * 0.5:
            recommendations.append(
                "Improve reference pattern specificity to reduce false positives"
            )
        low_recall = sum(1 for r in results if r.detection.recall < MIN_RECALL)
        if low_recall > total * 0.5:
            recommendations.append(
                "Add more comprehensive reference patterns to improve detection coverage"
            )
        failing = sum(1 for r in results if r.overall_score < suite.min_overall_score)
        if failing:
            recommendations.append(f"Focus on improving the {failing} failing test cases")

        type_stats = {t: {"correct": 0, "total": 0} for t in ReferenceType}
        for result in results:
            for outcome in result.detection.detected_references:
                if outcome.expected_match is None:
                    continue
                stats = type_stats[outcome.expected_match.type]
                stats["total"] += 1
                if outcome.status == STATUS_CORRECT:
                    stats["correct"] += 1
        for ref_type, stats in type_stats.items():
            if stats["total"]:
                accuracy = stats["correct"] / stats["total"]
                if accuracy < MIN_TYPE_ACCURACY:
                    recommendations.append(
                        f"Improve {ref_type.value} reference detection patterns "
                        f"(current accuracy: {_pct(accuracy)})"
                    )
        return recommendations

    # ------------------------------------------------------------------
    # Built-in suite
    # ------------------------------------------------------------------

    @staticmethod
    def create_standard_test_suite() -> AccuracyTestSuite:
        """Section, figure, mixed, spatial and citation cases of increasing difficulty."""
        def ref(text: str, ref_type: ReferenceType, target: str) -> ExpectedReference:
            return ExpectedReference(text=text, type=ref_type, target=target)

        return AccuracyTestSuite(
            id="reference-detection-standard",
            name="Standard Reference Detection Test Suite",
            min_overall_score=0.7,
            include_resolution_tests=False,
            test_cases=[
                AccuracyTestCase(
                    id="basic-section-references",
                    name="Basic Section References",
                    text=(
                        "For more information, see section 3.2. The details are in "
                        "section 5, and the methodology is described in section 1.4."
                    ),
                    expected_references=[
                        ref("section 3.2", ReferenceType.SECTION, "3.2"),
                        ref("section 5", ReferenceType.SECTION, "5"),
                        ref("section 1.4", ReferenceType.SECTION, "1.4"),
                    ],
                    metadata={"difficulty": "easy", "tags": ["section", "basic"]},
                ),
                AccuracyTestCase(
                    id="figure-references",
                    name="Figure References",
                    text=(
                        "As shown in Figure 1, the results indicate a clear trend. See "
                        "Figure 2.3 for the detailed analysis. The diagram in fig. 4 "
                        "illustrates this concept."
                    ),
                    expected_references=[
                        ref("Figure 1", ReferenceType.FIGURE, "1"),
                        ref("Figure 2.3", ReferenceType.FIGURE, "2.3"),
                        ref("fig. 4", ReferenceType.FIGURE, "4"),
                    ],
                    metadata={"difficulty": "easy", "tags": ["figure", "basic"]},
                ),
                AccuracyTestCase(
                    id="mixed-references",
                    name="Mixed Reference Types",
                    text=(
                        "According to the methodology in section 2.1 and as shown in "
                        "Figure 3, the data from Table 4 supports this conclusion. See "
                        "page 15 for additional details."
                    ),
                    expected_references=[
                        ref("section 2.1", ReferenceType.SECTION, "2.1"),
                        ref("Figure 3", ReferenceType.FIGURE, "3"),
                        ref("Table 4", ReferenceType.TABLE, "4"),
                        ref("page 15", ReferenceType.PAGE, "15"),
                    ],
                    metadata={"difficulty": "medium", "tags": ["mixed", "comprehensive"]},
                ),
                AccuracyTestCase(
                    id="cross-references",
                    name="Cross References",
                    text=(
                        "The previous section discussed this topic. See below for the "
                        "implementation details. As mentioned earlier, this approach is "
                        "effective."
                    ),
                    expected_references=[
                        ref("previous section", ReferenceType.CROSS_REFERENCE, "previous section"),
                        ref("below", ReferenceType.CROSS_REFERENCE, "below"),
                        ref("earlier", ReferenceType.CROSS_REFERENCE, "earlier"),
                    ],
                    metadata={"difficulty": "medium", "tags": ["cross-reference", "spatial"]},
                ),
                AccuracyTestCase(
                    id="citations",
                    name="Academic Citations",
                    text=(
                        "Several studies have shown this effect [1, 2]. Smith et al. "
                        "(2023) demonstrated similar results. The work by Johnson (2021) "
                        "provides additional evidence."
                    ),
                    expected_references=[
                        ref("[1, 2]", ReferenceType.CITATION, "[1, 2]"),
                        ref("(2023)", ReferenceType.CITATION, "(2023)"),
                        ref("(2021)", ReferenceType.CITATION, "(2021)"),
                    ],
                    metadata={"difficulty": "hard", "tags": ["citation", "academic"]},
                ),
            ],
        )


def load_test_suite(path: Union[str, Path]) -> AccuracyTestSuite:
    """Load a suite definition from a YAML (.yaml/.yml) or JSON file."""
    path = Path(path)
    if path.suffix.lower() in (".yaml", ".yml"):
        with open(path, "r", encoding="utf-8") as f:
            data = yaml.safe_load(f) or {}
    else:
        data = safe_json_load(path)
    if not isinstance(data, dict) or "id" not in data:
        raise ValueError(f"{path} does not contain a test suite definition")
    suite = AccuracyTestSuite.from_dict(data)
    logger.info(f"Loaded test suite {suite.id} with {len(suite.test_cases)} cases from {path}")
    return suite
