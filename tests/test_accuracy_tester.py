"""Tests for the labelled reference accuracy tester."""

import pytest

from docgraph.parsers.reference_matcher import ReferenceMatcher
from docgraph.parsers.reference_patterns import DetectedReference, ReferenceType
from docgraph.utils.file_utils import safe_json_dump
from docgraph.validation.accuracy_tester import (
    AccuracyTestCase,
    AccuracyTestSuite,
    ExpectedReference,
    ExpectedResolution,
    ReferenceAccuracyTester,
    find_expected_match,
    load_test_suite,
    targets_match,
)


class BrokenMatcher(ReferenceMatcher):
    def find_references(self, text, context_window=50):
        raise RuntimeError("boom")


@pytest.fixture
def tester():
    return ReferenceAccuracyTester()


def case(text, *expected, resolutions=None):
    return AccuracyTestCase(
        id="case",
        name="Case",
        text=text,
        expected_references=list(expected),
        expected_resolutions=resolutions,
    )


class TestMatchingHelpers:
    @pytest.mark.parametrize("first,second,expected", [
        ("3.2", "3.2", True),
        ("Figure", "figure ", True),
        ("3.2", "Section 3.2", True),
        ("1, 2", "[1, 2]", True),
        ("3.2", "3.3", False),
        ("above", "below", False),
    ])
    def test_targets_match(self, first, second, expected):
        assert targets_match(first, second) is expected

    def test_find_expected_match_prefers_exact_text(self):
        detected = DetectedReference("Table 2", 0, 7, ReferenceType.TABLE, "2", "t", 0.7)
        exact = ExpectedReference("Table 2", ReferenceType.TABLE, "2")
        partial = ExpectedReference("Table", ReferenceType.TABLE, "2")

        assert find_expected_match(detected, [partial, exact]) is exact

    def test_find_expected_match_by_substring_then_target(self):
        detected = DetectedReference("see section 3.2", 0, 15, ReferenceType.SECTION, "3.2", "s", 0.8)
        by_target = ExpectedReference("Sect. three", ReferenceType.SECTION, "3.2")

        assert find_expected_match(detected, [by_target]) is by_target
        assert find_expected_match(detected, [ExpectedReference("x", ReferenceType.PAGE, "9")]) is None


class TestDetectionAccuracy:
    def test_standard_suite_passes(self, tester):
        suite = ReferenceAccuracyTester.create_standard_test_suite()
        report = tester.run_test_suite(suite)

        assert report.summary["total_tests"] == 5
        assert report.summary["average_detection_f1"] == pytest.approx(1.0)
        assert report.summary["pass_rate"] == 1.0
        assert report.passed
        assert report.all_issues == []
        assert report.recommendations == []
        assert "average_resolution_accuracy" not in report.summary

    def test_incorrect_type(self, tester):
        result = tester.test_detection_accuracy(
            case("See Figure 2.", ExpectedReference("Figure 2", ReferenceType.TABLE, "2"))
        )

        assert result.true_positives == 0
        assert result.false_positives == 1
        assert result.false_negatives == 0
        assert result.detected_references[0].status == "incorrect_type"

    def test_confidence_range_is_checked(self, tester):
        expected = ExpectedReference("Figure 2", ReferenceType.FIGURE, "2", confidence_range=(0.9, 1.0))
        result = tester.test_detection_accuracy(case("Figure 2 shows it.", expected))

        assert result.detected_references[0].status == "incorrect_target"

    def test_missed_reference(self, tester):
        result = tester.test_detection_accuracy(
            case("Nothing to find.", ExpectedReference("Table 3", ReferenceType.TABLE, "3"))
        )

        assert result.false_negatives == 1
        assert result.recall == 0.0
        assert result.f1_score == 0.0

    def test_negative_example_counts_as_false_positive(self, tester):
        negative = ExpectedReference("page 7", ReferenceType.PAGE, "7", should_detect=False)
        result = tester.test_detection_accuracy(case("Turn to page 7 now.", negative))

        assert result.false_positives == 1
        assert result.missed_references == []
        assert result.detected_references[0].status == "false_positive"

    def test_issues_reported(self, tester):
        result = tester.run_test_case(
            case("Nothing to find.", ExpectedReference("Table 3", ReferenceType.TABLE, "3"))
        )

        assert "Low detection recall: 0.0%" in result.issues
        assert result.overall_score == pytest.approx(0.5)


class TestResolutionAccuracy:
    def test_against_mock_graph(self, tester, reference_graph):
        nodes = reference_graph["nodes"]
        test_case = case(
            "See Section 2.1 and Table 1.",
            ExpectedReference("Section 2.1", ReferenceType.SECTION, "2.1"),
            ExpectedReference("Table 1", ReferenceType.TABLE, "1"),
            resolutions=[
                ExpectedResolution("Section 2.1", True, nodes["sec21"].id, min_confidence=0.9),
                ExpectedResolution("Table 1", True, nodes["table"].id),
            ],
        )

        result = tester.test_resolution_accuracy(test_case, reference_graph["graph"])

        assert result.resolved_correctly == 2
        assert result.accuracy == 1.0
        assert result.average_confidence == pytest.approx((0.95 + 0.9) / 2)

    def test_unresolvable_reference_expected(self, tester):
        test_case = case(
            "See Table 1.",
            ExpectedReference("Table 1", ReferenceType.TABLE, "1"),
            resolutions=[ExpectedResolution("Table 1", should_resolve=False)],
        )

        # only the source node exists, so there is no table to land on
        result = tester.test_resolution_accuracy(test_case)

        assert result.resolution_details[0].actual_target_id is None
        assert result.accuracy == 1.0

    def test_wrong_target(self, tester, reference_graph):
        test_case = case(
            "See Table 1.",
            ExpectedReference("Table 1", ReferenceType.TABLE, "1"),
            resolutions=[ExpectedResolution("Table 1", True, reference_graph["nodes"]["figure"].id)],
        )

        result = tester.test_resolution_accuracy(test_case, reference_graph["graph"])

        assert result.resolved_incorrectly == 1
        assert result.accuracy == 0.0

    def test_requires_expected_resolutions(self, tester):
        with pytest.raises(ValueError):
            tester.test_resolution_accuracy(case("See Table 1."))

    def test_suite_with_resolution(self, tester, reference_graph):
        nodes = reference_graph["nodes"]
        suite = AccuracyTestSuite(
            id="res",
            name="Resolution",
            include_resolution_tests=True,
            mock_graph=reference_graph["graph"],
            test_cases=[case(
                "As shown in Figure 1.",
                ExpectedReference("Figure 1", ReferenceType.FIGURE, "1"),
                resolutions=[ExpectedResolution("Figure 1", True, nodes["figure"].id)],
            )],
        )

        report = tester.run_test_suite(suite)

        assert report.summary["average_resolution_accuracy"] == 1.0
        assert report.results[0].overall_score == pytest.approx(1.0)


class TestSuiteReporting:
    def test_failing_case_scores_zero(self):
        tester = ReferenceAccuracyTester(matcher=BrokenMatcher())
        report = tester.run_test_suite(ReferenceAccuracyTester.create_standard_test_suite())

        assert report.summary["average_score"] == 0.0
        assert not report.passed
        assert report.results[0].issues == ["Test execution failed: boom"]
        assert report.results[0].detection.false_negatives == 3
        assert "Focus on improving the 5 failing test cases" in report.recommendations

    def test_report_to_dict(self, tester):
        report = tester.run_test_suite(ReferenceAccuracyTester.create_standard_test_suite())
        data = report.to_dict()

        assert data["suite_id"] == "reference-detection-standard"
        assert len(data["results"]) == 5
        assert data["results"][0]["resolution"] is None


class TestLoadSuite:
    SUITE = {
        "id": "custom",
        "name": "Custom",
        "config": {"min_overall_score": 0.5},
        "test_cases": [{
            "id": "one",
            "text": "See Figure 1.",
            "expected_references": [{"text": "Figure 1", "type": "figure", "target": "1"}],
        }],
    }

    def test_yaml(self, tmp_path, tester):
        path = tmp_path / "suite.yaml"
        path.write_text(
            "id: custom\n"
            "config:\n"
            "  min_overall_score: 0.5\n"
            "test_cases:\n"
            "  - id: one\n"
            "    text: See Figure 1.\n"
            "    expected_references:\n"
            "      - {text: Figure 1, type: figure, target: 1}\n",
            encoding="utf-8",
        )

        suite = load_test_suite(path)

        assert suite.min_overall_score == 0.5
        assert suite.test_cases[0].name == "one"
        assert suite.test_cases[0].expected_references[0].target == "1"
        assert tester.run_test_suite(suite).passed

    def test_json(self, tmp_path):
        path = tmp_path / "suite.json"
        safe_json_dump(self.SUITE, path)

        suite = load_test_suite(path)

        assert suite.name == "Custom"
        assert suite.test_cases[0].expected_references[0].type == ReferenceType.FIGURE
        assert suite.test_cases[0].expected_resolutions is None

    def test_missing_or_invalid(self, tmp_path):
        with pytest.raises(ValueError):
            load_test_suite(tmp_path / "missing.json")

        bad = tmp_path / "bad.yaml"
        bad.write_text("- just\n- a list\n", encoding="utf-8")
        with pytest.raises(ValueError):
            load_test_suite(bad)
