# Reference quality validation and accuracy testing
from .reference_validator import (
    ReferenceValidationService,
    ReferenceValidationResult,
    ValidationIssue,
    DetectionMetrics,
    ResolutionMetrics,
    GraphQualityMetrics,
)
from .accuracy_tester import (
    ReferenceAccuracyTester,
    AccuracyTestCase,
    AccuracyTestSuite,
    AccuracyTestResult,
    AccuracyTestReport,
    ExpectedReference,
    ExpectedResolution,
    load_test_suite,
)

__all__ = [
    "ReferenceValidationService",
    "ReferenceValidationResult",
    "ValidationIssue",
    "DetectionMetrics",
    "ResolutionMetrics",
    "GraphQualityMetrics",
    "ReferenceAccuracyTester",
    "AccuracyTestCase",
    "AccuracyTestSuite",
    "AccuracyTestResult",
    "AccuracyTestReport",
    "ExpectedReference",
    "ExpectedResolution",
    "load_test_suite",
]
