# Parsed-document input and reference detection
from .parsed_document import (
    ParsedDocument,
    ParsedPage,
    ParsedParagraph,
    TextElement,
    DocumentMetadata,
)
from .reference_patterns import (
    ReferenceType,
    ReferencePattern,
    DetectedReference,
    REFERENCE_PATTERNS,
    SORTED_PATTERNS,
    get_patterns_by_type,
    get_pattern_by_id,
    validate_pattern,
)
from .reference_matcher import ReferenceMatcher, ReferenceMatchResult, find_references
from .reference_detector import ReferenceDetector, ReferenceAnalysis

__all__ = [
    "ParsedDocument",
    "ParsedPage",
    "ParsedParagraph",
    "TextElement",
    "DocumentMetadata",
    "ReferenceType",
    "ReferencePattern",
    "DetectedReference",
    "REFERENCE_PATTERNS",
    "SORTED_PATTERNS",
    "get_patterns_by_type",
    "get_pattern_by_id",
    "validate_pattern",
    "ReferenceMatcher",
    "ReferenceMatchResult",
    "find_references",
    "ReferenceDetector",
    "ReferenceAnalysis",
]
