"""
docgraph: document knowledge graphs with cross-reference resolution.

Turns parser output into a typed graph of document content, detects textual
cross-references ("see Section 3.2", "Figure 1", "[12]"), resolves them to
target nodes and scores the quality of the result.
"""

from .graph import (
    GraphBuilder,
    GraphFactory,
    KnowledgeGraph,
    NodeType,
    EdgeType,
    GraphStatus,
)
from .parsers import (
    ParsedDocument,
    ReferenceMatcher,
    ReferenceDetector,
    ReferenceType,
    DetectedReference,
)
from .linkers import (
    ReferenceResolutionService,
    ResolutionContext,
    ReferenceResolution,
    ReferenceLinker,
)
from .validation import (
    ReferenceValidationService,
    ReferenceAccuracyTester,
    load_test_suite,
)
from .pipeline import DocumentGraphPipeline, run_pipeline

__version__ = "1.0.0"

__all__ = [
    "GraphBuilder",
    "GraphFactory",
    "KnowledgeGraph",
    "NodeType",
    "EdgeType",
    "GraphStatus",
    "ParsedDocument",
    "ReferenceMatcher",
    "ReferenceDetector",
    "ReferenceType",
    "DetectedReference",
    "ReferenceResolutionService",
    "ResolutionContext",
    "ReferenceResolution",
    "ReferenceLinker",
    "ReferenceValidationService",
    "ReferenceAccuracyTester",
    "load_test_suite",
    "DocumentGraphPipeline",
    "run_pipeline",
]
