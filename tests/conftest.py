"""Pytest configuration and fixtures for docgraph tests."""

import sys
from pathlib import Path
from typing import Any, Dict

import pytest

# Run against the source tree without installing
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from docgraph.graph.graph_factory import GraphFactory
from docgraph.graph.knowledge_graph import KnowledgeGraph
from docgraph.graph.models import Position
from docgraph.utils.config import Config


@pytest.fixture
def sample_parsed_document() -> Dict[str, Any]:
    """Two-page parser output in the camelCase form emitted by JS parsers."""
    return {
        "metadata": {
            "title": "Sample Paper",
            "author": "Jane Doe",
            "keywords": ["graphs", "references"],
            "language": "en",
            "pages": 2,
            "fileSize": 2048,
        },
        "pages": [
            {
                "pageNumber": 1,
                "content": (
                    "INTRODUCTION\n"
                    "Graphs model documents. See Section 2 for details.\n"
                    "Second paragraph."
                ),
                "width": 612,
                "height": 792,
                "textElements": [
                    {"text": "INTRODUCTION", "x": 72, "y": 28, "width": 120, "height": 18},
                    {"text": "Graphs model documents.", "x": 72, "y": 50, "width": 200, "height": 12},
                ],
                "paragraphs": [
                    {
                        "id": "p1-1",
                        "content": "Graphs model documents. See Section 2 for details.",
                        "startPosition": 13,
                        "endPosition": 63,
                        "lineCount": 1,
                        "confidence": 0.9,
                    },
                    {
                        "id": "p1-2",
                        "content": "Second paragraph.",
                        "startPosition": 64,
                        "endPosition": 81,
                    },
                ],
            },
            {
                "pageNumber": 2,
                "content": "2 METHODS\nWe build the graph as shown above.",
            },
        ],
    }


@pytest.fixture
def empty_graph() -> KnowledgeGraph:
    return KnowledgeGraph("doc-empty")


@pytest.fixture
def reference_graph() -> Dict[str, Any]:
    """
    Hand-built graph with numbered sections, one figure and one table.

    Returns the graph plus a name -> node map for assertions.
    """
    graph = KnowledgeGraph("doc-refs")
    nodes = {
        "document": GraphFactory.create_document_node("paper.pdf", 3, 4096),
        "sec1": GraphFactory.create_section_node(
            "1 Introduction", Position(page=1, start=0, end=14),
            metadata={"properties": {"section_number": "1"}},
        ),
        "p1": GraphFactory.create_paragraph_node(
            "This paper builds graphs. See Section 2.1 for the method "
            "and Figure 1 for an overview.",
            Position(page=1, start=20, end=100),
        ),
        "sec2": GraphFactory.create_section_node(
            "2 Methods", Position(page=2, start=0, end=9),
            metadata={"properties": {"section_number": "2"}},
        ),
        "sec21": GraphFactory.create_section_node(
            "2.1 Graph construction", Position(page=2, start=200, end=222),
            metadata={"properties": {"section_number": "2.1"}},
        ),
        "p2": GraphFactory.create_paragraph_node(
            "Results are listed in Table 1. As discussed above, the graph is sparse.",
            Position(page=2, start=230, end=330),
        ),
        "figure": GraphFactory.create_image_node(
            "Figure 1: Pipeline overview", Position(page=2, start=400, end=430),
        ),
        "table": GraphFactory.create_table_node(
            "Table 1: Results", Position(page=3, start=0, end=50), row_count=3, col_count=2,
        ),
    }
    for node in nodes.values():
        graph.add_node(node)
    graph.add_edge(GraphFactory.create_contains_edge(nodes["sec1"].id, nodes["p1"].id, 0.9))
    graph.add_edge(GraphFactory.create_contains_edge(nodes["sec21"].id, nodes["p2"].id, 0.9))
    return {"graph": graph, "nodes": nodes}


@pytest.fixture
def test_config(tmp_path: Path) -> Config:
    """Configuration writing every output under a temporary directory."""
    return Config.from_dict({
        "paths": {
            "parsed_input": str(tmp_path / "parsed"),
            "graph_output": str(tmp_path / "graphs"),
            "report_output": str(tmp_path / "reports"),
            "log_dir": None,
        },
        "logging": {"level": "WARNING", "console": False},
    })
