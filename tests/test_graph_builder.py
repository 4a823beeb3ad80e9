"""Tests for building graphs from parsed documents."""

import pytest

from docgraph.graph.graph_builder import EMPTY_PAGE_PLACEHOLDER, GraphBuilder
from docgraph.graph.knowledge_graph import KnowledgeGraph
from docgraph.graph.models import EdgeType, GraphStatus, NodeType
from docgraph.parsers.parsed_document import ParsedDocument, TextElement
from docgraph.utils.config import Config


def page(number, content="", paragraphs=None, elements=None):
    return {
        "page_number": number,
        "content": content,
        "paragraphs": paragraphs or [],
        "text_elements": elements or [],
    }


def para(pid, content, start, page_number=None):
    data = {"id": pid, "content": content, "start_position": start}
    if page_number is not None:
        data["page_number"] = page_number
    return data


class TestBuildGraph:
    """End-to-end builds of the sample document."""

    def test_sample_document_structure(self, sample_parsed_document):
        graph = GraphBuilder().build_graph("doc-1", sample_parsed_document)

        assert graph.status == GraphStatus.COMPLETE
        assert graph.document_id == "doc-1"
        stats = graph.statistics
        assert stats.node_count == 10
        assert stats.nodes_by_type["document"] == 1
        assert stats.nodes_by_type["metadata"] == 5   # author, keywords, language, 2 pages
        assert stats.nodes_by_type["paragraph"] == 3
        assert stats.nodes_by_type["section"] == 1
        assert stats.edges_by_type["follows"] == 2
        assert stats.edges_by_type["contains"] == 11
        assert graph.metadata.processing_time is not None

    def test_document_node_carries_metadata(self, sample_parsed_document):
        graph = GraphBuilder().build_graph("doc-1", sample_parsed_document)
        document = graph.get_nodes_by_type(NodeType.DOCUMENT)[0]

        assert document.label == "Document: Sample Paper"
        assert document.properties["author"] == "Jane Doe"
        assert document.properties["total_pages"] == 2
        assert document.properties["file_size"] == 2048

    def test_fallback_paragraph_joins_lines(self, sample_parsed_document):
        graph = GraphBuilder().build_graph("doc-1", sample_parsed_document)
        fallback = [
            n for n in graph.get_nodes_by_type(NodeType.PARAGRAPH) if n.properties.get("fallback")
        ]

        assert len(fallback) == 1
        assert fallback[0].content == "2 METHODS We build the graph as shown above."
        assert fallback[0].confidence == 0.5

    def test_accepts_parsed_document_instance(self, sample_parsed_document):
        parsed = ParsedDocument.from_dict(sample_parsed_document)
        graph = GraphBuilder().build_graph("doc-1", parsed)
        assert graph.node_count == 10

    def test_empty_document_yields_single_complete_node(self):
        graph = GraphBuilder().build_graph("doc-empty", {})

        assert graph.node_count == 1
        assert graph.edge_count == 0
        assert graph.get_nodes_by_type(NodeType.DOCUMENT)[0].label == "Document: Untitled Document"
        assert graph.status == GraphStatus.COMPLETE

    def test_blank_page_gets_placeholder(self):
        graph = GraphBuilder().build_graph("doc-blank", {"pages": [page(1, "  \n ")]})
        paragraphs = graph.get_nodes_by_type(NodeType.PARAGRAPH)

        assert len(paragraphs) == 1
        assert paragraphs[0].content == EMPTY_PAGE_PLACEHOLDER
        assert paragraphs[0].confidence == 0.1

    def test_failure_marks_graph_errored_and_reraises(self):
        graph = KnowledgeGraph("doc-bad")
        bad = {"pages": [page(0, "text", paragraphs=[para("p", "text", 0)])]}

        with pytest.raises(Exception):
            GraphBuilder().build_graph("doc-bad", bad, graph=graph)

        assert graph.status == GraphStatus.ERROR
        assert "page must be a positive number" in graph.metadata.error


class TestEdges:
    """Sequential and hierarchical edge rules."""

    def test_section_contains_following_paragraph(self):
        parsed = {"pages": [page(
            1,
            "3 Results\nBody text follows here.",
            paragraphs=[para("p", "Body text follows here.", 10)],
            elements=[{"text": "3 Results", "x": 72, "y": 14, "width": 80, "height": 18}],
        )]}
        graph = GraphBuilder().build_graph("doc", parsed)

        section = graph.get_nodes_by_type(NodeType.SECTION)[0]
        body = graph.get_nodes_by_type(NodeType.PARAGRAPH)[0]
        assert section.properties["section_number"] == "3"
        edges = [e for e in graph.get_outgoing_edges(section.id) if e.type == EdgeType.CONTAINS]
        assert len(edges) == 1
        assert edges[0].target == body.id
        assert edges[0].weight == 0.9

    def test_section_links_at_most_five_paragraphs(self):
        paragraphs = [para(f"p{i}", f"Paragraph {i}", 20 + i * 20) for i in range(7)]
        parsed = {"pages": [page(
            1,
            "OVERVIEW\n" + "\n".join(p["content"] for p in paragraphs),
            paragraphs=paragraphs,
            elements=[{"text": "OVERVIEW", "x": 72, "y": 28, "width": 80, "height": 12}],
        )]}
        graph = GraphBuilder().build_graph("doc", parsed)

        section = graph.get_nodes_by_type(NodeType.SECTION)[0]
        assert graph.get_degree(section.id) == 5

    def test_follows_across_adjacent_pages(self):
        parsed = {"pages": [
            page(1, "First.", paragraphs=[para("a", "First.", 0)]),
            page(2, "Second.", paragraphs=[para("b", "Second.", 0)]),
        ]}
        graph = GraphBuilder().build_graph("doc", parsed)

        follows = graph.get_edges_by_type(EdgeType.FOLLOWS)
        assert len(follows) == 1
        assert follows[0].weight == 0.8

    def test_no_follows_across_page_gap(self):
        parsed = {"pages": [
            page(1, "First.", paragraphs=[para("a", "First.", 0)]),
            page(3, "Third.", paragraphs=[para("c", "Third.", 0)]),
        ]}
        graph = GraphBuilder().build_graph("doc", parsed)

        assert graph.get_edges_by_type(EdgeType.FOLLOWS) == []

    def test_page_gap_cannot_be_widened_by_config(self):
        config = Config.from_dict({"builder": {"max_follows_page_gap": 5}})
        parsed = {"pages": [
            page(1, "First.", paragraphs=[para("a", "First.", 0)]),
            page(4, "Fourth.", paragraphs=[para("d", "Fourth.", 0)]),
        ]}
        graph = GraphBuilder(config.builder).build_graph("doc", parsed)

        assert graph.get_edges_by_type(EdgeType.FOLLOWS) == []
        assert not hasattr(config.builder, "max_follows_page_gap")


class TestHeadingDetection:
    """Tests for GraphBuilder.is_heading."""

    @pytest.mark.parametrize("element,expected", [
        (TextElement("Large Title", x=72, y=28, height=18), True),
        (TextElement("ALL CAPS", x=72, y=42, height=12), True),
        (TextElement("body text", x=72, y=28, height=12), False),
        (TextElement("Large Title", x=72, y=35, height=18), False),
        (TextElement("X" * 120, x=72, y=28, height=18), False),
        (TextElement("   ", x=72, y=28, height=18), False),
    ])
    def test_is_heading(self, element, expected):
        assert GraphBuilder().is_heading(element) is expected


def test_build_statistics(sample_parsed_document):
    graph = GraphBuilder().build_graph("doc-1", sample_parsed_document)
    stats = GraphBuilder.get_build_statistics(graph)

    assert stats["pages"] == 2
    assert stats["fallback_paragraphs"] == 1
    assert stats["total_nodes"] == 10
