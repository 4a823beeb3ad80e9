"""Tests for adding reference edges to built graphs."""

import pytest

from docgraph.graph.graph_builder import GraphBuilder
from docgraph.graph.models import EdgeType
from docgraph.linkers.reference_linker import LinkingResult, ReferenceLinker
from docgraph.linkers.reference_resolver import ReferenceResolutionService
from docgraph.utils.config import ResolverConfig


class TestLinkGraph:
    def test_reference_edges_added(self, reference_graph):
        graph, nodes = reference_graph["graph"], reference_graph["nodes"]
        result = ReferenceLinker().link_graph(graph)

        assert result.references_detected == 4
        assert result.references_resolved == 4
        assert len(result.edges_added) == 4

        targets = {(e.source, e.target): e for e in graph.get_edges_by_type(EdgeType.REFERENCES)}
        p1, p2 = nodes["p1"].id, nodes["p2"].id
        assert set(targets) == {
            (p1, nodes["sec21"].id),
            (p1, nodes["figure"].id),
            (p2, nodes["table"].id),
            (p2, nodes["sec21"].id),
        }

        section_edge = targets[(p1, nodes["sec21"].id)]
        assert section_edge.weight == 0.95
        assert section_edge.context == "Reference: See Section 2.1 (section)"
        assert section_edge.metadata["reference_type"] == "section"
        assert section_edge.metadata["strategy_id"] == "exact_section_match"

    def test_only_text_nodes_are_sources(self, reference_graph):
        graph = reference_graph["graph"]
        result = ReferenceLinker().link_graph(graph)

        # p1, p2 and the three sections
        assert result.nodes_analyzed == 5

    def test_low_confidence_resolutions_skipped(self, reference_graph):
        graph = reference_graph["graph"]
        result = ReferenceLinker(min_confidence=0.96).link_graph(graph)

        assert len(result.edges_added) == 1   # the 0.97 spatial match
        assert result.skipped_low_confidence == 3

    def test_min_confidence_defaults_to_resolver_config(self):
        resolver = ReferenceResolutionService(ResolverConfig(min_link_confidence=0.8))
        assert ReferenceLinker(resolver=resolver).min_confidence == 0.8

    def test_relinking_skips_duplicates(self, reference_graph):
        graph = reference_graph["graph"]
        linker = ReferenceLinker()
        linker.link_graph(graph)

        second = linker.link_graph(graph)

        assert second.edges_added == []
        assert second.skipped_duplicates == 4
        assert len(graph.get_edges_by_type(EdgeType.REFERENCES)) == 4

    def test_built_document(self, sample_parsed_document):
        graph = GraphBuilder().build_graph("doc-1", sample_parsed_document)
        result = ReferenceLinker().link_graph(graph)

        # "Section 2" has no numbered section to land on; "above" reaches page 1
        assert result.references_detected == 2
        assert len(result.edges_added) == 1
        assert result.edges_added[0].weight == 0.5

    def test_placeholder_paragraphs_ignored(self):
        graph = GraphBuilder().build_graph("doc", {"pages": [{"page_number": 1, "content": ""}]})
        result = ReferenceLinker().link_graph(graph)

        assert result.nodes_analyzed == 0


def test_linking_result_to_dict():
    data = LinkingResult(nodes_analyzed=2, references_detected=3).to_dict()

    assert data["references_resolved"] == 0
    assert data["edges_added"] == 0
    assert data["nodes_analyzed"] == 2
