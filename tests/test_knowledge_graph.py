"""Tests for the KnowledgeGraph container."""

import pytest

from docgraph.graph.graph_factory import GraphFactory
from docgraph.graph.knowledge_graph import KnowledgeGraph, extract_keywords
from docgraph.graph.models import (
    EdgeQuery,
    EdgeType,
    GraphEdge,
    GraphStatus,
    NodeQuery,
    NodeType,
    Position,
)
from docgraph.utils.errors import GraphStateError, GraphStructureError


def paragraph(content: str, page: int = 1, start: int = 0):
    return GraphFactory.create_paragraph_node(
        content, Position(page=page, start=start, end=start + len(content))
    )


@pytest.fixture
def three_nodes(empty_graph):
    a = paragraph("Alpha graphs", page=1, start=0)
    b = paragraph("Beta references", page=1, start=20)
    c = paragraph("Gamma graphs", page=2, start=0)
    for node in (a, b, c):
        empty_graph.add_node(node)
    return empty_graph, a, b, c


class TestMutations:
    """Tests for add/remove of nodes and edges."""

    def test_add_node_updates_indices(self, three_nodes):
        graph, a, b, c = three_nodes

        assert graph.node_count == 3
        assert graph.get_node(a.id) is a
        assert {n.id for n in graph.get_nodes_by_page(1)} == {a.id, b.id}
        assert {n.id for n in graph.get_nodes_by_keyword("GRAPHS")} == {a.id, c.id}
        assert graph.get_neighbors(a.id) == []

    def test_duplicate_node_rejected(self, three_nodes):
        graph, a, _, _ = three_nodes
        with pytest.raises(GraphStructureError, match="already exists"):
            graph.add_node(a)

    def test_edge_requires_existing_endpoints(self, three_nodes):
        graph, a, _, _ = three_nodes
        orphan = paragraph("Not in graph")

        with pytest.raises(GraphStructureError, match="Target node"):
            graph.add_edge(GraphFactory.create_follows_edge(a.id, orphan.id))
        with pytest.raises(GraphStructureError, match="Source node"):
            graph.add_edge(GraphFactory.create_follows_edge(orphan.id, a.id))
        assert graph.edge_count == 0

    def test_duplicate_edge_rejected(self, three_nodes):
        graph, a, b, _ = three_nodes
        edge = GraphFactory.create_follows_edge(a.id, b.id)
        graph.add_edge(edge)

        with pytest.raises(GraphStructureError, match="already exists"):
            graph.add_edge(edge)

    def test_self_loop_rejected_even_without_factory(self, three_nodes):
        graph, a, _, _ = three_nodes
        loop = GraphEdge(id="loop", source=a.id, target=a.id, type=EdgeType.SIMILAR)

        with pytest.raises(GraphStructureError, match="self-reference"):
            graph.add_edge(loop)

    def test_add_edge_updates_adjacency(self, three_nodes):
        graph, a, b, _ = three_nodes
        graph.add_edge(GraphFactory.create_follows_edge(a.id, b.id))

        assert graph.get_neighbors(a.id) == [b.id]
        assert graph.get_predecessors(b.id) == [a.id]
        assert graph.get_degree(a.id) == 1
        assert graph.has_edge(a.id, b.id, EdgeType.FOLLOWS)
        assert not graph.has_edge(a.id, b.id, EdgeType.REFERENCES)
        assert not graph.has_edge(b.id, a.id)

    def test_remove_node_cascades_to_edges(self, three_nodes):
        graph, a, b, c = three_nodes
        graph.add_edge(GraphFactory.create_follows_edge(a.id, b.id))
        graph.add_edge(GraphFactory.create_references_edge(c.id, b.id))
        graph.add_edge(GraphFactory.create_follows_edge(a.id, c.id))

        assert graph.remove_node(b.id) is True

        assert graph.edge_count == 1
        assert graph.statistics.edge_count == 1
        assert graph.get_neighbors(a.id) == [c.id]
        assert graph.get_nodes_by_keyword("beta") == []
        assert b.id not in graph

    def test_remove_missing_returns_false(self, empty_graph):
        assert empty_graph.remove_node("missing") is False
        assert empty_graph.remove_edge("missing") is False

    def test_remove_edge(self, three_nodes):
        graph, a, b, _ = three_nodes
        edge = GraphFactory.create_follows_edge(a.id, b.id)
        graph.add_edge(edge)

        assert graph.remove_edge(edge.id) is True
        assert graph.edge_count == 0
        assert graph.get_neighbors(a.id) == []

    def test_counts_track_lists_after_mixed_operations(self, three_nodes):
        graph, a, b, c = three_nodes
        graph.add_edge(GraphFactory.create_follows_edge(a.id, b.id))
        graph.add_edge(GraphFactory.create_follows_edge(b.id, c.id))
        graph.remove_node(a.id)
        graph.add_node(paragraph("Delta"))

        assert graph.statistics.node_count == len(graph.nodes) == 3
        assert graph.statistics.edge_count == len(graph.edges) == 1


class TestStatistics:
    """Statistics are recomputed after every mutation."""

    def test_degree_and_density(self, three_nodes):
        graph, a, b, c = three_nodes
        graph.add_edge(GraphFactory.create_follows_edge(a.id, b.id))
        graph.add_edge(GraphFactory.create_follows_edge(a.id, c.id))

        stats = graph.statistics
        assert stats.max_degree == 2
        assert stats.average_degree == pytest.approx(2 / 3)
        assert stats.density == pytest.approx(2 / 6)
        assert stats.edges_by_type["follows"] == 2
        assert stats.nodes_by_type["paragraph"] == 3
        assert stats.components == 0

    def test_isolated_nodes_counted(self, three_nodes):
        graph, a, b, _ = three_nodes
        graph.add_edge(GraphFactory.create_follows_edge(a.id, b.id))
        assert graph.statistics.components == 1


class TestQueries:
    """Tests for query_nodes / query_edges."""

    def test_query_nodes_filters(self, three_nodes):
        graph, a, _, c = three_nodes

        by_keyword = graph.query_nodes(NodeQuery(keywords=["graphs"], pages=[2]))
        assert [n.id for n in by_keyword] == [c.id]

        limited = graph.query_nodes(NodeQuery(types=[NodeType.PARAGRAPH], limit=1, offset=1))
        assert len(limited) == 1

        assert graph.query_nodes(NodeQuery(min_confidence=0.9)) == []

    def test_query_edges_filters(self, three_nodes):
        graph, a, b, c = three_nodes
        graph.add_edge(GraphFactory.create_follows_edge(a.id, b.id, 0.8))
        graph.add_edge(GraphFactory.create_references_edge(c.id, a.id, weight=0.4))

        assert len(graph.query_edges(EdgeQuery(types=[EdgeType.REFERENCES]))) == 1
        assert len(graph.query_edges(EdgeQuery(min_weight=0.5))) == 1
        assert len(graph.query_edges(EdgeQuery(source=c.id, target=a.id))) == 1


class TestValidationAndLifecycle:
    """Soft validation and status transitions."""

    def test_validate_reports_orphans_as_warning(self, three_nodes):
        graph, *_ = three_nodes
        result = graph.validate()

        assert result.is_valid
        assert result.stats["orphaned_nodes"] == 3
        assert result.warnings == ["3 nodes have no connections"]

    def test_validate_never_raises_on_corrupted_state(self, three_nodes):
        graph, a, _, _ = three_nodes
        # bypass add_edge to simulate corrupted input
        graph.edges.append(GraphEdge(id="bad", source=a.id, target="ghost", type=EdgeType.FOLLOWS))
        graph.edges.append(GraphEdge(id="self", source=a.id, target=a.id, type=EdgeType.FOLLOWS))

        result = graph.validate()

        assert not result.is_valid
        assert result.stats["invalid_edges"] == 1
        assert result.stats["self_referencing_edges"] == 1

    def test_complete_is_terminal(self, empty_graph):
        empty_graph.complete()

        assert empty_graph.status == GraphStatus.COMPLETE
        with pytest.raises(GraphStateError):
            empty_graph.mark_error("late failure")

    def test_mark_error_records_message(self, empty_graph):
        empty_graph.mark_error("parser exploded")

        assert empty_graph.status == GraphStatus.ERROR
        assert empty_graph.metadata.error == "parser exploded"
        with pytest.raises(GraphStateError):
            empty_graph.complete()


class TestSerialization:
    """serialize() output rebuilds an equivalent graph."""

    def test_serialize_and_rebuild(self, reference_graph):
        graph = reference_graph["graph"]
        graph.complete()

        data = graph.serialize()
        rebuilt = KnowledgeGraph.from_dict(data)

        assert rebuilt.id == graph.id
        assert rebuilt.status == GraphStatus.COMPLETE
        assert rebuilt.node_count == graph.node_count
        assert rebuilt.edge_count == graph.edge_count
        sec21 = reference_graph["nodes"]["sec21"]
        assert rebuilt.get_node(sec21.id).properties["section_number"] == "2.1"

    def test_summary_omits_empty_types(self, reference_graph):
        summary = reference_graph["graph"].get_summary()

        assert summary["nodes_by_type"]["section"] == 3
        assert "code" not in summary["nodes_by_type"]
        assert summary["edges_by_type"] == {"contains": 2}


def test_extract_keywords_drops_stop_words_and_short_tokens():
    assert extract_keywords("The graph of graphs is a Graph") == ["graph", "graphs"]
