"""Tests for reference resolution strategies and the resolution service."""

import pytest

from docgraph.graph.graph_factory import GraphFactory
from docgraph.graph.knowledge_graph import KnowledgeGraph
from docgraph.graph.models import Position
from docgraph.linkers.reference_resolver import (
    ReferenceResolutionService,
    ResolutionContext,
    ResolutionResult,
    ResolutionStrategy,
    extract_figure_number,
    extract_section_number,
    extract_table_number,
    position_distance,
    resolve_fuzzy_section,
    section_number_similarity,
)
from docgraph.parsers.reference_patterns import DetectedReference, ReferenceType
from docgraph.utils.config import ResolverConfig


def reference(text, ref_type, target, context=None):
    return DetectedReference(
        text=text, start=0, end=len(text), type=ref_type, target=target,
        pattern_id="test", confidence=0.8, context=context,
    )


@pytest.fixture
def service():
    return ReferenceResolutionService()


@pytest.fixture
def refs(reference_graph):
    graph, nodes = reference_graph["graph"], reference_graph["nodes"]
    return graph, nodes


def context_for(graph, node, **kwargs):
    return ResolutionContext(graph=graph, source_node=node, **kwargs)


class TestNumberExtraction:
    def test_section_number_from_property_label_or_content(self):
        pos = Position(page=1, start=0, end=5)
        explicit = GraphFactory.create_section_node(
            "Intro", pos, metadata={"properties": {"section_number": "4"}}
        )
        numbered = GraphFactory.create_section_node("3.2 Results", pos)
        unnumbered = GraphFactory.create_section_node("Conclusion", pos)

        assert extract_section_number(explicit) == "4"
        assert extract_section_number(numbered) == "3.2"
        assert extract_section_number(unnumbered) is None

    def test_figure_and_table_numbers(self):
        pos = Position(page=1, start=0, end=5)
        figure = GraphFactory.create_image_node("Fig. 2.1: Layout", pos)
        table = GraphFactory.create_table_node("Table 3 - Scores", pos, 2, 2)
        unlabeled = GraphFactory.create_table_node("a | b", pos, 2, 2)

        assert extract_figure_number(figure) == "2.1"
        assert extract_table_number(table) == "3"
        # "Table: 2x2" label carries no number
        assert extract_table_number(unlabeled) is None

    @pytest.mark.parametrize("target,candidate,expected", [
        ("3.2", "3.2.1", 2 / 3),
        ("3.2.1", "3.2", 2 / 3),
        ("3", "3.2.1.4", 0.25),
        ("2.1", "2", 0.5),
        ("3.2", "3.2", 0.0),
        ("3.2", "3.3", 0.0),
        ("3", "31", 0.0),
        ("", "3", 0.0),
    ])
    def test_section_number_similarity(self, target, candidate, expected):
        assert section_number_similarity(target, candidate) == pytest.approx(expected)


class TestSectionStrategies:
    def test_exact_section_match(self, service, refs):
        graph, nodes = refs
        resolution = service.resolve_reference(
            reference("Section 2.1", ReferenceType.SECTION, "2.1"),
            context_for(graph, nodes["p1"]),
        )

        assert resolution.target_node is nodes["sec21"]
        assert resolution.confidence == 0.95
        assert resolution.strategy_id == "exact_section_match"
        # "2" covers only half of "2.1", below the fuzzy threshold
        assert resolution.candidates is None

    def test_fuzzy_section_match(self, service, refs):
        graph, nodes = refs
        resolution = service.resolve_reference(
            reference("Section 2.1.4", ReferenceType.SECTION, "2.1.4"),
            context_for(graph, nodes["p1"]),
        )

        assert resolution.target_node is nodes["sec21"]
        assert resolution.strategy_id == "fuzzy_section_match"
        assert resolution.confidence == 0.6667
        assert resolution.reason == "Fuzzy section match: 2.1.4 ≈ 2.1"

    def test_distant_prefix_is_not_a_fuzzy_match(self, service):
        graph = KnowledgeGraph("doc-deep")
        source = GraphFactory.create_paragraph_node(
            "As shown in Section 3.", Position(page=1, start=0, end=22)
        )
        deep = GraphFactory.create_section_node(
            "3.2.1.4 Deep", Position(page=2, start=0, end=12),
            metadata={"properties": {"section_number": "3.2.1.4"}},
        )
        graph.add_node(source)
        graph.add_node(deep)
        ref = reference("Section 3", ReferenceType.SECTION, "3")
        context = context_for(graph, source)

        fuzzy = resolve_fuzzy_section(ref, context, ResolverConfig())
        assert fuzzy.target_node is None
        assert fuzzy.reason == "No fuzzy section match for 3"
        assert not service.resolve_reference(ref, context).is_resolved

    def test_unknown_section_is_unresolved(self, service, refs):
        graph, nodes = refs
        resolution = service.resolve_reference(
            reference("Section 9", ReferenceType.SECTION, "9"),
            context_for(graph, nodes["p1"]),
        )

        assert not resolution.is_resolved
        assert resolution.confidence == 0.0
        assert resolution.reason == "No section found with number 9"

    def test_document_structure_overrides_graph_sections(self, service, refs):
        graph, nodes = refs
        resolution = service.resolve_reference(
            reference("Section 2", ReferenceType.SECTION, "2"),
            context_for(graph, nodes["p1"], document_structure={"sections": [nodes["sec1"]]}),
        )
        assert not resolution.is_resolved


class TestFigureAndTableStrategies:
    def test_figure_number_match(self, service, refs):
        graph, nodes = refs
        resolution = service.resolve_reference(
            reference("Figure 1", ReferenceType.FIGURE, "1"),
            context_for(graph, nodes["p1"]),
        )

        assert resolution.target_node is nodes["figure"]
        assert resolution.confidence == 0.9

    def test_table_number_match(self, service, refs):
        graph, nodes = refs
        resolution = service.resolve_reference(
            reference("Table 1", ReferenceType.TABLE, "1"),
            context_for(graph, nodes["p2"]),
        )

        assert resolution.target_node is nodes["table"]
        assert resolution.confidence == 0.9
        assert resolution.reason == "Exact table number match"

    def test_single_table_assumed_to_be_table_one(self, service):
        graph = KnowledgeGraph("doc")
        source = GraphFactory.create_paragraph_node(
            "See Table 1.", Position(page=1, start=0, end=12)
        )
        table = GraphFactory.create_table_node("a | b", Position(page=1, start=20, end=25), 1, 2)
        graph.add_node(source)
        graph.add_node(table)

        resolution = service.resolve_reference(
            reference("Table 1", ReferenceType.TABLE, "1"), context_for(graph, source)
        )

        assert resolution.target_node is table
        assert resolution.confidence == 0.7
        assert resolution.strategy_id == "table_number_match"

    def test_explicit_number_never_falls_back(self, service, refs):
        graph, nodes = refs
        resolution = service.resolve_reference(
            reference("Figure 8", ReferenceType.FIGURE, "8"),
            context_for(graph, nodes["p1"]),
        )

        assert resolution.target_node is None
        assert resolution.reason == "No figure found with number 8"


class TestPageStrategy:
    def test_first_section_or_paragraph_on_page(self, service, refs):
        graph, nodes = refs
        resolution = service.resolve_reference(
            reference("page 2", ReferenceType.PAGE, "2"), context_for(graph, nodes["p1"])
        )

        assert resolution.target_node is nodes["sec2"]
        assert resolution.confidence == 0.7
        assert resolution.reason == "Found content on page 2"
        assert {c.id for c in resolution.candidates} == {
            nodes["sec21"].id, nodes["p2"].id, nodes["figure"].id,
        }

    def test_page_range_uses_first_page(self, service, refs):
        graph, nodes = refs
        resolution = service.resolve_reference(
            reference("pp. 3-5", ReferenceType.PAGE, "3-5"), context_for(graph, nodes["p1"])
        )
        assert resolution.target_node is nodes["table"]

    def test_page_beyond_document(self, service, refs):
        graph, nodes = refs
        resolution = service.resolve_reference(
            reference("page 7", ReferenceType.PAGE, "7"),
            context_for(graph, nodes["p1"], document_structure={"total_pages": 3}),
        )

        assert not resolution.is_resolved
        assert resolution.reason == "Invalid page number: 7"

    def test_empty_page(self, service, refs):
        graph, nodes = refs
        resolution = service.resolve_reference(
            reference("page 4", ReferenceType.PAGE, "4"), context_for(graph, nodes["p1"])
        )
        assert resolution.reason == "No nodes found on page 4"


class TestSpatialStrategy:
    def test_above_finds_nearest_earlier_node(self, service, refs):
        graph, nodes = refs
        resolution = service.resolve_reference(
            reference("above", ReferenceType.CROSS_REFERENCE, "above"),
            context_for(graph, nodes["p2"]),
        )

        assert resolution.target_node is nodes["sec21"]
        assert resolution.confidence == pytest.approx(0.97)
        assert resolution.reason == "Found earlier content (30 units before)"
        assert resolution.strategy_id == "spatial_resolution"

    def test_below_finds_next_node(self, service, refs):
        graph, nodes = refs
        resolution = service.resolve_reference(
            reference("see below", ReferenceType.CROSS_REFERENCE, "below"),
            context_for(graph, nodes["p1"]),
        )

        assert resolution.target_node is nodes["sec2"]
        # page delta 1 -> 1000 + 20 units, floored at 0.5
        assert resolution.confidence == 0.5

    def test_this_section_uses_enclosing_section(self, service, refs):
        graph, nodes = refs
        resolution = service.resolve_reference(
            reference("this section", ReferenceType.CROSS_REFERENCE, "this section"),
            context_for(graph, nodes["p2"]),
        )

        assert resolution.target_node is nodes["sec21"]
        assert resolution.confidence == 0.9
        assert resolution.reason == "Enclosing section"

    def test_no_earlier_content_falls_back_to_semantic(self, service, refs):
        graph, nodes = refs
        resolution = service.resolve_reference(
            reference("earlier", ReferenceType.CROSS_REFERENCE, "earlier"),
            context_for(graph, nodes["sec1"]),
        )

        assert resolution.strategy_id == "semantic_fallback"
        assert resolution.confidence == 0.3
        assert resolution.reason == "Semantic similarity fallback match"
        assert resolution.target_node is nodes["p1"]


class TestSemanticFallback:
    def test_injected_matcher_scores_candidates(self, refs):
        graph, nodes = refs
        scores = {nodes["p1"].id: 0.2, nodes["p2"].id: 0.85}
        service = ReferenceResolutionService(
            semantic_matcher=lambda ref, node: scores.get(node.id, 0.0)
        )

        resolution = service.resolve_reference(
            reference("the approach", ReferenceType.CROSS_REFERENCE, "the approach"),
            context_for(graph, nodes["sec1"]),
        )

        assert resolution.target_node is nodes["p2"]
        assert resolution.confidence == 0.85
        assert resolution.reason == "Semantic similarity match (score 0.85)"

    def test_nearby_nodes_come_first(self, refs):
        graph, nodes = refs
        service = ReferenceResolutionService()
        resolution = service.resolve_reference(
            reference("the approach", ReferenceType.CROSS_REFERENCE, "the approach"),
            context_for(graph, nodes["sec1"], nearby_nodes=[nodes["p2"]]),
        )
        assert resolution.target_node is nodes["p2"]

    def test_fallback_skips_numeric_targets(self, service, refs):
        graph, nodes = refs
        strategy = next(s for s in service.strategies if s.id == "semantic_fallback")
        result = strategy.resolve(
            reference("Figure 3", ReferenceType.FIGURE, "3"), context_for(graph, nodes["p1"])
        )
        assert result.reason == "Semantic fallback not applicable for explicit references"


class TestService:
    def test_strategies_sorted_by_priority(self, service):
        priorities = [s.priority for s in service.strategies]

        assert priorities == sorted(priorities, reverse=True)
        assert [s.id for s in service.get_strategies(ReferenceType.SECTION)] == [
            "exact_section_match", "fuzzy_section_match", "semantic_fallback",
        ]

    def test_citation_has_no_strategy(self, service, refs):
        graph, nodes = refs
        resolution = service.resolve_reference(
            reference("[1]", ReferenceType.CITATION, "1"), context_for(graph, nodes["p1"])
        )

        assert resolution.target_node is None
        assert resolution.reason == "No resolution strategy for citation references"

    def test_failing_strategy_is_skipped(self, refs):
        graph, nodes = refs

        def explode(ref, context):
            raise RuntimeError("boom")

        def fixed(ref, context):
            return ResolutionResult(nodes["sec2"], 0.4, "fixed")

        service = ReferenceResolutionService(strategies=[
            ResolutionStrategy("explode", "Explode", frozenset({ReferenceType.SECTION}), 10, explode),
            ResolutionStrategy("fixed", "Fixed", frozenset({ReferenceType.SECTION}), 1, fixed),
        ])
        resolution = service.resolve_reference(
            reference("Section 2", ReferenceType.SECTION, "2"), context_for(graph, nodes["p1"])
        )

        assert resolution.target_node is nodes["sec2"]
        assert resolution.strategy_id == "fixed"

    def test_all_strategies_failing_still_returns(self, refs):
        graph, nodes = refs

        def explode(ref, context):
            raise ValueError("bad")

        service = ReferenceResolutionService(strategies=[
            ResolutionStrategy("explode", "Explode", frozenset({ReferenceType.PAGE}), 5, explode),
        ])
        resolution = service.resolve_reference(
            reference("page 1", ReferenceType.PAGE, "1"), context_for(graph, nodes["p1"])
        )

        assert resolution.confidence == 0.0
        assert resolution.reason == "No suitable target found"

    def test_resolve_references_and_stats(self, service, refs):
        graph, nodes = refs
        batch = [
            reference("Section 2.1", ReferenceType.SECTION, "2.1"),
            reference("Figure 1", ReferenceType.FIGURE, "1"),
            reference("[4]", ReferenceType.CITATION, "4"),
        ]
        resolutions = service.resolve_references(batch, context_for(graph, nodes["p1"]))
        stats = ReferenceResolutionService.get_resolution_stats(resolutions)

        assert len(resolutions) == 3
        assert stats["total"] == 3
        assert stats["resolved"] == 2
        assert stats["resolution_rate"] == pytest.approx(2 / 3)
        assert stats["average_confidence"] == pytest.approx((0.95 + 0.9) / 2)
        assert stats["by_strategy"] == {"exact_section_match": 1, "figure_number_match": 1}
        assert stats["by_type"]["citation"] == {"total": 1, "resolved": 0}

    def test_stats_for_empty_batch(self):
        stats = ReferenceResolutionService.get_resolution_stats([])
        assert stats["resolution_rate"] == 0.0
        assert stats["average_confidence"] == 0.0

    def test_resolution_to_dict(self, service, refs):
        graph, nodes = refs
        resolution = service.resolve_reference(
            reference("Figure 1", ReferenceType.FIGURE, "1"), context_for(graph, nodes["p1"])
        )
        data = resolution.to_dict()

        assert data["target_node_id"] == nodes["figure"].id
        assert data["reference"]["type"] == "figure"


def test_context_for_node_collects_neighbouring_pages(refs):
    graph, nodes = refs
    context = ResolutionContext.for_node(graph, nodes["p1"])
    nearby = {n.id for n in context.nearby_nodes}

    assert nodes["p1"].id not in nearby
    assert nodes["sec2"].id in nearby
    assert nodes["table"].id not in nearby


def test_position_distance(refs):
    _, nodes = refs
    assert position_distance(nodes["p1"], nodes["sec2"]) == 1020
