"""
Reference Resolution Service

Maps each detected reference to the node it most likely points at. Resolution
runs a table of strategies, each tagged with the reference types it handles
and a priority that fixes the order they are tried in:

- exact_section_match (10): section number equality
- figure_number_match / table_number_match (9): figure / table number equality
- fuzzy_section_match (8): one section number is a prefix of the other
- page_based_resolution (7): first section or paragraph on a page
- spatial_resolution (5): nearest content before/after the source node
- semantic_fallback (1): nearest node of a plausible type, optionally scored
  by an injected semantic matcher

The highest-confidence result wins; every other strategy's target becomes an
alternative candidate. Resolution never raises to the caller.
"""

import logging
import re
from dataclasses import dataclass, field
from functools import partial
from typing import Any, Callable, Dict, FrozenSet, Iterable, List, Optional, Sequence, Tuple

from ..graph.knowledge_graph import KnowledgeGraph
from ..graph.models import EdgeType, GraphNode, NodeType
from ..parsers.reference_patterns import DetectedReference, ReferenceType
from ..utils.config import ResolverConfig

logger = logging.getLogger(__name__)

# (reference, candidate node) -> similarity in [0, 1]
SemanticMatcher = Callable[[DetectedReference, GraphNode], float]

_NUMBER = r"(\d+(?:\.\d+)*)"

SECTION_NUMBER_PATTERNS = (
    re.compile(r"^\s*" + _NUMBER),
    re.compile(r"\bSection:?\s+" + _NUMBER, re.IGNORECASE),
    re.compile(r"\bSect\.?\s+" + _NUMBER, re.IGNORECASE),
)
FIGURE_NUMBER_PATTERNS = (
    re.compile(r"\bFig(?:ure)?\.?:?\s+" + _NUMBER, re.IGNORECASE),
)
# No colon: table labels look like "Table: 3x4".
TABLE_NUMBER_PATTERNS = (
    re.compile(r"\bTab(?:le)?\.?\s+" + _NUMBER, re.IGNORECASE),
)

TARGET_NUMBER = re.compile(r"^\s*" + _NUMBER)
NUMERIC_TARGET = re.compile(r"^\d+(?:\.\d+)*$")
LEADING_INTEGER = re.compile(r"^\s*(\d+)")
THIS_REFERENCE = re.compile(r"\bthis\s+(?:section|chapter)\b", re.IGNORECASE)

BACKWARD_WORDS = ("above", "previous", "previously", "earlier")
FORWARD_WORDS = ("below", "next", "following", "later")

CONTENT_NODE_TYPES = frozenset({
    NodeType.SECTION,
    NodeType.PARAGRAPH,
    NodeType.TABLE,
    NodeType.IMAGE,
    NodeType.LIST,
    NodeType.CODE,
})

# Node type searched by the fallback for each reference type.
FALLBACK_NODE_TYPES = {
    ReferenceType.SECTION: NodeType.SECTION,
    ReferenceType.FIGURE: NodeType.IMAGE,
    ReferenceType.TABLE: NodeType.TABLE,
}

PAGE_DISTANCE = 1000

EXACT_SECTION_CONFIDENCE = 0.95
NUMBER_MATCH_CONFIDENCE = 0.9
SINGLE_TABLE_CONFIDENCE = 0.7
PAGE_CONFIDENCE = 0.7
THIS_SECTION_CONFIDENCE = 0.9


# ---------------------------------------------------------------------------
# Data types
# ---------------------------------------------------------------------------

@dataclass
class ResolutionContext:
    """Where a reference was found, and what it could point at."""
    graph: KnowledgeGraph
    source_node: GraphNode
    nearby_nodes: Optional[List[GraphNode]] = None
    # total_pages plus optional sections / figures / tables node lists
    document_structure: Optional[Dict[str, Any]] = None

    @classmethod
    def for_node(
        cls,
        graph: KnowledgeGraph,
        node: GraphNode,
        page_radius: int = 1,
    ) -> "ResolutionContext":
        """Context for a node of ``graph``, with nodes on neighbouring pages as nearby."""
        page = node.position.page
        nearby = [
            other
            for p in range(max(1, page - page_radius), page + page_radius + 1)
            for other in graph.get_nodes_by_page(p)
            if other.id != node.id
        ]
        return cls(graph=graph, source_node=node, nearby_nodes=nearby)

    def nodes_of_type(self, node_type: NodeType) -> List[GraphNode]:
        key = {
            NodeType.SECTION: "sections",
            NodeType.IMAGE: "figures",
            NodeType.TABLE: "tables",
        }.get(node_type)
        structure = self.document_structure or {}
        if key and structure.get(key) is not None:
            return list(structure[key])
        return self.graph.get_nodes_by_type(node_type)


@dataclass
class ResolutionResult:
    """What a single strategy found."""
    target_node: Optional[GraphNode]
    confidence: float
    reason: str
    candidates: List[GraphNode] = field(default_factory=list)


@dataclass
class ReferenceResolution:
    """Final outcome for one detected reference."""
    reference: DetectedReference
    target_node: Optional[GraphNode]
    confidence: float
    reason: str
    candidates: Optional[List[GraphNode]] = None
    strategy_id: Optional[str] = None

    @property
    def is_resolved(self) -> bool:
        return self.target_node is not None and self.confidence > 0

    def to_dict(self) -> Dict[str, Any]:
        return {
            "reference": self.reference.to_dict(),
            "target_node_id": self.target_node.id if self.target_node else None,
            "confidence": self.confidence,
            "reason": self.reason,
            "candidate_ids": [c.id for c in self.candidates] if self.candidates else [],
            "strategy_id": self.strategy_id,
        }


@dataclass(frozen=True)
class ResolutionStrategy:
    id: str
    name: str
    supported_types: FrozenSet[ReferenceType]
    priority: int
    resolve: Callable[[DetectedReference, ResolutionContext], ResolutionResult]

    def supports(self, ref_type: ReferenceType) -> bool:
        return ref_type in self.supported_types


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

def _extract_number(
    node: GraphNode,
    property_name: str,
    patterns: Sequence["re.Pattern"],
) -> Optional[str]:
    """Number of a section/figure/table node: explicit property first, then label and content."""
    value = node.properties.get(property_name)
    if value is not None and str(value).strip():
        return str(value).strip()
    for text in (node.label, node.content):
        for pattern in patterns:
            match = pattern.search(text or "")
            if match:
                return match.group(1)
    return None


def extract_section_number(node: GraphNode) -> Optional[str]:
    return _extract_number(node, "section_number", SECTION_NUMBER_PATTERNS)


def extract_figure_number(node: GraphNode) -> Optional[str]:
    return _extract_number(node, "figure_number", FIGURE_NUMBER_PATTERNS)


def extract_table_number(node: GraphNode) -> Optional[str]:
    return _extract_number(node, "table_number", TABLE_NUMBER_PATTERNS)


def _target_number(reference: DetectedReference) -> Optional[str]:
    match = TARGET_NUMBER.match(reference.target or "")
    return match.group(1) if match else None


def section_number_similarity(target: str, candidate: str) -> float:
    """
    Similarity of two dotted section numbers where one extends the other.

    The score is the share of the longer number's parts covered by the shorter
    one: "3.2" vs "3.2.1" scores 2/3, "3" vs "3.2.1.4" only 1/4. Equal, unrelated
    or sibling numbers ("3.2" vs "3.3") score 0.
    """
    if not target or not candidate or target == candidate:
        return 0.0
    target_parts = target.split(".")
    candidate_parts = candidate.split(".")
    shorter, longer = sorted((target_parts, candidate_parts), key=len)
    if len(shorter) == len(longer) or longer[:len(shorter)] != shorter:
        return 0.0
    return len(shorter) / len(longer)


def position_distance(first: GraphNode, second: GraphNode) -> int:
    page_delta = abs(first.position.page - second.position.page)
    return page_delta * PAGE_DISTANCE + abs(first.position.start - second.position.start)


def _content_nodes(context: ResolutionContext) -> List[GraphNode]:
    return [
        node for node in context.graph.nodes
        if node.type in CONTENT_NODE_TYPES and node.id != context.source_node.id
    ]


def find_nodes_before(context: ResolutionContext) -> List[GraphNode]:
    """Content nodes before the source, closest first."""
    source = context.source_node.position
    earlier = [
        node for node in _content_nodes(context)
        if node.position.page < source.page
        or (node.position.page == source.page and node.position.start < source.start)
    ]
    earlier.sort(key=lambda n: (n.position.page, n.position.start), reverse=True)
    return earlier


def find_nodes_after(context: ResolutionContext) -> List[GraphNode]:
    """Content nodes after the source, closest first."""
    source = context.source_node.position
    later = [
        node for node in _content_nodes(context)
        if node.position.page > source.page
        or (node.position.page == source.page and node.position.start >= source.end)
    ]
    later.sort(key=lambda n: (n.position.page, n.position.start))
    return later


def _spatial_confidence(distance: int, config: ResolverConfig) -> float:
    decayed = 1.0 - distance / config.spatial_distance_scale
    return round(max(config.spatial_min_confidence, min(1.0, decayed)), 4)


def _no_match(reason: str) -> ResolutionResult:
    return ResolutionResult(target_node=None, confidence=0.0, reason=reason)


# ---------------------------------------------------------------------------
# Strategies
# ---------------------------------------------------------------------------

def resolve_exact_section(
    reference: DetectedReference,
    context: ResolutionContext,
    config: ResolverConfig,
) -> ResolutionResult:
    target = _target_number(reference)
    if target is None:
        return _no_match(f"No section number in reference: {reference.target}")
    for section in context.nodes_of_type(NodeType.SECTION):
        if extract_section_number(section) == target:
            return ResolutionResult(
                section, EXACT_SECTION_CONFIDENCE, f"Exact section number match: {target}"
            )
    return _no_match(f"No section found with number {target}")


def resolve_fuzzy_section(
    reference: DetectedReference,
    context: ResolutionContext,
    config: ResolverConfig,
) -> ResolutionResult:
    target = _target_number(reference)
    if target is None:
        return _no_match(f"No section number in reference: {reference.target}")

    best: Optional[Tuple[float, GraphNode, str]] = None
    for section in context.nodes_of_type(NodeType.SECTION):
        number = extract_section_number(section)
        if number is None:
            continue
        score = section_number_similarity(target, number)
        if score > config.fuzzy_threshold and (best is None or score > best[0]):
            best = (score, section, number)

    if best is None:
        return _no_match(f"No fuzzy section match for {target}")
    score, section, number = best
    return ResolutionResult(
        section, round(score, 4), f"Fuzzy section match: {target} ≈ {number}"
    )


def resolve_figure_number(
    reference: DetectedReference,
    context: ResolutionContext,
    config: ResolverConfig,
) -> ResolutionResult:
    target = _target_number(reference)
    if target is None:
        return _no_match(f"No figure number in reference: {reference.target}")
    for figure in context.nodes_of_type(NodeType.IMAGE):
        if extract_figure_number(figure) == target:
            return ResolutionResult(figure, NUMBER_MATCH_CONFIDENCE, "Exact figure number match")
    return _no_match(f"No figure found with number {target}")


def resolve_table_number(
    reference: DetectedReference,
    context: ResolutionContext,
    config: ResolverConfig,
) -> ResolutionResult:
    target = _target_number(reference)
    if target is None:
        return _no_match(f"No table number in reference: {reference.target}")
    tables = context.nodes_of_type(NodeType.TABLE)
    for table in tables:
        if extract_table_number(table) == target:
            return ResolutionResult(table, NUMBER_MATCH_CONFIDENCE, "Exact table number match")
    if len(tables) == 1 and target == "1":
        return ResolutionResult(
            tables[0], SINGLE_TABLE_CONFIDENCE, "Only table in document (assuming Table 1)"
        )
    return _no_match(f"No table found with number {target}")


def resolve_page(
    reference: DetectedReference,
    context: ResolutionContext,
    config: ResolverConfig,
) -> ResolutionResult:
    match = LEADING_INTEGER.match(reference.target or "")
    page = int(match.group(1)) if match else 0
    total_pages = (context.document_structure or {}).get("total_pages")
    if page < 1 or (total_pages and page > total_pages):
        return _no_match(f"Invalid page number: {reference.target}")

    page_nodes = [
        node for node in context.graph.get_nodes_by_page(page)
        if node.id != context.source_node.id and node.type != NodeType.DOCUMENT
    ]
    if not page_nodes:
        return _no_match(f"No nodes found on page {page}")

    page_nodes.sort(key=lambda n: n.position.start)
    preferred = [n for n in page_nodes if n.type in (NodeType.SECTION, NodeType.PARAGRAPH)]
    target = preferred[0] if preferred else page_nodes[0]
    return ResolutionResult(
        target,
        PAGE_CONFIDENCE,
        f"Found content on page {page}",
        candidates=[n for n in page_nodes if n.id != target.id],
    )


def _resolve_this_section(context: ResolutionContext) -> ResolutionResult:
    source = context.source_node
    for edge in context.graph.get_incoming_edges(source.id):
        if edge.type != EdgeType.CONTAINS:
            continue
        parent = context.graph.get_node(edge.source)
        if parent is not None and parent.type == NodeType.SECTION:
            return ResolutionResult(parent, THIS_SECTION_CONFIDENCE, "Enclosing section")

    sections = [
        n for n in find_nodes_before(context) if n.type == NodeType.SECTION
    ]
    if sections:
        return ResolutionResult(
            sections[0],
            THIS_SECTION_CONFIDENCE - 0.2,
            "Nearest preceding section",
            candidates=sections[1:3],
        )
    return _no_match("No enclosing section found")


def resolve_spatial(
    reference: DetectedReference,
    context: ResolutionContext,
    config: ResolverConfig,
) -> ResolutionResult:
    text = reference.text.lower()

    if THIS_REFERENCE.search(text):
        return _resolve_this_section(context)

    if any(word in text for word in BACKWARD_WORDS):
        earlier = find_nodes_before(context)
        if earlier:
            target = earlier[0]
            distance = position_distance(context.source_node, target)
            return ResolutionResult(
                target,
                _spatial_confidence(distance, config),
                f"Found earlier content ({distance} units before)",
                candidates=earlier[1:config.fallback_candidates],
            )
    elif any(word in text for word in FORWARD_WORDS):
        later = find_nodes_after(context)
        if later:
            target = later[0]
            distance = position_distance(target, context.source_node)
            return ResolutionResult(
                target,
                _spatial_confidence(distance, config),
                f"Found later content ({distance} units after)",
                candidates=later[1:config.fallback_candidates],
            )

    return _no_match(f'No spatial match found for "{text}"')


def find_fallback_candidates(
    reference: DetectedReference,
    context: ResolutionContext,
    limit: int,
) -> List[GraphNode]:
    """Nodes of the type the reference could point at, nearby ones first, then by distance."""
    node_type = FALLBACK_NODE_TYPES.get(reference.type, NodeType.PARAGRAPH)
    nearby_ids = {n.id for n in context.nearby_nodes or []}
    candidates = [
        node for node in context.nodes_of_type(node_type)
        if node.id != context.source_node.id
    ]
    candidates.sort(key=lambda n: (
        n.id not in nearby_ids,
        position_distance(context.source_node, n),
    ))
    return candidates[:limit]


def resolve_semantic_fallback(
    reference: DetectedReference,
    context: ResolutionContext,
    config: ResolverConfig,
    semantic_matcher: Optional[SemanticMatcher] = None,
) -> ResolutionResult:
    if reference.type in FALLBACK_NODE_TYPES:
        target = (reference.target or "").strip()
        if not target or NUMERIC_TARGET.match(target):
            return _no_match("Semantic fallback not applicable for explicit references")

    candidates = find_fallback_candidates(reference, context, config.fallback_candidates)
    if not candidates:
        return _no_match("No semantic fallback match found")

    if semantic_matcher is None:
        return ResolutionResult(
            candidates[0],
            config.fallback_confidence,
            "Semantic similarity fallback match",
            candidates=candidates[1:],
        )

    scored = [
        (max(0.0, min(1.0, float(semantic_matcher(reference, node)))), node)
        for node in candidates
    ]
    # stable: equal scores keep proximity order
    scored.sort(key=lambda pair: -pair[0])
    score, best = scored[0]
    return ResolutionResult(
        best,
        round(score, 4),
        f"Semantic similarity match (score {score:.2f})",
        candidates=[node for _, node in scored[1:]],
    )


def build_default_strategies(
    config: ResolverConfig,
    semantic_matcher: Optional[SemanticMatcher] = None,
) -> List[ResolutionStrategy]:
    """The built-in strategy table bound to ``config``."""
    return [
        ResolutionStrategy(
            id="exact_section_match",
            name="Exact Section Match",
            supported_types=frozenset({ReferenceType.SECTION}),
            priority=10,
            resolve=partial(resolve_exact_section, config=config),
        ),
        ResolutionStrategy(
            id="figure_number_match",
            name="Figure Number Match",
            supported_types=frozenset({ReferenceType.FIGURE}),
            priority=9,
            resolve=partial(resolve_figure_number, config=config),
        ),
        ResolutionStrategy(
            id="table_number_match",
            name="Table Number Match",
            supported_types=frozenset({ReferenceType.TABLE}),
            priority=9,
            resolve=partial(resolve_table_number, config=config),
        ),
        ResolutionStrategy(
            id="fuzzy_section_match",
            name="Fuzzy Section Match",
            supported_types=frozenset({ReferenceType.SECTION}),
            priority=8,
            resolve=partial(resolve_fuzzy_section, config=config),
        ),
        ResolutionStrategy(
            id="page_based_resolution",
            name="Page-based Resolution",
            supported_types=frozenset({ReferenceType.PAGE}),
            priority=7,
            resolve=partial(resolve_page, config=config),
        ),
        ResolutionStrategy(
            id="spatial_resolution",
            name="Spatial Resolution",
            supported_types=frozenset({ReferenceType.CROSS_REFERENCE}),
            priority=5,
            resolve=partial(resolve_spatial, config=config),
        ),
        ResolutionStrategy(
            id="semantic_fallback",
            name="Semantic Fallback",
            supported_types=frozenset({
                ReferenceType.SECTION,
                ReferenceType.FIGURE,
                ReferenceType.TABLE,
                ReferenceType.CROSS_REFERENCE,
            }),
            priority=1,
            resolve=partial(
                resolve_semantic_fallback, config=config, semantic_matcher=semantic_matcher
            ),
        ),
    ]


# ---------------------------------------------------------------------------
# Service
# ---------------------------------------------------------------------------

class ReferenceResolutionService:
    """Resolves detected references against one knowledge graph."""

    def __init__(
        self,
        config: Optional[ResolverConfig] = None,
        semantic_matcher: Optional[SemanticMatcher] = None,
        strategies: Optional[Iterable[ResolutionStrategy]] = None,
    ):
        """
        Args:
            config: Resolver thresholds; defaults to ``ResolverConfig()``
            semantic_matcher: Optional scorer used by the semantic fallback
            strategies: Replacement strategy table
        """
        self.config = config or ResolverConfig()
        self.semantic_matcher = semantic_matcher
        if strategies is None:
            strategies = build_default_strategies(self.config, semantic_matcher)
        # sorted() is stable, so equal priorities keep table order
        self.strategies: List[ResolutionStrategy] = sorted(
            strategies, key=lambda s: -s.priority
        )

    def get_strategies(self, ref_type: ReferenceType) -> List[ResolutionStrategy]:
        return [s for s in self.strategies if s.supports(ref_type)]

    def resolve_reference(
        self,
        reference: DetectedReference,
        context: ResolutionContext,
    ) -> ReferenceResolution:
        """
        Resolve one reference.

        Every applicable strategy runs; the first strictly-highest confidence
        wins. A strategy that raises is logged and skipped.

        Returns:
            ReferenceResolution, unresolved with confidence 0 when nothing fits
        """
        logger.debug(
            f"Resolving '{reference.text}' ({reference.type.value}, target "
            f"'{reference.target}') from node {context.source_node.id}"
        )
        strategies = self.get_strategies(reference.type)
        if not strategies:
            return ReferenceResolution(
                reference=reference,
                target_node=None,
                confidence=0.0,
                reason=f"No resolution strategy for {reference.type.value} references",
            )

        best: Optional[ResolutionResult] = None
        best_strategy: Optional[ResolutionStrategy] = None
        found: Dict[str, GraphNode] = {}

        for strategy in strategies:
            try:
                result = strategy.resolve(reference, context)
            except Exception as e:
                logger.warning(f"Strategy {strategy.id} failed for '{reference.text}': {e}")
                continue

            if result.target_node is not None:
                found.setdefault(result.target_node.id, result.target_node)
                logger.debug(
                    f"Strategy {strategy.id} matched {result.target_node.id} "
                    f"({result.confidence:.2f}): {result.reason}"
                )
            if best is None or result.confidence > best.confidence:
                best, best_strategy = result, strategy

        if best is None or best.target_node is None or best.confidence <= 0:
            return ReferenceResolution(
                reference=reference,
                target_node=None,
                confidence=0.0,
                reason=best.reason if best is not None else "No suitable target found",
            )

        for candidate in best.candidates:
            found.setdefault(candidate.id, candidate)
        alternatives = [n for node_id, n in found.items() if node_id != best.target_node.id]

        return ReferenceResolution(
            reference=reference,
            target_node=best.target_node,
            confidence=best.confidence,
            reason=best.reason,
            candidates=alternatives or None,
            strategy_id=best_strategy.id,
        )

    def resolve_references(
        self,
        references: Iterable[DetectedReference],
        context: ResolutionContext,
    ) -> List[ReferenceResolution]:
        """Resolve every reference; failures become confidence-0 resolutions."""
        resolutions = []
        for reference in references:
            try:
                resolutions.append(self.resolve_reference(reference, context))
            except Exception as e:
                logger.warning(f"Failed to resolve reference '{reference.text}': {e}")
                resolutions.append(ReferenceResolution(
                    reference=reference,
                    target_node=None,
                    confidence=0.0,
                    reason=f"Resolution failed: {e}",
                ))
        return resolutions

    @staticmethod
    def get_resolution_stats(resolutions: Sequence[ReferenceResolution]) -> Dict[str, Any]:
        resolved = [r for r in resolutions if r.is_resolved]
        by_strategy: Dict[str, int] = {}
        by_type: Dict[str, Dict[str, int]] = {}
        for resolution in resolutions:
            bucket = by_type.setdefault(
                resolution.reference.type.value, {"total": 0, "resolved": 0}
            )
            bucket["total"] += 1
            if resolution.is_resolved:
                bucket["resolved"] += 1
                by_strategy[resolution.strategy_id] = by_strategy.get(resolution.strategy_id, 0) + 1

        total = len(resolutions)
        return {
            "total": total,
            "resolved": len(resolved),
            "resolution_rate": len(resolved) / total if total else 0.0,
            "average_confidence": (
                sum(r.confidence for r in resolved) / len(resolved) if resolved else 0.0
            ),
            "by_strategy": by_strategy,
            "by_type": by_type,
        }
