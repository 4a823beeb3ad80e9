"""
Graph Builder

Turns one parsed document into a complete knowledge graph:

1. a document root node plus metadata nodes (author, keywords, language)
2. per page: a page container, paragraph nodes (or a fallback paragraph),
   and section nodes for headings detected from positioned text elements
3. ``follows`` edges along the reading order, never across a page gap
4. ``contains`` edges from each section to the paragraphs right after it

A failure at any step marks the graph as errored and re-raises.
"""

import logging
import re
import time
from typing import Any, Dict, List, Optional, Union

from ..parsers.parsed_document import (
    DocumentMetadata,
    ParsedDocument,
    ParsedPage,
    TextElement,
)
from ..utils.config import BuilderConfig
from .graph_factory import GraphFactory, build_metadata_position
from .knowledge_graph import KnowledgeGraph
from .models import GraphNode, GraphStatus, NodeType, Position

logger = logging.getLogger(__name__)

ALL_CAPS = re.compile(r"^[A-Z\s]+$")
HEADING_NUMBER = re.compile(r"^(\d+(?:\.\d+)*)\.?\s+\S")
DEFAULT_BODY_HEIGHT = 12.0
EMPTY_PAGE_PLACEHOLDER = "[Empty page]"
# follows edges join paragraphs on the same or the next page, never further
MAX_FOLLOWS_PAGE_GAP = 1


class GraphBuilder:
    """Builds a KnowledgeGraph from a ParsedDocument."""

    def __init__(self, config: Optional[BuilderConfig] = None):
        self.config = config or BuilderConfig()

    def build_graph(
        self,
        document_id: str,
        parsed: Union[ParsedDocument, Dict[str, Any]],
        graph: Optional[KnowledgeGraph] = None,
    ) -> KnowledgeGraph:
        """
        Build and complete a graph for one document.

        Args:
            document_id: Id of the source document
            parsed: Parser output, as a ParsedDocument or its dict form
            graph: Empty graph to fill; lets the caller keep a handle on the
                errored graph when the build fails

        Returns:
            The completed graph

        Raises:
            Whatever the build raised, after the graph is marked as errored
        """
        if graph is None:
            graph = KnowledgeGraph(document_id)

        start_time = time.perf_counter()
        try:
            if isinstance(parsed, dict):
                parsed = ParsedDocument.from_dict(parsed)
            logger.info(
                f"Building graph for {document_id}: {len(parsed.pages)} pages, "
                f"{parsed.paragraph_count} paragraphs"
            )
            self._build_structure(graph, parsed)
            graph.metadata.processing_time = (time.perf_counter() - start_time) * 1000
            graph.complete()
        except Exception as e:
            logger.error(f"Graph building failed for {document_id}: {e}")
            graph.metadata.processing_time = (time.perf_counter() - start_time) * 1000
            if graph.status == GraphStatus.BUILDING:
                graph.mark_error(str(e))
            raise

        logger.info(
            f"Graph for {document_id} complete: {graph.statistics.node_count} nodes, "
            f"{graph.statistics.edge_count} edges in "
            f"{graph.metadata.processing_time:.1f}ms"
        )
        return graph

    # ------------------------------------------------------------------
    # Structure
    # ------------------------------------------------------------------

    def _build_structure(self, graph: KnowledgeGraph, parsed: ParsedDocument) -> None:
        meta = parsed.metadata
        document_node = GraphFactory.create_document_node(
            meta.title or "Untitled Document",
            max(0, meta.pages or len(parsed.pages)),
            max(0, meta.file_size or 0),
            metadata={
                "language": meta.language,
                "properties": {
                    "author": meta.author,
                    "subject": meta.subject,
                    "creator": meta.creator,
                    "producer": meta.producer,
                    "creation_date": meta.creation_date,
                    "modification_date": meta.modification_date,
                    "keywords": list(meta.keywords),
                    "language": meta.language,
                    "page_size": meta.page_size,
                },
            },
        )
        graph.add_node(document_node)

        self._create_metadata_nodes(graph, meta, document_node.id)

        for page in parsed.pages:
            self._process_page(graph, page, document_node.id)

        self._create_sequential_edges(graph)
        self._create_section_hierarchy(graph)

    def _create_metadata_nodes(
        self, graph: KnowledgeGraph, meta: DocumentMetadata, document_id: str
    ) -> None:
        entries = []
        if meta.author:
            entries.append(("author", meta.author, len(meta.author)))
        if meta.keywords:
            entries.append(("keywords", list(meta.keywords), len(", ".join(meta.keywords))))
        if meta.language:
            entries.append(("language", meta.language, len(meta.language)))

        for key, value, length in entries:
            node = GraphFactory.create_metadata_node(
                key, value, build_metadata_position(page=1, length=length)
            )
            graph.add_node(node)
            graph.add_edge(GraphFactory.create_contains_edge(document_id, node.id))

    def _process_page(
        self, graph: KnowledgeGraph, page: ParsedPage, document_id: str
    ) -> None:
        page_node = GraphFactory.create_node(
            NodeType.METADATA,
            label=f"Page {page.page_number}",
            content=f"Page {page.page_number} content",
            position=Position(page=page.page_number, start=0, end=max(1, len(page.content))),
            metadata={
                "properties": {
                    "page_number": page.page_number,
                    "width": page.width,
                    "height": page.height,
                    "text_elements": len(page.text_elements),
                },
            },
        )
        graph.add_node(page_node)
        graph.add_edge(GraphFactory.create_contains_edge(document_id, page_node.id))

        if page.paragraphs:
            for paragraph in page.paragraphs:
                node = GraphFactory.create_paragraph_node(
                    paragraph.content,
                    Position(
                        page=paragraph.page_number,
                        start=paragraph.start_position,
                        end=paragraph.end_position,
                    ),
                    confidence=paragraph.confidence,
                    metadata={
                        "properties": {
                            "line_count": paragraph.line_count,
                            "source_paragraph_id": paragraph.id,
                        },
                    },
                )
                graph.add_node(node)
                graph.add_edge(GraphFactory.create_contains_edge(page_node.id, node.id))
        else:
            node = self._create_fallback_paragraph(page)
            graph.add_node(node)
            graph.add_edge(GraphFactory.create_contains_edge(page_node.id, node.id))

        if page.text_elements:
            self._detect_headings(graph, page, page_node.id)

    def _create_fallback_paragraph(self, page: ParsedPage) -> GraphNode:
        lines = [line for line in page.content.split("\n") if line.strip()]
        content = " ".join(lines).strip()

        if not content:
            return GraphFactory.create_paragraph_node(
                EMPTY_PAGE_PLACEHOLDER,
                Position(page=page.page_number, start=0, end=len(EMPTY_PAGE_PLACEHOLDER)),
                confidence=0.1,
                metadata={"properties": {"fallback": True, "placeholder": True}},
            )

        return GraphFactory.create_paragraph_node(
            content,
            Position(page=page.page_number, start=0, end=len(content)),
            confidence=0.5,
            metadata={"properties": {"fallback": True, "original_lines": len(lines)}},
        )

    # ------------------------------------------------------------------
    # Heading detection
    # ------------------------------------------------------------------

    def is_heading(self, element: TextElement) -> bool:
        """Large or all-caps text, close to a line start, short enough to be a title."""
        text = element.text.strip()
        if not text:
            return False
        cfg = self.config
        height = element.height or DEFAULT_BODY_HEIGHT
        is_large = height > cfg.heading_height_threshold
        is_caps = bool(ALL_CAPS.match(text))
        starts_line = bool(element.y) and abs(element.y % cfg.line_height) < cfg.line_start_tolerance
        short_enough = len(element.text) < cfg.max_heading_length
        return (is_large or is_caps) and starts_line and short_enough

    def _detect_headings(
        self, graph: KnowledgeGraph, page: ParsedPage, page_node_id: str
    ) -> None:
        for element in page.text_elements:
            if not self.is_heading(element):
                continue

            title = element.text.strip()
            offset = page.content.find(title)
            start = offset if offset >= 0 else max(0, int(element.x))
            properties: Dict[str, Any] = {"detected": True}
            number = HEADING_NUMBER.match(title)
            if number:
                properties["section_number"] = number.group(1)

            section = GraphFactory.create_section_node(
                title,
                Position(
                    page=page.page_number,
                    start=start,
                    end=start + len(title),
                    bbox={
                        "x": element.x,
                        "y": element.y,
                        "width": element.width,
                        "height": element.height or DEFAULT_BODY_HEIGHT,
                    },
                ),
                level=1,
                confidence=0.7,
                metadata={
                    "font": {"family": "Unknown", "size": element.height or DEFAULT_BODY_HEIGHT},
                    "properties": properties,
                },
            )
            graph.add_node(section)
            graph.add_edge(GraphFactory.create_contains_edge(page_node_id, section.id))
            logger.debug(f"Detected heading on page {page.page_number}: {title!r}")

    # ------------------------------------------------------------------
    # Edges
    # ------------------------------------------------------------------

    def _create_sequential_edges(self, graph: KnowledgeGraph) -> None:
        paragraphs = sorted(
            graph.get_nodes_by_type(NodeType.PARAGRAPH),
            key=lambda n: (n.position.page, n.position.start),
        )
        for current, following in zip(paragraphs, paragraphs[1:]):
            page_gap = following.position.page - current.position.page
            if 0 <= page_gap <= MAX_FOLLOWS_PAGE_GAP:
                graph.add_edge(GraphFactory.create_follows_edge(
                    current.id, following.id, self.config.follows_weight
                ))

    def _create_section_hierarchy(self, graph: KnowledgeGraph) -> None:
        paragraphs = graph.get_nodes_by_type(NodeType.PARAGRAPH)
        for section in graph.get_nodes_by_type(NodeType.SECTION):
            candidates = sorted(
                (
                    p for p in paragraphs
                    if p.position.page == section.position.page
                    and p.position.start > section.position.start
                ),
                key=lambda p: p.position.start,
            )
            for paragraph in candidates[: self.config.max_section_paragraphs]:
                graph.add_edge(GraphFactory.create_contains_edge(
                    section.id, paragraph.id, self.config.hierarchy_weight
                ))

    # ------------------------------------------------------------------
    # Reporting
    # ------------------------------------------------------------------

    @staticmethod
    def get_build_statistics(graph: KnowledgeGraph) -> Dict[str, Any]:
        stats = graph.statistics
        pages = [
            n for n in graph.get_nodes_by_type(NodeType.METADATA)
            if "page_number" in n.properties
        ]
        paragraphs: List[GraphNode] = graph.get_nodes_by_type(NodeType.PARAGRAPH)
        return {
            "total_nodes": stats.node_count,
            "total_edges": stats.edge_count,
            "nodes_by_type": dict(stats.nodes_by_type),
            "edges_by_type": dict(stats.edges_by_type),
            "average_degree": stats.average_degree,
            "max_degree": stats.max_degree,
            "connected_components": stats.components,
            "pages": len(pages),
            "fallback_paragraphs": sum(1 for p in paragraphs if p.properties.get("fallback")),
            "processing_time": graph.metadata.processing_time,
        }
