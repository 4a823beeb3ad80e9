"""
In-memory knowledge graph for a single document.

Holds the node and edge lists together with secondary indices (type, page,
keyword, id maps and forward/reverse adjacency). Statistics are recomputed
after every mutation; per-document graphs stay in the hundreds to low
thousands of nodes, so the full pass is cheap enough.

Mutations fail fast with GraphStructureError. ``validate()`` is the soft
counterpart: it audits the current state and reports problems without raising.
"""

import logging
import re
import uuid
from typing import Any, Dict, Iterable, List, Optional, Union

import numpy as np

from ..utils.errors import GraphStateError, GraphStructureError
from .models import (
    EDGE_TYPES,
    NODE_TYPES,
    EdgeQuery,
    EdgeType,
    GraphEdge,
    GraphIndex,
    GraphMetadata,
    GraphNode,
    GraphStatistics,
    GraphStatus,
    GraphValidationResult,
    NodeMetadata,
    NodeQuery,
    NodeType,
    Position,
    utcnow,
)

logger = logging.getLogger(__name__)

STOP_WORDS = frozenset({
    "the", "a", "an", "and", "or", "but", "in", "on", "at", "to", "for", "of",
    "with", "by", "is", "are", "was", "were", "be", "been", "being", "have",
    "has", "had", "do", "does", "did", "will", "would", "could", "should",
    "may", "might", "must", "can", "this", "that", "these", "those", "i",
    "you", "he", "she", "it", "we", "they", "me", "him", "her", "us", "them",
})

_TOKEN_SPLIT = re.compile(r"\W+")


def extract_keywords(content: str) -> List[str]:
    """Lowercase tokens longer than two characters, minus stop words, in first-seen order."""
    seen = {}
    for token in _TOKEN_SPLIT.split(content.lower()):
        if len(token) > 2 and token not in STOP_WORDS:
            seen.setdefault(token, None)
    return list(seen)


def _as_node_type(value: Union[NodeType, str]) -> NodeType:
    return value if isinstance(value, NodeType) else NodeType(value)


def _as_edge_type(value: Union[EdgeType, str]) -> EdgeType:
    return value if isinstance(value, EdgeType) else EdgeType(value)


class KnowledgeGraph:
    """Document graph with indexed lookups and a building/complete/error lifecycle."""

    def __init__(self, document_id: str, graph_id: Optional[str] = None):
        self.id = graph_id or str(uuid.uuid4())
        self.document_id = document_id
        self.nodes: List[GraphNode] = []
        self.edges: List[GraphEdge] = []
        self.index = GraphIndex()
        self.statistics = GraphStatistics()
        self.metadata = GraphMetadata()

    # ------------------------------------------------------------------
    # Properties
    # ------------------------------------------------------------------

    @property
    def status(self) -> GraphStatus:
        return self.metadata.status

    @property
    def node_count(self) -> int:
        return len(self.nodes)

    @property
    def edge_count(self) -> int:
        return len(self.edges)

    def __len__(self) -> int:
        return len(self.nodes)

    def __contains__(self, node_id: str) -> bool:
        return node_id in self.index.node_map

    def __repr__(self) -> str:
        return (
            f"KnowledgeGraph(id={self.id!r}, document_id={self.document_id!r}, "
            f"nodes={len(self.nodes)}, edges={len(self.edges)}, "
            f"status={self.status.value!r})"
        )

    # ------------------------------------------------------------------
    # Mutations
    # ------------------------------------------------------------------

    def add_node(self, node: GraphNode) -> None:
        """
        Insert a node and index it.

        Raises:
            GraphStructureError: a node with the same id already exists
        """
        if node.id in self.index.node_map:
            raise GraphStructureError(f"Node with ID {node.id} already exists")

        self.nodes.append(node)
        self.index.node_map[node.id] = node
        self.index.by_type.setdefault(node.type, []).append(node.id)
        self.index.by_page.setdefault(node.position.page, []).append(node.id)
        for keyword in extract_keywords(node.content):
            self.index.by_keyword.setdefault(keyword, []).append(node.id)
        self.index.adjacency[node.id] = []
        self.index.reverse_adjacency[node.id] = []

        self._touch()
        self._recompute_statistics()

    def remove_node(self, node_id: str) -> bool:
        """Remove a node and every edge touching it. Returns False if absent."""
        node = self.index.node_map.get(node_id)
        if node is None:
            return False

        self.nodes = [n for n in self.nodes if n.id != node_id]
        del self.index.node_map[node_id]
        self._discard(self.index.by_type, node.type, node_id)
        self._discard(self.index.by_page, node.position.page, node_id)
        for keyword in extract_keywords(node.content):
            self._discard(self.index.by_keyword, keyword, node_id)

        incident = [e for e in self.edges if e.source == node_id or e.target == node_id]
        for edge in incident:
            self._detach_edge(edge)

        self.index.adjacency.pop(node_id, None)
        self.index.reverse_adjacency.pop(node_id, None)

        self._touch()
        self._recompute_statistics()
        return True

    def add_edge(self, edge: GraphEdge) -> None:
        """
        Insert an edge between two existing nodes.

        Raises:
            GraphStructureError: missing endpoint, duplicate id or self-loop
        """
        if edge.source not in self.index.node_map:
            raise GraphStructureError(f"Source node {edge.source} does not exist")
        if edge.target not in self.index.node_map:
            raise GraphStructureError(f"Target node {edge.target} does not exist")
        if edge.id in self.index.edge_map:
            raise GraphStructureError(f"Edge with ID {edge.id} already exists")
        if edge.source == edge.target:
            raise GraphStructureError(f"Edge {edge.id} is a self-reference")

        self.edges.append(edge)
        self.index.edge_map[edge.id] = edge
        self.index.adjacency[edge.source].append(edge.target)
        self.index.reverse_adjacency[edge.target].append(edge.source)

        now = utcnow()
        self.index.node_map[edge.source].updated_at = now
        self.index.node_map[edge.target].updated_at = now

        self._touch()
        self._recompute_statistics()

    def remove_edge(self, edge_id: str) -> bool:
        """Remove an edge by id. Returns False if absent."""
        edge = self.index.edge_map.get(edge_id)
        if edge is None:
            return False

        self._detach_edge(edge)
        self._touch()
        self._recompute_statistics()
        return True

    def _detach_edge(self, edge: GraphEdge) -> None:
        self.edges = [e for e in self.edges if e.id != edge.id]
        self.index.edge_map.pop(edge.id, None)

        targets = self.index.adjacency.get(edge.source)
        if targets and edge.target in targets:
            targets.remove(edge.target)
        sources = self.index.reverse_adjacency.get(edge.target)
        if sources and edge.source in sources:
            sources.remove(edge.source)

        now = utcnow()
        for endpoint in (edge.source, edge.target):
            node = self.index.node_map.get(endpoint)
            if node is not None:
                node.updated_at = now

    @staticmethod
    def _discard(mapping: Dict[Any, List[str]], key: Any, node_id: str) -> None:
        ids = mapping.get(key)
        if ids is None:
            return
        if node_id in ids:
            ids.remove(node_id)
        if not ids:
            del mapping[key]

    def _touch(self) -> None:
        self.metadata.updated_at = utcnow()

    # ------------------------------------------------------------------
    # Lookups
    # ------------------------------------------------------------------

    def get_node(self, node_id: str) -> Optional[GraphNode]:
        return self.index.node_map.get(node_id)

    def get_edge(self, edge_id: str) -> Optional[GraphEdge]:
        return self.index.edge_map.get(edge_id)

    def get_neighbors(self, node_id: str) -> List[str]:
        """Ids of nodes this node points to (one entry per outgoing edge)."""
        return list(self.index.adjacency.get(node_id, []))

    def get_predecessors(self, node_id: str) -> List[str]:
        """Ids of nodes pointing at this node (one entry per incoming edge)."""
        return list(self.index.reverse_adjacency.get(node_id, []))

    def get_degree(self, node_id: str) -> int:
        """Out-degree of a node."""
        return len(self.index.adjacency.get(node_id, []))

    def get_nodes_by_type(self, node_type: Union[NodeType, str]) -> List[GraphNode]:
        ids = self.index.by_type.get(_as_node_type(node_type), [])
        return [self.index.node_map[i] for i in ids]

    def get_nodes_by_page(self, page: int) -> List[GraphNode]:
        ids = self.index.by_page.get(page, [])
        return [self.index.node_map[i] for i in ids]

    def get_nodes_by_keyword(self, keyword: str) -> List[GraphNode]:
        ids = self.index.by_keyword.get(keyword.lower(), [])
        return [self.index.node_map[i] for i in ids]

    def get_edges_by_type(self, edge_type: Union[EdgeType, str]) -> List[GraphEdge]:
        edge_type = _as_edge_type(edge_type)
        return [e for e in self.edges if e.type == edge_type]

    def get_outgoing_edges(self, node_id: str) -> List[GraphEdge]:
        return [e for e in self.edges if e.source == node_id]

    def get_incoming_edges(self, node_id: str) -> List[GraphEdge]:
        return [e for e in self.edges if e.target == node_id]

    def has_edge(
        self,
        source: str,
        target: str,
        edge_type: Optional[Union[EdgeType, str]] = None,
    ) -> bool:
        if target not in self.index.adjacency.get(source, []):
            return False
        if edge_type is None:
            return True
        edge_type = _as_edge_type(edge_type)
        return any(
            e.source == source and e.target == target and e.type == edge_type
            for e in self.edges
        )

    def query_nodes(self, query: NodeQuery) -> List[GraphNode]:
        """Filter nodes by type, page, keyword and minimum confidence."""
        candidates: Iterable[GraphNode] = self.nodes
        if query.types:
            wanted_types = {_as_node_type(t) for t in query.types}
            candidates = [n for n in candidates if n.type in wanted_types]
        if query.pages:
            wanted_pages = set(query.pages)
            candidates = [n for n in candidates if n.position.page in wanted_pages]
        if query.keywords:
            keyword_ids = set()
            for keyword in query.keywords:
                keyword_ids.update(self.index.by_keyword.get(keyword.lower(), []))
            candidates = [n for n in candidates if n.id in keyword_ids]
        if query.min_confidence is not None:
            candidates = [
                n for n in candidates
                if (n.metadata.confidence or 0.0) >= query.min_confidence
            ]

        results = list(candidates)[query.offset:]
        if query.limit is not None:
            results = results[: query.limit]
        return results

    def query_edges(self, query: EdgeQuery) -> List[GraphEdge]:
        """Filter edges by type, endpoints and minimum weight."""
        results = self.edges
        if query.types:
            wanted_types = {_as_edge_type(t) for t in query.types}
            results = [e for e in results if e.type in wanted_types]
        if query.source is not None:
            results = [e for e in results if e.source == query.source]
        if query.target is not None:
            results = [e for e in results if e.target == query.target]
        if query.min_weight is not None:
            results = [e for e in results if e.weight >= query.min_weight]
        results = list(results)
        if query.limit is not None:
            results = results[: query.limit]
        return results

    # ------------------------------------------------------------------
    # Statistics
    # ------------------------------------------------------------------

    def _recompute_statistics(self) -> None:
        node_count = len(self.nodes)
        edge_count = len(self.edges)

        nodes_by_type = {t: 0 for t in NODE_TYPES}
        for node in self.nodes:
            nodes_by_type[node.type.value] += 1
        edges_by_type = {t: 0 for t in EDGE_TYPES}
        for edge in self.edges:
            edges_by_type[edge.type.value] += 1

        if node_count:
            degrees = np.array(
                [len(self.index.adjacency.get(n.id, [])) for n in self.nodes]
            )
            average_degree = float(degrees.mean())
            max_degree = int(degrees.max())
        else:
            average_degree = 0.0
            max_degree = 0

        possible_pairs = node_count * (node_count - 1)
        density = edge_count / possible_pairs if possible_pairs > 0 else 0.0

        self.statistics = GraphStatistics(
            node_count=node_count,
            edge_count=edge_count,
            nodes_by_type=nodes_by_type,
            edges_by_type=edges_by_type,
            average_degree=average_degree,
            max_degree=max_degree,
            density=density,
            components=self._count_isolated(),
        )

    def _count_isolated(self) -> int:
        return sum(
            1 for n in self.nodes
            if not self.index.adjacency.get(n.id)
            and not self.index.reverse_adjacency.get(n.id)
        )

    # ------------------------------------------------------------------
    # Validation & lifecycle
    # ------------------------------------------------------------------

    def validate(self) -> GraphValidationResult:
        """Audit the graph structure. Never raises."""
        errors: List[str] = []
        warnings: List[str] = []

        node_ids = [n.id for n in self.nodes]
        node_id_set = set(node_ids)
        duplicate_nodes = len(node_ids) - len(node_id_set)

        edge_ids = [e.id for e in self.edges]
        duplicate_edges = len(edge_ids) - len(set(edge_ids))

        invalid_edges = 0
        self_refs = 0
        connected = set()
        for edge in self.edges:
            if edge.source not in node_id_set or edge.target not in node_id_set:
                invalid_edges += 1
            if edge.source == edge.target:
                self_refs += 1
            connected.add(edge.source)
            connected.add(edge.target)
        orphaned = len(node_id_set - connected)

        if duplicate_nodes:
            errors.append(f"Found {duplicate_nodes} duplicate node IDs")
        if duplicate_edges:
            errors.append(f"Found {duplicate_edges} duplicate edge IDs")
        if invalid_edges:
            errors.append(f"Found {invalid_edges} edges referencing non-existent nodes")
        if self_refs:
            errors.append(f"Found {self_refs} self-referencing edges")
        if orphaned:
            warnings.append(f"{orphaned} nodes have no connections")

        return GraphValidationResult(
            is_valid=not errors,
            errors=errors,
            warnings=warnings,
            stats={
                "orphaned_nodes": orphaned,
                "duplicate_node_ids": duplicate_nodes,
                "duplicate_edge_ids": duplicate_edges,
                "invalid_edges": invalid_edges,
                "self_referencing_edges": self_refs,
            },
        )

    def complete(self) -> GraphValidationResult:
        """
        Move the graph to ``complete`` and run a structural audit.

        Audit failures are logged, not raised.

        Raises:
            GraphStateError: the graph already reached a terminal status
        """
        self._transition(GraphStatus.COMPLETE)
        result = self.validate()
        if not result.is_valid:
            logger.warning(
                f"Graph {self.id} completed with validation errors: "
                f"{'; '.join(result.errors)}"
            )
        return result

    def mark_error(self, error: str) -> None:
        """Move the graph to ``error`` and record the message."""
        self._transition(GraphStatus.ERROR)
        self.metadata.error = error

    def _transition(self, status: GraphStatus) -> None:
        if self.metadata.status != GraphStatus.BUILDING:
            raise GraphStateError(self.metadata.status.value, status.value)
        self.metadata.status = status
        self._touch()

    # ------------------------------------------------------------------
    # Serialization
    # ------------------------------------------------------------------

    def serialize(self) -> Dict[str, Any]:
        """Plain nested structure suitable for storage and ``from_dict``."""
        return {
            "id": self.id,
            "document_id": self.document_id,
            "metadata": self.metadata.to_dict(),
            "nodes": [n.to_dict(include_timestamps=False) for n in self.nodes],
            "edges": [e.to_dict(include_timestamps=False) for e in self.edges],
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "KnowledgeGraph":
        """
        Rebuild a graph from ``serialize()`` output.

        Nodes and edges go through the regular mutation path, so a corrupted
        payload fails with GraphStructureError.
        """
        graph = cls(document_id=data["document_id"], graph_id=data.get("id"))
        for raw in data.get("nodes", []):
            graph.add_node(GraphNode(
                id=raw["id"],
                type=NodeType(raw["type"]),
                label=raw["label"],
                content=raw["content"],
                position=Position.from_dict(raw["position"]),
                metadata=NodeMetadata.from_dict(raw.get("metadata")),
            ))
        for raw in data.get("edges", []):
            graph.add_edge(GraphEdge(
                id=raw["id"],
                source=raw["source"],
                target=raw["target"],
                type=EdgeType(raw["type"]),
                weight=raw.get("weight", 1.0),
                metadata=dict(raw.get("metadata") or {}),
            ))

        meta = data.get("metadata") or {}
        graph.metadata.version = meta.get("version", graph.metadata.version)
        graph.metadata.status = GraphStatus(meta.get("status", GraphStatus.BUILDING.value))
        graph.metadata.processing_time = meta.get("processing_time")
        graph.metadata.error = meta.get("error")
        return graph

    def get_summary(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "document_id": self.document_id,
            "status": self.metadata.status.value,
            "node_count": self.statistics.node_count,
            "edge_count": self.statistics.edge_count,
            "nodes_by_type": {
                k: v for k, v in self.statistics.nodes_by_type.items() if v
            },
            "edges_by_type": {
                k: v for k, v in self.statistics.edges_by_type.items() if v
            },
            "average_degree": round(self.statistics.average_degree, 3),
            "density": round(self.statistics.density, 6),
            "isolated_nodes": self.statistics.components,
            "processing_time": self.metadata.processing_time,
            "error": self.metadata.error,
        }
