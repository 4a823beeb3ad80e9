"""
Knowledge graph data model.

Nodes are typed units of document content (document, section, paragraph,
table, image, list, code, metadata) with a page position and a confidence.
Edges are directed, typed, weighted relations between two nodes. Nodes refer
to each other only through ids; the graph container owns both.
"""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, List, Optional


# ---------------------------------------------------------------------------
# Enums
# ---------------------------------------------------------------------------

class NodeType(Enum):
    DOCUMENT = "document"
    SECTION = "section"
    PARAGRAPH = "paragraph"
    TABLE = "table"
    IMAGE = "image"
    LIST = "list"
    CODE = "code"
    METADATA = "metadata"


class EdgeType(Enum):
    CONTAINS = "contains"
    FOLLOWS = "follows"
    REFERENCES = "references"
    SIMILAR = "similar"


class GraphStatus(Enum):
    BUILDING = "building"
    COMPLETE = "complete"
    ERROR = "error"


NODE_TYPES = tuple(t.value for t in NodeType)
EDGE_TYPES = tuple(t.value for t in EdgeType)


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


# ---------------------------------------------------------------------------
# Nodes & Edges
# ---------------------------------------------------------------------------

@dataclass
class Position:
    """Location of a node inside the source document."""
    page: int                               # 1-based
    start: int                              # character offset, inclusive
    end: int                                # character offset, exclusive
    bbox: Optional[Dict[str, float]] = None  # x / y / width / height

    def to_dict(self) -> Dict[str, Any]:
        data = {"page": self.page, "start": self.start, "end": self.end}
        if self.bbox is not None:
            data["bbox"] = dict(self.bbox)
        return data

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Position":
        return cls(
            page=data["page"],
            start=data["start"],
            end=data["end"],
            bbox=data.get("bbox"),
        )


@dataclass
class NodeMetadata:
    confidence: Optional[float] = None
    language: Optional[str] = None
    font: Optional[Dict[str, Any]] = None
    color: Optional[str] = None
    properties: Dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {"properties": dict(self.properties)}
        for key in ("confidence", "language", "font", "color"):
            value = getattr(self, key)
            if value is not None:
                data[key] = value
        return data

    @classmethod
    def from_dict(cls, data: Optional[Dict[str, Any]]) -> "NodeMetadata":
        data = data or {}
        return cls(
            confidence=data.get("confidence"),
            language=data.get("language"),
            font=data.get("font"),
            color=data.get("color"),
            properties=dict(data.get("properties") or {}),
        )


@dataclass
class GraphNode:
    """A single content node in a document graph."""
    id: str
    type: NodeType
    label: str
    content: str
    position: Position
    metadata: NodeMetadata = field(default_factory=NodeMetadata)
    created_at: datetime = field(default_factory=utcnow)
    updated_at: datetime = field(default_factory=utcnow)

    @property
    def confidence(self) -> Optional[float]:
        return self.metadata.confidence

    @property
    def properties(self) -> Dict[str, Any]:
        return self.metadata.properties

    def to_dict(self, include_timestamps: bool = True) -> Dict[str, Any]:
        data = {
            "id": self.id,
            "type": self.type.value,
            "label": self.label,
            "content": self.content,
            "position": self.position.to_dict(),
            "metadata": self.metadata.to_dict(),
        }
        if include_timestamps:
            data["created_at"] = self.created_at.isoformat()
            data["updated_at"] = self.updated_at.isoformat()
        return data


@dataclass
class GraphEdge:
    """A directed, weighted relation between two nodes."""
    id: str
    source: str
    target: str
    type: EdgeType
    weight: float = 1.0
    metadata: Dict[str, Any] = field(default_factory=dict)  # context, distance, similarity_score, properties
    created_at: datetime = field(default_factory=utcnow)

    @property
    def context(self) -> Optional[str]:
        return self.metadata.get("context")

    def to_dict(self, include_timestamps: bool = True) -> Dict[str, Any]:
        data = {
            "id": self.id,
            "source": self.source,
            "target": self.target,
            "type": self.type.value,
            "weight": self.weight,
            "metadata": dict(self.metadata),
        }
        if include_timestamps:
            data["created_at"] = self.created_at.isoformat()
        return data


# ---------------------------------------------------------------------------
# Graph bookkeeping
# ---------------------------------------------------------------------------

@dataclass
class GraphStatistics:
    node_count: int = 0
    edge_count: int = 0
    nodes_by_type: Dict[str, int] = field(
        default_factory=lambda: {t: 0 for t in NODE_TYPES}
    )
    edges_by_type: Dict[str, int] = field(
        default_factory=lambda: {t: 0 for t in EDGE_TYPES}
    )
    average_degree: float = 0.0
    max_degree: int = 0
    density: float = 0.0
    components: int = 0                     # nodes without any incident edge

    def to_dict(self) -> Dict[str, Any]:
        return {
            "node_count": self.node_count,
            "edge_count": self.edge_count,
            "nodes_by_type": dict(self.nodes_by_type),
            "edges_by_type": dict(self.edges_by_type),
            "average_degree": self.average_degree,
            "max_degree": self.max_degree,
            "density": self.density,
            "components": self.components,
        }


@dataclass
class GraphIndex:
    """Secondary lookups kept in sync with the node and edge lists."""
    by_type: Dict[NodeType, List[str]] = field(default_factory=dict)
    by_page: Dict[int, List[str]] = field(default_factory=dict)
    by_keyword: Dict[str, List[str]] = field(default_factory=dict)
    node_map: Dict[str, GraphNode] = field(default_factory=dict)
    edge_map: Dict[str, GraphEdge] = field(default_factory=dict)
    # source id -> target ids, one entry per edge
    adjacency: Dict[str, List[str]] = field(default_factory=dict)
    # target id -> source ids, one entry per edge
    reverse_adjacency: Dict[str, List[str]] = field(default_factory=dict)


@dataclass
class GraphMetadata:
    created_at: datetime = field(default_factory=utcnow)
    updated_at: datetime = field(default_factory=utcnow)
    version: str = "1.0"
    status: GraphStatus = GraphStatus.BUILDING
    processing_time: Optional[float] = None  # milliseconds
    error: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "created_at": self.created_at.isoformat(),
            "updated_at": self.updated_at.isoformat(),
            "version": self.version,
            "status": self.status.value,
            "processing_time": self.processing_time,
            "error": self.error,
        }


@dataclass
class GraphValidationResult:
    """Outcome of a structural audit. Produced, never raised."""
    is_valid: bool
    errors: List[str] = field(default_factory=list)
    warnings: List[str] = field(default_factory=list)
    stats: Dict[str, int] = field(default_factory=lambda: {
        "orphaned_nodes": 0,
        "duplicate_node_ids": 0,
        "duplicate_edge_ids": 0,
        "invalid_edges": 0,
        "self_referencing_edges": 0,
    })

    def to_dict(self) -> Dict[str, Any]:
        return {
            "is_valid": self.is_valid,
            "errors": list(self.errors),
            "warnings": list(self.warnings),
            "stats": dict(self.stats),
        }


@dataclass
class NodeQuery:
    types: Optional[List[NodeType]] = None
    pages: Optional[List[int]] = None
    keywords: Optional[List[str]] = None
    min_confidence: Optional[float] = None
    limit: Optional[int] = None
    offset: int = 0


@dataclass
class EdgeQuery:
    types: Optional[List[EdgeType]] = None
    source: Optional[str] = None
    target: Optional[str] = None
    min_weight: Optional[float] = None
    limit: Optional[int] = None
