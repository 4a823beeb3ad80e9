# Knowledge graph model, construction and container
from .models import (
    NodeType,
    EdgeType,
    GraphStatus,
    Position,
    NodeMetadata,
    GraphNode,
    GraphEdge,
    GraphStatistics,
    GraphValidationResult,
    NodeQuery,
    EdgeQuery,
)
from .graph_factory import GraphFactory
from .knowledge_graph import KnowledgeGraph, extract_keywords
from .graph_builder import GraphBuilder

__all__ = [
    "NodeType",
    "EdgeType",
    "GraphStatus",
    "Position",
    "NodeMetadata",
    "GraphNode",
    "GraphEdge",
    "GraphStatistics",
    "GraphValidationResult",
    "NodeQuery",
    "EdgeQuery",
    "GraphFactory",
    "KnowledgeGraph",
    "extract_keywords",
    "GraphBuilder",
]
