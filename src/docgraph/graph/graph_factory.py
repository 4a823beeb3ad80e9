"""
Graph Factory

Validated constructors for graph nodes and edges. Every constructor runs the
full set of type and range checks and raises GraphValidationError naming the
violated constraint; nothing is clamped or coerced into range.
"""

import json
import math
import uuid
from typing import Any, Dict, Optional, Union

from ..utils.errors import GraphValidationError
from .models import (
    EdgeType,
    GraphEdge,
    GraphNode,
    NodeMetadata,
    NodeType,
    Position,
    utcnow,
)

MAX_LABEL_LENGTH = 80

MetadataInput = Optional[Union[NodeMetadata, Dict[str, Any]]]
PositionInput = Union[Position, Dict[str, Any]]


def truncate_label(label: str, max_length: int = MAX_LABEL_LENGTH) -> str:
    """Bound a label to ``max_length`` characters, ending in '...' when cut."""
    if len(label) <= max_length:
        return label
    return label[: max_length - 3] + "..."


def _is_number(value: Any) -> bool:
    return (
        isinstance(value, (int, float))
        and not isinstance(value, bool)
        and not math.isnan(value)
    )


def _as_position(position: PositionInput) -> Position:
    if isinstance(position, Position):
        return position
    if isinstance(position, dict):
        try:
            return Position.from_dict(position)
        except KeyError as e:
            raise GraphValidationError(
                f"Invalid position: missing {e.args[0]}", field="position"
            ) from e
    raise GraphValidationError("Invalid position: expected page/start/end", field="position")


def _merge_metadata(defaults: Dict[str, Any], extra: MetadataInput) -> NodeMetadata:
    """Overlay caller metadata on helper defaults; properties merge key by key."""
    merged = dict(defaults)
    properties = dict(defaults.get("properties") or {})
    if extra is not None:
        extra_dict = extra.to_dict() if isinstance(extra, NodeMetadata) else dict(extra)
        properties.update(extra_dict.pop("properties", None) or {})
        merged.update({k: v for k, v in extra_dict.items() if v is not None})
    merged["properties"] = properties
    return NodeMetadata.from_dict(merged)


class GraphFactory:
    """Builds nodes and edges that satisfy the graph's construction invariants."""

    # ------------------------------------------------------------------
    # Generic constructors
    # ------------------------------------------------------------------

    @staticmethod
    def create_node(
        node_type: Union[NodeType, str],
        label: str,
        content: str,
        position: PositionInput,
        metadata: MetadataInput = None,
    ) -> GraphNode:
        """
        Create a validated node with a fresh id and timestamps.

        Raises:
            GraphValidationError: type, label, content, position or confidence
                violates its constraint
        """
        node_type = GraphFactory._validate_node_type(node_type)
        if not isinstance(label, str) or not label.strip():
            raise GraphValidationError("Node label cannot be empty", field="label")
        if content is None or not isinstance(content, str):
            raise GraphValidationError("Node content cannot be null", field="content")

        position = _as_position(position)
        GraphFactory._validate_position(position)

        if isinstance(metadata, NodeMetadata):
            node_metadata = NodeMetadata.from_dict(metadata.to_dict())
        else:
            node_metadata = NodeMetadata.from_dict(metadata)
        GraphFactory._validate_confidence(node_metadata.confidence)

        now = utcnow()
        return GraphNode(
            id=str(uuid.uuid4()),
            type=node_type,
            label=truncate_label(label),
            content=content,
            position=position,
            metadata=node_metadata,
            created_at=now,
            updated_at=now,
        )

    @staticmethod
    def create_edge(
        source: str,
        target: str,
        edge_type: Union[EdgeType, str],
        weight: float = 1.0,
        metadata: Optional[Dict[str, Any]] = None,
    ) -> GraphEdge:
        """
        Create a validated directed edge.

        Endpoint existence is checked by the graph on insertion, not here.

        Raises:
            GraphValidationError: empty endpoint, self-reference, unknown type
                or weight outside [0, 1]
        """
        if not source:
            raise GraphValidationError("Edge source ID cannot be empty", field="source")
        if not target:
            raise GraphValidationError("Edge target ID cannot be empty", field="target")
        if source == target:
            raise GraphValidationError(
                "Invalid edge: no self-references allowed", field="target"
            )
        edge_type = GraphFactory._validate_edge_type(edge_type)
        if not _is_number(weight) or weight < 0 or weight > 1:
            raise GraphValidationError(
                f"Invalid weight: must be between 0 and 1, got {weight}", field="weight"
            )

        return GraphEdge(
            id=str(uuid.uuid4()),
            source=source,
            target=target,
            type=edge_type,
            weight=float(weight),
            metadata=dict(metadata or {}),
            created_at=utcnow(),
        )

    # ------------------------------------------------------------------
    # Node helpers
    # ------------------------------------------------------------------

    @staticmethod
    def create_document_node(
        filename: str,
        total_pages: int,
        file_size: int,
        metadata: MetadataInput = None,
    ) -> GraphNode:
        # A zero-byte file still needs a non-empty position range.
        end = max(1, file_size)
        return GraphFactory.create_node(
            NodeType.DOCUMENT,
            label=f"Document: {filename}",
            content=f"PDF Document: {filename} ({total_pages} pages, {file_size} bytes)",
            position=Position(page=1, start=0, end=end),
            metadata=_merge_metadata(
                {
                    "confidence": 1.0,
                    "properties": {
                        "total_pages": total_pages,
                        "file_size": file_size,
                        "filename": filename,
                    },
                },
                metadata,
            ),
        )

    @staticmethod
    def create_section_node(
        title: str,
        position: PositionInput,
        level: int = 1,
        confidence: float = 0.9,
        metadata: MetadataInput = None,
    ) -> GraphNode:
        return GraphFactory.create_node(
            NodeType.SECTION,
            label=f"Section: {title}",
            content=title,
            position=position,
            metadata=_merge_metadata(
                {
                    "confidence": confidence,
                    "properties": {"level": level, "heading_level": level},
                },
                metadata,
            ),
        )

    @staticmethod
    def create_paragraph_node(
        content: str,
        position: PositionInput,
        confidence: float = 0.8,
        metadata: MetadataInput = None,
    ) -> GraphNode:
        return GraphFactory.create_node(
            NodeType.PARAGRAPH,
            label=truncate_label(f"Paragraph: {content}"),
            content=content,
            position=position,
            metadata=_merge_metadata({"confidence": confidence}, metadata),
        )

    @staticmethod
    def create_table_node(
        content: str,
        position: PositionInput,
        row_count: int,
        col_count: int,
        confidence: float = 0.7,
        metadata: MetadataInput = None,
    ) -> GraphNode:
        return GraphFactory.create_node(
            NodeType.TABLE,
            label=f"Table: {row_count}x{col_count}",
            content=content,
            position=position,
            metadata=_merge_metadata(
                {
                    "confidence": confidence,
                    "properties": {
                        "row_count": row_count,
                        "col_count": col_count,
                        "cell_count": row_count * col_count,
                    },
                },
                metadata,
            ),
        )

    @staticmethod
    def create_image_node(
        alt_text: Optional[str],
        position: PositionInput,
        dimensions: Optional[Dict[str, float]] = None,
        confidence: float = 0.6,
        metadata: MetadataInput = None,
    ) -> GraphNode:
        return GraphFactory.create_node(
            NodeType.IMAGE,
            label=f"Image: {alt_text or 'Unnamed'}",
            content=alt_text or "[Image]",
            position=position,
            metadata=_merge_metadata(
                {
                    "confidence": confidence,
                    "properties": {
                        "dimensions": dimensions,
                        "has_alt_text": bool(alt_text),
                    },
                },
                metadata,
            ),
        )

    @staticmethod
    def create_list_node(
        content: str,
        position: PositionInput,
        item_count: int,
        list_type: str = "unordered",
        confidence: float = 0.8,
        metadata: MetadataInput = None,
    ) -> GraphNode:
        if list_type not in ("ordered", "unordered"):
            raise GraphValidationError(
                f"Invalid list type: {list_type}", field="list_type"
            )
        return GraphFactory.create_node(
            NodeType.LIST,
            label=f"{list_type.capitalize()} List ({item_count} items)",
            content=content,
            position=position,
            metadata=_merge_metadata(
                {
                    "confidence": confidence,
                    "properties": {"item_count": item_count, "list_type": list_type},
                },
                metadata,
            ),
        )

    @staticmethod
    def create_code_node(
        content: str,
        position: PositionInput,
        language: Optional[str] = None,
        confidence: float = 0.9,
        metadata: MetadataInput = None,
    ) -> GraphNode:
        return GraphFactory.create_node(
            NodeType.CODE,
            label=f"Code: {language}" if language else "Code Block",
            content=content,
            position=position,
            metadata=_merge_metadata(
                {
                    "confidence": confidence,
                    "properties": {
                        "language": language,
                        "line_count": len(content.split("\n")) if content else 0,
                    },
                },
                metadata,
            ),
        )

    @staticmethod
    def create_metadata_node(
        key: str,
        value: Any,
        position: PositionInput,
        metadata: MetadataInput = None,
    ) -> GraphNode:
        if isinstance(value, (dict, list)):
            rendered = json.dumps(value, ensure_ascii=False, default=str)
        else:
            rendered = str(value)
        return GraphFactory.create_node(
            NodeType.METADATA,
            label=f"Metadata: {key}",
            content=f"{key}: {rendered}",
            position=position,
            metadata=_merge_metadata(
                {
                    "confidence": 1.0,
                    "properties": {
                        "key": key,
                        "value": value,
                        "value_type": type(value).__name__,
                    },
                },
                metadata,
            ),
        )

    # ------------------------------------------------------------------
    # Edge helpers
    # ------------------------------------------------------------------

    @staticmethod
    def create_contains_edge(
        parent_id: str, child_id: str, weight: float = 1.0
    ) -> GraphEdge:
        return GraphFactory.create_edge(parent_id, child_id, EdgeType.CONTAINS, weight)

    @staticmethod
    def create_follows_edge(
        previous_id: str, next_id: str, weight: float = 1.0
    ) -> GraphEdge:
        return GraphFactory.create_edge(previous_id, next_id, EdgeType.FOLLOWS, weight)

    @staticmethod
    def create_references_edge(
        source_id: str,
        target_id: str,
        context: Optional[str] = None,
        weight: float = 0.5,
    ) -> GraphEdge:
        metadata = {"context": context} if context else {}
        return GraphFactory.create_edge(
            source_id, target_id, EdgeType.REFERENCES, weight, metadata
        )

    @staticmethod
    def create_similarity_edge(
        node_a_id: str, node_b_id: str, similarity: float
    ) -> GraphEdge:
        return GraphFactory.create_edge(
            node_a_id,
            node_b_id,
            EdgeType.SIMILAR,
            similarity,
            {"similarity_score": similarity},
        )

    # ------------------------------------------------------------------
    # Validation
    # ------------------------------------------------------------------

    @staticmethod
    def _validate_node_type(node_type: Union[NodeType, str]) -> NodeType:
        if isinstance(node_type, NodeType):
            return node_type
        try:
            return NodeType(node_type)
        except ValueError:
            raise GraphValidationError(
                f"Invalid node type: {node_type}", field="type"
            ) from None

    @staticmethod
    def _validate_edge_type(edge_type: Union[EdgeType, str]) -> EdgeType:
        if isinstance(edge_type, EdgeType):
            return edge_type
        try:
            return EdgeType(edge_type)
        except ValueError:
            raise GraphValidationError(
                f"Invalid edge type: {edge_type}", field="type"
            ) from None

    @staticmethod
    def _validate_position(position: Position) -> None:
        if not isinstance(position.page, int) or isinstance(position.page, bool) or position.page < 1:
            raise GraphValidationError(
                f"Invalid position: page must be a positive number, got {position.page}",
                field="position",
            )
        if not _is_number(position.start) or position.start < 0:
            raise GraphValidationError(
                f"Invalid position: start must be non-negative, got {position.start}",
                field="position",
            )
        if not _is_number(position.end) or position.end <= position.start:
            raise GraphValidationError(
                f"Invalid position: end ({position.end}) must be greater than "
                f"start ({position.start})",
                field="position",
            )

    @staticmethod
    def _validate_confidence(confidence: Optional[float]) -> None:
        if confidence is None:
            return
        if not _is_number(confidence) or confidence < 0 or confidence > 1:
            raise GraphValidationError(
                f"Invalid confidence: must be between 0 and 1, got {confidence}",
                field="confidence",
            )


def build_metadata_position(page: int = 1, length: int = 1) -> Position:
    """Position for nodes that do not map onto page text."""
    return Position(page=page, start=0, end=max(1, length))

