"""Exception hierarchy for the document graph library.

Construction and mutation errors are raised immediately. Analysis code
(matching, resolution, validation) reports problems in its results instead.
"""

from typing import Optional


class DocGraphError(Exception):
    """Base exception for all docgraph errors."""


class GraphValidationError(DocGraphError, ValueError):
    """A node or edge violates a construction invariant."""

    def __init__(self, message: str, field: Optional[str] = None):
        self.field = field
        super().__init__(message)


class GraphStructureError(DocGraphError, ValueError):
    """A graph mutation would break the graph's structure."""


class GraphStateError(DocGraphError):
    """Illegal lifecycle transition on a graph."""

    def __init__(self, current: str, requested: str):
        self.current = current
        self.requested = requested
        super().__init__(
            f"Cannot move graph from '{current}' to '{requested}': "
            f"status is terminal"
        )


class ReferenceAnalysisError(DocGraphError):
    """Reference analysis was requested for a node that carries no text."""

    def __init__(self, node_id: str, node_type: str):
        self.node_id = node_id
        self.node_type = node_type
        super().__init__(
            f"Node {node_id} of type '{node_type}' cannot be analyzed for references"
        )
