"""In-memory dependency DAG engine with layered topological sorting."""

from dagengine.graph import (
    CycleDetectedError,
    DependencyGraph,
    GraphError,
    InvalidEdgeError,
    NodeNotFoundError,
)

__version__ = "0.1.0"

__all__ = [
    "CycleDetectedError",
    "DependencyGraph",
    "GraphError",
    "InvalidEdgeError",
    "NodeNotFoundError",
]
