"""Graph module for dependency management and layered topological sorting.

This module provides the in-memory DependencyGraph, validation and
visualization of dependency declarations, and loading declarations from
YAML/JSON files.
"""

from dagengine.graph.dependency_graph import (
    CycleDetectedError,
    DependencyGraph,
    GraphError,
    InvalidEdgeError,
    NodeNotFoundError,
)
from dagengine.graph.loader import DeclarationFile, build_graph, load_declarations
from dagengine.graph.validator import GraphValidator, ValidationReport

__all__ = [
    "CycleDetectedError",
    "DeclarationFile",
    "DependencyGraph",
    "GraphError",
    "GraphValidator",
    "InvalidEdgeError",
    "NodeNotFoundError",
    "ValidationReport",
    "build_graph",
    "load_declarations",
]
