"""Dependency graph with symmetric edge indexes and layered topological sorting.

This module provides the DependencyGraph class, an in-memory directed acyclic
graph of "depends-on" relationships. Every edge is recorded twice, once in the
dependencies index (child -> parents) and once in the dependents index
(parent -> children), and cycles are rejected at insertion time so the graph
is always a valid DAG.
"""

from collections.abc import Hashable, Iterator

import structlog

logger = structlog.get_logger(__name__)


class GraphError(Exception):
    """Base class for all dependency graph errors.

    Args:
        message: Description of the error
    """

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class InvalidEdgeError(GraphError):
    """Exception raised when a node is declared to depend on itself."""


class CycleDetectedError(GraphError):
    """Exception raised when declaring an edge would close a cycle.

    A cycle means that nodes have circular dependencies, making it impossible
    to determine a valid execution order.
    """


class NodeNotFoundError(GraphError):
    """Exception raised when querying a node that was never declared."""

    def __init__(self, node: Hashable):
        super().__init__(f"Node not found in graph: {node!r}")
        self.node = node


class DependencyGraph:
    """Directed acyclic graph of dependencies between opaque node identifiers.

    Nodes are any hashable values. ``depend_on(child, parent)`` records that
    ``child`` depends on ``parent``; both nodes are created on first reference.

    Thread-safety:
        This class is NOT thread-safe. If a graph is shared between threads,
        protect every method call with external synchronization (e.g., a
        single threading.Lock). Do not call remove() on a graph while another
        caller is running topo_sorted_layers() on it.

    Example:
        >>> graph = DependencyGraph()
        >>> graph.depend_on("cake", "eggs")
        >>> graph.depend_on("eggs", "chickens")
        >>> graph.depends_on("cake", "chickens")
        True
        >>> graph.topo_sorted_layers()
        [{'chickens'}, {'eggs'}, {'cake'}]
    """

    def __init__(self):
        """Initialize an empty dependency graph."""
        self._nodes: set[Hashable] = set()
        # child -> parents
        self._dependencies: dict[Hashable, set[Hashable]] = {}
        # parent -> children
        self._dependents: dict[Hashable, set[Hashable]] = {}

    def add_node(self, node: Hashable) -> None:
        """Register a node without any edges.

        Args:
            node: Identifier of the node to add

        Note:
            Adding a node that already exists has no effect.
        """
        if node not in self._nodes:
            self._nodes.add(node)
            logger.debug("node_added_to_graph", node=node)

    def depend_on(self, child: Hashable, parent: Hashable) -> None:
        """Declare that ``child`` depends on ``parent``.

        Both nodes are added to the graph if they do not exist yet. Declaring
        an edge that already exists has no effect.

        Args:
            child: The dependent node
            parent: The node ``child`` depends on

        Raises:
            InvalidEdgeError: If ``child`` and ``parent`` are the same node
            CycleDetectedError: If ``parent`` already depends on ``child``,
                directly or transitively

        Example:
            >>> graph = DependencyGraph()
            >>> graph.depend_on("task-2", "task-1")
            >>> graph.depend_on("task-1", "task-2")
            Traceback (most recent call last):
            ...
            dagengine.graph.dependency_graph.CycleDetectedError: ...
        """
        if child == parent:
            logger.warning("self_dependency_rejected", node=child)
            msg = f"Node cannot depend on itself: {child!r}"
            raise InvalidEdgeError(msg)

        # Validation runs before any mutation so a rejected edge leaves the
        # graph unchanged.
        if self.depends_on(parent, child):
            logger.warning("cyclic_dependency_rejected", child=child, parent=parent)
            msg = f"Cycle detected: {parent!r} already depends on {child!r}"
            raise CycleDetectedError(msg)

        if parent in self._dependencies.get(child, ()):
            return

        self._nodes.add(child)
        self._nodes.add(parent)
        _add_to_depmap(self._dependencies, child, parent)
        _add_to_depmap(self._dependents, parent, child)

        logger.debug("dependency_added", child=child, parent=parent)

    def depends_on(self, child: Hashable, parent: Hashable) -> bool:
        """Check whether ``child`` depends on ``parent`` directly or transitively.

        Args:
            child: The potentially dependent node
            parent: The potential dependency

        Returns:
            True if ``parent`` is in the transitive closure of ``child``'s
            dependencies, False otherwise (including when either node is
            unknown)
        """
        return parent in _transitive_closure(self._dependencies, child)

    def depended_on_by(self, parent: Hashable, child: Hashable) -> bool:
        """Check whether ``parent`` is depended on by ``child``, at any distance.

        This walks the dependents index and answers the same question as
        ``depends_on(child, parent)``.

        Args:
            parent: The potential dependency
            child: The potentially dependent node

        Returns:
            True if ``child`` is in the transitive closure of ``parent``'s
            dependents, False otherwise
        """
        return child in _transitive_closure(self._dependents, parent)

    def dependencies(self, node: Hashable) -> set[Hashable]:
        """Get every node ``node`` depends on, directly or transitively.

        Args:
            node: The node to query

        Returns:
            A new set with the transitive dependencies (empty for a leaf)

        Raises:
            NodeNotFoundError: If ``node`` is not in the graph
        """
        self._require(node)
        return _transitive_closure(self._dependencies, node)

    def dependents(self, node: Hashable) -> set[Hashable]:
        """Get every node that depends on ``node``, directly or transitively.

        Args:
            node: The node to query

        Returns:
            A new set with the transitive dependents

        Raises:
            NodeNotFoundError: If ``node`` is not in the graph
        """
        self._require(node)
        return _transitive_closure(self._dependents, node)

    def immediate_dependencies(self, node: Hashable) -> set[Hashable]:
        """Get the direct parents of ``node``.

        Raises:
            NodeNotFoundError: If ``node`` is not in the graph
        """
        self._require(node)
        return set(self._dependencies.get(node, ()))

    def immediate_dependents(self, node: Hashable) -> set[Hashable]:
        """Get the direct children of ``node``.

        Raises:
            NodeNotFoundError: If ``node`` is not in the graph
        """
        self._require(node)
        return set(self._dependents.get(node, ()))

    def leaves(self) -> set[Hashable]:
        """Get the nodes that depend on nothing.

        These nodes are immediately eligible to run. The returned set has no
        meaningful iteration order.

        Returns:
            Set of nodes without an entry in the dependencies index
        """
        return {node for node in self._nodes if node not in self._dependencies}

    def remove(self, node: Hashable) -> None:
        """Delete a node and every edge touching it.

        Removing a node that is not in the graph has no effect.

        Args:
            node: The node to remove
        """
        if node not in self._nodes:
            return

        for dependent in self._dependents.get(node, ()):
            _remove_from_depmap(self._dependencies, dependent, node)
        for dependency in self._dependencies.get(node, ()):
            _remove_from_depmap(self._dependents, dependency, node)

        self._dependents.pop(node, None)
        self._dependencies.pop(node, None)
        self._nodes.discard(node)

        logger.debug("node_removed_from_graph", node=node)

    def topo_sorted_layers(self) -> list[set[Hashable]]:
        """Sort the graph into layers of mutually independent nodes.

        Layer ``i`` contains only nodes whose dependencies all appear in
        layers ``0..i-1``, so every node in a layer can be processed in
        parallel once the previous layers are done. The graph itself is not
        modified; leaves are repeatedly peeled off a private copy.

        Returns:
            Ordered list of layers; empty for an empty graph

        Example:
            >>> graph = DependencyGraph()
            >>> graph.depend_on("task-3", "task-1")
            >>> graph.depend_on("task-3", "task-2")
            >>> graph.topo_sorted_layers()  # doctest: +SKIP
            [{'task-1', 'task-2'}, {'task-3'}]
        """
        working = self.copy()
        layers: list[set[Hashable]] = []

        while True:
            leaves = working.leaves()
            if not leaves:
                break

            layers.append(leaves)
            for leaf in leaves:
                working.remove(leaf)

        logger.info(
            "topological_sort_complete",
            node_count=len(self._nodes),
            layer_count=len(layers),
        )

        return layers

    def topo_sorted(self) -> list[Hashable]:
        """Return all nodes in a single topological order.

        This is ``topo_sorted_layers()`` flattened; the relative order of
        nodes from the same layer is unspecified.
        """
        return [node for layer in self.topo_sorted_layers() for node in layer]

    def copy(self) -> "DependencyGraph":
        """Create a deep copy of the dependency graph.

        Returns:
            A new DependencyGraph with the same nodes and edges; mutating the
            copy never affects this graph
        """
        new_graph = DependencyGraph()
        new_graph._nodes = set(self._nodes)
        new_graph._dependencies = {
            node: set(parents) for node, parents in self._dependencies.items()
        }
        new_graph._dependents = {
            node: set(children) for node, children in self._dependents.items()
        }
        return new_graph

    def edges(self) -> Iterator[tuple[Hashable, Hashable]]:
        """Iterate over every ``(child, parent)`` edge in the graph."""
        for child, parents in self._dependencies.items():
            for parent in parents:
                yield child, parent

    @property
    def nodes(self) -> frozenset[Hashable]:
        """All nodes in the graph."""
        return frozenset(self._nodes)

    def get_stats(self) -> dict[str, int]:
        """Get statistics about the current graph state.

        Returns:
            Dictionary with graph statistics including:
                - total_nodes: Number of nodes in the graph
                - total_edges: Number of dependency edges
                - leaf_count: Number of nodes without dependencies
        """
        stats = {
            "total_nodes": len(self._nodes),
            "total_edges": sum(len(parents) for parents in self._dependencies.values()),
            "leaf_count": len(self.leaves()),
        }

        logger.debug("graph_stats_retrieved", **stats)

        return stats

    def _require(self, node: Hashable) -> None:
        if node not in self._nodes:
            raise NodeNotFoundError(node)

    def __len__(self) -> int:
        return len(self._nodes)

    def __contains__(self, node: object) -> bool:
        return node in self._nodes

    def __repr__(self) -> str:
        edge_count = sum(len(parents) for parents in self._dependencies.values())
        return f"DependencyGraph(nodes={len(self._nodes)}, edges={edge_count})"


def _add_to_depmap(depmap: dict[Hashable, set[Hashable]], key: Hashable, node: Hashable) -> None:
    depmap.setdefault(key, set()).add(node)


def _remove_from_depmap(depmap: dict[Hashable, set[Hashable]], key: Hashable, node: Hashable) -> None:
    """Remove ``node`` from ``depmap[key]``, dropping the entry once it is empty.

    Leaf detection relies on the absence of an entry, so empty sets are never
    left behind.
    """
    nodes = depmap.get(key)
    if nodes is None:
        return

    nodes.discard(node)
    if not nodes:
        del depmap[key]


def _transitive_closure(depmap: dict[Hashable, set[Hashable]], start: Hashable) -> set[Hashable]:
    """Collect every node reachable from ``start`` by following ``depmap``.

    Breadth-first expansion of the frontier until no new nodes are found.
    ``start`` itself is only included if it is reachable from itself, which
    cannot happen in an acyclic graph.
    """
    visited: set[Hashable] = set()
    frontier = list(depmap.get(start, ()))

    while frontier:
        next_frontier = []
        for node in frontier:
            if node in visited:
                continue
            visited.add(node)
            next_frontier.extend(n for n in depmap.get(node, ()) if n not in visited)
        frontier = next_frontier

    return visited
