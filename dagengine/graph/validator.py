"""Declaration validation with detailed cycle detection and reporting.

DependencyGraph rejects a bad edge the moment it is declared, which tells the
caller *that* something is wrong but not the whole picture. This module checks
a raw declaration mapping (child -> parents) up front and reports every cycle
with its full path, every self-dependency and every undeclared reference. It
also renders a built graph as Mermaid or Graphviz DOT text.
"""

from collections.abc import Hashable, Iterable, Mapping
from dataclasses import dataclass, field
from typing import TYPE_CHECKING

import structlog

if TYPE_CHECKING:
    from dagengine.graph.dependency_graph import DependencyGraph

logger = structlog.get_logger(__name__)


@dataclass
class ValidationReport:
    """Report containing validation results for a set of declarations.

    Attributes:
        is_valid: Whether the declarations passed all validation checks
        errors: List of error messages (critical issues)
        warnings: List of warning messages (potential issues)
        cycles: List of detected cycles, each a list of nodes where the first
            node is repeated at the end
        self_dependencies: Nodes declared as depending on themselves
        undeclared_refs: Nodes referenced as dependencies but never declared
    """

    is_valid: bool = True
    errors: list[str] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)
    cycles: list[list[Hashable]] = field(default_factory=list)
    self_dependencies: set[Hashable] = field(default_factory=set)
    undeclared_refs: set[Hashable] = field(default_factory=set)

    def add_error(self, message: str) -> None:
        """Add an error message and mark validation as failed."""
        self.errors.append(message)
        self.is_valid = False
        logger.error("validation_error", message=message)

    def add_warning(self, message: str) -> None:
        """Add a warning message without failing validation."""
        self.warnings.append(message)
        logger.warning("validation_warning", message=message)

    def summary(self) -> str:
        """Generate a human-readable summary of the validation report."""
        lines = []
        lines.append(f"Validation Status: {'PASS' if self.is_valid else 'FAIL'}")
        lines.append(f"Errors: {len(self.errors)}")
        lines.append(f"Warnings: {len(self.warnings)}")
        lines.append(f"Cycles: {len(self.cycles)}")
        lines.append(f"Self Dependencies: {len(self.self_dependencies)}")
        lines.append(f"Undeclared References: {len(self.undeclared_refs)}")

        if self.errors:
            lines.append("\nErrors:")
            lines.extend(f"  - {error}" for error in self.errors)

        if self.warnings:
            lines.append("\nWarnings:")
            lines.extend(f"  - {warning}" for warning in self.warnings)

        if self.cycles:
            lines.append("\nCycles Detected:")
            for i, cycle in enumerate(self.cycles, 1):
                lines.append(f"  {i}. {_format_path(cycle)}")

        return "\n".join(lines)


class GraphValidator:
    """Validator for dependency declarations with detailed error reporting.

    This class provides:
    - Cycle detection with complete path information
    - Self-dependency detection
    - Undeclared reference detection
    - Graph visualization generation
    """

    def __init__(self):
        """Initialize the graph validator."""
        self._visited: set[Hashable] = set()
        self._rec_stack: set[Hashable] = set()
        self._path: list[Hashable] = []

    def validate(self, declarations: Mapping[Hashable, Iterable[Hashable]]) -> ValidationReport:
        """Validate a declaration mapping and generate a detailed report.

        Args:
            declarations: Mapping from each child node to the nodes it depends on

        Returns:
            ValidationReport containing all validation results
        """
        graph = {child: set(parents) for child, parents in declarations.items()}

        logger.info("starting_declaration_validation", node_count=len(graph))

        report = ValidationReport()

        # Self-dependencies are reported on their own and kept out of cycle
        # detection so each problem is listed once.
        self_deps = {child for child, parents in graph.items() if child in parents}
        if self_deps:
            report.self_dependencies = self_deps
            for node in _sorted(self_deps):
                report.add_error(f"Node depends on itself: {node}")
        edges = {child: parents - {child} for child, parents in graph.items()}

        cycles = self._detect_cycles(edges)
        if cycles:
            report.cycles = cycles
            for cycle in cycles:
                report.add_error(f"Cycle detected: {_format_path(cycle)}")

        undeclared = self._check_undeclared_refs(edges)
        if undeclared:
            report.undeclared_refs = undeclared
            refs_str = ", ".join(str(ref) for ref in _sorted(undeclared))
            report.add_warning(
                f"Nodes referenced as dependencies but not declared: {refs_str}",
            )

        logger.info(
            "declaration_validation_complete",
            is_valid=report.is_valid,
            error_count=len(report.errors),
            warning_count=len(report.warnings),
        )

        return report

    def _detect_cycles(self, graph: dict[Hashable, set[Hashable]]) -> list[list[Hashable]]:
        """Detect cycles in the declarations using DFS.

        At most one cycle is reported per DFS tree; fixing it and validating
        again surfaces the next one.

        Args:
            graph: Dictionary mapping nodes to their dependencies

        Returns:
            List of cycles, where each cycle is a list of nodes forming the cycle
        """
        if not graph:
            return []

        self._visited = set()
        self._rec_stack = set()
        self._path = []
        cycles = []

        all_nodes = set(graph.keys())
        for deps in graph.values():
            all_nodes.update(deps)

        for node in _sorted(all_nodes):
            if node not in self._visited:
                cycle = self._dfs_cycle_detect(node, graph)
                if cycle:
                    cycles.append(cycle)
                # A cycle aborts the walk with the path still populated.
                self._rec_stack.clear()
                self._path.clear()

        return cycles

    def _dfs_cycle_detect(
        self,
        start: Hashable,
        graph: dict[Hashable, set[Hashable]],
    ) -> list[Hashable] | None:
        """DFS-based cycle detection that returns the cycle path.

        The walk keeps an explicit stack of (node, remaining dependencies)
        pairs, so long dependency chains don't hit the recursion limit.
        ``_path`` and ``_rec_stack`` always hold exactly the nodes on the stack.

        Args:
            start: Node to start the walk from
            graph: The declaration graph

        Returns:
            List representing the cycle path if found, None otherwise
        """
        stack = [(start, iter(_sorted(graph.get(start, set()))))]
        self._enter(start)

        while stack:
            node, deps = stack[-1]
            for dep in deps:
                if dep not in self._visited:
                    self._enter(dep)
                    stack.append((dep, iter(_sorted(graph.get(dep, set())))))
                    break
                if dep in self._rec_stack:
                    cycle_start_idx = self._path.index(dep)
                    return [*self._path[cycle_start_idx:], dep]
            else:
                # Backtrack
                stack.pop()
                self._rec_stack.remove(node)
                self._path.pop()

        return None

    def _enter(self, node: Hashable) -> None:
        self._visited.add(node)
        self._rec_stack.add(node)
        self._path.append(node)

    def _check_undeclared_refs(self, graph: dict[Hashable, set[Hashable]]) -> set[Hashable]:
        """Find nodes referenced as dependencies but not declared as keys.

        These are created implicitly when the declarations are loaded, so
        they only produce a warning.
        """
        declared = set(graph.keys())
        referenced: set[Hashable] = set()

        for deps in graph.values():
            referenced.update(deps)

        undeclared = referenced - declared

        if undeclared:
            logger.debug("undeclared_references_found", count=len(undeclared))

        return undeclared

    def generate_visualization(
        self,
        graph: "DependencyGraph",
        output_format: str = "mermaid",
    ) -> str:
        """Generate a visual representation of the dependency graph.

        Args:
            graph: The DependencyGraph to visualize
            output_format: Output format ('mermaid' or 'dot')

        Returns:
            String representation of the graph in the requested format

        Raises:
            ValueError: If an unsupported format is requested
        """
        output_format = output_format.lower().strip()

        nodes = _sorted(graph.nodes)
        edges = sorted(graph.edges(), key=lambda edge: (str(edge[0]), str(edge[1])))

        if output_format == "mermaid":
            return self._generate_mermaid(nodes, edges)
        if output_format == "dot":
            return self._generate_graphviz(nodes, edges)
        error_msg = f"Unsupported format: {output_format}. Use 'mermaid' or 'dot'."
        raise ValueError(error_msg)

    def _generate_mermaid(
        self,
        nodes: list[Hashable],
        edges: list[tuple[Hashable, Hashable]],
    ) -> str:
        """Generate a Mermaid flowchart; arrows point from dependency to dependent.

        Node ids are positional (``n0``, ``n1``, ...) and the node text goes in
        a quoted label, so distinct nodes never share an id.
        """
        lines = ["graph TD"]

        if not nodes:
            lines.append("    Empty[Empty Graph]")
            return "\n".join(lines)

        ids = {node: f"n{i}" for i, node in enumerate(nodes)}
        lines.extend(f'    {ids[node]}["{_mermaid_label(node)}"]' for node in nodes)
        lines.extend(f"    {ids[parent]} --> {ids[child]}" for child, parent in edges)

        return "\n".join(lines)

    def _generate_graphviz(
        self,
        nodes: list[Hashable],
        edges: list[tuple[Hashable, Hashable]],
    ) -> str:
        """Generate a Graphviz DOT representation."""
        def escape_dot_string(s: str) -> str:
            """Escape backslashes, then double quotes, for DOT format."""
            return s.replace("\\", "\\\\").replace('"', '\\"')

        lines = ["digraph DependencyGraph {"]
        lines.append("    rankdir=LR;")
        lines.append("    node [shape=box, style=rounded];")

        if not nodes:
            lines.append('    Empty [label="Empty Graph"];')
        else:
            lines.extend(f'    "{escape_dot_string(str(node))}";' for node in nodes)
            lines.extend(
                f'    "{escape_dot_string(str(parent))}" -> "{escape_dot_string(str(child))}";'
                for child, parent in edges
            )

        lines.append("}")
        return "\n".join(lines)


def _sorted(nodes: Iterable[Hashable]) -> list[Hashable]:
    # Node identifiers only promise hashability, so order by their text form.
    return sorted(nodes, key=str)


def _format_path(path: list[Hashable]) -> str:
    return " -> ".join(str(node) for node in path)


def _mermaid_label(node: Hashable) -> str:
    return str(node).replace('"', "#quot;")
