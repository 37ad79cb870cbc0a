#!/usr/bin/env python3
"""Main Entry Point and CLI Integration.

This module provides the command line interface for the dependency engine.
It loads configuration, reads a declaration file, builds the dependency graph
and prints its layers, validation report, visualization or query results.
"""

import argparse
import json
import sys
from collections.abc import Hashable, Iterable

import structlog

from dagengine.config import EngineConfig, get_config
from dagengine.graph import (
    DependencyGraph,
    GraphError,
    GraphValidator,
    build_graph,
    load_declarations,
)
from dagengine.log_config import bind_context, clear_context, configure_logging

logger = structlog.get_logger(__name__)


def format_layers(
    layers: list[set[Hashable]],
    output_format: str = "text",
    sort_within_layers: bool = True,
) -> str:
    """Format topologically sorted layers for printing.

    Args:
        layers: Layers returned by DependencyGraph.topo_sorted_layers()
        output_format: 'text' for one line per layer, 'json' for a list of lists
        sort_within_layers: Sort the nodes of each layer for stable output

    Returns:
        The formatted layers
    """
    ordered = [_order(layer, sort_within_layers) for layer in layers]

    if output_format == "json":
        return json.dumps(ordered)

    return "\n".join(
        f"Layer {i}: {', '.join(str(node) for node in layer)}"
        for i, layer in enumerate(ordered)
    )


def _order(nodes: Iterable[Hashable], sort_nodes: bool) -> list[Hashable]:
    return sorted(nodes, key=str) if sort_nodes else list(nodes)


def load_graph(path: str) -> DependencyGraph:
    """Load a declaration file and build its dependency graph.

    Raises:
        FileNotFoundError: If the declaration file doesn't exist
        ValueError: If the declaration file is invalid
        GraphError: If the declarations contain a self-dependency or cycle
    """
    return build_graph(load_declarations(path))


def cmd_layers(args: argparse.Namespace, config: EngineConfig) -> int:
    """Print the topologically sorted layers of a declaration file."""
    graph = load_graph(args.file)
    output_format = args.output or config.output.format
    print(
        format_layers(
            graph.topo_sorted_layers(),
            output_format=output_format,
            sort_within_layers=config.output.sort_within_layers,
        ),
    )
    return 0


def cmd_validate(args: argparse.Namespace, _config: EngineConfig) -> int:
    """Validate a declaration file and print the report."""
    report = GraphValidator().validate(load_declarations(args.file))
    print(report.summary())
    return 0 if report.is_valid else 1


def cmd_render(args: argparse.Namespace, config: EngineConfig) -> int:
    """Print a Mermaid or DOT visualization of a declaration file."""
    graph = load_graph(args.file)
    output_format = args.format or config.render.format
    print(GraphValidator().generate_visualization(graph, output_format))
    return 0


def cmd_query(args: argparse.Namespace, config: EngineConfig) -> int:
    """Print the transitive dependencies or dependents of a node."""
    graph = load_graph(args.file)
    if args.dependents:
        related = graph.dependents(args.node)
    else:
        related = graph.dependencies(args.node)

    nodes = _order(related, config.output.sort_within_layers)
    if config.output.format == "json":
        print(json.dumps(nodes))
    else:
        print("\n".join(str(node) for node in nodes))
    return 0


COMMANDS = {
    "layers": cmd_layers,
    "validate": cmd_validate,
    "render": cmd_render,
    "query": cmd_query,
}


def run(args: argparse.Namespace) -> int:
    """Run the selected command.

    Args:
        args: Parsed command-line arguments

    Returns:
        Exit code (0 for success, 1 for failure)
    """
    exit_code = 0

    # Configured once up front so config loading never logs to stdout
    configure_logging(args.log_level or "INFO", json_logs=args.json_logs)

    try:
        # Reloaded on every run so the shared instance reflects this invocation
        config = get_config(args.config, reload=True)

        # CLI flags take precedence over the configuration file
        level = args.log_level or config.logging_level
        configure_logging(level, json_logs=args.json_logs or config.json_logs)
        bind_context(command=args.command, declaration_file=args.file)

        exit_code = COMMANDS[args.command](args, config)

    except FileNotFoundError as e:
        logger.error("file_not_found", error=str(e))
        exit_code = 1

    except GraphError as e:
        logger.error("dependency_graph_error", error=e.message, error_type=type(e).__name__)
        exit_code = 1

    except ValueError as e:
        logger.error("invalid_input", error=str(e))
        exit_code = 1

    finally:
        clear_context()

    return exit_code


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    """Parse command-line arguments.

    Args:
        argv: Argument list (defaults to sys.argv[1:])

    Returns:
        Parsed arguments namespace
    """
    parser = argparse.ArgumentParser(
        description="Dependency engine - layered topological sorting of dependency declarations",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  # Print the execution layers
  python main.py layers recipe.yaml

  # Report every cycle and self-dependency in a file
  python main.py validate recipe.yaml

  # Render as Graphviz DOT
  python main.py render recipe.yaml --format dot

  # Everything "cake" depends on
  python main.py query recipe.yaml cake
        """,
    )

    parser.add_argument(
        "-c",
        "--config",
        type=str,
        default=None,
        help="Path to configuration YAML file (default: dagengine.yaml if present)",
    )

    parser.add_argument(
        "-d",
        "--debug",
        action="store_true",
        help="Enable debug output (DEBUG level)",
    )

    parser.add_argument(
        "--log-level",
        type=str,
        choices=["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"],
        default=None,
        help="Set logging level (default: from configuration, INFO)",
    )

    parser.add_argument(
        "--json-logs",
        action="store_true",
        help="Emit logs as JSON",
    )

    subparsers = parser.add_subparsers(dest="command", required=True)

    layers_parser = subparsers.add_parser("layers", help="Print topologically sorted layers")
    layers_parser.add_argument("file", help="Declaration file (YAML or JSON)")
    layers_parser.add_argument(
        "-o",
        "--output",
        choices=["text", "json"],
        default=None,
        help="Output format (default: from configuration, text)",
    )

    validate_parser = subparsers.add_parser("validate", help="Validate a declaration file")
    validate_parser.add_argument("file", help="Declaration file (YAML or JSON)")

    render_parser = subparsers.add_parser("render", help="Render the graph as Mermaid or DOT")
    render_parser.add_argument("file", help="Declaration file (YAML or JSON)")
    render_parser.add_argument(
        "-f",
        "--format",
        choices=["mermaid", "dot"],
        default=None,
        help="Visualization format (default: from configuration, mermaid)",
    )

    query_parser = subparsers.add_parser("query", help="List transitive dependencies of a node")
    query_parser.add_argument("file", help="Declaration file (YAML or JSON)")
    query_parser.add_argument("node", help="Node to query")
    query_parser.add_argument(
        "--dependents",
        action="store_true",
        help="List nodes that depend on NODE instead",
    )

    args = parser.parse_args(argv)

    if args.debug:
        args.log_level = "DEBUG"

    return args


def main() -> None:
    """Main entry point for the dependency engine CLI."""
    sys.exit(run(parse_args()))


if __name__ == "__main__":
    main()
