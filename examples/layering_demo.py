"""Demonstration of building a dependency graph and sorting it into layers.

This example shows how to declare dependencies, query them, handle rejected
edges, and print the layers a parallel executor would run.
"""

import sys
from pathlib import Path

# Add the project root to path for imports
sys.path.insert(0, str(Path(__file__).parent.parent))

from dagengine.graph import CycleDetectedError, DependencyGraph, build_graph, load_declarations
from dagengine.log_config import configure_logging, get_logger


def main() -> None:
    """Run the demonstration."""
    configure_logging(level="INFO", json_logs=False)
    logger = get_logger(__name__)

    graph = build_graph(load_declarations(Path(__file__).parent / "recipe.yaml"))

    logger.info(
        "cake_dependencies",
        dependencies=sorted(graph.dependencies("cake")),
        depends_on_soil=graph.depends_on("cake", "soil"),
    )

    try:
        graph.depend_on("soil", "cake")
    except CycleDetectedError as e:
        logger.warning("edge_rejected", error=e.message)

    for i, layer in enumerate(graph.topo_sorted_layers()):
        logger.info("layer_ready", layer=i, nodes=sorted(layer))

    # Numbers work as node identifiers too
    numbers = DependencyGraph()
    for n in range(2, 7):
        numbers.depend_on(n, n // 2)
    logger.info("number_layers", layers=[sorted(layer) for layer in numbers.topo_sorted_layers()])


if __name__ == "__main__":
    main()
