"""Loading dependency declarations from YAML or JSON files.

A declaration file lists each node with the nodes it depends on:

    dependencies:
      cake: [eggs, flour]
      eggs: [chickens]
      soil: []

JSON is valid YAML, so the same loader reads ``.json`` files. Node names are
always strings: a bare YAML scalar such as ``1`` or ``true`` is read as its
text (``"1"``, ``"True"``), so quote names whose spelling matters.
"""

from pathlib import Path

import structlog
import yaml
from pydantic import BaseModel, Field, ValidationError, field_validator

from dagengine.graph.dependency_graph import DependencyGraph

logger = structlog.get_logger(__name__)


class DeclarationFile(BaseModel):
    """Schema of a declaration file.

    Attributes:
        dependencies: Mapping from each node to the list of nodes it depends on
    """

    dependencies: dict[str, list[str]] = Field(
        description="Mapping from node to the nodes it depends on",
    )

    @field_validator("dependencies", mode="before")
    @classmethod
    def normalize_entries(cls, v: object) -> object:
        """Read node names as text and ``node:`` with no value as no dependencies."""
        if not isinstance(v, dict):
            return v
        normalized = {}
        for key, value in v.items():
            if value is None:
                value = []
            elif isinstance(value, list):
                value = [_scalar_name(parent) for parent in value]
            normalized[_scalar_name(key)] = value
        return normalized

    model_config = {"str_strip_whitespace": True}


def _scalar_name(name: object) -> object:
    # YAML reads unquoted 1, 1.5 or true as numbers and booleans.
    if isinstance(name, int | float):
        return str(name)
    return name


def load_declarations(path: str | Path) -> dict[str, set[str]]:
    """Load a declaration file.

    Args:
        path: Path to a YAML or JSON declaration file

    Returns:
        Dictionary mapping each declared node to the set of nodes it depends on

    Raises:
        FileNotFoundError: If the file doesn't exist
        ValueError: If the file is empty, not valid YAML, or doesn't match the schema
    """
    declaration_path = Path(path)

    if not declaration_path.exists():
        msg = f"Declaration file not found: {declaration_path}"
        raise FileNotFoundError(msg)

    logger.info("loading_declarations", path=str(declaration_path))

    try:
        with declaration_path.open() as f:
            data = yaml.safe_load(f)
    except yaml.YAMLError as e:
        logger.exception("yaml_parse_error", error=str(e), path=str(declaration_path))
        msg = f"Invalid YAML in declaration file: {e}"
        raise ValueError(msg) from e

    if not data:
        msg = "Declaration file is empty"
        raise ValueError(msg)

    try:
        declaration_file = DeclarationFile.model_validate(data)
    except ValidationError as e:
        msg = f"Invalid declaration file {declaration_path}: {e}"
        raise ValueError(msg) from e

    declarations = {
        node: set(parents) for node, parents in declaration_file.dependencies.items()
    }

    logger.info(
        "declarations_loaded",
        node_count=len(declarations),
        edge_count=sum(len(parents) for parents in declarations.values()),
    )

    return declarations


def build_graph(declarations: dict[str, set[str]]) -> DependencyGraph:
    """Build a dependency graph from declarations.

    Every declared node is added even when it has no dependencies, then
    every edge is declared.

    Args:
        declarations: Mapping from each node to the nodes it depends on

    Returns:
        The populated DependencyGraph

    Raises:
        InvalidEdgeError: If a node depends on itself
        CycleDetectedError: If the declarations contain a cycle
    """
    logger.info("building_dependency_graph", declared_nodes=len(declarations))

    graph = DependencyGraph()

    for node in declarations:
        graph.add_node(node)

    for node, parents in declarations.items():
        for parent in sorted(parents):
            graph.depend_on(node, parent)

    logger.info("dependency_graph_built", **graph.get_stats())

    return graph
