"""Unit tests for the logging configuration module.

This test module validates the structured logging configuration and
context binding.
"""

import logging

import pytest
import structlog

from dagengine.graph.dependency_graph import CycleDetectedError, DependencyGraph
from dagengine.log_config import (
    bind_context,
    clear_context,
    configure_logging,
    get_logger,
    unbind_context,
)


@pytest.fixture(autouse=True)
def reset_structlog():
    """Restore structlog defaults after each test."""
    yield
    clear_context()
    structlog.reset_defaults()


class TestLoggingConfiguration:
    """Test cases for logging configuration."""

    def test_configure_logging_info_level(self):
        """Test logging configuration with INFO level."""
        configure_logging(level="INFO", json_logs=True)

        assert logging.getLogger().level == logging.INFO

    def test_configure_logging_lowercase_level(self):
        """Test that level names are case-insensitive."""
        configure_logging(level="debug")

        assert logging.getLogger().level == logging.DEBUG

    def test_configure_logging_invalid_level(self):
        """Test logging configuration with invalid level."""
        with pytest.raises(ValueError, match="Invalid log level"):
            configure_logging(level="INVALID")

    def test_get_logger(self):
        """Test getting a logger with and without a name."""
        configure_logging(level="INFO")

        assert get_logger(__name__) is not None
        assert get_logger() is not None


class TestStructuredLogging:
    """Test that events reach the standard library logging module."""

    def test_json_event(self, caplog):
        """Test that JSON-rendered events carry their key-value pairs."""
        configure_logging(level="INFO", json_logs=True)
        caplog.set_level(logging.INFO)

        get_logger("test").info("declarations_loaded", node_count=8)

        assert "declarations_loaded" in caplog.text
        assert '"node_count": 8' in caplog.text

    def test_graph_logs_sort(self, caplog):
        """Test that the graph logs sort completion at INFO."""
        configure_logging(level="INFO", json_logs=True)
        caplog.set_level(logging.INFO)

        graph = DependencyGraph()
        graph.depend_on("b", "a")
        graph.topo_sorted_layers()

        assert "topological_sort_complete" in caplog.text
        assert '"layer_count": 2' in caplog.text

    def test_rejected_edge_logged_as_warning(self, caplog):
        """Test that rejected edges produce a warning event."""
        configure_logging(level="WARNING", json_logs=True)
        caplog.set_level(logging.WARNING)

        graph = DependencyGraph()
        graph.depend_on("b", "a")
        with pytest.raises(CycleDetectedError):
            graph.depend_on("a", "b")

        assert "cyclic_dependency_rejected" in caplog.text
        assert any(record.levelno == logging.WARNING for record in caplog.records)


class TestContextBinding:
    """Test cases for context binding functionality."""

    def test_bind_context(self, caplog):
        """Test that bound context appears on later events."""
        configure_logging(level="INFO", json_logs=True)
        caplog.set_level(logging.INFO)

        bind_context(declaration_file="recipe.yaml")
        get_logger("test").info("topological_sort_complete")

        assert '"declaration_file": "recipe.yaml"' in caplog.text

    def test_unbind_context(self, caplog):
        """Test removing a single context variable."""
        configure_logging(level="INFO", json_logs=True)
        caplog.set_level(logging.INFO)

        bind_context(command="layers", declaration_file="recipe.yaml")
        unbind_context("declaration_file")
        get_logger("test").info("after_unbind")

        assert '"command": "layers"' in caplog.text
        assert "declaration_file" not in caplog.text

    def test_clear_context(self, caplog):
        """Test clearing all context variables."""
        configure_logging(level="INFO", json_logs=True)
        caplog.set_level(logging.INFO)

        bind_context(command="layers")
        clear_context()
        get_logger("test").info("after_clear")

        assert "command" not in caplog.text
