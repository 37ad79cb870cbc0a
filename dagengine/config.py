"""Configuration Management with Pydantic.

This module implements configuration models using Pydantic for parsing and
validation of YAML/JSON configuration files with environment variable overrides.
"""

import os
import threading
from pathlib import Path

import structlog
import yaml
from pydantic import BaseModel, Field

logger = structlog.get_logger(__name__)

DEFAULT_CONFIG_FILES = ("dagengine.yaml", "dagengine.yml", "dagengine.json")
TRUE_VALUES = ("true", "1", "yes")


class OutputConfig(BaseModel):
    """Settings for printing sorted layers.

    Attributes:
        format: Output format, 'text' (one line per layer) or 'json'
        sort_within_layers: Sort nodes inside each printed layer so output is
            stable between runs
    """

    format: str = Field(
        default="text",
        description="Layer output format",
        pattern=r"^(text|json)$",
    )
    sort_within_layers: bool = Field(
        default=True,
        description="Sort nodes inside each printed layer",
    )


class RenderConfig(BaseModel):
    """Settings for graph visualization.

    Attributes:
        format: Default visualization format, 'mermaid' or 'dot'
    """

    format: str = Field(
        default="mermaid",
        description="Visualization format",
        pattern=r"^(mermaid|dot)$",
    )


class EngineConfig(BaseModel):
    """Main configuration combining all settings.

    Attributes:
        output: Layer output configuration
        render: Visualization configuration
        logging_level: Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        json_logs: Emit logs as JSON instead of console-formatted text
    """

    output: OutputConfig = Field(default_factory=OutputConfig)
    render: RenderConfig = Field(default_factory=RenderConfig)
    logging_level: str = Field(
        default="INFO",
        description="Logging level",
        pattern=r"^(DEBUG|INFO|WARNING|ERROR|CRITICAL)$",
    )
    json_logs: bool = Field(
        default=False,
        description="Emit JSON logs",
    )

    @classmethod
    def from_yaml(cls, path: str | Path) -> "EngineConfig":
        """Load configuration from a YAML file.

        An empty file yields the default configuration.

        Args:
            path: Path to the YAML configuration file

        Returns:
            Parsed and validated EngineConfig instance

        Raises:
            FileNotFoundError: If configuration file doesn't exist
            ValueError: If configuration is invalid
        """
        config_path = Path(path)

        if not config_path.exists():
            msg = f"Configuration file not found: {config_path}"
            raise FileNotFoundError(msg)

        logger.info("loading_configuration", path=str(config_path))

        try:
            with config_path.open() as f:
                config_data = yaml.safe_load(f) or {}
        except yaml.YAMLError as e:
            logger.exception("yaml_parse_error", error=str(e), path=str(config_path))
            msg = f"Invalid YAML in configuration file: {e}"
            raise ValueError(msg) from e

        if not isinstance(config_data, dict):
            msg = "Configuration file must contain a mapping"
            raise ValueError(msg)

        config = cls(**cls._apply_env_overrides(config_data))

        logger.info(
            "configuration_loaded",
            logging_level=config.logging_level,
            output_format=config.output.format,
            render_format=config.render.format,
        )

        return config

    @classmethod
    def from_env(cls) -> "EngineConfig":
        """Build the default configuration with environment overrides applied."""
        return cls(**cls._apply_env_overrides({}))

    @classmethod
    def _apply_env_overrides(cls, config_data: dict) -> dict:
        """Apply environment variable overrides to configuration.

        Environment variables follow the pattern: DAGENGINE_<SECTION>_<KEY>
        Example: DAGENGINE_OUTPUT_FORMAT, DAGENGINE_LOGGING_LEVEL

        Args:
            config_data: Base configuration dictionary from file

        Returns:
            Configuration dictionary with environment overrides applied
        """
        env_overrides = {
            ("output", "format"): "DAGENGINE_OUTPUT_FORMAT",
            ("output", "sort_within_layers"): "DAGENGINE_SORT_WITHIN_LAYERS",
            ("render", "format"): "DAGENGINE_RENDER_FORMAT",
            ("logging_level",): "DAGENGINE_LOGGING_LEVEL",
            ("json_logs",): "DAGENGINE_JSON_LOGS",
        }
        bool_vars = {"DAGENGINE_SORT_WITHIN_LAYERS", "DAGENGINE_JSON_LOGS"}

        for path, env_var in env_overrides.items():
            value = os.environ.get(env_var)
            if value is not None:
                # Navigate to nested config section
                current = config_data
                for key in path[:-1]:
                    if not isinstance(current.get(key), dict):
                        current[key] = {}
                    current = current[key]

                if env_var in bool_vars:
                    value = value.lower() in TRUE_VALUES
                elif env_var == "DAGENGINE_LOGGING_LEVEL":
                    value = value.upper()

                current[path[-1]] = value
                logger.debug(
                    "env_override_applied",
                    env_var=env_var,
                    config_path=".".join(path),
                )

        return config_data


class ConfigManager:
    """Configuration manager using singleton pattern."""

    _instance: EngineConfig | None = None
    _init_lock: threading.Lock = threading.Lock()

    @classmethod
    def load_config(cls, config_path: str | Path | None = None) -> EngineConfig:
        """Load configuration from file.

        Args:
            config_path: Path to configuration file. If None, looks for
                dagengine.yaml, dagengine.yml or dagengine.json in the current
                directory and falls back to defaults when none exist.

        Returns:
            Loaded EngineConfig instance

        Raises:
            FileNotFoundError: If an explicit config_path doesn't exist
            ValueError: If config file is invalid
        """
        if config_path is None:
            for default_name in DEFAULT_CONFIG_FILES:
                default_path = Path(default_name)
                if default_path.exists():
                    config_path = default_path
                    break
            else:
                logger.debug("no_configuration_file_found", using="defaults")
                return EngineConfig.from_env()

        return EngineConfig.from_yaml(config_path)

    @classmethod
    def get_config(
        cls,
        config_path: str | Path | None = None,
        reload: bool = False,
    ) -> EngineConfig:
        """Get configuration instance (singleton pattern).

        Uses double-checked locking so concurrent first calls load the
        configuration only once.

        Args:
            config_path: Path to configuration file. Only used on first call or when reload=True.
            reload: If True, force reload configuration from file.

        Returns:
            EngineConfig instance
        """
        if cls._instance is not None and not reload:
            return cls._instance

        with cls._init_lock:
            if cls._instance is None or reload:
                cls._instance = cls.load_config(config_path)

            return cls._instance

    @classmethod
    def reset_config(cls) -> None:
        """Reset the configuration instance."""
        cls._instance = None


def load_config(config_path: str | Path | None = None) -> EngineConfig:
    """Load configuration from file."""
    return ConfigManager.load_config(config_path)


def get_config(config_path: str | Path | None = None, reload: bool = False) -> EngineConfig:
    """Get configuration instance (singleton pattern)."""
    return ConfigManager.get_config(config_path, reload)


def reset_config() -> None:
    """Reset the configuration instance."""
    ConfigManager.reset_config()


__all__ = [
    "ConfigManager",
    "EngineConfig",
    "OutputConfig",
    "RenderConfig",
    "get_config",
    "load_config",
    "reset_config",
]
