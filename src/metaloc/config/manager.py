"""Configuration manager for metaloc.

This module provides functionality for loading, validating, and saving
YAML configuration files with Pydantic model validation.
"""

import logging
import os
import tempfile
from pathlib import Path
from typing import Final

import yaml
from pydantic import ValidationError

from .schema import MetalocConfig, RepositoryConfig, ServicesConfig


logger = logging.getLogger(__name__)

TOKEN_ENV_VAR: Final[str] = "METALOC_TOKEN"


class ConfigManager:
    """
    Configuration manager for handling YAML config files with Pydantic validation.

    Provides methods for loading, saving, and validating configuration files
    and holds the configuration of the current run.
    """

    def __init__(self) -> None:
        """Initialize the configuration manager."""
        self._current_config: MetalocConfig | None = None
        self._config_file_path: Path | None = None

    @staticmethod
    def load_config(config_path: Path) -> MetalocConfig:
        """
        Load and validate configuration from a YAML file.

        Args:
            config_path: Path to the YAML configuration file

        Returns:
            MetalocConfig: Validated configuration object

        Raises:
            FileNotFoundError: If the config file doesn't exist
            yaml.YAMLError: If the YAML syntax is invalid
            ValidationError: If the configuration fails Pydantic validation
        """
        if not config_path.exists():
            raise FileNotFoundError(f"Configuration file not found: {config_path}")

        try:
            with config_path.open("r", encoding="utf-8") as f:
                raw_config_data: object = yaml.safe_load(f)  # pyright: ignore[reportAny]
        except yaml.YAMLError as e:
            raise yaml.YAMLError(f"Invalid YAML syntax in {config_path}: {e}") from e

        if raw_config_data is None:
            config_data: dict[str, object] = {}
        elif isinstance(raw_config_data, dict):
            config_data = raw_config_data  # pyright: ignore[reportUnknownVariableType]
        else:
            raise ValueError(
                f"Configuration file must contain a YAML dictionary, got {type(raw_config_data).__name__}"
            )

        parsed_data = ConfigManager._apply_environment(config_data)

        return MetalocConfig(**parsed_data)  # pyright: ignore[reportArgumentType]

    @staticmethod
    def _apply_environment(config_data: dict[str, object]) -> dict[str, object]:
        """
        Overlay secrets supplied through the environment.

        Args:
            config_data: Raw configuration data from YAML

        Returns:
            dict[str, object]: Configuration data with the token filled in
        """
        token = os.environ.get(TOKEN_ENV_VAR)
        if not token:
            return config_data

        parsed_data = config_data.copy()
        match parsed_data.get("services"):
            case {"repository": dict() as repository} as services:
                parsed_data["services"] = {**services, "repository": {**repository, "token": token}}
            case _:
                # Leave malformed sections for Pydantic to report
                pass
        return parsed_data

    @staticmethod
    def save_config(config: MetalocConfig, config_path: Path) -> None:
        """
        Save configuration to a YAML file with atomic operation.

        Args:
            config: Configuration object to save
            config_path: Path where to save the configuration

        Raises:
            OSError: If file operations fail
        """
        config_dict = config.model_dump()

        content_to_write = yaml.dump(
            config_dict,
            default_flow_style=False,
            sort_keys=False,
            allow_unicode=True,
            indent=2,
        )

        # Atomic save operation using temporary file
        temp_file = None
        try:
            with tempfile.NamedTemporaryFile(
                mode="w",
                encoding="utf-8",
                dir=config_path.parent,
                prefix=f".{config_path.name}.",
                suffix=".tmp",
                delete=False,
            ) as temp_file:
                _ = temp_file.write(content_to_write)
                temp_file.flush()
                temp_path = Path(temp_file.name)

            # Atomic move
            _ = temp_path.replace(config_path)

        except Exception as e:
            # Clean up temporary file if it exists
            if temp_file and Path(temp_file.name).exists():
                Path(temp_file.name).unlink(missing_ok=True)
            raise OSError(f"Failed to save configuration to {config_path}: {e}") from e

    @staticmethod
    def get_default_config() -> MetalocConfig:
        """
        Get a configuration object with default values.

        Returns:
            MetalocConfig: Configuration with default values

        Note:
            This creates a minimal config with a placeholder environment URL.
            Real configuration should be loaded from a proper config file.
        """
        return MetalocConfig(
            services=ServicesConfig(
                repository=RepositoryConfig(url="https://your-org.crm.dynamics.com"),
            )
        )

    @staticmethod
    def validate_config(config: MetalocConfig) -> bool:
        """
        Validate a configuration object.

        Args:
            config: Configuration object to validate

        Returns:
            bool: True if configuration is valid

        Raises:
            ValidationError: If configuration is invalid
        """
        try:
            _ = MetalocConfig(**config.model_dump())  # pyright: ignore[reportAny]
            return True
        except ValidationError:
            raise

    @staticmethod
    def create_sample_config(sample_path: Path) -> None:
        """
        Create a sample configuration file with all options and documentation.

        Args:
            sample_path: Path where to create the sample configuration file
        """
        sample_content = ConfigManager._generate_sample_content()

        _ = sample_path.parent.mkdir(parents=True, exist_ok=True)
        _ = sample_path.write_text(sample_content, encoding="utf-8")

    @staticmethod
    def _generate_sample_content() -> str:
        """
        Generate sample configuration file content with documentation.

        Returns:
            str: Sample configuration file content
        """
        return """# metaloc Configuration File
# Export localizable labels from a Dataverse environment to a workbook and
# import the edited workbook back.

services:
  repository:
    # Environment URL (required)
    url: https://your-org.crm.dynamics.com
    # OAuth bearer token; leave empty and set METALOC_TOKEN instead
    token: ""
    # Web API version
    api_version: "9.2"
    # HTTP request timeout in seconds (0-600)
    timeout: 30.0
    # Retries on request timeout (0-10)
    max_retries: 3
    # Seconds to wait after switching the operator's locale (0-60)
    locale_settle_seconds: 2.0

export:
  # Unique name of the solution whose tables are exported
  solution: null
  # Explicit table logical names, used instead of a solution
  tables: []
  # Export every installed language; otherwise only the listed codes
  all_languages: true
  languages: []
  output_path: translations.xlsx
  options:
    entities: true
    attributes: true
    relationships: true
    local_option_sets: true
    global_option_sets: true
    booleans: true
    views: true
    charts: true
    forms: true
    form_tabs: true
    form_sections: true
    form_fields: true
    sitemaps: true
    dashboards: true
    # both, names or descriptions
    label_option: both

import_settings:
  # Log a progress line every N processed units
  progress_log_interval: 10
  # Previously exported workbook; unchanged cells are not written back
  baseline_path: null

system:
  localization:
    # Language code for operator messages
    language: en
"""

    def set_current_config(self, config: MetalocConfig) -> None:
        """
        Set the current configuration.

        Args:
            config: Configuration object to set as current
        """
        self._current_config = config

    @property
    def config_file_path(self) -> Path | None:
        """
        Get the current config file path.

        Returns:
            Path to the current config file, or None if not set
        """
        return self._config_file_path

    @config_file_path.setter
    def config_file_path(self, path: Path | None) -> None:
        self._config_file_path = path

    def get_current_config(self) -> MetalocConfig:
        """
        Get the current configuration.

        Returns:
            MetalocConfig: The current configuration

        Raises:
            RuntimeError: If no configuration has been set
        """
        if self._current_config is None:
            raise RuntimeError(
                "No configuration has been set. Call set_current_config() first."
            )
        return self._current_config
