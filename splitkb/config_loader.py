#!/usr/bin/env python3
"""
Configuration loader for the layout analyzer.

Provides unified configuration management using YAML files.
Sections (cost_model, search, ...) are returned with the `common`
section merged in, and data file paths are resolved relative to the
configuration file.
"""

import yaml
from pathlib import Path
from typing import Dict, Any, Optional, List
import logging

logger = logging.getLogger(__name__)

SPECIAL_SECTIONS = {'common', 'output_formats'}


class ConfigLoader:
    """Handles loading and processing of YAML configuration files."""

    def __init__(self, config_path: str = "config.yaml"):
        """
        Initialize configuration loader.

        Args:
            config_path: Path to the YAML configuration file
        """
        self.config_path = Path(config_path)
        self._config_cache: Optional[Dict[str, Any]] = None

    def load_config(self) -> Dict[str, Any]:
        """
        Load YAML configuration file.

        Returns:
            Full configuration dictionary

        Raises:
            FileNotFoundError: If configuration file doesn't exist
            yaml.YAMLError: If YAML parsing fails
        """
        if self._config_cache is not None:
            return self._config_cache

        if not self.config_path.exists():
            raise FileNotFoundError(f"Configuration file not found: {self.config_path}")

        try:
            with open(self.config_path, 'r', encoding='utf-8') as f:
                config = yaml.safe_load(f)
        except yaml.YAMLError as e:
            raise yaml.YAMLError(f"Error parsing YAML configuration {self.config_path}: {e}")

        if config is None:
            config = {}
        if not isinstance(config, dict):
            raise ValueError(f"Configuration root must be a mapping: {self.config_path}")

        logger.debug(f"Loaded configuration from {self.config_path}")
        self._config_cache = config
        return config

    def get_section(self, section: str, required: bool = True) -> Dict[str, Any]:
        """
        Get a configuration section with common settings merged.

        Args:
            section: Name of the section (e.g., 'cost_model')
            required: Raise if the section is missing, otherwise return common only

        Returns:
            Merged configuration dictionary (section keys take precedence)

        Raises:
            ValueError: If a required section is not found
        """
        full_config = self.load_config()

        if section not in full_config:
            if required:
                available = self.get_available_sections()
                raise ValueError(
                    f"Section '{section}' not found in configuration. "
                    f"Available sections: {available}"
                )
            section_config = {}
        else:
            section_config = dict(full_config[section] or {})

        common_config = full_config.get('common', {}) or {}
        return {**common_config, **section_config}

    def get_data_files(self) -> Dict[str, str]:
        """
        Get data file paths from the common section.

        Relative paths are resolved against the configuration file's directory.
        """
        common_config = self.load_config().get('common', {}) or {}
        data_files = common_config.get('data_files', {}) or {}

        resolved = {}
        for key, filename in data_files.items():
            if filename is None:
                continue
            filepath = Path(filename)
            if not filepath.is_absolute():
                filepath = self.config_path.parent / filepath
            resolved[key] = str(filepath)
        return resolved

    def get_output_format_config(self, format_name: str) -> Dict[str, Any]:
        """
        Get output format configuration.

        Args:
            format_name: Name of output format (table, csv, detailed)

        Returns:
            Output format configuration
        """
        output_formats = self.load_config().get('output_formats', {}) or {}
        return output_formats.get(format_name, {}) or {}

    def get_available_sections(self) -> List[str]:
        full_config = self.load_config()
        return [k for k in full_config.keys() if k not in SPECIAL_SECTIONS]


# Global configuration loader instance
_config_loader: Optional[ConfigLoader] = None


def get_config_loader(config_path: str = "config.yaml") -> ConfigLoader:
    """
    Get global configuration loader instance (singleton pattern).

    Args:
        config_path: Path to configuration file

    Returns:
        ConfigLoader instance
    """
    global _config_loader

    if _config_loader is None or _config_loader.config_path != Path(config_path):
        _config_loader = ConfigLoader(config_path)

    return _config_loader


def load_section(section: str, config_path: str = "config.yaml",
                 required: bool = True) -> Dict[str, Any]:
    """Convenience function to load one configuration section."""
    return get_config_loader(config_path).get_section(section, required=required)
