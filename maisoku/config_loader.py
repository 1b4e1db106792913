"""
Configuration Loader for Maisoku Translator

Provides centralized access to settings.yaml configuration.
Also loads a project-level .env file so the Gemini API key can be
kept next to the settings instead of exported in the shell.
"""

import os
from pathlib import Path
from typing import Any, Dict

import yaml
from dotenv import load_dotenv

PROJECT_ROOT = Path(__file__).parent.parent

load_dotenv(dotenv_path=PROJECT_ROOT / ".env")


class Config:
    """
    Singleton configuration loader.
    Loads settings.yaml once and provides access throughout the application.

    The file location can be overridden with the MAISOKU_CONFIG
    environment variable.
    """

    _instance = None
    _config_data = None

    def __new__(cls):
        if cls._instance is None:
            cls._instance = super(Config, cls).__new__(cls)
        return cls._instance

    def __init__(self):
        if self._config_data is None:
            self._load_config()

    def _load_config(self):
        """Load configuration from settings.yaml"""
        override = os.getenv("MAISOKU_CONFIG")
        if override:
            config_file = Path(override)
        else:
            config_file = PROJECT_ROOT / "config" / "settings.yaml"

        if not config_file.exists():
            raise FileNotFoundError(f"Configuration file not found: {config_file}")

        with open(config_file, 'r', encoding='utf-8') as f:
            self._config_data = yaml.safe_load(f) or {}

    def get(self, key_path: str, default: Any = None) -> Any:
        """
        Get configuration value using dot notation.

        Args:
            key_path: Dot-separated path to config value (e.g., 'extraction.model')
            default: Default value if key not found

        Returns:
            Configuration value or default

        Examples:
            >>> config = Config()
            >>> config.get('extraction.model')
            'gemini-1.5-flash'
            >>> config.get('document.max_features')
            8
        """
        keys = key_path.split('.')
        value = self._config_data

        try:
            for key in keys:
                value = value[key]
            return value
        except (KeyError, TypeError):
            return default

    def get_section(self, section: str) -> Dict[str, Any]:
        """
        Get entire configuration section.

        Args:
            section: Top-level section name (e.g., 'document', 'issuer')

        Returns:
            Dictionary containing the section's configuration
        """
        return self._config_data.get(section) or {}

    @property
    def all(self) -> Dict[str, Any]:
        """Get entire configuration dictionary"""
        return self._config_data


# Create a global instance for easy importing
config = Config()
