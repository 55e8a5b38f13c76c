"""
Configuration Manager for Brevskriver Local
Loads user overrides for prompts, normalizer labels and session settings
"""

import json
from typing import Dict, Any
from pathlib import Path
import logging


class ConfigManager:
    """
    Manages JSON configuration overrides stored under ``<data_dir>/config``.
    """

    def __init__(self, data_dir: str = "./brevskriver_data"):
        """
        Initialize configuration manager.

        Args:
            data_dir: Directory containing configuration files
        """
        self.data_dir = Path(data_dir).expanduser()
        self.config_dir = self.data_dir / "config"
        self.logger = logging.getLogger("brevskriver.config")

        self.config_dir.mkdir(parents=True, exist_ok=True)

        # Cache for loaded configurations
        self._cache = {}

    def get_prompt_overrides(self) -> Dict[str, Any]:
        """
        Get prompt overrides (tone phrasings, extra system rules).

        Returns:
            Dictionary with optional ``tones`` and ``system_rules`` keys
        """
        return self._cached("prompts.json")

    def get_normalizer_overrides(self) -> Dict[str, Any]:
        """
        Get label allow-list overrides for the output normalizer.

        Returns:
            Dictionary with optional ``role_labels``, ``field_labels`` and ``valedictions`` lists
        """
        return self._cached("normalizer.json")

    def get_settings_overrides(self) -> Dict[str, Any]:
        """Get session settings persisted in ``settings.json``."""
        return self._cached("settings.json")

    def save_config(self, filename: str, config_data: Dict[str, Any]) -> None:
        """
        Save a configuration file.

        Args:
            filename: Target file name inside the config directory
            config_data: Configuration data to save
        """
        try:
            config_file = self.config_dir / filename

            with open(config_file, 'w', encoding='utf-8') as f:
                json.dump(config_data, f, indent=2, ensure_ascii=False)

            self._cache.pop(filename, None)
            self.logger.info(f"Saved configuration: {filename}")

        except OSError as e:
            self.logger.error(f"Failed to save config {filename}: {str(e)}")
            raise

    def _cached(self, filename: str) -> Dict[str, Any]:
        if filename not in self._cache:
            self._cache[filename] = self._load_json_config(filename, {})
        return self._cache[filename]

    def _load_json_config(self, filename: str, default: Dict[str, Any]) -> Dict[str, Any]:
        """Load JSON configuration file with fallback to default."""
        try:
            config_file = self.config_dir / filename
            if config_file.exists():
                with open(config_file, 'r', encoding='utf-8') as f:
                    data = json.load(f)
                if isinstance(data, dict):
                    return data
                self.logger.warning(f"Ignoring {filename}: expected a JSON object")
        except (OSError, json.JSONDecodeError) as e:
            self.logger.warning(f"Failed to load {filename}: {str(e)}")

        return default.copy()
