"""
Drawtask Configuration Manager

YAML-backed settings for:
- HTTP server binding
- Data file and upload locations
- Provider default endpoints and models
- Request timeout and log level
"""

import os
import copy
import logging
from typing import Dict, Optional

import yaml

logger = logging.getLogger("drawtask.config")

DEFAULT_CONFIG_FILE = "config.yaml"

DEFAULTS: Dict[str, Dict] = {
    "server": {
        "host": "0.0.0.0",
        "port": 3000,
    },
    "storage": {
        "data_file": "data.json",
    },
    "uploads": {
        "dir": "uploads",
        "max_size_mb": 10,
    },
    "static": {
        "public_dir": "public",
        "index_page": "index.html",
        "admin_page": "admin.html",
    },
    "providers": {
        "volcengine": {
            "endpoint": "https://ark.cn-beijing.volces.com/api/v3/chat/completions",
            "model_id": "ep-20241223111111-xxxxx",
        },
        "jimeng": {
            "endpoint": "https://api.jimeng.jianying.com/prompt/generate",
        },
    },
    "settings": {
        "request_timeout": 600,
        "log_level": "INFO",
    },
}


class ConfigManager:
    """
    Configuration manager backed by a single YAML file.

    Every section is merged over DEFAULTS, so a missing file or a partial
    file still yields a complete configuration.
    """

    def __init__(self, config_path: Optional[str] = None):
        self.config_path = (
            config_path
            or os.environ.get("DRAWTASK_CONFIG")
            or os.path.join(os.getcwd(), DEFAULT_CONFIG_FILE)
        )
        self._config: Dict = {}
        self.load_config()

    def load_config(self) -> bool:
        """
        Loads the configuration file.

        Returns True if the file was read, False if defaults are in use.
        """
        if not os.path.exists(self.config_path):
            logger.info(f"Config file not found at {self.config_path}, using defaults")
            self._config = {}
            return False

        try:
            with open(self.config_path, 'r', encoding='utf-8') as f:
                config = yaml.safe_load(f) or {}
        except (OSError, yaml.YAMLError) as e:
            logger.error(f"Error loading config: {e}")
            self._config = {}
            return False

        if not isinstance(config, dict):
            logger.error(f"Config file {self.config_path} must contain a mapping")
            self._config = {}
            return False

        self._config = config

        logger.info(f"Loaded configuration from {self.config_path}")
        return True

    def force_reload(self) -> bool:
        return self.load_config()

    def _overrides(self, value, where: str) -> Dict:
        """A configured mapping, or {} (logged) when the file holds something else"""
        if value is None:
            return {}
        if not isinstance(value, dict):
            logger.error(f"Config {where} must be a mapping, got {type(value).__name__}; using defaults")
            return {}
        return value

    def _get_section(self, name: str) -> Dict:
        """Return a section merged over its defaults"""
        section = copy.deepcopy(DEFAULTS.get(name, {}))
        section.update(self._overrides(self._config.get(name), f"section '{name}'"))
        return section

    # ==========================================
    # Section Accessors
    # ==========================================

    def get_server_settings(self) -> Dict:
        server = self._get_section("server")
        if os.environ.get("PORT"):
            server["port"] = int(os.environ["PORT"])
        return server

    def get_storage_settings(self) -> Dict:
        return self._get_section("storage")

    def get_upload_settings(self) -> Dict:
        return self._get_section("uploads")

    def get_static_settings(self) -> Dict:
        return self._get_section("static")

    def get_provider_defaults(self, provider: Optional[str] = None) -> Dict:
        """
        Get provider default endpoints/models.

        Args:
            provider: Provider name, or None for the whole mapping
        """
        providers = copy.deepcopy(DEFAULTS["providers"])
        configured = self._overrides(self._config.get("providers"), "section 'providers'")
        for name, overrides in configured.items():
            overrides = self._overrides(overrides, f"providers.{name}")
            providers.setdefault(name, {}).update(overrides)
        if provider is None:
            return providers
        return providers.get(provider, {})

    def get_settings(self) -> Dict:
        return self._get_section("settings")

    def get_request_timeout(self) -> float:
        return float(self.get_settings().get("request_timeout", 600))

    def get_log_level(self) -> str:
        """Get configured log level"""
        return str(self.get_settings().get("log_level", "INFO")).upper()


# Global instance
config_manager = ConfigManager()

# Initialize logger from config
from .drawtask_logger import configure_logging  # noqa: E402

configure_logging(level=config_manager.get_log_level())
