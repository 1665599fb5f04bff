import os
from pathlib import Path
from typing import Dict, Any
import yaml
import logging
from dotenv import load_dotenv

logger = logging.getLogger(__name__)

REQUIRED_SECTIONS = ['production_db', 'dashboard_db', 'pool', 'connection_retry',
                     'sync', 'api', 'logging']


def _to_bool(value: str) -> bool:
    return value.strip().lower() in ('1', 'true', 'yes', 'on')


class ConfigLoader:
    """Handle loading and validation of configuration"""

    env_mappings = {
        'PROD_DB_URL': ('production_db', 'url', str),
        'PROD_DB_SERVER': ('production_db', 'host', str),
        'PROD_DB_PORT': ('production_db', 'port', int),
        'PROD_DB_DATABASE': ('production_db', 'database', str),
        'PROD_DB_USER': ('production_db', 'user', str),
        'PROD_DB_PASSWORD': ('production_db', 'password', str),
        'PROD_DB_TABLE': ('production_db', 'table', str),
        'PROD_DB_ENCRYPT': ('production_db', 'encrypt', _to_bool),
        'LOCAL_DB_URL': ('dashboard_db', 'url', str),
        'LOCAL_DB_SERVER': ('dashboard_db', 'host', str),
        'LOCAL_DB_PORT': ('dashboard_db', 'port', int),
        'LOCAL_DB_DATABASE': ('dashboard_db', 'database', str),
        'LOCAL_DB_USER': ('dashboard_db', 'user', str),
        'LOCAL_DB_PASSWORD': ('dashboard_db', 'password', str),
        'LOCAL_DB_TABLE': ('dashboard_db', 'table', str),
        'LOCAL_DB_ENCRYPT': ('dashboard_db', 'encrypt', _to_bool),
        'PORT': ('api', 'port', int),
        'LOG_LEVEL': ('logging', 'level', str.upper),
        'SYNC_INTERVAL': ('sync', 'interval', float),
        'SYNC_WINDOW_SIZE': ('sync', 'window_size', int),
    }

    def __init__(self, config_path: str = None, env_file: str = None):
        """
        Initialize config loader

        Args:
            config_path: Path to custom config file (optional)
            env_file: Path to a .env file (optional, defaults to ./.env)
        """
        self.config_path = config_path or self._get_default_config_path()
        self.env_file = env_file
        self.config = {}

    @staticmethod
    def _get_default_config_path() -> str:
        """Get path to default config file"""
        return str(Path(__file__).parent / 'default_config.yaml')

    def load(self) -> Dict[str, Any]:
        """
        Load, validate and apply environment overrides

        Returns:
            Validated configuration dictionary
        """
        try:
            with open(self.config_path, 'r') as f:
                self.config = yaml.safe_load(f) or {}

            self._validate_config()
        except Exception as e:
            logger.error(f"Error loading config from {self.config_path}: {str(e)}")
            raise

        load_dotenv(self.env_file)
        self.update_from_env()
        return self.config

    def _validate_config(self):
        """Validate required configuration parameters"""
        for section in REQUIRED_SECTIONS:
            if section not in self.config:
                raise ValueError(f"Missing required config section: {section}")

        if 'level' not in self.config['logging']:
            raise ValueError("Missing required logging level")

        for section in ('production_db', 'dashboard_db'):
            if not self.config[section].get('table'):
                raise ValueError(f"Missing required table name in {section}")

    def update_from_env(self):
        """Update configuration from environment variables"""
        for env_var, (section, key, type_conv) in self.env_mappings.items():
            if env_var in os.environ:
                try:
                    self.config[section][key] = type_conv(os.environ[env_var])
                except Exception as e:
                    logger.warning(
                        f"Failed to set {env_var} config value: {str(e)}"
                    )
