import copy
import logging.config
import yaml
from pathlib import Path


def setup_logging(config: dict = None, config_path: str = None):
    """Setup logging configuration"""
    if config is None:
        if config_path is None:
            config_path = Path(__file__).parent / 'config' / 'default_config.yaml'

        with open(config_path) as f:
            config = yaml.safe_load(f)

    logging_config = copy.deepcopy(config['logging'])
    level = logging_config.pop('level', None)
    if level:
        logging_config.setdefault('root', {})['level'] = level
    logging.config.dictConfig(logging_config)

    return logging.getLogger(__name__)
