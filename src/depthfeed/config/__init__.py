from .structs import FeedConfig, NetworkConfig, PollingConfig, SourceConfig
from .config_manager import load_config, parse_config, substitute_env_vars

__all__ = [
    'FeedConfig',
    'NetworkConfig',
    'PollingConfig',
    'SourceConfig',
    'load_config',
    'parse_config',
    'substitute_env_vars',
]
