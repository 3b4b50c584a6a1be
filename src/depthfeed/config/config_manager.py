"""
YAML configuration loading.

Loads `.env` into the process environment, reads config.yaml with
`${VAR}` / `${VAR:default}` substitution and builds a validated FeedConfig.

Usage:
    from depthfeed.config import load_config

    config = load_config()                  # search default locations
    config = load_config("deploy/feed.yaml")
    for source in config.enabled_sources():
        print(source.name, source.pairs)

No global configuration object is kept; pass the returned FeedConfig to
whatever needs it.
"""

import logging
import os
import re
from pathlib import Path
from typing import Any, Dict, List, Optional, Union

import msgspec
import yaml
from dotenv import load_dotenv

from depthfeed.infrastructure.exceptions import ConfigurationError
from depthfeed.infrastructure.logging.structs import LoggingConfig
from .structs import FeedConfig, NetworkConfig, PollingConfig, SourceConfig

logger = logging.getLogger(__name__)

CONFIG_FILE_NAME = 'config.yaml'
ENV_VAR_PATTERN = re.compile(r'\$\{([^}]+)\}')


def guess_file_paths(file_name: str) -> List[Path]:
    """Candidate locations for a config or .env file, in search order."""
    return [
        Path.cwd() / file_name,
        Path(__file__).resolve().parents[3] / file_name,  # project root
        Path.home() / '.depthfeed' / file_name,
    ]


def load_env_file(env_file: Optional[Union[str, Path]] = None) -> Optional[Path]:
    """Load a .env file without overriding variables already set."""
    candidates = [Path(env_file)] if env_file else guess_file_paths('.env')
    for env_path in candidates:
        if env_path.exists():
            load_dotenv(dotenv_path=env_path, override=False)
            logger.info(f"Loaded environment variables from: {env_path}")
            return env_path

    logger.debug("No .env file found - using system environment variables only")
    return None


def substitute_env_vars(content: str) -> str:
    """
    Substitute environment variables in configuration content.

    Supports syntax:
    - ${VAR_NAME} - environment variable, empty string when unset
    - ${VAR_NAME:default} - environment variable with default value
    """
    def replace_var(match):
        var_expr = match.group(1)

        if ':' in var_expr:
            var_name, default_value = var_expr.split(':', 1)
            env_value = os.getenv(var_name.strip())
            if env_value is None:
                return default_value
            return env_value

        var_name = var_expr.strip()
        env_value = os.getenv(var_name)
        if env_value is None:
            logger.warning(f"Environment variable {var_name} not set - using empty value")
            return ""
        return env_value

    return ENV_VAR_PATTERN.sub(replace_var, content)


def _section(data: Dict[str, Any], name: str) -> Dict[str, Any]:
    section = data.get(name) or {}
    if not isinstance(section, dict):
        raise ConfigurationError(f"'{name}' section must be a mapping", name)
    return section


def parse_config(data: Dict[str, Any]) -> FeedConfig:
    """Build and validate a FeedConfig from parsed YAML data."""
    if not isinstance(data, dict):
        raise ConfigurationError("Configuration root must be a mapping")

    environment_config = data.get('environment', 'dev')
    if isinstance(environment_config, dict):
        environment = str(environment_config.get('name', 'dev')).lower()
    else:
        environment = str(environment_config).lower()

    network = _section(data, 'network')
    polling = _section(data, 'polling')

    try:
        network_config = NetworkConfig(
            request_timeout=float(network.get('request_timeout', 10.0)),
            connect_timeout=float(network.get('connect_timeout', 5.0)),
            max_connections=int(network.get('max_connections', 10))
        )
        polling_config = PollingConfig(
            tick_interval=float(polling.get('tick_interval', 0.5)),
            fetch_timeout=float(polling.get('fetch_timeout', 10.0)),
            backoff_base=float(polling.get('backoff_base', 1.0))
        )
    except (TypeError, ValueError) as e:
        raise ConfigurationError(f"Invalid numeric setting: {e}") from e

    sources: Dict[str, SourceConfig] = {}
    for name, source_data in _section(data, 'sources').items():
        source_data = dict(source_data or {})
        source_data['name'] = str(name).lower()
        try:
            sources[source_data['name']] = msgspec.convert(source_data, type=SourceConfig)
        except msgspec.ValidationError as e:
            raise ConfigurationError(f"Invalid source configuration: {e}", f"sources.{name}") from e

    logging_config = None
    if data.get('logging'):
        logging_data = dict(_section(data, 'logging'))
        logging_data.setdefault('environment', environment)
        try:
            logging_config = LoggingConfig.from_dict(logging_data)
        except msgspec.ValidationError as e:
            raise ConfigurationError(f"Invalid logging configuration: {e}", "logging") from e

    config = FeedConfig(
        environment=environment,
        network=network_config,
        polling=polling_config,
        sources=sources,
        logging=logging_config
    )
    config.validate()
    return config


def load_config(path: Optional[Union[str, Path]] = None,
                env_file: Optional[Union[str, Path]] = None) -> FeedConfig:
    """
    Load configuration from YAML.

    Args:
        path: Explicit config file; default locations are searched when omitted
        env_file: Explicit .env file; default locations are searched when omitted

    Raises:
        ConfigurationError: no config file found, or its contents are invalid
    """
    load_env_file(env_file)

    candidates = [Path(path)] if path else guess_file_paths(CONFIG_FILE_NAME)
    config_path = next((candidate for candidate in candidates if candidate.exists()), None)
    if config_path is None:
        raise ConfigurationError(f"No {CONFIG_FILE_NAME} found in: {', '.join(map(str, candidates))}")

    with open(config_path, 'r', encoding='utf-8') as f:
        raw_content = f.read()

    try:
        data = yaml.safe_load(substitute_env_vars(raw_content)) or {}
    except yaml.YAMLError as e:
        raise ConfigurationError(f"Invalid YAML in {config_path}: {e}") from e

    config = parse_config(data)
    logger.info(f"Configuration loaded from: {config_path} (environment: {config.environment})")
    return config
