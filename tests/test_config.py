"""
Configuration loading tests: YAML parsing, environment substitution and validation.
"""

from pathlib import Path

import pytest

from depthfeed.config import FeedConfig, load_config, parse_config, substitute_env_vars
from depthfeed.exchanges.structs import CurrencyPair
from depthfeed.infrastructure.exceptions import ConfigurationError

REPO_CONFIG = Path(__file__).parent.parent / "config.yaml"


class TestSubstituteEnvVars:
    """Test ${VAR} and ${VAR:default} expansion"""

    def test_set_variable(self, monkeypatch):
        monkeypatch.setenv("DEPTHFEED_TEST_URL", "http://localhost:9000")
        assert substitute_env_vars("base_url: ${DEPTHFEED_TEST_URL}") == "base_url: http://localhost:9000"

    def test_default_used_when_unset(self, monkeypatch):
        monkeypatch.delenv("DEPTHFEED_TEST_UNSET", raising=False)
        assert substitute_env_vars("enabled: ${DEPTHFEED_TEST_UNSET:false}") == "enabled: false"

    def test_unset_without_default_is_empty(self, monkeypatch):
        monkeypatch.delenv("DEPTHFEED_TEST_UNSET", raising=False)
        assert substitute_env_vars("key: '${DEPTHFEED_TEST_UNSET}'") == "key: ''"


class TestParseConfig:
    """Test building FeedConfig from parsed YAML"""

    def test_empty_config_uses_defaults(self):
        config = parse_config({})

        assert config == FeedConfig()
        assert config.polling.tick_interval == 0.5
        assert config.network.request_timeout == 10.0
        assert config.enabled_sources() == []

    def test_full_config(self):
        config = parse_config({
            "environment": {"name": "PROD"},
            "network": {"request_timeout": 5, "max_connections": 4},
            "polling": {"tick_interval": 0.25, "backoff_base": 2},
            "sources": {
                "Kraken": {"pairs": ["BTC<=>USD", "eth<=>eur"], "update_interval": 30},
                "bitstamp": {"enabled": False},
            },
        })

        assert config.environment == "prod"
        assert config.network.max_connections == 4
        assert config.polling.backoff_base == 2.0
        kraken = config.sources["kraken"]
        assert kraken.name == "kraken"
        assert kraken.update_interval == 30.0
        assert kraken.currency_pairs() == [CurrencyPair("BTC", "USD"), CurrencyPair("ETH", "EUR")]
        assert [source.name for source in config.enabled_sources()] == ["kraken"]

    def test_invalid_pair(self):
        with pytest.raises(ConfigurationError) as exc_info:
            parse_config({"sources": {"kraken": {"pairs": ["BTC/USD"]}}})
        assert exc_info.value.setting_name == "sources.kraken.pairs"

    def test_invalid_environment(self):
        with pytest.raises(ConfigurationError) as exc_info:
            parse_config({"environment": "staging"})
        assert exc_info.value.setting_name == "environment"

    def test_non_positive_tick_interval(self):
        with pytest.raises(ConfigurationError) as exc_info:
            parse_config({"polling": {"tick_interval": 0}})
        assert exc_info.value.setting_name == "polling.tick_interval"

    def test_non_numeric_setting(self):
        with pytest.raises(ConfigurationError):
            parse_config({"network": {"request_timeout": "fast"}})

    def test_section_must_be_mapping(self):
        with pytest.raises(ConfigurationError):
            parse_config({"sources": ["kraken"]})

    def test_source_field_type_error(self):
        with pytest.raises(ConfigurationError) as exc_info:
            parse_config({"sources": {"kraken": {"pairs": "BTC<=>USD"}}})
        assert exc_info.value.setting_name == "sources.kraken"

    def test_negative_request_interval(self):
        with pytest.raises(ConfigurationError):
            parse_config({"sources": {"kraken": {"min_request_interval": -1}}})

    def test_logging_section_inherits_environment(self):
        config = parse_config({
            "environment": "test",
            "logging": {"console": {"min_level": "ERROR", "color": False}},
        })

        assert config.logging.environment == "test"
        assert config.logging.console.min_level == "ERROR"
        assert config.logging.get_enabled_backends() == ["console"]

    def test_invalid_log_level(self):
        with pytest.raises(ConfigurationError) as exc_info:
            parse_config({"logging": {"console": {"min_level": "LOUD"}}})
        assert exc_info.value.setting_name == "logging"


class TestLoadConfig:
    """Test reading configuration files"""

    def test_load_with_env_file(self, tmp_path, monkeypatch):
        # Register the variable with monkeypatch so the value loaded from .env is removed afterwards
        monkeypatch.setenv("DEPTHFEED_TEST_PAIR", "placeholder")
        monkeypatch.delenv("DEPTHFEED_TEST_PAIR")
        env_file = tmp_path / ".env"
        env_file.write_text("DEPTHFEED_TEST_PAIR=ETH<=>USD\n")
        config_file = tmp_path / "config.yaml"
        config_file.write_text(
            "environment: test\n"
            "sources:\n"
            "  bitstamp:\n"
            "    pairs: ['${DEPTHFEED_TEST_PAIR}', '${DEPTHFEED_TEST_OTHER:BTC<=>EUR}']\n"
        )

        config = load_config(config_file, env_file=env_file)

        assert config.sources["bitstamp"].currency_pairs() == [
            CurrencyPair("ETH", "USD"), CurrencyPair("BTC", "EUR")
        ]

    def test_missing_file(self, tmp_path):
        with pytest.raises(ConfigurationError, match="No config.yaml found"):
            load_config(tmp_path / "absent.yaml", env_file=tmp_path / "absent.env")

    def test_invalid_yaml(self, tmp_path):
        config_file = tmp_path / "config.yaml"
        config_file.write_text("sources: [kraken\n")

        with pytest.raises(ConfigurationError, match="Invalid YAML"):
            load_config(config_file, env_file=tmp_path / "absent.env")

    def test_repository_config_is_valid(self, tmp_path, monkeypatch):
        monkeypatch.delenv("BITFINEX_ENABLED", raising=False)
        monkeypatch.delenv("ENVIRONMENT", raising=False)

        config = load_config(REPO_CONFIG, env_file=tmp_path / "absent.env")

        assert config.environment == "dev"
        assert set(config.sources) == {"kraken", "bitstamp", "bitfinex"}
        assert [source.name for source in config.enabled_sources()] == ["kraken", "bitstamp"]
        assert config.sources["bitfinex"].min_request_interval == 15.0
        assert config.logging.router.get_metric_backends() == ["file"]
