"""
Tests for EngineConfig and logging setup
"""

import pytest
import structlog

from signing.algorithms import Algorithm
from signing.errors import UnsupportedAlgorithm
from tokens.config import EngineConfig
from tokens.log import configure_logging


class TestEngineConfig:
    """Test environment parsing."""

    def test_defaults(self):
        config = EngineConfig.from_env({})

        assert config.allowed_algorithms == tuple(Algorithm)
        assert config.deterministic_ecdsa is False
        assert config.log_level == "INFO"
        assert config.log_json is False

    def test_from_environment(self):
        config = EngineConfig.from_env({
            "TOKEN_RAIL_ALGORITHMS": "RS256, EdDSA,RS256",
            "TOKEN_RAIL_DETERMINISTIC_ECDSA": "yes",
            "TOKEN_RAIL_LOG_LEVEL": "debug",
            "TOKEN_RAIL_LOG_FORMAT": "JSON",
        })

        assert config.allowed_algorithms == (Algorithm.RS256, Algorithm.EDDSA)
        assert config.deterministic_ecdsa is True
        assert config.log_level == "DEBUG"
        assert config.log_json is True

    def test_unknown_algorithm(self):
        with pytest.raises(UnsupportedAlgorithm):
            EngineConfig.from_env({"TOKEN_RAIL_ALGORITHMS": "HS256,none"})

    def test_bad_boolean(self):
        with pytest.raises(ValueError):
            EngineConfig.from_env({"TOKEN_RAIL_DETERMINISTIC_ECDSA": "maybe"})

    def test_bad_log_level(self):
        with pytest.raises(ValueError):
            EngineConfig.from_env({"TOKEN_RAIL_LOG_LEVEL": "LOUD"})

    def test_bad_log_format(self):
        with pytest.raises(ValueError):
            EngineConfig.from_env({"TOKEN_RAIL_LOG_FORMAT": "xml"})

    def test_empty_allowlist(self):
        with pytest.raises(ValueError):
            EngineConfig(allowed_algorithms=())

    def test_allowlist_names_normalised(self):
        config = EngineConfig(allowed_algorithms=("HS256", Algorithm.ES256, "HS256"))

        assert config.allowed_algorithms == (Algorithm.HS256, Algorithm.ES256)
        assert EngineConfig(allowed_algorithms="EdDSA").allowed_algorithms == (Algorithm.EDDSA,)

    def test_unknown_algorithm_name(self):
        with pytest.raises(UnsupportedAlgorithm):
            EngineConfig(allowed_algorithms=("HS256", "none"))

    def test_reads_os_environ(self, monkeypatch):
        monkeypatch.setenv("TOKEN_RAIL_ALGORITHMS", "ES256K")

        assert EngineConfig.from_env().allowed_algorithms == (Algorithm.ES256K,)


class TestLogging:
    """Test structlog configuration."""

    def test_json_output(self, capsys):
        configure_logging("INFO", json_output=True)
        structlog.get_logger().info("token_validated", alg="HS256")

        err = capsys.readouterr().err
        assert '"event": "token_validated"' in err
        assert '"alg": "HS256"' in err
        assert '"level": "info"' in err

    def test_level_filters(self, capsys):
        configure_logging("WARNING")
        structlog.get_logger().info("token_signed")

        assert capsys.readouterr().err == ""

    def test_unknown_level(self):
        with pytest.raises(ValueError):
            configure_logging("CHATTY")
