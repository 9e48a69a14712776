"""
Engine configuration

Read from the environment:
- TOKEN_RAIL_ALGORITHMS: comma-separated allowlist (default: all algorithms)
- TOKEN_RAIL_DETERMINISTIC_ECDSA: RFC 6979 ECDSA nonces (default: false)
- TOKEN_RAIL_LOG_LEVEL: DEBUG, INFO, WARNING, ERROR (default: INFO)
- TOKEN_RAIL_LOG_FORMAT: "json" or "console" (default: console)
"""

import os
from dataclasses import dataclass
from typing import Mapping, Optional, Tuple

from signing.algorithms import Algorithm, parse_algorithms

LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")

_TRUE = {"1", "true", "yes", "on"}
_FALSE = {"0", "false", "no", "off", ""}


def _parse_bool(name: str, value: str) -> bool:
    lowered = value.strip().lower()
    if lowered in _TRUE:
        return True
    if lowered in _FALSE:
        return False
    raise ValueError(f"{name} must be a boolean, got {value!r}")


@dataclass(frozen=True)
class EngineConfig:
    """Settings for TokenEngine, the HTTP gateway and the CLI."""
    allowed_algorithms: Tuple[Algorithm, ...] = tuple(Algorithm)
    deterministic_ecdsa: bool = False
    log_level: str = "INFO"
    log_json: bool = False

    def __post_init__(self):
        algorithms = self.allowed_algorithms
        if isinstance(algorithms, (str, Algorithm)):
            algorithms = (algorithms,)
        object.__setattr__(self, "allowed_algorithms", parse_algorithms(algorithms))
        if not self.allowed_algorithms:
            raise ValueError("allowed_algorithms must not be empty")
        if self.log_level not in LOG_LEVELS:
            raise ValueError(f"log_level must be one of {LOG_LEVELS}, got {self.log_level!r}")

    @classmethod
    def from_env(cls, environ: Optional[Mapping[str, str]] = None) -> "EngineConfig":
        """Build a config from ``environ`` (defaults to ``os.environ``)."""
        env = os.environ if environ is None else environ

        algorithms = tuple(Algorithm)
        raw_algorithms = env.get("TOKEN_RAIL_ALGORITHMS", "").strip()
        if raw_algorithms:
            algorithms = parse_algorithms(
                name.strip() for name in raw_algorithms.split(",") if name.strip()
            )

        log_format = env.get("TOKEN_RAIL_LOG_FORMAT", "console").strip().lower()
        if log_format not in ("json", "console"):
            raise ValueError(f"TOKEN_RAIL_LOG_FORMAT must be json or console, got {log_format!r}")

        return cls(
            allowed_algorithms=algorithms,
            deterministic_ecdsa=_parse_bool(
                "TOKEN_RAIL_DETERMINISTIC_ECDSA",
                env.get("TOKEN_RAIL_DETERMINISTIC_ECDSA", "false"),
            ),
            log_level=env.get("TOKEN_RAIL_LOG_LEVEL", "INFO").strip().upper(),
            log_json=log_format == "json",
        )
