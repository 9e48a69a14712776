"""
Token Rail - JWT Module

Compact JSON Web Tokens over the signing primitives:
- Header / Payload / JWT with sign() and to_token()
- validate_token(): verify-then-parse with algorithm-confusion protection
- TokenEngine: the same operations under an EngineConfig
"""

from .config import EngineConfig
from .engine import TokenEngine
from .jwt import (
    JWT,
    Header,
    Payload,
    TokenState,
    decode_token,
    get_unverified_header,
    is_valid_token,
    validate_token,
)
from .log import configure_logging

__all__ = [
    "EngineConfig",
    "TokenEngine",
    "JWT",
    "Header",
    "Payload",
    "TokenState",
    "decode_token",
    "get_unverified_header",
    "is_valid_token",
    "validate_token",
    "configure_logging",
]
