"""
TokenEngine: the JWT protocol engine bound to an EngineConfig.

Holds a configured Signer and Verifier and applies the configured
algorithm allowlist to both issuing and validation.
"""

from typing import Any, Dict, Mapping, Optional, Union

import structlog

from signing.algorithms import Algorithm
from signing.errors import UnsupportedAlgorithm
from signing.signer import Signer
from signing.verifier import Verifier

from .config import EngineConfig
from .jwt import (
    JWT,
    AlgorithmNames,
    Header,
    KeyInput,
    Payload,
    decode_token,
    get_unverified_header,
    is_valid_token,
)

logger = structlog.get_logger()


class TokenEngine:
    """Issues and validates compact JWTs under one configuration."""

    def __init__(self, config: Optional[EngineConfig] = None):
        self.config = config or EngineConfig()
        self.signer = Signer(deterministic_ecdsa=self.config.deterministic_ecdsa)
        self.verifier = Verifier()

    def _require_enabled(self, algorithm: Algorithm) -> None:
        if algorithm not in self.config.allowed_algorithms:
            logger.warning("algorithm_disabled", alg=algorithm.value)
            raise UnsupportedAlgorithm(f"{algorithm.value} is not enabled for this engine")

    def sign(self, jwt: JWT, key: KeyInput) -> JWT:
        """Sign ``jwt`` in place with the engine's signer."""
        self._require_enabled(jwt.header.algorithm)
        return jwt.sign(key, signer=self.signer)

    def issue(
        self,
        claims: Mapping[str, Any],
        key: KeyInput,
        algorithm: Union[str, Algorithm],
        key_id: Optional[str] = None,
    ) -> str:
        """
        Build, sign and serialize a token in one call.

        When ``key_id`` is omitted the key's own fingerprint is used
        (asymmetric keys only).
        """
        algorithm = Algorithm.from_name(algorithm)
        self._require_enabled(algorithm)
        jwt = JWT(header=Header(algorithm, key_id=key_id), payload=Payload(dict(claims)))
        return jwt.sign(key, signer=self.signer).to_token()

    def decode_token(self, token: str, key: KeyInput,
                     algorithms: Optional[AlgorithmNames] = None) -> JWT:
        return decode_token(
            token,
            key,
            algorithms,
            verifier=self.verifier,
            allowed_algorithms=self.config.allowed_algorithms,
        )

    def validate_token(self, token: str, key: KeyInput,
                       algorithms: Optional[AlgorithmNames] = None) -> Payload:
        """Verify ``token`` under the engine allowlist and return its payload."""
        return self.decode_token(token, key, algorithms).payload

    def is_valid_token(self, token: str, key: KeyInput,
                       algorithms: Optional[AlgorithmNames] = None) -> bool:
        return is_valid_token(
            token,
            key,
            algorithms,
            verifier=self.verifier,
            allowed_algorithms=self.config.allowed_algorithms,
        )

    @staticmethod
    def inspect(token: str) -> Dict[str, Any]:
        """Unverified header, for kid lookup and diagnostics."""
        return get_unverified_header(token).to_dict()
