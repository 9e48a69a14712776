"""
JSON Web Token protocol engine

Builds and parses the three-segment compact form:

    base64url(JSON(header)) "." base64url(JSON(payload)) "." base64url(signature)

Lifecycle: a JWT is created UNSIGNED, ``sign(key)`` makes it SIGNED and
``to_token()`` serializes it. Verification never trusts the header's
``alg`` on its own: it must be one the supplied key (and the caller's
allowlist) accepts, otherwise AlgorithmMismatch is raised before any
signature check. Claims are returned only after the signature verifies.
"""

import copy
import dataclasses
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, Iterable, Optional, Tuple, Union

import structlog

from signing.algorithms import Algorithm, describe, parse_algorithms
from signing.codec import base64url_decode, base64url_encode, decode_segment, encode_segment
from signing.errors import (
    AlgorithmMismatch,
    Base64DecodeError,
    MalformedSignature,
    MalformedToken,
    NotSigned,
    VerificationFailed,
)
from signing.keys import KeyMaterial, KeySource, import_key, infer_key
from signing.signer import Signer
from signing.verifier import Verifier

logger = structlog.get_logger()

TOKEN_TYPE = "JWT"

KeyInput = Union[KeyMaterial, KeySource]
AlgorithmNames = Iterable[Union[str, Algorithm]]


class TokenState(Enum):
    """JWT lifecycle states."""
    UNSIGNED = "UNSIGNED"
    SIGNED = "SIGNED"


@dataclass
class Header:
    """JOSE header: algorithm, key id and token type."""
    algorithm: Algorithm
    key_id: Optional[str] = None
    token_type: Optional[str] = TOKEN_TYPE

    def __post_init__(self):
        self.algorithm = Algorithm.from_name(self.algorithm)
        if self.key_id is not None and not isinstance(self.key_id, str):
            raise TypeError("key_id must be a string")

    def to_dict(self) -> Dict[str, Any]:
        result: Dict[str, Any] = {"alg": self.algorithm.value}
        if self.token_type is not None:
            result["typ"] = self.token_type
        if self.key_id is not None:
            result["kid"] = self.key_id
        return result

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Header":
        """
        Parse a decoded header.

        Raises MalformedToken for a missing ``alg``, non-string members or a
        ``crit`` extension list (no extensions are understood), and
        UnsupportedAlgorithm for unknown algorithms including ``none``.
        """
        if "alg" not in data:
            raise MalformedToken("token header has no alg")
        if "crit" in data:
            raise MalformedToken("token header lists critical extensions that are not supported")
        kid = data.get("kid")
        if kid is not None and not isinstance(kid, str):
            raise MalformedToken("token header kid must be a string")
        typ = data.get("typ")
        if typ is not None and not isinstance(typ, str):
            raise MalformedToken("token header typ must be a string")
        return cls(algorithm=Algorithm.from_name(data["alg"]), key_id=kid, token_type=typ)


@dataclass
class Payload:
    """Claim set. Member order is preserved; values must be JSON-compatible."""
    claims: Dict[str, Any] = field(default_factory=dict)

    def __post_init__(self):
        if not isinstance(self.claims, dict):
            raise TypeError(f"claims must be a dict, got {type(self.claims).__name__}")
        for name in self.claims:
            if not isinstance(name, str):
                raise TypeError(f"claim names must be strings, got {name!r}")

    def __getitem__(self, name: str) -> Any:
        return self.claims[name]

    def __contains__(self, name: object) -> bool:
        return name in self.claims

    def get(self, name: str, default: Any = None) -> Any:
        return self.claims.get(name, default)

    def to_dict(self) -> Dict[str, Any]:
        return dict(self.claims)


@dataclass
class JWT:
    """
    Header + payload + optional signature.

    Signing again overwrites the signature. Changing the header or payload
    after signing invalidates the token until it is signed again.
    """
    header: Header
    payload: Payload = field(default_factory=Payload)
    signature: Optional[bytes] = None
    _signed: Optional[Tuple[str, Any]] = field(default=None, init=False, repr=False, compare=False)
    _auto_key_id: Optional[str] = field(default=None, init=False, repr=False, compare=False)

    @property
    def state(self) -> TokenState:
        if self.signature is None or self._signed is None:
            return TokenState.UNSIGNED
        return TokenState.SIGNED

    def signing_input(self) -> str:
        """``base64url(json(header)) + "." + base64url(json(payload))``"""
        return self._signing_input(self.header)

    def _signing_input(self, header: Header) -> str:
        return f"{encode_segment(header.to_dict())}.{encode_segment(self.payload.to_dict())}"

    def _snapshot(self) -> Any:
        return (self.header.to_dict(), copy.deepcopy(self.payload.claims))

    def sign(self, key: KeyInput, signer: Optional[Signer] = None) -> "JWT":
        """
        Sign with ``key`` under ``header.algorithm``.

        ``key`` is a KeyMaterial or any raw key input, which is imported as a
        signing key bound to the header's algorithm. An absent ``kid`` is
        filled with the key fingerprint (asymmetric keys only) and follows
        the key on later signs until the caller sets one. The header is only
        updated once the signature has been produced.
        """
        algorithm = self.header.algorithm
        if not isinstance(key, KeyMaterial):
            key = import_key(key, algorithm, private=True)
        key.ensure_compatible(algorithm)

        header = self.header
        automatic = header.key_id is None or header.key_id == self._auto_key_id
        if automatic:
            header = dataclasses.replace(header, key_id=key.key_id)

        signing_input = self._signing_input(header)
        signature = (signer or _default_signer).sign(signing_input.encode("ascii"), key, algorithm)

        if automatic:
            self.header.key_id = header.key_id
            self._auto_key_id = header.key_id
        self.signature = signature
        self._signed = (signing_input, self._snapshot())
        logger.info("token_signed", alg=algorithm.value, kid=self.header.key_id)
        return self

    def to_token(self) -> str:
        """Serialize to compact form. Raises NotSigned unless currently signed."""
        if self.state is TokenState.UNSIGNED:
            raise NotSigned("JWT has not been signed")
        signing_input, snapshot = self._signed
        if self._snapshot() != snapshot:
            raise NotSigned("JWT header or payload changed after signing")
        return f"{signing_input}.{base64url_encode(self.signature)}"


_default_signer = Signer()
_default_verifier = Verifier()


# ============================================================================
# Verification path
# ============================================================================

def _split(token: Union[str, bytes]) -> Tuple[str, str, str]:
    if isinstance(token, (bytes, bytearray)):
        try:
            token = bytes(token).decode("ascii")
        except UnicodeDecodeError:
            raise MalformedToken("token must be ASCII") from None
    if not isinstance(token, str):
        raise MalformedToken(f"token must be a string, got {type(token).__name__}")
    parts = token.split(".")
    if len(parts) != 3:
        raise MalformedToken(f"token must have 3 dot-separated segments, got {len(parts)}")
    return parts[0], parts[1], parts[2]


def get_unverified_header(token: Union[str, bytes]) -> Header:
    """Decode the header without verifying anything. Use only for key lookup."""
    header_segment, _, _ = _split(token)
    return Header.from_dict(decode_segment(header_segment))


def _resolve_key(key: KeyInput, expected: Optional[Tuple[Algorithm, ...]]) -> KeyMaterial:
    """Turn raw key input into a verifying key without consulting the token."""
    if isinstance(key, KeyMaterial):
        return key
    if expected:
        families = {describe(a).family for a in expected}
        if len(families) == 1:
            target = expected[0] if len(expected) == 1 else families.pop()
            return import_key(key, target, private=False)
    return infer_key(key, private=False)


def decode_token(
    token: Union[str, bytes],
    key: KeyInput,
    algorithms: Optional[AlgorithmNames] = None,
    *,
    verifier: Optional[Verifier] = None,
    allowed_algorithms: Optional[AlgorithmNames] = None,
) -> JWT:
    """
    Verify ``token`` and return it as a signed JWT.

    The accepted algorithms are those of the key's family (or its bound
    algorithm), narrowed by ``algorithms`` and ``allowed_algorithms``. The
    header's ``alg`` must be among them.

    Raises:
        MalformedToken: not three segments, or unusable header
        Base64DecodeError / JsonParseError: header or payload segment is malformed
        UnsupportedAlgorithm: header names an unknown algorithm
        AlgorithmMismatch: header algorithm is not accepted for this key
        MalformedSignature: signature segment has the wrong encoding or length
        VerificationFailed: signature does not match
    """
    header_segment, payload_segment, signature_segment = _split(token)
    header = Header.from_dict(decode_segment(header_segment))

    expected = parse_algorithms(algorithms) if algorithms is not None else None
    verifying_key = _resolve_key(key, expected)

    accepted = verifying_key.allowed_algorithms
    if expected is not None:
        accepted = tuple(a for a in accepted if a in expected)
    if allowed_algorithms is not None:
        allowed = parse_algorithms(allowed_algorithms)
        accepted = tuple(a for a in accepted if a in allowed)

    if header.algorithm not in accepted:
        logger.warning(
            "token_rejected",
            reason="algorithm_mismatch",
            alg=header.algorithm.value,
            kid=header.key_id,
        )
        raise AlgorithmMismatch(
            f"token algorithm {header.algorithm.value} is not accepted; "
            f"expected one of {[a.value for a in accepted]}"
        )

    # Shape-check the payload segment before it becomes part of the signing input
    base64url_decode(payload_segment)
    try:
        signature = base64url_decode(signature_segment)
    except Base64DecodeError as e:
        raise MalformedSignature(f"signature segment is not base64url: {e}") from e

    signing_input = f"{header_segment}.{payload_segment}"
    if not (verifier or _default_verifier).verify(
        signing_input.encode("ascii"), signature, verifying_key, header.algorithm
    ):
        logger.info(
            "token_rejected",
            reason="signature_mismatch",
            alg=header.algorithm.value,
            kid=header.key_id,
        )
        raise VerificationFailed("token signature does not match")

    jwt = JWT(header=header, payload=Payload(decode_segment(payload_segment)), signature=signature)
    jwt._signed = (signing_input, jwt._snapshot())
    logger.info("token_validated", alg=header.algorithm.value, kid=header.key_id)
    return jwt


def validate_token(
    token: Union[str, bytes],
    key: KeyInput,
    algorithms: Optional[AlgorithmNames] = None,
    **kwargs: Any,
) -> Payload:
    """Verify ``token`` and return its payload. See ``decode_token`` for errors."""
    return decode_token(token, key, algorithms, **kwargs).payload


def is_valid_token(
    token: Union[str, bytes],
    key: KeyInput,
    algorithms: Optional[AlgorithmNames] = None,
    **kwargs: Any,
) -> bool:
    """
    True if ``token`` verifies. Only a non-matching signature returns False;
    malformed input and key/algorithm mismatches still raise.
    """
    try:
        decode_token(token, key, algorithms, **kwargs)
    except VerificationFailed:
        return False
    return True
