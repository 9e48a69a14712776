"""
Algorithm Registry

Maps each supported JOSE algorithm identifier to the key family, hash
function and signature scheme it requires. The registry is a constant
table; nothing in it is mutable at runtime.
"""

from dataclasses import dataclass
from enum import Enum
from types import MappingProxyType
from typing import Dict, Iterable, Mapping, Optional, Tuple, Union

from cryptography.hazmat.primitives import hashes

from .errors import UnsupportedAlgorithm


class KeyFamily(Enum):
    """Key families. Determines which primitive operations a key supports."""
    SYMMETRIC = "oct"
    RSA = "RSA"
    EC_P256 = "P-256"
    EC_P384 = "P-384"
    EC_P521 = "P-521"
    EC_SECP256K1 = "secp256k1"
    ED25519 = "Ed25519"

    @property
    def is_elliptic_curve(self) -> bool:
        return self in CURVES


class Scheme(Enum):
    """Signature schemes."""
    HMAC = "HMAC"
    PKCS1V15 = "RSASSA-PKCS1-v1_5"
    PSS = "RSASSA-PSS"
    ECDSA = "ECDSA"
    EDDSA = "EdDSA"


class Algorithm(Enum):
    """Supported JWS algorithms. Values are the `alg` header tokens."""
    HS256 = "HS256"
    HS384 = "HS384"
    HS512 = "HS512"
    RS256 = "RS256"
    RS384 = "RS384"
    RS512 = "RS512"
    PS256 = "PS256"
    PS384 = "PS384"
    PS512 = "PS512"
    ES256 = "ES256"
    ES384 = "ES384"
    ES512 = "ES512"
    ES256K = "ES256K"
    EDDSA = "EdDSA"

    @classmethod
    def from_name(cls, name: Union[str, "Algorithm"]) -> "Algorithm":
        """
        Parse an algorithm identifier.

        Matching is exact (case-sensitive) because the identifier comes from
        token headers; "none" and unknown names raise UnsupportedAlgorithm.
        """
        if isinstance(name, Algorithm):
            return name
        if not isinstance(name, str):
            raise UnsupportedAlgorithm(f"Algorithm must be a string, got {type(name).__name__}")
        try:
            return cls(name)
        except ValueError:
            raise UnsupportedAlgorithm(f"Unsupported algorithm: {name!r}") from None

    @property
    def descriptor(self) -> "AlgorithmDescriptor":
        return describe(self)

    @property
    def family(self) -> KeyFamily:
        return describe(self).family

    @property
    def scheme(self) -> Scheme:
        return describe(self).scheme


@dataclass(frozen=True)
class CurveInfo:
    """Curve parameters needed for raw key and signature encodings."""
    name: str  # cryptography curve name
    coordinate_size: int  # bytes per field element / scalar


CURVES: Mapping[KeyFamily, CurveInfo] = MappingProxyType({
    KeyFamily.EC_P256: CurveInfo("secp256r1", 32),
    KeyFamily.EC_P384: CurveInfo("secp384r1", 48),
    KeyFamily.EC_P521: CurveInfo("secp521r1", 66),
    KeyFamily.EC_SECP256K1: CurveInfo("secp256k1", 32),
})


_HASHES = {
    "sha256": (hashes.SHA256, 32),
    "sha384": (hashes.SHA384, 48),
    "sha512": (hashes.SHA512, 64),
}


@dataclass(frozen=True)
class AlgorithmDescriptor:
    """The (key family, hash, scheme) triple fixed by an algorithm."""
    algorithm: Algorithm
    family: KeyFamily
    scheme: Scheme
    hash_name: Optional[str]  # hashlib name; None when the scheme hashes internally

    @property
    def digest_size(self) -> int:
        if self.hash_name is None:
            return 0
        return _HASHES[self.hash_name][1]

    def hash_algorithm(self) -> hashes.HashAlgorithm:
        """Return a fresh cryptography hash instance for this algorithm."""
        if self.hash_name is None:
            raise UnsupportedAlgorithm(f"{self.algorithm.value} does not use an external hash")
        return _HASHES[self.hash_name][0]()


def _entry(algorithm: Algorithm, family: KeyFamily, scheme: Scheme,
           hash_name: Optional[str]) -> Tuple[Algorithm, AlgorithmDescriptor]:
    return algorithm, AlgorithmDescriptor(algorithm, family, scheme, hash_name)


REGISTRY: Mapping[Algorithm, AlgorithmDescriptor] = MappingProxyType(dict([
    _entry(Algorithm.HS256, KeyFamily.SYMMETRIC, Scheme.HMAC, "sha256"),
    _entry(Algorithm.HS384, KeyFamily.SYMMETRIC, Scheme.HMAC, "sha384"),
    _entry(Algorithm.HS512, KeyFamily.SYMMETRIC, Scheme.HMAC, "sha512"),
    _entry(Algorithm.RS256, KeyFamily.RSA, Scheme.PKCS1V15, "sha256"),
    _entry(Algorithm.RS384, KeyFamily.RSA, Scheme.PKCS1V15, "sha384"),
    _entry(Algorithm.RS512, KeyFamily.RSA, Scheme.PKCS1V15, "sha512"),
    _entry(Algorithm.PS256, KeyFamily.RSA, Scheme.PSS, "sha256"),
    _entry(Algorithm.PS384, KeyFamily.RSA, Scheme.PSS, "sha384"),
    _entry(Algorithm.PS512, KeyFamily.RSA, Scheme.PSS, "sha512"),
    _entry(Algorithm.ES256, KeyFamily.EC_P256, Scheme.ECDSA, "sha256"),
    _entry(Algorithm.ES384, KeyFamily.EC_P384, Scheme.ECDSA, "sha384"),
    _entry(Algorithm.ES512, KeyFamily.EC_P521, Scheme.ECDSA, "sha512"),
    _entry(Algorithm.ES256K, KeyFamily.EC_SECP256K1, Scheme.ECDSA, "sha256"),
    _entry(Algorithm.EDDSA, KeyFamily.ED25519, Scheme.EDDSA, None),
]))

# Adding an Algorithm member without a registry row must fail at import.
_missing = set(Algorithm) - set(REGISTRY)
if _missing:
    raise RuntimeError(f"Algorithm registry incomplete: {sorted(a.value for a in _missing)}")


def describe(algorithm: Union[str, Algorithm]) -> AlgorithmDescriptor:
    """Return the descriptor for ``algorithm`` (name or member)."""
    algorithm = Algorithm.from_name(algorithm)
    try:
        return REGISTRY[algorithm]
    except KeyError:
        raise UnsupportedAlgorithm(f"Unsupported algorithm: {algorithm.value}") from None


def algorithms_for_family(family: KeyFamily) -> Tuple[Algorithm, ...]:
    """All algorithms usable with keys of ``family``, in registry order."""
    return tuple(a for a, d in REGISTRY.items() if d.family is family)


def parse_algorithms(names: Iterable[Union[str, Algorithm]]) -> Tuple[Algorithm, ...]:
    """Parse a list of algorithm names, preserving order and dropping duplicates."""
    seen: Dict[Algorithm, None] = {}
    for name in names:
        seen[Algorithm.from_name(name)] = None
    return tuple(seen)
