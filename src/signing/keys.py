"""
Key Material for Token Rail

Typed keys per algorithm family, imported from:
- raw bytes (HMAC secrets, EC scalars/SEC1 points, Ed25519 seeds/public keys)
- PEM text, optionally encrypted with a passphrase
- RSA numeric components (n/e, plus d/p/q/dp/dq/qi) or JWK-shaped mappings

Keys are immutable. Nothing in this module logs or stores key bytes.
"""

import dataclasses
import hashlib
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any, Mapping, Optional, Tuple, Union

import structlog
from cryptography import x509
from cryptography.exceptions import UnsupportedAlgorithm as BackendUnsupportedAlgorithm
from cryptography.hazmat.primitives import serialization
from cryptography.hazmat.primitives.asymmetric import ec, ed25519, rsa

from .algorithms import (
    CURVES,
    Algorithm,
    AlgorithmDescriptor,
    KeyFamily,
    algorithms_for_family,
    describe,
)
from .codec import base64url_decode
from .errors import Base64DecodeError, InvalidKeyEncoding, KeyAlgorithmMismatch, UnsupportedAlgorithm

logger = structlog.get_logger()

KeySource = Union[bytes, bytearray, str, Mapping[str, Any]]

_CURVE_CLASSES = {
    KeyFamily.EC_P256: ec.SECP256R1,
    KeyFamily.EC_P384: ec.SECP384R1,
    KeyFamily.EC_P521: ec.SECP521R1,
    KeyFamily.EC_SECP256K1: ec.SECP256K1,
}

_FAMILY_BY_CURVE_NAME = {info.name: family for family, info in CURVES.items()}

_JWK_CURVES = {
    "P-256": KeyFamily.EC_P256,
    "P-384": KeyFamily.EC_P384,
    "P-521": KeyFamily.EC_P521,
    "secp256k1": KeyFamily.EC_SECP256K1,
}

# Public key encodings that must never be accepted as an HMAC secret
_ASYMMETRIC_MARKERS = (
    b"-----BEGIN",
    b"ssh-rsa",
    b"ssh-ed25519",
    b"ecdsa-sha2-",
)


class KeyMaterial(ABC):
    """
    Base class for all key variants.

    The variant set is closed: SymmetricSecret, RsaSigningKey,
    RsaVerifyingKey, EcSigningKey, EcVerifyingKey, EdSigningKey,
    EdVerifyingKey. A key may be bound to one algorithm; an unbound key
    accepts every algorithm of its family.
    """

    algorithm: Optional[Algorithm]

    @property
    @abstractmethod
    def family(self) -> KeyFamily:
        """Algorithm family this key belongs to."""
        pass

    @property
    @abstractmethod
    def is_private(self) -> bool:
        """Whether the key can produce signatures."""
        pass

    @abstractmethod
    def public_key(self) -> "KeyMaterial":
        """The verifying counterpart (the key itself for secrets and public keys)."""
        pass

    @property
    def key_id(self) -> Optional[str]:
        """Short fingerprint of the public key; None for symmetric secrets."""
        return None

    @property
    def allowed_algorithms(self) -> Tuple[Algorithm, ...]:
        if self.algorithm is not None:
            return (self.algorithm,)
        return algorithms_for_family(self.family)

    def ensure_compatible(self, algorithm: Union[str, Algorithm]) -> AlgorithmDescriptor:
        """Return the algorithm descriptor, or raise if this key cannot serve it."""
        descriptor = describe(algorithm)
        if descriptor.family is not self.family:
            raise KeyAlgorithmMismatch(
                f"{descriptor.algorithm.value} requires a {descriptor.family.value} key, "
                f"got {self.family.value}"
            )
        if self.algorithm is not None and self.algorithm is not descriptor.algorithm:
            raise KeyAlgorithmMismatch(
                f"key is bound to {self.algorithm.value}, not {descriptor.algorithm.value}"
            )
        return descriptor

    def bind(self, algorithm: Union[str, Algorithm]) -> "KeyMaterial":
        """Return a copy of this key bound to ``algorithm``."""
        descriptor = self.ensure_compatible(algorithm)
        if self.algorithm is descriptor.algorithm:
            return self
        return dataclasses.replace(self, algorithm=descriptor.algorithm)


def _fingerprint(public_key: Any) -> str:
    der = public_key.public_bytes(
        encoding=serialization.Encoding.DER,
        format=serialization.PublicFormat.SubjectPublicKeyInfo,
    )
    return hashlib.sha256(der).hexdigest()[:16]


@dataclass(frozen=True)
class SymmetricSecret(KeyMaterial):
    """Shared secret for the HMAC family."""
    secret: bytes = field(repr=False)
    algorithm: Optional[Algorithm] = None

    def __post_init__(self):
        if not isinstance(self.secret, bytes):
            raise InvalidKeyEncoding("HMAC secret must be bytes")
        if not self.secret:
            raise InvalidKeyEncoding("HMAC secret must not be empty")
        stripped = self.secret.lstrip()
        if any(stripped.startswith(marker) for marker in _ASYMMETRIC_MARKERS):
            raise InvalidKeyEncoding("refusing to use asymmetric key material as an HMAC secret")
        if _load_der(self.secret) is not None:
            raise InvalidKeyEncoding("refusing to use a DER-encoded key as an HMAC secret")

    @property
    def family(self) -> KeyFamily:
        return KeyFamily.SYMMETRIC

    @property
    def is_private(self) -> bool:
        return True

    def public_key(self) -> "SymmetricSecret":
        return self


@dataclass(frozen=True)
class RsaSigningKey(KeyMaterial):
    """RSA private key (RS* and PS* algorithms)."""
    key: rsa.RSAPrivateKey = field(repr=False)
    algorithm: Optional[Algorithm] = None

    @property
    def family(self) -> KeyFamily:
        return KeyFamily.RSA

    @property
    def is_private(self) -> bool:
        return True

    @property
    def key_size(self) -> int:
        return self.key.key_size

    @property
    def key_id(self) -> str:
        return _fingerprint(self.key.public_key())

    def public_key(self) -> "RsaVerifyingKey":
        return RsaVerifyingKey(self.key.public_key(), algorithm=self.algorithm)


@dataclass(frozen=True)
class RsaVerifyingKey(KeyMaterial):
    """RSA public key."""
    key: rsa.RSAPublicKey
    algorithm: Optional[Algorithm] = None

    @property
    def family(self) -> KeyFamily:
        return KeyFamily.RSA

    @property
    def is_private(self) -> bool:
        return False

    @property
    def key_size(self) -> int:
        return self.key.key_size

    @property
    def key_id(self) -> str:
        return _fingerprint(self.key)

    def public_key(self) -> "RsaVerifyingKey":
        return self


def _check_curve(key: Any, curve: KeyFamily) -> None:
    if curve not in CURVES:
        raise KeyAlgorithmMismatch(f"{curve.value} is not an elliptic-curve family")
    if key.curve.name != CURVES[curve].name:
        raise KeyAlgorithmMismatch(f"key is on curve {key.curve.name}, expected {CURVES[curve].name}")


@dataclass(frozen=True)
class EcSigningKey(KeyMaterial):
    """EC private key on P-256, P-384, P-521 or secp256k1."""
    key: ec.EllipticCurvePrivateKey = field(repr=False)
    curve: KeyFamily
    algorithm: Optional[Algorithm] = None

    def __post_init__(self):
        _check_curve(self.key, self.curve)

    @property
    def family(self) -> KeyFamily:
        return self.curve

    @property
    def is_private(self) -> bool:
        return True

    @property
    def key_id(self) -> str:
        return _fingerprint(self.key.public_key())

    def public_key(self) -> "EcVerifyingKey":
        return EcVerifyingKey(self.key.public_key(), self.curve, algorithm=self.algorithm)


@dataclass(frozen=True)
class EcVerifyingKey(KeyMaterial):
    """EC public key."""
    key: ec.EllipticCurvePublicKey
    curve: KeyFamily
    algorithm: Optional[Algorithm] = None

    def __post_init__(self):
        _check_curve(self.key, self.curve)

    @property
    def family(self) -> KeyFamily:
        return self.curve

    @property
    def is_private(self) -> bool:
        return False

    @property
    def key_id(self) -> str:
        return _fingerprint(self.key)

    def public_key(self) -> "EcVerifyingKey":
        return self


@dataclass(frozen=True)
class EdSigningKey(KeyMaterial):
    """Ed25519 private key."""
    key: ed25519.Ed25519PrivateKey = field(repr=False)
    algorithm: Optional[Algorithm] = None

    @property
    def family(self) -> KeyFamily:
        return KeyFamily.ED25519

    @property
    def is_private(self) -> bool:
        return True

    @property
    def key_id(self) -> str:
        return _fingerprint(self.key.public_key())

    def public_key(self) -> "EdVerifyingKey":
        return EdVerifyingKey(self.key.public_key(), algorithm=self.algorithm)


@dataclass(frozen=True)
class EdVerifyingKey(KeyMaterial):
    """Ed25519 public key."""
    key: ed25519.Ed25519PublicKey
    algorithm: Optional[Algorithm] = None

    @property
    def family(self) -> KeyFamily:
        return KeyFamily.ED25519

    @property
    def is_private(self) -> bool:
        return False

    @property
    def key_id(self) -> str:
        return _fingerprint(self.key)

    def public_key(self) -> "EdVerifyingKey":
        return self


# ============================================================================
# Import
# ============================================================================

def import_key(
    source: KeySource,
    target: Union[Algorithm, KeyFamily, str],
    private: Optional[bool] = None,
) -> KeyMaterial:
    """
    Import key material for an algorithm or key family.

    Args:
        source: raw bytes, a secret or PEM string, ``{"pem": ..., "passphrase": ...}``,
            RSA components ``{"n", "e"[, "d", "p", "q", "dp", "dq", "qi"]}``,
            a JWK-shaped mapping, or ``{"raw": <base64url>}``
        target: an Algorithm (the key is bound to it) or a KeyFamily
        private: require a signing key (True) or a verifying key (False).
            Private input imported with ``private=False`` yields its public half.

    Raises:
        InvalidKeyEncoding: the material cannot be parsed
        KeyAlgorithmMismatch: the material is a different family than ``target``
    """
    algorithm, family = _resolve_target(target)
    key = _import(source, family, private)
    if algorithm is not None:
        key = key.bind(algorithm)
    logger.debug("key_imported", family=key.family.value, private=key.is_private)
    return key


def infer_key(source: KeySource, private: Optional[bool] = None) -> KeyMaterial:
    """
    Import key material, deriving the family from the material itself.

    PEM text, DER keys, JWK ``kty`` and RSA components determine their
    family. Raw bytes shaped like a public key (32 bytes, or a SEC1 point)
    are refused, since they could be a verifying key about to be misused
    as an HMAC secret; pass an algorithm to import them. Any other bytes or
    string is a symmetric secret. Token headers are never consulted.
    """
    key = _import(source, None, private)
    logger.debug("key_imported", family=key.family.value, private=key.is_private, inferred=True)
    return key


def _resolve_target(target: Union[Algorithm, KeyFamily, str]) -> Tuple[Optional[Algorithm], KeyFamily]:
    if isinstance(target, Algorithm):
        return target, describe(target).family
    if isinstance(target, KeyFamily):
        return None, target
    if isinstance(target, str):
        try:
            algorithm = Algorithm.from_name(target)
            return algorithm, describe(algorithm).family
        except UnsupportedAlgorithm:
            pass
        try:
            return None, KeyFamily(target)
        except ValueError:
            raise UnsupportedAlgorithm(f"Unknown algorithm or key family: {target!r}") from None
    raise UnsupportedAlgorithm(f"Unknown algorithm or key family: {target!r}")


def _looks_like_pem(data: bytes) -> bool:
    return data.lstrip().startswith(b"-----BEGIN")


def _import(source: KeySource, family: Optional[KeyFamily], private: Optional[bool]) -> KeyMaterial:
    if isinstance(source, KeyMaterial):
        raise InvalidKeyEncoding("source is already a KeyMaterial instance")

    if isinstance(source, Mapping):
        return _from_mapping(source, family, private)

    if isinstance(source, str):
        data = source.encode("utf-8")
        if family is KeyFamily.SYMMETRIC or (family is None and not _looks_like_pem(data)):
            return _wrap_symmetric(data, private)
        if not _looks_like_pem(data):
            raise InvalidKeyEncoding(f"expected PEM text for a {family.value} key")
        return _from_pem(data, None, family, private)

    if isinstance(source, (bytes, bytearray)):
        data = bytes(source)
        if family is None:
            return _infer_bytes(data, private)
        if family is KeyFamily.SYMMETRIC:
            return _wrap_symmetric(data, private)
        if _looks_like_pem(data):
            return _from_pem(data, None, family, private)
        return _from_raw(data, family, private)

    raise InvalidKeyEncoding(f"unsupported key source type: {type(source).__name__}")


def _infer_bytes(data: bytes, private: Optional[bool]) -> KeyMaterial:
    if _looks_like_pem(data):
        return _from_pem(data, None, None, private)
    loaded = _load_der(data)
    if loaded is not None:
        return _wrap(loaded, None, private)
    if _looks_like_raw_public_key(data):
        raise InvalidKeyEncoding(
            f"{len(data)} raw bytes may be a public key; name the algorithm to import them"
        )
    return _wrap_symmetric(data, private)


def _looks_like_raw_public_key(data: bytes) -> bool:
    """Ed25519 public key or SEC1 point on a supported curve."""
    if len(data) == 32:
        return True
    if data[:1] not in (b"\x02", b"\x03", b"\x04"):
        return False
    return any(
        len(data) in (info.coordinate_size + 1, 2 * info.coordinate_size + 1)
        for info in CURVES.values()
    )


def _wrap_symmetric(secret: bytes, private: Optional[bool]) -> SymmetricSecret:
    # A shared secret serves both directions; ``private`` does not restrict it.
    return SymmetricSecret(secret)


def _from_mapping(values: Mapping[str, Any], family: Optional[KeyFamily],
                  private: Optional[bool]) -> KeyMaterial:
    if "pem" in values:
        pem = values["pem"]
        if isinstance(pem, str):
            pem = pem.encode("utf-8")
        if not isinstance(pem, bytes):
            raise InvalidKeyEncoding("pem must be text")
        passphrase = values.get("passphrase")
        if isinstance(passphrase, str):
            passphrase = passphrase.encode("utf-8")
        return _from_pem(pem, passphrase, family, private)

    if "raw" in values:
        try:
            raw = base64url_decode(values["raw"])
        except Base64DecodeError as e:
            raise InvalidKeyEncoding(f"raw key is not base64url: {e}") from e
        if family is None:
            return _infer_bytes(raw, private)
        if family is KeyFamily.SYMMETRIC:
            return _wrap_symmetric(raw, private)
        return _from_raw(raw, family, private)

    if "kty" in values:
        return _from_jwk(values, family, private)

    if "n" in values or "e" in values:
        if family is not None and family is not KeyFamily.RSA:
            raise KeyAlgorithmMismatch(f"RSA components given for a {family.value} key")
        return _from_rsa_components(values, private)

    raise InvalidKeyEncoding("key mapping needs one of: pem, raw, kty, n/e")


# ----------------------------------------------------------------------------
# PEM / DER
# ----------------------------------------------------------------------------

def _from_pem(data: bytes, passphrase: Optional[bytes], family: Optional[KeyFamily],
              private: Optional[bool]) -> KeyMaterial:
    if not _looks_like_pem(data):
        raise InvalidKeyEncoding("malformed PEM: missing BEGIN line")

    try:
        if b"-----BEGIN CERTIFICATE-----" in data:
            loaded = x509.load_pem_x509_certificate(data).public_key()
        elif b"PRIVATE KEY-----" in data:
            loaded = serialization.load_pem_private_key(data, password=passphrase)
        else:
            loaded = serialization.load_pem_public_key(data)
    except TypeError as e:
        if passphrase is None:
            raise InvalidKeyEncoding("private key is encrypted and no passphrase was given") from e
        raise InvalidKeyEncoding("passphrase given but the private key is not encrypted") from e
    except ValueError as e:
        if passphrase is not None:
            raise InvalidKeyEncoding("malformed PEM or incorrect passphrase") from e
        raise InvalidKeyEncoding("malformed PEM") from e
    except BackendUnsupportedAlgorithm as e:
        raise InvalidKeyEncoding("PEM holds an unsupported key type") from e

    return _wrap(loaded, family, private)


def _load_der(data: bytes) -> Any:
    """The key object if ``data`` is a DER public or private key, else None."""
    if not data.startswith(b"\x30"):
        return None
    try:
        return serialization.load_der_public_key(data)
    except (ValueError, BackendUnsupportedAlgorithm):
        pass
    try:
        return serialization.load_der_private_key(data, password=None)
    except (ValueError, TypeError, BackendUnsupportedAlgorithm):
        return None


def _from_der(data: bytes, family: Optional[KeyFamily], private: Optional[bool]) -> KeyMaterial:
    loaded: Any = None
    if private is not False:
        try:
            loaded = serialization.load_der_private_key(data, password=None)
        except (ValueError, TypeError, BackendUnsupportedAlgorithm):
            loaded = None
    if loaded is None:
        try:
            loaded = serialization.load_der_public_key(data)
        except (ValueError, BackendUnsupportedAlgorithm) as e:
            raise InvalidKeyEncoding("malformed DER key") from e
    return _wrap(loaded, family, private)


def _wrap(loaded: Any, family: Optional[KeyFamily], private: Optional[bool]) -> KeyMaterial:
    """Wrap a cryptography key object in the matching variant."""
    if isinstance(loaded, (rsa.RSAPrivateKey, ec.EllipticCurvePrivateKey, ed25519.Ed25519PrivateKey)):
        if private is False:
            return _wrap(loaded.public_key(), family, private)
    elif private is True:
        raise InvalidKeyEncoding("a private key is required but a public key was given")

    if isinstance(loaded, (rsa.RSAPrivateKey, rsa.RSAPublicKey)):
        actual = KeyFamily.RSA
    elif isinstance(loaded, (ec.EllipticCurvePrivateKey, ec.EllipticCurvePublicKey)):
        actual = _FAMILY_BY_CURVE_NAME.get(loaded.curve.name)
        if actual is None:
            raise InvalidKeyEncoding(f"unsupported curve: {loaded.curve.name}")
    elif isinstance(loaded, (ed25519.Ed25519PrivateKey, ed25519.Ed25519PublicKey)):
        actual = KeyFamily.ED25519
    else:
        raise InvalidKeyEncoding(f"unsupported key type: {type(loaded).__name__}")

    if family is not None and actual is not family:
        raise KeyAlgorithmMismatch(f"expected a {family.value} key, got {actual.value}")

    if isinstance(loaded, rsa.RSAPrivateKey):
        return RsaSigningKey(loaded)
    if isinstance(loaded, rsa.RSAPublicKey):
        return RsaVerifyingKey(loaded)
    if isinstance(loaded, ec.EllipticCurvePrivateKey):
        return EcSigningKey(loaded, actual)
    if isinstance(loaded, ec.EllipticCurvePublicKey):
        return EcVerifyingKey(loaded, actual)
    if isinstance(loaded, ed25519.Ed25519PrivateKey):
        return EdSigningKey(loaded)
    return EdVerifyingKey(loaded)


# ----------------------------------------------------------------------------
# Raw encodings
# ----------------------------------------------------------------------------

def _from_raw(data: bytes, family: KeyFamily, private: Optional[bool]) -> KeyMaterial:
    if family is KeyFamily.RSA:
        return _from_der(data, family, private)

    if family is KeyFamily.ED25519:
        if len(data) != 32:
            raise InvalidKeyEncoding(f"raw Ed25519 keys are 32 bytes, got {len(data)}")
        if private is None:
            raise InvalidKeyEncoding("raw Ed25519 seeds and public keys are both 32 bytes; pass private=")
        if private:
            return EdSigningKey(ed25519.Ed25519PrivateKey.from_private_bytes(data))
        return EdVerifyingKey(ed25519.Ed25519PublicKey.from_public_bytes(data))

    if family in CURVES:
        return _from_raw_ec(data, family, private)

    raise InvalidKeyEncoding(f"no raw encoding for {family.value} keys")


def _from_raw_ec(data: bytes, family: KeyFamily, private: Optional[bool]) -> KeyMaterial:
    size = CURVES[family].coordinate_size
    curve = _CURVE_CLASSES[family]()

    if len(data) == size:
        if private is False:
            raise InvalidKeyEncoding(f"{size}-byte input is a private scalar, a public point was requested")
        try:
            key = ec.derive_private_key(int.from_bytes(data, "big"), curve)
        except ValueError as e:
            raise InvalidKeyEncoding(f"scalar out of range for {family.value}") from e
        return _wrap(key, family, private)

    if len(data) in (size + 1, 2 * size + 1) and data[0] in (0x02, 0x03, 0x04):
        if private is True:
            raise InvalidKeyEncoding("a private key is required but a public point was given")
        try:
            key = ec.EllipticCurvePublicKey.from_encoded_point(curve, data)
        except ValueError as e:
            raise InvalidKeyEncoding(f"point is not on {family.value}") from e
        return _wrap(key, family, private)

    raise InvalidKeyEncoding(
        f"expected a {size}-byte scalar or a SEC1 point for {family.value}, got {len(data)} bytes"
    )


# ----------------------------------------------------------------------------
# Components / JWK
# ----------------------------------------------------------------------------

def _component(values: Mapping[str, Any], name: str) -> Optional[int]:
    value = values.get(name)
    if value is None:
        return None
    if isinstance(value, bool):
        raise InvalidKeyEncoding(f"component {name} must be an integer or base64url text")
    if isinstance(value, int):
        if value <= 0:
            raise InvalidKeyEncoding(f"component {name} must be positive")
        return value
    if isinstance(value, str):
        try:
            return int.from_bytes(base64url_decode(value), "big")
        except Base64DecodeError as e:
            raise InvalidKeyEncoding(f"component {name} is not base64url") from e
    raise InvalidKeyEncoding(f"component {name} must be an integer or base64url text")


def _from_rsa_components(values: Mapping[str, Any], private: Optional[bool]) -> KeyMaterial:
    n = _component(values, "n")
    e = _component(values, "e")
    if n is None or e is None:
        raise InvalidKeyEncoding("RSA components require both n and e")
    public_numbers = rsa.RSAPublicNumbers(e, n)

    d = _component(values, "d")
    if d is None or private is False:
        if private is True:
            raise InvalidKeyEncoding("a private key is required but d is missing")
        try:
            return RsaVerifyingKey(public_numbers.public_key())
        except ValueError as err:
            raise InvalidKeyEncoding("invalid RSA public components") from err

    p = _component(values, "p")
    q = _component(values, "q")
    try:
        if p is None and q is None:
            p, q = rsa.rsa_recover_prime_factors(n, e, d)
        elif p is None or q is None:
            raise InvalidKeyEncoding("RSA components need both p and q, or neither")
        dp = _component(values, "dp") or rsa.rsa_crt_dmp1(d, p)
        dq = _component(values, "dq") or rsa.rsa_crt_dmq1(d, q)
        qi = _component(values, "qi") or rsa.rsa_crt_iqmp(p, q)
        key = rsa.RSAPrivateNumbers(p, q, d, dp, dq, qi, public_numbers).private_key()
    except ValueError as err:
        raise InvalidKeyEncoding("invalid RSA private components") from err
    return RsaSigningKey(key)


def _from_jwk(jwk: Mapping[str, Any], family: Optional[KeyFamily], private: Optional[bool]) -> KeyMaterial:
    kty = jwk.get("kty")

    if kty == "oct":
        if family is not None and family is not KeyFamily.SYMMETRIC:
            raise KeyAlgorithmMismatch(f"oct JWK given for a {family.value} key")
        if not isinstance(jwk.get("k"), str):
            raise InvalidKeyEncoding("oct JWK requires k")
        try:
            return _wrap_symmetric(base64url_decode(jwk["k"]), private)
        except Base64DecodeError as e:
            raise InvalidKeyEncoding("oct JWK k is not base64url") from e

    if kty == "RSA":
        if family is not None and family is not KeyFamily.RSA:
            raise KeyAlgorithmMismatch(f"RSA JWK given for a {family.value} key")
        return _from_rsa_components(jwk, private)

    if kty == "EC":
        actual = _JWK_CURVES.get(jwk.get("crv"))
        if actual is None:
            raise InvalidKeyEncoding(f"unsupported EC crv: {jwk.get('crv')!r}")
        if family is not None and actual is not family:
            raise KeyAlgorithmMismatch(f"expected a {family.value} key, got {actual.value}")
        x, y, d = _component(jwk, "x"), _component(jwk, "y"), _component(jwk, "d")
        if x is None or y is None:
            raise InvalidKeyEncoding("EC JWK requires x and y")
        try:
            public_numbers = ec.EllipticCurvePublicNumbers(x, y, _CURVE_CLASSES[actual]())
            if d is not None and private is not False:
                loaded = ec.EllipticCurvePrivateNumbers(d, public_numbers).private_key()
            else:
                loaded = public_numbers.public_key()
        except ValueError as e:
            raise InvalidKeyEncoding(f"invalid EC JWK for {actual.value}") from e
        return _wrap(loaded, actual, private)

    if kty == "OKP":
        if jwk.get("crv") != "Ed25519":
            raise InvalidKeyEncoding(f"unsupported OKP crv: {jwk.get('crv')!r}")
        if family is not None and family is not KeyFamily.ED25519:
            raise KeyAlgorithmMismatch(f"Ed25519 JWK given for a {family.value} key")
        try:
            if "d" in jwk and private is not False:
                loaded = ed25519.Ed25519PrivateKey.from_private_bytes(base64url_decode(jwk["d"]))
            else:
                loaded = ed25519.Ed25519PublicKey.from_public_bytes(base64url_decode(jwk.get("x", "")))
        except (Base64DecodeError, ValueError) as e:
            raise InvalidKeyEncoding("invalid Ed25519 JWK") from e
        return _wrap(loaded, KeyFamily.ED25519, private)

    raise InvalidKeyEncoding(f"unsupported JWK kty: {kty!r}")
