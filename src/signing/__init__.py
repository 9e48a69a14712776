"""
Signing primitives for Token Rail

Supports:
- HS256/384/512 - HMAC with SHA-2
- RS256/384/512, PS256/384/512 - RSA PKCS#1 v1.5 and PSS
- ES256/384/512, ES256K - ECDSA on P-256, P-384, P-521 and secp256k1
- EdDSA - Ed25519
"""

from .algorithms import (
    Algorithm,
    AlgorithmDescriptor,
    KeyFamily,
    Scheme,
    algorithms_for_family,
    describe,
)
from .codec import (
    base64url_decode,
    base64url_encode,
    decode_segment,
    encode_segment,
    json_decode,
    json_encode,
)
from .errors import (
    AlgorithmMismatch,
    Base64DecodeError,
    CryptographicFailure,
    InvalidKeyEncoding,
    JsonParseError,
    KeyAlgorithmMismatch,
    MalformedSignature,
    MalformedToken,
    NotSigned,
    TokenRailError,
    UnsupportedAlgorithm,
    VerificationFailed,
)
from .keys import (
    EcSigningKey,
    EcVerifyingKey,
    EdSigningKey,
    EdVerifyingKey,
    KeyMaterial,
    RsaSigningKey,
    RsaVerifyingKey,
    SymmetricSecret,
    import_key,
    infer_key,
)
from .signer import Signer, sign
from .verifier import Verifier, verify

__all__ = [
    "Algorithm",
    "AlgorithmDescriptor",
    "KeyFamily",
    "Scheme",
    "algorithms_for_family",
    "describe",
    "base64url_decode",
    "base64url_encode",
    "decode_segment",
    "encode_segment",
    "json_decode",
    "json_encode",
    "AlgorithmMismatch",
    "Base64DecodeError",
    "CryptographicFailure",
    "InvalidKeyEncoding",
    "JsonParseError",
    "KeyAlgorithmMismatch",
    "MalformedSignature",
    "MalformedToken",
    "NotSigned",
    "TokenRailError",
    "UnsupportedAlgorithm",
    "VerificationFailed",
    "EcSigningKey",
    "EcVerifyingKey",
    "EdSigningKey",
    "EdVerifyingKey",
    "KeyMaterial",
    "RsaSigningKey",
    "RsaVerifyingKey",
    "SymmetricSecret",
    "import_key",
    "infer_key",
    "Signer",
    "sign",
    "Verifier",
    "verify",
]
