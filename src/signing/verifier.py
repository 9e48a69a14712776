"""
Verifier

Checks raw JWS signatures. A well-formed signature that does not match is
a normal ``False`` result. A signature whose length cannot be right for the
algorithm and key raises MalformedSignature before any primitive runs.
"""

import hmac
from typing import Callable, Dict, Union

import structlog
from cryptography.exceptions import InvalidSignature
from cryptography.exceptions import UnsupportedAlgorithm as BackendUnsupportedAlgorithm
from cryptography.hazmat.primitives.asymmetric import ec, padding
from cryptography.hazmat.primitives.asymmetric.utils import encode_dss_signature

from .algorithms import CURVES, Algorithm, AlgorithmDescriptor, Scheme
from .codec import Content, as_bytes, base64url_decode
from .errors import Base64DecodeError, CryptographicFailure, MalformedSignature
from .keys import KeyMaterial

logger = structlog.get_logger()

ED25519_SIGNATURE_SIZE = 64


def signature_length(descriptor: AlgorithmDescriptor, key: KeyMaterial) -> int:
    """Exact signature length in bytes for ``descriptor`` under ``key``."""
    scheme = descriptor.scheme
    if scheme is Scheme.HMAC:
        return descriptor.digest_size
    if scheme in (Scheme.PKCS1V15, Scheme.PSS):
        return (key.key_size + 7) // 8
    if scheme is Scheme.ECDSA:
        return 2 * CURVES[descriptor.family].coordinate_size
    return ED25519_SIGNATURE_SIZE


def _verify_hmac(content: bytes, signature: bytes, key, descriptor: AlgorithmDescriptor) -> bool:
    expected = hmac.new(key.secret, content, descriptor.hash_name).digest()
    return hmac.compare_digest(expected, signature)


def _verify_pkcs1v15(content: bytes, signature: bytes, key, descriptor: AlgorithmDescriptor) -> bool:
    try:
        key.key.verify(signature, content, padding.PKCS1v15(), descriptor.hash_algorithm())
    except InvalidSignature:
        return False
    return True


def _verify_pss(content: bytes, signature: bytes, key, descriptor: AlgorithmDescriptor) -> bool:
    chosen_hash = descriptor.hash_algorithm()
    try:
        key.key.verify(
            signature,
            content,
            padding.PSS(mgf=padding.MGF1(chosen_hash), salt_length=descriptor.digest_size),
            chosen_hash,
        )
    except InvalidSignature:
        return False
    return True


def _verify_ecdsa(content: bytes, signature: bytes, key, descriptor: AlgorithmDescriptor) -> bool:
    size = CURVES[descriptor.family].coordinate_size
    r = int.from_bytes(signature[:size], "big")
    s = int.from_bytes(signature[size:], "big")
    try:
        key.key.verify(encode_dss_signature(r, s), content, ec.ECDSA(descriptor.hash_algorithm()))
    except InvalidSignature:
        return False
    return True


def _verify_eddsa(content: bytes, signature: bytes, key, descriptor: AlgorithmDescriptor) -> bool:
    try:
        key.key.verify(signature, content)
    except InvalidSignature:
        return False
    return True


_ROUTINES: Dict[Scheme, Callable[..., bool]] = {
    Scheme.HMAC: _verify_hmac,
    Scheme.PKCS1V15: _verify_pkcs1v15,
    Scheme.PSS: _verify_pss,
    Scheme.ECDSA: _verify_ecdsa,
    Scheme.EDDSA: _verify_eddsa,
}

if set(_ROUTINES) != set(Scheme):
    raise RuntimeError("Verification dispatch table does not cover every scheme")


class Verifier:
    """Verifies raw signatures. Stateless and thread-safe."""

    def verify(
        self,
        content: Content,
        signature: Content,
        key: KeyMaterial,
        algorithm: Union[str, Algorithm],
    ) -> bool:
        """
        Return True if ``signature`` is valid for ``content``.

        Signing keys are accepted and verify through their public half.

        Raises:
            UnsupportedAlgorithm: unknown algorithm
            KeyAlgorithmMismatch: key family differs from the algorithm's
            MalformedSignature: signature length is wrong for the algorithm/key
            CryptographicFailure: the primitive failed for a reason other
                than a mismatch
        """
        data = as_bytes(content)
        signature = as_bytes(signature)
        descriptor = key.ensure_compatible(algorithm)
        verifying_key = key.public_key()

        expected = signature_length(descriptor, verifying_key)
        if len(signature) != expected:
            raise MalformedSignature(
                f"{descriptor.algorithm.value} signature must be {expected} bytes, got {len(signature)}"
            )

        routine = _ROUTINES[descriptor.scheme]
        try:
            valid = routine(data, signature, verifying_key, descriptor)
        except (BackendUnsupportedAlgorithm, ValueError, TypeError) as e:
            logger.error(
                "verification_failed",
                alg=descriptor.algorithm.value,
                error=type(e).__name__,
            )
            raise CryptographicFailure(f"{descriptor.algorithm.value} verification failed: {e}") from e

        if not valid:
            logger.info(
                "signature_rejected",
                alg=descriptor.algorithm.value,
                kid=verifying_key.key_id,
                reason="mismatch",
            )
        return valid

    def verify_b64(
        self,
        content: Content,
        signature_b64: str,
        key: KeyMaterial,
        algorithm: Union[str, Algorithm],
    ) -> bool:
        """Verify an unpadded base64url signature."""
        try:
            signature = base64url_decode(signature_b64)
        except Base64DecodeError as e:
            raise MalformedSignature(f"signature is not base64url: {e}") from e
        return self.verify(content, signature, key, algorithm)


_default_verifier = Verifier()


def verify(
    content: Content,
    signature: Content,
    key: KeyMaterial,
    algorithm: Union[str, Algorithm],
) -> bool:
    """Verify with the default verifier."""
    return _default_verifier.verify(content, signature, key, algorithm)
