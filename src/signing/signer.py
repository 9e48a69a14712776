"""
Signer

Produces raw JWS signatures for a byte payload:
- HS*: HMAC over the content (deterministic)
- RS*: RSASSA-PKCS1-v1_5
- PS*: RSASSA-PSS, MGF1 with the same hash, salt length = hash length,
  fresh random salt per call
- ES*: ECDSA, signature encoded as fixed-width r || s
- EdDSA: Ed25519 over the content itself (deterministic)

Randomness for PSS salts and ECDSA nonces comes from the OpenSSL CSPRNG
behind the cryptography library. ECDSA can be switched to RFC 6979
deterministic nonces per Signer instance.
"""

import hmac
from typing import Callable, Dict, Union

import structlog
from cryptography.exceptions import UnsupportedAlgorithm as BackendUnsupportedAlgorithm
from cryptography.hazmat.primitives.asymmetric import ec, padding
from cryptography.hazmat.primitives.asymmetric.utils import decode_dss_signature

from .algorithms import CURVES, Algorithm, AlgorithmDescriptor, Scheme
from .codec import Content, as_bytes, base64url_encode
from .errors import CryptographicFailure, KeyAlgorithmMismatch
from .keys import KeyMaterial

logger = structlog.get_logger()


def _sign_hmac(signer: "Signer", content: bytes, key, descriptor: AlgorithmDescriptor) -> bytes:
    return hmac.new(key.secret, content, descriptor.hash_name).digest()


def _sign_pkcs1v15(signer: "Signer", content: bytes, key, descriptor: AlgorithmDescriptor) -> bytes:
    return key.key.sign(content, padding.PKCS1v15(), descriptor.hash_algorithm())


def _sign_pss(signer: "Signer", content: bytes, key, descriptor: AlgorithmDescriptor) -> bytes:
    chosen_hash = descriptor.hash_algorithm()
    return key.key.sign(
        content,
        padding.PSS(mgf=padding.MGF1(chosen_hash), salt_length=descriptor.digest_size),
        chosen_hash,
    )


def _sign_ecdsa(signer: "Signer", content: bytes, key, descriptor: AlgorithmDescriptor) -> bytes:
    if signer.deterministic_ecdsa:
        scheme = ec.ECDSA(descriptor.hash_algorithm(), deterministic_signing=True)
    else:
        scheme = ec.ECDSA(descriptor.hash_algorithm())
    der = key.key.sign(content, scheme)
    r, s = decode_dss_signature(der)
    size = CURVES[descriptor.family].coordinate_size
    return r.to_bytes(size, "big") + s.to_bytes(size, "big")


def _sign_eddsa(signer: "Signer", content: bytes, key, descriptor: AlgorithmDescriptor) -> bytes:
    return key.key.sign(content)


_ROUTINES: Dict[Scheme, Callable[..., bytes]] = {
    Scheme.HMAC: _sign_hmac,
    Scheme.PKCS1V15: _sign_pkcs1v15,
    Scheme.PSS: _sign_pss,
    Scheme.ECDSA: _sign_ecdsa,
    Scheme.EDDSA: _sign_eddsa,
}

if set(_ROUTINES) != set(Scheme):
    raise RuntimeError("Signing dispatch table does not cover every scheme")


class Signer:
    """
    Signs content with a key for a given algorithm.

    Instances hold no key state and can be shared across threads.
    """

    def __init__(self, deterministic_ecdsa: bool = False):
        self.deterministic_ecdsa = deterministic_ecdsa

    def sign(self, content: Content, key: KeyMaterial, algorithm: Union[str, Algorithm]) -> bytes:
        """
        Sign ``content`` and return the raw signature bytes.

        Raises:
            UnsupportedAlgorithm: unknown algorithm
            KeyAlgorithmMismatch: key family differs from the algorithm's, or
                a verifying key was given
            CryptographicFailure: the primitive failed; no bytes are returned
        """
        data = as_bytes(content)
        descriptor = key.ensure_compatible(algorithm)
        if not key.is_private:
            raise KeyAlgorithmMismatch(f"{descriptor.algorithm.value} signing requires a private key")

        routine = _ROUTINES[descriptor.scheme]
        try:
            signature = routine(self, data, key, descriptor)
        except (BackendUnsupportedAlgorithm, ValueError, TypeError) as e:
            logger.error(
                "signing_failed",
                alg=descriptor.algorithm.value,
                error=type(e).__name__,
            )
            raise CryptographicFailure(f"{descriptor.algorithm.value} signing failed: {e}") from e

        logger.debug(
            "signature_created",
            alg=descriptor.algorithm.value,
            kid=key.key_id,
            length=len(signature),
        )
        return signature

    def sign_b64(self, content: Content, key: KeyMaterial, algorithm: Union[str, Algorithm]) -> str:
        """Sign and return the unpadded base64url signature."""
        return base64url_encode(self.sign(content, key, algorithm))

    def __repr__(self) -> str:
        return f"Signer(deterministic_ecdsa={self.deterministic_ecdsa})"


_default_signer = Signer()


def sign(content: Content, key: KeyMaterial, algorithm: Union[str, Algorithm]) -> bytes:
    """Sign with the default (randomized-nonce) signer."""
    return _default_signer.sign(content, key, algorithm)
