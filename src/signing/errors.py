"""
Error taxonomy for Token Rail.

All errors are recoverable and returned to the immediate caller. Messages
never carry key material, passphrases or signature bytes.
"""


class TokenRailError(Exception):
    """Base class for every signing and token error."""
    pass


class UnsupportedAlgorithm(TokenRailError):
    """Algorithm identifier is not one of the supported values."""
    pass


class InvalidKeyEncoding(TokenRailError):
    """Key material could not be parsed (bad PEM, wrong size, passphrase problems)."""
    pass


class KeyAlgorithmMismatch(TokenRailError):
    """Key family does not match the algorithm family."""
    pass


class CryptographicFailure(TokenRailError):
    """The underlying primitive failed (RNG failure, backend error)."""
    pass


class MalformedSignature(TokenRailError):
    """Signature has the wrong length or encoding for the algorithm."""
    pass


class VerificationFailed(TokenRailError):
    """Well-formed signature that does not match. Expected for untrusted input."""
    pass


class MalformedToken(TokenRailError):
    """Token is not three dot-separated segments or its header is unusable."""
    pass


class Base64DecodeError(TokenRailError):
    """Input is not unpadded base64url."""
    pass


class JsonParseError(TokenRailError):
    """Segment is not valid JSON of the expected shape."""
    pass


class AlgorithmMismatch(TokenRailError):
    """Token header names an algorithm the caller or key does not accept."""
    pass


class NotSigned(TokenRailError):
    """Serialization requested for a JWT without a current signature."""
    pass
