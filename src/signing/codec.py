"""
Codec for JWT segments.

base64url without padding (RFC 4648 section 5) and the compact JSON form
used for headers and payloads. Decoding is strict: padded, non-alphabet or
non-canonical input raises Base64DecodeError, malformed JSON raises
JsonParseError. Nothing is truncated or substituted.
"""

import base64
import binascii
import json
import re
from typing import Any, Dict, List, Tuple, Union

from .errors import Base64DecodeError, JsonParseError

_B64URL_RE = re.compile(r"^[A-Za-z0-9_-]*$")

Content = Union[bytes, bytearray, memoryview]


def as_bytes(content: Content) -> bytes:
    """Copy a bytes-like value to bytes; text is rejected."""
    if not isinstance(content, (bytes, bytearray, memoryview)):
        raise TypeError(f"content must be bytes, got {type(content).__name__}")
    return bytes(content)


def base64url_encode(data: Union[bytes, bytearray]) -> str:
    """Encode bytes as unpadded base64url text."""
    return base64.urlsafe_b64encode(bytes(data)).rstrip(b"=").decode("ascii")


def base64url_decode(text: Union[str, bytes]) -> bytes:
    """Decode unpadded base64url text."""
    if isinstance(text, (bytes, bytearray)):
        try:
            text = bytes(text).decode("ascii")
        except UnicodeDecodeError:
            raise Base64DecodeError("base64url input must be ASCII") from None
    if not isinstance(text, str):
        raise Base64DecodeError(f"base64url input must be text, got {type(text).__name__}")

    if not _B64URL_RE.match(text):
        raise Base64DecodeError("base64url input contains padding or non-alphabet characters")
    if len(text) % 4 == 1:
        raise Base64DecodeError("base64url input has an impossible length")

    padded = text + "=" * (-len(text) % 4)
    try:
        data = base64.urlsafe_b64decode(padded)
    except (binascii.Error, ValueError) as e:
        raise Base64DecodeError(f"invalid base64url input: {e}") from e

    # Unused trailing bits must be zero
    if base64url_encode(data) != text:
        raise Base64DecodeError("base64url input is not canonically encoded")
    return data


def json_encode(value: Any) -> bytes:
    """Compact UTF-8 JSON, member order preserved."""
    try:
        text = json.dumps(value, separators=(",", ":"), ensure_ascii=False, allow_nan=False)
        # Lone surrogates survive dumps but have no UTF-8 encoding
        return text.encode("utf-8")
    except (TypeError, ValueError) as e:
        raise JsonParseError(f"value is not JSON-serializable: {e}") from e


def _reject_duplicates(pairs: List[Tuple[str, Any]]) -> Dict[str, Any]:
    result: Dict[str, Any] = {}
    for key, value in pairs:
        if key in result:
            raise JsonParseError(f"duplicate member name: {key!r}")
        result[key] = value
    return result


def _reject_constant(name: str) -> Any:
    raise JsonParseError(f"non-standard JSON constant: {name}")


def json_decode(data: Union[bytes, str]) -> Any:
    """
    Parse JSON, rejecting duplicate member names and NaN/Infinity.

    Anything accepted here can be encoded again by json_encode: escaped
    lone surrogates are refused, as are integers past the interpreter's
    digit limit.
    """
    if isinstance(data, (bytes, bytearray)):
        try:
            data = bytes(data).decode("utf-8")
        except UnicodeDecodeError as e:
            raise JsonParseError("JSON input is not valid UTF-8") from e
    try:
        value = json.loads(
            data,
            object_pairs_hook=_reject_duplicates,
            parse_constant=_reject_constant,
        )
        json_encode(value)
    except json.JSONDecodeError as e:
        raise JsonParseError(f"invalid JSON: {e.msg} at position {e.pos}") from e
    except ValueError as e:
        raise JsonParseError(f"invalid JSON: {e}") from e
    except RecursionError as e:
        raise JsonParseError("JSON nesting too deep") from e
    return value


def encode_segment(value: Dict[str, Any]) -> str:
    """JSON object to a base64url segment."""
    return base64url_encode(json_encode(value))


def decode_segment(segment: str) -> Dict[str, Any]:
    """base64url segment to a JSON object. Non-object JSON is a JsonParseError."""
    value = json_decode(base64url_decode(segment))
    if not isinstance(value, dict):
        raise JsonParseError(f"segment must decode to a JSON object, got {type(value).__name__}")
    return value
