"""
Tests for the JWT Protocol Engine

Covers the compact form, the sign/serialize lifecycle, verify-then-parse
and algorithm-confusion protection.
"""

import hashlib
import hmac

import pytest
from cryptography.hazmat.primitives import serialization
from cryptography.hazmat.primitives.asymmetric import rsa

from conftest import ALL_ALGORITHMS, algorithm_id, private_pem, public_pem
from signing.algorithms import Algorithm, KeyFamily
from signing.codec import base64url_decode, base64url_encode, decode_segment, encode_segment
from signing.errors import (
    AlgorithmMismatch,
    Base64DecodeError,
    CryptographicFailure,
    InvalidKeyEncoding,
    JsonParseError,
    KeyAlgorithmMismatch,
    MalformedSignature,
    MalformedToken,
    NotSigned,
    UnsupportedAlgorithm,
    VerificationFailed,
)
from signing.keys import import_key
from signing.signer import sign
from tokens.config import EngineConfig
from tokens.engine import TokenEngine
from tokens.jwt import (
    JWT,
    Header,
    Payload,
    TokenState,
    decode_token,
    get_unverified_header,
    is_valid_token,
    validate_token,
)

RFC7515_TOKEN = (
    "eyJ0eXAiOiJKV1QiLA0KICJhbGciOiJIUzI1NiJ9"
    ".eyJpc3MiOiJqb2UiLA0KICJleHAiOjEzMDA4MTkzODAsDQogImh0dHA6Ly9leGFtcGxlLmNvbS9pc19yb290Ijp0cnVlfQ"
    ".dBjftJeZ4CVP-mB92K27uhbUJU1p1r_wW1gFWFOEjXk"
)
RFC7515_KEY = {
    "kty": "oct",
    "k": "AyM1SysPpbyDfgZld3umj1qzKObwVMkoqQ-EstJQLr_T-1qS0gZH75aKtMN3Yj0iPS4hcgUuTwjAzZr1Z9CAow",
}


def _hs256_token(claims=None, secret="secret"):
    jwt = JWT(header=Header("HS256"), payload=Payload(claims or {"sub": "1234", "admin": True}))
    return jwt.sign(secret).to_token()


def _forge_hs256(secret, claims=None):
    """HS256 token MACed with ``secret``, as an attacker holding a public key would."""
    header_segment = encode_segment({"alg": "HS256", "typ": "JWT"})
    payload_segment = encode_segment(claims or {"admin": True})
    mac = hmac.new(secret, f"{header_segment}.{payload_segment}".encode("ascii"), hashlib.sha256).digest()
    return f"{header_segment}.{payload_segment}.{base64url_encode(mac)}"


def _forge(header, payload, signature=b"\x00" * 32):
    return f"{encode_segment(header)}.{encode_segment(payload)}.{base64url_encode(signature)}"


class TestHeader:
    """Test header construction and parsing."""

    def test_member_order(self):
        header = Header("RS256", key_id="key-1")

        assert list(header.to_dict()) == ["alg", "typ", "kid"]

    def test_omits_absent_members(self):
        assert Header(Algorithm.EDDSA, token_type=None).to_dict() == {"alg": "EdDSA"}

    def test_unknown_algorithm(self):
        with pytest.raises(UnsupportedAlgorithm):
            Header("HS999")

    def test_missing_alg(self):
        with pytest.raises(MalformedToken):
            Header.from_dict({"typ": "JWT"})

    def test_crit_rejected(self):
        with pytest.raises(MalformedToken):
            Header.from_dict({"alg": "HS256", "crit": ["exp"], "exp": 0})

    def test_non_string_kid(self):
        with pytest.raises(MalformedToken):
            Header.from_dict({"alg": "HS256", "kid": 7})


class TestLifecycle:
    """UNSIGNED -> SIGNED -> serialized."""

    def test_unsigned_cannot_serialize(self):
        jwt = JWT(header=Header("HS256"))

        assert jwt.state is TokenState.UNSIGNED
        with pytest.raises(NotSigned):
            jwt.to_token()

    def test_hs256_secret_scenario(self):
        """Sign {"sub":"1234","admin":true} with HS256 and "secret"."""
        token = _hs256_token()
        header_segment, payload_segment, signature_segment = token.split(".")

        assert token.startswith("eyJ")
        assert decode_segment(header_segment)["alg"] == "HS256"
        assert decode_segment(payload_segment) == {"sub": "1234", "admin": True}
        assert len(base64url_decode(signature_segment)) == 32
        assert validate_token(token, "secret").to_dict() == {"sub": "1234", "admin": True}

    def test_wrong_secret(self):
        token = _hs256_token()

        assert is_valid_token(token, "wrong") is False
        with pytest.raises(VerificationFailed):
            validate_token(token, "wrong")

    def test_signature_is_hmac_of_signing_input(self):
        jwt = JWT(header=Header("HS256"), payload=Payload({"n": 1})).sign("secret")
        expected = sign(jwt.signing_input().encode("ascii"), import_key("secret", "HS256"), "HS256")

        assert jwt.signature == expected
        assert jwt.state is TokenState.SIGNED

    def test_change_after_signing(self):
        """Mutating the header or payload invalidates the signature."""
        jwt = JWT(header=Header("HS256"), payload=Payload({"role": "user"})).sign("secret")
        jwt.payload.claims["role"] = "admin"

        with pytest.raises(NotSigned):
            jwt.to_token()

        jwt.sign("secret")
        assert validate_token(jwt.to_token(), "secret")["role"] == "admin"

    def test_resign_overwrites(self):
        jwt = JWT(header=Header("HS256"), payload=Payload({"a": 1})).sign("first")
        jwt.sign("second")

        assert is_valid_token(jwt.to_token(), "second")
        assert not is_valid_token(jwt.to_token(), "first")

    def test_kid_defaults_to_fingerprint(self, key_pair):
        """Asymmetric keys fill an absent kid; secrets leave it out."""
        signing_key, _ = key_pair(Algorithm.RS256)

        signed = JWT(header=Header("RS256")).sign(signing_key)
        explicit = JWT(header=Header("RS256", key_id="rotation-3")).sign(signing_key)

        assert signed.header.key_id == signing_key.key_id
        assert get_unverified_header(signed.to_token()).key_id == signing_key.key_id
        assert explicit.header.key_id == "rotation-3"
        assert "kid" not in JWT(header=Header("HS256")).sign("secret").header.to_dict()

    def test_kid_follows_key_on_resign(self, key_pair):
        first_key, _ = key_pair(Algorithm.RS256)
        second_key = import_key(
            private_pem(rsa.generate_private_key(public_exponent=65537, key_size=2048)), "RS256"
        )
        jwt = JWT(header=Header("RS256"), payload=Payload({"n": 1})).sign(first_key)

        token = jwt.sign(second_key).to_token()

        assert jwt.header.key_id == second_key.key_id != first_key.key_id
        assert get_unverified_header(token).key_id == second_key.key_id
        assert validate_token(token, second_key.public_key())["n"] == 1

    def test_kid_set_after_signing_is_kept(self, key_pair):
        signing_key, _ = key_pair(Algorithm.ES256)
        jwt = JWT(header=Header("ES256")).sign(signing_key)
        jwt.header.key_id = "rotation-4"

        assert jwt.sign(signing_key).header.key_id == "rotation-4"

    def test_failed_sign_leaves_header_unchanged(self, key_pair):
        signing_key, _ = key_pair(Algorithm.EDDSA)
        jwt = JWT(header=Header("EdDSA"), payload=Payload({"x": "\ud800"}))

        with pytest.raises(JsonParseError):
            jwt.sign(signing_key)

        assert jwt.header.key_id is None
        assert jwt.state is TokenState.UNSIGNED

    def test_key_for_other_algorithm(self, key_pair):
        signing_key, _ = key_pair(Algorithm.ES256)
        jwt = JWT(header=Header("ES256K"))

        with pytest.raises(KeyAlgorithmMismatch):
            jwt.sign(signing_key)

    def test_sign_with_encrypted_pem_mapping(self, backend_keys):
        private_key = backend_keys[KeyFamily.EC_P256]
        source = {"pem": private_pem(private_key, passphrase=b"pw"), "passphrase": "pw"}

        token = JWT(header=Header("ES256"), payload=Payload({"x": 1})).sign(source).to_token()

        assert validate_token(token, public_pem(private_key), ["ES256"])["x"] == 1


class TestValidation:
    """Verify-then-parse across every algorithm."""

    @pytest.mark.parametrize("algorithm", ALL_ALGORITHMS, ids=algorithm_id)
    def test_round_trip(self, key_pair, algorithm):
        signing_key, verifying_key = key_pair(algorithm)
        claims = {"sub": "user-1", "scope": ["read", "write"], "n": 3}
        token = JWT(header=Header(algorithm), payload=Payload(claims)).sign(signing_key).to_token()

        jwt = decode_token(token, verifying_key)

        assert jwt.header.algorithm is algorithm
        assert jwt.payload.to_dict() == claims
        assert jwt.to_token() == token

    @pytest.mark.parametrize("algorithm", ALL_ALGORITHMS, ids=algorithm_id)
    def test_tampered_payload(self, key_pair, algorithm):
        signing_key, verifying_key = key_pair(algorithm)
        token = JWT(header=Header(algorithm), payload=Payload({"admin": False})).sign(signing_key).to_token()
        header_segment, _, signature_segment = token.split(".")
        forged = f"{header_segment}.{encode_segment({'admin': True})}.{signature_segment}"

        with pytest.raises(VerificationFailed):
            validate_token(forged, verifying_key)

    def test_rfc7515_token(self):
        """Headers from other issuers need not be compact JSON."""
        jwt = decode_token(RFC7515_TOKEN, RFC7515_KEY, ["HS256"])

        assert jwt.header.token_type == "JWT"
        assert jwt.payload["iss"] == "joe"
        assert jwt.payload["http://example.com/is_root"] is True
        assert jwt.to_token() == RFC7515_TOKEN

    def test_raw_key_with_algorithms(self, backend_keys):
        jwt = JWT(header=Header("PS384"), payload=Payload({"a": 1}))
        token = jwt.sign(private_pem(backend_keys[KeyFamily.RSA])).to_token()

        assert validate_token(token, public_pem(backend_keys[KeyFamily.RSA]), ["PS384", "RS256"])["a"] == 1

    def test_algorithms_allowlist(self, key_pair):
        signing_key, verifying_key = key_pair(Algorithm.RS256)
        token = JWT(header=Header("RS256")).sign(signing_key).to_token()

        with pytest.raises(AlgorithmMismatch):
            validate_token(token, verifying_key, ["PS256"])

    def test_bound_key_rejects_other_header_alg(self):
        token = JWT(header=Header("HS512")).sign("secret").to_token()

        with pytest.raises(AlgorithmMismatch):
            validate_token(token, import_key("secret", "HS256"))


class TestAlgorithmConfusion:
    """The header never chooses the verification family."""

    def test_rs256_token_reforged_as_hs256(self, key_pair, rsa_pem):
        """An HS256 token MACed with the RSA public key PEM is rejected."""
        _, verifying_key = key_pair(Algorithm.RS256)
        _, public = rsa_pem

        header_segment = encode_segment({"alg": "HS256", "typ": "JWT"})
        payload_segment = encode_segment({"admin": True})
        mac = hmac.new(public, f"{header_segment}.{payload_segment}".encode("ascii"), hashlib.sha256).digest()
        forged = f"{header_segment}.{payload_segment}.{base64url_encode(mac)}"

        with pytest.raises(AlgorithmMismatch):
            validate_token(forged, verifying_key)
        with pytest.raises(AlgorithmMismatch):
            validate_token(forged, public)
        with pytest.raises(InvalidKeyEncoding):
            validate_token(forged, public, ["HS256"])

    def test_rs256_token_reforged_with_der_public_key(self, backend_keys):
        der = backend_keys[KeyFamily.RSA].public_key().public_bytes(
            serialization.Encoding.DER, serialization.PublicFormat.SubjectPublicKeyInfo
        )
        forged = _forge_hs256(der)

        with pytest.raises(AlgorithmMismatch):
            validate_token(forged, der)
        with pytest.raises(InvalidKeyEncoding):
            validate_token(forged, der, ["HS256"])

    def test_eddsa_token_reforged_with_raw_public_key(self, backend_keys):
        raw = backend_keys[KeyFamily.ED25519].public_key().public_bytes(
            serialization.Encoding.Raw, serialization.PublicFormat.Raw
        )
        forged = _forge_hs256(raw)

        with pytest.raises(InvalidKeyEncoding):
            validate_token(forged, raw)
        with pytest.raises(InvalidKeyEncoding):
            validate_token(forged, {"raw": base64url_encode(raw)})
        with pytest.raises(AlgorithmMismatch):
            validate_token(forged, raw, ["EdDSA"])

    def test_es256_token_reforged_with_sec1_point(self, backend_keys):
        point = backend_keys[KeyFamily.EC_P256].public_key().public_bytes(
            serialization.Encoding.X962, serialization.PublicFormat.UncompressedPoint
        )
        forged = _forge_hs256(point)

        with pytest.raises(InvalidKeyEncoding):
            validate_token(forged, point)
        with pytest.raises(AlgorithmMismatch):
            validate_token(forged, point, ["ES256"])

    def test_alg_none(self):
        forged = f"{encode_segment({'alg': 'none'})}.{encode_segment({'admin': True})}."

        with pytest.raises(UnsupportedAlgorithm):
            validate_token(forged, "secret")

    def test_es256_header_with_secp256k1_key(self, key_pair):
        signing_key, _ = key_pair(Algorithm.ES256K)
        _, p256_key = key_pair(Algorithm.ES256)
        token = JWT(header=Header("ES256K")).sign(signing_key).to_token()

        with pytest.raises(AlgorithmMismatch):
            validate_token(token, p256_key)


class TestMalformedTokens:
    """Structural errors raise before any signature check."""

    @pytest.mark.parametrize("token", ["", "abc", "a.b", "a.b.c.d", "...."])
    def test_segment_count(self, token):
        with pytest.raises(MalformedToken):
            validate_token(token, "secret")

    def test_header_not_base64(self):
        with pytest.raises(Base64DecodeError):
            validate_token("eyJ=.e30.AAAA", "secret")

    def test_header_not_json(self):
        token = f"{base64url_encode(b'not json')}.e30.AAAA"

        with pytest.raises(JsonParseError):
            validate_token(token, "secret")

    def test_duplicate_alg_in_header(self):
        header = base64url_encode(b'{"alg":"HS256","alg":"none"}')

        with pytest.raises(JsonParseError):
            validate_token(f"{header}.e30.AAAA", "secret")

    def test_oversized_integer_in_header(self):
        header = base64url_encode(b'{"alg":"HS256","x":' + b"1" * 5000 + b"}")

        with pytest.raises(JsonParseError):
            validate_token(f"{header}.e30.AAAA", "secret")
        with pytest.raises(JsonParseError):
            get_unverified_header(f"{header}.e30.AAAA")

    def test_lone_surrogate_in_header(self):
        header = base64url_encode(b'{"alg":"HS256","kid":"\\ud800"}')

        with pytest.raises(JsonParseError):
            validate_token(f"{header}.e30.AAAA", "secret")

    def test_payload_not_base64(self):
        header = encode_segment({"alg": "HS256"})

        with pytest.raises(Base64DecodeError):
            validate_token(f"{header}.e3+.AAAA", "secret")

    def test_truncated_signature(self):
        """Dropping the last signature character is never a valid token."""
        token = _hs256_token()

        with pytest.raises((MalformedSignature, VerificationFailed)):
            validate_token(token[:-1], "secret")

    def test_wrong_length_signature(self):
        with pytest.raises(MalformedSignature):
            validate_token(_forge({"alg": "HS256"}, {}, b"\x00" * 31), "secret")

    def test_is_valid_token_still_raises_on_malformed(self):
        with pytest.raises(MalformedToken):
            is_valid_token("a.b", "secret")

    def test_non_ascii_token(self):
        with pytest.raises(MalformedToken):
            validate_token("é.é.é".encode("utf-8"), "secret")


class TestUnverifiedHeader:
    def test_kid_lookup(self):
        token = JWT(header=Header("HS256", key_id="2024-01")).sign("secret").to_token()

        header = get_unverified_header(token)

        assert header.key_id == "2024-01"
        assert header.algorithm is Algorithm.HS256


class TestTokenEngine:
    """Test the configured engine."""

    def test_issue_uses_key_fingerprint(self, key_pair):
        signing_key, verifying_key = key_pair(Algorithm.EDDSA)
        engine = TokenEngine()

        token = engine.issue({"sub": "svc"}, signing_key, "EdDSA")

        assert engine.inspect(token)["kid"] == signing_key.key_id
        assert engine.validate_token(token, verifying_key)["sub"] == "svc"

    def test_issue_with_explicit_kid(self):
        token = TokenEngine().issue({}, "secret", "HS384", key_id="k1")

        assert TokenEngine.inspect(token) == {"alg": "HS384", "typ": "JWT", "kid": "k1"}

    def test_disabled_algorithm_on_issue(self):
        engine = TokenEngine(EngineConfig(allowed_algorithms=(Algorithm.RS256,)))

        with pytest.raises(UnsupportedAlgorithm):
            engine.issue({}, "secret", "HS256")

    def test_allowlist_given_as_names(self):
        engine = TokenEngine(EngineConfig(allowed_algorithms=("HS256",)))
        token = engine.issue({"a": 1}, "secret", "HS256")

        assert engine.validate_token(token, "secret")["a"] == 1

    def test_disabled_algorithm_on_validation(self):
        token = _hs256_token()
        engine = TokenEngine(EngineConfig(allowed_algorithms=(Algorithm.HS512,)))

        with pytest.raises(AlgorithmMismatch):
            engine.validate_token(token, "secret")

    def test_is_valid_token(self):
        engine = TokenEngine()
        token = engine.issue({"a": 1}, "secret", "HS256")

        assert engine.is_valid_token(token, "secret")
        assert not engine.is_valid_token(token, "other")

    def test_deterministic_engine(self, key_pair):
        signing_key, _ = key_pair(Algorithm.ES256K)
        engine = TokenEngine(EngineConfig(deterministic_ecdsa=True))

        try:
            first = engine.issue({"a": 1}, signing_key, "ES256K")
        except CryptographicFailure:
            pytest.skip("OpenSSL build lacks deterministic ECDSA")

        assert engine.issue({"a": 1}, signing_key, "ES256K") == first
