"""
Tests for credential digests, the signed token codec and operator bearer tokens.
"""
import string
import pytest
from datetime import timedelta
from jose import jws

from dossier.core.security import (
    hash_secret,
    verify_secret,
    issue_token,
    verify_token,
    create_access_token,
    decode_access_token,
    generate_share_token,
)
from dossier.config import settings

SECRET = "unit-test-signing-secret-0123456789abcdef"
BASE64URL_ALPHABET = string.ascii_uppercase + string.ascii_lowercase + string.digits + "-_"


class TestSecretDigests:
    """Tests for credential hashing."""

    def test_hash_secret_is_hex_sha256(self):
        """Digest should be 64 lowercase hex characters."""
        digest = hash_secret("hunter2")

        assert len(digest) == 64
        assert all(c in "0123456789abcdef" for c in digest)

    def test_hash_secret_is_deterministic(self):
        """The digest scheme is unsalted, so equal inputs give equal digests."""
        assert hash_secret("same_password") == hash_secret("same_password")

    def test_distinct_secrets_give_distinct_digests(self):
        secrets = ["alpha", "Alpha", "alpha ", "beta", "", "pa$$w0rd"]

        assert len({hash_secret(s) for s in secrets}) == len(secrets)

    def test_verify_secret_correct(self):
        """Verification should succeed with the right secret."""
        assert verify_secret("correct_password", hash_secret("correct_password")) is True

    def test_verify_secret_incorrect(self):
        """Verification should fail with the wrong secret."""
        assert verify_secret("wrong_password", hash_secret("correct_password")) is False

    def test_verify_secret_rejects_malformed_digest(self):
        """A stored value that is not a hex digest never verifies."""
        assert verify_secret("anything", "not-a-digest") is False
        assert verify_secret("anything", None) is False
        assert verify_secret("", hash_secret("")) is False

    def test_unicode_secret(self):
        """Secrets with unicode characters should hash and verify."""
        secret = "пароль_密码_パスワード"

        assert verify_secret(secret, hash_secret(secret)) is True


class TestTokenCodec:
    """Tests for issue_token / verify_token."""

    def test_round_trip_preserves_claims(self):
        """Verified claims equal the signed claims."""
        claims = {"sub": "7", "email": "ops@dossier.io", "ver": 3, "name": "José García"}
        token = issue_token(claims, SECRET)

        assert token.count(".") == 2
        assert verify_token(token, SECRET) == claims

    def test_wrong_secret_rejected(self):
        """A token signed with another secret should not verify."""
        token = issue_token({"sub": "1"}, SECRET)

        assert verify_token(token, SECRET + "x") is None

    def test_tampered_payload_rejected(self):
        """Changing the payload segment invalidates the signature."""
        token = issue_token({"sub": "1", "ver": 0}, SECRET)
        forged_payload = issue_token({"sub": "2", "ver": 0}, SECRET).split(".")[1]
        header, _, signature = token.split(".")

        assert verify_token(f"{header}.{forged_payload}.{signature}", SECRET) is None

    def test_tampered_header_rejected(self):
        """Changing the header segment invalidates the token."""
        token = issue_token({"sub": "1"}, SECRET)
        header, payload, signature = token.split(".")
        first = "f" if header[0] != "f" else "g"

        assert verify_token(f"{first}{header[1:]}.{payload}.{signature}", SECRET) is None

    def test_tampered_signature_rejected(self):
        """Changing the signature segment invalidates the token."""
        token = issue_token({"sub": "1"}, SECRET)
        header, payload, signature = token.split(".")
        first = "B" if signature[0] != "B" else "C"

        assert verify_token(f"{header}.{payload}.{first}{signature[1:]}", SECRET) is None

    def test_non_canonical_signature_rejected(self):
        """An alternate encoding of the same signature bytes is rejected."""
        token = issue_token({"sub": "1"}, SECRET)
        header, payload, signature = token.split(".")
        last = BASE64URL_ALPHABET.index(signature[-1])
        alternate = signature[:-1] + BASE64URL_ALPHABET[last ^ 1]

        assert verify_token(f"{header}.{payload}.{alternate}", SECRET) is None

    @pytest.mark.parametrize("token", [
        "",
        "onlyonesegment",
        "two.segments",
        "a..c",
        "not.a.valid.jwt.token",
        "....",
    ])
    def test_malformed_tokens_rejected(self, token):
        """Anything but three non-empty segments fails closed."""
        assert verify_token(token, SECRET) is None

    def test_non_object_payload_rejected(self):
        """A correctly signed payload that is not a JSON object is rejected."""
        token = jws.sign(b"[1, 2, 3]", SECRET, algorithm=settings.ALGORITHM)

        assert verify_token(token, SECRET) is None

    def test_non_json_payload_rejected(self):
        """A correctly signed payload that is not JSON is rejected."""
        token = jws.sign(b"plain text", SECRET, algorithm=settings.ALGORITHM)

        assert verify_token(token, SECRET) is None

    def test_empty_secret_rejected(self):
        """Verification never succeeds without a secret."""
        token = issue_token({"sub": "1"}, SECRET)

        assert verify_token(token, "") is None


class TestAccessTokens:
    """Tests for operator bearer tokens."""

    def test_access_token_claims(self):
        """Operator tokens carry subject, email, version and timestamps."""
        token = create_access_token(42, "ops@dossier.io", 5)
        claims = decode_access_token(token)

        assert claims is not None
        assert claims["sub"] == "42"
        assert claims["email"] == "ops@dossier.io"
        assert claims["ver"] == 5
        assert "iat" in claims
        assert "exp" in claims

    def test_custom_expiry(self):
        """exp follows the supplied lifetime."""
        token = create_access_token(1, "ops@dossier.io", 0, expires_delta=timedelta(hours=1))
        claims = decode_access_token(token)

        assert claims["exp"] - claims["iat"] == 3600

    def test_expired_token_rejected(self):
        """A token past its exp no longer decodes."""
        token = create_access_token(1, "ops@dossier.io", 0, expires_delta=timedelta(seconds=-1))

        assert decode_access_token(token) is None
        # The codec itself treats exp as opaque
        assert verify_token(token, settings.SECRET_KEY) is not None

    def test_no_expiry_when_lifetime_is_zero(self, monkeypatch):
        """ACCESS_TOKEN_EXPIRE_MINUTES=0 issues sessions without exp."""
        monkeypatch.setattr(settings, "ACCESS_TOKEN_EXPIRE_MINUTES", 0)
        claims = decode_access_token(create_access_token(1, "ops@dossier.io", 0))

        assert claims is not None
        assert "exp" not in claims

    def test_non_numeric_exp_rejected(self):
        """A signed token whose exp is not a number fails closed."""
        token = issue_token({"sub": "1", "ver": 0, "exp": "tomorrow"}, settings.SECRET_KEY)

        assert decode_access_token(token) is None

    def test_decode_empty_token(self):
        """Empty token should return None."""
        assert decode_access_token("") is None


class TestShareTokens:
    """Tests for share token generation."""

    def test_share_token_format(self):
        """Share tokens are 32 lowercase hex characters."""
        token = generate_share_token()

        assert len(token) == 32
        assert all(c in "0123456789abcdef" for c in token)

    def test_share_tokens_unique(self):
        """Each generated token should be unique."""
        tokens = [generate_share_token() for _ in range(200)]

        assert len(set(tokens)) == len(tokens)
