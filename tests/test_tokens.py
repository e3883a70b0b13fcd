"""Unit tests for auth/tokens.py -- TokenService issue/verify.

Time is controlled with conftest.FakeClock; nothing sleeps.
"""

from __future__ import annotations

import base64
import json
from datetime import timedelta

import pytest
from jose import jwt

from auth.errors import TokenExpired, TokenInvalid
from auth.tokens import TokenService

TEST_SECRET = "test-secret-key-that-is-at-least-32-characters"
OTHER_SECRET = "another-secret-key-that-is-at-least-32-chars"


def _b64(data: bytes) -> str:
    return base64.urlsafe_b64encode(data).rstrip(b"=").decode("ascii")


def _unb64(segment: str) -> bytes:
    return base64.urlsafe_b64decode(segment + "=" * (-len(segment) % 4))


class TestIssue:
    def test_round_trip_preserves_subject(self, token_service):
        token = token_service.issue("alice")
        assert token_service.verify(token).subject == "alice"

    def test_expiry_is_issued_at_plus_24_hours(self, token_service, clock):
        claims = token_service.verify(token_service.issue("alice"))
        assert claims.issued_at == clock.now.replace(microsecond=0)
        assert claims.expires_at - claims.issued_at == timedelta(hours=24)

    def test_payload_carries_only_minimal_claims(self, token_service):
        payload = jwt.get_unverified_claims(token_service.issue("alice"))
        assert set(payload) == {"sub", "iat", "exp"}
        assert payload["exp"] - payload["iat"] == 86400

    def test_token_has_three_segments(self, token_service):
        assert token_service.issue("alice").count(".") == 2

    def test_empty_secret_rejected(self):
        with pytest.raises(ValueError):
            TokenService("")


class TestExpiry:
    def test_valid_just_before_expiry(self, token_service, clock):
        token = token_service.issue("alice")
        clock.advance(hours=24)
        assert token_service.verify(token).subject == "alice"

    def test_expired_after_ttl(self, token_service, clock):
        token = token_service.issue("alice")
        clock.advance(hours=24, seconds=1)
        with pytest.raises(TokenExpired):
            token_service.verify(token)

    def test_custom_ttl(self, clock):
        service = TokenService(TEST_SECRET, ttl_seconds=60, clock=clock)
        token = service.issue("alice")
        clock.advance(seconds=61)
        with pytest.raises(TokenExpired):
            service.verify(token)

    def test_forged_and_expired_is_invalid_not_expired(self, token_service, clock):
        """Signature is checked before expiry, so a forged token never reports TokenExpired."""
        forger = TokenService(OTHER_SECRET, clock=clock)
        token = forger.issue("alice")
        clock.advance(days=2)
        with pytest.raises(TokenInvalid):
            token_service.verify(token)


class TestInvalid:
    def test_different_key_rejected(self, token_service, clock):
        other = TokenService(OTHER_SECRET, clock=clock)
        with pytest.raises(TokenInvalid):
            token_service.verify(other.issue("alice"))

    def test_tampered_payload_rejected(self, token_service):
        header, payload, signature = token_service.issue("alice").split(".")
        claims = json.loads(_unb64(payload))
        claims["sub"] = "mallory"
        forged = ".".join([header, _b64(json.dumps(claims).encode()), signature])
        with pytest.raises(TokenInvalid):
            token_service.verify(forged)

    def test_tampered_signature_rejected(self, token_service):
        header, payload, signature = token_service.issue("alice").split(".")
        flipped = ("A" if signature[0] != "A" else "B") + signature[1:]
        with pytest.raises(TokenInvalid):
            token_service.verify(".".join([header, payload, flipped]))

    @pytest.mark.parametrize("token", ["", "garbage", "a.b.c", "a.b"])
    def test_malformed_rejected(self, token_service, token):
        with pytest.raises(TokenInvalid):
            token_service.verify(token)

    def test_alg_none_rejected(self, token_service, clock):
        header = _b64(json.dumps({"alg": "none", "typ": "JWT"}).encode())
        iat = int(clock.now.timestamp())
        payload = _b64(json.dumps({"sub": "alice", "iat": iat, "exp": iat + 60}).encode())
        with pytest.raises(TokenInvalid):
            token_service.verify(f"{header}.{payload}.")

    def test_missing_subject_rejected(self, token_service, clock):
        iat = int(clock.now.timestamp())
        token = jwt.encode({"iat": iat, "exp": iat + 60}, TEST_SECRET, algorithm="HS256")
        with pytest.raises(TokenInvalid):
            token_service.verify(token)

    def test_missing_exp_rejected(self, token_service, clock):
        token = jwt.encode({"sub": "alice", "iat": int(clock.now.timestamp())}, TEST_SECRET, algorithm="HS256")
        with pytest.raises(TokenInvalid):
            token_service.verify(token)
