from datetime import datetime, timedelta, timezone

import jwt
import pytest

from identity_service.features.auth.exceptions import InvalidAccessTokenError
from identity_service.features.auth.services.token_issuer import AccessClaims, TokenIssuer

SECRET = "issuer-test-secret-with-enough-length-for-hs256"


@pytest.fixture
def issuer():
    return TokenIssuer(SECRET, ttl=timedelta(minutes=15))


class TestIssue:
    def test_standard_claims(self, issuer):
        token = issuer.issue(AccessClaims(user_id="u-1", email="a@example.com", account_type="standard"))
        payload = jwt.decode(token, SECRET, algorithms=["HS256"])

        assert payload["sub"] == "u-1"
        assert payload["email"] == "a@example.com"
        assert payload["account_type"] == "standard"
        assert payload["type"] == "access"
        assert "creator_profile_id" not in payload
        assert payload["exp"] - payload["iat"] == 15 * 60

    def test_creator_profile_claim(self, issuer):
        token = issuer.issue(
            AccessClaims(user_id="u-2", email="c@example.com", account_type="creator", creator_profile_id="p-9")
        )

        assert issuer.decode(token).creator_profile_id == "p-9"

    def test_decode_returns_claims(self, issuer):
        claims = AccessClaims(user_id="u-3", email="d@example.com", account_type="standard")

        assert issuer.decode(issuer.issue(claims)) == claims

    def test_empty_key_is_rejected(self):
        with pytest.raises(ValueError):
            TokenIssuer("")


class TestDecodeRejects:
    def test_expired(self, issuer):
        issued = datetime.now(timezone.utc) - timedelta(hours=1)
        token = issuer.issue(AccessClaims("u-1", "a@example.com", "standard"), now=issued)

        with pytest.raises(InvalidAccessTokenError):
            issuer.decode(token)

    def test_foreign_signature(self, issuer):
        token = TokenIssuer("some-other-secret-with-enough-length-too").issue(
            AccessClaims("u-1", "a@example.com", "standard")
        )

        with pytest.raises(InvalidAccessTokenError):
            issuer.decode(token)

    def test_wrong_token_type(self, issuer):
        now = datetime.now(timezone.utc)
        token = jwt.encode(
            {"sub": "u-1", "email": "a@example.com", "account_type": "standard", "type": "refresh",
             "iat": now, "exp": now + timedelta(minutes=5)},
            SECRET,
            algorithm="HS256",
        )

        with pytest.raises(InvalidAccessTokenError):
            issuer.decode(token)

    def test_missing_claims(self, issuer):
        now = datetime.now(timezone.utc)
        token = jwt.encode({"sub": "u-1", "type": "access", "iat": now, "exp": now + timedelta(minutes=5)},
                           SECRET, algorithm="HS256")

        with pytest.raises(InvalidAccessTokenError):
            issuer.decode(token)

    def test_garbage(self, issuer):
        with pytest.raises(InvalidAccessTokenError):
            issuer.decode("not.a.jwt")
