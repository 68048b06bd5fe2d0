"""
Tests for token verification and capability checks.
"""

import time

import jwt
import pytest
from fastapi import HTTPException

from shared.config.constants import Capabilities
from shared.config.settings import JWT_AUDIENCE, JWT_ISSUER, JWT_SECRET
from shared.security.auth import (
    ActorContext,
    get_bearer_token,
    require_capability,
    sign_jwt,
    verify_jwt,
)
from shared.utils.exceptions import MissingCapabilityError


def raw_token(**claims):
    now = int(time.time())
    payload = {"iss": JWT_ISSUER, "aud": JWT_AUDIENCE, "iat": now, "exp": now + 60, **claims}
    return jwt.encode(payload, JWT_SECRET, algorithm="HS256")


class TestVerifyJwt:

    def test_round_trip(self):
        token = sign_jwt({"sub": "5", "organization_id": 3, "capabilities": [Capabilities.MANAGE_SESSIONS]})

        payload = verify_jwt(token)

        assert payload["sub"] == "5"
        assert payload["organization_id"] == 3

    def test_expired(self):
        token = sign_jwt({"sub": "5", "organization_id": 3, "capabilities": []}, ttl_seconds=-10)

        with pytest.raises(HTTPException) as exc_info:
            verify_jwt(token)

        assert exc_info.value.status_code == 401
        assert exc_info.value.detail == "Token has expired"

    def test_wrong_audience(self):
        token = raw_token(sub="5", organization_id=3, capabilities=[], aud="someone-else")

        with pytest.raises(HTTPException):
            verify_jwt(token)

    def test_wrong_secret(self):
        token = jwt.encode({"sub": "5", "organization_id": 3}, "another-secret-of-sufficient-length", algorithm="HS256")

        with pytest.raises(HTTPException):
            verify_jwt(token)

    @pytest.mark.parametrize(
        "claims",
        [
            {"organization_id": 3, "capabilities": []},
            {"sub": "abc", "organization_id": 3, "capabilities": []},
            {"sub": "5", "capabilities": []},
            {"sub": "5", "organization_id": "3", "capabilities": []},
            {"sub": "5", "organization_id": 3, "capabilities": "sessions:manage"},
        ],
    )
    def test_malformed_claims(self, claims):
        with pytest.raises(HTTPException) as exc_info:
            verify_jwt(raw_token(**claims))

        assert exc_info.value.status_code == 401


class TestBearerToken:

    def test_extracts_token(self):
        assert get_bearer_token("Bearer abc.def") == "abc.def"

    @pytest.mark.parametrize("header", [None, "", "Token abc", "bearer abc"])
    def test_rejects_bad_header(self, header):
        with pytest.raises(HTTPException):
            get_bearer_token(header)


class TestRequireCapability:

    def test_grants(self):
        actor = ActorContext(actor_id=1, organization_id=2, capabilities=frozenset({Capabilities.MANAGE_INVOICES}))

        assert require_capability(Capabilities.MANAGE_INVOICES)(actor) is actor

    def test_denies(self):
        actor = ActorContext(actor_id=1, organization_id=2, capabilities=frozenset({Capabilities.MANAGE_SESSIONS}))

        with pytest.raises(MissingCapabilityError) as exc_info:
            require_capability(Capabilities.MANAGE_INVOICES)(actor)

        assert exc_info.value.status_code == 403
        assert exc_info.value.error_kind == "forbidden"
