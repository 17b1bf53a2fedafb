"""
Unit tests for Basic, hidden Basic and Bearer authentication.
"""

import base64
import json

import pytest

from httpprobe.auth.basic import parse_basic_auth, parse_bearer_token


def basic(user: str, password: str) -> str:
    token = base64.b64encode(f"{user}:{password}".encode("utf-8")).decode("ascii")
    return f"Basic {token}"


class TestParseBasicAuth:

    def test_valid(self):
        assert parse_basic_auth(basic("alice", "s3cret")) == ("alice", "s3cret")

    def test_password_may_contain_colons(self):
        assert parse_basic_auth(basic("alice", "a:b:c")) == ("alice", "a:b:c")

    def test_scheme_is_case_insensitive(self):
        header = basic("alice", "pw").replace("Basic", "bAsIc")

        assert parse_basic_auth(header) == ("alice", "pw")

    @pytest.mark.parametrize("header", [
        None,
        "",
        "Basic",
        "Bearer abc",
        "Basic !!!not-base64!!!",
        "Basic " + base64.b64encode(b"no-colon").decode(),
    ])
    def test_invalid(self, header):
        assert parse_basic_auth(header) is None


class TestParseBearerToken:

    def test_valid(self):
        assert parse_bearer_token("Bearer abc.def") == "abc.def"

    @pytest.mark.parametrize("header", [None, "", "Bearer", "bearer abc", "Basic abc"])
    def test_invalid(self, header):
        assert parse_bearer_token(header) is None


class TestBasicAuthHandler:

    def test_success(self, call):
        response = call("/basic-auth/alice/s3cret", {"Authorization": basic("alice", "s3cret")})

        assert response.status == 200
        assert json.loads(response.body) == {"authenticated": True, "user": "alice"}

    def test_wrong_password(self, call):
        response = call("/basic-auth/alice/s3cret", {"Authorization": basic("alice", "nope")})

        assert response.status == 401
        assert response.headers["WWW-Authenticate"] == 'Basic realm="httpprobe"'
        assert json.loads(response.body) == {"error": "Unauthorized"}

    def test_dots_in_password_segment(self, call):
        assert call("/basic-auth/alice/a..b").status == 401
        assert call("/basic-auth/alice/a..b", {"Authorization": basic("alice", "a..b")}).status == 200

    def test_missing_header(self, call):
        assert call("/basic-auth/alice/s3cret").status == 401

    def test_hidden_success(self, call):
        response = call("/hidden-basic-auth/alice/s3cret", {"Authorization": basic("alice", "s3cret")})

        assert response.status == 200

    def test_hidden_failure_is_404(self, call):
        response = call("/hidden-basic-auth/alice/s3cret", {"Authorization": basic("bob", "s3cret")})

        assert response.status == 404
        assert json.loads(response.body) == {"error": "Not Found"}


class TestBearerAuth:

    def test_success(self, call):
        response = call("/bearer", {"Authorization": "Bearer token-123"})

        assert response.status == 200
        assert json.loads(response.body) == {"authenticated": True, "token": "token-123"}

    def test_missing(self, call):
        response = call("/bearer")

        assert response.status == 401
        assert response.headers["WWW-Authenticate"] == "Bearer"
        assert json.loads(response.body) == {"error": "Unauthorized"}

    def test_wrong_scheme(self, call):
        assert call("/bearer", {"Authorization": basic("a", "b")}).status == 401
