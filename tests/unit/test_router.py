"""
Unit tests for the URL router and the probe route table.
"""

import json

from httpprobe.http.router import Router
from httpprobe.http.request import HTTPRequest
from httpprobe.http.response import HTTPResponse, ResponseBuilder


def make_request(method: str, path: str) -> HTTPRequest:
    return HTTPRequest(method=method, path=path)


def echo_handler(request: HTTPRequest) -> HTTPResponse:
    return ResponseBuilder().json({"path": request.path, "params": request.path_params}).build()


class TestRouter:
    """Tests for Router."""

    def test_add_route(self):
        router = Router()
        route = router.add_route("/bearer", echo_handler, method="get", name="bearer")

        assert route.method == "GET"
        assert route.name == "bearer"
        assert router.routes() == [route]

    def test_match_static_path(self):
        router = Router()
        router.add_route("/bearer", echo_handler, method="GET")

        assert router.match("GET", "/bearer") is not None
        assert router.match("GET", "/bearer/extra") is None

    def test_path_params(self):
        router = Router()
        router.add_route("/basic-auth/:user/:passwd", echo_handler, method="GET")

        match = router.match("GET", "/basic-auth/alice/s3cret")

        assert match.params == {"user": "alice", "passwd": "s3cret"}

    def test_trailing_slash_is_ignored(self):
        router = Router()
        router.add_route("/range/:numbytes", echo_handler, method="GET")

        assert router.match("GET", "/range/10/").params == {"numbytes": "10"}

    def test_root_route(self):
        router = Router()
        router.add_route("/", echo_handler, method="GET")

        assert router.match("GET", "/") is not None
        assert router.match("GET", "/x") is None

    def test_static_segments_are_literal(self):
        router = Router()
        router.add_route("/a.b", echo_handler, method="GET")

        assert router.match("GET", "/a.b") is not None
        assert router.match("GET", "/axb") is None

    def test_first_registered_wins(self):
        router = Router()
        first = router.add_route("/range/:numbytes", echo_handler, method="GET")
        router.add_route("/range/:other", echo_handler, method="GET")

        assert router.match("GET", "/range/5").route is first

    def test_route_without_method_matches_any(self):
        router = Router()
        router.add_route("/anything", echo_handler)

        assert router.match("DELETE", "/anything") is not None

    def test_handle_sets_path_params(self):
        router = Router()
        router.add_route("/range/:numbytes", echo_handler, method="GET")

        response = router.handle(make_request("GET", "/range/42"))

        assert json.loads(response.body)["params"] == {"numbytes": "42"}

    def test_handle_404(self):
        router = Router()

        response = router.handle(make_request("GET", "/nowhere"))

        assert response.status == 404

    def test_handle_405(self):
        router = Router()
        router.add_route("/bearer", echo_handler, method="GET")

        response = router.handle(make_request("POST", "/bearer"))

        assert response.status == 405
        assert response.headers["Allow"] == "GET"

    def test_decorators(self):
        router = Router()

        @router.get("/one")
        def one(request):
            return ResponseBuilder().text("one").build()

        @router.route("/two", method="POST")
        def two(request):
            return ResponseBuilder().text("two").build()

        assert router.handle(make_request("GET", "/one")).body == b"one"
        assert router.handle(make_request("POST", "/two")).body == b"two"
        assert one.__name__ == "one"


class TestProbeRoutes:
    """The route table built by create_app()."""

    def test_index_lists_endpoints(self, call):
        response = call("/")
        paths = [e["path"] for e in json.loads(response.body)["endpoints"]]

        assert response.status == 200
        assert "/range/:numbytes" in paths
        assert "/digest-auth/:qop/:user/:passwd/:algorithm/:stale_after" in paths
        assert "/" not in paths

    def test_digest_route_variants(self, app):
        short = app.match("GET", "/digest-auth/auth/u/p")
        with_alg = app.match("GET", "/digest-auth/auth/u/p/SHA-256")
        with_stale = app.match("GET", "/digest-auth/auth/u/p/SHA-256/3")

        assert short.params == {"qop": "auth", "user": "u", "passwd": "p"}
        assert with_alg.params["algorithm"] == "SHA-256"
        assert with_stale.params["stale_after"] == "3"

    def test_probe_routes_are_get_only(self, call):
        assert call("/bearer", method="POST").status == 405
