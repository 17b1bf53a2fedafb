"""
Unit tests for Range parsing and the /range endpoint.
"""

import pytest

from conftest import make_request
from httpprobe import create_app
from httpprobe.handlers.range import RangeHandler
from httpprobe.http.ranges import (
    RangeSpec,
    RangeChunk,
    parse_int,
    parse_request_range,
    get_request_range,
    is_satisfiable,
    content_range,
    unsatisfied_content_range,
    synthetic_byte,
    synthetic_bytes,
    pause_per_byte,
    iter_range_chunks,
)


def body_of(response) -> bytes:
    return b"".join(chunk.data for chunk in response.stream)


class TestParseInt:

    @pytest.mark.parametrize("value,expected", [
        ("10", 10), ("-3", -3), ("+7", 7), ("007", 7),
    ])
    def test_valid(self, value, expected):
        assert parse_int(value) == expected

    @pytest.mark.parametrize("value", [None, "", " 5", "1_0", "1.5", "abc", "5 "])
    def test_invalid(self, value):
        assert parse_int(value) is None


class TestParseRequestRange:

    def test_absent(self):
        assert parse_request_range(None) == RangeSpec()
        assert parse_request_range("") == RangeSpec()

    def test_both_bounds(self):
        assert parse_request_range("bytes=10-20") == RangeSpec(10, 20)

    def test_suffix(self):
        assert parse_request_range("bytes=-5") == RangeSpec(None, 5)

    def test_open_ended(self):
        assert parse_request_range("bytes=7-") == RangeSpec(7, None)

    def test_surrounding_whitespace(self):
        assert parse_request_range("  bytes=1-2  ") == RangeSpec(1, 2)

    def test_wrong_unit_is_empty(self):
        assert parse_request_range("items=1-2") == RangeSpec()
        assert parse_request_range("1-2") == RangeSpec()

    def test_garbage_side_is_absent(self):
        assert parse_request_range("bytes=x-4") == RangeSpec(None, 4)

    def test_multi_range_degrades(self):
        assert parse_request_range("bytes=0-5,7-9") == RangeSpec(0, None)


class TestResolve:

    def test_full(self):
        assert get_request_range(None, 30) == (0, 29)

    def test_suffix(self):
        assert get_request_range("bytes=-5", 30) == (25, 29)

    def test_suffix_longer_than_resource(self):
        assert get_request_range("bytes=-50", 30) == (0, 29)

    def test_open_ended(self):
        assert get_request_range("bytes=7-", 30) == (7, 29)

    def test_verbatim(self):
        assert get_request_range("bytes=20-10", 30) == (20, 10)

    def test_empty_resource(self):
        assert get_request_range(None, 0) == (0, -1)


class TestSatisfiable:

    def test_inside(self):
        assert is_satisfiable(10, 20, 30)

    def test_reversed(self):
        assert not is_satisfiable(20, 10, 30)

    def test_past_end(self):
        assert not is_satisfiable(0, 31, 30)
        assert not is_satisfiable(31, 40, 30)

    def test_end_equal_to_length_is_allowed(self):
        assert is_satisfiable(0, 30, 30)

    def test_empty_resource(self):
        assert not is_satisfiable(0, -1, 0)


class TestSyntheticContent:

    def test_alphabet_wraps(self):
        assert synthetic_byte(0) == ord("a")
        assert synthetic_byte(25) == ord("z")
        assert synthetic_byte(26) == ord("a")

    def test_span(self):
        assert synthetic_bytes(10, 20) == b"klmnopqrstu"

    def test_content_range(self):
        assert content_range(10, 20, 30) == "bytes 10-20/30"
        assert unsatisfied_content_range(30) == "bytes */30"


class TestChunking:

    def test_full_and_partial_chunks(self):
        chunks = list(iter_range_chunks(0, 9, 4, pause=0.1))

        assert [c.data for c in chunks] == [b"abcd", b"efgh", b"ij"]
        assert [c.delay for c in chunks] == pytest.approx([0.4, 0.4, 0.2])

    def test_trailing_partial_chunk_waits_before_it_is_written(self):
        chunks = list(iter_range_chunks(0, 9, 4, pause=0.1))

        assert [c.delay_first for c in chunks] == [False, False, True]

    def test_exact_multiple_has_no_trailing_chunk(self):
        chunks = list(iter_range_chunks(0, 7, 4))

        assert [c.data for c in chunks] == [b"abcd", b"efgh"]
        assert all(c.delay == 0 for c in chunks)
        assert not any(c.delay_first for c in chunks)

    def test_chunk_size_floor(self):
        chunks = list(iter_range_chunks(0, 2, 0))

        assert [c.data for c in chunks] == [b"a", b"b", b"c"]

    def test_empty_span(self):
        assert list(iter_range_chunks(5, 4, 10)) == []

    def test_chunks_are_namedtuples(self):
        chunk = next(iter_range_chunks(3, 3, 1))

        assert chunk == RangeChunk(b"d", 0.0)

    def test_pause_per_byte(self):
        assert pause_per_byte(2, 100) == pytest.approx(0.02)
        assert pause_per_byte(0, 100) == 0.0
        assert pause_per_byte(5, 0) == 0.0


class TestRangeHandler:
    """The /range/:numbytes endpoint, through the router."""

    def test_full_body(self, call):
        response = call("/range/30")

        assert response.status == 200
        assert response.headers["Content-Length"] == "30"
        assert response.headers["Content-Range"] == "bytes 0-29/30"
        assert response.headers["Content-Type"] == "application/octet-stream"
        assert response.headers["ETag"] == "range30"
        assert response.headers["Accept-Ranges"] == "bytes"
        assert body_of(response) == synthetic_bytes(0, 29)

    def test_explicit_full_span_is_200(self, call):
        assert call("/range/30", {"Range": "bytes=0-29"}).status == 200

    def test_partial(self, call):
        response = call("/range/30", {"Range": "bytes=10-20"})

        assert response.status == 206
        assert response.headers["Content-Range"] == "bytes 10-20/30"
        assert response.headers["Content-Length"] == "11"
        assert body_of(response) == b"klmnopqrstu"

    def test_suffix(self, call):
        response = call("/range/30", {"Range": "bytes=-4"})

        assert response.status == 206
        assert body_of(response) == b"abcd"

    def test_unsatisfiable(self, call):
        response = call("/range/30", {"Range": "bytes=20-10"})

        assert response.status == 416
        assert response.headers["Content-Range"] == "bytes */30"
        assert response.headers["Content-Length"] == "0"
        assert response.headers["ETag"] == "range30"
        assert response.stream is None
        assert response.body == b""

    def test_past_end(self, call):
        assert call("/range/30", {"Range": "bytes=5-99"}).status == 416

    def test_malformed_header_serves_full_body(self, call):
        assert call("/range/30", {"Range": "pages=1-2"}).status == 200

    def test_zero_bytes_is_unsatisfiable(self, call):
        assert call("/range/0").status == 416

    def test_not_a_number(self, call):
        response = call("/range/abc")

        assert response.status == 400
        assert response.body == b"invalid number of bytes: 'abc'"

    def test_too_large(self, call):
        response = call("/range/102401")

        assert response.status == 404
        assert response.headers["ETag"] == "range102401"
        assert response.headers["Accept-Ranges"] == "bytes"

    def test_largest_allowed(self, call):
        response = call("/range/102400", {"Range": "bytes=-1"})

        assert response.status == 206
        assert response.headers["Content-Range"] == "bytes 102399-102399/102400"

    def test_negative(self, call):
        assert call("/range/-1").status == 404

    def test_chunk_size_and_duration(self, call):
        response = call("/range/10?chunk_size=4&duration=1")
        chunks = list(response.stream)

        assert [len(c.data) for c in chunks] == [4, 4, 2]
        assert sum(c.delay for c in chunks) == pytest.approx(1.0)

    def test_default_chunk_size(self):
        handler = RangeHandler(default_chunk_size=8)
        request = make_request("/range/20")
        request.path_params = {"numbytes": "20"}

        chunks = list(handler(request).stream)

        assert [len(c.data) for c in chunks] == [8, 8, 4]

    def test_unparseable_chunk_size_floors_to_one(self, call):
        chunks = list(call("/range/3?chunk_size=abc").stream)

        assert [c.data for c in chunks] == [b"a", b"b", b"c"]

    def test_unparseable_duration_means_no_pause(self, call):
        chunks = list(call("/range/3?duration=soon").stream)

        assert all(c.delay == 0 for c in chunks)

    def test_configured_max(self, config):
        config.max_range_bytes = 10
        app = create_app(config)

        response = app.handle(make_request("/range/11"))

        assert response.status == 404
        assert response.body == b"number of bytes must be in the range (0, 10]"
