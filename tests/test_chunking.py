"""
Tests for page views over collection bodies.
"""
from app.cache.chunking import (
    ChunkRequest,
    chunk_body,
    chunk_info,
    locate_array,
    parse_chunk_request,
    view_etag,
)


def items(n):
    return [{"id": i} for i in range(1, n + 1)]


class TestParseChunkRequest:
    def test_not_requested(self):
        assert parse_chunk_request({}) is None
        assert parse_chunk_request({"limit": "10"}) is None

    def test_chunked_flag_defaults_to_first_page(self):
        assert parse_chunk_request({"chunked": "true"}) == ChunkRequest(page=1, limit=20)

    def test_explicit_page_and_limit(self):
        assert parse_chunk_request({"page": "3", "limit": "15"}) == ChunkRequest(page=3, limit=15)

    def test_limit_clamped_to_max(self):
        assert parse_chunk_request({"page": "1", "limit": "1000"}).limit == 100

    def test_non_positive_values_clamped(self):
        req = parse_chunk_request({"page": "-4", "limit": "0"})
        assert req == ChunkRequest(page=1, limit=1)

    def test_malformed_values_use_defaults(self):
        req = parse_chunk_request({"page": "abc", "limit": "x"})
        assert req == ChunkRequest(page=1, limit=20)

    def test_custom_bounds(self):
        req = parse_chunk_request({"chunked": "true"}, default_limit=5, max_limit=10)
        assert req.limit == 5
        assert parse_chunk_request({"page": "1", "limit": "50"}, max_limit=10).limit == 10


class TestChunkInfo:
    def test_forty_five_items_by_twenty(self):
        info, start, end = chunk_info(45, ChunkRequest(page=3, limit=20))
        assert info.total_chunks == 3
        assert (start, end) == (40, 45)
        assert info.items == 5
        assert info.has_more is False

    def test_first_page_has_more(self):
        info, start, end = chunk_info(45, ChunkRequest(page=1, limit=20))
        assert (start, end) == (0, 20)
        assert info.has_more is True

    def test_page_past_the_end_is_empty(self):
        info, start, end = chunk_info(45, ChunkRequest(page=9, limit=20))
        assert start == end
        assert info.items == 0
        assert info.has_more is False

    def test_empty_collection(self):
        info, _, _ = chunk_info(0, ChunkRequest(page=1, limit=20))
        assert info.total_chunks == 0
        assert info.items == 0


class TestLocateArray:
    def test_known_field_order(self):
        body = {"matches": items(2), "data": items(3)}
        assert locate_array(body).field == "data"

    def test_bare_list(self):
        location = locate_array(items(4))
        assert location.field is None
        assert len(location.items) == 4

    def test_no_array(self):
        assert locate_array({"success": True, "match": {"id": 1}}) is None
        assert locate_array("text") is None


class TestChunkBody:
    def test_view_of_named_field(self):
        body = {"success": True, "matches": items(45), "league": {"id": 7}}
        view, info = chunk_body(body, ChunkRequest(page=3, limit=20))

        assert view["success"] is True
        assert view["league"] == {"id": 7}
        assert [m["id"] for m in view["matches"]] == [41, 42, 43, 44, 45]
        assert view["chunk"] == {
            "page": 3,
            "limit": 20,
            "totalItems": 45,
            "totalChunks": 3,
            "hasMore": False,
            "items": 5,
        }
        assert info.headers() == {
            "X-Chunk-Page": "3",
            "X-Chunk-Total": "3",
            "X-Total-Items": "45",
        }

    def test_original_body_untouched(self):
        body = {"success": True, "players": items(30)}
        chunk_body(body, ChunkRequest(page=1, limit=10))
        assert len(body["players"]) == 30
        assert "chunk" not in body

    def test_bare_list_goes_under_data(self):
        view, _ = chunk_body(items(25), ChunkRequest(page=2, limit=20))
        assert len(view["data"]) == 5

    def test_failure_flag_preserved(self):
        view, _ = chunk_body({"success": False, "data": items(3)}, ChunkRequest(page=1, limit=2))
        assert view["success"] is False

    def test_not_requested_returns_body(self):
        body = {"success": True, "matches": items(3)}
        view, info = chunk_body(body, None)
        assert view is body
        assert info is None

    def test_body_without_array_returned_as_is(self):
        body = {"success": True, "match": {"id": 1}}
        view, info = chunk_body(body, ChunkRequest(page=1, limit=20))
        assert view is body
        assert info is None


class TestViewEtag:
    def test_stable_per_page(self):
        req = ChunkRequest(page=2, limit=20)
        assert view_etag('"abc"', req) == view_etag('"abc"', req)

    def test_differs_by_page_limit_and_body(self):
        base = view_etag('"abc"', ChunkRequest(page=1, limit=20))
        assert base != view_etag('"abc"', ChunkRequest(page=2, limit=20))
        assert base != view_etag('"abc"', ChunkRequest(page=1, limit=10))
        assert base != view_etag('"def"', ChunkRequest(page=1, limit=20))
