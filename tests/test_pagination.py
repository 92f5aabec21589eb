"""Tests for cursor pagination."""

from unittest.mock import MagicMock

import pytest
import requests

from gradebook_sync.errors import ApiError, PaginationLimitError, TransportError
from gradebook_sync.pagination import fetch_all, next_page_url
from tests.helpers import make_response

SEED = "https://lms.example.edu/api/v1/courses/1/users"


def _session(*responses):
    session = MagicMock()
    session.get.side_effect = list(responses)
    return session


class TestNextPageUrl:
    def test_picks_next_among_several_relations(self):
        header = (
            f'<{SEED}?page=1>; rel="current", <{SEED}?page=2>; rel="next", '
            f'<{SEED}?page=1>; rel="first", <{SEED}?page=9>; rel="last"'
        )
        assert next_page_url(header) == f"{SEED}?page=2"

    def test_tolerates_extra_whitespace(self):
        header = f'  <{SEED}?page=1> ;  rel="prev" ,   <{SEED}?page=3>;rel="next"  '
        assert next_page_url(header) == f"{SEED}?page=3"

    def test_no_next_relation(self):
        header = f'<{SEED}?page=1>; rel="first", <{SEED}?page=9>; rel="last"'
        assert next_page_url(header) is None

    @pytest.mark.parametrize("header", [None, "", "   "])
    def test_missing_header(self, header):
        assert next_page_url(header) is None


class TestFetchAll:
    def test_follows_next_links_across_three_pages(self):
        session = _session(
            make_response(200, [{"id": 1}, {"id": 2}], link=f'<{SEED}?page=2>; rel="next"'),
            make_response(200, [{"id": 3}], link=f'<{SEED}?page=3>; rel="next", <{SEED}?page=1>; rel="first"'),
            make_response(200, [{"id": 4}], link=f'<{SEED}?page=1>; rel="first"'),
        )

        records = fetch_all(session, SEED, params={"per_page": 2})

        assert [r["id"] for r in records] == [1, 2, 3, 4]
        assert session.get.call_count == 3
        urls = [c.args[0] for c in session.get.call_args_list]
        assert urls == [SEED, f"{SEED}?page=2", f"{SEED}?page=3"]
        # query parameters are only sent with the seed request
        assert session.get.call_args_list[0].kwargs["params"] == {"per_page": 2}
        assert session.get.call_args_list[1].kwargs["params"] is None

    def test_no_link_header_stops_after_one_request(self):
        session = _session(make_response(200, [{"id": 1}]))

        assert fetch_all(session, SEED) == [{"id": 1}]
        assert session.get.call_count == 1

    def test_empty_page_is_valid(self):
        session = _session(make_response(200, []))

        assert fetch_all(session, SEED) == []

    def test_error_on_second_page_fails_the_whole_fetch(self):
        session = _session(
            make_response(200, [{"id": 1}], link=f'<{SEED}?page=2>; rel="next"'),
            make_response(500, "upstream exploded", link=f'<{SEED}?page=3>; rel="next"'),
        )

        with pytest.raises(ApiError) as excinfo:
            fetch_all(session, SEED)

        assert excinfo.value.status_code == 500
        assert "upstream exploded" in excinfo.value.body_excerpt
        assert session.get.call_count == 2

    def test_error_body_is_truncated(self):
        session = _session(make_response(403, "x" * 2000))

        with pytest.raises(ApiError) as excinfo:
            fetch_all(session, SEED)

        assert len(excinfo.value.body_excerpt) <= 500

    def test_transport_failure_is_wrapped(self):
        session = MagicMock()
        session.get.side_effect = requests.ConnectionError("connection refused")

        with pytest.raises(TransportError, match="connection refused"):
            fetch_all(session, SEED)

    def test_non_list_body_is_an_api_error(self):
        session = _session(make_response(200, {"errors": []}))

        with pytest.raises(ApiError):
            fetch_all(session, SEED)

    def test_duplicates_are_kept(self):
        session = _session(
            make_response(200, [{"id": 1}], link=f'<{SEED}?page=2>; rel="next"'),
            make_response(200, [{"id": 1}]),
        )

        assert fetch_all(session, SEED) == [{"id": 1}, {"id": 1}]

    def test_page_limit_guards_against_endless_chains(self):
        endless = [make_response(200, [{"id": n}], link=f'<{SEED}?page={n + 1}>; rel="next"') for n in range(5)]
        session = _session(*endless)

        with pytest.raises(PaginationLimitError):
            fetch_all(session, SEED, max_pages=3)
        assert session.get.call_count == 3

    def test_progress_reported_per_page_and_at_completion(self):
        session = _session(
            make_response(200, [{"id": 1}], link=f'<{SEED}?page=2>; rel="next"'),
            make_response(200, [{"id": 2}]),
        )
        calls = []

        fetch_all(session, SEED, on_progress=lambda current, total, detail: calls.append((current, total)))

        assert calls == [(1, None), (2, None), (2, 2)]
