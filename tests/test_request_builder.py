"""Unit tests for request construction."""

import pytest

from restpager.connection import create_connection
from restpager.request_builder import (
    RequestDescriptor,
    build_request,
    flatten_query,
    url_join,
)

from conftest import BASE_URL


class TestUrlJoin:
    """Canonical URL joining."""

    @pytest.mark.parametrize(
        ("parts", "expected"),
        [
            (("https://host", "api", "v4"), "https://host/api/v4"),
            (("https://host/", "/api/", "/v4"), "https://host/api/v4"),
            (("https://host/api/v4", "/projects"), "https://host/api/v4/projects"),
            (("https://host/api/v4/", "projects"), "https://host/api/v4/projects"),
            (("https://host/api/v4", "projects/1/issues"), "https://host/api/v4/projects/1/issues"),
            (("https://host/api/v4", "/projects?page=2"), "https://host/api/v4/projects?page=2"),
            (("https://host/api/v4/projects", "?page=2"), "https://host/api/v4/projects?page=2"),
            (("https://host/projects?page=2", "?per_page=5"), "https://host/projects?page=2&per_page=5"),
            (("https://host/api", ""), "https://host/api"),
            (("https://", "host", "api"), "https://host/api"),
        ],
    )
    def test_join(self, parts, expected):
        """Slashes are normalized regardless of leading/trailing slashes."""
        assert url_join(*parts) == expected

    def test_empty(self):
        assert url_join() == ""

    def test_query_characters_not_rewritten(self):
        """A "?" inside an existing query value survives the join."""
        joined = url_join("https://host/api/v4", "/projects?search=what?&page=2")
        assert joined == "https://host/api/v4/projects?search=what?&page=2"

    def test_query_appended_to_query_with_question_mark(self):
        joined = url_join("https://host/projects?search=a/b?", "?page=2")
        assert joined == "https://host/projects?search=a/b?&page=2"


class TestFlattenQuery:
    """Bracket-notation flattening of nested query records."""

    def test_flat(self):
        assert flatten_query({"page": 2, "state": "open"}) == [
            ("page", 2),
            ("state", "open"),
        ]

    def test_nested_and_lists(self):
        """Nested dicts use key[sub], lists use key[]."""
        assert flatten_query({"filter": {"state": "open"}, "ids": [1, 2]}) == [
            ("filter[state]", "open"),
            ("ids[]", 1),
            ("ids[]", 2),
        ]

    def test_none_dropped(self):
        assert flatten_query({"search": None, "page": 1}) == [("page", 1)]


class TestBuildRequest:
    """build_request() descriptor construction."""

    def test_url_and_headers(self, context):
        """Endpoint is joined to the base URL; auth headers are copied."""
        descriptor = build_request(context, "/projects")

        assert isinstance(descriptor, RequestDescriptor)
        assert descriptor.method == "GET"
        assert descriptor.url == f"{BASE_URL}/projects"
        assert descriptor.headers == {"private-token": "glpat-test"}
        assert descriptor.params is None
        assert descriptor.body is None
        assert descriptor.form_data is None
        assert descriptor.full_response is False
        assert descriptor.streaming is False
        assert descriptor.verify is True

    def test_body_keys_translated(self, context):
        """Body field names become snake_case, values unchanged."""
        descriptor = build_request(
            context,
            "projects",
            method="post",
            body={"projectName": "Demo", "initializeWithReadme": True},
        )

        assert descriptor.method == "POST"
        assert descriptor.body == {"project_name": "Demo", "initialize_with_readme": True}

    def test_query_is_structured(self, context):
        """Query records are translated and kept as structured params."""
        descriptor = build_request(
            context, "projects", query={"perPage": 20, "orderBy": "id"}
        )

        assert descriptor.url == f"{BASE_URL}/projects"
        assert descriptor.params == {"per_page": 20, "order_by": "id"}

    def test_nested_query_translated(self, context):
        descriptor = build_request(
            context, "issues", query={"customFilter": {"labelName": "bug"}}
        )
        assert descriptor.params == {"custom_filter": {"label_name": "bug"}}

    def test_query_serialized_into_url_fallback(self, context):
        """structured_query=False appends the encoded query to the URL."""
        descriptor = build_request(
            context,
            "projects",
            query={"perPage": 20, "search": "my project"},
            structured_query=False,
        )

        assert descriptor.params is None
        assert descriptor.url == f"{BASE_URL}/projects?per_page=20&search=my+project"

    def test_empty_query_yields_no_params(self, context):
        descriptor = build_request(context, "projects", query={})
        assert descriptor.params is None

    def test_form_data_translated(self, context):
        descriptor = build_request(
            context, "uploads", method="POST", form_data={"fileName": "a.txt"}
        )
        assert descriptor.form_data == {"file_name": "a.txt"}
        assert descriptor.body is None

    def test_tls_policy_from_context(self):
        insecure = create_connection(url="https://self-signed.local", reject_unauthorized=False)
        assert build_request(insecure, "projects").verify is False

    def test_deterministic(self, context):
        """Identical inputs give equal descriptors."""
        kwargs = {"query": {"perPage": 5}, "full_response": True}
        assert build_request(context, "projects", **kwargs) == build_request(
            context, "projects", **kwargs
        )

    def test_caller_inputs_not_mutated(self, context):
        query = {"perPage": 5}
        body = {"projectName": "x"}
        build_request(context, "projects", query=query, body=body)
        assert query == {"perPage": 5}
        assert body == {"projectName": "x"}

    def test_descriptor_headers_independent_of_context(self, context):
        """Mutating a descriptor's headers never reaches the shared context."""
        descriptor = build_request(context, "projects")
        descriptor.headers["x-extra"] = "1"
        assert "x-extra" not in context.headers
