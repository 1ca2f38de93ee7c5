"""End-to-end tests: PaginationEngine over a real httpx stack.

A MockTransport plays a paginated API that emits GitLab-style Link and
X-* headers, so URL stripping, query merging and header parsing are all
exercised together.
"""

import httpx
import pytest

from restpager.config import ClientSettings
from restpager.pagination import PaginatedPage, PaginationEngine

API = "https://gitlab.example.com/api/v4"

RECORDS = [{"id": i} for i in range(1, 6)]


def _paginated_api(seen: list):
    """Serve RECORDS in pages of per_page (default 2)."""

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        if request.headers.get("private-token") != "glpat-test":
            return httpx.Response(401, json={"message": "401 Unauthorized"})

        per_page = int(request.url.params.get("per_page", 2))
        page = int(request.url.params.get("page", 1))
        total_pages = -(-len(RECORDS) // per_page)
        start = (page - 1) * per_page

        headers = {
            "X-Page": str(page),
            "X-Per-Page": str(per_page),
            "X-Total": str(len(RECORDS)),
            "X-Total-Pages": str(total_pages),
            "X-Prev-Page": str(page - 1) if page > 1 else "",
            "X-Next-Page": str(page + 1) if page < total_pages else "",
        }
        if page < total_pages:
            headers["Link"] = (
                f'<{API}/projects?page={page + 1}&per_page={per_page}>; rel="next", '
                f'<{API}/projects?page={total_pages}&per_page={per_page}>; rel="last"'
            )
        return httpx.Response(
            200, json=RECORDS[start:start + per_page], headers=headers
        )

    return handler


@pytest.fixture
def settings():
    return ClientSettings(
        _env_file=None, url="https://gitlab.example.com", token="glpat-test"
    )


class TestEndToEnd:
    """Full request path from engine to httpx and back."""

    @pytest.mark.asyncio
    async def test_all_pages_aggregated(self, settings):
        seen = []
        async with PaginationEngine.from_settings(
            settings, transport=httpx.MockTransport(_paginated_api(seen))
        ) as api:
            result = await api.get("projects")

        assert result == RECORDS
        assert [r.url.params.get("page", "1") for r in seen] == ["1", "2", "3"]

    @pytest.mark.asyncio
    async def test_per_page_translated_and_kept(self, settings):
        seen = []
        async with PaginationEngine.from_settings(
            settings, transport=httpx.MockTransport(_paginated_api(seen))
        ) as api:
            result = await api.get("projects", {"perPage": 4})

        assert result == RECORDS
        assert len(seen) == 2
        assert all(r.url.params["per_page"] == "4" for r in seen)

    @pytest.mark.asyncio
    async def test_max_pages(self, settings):
        seen = []
        async with PaginationEngine.from_settings(
            settings, transport=httpx.MockTransport(_paginated_api(seen))
        ) as api:
            result = await api.get("projects", {"maxPages": 2})

        assert result == RECORDS[:4]
        assert len(seen) == 2

    @pytest.mark.asyncio
    async def test_pinned_page_metadata(self, settings):
        seen = []
        async with PaginationEngine.from_settings(
            settings, transport=httpx.MockTransport(_paginated_api(seen))
        ) as api:
            result = await api.get("projects", {"page": 2, "showPagination": True})

        assert isinstance(result, PaginatedPage)
        assert result.data == RECORDS[2:4]
        assert result.pagination.current == 2
        assert result.pagination.next == 3
        assert result.pagination.previous == 1
        assert result.pagination.total == 5
        assert result.pagination.per_page == 2
        assert result.pagination.total_pages == 3
        assert len(seen) == 1

    @pytest.mark.asyncio
    async def test_unauthenticated_rejected(self):
        from restpager.transport import ApiClientError

        seen = []
        anonymous = ClientSettings(_env_file=None, url="https://gitlab.example.com")
        async with PaginationEngine.from_settings(
            anonymous, transport=httpx.MockTransport(_paginated_api(seen))
        ) as api:
            with pytest.raises(ApiClientError) as exc_info:
                await api.get("projects")

        assert exc_info.value.status_code == 401
        assert "private-token" not in seen[0].headers
