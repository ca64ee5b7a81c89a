"""CurseForge client tests using respx to mock httpx."""
import httpx
import pytest
import respx
from httpx import Response

from addon_radar.collectors.base import parse_retry_after
from addon_radar.collectors.circuit import CircuitBreaker
from addon_radar.collectors.curseforge import CurseForgeClient, SORT_POPULARITY, SORT_TOTAL_DOWNLOADS
from addon_radar.collectors.schemas import Mod
from addon_radar.errors import CircuitOpenError, FatalError, TransientError, UpstreamError

BASE = "https://api.curseforge.test"
SEARCH = f"{BASE}/v1/mods/search"


def search_page(mod_payload, ids, total=0):
    return {
        "data": [mod_payload(i) for i in ids],
        "pagination": {"index": 0, "pageSize": len(ids), "resultCount": len(ids), "totalCount": total},
    }


@pytest.fixture
def client(settings, sleep):
    return CurseForgeClient(settings, sleep=sleep)


class TestRetries:
    """Test retry classification and backoff."""

    @respx.mock
    async def test_retries_server_errors_then_succeeds(self, client, sleep, mod_payload):
        route = respx.get(SEARCH).mock(side_effect=[
            Response(503, text="unavailable"),
            Response(500, text="boom"),
            Response(200, json=search_page(mod_payload, [1])),
        ])

        page = await client.search_mods(SORT_POPULARITY)

        assert route.call_count == 3
        assert [m.id for m in page.data] == [1]
        assert sleep.calls == [2.0, 4.0]
        assert client.breaker.consecutive_failures == 0

    @respx.mock
    async def test_gives_up_after_max_attempts(self, client, sleep):
        route = respx.get(SEARCH).mock(return_value=Response(502))

        with pytest.raises(TransientError) as exc_info:
            await client.search_mods(SORT_POPULARITY)

        assert route.call_count == 3
        assert exc_info.value.status_code == 502
        assert sleep.calls == [2.0, 4.0]

    @respx.mock
    async def test_client_errors_are_not_retried(self, client, sleep):
        route = respx.get(SEARCH).mock(return_value=Response(400, text="bad request"))

        with pytest.raises(FatalError) as exc_info:
            await client.search_mods(SORT_POPULARITY)

        assert route.call_count == 1
        assert exc_info.value.status_code == 400
        assert sleep.calls == []

    @respx.mock
    async def test_rate_limit_honours_retry_after(self, client, sleep, mod_payload):
        respx.get(SEARCH).mock(side_effect=[
            Response(429, headers={"Retry-After": "7"}),
            Response(200, json=search_page(mod_payload, [1])),
        ])

        await client.search_mods(SORT_POPULARITY)

        assert sleep.calls == [7.0]

    @respx.mock
    async def test_rate_limit_without_header_backs_off(self, client, sleep, mod_payload):
        respx.get(SEARCH).mock(side_effect=[
            Response(429),
            Response(200, json=search_page(mod_payload, [1])),
        ])

        await client.search_mods(SORT_POPULARITY)

        assert sleep.calls == [2.0]

    @respx.mock
    async def test_network_errors_are_transient(self, client, sleep, mod_payload):
        route = respx.get(SEARCH).mock(side_effect=[
            httpx.ConnectError("connection refused"),
            Response(200, json=search_page(mod_payload, [1])),
        ])

        await client.search_mods(SORT_POPULARITY)

        assert route.call_count == 2

    def test_backoff_time(self, client):
        assert client._get_backoff_time(1) == 2.0
        assert client._get_backoff_time(2) == 4.0
        assert client._get_backoff_time(2, retry_after=7.0) == 7.0

    def test_parse_retry_after(self):
        assert parse_retry_after("3") == 3.0
        assert parse_retry_after(None) is None
        assert parse_retry_after("soon") is None
        assert parse_retry_after("Wed, 21 Oct 2015 07:28:00 GMT") == 0.0


class TestCircuitBreaker:
    """Test fail-fast behaviour after consecutive failures."""

    @respx.mock
    async def test_opens_after_threshold_without_network(self, client):
        route = respx.get(SEARCH).mock(return_value=Response(503))

        # 3 attempts per call: the breaker opens during the fourth call
        for _ in range(4):
            with pytest.raises(UpstreamError):
                await client.search_mods(SORT_POPULARITY)
        assert route.call_count == 10
        assert client.breaker.is_open

        with pytest.raises(CircuitOpenError):
            await client.search_mods(SORT_POPULARITY)
        assert route.call_count == 10

    def test_success_resets_count(self):
        breaker = CircuitBreaker(threshold=3)
        breaker.record_failure()
        breaker.record_failure()
        breaker.record_success()
        breaker.record_failure()
        breaker.record_failure()
        assert not breaker.is_open
        breaker.record_failure()
        assert breaker.is_open


class TestResponseHandling:

    @respx.mock
    async def test_oversized_response_is_fatal(self, settings, sleep):
        settings.max_response_bytes = 100
        client = CurseForgeClient(settings, sleep=sleep)
        route = respx.get(SEARCH).mock(return_value=Response(200, content=b"x" * 500))

        with pytest.raises(FatalError):
            await client.search_mods(SORT_POPULARITY)
        assert route.call_count == 1

    @respx.mock
    async def test_malformed_json_is_fatal(self, client):
        respx.get(SEARCH).mock(return_value=Response(200, content=b"{not json"))

        with pytest.raises(FatalError):
            await client.search_mods(SORT_POPULARITY)

    @respx.mock
    async def test_unexpected_shape_is_fatal(self, client):
        respx.get(SEARCH).mock(return_value=Response(200, json={"data": [{"name": "missing id"}]}))

        with pytest.raises(FatalError):
            await client.search_mods(SORT_POPULARITY)

    @respx.mock
    async def test_sends_api_key_and_query(self, client, mod_payload):
        route = respx.get(SEARCH).mock(return_value=Response(200, json=search_page(mod_payload, [1])))

        await client.search_mods(SORT_TOTAL_DOWNLOADS, index=100, game_version_type_id=517)

        request = route.calls.last.request
        assert request.headers["x-api-key"] == "test-key"
        assert request.url.params["gameId"] == "1"
        assert request.url.params["index"] == "100"
        assert request.url.params["pageSize"] == "50"
        assert request.url.params["sortField"] == "6"
        assert request.url.params["sortOrder"] == "desc"
        assert request.url.params["gameVersionTypeId"] == "517"


class TestPaging:
    """Test page iteration limits."""

    @respx.mock
    async def test_stops_on_short_page(self, client, sleep, mod_payload):
        route = respx.get(SEARCH).mock(side_effect=[
            Response(200, json=search_page(mod_payload, range(1, 51))),
            Response(200, json=search_page(mod_payload, range(51, 61))),
        ])

        mods = await client.fetch_with_sort(SORT_POPULARITY)

        assert len(mods) == 60
        assert route.call_count == 2
        # Delay only between pages
        assert sleep.calls == [0.05]

    @respx.mock
    async def test_stops_at_total_count(self, client, mod_payload):
        route = respx.get(SEARCH).mock(return_value=Response(200, json=search_page(mod_payload, range(1, 51), total=100)))

        pages = [page async for page in client.iter_pages(SORT_POPULARITY)]

        assert len(pages) == 2
        assert route.call_count == 2

    @respx.mock
    async def test_stops_at_search_result_cap(self, settings, sleep, mod_payload):
        settings.max_search_results = 150
        client = CurseForgeClient(settings, sleep=sleep)
        route = respx.get(SEARCH).mock(return_value=Response(200, json=search_page(mod_payload, range(1, 51))))

        mods = await client.fetch_with_sort(SORT_POPULARITY)

        assert len(mods) == 150
        assert route.call_count == 3
        indexes = [call.request.url.params["index"] for call in route.calls]
        assert indexes == ["0", "50", "100"]

    @respx.mock
    async def test_failure_mid_listing_propagates(self, client, mod_payload):
        respx.get(SEARCH).mock(side_effect=[
            Response(200, json=search_page(mod_payload, range(1, 51))),
            Response(401, text="unauthorized"),
        ])

        seen = []
        with pytest.raises(FatalError):
            async for page in client.iter_pages(SORT_POPULARITY):
                seen.extend(page)
        assert len(seen) == 50

    @respx.mock
    async def test_categories(self, client):
        respx.get(f"{BASE}/v1/categories").mock(return_value=Response(200, json={
            "data": [{"id": 1, "name": "Bags", "slug": "bags", "parentCategoryId": 0}],
        }))

        categories = await client.get_categories()

        assert [(c.id, c.name, c.parent_id) for c in categories] == [(1, "Bags", 0)]


class TestModParsing:

    def test_decodes_search_entry(self, mod_payload):
        mod = Mod.model_validate(mod_payload(7, downloads=1234, downloadCount=1234.9))

        assert mod.download_count == 1234
        assert mod.primary_author.name == "someone"
        assert mod.logo_url == "https://media.example/logo.png"
        assert mod.category_ids == [5]
        assert mod.primary_category_id == 5
        assert mod.latest_file_date.year == 2026
        assert mod.game_versions == ["11.0.0", "11.0.2"]

    def test_optional_fields_missing(self):
        mod = Mod.model_validate({"id": 1, "name": "Bare", "slug": "bare"})

        assert mod.primary_author is None
        assert mod.logo_url is None
        assert mod.primary_category_id is None
        assert mod.latest_file_date is None
        assert mod.game_versions == []

    def test_null_fields_decode_as_zero_values(self, mod_payload):
        mod = Mod.model_validate(mod_payload(
            7,
            rating=None,
            summary=None,
            thumbsUpCount=None,
            downloadCount=None,
            authors=None,
            latestFiles=[{"id": 1, "fileDate": None, "gameVersions": None}],
        ))

        assert mod.rating == 0.0
        assert mod.summary == ""
        assert mod.thumbs_up_count == 0
        assert mod.download_count == 0
        assert mod.primary_author is None
        assert mod.latest_file_date is None
        assert mod.game_versions == []

    @respx.mock
    async def test_null_field_keeps_rest_of_page(self, client, mod_payload):
        data = [mod_payload(i) for i in range(1, 50)]
        data.append(mod_payload(50, rating=None, summary=None, thumbsUpCount=None))
        respx.get(SEARCH).mock(return_value=Response(200, json={"data": data, "pagination": {"totalCount": 50}}))

        page = await client.search_mods(SORT_POPULARITY)

        assert len(page.data) == 50
        assert page.data[-1].rating == 0.0
