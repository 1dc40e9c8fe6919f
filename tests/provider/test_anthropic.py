from datetime import date

import httpx
import pytest
import respx

from usagedash.dates import DateRange
from usagedash.errors import AdminKeyRequiredError, UpstreamError
from usagedash.provider.anthropic import ANTHROPIC_BASE_URL, AnthropicProvider

_WINDOW = DateRange(start=date(2025, 3, 8), end=date(2025, 3, 9))


def _usage_result(model: "str", **tokens: "int") -> "dict":
    return {
        "uncached_input_tokens": tokens.get("fresh", 0),
        "cache_read_input_tokens": tokens.get("cache_read", 0),
        "cache_creation": {
            "ephemeral_1h_input_tokens": tokens.get("cache_1h", 0),
            "ephemeral_5m_input_tokens": tokens.get("cache_5m", 0),
        },
        "output_tokens": tokens.get("output", 0),
        "model": model,
        "workspace_id": None,
        "api_key_id": None,
        "service_tier": "standard",
    }


class TestAnthropicProviderFetchUsage:
    @pytest.mark.asyncio
    @respx.mock
    async def test_fetches_and_parses_daily_usage(self) -> "None":
        route = respx.get(f"{ANTHROPIC_BASE_URL}/usage_report/messages").mock(
            return_value=httpx.Response(
                200,
                json={
                    "data": [
                        {
                            "starting_at": "2025-03-08T00:00:00Z",
                            "ending_at": "2025-03-09T00:00:00Z",
                            "results": [
                                _usage_result(
                                    "claude-sonnet-4-20250514",
                                    fresh=100,
                                    cache_read=20,
                                    cache_1h=5,
                                    cache_5m=7,
                                    output=40,
                                )
                            ],
                        }
                    ],
                    "has_more": False,
                    "next_page": None,
                },
            )
        )

        provider = AnthropicProvider(api_key="sk-ant-admin-test")
        buckets = await provider.fetch_daily_usage(_WINDOW)
        await provider.close()

        assert len(buckets) == 1
        assert buckets[0].date == "2025-03-08"
        tally = buckets[0].tallies[0]
        assert tally.model == "claude-sonnet-4-20250514"
        assert tally.fresh_input == 100
        assert tally.cache_read == 20
        assert tally.cache_write == 12
        assert tally.output == 40
        assert tally.input_tokens == 132

        request = route.calls.last.request
        assert request.headers["x-api-key"] == "sk-ant-admin-test"
        assert request.headers["anthropic-version"] == "2023-06-01"
        params = request.url.params
        assert params["starting_at"] == "2025-03-08T00:00:00Z"
        # the end date is padded so 2025-03-09 is fully included
        assert params["ending_at"] == "2025-03-10T00:00:00Z"
        assert params["bucket_width"] == "1d"
        assert params["group_by[]"] == "model"

    @pytest.mark.asyncio
    @respx.mock
    async def test_handles_pagination(self) -> "None":
        respx.get(f"{ANTHROPIC_BASE_URL}/usage_report/messages").mock(
            side_effect=[
                httpx.Response(
                    200,
                    json={
                        "data": [
                            {
                                "starting_at": "2025-03-08T00:00:00Z",
                                "results": [_usage_result("claude-opus-4", output=1)],
                            }
                        ],
                        "has_more": True,
                        "next_page": "page_2",
                    },
                ),
                httpx.Response(
                    200,
                    json={
                        "data": [
                            {
                                "starting_at": "2025-03-09T00:00:00Z",
                                "results": [_usage_result("claude-opus-4", output=2)],
                            }
                        ],
                        "has_more": False,
                    },
                ),
            ]
        )

        provider = AnthropicProvider(api_key="sk-ant-admin-test")
        buckets = await provider.fetch_daily_usage(_WINDOW)
        await provider.close()

        assert [b.date for b in buckets] == ["2025-03-08", "2025-03-09"]
        assert respx.calls.last.request.url.params["page"] == "page_2"

    @pytest.mark.asyncio
    @respx.mock
    async def test_hourly_uses_hour_buckets(self) -> "None":
        route = respx.get(f"{ANTHROPIC_BASE_URL}/usage_report/messages").mock(
            return_value=httpx.Response(
                200,
                json={
                    "data": [
                        {
                            "starting_at": "2025-03-09T13:00:00Z",
                            "results": [_usage_result("claude-opus-4", output=3)],
                        }
                    ],
                    "has_more": False,
                },
            )
        )

        provider = AnthropicProvider(api_key="sk-ant-admin-test")
        buckets = await provider.fetch_hourly_usage(_WINDOW)
        await provider.close()

        assert buckets[0].date == "2025-03-09"
        assert route.calls.last.request.url.params["bucket_width"] == "1h"

    @pytest.mark.asyncio
    @respx.mock
    async def test_regular_key_is_rejected(self) -> "None":
        respx.get(f"{ANTHROPIC_BASE_URL}/usage_report/messages").mock(
            return_value=httpx.Response(
                401, json={"error": {"type": "authentication_error"}}
            )
        )

        provider = AnthropicProvider(api_key="sk-ant-api03-test")
        with pytest.raises(AdminKeyRequiredError):
            await provider.fetch_daily_usage(_WINDOW)
        await provider.close()

    @pytest.mark.asyncio
    @respx.mock
    async def test_other_failures_keep_status_and_body(self) -> "None":
        respx.get(f"{ANTHROPIC_BASE_URL}/usage_report/messages").mock(
            return_value=httpx.Response(529, text="overloaded")
        )

        provider = AnthropicProvider(api_key="sk-ant-admin-test")
        with pytest.raises(UpstreamError) as exc_info:
            await provider.fetch_daily_usage(_WINDOW)
        await provider.close()

        assert exc_info.value.status_code == 529
        assert exc_info.value.body == "overloaded"

    @pytest.mark.asyncio
    @respx.mock
    async def test_stops_when_more_pages_have_no_cursor(self) -> "None":
        route = respx.get(f"{ANTHROPIC_BASE_URL}/usage_report/messages").mock(
            return_value=httpx.Response(
                200,
                json={
                    "data": [
                        {
                            "starting_at": "2025-03-08T00:00:00Z",
                            "results": [_usage_result("claude-sonnet-4-20250514", fresh=10)],
                        }
                    ],
                    "has_more": True,
                    "next_page": None,
                },
            )
        )

        provider = AnthropicProvider(api_key="sk-ant-admin-test")
        buckets = await provider.fetch_daily_usage(_WINDOW)
        await provider.close()

        assert len(buckets) == 1
        assert route.call_count == 1


class TestAnthropicProviderFetchCosts:
    @pytest.mark.asyncio
    @respx.mock
    async def test_converts_cents_and_labels_models(self) -> "None":
        route = respx.get(f"{ANTHROPIC_BASE_URL}/cost_report").mock(
            return_value=httpx.Response(
                200,
                json={
                    "data": [
                        {
                            "starting_at": "2025-03-08T00:00:00Z",
                            "results": [
                                {
                                    "currency": "USD",
                                    "amount": "123.50",
                                    "workspace_id": "wrkspc_1",
                                    "description": "Claude Sonnet 4 Usage - Input Tokens",
                                    "model": "claude-sonnet-4-20250514",
                                },
                                {
                                    "currency": "USD",
                                    "amount": "10",
                                    "workspace_id": None,
                                    "description": None,
                                    "model": "claude-opus-4-6",
                                },
                            ],
                        }
                    ],
                    "has_more": False,
                },
            )
        )

        provider = AnthropicProvider(api_key="sk-ant-admin-test")
        buckets = await provider.fetch_costs(_WINDOW, by_workspace=True)
        await provider.close()

        items = buckets[0].items
        assert buckets[0].date == "2025-03-08"
        assert items[0].model == "Claude Sonnet 4"
        assert items[0].amount_usd == pytest.approx(1.235)
        assert items[0].workspace == "wrkspc_1"
        assert items[1].model == "Claude Opus 4.6"
        assert items[1].amount_usd == pytest.approx(0.10)
        assert items[1].workspace is None
        assert buckets[0].total == pytest.approx(1.335)

        params = route.calls.last.request.url.params
        assert params.get_list("group_by[]") == ["description", "workspace_id"]

    @pytest.mark.asyncio
    @respx.mock
    async def test_cost_failure_raises_upstream_error(self) -> "None":
        respx.get(f"{ANTHROPIC_BASE_URL}/cost_report").mock(
            return_value=httpx.Response(500, text="internal")
        )

        provider = AnthropicProvider(api_key="sk-ant-admin-test")
        with pytest.raises(UpstreamError):
            await provider.fetch_costs(_WINDOW, by_workspace=False)
        await provider.close()

    @pytest.mark.asyncio
    @respx.mock
    async def test_stops_when_more_pages_have_no_cursor(self) -> "None":
        route = respx.get(f"{ANTHROPIC_BASE_URL}/cost_report").mock(
            return_value=httpx.Response(
                200,
                json={
                    "data": [
                        {
                            "starting_at": "2025-03-08T00:00:00Z",
                            "results": [{"amount": "125", "model": "claude-sonnet-4-20250514"}],
                        }
                    ],
                    "has_more": True,
                },
            )
        )

        provider = AnthropicProvider(api_key="sk-ant-admin-test")
        buckets = await provider.fetch_costs(_WINDOW, by_workspace=False)
        await provider.close()

        assert buckets[0].total == pytest.approx(1.25)
        assert route.call_count == 1


class TestAnthropicProviderWorkspaces:
    @pytest.mark.asyncio
    @respx.mock
    async def test_lists_workspaces_across_pages(self) -> "None":
        respx.get(f"{ANTHROPIC_BASE_URL}/workspaces").mock(
            side_effect=[
                httpx.Response(
                    200,
                    json={
                        "data": [{"id": "wrkspc_1", "name": "Research"}],
                        "has_more": True,
                        "last_id": "wrkspc_1",
                    },
                ),
                httpx.Response(
                    200,
                    json={
                        "data": [{"id": "wrkspc_2", "name": "Production"}],
                        "has_more": False,
                        "last_id": "wrkspc_2",
                    },
                ),
            ]
        )

        provider = AnthropicProvider(api_key="sk-ant-admin-test")
        names = await provider.fetch_workspace_names()
        await provider.close()

        assert names == {"wrkspc_1": "Research", "wrkspc_2": "Production"}
        assert respx.calls.last.request.url.params["after_id"] == "wrkspc_1"
