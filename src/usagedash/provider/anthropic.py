import re

import httpx
import structlog

from usagedash.dates import DateRange, date_from_iso_timestamp, iso_midnight
from usagedash.models import CostBucket, CostLineItem, TokenTally, UsageBucket
from usagedash.pricing import ANTHROPIC_LABELS, ANTHROPIC_PRICING, PricingTable
from usagedash.provider.base import raise_for_upstream, raise_for_usage

logger = structlog.get_logger()

ANTHROPIC_BASE_URL = "https://api.anthropic.com/v1/organizations"
ANTHROPIC_VERSION = "2023-06-01"

# upstream page size limits per bucket width
_DAILY_LIMIT = 31
_HOURLY_LIMIT = 168
_WORKSPACE_LIMIT = 100

# cost report descriptions look like "Claude Sonnet 4 Usage - Input Tokens"
_DESCRIPTION_MODEL = re.compile(r"^(Claude .+?) Usage")


def _tally_from_result(result: "dict") -> "TokenTally":
    cache_creation = result.get("cache_creation") or {}
    return TokenTally(
        model=result.get("model") or None,
        fresh_input=result.get("uncached_input_tokens") or 0,
        cache_read=result.get("cache_read_input_tokens") or 0,
        cache_write=(cache_creation.get("ephemeral_1h_input_tokens") or 0)
        + (cache_creation.get("ephemeral_5m_input_tokens") or 0),
        output=result.get("output_tokens") or 0,
    )


class AnthropicProvider:
    """
    AnthropicProvider implements the UsageProvider protocol against the
    Anthropic Admin API usage and cost reports. Every query requires an
    admin key (sk-ant-admin-...).
    """

    name = "anthropic"
    display_name = "Anthropic"
    env_var = "ANTHROPIC_API_KEY"
    admin_key_hint = (
        "Anthropic Admin API Key required (sk-ant-admin-...). Regular API keys "
        "cannot access usage data. Generate one at console.anthropic.com > "
        "Settings > Admin API keys."
    )
    default_workspace = "Default"
    labeler = ANTHROPIC_LABELS

    def __init__(
        self,
        api_key: "str",
        pricing: "PricingTable | None" = None,
        timeout: "float" = 10.0,
    ) -> "None":
        self.pricing: "PricingTable" = pricing or ANTHROPIC_PRICING
        self._client: "httpx.AsyncClient" = httpx.AsyncClient(
            timeout=timeout,
            headers={
                "x-api-key": api_key,
                "anthropic-version": ANTHROPIC_VERSION,
            },
        )

    async def close(self) -> "None":
        """
        closes the underlying HTTP client.
        """
        await self._client.aclose()

    def model_label(self, model: "str | None", description: "str | None") -> "str":
        if description:
            match = _DESCRIPTION_MODEL.match(description)
            if match:
                return match.group(1)
        return self.labeler.label(model)

    async def _fetch_usage_buckets(
        self,
        window: "DateRange",
        bucket_width: "str",
        limit: "int",
    ) -> "list[UsageBucket]":
        buckets: "list[UsageBucket]" = []
        next_page = ""

        while True:
            url = (
                f"{ANTHROPIC_BASE_URL}/usage_report/messages"
                f"?starting_at={iso_midnight(window.start)}"
                f"&ending_at={iso_midnight(window.end_exclusive)}"
                f"&bucket_width={bucket_width}&limit={limit}"
                f"&group_by[]=model"
            )
            if next_page:
                url += f"&page={next_page}"

            logger.debug("anthropic_fetch_usage", bucket_width=bucket_width, url=url)
            resp = await self._client.get(url)
            raise_for_usage(self.name, resp)
            data = resp.json()

            for bucket in data.get("data", []):
                buckets.append(
                    UsageBucket(
                        date=date_from_iso_timestamp(bucket["starting_at"]),
                        tallies=tuple(
                            _tally_from_result(r) for r in bucket.get("results", [])
                        ),
                    )
                )

            if not data.get("has_more"):
                break

            next_page = data.get("next_page") or ""
            if not next_page:
                break

        logger.debug(
            "anthropic_usage_done",
            bucket_width=bucket_width,
            bucket_count=len(buckets),
        )
        return buckets

    async def fetch_daily_usage(self, window: "DateRange") -> "list[UsageBucket]":
        return await self._fetch_usage_buckets(window, "1d", _DAILY_LIMIT)

    async def fetch_hourly_usage(self, window: "DateRange") -> "list[UsageBucket]":
        return await self._fetch_usage_buckets(window, "1h", _HOURLY_LIMIT)

    async def fetch_costs(
        self,
        window: "DateRange",
        by_workspace: "bool",
    ) -> "list[CostBucket]":
        """
        fetches the daily cost report. Amounts are reported in cents
        as decimal strings and converted to dollars here.
        """
        buckets: "list[CostBucket]" = []
        next_page = ""
        group_by = "&group_by[]=description"
        if by_workspace:
            group_by += "&group_by[]=workspace_id"

        while True:
            url = (
                f"{ANTHROPIC_BASE_URL}/cost_report"
                f"?starting_at={iso_midnight(window.start)}"
                f"&ending_at={iso_midnight(window.end_exclusive)}"
                f"&bucket_width=1d&limit={_DAILY_LIMIT}{group_by}"
            )
            if next_page:
                url += f"&page={next_page}"

            logger.debug("anthropic_fetch_costs", url=url)
            resp = await self._client.get(url)
            raise_for_upstream(resp)
            data = resp.json()

            for bucket in data.get("data", []):
                items = tuple(
                    CostLineItem(
                        model=self.model_label(r.get("model"), r.get("description")),
                        amount_usd=float(r.get("amount") or 0) / 100,
                        workspace=r.get("workspace_id") if by_workspace else None,
                    )
                    for r in bucket.get("results", [])
                )
                buckets.append(
                    CostBucket(
                        date=date_from_iso_timestamp(bucket["starting_at"]),
                        items=items,
                    )
                )

            if not data.get("has_more"):
                break

            next_page = data.get("next_page") or ""
            if not next_page:
                break

        logger.debug("anthropic_costs_done", bucket_count=len(buckets))
        return buckets

    async def fetch_workspace_names(self) -> "dict[str, str]":
        """
        lists the organization's workspaces as id -> display name.
        """
        names: "dict[str, str]" = {}
        after_id = ""

        while True:
            url = f"{ANTHROPIC_BASE_URL}/workspaces?limit={_WORKSPACE_LIMIT}"
            if after_id:
                url += f"&after_id={after_id}"

            resp = await self._client.get(url)
            raise_for_upstream(resp)
            data = resp.json()

            for workspace in data.get("data", []):
                names[workspace["id"]] = str(workspace.get("name") or workspace["id"])

            if not data.get("has_more"):
                break

            after_id = data.get("last_id") or ""
            if not after_id:
                break

        return names
