import httpx
import structlog

from usagedash.dates import DateRange, date_from_unix, unix_midnight
from usagedash.models import CostBucket, CostLineItem, TokenTally, UsageBucket
from usagedash.pricing import OPENAI_LABELS, OPENAI_PRICING, PricingTable
from usagedash.provider.base import raise_for_upstream, raise_for_usage

logger = structlog.get_logger()

OPENAI_BASE_URL = "https://api.openai.com/v1/organization"

_DAILY_LIMIT = 31
_HOURLY_LIMIT = 168
_COST_LIMIT = 180
_PROJECT_LIMIT = 100


def _tally_from_result(result: "dict") -> "TokenTally":
    # input_tokens already includes the cached portion
    input_tokens = result.get("input_tokens") or 0
    cached = result.get("input_cached_tokens") or 0
    return TokenTally(
        model=result.get("model") or None,
        fresh_input=max(input_tokens - cached, 0),
        cache_read=cached,
        output=result.get("output_tokens") or 0,
    )


class OpenAIProvider:
    """
    OpenAIProvider implements the UsageProvider protocol for OpenAI's
    organization usage and costs endpoints, handling pagination and
    project name resolution for the workspace breakdown.
    """

    name = "openai"
    display_name = "OpenAI"
    env_var = "OPENAI_API_KEY"
    admin_key_hint = (
        "OpenAI Admin API Key required. Regular API keys cannot access usage "
        "data. Go to Settings > Organization > Admin keys."
    )
    default_workspace = "Default project"
    labeler = OPENAI_LABELS

    def __init__(
        self,
        api_key: "str",
        org_id: "str" = "",
        pricing: "PricingTable | None" = None,
        timeout: "float" = 10.0,
    ) -> "None":
        self.pricing: "PricingTable" = pricing or OPENAI_PRICING
        headers: "dict[str, str]" = {"Authorization": f"Bearer {api_key}"}
        if org_id:
            headers["OpenAI-Organization"] = org_id
        self._client: "httpx.AsyncClient" = httpx.AsyncClient(
            timeout=timeout,
            headers=headers,
        )

    async def close(self) -> "None":
        """
        closes the underlying HTTP client.
        """
        await self._client.aclose()

    def model_label(self, line_item: "str | None") -> "str":
        """
        line items look like 'gpt-4o-2024-08-06, input'; the model id
        is the part before the comma.
        """
        if not line_item:
            return "Unknown"
        return self.labeler.label(line_item.split(",", 1)[0].strip())

    async def _fetch_usage_buckets(
        self,
        window: "DateRange",
        bucket_width: "str",
        limit: "int",
    ) -> "list[UsageBucket]":
        buckets: "list[UsageBucket]" = []
        next_page = ""

        # while structure to handle pagination until no more
        # pages are available
        while True:
            url = (
                f"{OPENAI_BASE_URL}/usage/completions"
                f"?start_time={unix_midnight(window.start)}"
                f"&end_time={unix_midnight(window.end_exclusive)}"
                f"&bucket_width={bucket_width}&limit={limit}"
                f"&group_by=model"
            )
            if next_page:
                url += f"&page={next_page}"

            logger.debug("openai_fetch_usage", bucket_width=bucket_width, url=url)
            resp = await self._client.get(url)
            raise_for_usage(self.name, resp)
            data = resp.json()

            for bucket in data.get("data", []):
                buckets.append(
                    UsageBucket(
                        date=date_from_unix(bucket["start_time"]),
                        tallies=tuple(
                            _tally_from_result(r) for r in bucket.get("results", [])
                        ),
                    )
                )

            # break if there are no more pages to fetch
            if not data.get("has_more"):
                break

            next_page = data.get("next_page") or ""
            if not next_page:
                break

        logger.debug(
            "openai_usage_done",
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
        fetches daily cost data from the OpenAI Costs API. Amounts are
        already in dollars.
        """
        buckets: "list[CostBucket]" = []
        next_page = ""
        group_by = "line_item,project_id" if by_workspace else "line_item"

        # same pattern to avoid recursion and handle pagination
        while True:
            url = (
                f"{OPENAI_BASE_URL}/costs"
                f"?start_time={unix_midnight(window.start)}"
                f"&end_time={unix_midnight(window.end_exclusive)}"
                f"&bucket_width=1d&limit={_COST_LIMIT}&group_by={group_by}"
            )
            if next_page:
                url += f"&page={next_page}"

            logger.debug("openai_fetch_costs", url=url)
            resp = await self._client.get(url)
            raise_for_upstream(resp)
            data = resp.json()

            for bucket in data.get("data", []):
                items = tuple(
                    CostLineItem(
                        model=self.model_label(r.get("line_item")),
                        amount_usd=float((r.get("amount") or {}).get("value") or 0),
                        workspace=r.get("project_id") if by_workspace else None,
                    )
                    for r in bucket.get("results", [])
                )
                buckets.append(
                    CostBucket(date=date_from_unix(bucket["start_time"]), items=items)
                )

            # break if there are no more pages to fetch
            if not data.get("has_more"):
                break

            next_page = data.get("next_page") or ""
            if not next_page:
                break

        logger.debug("openai_costs_done", bucket_count=len(buckets))
        return buckets

    async def fetch_workspace_names(self) -> "dict[str, str]":
        """
        resolves every project ID of the organization to its
        human-readable name in one paginated listing.
        """
        names: "dict[str, str]" = {}
        after = ""

        while True:
            url = f"{OPENAI_BASE_URL}/projects?limit={_PROJECT_LIMIT}"
            if after:
                url += f"&after={after}"

            resp = await self._client.get(url)
            raise_for_upstream(resp)
            data = resp.json()

            for project in data.get("data", []):
                names[project["id"]] = str(project.get("name") or project["id"])

            if not data.get("has_more"):
                break

            after = data.get("last_id") or ""
            if not after:
                break

        return names
