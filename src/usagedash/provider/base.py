from typing import Protocol

import httpx

from usagedash.dates import DateRange
from usagedash.errors import AdminKeyRequiredError, UpstreamError
from usagedash.models import CostBucket, UsageBucket
from usagedash.pricing import ModelLabeler, PricingTable


class UsageProvider(Protocol):
    """
    UsageProvider stands as a common protocol that all paid-usage
    AI providers must satisfy.

    Each method issues one kind of upstream query and returns
    provider-agnostic buckets. Cost line items carry the raw
    workspace id, which the fetcher resolves to a display name.
    """

    name: "str"
    display_name: "str"
    # environment variable holding the admin credential
    env_var: "str"
    # guidance shown when a non-admin credential is rejected
    admin_key_hint: "str"
    # name used for usage not attributed to any workspace
    default_workspace: "str"
    pricing: "PricingTable"
    labeler: "ModelLabeler"

    async def fetch_daily_usage(self, window: "DateRange") -> "list[UsageBucket]": ...

    async def fetch_hourly_usage(self, window: "DateRange") -> "list[UsageBucket]": ...

    async def fetch_costs(
        self,
        window: "DateRange",
        by_workspace: "bool",
    ) -> "list[CostBucket]": ...

    async def fetch_workspace_names(self) -> "dict[str, str]": ...

    async def close(self) -> "None": ...


def raise_for_upstream(resp: "httpx.Response") -> "None":
    """
    raises UpstreamError with the verbatim body for any non-2xx status.
    """
    if not resp.is_success:
        raise UpstreamError(resp.status_code, resp.text)


def raise_for_usage(provider: "str", resp: "httpx.Response") -> "None":
    """
    like raise_for_upstream, but an authorization failure on the usage
    query means the credential lacks administrative scope.
    """
    if resp.status_code in (401, 403):
        raise AdminKeyRequiredError(provider, resp.status_code)
    raise_for_upstream(resp)
