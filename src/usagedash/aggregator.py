import time
from datetime import date
from typing import Callable

import structlog

from usagedash.config import Config
from usagedash.dates import DateRange, utc_today
from usagedash.errors import (
    AdminKeyRequiredError,
    InvalidDateRangeError,
    ProviderNotConfiguredError,
    UnknownProviderError,
    UpstreamError,
)
from usagedash.fetcher import fetch_report
from usagedash.metrics import MetricsUpdater
from usagedash.models import UsageResponse
from usagedash.normalizer import normalize
from usagedash.pricing import PricingTable, load_pricing_overrides
from usagedash.provider.anthropic import AnthropicProvider
from usagedash.provider.base import UsageProvider
from usagedash.provider.openai import OpenAIProvider
from usagedash.reconciler import CostReconciler

logger = structlog.get_logger()

PROVIDER_CLASSES: "dict[str, type[AnthropicProvider] | type[OpenAIProvider]]" = {
    "anthropic": AnthropicProvider,
    "openai": OpenAIProvider,
}


class UsageAggregator:
    """
    UsageAggregator builds the usage response for one provider and
    date range: fetch, reconcile, allocate and normalize.

    Providers are created per request and closed afterwards, nothing
    is shared between requests. Every failure is turned into a
    response carrying an `error` string so the dashboard can render
    an empty or disconnected state instead of crashing.
    """

    def __init__(
        self,
        config: "Config",
        metrics: "MetricsUpdater",
        clock: "Callable[[], date]" = utc_today,
    ) -> "None":
        self._config = config
        self._metrics = metrics
        self._clock = clock
        self._pricing: "dict[str, PricingTable]" = (
            load_pricing_overrides(config.pricing_file) if config.pricing_file else {}
        )

    def is_configured(self, provider_name: "str") -> "bool":
        return bool(self._config.api_key_for(provider_name))

    def _build_provider(self, provider_name: "str", api_key: "str") -> "UsageProvider":
        pricing = self._pricing.get(provider_name)
        timeout = self._config.http_timeout
        if provider_name == "openai":
            return OpenAIProvider(
                api_key=api_key,
                org_id=self._config.openai_org_id,
                pricing=pricing,
                timeout=timeout,
            )
        return AnthropicProvider(api_key=api_key, pricing=pricing, timeout=timeout)

    async def _build_response(
        self,
        provider: "UsageProvider",
        window: "DateRange",
        hourly_window: "DateRange | None",
        include_workspaces: "bool",
    ) -> "UsageResponse":
        report = await fetch_report(provider, window, hourly_window, include_workspaces)
        for stage in report.failed_stages:
            self._metrics.inc_upstream_error(provider.name, stage)

        reconciler = CostReconciler(provider.pricing, provider.labeler.label)
        records = reconciler.reconcile(report)
        return normalize(records, report.costs, include_workspaces)

    async def aggregate(
        self,
        provider_name: "str",
        start: "str | None" = None,
        end: "str | None" = None,
        include_workspaces: "bool" = False,
    ) -> "UsageResponse":
        """
        returns the usage response for the provider. Only an unknown
        provider name raises, every other failure is reported in-band.
        """
        provider_cls = PROVIDER_CLASSES.get(provider_name)
        if provider_cls is None:
            raise UnknownProviderError(provider_name)

        started = time.monotonic()
        log = logger.bind(provider=provider_name)

        try:
            api_key = self._config.api_key_for(provider_name)
            if not api_key:
                raise ProviderNotConfiguredError(provider_name, provider_cls.env_var)

            today = self._clock()
            window = DateRange.resolve(
                start, end, today, self._config.default_range_days
            )
            hourly_window = window.hourly_window(today, self._config.hourly_window_days)

            provider = self._build_provider(provider_name, api_key)
            try:
                response = await self._build_response(
                    provider, window, hourly_window, include_workspaces
                )
            finally:
                await provider.close()

        except ProviderNotConfiguredError as e:
            self._metrics.inc_response(provider_name, "not_configured")
            return UsageResponse.failure(
                f"{e.env_var} not configured. An Admin API Key "
                "is required for usage data."
            )

        except InvalidDateRangeError as e:
            self._metrics.inc_response(provider_name, "invalid_range")
            return UsageResponse.failure(f"Invalid date range: {e}")

        except AdminKeyRequiredError as e:
            log.warning("admin_key_required", status=e.status_code)
            self._metrics.inc_upstream_error(provider_name, "usage")
            self._metrics.inc_response(provider_name, "admin_key_required")
            return UsageResponse.failure(provider_cls.admin_key_hint)

        except UpstreamError as e:
            log.error("usage_upstream_error", status=e.status_code)
            self._metrics.inc_upstream_error(provider_name, "usage")
            self._metrics.inc_response(provider_name, "upstream_error")
            return UsageResponse.failure(
                f"{provider_cls.display_name} API error: {e.status_code} - {e.body}"
            )

        except Exception as e:
            log.exception("aggregation_failed")
            self._metrics.inc_upstream_error(provider_name, "usage")
            self._metrics.inc_response(provider_name, "failed")
            return UsageResponse.failure(f"Failed to fetch: {e}")

        finally:
            self._metrics.observe_duration(provider_name, time.monotonic() - started)

        self._metrics.record_success(provider_name, response, time.time())
        log.info(
            "aggregation_done",
            days=len(response.daily_usage),
            total_tokens=response.total_tokens,
            total_cost=round(response.total_cost, 4),
        )
        return response
