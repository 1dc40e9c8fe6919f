from prometheus_client import REGISTRY, CollectorRegistry, Counter, Gauge, Histogram

from usagedash.models import UsageResponse


class MetricsUpdater:
    """
    records aggregation outcomes in Prometheus metrics, one label
    set per provider.
    """

    def __init__(self, registry: "CollectorRegistry" = REGISTRY) -> "None":
        self._aggregation_duration: "Histogram" = Histogram(
            "usagedash_aggregation_duration_seconds",
            "Duration of a usage aggregation request",
            ["provider"],
            registry=registry,
        )
        self._upstream_errors: "Counter" = Counter(
            "usagedash_upstream_errors_total",
            "Total number of failed upstream queries by provider and stage",
            ["provider", "stage"],
            registry=registry,
        )
        self._responses: "Counter" = Counter(
            "usagedash_responses_total",
            "Total usage responses by provider and outcome",
            ["provider", "outcome"],
            registry=registry,
        )
        self._last_success: "Gauge" = Gauge(
            "usagedash_last_success_timestamp_seconds",
            "Unix timestamp of the last successful aggregation per provider",
            ["provider"],
            registry=registry,
        )
        self._estimated_days: "Counter" = Counter(
            "usagedash_estimated_days_total",
            "Total days served with a pricing-table cost estimate",
            ["provider"],
            registry=registry,
        )

    def observe_duration(self, provider: "str", duration_seconds: "float") -> "None":
        self._aggregation_duration.labels(provider=provider).observe(duration_seconds)

    def inc_upstream_error(self, provider: "str", stage: "str") -> "None":
        self._upstream_errors.labels(provider=provider, stage=stage).inc()

    def inc_response(self, provider: "str", outcome: "str") -> "None":
        self._responses.labels(provider=provider, outcome=outcome).inc()

    def record_success(
        self,
        provider: "str",
        response: "UsageResponse",
        timestamp: "float",
    ) -> "None":
        """
        updates the success gauge and counts the estimated days
        of a successful response.
        """
        self.inc_response(provider, "ok")
        self._last_success.labels(provider=provider).set(timestamp)
        estimated = sum(1 for r in response.daily_usage if r.estimated)
        if estimated:
            self._estimated_days.labels(provider=provider).inc(estimated)
