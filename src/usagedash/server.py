from fastapi import FastAPI, HTTPException, Query
from fastapi.responses import JSONResponse
from prometheus_client import REGISTRY, CollectorRegistry, make_asgi_app

from usagedash.aggregator import PROVIDER_CLASSES, UsageAggregator
from usagedash.config import Config
from usagedash.errors import UnknownProviderError
from usagedash.metrics import MetricsUpdater


def create_app(
    config: "Config",
    registry: "CollectorRegistry" = REGISTRY,
    aggregator: "UsageAggregator | None" = None,
) -> "FastAPI":
    """
    builds the FastAPI application serving one usage endpoint per
    provider plus health and Prometheus metrics.
    """
    if aggregator is None:
        aggregator = UsageAggregator(config, MetricsUpdater(registry=registry))

    app = FastAPI(title="usagedash", version="0.1.0")
    app.state.aggregator = aggregator
    app.mount("/metrics", make_asgi_app(registry=registry))

    @app.get("/healthz")
    async def healthz() -> "dict":
        return {
            "status": "ok",
            "providers": {
                name: aggregator.is_configured(name) for name in PROVIDER_CLASSES
            },
        }

    @app.get("/api/ai-usage/{provider}")
    async def get_usage(
        provider: "str",
        start: "str | None" = Query(None, description="Start date (YYYY-MM-DD)"),
        end: "str | None" = Query(None, description="End date (YYYY-MM-DD)"),
        workspaces: "bool" = Query(False, description="Include cost by workspace"),
    ) -> "JSONResponse":
        # always 200: failures travel in the body's error field
        try:
            response = await aggregator.aggregate(provider, start, end, workspaces)
        except UnknownProviderError as e:
            raise HTTPException(status_code=404, detail=str(e)) from e
        return JSONResponse(status_code=200, content=response.to_dict())

    return app
