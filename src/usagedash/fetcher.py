import asyncio
from dataclasses import replace

import structlog

from usagedash.dates import DateRange
from usagedash.models import CostBucket, UsageReport
from usagedash.provider.base import UsageProvider

logger = structlog.get_logger()


async def _nothing() -> "None":
    return None


def _resolve_workspaces(
    costs: "list[CostBucket]",
    names: "dict[str, str]",
    default: "str",
) -> "list[CostBucket]":
    resolved: "list[CostBucket]" = []
    for bucket in costs:
        items = tuple(
            replace(
                item,
                workspace=names.get(item.workspace, item.workspace)
                if item.workspace
                else default,
            )
            for item in bucket.items
        )
        resolved.append(CostBucket(date=bucket.date, items=items))
    return resolved


async def fetch_report(
    provider: "UsageProvider",
    window: "DateRange",
    hourly_window: "DateRange | None",
    include_workspaces: "bool" = False,
) -> "UsageReport":
    """
    issues all upstream queries for one request concurrently and
    collects them into a UsageReport.

    A failed daily usage query is raised as-is (AdminKeyRequiredError,
    UpstreamError or a transport error). A failed cost query leaves
    costs as None, and failed hourly or workspace queries are treated
    as empty. Degraded queries are listed in failed_stages.
    """
    logger.debug(
        "usage_fetch_start",
        provider=provider.name,
        start=window.start.isoformat(),
        end=window.end.isoformat(),
        hourly=hourly_window is not None,
        workspaces=include_workspaces,
    )

    daily, costs, hourly, names = await asyncio.gather(
        provider.fetch_daily_usage(window),
        provider.fetch_costs(window, include_workspaces),
        provider.fetch_hourly_usage(hourly_window) if hourly_window else _nothing(),
        provider.fetch_workspace_names() if include_workspaces else _nothing(),
        return_exceptions=True,
    )

    # usage is the primary query, nothing else is worth parsing without it
    if isinstance(daily, BaseException):
        raise daily

    report = UsageReport(daily=daily)

    if isinstance(costs, BaseException):
        logger.warning(
            "cost_report_degraded", provider=provider.name, error=str(costs)
        )
        report.failed_stages.append("cost")
    else:
        report.costs = costs

    if isinstance(hourly, BaseException):
        logger.warning(
            "hourly_usage_degraded", provider=provider.name, error=str(hourly)
        )
        report.failed_stages.append("hourly")
    elif hourly is not None:
        report.hourly = hourly

    if isinstance(names, BaseException):
        logger.warning(
            "workspace_lookup_degraded", provider=provider.name, error=str(names)
        )
        report.failed_stages.append("workspaces")
        names = {}

    if include_workspaces and report.costs is not None:
        report.costs = _resolve_workspaces(
            report.costs, names or {}, provider.default_workspace
        )

    return report
