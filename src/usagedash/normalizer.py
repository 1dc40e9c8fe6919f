from typing import Iterable

from usagedash.models import (
    CostBucket,
    DailyUsageRecord,
    ModelCost,
    UsageResponse,
    WorkspaceCost,
)


def _sum_line_items(costs: "Iterable[CostBucket]", key: "str") -> "dict[str, float]":
    totals: "dict[str, float]" = {}
    for bucket in costs:
        for item in bucket.items:
            name = getattr(item, key) or "Unknown"
            totals[name] = totals.get(name, 0.0) + item.amount_usd
    return totals


def cost_by_model(costs: "Iterable[CostBucket]") -> "list[ModelCost]":
    totals = _sum_line_items(costs, "model")
    return sorted(
        (ModelCost(model=m, cost=c) for m, c in totals.items()),
        key=lambda mc: (-mc.cost, mc.model),
    )


def cost_by_workspace(costs: "Iterable[CostBucket]") -> "list[WorkspaceCost]":
    totals = _sum_line_items(costs, "workspace")
    return sorted(
        (WorkspaceCost(workspace=w, cost=c) for w, c in totals.items()),
        key=lambda wc: (-wc.cost, wc.workspace),
    )


def normalize(
    records: "Iterable[DailyUsageRecord]",
    costs: "list[CostBucket] | None" = None,
    include_workspaces: "bool" = False,
) -> "UsageResponse":
    """
    shapes reconciled records into the response body: one record per
    date in ascending order, plus range-level totals. The model and
    workspace summaries are built from the cost report line items and
    are only attached when the cost report was available.
    """
    by_date: "dict[str, DailyUsageRecord]" = {}
    for record in records:
        # first record for a date wins
        by_date.setdefault(record.date, record)

    daily_usage = [by_date[d] for d in sorted(by_date)]

    response = UsageResponse(
        daily_usage=daily_usage,
        total_tokens=sum(r.total_tokens for r in daily_usage),
        total_cost=sum(r.cost for r in daily_usage),
    )

    if costs is not None:
        response.cost_by_model = cost_by_model(costs)
        if include_workspaces:
            response.cost_by_workspace = cost_by_workspace(costs)

    return response
