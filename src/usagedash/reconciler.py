from typing import Callable, Iterable

import structlog

from usagedash.allocator import allocate_model_costs
from usagedash.models import (
    CostBucket,
    DailyUsageRecord,
    ModelCost,
    TokenTally,
    UsageBucket,
    UsageReport,
)
from usagedash.pricing import PricingTable

logger = structlog.get_logger()


def group_tallies_by_date(
    buckets: "Iterable[UsageBucket]",
) -> "dict[str, list[TokenTally]]":
    """
    concatenates the tallies of all buckets sharing a date. Used for
    hourly buckets as well as for daily buckets that were split
    across pages.
    """
    grouped: "dict[str, list[TokenTally]]" = {}
    for bucket in buckets:
        grouped.setdefault(bucket.date, []).extend(bucket.tallies)
    return grouped


def costs_by_date(costs: "Iterable[CostBucket] | None") -> "dict[str, CostBucket]":
    merged: "dict[str, CostBucket]" = {}
    for bucket in costs or ():
        existing = merged.get(bucket.date)
        if existing is None:
            merged[bucket.date] = bucket
        else:
            merged[bucket.date] = CostBucket(
                date=bucket.date, items=existing.items + bucket.items
            )
    return merged


def _line_item_breakdown(bucket: "CostBucket") -> "list[ModelCost]":
    totals: "dict[str, float]" = {}
    for item in bucket.items:
        totals[item.model] = totals.get(item.model, 0.0) + item.amount_usd
    breakdown = [ModelCost(model=m, cost=c) for m, c in totals.items() if c != 0]
    breakdown.sort(key=lambda mc: (-mc.cost, mc.model))
    return breakdown


def _sum_tokens(tallies: "Iterable[TokenTally]") -> "tuple[int, int]":
    input_tokens = 0
    output_tokens = 0
    for tally in tallies:
        input_tokens += tally.input_tokens
        output_tokens += tally.output
    return input_tokens, output_tokens


class CostReconciler:
    """
    CostReconciler merges daily usage buckets with the hourly buckets
    fetched for the trailing window, and attaches a cost to every day.

    Days missing from the daily report (the provider reports them with
    a delay) are rebuilt from the hourly buckets. Their cost comes from
    the cost report when it already has the day, otherwise it is
    estimated from the pricing table and the record is flagged as
    estimated.
    """

    def __init__(
        self,
        pricing: "PricingTable",
        label: "Callable[[str], str]",
    ) -> "None":
        self._pricing = pricing
        self._label = label

    def _model_costs(
        self,
        tallies: "list[TokenTally]",
        cost_bucket: "CostBucket | None",
    ) -> "list[ModelCost]":
        if cost_bucket is None:
            return allocate_model_costs(tallies, self._pricing, None, self._label)

        allocated = allocate_model_costs(
            tallies, self._pricing, cost_bucket.total, self._label
        )
        if allocated:
            return allocated

        # no priced tallies for the day, fall back to the cost report's
        # own per-model line items
        return _line_item_breakdown(cost_bucket)

    def _native_record(
        self,
        date: "str",
        tallies: "list[TokenTally]",
        cost_bucket: "CostBucket | None",
    ) -> "DailyUsageRecord":
        input_tokens, output_tokens = _sum_tokens(tallies)
        if cost_bucket is None:
            # no cost reported for the day (or the cost query failed)
            cost = 0.0
            model_costs = allocate_model_costs(tallies, self._pricing, 0.0, self._label)
        else:
            cost = cost_bucket.total
            model_costs = self._model_costs(tallies, cost_bucket)

        return DailyUsageRecord(
            date=date,
            input_tokens=input_tokens,
            output_tokens=output_tokens,
            cost=cost,
            model_costs=tuple(model_costs),
            estimated=False,
        )

    def _gap_record(
        self,
        date: "str",
        tallies: "list[TokenTally]",
        cost_bucket: "CostBucket | None",
    ) -> "DailyUsageRecord | None":
        input_tokens, output_tokens = _sum_tokens(tallies)
        if input_tokens == 0 and output_tokens == 0:
            return None

        # an empty cost bucket means the day has not been billed yet
        if cost_bucket is not None and not cost_bucket.items:
            cost_bucket = None

        if cost_bucket is None:
            cost = sum(self._pricing.estimate(t) for t in tallies)
        else:
            cost = cost_bucket.total

        return DailyUsageRecord(
            date=date,
            input_tokens=input_tokens,
            output_tokens=output_tokens,
            cost=cost,
            model_costs=tuple(self._model_costs(tallies, cost_bucket)),
            estimated=cost_bucket is None,
        )

    def reconcile(self, report: "UsageReport") -> "list[DailyUsageRecord]":
        cost_map = costs_by_date(report.costs)
        daily = group_tallies_by_date(report.daily)

        records: "dict[str, DailyUsageRecord]" = {
            date: self._native_record(date, tallies, cost_map.get(date))
            for date, tallies in daily.items()
        }

        hourly = group_tallies_by_date(report.hourly)
        for date, tallies in hourly.items():
            if date in records:
                continue

            record = self._gap_record(date, tallies, cost_map.get(date))
            if record is None:
                continue

            logger.debug(
                "usage_gap_filled",
                date=date,
                estimated=record.estimated,
                total_tokens=record.total_tokens,
            )
            records[date] = record

        return [records[date] for date in sorted(records)]
