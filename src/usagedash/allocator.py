from typing import Callable, Iterable

from usagedash.models import ModelCost, TokenTally
from usagedash.pricing import PricingTable


def _identity(model_id: "str") -> "str":
    return model_id


def estimate_by_model(
    tallies: "Iterable[TokenTally]",
    pricing: "PricingTable",
    label: "Callable[[str], str]" = _identity,
) -> "dict[str, float]":
    """
    sums independent pricing-table estimates per display label.
    Tallies without a model id are skipped.
    """
    estimates: "dict[str, float]" = {}
    for tally in tallies:
        if not tally.model:
            continue
        name = label(tally.model)
        estimates[name] = estimates.get(name, 0.0) + pricing.estimate(tally)
    return estimates


def allocate_model_costs(
    tallies: "Iterable[TokenTally]",
    pricing: "PricingTable",
    actual_total: "float | None" = None,
    label: "Callable[[str], str]" = _identity,
) -> "list[ModelCost]":
    """
    splits a day's cost across models in proportion to each model's
    token-priced estimate.

    When actual_total is given the estimates are rescaled so the
    breakdown sums to it. When it is None the day has no authoritative
    cost and the raw estimates are returned unscaled. Models whose
    estimate is zero are left out, so an all-zero day yields [].
    """
    estimates = estimate_by_model(tallies, pricing, label)
    estimated_total = sum(estimates.values())

    if actual_total is None:
        scale = 1.0
    elif estimated_total == 0:
        scale = 0.0
    else:
        scale = actual_total / estimated_total

    allocated = [
        ModelCost(model=name, cost=estimate * scale)
        for name, estimate in estimates.items()
        if estimate != 0
    ]
    allocated.sort(key=lambda mc: (-mc.cost, mc.model))
    return allocated
