import pytest

from usagedash.allocator import allocate_model_costs, estimate_by_model
from usagedash.models import TokenTally
from usagedash.pricing import PricingTable, Rate

_TABLE = PricingTable(
    rates={
        "big": Rate(input=10.0, output=40.0, cache_read=1.0, cache_write=12.5),
        "small": Rate(input=1.0, output=4.0, cache_read=0.1, cache_write=1.25),
    },
    default=Rate(input=2.0, output=8.0, cache_read=0.2, cache_write=2.5),
)


def _tallies() -> "list[TokenTally]":
    return [
        TokenTally(model="big-model", fresh_input=100_000, output=20_000),
        TokenTally(model="small-model", fresh_input=400_000, cache_read=50_000, output=10_000),
        TokenTally(model="big-model", cache_write=30_000, output=5_000),
        # untagged results carry tokens but no estimate
        TokenTally(model=None, fresh_input=1_000, output=1_000),
    ]


class TestEstimateByModel:
    def test_groups_by_label(self) -> "None":
        estimates = estimate_by_model(_tallies(), _TABLE, label=lambda m: m.split("-")[0])
        assert set(estimates) == {"big", "small"}
        assert estimates["big"] == pytest.approx(
            (100_000 * 10 + 20_000 * 40 + 30_000 * 12.5 + 5_000 * 40) / 1_000_000
        )
        assert estimates["small"] == pytest.approx(
            (400_000 * 1 + 50_000 * 0.1 + 10_000 * 4) / 1_000_000
        )


class TestAllocateModelCosts:
    def test_scaled_breakdown_sums_to_actual_total(self) -> "None":
        allocated = allocate_model_costs(_tallies(), _TABLE, actual_total=1.37)
        assert sum(mc.cost for mc in allocated) == pytest.approx(1.37, abs=1e-6)

    def test_preserves_relative_proportions(self) -> "None":
        estimates = estimate_by_model(_tallies(), _TABLE)
        allocated = {mc.model: mc.cost for mc in allocate_model_costs(_tallies(), _TABLE, 5.0)}
        ratio = estimates["big-model"] / estimates["small-model"]
        assert allocated["big-model"] / allocated["small-model"] == pytest.approx(ratio)

    def test_unscaled_when_total_unknown(self) -> "None":
        estimates = estimate_by_model(_tallies(), _TABLE)
        allocated = {mc.model: mc.cost for mc in allocate_model_costs(_tallies(), _TABLE)}
        assert allocated == pytest.approx(estimates)

    def test_sorted_by_descending_cost(self) -> "None":
        allocated = allocate_model_costs(_tallies(), _TABLE, actual_total=2.0)
        assert [mc.model for mc in allocated] == ["big-model", "small-model"]

    def test_zero_estimates_yield_empty_breakdown(self) -> "None":
        tallies = [
            TokenTally(model="big-model"),
            TokenTally(model=None, fresh_input=10, output=10),
        ]
        assert allocate_model_costs(tallies, _TABLE, actual_total=3.0) == []
        assert allocate_model_costs([], _TABLE, actual_total=0.0) == []

    def test_zero_actual_total_scales_to_zero(self) -> "None":
        allocated = allocate_model_costs(_tallies(), _TABLE, actual_total=0.0)
        assert allocated
        assert all(mc.cost == 0.0 for mc in allocated)
