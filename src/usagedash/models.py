from dataclasses import dataclass, field


@dataclass(frozen=True, slots=True)
class TokenTally:
    """
    TokenTally represents a single result inside an upstream
    usage bucket, split by token category.
    """

    # raw model id as reported upstream, None when the
    # query was not grouped by model
    model: "str | None"
    fresh_input: "int" = 0
    cache_read: "int" = 0
    cache_write: "int" = 0
    output: "int" = 0

    @property
    def input_tokens(self) -> "int":
        return self.fresh_input + self.cache_read + self.cache_write


@dataclass(frozen=True, slots=True)
class UsageBucket:
    # ISO calendar date (UTC) of the bucket start
    date: "str"
    tallies: "tuple[TokenTally, ...]" = ()


@dataclass(frozen=True, slots=True)
class CostLineItem:
    # display label, not the raw model id
    model: "str"
    amount_usd: "float"
    # resolved workspace name, None when not grouped by workspace
    workspace: "str | None" = None


@dataclass(frozen=True, slots=True)
class CostBucket:
    date: "str"
    items: "tuple[CostLineItem, ...]" = ()

    @property
    def total(self) -> "float":
        return sum(item.amount_usd for item in self.items)


@dataclass(frozen=True, slots=True)
class ModelCost:
    model: "str"
    cost: "float"

    def to_dict(self) -> "dict[str, object]":
        return {"model": self.model, "cost": self.cost}


@dataclass(frozen=True, slots=True)
class WorkspaceCost:
    workspace: "str"
    cost: "float"

    def to_dict(self) -> "dict[str, object]":
        return {"workspace": self.workspace, "cost": self.cost}


@dataclass(frozen=True, slots=True)
class DailyUsageRecord:
    """
    DailyUsageRecord represents one calendar day of activity
    for one provider.
    """

    date: "str"
    input_tokens: "int"
    output_tokens: "int"
    cost: "float"
    model_costs: "tuple[ModelCost, ...]" = ()
    # True when cost was not taken from the provider's cost report
    estimated: "bool" = False

    @property
    def total_tokens(self) -> "int":
        return self.input_tokens + self.output_tokens

    def to_dict(self) -> "dict[str, object]":
        return {
            "date": self.date,
            "inputTokens": self.input_tokens,
            "outputTokens": self.output_tokens,
            "totalTokens": self.total_tokens,
            "cost": self.cost,
            "modelCosts": [mc.to_dict() for mc in self.model_costs],
            "estimated": self.estimated,
        }


@dataclass(slots=True)
class UsageReport:
    """
    UsageReport holds everything fetched from a provider for a
    single request, before reconciliation.
    """

    daily: "list[UsageBucket]" = field(default_factory=list)
    hourly: "list[UsageBucket]" = field(default_factory=list)
    # None when the cost query failed
    costs: "list[CostBucket] | None" = None
    # names of the queries that were degraded to empty results
    failed_stages: "list[str]" = field(default_factory=list)


@dataclass(slots=True)
class UsageResponse:
    daily_usage: "list[DailyUsageRecord]" = field(default_factory=list)
    total_tokens: "int" = 0
    total_cost: "float" = 0.0
    cost_by_model: "list[ModelCost] | None" = None
    cost_by_workspace: "list[WorkspaceCost] | None" = None
    error: "str | None" = None

    @classmethod
    def failure(cls, message: "str") -> "UsageResponse":
        return cls(error=message)

    def to_dict(self) -> "dict[str, object]":
        """
        renders the JSON body served to the dashboard. Optional keys
        are left out entirely when unset.
        """
        body: "dict[str, object]" = {
            "dailyUsage": [r.to_dict() for r in self.daily_usage],
            "totalTokens": self.total_tokens,
            "totalCost": self.total_cost,
        }
        if self.cost_by_model is not None:
            body["costByModel"] = [mc.to_dict() for mc in self.cost_by_model]
        if self.cost_by_workspace is not None:
            body["costByWorkspace"] = [wc.to_dict() for wc in self.cost_by_workspace]
        if self.error is not None:
            body["error"] = self.error
        return body
