import json
from dataclasses import dataclass
from pathlib import Path
from typing import Mapping

from usagedash.models import TokenTally

# rates are quoted in USD per million tokens
TOKENS_PER_RATE_UNIT = 1_000_000


@dataclass(frozen=True, slots=True)
class Rate:
    input: "float"
    output: "float"
    cache_read: "float"
    cache_write: "float"

    @classmethod
    def from_dict(cls, data: "Mapping[str, float]") -> "Rate":
        input_rate = float(data["input"])
        return cls(
            input=input_rate,
            output=float(data["output"]),
            cache_read=float(data.get("cache_read", input_rate)),
            cache_write=float(data.get("cache_write", input_rate)),
        )


def _most_specific_first(keys: "list[str]") -> "list[str]":
    # longest key wins when several are contained in the same id,
    # alphabetical order only makes the ordering total
    return sorted(keys, key=lambda k: (-len(k), k))


class PricingTable:
    """
    PricingTable maps model-id substrings to per-million-token rates.

    Lookup is substring containment: the first key (longest first)
    contained in the model id wins, anything else falls back to the
    default tier. The table is static data and gets updated by hand
    whenever a provider revises its prices.
    """

    def __init__(self, rates: "Mapping[str, Rate]", default: "Rate") -> "None":
        self._rates: "dict[str, Rate]" = dict(rates)
        self._keys: "list[str]" = _most_specific_first(list(self._rates))
        self.default = default

    @classmethod
    def from_dict(cls, data: "Mapping[str, object]") -> "PricingTable":
        models = data.get("models", {})
        return cls(
            rates={key: Rate.from_dict(rate) for key, rate in models.items()},
            default=Rate.from_dict(data["default"]),
        )

    def lookup(self, model_id: "str | None") -> "Rate":
        if not model_id:
            return self.default

        for key in self._keys:
            if key in model_id:
                return self._rates[key]

        return self.default

    def estimate(self, tally: "TokenTally") -> "float":
        """
        estimates the USD cost of a single tally. Tallies without a
        model id can't be priced and are worth 0.
        """
        if not tally.model:
            return 0.0

        rate = self.lookup(tally.model)
        return (
            tally.fresh_input * rate.input
            + tally.cache_read * rate.cache_read
            + tally.cache_write * rate.cache_write
            + tally.output * rate.output
        ) / TOKENS_PER_RATE_UNIT


class ModelLabeler:
    """
    turns raw model ids into display labels using the same
    longest-substring-first matching as PricingTable.
    """

    def __init__(self, rules: "Mapping[str, str]") -> "None":
        self._rules: "dict[str, str]" = dict(rules)
        self._keys: "list[str]" = _most_specific_first(list(self._rules))

    def label(self, model_id: "str | None") -> "str":
        if not model_id:
            return "Unknown"

        for key in self._keys:
            if key in model_id:
                return self._rules[key]

        return model_id


def load_pricing_overrides(path: "str | Path") -> "dict[str, PricingTable]":
    """
    reads per-provider pricing tables from a JSON file shaped like
    {"anthropic": {"default": {...}, "models": {"claude-opus-4": {...}}}}.
    """
    data = json.loads(Path(path).read_text())
    return {provider: PricingTable.from_dict(table) for provider, table in data.items()}


_SONNET = Rate(input=3.0, output=15.0, cache_read=0.3, cache_write=3.75)
_OPUS = Rate(input=15.0, output=75.0, cache_read=1.5, cache_write=18.75)
_HAIKU = Rate(input=0.8, output=4.0, cache_read=0.08, cache_write=1.0)

ANTHROPIC_PRICING = PricingTable(
    rates={
        "claude-opus-4-6": _OPUS,
        "claude-opus-4": _OPUS,
        "claude-sonnet-4-5": _SONNET,
        "claude-sonnet-4": _SONNET,
        "claude-3-7-sonnet": _SONNET,
        "claude-3-5-sonnet": _SONNET,
        "claude-haiku-4-5": _HAIKU,
        "claude-3-5-haiku": _HAIKU,
        "claude-3-haiku": Rate(input=0.25, output=1.25, cache_read=0.03, cache_write=0.3),
    },
    default=_SONNET,
)

_GPT_4O = Rate(input=2.5, output=10.0, cache_read=1.25, cache_write=2.5)

OPENAI_PRICING = PricingTable(
    rates={
        "gpt-4o-mini": Rate(input=0.15, output=0.6, cache_read=0.075, cache_write=0.15),
        "gpt-4o": _GPT_4O,
        "gpt-4.1-nano": Rate(input=0.1, output=0.4, cache_read=0.025, cache_write=0.1),
        "gpt-4.1-mini": Rate(input=0.4, output=1.6, cache_read=0.1, cache_write=0.4),
        "gpt-4.1": Rate(input=2.0, output=8.0, cache_read=0.5, cache_write=2.0),
        "gpt-5-nano": Rate(input=0.05, output=0.4, cache_read=0.005, cache_write=0.05),
        "gpt-5-mini": Rate(input=0.25, output=2.0, cache_read=0.025, cache_write=0.25),
        "gpt-5": Rate(input=1.25, output=10.0, cache_read=0.125, cache_write=1.25),
        "o1-mini": Rate(input=1.1, output=4.4, cache_read=0.55, cache_write=1.1),
        "o1": Rate(input=15.0, output=60.0, cache_read=7.5, cache_write=15.0),
        "o3-mini": Rate(input=1.1, output=4.4, cache_read=0.55, cache_write=1.1),
        "o3": Rate(input=2.0, output=8.0, cache_read=0.5, cache_write=2.0),
        "o4-mini": Rate(input=1.1, output=4.4, cache_read=0.275, cache_write=1.1),
    },
    default=_GPT_4O,
)

ANTHROPIC_LABELS = ModelLabeler(
    {
        "opus-4-6": "Claude Opus 4.6",
        "opus-4": "Claude Opus 4",
        "sonnet-4-5": "Claude Sonnet 4.5",
        "sonnet-4": "Claude Sonnet 4",
        "haiku-4-5": "Claude Haiku 4.5",
        "3-7-sonnet": "Claude Sonnet 3.7",
        "3-5-sonnet": "Claude Sonnet 3.5",
        "3-5-haiku": "Claude Haiku 3.5",
        "3-haiku": "Claude Haiku 3",
    }
)

OPENAI_LABELS = ModelLabeler(
    {
        "gpt-4o-mini": "GPT-4o Mini",
        "gpt-4o": "GPT-4o",
        "gpt-4-turbo": "GPT-4 Turbo",
        "gpt-4.1-mini": "GPT-4.1 Mini",
        "gpt-4.1": "GPT-4.1",
        "gpt-4": "GPT-4",
        "gpt-5-mini": "GPT-5 Mini",
        "gpt-5": "GPT-5",
        "o1-mini": "o1 Mini",
        "o1": "o1",
        "o3-mini": "o3 Mini",
        "o3": "o3",
        "o4-mini": "o4 Mini",
        "dall-e": "DALL-E",
    }
)
