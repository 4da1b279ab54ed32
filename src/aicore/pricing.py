"""Per-model token pricing and cost calculation.

Prices are USD per 1M tokens, keyed by model-name prefix. A model is priced by
its exact key when present, otherwise by the longest key it starts with, so
``claude-sonnet-4-20250514`` resolves to ``claude-sonnet-4``.
"""

from collections.abc import Mapping
from typing import Final, NamedTuple

# prefix -> (input price, output price), per 1M tokens
DEFAULT_PRICING: Final[dict[str, tuple[float, float]]] = {
    # OpenAI
    "gpt-4o": (2.50, 10.00),
    "gpt-4o-mini": (0.15, 0.60),
    "gpt-4-turbo": (10.00, 30.00),
    "gpt-4": (30.00, 60.00),
    "o1": (15.00, 60.00),
    "o1-mini": (3.00, 12.00),
    "o1-pro": (150.00, 600.00),
    "o3": (10.00, 40.00),
    "o3-mini": (1.10, 4.40),
    "o4-mini": (1.10, 4.40),
    # Anthropic
    "claude-opus-4": (15.00, 75.00),
    "claude-sonnet-4": (3.00, 15.00),
    "claude-3-5-sonnet": (3.00, 15.00),
    "claude-3-5-haiku": (0.80, 4.00),
    "claude-haiku-4": (0.80, 4.00),
    "claude-3-opus": (15.00, 75.00),
}

TOKENS_PER_UNIT: Final[int] = 1_000_000
COST_PRECISION: Final[int] = 6


class PricingEntry(NamedTuple):
    """Price of one model prefix."""

    prefix: str
    input_price_per_million: float
    output_price_per_million: float


class PricingTable:
    """Lookup table from model-name prefix to token prices.

    Passing ``pricing`` replaces the default table wholesale; entries are not
    merged with ``DEFAULT_PRICING``.
    """

    def __init__(self, pricing: Mapping[str, tuple[float, float]] | None = None):
        source = DEFAULT_PRICING if pricing is None else pricing
        self._entries: dict[str, PricingEntry] = {}
        for prefix, (input_price, output_price) in source.items():
            if input_price < 0 or output_price < 0:
                raise ValueError(f"Negative price for model prefix '{prefix}'")
            self._entries[prefix] = PricingEntry(prefix, float(input_price), float(output_price))

    def __len__(self) -> int:
        return len(self._entries)

    def __contains__(self, prefix: object) -> bool:
        return prefix in self._entries

    @property
    def entries(self) -> list[PricingEntry]:
        return list(self._entries.values())

    def lookup(self, model: str) -> PricingEntry | None:
        """Find the pricing entry for a model.

        Exact match first, then the longest prefix of ``model``.
        """
        if model in self._entries:
            return self._entries[model]

        best: PricingEntry | None = None
        for prefix, entry in self._entries.items():
            if model.startswith(prefix) and (best is None or len(prefix) > len(best.prefix)):
                best = entry
        return best

    def cost(self, model: str, input_tokens: int, output_tokens: int) -> float:
        """Cost in USD of a call, rounded to 6 decimals; 0 for unknown models."""
        entry = self.lookup(model)
        if entry is None:
            return 0.0

        cost = (
            input_tokens * entry.input_price_per_million / TOKENS_PER_UNIT
            + output_tokens * entry.output_price_per_million / TOKENS_PER_UNIT
        )
        return round(max(cost, 0.0), COST_PRECISION)


_default_table = PricingTable()


def calculate_cost(
    model: str,
    input_tokens: int,
    output_tokens: int,
    pricing: PricingTable | None = None
) -> float:
    """Calculate the USD cost of a call with ``pricing`` or the default table."""
    table = pricing if pricing is not None else _default_table
    return table.cost(model, input_tokens, output_tokens)
