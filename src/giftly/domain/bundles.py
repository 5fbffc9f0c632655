"""Static bundle catalog and deterministic bundle matching.

Catalog prices are USD per unit. The catalog is read-only.
"""

from __future__ import annotations

from dataclasses import dataclass

from giftly.domain.state import ChatState

# Suggested unit price must leave a margin buffer under the client's budget
BUDGET_MARGIN_RATIO = 0.75
MAX_SUGGESTIONS = 3
FAST_TURNAROUND_MAX_DAYS = 6


@dataclass(frozen=True)
class Bundle:
    """A catalog option with its quantity and eligibility constraints."""

    id: str
    name: str
    unit_price: float
    lead_time_days: int
    min_qty: int
    max_qty: int
    eligible_shipping: frozenset[str]
    eligible_branding: frozenset[str]
    notes: str = ""


@dataclass(frozen=True)
class SuggestedBundle:
    name: str
    unit_price: float
    lead_time_days: int
    why: str | None = None

    def to_dict(self) -> dict:
        out: dict = {
            "name": self.name,
            "unitPrice": self.unit_price,
            "leadTimeDays": self.lead_time_days,
        }
        if self.why is not None:
            out["why"] = self.why
        return out


_ALL_SHIPPING = frozenset({"bulk", "individual", "unknown"})

BUNDLES: tuple[Bundle, ...] = (
    Bundle(
        id="snack-box",
        name="Snack Box",
        unit_price=18,
        lead_time_days=5,
        min_qty=25,
        max_qty=500,
        eligible_shipping=_ALL_SHIPPING,
        eligible_branding=frozenset({"none", "sticker", "insert", "unknown"}),
        notes="Curated snacks, insert or sticker. Low complexity, fast ship.",
    ),
    Bundle(
        id="notebook-pen",
        name="Notebook + Pen",
        unit_price=22,
        lead_time_days=7,
        min_qty=50,
        max_qty=1000,
        eligible_shipping=_ALL_SHIPPING,
        eligible_branding=frozenset({"none", "sticker", "insert", "laser", "unknown"}),
        notes="Laser engraving optional on pen or notebook cover.",
    ),
    Bundle(
        id="coffee-kit",
        name="Coffee Kit",
        unit_price=28,
        lead_time_days=5,
        min_qty=30,
        max_qty=400,
        eligible_shipping=_ALL_SHIPPING,
        eligible_branding=frozenset({"none", "sticker", "insert", "unknown"}),
        notes="Mug or tumbler, coffee samples. Sticker or insert.",
    ),
    Bundle(
        id="throw-blanket",
        name="Cozy Throw Blanket",
        unit_price=35,
        lead_time_days=10,
        min_qty=25,
        max_qty=200,
        eligible_shipping=_ALL_SHIPPING,
        eligible_branding=frozenset({"none", "insert", "unknown"}),
        notes="Premium throw with optional note card insert.",
    ),
    Bundle(
        id="wellness-tea-kit",
        name="Wellness / Tea Kit",
        unit_price=24,
        lead_time_days=6,
        min_qty=25,
        max_qty=350,
        eligible_shipping=_ALL_SHIPPING,
        eligible_branding=frozenset({"none", "sticker", "insert", "unknown"}),
        notes="Tea, honey stick, tin. Insert or sticker.",
    ),
)


def _is_eligible(bundle: Bundle, state: ChatState, max_unit_price: float) -> bool:
    if bundle.unit_price > max_unit_price:
        return False
    if not bundle.min_qty <= state.quantity <= bundle.max_qty:
        return False
    if (state.shipping_type or "unknown") not in bundle.eligible_shipping:
        return False
    if (state.branding or "unknown") not in bundle.eligible_branding:
        return False
    return True


def suggest_bundles(
    state: ChatState,
    catalog: tuple[Bundle, ...] = BUNDLES,
) -> list[SuggestedBundle]:
    """Suggest up to three catalog bundles that fit the state.

    Requires quantity and budget; otherwise returns an empty list. Results
    are sorted by lead time ascending, then unit price descending.
    """
    if state.quantity is None or state.budget_per_unit_usd is None:
        return []

    max_unit_price = state.budget_per_unit_usd * BUDGET_MARGIN_RATIO
    eligible = [b for b in catalog if _is_eligible(b, state, max_unit_price)]
    eligible.sort(key=lambda b: (b.lead_time_days, -b.unit_price))

    return [
        SuggestedBundle(
            name=b.name,
            unit_price=b.unit_price,
            lead_time_days=b.lead_time_days,
            why="Fast turnaround" if b.lead_time_days <= FAST_TURNAROUND_MAX_DAYS else None,
        )
        for b in eligible[:MAX_SUGGESTIONS]
    ]
